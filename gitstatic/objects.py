# objects.py -- Access to base git objects
# Copyright (C) 2026 The gitstatic authors
#
# SPDX-License-Identifier: Apache-2.0 OR GPL-2.0-or-later
# gitstatic is dual-licensed under the Apache License, Version 2.0 and the GNU
# General Public License as published by the Free Software Foundation; version 2.0
# or (at your option) any later version. You can redistribute it and/or
# modify it under the terms of either of these two licenses.
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
# You should have received a copy of the licenses; if not, see
# <http://www.gnu.org/licenses/> for a copy of the GNU General Public License
# and <http://www.apache.org/licenses/LICENSE-2.0> for a copy of the Apache
# License, Version 2.0.
#

"""Access to base git objects.

Only the parts of commits and trees needed to render a snapshot are decoded:
a commit keeps its tree, its first parent, its committer time and its
message; a tree keeps its entry names (with the entry kind folded into the
name) and child ids.
"""

__all__ = [
    "BLOB",
    "COMMIT",
    "DIR_MARKER",
    "SYMLINK_MARKER",
    "TAG",
    "TREE",
    "TYPE_NAMES",
    "Commit",
    "Tree",
    "TreeEntry",
    "check_object_id",
    "hex_to_filename",
    "object_kind_error",
    "parse_object_header",
    "parse_timezone",
    "sha_to_hex",
    "valid_object_id",
]

import binascii
import datetime
import os
from collections.abc import Iterator
from dataclasses import dataclass
from typing import NamedTuple

from .errors import (
    InvalidObjectId,
    NotBlobError,
    NotCommitError,
    NotTagError,
    NotTreeError,
    ObjectFormatException,
    WrongObjectException,
)

COMMIT = 1
TREE = 2
BLOB = 3
TAG = 4

TYPE_NAMES = {
    COMMIT: b"commit",
    TREE: b"tree",
    BLOB: b"blob",
    TAG: b"tag",
}

_WRONG_KIND_ERRORS: dict[int, type[WrongObjectException]] = {
    COMMIT: NotCommitError,
    TREE: NotTreeError,
    BLOB: NotBlobError,
    TAG: NotTagError,
}

# Header fields for commits
_TREE_HEADER = b"tree"
_PARENT_HEADER = b"parent"
_COMMITTER_HEADER = b"committer"

# Tree entry modes that change how an entry name is presented.
_DIR_MODE = b"40000"
_SYMLINK_MODE = b"120000"

# Directory names get a trailing marker and symlink names a leading one.
# Neither can appear in a real entry name.
DIR_MARKER = "/"
SYMLINK_MARKER = "/"

_RAW_SHA_LENGTH = 20


def valid_object_id(raw: bytes | str) -> bool:
    """Check whether every character of raw is an ASCII digit or letter."""
    if isinstance(raw, str):
        try:
            raw = raw.encode("ascii")
        except UnicodeEncodeError:
            return False
    # bytes.isalnum() only accepts ASCII letters and digits
    return raw.isalnum()


def check_object_id(raw: bytes | str) -> str:
    """Validate an object id taken from a ref file or an object header.

    The length is not checked; callers slice the id out before calling.

    Args:
      raw: Candidate id.
    Returns: The id as a str.
    Raises:
      InvalidObjectId: if a character is not an ASCII digit or letter.
    """
    if not valid_object_id(raw):
        raise InvalidObjectId(raw)
    if isinstance(raw, bytes):
        return raw.decode("ascii")
    return raw


def sha_to_hex(sha: bytes) -> str:
    """Takes a raw 20 byte sha and returns its hex representation."""
    hexsha = binascii.hexlify(sha).decode("ascii")
    assert len(hexsha) == 40, f"Incorrect length of sha string: {hexsha!r}"
    return hexsha


def hex_to_filename(path: str | os.PathLike[str], hex: str) -> str:
    """Takes a hex sha and returns its filename relative to the given path."""
    return os.path.join(path, hex[:2], hex[2:])


def object_kind_error(type_num: int, sha: str) -> WrongObjectException:
    """Return the error to raise when sha is not of the wanted type_num."""
    return _WRONG_KIND_ERRORS[type_num](sha)


def parse_object_header(data: bytes) -> tuple[bytes, int, int]:
    """Parse the ``<kind> <size>\\0`` header of an inflated loose object.

    Args:
      data: Inflated object contents, header included.
    Returns: Tuple of (type name, declared size, offset of the payload)
    """
    end = data.find(b"\0")
    if end == -1:
        raise ObjectFormatException("object header is not terminated")
    header = data[:end]
    try:
        type_name, size_text = header.split(b" ", 1)
    except ValueError as exc:
        raise ObjectFormatException(f"invalid object header {header!r}") from exc
    if not size_text.isdigit():
        raise ObjectFormatException(f"invalid object size {size_text!r}")
    return type_name, int(size_text), end + 1


def parse_timezone(text: bytes) -> int:
    """Parse a timezone text fragment (e.g. b'+0100').

    Args:
      text: Text to parse.
    Returns: Offset from UTC in seconds
    """
    sign = 1
    digits = text
    if text[:1] in (b"+", b"-"):
        if text[:1] == b"-":
            sign = -1
        digits = text[1:]
    if len(digits) != 4 or not digits.isdigit():
        raise ObjectFormatException(f"invalid timezone {text!r}")
    offset = int(digits)
    hours = offset // 100
    minutes = offset % 100
    return sign * (hours * 3600 + minutes * 60)


def _parse_committer_time(value: bytes) -> datetime.datetime:
    # <name> <email> <unix seconds> <+-HHMM>
    try:
        rest, zone = value.rsplit(b" ", 1)
        _, seconds = rest.rsplit(b" ", 1)
    except ValueError as exc:
        raise ObjectFormatException(f"invalid committer line {value!r}") from exc
    offset = parse_timezone(zone)
    if not seconds.lstrip(b"-").isdigit():
        raise ObjectFormatException(f"invalid timestamp {seconds!r}")
    try:
        tz = datetime.timezone(datetime.timedelta(seconds=offset))
        return datetime.datetime.fromtimestamp(int(seconds), tz)
    except (OverflowError, OSError, ValueError) as exc:
        raise ObjectFormatException(f"invalid timestamp {seconds!r}") from exc


def _header_value(line: bytes, keyword: bytes) -> bytes | None:
    """Return the value of a header line if it uses keyword, else None."""
    if not line.startswith(keyword):
        return None
    if len(line) == len(keyword) or line[len(keyword) : len(keyword) + 1] == b" ":
        value = line[len(keyword) + 1 :]
        if not value:
            raise ObjectFormatException(f"empty {keyword.decode('ascii')} header")
        return value
    return None


@dataclass(frozen=True)
class Commit:
    """A git commit, reduced to what is needed to render a snapshot.

    Only the first parent is kept; later parents of merge commits are
    ignored.
    """

    tree: str
    parent: str
    message: str
    time: datetime.datetime

    type_num = COMMIT

    @classmethod
    def from_raw(cls, data: bytes) -> "Commit":
        """Decode the body of a commit object.

        Args:
          data: Commit payload, without the object header.
        Returns: A Commit
        Raises:
          ObjectFormatException: if the commit is malformed.
        """
        tree: str | None = None
        parent = ""
        time: datetime.datetime | None = None
        pos = 0
        while True:
            end = data.find(b"\n", pos)
            if end == -1:
                raise ObjectFormatException("commit headers are not terminated")
            line = data[pos:end]
            pos = end + 1
            if not line:
                break
            value = _header_value(line, _TREE_HEADER)
            if value is not None:
                if tree is None:
                    tree = check_object_id(value)
                continue
            value = _header_value(line, _PARENT_HEADER)
            if value is not None:
                if not parent:
                    parent = check_object_id(value)
                continue
            value = _header_value(line, _COMMITTER_HEADER)
            if value is not None and time is None:
                time = _parse_committer_time(value)
        if tree is None:
            raise ObjectFormatException("commit has no tree")
        if time is None:
            raise ObjectFormatException("commit has no committer")
        message = data[pos:]
        if message.endswith(b"\n"):
            message = message[:-1]
        return cls(
            tree=tree,
            parent=parent,
            message=message.decode("utf-8", "replace"),
            time=time,
        )


class TreeEntry(NamedTuple):
    """Named tuple encapsulating a single tree entry."""

    name: str
    mode: int
    sha: str

    def is_dir(self) -> bool:
        """Return True if this entry is a sub-tree."""
        return self.name.endswith(DIR_MARKER)

    def is_symlink(self) -> bool:
        """Return True if this entry is a symbolic link."""
        return self.name.startswith(SYMLINK_MARKER)

    @property
    def base_name(self) -> str:
        """The entry name without its kind marker."""
        if self.is_dir():
            return self.name[: -len(DIR_MARKER)]
        if self.is_symlink():
            return self.name[len(SYMLINK_MARKER) :]
        return self.name


class Tree:
    """A git tree: an ordered mapping of entry names to object ids.

    Directory names carry a trailing ``/`` and symlink names a leading ``/``,
    so the entry kind can be told from the name alone.
    """

    type_num = TREE

    def __init__(self, entries: list[TreeEntry] | None = None) -> None:
        self._entries: dict[str, TreeEntry] = {}
        for entry in entries or []:
            self._entries[entry.name] = entry

    @classmethod
    def from_raw(cls, data: bytes) -> "Tree":
        """Decode the body of a tree object.

        Args:
          data: Tree payload, without the object header.
        Returns: A Tree
        Raises:
          ObjectFormatException: if an entry is truncated or malformed.
        """
        entries = []
        pos = 0
        length = len(data)
        while pos < length:
            space = data.find(b" ", pos)
            if space == -1:
                raise ObjectFormatException("unable to read file mode")
            mode_text = data[pos:space]
            nul = data.find(b"\0", space + 1)
            if nul == -1:
                raise ObjectFormatException("unable to read file name")
            if nul + 1 + _RAW_SHA_LENGTH > length:
                raise ObjectFormatException("truncated tree entry")
            try:
                mode = int(mode_text, 8)
            except ValueError as exc:
                raise ObjectFormatException(f"invalid mode {mode_text!r}") from exc
            raw_name = data[space + 1 : nul]
            if not raw_name or b"/" in raw_name:
                raise ObjectFormatException(f"invalid tree entry name {raw_name!r}")
            name = os.fsdecode(raw_name)
            if mode_text == _DIR_MODE:
                name += DIR_MARKER
            elif mode_text == _SYMLINK_MODE:
                name = SYMLINK_MARKER + name
            sha = sha_to_hex(data[nul + 1 : nul + 1 + _RAW_SHA_LENGTH])
            entries.append(TreeEntry(name, mode, sha))
            pos = nul + 1 + _RAW_SHA_LENGTH
        return cls(entries)

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __getitem__(self, name: str) -> str:
        return self._entries[name].sha

    def get(self, name: str, default: str | None = None) -> str | None:
        """Return the id for name, or default if there is no such entry."""
        entry = self._entries.get(name)
        if entry is None:
            return default
        return entry.sha

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Tree):
            return NotImplemented
        return list(self.entries()) == list(other.entries())

    def __repr__(self) -> str:
        return f"<Tree {list(self._entries)!r}>"

    def items(self) -> Iterator[tuple[str, str]]:
        """Iterate over (name, id) pairs in tree order."""
        for entry in self._entries.values():
            yield entry.name, entry.sha

    def entries(self) -> Iterator[TreeEntry]:
        """Iterate over the entries in tree order."""
        return iter(self._entries.values())
