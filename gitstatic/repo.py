# repo.py -- For dealing with git repositories.
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

"""Repository access.

A Repo is opened on a git directory (a bare repository, or the ``.git``
directory of a working tree) and reads it through its object store. Only
the symbolic ``HEAD`` ref is understood.
"""

__all__ = [
    "DEFAULT_DESCRIPTION",
    "Repo",
    "open_repo",
]

import os
import posixpath
import threading
from io import BytesIO
from types import TracebackType
from typing import BinaryIO

from .errors import InvalidObjectId, ObjectFormatException, ObjectMissing
from .file import GitFile
from .log_utils import getLogger
from .object_store import DiskObjectStore, ObjectCache
from .objects import BLOB, COMMIT, TREE, Commit, Tree, check_object_id

logger = getLogger(__name__)

OBJECTDIR = "objects"

SYMREF = b"ref: "

# What ``git init`` writes to the description file.
DEFAULT_DESCRIPTION = (
    b"Unnamed repository; edit this file 'description' to name the repository.\n"
)

_HEX_SHA_LENGTH = 40


class Repo:
    """A git repository backed by local disk.

    Decoded commits and trees are cached for the lifetime of the Repo, so it
    should not outlive a single pass over a repository that is not being
    modified.
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        """Open a repository. No file is read until it is needed.

        Args:
          path: Path to the git directory.
        """
        self.path = os.fspath(path)
        self.object_store = DiskObjectStore(os.path.join(self.path, OBJECTDIR))
        self._cache = ObjectCache()
        self._head_lock = threading.Lock()
        self._latest_commit_id: str | None = None

    def __repr__(self) -> str:
        return f"<Repo at {self.path!r}>"

    def close(self) -> None:
        """Close any files opened by this repository."""
        self.object_store.close()

    def __enter__(self) -> "Repo":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def get_description(self) -> str:
        """Retrieve the description of this repository.

        Returns: The description without its final newline, or an empty
            string if there is none or it is git's placeholder text.
        """
        path = os.path.join(self.path, "description")
        try:
            with GitFile(path, "rb") as f:
                description = f.read()
        except OSError:
            return ""
        if description == DEFAULT_DESCRIPTION:
            return ""
        if description.endswith(b"\n"):
            description = description[:-1]
        return description.decode("utf-8", "replace")

    def _read_head_ref(self) -> str:
        """Return the path of the ref HEAD points at, relative to the repo."""
        path = os.path.join(self.path, "HEAD")
        try:
            with GitFile(path, "rb") as f:
                contents = f.read()
        except FileNotFoundError as exc:
            raise ObjectMissing("HEAD") from exc
        if not contents.startswith(SYMREF):
            raise ObjectFormatException("invalid HEAD file")
        raw_ref = contents[len(SYMREF) :].split(b"\n", 1)[0]
        if any(c < 0x20 or c == 0x7F for c in raw_ref):
            raise ObjectFormatException(f"invalid ref in HEAD: {raw_ref!r}")
        ref = raw_ref.decode("utf-8", "replace")
        normalized = posixpath.normpath(ref)
        if (
            not ref
            or posixpath.isabs(ref)
            or normalized == ".."
            or normalized.startswith("../")
        ):
            raise ObjectFormatException(f"invalid ref in HEAD: {ref!r}")
        return normalized

    def get_latest_commit_id(self) -> str:
        """Return the id of the commit HEAD points at.

        Raises:
          ObjectMissing: if HEAD or the ref it names does not exist
          ObjectFormatException: if HEAD or the ref is malformed
        """
        with self._head_lock:
            if self._latest_commit_id is not None:
                return self._latest_commit_id
        ref = self._read_head_ref()
        path = os.path.join(self.path, *ref.split("/"))
        try:
            with GitFile(path, "rb") as f:
                contents = f.read()
        except FileNotFoundError as exc:
            raise ObjectMissing(ref) from exc
        sha = check_object_id(contents.split(b"\n", 1)[0])
        if len(sha) != _HEX_SHA_LENGTH:
            raise InvalidObjectId(sha)
        with self._head_lock:
            if self._latest_commit_id is None:
                logger.debug("HEAD of %s is %s at %s", self.path, ref, sha)
                self._latest_commit_id = sha
            return self._latest_commit_id

    def get_commit(self, sha: str) -> Commit:
        """Retrieve a commit.

        Raises:
          NotCommitError: if sha names an object that is not a commit
        """
        commit = self._cache.get(sha, Commit)
        if commit is None:
            commit = Commit.from_raw(self.object_store.get_object(sha, COMMIT))
            commit = self._cache.add(sha, commit)
        return commit

    def get_tree(self, sha: str) -> Tree:
        """Retrieve a tree.

        Raises:
          NotTreeError: if sha names an object that is not a tree
        """
        tree = self._cache.get(sha, Tree)
        if tree is None:
            tree = Tree.from_raw(self.object_store.get_object(sha, TREE))
            tree = self._cache.add(sha, tree)
        return tree

    def get_blob(self, sha: str) -> BinaryIO:
        """Open the contents of a blob for reading.

        Blobs are not cached. The caller closes the returned stream.

        Raises:
          NotBlobError: if sha names an object that is not a blob
        """
        return BytesIO(self.object_store.get_object(sha, BLOB))

    def get_latest_commit(self) -> Commit:
        """Retrieve the commit HEAD points at."""
        return self.get_commit(self.get_latest_commit_id())


def open_repo(path: str | os.PathLike[str]) -> Repo:
    """Open the repository at path. No file is read until it is needed."""
    return Repo(path)
