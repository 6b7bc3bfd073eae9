# utils.py -- Test utilities for gitstatic.
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

"""Utility functions common to gitstatic tests.

Repositories are written byte by byte here, so the tests never depend on a
git binary being installed.
"""

import hashlib
import os
import struct
import zlib
from collections.abc import Sequence

from gitstatic.objects import TYPE_NAMES
from gitstatic.pack import OFS_DELTA, REF_DELTA

DEFAULT_BRANCH = "refs/heads/master"

# Tree entry modes
FILE_MODE = b"100644"
DIR_MODE = b"40000"
SYMLINK_MODE = b"120000"
GITLINK_MODE = b"160000"


def object_id(type_num: int, data: bytes) -> str:
    """Return the hex id git would give an object."""
    header = TYPE_NAMES[type_num] + b" " + str(len(data)).encode("ascii") + b"\0"
    return hashlib.sha1(header + data).hexdigest()


def make_tree(entries: Sequence[tuple[bytes, bytes, str]]) -> bytes:
    """Build the body of a tree object.

    Args:
      entries: (mode, name, hex id) for each entry, in the order written
    """
    return b"".join(
        mode + b" " + name + b"\0" + bytes.fromhex(sha) for mode, name, sha in entries
    )


def make_commit(
    tree: str,
    parents: Sequence[str] = (),
    message: bytes = b"Commit message\n",
    commit_time: int = 1700000000,
    timezone: bytes = b"+0000",
) -> bytes:
    """Build the body of a commit object."""
    lines = [b"tree " + tree.encode("ascii")]
    for parent in parents:
        lines.append(b"parent " + parent.encode("ascii"))
    identity = b"Test Author <test@example.com> "
    stamp = str(commit_time).encode("ascii") + b" " + timezone
    lines.append(b"author " + identity + stamp)
    lines.append(b"committer " + identity + stamp)
    return b"\n".join(lines) + b"\n\n" + message


def write_loose_object(objects_dir: str, type_num: int, data: bytes) -> str:
    """Write a loose object, returning its id."""
    sha = object_id(type_num, data)
    header = TYPE_NAMES[type_num] + b" " + str(len(data)).encode("ascii") + b"\0"
    write_raw_loose_object(objects_dir, sha, zlib.compress(header + data))
    return sha


def write_raw_loose_object(objects_dir: str, sha: str, compressed: bytes) -> str:
    """Write already deflated bytes as the loose object sha."""
    subdir = os.path.join(objects_dir, sha[:2])
    os.makedirs(subdir, exist_ok=True)
    path = os.path.join(subdir, sha[2:])
    with open(path, "wb") as f:
        f.write(compressed)
    return path


def encode_delta_size(size: int) -> bytes:
    ret = bytearray()
    c = size & 0x7F
    size >>= 7
    while size:
        ret.append(c | 0x80)
        c = size & 0x7F
        size >>= 7
    ret.append(c)
    return bytes(ret)


def copy_instruction(offset: int, size: int) -> bytes:
    """Encode a delta instruction copying size bytes of the source at offset."""
    cmd = 0x80
    args = bytearray()
    for i in range(4):
        byte = (offset >> (i * 8)) & 0xFF
        if byte:
            cmd |= 1 << i
            args.append(byte)
    if size != 0x10000:
        for i in range(3):
            byte = (size >> (i * 8)) & 0xFF
            if byte:
                cmd |= 1 << (4 + i)
                args.append(byte)
    return bytes([cmd]) + bytes(args)


def insert_instruction(data: bytes) -> bytes:
    """Encode a delta instruction inserting up to 127 literal bytes."""
    assert 0 < len(data) < 0x80
    return bytes([len(data)]) + data


def create_delta(base: bytes, target: bytes) -> bytes:
    """Create a delta that turns base in to target.

    Only a shared prefix is copied; everything else is inserted.
    """
    prefix = 0
    while prefix < min(len(base), len(target)) and base[prefix] == target[prefix]:
        prefix += 1
    out = bytearray(encode_delta_size(len(base)) + encode_delta_size(len(target)))
    offset = 0
    while prefix - offset > 0:
        chunk = min(prefix - offset, 0xFFFF)
        out += copy_instruction(offset, chunk)
        offset += chunk
    rest = target[prefix:]
    for i in range(0, len(rest), 0x7F):
        out += insert_instruction(rest[i : i + 0x7F])
    return bytes(out)


def pack_object_header(type_num: int, size: int) -> bytes:
    c = (type_num << 4) | (size & 0x0F)
    size >>= 4
    ret = bytearray()
    while size:
        ret.append(c | 0x80)
        c = size & 0x7F
        size >>= 7
    ret.append(c)
    return bytes(ret)


def encode_ofs_distance(distance: int) -> bytes:
    ret = bytearray([distance & 0x7F])
    distance >>= 7
    while distance:
        distance -= 1
        ret.insert(0, 0x80 | (distance & 0x7F))
        distance >>= 7
    return bytes(ret)


def build_pack(objects_spec: Sequence[tuple[int, object]]) -> tuple[bytes, list]:
    """Write test pack data from a concise description.

    Args:
      objects_spec: A list of (type_num, obj). For non-delta types, obj is
        the data of the object. For OFS_DELTA, obj is (index of the base in
        objects_spec, data); for REF_DELTA, obj is (base type_num, base
        data, data), and the base is found by id outside the pack.
        Deltas are computed here from the full data.
    Returns: Tuple of pack contents and, in the order of objects_spec, a
      list of (offset, type_num, data, hex id)
    """
    pack = bytearray(b"PACK" + struct.pack(">LL", 2, len(objects_spec)))
    expected: list[tuple[int, int, bytes, str]] = []
    for type_num, obj in objects_spec:
        offset = len(pack)
        if type_num == OFS_DELTA:
            base_index, data = obj  # type: ignore[misc]
            base_offset, base_type, base_data, _ = expected[base_index]
            delta = create_delta(base_data, data)
            pack += pack_object_header(OFS_DELTA, len(delta))
            pack += encode_ofs_distance(offset - base_offset)
            pack += zlib.compress(delta)
            full_type = base_type
        elif type_num == REF_DELTA:
            base_type, base_data, data = obj  # type: ignore[misc]
            delta = create_delta(base_data, data)
            pack += pack_object_header(REF_DELTA, len(delta))
            pack += bytes.fromhex(object_id(base_type, base_data))
            pack += zlib.compress(delta)
            full_type = base_type
        else:
            data = obj  # type: ignore[assignment]
            pack += pack_object_header(type_num, len(data))
            pack += zlib.compress(data)
            full_type = type_num
        expected.append((offset, full_type, data, object_id(full_type, data)))
    pack += hashlib.sha1(pack).digest()
    return bytes(pack), expected


def build_pack_index(
    entries: Sequence[tuple[str, int]], large_offsets: bool = False
) -> bytes:
    """Build a version 2 pack index.

    Args:
      entries: (hex id, offset) of each object
      large_offsets: Put every offset in the 8 byte offset table
    """
    entries = sorted((bytes.fromhex(sha), offset) for sha, offset in entries)
    out = bytearray(b"\377tOc" + struct.pack(">L", 2))
    fan_out = [0] * 0x100
    for name, _ in entries:
        fan_out[name[0]] += 1
    total = 0
    for count in fan_out:
        total += count
        out += struct.pack(">L", total)
    for name, _ in entries:
        out += name
    for _ in entries:
        out += struct.pack(">L", 0)  # CRC32, unchecked
    large = bytearray()
    for _, offset in entries:
        if large_offsets or offset >= 0x80000000:
            out += struct.pack(">L", 0x80000000 | (len(large) // 8))
            large += struct.pack(">Q", offset)
        else:
            out += struct.pack(">L", offset)
    out += large
    out += b"\0" * 20  # pack checksum
    out += hashlib.sha1(out).digest()
    return bytes(out)


def write_pack(
    objects_dir: str,
    objects_spec: Sequence[tuple[int, object]],
    large_offsets: bool = False,
) -> tuple[str, list]:
    """Write a pack and its index to the pack directory of an object store.

    Returns: Tuple of the pack file name and the expected objects, as
      returned by build_pack()
    """
    data, expected = build_pack(objects_spec)
    pack_dir = os.path.join(objects_dir, "pack")
    os.makedirs(pack_dir, exist_ok=True)
    basename = "pack-" + hashlib.sha1(data).hexdigest()
    with open(os.path.join(pack_dir, basename + ".pack"), "wb") as f:
        f.write(data)
    index = build_pack_index(
        [(sha, offset) for offset, _, _, sha in expected], large_offsets
    )
    with open(os.path.join(pack_dir, basename + ".idx"), "wb") as f:
        f.write(index)
    return basename + ".pack", expected


def init_git_dir(path: str, description: bytes | None = None) -> str:
    """Create an empty git directory with HEAD on the default branch.

    Returns: Path of the objects directory
    """
    objects_dir = os.path.join(path, "objects")
    os.makedirs(os.path.join(objects_dir, "pack"), exist_ok=True)
    os.makedirs(os.path.join(path, "refs", "heads"), exist_ok=True)
    with open(os.path.join(path, "HEAD"), "wb") as f:
        f.write(b"ref: " + DEFAULT_BRANCH.encode("ascii") + b"\n")
    if description is not None:
        with open(os.path.join(path, "description"), "wb") as f:
            f.write(description)
    return objects_dir


def set_head(path: str, sha: str, ref: str = DEFAULT_BRANCH) -> None:
    """Point a branch of the git directory at path at sha."""
    ref_path = os.path.join(path, *ref.split("/"))
    os.makedirs(os.path.dirname(ref_path), exist_ok=True)
    with open(ref_path, "wb") as f:
        f.write(sha.encode("ascii") + b"\n")


class RepoBuilder:
    """Writes loose objects and commits to a git directory."""

    def __init__(self, path: str, description: bytes | None = None) -> None:
        self.path = path
        self.objects_dir = init_git_dir(path, description)
        self.head: str | None = None

    def blob(self, data: bytes) -> str:
        return write_loose_object(self.objects_dir, 3, data)

    def tree(self, entries: Sequence[tuple[bytes, bytes, str]]) -> str:
        return write_loose_object(self.objects_dir, 2, make_tree(entries))

    def commit(
        self,
        tree: str,
        message: bytes = b"Commit message\n",
        commit_time: int = 1700000000,
        parents: Sequence[str] | None = None,
    ) -> str:
        """Commit tree on top of the current head and move the branch to it."""
        if parents is None:
            parents = [self.head] if self.head else []
        sha = write_loose_object(
            self.objects_dir,
            1,
            make_commit(tree, parents, message, commit_time),
        )
        set_head(self.path, sha)
        self.head = sha
        return sha
