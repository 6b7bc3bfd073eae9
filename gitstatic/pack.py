# pack.py -- For dealing with packed git objects.
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

"""Classes for reading packed git objects.

A pack is a compact representation of a bunch of objects, stored
using deltas where possible.

They have two parts, the pack file, which stores the data, and an index
that tells you where the data is.

To find an object you look in all of the index files 'til you find a
match for the object name. You then use the pointer got from this as
a pointer in to the corresponding packfile.
"""

__all__ = [
    "DELTA_TYPES",
    "OFS_DELTA",
    "REF_DELTA",
    "PackData",
    "PackIndex",
    "PackIndexEntry",
    "apply_delta",
    "load_pack_index",
    "load_pack_index_file",
    "read_pack_header",
    "unpack_object_header",
]

import os
import threading
import zlib
from collections.abc import Callable, Iterator
from io import UnsupportedOperation
from struct import unpack_from
from typing import IO, Any, NamedTuple

try:
    import mmap
except ImportError:
    has_mmap = False
else:
    has_mmap = True

from .errors import ApplyDeltaError, ObjectFormatException, UnsupportedFormat
from .file import GitFile
from .log_utils import getLogger
from .objects import BLOB, COMMIT, TAG, TREE, sha_to_hex

logger = getLogger(__name__)

OFS_DELTA = 6
REF_DELTA = 7

DELTA_TYPES = (OFS_DELTA, REF_DELTA)

_FULL_TYPES = (COMMIT, TREE, BLOB, TAG)

_PACK_HEADER_SIZE = 12
_INDEX_MAGIC = b"\377tOc"
_FAN_OUT_OFFSET = 8
_NAME_TABLE_OFFSET = _FAN_OUT_OFFSET + 0x100 * 4
_SHA_LENGTH = 20
_LARGE_OFFSET_FLAG = 0x80000000

# Returns (type_num, contents) for a hex sha, looking in every store.
ResolveExtRefFn = Callable[[str], tuple[int, bytes]]


class PackIndexEntry(NamedTuple):
    """Location of one object: the pack that holds it and its offset."""

    sha: str
    pack: str
    offset: int


def _load_file_contents(f: IO[bytes], size: int | None = None) -> tuple[Any, int]:
    """Load contents from a file, preferring mmap when possible.

    Args:
      f: File-like object to load
      size: Expected size, or None to determine from file
    Returns: Tuple of (contents, size)
    """
    try:
        fd = f.fileno()
    except (UnsupportedOperation, AttributeError):
        fd = None
    # Attempt to use mmap if possible
    if fd is not None:
        if size is None:
            size = os.fstat(fd).st_size
        if has_mmap and size > 0:
            try:
                contents = mmap.mmap(fd, size, access=mmap.ACCESS_READ)
            except (OSError, ValueError):
                # Can't mmap - perhaps a socket or invalid file descriptor
                pass
            else:
                return contents, size
    contents_bytes = f.read()
    return contents_bytes, len(contents_bytes)


class PackIndex:
    """A version 2 index in to a packfile.

    Given a sha id of an object a pack index can tell you the location in the
    packfile of that object if it has it.

    The file starts with a 256 entry fan-out table: entry ``n`` is the number
    of objects whose first sha byte is at most ``n``. The sorted 20 byte names
    follow, then one CRC32 per object (not used here), then one 4 byte offset
    per object. An offset with the top bit set is an index in to a table of
    8 byte offsets that follows.
    """

    def __init__(self, filename: str, contents: Any, size: int) -> None:
        """Create a pack index object from the contents of an index file.

        Args:
          filename: Path of the index file, for error messages
          contents: Contents of the file (bytes or mmap)
          size: Size of contents
        """
        self._filename = filename
        self._contents = contents
        self._size = size
        if bytes(contents[:4]) != _INDEX_MAGIC:
            # Version 1 indexes have no signature at all.
            raise UnsupportedFormat(f"{filename}: version 1 pack index")
        if size < _NAME_TABLE_OFFSET:
            raise ObjectFormatException(f"{filename}: truncated pack index")
        (self.version,) = unpack_from(">L", contents, 4)
        if self.version != 2:
            raise UnsupportedFormat(
                f"{filename}: unsupported pack index version {self.version}"
            )
        self._fan_out_table = self._read_fan_out_table(_FAN_OUT_OFFSET)
        count = len(self)
        self._crc32_table_offset = _NAME_TABLE_OFFSET + _SHA_LENGTH * count
        self._pack_offset_table_offset = self._crc32_table_offset + 4 * count
        self._pack_offset_largetable_offset = self._pack_offset_table_offset + 4 * count
        if self._pack_offset_largetable_offset > size:
            raise ObjectFormatException(f"{filename}: truncated pack index")

    @property
    def path(self) -> str:
        """Return the path to this index file."""
        return self._filename

    def close(self) -> None:
        """Release the mmap, if any."""
        close_fn = getattr(self._contents, "close", None)
        if close_fn is not None:
            close_fn()

    def __len__(self) -> int:
        """Return the number of entries in this pack index."""
        return self._fan_out_table[-1]

    def _read_fan_out_table(self, start_offset: int) -> list[int]:
        ret = []
        for i in range(0x100):
            (entry,) = unpack_from(">L", self._contents, start_offset + i * 4)
            if ret and entry < ret[-1]:
                raise ObjectFormatException(f"{self._filename}: invalid fan-out table")
            ret.append(entry)
        return ret

    def _unpack_name(self, i: int) -> bytes:
        offset = _NAME_TABLE_OFFSET + i * _SHA_LENGTH
        return bytes(self._contents[offset : offset + _SHA_LENGTH])

    def _unpack_offset(self, i: int) -> int:
        offset = self._pack_offset_table_offset + i * 4
        (offset_val,) = unpack_from(">L", self._contents, offset)
        if offset_val & _LARGE_OFFSET_FLAG:
            offset = (
                self._pack_offset_largetable_offset
                + (offset_val & ~_LARGE_OFFSET_FLAG) * 8
            )
            if offset + 8 > self._size:
                raise ObjectFormatException(
                    f"{self._filename}: large offset table entry "
                    f"{offset_val & ~_LARGE_OFFSET_FLAG} is outside the index"
                )
            (offset_val,) = unpack_from(">Q", self._contents, offset)
        return offset_val

    def iterentries(self) -> Iterator[tuple[str, int]]:
        """Iterate over the entries in this pack index.

        Returns: iterator over tuples with hex object name and offset in
            the packfile.
        """
        for i in range(len(self)):
            yield sha_to_hex(self._unpack_name(i)), self._unpack_offset(i)

    def object_offset(self, sha: str) -> int:
        """Return the offset in to the corresponding packfile for the object.

        The fan-out table narrows the search to the names sharing the first
        byte of sha, which are then bisected.

        Raises:
          KeyError: if the index doesn't list the object
        """
        try:
            raw = bytes.fromhex(sha)
        except ValueError as exc:
            raise KeyError(sha) from exc
        if len(raw) != _SHA_LENGTH:
            raise KeyError(sha)
        lo = self._fan_out_table[raw[0] - 1] if raw[0] else 0
        hi = self._fan_out_table[raw[0]]
        while lo < hi:
            mid = (lo + hi) // 2
            name = self._unpack_name(mid)
            if name < raw:
                lo = mid + 1
            elif name > raw:
                hi = mid
            else:
                return self._unpack_offset(mid)
        raise KeyError(sha)


def load_pack_index_file(path: str, f: IO[bytes]) -> PackIndex:
    """Load an index file from a file-like object.

    Args:
      path: Path for the index file
      f: File-like object
    Returns: A PackIndex loaded from the given file
    """
    contents, size = _load_file_contents(f)
    try:
        return PackIndex(path, contents, size)
    except Exception:
        close_fn = getattr(contents, "close", None)
        if close_fn is not None:
            close_fn()
        raise


def load_pack_index(path: str) -> PackIndex:
    """Load an index file by path.

    Args:
      path: Path to the index file
    Returns: A PackIndex loaded from the given path
    """
    with GitFile(path, "rb") as f:
        return load_pack_index_file(path, f)


def read_pack_header(data: Any) -> tuple[int, int]:
    """Read the header of a pack file.

    Args:
      data: Pack contents (bytes or mmap)
    Returns: Tuple of (pack version, number of objects).
    """
    if len(data) < _PACK_HEADER_SIZE:
        raise ObjectFormatException("file too short to contain pack")
    if bytes(data[:4]) != b"PACK":
        raise ObjectFormatException(f"Invalid pack header {bytes(data[:4])!r}")
    (version,) = unpack_from(">L", data, 4)
    if version != 2:
        raise UnsupportedFormat(f"unsupported pack version {version}")
    (num_objects,) = unpack_from(">L", data, 8)
    return version, num_objects


def unpack_object_header(data: Any, offset: int) -> tuple[int, int, int]:
    """Read the type and size of the object starting at offset.

    The low 4 bits of the first byte hold the low bits of the size and the
    next 3 bits the type. While the MSB is set, each following byte adds 7
    more (more significant) bits of size.

    Returns: Tuple of (type number, inflated size, offset after the header)
    """
    length = len(data)
    if offset >= length:
        raise ObjectFormatException(f"object offset {offset} is past end of pack")
    byte = data[offset]
    offset += 1
    type_num = (byte >> 4) & 0x07
    size = byte & 0x0F
    shift = 4
    while byte & 0x80:
        if offset >= length:
            raise ObjectFormatException("truncated object header")
        byte = data[offset]
        offset += 1
        size |= (byte & 0x7F) << shift
        shift += 7
    return type_num, size, offset


def _read_ofs_delta_distance(data: Any, offset: int) -> tuple[int, int]:
    """Read the distance back to the base of an OFS_DELTA object.

    Big endian, 7 bits per byte; every continuation adds one before the
    shift so that each length has a distinct range, as git writes it.
    """
    length = len(data)
    if offset >= length:
        raise ObjectFormatException("truncated delta base offset")
    byte = data[offset]
    offset += 1
    distance = byte & 0x7F
    while byte & 0x80:
        if offset >= length:
            raise ObjectFormatException("truncated delta base offset")
        byte = data[offset]
        offset += 1
        distance = ((distance + 1) << 7) | (byte & 0x7F)
    return distance, offset


def _inflate(data: Any, offset: int, size: int) -> bytes:
    """Inflate the zlib stream at offset, which must produce size bytes."""
    decomp = zlib.decompressobj()
    with memoryview(data) as view:
        try:
            # Allow one byte too many so overlong streams are detected.
            out = decomp.decompress(view[offset:], size + 1)
        except zlib.error as exc:
            raise ObjectFormatException(f"error inflating object: {exc}") from exc
    if len(out) != size or not decomp.eof:
        raise ObjectFormatException(
            f"inflated object size mismatch: expected {size}, got {len(out)}"
        )
    return out


def _decode_delta_size(delta: bytes, index: int) -> tuple[int, int]:
    size = 0
    shift = 0
    while True:
        if index >= len(delta):
            raise ApplyDeltaError("truncated delta header")
        cmd = delta[index]
        index += 1
        size |= (cmd & 0x7F) << shift
        shift += 7
        if not cmd & 0x80:
            return size, index


def apply_delta(src_buf: bytes, delta: bytes) -> bytes:
    """Based on the similar function in git's patch-delta.c.

    The delta starts with the expected size of the source and the size of
    the result. Then follows a list of instructions: a byte with the MSB
    clear inserts that many literal bytes from the delta (0 ends the list);
    a byte with the MSB set copies a range of the source, its low 4 bits
    saying which offset bytes follow and the next 3 bits which size bytes
    follow, both little endian.

    Args:
      src_buf: Source buffer
      delta: Delta instructions
    Returns: The patched result
    """
    index = 0
    delta_length = len(delta)
    src_size, index = _decode_delta_size(delta, index)
    dest_size, index = _decode_delta_size(delta, index)
    if src_size != len(src_buf):
        raise ApplyDeltaError(
            f"Unexpected source buffer size: {src_size} vs {len(src_buf)}"
        )
    out = bytearray(dest_size)
    written = 0
    while index < delta_length:
        cmd = delta[index]
        index += 1
        if cmd & 0x80:
            cp_off = 0
            for i in range(4):
                if cmd & (1 << i):
                    if index >= delta_length:
                        raise ApplyDeltaError("truncated copy instruction")
                    cp_off |= delta[index] << (i * 8)
                    index += 1
            cp_size = 0
            for i in range(3):
                if cmd & (1 << (4 + i)):
                    if index >= delta_length:
                        raise ApplyDeltaError("truncated copy instruction")
                    cp_size |= delta[index] << (i * 8)
                    index += 1
            if cp_size == 0:
                cp_size = 0x10000
            if cp_off + cp_size > src_size:
                raise ApplyDeltaError("copy outside of source buffer")
            if written + cp_size > dest_size:
                raise ApplyDeltaError("patch overwrite")
            out[written : written + cp_size] = src_buf[cp_off : cp_off + cp_size]
            written += cp_size
        elif cmd != 0:
            if index + cmd > delta_length:
                raise ApplyDeltaError("truncated insert instruction")
            if written + cmd > dest_size:
                raise ApplyDeltaError("patch overwrite")
            out[written : written + cmd] = delta[index : index + cmd]
            written += cmd
            index += cmd
        else:
            break

    if written != dest_size:
        raise ApplyDeltaError("failed to read complete patched object")

    return bytes(out)


class PackData:
    """The data contained in a packfile.

    The whole file is mapped (or read) once when the object is created, so
    following a delta chain never reopens the file.

    Each object starts with a variable length header giving its type and
    inflated size. Full objects follow with their zlib deflated data. Delta
    objects first give their base, either as a distance back in this pack
    (OFS_DELTA) or as a 20 byte object name (REF_DELTA), and then the
    deflated delta.

    Resolved objects are cached by offset, so walking history over objects
    that share a delta chain rebuilds each link only once.
    """

    def __init__(self, filename: str, resolve_ext_ref: ResolveExtRefFn) -> None:
        """Open a pack file.

        Args:
          filename: Path of the pack file
          resolve_ext_ref: Callback used to find the base of a REF_DELTA
        """
        self._filename = filename
        self._resolve_ext_ref = resolve_ext_ref
        with GitFile(filename, "rb") as f:
            self._contents, self._size = _load_file_contents(f)
        try:
            (_version, self._num_objects) = read_pack_header(self._contents)
        except Exception:
            self.close()
            raise
        self._offset_cache: dict[int, tuple[int, bytes]] = {}
        self._cache_lock = threading.Lock()

    @property
    def filename(self) -> str:
        """Get the filename of the pack file, without its directory."""
        return os.path.basename(self._filename)

    @property
    def path(self) -> str:
        """Get the full path of the pack file."""
        return self._filename

    def __len__(self) -> int:
        """Return the number of objects in the pack."""
        return self._num_objects

    def close(self) -> None:
        """Release the mmap, if any."""
        close_fn = getattr(self._contents, "close", None)
        if close_fn is not None:
            close_fn()

    def __enter__(self) -> "PackData":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _cached(self, offset: int) -> tuple[int, bytes] | None:
        with self._cache_lock:
            return self._offset_cache.get(offset)

    def _store(self, offset: int, value: tuple[int, bytes]) -> None:
        with self._cache_lock:
            self._offset_cache.setdefault(offset, value)

    def get_object_at(self, offset: int) -> tuple[int, bytes]:
        """Return the fully resolved object at offset.

        Args:
          offset: Offset of the object header in the pack
        Returns: Tuple of (type number of the base object, contents)
        Raises:
          ObjectFormatException: if the pack or a delta in the chain is corrupt
        """
        cached = self._cached(offset)
        if cached is not None:
            return cached
        if offset < _PACK_HEADER_SIZE:
            raise ObjectFormatException(f"invalid object offset {offset}")

        # Walk back to the first object we can produce without a delta,
        # then patch forward.
        chain: list[tuple[int, bytes]] = []
        current = offset
        while True:
            cached = self._cached(current)
            if cached is not None:
                base = cached
                break
            type_num, size, pos = unpack_object_header(self._contents, current)
            if type_num in _FULL_TYPES:
                base = (type_num, _inflate(self._contents, pos, size))
                self._store(current, base)
                break
            if type_num == OFS_DELTA:
                distance, pos = _read_ofs_delta_distance(self._contents, pos)
                base_offset = current - distance
                if distance == 0 or base_offset < _PACK_HEADER_SIZE:
                    raise ObjectFormatException(
                        f"invalid base offset for delta at {current}"
                    )
                chain.append((current, _inflate(self._contents, pos, size)))
                current = base_offset
            elif type_num == REF_DELTA:
                if pos + _SHA_LENGTH > self._size:
                    raise ObjectFormatException("truncated delta base reference")
                base_sha = sha_to_hex(bytes(self._contents[pos : pos + _SHA_LENGTH]))
                delta = _inflate(self._contents, pos + _SHA_LENGTH, size)
                chain.append((current, delta))
                base = self._resolve_ext_ref(base_sha)
                break
            else:
                raise ObjectFormatException(
                    f"invalid pack object type {type_num} at {current}"
                )

        base_type, data = base
        for delta_offset, delta in reversed(chain):
            data = apply_delta(data, delta)
            self._store(delta_offset, (base_type, data))
        logger.debug(
            "resolved object at %d in %s through %d deltas",
            offset,
            self.filename,
            len(chain),
        )
        return base_type, data
