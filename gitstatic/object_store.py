# object_store.py -- Object store for git objects
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

"""Read-only git object store.

Objects are looked up as loose objects first. Only when a loose object is
missing are the pack indexes loaded, once, and consulted.
"""

__all__ = [
    "INFODIR",
    "PACKDIR",
    "DiskObjectStore",
    "LoadState",
    "ObjectCache",
    "read_packs_file",
]

import enum
import os
import threading
import zlib
from collections.abc import Callable, Iterator
from concurrent.futures import Future
from contextlib import contextmanager
from typing import BinaryIO, Generic, TypeVar

from .errors import (
    InvalidObjectId,
    ObjectFormatException,
    ObjectMissing,
    UnsupportedFormat,
)
from .file import GitFile
from .log_utils import getLogger
from .objects import (
    TYPE_NAMES,
    Commit,
    Tree,
    check_object_id,
    hex_to_filename,
    object_kind_error,
    parse_object_header,
)
from .pack import PackData, PackIndex, PackIndexEntry, load_pack_index

logger = getLogger(__name__)

INFODIR = "info"
PACKDIR = "pack"

_HEX_SHA_LENGTH = 40
_TYPE_NUMS = {name: num for num, name in TYPE_NAMES.items()}

T = TypeVar("T")


def read_packs_file(f: BinaryIO) -> Iterator[str]:
    """Yield the packs listed in a packs file."""
    for line in f.read().splitlines():
        if not line:
            continue
        (kind, name) = line.split(b" ", 1)
        if kind != b"P":
            continue
        yield os.fsdecode(name)


class LoadState(enum.Enum):
    """States of a run-once load."""

    UNLOADED = "unloaded"
    LOADING = "loading"
    LOADED = "loaded"


class _RunOnce(Generic[T]):
    """Run a loader once and hand its outcome to every caller.

    The first caller runs the loader; callers arriving while it runs block
    until it finishes. The result, or the exception, is kept and handed to
    every later caller without running the loader again.
    """

    def __init__(self, load: Callable[[], T]) -> None:
        self._load = load
        self._lock = threading.Lock()
        self._future: Future[T] | None = None

    @property
    def state(self) -> LoadState:
        """Return the current load state."""
        future = self._future
        if future is None:
            return LoadState.UNLOADED
        if not future.done():
            return LoadState.LOADING
        return LoadState.LOADED

    def get(self) -> T:
        """Return the loaded value, loading it first if nobody has yet."""
        with self._lock:
            future = self._future
            owner = future is None
            if future is None:
                future = self._future = Future()
        if owner:
            try:
                value = self._load()
            except BaseException as exc:
                future.set_exception(exc)
            else:
                future.set_result(value)
        return future.result()


class _ReadWriteLock:
    """Lock allowing many readers or one writer."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writing = False

    @contextmanager
    def reading(self) -> Iterator[None]:
        with self._cond:
            while self._writing:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @contextmanager
    def writing(self) -> Iterator[None]:
        with self._cond:
            while self._writing or self._readers:
                self._cond.wait()
            self._writing = True
        try:
            yield
        finally:
            with self._cond:
                self._writing = False
                self._cond.notify_all()


class ObjectCache:
    """Decoded commits and trees, by id.

    Entries are only ever added, never replaced or evicted: the repository
    is treated as a frozen snapshot for the lifetime of the cache.
    """

    def __init__(self) -> None:
        self._lock = _ReadWriteLock()
        self._objects: dict[str, Commit | Tree] = {}

    def __len__(self) -> int:
        with self._lock.reading():
            return len(self._objects)

    def __contains__(self, sha: str) -> bool:
        with self._lock.reading():
            return sha in self._objects

    def get(self, sha: str, cls: type[T]) -> T | None:
        """Return the cached object for sha, or None if it is not cached.

        Raises:
          WrongObjectException: if the cached object is not a cls
        """
        with self._lock.reading():
            obj = self._objects.get(sha)
        if obj is None:
            return None
        if not isinstance(obj, cls):
            raise object_kind_error(cls.type_num, sha)  # type: ignore[attr-defined]
        return obj

    def add(self, sha: str, obj: T) -> T:
        """Cache obj under sha, unless sha is already cached.

        Returns: The object that is cached for sha afterwards.
        """
        with self._lock.writing():
            return self._objects.setdefault(sha, obj)  # type: ignore[arg-type,return-value]


class _Packs:
    """Every usable pack of a store, by pack file name, in search order."""

    def __init__(self) -> None:
        self.indexes: dict[str, PackIndex] = {}
        self.data: dict[str, PackData] = {}

    def find(self, sha: str) -> PackIndexEntry:
        """Locate an object in the first pack that lists it.

        Raises:
          ObjectMissing: if no pack lists sha
        """
        for name, index in self.indexes.items():
            try:
                offset = index.object_offset(sha)
            except KeyError:
                continue
            return PackIndexEntry(sha, name, offset)
        raise ObjectMissing(sha)

    def close(self) -> None:
        for index in self.indexes.values():
            index.close()
        self.indexes.clear()
        for data in self.data.values():
            data.close()
        self.data.clear()


class DiskObjectStore:
    """Git-style object store that exists on disk."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        """Open an object store.

        No file is touched until an object is requested.

        Args:
          path: Path of the object store (the ``objects`` directory).
        """
        self.path = os.fspath(path)
        self.pack_dir = os.path.join(self.path, PACKDIR)
        self._packs = _RunOnce(self._load_packs)

    def __repr__(self) -> str:
        return f"<{type(self).__name__}({self.path!r})>"

    @property
    def packs_state(self) -> LoadState:
        """Return whether the pack indexes have been loaded."""
        return self._packs.state

    def close(self) -> None:
        """Release any packs that have been loaded."""
        if self.packs_state is LoadState.LOADED:
            try:
                packs = self._packs.get()
            except Exception:
                return
            packs.close()

    def _get_shafile_path(self, sha: str) -> str:
        return hex_to_filename(self.path, sha)

    def _pack_names(self) -> list[str]:
        """List the pack files of this store, without their directory."""
        try:
            with GitFile(os.path.join(self.path, INFODIR, "packs"), "rb") as f:
                return list(read_packs_file(f))
        except FileNotFoundError:
            pass
        try:
            pack_dir_contents = os.listdir(self.pack_dir)
        except FileNotFoundError:
            return []
        names = []
        for name in sorted(pack_dir_contents):
            if name.startswith("pack-") and name.endswith(".pack"):
                # verify that idx exists first (otherwise the pack was not yet
                # fully written)
                idx_name = os.path.splitext(name)[0] + ".idx"
                if idx_name in pack_dir_contents:
                    names.append(name)
        return names

    def _load_packs(self) -> _Packs:
        packs = _Packs()
        try:
            for name in self._pack_names():
                if os.path.basename(name) != name or not name.endswith(".pack"):
                    raise ObjectFormatException(f"invalid pack name {name!r}")
                basename = os.path.join(self.pack_dir, name[: -len(".pack")])
                try:
                    index = load_pack_index(basename + ".idx")
                except UnsupportedFormat as exc:
                    logger.warning("skipping pack %s: %s", name, exc)
                    continue
                try:
                    data = PackData(basename + ".pack", self.get_raw)
                except UnsupportedFormat as exc:
                    index.close()
                    logger.warning("skipping pack %s: %s", name, exc)
                    continue
                except BaseException:
                    index.close()
                    raise
                packs.indexes[name] = index
                packs.data[name] = data
        except BaseException:
            packs.close()
            raise
        logger.debug(
            "loaded %d packs listing %d objects from %s",
            len(packs.data),
            sum(len(index) for index in packs.indexes.values()),
            self.path,
        )
        return packs

    def _get_loose_raw(self, sha: str) -> tuple[int, bytes]:
        path = self._get_shafile_path(sha)
        try:
            with GitFile(path, "rb") as f:
                compressed = f.read()
        except (FileNotFoundError, NotADirectoryError) as exc:
            raise ObjectMissing(sha) from exc
        try:
            data = zlib.decompress(compressed)
        except zlib.error as exc:
            raise ObjectFormatException(f"error inflating object {sha}: {exc}") from exc
        type_name, size, start = parse_object_header(data)
        try:
            type_num = _TYPE_NUMS[type_name]
        except KeyError as exc:
            raise ObjectFormatException(
                f"unknown object type {type_name!r} in {sha}"
            ) from exc
        if len(data) - start != size:
            raise ObjectFormatException(
                f"object {sha} declares {size} bytes, has {len(data) - start}"
            )
        return type_num, data[start:]

    def _get_packed_raw(self, sha: str) -> tuple[int, bytes]:
        packs = self._packs.get()
        entry = packs.find(sha)
        return packs.data[entry.pack].get_object_at(entry.offset)

    def get_raw(self, sha: str) -> tuple[int, bytes]:
        """Obtain the raw contents of an object, whatever its type.

        Args:
          sha: Hex id of the object.
        Returns: tuple with numeric type and object contents.
        Raises:
          ObjectMissing: if neither a loose object nor a pack has it
        """
        check_object_id(sha)
        if len(sha) != _HEX_SHA_LENGTH:
            raise InvalidObjectId(sha)
        try:
            return self._get_loose_raw(sha)
        except ObjectMissing:
            pass
        return self._get_packed_raw(sha)

    def get_object(self, sha: str, type_num: int) -> bytes:
        """Obtain the contents of an object that must have the given type.

        Args:
          sha: Hex id of the object.
          type_num: Expected type number.
        Returns: The object contents.
        Raises:
          WrongObjectException: if the object has another type
        """
        actual, data = self.get_raw(sha)
        if actual != type_num:
            raise object_kind_error(type_num, sha)
        return data
