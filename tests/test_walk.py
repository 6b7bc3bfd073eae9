# test_walk.py -- Tests for commit walking functionality.
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

"""Tests for attributing paths to the commit that last changed them."""

import os

from gitstatic.errors import ObjectMissing
from gitstatic.repo import open_repo
from gitstatic.walk import last_commit_touching, resolve_path

from . import TestCase
from .utils import DIR_MODE, FILE_MODE, RepoBuilder


class WalkTests(TestCase):
    """History: A adds a.txt and lib/b.txt, B changes lib/b.txt, C adds c.txt."""

    def setUp(self) -> None:
        super().setUp()
        git_dir = os.path.join(self.make_temp_dir(), "repo.git")
        self.builder = b = RepoBuilder(git_dir)
        self.a_blob = b.blob(b"a\n")
        b1 = b.blob(b"b version 1\n")
        b2 = b.blob(b"b version 2\n")
        c_blob = b.blob(b"c\n")
        lib1 = b.tree([(FILE_MODE, b"b.txt", b1)])
        self.lib2 = b.tree([(FILE_MODE, b"b.txt", b2)])
        self.commit_a = b.commit(
            b.tree([(FILE_MODE, b"a.txt", self.a_blob), (DIR_MODE, b"lib", lib1)]),
            b"A\n",
            1000,
        )
        self.commit_b = b.commit(
            b.tree([(FILE_MODE, b"a.txt", self.a_blob), (DIR_MODE, b"lib", self.lib2)]),
            b"B\n",
            2000,
        )
        self.tree_c = b.tree(
            [
                (FILE_MODE, b"a.txt", self.a_blob),
                (DIR_MODE, b"lib", self.lib2),
                (FILE_MODE, b"c.txt", c_blob),
            ]
        )
        self.commit_c = b.commit(self.tree_c, b"C\n", 3000)
        self.repo = open_repo(git_dir)
        self.addCleanup(self.repo.close)

    def assertLastCommit(self, message: str, path: list[str]) -> None:
        self.assertEqual(message, last_commit_touching(self.repo, path).message)

    def test_unchanged_file(self) -> None:
        self.assertLastCommit("A", ["a.txt"])

    def test_changed_file(self) -> None:
        self.assertLastCommit("B", ["lib/", "b.txt"])

    def test_changed_directory(self) -> None:
        self.assertLastCommit("B", ["lib/"])

    def test_added_file(self) -> None:
        # c.txt does not exist in B, which counts as a change.
        self.assertLastCommit("C", ["c.txt"])

    def test_root_tree(self) -> None:
        self.assertLastCommit("C", [])

    def test_empty_commit(self) -> None:
        # D reuses C's tree, so nothing changed in D.
        self.builder.commit(self.tree_c, b"D\n", 4000)
        repo = open_repo(self.builder.path)
        self.addCleanup(repo.close)
        self.assertEqual("C", last_commit_touching(repo, []).message)
        self.assertEqual("A", last_commit_touching(repo, ["a.txt"]).message)

    def test_explicit_start(self) -> None:
        commit = last_commit_touching(self.repo, ["lib/"], self.commit_a)
        self.assertEqual("A", commit.message)

    def test_start_at_middle_commit(self) -> None:
        # As of B, C has not happened yet.
        self.assertEqual(
            "A", last_commit_touching(self.repo, ["a.txt"], self.commit_b).message
        )
        self.assertEqual(
            "B",
            last_commit_touching(self.repo, ["lib/", "b.txt"], self.commit_b).message,
        )
        root = last_commit_touching(self.repo, [], self.commit_b)
        self.assertEqual("B", root.message)
        self.assertRaises(
            ObjectMissing, last_commit_touching, self.repo, ["c.txt"], self.commit_b
        )

    def test_missing_path(self) -> None:
        self.assertRaises(ObjectMissing, last_commit_touching, self.repo, ["nope"])
        # Directories need their marker.
        self.assertRaises(ObjectMissing, last_commit_touching, self.repo, ["lib"])

    def test_first_parent_only(self) -> None:
        # M merges a side branch S that changed a.txt; the first parent is C.
        b = self.builder
        side_blob = b.blob(b"a from the side\n")
        side_tree = b.tree([(FILE_MODE, b"a.txt", side_blob)])
        side = b.commit(side_tree, b"S\n", 3500, parents=[self.commit_a])
        merged = b.tree(
            [
                (FILE_MODE, b"a.txt", side_blob),
                (DIR_MODE, b"lib", self.lib2),
            ]
        )
        b.commit(merged, b"M\n", 4000, parents=[self.commit_c, side])
        repo = open_repo(b.path)
        self.addCleanup(repo.close)
        self.assertEqual("M", last_commit_touching(repo, ["a.txt"]).message)
        self.assertEqual("B", last_commit_touching(repo, ["lib/"]).message)


class ResolvePathTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        git_dir = os.path.join(self.make_temp_dir(), "repo.git")
        b = RepoBuilder(git_dir)
        self.blob = b.blob(b"deep\n")
        self.inner = b.tree([(FILE_MODE, b"file", self.blob)])
        self.root = b.tree([(DIR_MODE, b"dir", self.inner)])
        self.repo = open_repo(git_dir)
        self.addCleanup(self.repo.close)

    def test_empty_path(self) -> None:
        self.assertEqual(self.root, resolve_path(self.repo, self.root, []))

    def test_nested(self) -> None:
        self.assertEqual(self.inner, resolve_path(self.repo, self.root, ["dir/"]))
        self.assertEqual(
            self.blob, resolve_path(self.repo, self.root, ["dir/", "file"])
        )

    def test_missing(self) -> None:
        self.assertIsNone(resolve_path(self.repo, self.root, ["other"]))
        self.assertIsNone(resolve_path(self.repo, self.root, ["dir/", "other"]))
