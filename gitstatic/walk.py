# walk.py -- Attribute paths to the commit that last changed them
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

"""Walking first-parent history.

Only the first parent of each commit is followed. For a merge, the history
of the merged branch is never looked at, so a path changed on a side branch
is attributed to the merge commit. This is a deliberate simplification.
"""

__all__ = [
    "last_commit_touching",
    "resolve_path",
]

from collections.abc import Sequence
from typing import TYPE_CHECKING

from .errors import ObjectMissing
from .log_utils import getLogger
from .objects import Commit

if TYPE_CHECKING:
    from .repo import Repo

logger = getLogger(__name__)


def resolve_path(repo: "Repo", tree_id: str, path: Sequence[str]) -> str | None:
    """Look up the object a path names, starting from a tree.

    Args:
      repo: Repository to read trees from
      tree_id: Id of the tree the path is relative to
      path: Tree entry names; every name but the last must be a directory
        entry (with its trailing ``/``)
    Returns: The id of the object, or None if the path does not exist
    """
    sha = tree_id
    for name in path:
        tree = repo.get_tree(sha)
        found = tree.get(name)
        if found is None:
            return None
        sha = found
    return sha


def last_commit_touching(
    repo: "Repo", path: Sequence[str], start: str | None = None
) -> Commit:
    """Find the commit after which the object at path stopped changing.

    Starting at start (or the commit HEAD points at), first parents are
    followed for as long as the path resolves to the same object. The last
    commit reached that way is returned; that is the root commit when the
    path never changed.

    Args:
      repo: Repository to walk
      path: Tree entry names leading to the object (an empty path means
        the root tree)
      start: Commit to start from, defaults to the latest commit
    Returns: The commit that last changed the path
    Raises:
      ObjectMissing: if the path does not exist in the starting commit
    """
    if start is None:
        start = repo.get_latest_commit_id()
    commit = repo.get_commit(start)
    reference = resolve_path(repo, commit.tree, path)
    if reference is None:
        raise ObjectMissing("".join(path) or "/")
    steps = 0
    while commit.parent:
        parent = repo.get_commit(commit.parent)
        if resolve_path(repo, parent.tree, path) != reference:
            break
        commit = parent
        steps += 1
    logger.debug("%r unchanged for %d commits", "".join(path), steps)
    return commit
