# web.py -- Writing static HTML pages for git repositories
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

"""Writing the static site.

build_index() writes the page listing every repository and build_repo()
writes a snapshot of the tip of one repository: a page per directory and a
page per file, each annotated with the commit that last changed it.

Every page is written through a lock file and renamed in to place, so a
reader never sees a half-written page.
"""

__all__ = [
    "RepoSummary",
    "build_index",
    "build_repo",
    "read_summary",
    "sort_repos",
]

import datetime
import os
import posixpath
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from html import escape
from io import StringIO
from urllib.parse import quote

from .config import Config
from .errors import (
    ObjectFormatException,
    ObjectMissing,
    TokenError,
    UnsupportedFormat,
    WrongObjectException,
)
from .file import GitFile, ensure_dir_exists
from .highlight import highlight, lexer_for_filename
from .log_utils import getLogger
from .objects import Commit, Tree, TreeEntry
from .repo import Repo, open_repo
from .walk import last_commit_touching

logger = getLogger(__name__)

REPO_INDEX = "index.html"
PAGE_SUFFIX = ".html"

_GITLINK_MODE = 0o160000

# Errors that mean a repository can not be listed, rather than a bug.
_REPO_ERRORS = (
    ObjectMissing,
    ObjectFormatException,
    UnsupportedFormat,
    WrongObjectException,
    OSError,
)


@dataclass(frozen=True)
class RepoSummary:
    """What the index shows about a repository."""

    name: str
    description: str
    message: str
    time: datetime.datetime
    pin: int = -1

    @property
    def pinned(self) -> bool:
        return self.pin != -1


def _git_dir(config: Config, name: str) -> str:
    return os.path.join(config.repos_dir, name, config.git_dir)


def _fill(config: Config, template: str, values: Mapping[str, object]) -> str:
    return config.template(template).substitute(values)


def _write_page(path: str, text: str) -> None:
    ensure_dir_exists(os.path.dirname(path) or ".")
    with GitFile(path, "wb") as f:
        f.write(text.encode("utf-8"))


def read_summary(config: Config, name: str) -> RepoSummary:
    """Read what the index needs to know about a repository.

    Args:
      config: Site configuration
      name: Name of the repository directory under the repositories directory
    Returns: A RepoSummary
    """
    with open_repo(_git_dir(config, name)) as repo:
        commit = repo.get_latest_commit()
        description = repo.get_description()
    return RepoSummary(
        name=name,
        description=description,
        message=commit.message,
        time=commit.time,
        pin=config.pin_position(name),
    )


def _sort_key(summary: RepoSummary) -> tuple[int, int, float]:
    if summary.pinned:
        return (0, summary.pin, 0.0)
    return (1, 0, -summary.time.timestamp())


def sort_repos(repos: Iterable[RepoSummary]) -> list[RepoSummary]:
    """Order repositories: pinned ones by pin position, then newest first."""
    return sorted(repos, key=_sort_key)


def _render_index(config: Config, repos: list[RepoSummary]) -> str:
    rows = []
    for summary in repos:
        rows.append(
            _fill(
                config,
                "repo_template",
                {
                    "pin_class": escape(config.pin_class if summary.pinned else ""),
                    "link": escape("/" + quote(summary.name) + "/"),
                    "name": escape(summary.name),
                    "description": escape(summary.description),
                    "date": escape(summary.time.strftime(config.date_format)),
                    "message": escape(summary.message),
                },
            )
        )
    return _fill(
        config,
        "index_template",
        {"title": escape(config.index_title), "repos": "".join(rows)},
    )


def build_index(config: Config) -> list[RepoSummary]:
    """Write the index page listing every repository.

    Repositories whose latest commit can not be read are left out.

    Args:
      config: Site configuration
    Returns: The repositories listed, in the order they are shown
    Raises:
      OSError: if the repositories directory can not be read or the index
        can not be written
    """
    repos = []
    with os.scandir(config.repos_dir) as it:
        names = sorted(entry.name for entry in it if entry.is_dir())
    for name in names:
        try:
            repos.append(read_summary(config, name))
        except _REPO_ERRORS as exc:
            logger.info("skipping %s: %s", name, exc)
    repos = sort_repos(repos)
    path = os.path.join(config.output_dir, config.index_file)
    _write_page(path, _render_index(config, repos))
    logger.info("wrote %s listing %d repositories", path, len(repos))
    return repos


class _RepoBuilder:
    """Writes the pages of one repository."""

    def __init__(self, config: Config, name: str, repo: Repo) -> None:
        self.config = config
        self.name = name
        self.repo = repo
        self.out_dir = os.path.join(config.output_dir, name)
        self.head = repo.get_latest_commit_id()
        self.description = repo.get_description()
        self.pages = 0

    def _date(self, commit: Commit) -> str:
        return escape(commit.time.strftime(self.config.date_format))

    def _root_link(self, depth: int) -> str:
        return escape("../" * depth or "./")

    def _symlink_target(self, entry: TreeEntry) -> str:
        with self.repo.get_blob(entry.sha) as f:
            return os.fsdecode(f.read())

    def _entry_row(
        self, path: list[str], entry: TreeEntry, linked: bool = True
    ) -> str:
        commit = last_commit_touching(self.repo, [*path, entry.name], self.head)
        name = entry.base_name
        link = ""
        if entry.is_dir():
            kind = "dir"
            label = name + "/"
            link = quote(name) + "/" if linked else ""
        elif entry.is_symlink():
            kind = "symlink"
            label = f"{name} -> {self._symlink_target(entry)}"
        elif entry.mode == _GITLINK_MODE:
            kind = "submodule"
            label = f"{name} @ {entry.sha}"
        else:
            kind = "file"
            label = name
            link = quote(name) + PAGE_SUFFIX if linked else ""
        return _fill(
            self.config,
            "entry_template",
            {
                "kind": kind,
                "link": escape(link),
                "name": escape(label),
                "date": self._date(commit),
                "message": escape(commit.message),
            },
        )

    def _contents(self, filename: str, entry: TreeEntry) -> tuple[str, int]:
        with self.repo.get_blob(entry.sha) as f:
            data = f.read()
        text = data.decode("utf-8", "replace")
        if posixpath.splitext(filename)[1] in self.config.pretty_print:
            lexer = lexer_for_filename(posixpath.basename(filename))
            if lexer is None:
                logger.info("no lexer for %s", filename)
            else:
                out = StringIO()
                try:
                    highlight(text, out.write, lexer)
                except TokenError as exc:
                    logger.warning("not highlighting %s: %s", filename, exc)
                else:
                    return out.getvalue(), len(data)
        return escape(text, quote=False), len(data)

    def write_file(self, path: list[str], entry: TreeEntry) -> None:
        filename = "".join([*path, entry.name])
        commit = last_commit_touching(self.repo, [*path, entry.name], self.head)
        contents, size = self._contents(filename, entry)
        page = _fill(
            self.config,
            "pretty_template",
            {
                "repo": escape(self.name),
                "root": self._root_link(len(path)),
                "path": escape(filename),
                "date": self._date(commit),
                "message": escape(commit.message),
                "size": size,
                "contents": contents,
            },
        )
        _write_page(
            os.path.join(self.out_dir, *path, entry.name + PAGE_SUFFIX), page
        )
        self.pages += 1

    def _page_name(self, entry: TreeEntry) -> str | None:
        """Return the name of the page written for entry, if there is one."""
        if entry.is_dir():
            return entry.base_name
        if entry.is_symlink() or entry.mode == _GITLINK_MODE:
            return None
        return entry.base_name + PAGE_SUFFIX

    def write_tree(self, path: list[str], tree: Tree) -> None:
        entries = []
        for entry in tree.entries():
            if entry.base_name in (".", ".."):
                logger.warning(
                    "skipping unsafe entry %r in %s", entry.name, self.name
                )
                continue
            entries.append(entry)
        # The listing and each sub-directory own their name in this directory.
        taken = {REPO_INDEX} | {e.base_name for e in entries if e.is_dir()}
        rows = []
        for entry in entries:
            page_name = self._page_name(entry)
            clash = page_name == REPO_INDEX or (
                not entry.is_dir() and page_name in taken
            )
            if clash:
                logger.warning(
                    "not writing a page for %s%s in %s: %s is taken",
                    "".join(path),
                    entry.base_name,
                    self.name,
                    page_name,
                )
            linked = page_name is not None and not clash
            rows.append(self._entry_row(path, entry, linked))
            if not linked:
                continue
            if entry.is_dir():
                self.write_tree([*path, entry.name], self.repo.get_tree(entry.sha))
            else:
                self.write_file(path, entry)
        page = _fill(
            self.config,
            "tree_template",
            {
                "repo": escape(self.name),
                "root": self._root_link(len(path)),
                "path": escape("".join(path)),
                "description": escape(self.description),
                "entries": "".join(rows),
            },
        )
        _write_page(os.path.join(self.out_dir, *path, REPO_INDEX), page)
        self.pages += 1


def build_repo(config: Config, name: str) -> None:
    """Write a snapshot of the latest commit of a repository.

    Args:
      config: Site configuration
      name: Name of the repository directory under the repositories directory
    """
    with open_repo(_git_dir(config, name)) as repo:
        builder = _RepoBuilder(config, name, repo)
        root = repo.get_tree(repo.get_commit(builder.head).tree)
        builder.write_tree([], root)
    logger.info("wrote %d pages for %s", builder.pages, name)
