# config.py -- Reading the gitstatic configuration file
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

"""Reading the configuration file.

The configuration is a JSON object. It is read once, at startup, in to a
frozen Config that is handed to whatever needs it.

Templates use ``$name`` placeholders (see string.Template). Each template
may be given inline, or as the path of a file holding it (``*TemplateFile``),
which takes precedence. Placeholders are checked when the configuration is
read, so a typo is reported before any page is written.
"""

__all__ = [
    "DEFAULT_CONFIG_NAME",
    "Config",
    "read_config",
]

import json
import os
from dataclasses import dataclass, field, fields, replace
from string import Template
from typing import Any

from .errors import ConfigError
from .file import GitFile
from .log_utils import getLogger

logger = getLogger(__name__)

DEFAULT_CONFIG_NAME = ".gitweb"

DEFAULT_INDEX_TEMPLATE = """\
<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>$title</title></head>
<body>
<h1>$title</h1>
<ul class="repos">
$repos</ul>
</body>
</html>
"""

DEFAULT_REPO_TEMPLATE = """\
<li class="$pin_class"><a href="$link">$name</a> <span class="description">\
$description</span> <span class="date">$date</span> \
<span class="message">$message</span></li>
"""

DEFAULT_TREE_TEMPLATE = """\
<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>$repo: /$path</title></head>
<body>
<h1><a href="$root">$repo</a>: /$path</h1>
<p class="description">$description</p>
<table class="tree">
$entries</table>
</body>
</html>
"""

DEFAULT_ENTRY_TEMPLATE = """\
<tr class="$kind"><td><a href="$link">$name</a></td><td class="date">$date</td>\
<td class="message">$message</td></tr>
"""

DEFAULT_PRETTY_TEMPLATE = """\
<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>$repo: /$path</title></head>
<body>
<h1><a href="$root">$repo</a>: /$path</h1>
<p><span class="date">$date</span> <span class="message">$message</span> \
<span class="size">$size bytes</span></p>
<pre>$contents</pre>
</body>
</html>
"""

# Placeholders each template may use.
_TEMPLATE_NAMES = {
    "index_template": ("title", "repos"),
    "repo_template": ("pin_class", "link", "name", "description", "date", "message"),
    "tree_template": ("repo", "root", "path", "description", "entries"),
    "entry_template": ("kind", "link", "name", "date", "message"),
    "pretty_template": ("repo", "root", "path", "date", "message", "size", "contents"),
}


@dataclass(frozen=True)
class Config:
    """Settings for a run of the site builder."""

    repos_dir: str = "./"
    output_dir: str = "."
    pinned: tuple[str, ...] = ()
    git_dir: str = ".git"
    index_file: str = "index.html"
    index_title: str = "Repositories"
    index_template: str = DEFAULT_INDEX_TEMPLATE
    repo_template: str = DEFAULT_REPO_TEMPLATE
    tree_template: str = DEFAULT_TREE_TEMPLATE
    entry_template: str = DEFAULT_ENTRY_TEMPLATE
    pretty_template: str = DEFAULT_PRETTY_TEMPLATE
    pretty_print: frozenset[str] = field(default_factory=frozenset)
    pin_class: str = "pinned"
    date_format: str = "%Y-%m-%d %H:%M:%S"

    def template(self, name: str) -> Template:
        """Return the named template (e.g. "repo_template")."""
        return Template(getattr(self, name))

    def pin_position(self, name: str) -> int:
        """Return where a repository is pinned, or -1 if it is not pinned."""
        try:
            return self.pinned.index(name)
        except ValueError:
            return -1


# JSON key -> (field name, expected type)
_KEYS: dict[str, tuple[str, type]] = {
    "reposDir": ("repos_dir", str),
    "outputDir": ("output_dir", str),
    "pinned": ("pinned", list),
    "gitDir": ("git_dir", str),
    "indexFile": ("index_file", str),
    "indexTitle": ("index_title", str),
    "indexTemplate": ("index_template", str),
    "repoTemplate": ("repo_template", str),
    "treeTemplate": ("tree_template", str),
    "entryTemplate": ("entry_template", str),
    "prettyTemplate": ("pretty_template", str),
    "prettyPrint": ("pretty_print", list),
    "pinClass": ("pin_class", str),
    "dateFormat": ("date_format", str),
}

_TEMPLATE_FILE_KEYS = {
    "indexTemplateFile": "index_template",
    "repoTemplateFile": "repo_template",
    "treeTemplateFile": "tree_template",
    "entryTemplateFile": "entry_template",
    "prettyTemplateFile": "pretty_template",
}


def _read_template_file(path: str) -> str:
    try:
        with GitFile(path, "rb") as f:
            return f.read().decode("utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"error reading template file {path}: {exc}") from exc


def _check_template(name: str, text: str) -> None:
    allowed = _TEMPLATE_NAMES[name]
    try:
        Template(text).substitute({key: "" for key in allowed})
    except KeyError as exc:
        raise ConfigError(f"unknown placeholder {exc} in {name}") from exc
    except ValueError as exc:
        raise ConfigError(f"error parsing {name}: {exc}") from exc


def _string_list(key: str, value: list[Any]) -> list[str]:
    if not all(isinstance(item, str) for item in value):
        raise ConfigError(f"{key} must be a list of strings")
    return value


def parse_config(document: Any) -> Config:
    """Build a Config from a decoded JSON document.

    Unknown keys are ignored.
    """
    if not isinstance(document, dict):
        raise ConfigError("configuration must be a JSON object")
    values: dict[str, Any] = {}
    for key, (name, expected) in _KEYS.items():
        if key not in document:
            continue
        value = document[key]
        if not isinstance(value, expected):
            raise ConfigError(f"{key} must be a {expected.__name__}")
        if name == "pinned":
            value = tuple(_string_list(key, value))
        elif name == "pretty_print":
            value = frozenset(_string_list(key, value))
        values[name] = value
    for key, name in _TEMPLATE_FILE_KEYS.items():
        path = document.get(key)
        if not path:
            continue
        if not isinstance(path, str):
            raise ConfigError(f"{key} must be a str")
        values[name] = _read_template_file(path)
    config = replace(Config(), **values)
    for f in fields(config):
        if f.name in _TEMPLATE_NAMES:
            _check_template(f.name, getattr(config, f.name))
    return config


def read_config(path: str | os.PathLike[str]) -> Config:
    """Read the configuration file at path.

    A missing file gives the default configuration.

    Raises:
      ConfigError: if the file can not be read or is not valid
    """
    try:
        with GitFile(path, "rb") as f:
            data = f.read()
    except FileNotFoundError:
        logger.info("no configuration at %s, using defaults", path)
        return Config()
    except OSError as exc:
        raise ConfigError(f"error while opening config file: {exc}") from exc
    try:
        document = json.loads(data)
    except ValueError as exc:
        raise ConfigError(f"error parsing config file: {exc}") from exc
    return parse_config(document)
