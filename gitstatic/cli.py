#
# gitstatic - Static HTML snapshots of git repositories
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

"""Command line interface for gitstatic.

Reads the configuration, optionally writes the pages of one repository,
then rewrites the index of all repositories.
"""

__all__ = ["main"]

import argparse
import os
import signal
import sys
import types
from collections.abc import Sequence

from .config import DEFAULT_CONFIG_NAME, read_config
from .errors import (
    ConfigError,
    ObjectFormatException,
    ObjectMissing,
    UnsupportedFormat,
    WrongObjectException,
)
from .log_utils import default_logging_config, getLogger
from .web import build_index, build_repo

logger = getLogger(__name__)

EXIT_OK = 0
EXIT_BUILD_FAILED = 2
EXIT_INDEX_FAILED = 3

_BUILD_ERRORS = (
    ObjectMissing,
    ObjectFormatException,
    UnsupportedFormat,
    WrongObjectException,
    OSError,
)


def signal_int(signal: int, frame: types.FrameType | None) -> None:
    """Handle interrupt signal by exiting.

    Args:
        signal: Signal number
        frame: Current stack frame
    """
    sys.exit(1)


def _default_config_path() -> str:
    return os.path.join(os.path.expanduser("~"), DEFAULT_CONFIG_NAME)


def _make_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gitstatic",
        description="Write static HTML pages for git repositories",
    )
    parser.add_argument(
        "-c",
        dest="config",
        default=_default_config_path(),
        help="config file location",
    )
    parser.add_argument("-r", dest="repo", default="", help="git repo to build")
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Report what is written"
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point for the gitstatic CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code: 0 on success, 2 if the configuration can not be read or
        the requested repository can not be built, 3 if the index can not be
        written
    """
    if argv is None:
        argv = sys.argv[1:]
    args = _make_parser().parse_args(argv)
    default_logging_config(verbose=args.verbose)

    try:
        config = read_config(args.config)
    except ConfigError as exc:
        logger.error("error reading config: %s", exc)
        return EXIT_BUILD_FAILED

    if args.repo:
        try:
            build_repo(config, args.repo)
        except _BUILD_ERRORS as exc:
            logger.error("error building %s: %s", args.repo, exc)
            return EXIT_BUILD_FAILED

    try:
        build_index(config)
    except OSError as exc:
        logger.error("error building index: %s", exc)
        return EXIT_INDEX_FAILED
    return EXIT_OK


def _main() -> None:
    signal.signal(signal.SIGINT, signal_int)

    sys.exit(main())


if __name__ == "__main__":
    _main()
