# log_utils.py -- Logging utilities for gitstatic
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

"""Logging utilities for gitstatic.

The repository reader is usable as a library, so the ``gitstatic`` logger
carries a no-op handler until an application configures logging. The
command line tool calls default_logging_config().

Modules only need getLogger, which this module re-exports.
"""

import logging
import os
import sys

getLogger = logging.getLogger


class _NullHandler(logging.Handler):
    """No-op logging handler to avoid unexpected logging warnings."""

    def emit(self, record: logging.LogRecord) -> None:
        pass


_NULL_HANDLER = _NullHandler()
_GITSTATIC_LOGGER = getLogger("gitstatic")
_GITSTATIC_LOGGER.addHandler(_NULL_HANDLER)

_TRACE_FORMAT = "%(asctime)s %(name)s %(levelname)s: %(message)s"


def _get_trace_target() -> str | int | None:
    """Get the trace target from the GITSTATIC_TRACE environment variable.

    Returns:
        - None if tracing is disabled
        - 2 for stderr output (values "1", "2", "true")
        - str for an absolute file path
    """
    trace_value = os.environ.get("GITSTATIC_TRACE", "")

    if not trace_value or trace_value.lower() in ("0", "false"):
        return None

    if trace_value.lower() in ("1", "2", "true"):
        return 2  # stderr

    if os.path.isabs(trace_value):
        return trace_value

    # For any other value, treat it as disabled
    return None


def _configure_logging_from_trace() -> bool:
    """Configure logging based on GITSTATIC_TRACE.

    Returns True if trace configuration was successful, False otherwise.
    """
    trace_target = _get_trace_target()
    if trace_target is None:
        return False

    if trace_target == 2:
        logging.basicConfig(
            level=logging.DEBUG, stream=sys.stderr, format=_TRACE_FORMAT
        )
        return True

    try:
        logging.basicConfig(
            level=logging.DEBUG,
            filename=trace_target,
            filemode="a",
            format=_TRACE_FORMAT,
        )
        return True
    except OSError as e:
        sys.stderr.write(
            f"Warning: Failed to open GITSTATIC_TRACE file {trace_target}: {e}\n"
        )
        return False


def default_logging_config(verbose: bool = False) -> None:
    """Set up the default gitstatic loggers.

    GITSTATIC_TRACE set to "1", "2" or "true" traces to stderr, and set to an
    absolute path appends the trace to that file. Otherwise warnings (or, if
    verbose, informational messages) go to stderr.
    """
    remove_null_handler()

    if not _configure_logging_from_trace():
        logging.basicConfig(
            level=logging.INFO if verbose else logging.WARNING,
            stream=sys.stderr,
            format="%(levelname)s: %(message)s",
        )


def remove_null_handler() -> None:
    """Remove the null handler from the gitstatic loggers."""
    _GITSTATIC_LOGGER.removeHandler(_NULL_HANDLER)
