# errors.py -- errors for gitstatic
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

"""gitstatic-related exception classes."""

__all__ = [
    "ApplyDeltaError",
    "ConfigError",
    "InvalidObjectId",
    "NotBlobError",
    "NotCommitError",
    "NotTagError",
    "NotTreeError",
    "ObjectFormatException",
    "ObjectMissing",
    "TokenError",
    "UnsupportedFormat",
    "WrongObjectException",
]


class WrongObjectException(Exception):
    """Baseclass for all the _ is not a _ exceptions on objects.

    Do not instantiate directly.

    Subclasses should define a type_name attribute that indicates what
    was expected if they were raised.
    """

    type_name: str

    def __init__(self, sha: str, *args: object, **kwargs: object) -> None:
        """Initialize a WrongObjectException.

        Args:
            sha: The id of the object that was not of the expected type.
            *args: Additional positional arguments.
            **kwargs: Additional keyword arguments.
        """
        self.sha = sha
        Exception.__init__(self, f"{sha} is not a {self.type_name}")


class NotCommitError(WrongObjectException):
    """Indicates that the sha requested does not point to a commit."""

    type_name = "commit"


class NotTreeError(WrongObjectException):
    """Indicates that the sha requested does not point to a tree."""

    type_name = "tree"


class NotTagError(WrongObjectException):
    """Indicates that the sha requested does not point to a tag."""

    type_name = "tag"


class NotBlobError(WrongObjectException):
    """Indicates that the sha requested does not point to a blob."""

    type_name = "blob"


class ObjectMissing(KeyError):
    """Indicates that a requested object, ref or file is missing.

    This is the only error the object store recovers from, by trying the
    next lookup strategy (loose objects, then packs).
    """

    def __init__(self, sha: str, *args: object, **kwargs: object) -> None:
        """Initialize an ObjectMissing exception.

        Args:
            sha: The id (or path) of the missing object.
            *args: Additional positional arguments.
            **kwargs: Additional keyword arguments.
        """
        self.sha = sha
        KeyError.__init__(self, sha)

    def __str__(self) -> str:
        return f"{self.sha} is not in the object store"


class ObjectFormatException(Exception):
    """Indicates an error parsing an object: the repository is corrupt."""


class InvalidObjectId(ObjectFormatException):
    """Indicates that a string is not a syntactically valid object id."""

    def __init__(self, sha: bytes | str, *args: object, **kwargs: object) -> None:
        """Initialize an InvalidObjectId exception.

        Args:
            sha: The offending value.
            *args: Additional positional arguments.
            **kwargs: Additional keyword arguments.
        """
        self.sha = sha
        ObjectFormatException.__init__(self, f"{sha!r} is not a valid object id")


class ApplyDeltaError(ObjectFormatException):
    """Indicates that applying a delta failed."""


class UnsupportedFormat(Exception):
    """Indicates a pack or pack index in a format that is not supported.

    Only the pack concerned becomes unusable; other packs stay available.
    """


class ConfigError(Exception):
    """Indicates that the configuration could not be loaded."""


class TokenError(Exception):
    """Indicates that a source file could not be tokenised."""

    def __init__(self, message: str, offset: int) -> None:
        """Initialize a TokenError.

        Args:
            message: Description of the problem.
            offset: Character offset at which tokenising failed.
        """
        self.offset = offset
        Exception.__init__(self, f"{message} at offset {offset}")
