# highlight.py -- Comment highlighting for source files
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

"""Highlighting comments in source files.

Source text is lexed with pygments. tokenize_comments() folds the lexer's
token stream in to comments and everything else, lazily, and
render_tokens() consumes the result. highlight() joins the two, closing the
tokenizer if rendering stops early.
"""

__all__ = [
    "TOKEN_COMMENT",
    "TOKEN_UNKNOWN",
    "Token",
    "highlight",
    "lexer_for_filename",
    "render_tokens",
    "tokenize_comments",
]

from collections.abc import Callable, Generator, Iterable
from html import escape
from typing import NamedTuple

from pygments.lexer import Lexer
from pygments.lexers import get_lexer_for_filename
from pygments.lexers.c_cpp import CLexer
from pygments.token import Comment, Error
from pygments.util import ClassNotFound

from .errors import TokenError

TOKEN_UNKNOWN = 0
TOKEN_COMMENT = 1

COMMENT_CLASS = "comment"

# Options that keep the lexer from altering the text it is given.
_LEXER_OPTIONS = {"stripnl": False, "ensurenl": False}


class Token(NamedTuple):
    """A run of source text."""

    type: int
    data: str


def lexer_for_filename(filename: str) -> Lexer | None:
    """Return a lexer for a file name, or None if pygments has none."""
    try:
        return get_lexer_for_filename(filename, **_LEXER_OPTIONS)
    except ClassNotFound:
        return None


def _token_type(tokentype: object) -> int:
    # Preprocessor directives are Comment subtypes to pygments.
    if tokentype in Comment.Preproc or tokentype in Comment.PreprocFile:
        return TOKEN_UNKNOWN
    if tokentype in Comment:
        return TOKEN_COMMENT
    return TOKEN_UNKNOWN


def tokenize_comments(
    text: str, lexer: Lexer | None = None
) -> Generator[Token, None, None]:
    """Split source text in to comments and everything else.

    Adjacent lexer tokens of the same kind are joined, so comments and the
    text between them alternate. Joining the data of every token gives back
    text. Empty tokens are never produced.

    Args:
      text: Source text
      lexer: pygments lexer to use; C if not given
    Returns: Generator of Token
    Raises:
      TokenError: where the lexer finds text it can not tokenize
    """
    if lexer is None:
        lexer = CLexer(**_LEXER_OPTIONS)
    kind = TOKEN_UNKNOWN
    pending: list[str] = []
    for offset, tokentype, value in lexer.get_tokens_unprocessed(text):
        if tokentype in Error:
            raise TokenError(f"unexpected {value!r}", offset)
        if not value:
            continue
        this = _token_type(tokentype)
        if this != kind and pending:
            yield Token(kind, "".join(pending))
            pending = []
        kind = this
        pending.append(value)
    if pending:
        yield Token(kind, "".join(pending))


def render_tokens(tokens: Iterable[Token], write: Callable[[str], object]) -> None:
    """Write tokens as HTML, wrapping comments in a span.

    Args:
      tokens: Tokens to render, consumed in order
      write: Called with each piece of HTML
    """
    for token in tokens:
        data = escape(token.data, quote=False)
        if token.type == TOKEN_COMMENT:
            write(f'<span class="{COMMENT_CLASS}">{data}</span>')
        else:
            write(data)


def highlight(
    text: str, write: Callable[[str], object], lexer: Lexer | None = None
) -> None:
    """Render text as HTML with its comments highlighted.

    The tokenizer runs only as fast as the renderer takes tokens. If
    rendering fails, the tokenizer is closed; if tokenizing fails, the error
    reaches the caller once the renderer has handled every earlier token.

    Raises:
      TokenError: if text can not be tokenized
    """
    tokens = tokenize_comments(text, lexer)
    try:
        render_tokens(tokens, write)
    finally:
        tokens.close()
