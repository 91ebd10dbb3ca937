"""
Shell lexer for cmd3.

Turns a raw input line into a stream of tokens:
- WORD tokens for command names and arguments, with quotes and escapes resolved
- PIPE tokens for unquoted '|' separators
- an EOF token terminating the stream

Quoting rules:
- 'single' and "double" quotes group any characters, including whitespace
  and '|', into one word
- a backslash escapes the next character literally, inside quotes too
- an unquoted '!' immediately preceding the first word of a stage marks that
  word as external; anywhere else it is literal text
"""

from enum import Enum
from typing import List, Optional

from .exceptions import UnterminatedEscapeError, UnterminatedQuoteError

QUOTE_CHARS = ("'", '"')
ESCAPE_CHAR = '\\'
PIPE_CHAR = '|'
EXTERNAL_MARKER = '!'


class TokenType(Enum):
    """Token types produced by the lexer"""
    WORD = "word"
    PIPE = "pipe"
    EOF = "eof"


class Token:
    """
    A single lexical token.

    Attributes:
        type: Token type
        value: Word text with quotes and escapes resolved
        position: Offset of the token's first raw character. For an external
            word this is the character after the '!' marker.
        end: Offset just past the token's last raw character
        external: True when the word was introduced by an unquoted '!'
        quoted: True when any part of the word was quoted or escaped
        complete: False only for the in-progress final token produced by
            lenient tokenization of an unterminated quote or escape
    """

    def __init__(self, type: TokenType, value: str, position: int = 0,
                 end: Optional[int] = None, external: bool = False,
                 quoted: bool = False, complete: bool = True):
        self.type = type
        self.value = value
        self.position = position
        self.end = position + len(value) if end is None else end
        self.external = external
        self.quoted = quoted
        self.complete = complete

    def __repr__(self):
        flags = ''
        if self.external:
            flags += ', external'
        if not self.complete:
            flags += ', partial'
        return f"Token({self.type.value}, {self.value!r}, {self.position}{flags})"

    def __eq__(self, other):
        if not isinstance(other, Token):
            return False
        return (self.type == other.type and self.value == other.value
                and self.external == other.external)

    def __hash__(self):
        return hash((self.type, self.value, self.external))


class QuoteTracker:
    """
    Tracks quote and escape state while scanning a line character by character.

    Example:
        >>> tracker = QuoteTracker()
        >>> for ch in "echo 'a b":
        ...     tracker.process_char(ch)
        >>> tracker.is_quoted()
        True
    """

    def __init__(self):
        self.quote_char: Optional[str] = None
        self.escaped = False

    def reset(self):
        self.quote_char = None
        self.escaped = False

    def is_quoted(self) -> bool:
        return self.quote_char is not None

    def is_escaped(self) -> bool:
        return self.escaped

    def process_char(self, char: str) -> bool:
        """
        Advance the state by one character.

        Returns:
            True if the character is literal text (not a quote delimiter or
            the escaping backslash itself)
        """
        if self.escaped:
            self.escaped = False
            return True
        if char == ESCAPE_CHAR:
            self.escaped = True
            return False
        if self.quote_char is not None:
            if char == self.quote_char:
                self.quote_char = None
                return False
            return True
        if char in QUOTE_CHARS:
            self.quote_char = char
            return False
        return True


class ShellLexer:
    """
    Tokenizer for pipeline command lines.

    In strict mode an unterminated quote or a trailing lone backslash raises.
    In lenient mode (used by completion) the unfinished text becomes the
    final token with ``complete=False``.

    Example:
        >>> ShellLexer("upper | !wc -l").tokenize()
        [Token(word, 'upper', 0), Token(pipe, '|', 6), Token(word, 'wc', 9, external), ...]
    """

    def __init__(self, text: str, lenient: bool = False):
        self.text = text
        self.lenient = lenient

    def tokenize(self) -> List[Token]:
        text = self.text
        tokens: List[Token] = []
        tracker = QuoteTracker()

        chars: List[str] = []
        start: Optional[int] = None
        external = False
        quoted = False
        quote_start = 0
        stage_started = False

        def flush(end: int, complete: bool = True):
            nonlocal chars, start, external, quoted, stage_started
            if start is not None:
                stage_started = True
                tokens.append(Token(TokenType.WORD, ''.join(chars), start, end=end,
                                    external=external, quoted=quoted, complete=complete))
            chars = []
            start = None
            external = False
            quoted = False

        i = 0
        while i < len(text):
            ch = text[i]

            if tracker.is_quoted() or tracker.is_escaped():
                if tracker.process_char(ch):
                    chars.append(ch)
                i += 1
                continue

            if ch.isspace():
                flush(i)
            elif ch == PIPE_CHAR:
                flush(i)
                tokens.append(Token(TokenType.PIPE, PIPE_CHAR, i))
                stage_started = False
            elif (ch == EXTERNAL_MARKER and start is None and not stage_started
                  and i + 1 < len(text) and not text[i + 1].isspace() and text[i + 1] != PIPE_CHAR):
                start = i + 1
                external = True
            else:
                if start is None:
                    start = i
                if ch in QUOTE_CHARS:
                    quote_start = i
                    quoted = True
                elif ch == ESCAPE_CHAR:
                    quoted = True
                if tracker.process_char(ch):
                    chars.append(ch)
            i += 1

        if tracker.is_quoted():
            if not self.lenient:
                raise UnterminatedQuoteError(text, quote_char=tracker.quote_char,
                                             position=quote_start)
            flush(len(text), complete=False)
        elif tracker.is_escaped():
            if not self.lenient:
                raise UnterminatedEscapeError(text, position=len(text) - 1)
            flush(len(text), complete=False)
        else:
            flush(len(text))

        tokens.append(Token(TokenType.EOF, '', len(text)))
        return tokens


def tokenize(raw: str) -> List[Token]:
    """
    Tokenize a line strictly.

    Returns:
        WORD and PIPE tokens in line order (no EOF token)

    Raises:
        UnterminatedQuoteError: a quote is opened and never closed
        UnterminatedEscapeError: the line ends with a lone backslash
    """
    return ShellLexer(raw).tokenize()[:-1]


def tokenize_lenient(raw: str) -> List[Token]:
    """Tokenize a possibly unfinished line, never raising (no EOF token)."""
    return ShellLexer(raw, lenient=True).tokenize()[:-1]


_SAFE_CHARS = frozenset(
    'abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789'
    '@%+=:,./-_!'
)


def quote_word(value: str) -> str:
    """
    Quote a word so that tokenizing the result yields ``value`` again.

    Example:
        >>> quote_word("hello world")
        "'hello world'"
        >>> quote_word("it's")
        "'it\\\\'s'"
    """
    if value and all(c in _SAFE_CHARS for c in value) and not value.startswith(EXTERNAL_MARKER):
        return value
    escaped = value.replace(ESCAPE_CHAR, ESCAPE_CHAR * 2).replace("'", "\\'")
    return f"'{escaped}'"


def escape_word(value: str) -> str:
    """Backslash-escape every character of ``value`` the lexer would not take literally"""
    if not value:
        return quote_word(value)
    return ''.join(c if c in _SAFE_CHARS else ESCAPE_CHAR + c for c in value)


def join_tokens(tokens: List[Token]) -> str:
    """
    Rebuild a command line from tokens.

    Tokenizing the result produces tokens equal to ``tokens``.
    """
    parts = []
    for token in tokens:
        if token.type == TokenType.EOF:
            continue
        if token.type == TokenType.PIPE:
            parts.append(PIPE_CHAR)
        elif token.external:
            parts.append(EXTERNAL_MARKER + quote_word(token.value))
        else:
            parts.append(quote_word(token.value))
    return ' '.join(parts)
