"""
Tab completion for cmd3.

CompletionEngine works on plain text and a cursor offset, so any line-editing
front end can use it. ShellCompleter adapts it to the readline module.

Completion targets:
- the first word of a stage: registered command names
- the first word of an external stage ('!prog'): executables on PATH
- any later word: the stage command's own ``complete(args_so_far, partial)``,
  or the option strings of its ``get_parser()`` when it has no completer
"""

import logging
import os
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple, TYPE_CHECKING

from .commands.base import complete_options
from .lexer import (
    ESCAPE_CHAR,
    EXTERNAL_MARKER,
    QUOTE_CHARS,
    Token,
    TokenType,
    escape_word,
    quote_word,
    tokenize_lenient,
)

if TYPE_CHECKING:
    from .command_registry import CommandRegistry

logger = logging.getLogger(__name__)

# Characters readline treats as word boundaries for the engine's spans
COMPLETER_DELIMS = ' \t\n|'


@dataclass(frozen=True)
class CompletionContext:
    """
    Where the cursor sits in a line.

    Attributes:
        line: Full line text
        cursor: Cursor offset
        token_index: Position of the partial word within its stage
            (0 means the command name)
        start: Offset where the partial word starts
        partial: The partial word, quotes and escapes resolved
        stage_tokens: Words of the current stage before the partial word
        external: True when the current stage is external
    """
    line: str
    cursor: int
    token_index: int
    start: int
    partial: str
    stage_tokens: Tuple[Token, ...] = ()
    external: bool = False

    @property
    def stage_initial(self) -> bool:
        return self.token_index == 0

    @property
    def args_so_far(self) -> List[str]:
        return [t.value for t in self.stage_tokens[1:]]


@dataclass(frozen=True)
class CompletionResult:
    """Ordered, de-duplicated candidates replacing ``line[start:end]``"""
    candidates: Tuple[str, ...] = ()
    start: int = 0
    end: int = 0

    @property
    def span(self) -> Tuple[int, int]:
        return self.start, self.end

    def __len__(self):
        return len(self.candidates)

    def __bool__(self):
        return bool(self.candidates)


def unique(candidates: Iterable[str]) -> Tuple[str, ...]:
    """Drop duplicates, keeping first occurrences in order"""
    seen = set()
    ordered = []
    for candidate in candidates:
        if candidate not in seen:
            seen.add(candidate)
            ordered.append(candidate)
    return tuple(ordered)


def list_executables(prefix: str, path: Optional[str] = None) -> List[str]:
    """Names of executables on PATH starting with ``prefix``, sorted"""
    if path is None:
        path = os.environ.get('PATH', '')
    names = set()
    for directory in path.split(os.pathsep):
        if not directory or not os.path.isdir(directory):
            continue
        try:
            entries = os.listdir(directory)
        except OSError:
            continue
        for entry in entries:
            if not entry.startswith(prefix):
                continue
            full = os.path.join(directory, entry)
            if os.path.isfile(full) and os.access(full, os.X_OK):
                names.add(entry)
    return sorted(names)


class CompletionEngine:
    """
    Produces completion candidates for a line and cursor.

    Never fails: an unknown command, a command without a completer or a
    completer that raises all yield an empty candidate list.

    Example:
        >>> engine = CompletionEngine(registry)
        >>> engine.complete("h", 1).candidates
        ('help', 'history')
    """

    def __init__(self, registry: 'CommandRegistry', path: Optional[str] = None):
        self.registry = registry
        # None means the PATH of the environment at completion time
        self.path = path

    def context(self, line: str, cursor: Optional[int] = None) -> CompletionContext:
        """Locate the partial word and its stage for a cursor position"""
        if cursor is None:
            cursor = len(line)
        cursor = max(0, min(cursor, len(line)))
        text = line[:cursor]

        stage: List[Token] = []
        for token in tokenize_lenient(text):
            if token.type == TokenType.PIPE:
                stage = []
            else:
                stage.append(token)

        if stage and stage[-1].end == len(text):
            current = stage.pop()
            partial = current.value
            start = current.position
            external = current.external if not stage else stage[0].external
            if not stage and partial == EXTERNAL_MARKER and not current.quoted:
                # a bare '!' starts an external program name
                partial, start, external = '', current.position + 1, True
        else:
            partial = ''
            start = cursor
            external = bool(stage) and stage[0].external

        return CompletionContext(line=line, cursor=cursor, token_index=len(stage),
                                 start=start, partial=partial,
                                 stage_tokens=tuple(stage), external=external)

    def complete(self, line: str, cursor: Optional[int] = None) -> CompletionResult:
        ctx = self.context(line, cursor)
        return CompletionResult(unique(self._candidates(ctx)), ctx.start, ctx.cursor)

    def _candidates(self, ctx: CompletionContext) -> List[str]:
        if ctx.stage_initial:
            if ctx.external:
                return list_executables(ctx.partial, self.path)
            return [name for name in self.registry.list() if name.startswith(ctx.partial)]

        if ctx.external:
            return []

        command = self.registry.lookup(ctx.stage_tokens[0].value)
        if command is None:
            return []
        complete = getattr(command, 'complete', None)
        get_parser = getattr(command, 'get_parser', None)
        try:
            if complete is not None:
                return list(complete(ctx.args_so_far, ctx.partial) or [])
            parser = get_parser() if get_parser is not None else None
            if parser is not None:
                return complete_options(parser, ctx.partial)
            return []
        except Exception as e:
            logger.warning("Completer for %r failed: %s", ctx.stage_tokens[0].value, e)
            return []


def render_candidate(typed: str, candidate: str) -> str:
    """
    Raw text for ``candidate`` that tokenizes back to it.

    When ``typed`` opens a quote the candidate uses the same quote, left open
    for directories so completion can continue inside them.
    """
    quote = typed[:1]
    if quote in QUOTE_CHARS:
        body = candidate.replace(ESCAPE_CHAR, ESCAPE_CHAR * 2).replace(quote, ESCAPE_CHAR + quote)
        closing = '' if candidate.endswith('/') else quote
        return quote + body + closing
    if quote_word(candidate) == candidate:
        return candidate
    return escape_word(candidate)


class ShellCompleter:
    """
    readline adapter for CompletionEngine.

    Usage:
        completer = ShellCompleter(engine)
        readline.set_completer(completer.complete)
        readline.set_completer_delims(COMPLETER_DELIMS)
    """

    def __init__(self, engine: CompletionEngine):
        self.engine = engine
        self.matches: List[str] = []

    def matches_for(self, line: str, begidx: int, endidx: int) -> List[str]:
        """
        Candidates rewritten to replace ``line[begidx:endidx]``.

        Each candidate is rendered as raw text for the engine's span, keeping
        the quote the user opened, or escaping characters the lexer would
        split on. readline replaces text from its own word start, so a span
        starting later (after a '!' marker) keeps the gap as a prefix, and a
        span starting earlier (a quoted word with a space) drops the part
        already typed.
        """
        result = self.engine.complete(line, endidx)
        typed = line[result.start:endidx]
        rendered = [render_candidate(typed, c) for c in result.candidates]
        if result.start >= begidx:
            prefix = line[begidx:result.start]
            return [prefix + r for r in rendered]
        offset = begidx - result.start
        head = line[result.start:begidx]
        return [r[offset:] for r in rendered if r.startswith(head)]

    def complete(self, text: str, state: int) -> Optional[str]:
        if state == 0:
            import readline
            self.matches = self.matches_for(readline.get_line_buffer(),
                                            readline.get_begidx(), readline.get_endidx())
        try:
            return self.matches[state]
        except IndexError:
            return None
