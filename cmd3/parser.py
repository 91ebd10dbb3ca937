"""
Pipeline parser for cmd3.

Splits a token stream on pipe separators into stages and classifies each
stage once, at parse time:
- InternalCall: first word resolved against the command registry
- ExternalCall: first word carried the '!' marker, run as an OS process
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple, Union

from .exceptions import EmptyStageError
from .lexer import Token, TokenType, tokenize


@dataclass(frozen=True)
class InternalCall:
    """A stage handled by a registered command"""
    name: str
    args: Tuple[str, ...] = ()

    def __str__(self):
        return ' '.join((self.name,) + self.args)


@dataclass(frozen=True)
class ExternalCall:
    """A stage run as an OS process; argv[0] is the program"""
    argv: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def program(self) -> str:
        return self.argv[0]

    def __str__(self):
        return '!' + ' '.join(self.argv)


Stage = Union[InternalCall, ExternalCall]


@dataclass(frozen=True)
class CommandLine:
    """
    An ordered, non-empty pipeline of stages.

    Order is the pipe order: stage i writes to stage i+1.
    """
    stages: Tuple[Stage, ...]

    def __post_init__(self):
        if not self.stages:
            raise ValueError("CommandLine requires at least one stage")

    def __len__(self):
        return len(self.stages)

    def __iter__(self):
        return iter(self.stages)

    def __getitem__(self, index):
        return self.stages[index]

    @property
    def internal_names(self) -> List[str]:
        """Names of internal stages, in pipeline order"""
        return [s.name for s in self.stages if isinstance(s, InternalCall)]

    def __str__(self):
        return ' | '.join(str(s) for s in self.stages)


def split_stages(tokens: Sequence[Token]) -> List[List[Token]]:
    """
    Split tokens on PIPE tokens.

    Returns one (possibly empty) token slice per stage; EOF tokens are dropped.
    """
    slices: List[List[Token]] = [[]]
    for token in tokens:
        if token.type == TokenType.PIPE:
            slices.append([])
        elif token.type == TokenType.WORD:
            slices[-1].append(token)
    return slices


def parse(tokens: Sequence[Token], line: Optional[str] = None) -> CommandLine:
    """
    Build a CommandLine from a token stream.

    Args:
        tokens: Tokens from the lexer
        line: Original text, attached to errors for reporting

    Raises:
        EmptyStageError: a stage has no words (leading, trailing or
            consecutive pipes, or an empty token stream)

    Example:
        >>> parse(tokenize("help | !wc -l"))
        CommandLine(stages=(InternalCall(name='help', args=()), ExternalCall(argv=('wc', '-l'))))
    """
    stages: List[Stage] = []
    for index, stage_tokens in enumerate(split_stages(tokens)):
        if not stage_tokens:
            raise EmptyStageError(index, line=line)
        first = stage_tokens[0]
        if first.external:
            stages.append(ExternalCall(tuple(t.value for t in stage_tokens)))
        else:
            stages.append(InternalCall(first.value, tuple(t.value for t in stage_tokens[1:])))
    return CommandLine(tuple(stages))


def parse_line(line: str) -> Optional[CommandLine]:
    """
    Tokenize and parse a raw line.

    Returns:
        None for a blank line, otherwise the CommandLine

    Raises:
        LexError: from tokenization
        ParseError: from parsing
    """
    tokens = tokenize(line)
    if not tokens:
        return None
    return parse(tokens, line=line)
