"""
Dispatcher for cmd3.

Turns a raw line into a CommandLine and hands it to the PipelineExecutor.
Lexing, parsing and dispatch errors are raised before any stage starts;
stage failures come back inside the ExecutionResult.
"""

import logging
from typing import Optional, Sequence, TYPE_CHECKING

from .lexer import Token
from .parser import CommandLine, parse, parse_line
from .pipeline import DEFAULT_KILL_TIMEOUT, ExecutionResult, PipelineExecutor, PipelineHandle
from .streams import DEFAULT_BUFFER_SIZE, ErrorStream, InputStream, OutputStream

if TYPE_CHECKING:
    from .command_registry import CommandRegistry
    from .context import CommandContext
    from .control_flow import CancellationToken

logger = logging.getLogger(__name__)


class Dispatcher:
    """
    Parses lines and executes pipelines against one registry.

    Example:
        >>> dispatcher = Dispatcher(registry)
        >>> result = dispatcher.run("echo hi | upper", stdout=OutputStream.to_buffer())
        >>> result.ok
        True
    """

    def __init__(self, registry: 'CommandRegistry', buffer_size: int = DEFAULT_BUFFER_SIZE,
                 kill_timeout: float = DEFAULT_KILL_TIMEOUT,
                 context: Optional['CommandContext'] = None):
        self.registry = registry
        self.executor = PipelineExecutor(registry, buffer_size=buffer_size,
                                         kill_timeout=kill_timeout, context=context)

    @property
    def context(self) -> 'CommandContext':
        return self.executor.context

    def parse(self, tokens: Sequence[Token], line: Optional[str] = None) -> CommandLine:
        """
        Split tokens into classified stages.

        Raises:
            EmptyStageError: a stage has no words
        """
        return parse(tokens, line=line)

    def execute(self, command_line: CommandLine, stdin: Optional[InputStream] = None,
                stdout: Optional[OutputStream] = None, stderr: Optional[ErrorStream] = None,
                token: Optional['CancellationToken'] = None) -> ExecutionResult:
        """
        Run a CommandLine to completion.

        Raises:
            CommandNotFoundError: an internal stage is not registered
        """
        return self.executor.execute(command_line, stdin, stdout, stderr, token)

    def start(self, command_line: CommandLine, stdin: Optional[InputStream] = None,
              stdout: Optional[OutputStream] = None, stderr: Optional[ErrorStream] = None,
              token: Optional['CancellationToken'] = None) -> PipelineHandle:
        """Start a CommandLine without waiting for it"""
        return self.executor.start(command_line, stdin, stdout, stderr, token)

    def run(self, line: str, stdin: Optional[InputStream] = None,
            stdout: Optional[OutputStream] = None, stderr: Optional[ErrorStream] = None,
            token: Optional['CancellationToken'] = None) -> Optional[ExecutionResult]:
        """
        Tokenize, parse and execute a raw line.

        Returns:
            None for a blank line, otherwise the ExecutionResult

        Raises:
            LexError, ParseError, DispatchError: nothing was started
        """
        command_line = parse_line(line)
        if command_line is None:
            return None
        logger.debug("Dispatching %r", line)
        return self.execute(command_line, stdin, stdout, stderr, token)
