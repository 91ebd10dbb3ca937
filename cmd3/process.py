"""Process class for internal stages in pipelines"""

from typing import List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .commands import Command

from .context import CommandContext
from .control_flow import PipelineCancelled
from .exceptions import CommandError, HelpRequested
from .exit_codes import EXIT_CODE_GENERAL_ERROR, EXIT_CODE_SIGPIPE, EXIT_CODE_SUCCESS
from .streams import DownstreamClosedError, ErrorStream, InputStream, OutputStream


class Process:
    """Represents one internal command running as a pipeline stage"""

    def __init__(
        self,
        name: str,
        args: List[str],
        command: Optional['Command'] = None,
        stdin: Optional[InputStream] = None,
        stdout: Optional[OutputStream] = None,
        stderr: Optional[ErrorStream] = None,
        context: Optional[CommandContext] = None,
    ):
        """
        Initialize a process

        Args:
            name: Command name as typed
            args: Command arguments
            command: Resolved command handler
            stdin: Input stream (defaults to empty input)
            stdout: Output stream (defaults to an in-memory buffer)
            stderr: Error stream (defaults to an in-memory buffer)
            context: CommandContext for the pipeline run
        """
        self.name = name
        self.args = list(args)
        self.command = command
        self.stdin = stdin or InputStream.from_bytes(b'')
        self.stdout = stdout or OutputStream.to_buffer()
        self.stderr = stderr or ErrorStream.to_buffer()
        self.context = context or CommandContext()

        # Namespace from the command's argparse parser, if it has one
        self.options = None
        self.exit_code = EXIT_CODE_SUCCESS
        self.error: Optional[CommandError] = None
        self.downstream_closed = False

    @property
    def cancelled(self) -> bool:
        return self.context.cancelled

    def check_cancelled(self):
        """Raise PipelineCancelled if the pipeline has been cancelled"""
        self.context.token.raise_if_cancelled()

    def execute(self) -> int:
        """
        Execute the process

        A handler failure is recorded in ``self.error`` instead of raised, so
        the pipeline can report the first failing stage. Cancellation
        propagates.

        Returns:
            Exit code (0 for success, non-zero for error)
        """
        if self.command is None:
            self.error = CommandError(self.name, f"{self.name}: command not found", 127)
            self.exit_code = self.error.exit_code
            return self.exit_code

        try:
            get_parser = getattr(self.command, 'get_parser', None)
            parser = get_parser() if get_parser is not None else None
            if parser is not None:
                from .commands.base import parse_options
                self.options = parse_options(self.name, parser, self.args)
            result = self.command.execute(self)
            self.exit_code = EXIT_CODE_SUCCESS if result is None else int(result)
            if self.exit_code != EXIT_CODE_SUCCESS:
                self.error = CommandError(
                    self.name, f"{self.name}: exited with status {self.exit_code}", self.exit_code)
        except KeyboardInterrupt:
            # Let KeyboardInterrupt propagate for proper Ctrl-C handling
            raise
        except PipelineCancelled:
            raise
        except DownstreamClosedError:
            # Reader went away; like SIGPIPE this is not a failure of this stage
            self.downstream_closed = True
            self.exit_code = EXIT_CODE_SIGPIPE
        except HelpRequested as e:
            try:
                self.stdout.write(e.help_text)
                self.exit_code = EXIT_CODE_SUCCESS
            except DownstreamClosedError:
                self.downstream_closed = True
                self.exit_code = EXIT_CODE_SIGPIPE
        except CommandError as e:
            self.error = e
            self.exit_code = e.exit_code
        except Exception as e:
            self.error = CommandError(self.name, f"Error executing '{self.name}': {e}")
            self.exit_code = EXIT_CODE_GENERAL_ERROR

        try:
            self.stdout.flush()
            self.stderr.flush()
        except DownstreamClosedError:
            self.downstream_closed = True

        return self.exit_code

    def get_stdout(self) -> bytes:
        """Get stdout contents"""
        return self.stdout.get_value()

    def get_stderr(self) -> bytes:
        """Get stderr contents"""
        return self.stderr.get_value()

    def __repr__(self):
        args_str = ' '.join(self.args) if self.args else ''
        return f"Process({self.name} {args_str})"
