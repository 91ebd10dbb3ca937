"""Embeddable shell: dispatch, completion and the interactive loop"""

import os
from typing import Optional

from rich.console import Console
from rich.markup import escape

from . import __version__
from .command_registry import CommandRegistry
from .completer import COMPLETER_DELIMS, CompletionEngine, CompletionResult, ShellCompleter
from .config import ShellConfig
from .context import CommandContext
from .control_flow import PipelineCancelled
from .dispatcher import Dispatcher
from .exceptions import ShellError
from .exit_codes import EXIT_CODE_INTERRUPTED, EXIT_CODE_SUCCESS
from .pipeline import ExecutionResult
from .streams import ErrorStream, InputStream, OutputStream


class Shell:
    """
    Command shell over an explicitly constructed registry.

    Example:
        >>> registry = CommandRegistry()
        >>> register_builtins(registry)
        >>> shell = Shell(registry)
        >>> shell.execute("help | !wc -l")
        0
    """

    def __init__(self, registry: Optional[CommandRegistry] = None,
                 config: Optional[ShellConfig] = None,
                 console: Optional[Console] = None,
                 env: Optional[dict] = None):
        self.registry = registry if registry is not None else CommandRegistry()
        self.config = config or ShellConfig()
        self.console = console or Console()
        self.context = CommandContext(registry=self.registry,
                                      env=dict(env) if env is not None else dict(os.environ))
        self.dispatcher = Dispatcher(self.registry, buffer_size=self.config.buffer_size,
                                     kill_timeout=self.config.kill_timeout,
                                     context=self.context)
        self.completion = CompletionEngine(self.registry)
        self.running = False
        self.last_exit_code = EXIT_CODE_SUCCESS

    def add_command(self, command) -> 'Shell':
        """Register a command under its own name; returns self for chaining"""
        self.registry.add(command)
        return self

    def complete(self, line: str, cursor: Optional[int] = None) -> CompletionResult:
        return self.completion.complete(line, cursor)

    def run(self, line: str, stdin: Optional[InputStream] = None,
            stdout: Optional[OutputStream] = None,
            stderr: Optional[ErrorStream] = None) -> Optional[ExecutionResult]:
        """
        Run a line, raising lexing, parsing and dispatch errors.

        Returns:
            None for a blank line, otherwise the ExecutionResult
        """
        return self.dispatcher.run(line, stdin, stdout, stderr)

    def execute(self, line: str, stdin: Optional[InputStream] = None,
                stdout: Optional[OutputStream] = None,
                stderr: Optional[ErrorStream] = None) -> int:
        """
        Run a line and report any error on the console.

        Never raises ShellError: the error is printed and its exit code
        returned, so a failing handler cannot take the host down.

        Returns:
            Exit code of the pipeline
        """
        try:
            result = self.run(line, stdin, stdout, stderr)
        except ShellError as e:
            self.report_error(e)
            self.last_exit_code = e.exit_code
            return e.exit_code

        if result is None:
            return self.last_exit_code
        if result.error is not None:
            self.report_error(result.error)
        self.last_exit_code = result.exit_code
        return result.exit_code

    def report_error(self, error: ShellError):
        if isinstance(error, PipelineCancelled):
            self.console.print("[yellow]^C[/yellow]", highlight=False)
            return
        self.console.print(f"[red]{escape(str(error))}[/red]", highlight=False)

    def print_async_messages(self):
        """Print messages queued by handlers since the last prompt"""
        for message in self.context.drain_messages():
            self.console.print(escape(message), highlight=False)

    def _setup_readline(self) -> bool:
        try:
            import readline
        except ImportError:
            # readline not available (e.g., on Windows without pyreadline)
            return False

        completer = ShellCompleter(self.completion)
        readline.set_completer(completer.complete)
        readline.set_completer_delims(COMPLETER_DELIMS)

        # Different binding for libedit (macOS) vs GNU readline (Linux)
        if readline.__doc__ and 'libedit' in readline.__doc__:
            readline.parse_and_bind("bind ^I rl_complete")
        else:
            readline.parse_and_bind("tab: complete")
        readline.parse_and_bind("set show-all-if-ambiguous on")
        readline.set_history_length(self.config.history_length)
        return True

    def repl(self) -> int:
        """
        Run the interactive loop until Ctrl-D.

        Ctrl-C at the prompt discards the line; during execution it cancels
        the running pipeline and returns to the prompt.

        Returns:
            Exit code of the last pipeline
        """
        self.running = True
        self._setup_readline()
        self.console.print(f"[bold cyan]cmd3[/bold cyan] v{__version__}", highlight=False)
        self.console.print("Type [cyan]'help'[/cyan] for commands, [cyan]Ctrl+D[/cyan] to quit",
                           highlight=False)

        while self.running:
            self.print_async_messages()
            try:
                line = input(self.config.prompt)
            except EOFError:
                # Ctrl+D - exit shell
                self.console.print(highlight=False)
                break
            except KeyboardInterrupt:
                self.console.print("^C", highlight=False)
                continue

            if not line.strip():
                continue
            try:
                self.execute(line)
            except KeyboardInterrupt:
                self.last_exit_code = EXIT_CODE_INTERRUPTED

        self.running = False
        self.print_async_messages()
        return self.last_exit_code

    def stop(self):
        """Make the loop exit before the next prompt"""
        self.running = False
