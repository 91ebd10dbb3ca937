"""
Pipeline executor for cmd3.

Runs every stage of a CommandLine concurrently, one thread per stage:
- internal stages run their command's execute() through a Process
- external stages run as OS processes via subprocess.Popen

Adjacent external stages share an OS pipe. Any connection touching an
internal stage is a bounded BytePipe; an external stage on such a connection
is fed or drained by pump threads that belong to its stage.
"""

import logging
import os
import signal
import subprocess
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional, TYPE_CHECKING

from .context import CommandContext
from .control_flow import POLL_INTERVAL, CancellationToken, PipelineCancelled
from .exceptions import ExternalCommandError, ShellError, translate_spawn_error
from .exit_codes import EXIT_CODE_INTERRUPTED, EXIT_CODE_SIGPIPE, EXIT_CODE_SUCCESS
from .parser import CommandLine, ExternalCall, InternalCall, Stage
from .process import Process
from .streams import (
    CHUNK_SIZE,
    DEFAULT_BUFFER_SIZE,
    BytePipe,
    DownstreamClosedError,
    ErrorStream,
    InputStream,
    OutputStream,
)

if TYPE_CHECKING:
    from .command_registry import CommandRegistry
    from .commands import Command

logger = logging.getLogger(__name__)

DEFAULT_KILL_TIMEOUT = 2.0


@dataclass
class StageOutcome:
    """How one stage finished"""
    stage: Stage
    exit_code: int = EXIT_CODE_SUCCESS
    error: Optional[ShellError] = None
    cancelled: bool = False
    downstream_closed: bool = False

    @property
    def failed(self) -> bool:
        return self.error is not None and not self.cancelled


@dataclass
class ExecutionResult:
    """
    Result of running a CommandLine.

    ``error`` is the error of the first failing stage in pipeline order
    (PipelineCancelled if the run was cancelled); otherwise ``exit_code``
    is the last stage's exit code.
    """
    outcomes: List[StageOutcome] = field(default_factory=list)
    error: Optional[ShellError] = None
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def exit_code(self) -> int:
        if self.error is not None:
            return self.error.exit_code
        return self.outcomes[-1].exit_code if self.outcomes else EXIT_CODE_SUCCESS

    def raise_for_error(self):
        if self.error is not None:
            raise self.error


class _Connection:
    """The link from stage i to stage i+1"""

    def __init__(self, pipe: Optional[BytePipe] = None,
                 read_fd: Optional[int] = None, write_fd: Optional[int] = None):
        self.pipe = pipe
        self.read_fd = read_fd
        self.write_fd = write_fd

    @property
    def is_os_pipe(self) -> bool:
        return self.pipe is None


def _real_fileno(stream) -> Optional[int]:
    """File descriptor behind a caller stream, or None for in-memory streams"""
    if stream is None:
        return None
    try:
        return stream.fileno()
    except (AttributeError, OSError, ValueError):
        # io.UnsupportedOperation is both an OSError and a ValueError
        return None


class PipelineHandle:
    """
    A live execution of one CommandLine.

    Owns the child processes and connections it created. ``wait()`` joins
    every stage, reaps every process and closes every connection.
    """

    def __init__(self, command_line: CommandLine, commands: Dict[str, 'Command'],
                 context: CommandContext, stdin: Optional[InputStream],
                 stdout: Optional[OutputStream], stderr: Optional[ErrorStream],
                 buffer_size: int = DEFAULT_BUFFER_SIZE,
                 kill_timeout: float = DEFAULT_KILL_TIMEOUT):
        self.command_line = command_line
        self.token = context.token
        self.context = context
        self.buffer_size = buffer_size
        self.kill_timeout = kill_timeout

        self._commands = commands
        self._stdin = stdin
        self._stdout = stdout
        self._stderr = stderr
        self._lock = threading.Lock()
        self._processes: Dict[int, subprocess.Popen] = {}
        self._open_fds = set()
        self._threads: List[threading.Thread] = []
        self._outcomes: List[Optional[StageOutcome]] = [None] * len(command_line)
        self._released = False
        self.connections = self._connect()

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def _connect(self) -> List[_Connection]:
        stages = self.command_line.stages
        connections = []
        for left, right in zip(stages, stages[1:]):
            if isinstance(left, ExternalCall) and isinstance(right, ExternalCall):
                read_fd, write_fd = os.pipe()
                self._open_fds.update((read_fd, write_fd))
                connections.append(_Connection(read_fd=read_fd, write_fd=write_fd))
            else:
                connections.append(_Connection(pipe=BytePipe(self.buffer_size, self.token)))
        return connections

    def start(self):
        logger.debug("Starting pipeline: %s", self.command_line)
        for index, stage in enumerate(self.command_line.stages):
            if isinstance(stage, InternalCall):
                target = self._run_internal
            else:
                target = self._run_external
            thread = threading.Thread(
                target=self._run_stage, args=(target, index, stage),
                name=f"cmd3-stage-{index}", daemon=True)
            self._threads.append(thread)
        for thread in self._threads:
            thread.start()
        return self

    def _close_fd(self, fd: Optional[int]):
        if fd is None:
            return
        with self._lock:
            if fd not in self._open_fds:
                return
            self._open_fds.discard(fd)
        os.close(fd)

    # ------------------------------------------------------------------
    # Stage endpoints
    # ------------------------------------------------------------------

    def _input_connection(self, index: int) -> Optional[_Connection]:
        return self.connections[index - 1] if index > 0 else None

    def _output_connection(self, index: int) -> Optional[_Connection]:
        return self.connections[index] if index < len(self.connections) else None

    def _stage_input(self, index: int) -> InputStream:
        conn = self._input_connection(index)
        if conn is not None:
            return InputStream.from_pipe(conn.pipe)
        return self._stdin if self._stdin is not None else InputStream.from_bytes(b'')

    def _stage_output(self, index: int) -> OutputStream:
        conn = self._output_connection(index)
        if conn is not None:
            return OutputStream.to_pipe(conn.pipe)
        return self._stdout if self._stdout is not None else OutputStream.to_terminal()

    def _release_endpoints(self, index: int):
        """Close this stage's ends of its connections"""
        conn = self._input_connection(index)
        if conn is not None:
            if conn.pipe is not None:
                conn.pipe.close_reader()
            else:
                self._close_fd(conn.read_fd)
        conn = self._output_connection(index)
        if conn is not None:
            if conn.pipe is not None:
                conn.pipe.close_writer()
            else:
                self._close_fd(conn.write_fd)

    # ------------------------------------------------------------------
    # Stage runners
    # ------------------------------------------------------------------

    def _run_stage(self, target, index: int, stage: Stage):
        try:
            outcome = target(index, stage)
        except PipelineCancelled:
            outcome = StageOutcome(stage, EXIT_CODE_INTERRUPTED, cancelled=True)
        except Exception as e:
            logger.exception("Stage %d (%s) crashed", index, stage)
            outcome = StageOutcome(stage, 1, error=ShellError(f"{stage}: {e}"))
        finally:
            self._release_endpoints(index)
        if self.token.cancelled and not outcome.cancelled and outcome.exit_code != EXIT_CODE_SUCCESS:
            outcome.cancelled = True
        self._outcomes[index] = outcome

    def _run_internal(self, index: int, stage: InternalCall) -> StageOutcome:
        stdout = self._stage_output(index)
        process = Process(
            stage.name, list(stage.args),
            command=self._commands[stage.name],
            stdin=self._stage_input(index),
            stdout=stdout,
            stderr=self._stderr if self._stderr is not None else ErrorStream.to_terminal(),
            context=self.context,
        )
        try:
            process.execute()
        finally:
            try:
                stdout.close()
            except DownstreamClosedError:
                process.downstream_closed = True
        return StageOutcome(stage, process.exit_code, error=process.error,
                            downstream_closed=process.downstream_closed)

    def _run_external(self, index: int, stage: ExternalCall) -> StageOutcome:
        argv = list(stage.argv)
        self.token.raise_if_cancelled()

        in_conn = self._input_connection(index)
        out_conn = self._output_connection(index)
        feed_from: Optional[InputStream] = None
        drain_to: Optional[OutputStream] = None
        err_to: Optional[ErrorStream] = None

        if in_conn is not None and in_conn.is_os_pipe:
            stdin = in_conn.read_fd
        elif in_conn is not None:
            stdin = subprocess.PIPE
            feed_from = InputStream.from_pipe(in_conn.pipe)
        elif self._stdin is None:
            stdin = None
        else:
            stdin = _real_fileno(self._stdin)
            if stdin is None:
                stdin = subprocess.PIPE
                feed_from = self._stdin

        if out_conn is not None and out_conn.is_os_pipe:
            stdout = out_conn.write_fd
        elif out_conn is not None:
            stdout = subprocess.PIPE
            drain_to = OutputStream.to_pipe(out_conn.pipe)
        elif self._stdout is None:
            stdout = None
        else:
            stdout = _real_fileno(self._stdout)
            if stdout is None:
                stdout = subprocess.PIPE
                drain_to = self._stdout
            else:
                self._stdout.flush()

        stderr = None
        if self._stderr is not None:
            stderr = _real_fileno(self._stderr)
            if stderr is None:
                stderr = subprocess.PIPE
                err_to = self._stderr
            else:
                self._stderr.flush()

        try:
            proc = subprocess.Popen(argv, stdin=stdin, stdout=stdout, stderr=stderr,
                                    env=self.context.env)
        except OSError as e:
            error = translate_spawn_error(e, argv)
            logger.debug("Failed to spawn %s: %s", argv, error)
            return StageOutcome(stage, error.exit_code, error=error)
        finally:
            # the child holds its own copies of the OS pipe ends
            if in_conn is not None and in_conn.is_os_pipe:
                self._close_fd(in_conn.read_fd)
            if out_conn is not None and out_conn.is_os_pipe:
                self._close_fd(out_conn.write_fd)

        logger.debug("Spawned %s (pid %d)", argv, proc.pid)
        with self._lock:
            self._processes[index] = proc

        pumps = []
        if feed_from is not None:
            pumps.append(self._pump(index, self._feed, feed_from, proc.stdin))
        if drain_to is not None:
            pumps.append(self._pump(index, self._drain, proc.stdout, drain_to))
        if err_to is not None:
            pumps.append(self._pump(index, self._drain, proc.stderr, err_to))

        returncode = self._wait_process(proc, argv)
        for pump in pumps:
            pump.join()

        with self._lock:
            self._processes.pop(index, None)

        if self.token.cancelled:
            return StageOutcome(stage, EXIT_CODE_INTERRUPTED, cancelled=True)
        if returncode == EXIT_CODE_SUCCESS:
            return StageOutcome(stage, EXIT_CODE_SUCCESS)
        if returncode in (-signal.SIGPIPE, EXIT_CODE_SIGPIPE):
            return StageOutcome(stage, EXIT_CODE_SIGPIPE, downstream_closed=True)
        error = ExternalCommandError(argv, returncode)
        return StageOutcome(stage, error.exit_code, error=error)

    def _wait_process(self, proc: subprocess.Popen, argv: List[str]) -> int:
        """Wait for a child, terminating it if the pipeline is cancelled"""
        while True:
            try:
                return proc.wait(timeout=POLL_INTERVAL)
            except subprocess.TimeoutExpired:
                pass
            if self.token.cancelled:
                break

        logger.debug("Terminating %s (pid %d)", argv, proc.pid)
        proc.terminate()
        try:
            return proc.wait(timeout=self.kill_timeout)
        except subprocess.TimeoutExpired:
            logger.debug("Killing %s (pid %d)", argv, proc.pid)
            proc.kill()
            return proc.wait()

    # ------------------------------------------------------------------
    # Pumps
    # ------------------------------------------------------------------

    def _pump(self, index: int, target, source, sink) -> threading.Thread:
        thread = threading.Thread(target=target, args=(source, sink),
                                  name=f"cmd3-stage-{index}-pump", daemon=True)
        thread.start()
        return thread

    def _feed(self, source: InputStream, sink):
        """Copy a stage input into a child's stdin"""
        try:
            while True:
                chunk = source.read(CHUNK_SIZE)
                if not chunk:
                    break
                sink.write(chunk)
                sink.flush()
        except (BrokenPipeError, PipelineCancelled):
            # child stopped reading; let the upstream stage see it
            source.close()
        except OSError as e:
            logger.debug("Feeding child stdin failed: %s", e)
            source.close()
        finally:
            try:
                sink.close()
            except OSError:
                pass

    def _drain(self, source, sink: OutputStream):
        """Copy a child's stdout or stderr into a stage output"""
        fd = source.fileno()
        try:
            while True:
                chunk = os.read(fd, CHUNK_SIZE)
                if not chunk:
                    break
                sink.write(chunk)
        except (DownstreamClosedError, PipelineCancelled):
            # closing our read end delivers SIGPIPE to the child
            pass
        finally:
            source.close()
            try:
                sink.close()
            except DownstreamClosedError:
                pass

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return any(thread.is_alive() for thread in self._threads)

    @property
    def processes(self) -> List[subprocess.Popen]:
        with self._lock:
            return list(self._processes.values())

    def cancel(self):
        """
        Cancel every stage.

        Internal handlers observe the token at their next suspension point;
        external processes are sent SIGTERM (SIGKILL after kill_timeout).
        """
        if self.token.cancelled:
            return
        logger.debug("Cancelling pipeline: %s", self.command_line)
        self.token.cancel()
        for proc in self.processes:
            try:
                proc.terminate()
            except ProcessLookupError:
                pass

    def wait(self, timeout: Optional[float] = None) -> Optional[ExecutionResult]:
        """
        Wait for every stage to finish.

        Returns:
            The ExecutionResult, or None if ``timeout`` expired first
        """
        for thread in self._threads:
            while thread.is_alive():
                thread.join(POLL_INTERVAL if timeout is None else timeout)
                if timeout is not None and thread.is_alive():
                    return None
        self._release()
        return self._result()

    def _release(self):
        if self._released:
            return
        self._released = True
        for conn in self.connections:
            if conn.pipe is not None:
                conn.pipe.close()
        with self._lock:
            fds = list(self._open_fds)
            self._open_fds.clear()
        for fd in fds:
            os.close(fd)
        logger.debug("Pipeline finished: %s", self.command_line)

    def _result(self) -> ExecutionResult:
        outcomes = [o for o in self._outcomes if o is not None]
        if self.token.cancelled:
            return ExecutionResult(outcomes, error=PipelineCancelled(), cancelled=True)
        error = next((o.error for o in outcomes if o.failed), None)
        return ExecutionResult(outcomes, error=error)


class PipelineExecutor:
    """
    Runs CommandLines against a command registry.

    Example:
        >>> executor = PipelineExecutor(registry)
        >>> result = executor.execute(parse_line("help | !wc -l"))
        >>> result.exit_code
        0
    """

    def __init__(self, registry: 'CommandRegistry', buffer_size: int = DEFAULT_BUFFER_SIZE,
                 kill_timeout: float = DEFAULT_KILL_TIMEOUT,
                 context: Optional[CommandContext] = None):
        self.registry = registry
        self.buffer_size = buffer_size
        self.kill_timeout = kill_timeout
        self.context = context or CommandContext(registry=registry)

    def start(self, command_line: CommandLine, stdin: Optional[InputStream] = None,
              stdout: Optional[OutputStream] = None, stderr: Optional[ErrorStream] = None,
              token: Optional[CancellationToken] = None) -> PipelineHandle:
        """
        Resolve every internal stage, then start all stages.

        Args:
            command_line: Pipeline to run
            stdin: Input of the first stage (None: empty for an internal
                stage, the terminal for an external one)
            stdout: Output of the last stage (None: the terminal)
            stderr: Error output of every stage (None: the terminal)
            token: Cancellation token (a fresh one by default)

        Raises:
            CommandNotFoundError: an internal stage names an unregistered
                command; no stage has been started
        """
        commands = self.registry.resolve(command_line.internal_names)
        context = self.context.for_pipeline(token or CancellationToken())
        handle = PipelineHandle(command_line, commands, context, stdin, stdout, stderr,
                                buffer_size=self.buffer_size, kill_timeout=self.kill_timeout)
        return handle.start()

    def execute(self, command_line: CommandLine, stdin: Optional[InputStream] = None,
                stdout: Optional[OutputStream] = None, stderr: Optional[ErrorStream] = None,
                token: Optional[CancellationToken] = None) -> ExecutionResult:
        """Start a pipeline and wait for it; Ctrl-C cancels it"""
        handle = self.start(command_line, stdin, stdout, stderr, token)
        try:
            return handle.wait()
        except KeyboardInterrupt:
            handle.cancel()
            return handle.wait()
