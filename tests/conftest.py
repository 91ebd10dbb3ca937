"""
Pytest configuration and shared fixtures for cmd3 tests.

This module provides reusable test fixtures for:
- Registries populated with sample and test-only commands
- Captured stdout/stderr streams
- Helpers building external argv lists that run anywhere Python runs
"""

import sys
import threading
from typing import List

import pytest

from cmd3.command_registry import CommandRegistry
from cmd3.commands import FunctionCommand, register_builtins
from cmd3.context import CommandContext
from cmd3.dispatcher import Dispatcher
from cmd3.streams import ErrorStream, InputStream, OutputStream


# ============================================================================
# Test Commands
# ============================================================================

class RecordingCommand:
    """
    Command that records every invocation.

    Copies stdin to stdout unless ``output`` is given, in which case it
    writes that instead.
    """

    def __init__(self, name: str, output: bytes = None, exit_code: int = 0):
        self.name = name
        self.output = output
        self.exit_code = exit_code
        self.calls: List[List[str]] = []
        self.lock = threading.Lock()

    def execute(self, process):
        with self.lock:
            self.calls.append(list(process.args))
        if self.output is None:
            process.stdout.write(process.stdin.read())
        else:
            process.stdout.write(self.output)
        return self.exit_code

    @property
    def invoked(self) -> bool:
        return bool(self.calls)


class StaticCompleter:
    """Command with a fixed argument completer"""

    def __init__(self, name: str, candidates: List[str]):
        self.name = name
        self.candidates = candidates
        self.seen = []

    def execute(self, process):
        return 0

    def complete(self, args_so_far, partial):
        self.seen.append((list(args_so_far), partial))
        return [c for c in self.candidates if c.startswith(partial)]


def noop(process):
    """Do nothing"""
    return 0


# ============================================================================
# Pytest Fixtures
# ============================================================================

@pytest.fixture
def registry():
    """
    Provides a registry with the sample commands.

    Returns:
        CommandRegistry: help, echo, upper, cat, buzz
    """
    reg = CommandRegistry()
    register_builtins(reg)
    return reg


@pytest.fixture
def small_registry():
    """
    Provides the registry {help, history, exit}.

    Example:
        def test_complete(small_registry):
            assert small_registry.list() == ['exit', 'help', 'history']
    """
    reg = CommandRegistry()
    register_builtins(reg, ['help'])
    reg.register('history', FunctionCommand('history', noop))
    reg.register('exit', FunctionCommand('exit', noop))
    return reg


@pytest.fixture
def dispatcher(registry):
    """Provides a dispatcher over the sample registry with small pipes"""
    return Dispatcher(registry, buffer_size=1024, kill_timeout=1.0)


@pytest.fixture
def capture_output():
    """
    Provides in-memory stdout and stderr streams.

    Returns:
        tuple: (stdout, stderr)

    Example:
        def test_output(dispatcher, capture_output):
            stdout, stderr = capture_output
            dispatcher.run("echo hi", stdout=stdout, stderr=stderr)
            assert stdout.get_value() == b"hi\\n"
    """
    return OutputStream.to_buffer(), ErrorStream.to_buffer()


@pytest.fixture
def context(registry):
    """Provides a CommandContext bound to the sample registry"""
    return CommandContext(registry=registry, env={'PATH': '/bin:/usr/bin'})


@pytest.fixture
def empty_stdin():
    return InputStream.from_bytes(b'')


# ============================================================================
# Helper Functions
# ============================================================================

def python_argv(code: str) -> List[str]:
    """argv running a Python snippet in a child interpreter"""
    return [sys.executable, '-c', code]


def python_stage(code: str) -> str:
    """A '!'-marked pipeline stage running a Python snippet"""
    from cmd3.lexer import quote_word
    return '!' + ' '.join(quote_word(part) for part in python_argv(code))


def get_stdout(stream) -> str:
    """Get buffered stream content as string."""
    return stream.get_value().decode('utf-8', errors='replace')


# Make helper functions available as pytest helpers
pytest.python_argv = python_argv
pytest.python_stage = python_stage
pytest.get_stdout = get_stdout
