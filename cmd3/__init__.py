"""cmd3 - embeddable interactive command shell with pipelines and completion"""

__version__ = '0.3.0'

from .command_registry import CommandRegistry
from .commands import Command, FunctionCommand, register_builtins, register_command
from .completer import CompletionEngine, CompletionResult
from .control_flow import CancellationToken, PipelineCancelled
from .dispatcher import Dispatcher
from .exceptions import (
    CommandConflictError,
    CommandError,
    CommandNotFoundError,
    EmptyStageError,
    ExternalSpawnError,
    ShellError,
    UnterminatedQuoteError,
)
from .lexer import tokenize, tokenize_lenient
from .parser import CommandLine, ExternalCall, InternalCall, parse, parse_line
from .pipeline import ExecutionResult, PipelineExecutor, PipelineHandle
from .shell import Shell
from .streams import BytePipe, ErrorStream, InputStream, OutputStream

__all__ = [
    'CancellationToken',
    'Command',
    'CommandConflictError',
    'CommandError',
    'CommandLine',
    'CommandNotFoundError',
    'CommandRegistry',
    'CompletionEngine',
    'CompletionResult',
    'Dispatcher',
    'EmptyStageError',
    'ErrorStream',
    'ExecutionResult',
    'ExternalCall',
    'ExternalSpawnError',
    'FunctionCommand',
    'InputStream',
    'InternalCall',
    'OutputStream',
    'BytePipe',
    'PipelineCancelled',
    'PipelineExecutor',
    'PipelineHandle',
    'Shell',
    'ShellError',
    'UnterminatedQuoteError',
    'parse',
    'parse_line',
    'register_builtins',
    'register_command',
    'tokenize',
    'tokenize_lenient',
]
