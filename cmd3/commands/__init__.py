"""
Command capability and sample handlers.

Any object with a ``name`` and an ``execute(process)`` method is a command;
there is no base class to inherit from. Two optional capabilities:

- ``complete(args_so_far, partial) -> list[str]``: argument completion
- ``get_parser() -> argparse.ArgumentParser``: arguments are parsed into
  ``process.options`` before ``execute`` runs, and option strings complete
  automatically

Plain functions become commands through ``register_command``, which also
adds them to the BUILTINS catalogue used by ``register_builtins``.
"""

import argparse
import importlib
from typing import Callable, Dict, Iterable, List, Optional, Protocol, TYPE_CHECKING, runtime_checkable

from .base import complete_options

if TYPE_CHECKING:
    from ..command_registry import CommandRegistry
    from ..process import Process

Completer = Callable[[List[str], str], List[str]]
ParserFactory = Callable[[], argparse.ArgumentParser]


@runtime_checkable
class Command(Protocol):
    """
    Capability exposed by a command handler.

    ``execute`` reads ``process.stdin`` and writes ``process.stdout``; the
    arguments are ``process.args``. It returns an exit code (None means 0)
    or raises CommandError to fail its stage with a message.
    """

    name: str

    def execute(self, process: 'Process') -> Optional[int]:
        ...


class FunctionCommand:
    """
    Adapts a plain function to the Command capability.

    Attributes:
        name: Command name
        func: Callable taking the Process, returning an exit code
        completer: Optional argument completer
        parser_factory: Optional callable building the argparse parser
        description: One-line summary (first docstring line by default)
    """

    def __init__(self, name: str, func: Callable[['Process'], Optional[int]],
                 completer: Optional[Completer] = None,
                 parser: Optional[ParserFactory] = None,
                 description: Optional[str] = None):
        self.name = name
        self.func = func
        self.completer = completer
        self.parser_factory = parser
        if description is None:
            doc = (func.__doc__ or '').strip()
            description = doc.splitlines()[0] if doc else ''
        self.description = description

    def execute(self, process: 'Process') -> Optional[int]:
        return self.func(process)

    def complete(self, args_so_far: List[str], partial: str) -> List[str]:
        if self.completer is not None:
            return self.completer(args_so_far, partial)
        parser = self.get_parser()
        if parser is not None:
            return complete_options(parser, partial)
        return []

    def get_parser(self) -> Optional[argparse.ArgumentParser]:
        if self.parser_factory is None:
            return None
        return self.parser_factory()

    def __call__(self, process: 'Process') -> Optional[int]:
        return self.func(process)

    def __repr__(self):
        return f"FunctionCommand({self.name!r})"


# Catalogue of the sample handlers shipped with cmd3
BUILTINS: Dict[str, Command] = {}

_COMMAND_MODULES = ['buzz', 'cat', 'echo', 'help', 'upper']


def register_command(name: str, completer: Optional[Completer] = None,
                     parser: Optional[ParserFactory] = None,
                     description: Optional[str] = None):
    """
    Decorator turning a function into a catalogued command.

    Example:
        @register_command('upper')
        def cmd_upper(process):
            process.stdout.write(process.stdin.read().upper())
            return 0
    """
    def decorator(func):
        cmd = FunctionCommand(name, func, completer=completer, parser=parser,
                              description=description)
        BUILTINS[name] = cmd
        return cmd
    return decorator


def load_all_commands():
    """Import every sample command module so BUILTINS is populated"""
    for module in _COMMAND_MODULES:
        importlib.import_module(f'{__name__}.{module}')


def register_builtins(registry: 'CommandRegistry', names: Optional[Iterable[str]] = None):
    """
    Register sample commands into an explicit registry.

    Args:
        registry: Target registry
        names: Subset of BUILTINS to register (default: all)

    Raises:
        CommandConflictError: a name is already registered
    """
    load_all_commands()
    for name in (names if names is not None else sorted(BUILTINS)):
        command = BUILTINS[name]
        bind = getattr(command, 'bind', None)
        registry.register(name, bind(registry) if bind is not None else command)


__all__ = [
    'Command',
    'FunctionCommand',
    'BUILTINS',
    'register_command',
    'load_all_commands',
    'register_builtins',
]
