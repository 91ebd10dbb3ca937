"""
HELP command - list registered commands or describe one.
"""

from typing import List, Optional, TYPE_CHECKING

from ..process import Process
from . import BUILTINS
from ..exit_codes import EXIT_CODE_USAGE_ERROR
from .base import check_arg_count, filter_prefix, write_error

if TYPE_CHECKING:
    from ..command_registry import CommandRegistry


class HelpCommand:
    """
    List registered commands, one per line

    Usage: help [command]

    Examples:
      help          # List every registered command
      help upper    # Show what 'upper' does
    """

    name = 'help'
    description = 'List registered commands, or describe one'

    def __init__(self, registry: Optional['CommandRegistry'] = None):
        self.registry = registry

    def bind(self, registry: 'CommandRegistry') -> 'HelpCommand':
        """Copy of this command completing against ``registry``"""
        return HelpCommand(registry)

    def execute(self, process: Process) -> int:
        if not check_arg_count(process, max_args=1, usage="help [command]"):
            return EXIT_CODE_USAGE_ERROR
        if not process.args:
            for name in process.context.command_names():
                process.stdout.write(f"{name}\n")
            return 0

        name = process.args[0]
        command = process.context.lookup(name)
        if command is None:
            write_error(process, f"{name}: no such command")
            return 1

        get_parser = getattr(command, 'get_parser', None)
        parser = get_parser() if get_parser is not None else None
        if parser is not None:
            parser.prog = name
            process.stdout.write(parser.format_help())
            return 0

        description = getattr(command, 'description', '')
        process.stdout.write(f"{name}: {description}\n" if description else f"{name}\n")
        return 0

    def complete(self, args_so_far: List[str], partial: str) -> List[str]:
        if args_so_far or self.registry is None:
            return []
        return filter_prefix(self.registry.list(), partial)

    def __repr__(self):
        return "HelpCommand()"


BUILTINS['help'] = HelpCommand()
