"""
Base utilities for command implementations.

This module provides common helper functions that command modules can use
to reduce code duplication and maintain consistency: error output, argument
checks, argparse integration and completion helpers.
"""

import argparse
from typing import Iterable, List, Optional

from ..exceptions import CommandSyntaxError, HelpRequested
from ..process import Process


def write_error(process: Process, message: str, prefix_command: bool = True):
    """
    Write an error message to stderr.

    Args:
        process: The process object
        message: The error message
        prefix_command: If True, prefix message with command name
    """
    if prefix_command:
        process.stderr.write(f"{process.name}: {message}\n")
    else:
        process.stderr.write(f"{message}\n")


def check_arg_count(process: Process, min_args: int = 0, max_args: Optional[int] = None,
                    usage: Optional[str] = None) -> bool:
    """
    Check that a stage got an acceptable number of arguments.

    On a mismatch the problem (and the usage line, when given) goes to
    stderr and False is returned.
    """
    count = len(process.args)
    if count < min_args:
        problem = f"expected at least {min_args} argument(s), got {count}"
    elif max_args is not None and count > max_args:
        problem = f"expected at most {max_args} argument(s), got {count}"
    else:
        return True
    write_error(process, problem)
    if usage:
        write_error(process, f"usage: {usage}", prefix_command=False)
    return False


class CommandArgumentParser(argparse.ArgumentParser):
    """
    ArgumentParser that raises instead of exiting the host process.

    Usage errors become CommandSyntaxError; ``--help`` output is kept in
    ``help_text`` and surfaces as a HelpRequested error so the stage ends
    without running the handler.
    """

    def __init__(self, *args, **kwargs):
        kwargs.setdefault('add_help', True)
        super().__init__(*args, **kwargs)

    def error(self, message):
        raise CommandSyntaxError(self.prog, message)

    def exit(self, status=0, message=None):
        raise HelpRequested(self.prog, self.format_help())

    def print_help(self, file=None):
        # output is delivered through HelpRequested instead
        pass


def parse_options(name: str, parser: argparse.ArgumentParser, args: List[str]) -> argparse.Namespace:
    """
    Parse stage arguments with a command's parser.

    Raises:
        CommandSyntaxError: arguments do not match the parser
        HelpRequested: -h/--help was given
    """
    parser.prog = name
    if not isinstance(parser, CommandArgumentParser):
        # plain parsers would call sys.exit(); route their errors through ours
        def _error(message):
            raise CommandSyntaxError(name, message)

        def _exit(status=0, message=None):
            raise HelpRequested(name, parser.format_help())

        parser.error = _error
        parser.exit = _exit
        parser.print_help = lambda file=None: None
    return parser.parse_args(args)


def filter_prefix(candidates: Iterable[str], partial: str) -> List[str]:
    """Candidates starting with ``partial``, in their original order"""
    return [c for c in candidates if c.startswith(partial)]


def complete_options(parser: argparse.ArgumentParser, partial: str) -> List[str]:
    """
    Complete option strings of a parser.

    A partial starting with '--' completes long options only; one starting
    with a single '-' completes short and long options. Anything else gets
    no candidates, since positional names are only metavars.

    Example:
        >>> parser = argparse.ArgumentParser()
        >>> parser.add_argument('-v', '--verbose', action='store_true')
        >>> complete_options(parser, '--v')
        ['--verbose']
    """
    if not partial.startswith('-'):
        return []
    long_only = partial.startswith('--')
    options = []
    for action in parser._actions:
        for option in action.option_strings:
            if long_only and not option.startswith('--'):
                continue
            options.append(option)
    return filter_prefix(sorted(options), partial)


__all__ = [
    'write_error',
    'check_arg_count',
    'CommandArgumentParser',
    'HelpRequested',
    'parse_options',
    'filter_prefix',
    'complete_options',
]
