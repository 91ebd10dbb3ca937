"""
ECHO command - print arguments.
"""

from ..process import Process
from . import register_command


@register_command('echo')
def cmd_echo(process: Process) -> int:
    """
    Write arguments to stdout, separated by spaces

    Usage: echo [-n] [arg...]
    Options:
      -n  Do not print the trailing newline
    """
    args = process.args
    newline = True
    if args and args[0] == '-n':
        newline = False
        args = args[1:]

    process.stdout.write(' '.join(args) + ('\n' if newline else ''))
    return 0
