"""
BUZZ command - queue an asynchronous message for the console.
"""

from ..process import Process
from . import register_command
from .base import CommandArgumentParser


def _buzz_parser() -> CommandArgumentParser:
    parser = CommandArgumentParser(
        prog='buzz', description='Registers an asynchronous message with the console.')
    parser.add_argument('message', help='Message to add to the queue')
    parser.add_argument('-n', '--count', type=int, default=1,
                        help='Number of times to queue the message')
    parser.add_argument('--quiet', action='store_true',
                        help='Do not print a confirmation')
    return parser


@register_command('buzz', parser=_buzz_parser)
def cmd_buzz(process: Process) -> int:
    """
    Queue a message printed before the next prompt

    Usage: buzz [-n COUNT] [--quiet] message
    """
    options = process.options
    for _ in range(options.count):
        process.context.add_async_message(options.message)
    if not options.quiet:
        process.stdout.write("Bzz bzz...\n")
    return 0
