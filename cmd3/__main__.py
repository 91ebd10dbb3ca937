"""Demo console: python -m cmd3"""

import argparse
import logging
import sys

from . import __version__
from .command_registry import CommandRegistry
from .commands import register_builtins
from .config import ShellConfig
from .shell import Shell


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog='cmd3',
        description='Interactive command console with pipelines and tab completion')
    parser.add_argument('--prompt', help='Prompt string (default: $CMD3_PROMPT or "> ")')
    parser.add_argument('-c', '--command', help='Run one line and exit')
    parser.add_argument('--debug', action='store_true', help='Enable debug logging')
    parser.add_argument('--version', action='version', version=f'cmd3 {__version__}')
    args = parser.parse_args(argv)

    if args.debug:
        logging.basicConfig(level=logging.DEBUG,
                            format='%(asctime)s %(threadName)s %(name)s: %(message)s')

    try:
        config = ShellConfig.from_env(prompt=args.prompt)
    except ValueError as e:
        parser.error(str(e))

    registry = CommandRegistry()
    register_builtins(registry)
    shell = Shell(registry, config=config)

    if args.command is not None:
        code = shell.execute(args.command)
        shell.print_async_messages()
        return code
    return shell.repl()


if __name__ == '__main__':
    sys.exit(main())
