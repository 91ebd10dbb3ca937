"""
UPPER command - uppercase stdin.
"""

from ..process import Process
from . import register_command


@register_command('upper')
def cmd_upper(process: Process) -> int:
    """
    Uppercase stdin line by line (streaming mode)

    Usage: upper
    """
    for line in process.stdin:
        process.stdout.write(line.decode('utf-8', errors='replace').upper())
    return 0
