"""
CAT command - concatenate and print files.
"""

import os
from typing import List

from ..exceptions import CommandError
from ..process import Process
from ..streams import CHUNK_SIZE
from . import register_command


def complete_paths(args_so_far: List[str], partial: str) -> List[str]:
    """Complete local file system paths; directories get a trailing '/'"""
    dirname, prefix = os.path.split(partial)
    search_dir = os.path.expanduser(dirname) if dirname else '.'
    try:
        entries = sorted(os.listdir(search_dir))
    except OSError:
        return []

    matches = []
    for entry in entries:
        if not entry.startswith(prefix):
            continue
        if entry.startswith('.') and not prefix.startswith('.'):
            continue
        candidate = os.path.join(dirname, entry) if dirname else entry
        if os.path.isdir(os.path.join(search_dir, entry)):
            candidate += '/'
        matches.append(candidate)
    return matches


@register_command('cat', completer=complete_paths)
def cmd_cat(process: Process) -> int:
    """
    Concatenate and print files or stdin (streaming mode)

    Usage: cat [file...]
    """
    if not process.args:
        # Copy stdin in chunks so long pipelines keep streaming
        while True:
            chunk = process.stdin.read(CHUNK_SIZE)
            if not chunk:
                break
            process.stdout.write(chunk)
        return 0

    for filename in process.args:
        try:
            with open(filename, 'rb') as f:
                while True:
                    process.check_cancelled()
                    chunk = f.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    process.stdout.write(chunk)
        except FileNotFoundError:
            raise CommandError('cat', f"cat: {filename}: No such file or directory")
        except IsADirectoryError:
            raise CommandError('cat', f"cat: {filename}: Is a directory")
        except PermissionError:
            raise CommandError('cat', f"cat: {filename}: Permission denied")
    return 0
