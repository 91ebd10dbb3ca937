"""Command registry for cmd3.

This module provides the CommandRegistry class which handles:
- Storing command handlers under unique names
- Looking up commands for dispatch and completion
- Listing names in lexicographic order
- Guarding every access with a reader-writer lock

One registry is built by the host before the loop starts and passed to the
dispatcher, executor and completion engine.
"""

import logging
from typing import Dict, Iterable, List, Optional, TYPE_CHECKING

from .exceptions import CommandConflictError, CommandNotFoundError, InvalidCommandNameError
from .lexer import EXTERNAL_MARKER, PIPE_CHAR
from .utils.rwlock import ReadWriteLock

if TYPE_CHECKING:
    from .commands import Command

logger = logging.getLogger(__name__)


def validate_command_name(name: str) -> None:
    """
    Check that a name can be typed as the first word of a stage.

    Raises:
        InvalidCommandNameError: name is empty, contains whitespace or '|',
            or starts with the external marker '!'
    """
    if (not name or name.startswith(EXTERNAL_MARKER) or PIPE_CHAR in name
            or any(c.isspace() for c in name)):
        raise InvalidCommandNameError(name)


class CommandRegistry:
    """Registry of command handlers.

    Reads (lookup, list, resolve) run concurrently with each other; register
    and unregister take the lock exclusively.

    Attributes:
        _commands: Internal dictionary mapping names to commands
    """

    def __init__(self):
        """Initialize an empty command registry."""
        self._commands: Dict[str, 'Command'] = {}
        self._lock = ReadWriteLock()

    def register(self, name: str, command: 'Command') -> None:
        """Register a command under a name.

        There is no implicit overwrite: unregister the existing command first.

        Args:
            name: Command name typed by the user
            command: Handler implementing the Command capability

        Raises:
            CommandConflictError: name is already registered
            InvalidCommandNameError: name cannot appear as a stage's first word

        Examples:
            >>> registry = CommandRegistry()
            >>> registry.register('upper', UpperCommand())
        """
        validate_command_name(name)
        with self._lock.write_locked():
            if name in self._commands:
                raise CommandConflictError(name)
            self._commands[name] = command
        logger.debug("Registered command %r", name)

    def add(self, command: 'Command') -> 'Command':
        """Register a command under its own ``name`` and return it."""
        self.register(command.name, command)
        return command

    def unregister(self, name: str) -> 'Command':
        """Remove a command.

        Returns:
            The command that was registered under ``name``

        Raises:
            CommandNotFoundError: name is not registered
        """
        with self._lock.write_locked():
            command = self._commands.pop(name, None)
        if command is None:
            raise CommandNotFoundError(name)
        logger.debug("Unregistered command %r", name)
        return command

    def lookup(self, name: str) -> Optional['Command']:
        """Get a command by name.

        Args:
            name: Command name to retrieve

        Returns:
            The command if registered, None otherwise
        """
        with self._lock.read_locked():
            return self._commands.get(name)

    def list(self) -> List[str]:
        """List all registered names.

        Returns:
            Names sorted lexicographically, independent of registration order
        """
        with self._lock.read_locked():
            return sorted(self._commands)

    def resolve(self, names: Iterable[str]) -> Dict[str, 'Command']:
        """Resolve several names under a single read acquisition.

        Raises:
            CommandNotFoundError: for the first name (in iteration order)
                that is not registered
        """
        resolved = {}
        with self._lock.read_locked():
            for name in names:
                command = self._commands.get(name)
                if command is None:
                    raise CommandNotFoundError(name)
                resolved[name] = command
        return resolved

    def __contains__(self, name: str) -> bool:
        with self._lock.read_locked():
            return name in self._commands

    def __len__(self) -> int:
        with self._lock.read_locked():
            return len(self._commands)

    def __repr__(self) -> str:
        """String representation of the registry."""
        names = self.list()
        return f"CommandRegistry({len(names)} commands: {', '.join(names)})"
