"""
CommandContext - Encapsulates the state a command sees while it runs.

This module provides the CommandContext dataclass that decouples command
handlers from the Shell class: handlers reach the registry, the environment,
the cancellation signal and the async message queue through the context,
which keeps them testable without a running loop.
"""

import os
import queue
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional

from .control_flow import CancellationToken

if TYPE_CHECKING:
    from .command_registry import CommandRegistry
    from .commands import Command


@dataclass
class CommandContext:
    """
    Encapsulates all context needed for command execution.

    This provides commands with access to:
    - The command registry (read-only use: lookup and listing)
    - Environment variables passed to external stages
    - The pipeline's cancellation token
    - A queue of messages printed before the next prompt

    Example:
        >>> from cmd3.context import CommandContext
        >>> ctx = CommandContext(env={'FOO': 'bar'})
        >>> ctx.add_async_message('done')
        >>> ctx.drain_messages()
        ['done']
    """

    registry: Optional['CommandRegistry'] = None
    env: Dict[str, str] = field(default_factory=lambda: dict(os.environ))
    token: CancellationToken = field(default_factory=CancellationToken)
    messages: 'queue.Queue[str]' = field(default_factory=queue.Queue)

    @property
    def cancelled(self) -> bool:
        """True once the running pipeline has been cancelled"""
        return self.token.cancelled

    def for_pipeline(self, token: CancellationToken) -> 'CommandContext':
        """
        Derive the context for one pipeline run.

        The registry, environment and message queue are shared; the
        cancellation token belongs to the run.
        """
        return CommandContext(registry=self.registry, env=self.env,
                              token=token, messages=self.messages)

    def lookup(self, name: str) -> Optional['Command']:
        """
        Get a registered command by name.

        Example:
            >>> ctx.lookup('help')
            <HelpCommand ...>
        """
        if self.registry is None:
            return None
        return self.registry.lookup(name)

    def command_names(self) -> List[str]:
        """Registered command names in lexicographic order"""
        if self.registry is None:
            return []
        return self.registry.list()

    def add_async_message(self, message: str):
        """
        Queue a message for the loop to print before the next prompt.

        Safe to call from any stage thread.
        """
        self.messages.put(message)

    def drain_messages(self) -> List[str]:
        """Remove and return all queued messages, oldest first"""
        drained = []
        while True:
            try:
                drained.append(self.messages.get_nowait())
            except queue.Empty:
                return drained

    def __repr__(self):
        """String representation for debugging"""
        return (
            f"CommandContext(commands={len(self.registry) if self.registry else 0}, "
            f"env_vars={len(self.env)}, "
            f"cancelled={self.cancelled}, "
            f"pending_messages={self.messages.qsize()})"
        )
