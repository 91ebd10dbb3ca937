"""
Shell configuration.

Settings come from keyword arguments or from CMD3_* environment variables.
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .pipeline import DEFAULT_KILL_TIMEOUT
from .streams import DEFAULT_BUFFER_SIZE

ENV_PREFIX = 'CMD3_'


@dataclass
class ShellConfig:
    """
    Settings for a Shell.

    Attributes:
        prompt: Prompt shown by the REPL
        buffer_size: Capacity in bytes of each in-memory pipe between stages
        kill_timeout: Seconds between SIGTERM and SIGKILL when cancelling
        history_length: Lines of in-memory readline history
    """

    prompt: str = '> '
    buffer_size: int = DEFAULT_BUFFER_SIZE
    kill_timeout: float = DEFAULT_KILL_TIMEOUT
    history_length: int = 1000

    def __post_init__(self):
        if self.buffer_size <= 0:
            raise ValueError(f"buffer_size must be positive, got {self.buffer_size}")
        if self.kill_timeout < 0:
            raise ValueError(f"kill_timeout must not be negative, got {self.kill_timeout}")

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None, **overrides) -> 'ShellConfig':
        """
        Build a config from CMD3_PROMPT, CMD3_BUFFER_SIZE, CMD3_KILL_TIMEOUT
        and CMD3_HISTORY_LENGTH. Keyword overrides win over the environment.

        Raises:
            ValueError: a numeric variable does not parse

        Example:
            >>> ShellConfig.from_env({'CMD3_PROMPT': 'demo> '}).prompt
            'demo> '
        """
        if env is None:
            env = os.environ
        values = {}
        if ENV_PREFIX + 'PROMPT' in env:
            values['prompt'] = env[ENV_PREFIX + 'PROMPT']
        for key, convert in (('buffer_size', int), ('kill_timeout', float),
                             ('history_length', int)):
            raw = env.get(ENV_PREFIX + key.upper())
            if raw is not None:
                try:
                    values[key] = convert(raw)
                except ValueError:
                    raise ValueError(f"{ENV_PREFIX}{key.upper()}: invalid value {raw!r}")
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
