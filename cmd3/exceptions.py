"""
Custom exception hierarchy for cmd3.

This module defines a structured exception hierarchy that provides:
- Clear error categorization (lexing, parsing, dispatch, execution)
- Consistent error messages
- Proper exit codes

Usage:
    from cmd3.exceptions import ShellError, CommandNotFoundError

    try:
        dispatcher.run(line)
    except ShellError as e:
        print(f"Error: {e}")
        return e.exit_code
"""

from typing import List, Optional

from .exit_codes import (
    EXIT_CODE_CANNOT_EXECUTE,
    EXIT_CODE_COMMAND_NOT_FOUND,
    EXIT_CODE_GENERAL_ERROR,
    EXIT_CODE_USAGE_ERROR,
)


class ShellError(Exception):
    """
    Base class for all shell errors.

    All custom exceptions inherit from this class, so a host can catch every
    engine error with a single except clause.

    Attributes:
        message: Error message
        exit_code: Suggested exit code (default: 1)
    """

    def __init__(self, message: str, exit_code: int = EXIT_CODE_GENERAL_ERROR):
        super().__init__(message)
        self.message = message
        self.exit_code = exit_code

    def __str__(self):
        return self.message


# =============================================================================
# Lexing Errors
# =============================================================================

class LexError(ShellError):
    """
    Base class for tokenization errors.

    Attributes:
        line: The raw line being tokenized
        position: Offset of the offending character, if known
    """

    def __init__(self, message: str, line: Optional[str] = None, position: Optional[int] = None):
        super().__init__(message, exit_code=EXIT_CODE_USAGE_ERROR)
        self.line = line
        self.position = position


class UnterminatedQuoteError(LexError):
    """
    Raised when a quote is opened and never closed.

    Example:
        raise UnterminatedQuoteError("echo 'hello", quote_char="'", position=5)
    """

    def __init__(self, line: str, quote_char: str = '"', position: Optional[int] = None):
        message = f"Unterminated {quote_char} in command"
        super().__init__(message, line=line, position=position)
        self.quote_char = quote_char


class UnterminatedEscapeError(LexError):
    """Raised when a line ends with a lone backslash."""

    def __init__(self, line: str, position: Optional[int] = None):
        super().__init__("Trailing backslash escapes nothing", line=line, position=position)


# =============================================================================
# Parsing Errors
# =============================================================================

class ParseError(ShellError):
    """
    Base class for pipeline structure errors.

    Raised after tokenization succeeded but the token stream does not form
    a valid pipeline.
    """

    def __init__(self, message: str, line: Optional[str] = None):
        super().__init__(message, exit_code=EXIT_CODE_USAGE_ERROR)
        self.line = line


class EmptyStageError(ParseError):
    """
    Raised when a pipeline stage has no words.

    Happens for consecutive pipe separators and for a pipe at the start or
    end of the line.

    Example:
        raise EmptyStageError(index=1)
    """

    def __init__(self, index: int, line: Optional[str] = None):
        message = f"Syntax error: empty pipeline stage at position {index + 1}"
        super().__init__(message, line=line)
        self.index = index


# =============================================================================
# Dispatch Errors
# =============================================================================

class DispatchError(ShellError):
    """Base class for errors resolving stages against the registry."""
    pass


class CommandNotFoundError(DispatchError):
    """
    Raised when a pipeline references an unregistered command.

    Example:
        raise CommandNotFoundError("nonexistent")
    """

    def __init__(self, command: str):
        message = f"{command}: command not found"
        super().__init__(message, exit_code=EXIT_CODE_COMMAND_NOT_FOUND)
        self.command = command


# =============================================================================
# Registration Errors
# =============================================================================

class RegistrationError(ShellError):
    """Base class for errors raised while building the command registry."""

    def __init__(self, name: str, message: str):
        super().__init__(message)
        self.name = name


class CommandConflictError(RegistrationError):
    """
    Raised when registering a name that is already taken.

    Callers must unregister the existing command first.
    """

    def __init__(self, name: str):
        super().__init__(name, f"{name}: command already registered")


class InvalidCommandNameError(RegistrationError):
    """Raised for names containing whitespace or '|', or starting with '!'."""

    def __init__(self, name: str):
        super().__init__(name, f"{name!r}: invalid command name")


# =============================================================================
# Execution Errors
# =============================================================================

class CommandError(ShellError):
    """
    Raised by a command handler when its execution fails.

    Handlers raise this (or a subclass) to fail their pipeline stage with a
    message. The loop reports it and returns to the prompt.

    Example:
        raise CommandError("upper", "input is not valid UTF-8")
    """

    def __init__(self, command: str, message: str, exit_code: int = EXIT_CODE_GENERAL_ERROR):
        super().__init__(message, exit_code)
        self.command = command


class CommandSyntaxError(CommandError):
    """
    Raised when a command's arguments do not match its parser.

    Example:
        raise CommandSyntaxError("buzz", "the following arguments are required: message")
    """

    def __init__(self, command: str, details: str):
        message = f"{command}: {details}"
        super().__init__(command, message, exit_code=EXIT_CODE_USAGE_ERROR)
        self.details = details


class HelpRequested(CommandSyntaxError):
    """Raised by a command's parser when run with -h/--help"""

    def __init__(self, command: str, help_text: str):
        super().__init__(command, "help requested")
        self.help_text = help_text
        self.exit_code = 0


class ExternalCommandError(CommandError):
    """Raised when an external process exits with a non-zero status."""

    def __init__(self, argv: List[str], status: int):
        if status < 0:
            message = f"{argv[0]}: terminated by signal {-status}"
        else:
            message = f"{argv[0]}: exited with status {status}"
        super().__init__(argv[0], message, exit_code=status if status > 0 else 128 - status)
        self.argv = list(argv)
        self.status = status


class ExternalSpawnError(ShellError):
    """
    Raised when an external process cannot be started.

    Example:
        raise ExternalSpawnError(["nope"], "No such file or directory")
    """

    def __init__(self, argv: List[str], reason: str, exit_code: int = EXIT_CODE_COMMAND_NOT_FOUND):
        super().__init__(f"{argv[0]}: {reason}", exit_code)
        self.argv = list(argv)
        self.reason = reason


# =============================================================================
# Utility Functions
# =============================================================================

def translate_spawn_error(error: OSError, argv: List[str]) -> ExternalSpawnError:
    """
    Translate an OSError from process creation to an ExternalSpawnError.

    Args:
        error: The OSError raised by subprocess.Popen
        argv: The argv that failed to spawn

    Returns:
        ExternalSpawnError with a shell-style exit code
    """
    if isinstance(error, PermissionError):
        return ExternalSpawnError(argv, "Permission denied", exit_code=EXIT_CODE_CANNOT_EXECUTE)
    if isinstance(error, FileNotFoundError):
        return ExternalSpawnError(argv, "command not found", exit_code=EXIT_CODE_COMMAND_NOT_FOUND)
    return ExternalSpawnError(argv, error.strerror or str(error), exit_code=EXIT_CODE_CANNOT_EXECUTE)
