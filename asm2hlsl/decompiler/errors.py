"""
Exceptions and error handling for the shader assembly decompiler.

This module defines custom exceptions that are raised during the decompilation process.
"""


class DecompilerError(Exception):
    """Exception raised for errors during shader assembly decompilation.

    This is the base exception class used throughout the decompiler. It optionally
    carries the 1-based line of the assembly listing where the problem was found.

    Examples:
        >>> raise DecompilerError("Unexpected token", line=12)
        DecompilerError: Unexpected token at line 12
    """

    def __init__(self, message: str, line: int | None = None):
        """Initialize the exception with a message and optional source line.

        Args:
            message: The error message
            line: Optional 1-based line number in the assembly listing
        """
        self.message = message
        self.line = line

        location_info = f" at line {line}" if line is not None else ""
        super().__init__(f"{message}{location_info}")


class MalformedDeclarationError(DecompilerError):
    """A header declaration line does not have the fields its section requires."""


class DecodeError(DecompilerError):
    """An instruction could not be decoded, usually because operands are missing."""


class UnbalancedBlockError(DecompilerError):
    """Block-opening and block-closing markers do not pair up (strict mode only)."""


class MissingStageError(DecompilerError):
    """The listing has no shader stage tag, so there is no body to decode."""
