"""Tests for the decompiler errors module."""

import pytest

from asm2hlsl.decompiler.errors import (
    DecodeError,
    DecompilerError,
    MalformedDeclarationError,
    MissingStageError,
    UnbalancedBlockError,
)


def test_message_without_line():
    error = DecompilerError("Unexpected token")
    assert str(error) == "Unexpected token"
    assert error.message == "Unexpected token"
    assert error.line is None


def test_message_with_line():
    error = DecompilerError("Unexpected token", line=12)
    assert str(error) == "Unexpected token at line 12"
    assert error.line == 12


@pytest.mark.parametrize(
    "error_class",
    [MalformedDeclarationError, DecodeError, UnbalancedBlockError, MissingStageError],
)
def test_subclasses(error_class):
    """Every decompiler error can be caught through the base class."""
    with pytest.raises(DecompilerError) as excinfo:
        raise error_class("Broken", line=3)
    assert str(excinfo.value) == "Broken at line 3"
