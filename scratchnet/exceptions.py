"""
exceptions.py
~~~~~~~~~~~~~

Errors raised by the matrix engine.

All of them derive from MatrixError, and also from the builtin exception
that best describes them, so callers can catch either.
"""


class MatrixError(Exception):
    """Base class for all matrix failures."""


class DimensionMismatch(MatrixError, ValueError):
    """Operand shapes are incompatible for the requested operation."""

    def __init__(self, operation: str, left: tuple, right: tuple):
        self.operation = operation
        self.left = left
        self.right = right
        super().__init__(
            f"Incompatible matrix dimensions for {operation}: "
            f"{left[0]}x{left[1]} and {right[0]}x{right[1]}"
        )


class IndexOutOfBounds(MatrixError, IndexError):
    """A coordinate lies outside the matrix's declared extent."""


class ParseError(MatrixError, ValueError):
    """A matrix literal contains a token that is not a number."""

    def __init__(self, token: str, text: str):
        self.token = token
        self.text = text
        super().__init__(f"Invalid number {token!r} in matrix literal {text!r}")
