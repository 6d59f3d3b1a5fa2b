"""
matrix.py
~~~~~~~~~

Dense 2-D matrix of floats with row-major backing storage.

A Matrix is a value: every operation that returns a Matrix hands back a new
instance with its own list, so two live matrices never share storage.
Arithmetic is done in plain Python, one element at a time, which keeps the
order of floating-point accumulation explicit.

Matrices can be written and read as bracketed literals::

    >>> m = Matrix.from_literal("[[1, 2], [3, 4]]")
    >>> m.to_canonical_string(1)
    '[[1.0,2.0],[3.0,4.0]]'
"""

import re
from typing import Callable, Iterable, List, Tuple

from scratchnet.exceptions import DimensionMismatch, IndexOutOfBounds, ParseError

ROW_DELIMITER = '],['

# Decimal or exponent notation, or inf/infinity/nan in any case
NUMBER_PATTERN = re.compile(
    r'[+-]?(?:(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?|inf|infinity|nan)',
    re.IGNORECASE
)


def parse_literal(text: str) -> Tuple[List[float], int, int]:
    """
    Parse a bracketed matrix literal such as ``"[[1,2],[3,4]]"``.

    Whitespace is ignored anywhere. Rows are found by splitting on the
    ``"],["`` delimiter and every bracket is then stripped from each row, so
    unbalanced input like ``"[[1],[2]"`` is still read as a 2x1 matrix and
    ``"[1,2,3]"`` as a 1x3 matrix. Row lengths are not checked against each
    other; the column count is taken from the last row.

    Args:
        text: The literal to parse

    Returns:
        tuple: (data, rows, cols) with data in row-major order

    Raises:
        ParseError: If any token is not a plain decimal, exponent or
            inf/nan number. Python-only spellings like ``"1_0"`` are rejected.
    """
    compact = ''.join(text.split())
    chunks = [
        chunk.replace('[', '').replace(']', '')
        for chunk in compact.split(ROW_DELIMITER)
    ]

    data: List[float] = []
    cols = 0
    for chunk in chunks:
        tokens = chunk.split(',')
        cols = len(tokens)
        for token in tokens:
            if not NUMBER_PATTERN.fullmatch(token):
                raise ParseError(token, text)
            data.append(float(token))

    return data, len(chunks), cols


class Matrix:
    """
    Dense matrix with ``rows`` x ``cols`` floats stored row-major in ``data``.

    The element at (r, c) lives at ``data[r * cols + c]``. Build instances
    with the factory classmethods rather than the constructor.
    """

    __slots__ = ['rows', 'cols', 'data']

    def __init__(self, data: Iterable[float] = (), rows: int = 0, cols: int = 0):
        self.data: List[float] = list(data)
        self.rows = rows
        self.cols = cols

    # ------------------------------------------------------------------
    # Factories
    # ------------------------------------------------------------------

    @classmethod
    def empty(cls) -> 'Matrix':
        """Create a 0x0 matrix."""
        return cls()

    @classmethod
    def from_values(cls, values: Iterable[float], rows: int, cols: int) -> 'Matrix':
        """
        Create a matrix from a flat row-major sequence.

        The values are copied. The caller must supply exactly
        ``rows * cols`` of them; the length is not checked.
        """
        return cls(values, rows, cols)

    @classmethod
    def from_literal(cls, text: str) -> 'Matrix':
        """
        Create a matrix from a bracketed literal.

        Raises:
            ParseError: If any token is not a valid number
        """
        data, rows, cols = parse_literal(text)
        return cls(data, rows, cols)

    @classmethod
    def zeros(cls, rows: int, cols: int) -> 'Matrix':
        """Create an all-zero matrix of the given shape."""
        return cls([0.0] * (rows * cols), rows, cols)

    # ------------------------------------------------------------------
    # In-place state changes
    # ------------------------------------------------------------------

    def zero_fill(self, rows: int, cols: int) -> None:
        """Reset to an all-zero ``rows`` x ``cols`` matrix."""
        self.clear()
        self.data = [0.0] * (rows * cols)
        self.rows = rows
        self.cols = cols

    def load_literal(self, text: str) -> None:
        """Reset from a bracketed literal, discarding the current contents."""
        data, rows, cols = parse_literal(text)
        self.clear()
        self.data = data
        self.rows = rows
        self.cols = cols

    def clear(self) -> None:
        """Reset to an empty 0x0 matrix."""
        self.data = []
        self.rows = 0
        self.cols = 0

    # ------------------------------------------------------------------
    # Element access
    # ------------------------------------------------------------------

    def size(self) -> Tuple[int, int]:
        """Return ``(rows, cols)``."""
        return self.rows, self.cols

    @property
    def shape(self) -> Tuple[int, int]:
        return self.size()

    def _offset(self, row: int, col: int) -> int:
        if not (0 <= row < self.rows and 0 <= col < self.cols
                and row * self.cols + col < len(self.data)):
            raise IndexOutOfBounds(
                f"Index ({row}, {col}) out of bounds for "
                f"{self.rows}x{self.cols} matrix"
            )
        return row * self.cols + col

    def _check_index(self, index: int) -> int:
        if not 0 <= index < len(self.data):
            raise IndexOutOfBounds(
                f"Linear index {index} out of bounds for "
                f"{self.rows}x{self.cols} matrix"
            )
        return index

    def get(self, row: int, col: int) -> float:
        """
        Return the element at (row, col).

        Raises:
            IndexOutOfBounds: If either coordinate is outside the matrix
        """
        return self.data[self._offset(row, col)]

    def set(self, row: int, col: int, value: float) -> None:
        """
        Overwrite the element at (row, col).

        Raises:
            IndexOutOfBounds: If either coordinate is outside the matrix
        """
        self.data[self._offset(row, col)] = value

    def get_at_index(self, index: int) -> float:
        """Return the element at a 0-based row-major linear index."""
        return self.data[self._check_index(index)]

    def set_at_index(self, index: int, value: float) -> None:
        """Overwrite the element at a 0-based row-major linear index."""
        self.data[self._check_index(index)] = value

    # ------------------------------------------------------------------
    # Arithmetic
    # ------------------------------------------------------------------

    def _is_complete(self) -> bool:
        return len(self.data) == self.rows * self.cols

    def _check_same_shape(self, other: 'Matrix', operation: str) -> None:
        if (self.rows != other.rows or self.cols != other.cols or
                not self._is_complete() or not other._is_complete()):
            raise DimensionMismatch(operation, self.size(), other.size())

    def add(self, other: 'Matrix') -> 'Matrix':
        """
        Elementwise sum.

        Raises:
            DimensionMismatch: If the shapes differ or either operand is ragged
        """
        self._check_same_shape(other, 'add')
        result = Matrix.zeros(self.rows, self.cols)
        for i in range(len(self.data)):
            result.data[i] = self.data[i] + other.data[i]
        return result

    def subtract(self, other: 'Matrix') -> 'Matrix':
        """
        Elementwise difference ``self - other``.

        Raises:
            DimensionMismatch: If the shapes differ or either operand is ragged
        """
        self._check_same_shape(other, 'subtract')
        result = Matrix.zeros(self.rows, self.cols)
        for i in range(len(self.data)):
            result.data[i] = self.data[i] - other.data[i]
        return result

    def dot_prod(self, other: 'Matrix') -> 'Matrix':
        """
        Matrix product ``self @ other``.

        Each cell is summed over the contraction index in ascending order,
        starting from 0.0. Golden values elsewhere depend on this order, so
        do not reorder or vectorize the inner loop.

        Raises:
            DimensionMismatch: If ``self.cols != other.rows``, or if either
                operand holds a different number of values than its shape
                (as a ragged literal does)
        """
        if (self.cols != other.rows or
                not self._is_complete() or not other._is_complete()):
            raise DimensionMismatch('dot_prod', self.size(), other.size())

        result = Matrix(rows=self.rows, cols=other.cols)
        for i in range(self.rows):
            for k in range(other.cols):
                prod_sum = 0.0
                for j in range(self.cols):
                    prod_sum += (
                        self.data[i * self.cols + j]
                        * other.data[j * other.cols + k]
                    )
                result.data.append(prod_sum)
        return result

    def transpose(self) -> 'Matrix':
        """Return a new matrix with rows and columns swapped."""
        result = Matrix.zeros(self.cols, self.rows)
        for i in range(self.rows):
            for j in range(self.cols):
                result.data[j * self.rows + i] = self.data[i * self.cols + j]
        return result

    def map(self, func: Callable[[float], float]) -> None:
        """Apply ``func`` to every element in place."""
        for i in range(len(self.data)):
            self.data[i] = func(self.data[i])

    def map_with_index(self, func: Callable[[float, int], float]) -> None:
        """Apply ``func(value, linear_index)`` to every element in place."""
        for i in range(len(self.data)):
            self.data[i] = func(self.data[i], i)

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    def to_canonical_string(self, decimal_places: int = 0) -> str:
        """
        Render as ``"[[v00,v01],[v10,v11]]"``.

        Every value is written in fixed-point with exactly
        ``decimal_places`` fractional digits; 0 gives integer-looking values
        with no decimal point. An empty matrix renders as ``"[]"``.
        """
        if not self.data or not self.cols:
            return '[]'

        rows = []
        for start in range(0, len(self.data), self.cols):
            values = self.data[start:start + self.cols]
            rows.append(
                '[' + ','.join(f"{v:.{decimal_places}f}" for v in values) + ']'
            )
        return '[' + ','.join(rows) + ']'

    def as_flat_sequence(self) -> List[float]:
        """Return a copy of the data in row-major order."""
        return list(self.data)

    def copy(self) -> 'Matrix':
        """Return an independent copy."""
        return Matrix(self.data, self.rows, self.cols)

    # ------------------------------------------------------------------
    # Python protocols
    # ------------------------------------------------------------------

    __copy__ = copy

    def __deepcopy__(self, memo) -> 'Matrix':
        return self.copy()

    def __add__(self, other: 'Matrix') -> 'Matrix':
        return self.add(other)

    def __sub__(self, other: 'Matrix') -> 'Matrix':
        return self.subtract(other)

    def __matmul__(self, other: 'Matrix') -> 'Matrix':
        return self.dot_prod(other)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Matrix):
            return NotImplemented
        return self.size() == other.size() and self.data == other.data

    __hash__ = None

    def __str__(self) -> str:
        return self.to_canonical_string()

    def __repr__(self) -> str:
        return f"<Matrix {self.rows}x{self.cols} {self.to_canonical_string(4)}>"
