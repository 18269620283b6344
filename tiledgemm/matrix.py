"""
Dense row-major float32 matrices carved from an Arena.

A Matrix is a lightweight view: shape plus a slice of arena storage. It has
no lifetime of its own and becomes stale once its arena is reset or
released. Element (r, c) lives at offset ``r * cols + c``.

Example:
    >>> with Arena(1 << 20) as arena:
    ...     a = filled_matrix(arena, 4, 4, 1.0)
    ...     b = filled_matrix(arena, 4, 3, 2.0)
    ...     c = alloc_matrix(arena, 4, 3)
    ...     multiply(c, a, b)
"""

from typing import Optional, Tuple, Union

import numpy as np
from numba import njit

from .arena import Arena
from .errors import ShapeMismatchError, StaleMatrixError

ELEMENT_DTYPE = np.float32
ELEMENT_SIZE = np.dtype(ELEMENT_DTYPE).itemsize


class Matrix:
    """
    Row-major float32 matrix view over arena storage.

    Attributes:
        rows: Number of rows (> 0)
        cols: Number of columns (> 0)
    """

    __slots__ = ("rows", "cols", "_data", "_arena", "_generation")

    def __init__(self, rows: int, cols: int, data: np.ndarray, arena: Optional[Arena] = None):
        if data.shape != (rows * cols,):
            raise ShapeMismatchError(
                f"Backing data holds {data.size} elements, expected {rows}x{cols}"
            )
        self.rows = rows
        self.cols = cols
        self._data = data
        self._arena = arena
        self._generation = arena.generation if arena is not None else 0

    @property
    def data(self) -> np.ndarray:
        """Flat float32 storage of length rows*cols."""
        self._check_live()
        return self._data

    @property
    def shape(self) -> Tuple[int, int]:
        return (self.rows, self.cols)

    @property
    def size(self) -> int:
        return self.rows * self.cols

    @property
    def nbytes(self) -> int:
        return self.size * ELEMENT_SIZE

    def _check_live(self):
        arena = self._arena
        if arena is not None and (arena.released or arena.generation != self._generation):
            raise StaleMatrixError(
                f"{self.rows}x{self.cols} matrix used after its arena was reset or released"
            )

    def _offset(self, r: int, c: int) -> int:
        if not (0 <= r < self.rows and 0 <= c < self.cols):
            raise IndexError(
                f"Index ({r}, {c}) out of bounds for {self.rows}x{self.cols} matrix"
            )
        return r * self.cols + c

    def item(self, r: int, c: int) -> float:
        """Bounds-checked element read."""
        return float(self.data[self._offset(r, c)])

    def __getitem__(self, index: Tuple[int, int]) -> float:
        r, c = index
        return self.item(r, c)

    def __setitem__(self, index: Tuple[int, int], value: float):
        r, c = index
        self.data[self._offset(r, c)] = value

    def row(self, r: int) -> np.ndarray:
        """View of row r."""
        self._offset(r, 0)
        start = r * self.cols
        return self.data[start:start + self.cols]

    def to_numpy(self) -> np.ndarray:
        """2-D (rows, cols) view of the storage; no copy."""
        return self.data.reshape(self.rows, self.cols)

    def fill(self, value: float):
        self.data.fill(value)

    def reshape(self, rows: int, cols: int) -> "Matrix":
        """Reinterpret the same storage with another shape of equal size."""
        if rows * cols != self.size:
            raise ShapeMismatchError(
                f"Cannot reshape {self.rows}x{self.cols} matrix to {rows}x{cols}"
            )
        return Matrix(rows, cols, self.data, self._arena)

    def __repr__(self) -> str:
        return f"Matrix(rows={self.rows}, cols={self.cols})"


def alloc_matrix(arena: Arena, rows: int, cols: int) -> Matrix:
    """
    Carve a zeroed rows x cols matrix from the arena.

    Raises:
        ValueError: If rows or cols is not positive
        ArenaExhaustedError: If the arena cannot hold the matrix
    """
    if rows <= 0 or cols <= 0:
        raise ValueError(f"Matrix dimensions must be positive, got {rows}x{cols}")
    data = arena.alloc_array(rows * cols, ELEMENT_DTYPE)
    return Matrix(rows, cols, data, arena)


def from_numpy(arena: Arena, array: np.ndarray) -> Matrix:
    """Copy a 2-D array (or 1-D, as a single column) into a new matrix."""
    array = np.asarray(array)
    if array.ndim == 1:
        array = array.reshape(-1, 1)
    if array.ndim != 2:
        raise ValueError(f"Expected a 1-D or 2-D array, got {array.ndim} dimensions")

    rows, cols = array.shape
    matrix = alloc_matrix(arena, rows, cols)
    matrix.to_numpy()[...] = array
    return matrix


def filled_matrix(arena: Arena, rows: int, cols: int, value: float) -> Matrix:
    matrix = alloc_matrix(arena, rows, cols)
    matrix.fill(value)
    return matrix


def random_matrix(
    arena: Arena,
    rows: int,
    cols: int,
    rng: Union[np.random.Generator, int, None] = None,
    low: float = 0.0,
    high: float = 1000.0,
) -> Matrix:
    """Matrix with elements drawn uniformly from [low, high)."""
    if not isinstance(rng, np.random.Generator):
        rng = np.random.default_rng(rng)
    matrix = alloc_matrix(arena, rows, cols)
    matrix.data[:] = rng.uniform(low, high, size=rows * cols).astype(ELEMENT_DTYPE)
    return matrix


def hstack(arena: Arena, a: Matrix, b: Matrix) -> Matrix:
    """
    Concatenate two matrices horizontally.

    Row i of the result is row i of a followed by row i of b.

    Raises:
        ShapeMismatchError: If a and b have different row counts
    """
    if a.rows != b.rows:
        raise ShapeMismatchError(
            f"hstack needs equal row counts, got {a.rows} and {b.rows}"
        )

    result = alloc_matrix(arena, a.rows, a.cols + b.cols)
    out = result.to_numpy()
    out[:, :a.cols] = a.to_numpy()
    out[:, a.cols:] = b.to_numpy()
    return result


@njit
def _multiply_loop(result, a, b, m, n, l):
    for i in range(m):
        for j in range(l):
            acc = np.float32(0.0)
            for k in range(n):
                acc += a[i * n + k] * b[k * l + j]
            result[i * l + j] = acc


def check_multiply_shapes(a_shape, b_shape, r_shape):
    """
    Validate (rows, cols) shapes for R = A x B.

    Raises:
        ShapeMismatchError: If A.cols != B.rows or R is not (A.rows, B.cols)
    """
    if a_shape[1] != b_shape[0]:
        raise ShapeMismatchError(
            f"Inner dimensions differ: A is {a_shape[0]}x{a_shape[1]}, "
            f"B is {b_shape[0]}x{b_shape[1]}"
        )
    expected = (a_shape[0], b_shape[1])
    if tuple(r_shape) != expected:
        raise ShapeMismatchError(
            f"Result is {r_shape[0]}x{r_shape[1]}, expected {expected[0]}x{expected[1]}"
        )


def multiply(result: Matrix, a: Matrix, b: Matrix) -> Matrix:
    """
    CPU reference multiply: result = a x b.

    Triple loop, row by row with k ascending and float32 accumulation. This
    is the correctness oracle for the GPU path and its performance baseline.

    Raises:
        ShapeMismatchError: On incompatible shapes
    """
    check_multiply_shapes(a.shape, b.shape, result.shape)
    _multiply_loop(result.data, a.data, b.data, a.rows, a.cols, b.cols)
    return result
