"""
Device buffers tagged with a logical matrix shape.

A DeviceBuffer mirrors a Matrix's float32 storage on the CUDA device. Its
shape is checked at dispatch time and on every host transfer. Release is
explicit: call ``cleanup()`` or let the owning Executor release it.
"""

import logging
from typing import Iterable, Optional

import numpy as np
from numba import cuda

from .errors import DeviceError, ShapeMismatchError
from .matrix import ELEMENT_DTYPE, ELEMENT_SIZE, Matrix

logger = logging.getLogger(__name__)


class DeviceBuffer:
    """
    Device-resident row-major float32 matrix storage.

    Attributes:
        rows: Logical row count
        cols: Logical column count
    """

    def __init__(self, rows: int, cols: int, handle):
        self.rows = rows
        self.cols = cols
        self._handle = handle
        self._freed = False

    @classmethod
    def empty(cls, rows: int, cols: int) -> "DeviceBuffer":
        """Allocate uninitialized device storage for a rows x cols matrix."""
        if rows <= 0 or cols <= 0:
            raise ValueError(f"Buffer dimensions must be positive, got {rows}x{cols}")
        try:
            handle = cuda.device_array(rows * cols, dtype=ELEMENT_DTYPE)
        except Exception as e:
            raise DeviceError(f"Device allocation of {rows}x{cols} float32 failed: {e}") from e
        logger.debug("allocated device buffer %dx%d", rows, cols)
        return cls(rows, cols, handle)

    @classmethod
    def from_matrix(cls, matrix: Matrix) -> "DeviceBuffer":
        """Upload a matrix's bytes into a new device buffer."""
        try:
            handle = cuda.to_device(matrix.data)
        except Exception as e:
            raise DeviceError(
                f"Upload of {matrix.rows}x{matrix.cols} matrix failed: {e}"
            ) from e
        logger.debug("uploaded %dx%d matrix", matrix.rows, matrix.cols)
        return cls(matrix.rows, matrix.cols, handle)

    @property
    def handle(self):
        """The underlying device array."""
        if self._freed:
            raise DeviceError(f"{self!r} used after cleanup")
        return self._handle

    @property
    def shape(self):
        return (self.rows, self.cols)

    @property
    def size(self) -> int:
        return self.rows * self.cols

    @property
    def nbytes(self) -> int:
        return self.size * ELEMENT_SIZE

    @property
    def freed(self) -> bool:
        return self._freed

    def _check_shape(self, matrix: Matrix):
        if matrix.shape != self.shape:
            raise ShapeMismatchError(
                f"Matrix is {matrix.rows}x{matrix.cols}, buffer is {self.rows}x{self.cols}"
            )

    def upload(self, matrix: Matrix):
        """Overwrite the buffer with a matrix of the same shape."""
        self._check_shape(matrix)
        self.handle.copy_to_device(matrix.data)

    def copy_to(self, matrix: Matrix) -> Matrix:
        """Read the buffer back into a host matrix of the same shape."""
        self._check_shape(matrix)
        matrix.data[:] = self.handle.copy_to_host()
        return matrix

    def to_numpy(self) -> np.ndarray:
        """Copy the buffer to a new (rows, cols) host array."""
        return self.handle.copy_to_host().reshape(self.rows, self.cols)

    def cleanup(self):
        """Release the device storage. Safe to call more than once."""
        if not self._freed:
            self._handle = None
            self._freed = True

    def __del__(self):
        self.cleanup()

    def __repr__(self) -> str:
        state = "freed" if self._freed else "live"
        return f"DeviceBuffer(rows={self.rows}, cols={self.cols}, {state})"


def release_all(buffers: Iterable[Optional[DeviceBuffer]]):
    """Clean up every buffer, skipping None entries."""
    for buffer in buffers:
        if buffer is not None:
            buffer.cleanup()
