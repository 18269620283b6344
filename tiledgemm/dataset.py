"""
Raw float32 dataset files.

A dataset file is a flat row-major blob of float32 values with no header;
its byte length must be exactly rows * cols * 4.
"""

import logging
import os
from pathlib import Path
from typing import Union

import numpy as np

from .arena import Arena
from .errors import DatasetSizeError
from .matrix import ELEMENT_DTYPE, ELEMENT_SIZE, Matrix, alloc_matrix

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]


def load_matrix(arena: Arena, path: PathLike, rows: int, cols: int) -> Matrix:
    """
    Load a rows x cols matrix from a raw float32 file.

    Raises:
        FileNotFoundError: If the file does not exist
        DatasetSizeError: If the file size is not rows * cols * 4 bytes
    """
    path = Path(path)
    expected = rows * cols * ELEMENT_SIZE
    actual = path.stat().st_size
    if actual != expected:
        raise DatasetSizeError(
            f"{path}: expected {expected} bytes for a {rows}x{cols} float32 "
            f"matrix, file has {actual}"
        )

    matrix = alloc_matrix(arena, rows, cols)
    matrix.data[:] = np.fromfile(path, dtype=ELEMENT_DTYPE, count=rows * cols)
    logger.info("Loaded %dx%d matrix from %s", rows, cols, path)
    return matrix


def save_matrix(matrix: Matrix, path: PathLike):
    """Write a matrix as a raw row-major float32 blob."""
    matrix.data.astype(ELEMENT_DTYPE, copy=False).tofile(Path(path))
