"""
Utility functions for PyTorch tensor conversions.

Moves data between 2-D float32 PyTorch tensors and arena matrices, and
provides a torch-facing multiply on top of the tiled GPU path.

Requires the ``torch`` extra.
"""

from typing import Optional

import numpy as np
import torch

from .arena import Arena
from .dispatch import matmul
from .matrix import Matrix, alloc_matrix, check_multiply_shapes


def validate_tensor_compatible(tensor: torch.Tensor) -> None:
    """
    Validate that a tensor can be copied into a matrix.

    Raises:
        TypeError: If tensor is not a torch.Tensor
        ValueError: If tensor is not a 2-D float32 CPU tensor
    """
    if not isinstance(tensor, torch.Tensor):
        raise TypeError(f"Expected torch.Tensor, got {type(tensor)}")

    if tensor.dtype != torch.float32:
        raise ValueError(
            f"Only float32 tensors supported, got {tensor.dtype}. "
            f"Convert with: tensor.float()"
        )

    if tensor.device.type != "cpu":
        raise ValueError(
            f"Only CPU tensors supported, got device '{tensor.device}'. "
            f"Move to CPU with: tensor.cpu()"
        )

    if tensor.dim() != 2:
        raise ValueError(f"Only 2-D tensors supported, got {tensor.dim()} dimensions")


def tensor_to_matrix(
    arena: Arena,
    tensor: torch.Tensor,
    existing: Optional[Matrix] = None,
) -> Matrix:
    """
    Copy a 2-D tensor into an arena matrix.

    Args:
        arena: Arena to allocate from when existing is None
        tensor: float32 CPU tensor
        existing: Optional matrix of the same shape to reuse

    Returns:
        Matrix holding the tensor's values
    """
    validate_tensor_compatible(tensor)
    rows, cols = tensor.shape

    if existing is None:
        matrix = alloc_matrix(arena, rows, cols)
    else:
        if existing.shape != (rows, cols):
            raise ValueError(
                f"Existing matrix shape {existing.shape} doesn't match tensor shape {(rows, cols)}"
            )
        matrix = existing

    matrix.to_numpy()[...] = tensor.detach().contiguous().numpy()
    return matrix


def matrix_to_tensor(matrix: Matrix, copy: bool = True) -> torch.Tensor:
    """
    Wrap or copy a matrix as a (rows, cols) float32 tensor.

    With copy=False the tensor shares arena storage and must not outlive the
    arena generation the matrix was carved in.
    """
    array = matrix.to_numpy()
    if copy:
        array = np.array(array)
    return torch.from_numpy(array)


def mm(executor, input1: torch.Tensor, input2: torch.Tensor) -> torch.Tensor:
    """
    Matrix product of two 2-D tensors on the tiled GPU path.

    Example:
        >>> a = torch.randn(64, 32)
        >>> b = torch.randn(32, 16)
        >>> c = mm(exec, a, b)
    """
    validate_tensor_compatible(input1)
    validate_tensor_compatible(input2)

    m, k = input1.shape
    _, n = input2.shape
    check_multiply_shapes(tuple(input1.shape), tuple(input2.shape), (m, n))

    capacity = (m * k + k * n + m * n) * 4 + 3 * 8
    with Arena(capacity) as arena:
        a = tensor_to_matrix(arena, input1)
        b = tensor_to_matrix(arena, input2)
        result = matmul(executor, arena, a, b)
        return matrix_to_tensor(result, copy=True)
