"""
Feature preprocessing for the regression workload.

Builds the design matrix fed to the multiply path: polynomial expansion of
the raw columns, per-column standardization, then a bias column of ones.
"""

from dataclasses import dataclass
from typing import Tuple

import numpy as np

from .arena import Arena
from .errors import ShapeMismatchError, ZeroVarianceError
from .matrix import Matrix, alloc_matrix, filled_matrix, hstack


@dataclass
class ColumnStats:
    """Per-column mean and scale used by standard_scale."""

    means: np.ndarray
    scales: np.ndarray


def polynomial_features(arena: Arena, x: Matrix, degree: int) -> Matrix:
    """
    Expand each column into its powers 1..degree-1.

    Output columns are laid out in blocks by power: the first x.cols columns
    hold x**1, the next x.cols hold x**2, and so on. Powers are built by
    repeated multiplication.

    Args:
        arena: Arena to allocate the output from
        x: Input matrix
        degree: One past the highest power to emit

    Returns:
        Matrix of shape (x.rows, x.cols * (degree - 1))

    Raises:
        ValueError: If degree < 2 (no columns would be produced)
    """
    if degree < 2:
        raise ValueError(f"degree must be at least 2, got {degree}")

    result = alloc_matrix(arena, x.rows, x.cols * (degree - 1))
    src = x.to_numpy()
    out = result.to_numpy()

    power = src.copy()
    for p in range(degree - 1):
        if p > 0:
            power *= src
        out[:, p * x.cols:(p + 1) * x.cols] = power
    return result


def standard_scale(m: Matrix, epsilon: float = 0.0) -> ColumnStats:
    """
    Standardize every column in place to zero mean and unit variance.

    Statistics are computed in float64 with the population variance
    (divide by rows). Each element becomes (value - mean) / sqrt(var + epsilon).

    Args:
        m: Matrix to rewrite in place
        epsilon: Added to the variance before the square root

    Returns:
        ColumnStats holding the means and scales that were applied

    Raises:
        ValueError: If epsilon is negative
        ZeroVarianceError: If a column is constant and epsilon is 0. Raised
                           before any column is modified.
    """
    if epsilon < 0:
        raise ValueError(f"epsilon must be non-negative, got {epsilon}")

    values = m.to_numpy()
    wide = values.astype(np.float64)
    means = wide.mean(axis=0)
    variances = ((wide - means) ** 2).mean(axis=0)

    if epsilon == 0.0:
        constant = np.flatnonzero(variances == 0.0)
        if constant.size:
            raise ZeroVarianceError(int(constant[0]))

    stats = ColumnStats(means=means, scales=np.sqrt(variances + epsilon))
    values[...] = (wide - stats.means) / stats.scales
    return stats


def apply_scaling(m: Matrix, stats: ColumnStats):
    """Rewrite m in place with previously computed column statistics."""
    if m.cols != stats.means.shape[0]:
        raise ShapeMismatchError(
            f"Scaling was fitted on {stats.means.shape[0]} columns, matrix has {m.cols}"
        )
    values = m.to_numpy()
    values[...] = (values.astype(np.float64) - stats.means) / stats.scales


def add_bias(arena: Arena, m: Matrix, prepend: bool = True) -> Matrix:
    """Attach a column of ones, first by default, so weight 0 is the intercept."""
    ones = filled_matrix(arena, m.rows, 1, 1.0)
    if prepend:
        return hstack(arena, ones, m)
    return hstack(arena, m, ones)


def design_matrix(
    arena: Arena,
    x: Matrix,
    degree: int,
    epsilon: float = 0.0,
    stats: ColumnStats = None,
) -> Tuple[Matrix, ColumnStats]:
    """
    Build the bias-augmented, polynomial-expanded, standardized design matrix.

    When stats is given the expansion is scaled with it (for prediction on
    new data); otherwise scaling is fitted on x.

    Returns:
        (design matrix with a leading ones column, column statistics)
    """
    expanded = polynomial_features(arena, x, degree)
    if stats is None:
        stats = standard_scale(expanded, epsilon)
    else:
        apply_scaling(expanded, stats)
    return add_bias(arena, expanded), stats
