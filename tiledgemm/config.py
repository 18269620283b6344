"""
Configuration for tiled multiplication.

Tiling constants, arena sizing and parity tolerances live here as validated
dataclasses instead of literals scattered through the kernel and dispatcher.
"""

import os
from dataclasses import dataclass

# CUDA caps a block at 1024 threads
MAX_THREADS_PER_BLOCK = 1024

DEFAULT_BLOCK_SIZE = 32
DEFAULT_GRID_SIZE = 64
DEFAULT_ARENA_CAPACITY = 64 * 1024 * 1024


@dataclass(frozen=True)
class TilingConfig:
    """
    Shape of a single dispatch.

    Attributes:
        block_size: Edge of a square thread block, and of the shared-memory
                    tiles each block loads per K-step
        grid_size: Edge of the square grid of blocks launched per dispatch
    """

    block_size: int = DEFAULT_BLOCK_SIZE
    grid_size: int = DEFAULT_GRID_SIZE

    def __post_init__(self):
        if self.block_size <= 0:
            raise ValueError(f"block_size must be positive, got {self.block_size}")
        if self.grid_size <= 0:
            raise ValueError(f"grid_size must be positive, got {self.grid_size}")
        if self.block_size * self.block_size > MAX_THREADS_PER_BLOCK:
            raise ValueError(
                f"block_size {self.block_size} needs {self.block_size ** 2} threads "
                f"per block, limit is {MAX_THREADS_PER_BLOCK}"
            )

    @property
    def dispatch_extent(self) -> int:
        """Output rows (and columns) covered by one dispatch."""
        return self.block_size * self.grid_size

    @classmethod
    def from_env(cls) -> "TilingConfig":
        """Build a config from TILEDGEMM_BLOCK_SIZE / TILEDGEMM_GRID_SIZE."""
        return cls(
            block_size=_int_from_env("TILEDGEMM_BLOCK_SIZE", DEFAULT_BLOCK_SIZE),
            grid_size=_int_from_env("TILEDGEMM_GRID_SIZE", DEFAULT_GRID_SIZE),
        )


@dataclass(frozen=True)
class ParityConfig:
    """
    Tolerances for comparing GPU output against the CPU reference.

    A pair passes when |gpu - cpu| <= atol + rtol * |cpu|. The relative
    term covers large products, where float32 rounding grows with magnitude.
    """

    atol: float = 1e-4
    rtol: float = 1e-3

    def __post_init__(self):
        if self.atol < 0 or self.rtol < 0:
            raise ValueError(
                f"Tolerances must be non-negative, got atol={self.atol}, rtol={self.rtol}"
            )


def arena_capacity_from_env() -> int:
    """Arena capacity in bytes, from TILEDGEMM_ARENA_BYTES if set."""
    capacity = _int_from_env("TILEDGEMM_ARENA_BYTES", DEFAULT_ARENA_CAPACITY)
    if capacity <= 0:
        raise ValueError(f"TILEDGEMM_ARENA_BYTES must be positive, got {capacity}")
    return capacity


def _int_from_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
