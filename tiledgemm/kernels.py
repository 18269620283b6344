"""
Tiled shared-memory matrix multiply kernel.

Each thread block computes one block_size x block_size tile of R = A x B.
The K dimension is walked in steps of block_size: the block cooperatively
loads one tile of A and one tile of B into shared memory, synchronizes,
accumulates the partial dot product in a per-thread register, and
synchronizes again before the next load overwrites the tiles.

Loads outside A or B are zero-padded and the final store is skipped for
threads outside R, so matrices whose sizes are not multiples of the block
size need no separate code path.

Buffers are flat row-major float32 arrays. A dispatch covers the
``block_size * grid_size`` square of R whose origin is (x0, y0); x is the
column axis and y the row axis.
"""

import logging
from dataclasses import dataclass
from typing import Any

import numpy as np
from numba import cuda

from .config import TilingConfig
from .errors import KernelCompileError

logger = logging.getLogger(__name__)

KERNEL_VERSION = 1

# A, B, R, m, n, l, x0, y0
KERNEL_SIGNATURE = "void(float32[::1], float32[::1], float32[::1], int64, int64, int64, int64, int64)"


def build_tiled_matmul(block_size: int):
    """
    Create the kernel function for a block size.

    Shared tile shapes must be compile-time constants, so the block size is
    closed over rather than passed as an argument.
    """
    BLOCK = block_size

    def tiled_matmul(A, B, R, m, n, l, x0, y0):
        As = cuda.shared.array((BLOCK, BLOCK), dtype=np.float32)
        Bs = cuda.shared.array((BLOCK, BLOCK), dtype=np.float32)

        tx = cuda.threadIdx.x
        ty = cuda.threadIdx.y
        row = y0 + cuda.blockIdx.y * BLOCK + ty
        col = x0 + cuda.blockIdx.x * BLOCK + tx

        acc = np.float32(0.0)
        for k0 in range(0, n, BLOCK):
            if row < m and k0 + tx < n:
                As[ty, tx] = A[row * n + k0 + tx]
            else:
                As[ty, tx] = np.float32(0.0)

            if col < l and k0 + ty < n:
                Bs[ty, tx] = B[(k0 + ty) * l + col]
            else:
                Bs[ty, tx] = np.float32(0.0)

            cuda.syncthreads()

            for k in range(BLOCK):
                acc += As[ty, k] * Bs[k, tx]

            cuda.syncthreads()

        if row < m and col < l:
            R[row * l + col] = acc

    return tiled_matmul


@dataclass(frozen=True)
class KernelProgram:
    """A compiled multiply kernel and the tiling it was built for."""

    kernel: Any
    config: TilingConfig
    version: int = KERNEL_VERSION

    @property
    def block_dim(self):
        return (self.config.block_size, self.config.block_size)

    @property
    def grid_dim(self):
        return (self.config.grid_size, self.config.grid_size)


def compile_program(config: TilingConfig = None) -> KernelProgram:
    """
    Compile the tiled multiply kernel eagerly.

    Args:
        config: Tiling constants (defaults to 32x32 blocks, 64x64 grid)

    Returns:
        KernelProgram ready for dispatch

    Raises:
        KernelCompileError: With the compiler diagnostic if compilation fails
    """
    config = config or TilingConfig()
    try:
        kernel = cuda.jit(KERNEL_SIGNATURE)(build_tiled_matmul(config.block_size))
    except Exception as e:
        raise KernelCompileError(
            f"Failed to compile tiled_matmul v{KERNEL_VERSION} "
            f"(block_size={config.block_size}): {e}"
        ) from e

    logger.info("Compiled tiled_matmul v%d: block %dx%d, grid %dx%d",
                KERNEL_VERSION, config.block_size, config.block_size,
                config.grid_size, config.grid_size)
    return KernelProgram(kernel=kernel, config=config)
