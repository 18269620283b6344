"""
Tiled multiply dispatcher.

A single kernel launch covers at most ``block_size * grid_size`` rows and
columns of the output. Larger outputs are split into a 2-D walk of
dispatch blocks, each launched with its (x0, y0) origin, until the whole
output is covered. Every launch uses the same fixed grid; blocks that hang
over the output edge are masked by the kernel's bounds check.
"""

import logging
from dataclasses import dataclass
from typing import List

from numba import cuda

from .arena import Arena
from .buffer import DeviceBuffer
from .config import TilingConfig
from .errors import DeviceError
from .kernels import KernelProgram
from .matrix import Matrix, alloc_matrix, check_multiply_shapes

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DispatchBlock:
    """
    One dispatch of the tile grid.

    Attributes:
        x0: First output column covered
        y0: First output row covered
        width: Output columns stored by this dispatch
        height: Output rows stored by this dispatch
    """

    x0: int
    y0: int
    width: int
    height: int


def _ceil_div(a: int, b: int) -> int:
    return (a + b - 1) // b


def dispatch_count(rows: int, cols: int, config: TilingConfig) -> int:
    """Number of launches needed for a rows x cols output."""
    extent = config.dispatch_extent
    return _ceil_div(rows, extent) * _ceil_div(cols, extent)


def plan_tile_grid(rows: int, cols: int, config: TilingConfig) -> List[DispatchBlock]:
    """
    Partition a rows x cols output into dispatch blocks.

    Blocks are ordered row-major. Their stored ranges are pairwise disjoint
    and together cover [0, rows) x [0, cols) exactly.

    Raises:
        ValueError: If rows or cols is not positive
    """
    if rows <= 0 or cols <= 0:
        raise ValueError(f"Output dimensions must be positive, got {rows}x{cols}")

    extent = config.dispatch_extent
    blocks = []
    for by in range(_ceil_div(rows, extent)):
        for bx in range(_ceil_div(cols, extent)):
            x0 = bx * extent
            y0 = by * extent
            blocks.append(DispatchBlock(
                x0=x0,
                y0=y0,
                width=min(extent, cols - x0),
                height=min(extent, rows - y0),
            ))
    return blocks


def gpu_multiply(
    program: KernelProgram,
    a: DeviceBuffer,
    b: DeviceBuffer,
    r: DeviceBuffer,
) -> DeviceBuffer:
    """
    r = a x b with the tiled kernel, one launch per dispatch block.

    Buffer arguments are passed in fixed positions A, B, R. Shape arguments
    (m, n, l) are fixed for the call; (x0, y0) change per launch. Returns
    after the device has finished all launches.

    Raises:
        ShapeMismatchError: If a.cols != b.rows or r is not (a.rows, b.cols)
        DeviceError: If a launch or the final synchronization fails
    """
    check_multiply_shapes(a.shape, b.shape, r.shape)

    m, n, l = a.rows, a.cols, b.cols
    kernel = program.kernel
    grid_dim = program.grid_dim
    block_dim = program.block_dim
    a_handle, b_handle, r_handle = a.handle, b.handle, r.handle

    blocks = plan_tile_grid(m, l, program.config)
    logger.debug("gpu_multiply %dx%d by %dx%d: %d dispatch(es)", m, n, n, l, len(blocks))

    try:
        for block in blocks:
            logger.debug("dispatch x0=%d y0=%d (%dx%d)",
                         block.x0, block.y0, block.height, block.width)
            kernel[grid_dim, block_dim](a_handle, b_handle, r_handle,
                                        m, n, l, block.x0, block.y0)
        cuda.synchronize()
    except Exception as e:
        raise DeviceError(f"Tiled multiply of {m}x{n} by {n}x{l} failed: {e}") from e

    return r


def matmul(executor, arena: Arena, a: Matrix, b: Matrix) -> Matrix:
    """
    Multiply two host matrices on the device.

    Uploads a and b, runs gpu_multiply, reads the product into a new arena
    matrix and releases the device buffers.
    """
    check_multiply_shapes(a.shape, b.shape, (a.rows, b.cols))
    result = alloc_matrix(arena, a.rows, b.cols)

    buffers = []
    try:
        a_dev = executor.upload(a)
        buffers.append(a_dev)
        b_dev = executor.upload(b)
        buffers.append(b_dev)
        r_dev = executor.allocate(a.rows, b.cols)
        buffers.append(r_dev)

        executor.multiply(a_dev, b_dev, r_dev)
        r_dev.copy_to(result)
    finally:
        for buffer in buffers:
            executor.release(buffer)

    return result
