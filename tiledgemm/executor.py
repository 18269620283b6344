"""
Executor: owner of the compiled multiply kernel and its device buffers.

Example:
    >>> with Executor() as exec:
    ...     a_dev = exec.upload(a)
    ...     b_dev = exec.upload(b)
    ...     r_dev = exec.allocate(a.rows, b.cols)
    ...     exec.multiply(a_dev, b_dev, r_dev)
    ...     r_dev.copy_to(r)
"""

import logging
from typing import List

from numba import cuda

from .backend import is_cuda_available, is_simulator_enabled, validate_backend
from .buffer import DeviceBuffer, release_all
from .config import TilingConfig
from .dispatch import gpu_multiply
from .errors import DeviceError
from .kernels import KernelProgram, compile_program
from .matrix import Matrix

logger = logging.getLogger(__name__)


class Executor:
    """
    Compute context for tiled multiplication.

    Buffers allocated through an executor are released together by
    ``cleanup()`` (or on context exit). Executors hold no locks: callers must
    serialize multiplies that share buffers.
    """

    def __init__(self, backend: str = "auto", config: TilingConfig = None):
        """
        Create an executor and compile the multiply kernel.

        Args:
            backend: "cuda" or "auto"
            config: Tiling constants (defaults to 32x32 blocks, 64x64 grid)

        Raises:
            ValueError: If backend is invalid
            DeviceError: If no CUDA target is available
            KernelCompileError: If the kernel fails to compile
        """
        self.backend = validate_backend(backend)
        if not is_cuda_available():
            raise DeviceError(
                "No CUDA device available. Set NUMBA_ENABLE_CUDASIM=1 before "
                "importing numba to run on the simulator"
            )

        self.config = config or TilingConfig()
        self.program: KernelProgram = compile_program(self.config)
        self._buffers: List[DeviceBuffer] = []
        self._freed = False

        logger.info("Executor ready on %s%s", self.backend,
                    " (simulator)" if is_simulator_enabled() else "")

    def _check_live(self):
        if self._freed:
            raise DeviceError("Executor used after cleanup")

    def allocate(self, rows: int, cols: int) -> DeviceBuffer:
        """Allocate an uninitialized rows x cols device buffer."""
        self._check_live()
        buffer = DeviceBuffer.empty(rows, cols)
        self._buffers.append(buffer)
        return buffer

    def upload(self, matrix: Matrix) -> DeviceBuffer:
        """Copy a host matrix into a new device buffer."""
        self._check_live()
        buffer = DeviceBuffer.from_matrix(matrix)
        self._buffers.append(buffer)
        return buffer

    def release(self, buffer: DeviceBuffer):
        """Release one buffer before the executor is cleaned up."""
        buffer.cleanup()
        self._buffers = [b for b in self._buffers if b is not buffer]

    def multiply(self, a: DeviceBuffer, b: DeviceBuffer, r: DeviceBuffer) -> DeviceBuffer:
        """r = a x b on the device; blocks until the device is idle."""
        self._check_live()
        return gpu_multiply(self.program, a, b, r)

    def synchronize(self):
        """Block until all queued device work has completed."""
        cuda.synchronize()

    @property
    def live_buffers(self) -> int:
        return sum(1 for b in self._buffers if not b.freed)

    def cleanup(self):
        """Release every buffer allocated through this executor."""
        if self._freed:
            return
        release_all(self._buffers)
        self._buffers = []
        self._freed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.cleanup()
        return False

    def __repr__(self) -> str:
        return (
            f"Executor(backend='{self.backend}', block_size={self.config.block_size}, "
            f"grid_size={self.config.grid_size}, live_buffers={self.live_buffers})"
        )
