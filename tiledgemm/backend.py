"""
Backend utilities for tiled multiplication.

Provides backend type enumeration, CUDA detection and a device limit report.
"""

import logging
from enum import Enum
from typing import Any, Dict

logger = logging.getLogger(__name__)


class BackendType(Enum):
    """Backends a multiply can run on."""

    CPU = "cpu"
    CUDA = "cuda"
    AUTO = "auto"

    def __str__(self) -> str:
        return self.value


def is_simulator_enabled() -> bool:
    """
    Check if numba's CUDA simulator is standing in for a device.

    Returns:
        True if NUMBA_ENABLE_CUDASIM was set before numba was imported.
    """
    from numba import config

    return bool(config.ENABLE_CUDASIM)


def is_cuda_available() -> bool:
    """
    Check if a CUDA target is usable (physical device or simulator).

    Returns:
        True if kernels can be launched, False otherwise.
    """
    if is_simulator_enabled():
        return True

    from numba import cuda

    try:
        return bool(cuda.is_available())
    except Exception as e:  # driver probing can raise on broken installs
        logger.debug("CUDA probe failed: %s", e)
        return False


def get_default_backend() -> str:
    """
    Get the default backend based on available hardware.

    "cuda" can be passed to Executor. "cpu" means there is no device and
    products should run on the CPU reference multiply (executor=None).

    Returns:
        "cuda" if a CUDA target is usable, otherwise "cpu"
    """
    return "cuda" if is_cuda_available() else "cpu"


def validate_backend(backend: str) -> str:
    """
    Validate and normalize a device backend string.

    Only device backends are accepted: the CPU path is the reference
    multiply, not an executor.

    Args:
        backend: Backend string ("cuda" or "auto")

    Returns:
        Normalized backend string

    Raises:
        ValueError: If backend is invalid
    """
    backend_lower = backend.lower()

    if backend_lower == BackendType.AUTO.value:
        return BackendType.CUDA.value

    if backend_lower != BackendType.CUDA.value:
        raise ValueError(
            f"Invalid backend '{backend}'. Must be 'cuda' or 'auto'"
        )

    return backend_lower


def device_info() -> Dict[str, Any]:
    """
    Describe the current CUDA target.

    Returns:
        Dictionary with availability, simulator flag and, for physical
        devices, the name, compute capability and launch limits.
    """
    info: Dict[str, Any] = {
        "cuda_available": is_cuda_available(),
        "simulator": is_simulator_enabled(),
    }
    if not info["cuda_available"] or info["simulator"]:
        return info

    from numba import cuda

    device = cuda.get_current_device()
    name = device.name
    info["name"] = name.decode() if isinstance(name, bytes) else name
    info["compute_capability"] = device.compute_capability
    info["max_threads_per_block"] = device.MAX_THREADS_PER_BLOCK
    info["max_grid_dim_x"] = device.MAX_GRID_DIM_X
    info["max_grid_dim_y"] = device.MAX_GRID_DIM_Y
    info["max_shared_memory_per_block"] = device.MAX_SHARED_MEMORY_PER_BLOCK
    return info
