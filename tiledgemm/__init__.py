"""
tiledgemm - tiled shared-memory matrix multiplication on CUDA

Arena-backed host matrices, a tiled GPU multiply dispatched in fixed-size
grids, a CPU reference multiply for parity checking, and the polynomial
feature pipeline used by the regression workload.

Example:
    >>> import tiledgemm as tg
    >>>
    >>> with tg.Arena(1 << 24) as arena, tg.Executor() as exec:
    ...     a = tg.random_matrix(arena, 300, 200, rng=0)
    ...     b = tg.random_matrix(arena, 200, 100, rng=1)
    ...
    ...     gpu = tg.matmul(exec, arena, a, b)
    ...     cpu = tg.multiply(tg.alloc_matrix(arena, 300, 100), a, b)
    ...
    ...     report = tg.compare_results(gpu.to_numpy(), cpu.to_numpy())
    ...     print(f"Parity: {report.passed}")
"""

__version__ = "0.1.0"

# Core components
from .arena import Arena
from .matrix import (
    Matrix,
    alloc_matrix,
    filled_matrix,
    from_numpy,
    hstack,
    multiply,
    random_matrix,
)
from .features import (
    ColumnStats,
    add_bias,
    apply_scaling,
    design_matrix,
    polynomial_features,
    standard_scale,
)
from .buffer import DeviceBuffer
from .config import ParityConfig, TilingConfig
from .dispatch import DispatchBlock, gpu_multiply, matmul, plan_tile_grid
from .executor import Executor
from .kernels import KernelProgram, compile_program
from .benchmark import compare_results, format_report, run_parity_check
from .dataset import load_matrix, save_matrix
from .regression import PolynomialRegression
from . import backend
from . import errors

# Re-export backend utilities for convenience
from .backend import BackendType, is_cuda_available, is_simulator_enabled, get_default_backend
from .errors import (
    ArenaExhaustedError,
    DatasetSizeError,
    DeviceError,
    KernelCompileError,
    ParityError,
    ShapeMismatchError,
    StaleMatrixError,
    TiledGemmError,
    ZeroVarianceError,
)

__all__ = [
    # Core classes
    "Arena",
    "Matrix",
    "DeviceBuffer",
    "Executor",
    "KernelProgram",
    "DispatchBlock",
    "PolynomialRegression",
    "ColumnStats",
    "TilingConfig",
    "ParityConfig",
    # Matrix operations
    "alloc_matrix",
    "filled_matrix",
    "from_numpy",
    "random_matrix",
    "hstack",
    "multiply",
    # GPU path
    "compile_program",
    "plan_tile_grid",
    "gpu_multiply",
    "matmul",
    # Features
    "polynomial_features",
    "standard_scale",
    "apply_scaling",
    "add_bias",
    "design_matrix",
    # Harness and data
    "compare_results",
    "format_report",
    "run_parity_check",
    "load_matrix",
    "save_matrix",
    # Modules
    "backend",
    "errors",
    # Backend utilities
    "BackendType",
    "is_cuda_available",
    "is_simulator_enabled",
    "get_default_backend",
    # Errors
    "TiledGemmError",
    "ShapeMismatchError",
    "ArenaExhaustedError",
    "StaleMatrixError",
    "ZeroVarianceError",
    "DatasetSizeError",
    "DeviceError",
    "KernelCompileError",
    "ParityError",
    # Metadata
    "__version__",
]
