"""
Exception types for tiledgemm.

Every check that would abort a batch job is raised as a typed exception so the
host application decides whether to stop or degrade. Most types also derive
from the matching builtin (ValueError, MemoryError, ...) so generic handlers
keep working.
"""


class TiledGemmError(Exception):
    """Base class for all tiledgemm errors."""


class ShapeMismatchError(TiledGemmError, ValueError):
    """Operand shapes are incompatible for the requested operation."""


class ArenaExhaustedError(TiledGemmError, MemoryError):
    """An arena allocation does not fit in the remaining capacity."""

    def __init__(self, requested: int, used: int, capacity: int):
        self.requested = requested
        self.used = used
        self.capacity = capacity
        super().__init__(
            f"Arena exhausted: requested {requested} bytes with "
            f"{used}/{capacity} bytes in use"
        )


class StaleMatrixError(TiledGemmError, RuntimeError):
    """A matrix was used after its arena was reset or released."""


class ZeroVarianceError(TiledGemmError, ValueError):
    """A column cannot be standardized because its variance is zero."""

    def __init__(self, column: int):
        self.column = column
        super().__init__(
            f"Column {column} has zero variance; pass epsilon > 0 to "
            f"standard_scale or drop the constant column"
        )


class DatasetSizeError(TiledGemmError, ValueError):
    """A raw dataset file does not hold exactly rows*cols float32 values."""


class DeviceError(TiledGemmError, RuntimeError):
    """The compute device or driver reported an error."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class KernelCompileError(DeviceError):
    """The multiply kernel failed to compile; message holds the diagnostic."""


class ParityError(TiledGemmError, AssertionError):
    """GPU and CPU results differ by more than the configured tolerance."""
