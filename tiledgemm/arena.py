"""
Bump allocator over a pre-sized host buffer.

All matrix storage is carved from an Arena. Nothing is freed individually:
``reset()`` rewinds the whole arena and ``release()`` drops it.

Example:
    >>> with Arena(1024 * 1024) as arena:
    ...     raw = arena.alloc(64)
    ...     floats = arena.alloc_array(16, np.float32)
"""

import logging

import numpy as np

from .errors import ArenaExhaustedError

logger = logging.getLogger(__name__)

# Allocations are rounded up to a machine word so every region is aligned
WORD_SIZE = 8


def _round_to_word(n_bytes: int) -> int:
    return (n_bytes + WORD_SIZE - 1) // WORD_SIZE * WORD_SIZE


class Arena:
    """
    Fixed-capacity bump allocator backed by a zero-filled NumPy byte buffer.

    Attributes:
        capacity: Size of the backing buffer in bytes
        used: Bytes handed out since creation or the last reset
        generation: Incremented on every reset/release; views carved in an
                    older generation are stale
    """

    def __init__(self, capacity_bytes: int):
        """
        Create an arena.

        Args:
            capacity_bytes: Size of the backing buffer in bytes

        Raises:
            ValueError: If capacity_bytes is not positive
            ArenaExhaustedError: If the host cannot provide the buffer
        """
        if capacity_bytes <= 0:
            raise ValueError(f"Arena capacity must be positive, got {capacity_bytes}")

        capacity = _round_to_word(capacity_bytes)
        try:
            self._buffer = np.zeros(capacity, dtype=np.uint8)
        except MemoryError:
            raise ArenaExhaustedError(capacity, 0, 0) from None

        self._capacity = capacity
        self._used = 0
        self._generation = 0
        self._released = False

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def used(self) -> int:
        return self._used

    @property
    def remaining(self) -> int:
        return self._capacity - self._used

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def released(self) -> bool:
        return self._released

    def alloc(self, n_bytes: int) -> np.ndarray:
        """
        Carve n_bytes of zeroed, previously unused storage.

        Args:
            n_bytes: Number of bytes requested

        Returns:
            uint8 view of length n_bytes into the arena buffer

        Raises:
            ValueError: If n_bytes is negative or the arena was released
            ArenaExhaustedError: If the request does not fit
        """
        if self._released:
            raise ValueError("Arena has been released")
        if n_bytes < 0:
            raise ValueError(f"Allocation size must be non-negative, got {n_bytes}")

        rounded = _round_to_word(n_bytes)
        if self._used + rounded > self._capacity:
            raise ArenaExhaustedError(n_bytes, self._used, self._capacity)

        start = self._used
        self._used += rounded

        region = self._buffer[start:start + n_bytes]
        # reset() leaves old bytes behind
        region.fill(0)
        logger.debug("arena alloc %d bytes at offset %d (%d/%d used)",
                     n_bytes, start, self._used, self._capacity)
        return region

    def alloc_array(self, count: int, dtype=np.float32) -> np.ndarray:
        """Carve a zeroed 1-D array of count elements of dtype."""
        dtype = np.dtype(dtype)
        return self.alloc(count * dtype.itemsize).view(dtype)

    def reset(self):
        """Rewind to empty without touching memory. Earlier views go stale."""
        self._used = 0
        self._generation += 1

    def release(self):
        """Drop the backing buffer. The arena cannot allocate afterwards."""
        if self._released:
            return
        self._buffer = np.empty(0, dtype=np.uint8)
        self._capacity = 0
        self._used = 0
        self._generation += 1
        self._released = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
        return False

    def __repr__(self) -> str:
        return (
            f"Arena(used={self._used}, capacity={self._capacity}, "
            f"generation={self._generation})"
        )
