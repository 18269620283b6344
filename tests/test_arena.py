"""
Tests for the arena bump allocator and arena-backed matrices.
"""

import numpy as np
import pytest

import tiledgemm as tg
from tiledgemm.arena import WORD_SIZE


class TestArenaAlloc:
    """Test allocation, rounding and exhaustion."""

    def test_capacity_rounded_to_word(self):
        """Test capacity is rounded up to the word size."""
        arena = tg.Arena(10)
        assert arena.capacity == 16
        assert arena.used == 0
        assert arena.remaining == 16

    def test_invalid_capacity(self):
        """Test non-positive capacity raises error."""
        with pytest.raises(ValueError, match="must be positive"):
            tg.Arena(0)

    def test_alloc_rounds_used_bytes(self):
        """Test each allocation advances by a whole number of words."""
        arena = tg.Arena(64)
        region = arena.alloc(5)
        assert region.shape == (5,)
        assert arena.used == WORD_SIZE

        arena.alloc(8)
        assert arena.used == 2 * WORD_SIZE

    def test_regions_do_not_overlap(self):
        """Test two live regions never alias."""
        arena = tg.Arena(64)
        first = arena.alloc(12)
        second = arena.alloc(12)
        first.fill(1)
        second.fill(2)
        assert np.all(first == 1)
        assert np.all(second == 2)

    def test_exhaustion_leaves_state_untouched(self):
        """Test a failed allocation raises without corrupting the arena."""
        arena = tg.Arena(64)
        kept = arena.alloc(40)
        kept.fill(7)

        with pytest.raises(tg.ArenaExhaustedError) as excinfo:
            arena.alloc(32)

        assert excinfo.value.requested == 32
        assert excinfo.value.used == 40
        assert excinfo.value.capacity == 64
        assert arena.used == 40
        assert np.all(kept == 7)

        # The remaining space is still usable
        arena.alloc(24)
        assert arena.remaining == 0

    def test_exhausted_error_is_memory_error(self):
        """Test generic MemoryError handlers catch exhaustion."""
        arena = tg.Arena(8)
        with pytest.raises(MemoryError):
            arena.alloc(9)

    def test_negative_size(self):
        """Test negative sizes are rejected."""
        arena = tg.Arena(8)
        with pytest.raises(ValueError, match="non-negative"):
            arena.alloc(-1)

    def test_alloc_array(self):
        """Test typed allocation."""
        arena = tg.Arena(64)
        floats = arena.alloc_array(3, np.float32)
        assert floats.dtype == np.float32
        assert floats.shape == (3,)
        assert arena.used == 16


class TestArenaLifecycle:
    """Test reset, release and generations."""

    def test_reset_rewinds(self):
        """Test reset makes the full capacity available again."""
        arena = tg.Arena(32)
        arena.alloc(32)
        assert arena.remaining == 0

        arena.reset()
        assert arena.used == 0
        assert arena.generation == 1
        arena.alloc(32)

    def test_alloc_after_reset_is_zeroed(self):
        """Test reused bytes are zeroed before they are handed out."""
        arena = tg.Arena(32)
        arena.alloc(32).fill(0xAB)
        arena.reset()
        assert np.all(arena.alloc(32) == 0)

    def test_release(self):
        """Test release drops the buffer and blocks further allocation."""
        arena = tg.Arena(32)
        arena.release()
        assert arena.released
        assert arena.capacity == 0
        with pytest.raises(ValueError, match="released"):
            arena.alloc(8)

        # Idempotent
        arena.release()
        assert arena.generation == 1

    def test_context_manager(self):
        """Test arena as context manager."""
        with tg.Arena(32) as arena:
            arena.alloc(8)
            assert not arena.released
        assert arena.released

    def test_matrix_goes_stale_on_reset(self):
        """Test matrices carved before a reset refuse access."""
        arena = tg.Arena(1024)
        m = tg.alloc_matrix(arena, 2, 2)
        arena.reset()
        with pytest.raises(tg.StaleMatrixError):
            m.data
        with pytest.raises(tg.StaleMatrixError):
            m[0, 0]

    def test_matrix_goes_stale_on_release(self):
        """Test matrices carved before a release refuse access."""
        with tg.Arena(1024) as arena:
            m = tg.alloc_matrix(arena, 2, 2)
        with pytest.raises(tg.StaleMatrixError):
            m.to_numpy()

    def test_repr(self):
        """Test arena repr."""
        arena = tg.Arena(16)
        arena.alloc(8)
        assert repr(arena) == "Arena(used=8, capacity=16, generation=0)"
