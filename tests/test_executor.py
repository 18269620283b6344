"""
Tests for kernel compilation, device buffers and the Executor.
"""

import numpy as np
import pytest
from numba import cuda

import tiledgemm as tg
from tiledgemm import executor as executor_module
from tiledgemm import kernels
from tiledgemm.buffer import DeviceBuffer, release_all


class TestKernel:
    """Test compilation and a single dispatch."""

    def test_compile_program(self, small_config):
        """Test the compiled program carries its launch geometry."""
        program = tg.compile_program(small_config)
        assert program.config is small_config
        assert program.block_dim == (4, 4)
        assert program.grid_dim == (2, 2)
        assert program.version == kernels.KERNEL_VERSION

    def test_compile_failure(self, small_config, monkeypatch):
        """Test compiler errors surface as KernelCompileError."""
        def broken_jit(*args, **kwargs):
            raise RuntimeError("ptxas fatal")

        monkeypatch.setattr(kernels.cuda, "jit", broken_jit)
        with pytest.raises(tg.KernelCompileError, match="ptxas fatal"):
            tg.compile_program(small_config)

    def test_offset_dispatch_writes_only_its_region(self, executor):
        """Test a dispatch at (x0, y0) stores only inside its extent."""
        m = n = l = 9
        a = np.ones(m * n, dtype=np.float32)
        b = np.ones(n * l, dtype=np.float32)
        r = np.zeros(m * l, dtype=np.float32)

        a_dev = cuda.to_device(a)
        b_dev = cuda.to_device(b)
        r_dev = cuda.to_device(r)
        program = executor.program
        program.kernel[program.grid_dim, program.block_dim](
            a_dev, b_dev, r_dev, m, n, l, 8, 0
        )
        cuda.synchronize()
        out = r_dev.copy_to_host().reshape(m, l)

        expected = np.zeros((m, l), dtype=np.float32)
        expected[:8, 8:] = n
        np.testing.assert_array_equal(out, expected)


class TestDeviceBuffer:
    """Test DeviceBuffer class."""

    def test_from_matrix_roundtrip(self, arena):
        """Test upload and read-back."""
        m = tg.random_matrix(arena, 3, 4, rng=0)
        buf = DeviceBuffer.from_matrix(m)
        assert buf.shape == (3, 4)
        assert buf.size == 12
        assert buf.nbytes == 48
        np.testing.assert_array_equal(buf.to_numpy(), m.to_numpy())
        buf.cleanup()

    def test_upload_and_copy_to(self, arena):
        """Test overwriting a buffer and copying into a host matrix."""
        buf = DeviceBuffer.empty(2, 2)
        src = tg.from_numpy(arena, np.array([[1, 2], [3, 4]], dtype=np.float32))
        dst = tg.alloc_matrix(arena, 2, 2)

        buf.upload(src)
        buf.copy_to(dst)

        np.testing.assert_array_equal(dst.data, src.data)
        buf.cleanup()

    def test_shape_checked_on_transfer(self, arena):
        """Test transfers reject matrices of another shape."""
        buf = DeviceBuffer.empty(2, 3)
        with pytest.raises(tg.ShapeMismatchError):
            buf.upload(tg.alloc_matrix(arena, 3, 2))
        with pytest.raises(tg.ShapeMismatchError):
            buf.copy_to(tg.alloc_matrix(arena, 6, 1))
        buf.cleanup()

    def test_invalid_dimensions(self):
        """Test empty buffers raise error."""
        with pytest.raises(ValueError, match="must be positive"):
            DeviceBuffer.empty(0, 1)

    def test_cleanup(self):
        """Test cleanup is idempotent and blocks further use."""
        buf = DeviceBuffer.empty(1, 1)
        buf.cleanup()
        buf.cleanup()
        assert buf.freed
        assert "freed" in repr(buf)
        with pytest.raises(tg.DeviceError, match="after cleanup"):
            buf.handle

    def test_release_all_skips_none(self):
        """Test releasing a partially filled buffer list."""
        buffers = [DeviceBuffer.empty(1, 2), None, DeviceBuffer.empty(2, 1)]
        release_all(buffers)
        assert buffers[0].freed
        assert buffers[2].freed


class TestExecutor:
    """Test Executor class."""

    def test_executor_context_manager(self, small_config):
        """Test executor as context manager."""
        with tg.Executor(config=small_config) as exec:
            assert exec.backend == "cuda"
            assert not exec._freed
        assert exec._freed

    def test_invalid_backend(self):
        """Test invalid backend raises error."""
        with pytest.raises(ValueError, match="Invalid backend"):
            tg.Executor(backend="cpu")

    def test_no_device(self, monkeypatch):
        """Test a missing CUDA target raises DeviceError."""
        monkeypatch.setattr(executor_module, "is_cuda_available", lambda: False)
        with pytest.raises(tg.DeviceError, match="No CUDA device"):
            tg.Executor()

    def test_buffer_tracking(self, small_config, arena):
        """Test cleanup releases every buffer the executor handed out."""
        exec = tg.Executor(config=small_config)
        a = exec.allocate(2, 2)
        b = exec.upload(tg.alloc_matrix(arena, 2, 2))
        assert exec.live_buffers == 2

        exec.release(a)
        assert a.freed
        assert exec.live_buffers == 1

        exec.cleanup()
        assert b.freed
        assert exec.live_buffers == 0

    def test_use_after_cleanup(self, small_config):
        """Test operations on a cleaned-up executor raise error."""
        exec = tg.Executor(config=small_config)
        exec.cleanup()
        with pytest.raises(tg.DeviceError, match="after cleanup"):
            exec.allocate(1, 1)

    def test_repr(self, small_config):
        """Test executor repr."""
        with tg.Executor(config=small_config) as exec:
            assert "block_size=4" in repr(exec)
            assert "grid_size=2" in repr(exec)
