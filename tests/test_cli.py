"""
Tests for the tiledgemm command line interface.
"""

import numpy as np
import pytest

from tiledgemm import cli
from tiledgemm.cli import _tiling_from_args, build_parser, main

SMALL_TILING = ["--block-size", "4", "--grid-size", "2"]


class TestCli:
    """Test CLI subcommands."""

    def test_requires_command(self):
        """Test a subcommand is mandatory."""
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_parity_test_passes(self, capsys):
        """Test the parity subcommand on a small multi-dispatch shape."""
        code = main(SMALL_TILING + [
            "test", "--rows", "9", "--inner", "5", "--cols", "10",
            "--seed", "0", "--warmup", "0",
        ])

        assert code == 0
        out = capsys.readouterr().out
        assert "PASS" in out
        assert "Multiply 9x5 by 5x10" in out

    def test_invalid_tiling(self, caplog):
        """Test a block over the thread limit is reported with exit code 1."""
        code = main(["--block-size", "64", "test", "--rows", "1", "--inner", "1", "--cols", "1"])
        assert code == 1
        assert "threads" in caplog.text

    @pytest.mark.parametrize("flag", ["--block-size", "--grid-size"])
    def test_zero_tiling_rejected(self, flag):
        """Test an explicit zero is not mistaken for an unset option."""
        args = build_parser().parse_args([flag, "0", "info"])
        with pytest.raises(ValueError, match="must be positive"):
            _tiling_from_args(args)

        assert main([flag, "0", "test", "--rows", "1", "--inner", "1", "--cols", "1"]) == 1

    def test_zero_rows_rejected(self, caplog):
        """Test an empty problem shape exits with code 1."""
        code = main(SMALL_TILING + ["test", "--rows", "0", "--inner", "2", "--cols", "2"])
        assert code == 1
        assert "must be positive" in caplog.text

    def test_info(self, capsys):
        """Test the info subcommand."""
        assert main(["info"]) == 0
        out = capsys.readouterr().out
        assert "cuda_available:" in out
        assert "simulator:" in out

    def test_train_cpu(self, tmp_path, capsys):
        """Test training from raw files on the CPU path."""
        xs = np.linspace(-1.0, 1.0, 30, dtype=np.float32)
        (3.0 + 2.0 * xs).astype(np.float32).tofile(tmp_path / "y.bin")
        xs.tofile(tmp_path / "x.bin")

        code = main([
            "train", "--features", str(tmp_path / "x.bin"),
            "--targets", str(tmp_path / "y.bin"),
            "--rows", "30", "--cols", "1",
            "--epochs", "30", "--learning-rate", "0.25", "--cpu",
        ])

        assert code == 0
        out = capsys.readouterr().out
        assert "Weights (intercept first)" in out
        assert "Final MSE" in out

    def test_train_gpu(self, tmp_path, capsys):
        """Test training on the GPU path."""
        xs = np.linspace(-1.0, 1.0, 10, dtype=np.float32)
        xs.tofile(tmp_path / "x.bin")
        (1.0 - xs).astype(np.float32).tofile(tmp_path / "y.bin")

        code = main(SMALL_TILING + [
            "train", "--features", str(tmp_path / "x.bin"),
            "--targets", str(tmp_path / "y.bin"),
            "--rows", "10", "--cols", "1", "--epochs", "3", "--learning-rate", "0.5",
        ])

        assert code == 0
        assert "Final MSE" in capsys.readouterr().out

    def test_train_size_mismatch(self, tmp_path):
        """Test a wrongly sized dataset returns a failure code."""
        np.zeros(7, dtype=np.float32).tofile(tmp_path / "x.bin")
        np.zeros(8, dtype=np.float32).tofile(tmp_path / "y.bin")

        code = main([
            "train", "--features", str(tmp_path / "x.bin"),
            "--targets", str(tmp_path / "y.bin"),
            "--rows", "8", "--cols", "1", "--cpu",
        ])

        assert code == 1

    def test_train_without_device_uses_cpu(self, tmp_path, monkeypatch, capsys):
        """Test training falls back to the CPU multiply when no device is found."""
        def no_executor(*args, **kwargs):
            raise AssertionError("Executor must not be created without a device")

        monkeypatch.setattr(cli, "get_default_backend", lambda: "cpu")
        monkeypatch.setattr(cli, "Executor", no_executor)

        xs = np.linspace(-1.0, 1.0, 10, dtype=np.float32)
        xs.tofile(tmp_path / "x.bin")
        (2.0 * xs).astype(np.float32).tofile(tmp_path / "y.bin")

        code = main([
            "train", "--features", str(tmp_path / "x.bin"),
            "--targets", str(tmp_path / "y.bin"),
            "--rows", "10", "--cols", "1", "--epochs", "5",
        ])

        assert code == 0
        assert "Final MSE" in capsys.readouterr().out
