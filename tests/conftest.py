"""
Shared fixtures for tiledgemm tests.

Without an NVIDIA GPU the CUDA simulator is switched on here, before numba
is first imported, so kernel and dispatcher tests run on any host. GPU
fixtures use a small tiling (4x4 blocks, 2x2 grid, 8x8 per dispatch) so
multi-dispatch and edge paths are exercised on small matrices.
"""

import os
import subprocess


def _has_nvidia_gpu() -> bool:
    try:
        result = subprocess.run(
            ["nvidia-smi", "-L"],
            capture_output=True,
            timeout=5,
            env={**os.environ, "LANG": "C"},
        )
        return result.returncode == 0 and b"GPU" in result.stdout
    except (FileNotFoundError, subprocess.TimeoutExpired):
        return False


if "NUMBA_ENABLE_CUDASIM" not in os.environ and not _has_nvidia_gpu():
    os.environ["NUMBA_ENABLE_CUDASIM"] = "1"

import pytest  # noqa: E402

import tiledgemm as tg  # noqa: E402


def pytest_configure(config):
    config.addinivalue_line("markers", "gpu: needs a physical CUDA device")


def pytest_collection_modifyitems(config, items):
    if not tg.is_simulator_enabled():
        return
    skip_gpu = pytest.mark.skip(reason="physical CUDA device required")
    for item in items:
        if "gpu" in item.keywords:
            item.add_marker(skip_gpu)


@pytest.fixture
def arena():
    with tg.Arena(1 << 20) as arena:
        yield arena


@pytest.fixture(scope="session")
def small_config():
    return tg.TilingConfig(block_size=4, grid_size=2)


@pytest.fixture(scope="session")
def executor(small_config):
    """One compiled executor shared by the whole run."""
    with tg.Executor(config=small_config) as exec:
        yield exec
