"""
Parity and benchmark harness for CPU vs GPU multiplication.

Generates random operands, runs the CPU reference multiply and the tiled
GPU multiply on them, compares every output element within a tolerance and
times both paths. The speedup is informational only.

Example:
    >>> with Executor() as exec:
    ...     report = run_parity_check(exec, 512, 256, 384, seed=0)
    ...     print(format_report(report))
"""

import logging
import time
import warnings
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

import numpy as np

from .arena import Arena
from .config import ParityConfig
from .errors import ParityError, ShapeMismatchError
from .matrix import ELEMENT_SIZE, alloc_matrix, multiply, random_matrix

logger = logging.getLogger(__name__)


@dataclass
class BenchmarkResult:
    """
    Timing statistics for one operation.

    Attributes:
        name: Operation name
        framework: "cpu" or "gpu"
        times_sec: Raw timing measurements in seconds
        min_ms / mean_ms / median_ms / std_ms: Statistics in milliseconds
        cv: Coefficient of variation (std/mean)
    """

    name: str
    framework: str = "unknown"
    times_sec: List[float] = field(default_factory=list)
    warmup_runs: int = 0
    timing_runs: int = 1
    min_ms: float = 0.0
    mean_ms: float = 0.0
    median_ms: float = 0.0
    std_ms: float = 0.0
    cv: float = 0.0

    @property
    def is_reliable(self) -> bool:
        """Single runs are never flagged; repeated runs need CV < 0.1."""
        return self.timing_runs < 2 or self.cv < 0.1

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ParityReport:
    """
    Outcome of comparing GPU output against the CPU reference.

    Attributes:
        shape: (m, k, n) of the multiply; k is None when unknown
        passed: Whether every element was within tolerance
        max_abs_diff: Largest |gpu - cpu|
        worst_index: (row, col) of the largest difference
        mismatches: Number of elements outside tolerance
        cpu / gpu: Timings, when measured
    """

    shape: Tuple[int, Optional[int], int]
    passed: bool
    max_abs_diff: float
    worst_index: Tuple[int, int]
    mismatches: int
    tolerance: ParityConfig
    cpu: Optional[BenchmarkResult] = None
    gpu: Optional[BenchmarkResult] = None

    @property
    def speedup(self) -> Optional[float]:
        """CPU mean time over GPU mean time."""
        if self.cpu is None or self.gpu is None or self.gpu.mean_ms == 0:
            return None
        return self.cpu.mean_ms / self.gpu.mean_ms


def compute_stats(times: List[float]) -> Dict[str, Any]:
    """
    Compute statistical measures for timing data.

    Args:
        times: List of timing measurements in seconds

    Returns:
        Dictionary with min, mean, median, std, cv
    """
    times_arr = np.array(times)
    mean_time = float(np.mean(times_arr))
    std_time = float(np.std(times_arr, ddof=1)) if len(times) > 1 else 0.0
    return {
        "min": float(np.min(times_arr)),
        "mean": mean_time,
        "median": float(np.median(times_arr)),
        "std": std_time,
        "cv": std_time / mean_time if mean_time > 0 else float("inf"),
    }


def time_operation(
    operation_fn: Callable,
    *args,
    warmup_runs: int = 0,
    timing_runs: int = 1,
    synchronize_fn: Optional[Callable] = None,
    name: str = "operation",
    framework: str = "unknown",
) -> BenchmarkResult:
    """
    Wall-clock an operation.

    Each timed run covers the call plus synchronize_fn, so asynchronous
    device work is included.

    Args:
        operation_fn: Function to time
        *args: Arguments to pass to operation_fn
        warmup_runs: Untimed runs first (JIT compilation, caches)
        timing_runs: Timed runs
        synchronize_fn: Called after each run, e.g. numba.cuda.synchronize
        name: Operation name for reporting
        framework: "cpu" or "gpu"

    Returns:
        BenchmarkResult with timing statistics
    """
    if timing_runs < 1:
        raise ValueError(f"timing_runs must be at least 1, got {timing_runs}")

    for _ in range(warmup_runs):
        operation_fn(*args)
        if synchronize_fn:
            synchronize_fn()

    times = []
    for _ in range(timing_runs):
        start = time.perf_counter()
        operation_fn(*args)
        if synchronize_fn:
            synchronize_fn()
        times.append(time.perf_counter() - start)

    stats = compute_stats(times)
    result = BenchmarkResult(
        name=name,
        framework=framework,
        times_sec=times,
        warmup_runs=warmup_runs,
        timing_runs=timing_runs,
        min_ms=stats["min"] * 1000,
        mean_ms=stats["mean"] * 1000,
        median_ms=stats["median"] * 1000,
        std_ms=stats["std"] * 1000,
        cv=stats["cv"],
    )
    if not result.is_reliable:
        warnings.warn(
            f"{name} ({framework}): timings vary widely (CV={result.cv:.3f}). "
            f"Results may be unreliable."
        )
    return result


def compare_results(
    gpu: np.ndarray,
    cpu: np.ndarray,
    tolerance: ParityConfig = None,
    inner: Optional[int] = None,
) -> ParityReport:
    """
    Compare two (m, n) results element by element.

    A pair passes when |gpu - cpu| <= atol + rtol * |cpu|. inner, the shared
    dimension of the multiply, is only used for reporting.

    Raises:
        ShapeMismatchError: If the arrays have different shapes
    """
    tolerance = tolerance or ParityConfig()
    if gpu.shape != cpu.shape:
        raise ShapeMismatchError(f"Result shapes differ: {gpu.shape} vs {cpu.shape}")

    gpu64 = gpu.astype(np.float64)
    cpu64 = cpu.astype(np.float64)
    diff = np.abs(gpu64 - cpu64)
    bad = ~(diff <= tolerance.atol + tolerance.rtol * np.abs(cpu64))

    worst = int(np.argmax(diff))
    worst_index = tuple(int(i) for i in np.unravel_index(worst, diff.shape))
    return ParityReport(
        shape=(cpu.shape[0], inner, cpu.shape[1]),
        passed=not bool(bad.any()),
        max_abs_diff=float(diff.flat[worst]),
        worst_index=worst_index,
        mismatches=int(bad.sum()),
        tolerance=tolerance,
    )


def arena_bytes_for(m: int, k: int, n: int) -> int:
    """Arena capacity that holds A, B and both results, with word padding."""
    elements = m * k + k * n + 2 * m * n
    return elements * ELEMENT_SIZE + 4 * 8


def run_parity_check(
    executor,
    m: int,
    k: int,
    n: int,
    seed: Optional[int] = None,
    tolerance: ParityConfig = None,
    warmup_runs: int = 1,
    timing_runs: int = 1,
    check: bool = False,
) -> ParityReport:
    """
    Multiply random (m x k) and (k x n) matrices on the CPU and the GPU.

    Operand elements are drawn from [0, 1000). Both paths are timed
    separately: the GPU time covers the dispatches and the blocking device
    synchronization, not the uploads or read-back.

    Args:
        executor: Executor to run the GPU path on
        m, k, n: Problem shape
        seed: RNG seed for the operands
        tolerance: Parity tolerances
        warmup_runs: Untimed runs per path
        timing_runs: Timed runs per path
        check: Raise ParityError instead of returning a failing report

    Returns:
        ParityReport with comparison results and timings

    Raises:
        ParityError: If check is True and the results differ
    """
    tolerance = tolerance or ParityConfig()
    rng = np.random.default_rng(seed)

    with Arena(arena_bytes_for(m, k, n)) as arena:
        a = random_matrix(arena, m, k, rng)
        b = random_matrix(arena, k, n, rng)
        cpu_result = alloc_matrix(arena, m, n)
        gpu_result = alloc_matrix(arena, m, n)

        cpu_timing = time_operation(
            multiply, cpu_result, a, b,
            warmup_runs=warmup_runs, timing_runs=timing_runs,
            name="multiply", framework="cpu",
        )

        buffers = []
        try:
            a_dev = executor.upload(a)
            buffers.append(a_dev)
            b_dev = executor.upload(b)
            buffers.append(b_dev)
            r_dev = executor.allocate(m, n)
            buffers.append(r_dev)

            gpu_timing = time_operation(
                executor.multiply, a_dev, b_dev, r_dev,
                warmup_runs=warmup_runs, timing_runs=timing_runs,
                synchronize_fn=executor.synchronize,
                name="gpu_multiply", framework="gpu",
            )
            r_dev.copy_to(gpu_result)
        finally:
            for buffer in buffers:
                executor.release(buffer)

        report = compare_results(gpu_result.to_numpy(), cpu_result.to_numpy(), tolerance, inner=k)

    report.cpu = cpu_timing
    report.gpu = gpu_timing

    logger.info("parity %dx%dx%d: %s (max |diff| %.3e, %d mismatches), speedup %.2fx",
                m, k, n, "PASS" if report.passed else "FAIL",
                report.max_abs_diff, report.mismatches, report.speedup or 0.0)

    if check and not report.passed:
        raise ParityError(format_report(report))
    return report


def format_report(report: ParityReport) -> str:
    """Render a parity report as a short human-readable block."""
    m, k, n = report.shape
    title = f"Result {m}x{n}" if k is None else f"Multiply {m}x{k} by {k}x{n}"
    lines = [
        "-" * 60,
        title,
        f"  Parity:       {'PASS' if report.passed else 'FAIL'} "
        f"(atol={report.tolerance.atol:g}, rtol={report.tolerance.rtol:g})",
        f"  Max |diff|:   {report.max_abs_diff:.3e} at {report.worst_index}",
        f"  Mismatches:   {report.mismatches}",
    ]
    if report.cpu is not None:
        lines.append(f"  CPU mean:     {report.cpu.mean_ms:10.3f} ms")
    if report.gpu is not None:
        lines.append(f"  GPU mean:     {report.gpu.mean_ms:10.3f} ms")
    if report.speedup is not None:
        lines.append(f"  Speedup:      {report.speedup:10.2f}x")
    lines.append("-" * 60)
    return "\n".join(lines)
