#!/usr/bin/env python3
"""
tiledgemm command line interface.

Usage:
    tiledgemm test [--rows R --inner K --cols C] [--atol A --rtol R]
    tiledgemm train --features X.bin --targets y.bin --rows N --cols D
    tiledgemm info
"""

import argparse
import logging
import sys

from .arena import Arena
from .backend import BackendType, device_info, get_default_backend
from .benchmark import format_report, run_parity_check
from .config import ParityConfig, TilingConfig, arena_capacity_from_env
from .dataset import load_matrix
from .errors import TiledGemmError
from .executor import Executor
from .regression import PolynomialRegression

logger = logging.getLogger(__name__)


def _tiling_from_args(args) -> TilingConfig:
    env = TilingConfig.from_env()
    return TilingConfig(
        block_size=args.block_size if args.block_size is not None else env.block_size,
        grid_size=args.grid_size if args.grid_size is not None else env.grid_size,
    )


def cmd_test(args) -> int:
    tolerance = ParityConfig(atol=args.atol, rtol=args.rtol)
    with Executor(config=_tiling_from_args(args)) as exec:
        report = run_parity_check(
            exec, args.rows, args.inner, args.cols,
            seed=args.seed, tolerance=tolerance,
            warmup_runs=args.warmup, timing_runs=args.runs,
        )
    print(format_report(report))
    return 0 if report.passed else 1


def _train_executor(args):
    """Executor for training, or None to use the CPU reference multiply."""
    backend = BackendType.CPU.value if args.cpu else get_default_backend()
    if backend == BackendType.CPU.value:
        if not args.cpu:
            logger.warning("No CUDA target available; training on the CPU reference multiply")
        return None
    return Executor(backend=backend, config=_tiling_from_args(args))


def cmd_train(args) -> int:
    capacity = args.arena_bytes if args.arena_bytes is not None else arena_capacity_from_env()
    executor = _train_executor(args)
    try:
        with Arena(capacity) as arena:
            x = load_matrix(arena, args.features, args.rows, args.cols)
            y = load_matrix(arena, args.targets, args.rows, 1)

            model = PolynomialRegression(
                degree=args.degree,
                learning_rate=args.learning_rate,
                epochs=args.epochs,
                epsilon=args.epsilon,
                executor=executor,
                log_every=args.log_every,
            )
            model.fit(arena, x, y)
    finally:
        if executor is not None:
            executor.cleanup()

    print(f"Weights (intercept first): {model.weights.tolist()}")
    print(f"Final MSE: {model.loss_history[-1]:.6g}")
    return 0


def cmd_info(args) -> int:
    for key, value in device_info().items():
        print(f"{key}: {value}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tiledgemm",
        description="Tiled GPU matrix multiplication with CPU parity checking",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Parity check and timing on the default shape
  tiledgemm test

  # Parity check one element past a dispatch boundary
  tiledgemm test --rows 2049 --inner 2049 --cols 1

  # Fit a cubic on raw float32 files
  tiledgemm train --features x.bin --targets y.bin --rows 1000 --cols 1 --degree 4
        """
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--block-size", type=int, help="Threads per block edge (default 32)")
    parser.add_argument("--grid-size", type=int, help="Blocks per dispatch edge (default 64)")

    subparsers = parser.add_subparsers(dest="command", required=True)

    test = subparsers.add_parser("test", help="Compare GPU and CPU multiply on random data")
    test.add_argument("--rows", type=int, default=1024)
    test.add_argument("--inner", type=int, default=1024)
    test.add_argument("--cols", type=int, default=1024)
    test.add_argument("--seed", type=int, default=None)
    test.add_argument("--atol", type=float, default=ParityConfig.atol)
    test.add_argument("--rtol", type=float, default=ParityConfig.rtol)
    test.add_argument("--warmup", type=int, default=1, help="Untimed runs per path")
    test.add_argument("--runs", type=int, default=1, help="Timed runs per path")
    test.set_defaults(func=cmd_test)

    train = subparsers.add_parser("train", help="Fit a polynomial regression")
    train.add_argument("--features", required=True, help="Raw float32 feature file")
    train.add_argument("--targets", required=True, help="Raw float32 target file")
    train.add_argument("--rows", type=int, required=True)
    train.add_argument("--cols", type=int, required=True)
    train.add_argument("--degree", type=int, default=2)
    train.add_argument("--epochs", type=int, default=1000)
    train.add_argument("--learning-rate", type=float, default=0.1)
    train.add_argument("--epsilon", type=float, default=0.0,
                       help="Variance guard for constant columns")
    train.add_argument("--log-every", type=int, default=100)
    train.add_argument("--arena-bytes", type=int, default=None)
    train.add_argument("--cpu", action="store_true",
                       help="Use the CPU reference multiply (automatic without a CUDA target)")
    train.set_defaults(func=cmd_train)

    info = subparsers.add_parser("info", help="Show CUDA target information")
    info.set_defaults(func=cmd_info)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s | %(levelname)s | %(message)s",
    )

    try:
        return args.func(args)
    except (TiledGemmError, ValueError) as e:
        logger.error("%s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
