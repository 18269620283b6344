#!/usr/bin/env python3
"""
Basic tiledgemm Usage Example

Multiplies two matrices on the GPU with the tiled kernel, checks the result
against the CPU reference, then fits a small polynomial regression with every
product on the GPU.

Without a CUDA device, run with NUMBA_ENABLE_CUDASIM=1 (and small sizes).
"""

import numpy as np

import tiledgemm as tg


def multiply_example(exec):
    """
    Multiply on the GPU and compare with the CPU reference
    """
    print("\n" + "=" * 60)
    print("Tiled Multiply Example")
    print("=" * 60)

    with tg.Arena(1 << 24) as arena:
        a = tg.random_matrix(arena, 300, 200, rng=0)
        b = tg.random_matrix(arena, 200, 100, rng=1)
        print(f"✓ Operands: {a.rows}x{a.cols} and {b.rows}x{b.cols}")

        gpu = tg.matmul(exec, arena, a, b)
        cpu = tg.multiply(tg.alloc_matrix(arena, a.rows, b.cols), a, b)

        report = tg.compare_results(gpu.to_numpy(), cpu.to_numpy())
        print(f"✓ Parity: {'PASS' if report.passed else 'FAIL'} "
              f"(max |diff| {report.max_abs_diff:.3e})")


def parity_report_example(exec):
    """
    Timed parity check with a formatted report
    """
    print("\n" + "=" * 60)
    print("Parity Report Example")
    print("=" * 60)

    report = tg.run_parity_check(exec, 256, 256, 256, seed=0)
    print(tg.format_report(report))


def regression_example(exec):
    """
    Fit y = 1 - x + 0.5 x^2 by gradient descent on the GPU
    """
    print("\n" + "=" * 60)
    print("Polynomial Regression Example")
    print("=" * 60)

    xs = np.linspace(-2.0, 2.0, 200, dtype=np.float32)
    ys = 1.0 - xs + 0.5 * xs ** 2

    with tg.Arena(1 << 22) as arena:
        x = tg.from_numpy(arena, xs)
        y = tg.from_numpy(arena, ys)

        model = tg.PolynomialRegression(degree=3, learning_rate=0.2, epochs=300,
                                        executor=exec, log_every=0)
        model.fit(arena, x, y)

        print(f"✓ Weights (intercept first): {np.round(model.weights, 4)}")
        print(f"✓ Training MSE: {model.mse(arena, x, y):.3e}")


def main():
    print("\n" + "=" * 60)
    print("tiledgemm Basic Usage")
    print("=" * 60)

    with tg.Executor() as exec:
        print(f"✓ {exec}")
        multiply_example(exec)
        parity_report_example(exec)
        regression_example(exec)

    print("\n✓ Done")


if __name__ == "__main__":
    main()
