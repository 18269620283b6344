"""
Polynomial regression trained by batch gradient descent.

Every matrix product in training goes through the multiply path: the GPU
tiled multiply when an Executor is given, otherwise the CPU reference.
Only multiplication, horizontal concatenation and elementwise updates are
needed:

    pred = X w                   (n x d) x (d x 1)
    grad = (pred - y)^T X        (1 x n) x (n x d)
    w   -= lr * 2 / n * grad^T

The residual is stored as an n x 1 matrix and reinterpreted as 1 x n, so no
transpose is ever materialized.
"""

import logging
from typing import List, Optional

import numpy as np

from .arena import Arena
from .errors import ShapeMismatchError
from .features import ColumnStats, design_matrix
from .matrix import Matrix, alloc_matrix, from_numpy, multiply

logger = logging.getLogger(__name__)


class _HostProducts:
    """Products on the CPU reference multiply."""

    def __init__(self, design: Matrix):
        self.design = design

    def predict(self, pred: Matrix, weights: Matrix):
        multiply(pred, self.design, weights)

    def gradient(self, grad: Matrix, residual_row: Matrix):
        multiply(grad, residual_row, self.design)

    def close(self):
        pass


class _DeviceProducts:
    """Products on the GPU; the design matrix is uploaded once."""

    def __init__(self, executor, design: Matrix):
        n, d = design.shape
        self.executor = executor
        self.design = executor.upload(design)
        self.weights = executor.allocate(d, 1)
        self.pred = executor.allocate(n, 1)
        self.residual = executor.allocate(1, n)
        self.grad = executor.allocate(1, d)

    def predict(self, pred: Matrix, weights: Matrix):
        self.weights.upload(weights)
        self.executor.multiply(self.design, self.weights, self.pred)
        self.pred.copy_to(pred)

    def gradient(self, grad: Matrix, residual_row: Matrix):
        self.residual.upload(residual_row)
        self.executor.multiply(self.residual, self.design, self.grad)
        self.grad.copy_to(grad)

    def close(self):
        for buffer in (self.design, self.weights, self.pred, self.residual, self.grad):
            self.executor.release(buffer)


class PolynomialRegression:
    """
    Least-squares polynomial fit on standardized, bias-augmented features.

    Attributes:
        weights: Fitted weights, intercept first (None before fit)
        stats: Column statistics used to scale the expanded features
        loss_history: Mean squared error before each epoch's update
    """

    def __init__(
        self,
        degree: int = 2,
        learning_rate: float = 0.1,
        epochs: int = 1000,
        epsilon: float = 0.0,
        executor=None,
        log_every: int = 100,
    ):
        if learning_rate <= 0:
            raise ValueError(f"learning_rate must be positive, got {learning_rate}")
        if epochs <= 0:
            raise ValueError(f"epochs must be positive, got {epochs}")

        self.degree = degree
        self.learning_rate = learning_rate
        self.epochs = epochs
        self.epsilon = epsilon
        self.executor = executor
        self.log_every = log_every

        self.weights: Optional[np.ndarray] = None
        self.stats: Optional[ColumnStats] = None
        self.loss_history: List[float] = []

    def _products(self, design: Matrix):
        if self.executor is None:
            return _HostProducts(design)
        return _DeviceProducts(self.executor, design)

    def fit(self, arena: Arena, x: Matrix, y: Matrix) -> "PolynomialRegression":
        """
        Fit weights to targets.

        Args:
            arena: Arena for the design matrix and scratch matrices
            x: Raw features, one sample per row
            y: Targets, shape (x.rows, 1)

        Returns:
            self

        Raises:
            ShapeMismatchError: If y is not (x.rows, 1)
            ZeroVarianceError: If an expanded column is constant and epsilon is 0
        """
        if y.shape != (x.rows, 1):
            raise ShapeMismatchError(
                f"Targets must be {x.rows}x1, got {y.rows}x{y.cols}"
            )

        design, self.stats = design_matrix(arena, x, self.degree, self.epsilon)
        n, d = design.shape

        weights = alloc_matrix(arena, d, 1)
        pred = alloc_matrix(arena, n, 1)
        residual = alloc_matrix(arena, n, 1)
        grad = alloc_matrix(arena, 1, d)
        residual_row = residual.reshape(1, n)
        step = self.learning_rate * 2.0 / n

        self.loss_history = []
        products = self._products(design)
        try:
            for epoch in range(self.epochs):
                products.predict(pred, weights)
                residual.data[:] = pred.data - y.data

                loss = float(np.mean(residual.data.astype(np.float64) ** 2))
                self.loss_history.append(loss)
                if self.log_every and epoch % self.log_every == 0:
                    logger.info("epoch %d/%d: mse %.6g", epoch, self.epochs, loss)

                products.gradient(grad, residual_row)
                weights.data[:] -= step * grad.data
        finally:
            products.close()

        self.weights = weights.data.copy()
        logger.info("fit done: %d samples, %d weights, final mse %.6g",
                    n, d, self.loss_history[-1])
        return self

    def predict(self, arena: Arena, x: Matrix) -> Matrix:
        """
        Predict targets for new samples with the fitted scaling and weights.

        Returns:
            Matrix of shape (x.rows, 1)
        """
        if self.weights is None:
            raise RuntimeError("PolynomialRegression.predict called before fit")

        design, _ = design_matrix(arena, x, self.degree, self.epsilon, stats=self.stats)
        weights = from_numpy(arena, self.weights)
        pred = alloc_matrix(arena, design.rows, 1)

        products = self._products(design)
        try:
            products.predict(pred, weights)
        finally:
            products.close()
        return pred

    def mse(self, arena: Arena, x: Matrix, y: Matrix) -> float:
        """Mean squared error of predictions on (x, y)."""
        pred = self.predict(arena, x)
        diff = pred.data.astype(np.float64) - y.data.astype(np.float64)
        return float(np.mean(diff ** 2))
