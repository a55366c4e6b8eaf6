"""
GradientDescent: fixed-iteration gradient descent with global gradient-norm clipping.

Drives a Quadratic loss built with truther_utils.spectral.autodiff, updates the
trainable parameters in place, and records an append-only optimization trace.
There is no convergence check: the run stops after exactly `iterations` steps.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import IntEnum

import torch

from truther_utils.spectral.autodiff import Node, Parameter, ParameterSet, gradient


class OptimizerState(IntEnum):
    """Optimizer lifecycle."""
    INIT = 0
    ITERATING = 1
    TERMINAL = 2


@dataclass
class TracePoint:
    """One iteration of the optimization trace."""
    iteration: int
    cost: float
    grad_norm: float
    scaling: float

    @property
    def clipped_norm(self) -> float:
        """Norm of the gradient actually applied, after scaling."""
        return self.grad_norm * self.scaling


def global_grad_norm(params: list[Parameter]) -> float:
    """sqrt(Σ |d|²) over the gradient buffers of all given parameters."""
    total = 0.0
    for p in params:
        total += torch.sum(torch.abs(p.D) ** 2).item()
    return math.sqrt(total)


def clip_scaling(norm: float, max_norm: float = 1.0) -> float:
    """Factor that maps a gradient of the given norm into the ball of radius max_norm."""
    if norm <= max_norm:
        return 1.0
    return max_norm / norm


class GradientDescent:
    """
    Gradient descent over a complex autodiff graph.

    Each step zeroes every gradient buffer, evaluates the loss while
    backpropagating, clips the trainable gradients to the unit ball by their
    global norm, and applies `X -= learning_rate * D * scaling` to trainable
    parameters only. Non-trainable parameters still receive gradients but are
    never updated.

    Args:
        loss: Root node of the graph (a Quadratic in practice).
        parameters: ParameterSet owning every leaf of the graph.
        trainable: Parameters to update; must belong to `parameters`.
        learning_rate: Real step size, fixed for the run.
        iterations: Exact number of steps to take.
        max_norm: Clip radius for the global gradient norm.
    """

    def __init__(
        self,
        loss: Node,
        parameters: ParameterSet,
        trainable: list[Parameter],
        learning_rate: float = 0.3,
        iterations: int = 128,
        max_norm: float = 1.0,
    ):
        if iterations < 0:
            raise ValueError(f"iterations must be non-negative, got {iterations}")
        owned = {id(p) for p in parameters}
        for p in trainable:
            if id(p) not in owned:
                raise ValueError(f"trainable parameter {p.name!r} is not in the parameter set")

        self.loss = loss
        self.parameters = parameters
        self.trainable = list(trainable)
        self.learning_rate = float(learning_rate)
        self.iterations = iterations
        self.max_norm = max_norm

        self.state = OptimizerState.INIT if iterations > 0 else OptimizerState.TERMINAL
        self.iteration = 0
        self.trace: list[TracePoint] = []

    def step(self) -> TracePoint:
        """
        Run one iteration.

        Returns:
            The TracePoint appended to the trace.

        Raises:
            RuntimeError: If the optimizer has already finished.
        """
        if self.state == OptimizerState.TERMINAL:
            raise RuntimeError("optimizer has already run all iterations")
        self.state = OptimizerState.ITERATING

        self.parameters.zero()
        cost = gradient(self.loss)

        norm = global_grad_norm(self.trainable)
        scaling = clip_scaling(norm, self.max_norm)

        with torch.no_grad():
            for p in self.trainable:
                p.X -= self.learning_rate * scaling * p.D

        point = TracePoint(
            iteration=self.iteration,
            cost=abs(cost),
            grad_norm=norm,
            scaling=scaling,
        )
        self.trace.append(point)

        self.iteration += 1
        if self.iteration >= self.iterations:
            self.state = OptimizerState.TERMINAL
        return point

    def run(self, callback=None) -> list[TracePoint]:
        """
        Step until TERMINAL.

        Args:
            callback: Optional callable invoked with each TracePoint.

        Returns:
            The full optimization trace.
        """
        while self.state != OptimizerState.TERMINAL:
            point = self.step()
            if callback is not None:
                callback(point)
        return self.trace

    def costs(self) -> list[float]:
        """Cost magnitudes in iteration order."""
        return [p.cost for p in self.trace]
