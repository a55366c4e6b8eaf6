"""
Minimal reverse-mode autodiff over complex matrices.

The graph is a closed set of three node kinds:

- Parameter: a named rows×cols complex leaf with a gradient buffer.
- MatMul: Y = A × X.
- Quadratic: the real scalar Σ |target - actual|².

Gradient convention
-------------------
For a real loss L and a complex variable z = x + iy, the value accumulated in
a parameter's gradient buffer is

    D = 2 · conj(∂L/∂z) = 2 · ∂L/∂z̄ = ∂L/∂x + i · ∂L/∂y

where ∂/∂z and ∂/∂z̄ are the Wirtinger derivatives. The real and imaginary
parts of D are the partial derivatives of L with respect to the real and
imaginary parts of z, so `z -= lr * D` is a steepest-descent step. This is the
same convention torch.autograd uses for complex leaves.

Gradient buffer contract
------------------------
Backward passes ADD into `Parameter.D`. Call `ParameterSet.zero()` before every
`gradient()` call. `gradient()` refuses to run (GradientStateError) when a
reachable parameter still holds gradients from an earlier pass, unless called
with `require_zeroed=False`, in which case gradients accumulate across calls.
"""

from __future__ import annotations

from enum import IntEnum

import torch

from truther_utils.spectral.errors import GradientStateError, ShapeMismatch


DTYPE = torch.complex128


class NodeKind(IntEnum):
    """Node variants."""
    PARAMETER = 0
    MATMUL = 1
    QUADRATIC = 2


class Node:
    """Base class for graph nodes. Subclasses are Parameter, MatMul and Quadratic."""

    kind: NodeKind
    rows: int
    cols: int

    @property
    def shape(self) -> tuple[int, int]:
        return (self.rows, self.cols)

    def operands(self) -> tuple["Node", ...]:
        return ()

    def forward(self) -> torch.Tensor:
        raise NotImplementedError

    def backward(self, delta: torch.Tensor) -> None:
        raise NotImplementedError

    def parameters(self) -> list["Parameter"]:
        """Parameter leaves reachable from this node, each listed once."""
        found: list[Parameter] = []
        seen: set[int] = set()
        stack: list[Node] = [self]
        while stack:
            node = stack.pop()
            if id(node) in seen:
                continue
            seen.add(id(node))
            if isinstance(node, Parameter):
                found.append(node)
            stack.extend(reversed(node.operands()))
        return found


class Parameter(Node):
    """
    Named complex tensor with a same-shaped gradient accumulator.

    Values start at zero; callers write initial values into `X` directly.

    Args:
        name: Lookup name within its ParameterSet.
        rows: Number of rows.
        cols: Number of columns.
    """

    kind = NodeKind.PARAMETER

    def __init__(self, name: str, rows: int, cols: int):
        if rows < 1 or cols < 1:
            raise ShapeMismatch(f"parameter {name!r} must have positive shape, got ({rows}, {cols})")
        self.name = name
        self.rows = rows
        self.cols = cols
        self.X = torch.zeros((rows, cols), dtype=DTYPE)
        self.D = torch.zeros((rows, cols), dtype=DTYPE)
        self._zeroed = True

    @property
    def is_zeroed(self) -> bool:
        """True if no backward pass has touched D since the last zero()."""
        return self._zeroed

    def zero(self) -> None:
        self.D.zero_()
        self._zeroed = True

    def forward(self) -> torch.Tensor:
        return self.X

    def backward(self, delta: torch.Tensor) -> None:
        self.D += delta
        self._zeroed = False

    def __repr__(self) -> str:
        return f"Parameter({self.name!r}, rows={self.rows}, cols={self.cols})"


class MatMul(Node):
    """Y = A × X."""

    kind = NodeKind.MATMUL

    def __init__(self, a: Node, x: Node):
        if a.cols != x.rows:
            raise ShapeMismatch(f"cannot multiply {a.shape} by {x.shape}: inner dimensions differ")
        self.a = a
        self.x = x
        self.rows = a.rows
        self.cols = x.cols
        self._a_value: torch.Tensor | None = None
        self._x_value: torch.Tensor | None = None

    def operands(self) -> tuple[Node, ...]:
        return (self.a, self.x)

    def forward(self) -> torch.Tensor:
        self._a_value = self.a.forward()
        self._x_value = self.x.forward()
        return self._a_value @ self._x_value

    def backward(self, delta: torch.Tensor) -> None:
        # Y is holomorphic in A and X, so the conjugate-gradient flows through the
        # Hermitian transpose of the other operand.
        self.a.backward(delta @ self._x_value.conj().T)
        self.x.backward(self._a_value.conj().T @ delta)


class Quadratic(Node):
    """Scalar Σ |target - actual|², held as a 1×1 complex tensor with zero imaginary part."""

    kind = NodeKind.QUADRATIC

    def __init__(self, target: Node, actual: Node):
        if target.shape != actual.shape:
            raise ShapeMismatch(f"quadratic operands differ in shape: {target.shape} vs {actual.shape}")
        self.target = target
        self.actual = actual
        self.rows = 1
        self.cols = 1
        self._diff: torch.Tensor | None = None

    def operands(self) -> tuple[Node, ...]:
        return (self.target, self.actual)

    def forward(self) -> torch.Tensor:
        self._diff = self.target.forward() - self.actual.forward()
        total = (self._diff.real ** 2 + self._diff.imag ** 2).sum()
        return total.to(DTYPE).reshape(1, 1)

    def backward(self, delta: torch.Tensor) -> None:
        # 2·∂L/∂conj(t) = 2(t - a), 2·∂L/∂conj(a) = -2(t - a)
        scale = 2 * delta[0, 0]
        self.target.backward(scale * self._diff)
        self.actual.backward(-scale * self._diff)


def matmul(a: Node, x: Node) -> MatMul:
    """Build a MatMul node; raises ShapeMismatch if cols(a) != rows(x)."""
    return MatMul(a, x)


def quadratic(target: Node, actual: Node) -> Quadratic:
    """Build a Quadratic loss node; raises ShapeMismatch if shapes differ."""
    return Quadratic(target, actual)


class ParameterSet:
    """
    Ordered collection of parameters for one graph.

    Mirrors the lifecycle of a model's weights: parameters are added once at
    graph-build time, mutated by the optimizer, and zeroed explicitly.
    """

    def __init__(self):
        self.weights: list[Parameter] = []
        self._by_name: dict[str, Parameter] = {}

    def add(self, name: str, rows: int, cols: int) -> Parameter:
        """Allocate a zero-valued parameter with a zero gradient buffer."""
        if name in self._by_name:
            raise ValueError(f"parameter {name!r} already exists")
        param = Parameter(name, rows, cols)
        self.weights.append(param)
        self._by_name[name] = param
        return param

    def get(self, name: str) -> Parameter:
        return self._by_name[name]

    def zero(self) -> None:
        """Reset every gradient buffer to zero."""
        for param in self.weights:
            param.zero()

    def __iter__(self):
        return iter(self.weights)

    def __len__(self) -> int:
        return len(self.weights)


def evaluate(node: Node) -> complex:
    """Forward pass only; returns the top-left element of the node's value."""
    return complex(node.forward()[0, 0].item())


def gradient(node: Node, require_zeroed: bool = True) -> complex:
    """
    Evaluate a node and backpropagate into every reachable parameter.

    The root is seeded with an all-ones upstream gradient, so for a Quadratic
    root the buffers receive 2·conj(∂L/∂z) for each parameter element z.

    Args:
        node: Root of the graph, usually a Quadratic loss.
        require_zeroed: If True, raise when a reachable parameter was not zeroed
            since its last backward pass. If False, gradients accumulate.

    Returns:
        The root's value (element [0, 0]) as a Python complex.

    Raises:
        GradientStateError: If require_zeroed and a buffer is stale.
    """
    if require_zeroed:
        stale = [p.name for p in node.parameters() if not p.is_zeroed]
        if stale:
            raise GradientStateError(
                f"gradient buffers of {stale} were not zeroed before this pass; call zero() first"
            )

    value = node.forward()
    node.backward(torch.ones_like(value))
    return complex(value[0, 0].item())
