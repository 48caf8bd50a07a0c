"""Elementwise: one template for every operator that maps Y = f(X) per element."""

from __future__ import annotations

import logging
import struct
from typing import Any, Callable, Mapping

from .node import Node, NodeError, Tensor

log = logging.getLogger(__name__)


def _f32(value: float) -> float:
    """Round a Python float to single precision, as the attributes are stored."""
    return struct.unpack("f", struct.pack("f", value))[0]


def _num(value: float) -> str:
    """Fixed six-decimal text of a single precision value."""
    return f"{_f32(value):f}"


def _celu(node: "Elementwise", x: str) -> str:
    a = _num(node.alpha)
    return f"fmax(0,{x}) + fmin(0,{a}*(exp({x}/{a})-1));"


def _elu(node: "Elementwise", x: str) -> str:
    a = _num(node.alpha)
    return f"{x}>0 ? {x}: {a}*(exp({x})-1);"


def _hard_sigmoid(node: "Elementwise", x: str) -> str:
    return f"fmax(0, fmin(1, {_num(node.alpha)}*{x}+{_num(node.beta)}));"


def _hard_swish(node: "Elementwise", x: str) -> str:
    return f"{x}*fmax(0, fmin(1, {_num(node.alpha)}*{x}+{_num(node.beta)}));"


def _leaky_relu(node: "Elementwise", x: str) -> str:
    return f"{x}>0 ? {x} : {x}*{_num(node.alpha)};"


def _selu(node: "Elementwise", x: str) -> str:
    a = _num(node.alpha)
    c = _num(node.gamma)
    return f"{x}>0 ? {c}*{x}: {c}*({a}*exp({x})-{a});"


def _shrink(node: "Elementwise", x: str) -> str:
    b = _num(node.bias)
    lam = _num(node.lambd)
    return f"{x} < - {lam} ? {x}+{b} : ({x} > {lam} ? {x}-{b} : 0);"


def _thresholded_relu(node: "Elementwise", x: str) -> str:
    return f"{x}>{_num(node.alpha)} ? {x} : 0;"


def _call(function: str) -> Callable[["Elementwise", str], str]:
    return lambda node, x: f"{function}({x});"


_OPERATIONS: dict[str, Callable[["Elementwise", str], str]] = {
    "Abs": _call("fabs"),
    "Acos": _call("acosf"),
    "Acosh": _call("acoshf"),
    "Asin": _call("asinf"),
    "Asinh": _call("asinhf"),
    "Atan": _call("atanf"),
    "Atanh": _call("atanhf"),
    "Ceil": _call("ceilf"),
    "Celu": _celu,
    "Cos": _call("cosf"),
    "Cosh": _call("coshf"),
    "Floor": _call("floorf"),
    "Elu": _elu,
    "Erf": _call("erff"),
    "Exp": _call("expf"),
    "HardSigmoid": _hard_sigmoid,
    "HardSwish": _hard_swish,
    "Identity": lambda node, x: f"{x};",
    "LeakyRelu": _leaky_relu,
    "Log": _call("logf"),
    "Neg": lambda node, x: f" -{x};",
    "Not": lambda node, x: f"!{x};",
    "Reciprocal": lambda node, x: f"1/{x};",
    # Not strictly conformant: the specification rounds halves to even.
    "Round": _call("roundf"),
    "Selu": _selu,
    "Shrink": _shrink,
    "Sigmoid": lambda node, x: f"1/(1+exp(-{x}));",
    "Sign": lambda node, x: f"{x}<0?-1:{x}>0?1:0;",
    "Sin": _call("sinf"),
    "Sinh": _call("sinhf"),
    "Softplus": lambda node, x: f"logf(exp({x})+1);",
    "Softsign": lambda node, x: f"{x}/(1+fabsf({x}));",
    "Sqrt": _call("sqrtf"),
    "Tan": _call("tanf"),
    "Tanh": _call("tanhf"),
    "ThresholdedRelu": _thresholded_relu,
}

_DEFAULTS: dict[str, dict[str, float]] = {
    "Celu": {"alpha": 1.0},
    "Elu": {"alpha": 1.0},
    "HardSigmoid": {"alpha": 0.2, "beta": 0.5},
    # HardSwish has fixed parameters in the specification.
    "HardSwish": {"alpha": 1.0 / 6, "beta": 0.5},
    "LeakyRelu": {"alpha": 0.01},
    "Selu": {"alpha": 1.67326319217681884765625, "gamma": 1.05070102214813232421875},
    "ThresholdedRelu": {"alpha": 1.0},
}

_ATTRIBUTES = ("alpha", "beta", "bias", "gamma", "lambd")


class Elementwise(Node):
    """Applies one scalar function to every element of the input."""

    def __init__(self, op: str) -> None:
        super().__init__()
        if op not in _OPERATIONS:
            raise NodeError("Elementwise operand not implemented: " + op)
        self.op_name = op
        self.alpha = 0.0
        self.beta = 0.0
        self.bias = 0.0
        self.gamma = 0.0
        self.lambd = 0.5
        for key, value in _DEFAULTS.get(op, {}).items():
            setattr(self, key, value)
        if op == "Round":
            log.warning("Round operand implementation is not strictly conformant")
        self._operation = _OPERATIONS[op]

    def operation(self, x: str) -> str:
        """The C statement right-hand side applying the function to `x`."""
        return self._operation(self, x)

    def parse_attributes(self, attributes: Mapping[str, Any]) -> None:
        # The union of the attributes of all operators built on this template.
        for key, value in attributes.items():
            log.debug("Parsing attribute %s", key)
            if key not in _ATTRIBUTES:
                raise NodeError(f"unknown attribute {key}")
            setattr(self, key, float(value))

    def resolve(self) -> None:
        source = self.input(0)
        self.name_input(0, "X")
        self.register_output(
            Tensor(shape=list(source.shape), data_type=source.data_type), "Y"
        )

    def render(self) -> str:
        target = self.output(0)
        lines = [
            f"\t/* {self.op_name}",
            "\t   Implemented with Elementwise template.",
            f"\t   alpha = {_f32(self.alpha):g}",
            f"\t   beta = {_f32(self.beta):g}",
            "\t*/",
        ]
        x_idx = "X"
        y_idx = "Y"
        for r, size in enumerate(target.shape):
            lv = f"i{r}"
            lines.append(f"\tfor (unsigned {lv}=0; {lv}<{size}; {lv}++) {{")
            x_idx += f"[{lv}]"
            y_idx += f"[{lv}]"
        lines.append(f"\t\t{y_idx} = {self.operation(x_idx)}")
        lines.extend("\t}" for _ in target.shape)
        return "\n".join(lines) + "\n"