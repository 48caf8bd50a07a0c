"""Tensors, type constraints and the base class of all graph nodes."""

from __future__ import annotations

import logging
import math
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Callable, Iterator, Mapping, Sequence

log = logging.getLogger(__name__)


class NodeError(Exception):
    """Raised when a node cannot be resolved or generated."""


class DataType(IntEnum):
    """Element types, numbered as in the ONNX tensor protocol."""

    UNDEFINED = 0
    FLOAT = 1
    UINT8 = 2
    INT8 = 3
    UINT16 = 4
    INT16 = 5
    INT32 = 6
    INT64 = 7
    STRING = 8
    BOOL = 9
    FLOAT16 = 10
    DOUBLE = 11
    UINT32 = 12
    UINT64 = 13
    COMPLEX64 = 14
    COMPLEX128 = 15
    BFLOAT16 = 16


_C_TYPES = {
    DataType.FLOAT: "float",
    DataType.UINT8: "uint8_t",
    DataType.INT8: "int8_t",
    DataType.UINT16: "uint16_t",
    DataType.INT16: "int16_t",
    DataType.INT32: "int32_t",
    DataType.INT64: "int64_t",
    DataType.BOOL: "bool",
    DataType.DOUBLE: "double",
    DataType.UINT32: "uint32_t",
    DataType.UINT64: "uint64_t",
}

_ELEMENT_SIZES = {
    DataType.FLOAT: 4,
    DataType.UINT8: 1,
    DataType.INT8: 1,
    DataType.UINT16: 2,
    DataType.INT16: 2,
    DataType.INT32: 4,
    DataType.INT64: 8,
    DataType.BOOL: 1,
    DataType.FLOAT16: 2,
    DataType.DOUBLE: 8,
    DataType.UINT32: 4,
    DataType.UINT64: 8,
    DataType.BFLOAT16: 2,
}

_NON_IDENTIFIER = re.compile(r"[^A-Za-z0-9_]")


def cify_name(name: str) -> str:
    """Replace every character that cannot appear in a C identifier with '_'."""
    return _NON_IDENTIFIER.sub("_", name)


@dataclass(eq=False)
class Tensor:
    """A tensor of the graph: shape, element type and optional constant data."""

    name: str = ""
    shape: list[int] = field(default_factory=list)
    data_type: DataType = DataType.UNDEFINED
    data: Sequence[Any] | None = None
    is_const: bool = False
    is_io: bool = False
    is_recursive: bool = False
    initialize: bool = False
    used: bool = True

    def rank(self) -> int:
        return len(self.shape)

    def num_elements(self) -> int:
        return math.prod(self.shape)

    def element_size(self) -> int:
        try:
            return _ELEMENT_SIZES[DataType(self.data_type)]
        except KeyError:
            raise NodeError(f"no element size for data type {self.data_type!r}") from None

    def c_type(self) -> str:
        try:
            return _C_TYPES[DataType(self.data_type)]
        except KeyError:
            raise NodeError(f"no C type for data type {self.data_type!r}") from None

    def c_name(self) -> str:
        return "tensor_" + cify_name(self.name)

    def _value(self, index: int) -> Any:
        if self.data is None:
            raise NodeError(f"tensor {self.name!r} holds no data")
        return self.data[index]

    def element(self, index: int) -> int:
        """The element at a flat index, as an integer."""
        return int(self._value(index))

    def element_float(self, index: int) -> float:
        """The element at a flat index, as a float."""
        return float(self._value(index))

    def declaration(self, name: str, const: bool) -> str:
        """A C declaration of this tensor under a local name."""
        dims = "".join(f"[{d}]" for d in self.shape) or "[1]"
        prefix = "const " if const else ""
        return f"{prefix}{self.c_type()} {name}{dims}"


_HIGH_PRECISION = frozenset(
    {
        DataType.UINT32,
        DataType.UINT64,
        DataType.INT32,
        DataType.INT64,
        DataType.FLOAT16,
        DataType.FLOAT,
        DataType.DOUBLE,
        DataType.BFLOAT16,
    }
)
_PLAIN_FLOATS = frozenset({DataType.FLOAT16, DataType.FLOAT, DataType.DOUBLE})
_UNSIGNED = frozenset({DataType.UINT8, DataType.UINT16, DataType.UINT32, DataType.UINT64})
_SIGNED = frozenset({DataType.INT8, DataType.INT16, DataType.INT32, DataType.INT64})


def is_high_precision_numeric(tensor: Tensor) -> bool:
    """(u)int32, (u)int64, float16/32/64 or bfloat16."""
    return tensor.data_type in _HIGH_PRECISION


def is_int64(tensor: Tensor) -> bool:
    return tensor.data_type == DataType.INT64


def is_plain_floating_point(tensor: Tensor) -> bool:
    """float16/32/64, not bfloat16."""
    return tensor.data_type in _PLAIN_FLOATS


def is_floating_point(tensor: Tensor) -> bool:
    """float16/32/64 or bfloat16."""
    return is_plain_floating_point(tensor) or tensor.data_type == DataType.BFLOAT16


def is_8bit(tensor: Tensor) -> bool:
    return tensor.data_type in (DataType.INT8, DataType.UINT8)


def is_integer(tensor: Tensor) -> bool:
    return is_unsigned_integer(tensor) or is_signed_integer(tensor)


def is_unsigned_integer(tensor: Tensor) -> bool:
    return tensor.data_type in _UNSIGNED


def is_signed_integer(tensor: Tensor) -> bool:
    return tensor.data_type in _SIGNED


def broadcast_shape(a: Sequence[int], b: Sequence[int]) -> list[int]:
    """The shape that multidirectional broadcasting of two shapes yields."""
    width = max(len(a), len(b))
    dim_a = [1] * (width - len(a)) + list(a)
    dim_b = [1] * (width - len(b)) + list(b)
    result = []
    for x, y in zip(dim_a, dim_b):
        if x == 1 or y == 1:
            result.append(max(x, y))
        elif x == y:
            result.append(x)
        else:
            raise NodeError(f"bad tensor shapes for broadcasting: {list(a)} and {list(b)}")
    return result


@dataclass
class _Parameter:
    tensor: Tensor
    name: str


class Node(ABC):
    """One operator instance of the graph, able to emit its C body."""

    op_name = ""

    def __init__(self, name: str = "") -> None:
        self.onnx_name = name
        self.is_resolved = False
        # Which outputs are used; may be shorter than the operator's output list.
        self.output_used: list[bool] = []
        self._inputs: list[_Parameter] = []
        self._outputs: list[_Parameter] = []

    def c_name(self) -> str:
        return "node_" + cify_name(self.onnx_name)

    def is_output_used(self, n: int) -> bool:
        return n < len(self.output_used) and self.output_used[n]

    def register_input(self, tensor: Tensor, name: str) -> None:
        self._inputs.append(_Parameter(tensor, name))

    def register_output(self, tensor: Tensor, name: str) -> None:
        self._outputs.append(_Parameter(tensor, name))

    def name_input(self, index: int, name: str) -> None:
        self._inputs[index].name = name

    def name_output(self, index: int, name: str) -> None:
        self._outputs[index].name = name

    def input(self, n: int) -> Tensor | None:
        return self._inputs[n].tensor if n < len(self._inputs) else None

    def output(self, n: int) -> Tensor | None:
        return self._outputs[n].tensor if n < len(self._outputs) else None

    def num_inputs(self) -> int:
        return len(self._inputs)

    def num_outputs(self) -> int:
        return len(self._outputs)

    def outputs(self) -> Iterator[Tensor]:
        return (p.tensor for p in self._outputs)

    def replace_input(self, old: Tensor, replacement: Tensor) -> bool:
        """Swap an input tensor; False if `old` is not an input."""
        for param in self._inputs:
            if param.tensor is old:
                log.debug("Did replacement")
                param.tensor = replacement
                return True
        log.debug("No replacement")
        return False

    def parameters(self, definition: bool) -> str:
        """Comma-separated function parameters, skipping unused tensors."""
        params = []
        for param in self._inputs:
            if not param.tensor.used:
                continue
            if definition:
                params.append(param.tensor.declaration(param.name, const=True))
            else:
                params.append(param.tensor.c_name())
        for param in self._outputs:
            tensor = param.tensor
            if not tensor.used:
                continue
            # A graph output may have been marked const by compile-time evaluation.
            if tensor.is_io:
                tensor.is_const = False
            if definition:
                params.append(tensor.declaration(param.name, const=tensor.is_const))
            else:
                params.append(tensor.c_name())
        return ", ".join(params)

    def definition_parameters(self) -> str:
        return self.parameters(True)

    def callsite_parameters(self) -> str:
        return self.parameters(False)

    def parse_attributes(self, attributes: Mapping[str, Any]) -> None:
        if attributes:
            raise NodeError(
                f"Attribute parsing not implemented for node operation type {self.op_name}"
            )

    def resolve(self) -> None:
        """Name the inputs and create the output tensors."""

    @abstractmethod
    def render(self) -> str:
        """The C source of the node's function body."""


AttributeParser = Callable[[Any], Any]