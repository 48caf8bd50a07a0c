"""Split: cut a tensor into several along one axis."""

from __future__ import annotations

import math
from typing import Any, Mapping

from .node import Node, NodeError, Tensor


class Split(Node):
    """Splits the input along an axis into parts of constant sizes."""

    op_name = "Split"

    def __init__(self, name: str = "") -> None:
        super().__init__(name)
        self.axis = 0

    def parse_attributes(self, attributes: Mapping[str, Any]) -> None:
        for key, value in attributes.items():
            if key == "axis":
                self.axis = int(value)
            elif key == "num_outputs":
                raise NodeError(f"Attribute {key} not supported yet")
            elif key == "split":
                raise NodeError(f"Attribute {key} deprecated and not supported")
            else:
                raise NodeError(f"Bad attribute {key} to split")

    def resolve(self) -> None:
        if self.num_inputs() < 2:
            raise NodeError("Split nodes without 'split' input not implemented yet")
        source = self.input(0)
        split = self.input(1)
        if not split.is_const:
            raise NodeError("Only constant split input in Split nodes supported")
        self.name_input(0, "input")
        self.name_input(1, "split")

        sizes = [split.element(i) for i in range(split.num_elements())]
        if any(size < 0 for size in sizes):
            raise NodeError("'split' values must be greater than zero")

        if self.axis < 0:
            self.axis += source.rank()

        if source.shape[self.axis] != sum(sizes):
            raise NodeError(
                "Sum of 'split' values must be equal to the dim value at 'axis' "
                f"parameter ({source.shape[self.axis]})"
            )

        for i in range(split.shape[0]):
            shape = list(source.shape)
            shape[self.axis] = sizes[i]
            self.register_output(
                Tensor(shape=shape, data_type=source.data_type), f"output_{i}"
            )

    def render(self) -> str:
        source = self.input(0)
        num_outputs = self.input(1).shape[0]
        num_dims = source.rank()
        ctype = source.c_type()

        pitches = ", ".join(str(math.prod(source.shape[i + 1:])) for i in range(num_dims))
        total = " * ".join(str(d) for d in source.shape)

        lines = [
            f"\t/*{self.op_name}*/",
            f"\tconst size_t axis = {self.axis};",
            f"\tconst size_t dims[{num_dims}] = {{{pitches}}};",
            f"\tsize_t idx[{num_dims}];",
            "",
            f"\tfor (size_t i = 0; i < ({total}); i++)",
            "\t{",
            "\t\tsize_t t = i;",
            "",
            f"\t\tfor (size_t j = 0; j < {num_dims}; j++)",
            "\t\t{",
            "\t\t\tidx[j] = t / dims[j];",
            "\t\t\tt %= dims[j];",
            "\t\t}",
            "",
            f"\t\t{ctype} x = (({ctype} *)input)[i];",
            "\t\tsize_t split_idx = idx[axis];",
            "\t\tsize_t split_sum = 0;",
            "\t\tsize_t out_idx;",
            "",
            "\t\tint64_t offset = 0;",
            f"\t\tfor (out_idx = 0; out_idx < {num_outputs}; out_idx++)",
            "\t\t{",
            "\t\t\tsplit_sum += split[out_idx];",
            "\t\t\tif (split_idx < split_sum)",
            "\t\t\t{",
            "\t\t\t\tbreak;",
            "\t\t\t}",
            "\t\t\toffset += split[out_idx];",
            "\t\t}",
            "",
            "\t\tswitch (out_idx)",
            "\t\t{",
        ]
        for i in range(num_outputs):
            index = "".join(
                f"[idx[{j}] - offset]" if j == self.axis else f"[idx[{j}]]"
                for j in range(num_dims)
            )
            lines.extend(
                [
                    f"\t\t\tcase {i}:",
                    f"\t\t\t\toutput_{i}{index} = x;",
                    "\t\t\t\tbreak;",
                    "",
                ]
            )
        lines.extend(
            [
                "\t\t\tdefault:",
                "\t\t\t\tbreak;",
                "\t\t}",
                "",
                "\t}",
                "",
            ]
        )
        return "\n".join(lines) + "\n"