"""Pad: extend a tensor at the start and end of each axis."""

from __future__ import annotations

import logging
import struct
from typing import Any, Mapping

from .node import DataType, Node, NodeError, Tensor

log = logging.getLogger(__name__)


def _num(value: float) -> str:
    """Shortest general text of a single precision value."""
    return f"{struct.unpack('f', struct.pack('f', value))[0]:g}"


class Pad(Node):
    """Pads with a constant, by reflection or by repeating the edge."""

    op_name = "Pad"

    def __init__(self, name: str = "") -> None:
        super().__init__(name)
        self.mode = "constant"
        # Attributes of older operator versions.
        self.pads_attribute: list[int] = []
        self.value_attribute = 0.0
        # The paddings and constant actually used.
        self.paddings_start: list[int] = []
        self.paddings_end: list[int] = []
        self.constant = 0.0

    def parse_attributes(self, attributes: Mapping[str, Any]) -> None:
        for key, value in attributes.items():
            log.debug("Parsing attribute %s", key)
            if key == "mode":
                self.mode = str(value)
            elif key == "pads":
                self.pads_attribute = [int(v) for v in value]
            elif key == "value":
                self.value_attribute = float(value)
            else:
                log.critical("Ignoring attribute %s for node Pad/%s", key, self.onnx_name)

    def resolve(self) -> None:
        data = self.input(0)
        self.name_input(0, "data")

        pads_tensor = None
        if self.num_inputs() > 1:
            pads_tensor = self.input(1)
            self.name_input(1, "pads")
        constant_value = None
        if self.num_inputs() > 2:
            constant_value = self.input(2)
            self.name_input(2, "constant_value")

        if pads_tensor is not None and not pads_tensor.is_const:
            raise NodeError(
                "Non-constant 'pads' input to Pad would result in dynamic memory allocation"
            )
        if pads_tensor is not None and pads_tensor.data_type != DataType.INT64:
            raise NodeError("Malformed input. Input 2 to Pads is not a tensor of int64")

        self.constant = self.value_attribute
        if constant_value is not None:
            # Some generators leave the type undefined, meaning pad with zeros.
            if constant_value.data_type == DataType.UNDEFINED:
                self.constant = 0.0
            elif not constant_value.is_const:
                raise NodeError(
                    "Non-constant 'constant_value' input to Pad would result in "
                    "dynamic memory allocation"
                )
            else:
                self.constant = constant_value.element_float(0)

        if pads_tensor is not None:
            count = pads_tensor.shape[0]
            pads = [pads_tensor.element(i) for i in range(count)]
        else:
            pads = list(self.pads_attribute)
            count = len(pads)
        half = count // 2
        self.paddings_start = pads[:half]
        self.paddings_end = pads[half:]

        shape = [
            size + self.paddings_start[d] + self.paddings_end[d]
            for d, size in enumerate(data.shape)
        ]
        self.register_output(Tensor(shape=shape, data_type=DataType.FLOAT), "output")

    def render(self) -> str:
        data = self.input(0)
        output = self.output(0)
        rank = data.rank()
        starts = "".join(f"{p} " for p in self.paddings_start)
        ends = "".join(f"{p} " for p in self.paddings_end)
        lines = [
            "\t/* Pad: ",
            f"\t * pad at start: {starts}",
            f"\t * pad at end:   {ends}",
            f"\t * mode: {self.mode}",
            "\t */",
        ]
        iidxs = "".join(f"[ir{i}]" for i in range(rank))
        oidxs = "".join(f"[o{i}]" for i in range(rank))

        for i, size in enumerate(data.shape):
            t1, t2, t3 = "\t" * (i + 1), "\t" * (i + 2), "\t" * (i + 3)
            ir, il, o, dopad = f"ir{i}", f"il{i}", f"o{i}", f"pad_at_{i}"
            start = self.paddings_start[i]
            lines.append(f"{t1}uint32_t {ir};")
            lines.append(f"{t1}for( uint32_t {o}=0, {il}=0; {o}<{output.shape[i]}; {o}++ ) {{")
            if self.mode == "constant":
                lines.append(f"{t2}bool {dopad}=false;")

            lines.append(f"{t2}if( {o} < {start}){{")
            if self.mode == "reflect":
                lines.append(f"{t3}{ir}= {start} - {o};")
            elif self.mode == "edge":
                lines.append(f"{t3}{ir}= 0;")
            else:
                lines.append(f"{t3}{dopad}= true;")
            lines.append(f"{t2}}}")

            lines.append(f"{t2}else if( {o} < {start + size}){{")
            lines.append(f"{t3}{ir}={il};")
            lines.append(f"{t3}{il}++;")
            lines.append(f"{t2}}}")

            lines.append(f"{t2}else {{")
            if self.mode == "reflect":
                lines.append(f"{t3}{ir} = 2*{size}+{start}-{o}-2;")
            elif self.mode == "edge":
                lines.append(f"{t3}{ir} = {size}-1;")
            else:
                lines.append(f"{t3}{dopad}= true;")
            lines.append(f"{t2}}}")

        if self.mode == "constant":
            others = "".join(f" || pad_at_{i}" for i in range(1, rank))
            lines.append(f"\tif ( pad_at_0 {others})")
            lines.append(f"\t\toutput{oidxs} = {_num(self.constant)};")
            lines.append("\telse")
        lines.append(f"\t\toutput{oidxs}= data{iidxs};")

        lines.extend("\t" * i + "}" for i in range(rank, 0, -1))
        return "\n".join(lines) + "\n"