"""ConvTranspose: transposed (fractionally strided) convolution."""

from __future__ import annotations

from typing import Any, Mapping

from .node import Node, NodeError, Tensor

_INT_LIST_ATTRIBUTES = (
    "dilations",
    "kernel_shape",
    "pads",
    "strides",
    "output_padding",
    "output_shape",
)


class ConvTranspose(Node):
    """Scatters every input element, scaled by the kernel, into the output."""

    op_name = "ConvTranspose"

    def __init__(self, name: str = "") -> None:
        super().__init__(name)
        self.x: Tensor | None = None
        self.w: Tensor | None = None
        self.b: Tensor | None = None
        self.y: Tensor | None = None
        self.auto_pad = "NOTSET"
        self.group = 1
        self.kernel_shape: list[int] = []
        self.dilations: list[int] = []
        self.pads: list[int] = []
        self.strides: list[int] = []
        self.output_padding: list[int] = []
        self.output_shape: list[int] = []
        self.output_shape_given = False

    def parse_attributes(self, attributes: Mapping[str, Any]) -> None:
        for key, value in attributes.items():
            if key == "auto_pad":
                self.auto_pad = str(value)
            elif key == "group":
                self.group = int(value)
            elif key in _INT_LIST_ATTRIBUTES:
                setattr(self, key, [int(v) for v in value])

    @property
    def _num_data_dims(self) -> int:
        return self.x.rank() - 2

    def _resolve_defaults(self) -> None:
        n = self._num_data_dims
        if not self.strides:
            self.strides = [1] * n
        if not self.kernel_shape:
            self.kernel_shape = list(self.w.shape[2:])
        if not self.dilations:
            self.dilations = [1] * n
        if not self.output_padding:
            self.output_padding = [0] * n

    def _resolve_output_shape(self) -> None:
        # output_shape[i] = stride[i] * (input_size[i] - 1) + output_padding[i]
        #     + ((kernel_shape[i] - 1) * dilations[i] + 1) - pads[start_i] - pads[end_i]
        n = self._num_data_dims
        if not self.pads:
            self.pads = [0] * (2 * n)
        for i, size in enumerate(self.x.shape[2:]):
            out = self.strides[i] * (size - 1)
            out += self.output_padding[i]
            out += (self.kernel_shape[i] - 1) * self.dilations[i] + 1
            out -= self.pads[i]
            out -= self.pads[i + n]
            extra_pad = size * self.strides[i] - out
            if self.auto_pad == "SAME_UPPER":
                self.pads[i + n] += 1
                out += extra_pad
            elif self.auto_pad == "SAME_LOWER":
                self.pads[i] += 1
                out += extra_pad
            self.output_shape.append(out)

    def _resolve_pads(self) -> None:
        n = self._num_data_dims
        pads = (self.pads + [0] * (2 * n))[: 2 * n]
        for i, size in enumerate(self.x.shape[2:]):
            total = self.strides[i] * (size - 1)
            total += self.output_padding[i]
            total += (self.kernel_shape[i] - 1) * self.dilations[i] + 1
            total -= self.output_shape[i]
            # Negative totals would make no sense as padding.
            total = max(total, 0)
            pads[i] = total // 2
            pads[i + n] = total // 2
            if total % 2 == 0:
                continue
            if self.auto_pad == "SAME_UPPER":
                pads[i + n] += 1
            else:
                pads[i] += 1
        self.pads = pads

    def calculate_output_size(self) -> list[int]:
        return [self.x.shape[0], self.w.shape[1] * self.group, *self.output_shape]

    def resolve(self) -> None:
        self.x = self.input(0)
        self.name_input(0, "x")
        self.w = self.input(1)
        self.name_input(1, "w")
        if self.num_inputs() == 3:
            self.b = self.input(2)
            self.name_input(2, "bias")
        else:
            self.b = None

        if self.group != 1:
            raise NodeError("Unimplemented: groups in ConvTranspose")

        self._resolve_defaults()
        if not self.output_shape:
            self.output_shape_given = False
            self._resolve_output_shape()
        else:
            self.output_shape_given = True
            self._resolve_pads()

        self.y = Tensor(shape=self.calculate_output_size(), data_type=self.x.data_type)
        self.register_output(self.y, "y")

    def render(self) -> str:
        return self.header_comment() + self.calculation()

    def header_comment(self) -> str:
        def listing(values: list[int]) -> str:
            return "".join(f"{v} " for v in values)

        given = "true" if self.output_shape_given else "false"
        lines = [
            f"\t/* {self.op_name}",
            "\t *",
            f"\t * auto_pad: {self.auto_pad}",
            f"\t * dilations: {listing(self.dilations)}",
            f"\t * group: {self.group}",
            f"\t * kernel_shape: {listing(self.kernel_shape)}",
            f"\t * pads: {listing(self.pads)}",
            f"\t * strides: {listing(self.strides)}",
            f"\t * output_padding: {listing(self.output_padding)}",
            f"\t * output_shape: {listing(self.output_shape)}",
            f"\t * output_shape explicitly given in ONNX model: {given}",
            "\t */",
        ]
        return "\n".join(lines) + "\n"

    def calculation(self) -> str:
        x, y = self.x, self.y
        n = self._num_data_dims
        batch_size, channels = x.shape[0], x.shape[1]
        maps = y.shape[1]

        x_idx = "[b][c]" + "".join(f"[i{i}]" for i in range(n))
        w_idx = "[c][m]" + "".join(f"[k{i}]" for i in range(n))
        y_idx = "[b][m]" + "".join(f"[o{i}]" for i in range(n))

        # The algorithm accumulates, so the output starts cleared.
        lines = [
            f"\tmemset(y, 0,{y.num_elements() * y.element_size()});",
            "",
            f"\tfor( uint32_t b=0; b<{batch_size}; b++ ) {{",
            f"\tfor( uint32_t m=0; m<{maps}; m++) {{",
        ]
        for i in range(n):
            lines.append(f"\t\tfor( int32_t i{i}=0; i{i}<{x.shape[2 + i]}; i{i}++) {{")
        lines.append(f"\t\t\tfor( int32_t c=0; c<{channels}; c++ ) {{")

        # Padding is applied to the output, so output indices may fall outside it.
        for i in range(n):
            start = f"i{i}*{self.strides[i]}-{self.pads[i]}"
            lines.append(
                f"\t\t\tfor( int32_t k{i}=0, o{i}={start}; k{i}<{self.kernel_shape[i]}; "
                f"k{i}++, o{i}+={self.dilations[i]}) {{"
            )
        for i in range(n):
            lines.append(f"\t\t\t\tif( o{i}<0) continue;")
            lines.append(f"\t\t\t\tif( o{i}>={self.output_shape[i]}) continue;")

        lines.append(f"\t\t\t\ty{y_idx} += x{x_idx} * w{w_idx};")
        lines.extend("\t\t\t} /* k */" for _ in range(n))
        lines.append("\t\t\t} /* c */")
        lines.extend("\t\t} /* o */" for _ in range(n))
        lines.append("\t} /* m */")
        lines.append("\t} /* b */")

        # The bias is added once per output element.
        if self.b is not None:
            lines.append(f"\tfor( uint32_t b=0; b<{batch_size}; b++ ) {{")
            lines.append(f"\t\tfor( uint32_t m=0; m<{maps}; m++) {{")
            for i in range(n):
                lines.append(
                    f"\t\t\tfor( uint32_t o{i}=0; o{i}<{self.output_shape[i]}; o{i}++) {{"
                )
            lines.append(f"\t\t\t\ty{y_idx} += bias[m];")
            lines.extend(f"\t\t\t}} /* o{i} */" for i in range(n))
            lines.append("\t\t} /* m */")
            lines.append("\t} /* b */")

        return "\n".join(lines) + "\n"