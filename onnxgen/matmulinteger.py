"""MatMulInteger: integer matrix product with zero-point offsets."""

from __future__ import annotations

from .node import DataType, Node, NodeError, Tensor


def _dim(tensor: Tensor, index: int) -> int:
    """A dimension size, with missing trailing dimensions counted as 0."""
    return tensor.shape[index] if index < tensor.rank() else 0


def _first_dim(tensor: Tensor) -> int:
    return tensor.shape[0] if tensor.shape else 1


class MatMulInteger(Node):
    """Product of two integer matrices, each shifted by an optional zero point."""

    op_name = "MatMulInteger"

    def __init__(self, quantize: bool = False) -> None:
        super().__init__()
        self.quantize = quantize

    def result_dim(self) -> tuple[int, int]:
        """The (rows, cols) of the result."""
        a = self.input(0)
        b = self.input(1)
        a1 = _dim(a, 1)
        b1 = _dim(b, 1)
        if a1 != 0 and b1 != 0:
            return a.shape[0], b1
        if a1 == 0 and b1 == 0:
            raise NodeError("Bad input/unhandled: 2 vectors to MatMulInteger")
        if a1 == 0:
            rows = 1 if a.shape[0] == b.shape[0] else a.shape[0]
            return rows, b1
        cols = 1 if a1 == b.shape[0] else b.shape[0]
        return a.shape[0], cols

    def resolve(self) -> None:
        self.name_input(0, "input_A")
        self.name_input(1, "input_B")
        if self.num_inputs() > 2:
            self.name_input(2, "a_zero_point")
            if _first_dim(self.input(2)) != 1:
                raise NodeError("Unimplemented: 1D zero_point input")
        if self.num_inputs() > 3:
            self.name_input(3, "b_zero_point")
            if _first_dim(self.input(3)) != 1:
                raise NodeError("Unimplemented: 1D zero_point input")

        rows, cols = self.result_dim()
        # The specification says int32; quantized output is a local extension.
        data_type = DataType.INT8 if self.quantize else DataType.INT32
        self.register_output(Tensor(shape=[rows, cols], data_type=data_type), "output_Y")

    def render(self) -> str:
        a = self.input(0)
        b = self.input(1)
        y = self.output(0)
        intype = a.c_type()
        weighttype = b.c_type()
        outtype = y.c_type()

        if a.rank() != 2:
            raise NodeError("Unimplemented: higher than 2D MatMulInteger")

        rows = a.shape[0]
        cols = _dim(b, 1)
        inner = a.shape[1] or 1
        if inner != b.shape[0]:
            raise NodeError("MatMulInteger input's inner dimensions don't match")

        a_zero = "a_zero_point[0]" if self.num_inputs() > 2 else "0"
        b_zero = "b_zero_point[0]" if self.num_inputs() > 3 else "0"

        lines = [
            "\t/*MatMulInteger*/",
            f"\t{intype} *A = ({intype}*)input_A;",
            f"\t{weighttype} *B = ({weighttype}*)input_B;",
            f"\t{outtype} *Y = ({outtype}*)output_Y;",
            f"\tfor( uint32_t r=0; r<{rows}; r++ )",
            f"\t\tfor( uint32_t c=0; c<{cols}; c++ ) {{",
        ]
        if self.quantize:
            lines.append("\t\t\tint32_t sum = 0;")
            target = "sum"
        else:
            lines.append(f"\t\t\tY[r*{cols} + c] = 0;")
            target = f"Y[r*{cols}+c]"
        lines.append(f"\t\t\tfor( uint32_t i=0; i<{inner}; i++ )")
        lines.append(
            f"\t\t\t\t{target}+= (A[r*{inner}+i] - {a_zero})"
            f" * (B[i*{cols}+c] - {b_zero});"
        )
        if self.quantize:
            lines += [
                "\t\t\tint32_t tmp = sum/64;",
                "\t\t\ttmp = tmp > 127?127:tmp;",
                "\t\t\ttmp = tmp < -127?-127:tmp;",
                f"\t\t\tY[r*{cols}+c] = tmp;",
            ]
        lines.append("\t\t}")
        return "\n".join(lines) + "\n"