"""Gemm: general matrix multiplication Y = alpha*A*B + beta*C."""

from __future__ import annotations

import logging
import struct
from typing import Any, Mapping

from .node import Node, NodeError, Tensor

log = logging.getLogger(__name__)


def _f32(value: float) -> float:
    """Round a Python float to single precision, as the attributes are stored."""
    return struct.unpack("f", struct.pack("f", value))[0]


def _num(value: float) -> str:
    """Shortest general text of a single precision value."""
    return f"{_f32(value):g}"


class Gemm(Node):
    """Matrix product of A and B, optionally transposed, plus a broadcast C."""

    op_name = "Gemm"

    def __init__(self, quantize: bool = False) -> None:
        super().__init__()
        self.quantize = quantize
        self.alpha = 1.0
        self.beta = 1.0
        self.transA = 0
        self.transB = 0

    def parse_attributes(self, attributes: Mapping[str, Any]) -> None:
        for key, value in attributes.items():
            log.debug("Parsing attribute %s", key)
            if key == "alpha":
                self.alpha = float(value)
            elif key == "beta":
                self.beta = float(value)
            elif key == "transA":
                self.transA = int(value)
            elif key == "transB":
                self.transB = int(value)
            else:
                raise NodeError(f"unknown attribute: {key}")

    def _m_k_n(self) -> tuple[int, int, int]:
        a = self.input(0)
        b = self.input(1)
        m = a.shape[1] if self.transA else a.shape[0]
        k = a.shape[0] if self.transA else a.shape[1]
        n = b.shape[0] if self.transB else b.shape[1]
        return m, k, n

    def resolve(self) -> None:
        if self.num_inputs() < 2:
            raise NodeError("Not enough inputs")
        self.name_input(0, "A")
        self.name_input(1, "B")
        if self.num_inputs() == 3:
            self.name_input(2, "C")
        m, _, n = self._m_k_n()
        self.register_output(
            Tensor(shape=[m, n], data_type=self.input(0).data_type), "Y"
        )

    def _c_shape(self, c: Tensor, m: int, n: int) -> tuple[int, int]:
        rank = c.rank()
        if rank == 0:
            raise NodeError("Unimplemented: scalar C in Gemm")
        if rank == 1:
            dim = c.shape[0]
            if dim == m:
                return m, 1
            if dim == n:
                return 1, n
            if dim == 1:
                return 1, 1
            raise NodeError("C dimension mismatch in Gemm")
        if rank == 2:
            return c.shape[0], c.shape[1]
        raise NodeError("C has too many dimensions in Gemm")

    def render(self) -> str:
        a = self.input(0)
        b = self.input(1)
        c = self.input(2) if self.num_inputs() > 2 else None
        m, k, n = self._m_k_n()
        ctype = a.c_type()

        lines = [
            "\t/* Gemm */",
            f"\t/* alpha   = {_num(self.alpha)}",
            f"\t   beta    = {_num(self.beta)}",
            f"\t   transA  = {self.transA}",
            f"\t   transB  = {self.transB}",
            "\t */",
            f"\tconst int M = {m};",
            f"\tconst int K = {k};",
            f"\tconst int N = {n};",
            f"\tfloat alpha = {_num(self.alpha)};",
            f"\tfloat beta = {_num(self.beta)};",
        ]

        a_el = "A[i][r]" if self.transA else "A[r][i]"
        b_idx = "[c][i]" if self.transB else "[i][c]"

        c_idx = ""
        if c is not None:
            c0, c1 = self._c_shape(c, m, n)
            c_idx = ("[0]" if c0 <= 1 else "[r]") + ("[0]" if c1 <= 1 else "[c]")
            lines.append(f"\t{ctype} (*C_)[{c1}]  = ({ctype}(*)[{c1}])C;")

        acc_type = "int32_t" if self.quantize else ctype
        lines += [
            "\tfor( uint32_t r=0; r<M; r++ )",
            "\t\tfor( uint32_t c=0; c<N; c++ ) {",
            f"\t\t\t{acc_type} ABrc = 0;",
            "\t\t\tfor( uint32_t i=0; i<K; i++ ) {",
            f"\t\t\t\t{b.c_type()} B_el = B{b_idx};",
            f"\t\t\t\tABrc += {a_el} * B_el;",
            "\t\t\t}",
            f"\t\t\t{acc_type} tmp = ABrc * alpha;",
        ]
        if c is not None:
            lines.append(f"\t\t\ttmp += C_{c_idx} * beta;")
        if self.quantize:
            lines += [
                "\t\t\ttmp = tmp/(K*16);",
                "\t\t\ttmp = tmp > 127?127:tmp;",
                "\t\t\ttmp = tmp < -127?-127:tmp;",
            ]
        lines.append("\t\t\tY[r][c] = tmp;")
        lines.append("\t}")
        return "\n".join(lines) + "\n"