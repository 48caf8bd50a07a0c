"""LSTM: a long short-term memory layer."""

from __future__ import annotations

import logging
import struct
from typing import Any, Mapping

from .node import Node, NodeError, Tensor

log = logging.getLogger(__name__)

_DIRECTIONS = ("forward", "reverse", "bidirectional")
_PARAMETERLESS_ACTIVATIONS = ("Sigmoid", "Tanh", "Relu")


def _f32(value: float) -> float:
    """Round a Python float to single precision, as the attributes are stored."""
    return struct.unpack("f", struct.pack("f", value))[0]


def _num(value: float) -> str:
    """Fixed six-decimal text of a single precision value."""
    return f"{_f32(value):f}"


class LSTM(Node):
    """Emits the recurrence of an LSTM layer.

    Y_h and Y_c are always produced, since they hold the recurrent state,
    even when the rest of the graph does not use them.
    """

    op_name = "LSTM"

    def __init__(self, name: str = "") -> None:
        super().__init__(name)
        self.activation_alpha: list[float] = []
        self.activation_beta: list[float] = []
        # In order: the f, g and h activations (twice when bidirectional).
        self.activations: list[str] = []
        self.clip = -1.0  # negative: no clipping
        self.direction = ""
        self.hidden_size = -1
        self.input_forget = 0
        self.layout = 0
        # Taken from the input tensor dimensions at resolve time.
        self.seq_length = 0
        self.batch_size = 0
        self.num_directions = 0
        self.input_size = 0

    def parse_attributes(self, attributes: Mapping[str, Any]) -> None:
        for key, value in attributes.items():
            log.debug("Parsing attribute %s", key)
            if key == "activation_alpha":
                self.activation_alpha = [float(v) for v in value]
            elif key == "activation_beta":
                self.activation_beta = [float(v) for v in value]
            elif key == "activations":
                self.activations = [str(v) for v in value]
            elif key == "clip":
                self.clip = float(value)
            elif key == "direction":
                direction = str(value)
                if direction == "":
                    direction = "forward"
                elif direction not in _DIRECTIONS:
                    raise NodeError(f"Bad value ({direction}) for direction attribute")
                if direction == "reverse":
                    log.warning("Reverse LSTM might be buggy")
                self.direction = direction
            elif key == "hidden_size":
                self.hidden_size = int(value)
            elif key == "input_forget":
                self.input_forget = int(value)
            elif key == "layout":
                self.layout = int(value)
            else:
                raise NodeError(f"Bad attribute {key} for LSTM")

    @staticmethod
    def activation_alpha_for(activation: str) -> float:
        """The default alpha of an activation function."""
        if activation in _PARAMETERLESS_ACTIVATIONS:
            return 0.0
        raise NodeError(f"Unhandled: alpha for activation: {activation}")

    @staticmethod
    def activation_beta_for(activation: str) -> float:
        """The default beta of an activation function."""
        if activation in _PARAMETERLESS_ACTIVATIONS:
            return 0.0
        raise NodeError(f"Unhandled: beta for activation: {activation}")

    def optional_input(self, n: int) -> Tensor | None:
        """The Nth input, or None if it is left out or named with the empty string."""
        if self.num_inputs() <= n:
            return None
        tensor = self.input(n)
        if tensor.name == "":
            return None
        return tensor

    @property
    def _B(self) -> Tensor | None:
        return self.optional_input(3)

    @property
    def _sequence_lens(self) -> Tensor | None:
        return self.optional_input(4)

    @property
    def _initial_h(self) -> Tensor | None:
        return self.optional_input(5)

    @property
    def _initial_c(self) -> Tensor | None:
        return self.optional_input(6)

    @property
    def _P(self) -> Tensor | None:
        return self.optional_input(7)

    def _calculate_data_dimensions(self) -> None:
        x = self.input(0)
        w = self.input(1)
        if self.layout == 0:
            self.seq_length = x.shape[0]
            self.batch_size = x.shape[1]
        else:
            self.seq_length = x.shape[1]
            self.batch_size = x.shape[0]
        self.num_directions = w.shape[0]
        self.input_size = x.shape[2]

    def resolve(self) -> None:
        if not 3 <= self.num_inputs() <= 8:
            raise NodeError("wrong number of inputs to LSTM")

        if not self.activations:
            self.activations = ["Sigmoid", "Tanh", "Tanh"]
            if self.direction == "bidirectional":
                self.activations += ["Sigmoid", "Tanh", "Tanh"]
        if len(self.activations) not in (3, 6):
            raise NodeError("Error - bad number of activations attributes")

        if not self.activation_alpha:
            self.activation_alpha = [self.activation_alpha_for(a) for a in self.activations]
        if len(self.activation_alpha) not in (3, 6):
            raise NodeError("Unimplemented/error: not 3(6) activation alphas")

        if not self.activation_beta:
            self.activation_beta = [self.activation_beta_for(a) for a in self.activations]
        if len(self.activation_beta) not in (3, 6):
            raise NodeError("Unimplemented/error: not 3(6) activation betas")

        if self.hidden_size < 0:
            raise NodeError("Must provide hidden_size attribute!")

        self.name_input(0, "X")
        self.name_input(1, "W")
        self.name_input(2, "R")
        for index, name in (
            (3, "B"),
            (4, "sequence_lens"),
            (5, "initial_h"),
            (6, "initial_c"),
            (7, "P"),
        ):
            if self.optional_input(index) is not None:
                self.name_input(index, name)

        self._calculate_data_dimensions()

        sequence_lens = self._sequence_lens
        if sequence_lens is not None:
            if sequence_lens.rank() != 1:
                raise NodeError("If providing sequence lengths, it must be a 1D tensor")
            if sequence_lens.shape[0] != self.batch_size:
                raise NodeError(
                    "If providing sequence lengths, there must be 'batch_size' of them"
                )
            if any(sl < self.seq_length for sl in sequence_lens.shape):
                raise NodeError(
                    "Error: requested sequence lenght is longer than input data"
                )

        data_type = self.input(0).data_type
        if self.layout == 0:
            y_shape = [self.seq_length, self.num_directions, self.batch_size, self.hidden_size]
            state_shape = [self.num_directions, self.batch_size, self.hidden_size]
        else:
            y_shape = [self.batch_size, self.seq_length, self.num_directions, self.hidden_size]
            state_shape = [self.batch_size, self.num_directions, self.hidden_size]

        y = Tensor(shape=y_shape, data_type=data_type)
        states = []
        for _ in range(2):
            state = Tensor(shape=list(state_shape), data_type=data_type)
            state.is_recursive = True
            # Validates that the element type is one with storage.
            state.element_size()
            state.data = [0.0] * state.num_elements()
            state.initialize = True
            states.append(state)

        self.register_output(y, "Y")
        self.register_output(states[0], "Y_h")
        self.register_output(states[1], "Y_c")

    def activation(self, activation: str, var: str) -> str:
        """The C expression applying an activation to `var`, as a statement line."""
        variable = var if self.clip < 0 else f"CLIP({var}, {_num(self.clip)})"
        if activation == "Sigmoid":
            return f"1.0f/(1+expf(-{variable}));\n"
        if activation == "Tanh":
            return f"tanh({variable});\n"
        if activation == "Relu":
            return f"MAX({variable}, 0);\n"
        raise NodeError("Unimplmemented activation function")

    def kernel(self, forward: bool) -> str:
        """The C code of one direction's step inside the sequence loop."""
        b_tensor = self._B
        p_tensor = self._P

        if forward:
            d, f_act, g_act, h_act, di = 0, 0, 1, 2, "i"
        else:
            d, f_act, g_act, h_act, di = 1, 3, 4, 5, "ds-1-i"

        if self.layout == 0:
            x_sbi = f"X[s][b][{di}]"
            y_snbh = f"Y[s][{d}][b][h]"
            yh_dbh = f"Y_h[{d}][b][h]"
            yh_dbk = f"Y_h[{d}][b][k]"
            yc_dbh = f"Y_c[{d}][b][h]"
        else:
            x_sbi = f"X[b][s][{di}]"
            y_snbh = f"Y[b][s][{d}][h]"
            yh_dbh = f"Y_h[b][{d}][h]"
            yh_dbk = f"Y_h[b][{d}][k]"
            yc_dbh = f"Y_c[b][{d}][h]"

        t2, t3, t4 = "\t\t", "\t\t\t", "\t\t\t\t"
        acts = self.activations
        out: list[str] = []

        out.append(f"{t2}for( int b=0; b<bs; b++)\n")
        out.append(f"{t2}for( int h=0; h<hs; h++) {{\n")
        out.append(f"{t3}ft[b][h]=0;\n")
        out.append(f"{t3}it[b][h]=0;\n")
        out.append(f"{t3}ct[b][h]=0;\n")

        out.append(f"{t3}for( int i=0; i<ds; i++) {{\n")
        out.append(f"{t4}ft[b][h] += {x_sbi}*W[{d}][fidx+h][i];\n")
        out.append(f"{t4}it[b][h] += {x_sbi}*W[{d}][iidx+h][i];\n")
        out.append(f"{t4}ct[b][h] += {x_sbi}*W[{d}][cidx+h][i];\n")
        out.append(f"{t3}}}\n")

        out.append(f"{t3}for( int k=0; k<hs; k++) {{\n")
        out.append(f"{t4}ft[b][h] += {yh_dbk}*R[{d}][fidx+h][k];\n")
        out.append(f"{t4}ct[b][h] += {yh_dbk}*R[{d}][cidx+h][k];\n")
        out.append(f"{t4}it[b][h] += {yh_dbk}*R[{d}][iidx+h][k];\n")
        out.append(f"{t3}}}\n")

        if b_tensor is not None:
            out.append(f"{t3}ft[b][h] += B[{d}][fidx+h];\n")
            out.append(f"{t3}ft[b][h] += B[{d}][Rb+fidx+h];\n")
            out.append(f"{t3}it[b][h] += B[{d}][iidx+h];\n")
            out.append(f"{t3}it[b][h] += B[{d}][Rb+iidx+h];\n")
            out.append(f"{t3}ct[b][h] += B[{d}][cidx+h];\n")
            out.append(f"{t3}ct[b][h] += B[{d}][Rb+cidx+h];\n")
        if p_tensor is not None:
            # The cell gate has no peephole.
            out.append(f"{t3}ft[b][h] += P[{d}][fidx+h]*{yc_dbh};\n")
            out.append(f"{t3}it[b][h] += P[{d}][iidx+h]*{yc_dbh};\n")

        out.append(f"{t3}ft[b][h] =" + self.activation(acts[f_act], "ft[b][h]"))
        out.append(f"{t3}it[b][h] =" + self.activation(acts[f_act], "it[b][h]"))
        out.append(f"{t3}ct[b][h] =" + self.activation(acts[g_act], "ct[b][h]"))
        out.append(f"{t2}}}\n")

        out.append(f"{t2}for( int b=0; b<bs; b++)\n")
        out.append(f"{t2}for( int h=0; h<hs; h++) {{\n")
        out.append(f"{t3}/* Cell state */\n")
        out.append(f"{t3}{yc_dbh} = {yc_dbh}*ft[b][h] + it[b][h]*ct[b][h];\n")
        out.append(f"{t3}/* Output gate */\n")
        out.append(f"{t3}ot[b][h]=0;\n")
        out.append(f"{t3}for( int i=0; i<ds; i++)\n")
        out.append(f"{t4}ot[b][h] += {x_sbi}*W[{d}][oidx+h][i];\n")
        out.append(f"{t3}for( int k=0; k<hs; k++)\n")
        out.append(f"{t4}ot[b][h] += {yh_dbk}*R[{d}][oidx+h][k];\n")
        if b_tensor is not None:
            out.append(f"{t3}ot[b][h] += B[{d}][oidx+h];\n")
            out.append(f"{t3}ot[b][h] += B[{d}][Rb+oidx+h];\n")
        if p_tensor is not None:
            out.append(f"{t3}ot[b][h] += P[{d}][oidx+h]*{yc_dbh};\n")
        out.append(f"{t3}ot[b][h] =" + self.activation(acts[f_act], "ot[b][h]"))
        out.append(f"{t2}}}\n")

        out.append(f"{t2}/* Hidden state */\n")
        out.append(f"{t2}for( int b=0; b<bs; b++)\n")
        out.append(f"{t2}for( int h=0; h<hs; h++) {{\n")
        out.append(f"{t3}{yh_dbh} = ot[b][h] * " + self.activation(acts[h_act], yc_dbh))
        if self.output(0).used:
            out.append(f"{t3}{y_snbh}= {yh_dbh};\n")
        out.append(f"{t2}}}\n\n")
        return "".join(out)

    def render(self) -> str:
        x = self.input(0)
        w = self.input(1)
        r = self.input(2)
        b_tensor = self._B
        sequence_lens = self._sequence_lens
        initial_h = self._initial_h
        initial_c = self._initial_c
        p_tensor = self._P

        def cname(tensor: Tensor | None) -> str:
            return tensor.c_name() if tensor is not None else ""

        t1 = "\t"
        clip_text = _num(self.clip) if self.clip > 0 else "off"
        activations = "".join(f"{a} " for a in self.activations)
        out = [
            f"{t1}/* LSTM \n",
            f"{t1} * inputs: \n",
            f"{t1} *   X = {x.c_name()}\n",
            f"{t1} *   W = {w.c_name()}\n",
            f"{t1} *   R = {r.c_name()}\n",
            f"{t1} *   B = {cname(b_tensor)}\n",
            f"{t1} *   sequence_lens = {cname(sequence_lens)}\n",
            f"{t1} *   initial_h = {cname(initial_h)}\n",
            f"{t1} *   initial_c = {cname(initial_c)}\n",
            f"{t1} *   P = {cname(p_tensor)}\n",
            f"{t1} * outputs: \n",
            f"{t1} *   Y = {self.output(0).c_name()}\n",
            f"{t1} *   Y_h = {self.output(1).c_name()}\n",
            f"{t1} *   Y_c = {self.output(2).c_name()}\n",
            f"{t1} * attributes:\n",
            f"{t1} *   activations: {activations}\n",
            f"{t1} * clip: {clip_text}\n",
            f"{t1} * layout: {self.layout}\n",
            f"{t1} * (rest TBD):\n",
            f"{t1} */\n",
        ]

        data_type = x.c_type()
        hs, ds, bs = self.hidden_size, self.input_size, self.batch_size
        out += [
            f"{t1}int hs = {hs};\n",
            f"{t1}int ds = {ds};\n",
            f"{t1}int bs = {bs};\n",
            f"{t1}int iidx = 0;\n",
            f"{t1}int oidx = hs;\n",
            f"{t1}int fidx = 2*hs;\n",
            f"{t1}int cidx = 3*hs;\n",
            f"{t1}int Rb = 4*hs;\n",
            f"{t1}int sequence_lenght = {self.seq_length};\n",
            f"{t1}/* Forget gate */\n",
            f"{t1}{data_type} ft[{bs}][{hs}];\n",
            f"{t1}/* Input gate */\n",
            f"{t1}{data_type} it[{bs}][{hs}];\n",
            f"{t1}/* Cell gate */\n",
            f"{t1}{data_type} ct[{bs}][{hs}];\n",
            f"{t1}/* Output gate */\n",
            f"{t1}{data_type} ot[{bs}][{hs}];\n",
            "\n",
        ]

        if initial_h is not None and initial_h.used:
            out.append(f"{t1}memcpy(Y_h, initial_h, sizeof(*initial_h));\n")
        else:
            out.append(f"{t1}memset(Y_h, 0, sizeof(*Y_h));\n")
        if initial_c is not None and initial_c.used:
            out.append(f"{t1}memcpy(Y_c, initial_c, sizeof(*initial_c));\n")
        else:
            out.append(f"{t1}memset(Y_c, 0, sizeof(*Y_c));\n")
        out.append("\n")

        out.append(f"{t1}for( int s=0; s<sequence_lenght; s++) {{\n")
        out.append("\n")
        out.append("\t\t/* Forward lane */\n")
        out.append(self.kernel(True))
        if self.direction == "bidirectional":
            out.append("\n")
            out.append("\t\t/* Backward lane */\n")
            out.append(self.kernel(False))
        out.append(f"{t1}}} /* sequences */\n")
        return "".join(out)