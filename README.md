# onnxgen

`onnxgen` turns single ONNX operator nodes into plain C source with no
dependencies. For each node it does two things:

1. It works out the shapes and element types of the outputs from those of the inputs.
2. It writes the body of a C function that carries out the operation with fixed-size loops.

The generated code is meant for small targets such as microcontrollers. The
package has no dependencies outside the standard library.

## Installation

```
pip install onnxgen
```

To run the test suite:

```
pip install "onnxgen[test]"
pytest
```

## Concepts

`onnxgen.node.Tensor` is a dataclass that describes one tensor. Its fields are:

- `name`
- `shape`, a list of ints
- `data_type`, an `onnxgen.node.DataType`, numbered as in the ONNX tensor protocol
- `data`, optional constant contents
- the flags `is_const`, `is_io`, `is_recursive`, `initialize` and `used`

It provides these methods:

- `rank()` and `num_elements()`
- `element_size()`, the size in bytes of one element
- `c_type()`, for example `float` or `int64_t`
- `c_name()`, which is `tensor_` followed by the C-safe name
- `element(i)` and `element_float(i)`, which read the constant data
- `declaration(name, const)`, which gives a C array declaration

`onnxgen.node.Node` is the base class of every operator. To use a node:

1. Register its input tensors with `register_input(tensor, name)`.
2. Apply ONNX attributes with `parse_attributes(mapping)`. The mapping goes from attribute name to value.
3. Call `resolve()`. It checks the inputs, gives them their local names and creates the output tensors. Read the outputs with `output(n)` or iterate over them with `outputs()`.
4. Call `render()`. It returns the C function body as a string.

`definition_parameters()` gives the parameter list for the function signature. `callsite_parameters()` gives the argument list for a call. Both leave out tensors whose `used` flag is false.

Invalid inputs or unsupported configurations raise `onnxgen.node.NodeError`.

```python
from onnxgen.node import DataType, Tensor
from onnxgen.gemm import Gemm

a = Tensor(name="A", shape=[2, 3], data_type=DataType.FLOAT)
b = Tensor(name="B", shape=[3, 4], data_type=DataType.FLOAT)

node = Gemm()
node.register_input(a, "A")
node.register_input(b, "B")
node.parse_attributes({"alpha": 0.5})
node.resolve()

print(node.output(0).shape)           # [2, 4]
print(node.definition_parameters())   # const float A[2][3], const float B[3][4], float Y[2][4]
print(node.render())
```

## Operators

### `onnxgen.elementwise.Elementwise(op)`

Applies one scalar function to every element. The `op` argument names the
function. The supported values are:

- Abs, Acos, Acosh, Asin, Asinh, Atan, Atanh
- Ceil, Celu, Cos, Cosh, Elu, Erf, Exp, Floor
- HardSigmoid, HardSwish, Identity, LeakyRelu, Log, Neg, Not, Reciprocal, Round
- Selu, Shrink, Sigmoid, Sign, Sin, Sinh, Softplus, Softsign, Sqrt, Tan, Tanh, ThresholdedRelu

Any other value raises `NodeError`. The node accepts the attributes `alpha`,
`beta`, `bias`, `gamma` and `lambd`. Round rounds halves away from zero and
logs a warning about this.

### `onnxgen.gemm.Gemm(quantize=False)`

Computes `Y = alpha*A*B + beta*C` and accepts the attributes `alpha`, `beta`,
`transA` and `transB`. The optional `C` input may have any of these shapes:

- rank 1, of size M, N or 1
- rank 2

With `quantize=True` the node accumulates in `int32_t`, scales the result
down and clamps it to ±127.

### `onnxgen.matmulinteger.MatMulInteger(quantize=False)`

Multiplies two integer matrices. It accepts optional single-element zero
points for A and B. The output is `INT32`, or `INT8` when `quantize=True`.
`result_dim()` returns the `(rows, cols)` of the result.

### `onnxgen.convtranspose.ConvTranspose`

Performs a transposed convolution. It accepts the attributes `auto_pad`,
`dilations`, `group`, `kernel_shape`, `pads`, `strides`, `output_padding` and
`output_shape`.

- If `output_shape` is not given, it is computed.
- If `output_shape` is given, the pads are derived from it.
- Only `group == 1` is supported.

### `onnxgen.split.Split`

Splits along `axis` into parts whose sizes come from a second input. That
input must be constant. The sizes must be non-negative and must add up to the
axis length.

### `onnxgen.lstm.LSTM`

Builds an LSTM layer with forward or bidirectional lanes. It accepts these attributes:

- `activations`: Sigmoid, Tanh or Relu
- `activation_alpha`, `activation_beta`
- `clip`
- `direction`
- `hidden_size`, which is required
- `input_forget`
- `layout`: 0 or 1

The optional inputs B, sequence_lens, initial_h, initial_c and P can be left
out. They can also be given as tensors named with the empty string. The
outputs are Y, Y_h and Y_c. Y_h and Y_c are always created, because they hold
the recurrent state.

### `onnxgen.pad.Pad`

Pads each axis at its start and end. It supports the modes `constant`,
`reflect` and `edge`.

- The paddings come from a constant `INT64` pads input, or else from the older `pads` attribute.
- The constant comes from a constant third input, or else from the `value` attribute.
- The output element type is always `FLOAT`.

## Helpers in `onnxgen.node`

- `broadcast_shape(a, b)` applies multidirectional broadcasting to two shapes. It raises `NodeError` when the shapes do not broadcast.
- `cify_name(name)` replaces each character that cannot appear in a C identifier with `_`.
- Type-constraint predicates take a tensor and return a bool:
  - `is_high_precision_numeric`
  - `is_int64`
  - `is_plain_floating_point`
  - `is_floating_point`
  - `is_8bit`
  - `is_integer`
  - `is_unsigned_integer`
  - `is_signed_integer`

## What it does not do

`onnxgen` works one node at a time. It does not:

- read `.onnx` model files or protobuf data
- build or order a whole graph
- write a complete C translation unit with function signatures, globals and includes
- provide a command-line tool

The caller builds the `Tensor` objects and wires the nodes together. Only the
operators listed above are available.