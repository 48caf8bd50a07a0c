import pytest

from onnxgen.elementwise import Elementwise
from onnxgen.node import DataType, NodeError, Tensor

ALL_OPS = [
    "Abs", "Acos", "Acosh", "Asin", "Asinh", "Atan", "Atanh", "Ceil", "Celu",
    "Cos", "Cosh", "Floor", "Elu", "Erf", "Exp", "HardSigmoid", "HardSwish",
    "Identity", "LeakyRelu", "Log", "Neg", "Not", "Reciprocal", "Round", "Selu",
    "Shrink", "Sigmoid", "Sign", "Sin", "Sinh", "Softplus", "Softsign", "Sqrt",
    "Tan", "Tanh", "ThresholdedRelu",
]


def _resolved(op, shape=(2, 3), data_type=DataType.FLOAT):
    node = Elementwise(op)
    node.register_input(Tensor(name="in", shape=list(shape), data_type=data_type), "")
    node.resolve()
    return node


@pytest.mark.parametrize("op", ALL_OPS)
def test_every_operation_is_a_statement_on_its_argument(op):
    node = Elementwise(op)
    expression = node.operation("value")
    assert expression.endswith(";")
    assert "value" in expression


def test_unknown_operation_raises():
    with pytest.raises(NodeError):
        Elementwise("Frobnicate")


def test_abs_uses_fabs():
    assert Elementwise("Abs").operation("x").startswith("fabs(")


def test_op_name_is_the_operator():
    assert Elementwise("Tanh").op_name == "Tanh"


def test_resolve_keeps_shape_and_type():
    node = _resolved("Sqrt", shape=(4, 5, 6), data_type=DataType.DOUBLE)
    out = node.output(0)
    assert out.shape == [4, 5, 6]
    assert out.data_type == DataType.DOUBLE
    assert node.num_outputs() == 1


def test_resolve_names_input_x():
    node = _resolved("Exp")
    assert " X[" in node.definition_parameters()
    assert " Y[" in node.definition_parameters()


def test_parse_attributes_changes_alpha():
    node = Elementwise("LeakyRelu")
    node.parse_attributes({"alpha": 0.5})
    assert node.alpha == 0.5
    assert "0.500000" in node.operation("x")


def test_parse_unknown_attribute_raises():
    node = Elementwise("Relu" if False else "Abs")
    with pytest.raises(NodeError):
        node.parse_attributes({"delta": 1.0})


def test_render_has_one_loop_per_dimension():
    node = _resolved("Sin", shape=(2, 3, 4))
    body = node.render()
    assert body.count("for (unsigned") == 3
    assert "Y[i0][i1][i2] = " in body
    assert "X[i0][i1][i2]" in body
    assert body.splitlines()[0].startswith("\t/* Sin")


def test_render_closes_every_loop():
    node = _resolved("Cos", shape=(7,))
    lines = node.render().splitlines()
    assert lines.count("\t}") == 1