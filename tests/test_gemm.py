import pytest

from onnxgen.gemm import Gemm
from onnxgen.node import DataType, NodeError, Tensor


def _tensor(name, shape, data_type=DataType.FLOAT):
    return Tensor(name=name, shape=list(shape), data_type=data_type)


def _gemm(a_shape, b_shape, c_shape=None, quantize=False, **attributes):
    node = Gemm(quantize)
    node.register_input(_tensor("a", a_shape), "")
    node.register_input(_tensor("b", b_shape), "")
    if c_shape is not None:
        node.register_input(_tensor("c", c_shape), "")
    node.parse_attributes(attributes)
    node.resolve()
    return node


def test_output_shape_plain():
    node = _gemm([3, 5], [5, 7])
    assert node.output(0).shape == [3, 7]
    assert node.output(0).data_type == DataType.FLOAT


def test_output_shape_transposed():
    node = _gemm([5, 3], [7, 5], transA=1, transB=1)
    assert node.output(0).shape == [3, 7]


def test_input_names():
    node = _gemm([2, 2], [2, 2], [2, 2])
    assert node.definition_parameters().startswith("const float A[2][2], const float B")
    assert "C[2][2]" in node.definition_parameters()


def test_not_enough_inputs():
    node = Gemm()
    node.register_input(_tensor("a", [2, 2]), "")
    with pytest.raises(NodeError, match="Not enough inputs"):
        node.resolve()


def test_unknown_attribute():
    with pytest.raises(NodeError, match="unknown attribute"):
        Gemm().parse_attributes({"gamma": 1.0})


def test_render_indexing_transposes():
    text = _gemm([5, 3], [7, 5], transA=1, transB=1).render()
    assert "ABrc += A[i][r] * B_el;" in text
    assert "float B_el = B[c][i];" in text
    assert "const int M = 3;" in text
    assert "const int K = 5;" in text
    assert "const int N = 7;" in text


def test_render_default_alpha_beta():
    text = _gemm([2, 3], [3, 4]).render()
    assert "float alpha = 1;" in text
    assert "float beta = 1;" in text
    assert "tmp += C_" not in text


def test_render_row_vector_bias():
    text = _gemm([2, 3], [3, 4], [4]).render()
    assert "tmp += C_[0][c] * beta;" in text
    assert "(*C_)[4]" in text


def test_render_column_bias():
    text = _gemm([2, 3], [3, 4], [2, 1]).render()
    assert "tmp += C_[r][0] * beta;" in text


def test_render_matrix_bias():
    text = _gemm([2, 3], [3, 4], [2, 4]).render()
    assert "tmp += C_[r][c] * beta;" in text


def test_bad_bias_length():
    node = _gemm([2, 3], [3, 4], [5])
    with pytest.raises(NodeError, match="C dimension mismatch"):
        node.render()


def test_too_many_bias_dims():
    node = _gemm([2, 3], [3, 4], [1, 2, 4])
    with pytest.raises(NodeError, match="too many dimensions"):
        node.render()


def test_scalar_bias_unimplemented():
    node = _gemm([2, 3], [3, 4], [])
    with pytest.raises(NodeError, match="scalar C"):
        node.render()


def test_quantized_render():
    text = _gemm([2, 3], [3, 4], quantize=True).render()
    assert "int32_t ABrc = 0;" in text
    assert "tmp = tmp/(K*16);" in text
    assert "tmp = tmp < -127?-127:tmp;" in text