import pytest

from onnxgen.convtranspose import ConvTranspose
from onnxgen.node import DataType, NodeError, Tensor


def make_node(x_shape, w_shape, bias=False, attributes=None):
    node = ConvTranspose("ct")
    node.register_input(Tensor(name="X", shape=x_shape, data_type=DataType.FLOAT), "X")
    node.register_input(Tensor(name="W", shape=w_shape, data_type=DataType.FLOAT), "W")
    if bias:
        node.register_input(
            Tensor(name="B", shape=[w_shape[1]], data_type=DataType.FLOAT), "B"
        )
    if attributes:
        node.parse_attributes(attributes)
    node.resolve()
    return node


def test_default_output_shape_worked_example():
    node = make_node([1, 1, 3, 3], [1, 2, 3, 3])
    assert node.output(0).shape == [1, 2, 5, 5]


def test_defaults_filled_from_inputs():
    node = make_node([1, 1, 3, 3], [1, 2, 3, 3])
    assert node.strides == [1, 1]
    assert node.dilations == [1, 1]
    assert node.output_padding == [0, 0]
    assert node.kernel_shape == [3, 3]
    assert node.pads == [0, 0, 0, 0]
    assert node.output_shape_given is False


def test_same_upper_output_is_input_times_stride():
    node = make_node(
        [1, 1, 3, 3], [1, 1, 3, 3], attributes={"auto_pad": "SAME_UPPER", "strides": [2, 2]}
    )
    assert node.output(0).shape[2:] == [3 * 2, 3 * 2]
    assert node.pads[2:] == [1, 1]
    assert node.pads[:2] == [0, 0]


def test_same_lower_increments_start_pads():
    node = make_node(
        [1, 1, 3, 3], [1, 1, 3, 3], attributes={"auto_pad": "SAME_LOWER", "strides": [2, 2]}
    )
    assert node.pads[:2] == [1, 1]
    assert node.pads[2:] == [0, 0]


def test_given_output_shape_kept_and_pads_symmetric():
    node = make_node(
        [1, 1, 3, 3],
        [1, 2, 3, 3],
        attributes={"strides": [3, 2], "output_shape": [10, 8]},
    )
    assert node.output_shape_given is True
    assert node.output(0).shape[2:] == [10, 8]
    n = 2
    for i in range(n):
        assert abs(node.pads[i] - node.pads[i + n]) <= 1


def test_given_output_shape_pads_never_negative():
    node = make_node([1, 1, 2], [1, 1, 2], attributes={"output_shape": [50]})
    assert node.pads == [0, 0]


def test_group_other_than_one_rejected():
    with pytest.raises(NodeError):
        make_node([1, 2, 3, 3], [2, 1, 3, 3], attributes={"group": 2})


def test_output_channels_from_weights():
    node = make_node([2, 1, 4], [1, 5, 3])
    assert node.calculate_output_size()[:2] == [2, 5]


def test_render_memsets_whole_output():
    node = make_node([1, 1, 3, 3], [1, 2, 3, 3])
    y = node.output(0)
    text = node.render()
    assert f"\tmemset(y, 0,{y.num_elements() * y.element_size()});" in text


def test_bias_loop_only_with_bias():
    with_bias = make_node([1, 1, 3], [1, 2, 3], bias=True).calculation()
    without = make_node([1, 1, 3], [1, 2, 3]).calculation()
    assert "bias[m]" in with_bias
    assert "bias[m]" not in without


def test_header_reports_output_shape_given():
    node = make_node([1, 1, 3], [1, 1, 3], attributes={"output_shape": [5]})
    header = node.header_comment()
    assert "output_shape explicitly given in ONNX model: true" in header
    assert header.startswith("\t/* ConvTranspose\n")


def test_calculation_contains_accumulation():
    node = make_node([1, 1, 3, 3], [1, 2, 3, 3])
    text = node.calculation()
    assert "y[b][m][o0][o1] += x[b][c][i0][i1] * w[c][m][k0][k1];" in text
    assert text.count("/* k */") == 2