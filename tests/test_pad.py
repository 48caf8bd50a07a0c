import pytest

from onnxgen.node import DataType, NodeError, Tensor
from onnxgen.pad import Pad


def _data(shape):
    return Tensor(name="data", shape=list(shape), data_type=DataType.FLOAT)


def _pads(values, const=True, data_type=DataType.INT64):
    return Tensor(
        name="pads", shape=[len(values)], data_type=data_type, data=list(values), is_const=const
    )


def _node(shape, pads, mode=None, constant=None):
    node = Pad("pad")
    node.register_input(_data(shape), "")
    node.register_input(pads, "")
    if constant is not None:
        node.register_input(constant, "")
    if mode is not None:
        node.parse_attributes({"mode": mode})
    node.resolve()
    return node


def test_output_shape_from_tensor():
    node = _node([2, 3], _pads([1, 0, 2, 4]))
    assert node.paddings_start == [1, 0]
    assert node.paddings_end == [2, 4]
    out = node.output(0)
    assert out.shape == [2 + 1 + 2, 3 + 0 + 4]
    assert out.data_type == DataType.FLOAT


def test_output_shape_from_attribute():
    node = Pad()
    node.register_input(_data([3]), "")
    node.parse_attributes({"pads": [2, 1], "value": 1.5})
    node.resolve()
    assert node.output(0).shape == [3 + 2 + 1]
    assert node.constant == 1.5


def test_non_constant_pads_rejected():
    with pytest.raises(NodeError, match="Non-constant 'pads'"):
        _node([2], _pads([1, 1], const=False))


def test_non_int64_pads_rejected():
    with pytest.raises(NodeError, match="not a tensor of int64"):
        _node([2], _pads([1, 1], data_type=DataType.INT32))


def test_constant_value_tensor():
    value = Tensor(name="v", shape=[], data_type=DataType.FLOAT, data=[2.5], is_const=True)
    node = _node([2], _pads([1, 1]), constant=value)
    assert node.constant == 2.5
    assert "output[o0] = 2.5;" in node.render()


def test_undefined_constant_value_means_zero():
    value = Tensor(name="v", data_type=DataType.UNDEFINED)
    node = _node([2], _pads([1, 1]), constant=value)
    assert node.constant == 0.0


def test_non_constant_value_rejected():
    value = Tensor(name="v", shape=[], data_type=DataType.FLOAT, is_const=False)
    with pytest.raises(NodeError, match="Non-constant 'constant_value'"):
        _node([2], _pads([1, 1]), constant=value)


def test_render_constant_mode():
    text = _node([2, 3], _pads([1, 0, 2, 4])).render()
    assert " * mode: constant" in text
    assert "bool pad_at_0=false;" in text
    assert "if ( pad_at_0  || pad_at_1)" in text
    assert "output[o0][o1]= data[ir0][ir1];" in text
    assert text.count("{") == text.count("}")


def test_render_reflect_mode():
    text = _node([3], _pads([1, 1]), mode="reflect").render()
    assert "ir0= 1 - o0;" in text
    assert "ir0 = 2*3+1-o0-2;" in text
    assert "pad_at_0" not in text


def test_render_edge_mode():
    text = _node([3], _pads([1, 1]), mode="edge").render()
    assert "ir0= 0;" in text
    assert "ir0 = 3-1;" in text
    assert "bool pad_at_0" not in text


def test_unknown_attribute_ignored():
    node = Pad()
    node.parse_attributes({"foo": 1})
    assert node.mode == "constant"
    assert node.pads_attribute == []


def test_parameters_naming():
    node = _node([2], _pads([1, 1]))
    params = node.definition_parameters()
    assert params.startswith("const float data[2], const int64_t pads[2]")
    assert params.endswith("float output[4]")