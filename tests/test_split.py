import pytest

from onnxgen.node import DataType, NodeError, Tensor
from onnxgen.split import Split


def make_node(shape, sizes, axis=None, const=True, data_type=DataType.FLOAT):
    node = Split("s")
    node.register_input(Tensor(name="in", shape=shape, data_type=data_type), "in")
    node.register_input(
        Tensor(
            name="split",
            shape=[len(sizes)],
            data_type=DataType.INT64,
            data=list(sizes),
            is_const=const,
        ),
        "split",
    )
    if axis is not None:
        node.parse_attributes({"axis": axis})
    return node


def test_output_shapes_follow_split_sizes():
    node = make_node([2, 6], [2, 4], axis=1)
    node.resolve()
    assert [t.shape for t in node.outputs()] == [[2, 2], [2, 4]]
    assert all(t.data_type == DataType.FLOAT for t in node.outputs())


def test_default_axis_zero():
    node = make_node([6], [1, 2, 3])
    node.resolve()
    assert node.num_outputs() == 3
    assert sum(t.shape[0] for t in node.outputs()) == 6


def test_negative_axis_normalized():
    node = make_node([2, 6], [3, 3], axis=-1)
    node.resolve()
    assert node.axis == 1


def test_sum_mismatch_rejected():
    with pytest.raises(NodeError):
        make_node([2, 6], [2, 2], axis=1).resolve()


def test_negative_size_rejected():
    with pytest.raises(NodeError):
        make_node([6], [-1, 7]).resolve()


def test_non_constant_split_rejected():
    with pytest.raises(NodeError):
        make_node([6], [3, 3], const=False).resolve()


def test_missing_split_input_rejected():
    node = Split()
    node.register_input(Tensor(shape=[4], data_type=DataType.FLOAT), "in")
    with pytest.raises(NodeError):
        node.resolve()


@pytest.mark.parametrize("name", ["num_outputs", "split", "other"])
def test_unsupported_attributes(name):
    with pytest.raises(NodeError):
        Split().parse_attributes({name: 2})


def test_render_cases_per_output():
    node = make_node([2, 6], [2, 4], axis=1)
    node.resolve()
    text = node.render()
    assert "\t\t\tcase 1:\n\t\t\t\toutput_1[idx[0]][idx[1] - offset] = x;\n" in text
    assert "case 2:" not in text
    assert "\t\tfloat x = ((float *)input)[i];\n" in text


def test_render_header_values():
    node = make_node([2, 6], [2, 4], axis=1)
    node.resolve()
    text = node.render()
    assert text.startswith("\t/*Split*/\n\tconst size_t axis = 1;\n")
    assert "for (size_t i = 0; i < (2 * 6); i++)" in text