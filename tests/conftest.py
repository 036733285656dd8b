import pytest
from onnx import TensorProto, helper


def make_model(nodes, inputs=(), outputs=(), initializers=(), name="test-graph", producer_name="pytest"):
    graph_def = helper.make_graph(
        list(nodes),
        name,
        [helper.make_tensor_value_info(n, TensorProto.FLOAT, shape) for n, shape in inputs],
        [helper.make_tensor_value_info(n, TensorProto.FLOAT, shape) for n, shape in outputs],
        list(initializers),
    )
    return helper.make_model(graph_def, producer_name=producer_name)


@pytest.fixture
def conv_model():
    """Conv(x, w, b) -> y with weight and bias stored as initializers."""
    node = helper.make_node(
        'Conv', ['x', 'w', 'b'], ['y'], name='conv1',
        kernel_shape=[3, 3], pads=[1, 1, 1, 1], strides=[1, 1],
    )
    return make_model(
        [node],
        inputs=[('x', [1, 3, 32, 32])],
        outputs=[('y', [1, 8, 32, 32])],
        initializers=[
            helper.make_tensor('w', TensorProto.FLOAT, [8, 3, 3, 3], [0.5] * 216),
            helper.make_tensor('b', TensorProto.FLOAT, [8], [0.0] * 8),
        ],
    )


@pytest.fixture
def conv_bytes(conv_model):
    return conv_model.SerializeToString()


@pytest.fixture
def chain_model():
    """x -> Relu -> Sigmoid -> Add(relu_out, sigmoid_out) -> z, with a skip edge."""
    nodes = [
        helper.make_node('Relu', ['x'], ['r'], name='relu'),
        helper.make_node('Sigmoid', ['r'], ['s'], name='sigmoid'),
        helper.make_node('Add', ['r', 's'], ['z'], name='add'),
    ]
    return make_model(nodes, inputs=[('x', [1, 4])], outputs=[('z', [1, 4])])


@pytest.fixture
def chain_bytes(chain_model):
    return chain_model.SerializeToString()


@pytest.fixture
def empty_bytes():
    return make_model([], name="empty").SerializeToString()


@pytest.fixture
def model_factory():
    """Builds ModelProtos from (name, shape) value infos and onnx.helper nodes."""
    return make_model
