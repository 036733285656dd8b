import pytest

from nnviz.analysis.summary import Complexity, classify_complexity, count_parameters, summarize
from nnviz.graph.canonical import build_canonical_graph
from nnviz.ir.onnx_decoder import decode
from nnviz.ir.raw_model import RawModel


def _chain(n, op_type='Relu'):
    nodes = [
        {'opType': op_type, 'input': [f't{i}'], 'output': [f't{i + 1}']}
        for i in range(n)
    ]
    return RawModel.from_dict({'graph': {'node': nodes, 'input': [{'name': 't0'}]}})


def test_summarize_conv_model(conv_bytes):
    analysis = summarize(build_canonical_graph(decode(conv_bytes)))

    assert analysis.total_inputs == 1
    assert analysis.total_outputs == 1
    assert analysis.total_nodes == 1
    assert analysis.total_initializers == 2
    assert analysis.total_parameters == 8 * 3 * 3 * 3 + 8
    assert analysis.model_complexity == Complexity.LOW
    assert analysis.operator_frequency == {'Conv': 1}


def test_summarize_empty_graph(empty_bytes):
    analysis = summarize(build_canonical_graph(decode(empty_bytes)))

    assert analysis.to_dict() == {
        'totalInputs': 0,
        'totalOutputs': 0,
        'totalNodes': 0,
        'totalInitializers': 0,
        'totalParameters': 0,
        'modelComplexity': 'Low',
        'operatorFrequency': {},
    }


def test_large_graph_is_high_complexity():
    analysis = summarize(build_canonical_graph(_chain(1500)))

    assert analysis.total_nodes == 1500
    assert analysis.model_complexity == Complexity.HIGH


def test_histogram_sums_to_node_count(chain_bytes):
    analysis = summarize(build_canonical_graph(decode(chain_bytes), output_nodes=True))

    assert analysis.operator_frequency == {'Relu': 1, 'Sigmoid': 1, 'Add': 1}
    assert sum(analysis.operator_frequency.values()) == analysis.total_nodes


def test_histogram_skips_nodes_without_op_type():
    raw = RawModel.from_dict({'graph': {'node': [
        {'opType': 'Relu', 'output': ['a']},
        {'type': 'Custom', 'output': ['b']},
    ]}})

    analysis = summarize(build_canonical_graph(raw))

    assert analysis.total_nodes == 2
    assert analysis.operator_frequency == {'Relu': 1}


@pytest.mark.parametrize("count, expected", [
    (0, Complexity.LOW),
    (100, Complexity.LOW),
    (101, Complexity.MEDIUM),
    (1000, Complexity.MEDIUM),
    (1001, Complexity.HIGH),
])
def test_classify_complexity_thresholds(count, expected):
    assert classify_complexity(count) == expected


def test_count_parameters():
    initializers = [{'dims': ['2', '3']}, {'dims': []}, {}]
    # A tensor without dims is a scalar
    assert count_parameters(initializers) == 6 + 1 + 1
