import logging

import pytest
from onnx import helper

from nnviz.graph.canonical import (
    CanonicalGraph,
    GraphBuilder,
    GraphEdge,
    GraphNode,
    NodeKind,
    build_canonical_graph,
    canonical_names,
)
from nnviz.errors import BuildError
from nnviz.ir.onnx_decoder import decode
from nnviz.ir.raw_model import RawModel, RawNode


def _build(model, **kwargs):
    return build_canonical_graph(decode(model.SerializeToString()), **kwargs)


def _edges_by_name(graph):
    return {(graph.nodes[e.source].name, graph.nodes[e.target].name) for e in graph.edges}


def test_conv_scenario(conv_model):
    """Conv(x, w, b) -> y gives three input nodes, one operator and three edges."""
    graph = _build(conv_model)

    inputs = {n.name for n in graph.nodes_of_kind(NodeKind.INPUT)}
    operators = graph.operators()

    assert inputs == {'x', 'w', 'b'}
    assert len(operators) == 1
    assert operators[0].name == 'y'
    assert operators[0].label == 'Conv'
    assert _edges_by_name(graph) == {('x', 'y'), ('w', 'y'), ('b', 'y')}


def test_conv_operator_details(conv_model):
    op = _build(conv_model).operators()[0]

    assert op.details == (
        'Weight: w',
        'Bias: b',
        'Dilations: –',
        'Kernel: 3×3',
        'Padding: 1×1×1×1',
        'Strides: 1×1',
    )


def test_initializer_inputs_are_flagged(conv_model):
    graph = _build(conv_model)
    flags = {n.name: n.is_initializer for n in graph.nodes_of_kind(NodeKind.INPUT)}

    assert flags == {'x': False, 'w': True, 'b': True}


def test_shared_tensor_gives_one_input_node(model_factory):
    nodes = [
        helper.make_node('Relu', ['t'], ['a']),
        helper.make_node('Sigmoid', ['t'], ['b']),
    ]
    graph = _build(model_factory(nodes, inputs=[('t', [1])]))

    inputs = list(graph.nodes_of_kind(NodeKind.INPUT))
    assert [n.name for n in inputs] == ['t']
    assert _edges_by_name(graph) == {('t', 'a'), ('t', 'b')}


def test_ids_follow_first_seen_order(chain_model):
    graph = _build(chain_model)

    ids = {n.name: n.id for n in graph.nodes.values()}
    assert ids == {'x': 'id-1', 'r': 'id-2', 's': 'id-3', 'z': 'id-4'}
    assert [(e.source, e.target) for e in graph.edges] == [
        ('id-1', 'id-2'),
        ('id-2', 'id-3'),
        ('id-2', 'id-4'),
        ('id-3', 'id-4'),
    ]


def test_identity_is_stable(chain_bytes):
    """Building twice from the same bytes gives identical ids and edges."""
    first = build_canonical_graph(decode(chain_bytes), output_nodes=True)
    second = build_canonical_graph(decode(chain_bytes), output_nodes=True)

    assert first.to_dict() == second.to_dict()


def test_every_edge_endpoint_exists(chain_model, conv_model):
    for model in (chain_model, conv_model):
        graph = _build(model, output_nodes=True)
        graph.validate()
        for edge in graph.edges:
            assert edge.source in graph.nodes
            assert edge.target in graph.nodes


def test_output_nodes(chain_model):
    graph = _build(chain_model, output_nodes=True)

    outputs = list(graph.nodes_of_kind(NodeKind.OUTPUT))
    assert [(n.id, n.name) for n in outputs] == [('id-5', 'z')]
    assert graph.edges[-1] == GraphEdge(source='id-4', target='id-5', tensor='z')


def test_unproduced_declared_output_is_dropped(model_factory, caplog):
    node = helper.make_node('Relu', ['x'], ['y'])
    model = model_factory([node], inputs=[('x', [1])], outputs=[('y', [1]), ('ghost', [1])])

    with caplog.at_level(logging.WARNING):
        graph = _build(model, output_nodes=True)

    assert [n.name for n in graph.nodes_of_kind(NodeKind.OUTPUT)] == ['y']
    assert "ghost" in caplog.text


def test_unconsumed_declared_input_gets_a_node(model_factory):
    node = helper.make_node('Relu', ['x'], ['y'])
    model = model_factory([node], inputs=[('x', [1]), ('unused', [1])])

    graph = _build(model)

    assert {n.name for n in graph.nodes_of_kind(NodeKind.INPUT)} == {'x', 'unused'}
    assert graph.predecessors(graph.operators()[0].id) == ['id-1']


def test_secondary_output_resolves_to_producer(model_factory):
    nodes = [
        helper.make_node('Split', ['x'], ['a', 'b'], axis=0),
        helper.make_node('Relu', ['b'], ['c']),
    ]
    graph = _build(model_factory(nodes, inputs=[('x', [2])]))

    assert {n.name for n in graph.nodes_of_kind(NodeKind.INPUT)} == {'x'}
    split = next(n for n in graph.operators() if n.label == 'Split')
    relu = next(n for n in graph.operators() if n.label == 'Relu')
    assert graph.successors(split.id) == [relu.id]
    assert graph.edges[-1].tensor == 'b'


def test_duplicate_edges_are_collapsed(model_factory):
    node = helper.make_node('Add', ['x', 'x'], ['y'])
    graph = _build(model_factory([node], inputs=[('x', [1])]))

    assert len(graph.edges) == 1


def test_empty_optional_inputs_are_skipped(model_factory):
    node = helper.make_node('Clip', ['x', '', 'max'], ['y'])
    graph = _build(model_factory([node], inputs=[('x', [1]), ('max', [])]))

    assert {n.name for n in graph.nodes_of_kind(NodeKind.INPUT)} == {'x', 'max'}
    assert len(graph.edges) == 2


def test_duplicate_producer_falls_back_to_position(model_factory, caplog):
    nodes = [
        helper.make_node('Relu', ['x'], ['y']),
        helper.make_node('Sigmoid', ['x'], ['y']),
    ]
    with caplog.at_level(logging.WARNING):
        graph = _build(model_factory(nodes, inputs=[('x', [1])]))

    assert [n.name for n in graph.operators()] == ['y', 'node-1']
    assert "node-1" in caplog.text


def test_op_type_resolution_order():
    raw = RawModel.from_dict({'graph': {'node': [
        {'op_type': 'Relu', 'output': ['a']},
        {'type': 'Custom', 'output': ['b']},
        {'output': ['c']},
    ]}})

    graph = build_canonical_graph(raw)

    assert [n.label for n in graph.operators()] == ['Relu', 'Custom', 'Node 2']
    # The histogram key only uses the declared opType field
    assert [n.op_type for n in graph.operators()] == [None, None, None]


def test_empty_graph(empty_bytes):
    graph = build_canonical_graph(decode(empty_bytes), output_nodes=True)

    assert graph.nodes == {}
    assert graph.edges == []


def test_canonical_names_prefers_output_then_name():
    nodes = (
        RawNode(output=('y',), name='first'),
        RawNode(name='second'),
        RawNode(),
    )
    assert canonical_names(nodes) == ['y', 'second', 'node-2']


class TestGraphBuilder:
    def test_ids_are_assigned_once(self):
        builder = GraphBuilder()
        assert builder.node_id('a') == 'id-1'
        assert builder.node_id('b') == 'id-2'
        assert builder.node_id('a') == 'id-1'
        assert builder.has_id('a')
        assert not builder.has_id('c')

    def test_output_ids_share_the_counter(self):
        builder = GraphBuilder()
        builder.node_id('y')
        assert builder.output_id('y') == 'id-2'
        assert builder.output_id('y') == 'id-2'

    def test_builders_are_independent(self):
        assert GraphBuilder().node_id('a') == GraphBuilder().node_id('a')


class TestCanonicalGraph:
    def test_add_node_rejects_duplicates(self):
        graph = CanonicalGraph()
        node = GraphNode(id='id-1', kind=NodeKind.INPUT, name='x', label='x')
        graph.add_node(node)
        with pytest.raises(ValueError):
            graph.add_node(node)

    def test_validate_reports_dangling_edges(self):
        graph = CanonicalGraph()
        graph.add_node(GraphNode(id='id-1', kind=NodeKind.INPUT, name='x', label='x'))
        graph.edges.append(GraphEdge(source='id-1', target='id-9', tensor='x'))
        with pytest.raises(ValueError, match="id-9"):
            graph.validate()


def test_output_declared_twice_gets_one_node(model_factory, caplog):
    node = helper.make_node('Relu', ['x'], ['y'])
    model = model_factory([node], inputs=[('x', [1])], outputs=[('y', [1]), ('y', [1])])

    with caplog.at_level(logging.WARNING):
        graph = _build(model, output_nodes=True)

    assert [n.name for n in graph.nodes_of_kind(NodeKind.OUTPUT)] == ['y']
    assert len(graph.edges) == 2
    assert "declared more than once" in caplog.text


def test_node_name_never_takes_over_a_tensor(model_factory):
    """An operator without outputs named like a consumed tensor keeps its own node."""
    nodes = [
        helper.make_node('Relu', ['x'], ['y']),
        helper.make_node('Identity', ['x'], [], name='x'),
    ]
    graph = _build(model_factory(nodes, inputs=[('x', [1])]))

    x = next(graph.nodes_of_kind(NodeKind.INPUT))
    identity = graph.operators()[1]
    assert x.name == 'x'
    assert identity.name == 'node-1'
    assert identity.id != x.id
    assert graph.predecessors(identity.id) == [x.id]


def test_positional_name_avoids_tensor_names():
    nodes = (RawNode(input=('node-0',)),)

    assert canonical_names(nodes) == ['node-0-1']


def test_tensors_between_one_pair_share_an_edge(model_factory):
    nodes = [
        helper.make_node('Split', ['x'], ['a', 'b'], axis=0),
        helper.make_node('Add', ['a', 'b'], ['c']),
    ]
    graph = _build(model_factory(nodes, inputs=[('x', [2])]))

    split_to_add = graph.edges[-1]
    assert len(graph.edges) == 2
    assert split_to_add.tensor == 'a'
    assert split_to_add.tensors == ('a', 'b')
    assert split_to_add.to_dict()['tensors'] == ['a', 'b']


def test_inconsistent_graph_raises_build_error(conv_model, monkeypatch):
    def broken_validate(self):
        raise ValueError("dangling")

    monkeypatch.setattr(CanonicalGraph, "validate", broken_validate)

    with pytest.raises(BuildError) as excinfo:
        _build(conv_model)
    assert excinfo.value.stage == 'build'
