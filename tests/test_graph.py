"""
Tests for SignalGraph.
"""
import pytest
import numpy as np

from duomix.core.errors import GraphError
from duomix.core.graph import Node, SignalGraph


class ConstantNode(Node):
    """Outputs its input plus a constant."""
    name = "constant"

    def __init__(self, value):
        self.value = value
        self.calls = []

    def process(self, block, start_sample):
        self.calls.append(start_sample)
        return block + self.value


class TestSignalGraph:

    def test_empty_graph_renders_silence(self):
        graph = SignalGraph(1000)
        out = graph.render(64)
        assert out.shape == (64, 2)
        assert not np.any(out)

    def test_clock_advances(self):
        graph = SignalGraph(1000)
        graph.render(100)
        graph.render(150)
        assert graph.current_sample == 250
        assert graph.now() == pytest.approx(0.25)
        assert graph.seconds_to_samples(0.1) == 100

    def test_inputs_are_summed(self):
        graph = SignalGraph(1000)
        a = graph.add(ConstantNode(0.25))
        b = graph.add(ConstantNode(0.5))
        graph.connect(a, graph.destination)
        graph.connect(b, graph.destination)
        out = graph.render(8)
        assert np.allclose(out, 0.75)

    def test_chain_order(self):
        graph = SignalGraph(1000)
        a = graph.add(ConstantNode(1.0))
        b = graph.add(ConstantNode(2.0))
        graph.chain(a, b, graph.destination)
        assert graph.is_connected(a, b)
        assert np.allclose(graph.render(4), 3.0)

    def test_unconnected_nodes_still_run(self):
        graph = SignalGraph(1000)
        node = ConstantNode(1.0)
        graph.add(node)
        graph.render(10)
        graph.render(10)
        assert node.calls == [0, 10]

    def test_cycle_rejected(self):
        graph = SignalGraph(1000)
        a = graph.add(ConstantNode(0.0))
        b = graph.add(ConstantNode(0.0))
        graph.connect(a, b)
        with pytest.raises(GraphError):
            graph.connect(b, a)
        # the failed edge is not kept
        assert not graph.is_connected(b, a)
        graph.render(4)

    def test_self_loop_rejected(self):
        graph = SignalGraph(1000)
        a = graph.add(ConstantNode(0.0))
        with pytest.raises(GraphError):
            graph.connect(a, a)

    def test_unknown_handle(self):
        graph = SignalGraph(1000)
        with pytest.raises(GraphError):
            graph.connect(42, graph.destination)
        with pytest.raises(GraphError):
            graph.node(42)

    def test_disconnect_all_outputs(self):
        graph = SignalGraph(1000)
        a = graph.add(ConstantNode(1.0))
        b = graph.add(ConstantNode(0.0))
        graph.connect(a, b)
        graph.connect(a, graph.destination)
        graph.disconnect(a)
        assert graph.inputs_of(graph.destination) == []
        assert not graph.is_connected(a, b)

    def test_remove_node(self):
        graph = SignalGraph(1000)
        a = graph.add(ConstantNode(1.0))
        graph.connect(a, graph.destination)
        graph.remove(a)
        assert a not in graph
        assert not np.any(graph.render(4))

    def test_destination_cannot_be_removed(self):
        graph = SignalGraph(1000)
        with pytest.raises(GraphError):
            graph.remove(graph.destination)
