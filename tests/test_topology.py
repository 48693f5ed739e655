import pytest

from physarum.calculation.errors import ConfigurationError
from physarum.calculation.models import Node, Connection
from physarum.calculation.topology import NetworkGraph


def test_lookup_is_symmetric(chain):
    nodes, connections = chain
    graph = NetworkGraph(nodes, connections).build()

    for con in connections:
        i = graph.index_of(con.start)
        j = graph.index_of(con.end)
        assert graph.dl_fraction(i, j) == graph.dl_fraction(j, i) == con.dl_fraction()


def test_missing_edge_and_self_are_zero(chain):
    nodes, connections = chain
    graph = NetworkGraph(nodes, connections).build()

    # 源 0 与汇 1 之间没有直接连接
    assert graph.dl_fraction(0, 1) == 0.0
    for i in range(graph.size):
        assert graph.dl_fraction(i, i) == 0.0


def test_self_loop_is_not_modelled():
    a = Node(0)
    loop = Connection(a, a, 1.0, 5.0)
    graph = NetworkGraph([a], [loop]).build()
    assert graph.dl_fraction(0, 0) == 0.0


def test_lookup_follows_conductivity_changes(chain):
    nodes, connections = chain
    graph = NetworkGraph(nodes, connections).build()
    connections[1].conductivity = 3.0
    assert graph.dl_fraction(2, 3) == pytest.approx(1.5)


def test_unknown_node_is_rejected():
    a, b = Node(0), Node(1)
    stranger = Node(1)  # 同 id 但不是同一对象
    with pytest.raises(ConfigurationError):
        NetworkGraph([a, b], [Connection(a, stranger, 1.0, 1.0)]).build()


@pytest.mark.parametrize("length", [0.0, -2.0, float("nan"), float("inf")])
def test_non_positive_length_is_rejected(length):
    a, b = Node(0), Node(1)
    with pytest.raises(ConfigurationError):
        NetworkGraph([a, b], [Connection(a, b, length, 1.0)]).build()


def test_later_parallel_connection_wins_in_table():
    a, b = Node(0), Node(1)
    first = Connection(a, b, 13.0, 1.0)
    second = Connection(b, a, 42.0, 1.0)
    graph = NetworkGraph([a, b], [first, second]).build()
    assert graph.connection_between(0, 1) is second
    assert graph.dl_fraction(0, 1) == pytest.approx(1.0 / 42.0)
