import pytest

from physarum.calculation.models import Node, NodeType, Connection


def make_chain():
    """源 0 -> 2 -> 3 -> 汇 1，长度 1 / 2 / 1，流导均为 0.8"""
    source = Node(0, NodeType.SOURCE)
    sink = Node(1, NodeType.SINK)
    n2 = Node(2)
    n3 = Node(3)
    nodes = [source, sink, n2, n3]
    connections = [
        Connection(source, n2, 1.0, 0.8),
        Connection(n2, n3, 2.0, 0.8),
        Connection(n3, sink, 1.0, 0.8),
    ]
    return nodes, connections


def make_branch():
    """两条并联支路：短路 0-2-1 (L=1+1)，长路 0-3-1 (L=5+5)，初始流导均为 1"""
    source = Node(0, NodeType.SOURCE)
    sink = Node(1, NodeType.SINK)
    short_mid = Node(2)
    long_mid = Node(3)
    nodes = [source, sink, short_mid, long_mid]
    connections = [
        Connection(source, short_mid, 1.0, 1.0),
        Connection(short_mid, sink, 1.0, 1.0),
        Connection(source, long_mid, 5.0, 1.0),
        Connection(long_mid, sink, 5.0, 1.0),
    ]
    return nodes, connections


@pytest.fixture
def chain():
    return make_chain()


@pytest.fixture
def branch():
    return make_branch()
