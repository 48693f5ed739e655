import numpy as np
import pytest
from numpy.testing import assert_allclose

from conftest import make_branch, make_chain
from physarum.calculation.errors import ConfigurationError, NumericSolveError
from physarum.calculation.models import Node, NodeType, Connection
from physarum.calculation.physics import FeedbackLaw
from physarum.calculation.solver import PhysarumSolver


def test_defaults(chain):
    solver = PhysarumSolver(*chain)
    assert solver.mue == 1.2
    assert solver.i0 == 1.0
    assert solver.survival_threshold == 0.001
    assert solver.max_iterations == 50
    assert solver.delta_conductivity_threshold == 0.00001
    assert solver.conductivity_minimum == 0.5
    assert solver.conductivity_maximum == 1.0
    assert solver.first_run


def test_construction_rejects_bad_topology():
    a, b = Node(0, NodeType.SOURCE), Node(1, NodeType.SINK)
    with pytest.raises(ConfigurationError):
        PhysarumSolver([a], [Connection(a, b, 1.0, 1.0)])
    with pytest.raises(ConfigurationError):
        PhysarumSolver([a, b], [Connection(a, b, 0.0, 1.0)])
    for length in (float("nan"), float("inf")):
        with pytest.raises(ConfigurationError):
            PhysarumSolver([a, b], [Connection(a, b, length, 1.0)])


def test_single_edge_converges_and_survives():
    source, sink = Node(0, NodeType.SOURCE), Node(1, NodeType.SINK)
    con = Connection(source, sink, 3.0, 0.5)
    solver = PhysarumSolver([source, sink], [con])

    result = solver.solve()

    assert result.converged
    assert result.iterations == 2
    assert result.survived == [con]
    assert con.conductivity == pytest.approx(1.0)
    assert abs(con.flux) == pytest.approx(1.0)


def test_chain_keeps_every_edge(chain):
    nodes, connections = chain
    solver = PhysarumSolver(nodes, connections)

    result = solver.solve()

    assert result.converged
    assert solver.get_survived_connections() == connections
    for con in connections:
        assert con.conductivity > solver.survival_threshold
        assert con.conductivity == pytest.approx(1.0)


def test_first_iteration_pins_sink_pressure(chain):
    nodes, connections = chain
    solver = PhysarumSolver(nodes, connections)
    solver.step()
    assert_allclose([n.pressure for n in nodes], [-5.0, 0.0, -3.75, -1.25], atol=1e-9)


def test_lefthand_side_assembly(chain):
    nodes, connections = chain
    solver = PhysarumSolver(nodes, connections)

    first = solver.build_lefthand_side()
    assert not solver.first_run
    # 首轮：汇点 (索引 1) 的压力项整列为 0
    assert_allclose(first[:, 1], np.zeros(4))
    assert first[0, 0] == pytest.approx(-0.8)
    assert first[0, 2] == pytest.approx(0.8)
    assert first[2, 2] == pytest.approx(-1.2)
    assert first[2, 3] == pytest.approx(0.4)

    second = solver.build_lefthand_side()
    assert second[1, 1] == pytest.approx(-0.8)
    assert second[3, 1] == pytest.approx(0.8)
    # 每行之和为 0 (流量守恒)，且矩阵对称
    assert_allclose(second.sum(axis=1), np.zeros(4), atol=1e-12)
    assert_allclose(second, second.T)


def test_righthand_side_injects_full_current_per_terminal():
    nodes = [Node(0, NodeType.SOURCE), Node(1, NodeType.SINK), Node(2, NodeType.SOURCE), Node(3)]
    solver = PhysarumSolver(nodes, [])
    solver.i0 = 2.5
    assert_allclose(solver.build_righthand_side(), [2.5, -2.5, 2.5, 0.0])


def test_dl_fraction_lookup_is_symmetric(chain):
    nodes, connections = chain
    solver = PhysarumSolver(nodes, connections)
    assert solver.get_dl_fraction(nodes[0], nodes[2]) == solver.get_dl_fraction(nodes[2], nodes[0])
    assert solver.get_dl_fraction(nodes[0], nodes[1]) == 0.0
    assert solver.get_dl_fraction(nodes[3], nodes[3]) == 0.0


def test_long_branch_is_pruned(branch):
    nodes, connections = branch
    short_a, short_b, long_a, long_b = connections
    solver = PhysarumSolver(nodes, connections)
    solver.enable_logging(True)

    result = solver.solve()

    history = result.trace.conductivity_history(2)
    assert all(later < earlier for earlier, later in zip(history, history[1:4]))
    for short_d, long_d in zip(result.trace.conductivity_history(0), history):
        assert long_d < short_d

    assert long_a.conductivity < solver.survival_threshold
    assert long_b.conductivity < solver.survival_threshold
    assert result.survived == [short_a, short_b]


def test_fixed_point_is_stable(chain):
    nodes, connections = chain
    solver = PhysarumSolver(nodes, connections)
    result = solver.solve()
    assert result.converged

    assert solver.step() == len(connections)


def test_iteration_budget_is_respected(branch):
    solver = PhysarumSolver(*branch)
    solver.max_iterations = 1
    result = solver.solve()
    assert not result.converged
    assert result.iterations == 1


def test_two_sources_two_sinks_ring_does_not_crash():
    nodes = [Node(0, NodeType.SOURCE), Node(1, NodeType.SINK), Node(2, NodeType.SOURCE), Node(3, NodeType.SINK)]
    connections = [
        Connection(nodes[0], nodes[1], 1.0, 0.7),
        Connection(nodes[1], nodes[2], 2.0, 0.9),
        Connection(nodes[2], nodes[3], 1.0, 0.6),
        Connection(nodes[3], nodes[0], 3.0, 0.8),
    ]
    solver = PhysarumSolver(nodes, connections)
    solver.solve()
    assert all(np.isfinite(n.pressure) for n in nodes)
    assert all(np.isfinite(c.conductivity) for c in connections)


def test_disconnected_node_keeps_zero_pressure():
    source, sink, island = Node(0, NodeType.SOURCE), Node(1, NodeType.SINK), Node(2)
    con = Connection(source, sink, 1.0, 1.0)
    solver = PhysarumSolver([source, sink, island], [con])
    solver.solve()
    assert island.pressure == pytest.approx(0.0, abs=1e-12)
    assert solver.get_survived_connections() == [con]


def test_mixed_feedback_laws(branch):
    nodes, connections = branch
    connections[0].law = FeedbackLaw.TYPE_TWO
    connections[1].law = FeedbackLaw.TYPE_THREE
    solver = PhysarumSolver(nodes, connections)
    solver.solve()
    assert all(np.isfinite(c.conductivity) for c in connections)


def test_tracing_does_not_change_results():
    plain_nodes, plain = make_branch()
    traced_nodes, traced = make_branch()

    PhysarumSolver(plain_nodes, plain).solve()
    solver = PhysarumSolver(traced_nodes, traced)
    solver.enable_logging(True)
    result = solver.solve()

    assert_allclose([c.conductivity for c in plain], [c.conductivity for c in traced], rtol=1e-12)
    assert len(result.trace) == result.iterations
    assert result.trace.last.converged == result.converged


def test_untraced_result_carries_no_trace(chain):
    result = PhysarumSolver(*chain).solve()
    assert result.trace is None


def test_numeric_failure_propagates_with_context(chain):
    nodes, connections = chain
    connections[1].conductivity = float("nan")
    solver = PhysarumSolver(nodes, connections)
    solver.enable_logging(True)

    with pytest.raises(NumericSolveError) as excinfo:
        solver.solve()

    error = excinfo.value
    assert error.iteration == 0
    assert error.lefthand.shape == (4, 4)
    assert error.righthand.shape == (4,)
    assert solver.last_lefthand is not None
    assert solver.trace.failure is error


def test_reset_rearms_first_run(chain):
    solver = PhysarumSolver(*chain)
    solver.solve()
    assert not solver.first_run
    solver.reset()
    assert solver.first_run
    assert solver.iterations == 0


def test_configure():
    solver = PhysarumSolver(*make_chain())
    solver.configure(mue=1.5, max_iterations="10")
    assert solver.mue == 1.5
    assert solver.max_iterations == 10
    with pytest.raises(AttributeError):
        solver.configure(omega=0.5)


def test_configure_rejects_fractional_iterations():
    solver = PhysarumSolver(*make_chain())
    solver.configure(max_iterations=7.0)
    assert solver.max_iterations == 7
    assert isinstance(solver.max_iterations, int)
    for bad in (2.9, "2.9", "ten", None):
        with pytest.raises(ConfigurationError):
            solver.configure(max_iterations=bad)
    assert solver.max_iterations == 7

    solver.configure(i0=2)
    assert isinstance(solver.i0, float)


def test_verbose_prints_progress(chain, capsys):
    solver = PhysarumSolver(*chain)
    solver.verbose = True
    solver.solve()
    out = capsys.readouterr().out
    assert "迭代 [  1]" in out
    assert "存活连接 3/3" in out
