from typing import List

import numpy as np

from .trace import SolverTrace, IterationSnapshot

SECTION_LINE = "<" + "=" * 70 + ">"
ITERATION_LINE = "-" * 51
FAILURE_LINE = "<>" * 42


def format_array(values) -> str:
    return "[" + ", ".join(str(float(v)) for v in values) + "]"


def format_matrix(matrix, name: str) -> List[str]:
    """按行输出矩阵: name0 = [...], name1 = [...]"""
    lines = []
    for i, row in enumerate(matrix):
        lines.append(f"{name}{i} = {format_array(np.atleast_1d(row))}")
    return lines


def format_snapshot(snap: IterationSnapshot) -> List[str]:
    lines = [
        ITERATION_LINE,
        f"          iteration {snap.iteration}",
        ITERATION_LINE,
    ]
    lines += format_matrix(snap.lefthand, "eq")
    lines.append("")
    lines += format_matrix(snap.righthand, "eq")
    lines.append("")
    lines += format_matrix(snap.pressures, "p")
    lines.append("")
    for state in snap.connections:
        lines.append(
            f"{state.description}, Q = {state.flux:.5f}\tD = {state.conductivity:.5f}"
            f"\tdeltaD = {state.conductivity_change:.5f}\tL = {state.length}"
        )
    lines.append(ITERATION_LINE)
    return lines


def format_trace(trace: SolverTrace) -> str:
    """
    将结构化轨迹渲染为文本日志：
    节点表、连接表、每轮的方程组/压力/通量表，以及收敛或失败信息。
    """
    lines = [SECTION_LINE, "Nodes:"]
    lines += trace.nodes
    lines += [SECTION_LINE, SECTION_LINE, "Connections:"]
    lines += trace.connections
    lines.append(SECTION_LINE)

    for snap in trace.snapshots:
        lines += format_snapshot(snap)

    if trace.stopped_at is not None:
        lines.append(f"PhysarumSolver stopped at iteration {trace.stopped_at}")

    if trace.failure is not None:
        failure = trace.failure
        lines.append(FAILURE_LINE)
        lines.append(str(failure))
        if failure.lefthand is not None:
            lines += format_matrix(failure.lefthand, "eq")
            lines.append("")
        if failure.righthand is not None:
            lines += format_matrix(failure.righthand, "eq")
            lines.append("")
        lines.append(FAILURE_LINE)

    return "\n".join(lines) + "\n"
