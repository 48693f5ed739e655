from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

from .errors import ConfigurationError, NumericSolveError
from .linear_solver import least_squares_solve
from .models import Node, Connection
from .report import format_trace
from .topology import NetworkGraph
from .trace import ConnectionState, IterationSnapshot, SolverTrace


@dataclass
class SolveResult:
    """一次 solve() 的结果。失败时不会返回本对象，而是抛出 NumericSolveError"""
    converged: bool
    iterations: int
    survived: List[Connection] = field(default_factory=list)
    trace: Optional[SolverTrace] = None


class PhysarumSolver:
    """
    Physarum (多头绒泡菌) 自适应网络求解器，基于 Tero-Kobayashi-Nakagaki 模型。
    实现原理：
    1. 压力场：以当前各管道 D/L 为系数组装流量守恒方程组 A·p = b，源点注入 I0、汇点抽出 I0，
       用最小二乘 (SVD) 求出节点压力 p。
    2. 通量：Q = D/L * (p_start - p_end)。
    3. 流导反馈：D <- D + w * (f(Q) - alpha * D)，流量大的管道被强化，没有流量的管道逐渐衰亡。
    4. 所有连接的 |ΔD| 都小于阈值时视为收敛，提前停止；否则跑满 max_iterations。

    求解器在整个运行期间借用 nodes / connections 两个列表，solve() 进行中外部修改它们的行为未定义。
    """

    def __init__(self, nodes: List[Node], connections: List[Connection]):
        self.nodes = nodes
        self.connections = connections
        self.graph = NetworkGraph(nodes, connections).build()

        # 算法配置
        self.mue = 1.2                              # 反馈指数 mue: f = |Q|^mue
        self.i0 = 1.0                               # 源/汇注入的电流 I0
        self.survival_threshold = 0.001             # 流导高于此值的连接视为存活
        self.max_iterations = 50                    # 最大迭代步数
        self.delta_conductivity_threshold = 0.00001 # |ΔD| 低于此值视为未变化 (收敛判据)
        self.conductivity_minimum = 0.5             # 初始流导下限 (只供迷宫生成使用)
        self.conductivity_maximum = 1.0             # 初始流导上限 (只供迷宫生成使用)

        # 输出控制
        self.logging_enabled = False  # 记录结构化迭代轨迹 / 文本日志
        self.verbose = False          # 终端打印进度

        # 状态存储
        self.iterations = 0
        self.last_lefthand: Optional[np.ndarray] = None
        self.last_righthand: Optional[np.ndarray] = None
        # 首轮标志：仅在本次运行的第一次组装时把汇点压力项清零 (相当于钉住汇点压力 = 0)
        self._first_run = True

        self.trace = SolverTrace(
            nodes=[node.describe() for node in nodes],
            connections=[con.detailed_description() for con in connections],
        )

    # ------------------------------------------------------------------
    # 配置
    # ------------------------------------------------------------------
    def enable_logging(self, enabled: bool = True):
        self.logging_enabled = enabled

    def configure(self, **settings):
        """批量设置算法参数，未知参数名直接报错；max_iterations 必须是整数，其余参数按浮点数读取"""
        for key, value in settings.items():
            if key not in self.tunables():
                raise AttributeError(f"未知的求解器参数: {key}")
            if key == "max_iterations":
                value = self._read_iterations(value)
            else:
                value = float(value)
            setattr(self, key, value)
        return self

    @staticmethod
    def _read_iterations(value) -> int:
        # 接受 10 / 10.0 / "10"，拒绝 2.9 这类带小数的值，不做截断
        if isinstance(value, bool):
            raise ConfigurationError(f"max_iterations 必须是整数: {value!r}")
        try:
            number = float(value)
        except (TypeError, ValueError):
            raise ConfigurationError(f"max_iterations 必须是整数: {value!r}")
        if not number.is_integer():
            raise ConfigurationError(f"max_iterations 必须是整数: {value!r}")
        return int(number)

    @staticmethod
    def tunables():
        return (
            "mue", "i0", "survival_threshold", "max_iterations",
            "delta_conductivity_threshold", "conductivity_minimum", "conductivity_maximum",
        )

    def reset(self):
        """开始一次独立的新运行：重新启用首轮标志，清空轨迹"""
        self._first_run = True
        self.iterations = 0
        self.last_lefthand = None
        self.last_righthand = None
        self.trace.clear()

    @property
    def first_run(self) -> bool:
        return self._first_run

    # ------------------------------------------------------------------
    # 主循环
    # ------------------------------------------------------------------
    def solve(self) -> SolveResult:
        """执行迭代求解主循环，最多 max_iterations 轮"""
        if self.verbose:
            print("\n" + "=" * 50)
            print("Physarum 求解器启动...")
            print(f"网络规模: {len(self.nodes)} 节点, {len(self.connections)} 连接")
            print(f"参数: mue={self.mue}, I0={self.i0}, 最大迭代={self.max_iterations}")
            print("=" * 50)

        start = self.iterations
        converged = False

        for _ in range(self.max_iterations):
            unchanged = self.step()

            if self.verbose:
                print(f"迭代 [{self.iterations:3d}]: 未变化连接 = {unchanged}/{len(self.connections)}")

            # 所有连接本轮都没有明显变化 -> 到达不动点，提前停止
            if unchanged >= len(self.connections):
                converged = True
                if self.logging_enabled:
                    self.trace.stopped_at = self.iterations - 1
                if self.verbose:
                    print("=" * 50)
                    print(f"Physarum: 求解收敛于第 {self.iterations} 步。")
                break

        if not converged and self.verbose:
            print(f"Physarum: 达到最大迭代次数 {self.max_iterations}，停止迭代。")

        survived = self.get_survived_connections()
        if self.verbose:
            self._print_terminal_summary(survived)

        return SolveResult(
            converged=converged,
            iterations=self.iterations - start,
            survived=survived,
            trace=self.trace if self.logging_enabled else None,
        )

    def step(self) -> int:
        """
        执行一轮迭代，返回 |ΔD| 低于收敛阈值的连接数。
        求解失败时抛出 NumericSolveError，不重试、不回退。
        """
        iteration = self.iterations

        # --- 第一步：组装方程组 A·p = b ---
        lefthand = self.build_lefthand_side()
        righthand = self.build_righthand_side()
        self.last_lefthand = lefthand
        self.last_righthand = righthand

        # --- 第二步：最小二乘求解压力 ---
        try:
            pressures = least_squares_solve(lefthand, righthand)
        except NumericSolveError as e:
            e.iteration = iteration
            e.lefthand = lefthand.copy()
            e.righthand = righthand.copy()
            if self.logging_enabled:
                self.trace.failure = e
            if self.verbose:
                print(f"Physarum Error: 第 {iteration} 轮矩阵求解失败 - {e}")
            raise

        # --- 第三步：压力回写，更新通量与流导 ---
        self._update_pressure_for_nodes(pressures)
        self._update_conductivities(self.mue)

        # --- 第四步：统计本轮未变化的连接 ---
        unchanged = self._count_unchanged_connections()
        self.iterations += 1

        if self.logging_enabled:
            self.trace.append(self._snapshot(iteration, lefthand, righthand, pressures, unchanged))

        return unchanged

    # ------------------------------------------------------------------
    # 方程组组装
    # ------------------------------------------------------------------
    def dl_fraction_matrix(self) -> np.ndarray:
        """C[i, j] = 节点 i、j 间连接的 D/L，无连接或 i == j 时为 0"""
        n = self.graph.size
        C = np.zeros((n, n), dtype=float)
        for i in range(n):
            for j in range(n):
                C[i, j] = self.graph.dl_fraction(i, j)
        return C

    def build_lefthand_side(self) -> np.ndarray:
        """
        组装左端矩阵 A (n×n)。第 j 行为节点 j 的流量守恒方程:
            Σ_i D_ij/L_ij * p_i - (Σ_i D_ij/L_ij) * p_j
        例: (3) -- (4) -- (5)，节点 4 的方程为
            D34/L34*p3 - D34/L34*p4 - D45/L45*p4 + D45/L45*p5
        首轮组装时汇点的压力项 (对应列) 全部清零，即以汇点压力 0 为基准。
        """
        C = self.dl_fraction_matrix()
        n = self.graph.size

        A = C.T.copy()
        A[np.arange(n), np.arange(n)] -= np.sum(C, axis=0)

        if self._first_run:
            for i, node in enumerate(self.nodes):
                if node.is_sink():
                    A[:, i] = 0.0

        self._first_run = False
        return A

    def build_righthand_side(self) -> np.ndarray:
        """右端向量 b：源点 +I0，汇点 -I0，其余为 0。多个源/汇各自注入完整的 I0"""
        b = np.zeros(self.graph.size, dtype=float)
        for i, node in enumerate(self.nodes):
            if node.is_source():
                b[i] = self.i0
            elif node.is_sink():
                b[i] = -self.i0
        return b

    def get_dl_fraction(self, a: Node, b: Node) -> float:
        """两节点之间的 D/L，与查询顺序无关"""
        if a is b:
            return 0.0
        return self.graph.dl_fraction(self.graph.index_of(a), self.graph.index_of(b))

    # ------------------------------------------------------------------
    # 状态更新
    # ------------------------------------------------------------------
    def _update_pressure_for_nodes(self, pressures):
        # 压力向量的下标即节点在列表中的位置
        for i, node in enumerate(self.nodes):
            node.pressure = float(pressures[i])

    def _update_conductivities(self, mue: float):
        for con in self.connections:
            con.update_flux_and_conductivity(mue)

    def _count_unchanged_connections(self) -> int:
        return sum(
            1 for con in self.connections
            if abs(con.conductivity_change()) < self.delta_conductivity_threshold
        )

    def get_survived_connections(self) -> List[Connection]:
        """流导高于存活阈值的连接，保持原始顺序"""
        return [con for con in self.connections if con.conductivity > self.survival_threshold]

    # ------------------------------------------------------------------
    # 输出
    # ------------------------------------------------------------------
    def _snapshot(self, iteration, lefthand, righthand, pressures, unchanged) -> IterationSnapshot:
        return IterationSnapshot(
            iteration=iteration,
            lefthand=lefthand.copy(),
            righthand=righthand.copy(),
            pressures=np.array(pressures, dtype=float),
            connections=[
                ConnectionState(
                    description=con.describe(),
                    flux=con.flux,
                    conductivity=con.conductivity,
                    conductivity_change=con.conductivity_change(),
                    length=con.length,
                )
                for con in self.connections
            ],
            unchanged=unchanged,
        )

    def get_result_string(self) -> str:
        """按经典文本格式输出整个运行日志 (需开启 logging_enabled)"""
        return format_trace(self.trace)

    def _print_terminal_summary(self, survived):
        """美化打印终端摘要"""
        print("\n--- 计算结果摘要 ---")
        print(f"{'连接':<28} | {'通量 Q':>12} | {'流导 D':>12} | {'长度 L':>8} | 存活")
        print("-" * 76)
        alive = {id(con) for con in survived}
        for con in self.connections:
            mark = "是" if id(con) in alive else "否"
            print(f"{con.describe():<28} | {con.flux:12.5f} | {con.conductivity:12.5f} | {con.length:8.2f} | {mark}")
        print("-" * 76)
        print(f"存活连接 {len(survived)}/{len(self.connections)}\n")
