from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

from .errors import NumericSolveError


@dataclass
class ConnectionState:
    """单条连接在某轮迭代结束时的状态"""
    description: str
    flux: float
    conductivity: float
    conductivity_change: float
    length: float


@dataclass
class IterationSnapshot:
    """
    单轮迭代快照：组装出的方程组、解出的压力、各连接的 Q/D/ΔD/L。
    矩阵均为副本，外部修改不影响求解器。
    """
    iteration: int
    lefthand: np.ndarray
    righthand: np.ndarray
    pressures: np.ndarray
    connections: List[ConnectionState] = field(default_factory=list)
    unchanged: int = 0

    @property
    def converged(self) -> bool:
        return self.unchanged >= len(self.connections)


@dataclass
class SolverTrace:
    """求解过程的结构化记录，供外部报告器使用。记录与否不影响数值结果"""
    nodes: List[str] = field(default_factory=list)
    connections: List[str] = field(default_factory=list)
    snapshots: List[IterationSnapshot] = field(default_factory=list)
    failure: Optional[NumericSolveError] = None
    stopped_at: Optional[int] = None  # 收敛提前停止时的迭代序号

    def append(self, snapshot: IterationSnapshot):
        self.snapshots.append(snapshot)

    def clear(self):
        self.snapshots.clear()
        self.failure = None
        self.stopped_at = None

    def __len__(self):
        return len(self.snapshots)

    @property
    def last(self):
        return self.snapshots[-1] if self.snapshots else None

    def conductivity_history(self, index: int) -> List[float]:
        """第 index 条连接在各轮迭代后的流导序列"""
        return [snap.connections[index].conductivity for snap in self.snapshots]
