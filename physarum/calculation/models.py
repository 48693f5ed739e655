from enum import Enum
from typing import Dict, Optional

from .errors import ConfigurationError
from .physics import FeedbackLaw, calc_feedback, calc_flux, calc_conductivity_update


def _read_float(data: dict, key: str, default: float, owner: str) -> float:
    """读取 JSON 记录中的数值字段；缺省时取 default，无法转换 (含 null) 为配置错误"""
    value = data.get(key, default)
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{owner} 的字段 {key} 不是数值: {value!r}")


class NodeType(Enum):
    SOURCE = "source"
    NORMAL = "normal"
    SINK = "sink"


class Node:
    """
    计算节点类：压力的载体。
    节点类型 (源 / 汇 / 普通) 互斥，可随时修改；压力在每轮迭代中由全局求解覆盖。
    """

    def __init__(self, node_id: int, node_type: NodeType = NodeType.NORMAL, name: str = ""):
        self.id = node_id
        self.node_type = node_type
        self._name = name or ""

        # 物理状态量 (求解器每轮更新)
        self.pressure = 0.0

    @classmethod
    def from_dict(cls, data: dict) -> "Node":
        """从 JSON 点记录构造节点: {label, ptype, name, pressure}"""
        try:
            node_id = int(data.get("label"))
        except (TypeError, ValueError):
            raise ConfigurationError(f"节点标签必须是整数: {data.get('label')!r}")

        ptype = str(data.get("ptype", "normal") or "normal").lower()
        try:
            node_type = NodeType(ptype)
        except ValueError:
            raise ConfigurationError(f"节点 {node_id} 的类型未知: {ptype}")

        node = cls(node_id, node_type, data.get("name", ""))
        node.pressure = _read_float(data, "pressure", 0.0, f"节点 {node_id}")
        return node

    def to_dict(self) -> dict:
        return {
            "label": self.id,
            "ptype": self.node_type.value,
            "name": self._name,
            "pressure": self.pressure,
        }

    @property
    def name(self) -> str:
        if not self._name:
            return f"Node{self.id}"
        return self._name

    @name.setter
    def name(self, value: str):
        self._name = value or ""

    def is_source(self) -> bool:
        return self.node_type == NodeType.SOURCE

    def is_sink(self) -> bool:
        return self.node_type == NodeType.SINK

    def set_source(self, flag: bool = True):
        """设为源点；flag=False 时恢复为普通节点"""
        self.node_type = NodeType.SOURCE if flag else NodeType.NORMAL

    def set_sink(self, flag: bool = True):
        """设为汇点；flag=False 时恢复为普通节点"""
        self.node_type = NodeType.SINK if flag else NodeType.NORMAL

    def describe(self) -> str:
        return f"Node: id = {self.id}\tpressure = {self.pressure}\t{self.node_type.name}"

    def __repr__(self):
        return f"Node({self.id}, {self.node_type.name}, p={self.pressure:.5g})"


class Connection:
    """
    计算连接类：两节点之间的管道，承载长度 L、流导 D 与通量 Q。
    起止方向只用于通量的符号约定，拓扑上是无向的。
    """

    def __init__(self, start: Node, end: Node, length: float, conductivity: float,
                 alpha: float = 1.0, fq_alpha: float = 15.0, weight: float = 1.0,
                 law: FeedbackLaw = FeedbackLaw.TYPE_ONE):
        self.start = start
        self.end = end

        # 几何参数：整个运行期间固定，必须 > 0
        self.length = float(length)

        # 物理量 (求解器每轮更新)
        self.conductivity = float(conductivity)  # 流导 D
        self.former_conductivity = 0.0  # 上一轮的 D，用于计算 ΔD
        self.flux = 0.0  # 通量 Q

        # 反馈参数
        self.alpha = alpha  # 衰减系数
        self.fq_alpha = fq_alpha  # TYPE_TWO 饱和常数 k
        self.weight = weight  # 适应权重
        self.law = law

    @classmethod
    def from_dict(cls, data: dict, nodes_by_label: Dict[int, Node]) -> "Connection":
        """
        从 JSON 线记录构造连接:
        {label, start_label, end_label, length, conductivity, alpha, fq_alpha, weight, law}
        """
        try:
            start = nodes_by_label[int(data.get("start_label"))]
            end = nodes_by_label[int(data.get("end_label"))]
        except (KeyError, TypeError, ValueError):
            raise ConfigurationError(
                f"连接 {data.get('label', '?')} 引用了不存在的节点: "
                f"{data.get('start_label')} -> {data.get('end_label')}"
            )

        try:
            law = FeedbackLaw.parse(data.get("law"))
        except ValueError as e:
            raise ConfigurationError(str(e))

        owner = f"连接 {data.get('label', '?')}"
        return cls(
            start,
            end,
            length=_read_float(data, "length", 0.0, owner),
            conductivity=_read_float(data, "conductivity", 0.0, owner),
            alpha=_read_float(data, "alpha", 1.0, owner),
            fq_alpha=_read_float(data, "fq_alpha", 15.0, owner),
            weight=_read_float(data, "weight", 1.0, owner),
            law=law,
        )

    def to_dict(self, label: Optional[str] = None) -> dict:
        return {
            "label": label or f"C{self.start.id}_{self.end.id}",
            "start_label": self.start.id,
            "end_label": self.end.id,
            "length": self.length,
            "conductivity": self.conductivity,
            "alpha": self.alpha,
            "fq_alpha": self.fq_alpha,
            "weight": self.weight,
            "law": self.law.value,
        }

    def dl_fraction(self) -> float:
        """D / L，矩阵组装时的连接权重。L 的合法性由拓扑构建保证"""
        return self.conductivity / self.length

    def update_flux(self):
        # 必须在两端节点压力都已更新之后调用
        self.flux = calc_flux(self.dl_fraction(), self.start.pressure, self.end.pressure)

    def update_flux_and_conductivity(self, mue: float):
        """
        先按新压力更新通量，再按反馈律更新流导:
        D <- D + weight * (f(Q, mue) - alpha * D)
        """
        self.update_flux()

        self.former_conductivity = self.conductivity
        growth = calc_feedback(self.flux, mue, self.law, self.fq_alpha)
        self.conductivity = calc_conductivity_update(self.conductivity, growth, self.alpha, self.weight)

    def conductivity_change(self) -> float:
        return self.conductivity - self.former_conductivity

    def score_changed_threshold(self, threshold: float) -> bool:
        """上一轮与本轮的流导是否位于阈值两侧 (存活 <-> 淘汰的跨越)"""
        return ((self.former_conductivity > threshold and self.conductivity < threshold)
                or (self.former_conductivity < threshold and self.conductivity > threshold))

    def describe(self) -> str:
        return f"Connection from {self.start.id} to {self.end.id}"

    def describe_by_name(self) -> str:
        return f"Connection from {self.start.name} to {self.end.name}"

    def detailed_description(self) -> str:
        return f"{self.describe()}\tQ = {self.flux}\tL = {self.length}\tD = {self.conductivity}"

    def __repr__(self):
        return f"Connection({self.start.id}->{self.end.id}, L={self.length}, D={self.conductivity:.5g})"
