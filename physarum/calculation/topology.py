import math
from typing import List, Dict, Optional

from .errors import ConfigurationError
from .models import Node, Connection


class NetworkGraph:
    """
    网络拓扑类：将节点列表与连接列表转换为矩阵计算所需的图结构。
    拓扑在一次求解期间不可变，索引表构建一次后一直有效。
    """
    def __init__(self, nodes: List[Node], connections: List[Connection]):
        self.nodes = nodes
        self.connections = connections

        # 映射表: 节点对象身份 id(node) -> 矩阵索引
        # 矩阵索引即节点在列表中的位置，决定了其在方程组 A·p = b 中的行/列
        self.node_map: Dict[int, int] = {}
        # 连接索引表：table[i][j] 为连接 i、j 的连接对象，无连接时为 None
        self.table: List[List[Optional[Connection]]] = []

    @property
    def size(self) -> int:
        return len(self.nodes)

    def build(self):
        """
        构建索引映射与连接索引表。
        - 节点按对象身份查找，同 id 的不同对象视为不同节点。
        - 同一对节点之间出现多条连接时，索引表记录最后一条；其余连接仍参与流导演化。
        """
        self.node_map = {}
        for idx, node in enumerate(self.nodes):
            self.node_map[id(node)] = idx

        n = self.size
        self.table = [[None] * n for _ in range(n)]

        for con in self.connections:
            # NaN 与 inf 同样非法
            if not (math.isfinite(con.length) and con.length > 0):
                raise ConfigurationError(f"{con.describe()}: 长度必须为有限正数 (L = {con.length})")

            s_idx = self.index_of(con.start)
            e_idx = self.index_of(con.end)

            # 双向记录拓扑
            self.table[s_idx][e_idx] = con
            self.table[e_idx][s_idx] = con

        return self

    def index_of(self, node: Node) -> int:
        idx = self.node_map.get(id(node))
        if idx is None:
            raise ConfigurationError(f"节点 {node.name} 不在节点列表中")
        return idx

    def connection_between(self, i: int, j: int) -> Optional[Connection]:
        return self.table[i][j]

    def dl_fraction(self, i: int, j: int) -> float:
        """
        节点 i、j 之间的 D/L。
        自身与自身恒为 0 (不建模自环)；无连接时为 0，不报错。
        """
        if i == j:
            return 0.0

        con = self.table[i][j]
        if con is None:
            return 0.0
        return con.dl_fraction()
