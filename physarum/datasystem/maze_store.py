import json
import os
from typing import List, Dict, Optional, Tuple

import numpy as np

from physarum.calculation.errors import ConfigurationError
from physarum.calculation.models import Node, NodeType, Connection


class MazeStore:
    """
    迷宫库存取：内置几种测试迷宫 (含 Tero 论文迷宫)，可选存为 JSON 以便追加自定义迷宫。
    线记录中 conductivity 为 None 时，初始流导在 [conductivity_minimum, conductivity_maximum) 内随机生成。
    """

    def __init__(self, base_dir: Optional[str] = None, seed: Optional[int] = None,
                 conductivity_minimum: float = 0.5, conductivity_maximum: float = 1.0):
        self.base_dir = base_dir
        self.path = os.path.join(base_dir, "mazes.json") if base_dir else None
        self.conductivity_minimum = conductivity_minimum
        self.conductivity_maximum = conductivity_maximum
        self.rng = np.random.default_rng(seed)
        self.data: List[Dict] = []
        self._load()

    def _default_data(self) -> List[Dict]:
        tero_nodes = [[0, "source"], [1, "sink"]] + [[i, "normal"] for i in range(2, 23)]
        tero_lines = [
            [0, 2, 1.5], [2, 3, 0.1], [2, 4, 4.0], [3, 4, 3.3], [3, 22, 1.6],
            [4, 5, 0.1], [5, 6, 0.1], [5, 7, 0.7], [7, 8, 5.0], [8, 9, 0.6],
            [8, 10, 0.1], [10, 11, 0.1], [10, 12, 0.2], [12, 13, 0.1], [12, 14, 1.0],
            [7, 19, 3.5], [6, 15, 1.1], [6, 16, 2.7], [16, 17, 0.2], [17, 18, 0.2],
            [17, 19, 0.2], [19, 20, 0.2], [16, 21, 0.7], [20, 1, 0.7],
        ]
        return [
            {
                "id": 0, "name": "自定义迷宫", "remark": "两条支路，短路 2-3-5 与长路 2-4-5",
                "nodes": [[0, "source"], [1, "sink"], [2, "normal"], [3, "normal"], [4, "normal"], [5, "normal"]],
                "lines": [[0, 2, 1.0, 0.8], [2, 3, 3.0, 0.9], [2, 4, 7.0, 0.5],
                          [3, 5, 3.0, 0.8], [4, 5, 7.0, 0.6], [5, 1, 1.0, 0.9]],
            },
            {
                "id": 1, "name": "Tero 论文迷宫", "remark": "Tero-Kobayashi-Nakagaki 2006 中的迷宫, 初始流导随机",
                "nodes": tero_nodes,
                "lines": [line + [None] for line in tero_lines],
            },
            {
                "id": 2, "name": "T 形迷宫", "remark": "节点 4 为死胡同",
                "nodes": [[1, "source"], [2, "sink"], [3, "normal"], [4, "normal"]],
                "lines": [[1, 3, 1.5, None], [3, 4, 1.5, None], [3, 2, 1.5, None]],
            },
            {
                "id": 3, "name": "环形迷宫", "remark": "3-4 之间两条并联管道, 长度 13 与 42",
                "nodes": [[1, "source"], [2, "sink"], [3, "normal"], [4, "normal"]],
                "lines": [[1, 3, 1.0, None], [4, 2, 1.0, None], [3, 4, 13.0, None], [3, 4, 42.0, None]],
            },
            {
                "id": 4, "name": "简单链", "remark": "源 0 -> 2 -> 3 -> 汇 1",
                "nodes": [[0, "source"], [1, "sink"], [2, "normal"], [3, "normal"]],
                "lines": [[0, 2, 1.0, 0.8], [2, 3, 2.0, 0.8], [3, 1, 1.0, 0.8]],
            },
        ]

    def _load(self):
        if self.path is None:
            self.data = self._default_data()
            return
        os.makedirs(self.base_dir, exist_ok=True)
        if not os.path.exists(self.path):
            self.data = self._default_data()
            self.save()
            return
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                self.data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"迷宫库文件格式错误 {self.path}: {e}")
        if not isinstance(self.data, list):
            raise ConfigurationError(f"迷宫库文件顶层必须是列表: {self.path}")

    def save(self):
        if self.path is None:
            return
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(self.data, f, ensure_ascii=False, indent=2)

    def all(self) -> List[Dict]:
        return list(self.data)

    def ids(self) -> List[int]:
        return [d.get("id") for d in self.data]

    def get(self, maze_id: int) -> Dict:
        for d in self.data:
            if d.get("id") == maze_id:
                return d
        raise ConfigurationError(f"未知的迷宫编号: {maze_id} (可选: {self.ids()})")

    def upsert(self, item: Dict):
        if item.get("id") is None:
            item["id"] = max(self.ids(), default=-1) + 1
        for i, d in enumerate(self.data):
            if d.get("id") == item["id"]:
                self.data[i] = item
                break
        else:
            self.data.append(item)
        self.save()

    def delete(self, maze_id: int):
        self.data = [d for d in self.data if d.get("id") != maze_id]
        self.save()

    def random_conductivity(self) -> float:
        return float(self.rng.uniform(self.conductivity_minimum, self.conductivity_maximum))

    def build(self, maze_id: int) -> Tuple[List[Node], List[Connection]]:
        """按迷宫编号生成节点与连接列表，节点顺序即矩阵索引顺序"""
        maze = self.get(maze_id)

        nodes: List[Node] = []
        by_label: Dict[int, Node] = {}
        for label, ptype in maze.get("nodes", []):
            node = Node(int(label), NodeType(ptype))
            nodes.append(node)
            by_label[node.id] = node

        connections: List[Connection] = []
        for start, end, length, conductivity in maze.get("lines", []):
            if start not in by_label or end not in by_label:
                raise ConfigurationError(f"迷宫 {maze_id} 的连接 {start}->{end} 引用了不存在的节点")
            if conductivity is None:
                conductivity = self.random_conductivity()
            connections.append(Connection(by_label[start], by_label[end], length, conductivity))

        return nodes, connections

    def to_topology_dict(self, maze_id: int) -> Dict:
        """导出为拓扑 JSON 文档 (points / lines / settings)"""
        maze = self.get(maze_id)
        nodes, connections = self.build(maze_id)
        return {
            "name": maze.get("name", ""),
            "points": [node.to_dict() for node in nodes],
            "lines": [con.to_dict(f"C{i + 1}") for i, con in enumerate(connections)],
            "settings": {
                "conductivity_minimum": self.conductivity_minimum,
                "conductivity_maximum": self.conductivity_maximum,
            },
        }

    def export(self, maze_id: int, json_path: str) -> str:
        folder = os.path.dirname(json_path)
        if folder:
            os.makedirs(folder, exist_ok=True)
        with open(json_path, "w", encoding="utf-8") as f:
            json.dump(self.to_topology_dict(maze_id), f, ensure_ascii=False, indent=2)
        return json_path
