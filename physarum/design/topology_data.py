import json
import os
from typing import Dict, Optional

from physarum.calculation.errors import ConfigurationError


class TopologyData:
    """
    拓扑数据（点、线、参数），存储到 JSON 以供后续计算。
    points: [{label, ptype(source/sink/normal), name, pressure}]
    lines: [{label, start_label, end_label, length, conductivity, alpha, fq_alpha, weight, law}]
    settings: {mue, i0, survival_threshold, max_iterations, ...}
    """

    def __init__(self, json_path: str):
        self.json_path = json_path
        self.data = self._empty()
        self._load()

    @staticmethod
    def _empty() -> Dict:
        return {"points": [], "lines": [], "settings": {}}

    def _load(self):
        folder = os.path.dirname(self.json_path)
        if folder:
            os.makedirs(folder, exist_ok=True)
        if os.path.exists(self.json_path):
            try:
                with open(self.json_path, "r", encoding="utf-8") as f:
                    self.data = json.load(f)
            except json.JSONDecodeError as e:
                raise ConfigurationError(f"拓扑文件格式错误 {self.json_path}: {e}")
            if not isinstance(self.data, dict):
                raise ConfigurationError(f"拓扑文件顶层必须是对象: {self.json_path}")
            for key, default in self._empty().items():
                self.data.setdefault(key, default)
        else:
            self._save()

    def _save(self):
        with open(self.json_path, "w", encoding="utf-8") as f:
            json.dump(self.data, f, ensure_ascii=False, indent=2)

    @property
    def points(self):
        return self.data.get("points", [])

    @property
    def lines(self):
        return self.data.get("lines", [])

    @property
    def settings(self) -> Dict:
        return self.data.get("settings", {})

    # Points
    def upsert_point(self, point: Dict):
        label = point.get("label")
        if label is None or label == "":
            return
        found = False
        for i, p in enumerate(self.points):
            if p.get("label") == label:
                self.data["points"][i] = point
                found = True
                break
        if not found:
            self.data["points"].append(point)
        self._save()

    def get_point(self, label) -> Optional[Dict]:
        for p in self.points:
            if p.get("label") == label:
                return p
        return None

    # Lines
    def upsert_line(self, line: Dict):
        label = line.get("label")
        if not label:
            return
        found = False
        for i, ln in enumerate(self.lines):
            if ln.get("label") == label:
                self.data["lines"][i] = line
                found = True
                break
        if not found:
            self.data["lines"].append(line)
        self._save()

    def get_line(self, label: str) -> Optional[Dict]:
        for ln in self.lines:
            if ln.get("label") == label:
                return ln
        return None

    def delete_point(self, label):
        """删除特定点及其关联的所有线"""
        self.data["points"] = [p for p in self.points if p.get("label") != label]
        # 同时删除所有起止点包含该 label 的线
        self.data["lines"] = [ln for ln in self.lines
                              if ln.get("start_label") != label and ln.get("end_label") != label]
        self._save()

    def delete_line(self, label: str):
        """删除特定线"""
        self.data["lines"] = [ln for ln in self.lines if ln.get("label") != label]
        self._save()

    def update_settings(self, **settings):
        self.data.setdefault("settings", {}).update(settings)
        self._save()

    def replace(self, data: Dict):
        """整体替换为另一份拓扑 (如迷宫导出)"""
        self.data = self._empty()
        self.data.update(data)
        self._save()

    def clear(self):
        """清空所有拓扑数据"""
        self.data = self._empty()
        self._save()
