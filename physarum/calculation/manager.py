import os
from typing import Dict, Optional

from physarum.design.topology_data import TopologyData
from .errors import PhysarumError, ConfigurationError, NumericSolveError
from .models import Node, Connection
from .solver import PhysarumSolver


class CalculationManager:
    def __init__(self, json_path):
        self.json_path = json_path
        self.solver: Optional[PhysarumSolver] = None

    def run(self, settings: Optional[Dict] = None, verbose: bool = True, logging_enabled: bool = True):
        """
        主入口：读取拓扑 JSON -> 构造节点/连接 -> 求解 -> 返回结果字典。
        失败时返回 success=False，并附带异常对象，绝不把失败当作“零条存活连接”。
        """
        if verbose:
            print("\n" + ">>>" * 15)
            print("仿真任务启动: 正在从 JSON 拓扑同步数据...")
        try:
            # 1. 读取数据
            if not os.path.exists(self.json_path):
                if verbose:
                    print(f"[-] 错误: 找不到数据文件 {self.json_path}")
                return {"success": False, "msg": "找不到拓扑数据文件", "error": None}

            topology = TopologyData(self.json_path)
            if verbose:
                print(f"[1/4] 数据加载成功: 节点数={len(topology.points)}, 连接数={len(topology.lines)}")

            # 2. 转换模型
            if verbose:
                print("[2/4] 模型实例化: 正在转换物理对象...")
            nodes = [Node.from_dict(d) for d in topology.points]
            by_label = {}
            for node in nodes:
                if node.id in by_label:
                    raise ConfigurationError(f"节点标签重复: {node.id}")
                by_label[node.id] = node
            connections = [Connection.from_dict(d, by_label) for d in topology.lines]

            if verbose:
                print("    " + "-" * 40)
                for node in nodes:
                    print(f"    - {node.name:<8}: 类型={node.node_type.value}")
                for con in connections:
                    print(f"    - {con.describe():<24}: L={con.length:.2f} | D={con.conductivity:.4f} | 反馈律={con.law.value}")
                print("    " + "-" * 40)

            if not nodes:
                if verbose:
                    print("[-] 错误: 拓扑为空")
                return {"success": False, "msg": "拓扑中没有节点", "error": None}

            # 3. 构建求解器 (拓扑校验在此完成)
            if verbose:
                print("[3/4] 拓扑分析: 正在建立连接索引表...")
            self.solver = PhysarumSolver(nodes, connections)
            self.solver.configure(**topology.settings)
            if settings:
                self.solver.configure(**settings)
            self.solver.verbose = verbose
            self.solver.enable_logging(logging_enabled)

            # 4. 求解
            if verbose:
                print("[4/4] 进入求解引擎: 准备执行 Physarum 迭代...")
            result = self.solver.solve()

            if verbose:
                state = "已收敛至不动点" if result.converged else "达到最大迭代次数"
                print(f"[+] 计算完成: {state}，存活连接 {len(result.survived)} 条。")
                print(">>>" * 15 + "\n")
            return {
                "success": True,
                "msg": "计算完成" if result.converged else "计算完成 (未收敛)",
                "result": self._format_results(nodes, connections, result),
            }
        except NumericSolveError as e:
            if verbose:
                print(f"[-] 计算失败: 第 {e.iteration} 轮矩阵求解失败 - {e}")
                print(">>>" * 15 + "\n")
            return {"success": False, "msg": f"矩阵求解失败: {e}", "error": e}
        except (ConfigurationError, AttributeError, TypeError, ValueError) as e:
            if verbose:
                print(f"[-] 配置错误: {e}")
                print(">>>" * 15 + "\n")
            return {"success": False, "msg": f"配置错误: {e}", "error": e}

    def _format_results(self, nodes, connections, result) -> Dict:
        """格式化计算输出"""
        survived = {id(con) for con in result.survived}
        return {
            "converged": result.converged,
            "iterations": result.iterations,
            "pressures": {node.id: node.pressure for node in nodes},
            "connections": [
                {
                    "start": con.start.id,
                    "end": con.end.id,
                    "flux": con.flux,
                    "conductivity": con.conductivity,
                    "length": con.length,
                    "survived": id(con) in survived,
                }
                for con in connections
            ],
            "survived": [con.describe() for con in result.survived],
        }

    def result_string(self) -> str:
        if self.solver is None:
            raise PhysarumError("尚未运行求解")
        return self.solver.get_result_string()
