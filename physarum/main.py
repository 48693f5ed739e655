import argparse
import sys

from physarum.calculation.errors import ConfigurationError, NumericSolveError
from physarum.calculation.manager import CalculationManager
from physarum.calculation.solver import PhysarumSolver
from physarum.datasystem.maze_store import MazeStore


def build_parser():
    parser = argparse.ArgumentParser(description="Physarum 自适应网络求解器")
    parser.add_argument("--maze", type=int, default=1, help="内置迷宫编号 (0~4)，默认 1 = Tero 论文迷宫")
    parser.add_argument("--json", help="从拓扑 JSON 文件求解，优先于 --maze")
    parser.add_argument("--export", help="把 --maze 指定的迷宫导出为拓扑 JSON 后退出")
    parser.add_argument("--log", default="PhysarumSolver.log", help="文本日志输出路径")
    parser.add_argument("--mue", type=float, help="反馈指数 mue")
    parser.add_argument("--iterations", type=int, help="最大迭代次数")
    parser.add_argument("--seed", type=int, help="随机初始流导的种子")
    parser.add_argument("--dmin", type=float, help="随机初始流导下限 conductivity_minimum")
    parser.add_argument("--dmax", type=float, help="随机初始流导上限 conductivity_maximum")
    parser.add_argument("--quiet", action="store_true", help="不在终端打印过程")
    return parser


def solve_maze(maze_id, settings, seed=None, verbose=True):
    """求解内置迷宫。settings 中的 conductivity_minimum / conductivity_maximum 决定随机初始流导的区间"""
    bounds = {key: float(settings[key]) for key in ("conductivity_minimum", "conductivity_maximum") if key in settings}
    store = MazeStore(seed=seed, **bounds)
    nodes, connections = store.build(maze_id)
    solver = PhysarumSolver(nodes, connections)
    solver.configure(**settings)
    solver.verbose = verbose
    solver.enable_logging(True)
    try:
        solver.solve()
    except NumericSolveError as e:
        # 失败时日志中保留了最后一轮的矩阵，照常写出
        print(f"[-] 求解失败: 第 {e.iteration} 轮 - {e}")
        return solver, False
    return solver, True


def main(argv=None):
    args = build_parser().parse_args(argv)

    settings = {}
    if args.mue is not None:
        settings["mue"] = args.mue
    if args.iterations is not None:
        settings["max_iterations"] = args.iterations
    if args.dmin is not None:
        settings["conductivity_minimum"] = args.dmin
    if args.dmax is not None:
        settings["conductivity_maximum"] = args.dmax

    if args.export:
        bounds = {key: settings[key] for key in ("conductivity_minimum", "conductivity_maximum") if key in settings}
        path = MazeStore(seed=args.seed, **bounds).export(args.maze, args.export)
        print(f"[+] 迷宫 {args.maze} 已导出: {path}")
        return 0

    if args.json:
        manager = CalculationManager(args.json)
        outcome = manager.run(settings=settings, verbose=not args.quiet)
        if not outcome["success"]:
            print(f"[-] {outcome['msg']}")
            if manager.solver is None:
                return 1
        log = manager.result_string()
    else:
        try:
            solver, ok = solve_maze(args.maze, settings, seed=args.seed, verbose=not args.quiet)
        except ConfigurationError as e:
            print(f"[-] 配置错误: {e}")
            return 1
        log = solver.get_result_string()
        outcome = {"success": ok}

    with open(args.log, "w", encoding="utf-8") as f:
        f.write(log)
    print(f"[+] 日志已写入: {args.log}")
    return 0 if outcome["success"] else 1


if __name__ == "__main__":
    sys.exit(main())
