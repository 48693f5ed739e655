class PhysarumError(Exception):
    """计算引擎异常基类。"""


class ConfigurationError(PhysarumError):
    """
    配置错误：拓扑或参数本身不合法，属于致命错误，不做恢复。
    例如：管长 L <= 0、连接引用了节点列表之外的节点、矩阵与向量维度不匹配。
    """


class NumericSolveError(PhysarumError):
    """
    数值求解失败：最小二乘后端无法给出任何解（奇异矩阵的最小二乘解不算失败）。
    保留失败迭代的左右端矩阵，供事后排查。
    """

    def __init__(self, message, iteration=None, lefthand=None, righthand=None):
        super().__init__(message)
        self.iteration = iteration
        self.lefthand = lefthand
        self.righthand = righthand
