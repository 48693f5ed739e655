import numpy as np
from scipy.linalg import lstsq, LinAlgError

from .errors import ConfigurationError, NumericSolveError


def least_squares_solve(lefthand, righthand) -> np.ndarray:
    """
    求解 A·x = b 的最小二乘解 (SVD 分解, gelsd)。
    流量守恒方程组整体相差一个压力常数，A 通常奇异；
    奇异或病态时返回最小范数最小二乘解，这属于正常结果而不是失败。
    只有维度不匹配 (配置错误) 或分解本身失败 (数值错误) 才抛异常。
    """
    A = np.asarray(lefthand, dtype=float)
    b = np.asarray(righthand, dtype=float)

    if A.ndim != 2:
        raise ConfigurationError(f"左端矩阵必须是二维的，实际维度 {A.shape}")
    if b.ndim == 2 and b.shape[1] == 1:
        b = b[:, 0]
    if b.ndim != 1 or b.shape[0] != A.shape[0]:
        raise ConfigurationError(f"维度不匹配: A{A.shape} 与 b{b.shape}")

    if A.shape[0] == 0:
        return np.zeros(A.shape[1])

    try:
        x, _residues, _rank, _sv = lstsq(A, b, lapack_driver="gelsd")
    except (LinAlgError, ValueError) as e:
        # ValueError: 矩阵中含 NaN / inf；LinAlgError: SVD 不收敛
        raise NumericSolveError(f"最小二乘求解失败: {e}", lefthand=A, righthand=b)

    return x
