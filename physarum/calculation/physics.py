from enum import Enum

import numpy as np


class FeedbackLaw(Enum):
    """
    流导反馈律：决定通量 Q 如何驱动管道流导 D 的增长。
    每条连接单独配置，同一网络中允许混用。
    """
    TYPE_ONE = "TypeOne"
    TYPE_TWO = "TypeTwo"
    TYPE_THREE = "TypeThree"

    @classmethod
    def parse(cls, value):
        """从 JSON 字段解析反馈律，兼容 'TypeOne' / 'type_one' / 1 等写法"""
        if isinstance(value, cls):
            return value
        if value is None or value == "":
            return cls.TYPE_ONE
        if isinstance(value, int) and 1 <= value <= len(cls):
            return list(cls)[value - 1]
        text = str(value).strip()
        for law in cls:
            if text in (law.value, law.name) or text.upper() == law.name:
                return law
        raise ValueError(f"未知的反馈律: {value}")


def calc_flux(dl_fraction: float, p_start: float, p_end: float) -> float:
    """
    计算管道通量 Q (Hagen-Poiseuille 线性形式)
    Q = D/L * (p_start - p_end)
    符号只表示方向，流导增长只看 |Q|。
    """
    return dl_fraction * (p_start - p_end)


def calc_feedback(flux: float, mue: float, law: FeedbackLaw = FeedbackLaw.TYPE_ONE,
                  fq_alpha: float = 15.0) -> float:
    """
    计算流导增长项 f(Q)
    TYPE_ONE:   f = |Q|^mue                         纯幂律
    TYPE_TWO:   f = (1+k)|Q|^mue / (1 + k|Q|^mue)   饱和型，k 为饱和常数 fq_alpha
    TYPE_THREE: f = |Q|^mue / (1 + |Q|^mue)         无比例参数的饱和型
    三种形式在 Q = 0 时均为 0，此时流导只按 -alpha*D 衰减。
    """
    # 通量极大时返回 inf
    q_pow = float(np.power(abs(flux), mue))

    if law == FeedbackLaw.TYPE_ONE:
        return q_pow
    elif law == FeedbackLaw.TYPE_TWO:
        return ((1.0 + fq_alpha) * q_pow) / (1.0 + fq_alpha * q_pow)
    elif law == FeedbackLaw.TYPE_THREE:
        return q_pow / (1.0 + q_pow)

    raise ValueError(f"未知的反馈律: {law}")


def calc_conductivity_update(conductivity: float, growth: float, alpha: float = 1.0,
                             weight: float = 1.0) -> float:
    """
    Tero-Kobayashi 流导演化方程的显式一步
    D_new = D + weight * (f(Q) - alpha * D)
    不对 D 做任何截断，D 可以无限趋近 0 或变得很大。
    """
    return conductivity + weight * (growth - alpha * conductivity)
