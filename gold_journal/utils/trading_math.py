"""
交易数学工具
提供仓位计算、盈亏比、期望值、凯利公式、最大回撤等纯函数
"""

import math
from numbers import Real
from typing import Iterable, Optional, Sequence

import numpy as np

from ..errors import InvalidArgument


# 无亏损但有盈利时的盈利因子上限
PROFIT_FACTOR_CAP = 999.0

# 置信度对应的Z值
Z_SCORES = {
    90: 1.645,
    95: 1.96,
    99: 2.576,
}
DEFAULT_Z_SCORE = 1.96


def to_number(value, name: str) -> float:
    """将输入转换为有限浮点数，失败时抛出InvalidArgument"""
    if value is None or isinstance(value, bool):
        raise InvalidArgument(f"{name} 必须为数值: {value!r}")
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            raise InvalidArgument(f"{name} 必须为数值: {value!r}")
    if not isinstance(value, Real):
        raise InvalidArgument(f"{name} 必须为数值: {value!r}")
    value = float(value)
    if math.isnan(value) or math.isinf(value):
        raise InvalidArgument(f"{name} 必须为有限数值: {value!r}")
    return value


def round_currency(value: Optional[float]) -> Optional[float]:
    """边界输出时保留两位小数"""
    if value is None:
        return None
    return round(float(value), 2)


def position_size(balance: float, risk_pct: float, entry: float, stop: float) -> float:
    """
    根据账户风险比例计算仓位

    参数:
        balance: 账户余额
        risk_pct: 风险百分比（0-100）
        entry: 入场价格
        stop: 止损价格

    返回:
        仓位数量 = (balance * risk_pct / 100) / |entry - stop|
    """
    balance = to_number(balance, "balance")
    risk_pct = to_number(risk_pct, "risk_pct")
    entry = to_number(entry, "entry")
    stop = to_number(stop, "stop")

    price_difference = abs(entry - stop)
    if price_difference == 0:
        raise InvalidArgument("止损价格与入场价格相同，无法计算仓位")

    return (balance * risk_pct / 100) / price_difference


def risk_reward_ratio(entry: float, stop: float, target: float) -> float:
    """盈亏比 = |entry - target| / |entry - stop|"""
    entry = to_number(entry, "entry")
    stop = to_number(stop, "stop")
    target = to_number(target, "target")

    risk = abs(entry - stop)
    if risk == 0:
        raise InvalidArgument("止损价格与入场价格相同，无法计算盈亏比")
    return abs(entry - target) / risk


def expected_value(win_prob: float, profit: float, loss: float) -> float:
    """
    单笔交易期望值

    win_prob 必须在 [0, 1] 之间，profit 与 loss 均以正数表示
    """
    win_prob = _probability(win_prob, "win_prob")
    profit = to_number(profit, "profit")
    loss = to_number(loss, "loss")
    return win_prob * profit - (1 - win_prob) * loss


def kelly_criterion(win_prob: float, rr_ratio: float) -> float:
    """
    凯利公式: (b*p - q) / b

    负期望时返回0，不会给出负仓位信号
    """
    win_prob = _probability(win_prob, "win_prob")
    rr_ratio = to_number(rr_ratio, "rr_ratio")
    if rr_ratio <= 0:
        raise InvalidArgument(f"盈亏比必须大于0: {rr_ratio}")

    kelly = (rr_ratio * win_prob - (1 - win_prob)) / rr_ratio
    return max(0.0, kelly)


def max_drawdown(equity_series: Sequence[float]) -> float:
    """
    最大回撤百分比

    单次正向遍历，以此前的峰值为基准；长度小于2时返回0
    """
    values = np.asarray(list(equity_series), dtype=float)
    if values.size < 2:
        return 0.0

    peaks = np.maximum.accumulate(values)
    below_peak = values < peaks
    if np.any(peaks[below_peak] <= 0):
        raise InvalidArgument("回撤计算要求峰值为正数")

    drawdowns = np.zeros_like(values)
    drawdowns[below_peak] = (peaks[below_peak] - values[below_peak]) / peaks[below_peak] * 100
    return float(drawdowns[1:].max())


def profit_factor(winning_amounts: Iterable[float], losing_amounts: Iterable[float]) -> float:
    """
    盈利因子 = 总盈利 / 总亏损

    losing_amounts 以正数表示；无亏损但有盈利时返回 PROFIT_FACTOR_CAP
    """
    total_wins = sum(abs(to_number(v, "winning_amount")) for v in winning_amounts)
    total_losses = sum(abs(to_number(v, "losing_amount")) for v in losing_amounts)

    if total_losses == 0:
        return PROFIT_FACTOR_CAP if total_wins > 0 else 0.0
    return total_wins / total_losses


def risk_percentage(risk_amount: float, balance: float) -> float:
    """风险金额占账户余额的百分比"""
    risk_amount = to_number(risk_amount, "risk_amount")
    balance = to_number(balance, "balance")
    if balance <= 0:
        raise InvalidArgument(f"账户余额必须大于0: {balance}")
    return risk_amount / balance * 100


def sample_size_for_confidence(win_rate: float, confidence_level: float = 0.95,
                               margin_of_error: float = 0.05) -> int:
    """
    达到统计显著所需的交易笔数: ceil(z² * p * (1-p) / e²)

    参数:
        win_rate: 胜率（0-1）
        confidence_level: 置信度，0.90/0.95/0.99，其余按95%处理；大于1时按百分数解释
        margin_of_error: 误差范围（0-1）
    """
    p = _probability(win_rate, "win_rate")
    confidence_level = to_number(confidence_level, "confidence_level")
    margin_of_error = to_number(margin_of_error, "margin_of_error")
    if margin_of_error <= 0:
        raise InvalidArgument(f"误差范围必须大于0: {margin_of_error}")

    level = round(confidence_level * 100) if confidence_level <= 1 else round(confidence_level)
    z = Z_SCORES.get(level, DEFAULT_Z_SCORE)

    return math.ceil((z * z * p * (1 - p)) / (margin_of_error * margin_of_error))


def _probability(value, name: str) -> float:
    value = to_number(value, name)
    if value < 0 or value > 1:
        raise InvalidArgument(f"{name} 必须在0和1之间: {value}")
    return value
