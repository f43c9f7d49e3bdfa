"""
蒙特卡洛模拟模块
基于固定胜率与平均盈亏生成大量独立的模拟权益曲线，统计最终余额分布
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

import numpy as np
from loguru import logger

from ..errors import InvalidArgument
from ..models import Trade
from ..utils.trading_math import round_currency, to_number
from .strategy_metrics import StrategyMetricsCalculator


PERCENTILES = (0.05, 0.25, 0.50, 0.75, 0.95)


@dataclass
class SimulationConfig:
    """模拟配置"""
    include_trial_detail: bool = False
    random_seed: Optional[int] = None


@dataclass
class TrialResult:
    """单次模拟结果"""
    equity_curve: List[float]
    final_balance: float
    max_drawdown: float
    return_pct: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "equity_curve": [round_currency(v) for v in self.equity_curve],
            "final_balance": round_currency(self.final_balance),
            "max_drawdown": round_currency(self.max_drawdown),
            "return_pct": round_currency(self.return_pct),
        }


@dataclass
class SimulationResult:
    """模拟汇总结果"""
    initial_balance: float
    number_of_trades: int
    number_of_simulations: int
    final_balances: List[float]
    percentiles: Dict[str, float]
    failure_rate: float
    average_return: float
    median_return: float
    max_return: float
    min_return: float
    average_max_drawdown: float
    simulations: List[TrialResult] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "initial_balance": self.initial_balance,
            "number_of_trades": self.number_of_trades,
            "number_of_simulations": self.number_of_simulations,
            "failure_rate": round(self.failure_rate, 4),
            "average_return": round_currency(self.average_return),
            "median_return": round_currency(self.median_return),
            "max_return": round_currency(self.max_return),
            "min_return": round_currency(self.min_return),
            "average_max_drawdown": round_currency(self.average_max_drawdown),
        }
        for name, value in self.percentiles.items():
            data[name] = round_currency(value)
        if self.simulations:
            data["simulations"] = [s.to_dict() for s in self.simulations]
        return data


def percentile_at(sorted_values, p: float):
    """按索引 floor(n * p) 取百分位，不做插值"""
    return sorted_values[int(math.floor(len(sorted_values) * p))]


class MonteCarloSimulator:
    """蒙特卡洛模拟器"""

    def __init__(self, config: Optional[SimulationConfig] = None):
        self.config = config or SimulationConfig()

    def run(self, initial_balance: float = 10000, win_rate: float = 0.5,
            average_win: float = 200, average_loss: float = 100,
            number_of_trades: int = 100, number_of_simulations: int = 1000,
            include_trial_detail: Optional[bool] = None) -> SimulationResult:
        """
        运行蒙特卡洛模拟

        参数:
            initial_balance: 初始余额
            win_rate: 胜率（0-1）
            average_win: 盈利交易的平均盈利
            average_loss: 亏损交易的平均亏损（正数）
            number_of_trades: 每次模拟的交易笔数
            number_of_simulations: 模拟次数
            include_trial_detail: 是否返回每次模拟的权益曲线，默认取配置

        返回:
            SimulationResult，最终余额升序排列
        """
        initial_balance = to_number(initial_balance, "initial_balance")
        win_rate = to_number(win_rate, "win_rate")
        average_win = to_number(average_win, "average_win")
        average_loss = to_number(average_loss, "average_loss")
        number_of_trades = int(to_number(number_of_trades, "number_of_trades"))
        number_of_simulations = int(to_number(number_of_simulations, "number_of_simulations"))

        if initial_balance <= 0:
            raise InvalidArgument(f"初始余额必须大于0: {initial_balance}")
        if win_rate < 0 or win_rate > 1:
            raise InvalidArgument(f"胜率必须在0和1之间: {win_rate}")
        if average_win < 0 or average_loss < 0:
            raise InvalidArgument("平均盈利与平均亏损不能为负数")
        if number_of_trades < 0:
            raise InvalidArgument(f"交易笔数不能为负数: {number_of_trades}")
        if number_of_simulations < 1:
            raise InvalidArgument(f"模拟次数必须大于等于1: {number_of_simulations}")

        if include_trial_detail is None:
            include_trial_detail = self.config.include_trial_detail

        logger.info(
            f"开始蒙特卡洛模拟: {number_of_simulations} 次 x {number_of_trades} 笔, "
            f"胜率 {win_rate}, 平均盈利 {average_win}, 平均亏损 {average_loss}"
        )

        # 每行一次模拟，首列为初始余额
        rng = np.random.default_rng(self.config.random_seed)
        wins = rng.random((number_of_simulations, number_of_trades)) < win_rate
        steps = np.where(wins, average_win, -average_loss)
        equity = np.empty((number_of_simulations, number_of_trades + 1))
        equity[:, 0] = initial_balance
        equity[:, 1:] = initial_balance + np.cumsum(steps, axis=1)

        # 峰值不低于初始余额，恒为正
        peaks = np.maximum.accumulate(equity, axis=1)
        max_drawdowns = ((peaks - equity) / peaks * 100).max(axis=1)

        final_balances = equity[:, -1]
        returns = (final_balances - initial_balance) / initial_balance * 100
        sorted_balances = np.sort(final_balances)

        def to_return(balance: float) -> float:
            return float((balance - initial_balance) / initial_balance * 100)

        simulations = []
        if include_trial_detail:
            simulations = [
                TrialResult(
                    equity_curve=equity[i].tolist(),
                    final_balance=float(final_balances[i]),
                    max_drawdown=float(max_drawdowns[i]),
                    return_pct=float(returns[i]),
                )
                for i in range(number_of_simulations)
            ]

        result = SimulationResult(
            initial_balance=initial_balance,
            number_of_trades=number_of_trades,
            number_of_simulations=number_of_simulations,
            final_balances=sorted_balances.tolist(),
            percentiles={
                f"percentile{int(round(p * 100))}": float(percentile_at(sorted_balances, p))
                for p in PERCENTILES
            },
            failure_rate=float((sorted_balances < initial_balance).sum()) / number_of_simulations,
            average_return=to_return(sorted_balances.mean()),
            median_return=to_return(percentile_at(sorted_balances, 0.50)),
            max_return=to_return(sorted_balances[-1]),
            min_return=to_return(sorted_balances[0]),
            average_max_drawdown=float(max_drawdowns.mean()),
            simulations=simulations,
        )

        logger.info(
            f"模拟完成: 失败率 {result.failure_rate:.2%}, 平均收益 {result.average_return:.2f}%, "
            f"平均最大回撤 {result.average_max_drawdown:.2f}%"
        )
        return result

    def run_from_trades(self, trades: Iterable[Trade], initial_balance: float,
                        number_of_trades: int = 100, number_of_simulations: int = 1000,
                        include_trial_detail: Optional[bool] = None) -> SimulationResult:
        """以历史交易的胜率和平均盈亏作为模型参数运行模拟"""
        closed = [t for t in trades if t.is_closed and t.profit_loss is not None]
        metrics = StrategyMetricsCalculator().summarize(t.profit_loss for t in closed)
        if metrics.total_trades == 0:
            raise InvalidArgument("没有可用于模拟的已平仓交易")

        return self.run(
            initial_balance=initial_balance,
            win_rate=metrics.win_rate,
            average_win=metrics.average_win,
            average_loss=metrics.average_loss,
            number_of_trades=number_of_trades,
            number_of_simulations=number_of_simulations,
            include_trial_detail=include_trial_detail,
        )
