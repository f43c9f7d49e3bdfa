"""
交易绩效分析模块
按时间周期统计绩效、重建权益曲线、按因子分组统计胜负、计算风险指标与连胜连亏
"""

from collections import defaultdict
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

import numpy as np
import pandas as pd
from loguru import logger

from ..errors import InvalidArgument, InvalidFactor
from ..models import Trade
from ..utils import trading_math
from ..utils.trading_math import PROFIT_FACTOR_CAP, round_currency


INTERVALS = ("daily", "weekly", "monthly", "yearly")


def _weekly_label(value: datetime) -> str:
    iso = value.isocalendar()
    return f"{iso[0]}-W{iso[1]:02d}"


PERIOD_FORMATTERS: Dict[str, Callable[[datetime], str]] = {
    "daily": lambda d: d.strftime("%Y-%m-%d"),
    "weekly": _weekly_label,
    "monthly": lambda d: d.strftime("%Y-%m"),
    "yearly": lambda d: d.strftime("%Y"),
}


def _entry_attr(fmt: Callable[[datetime], Any]) -> Callable[[Trade], Any]:
    return lambda t: fmt(t.entry_date) if t.entry_date else None


# 分组因子 -> 取值函数（后四项来自交易前/后分析）
FACTOR_EXTRACTORS: Dict[str, Callable[[Trade], Any]] = {
    "direction": lambda t: t.direction.value,
    "day_of_week": _entry_attr(lambda d: d.strftime("%A")),
    "time_of_day": _entry_attr(lambda d: d.hour),
    "daily_trend": lambda t: t.pre_analysis.get("daily_trend"),
    "htf_setup": lambda t: t.pre_analysis.get("htf_setup"),
    "clean_range": lambda t: t.pre_analysis.get("clean_range"),
    "volume_time": lambda t: t.pre_analysis.get("volume_time"),
    "emotional_state": lambda t: t.post_analysis.get("emotional_state"),
}


@dataclass
class PeriodPerformance:
    """单个时间周期的绩效"""
    time_period: str
    trade_count: int
    winning_trades: int
    losing_trades: int
    period_pnl: float
    avg_profit_loss: float
    max_profit: float
    max_loss: float
    avg_win: Optional[float]
    avg_loss: Optional[float]
    win_rate: float
    profit_factor: float

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key in ("period_pnl", "avg_profit_loss", "max_profit", "max_loss",
                    "avg_win", "avg_loss", "win_rate", "profit_factor"):
            data[key] = round_currency(data[key])
        return data


@dataclass
class EquityPoint:
    """权益曲线上的一个点"""
    trade_id: Any
    exit_date: datetime
    profit_loss: float
    running_balance: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trade_id": self.trade_id,
            "exit_date": self.exit_date.isoformat(),
            "profit_loss": round_currency(self.profit_loss),
            "running_balance": round_currency(self.running_balance),
        }


@dataclass
class FactorBreakdown:
    """按因子分组的胜负统计"""
    factor: Any
    trade_count: int
    winning_trades: int
    losing_trades: int
    total_pnl: float
    avg_profit_loss: float
    win_rate: float

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key in ("total_pnl", "avg_profit_loss", "win_rate"):
            data[key] = round_currency(data[key])
        return data


@dataclass
class RiskMetricsResult:
    """风险指标汇总"""
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    win_rate: float = 0.0
    profit_factor: float = 0.0
    average_profit: float = 0.0
    average_loss: float = 0.0
    max_drawdown: float = 0.0
    current_drawdown: float = 0.0
    average_risk_reward_ratio: float = 0.0
    average_risked_amount: float = 0.0
    expectancy: float = 0.0
    sharpe_ratio: float = 0.0
    total_profit_loss: float = 0.0
    max_drawdown_percent: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, float):
                data[key] = round_currency(value)
        return data


@dataclass
class ConsecutiveStats:
    """连胜连亏统计"""
    max_consecutive_wins: int = 0
    max_consecutive_losses: int = 0
    current_streak: int = 0
    is_current_streak_winning: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def closed_trades(trades: Iterable[Trade]) -> List[Trade]:
    """已平仓且有盈亏的交易"""
    return [t for t in trades if t.is_closed and t.profit_loss is not None]


def chronological(trades: Iterable[Trade]) -> List[Trade]:
    """按出场时间升序排列，缺少出场时间的交易排在最后"""
    return sorted(trades, key=lambda t: (t.exit_date is None, t.exit_date))


class PerformanceAnalyzer:
    """交易绩效分析器"""

    def performance_over_time(self, trades: Iterable[Trade], interval: str = "monthly") -> List[PeriodPerformance]:
        """
        按出场时间将已平仓交易划分到日/周/月/年周期

        参数:
            trades: 交易列表
            interval: daily / weekly / monthly / yearly，默认 monthly

        返回:
            按时间升序排列的周期绩效列表
        """
        interval = interval or "monthly"
        if interval not in PERIOD_FORMATTERS:
            raise InvalidArgument(f"不支持的时间周期: {interval}")

        dated = [t for t in closed_trades(trades) if t.exit_date is not None]
        if not dated:
            return []

        formatter = PERIOD_FORMATTERS[interval]
        df = pd.DataFrame({
            "time_period": [formatter(t.exit_date) for t in dated],
            "profit_loss": [t.profit_loss for t in dated],
        })

        periods = []
        for time_period, group in df.groupby("time_period", sort=True):
            pnl = group["profit_loss"]
            wins = pnl[pnl > 0]
            losses = pnl[pnl < 0]

            avg_win = float(wins.mean()) if len(wins) else None
            avg_loss = float(losses.mean()) if len(losses) else None

            if avg_loss:
                profit_factor = abs((avg_win or 0.0) / avg_loss)
            else:
                profit_factor = PROFIT_FACTOR_CAP if len(wins) else 0.0

            trade_count = int(len(pnl))
            periods.append(PeriodPerformance(
                time_period=str(time_period),
                trade_count=trade_count,
                winning_trades=int(len(wins)),
                losing_trades=int(len(losses)),
                period_pnl=float(pnl.sum()),
                avg_profit_loss=float(pnl.mean()),
                max_profit=float(pnl.max()),
                max_loss=float(pnl.min()),
                avg_win=avg_win,
                avg_loss=avg_loss,
                win_rate=len(wins) / trade_count * 100,
                profit_factor=profit_factor,
            ))

        return periods

    def equity_curve(self, trades: Iterable[Trade]) -> List[EquityPoint]:
        """
        重建权益曲线

        每笔交易的 running_balance 为出场时间不晚于该笔交易的全部已平仓交易盈亏之和（含同一时间）
        """
        dated = chronological(t for t in closed_trades(trades) if t.exit_date is not None)
        if not dated:
            return []

        df = pd.DataFrame({
            "exit_date": [t.exit_date for t in dated],
            "profit_loss": [t.profit_loss for t in dated],
        })
        df["cumulative"] = df["profit_loss"].cumsum()
        # 同一出场时间的交易共享组内最后的累计值
        df["running_balance"] = df.groupby("exit_date", sort=False)["cumulative"].transform("last")

        return [
            EquityPoint(
                trade_id=trade.trade_id,
                exit_date=trade.exit_date,
                profit_loss=trade.profit_loss,
                running_balance=float(balance),
            )
            for trade, balance in zip(dated, df["running_balance"])
        ]

    def win_loss_by_factor(self, trades: Iterable[Trade], factor: str) -> List[FactorBreakdown]:
        """
        按因子分组统计胜负

        factor: direction / day_of_week / time_of_day / daily_trend / htf_setup /
                clean_range / volume_time / emotional_state
        缺失的取值单独成组（factor 为 None），各组交易数之和等于已平仓交易数
        """
        extractor = FACTOR_EXTRACTORS.get(factor)
        if extractor is None:
            raise InvalidFactor(f"无效的分组因子: {factor}")

        groups: Dict[Any, List[float]] = defaultdict(list)
        for trade in closed_trades(trades):
            key = extractor(trade)
            try:
                hash(key)
            except TypeError:
                key = str(key)
            groups[key].append(trade.profit_loss)

        breakdown = []
        for key, values in groups.items():
            pnl = np.asarray(values, dtype=float)
            winning = int((pnl > 0).sum())
            breakdown.append(FactorBreakdown(
                factor=key,
                trade_count=int(pnl.size),
                winning_trades=winning,
                losing_trades=int((pnl < 0).sum()),
                total_pnl=float(pnl.sum()),
                avg_profit_loss=float(pnl.mean()),
                win_rate=winning / pnl.size * 100,
            ))

        breakdown.sort(key=lambda b: b.avg_profit_loss, reverse=True)
        return breakdown

    def risk_metrics(self, trades: Iterable[Trade], starting_balance: Optional[float] = None) -> RiskMetricsResult:
        """
        风险指标汇总

        按出场时间升序处理已平仓交易。回撤以货币金额计（从0余额起算的峰值减当前值）；
        提供 starting_balance 时另以百分比给出 max_drawdown_percent。
        无交易时返回全零结果。
        """
        trades = chronological(closed_trades(trades))
        if not trades:
            return RiskMetricsResult()

        winning_trades = 0
        losing_trades = 0
        total_profit = 0.0
        total_loss = 0.0
        max_drawdown = 0.0
        current_drawdown = 0.0
        peak_balance = 0.0
        running_balance = 0.0
        risk_reward_ratios = []
        risked_amounts = []

        for trade in trades:
            profit_loss = trade.profit_loss

            if profit_loss > 0:
                winning_trades += 1
                total_profit += profit_loss
            else:
                losing_trades += 1
                total_loss += profit_loss

            running_balance += profit_loss
            if running_balance > peak_balance:
                peak_balance = running_balance
                current_drawdown = 0.0
            else:
                current_drawdown = peak_balance - running_balance
                max_drawdown = max(max_drawdown, current_drawdown)

            risk = trade.risk_amount
            if risk is not None and risk > 0:
                risk_reward_ratios.append(abs(profit_loss) / risk)
                risked_amounts.append(risk)

        count = len(trades)
        returns = np.asarray([t.profit_loss for t in trades], dtype=float)
        std = float(np.std(returns, ddof=1)) if count > 1 else 0.0
        sharpe_ratio = float(returns.mean()) / std if std > 0 else 0.0

        if total_loss != 0:
            profit_factor = abs(total_profit / total_loss)
        else:
            profit_factor = PROFIT_FACTOR_CAP if total_profit > 0 else 0.0

        max_drawdown_percent = None
        if starting_balance is not None:
            start = trading_math.to_number(starting_balance, "starting_balance")
            if start <= 0:
                raise InvalidArgument(f"初始余额必须大于0: {start}")
            max_drawdown_percent = trading_math.max_drawdown(np.concatenate(([start], start + np.cumsum(returns))))

        result = RiskMetricsResult(
            total_trades=count,
            winning_trades=winning_trades,
            losing_trades=losing_trades,
            win_rate=winning_trades / count * 100,
            profit_factor=profit_factor,
            average_profit=total_profit / winning_trades if winning_trades else 0.0,
            average_loss=total_loss / losing_trades if losing_trades else 0.0,
            max_drawdown=max_drawdown,
            current_drawdown=current_drawdown,
            average_risk_reward_ratio=float(np.mean(risk_reward_ratios)) if risk_reward_ratios else 0.0,
            average_risked_amount=float(np.mean(risked_amounts)) if risked_amounts else 0.0,
            expectancy=(total_profit + total_loss) / count,
            sharpe_ratio=sharpe_ratio,
            total_profit_loss=total_profit + total_loss,
            max_drawdown_percent=max_drawdown_percent,
        )
        logger.debug(f"风险指标: {count} 笔交易, 胜率 {result.win_rate:.2f}%, 最大回撤 {max_drawdown:.2f}")
        return result

    def consecutive_stats(self, trades: Iterable[Trade]) -> ConsecutiveStats:
        """连胜连亏统计，盈亏不大于0视为亏损"""
        trades = chronological(closed_trades(trades))
        if not trades:
            return ConsecutiveStats()

        max_wins = 0
        max_losses = 0
        current_wins = 0
        current_losses = 0

        for trade in trades:
            if trade.is_win:
                current_losses = 0
                current_wins += 1
                max_wins = max(max_wins, current_wins)
            else:
                current_wins = 0
                current_losses += 1
                max_losses = max(max_losses, current_losses)

        last_is_win = trades[-1].is_win
        return ConsecutiveStats(
            max_consecutive_wins=max_wins,
            max_consecutive_losses=max_losses,
            current_streak=current_wins if last_is_win else -current_losses,
            is_current_streak_winning=last_is_win,
        )

    def trade_statistics(self, trades: Iterable[Trade]) -> Dict[str, Any]:
        """交易总体统计"""
        trades = closed_trades(trades)
        if not trades:
            return {
                "total_trades": 0,
                "winning_trades": 0,
                "losing_trades": 0,
                "total_profit_loss": 0.0,
                "avg_profit_loss": 0.0,
                "max_profit": None,
                "max_loss": None,
                "win_rate": 0.0,
            }

        pnl = np.asarray([t.profit_loss for t in trades], dtype=float)
        losses = pnl[pnl < 0]
        winning = int((pnl > 0).sum())
        return {
            "total_trades": int(pnl.size),
            "winning_trades": winning,
            "losing_trades": int(losses.size),
            "total_profit_loss": round_currency(pnl.sum()),
            "avg_profit_loss": round_currency(pnl.mean()),
            "max_profit": round_currency(pnl.max()),
            "max_loss": round_currency(losses.min()) if losses.size else None,
            "win_rate": round_currency(winning / pnl.size * 100),
        }

    def dashboard(self, trades: Iterable[Trade], interval: str = "monthly",
                  starting_balance: Optional[float] = None) -> Dict[str, Any]:
        """汇总全部分析结果"""
        trades = list(trades)
        return {
            "statistics": self.trade_statistics(trades),
            "performance": [p.to_dict() for p in self.performance_over_time(trades, interval)],
            "equity_curve": [p.to_dict() for p in self.equity_curve(trades)],
            "risk_metrics": self.risk_metrics(trades, starting_balance).to_dict(),
            "consecutive": self.consecutive_stats(trades).to_dict(),
            "by_direction": [b.to_dict() for b in self.win_loss_by_factor(trades, "direction")],
        }
