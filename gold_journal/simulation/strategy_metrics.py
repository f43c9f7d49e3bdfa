"""
策略指标汇总
根据历史交易或模拟交易计算胜率、期望值、盈利因子、最大盈亏
"""

from dataclasses import dataclass, asdict
from numbers import Real
from typing import Any, Dict, Iterable

from ..errors import InvalidArgument
from ..models import Trade, TradeDirection, calculate_profit_loss
from ..utils import trading_math
from ..utils.trading_math import round_currency, to_number


@dataclass
class StrategyMetrics:
    """策略指标，win_rate 以0-1表示，average_loss 与 total_loss 为正数"""
    win_rate: float = 0.0
    average_win: float = 0.0
    average_loss: float = 0.0
    profit_factor: float = 0.0
    expectancy: float = 0.0
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    breakeven_trades: int = 0
    net_profit: float = 0.0
    total_profit: float = 0.0
    total_loss: float = 0.0
    largest_win: float = 0.0
    largest_loss: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key in ("average_win", "average_loss", "profit_factor", "expectancy",
                    "net_profit", "total_profit", "total_loss", "largest_win", "largest_loss"):
            data[key] = round_currency(data[key])
        data["win_rate"] = round(self.win_rate, 4)
        return data


def _profit_loss(item) -> float:
    if isinstance(item, Trade):
        if item.profit_loss is None:
            raise InvalidArgument(f"交易尚未平仓: {item.trade_id}")
        return item.profit_loss
    if isinstance(item, dict):
        return to_number(item.get("profit_loss"), "profit_loss")
    if isinstance(item, Real):
        return to_number(item, "profit_loss")
    raise InvalidArgument(f"无法识别的交易记录: {item!r}")


class StrategyMetricsCalculator:
    """策略指标计算器"""

    def summarize(self, trades: Iterable) -> StrategyMetrics:
        """
        按盈亏符号划分盈利/亏损/持平交易并汇总

        trades 可以是 Trade、含 profit_loss 的字典或盈亏数值；空输入返回全零结构
        """
        values = [_profit_loss(t) for t in trades]
        if not values:
            return StrategyMetrics()

        wins = [v for v in values if v > 0]
        losses = [v for v in values if v < 0]
        breakeven = len(values) - len(wins) - len(losses)

        total_profit = sum(wins)
        total_loss = abs(sum(losses))
        win_rate = len(wins) / len(values)
        average_win = total_profit / len(wins) if wins else 0.0
        average_loss = total_loss / len(losses) if losses else 0.0

        return StrategyMetrics(
            win_rate=win_rate,
            average_win=average_win,
            average_loss=average_loss,
            profit_factor=trading_math.profit_factor(wins, [abs(v) for v in losses]),
            expectancy=win_rate * average_win - (1 - win_rate) * average_loss,
            total_trades=len(values),
            winning_trades=len(wins),
            losing_trades=len(losses),
            breakeven_trades=breakeven,
            net_profit=total_profit - total_loss,
            total_profit=total_profit,
            total_loss=total_loss,
            largest_win=max(wins) if wins else 0.0,
            largest_loss=min(losses) if losses else 0.0,
        )

    def simulation_stats(self, records: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
        """
        已执行的交易模拟统计

        records 需包含 simulation_result（win/loss/breakeven）、profit_loss 与 risk_reward_ratio
        """
        total = wins = losses = breakevens = 0
        total_profit_loss = 0.0
        win_values = []
        loss_values = []
        risk_rewards = []

        for record in records:
            result = record.get("simulation_result")
            if result is None:
                continue
            total += 1
            profit_loss = record.get("profit_loss")
            if profit_loss is not None:
                profit_loss = to_number(profit_loss, "profit_loss")
                total_profit_loss += profit_loss

            if result == "win":
                wins += 1
                if profit_loss is not None:
                    win_values.append(profit_loss)
            elif result == "loss":
                losses += 1
                if profit_loss is not None:
                    loss_values.append(profit_loss)
            elif result == "breakeven":
                breakevens += 1

            if record.get("risk_reward_ratio") is not None:
                risk_rewards.append(to_number(record["risk_reward_ratio"], "risk_reward_ratio"))

        return {
            "total_simulations": total,
            "wins": wins,
            "losses": losses,
            "breakevens": breakevens,
            "total_profit_loss": round_currency(total_profit_loss),
            "avg_win": round_currency(sum(win_values) / len(win_values)) if win_values else None,
            "avg_loss": round_currency(sum(loss_values) / len(loss_values)) if loss_values else None,
            "avg_risk_reward": round_currency(sum(risk_rewards) / len(risk_rewards)) if risk_rewards else None,
        }


def scenario_expected_value(win_probability: float, potential_profit: float, risk_amount: float) -> float:
    """情景期望值 = 潜在盈利 * 胜率 - 风险金额 * (1 - 胜率)"""
    return trading_math.expected_value(win_probability, potential_profit, risk_amount)


def simulate_scenario_outcome(entry_price: float, exit_price: float, position_size: float,
                              direction=TradeDirection.LONG) -> Dict[str, Any]:
    """按出场价格结算一次情景模拟，返回盈亏与结果分类"""
    if not isinstance(direction, TradeDirection):
        try:
            direction = TradeDirection(str(direction).lower())
        except ValueError:
            raise InvalidArgument(f"交易方向无效: {direction!r}")

    profit_loss = calculate_profit_loss(
        direction,
        to_number(entry_price, "entry_price"),
        to_number(exit_price, "exit_price"),
        to_number(position_size, "position_size"),
    )
    if profit_loss > 0:
        outcome = "win"
    elif profit_loss < 0:
        outcome = "loss"
    else:
        outcome = "breakeven"
    return {"profit_loss": profit_loss, "simulation_result": outcome}
