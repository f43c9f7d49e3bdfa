"""
风险管理模块
提供仓位计算、持仓风险敞口统计、风险限额检查等功能
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence

import numpy as np
from loguru import logger

from ..errors import InvalidArgument, InvalidRiskParameters
from ..models import (
    Account,
    PositionSizeResult,
    RiskSettings,
    Trade,
    TradeDirection,
    TradeStatus,
    stop_on_loss_side,
)
from ..utils import trading_math
from ..utils.trading_math import round_currency


NO_STOP_LOSS_WARNING = "未设置止损，无法验证风险限额"


class RiskLevel(Enum):
    """风险等级"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass
class PositionRisk:
    """单个持仓的风险"""
    trade_id: Any
    symbol: str
    direction: TradeDirection
    position_size: float
    entry_price: float
    stop_loss: Optional[float]
    risk_amount: Optional[float]
    risk_percent: Optional[float]
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "trade_id": self.trade_id,
            "symbol": self.symbol,
            "direction": self.direction.value,
            "position_size": self.position_size,
            "entry_price": self.entry_price,
            "stop_loss": self.stop_loss,
            "risk_amount": round_currency(self.risk_amount),
            "risk_percent": round_currency(self.risk_percent),
        }
        if self.message:
            data["message"] = self.message
        return data


@dataclass
class RiskExposure:
    """当前风险敞口"""
    account_balance: float
    open_positions: int = 0
    total_risk_amount: float = 0.0
    total_risk_percent: float = 0.0
    positions: List[PositionRisk] = field(default_factory=list)

    def count_direction(self, direction: TradeDirection) -> int:
        """同方向持仓数量"""
        return sum(1 for p in self.positions if p.direction == direction)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "open_positions": self.open_positions,
            "total_risk_amount": round_currency(self.total_risk_amount),
            "total_risk_percent": round_currency(self.total_risk_percent),
            "positions": [p.to_dict() for p in self.positions],
        }


@dataclass
class RiskCheckResult:
    """风险限额检查结果"""
    within_limits: bool
    warnings: List[str] = field(default_factory=list)
    trade_risk_percent: Optional[float] = None
    trade_risk_amount: Optional[float] = None
    total_risk_percent: Optional[float] = None
    risk_level: Optional[RiskLevel] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "within_limits": self.within_limits,
            "warnings": list(self.warnings),
        }
        if self.trade_risk_percent is not None:
            data.update({
                "trade_risk_percent": round_currency(self.trade_risk_percent),
                "trade_risk_amount": round_currency(self.trade_risk_amount),
                "total_risk_percent": round_currency(self.total_risk_percent),
                "risk_level": self.risk_level.value if self.risk_level else None,
            })
        return data


@dataclass
class TradeAnalytics:
    """交易情景分析结果（盈亏比、期望值、凯利仓位）"""
    entry_price: float
    stop_loss: float
    take_profit: float
    position_size: float
    win_probability: float
    risk_amount: float
    potential_profit: float
    risk_reward_ratio: float
    expected_value: float
    kelly_criterion: float
    account_balance: Optional[float] = None
    risk_percent: Optional[float] = None
    kelly_position_size: Optional[float] = None
    recommended_position_size: Optional[float] = None
    conservative_position_size: Optional[float] = None
    aggressive_position_size: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entry_price": self.entry_price,
            "stop_loss": self.stop_loss,
            "take_profit": self.take_profit,
            "position_size": self.position_size,
            "account_balance": self.account_balance,
            "risk_amount": round_currency(self.risk_amount),
            "potential_profit": round_currency(self.potential_profit),
            "risk_reward_ratio": round_currency(self.risk_reward_ratio),
            "win_probability": self.win_probability,
            "expected_value": round_currency(self.expected_value),
            "risk_percent": round_currency(self.risk_percent),
            "kelly_criterion": round(self.kelly_criterion, 4),
            "kelly_position_size": round_currency(self.kelly_position_size),
            "recommended_position_size": round_currency(self.recommended_position_size),
            "conservative_position_size": round_currency(self.conservative_position_size),
            "aggressive_position_size": round_currency(self.aggressive_position_size),
        }


class RiskManager:
    """风险管理器"""

    def __init__(self, risk_settings: Optional[RiskSettings] = None):
        """
        初始化风险管理器

        参数:
            risk_settings: 用户风险设置，未提供时使用默认值
                default_risk_percent=1, max_risk_percent=2, max_daily_risk=5,
                max_positions=5, correlation_limit=3, max_drawdown_percent=10
        """
        self.risk_settings = risk_settings or RiskSettings()

    def calculate_position_size(self, account_balance: float, risk_percent: float,
                                entry_price: float, stop_loss_price: float,
                                direction) -> PositionSizeResult:
        """
        根据账户风险比例计算仓位

        参数:
            account_balance: 账户余额
            risk_percent: 风险百分比 (0, 100]
            entry_price: 入场价格
            stop_loss_price: 止损价格（多头须低于入场价，空头须高于入场价）
            direction: 交易方向 long/short

        返回:
            PositionSizeResult，1R目标为入场价本身，2R/3R沿盈利方向外推
        """
        if any(v is None for v in (account_balance, risk_percent, entry_price, stop_loss_price)):
            raise InvalidRiskParameters("缺少仓位计算所需参数")

        account_balance = _risk_number(account_balance, "account_balance")
        risk_percent = _risk_number(risk_percent, "risk_percent")
        entry_price = _risk_number(entry_price, "entry_price")
        stop_loss_price = _risk_number(stop_loss_price, "stop_loss_price")
        direction = _risk_direction(direction)

        if account_balance <= 0 or risk_percent <= 0 or entry_price <= 0:
            raise InvalidRiskParameters("账户余额、风险百分比和入场价格必须大于0")
        if risk_percent > 100:
            raise InvalidRiskParameters(f"风险百分比不能超过100%: {risk_percent}")
        if not stop_on_loss_side(direction, entry_price, stop_loss_price):
            raise InvalidRiskParameters(
                f"止损价格 {stop_loss_price} 对 {direction.value} 方向无效（入场 {entry_price}）"
            )

        dollar_risk = account_balance * (risk_percent / 100)
        price_difference = abs(entry_price - stop_loss_price)
        size = dollar_risk / price_difference
        position_value = size * entry_price

        sign = 1 if direction == TradeDirection.LONG else -1

        result = PositionSizeResult(
            account_value=account_balance,
            risk_percent=risk_percent,
            dollar_risk=dollar_risk,
            price_difference=price_difference,
            position_size=size,
            position_value=position_value,
            leverage_used=position_value / account_balance,
            risk_reward_1r=entry_price,
            risk_reward_2r=entry_price + sign * price_difference * 2,
            risk_reward_3r=entry_price + sign * price_difference * 3,
        )
        logger.debug(f"仓位计算: {direction.value} 入场 {entry_price} 止损 {stop_loss_price}, 仓位 {size:.4f}")
        return result

    def calculate_account_position_size(self, account: Account, risk_percent: float,
                                        entry_price: float, stop_loss_price: float,
                                        direction) -> PositionSizeResult:
        """以账户当前余额计算仓位"""
        return self.calculate_position_size(
            account.current_balance, risk_percent, entry_price, stop_loss_price, direction
        )

    def get_current_risk_exposure(self, open_trades: Iterable[Trade],
                                  account_balance: float) -> RiskExposure:
        """
        统计当前持仓的风险敞口

        未设置止损的持仓 risk_amount 为None，且不计入总风险
        """
        account_balance = _risk_number(account_balance, "account_balance")
        if account_balance <= 0:
            raise InvalidRiskParameters(f"账户余额必须大于0: {account_balance}")

        positions = []
        for trade in open_trades:
            if trade.status != TradeStatus.OPEN:
                continue

            risk_amount = trade.risk_amount
            if risk_amount is None:
                positions.append(PositionRisk(
                    trade_id=trade.trade_id,
                    symbol=trade.symbol,
                    direction=trade.direction,
                    position_size=trade.position_size,
                    entry_price=trade.entry_price,
                    stop_loss=None,
                    risk_amount=None,
                    risk_percent=None,
                    message="未设置止损",
                ))
                continue

            positions.append(PositionRisk(
                trade_id=trade.trade_id,
                symbol=trade.symbol,
                direction=trade.direction,
                position_size=trade.position_size,
                entry_price=trade.entry_price,
                stop_loss=trade.stop_loss,
                risk_amount=risk_amount,
                risk_percent=risk_amount / account_balance * 100,
            ))

        total_risk_amount = sum(p.risk_amount for p in positions if p.risk_amount is not None)

        return RiskExposure(
            account_balance=account_balance,
            open_positions=len(positions),
            total_risk_amount=total_risk_amount,
            total_risk_percent=total_risk_amount / account_balance * 100,
            positions=positions,
        )

    def check_risk_limits(self, candidate_trade: Trade,
                          risk_settings: Optional[RiskSettings] = None,
                          current_exposure: Optional[RiskExposure] = None) -> RiskCheckResult:
        """
        检查新交易是否违反风险限额

        四项检查互不短路，所有违规项的警告一并返回:
            1. 单笔风险 <= max_risk_percent
            2. 当前总风险 + 单笔风险 <= max_daily_risk
            3. 持仓数量 < max_positions
            4. 同方向持仓数量 < correlation_limit
        """
        settings = risk_settings or self.risk_settings
        if current_exposure is None:
            raise InvalidRiskParameters("缺少当前风险敞口")

        if candidate_trade.stop_loss is None:
            logger.warning(NO_STOP_LOSS_WARNING)
            return RiskCheckResult(within_limits=True, warnings=[NO_STOP_LOSS_WARNING])

        balance = current_exposure.account_balance
        risk_amount = candidate_trade.risk_amount
        risk_percent = risk_amount / balance * 100
        new_total_risk_percent = current_exposure.total_risk_percent + risk_percent

        warnings = []
        within_limits = True

        if risk_percent > settings.max_risk_percent:
            warnings.append(
                f"单笔交易风险 ({risk_percent:.2f}%) 超过最大单笔风险 ({settings.max_risk_percent}%)"
            )
            within_limits = False

        if new_total_risk_percent > settings.max_daily_risk:
            warnings.append(
                f"总风险敞口 ({new_total_risk_percent:.2f}%) 将超过每日最大风险 ({settings.max_daily_risk}%)"
            )
            within_limits = False

        if current_exposure.open_positions >= settings.max_positions:
            warnings.append(f"已达到最大同时持仓数量 ({settings.max_positions})")
            within_limits = False

        if current_exposure.count_direction(candidate_trade.direction) >= settings.correlation_limit:
            warnings.append(
                f"同方向持仓数量将超过相关性限制 ({settings.correlation_limit})"
            )
            within_limits = False

        for warning in warnings:
            logger.warning(f"风险限额检查: {warning}")

        return RiskCheckResult(
            within_limits=within_limits,
            warnings=warnings,
            trade_risk_percent=risk_percent,
            trade_risk_amount=risk_amount,
            total_risk_percent=new_total_risk_percent,
            risk_level=self.assess_risk_level(risk_percent, settings.max_risk_percent),
        )

    def check_drawdown_limit(self, equity_series: Sequence[float],
                             risk_settings: Optional[RiskSettings] = None) -> Dict[str, Any]:
        """检查权益序列的当前回撤是否超过 max_drawdown_percent"""
        settings = risk_settings or self.risk_settings
        values = np.asarray(list(equity_series), dtype=float)

        current_drawdown = 0.0
        if values.size > 0:
            peak = float(values.max())
            if peak <= 0:
                raise InvalidRiskParameters("权益峰值必须大于0")
            current_drawdown = (peak - float(values[-1])) / peak * 100

        within_limits = current_drawdown <= settings.max_drawdown_percent
        result = {
            "within_limits": within_limits,
            "current_drawdown_percent": round(current_drawdown, 2),
            "max_drawdown_percent": round(trading_math.max_drawdown(values), 2),
            "limit_percent": settings.max_drawdown_percent,
        }
        if not within_limits:
            message = f"当前回撤 {current_drawdown:.2f}% 超过限制 {settings.max_drawdown_percent}%"
            logger.warning(message)
            result["warning"] = message
        return result

    def calculate_trade_analytics(self, entry_price: float, stop_loss: float,
                                  take_profit: float, position_size: float,
                                  win_probability: float = 0.5,
                                  account_balance: Optional[float] = None) -> TradeAnalytics:
        """
        交易情景分析

        计算风险金额、潜在盈利、盈亏比、期望值与凯利仓位；
        提供账户余额时额外给出风险百分比与半凯利/四分之一凯利/四分之三凯利仓位
        """
        entry_price = _risk_number(entry_price, "entry_price")
        stop_loss = _risk_number(stop_loss, "stop_loss")
        take_profit = _risk_number(take_profit, "take_profit")
        position_size = _risk_number(position_size, "position_size")
        if position_size <= 0:
            raise InvalidRiskParameters(f"仓位必须大于0: {position_size}")

        price_risk = abs(entry_price - stop_loss)
        if price_risk == 0:
            raise InvalidRiskParameters("止损价格与入场价格相同")

        risk_amount = price_risk * position_size
        potential_profit = abs(entry_price - take_profit) * position_size
        rr_ratio = trading_math.risk_reward_ratio(entry_price, stop_loss, take_profit)

        try:
            ev = trading_math.expected_value(win_probability, potential_profit, risk_amount)
        except InvalidArgument as e:
            raise InvalidRiskParameters(str(e))
        # 目标价等于入场价时没有正期望
        kelly = trading_math.kelly_criterion(win_probability, rr_ratio) if rr_ratio > 0 else 0.0

        analytics = TradeAnalytics(
            entry_price=entry_price,
            stop_loss=stop_loss,
            take_profit=take_profit,
            position_size=position_size,
            win_probability=float(win_probability),
            risk_amount=risk_amount,
            potential_profit=potential_profit,
            risk_reward_ratio=rr_ratio,
            expected_value=ev,
            kelly_criterion=kelly,
        )

        if account_balance is not None:
            balance = _risk_number(account_balance, "account_balance")
            if balance <= 0:
                raise InvalidRiskParameters(f"账户余额必须大于0: {balance}")
            kelly_size = kelly * balance / price_risk
            analytics.account_balance = balance
            analytics.risk_percent = trading_math.risk_percentage(risk_amount, balance)
            analytics.kelly_position_size = kelly_size
            analytics.recommended_position_size = kelly_size * 0.5
            analytics.conservative_position_size = kelly_size * 0.25
            analytics.aggressive_position_size = kelly_size * 0.75

        return analytics

    def assess_risk_level(self, risk_percent: float, max_risk_percent: float) -> RiskLevel:
        """按单笔风险相对于上限的比例评估风险等级"""
        if risk_percent > max_risk_percent * 1.5:
            return RiskLevel.CRITICAL
        elif risk_percent > max_risk_percent:
            return RiskLevel.HIGH
        elif risk_percent > max_risk_percent * 0.5:
            return RiskLevel.MEDIUM
        else:
            return RiskLevel.LOW


def _risk_number(value, name: str) -> float:
    try:
        return trading_math.to_number(value, name)
    except InvalidArgument as e:
        raise InvalidRiskParameters(str(e))


def _risk_direction(direction) -> TradeDirection:
    if isinstance(direction, TradeDirection):
        return direction
    try:
        return TradeDirection(str(direction).lower())
    except ValueError:
        raise InvalidRiskParameters(f"交易方向无效: {direction!r}")
