"""
交易日志数据模型定义
"""

import json
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import InvalidArgument, InvalidRiskParameters
from .utils.trading_math import round_currency, to_number


class TradeDirection(Enum):
    """交易方向"""
    LONG = "long"
    SHORT = "short"


class TradeStatus(Enum):
    """交易状态"""
    OPEN = "open"
    CLOSED = "closed"


def parse_datetime(value, name: str) -> Optional[datetime]:
    """
    解析日期时间，支持datetime对象与ISO-8601字符串

    带时区的时间统一转换为UTC并去掉时区信息，与不带时区的记录可直接比较
    """
    if value is None or value == "":
        return None
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            raise InvalidArgument(f"{name} 日期格式无效: {value!r}")
    if not isinstance(value, datetime):
        raise InvalidArgument(f"{name} 日期格式无效: {value!r}")
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _analysis(value, name: str) -> Dict[str, Any]:
    # CSV 中以JSON字符串保存
    if value is None or value == "":
        return {}
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            raise InvalidArgument(f"{name} 不是有效的JSON: {value!r}")
    if not isinstance(value, dict):
        raise InvalidArgument(f"{name} 必须为映射: {value!r}")
    return dict(value)



def _enum_value(enum_cls, value, name: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).lower())
    except ValueError:
        raise InvalidArgument(f"{name} 取值无效: {value!r}")


def _optional_price(value, name: str) -> Optional[float]:
    # 持久层以0或空值表示未设置
    if value is None or value == "":
        return None
    value = to_number(value, name)
    return value if value != 0 else None


@dataclass
class Trade:
    """交易记录（多头/空头，持仓中或已平仓）"""
    direction: TradeDirection
    entry_price: float
    position_size: float
    status: TradeStatus = TradeStatus.OPEN
    exit_price: Optional[float] = None
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None
    profit_loss: Optional[float] = None
    entry_date: Optional[datetime] = None
    exit_date: Optional[datetime] = None
    trade_id: Optional[Any] = None
    account_id: Optional[Any] = None
    symbol: str = "XAUUSD"
    pre_analysis: Dict[str, Any] = None
    post_analysis: Dict[str, Any] = None

    def __post_init__(self):
        self.direction = _enum_value(TradeDirection, self.direction, "direction")
        self.status = _enum_value(TradeStatus, self.status, "status")
        if self.pre_analysis is None:
            self.pre_analysis = {}
        if self.post_analysis is None:
            self.post_analysis = {}
        self.entry_date = parse_datetime(self.entry_date, "entry_date")
        self.exit_date = parse_datetime(self.exit_date, "exit_date")

        self.entry_price = to_number(self.entry_price, "entry_price")
        self.position_size = to_number(self.position_size, "position_size")
        if self.entry_price <= 0:
            raise InvalidArgument(f"入场价格必须大于0: {self.entry_price}")
        if self.position_size <= 0:
            raise InvalidArgument(f"仓位必须大于0: {self.position_size}")

        if self.stop_loss is not None:
            self.stop_loss = to_number(self.stop_loss, "stop_loss")
            if not stop_on_loss_side(self.direction, self.entry_price, self.stop_loss):
                raise InvalidArgument(
                    f"止损价格 {self.stop_loss} 与交易方向 {self.direction.value} 不符（入场 {self.entry_price}）"
                )

        if self.status == TradeStatus.CLOSED:
            if self.exit_price is None:
                raise InvalidArgument("已平仓交易必须包含出场价格")
            self.exit_price = to_number(self.exit_price, "exit_price")
            if self.exit_price <= 0:
                raise InvalidArgument(f"出场价格必须大于0: {self.exit_price}")
            if self.profit_loss is None:
                self.profit_loss = calculate_profit_loss(
                    self.direction, self.entry_price, self.exit_price, self.position_size
                )
            else:
                self.profit_loss = to_number(self.profit_loss, "profit_loss")
        elif self.exit_price is not None or self.profit_loss is not None:
            raise InvalidArgument("持仓中的交易不能包含出场价格或盈亏")

    @property
    def is_closed(self) -> bool:
        return self.status == TradeStatus.CLOSED

    @property
    def is_win(self) -> bool:
        """盈亏大于0视为盈利"""
        return self.profit_loss is not None and self.profit_loss > 0

    @property
    def risk_amount(self) -> Optional[float]:
        """按止损计算的风险金额，未设置止损时返回None"""
        if self.stop_loss is None:
            return None
        return abs(self.entry_price - self.stop_loss) * self.position_size

    def close(self, exit_price: float, exit_date: Optional[datetime] = None) -> "Trade":
        """平仓，返回带有出场价格、出场时间和盈亏的新交易记录"""
        if self.is_closed:
            raise InvalidArgument(f"交易已平仓: {self.trade_id}")
        return replace(
            self,
            status=TradeStatus.CLOSED,
            exit_price=exit_price,
            exit_date=exit_date or datetime.now(),
            profit_loss=None,
        )

    @classmethod
    def from_dict(cls, row: Dict[str, Any]) -> "Trade":
        """从持久层记录构建交易"""
        try:
            return cls(
                direction=row["direction"],
                entry_price=row["entry_price"],
                position_size=row["position_size"],
                status=row.get("status", TradeStatus.OPEN),
                exit_price=_optional_price(row.get("exit_price"), "exit_price"),
                stop_loss=_optional_price(row.get("stop_loss"), "stop_loss"),
                take_profit=_optional_price(row.get("take_profit"), "take_profit"),
                profit_loss=None if row.get("profit_loss") in (None, "") else row["profit_loss"],
                entry_date=parse_datetime(row.get("entry_date"), "entry_date"),
                exit_date=parse_datetime(row.get("exit_date"), "exit_date"),
                trade_id=row.get("trade_id"),
                account_id=row.get("account_id"),
                symbol=row.get("symbol") or "XAUUSD",
                pre_analysis=_analysis(row.get("pre_analysis"), "pre_analysis"),
                post_analysis=_analysis(row.get("post_analysis"), "post_analysis"),
            )
        except KeyError as e:
            raise InvalidArgument(f"交易记录缺少字段: {e.args[0]}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trade_id": self.trade_id,
            "account_id": self.account_id,
            "symbol": self.symbol,
            "direction": self.direction.value,
            "status": self.status.value,
            "entry_price": self.entry_price,
            "exit_price": self.exit_price,
            "stop_loss": self.stop_loss,
            "take_profit": self.take_profit,
            "position_size": self.position_size,
            "profit_loss": round_currency(self.profit_loss),
            "entry_date": self.entry_date.isoformat() if self.entry_date else None,
            "exit_date": self.exit_date.isoformat() if self.exit_date else None,
        }


@dataclass
class Account:
    """交易账户"""
    account_id: Any
    current_balance: float
    account_name: str = ""

    def __post_init__(self):
        self.current_balance = to_number(self.current_balance, "current_balance")


@dataclass
class RiskSettings:
    """用户风险设置，所有百分比均在 [0, 100] 之间"""
    default_risk_percent: float = 1.0
    max_risk_percent: float = 2.0
    max_daily_risk: float = 5.0
    max_positions: int = 5
    correlation_limit: int = 3
    max_drawdown_percent: float = 10.0

    PERCENT_FIELDS = ("default_risk_percent", "max_risk_percent", "max_daily_risk", "max_drawdown_percent")
    COUNT_FIELDS = ("max_positions", "correlation_limit")

    def errors(self) -> List[str]:
        """返回范围校验错误列表"""
        errors = []
        for name in self.PERCENT_FIELDS:
            value = getattr(self, name)
            if value < 0 or value > 100:
                errors.append(f"{name} 必须在0和100之间: {value}")
        for name in self.COUNT_FIELDS:
            value = getattr(self, name)
            if value < 0:
                errors.append(f"{name} 不能为负数: {value}")
        return errors

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]] = None) -> "RiskSettings":
        """未设置的字段使用默认值"""
        data = data or {}
        values = {}
        for name in cls.PERCENT_FIELDS:
            if data.get(name) is not None:
                values[name] = to_number(data[name], name)
        for name in cls.COUNT_FIELDS:
            if data.get(name) is not None:
                values[name] = int(to_number(data[name], name))

        settings = cls(**values)
        errors = settings.errors()
        if errors:
            raise InvalidRiskParameters("; ".join(errors))
        return settings

    def to_dict(self) -> Dict[str, Any]:
        return {
            "default_risk_percent": self.default_risk_percent,
            "max_risk_percent": self.max_risk_percent,
            "max_daily_risk": self.max_daily_risk,
            "max_positions": self.max_positions,
            "correlation_limit": self.correlation_limit,
            "max_drawdown_percent": self.max_drawdown_percent,
        }


@dataclass(frozen=True)
class PositionSizeResult:
    """仓位计算结果"""
    account_value: float
    risk_percent: float
    dollar_risk: float
    price_difference: float
    position_size: float
    position_value: float
    leverage_used: float
    risk_reward_1r: float
    risk_reward_2r: float
    risk_reward_3r: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "account_value": self.account_value,
            "risk_percent": self.risk_percent,
            "dollar_risk": round_currency(self.dollar_risk),
            "price_difference": round_currency(self.price_difference),
            "position_size": round_currency(self.position_size),
            "position_value": round_currency(self.position_value),
            "leverage_used": round_currency(self.leverage_used),
            "risk_reward_1r": round_currency(self.risk_reward_1r),
            "risk_reward_2r": round_currency(self.risk_reward_2r),
            "risk_reward_3r": round_currency(self.risk_reward_3r),
        }


def stop_on_loss_side(direction: TradeDirection, entry_price: float, stop_loss: float) -> bool:
    """多头止损须低于入场价，空头止损须高于入场价"""
    if direction == TradeDirection.LONG:
        return stop_loss < entry_price
    return stop_loss > entry_price


def calculate_profit_loss(direction: TradeDirection, entry_price: float,
                          exit_price: float, position_size: float) -> float:
    """按方向计算盈亏"""
    if direction == TradeDirection.LONG:
        return (exit_price - entry_price) * position_size
    return (entry_price - exit_price) * position_size
