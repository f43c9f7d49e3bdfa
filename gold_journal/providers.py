"""
数据提供者接口
核心模块通过这些接口获取交易、账户和风险设置，不直接依赖持久层
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional

from .models import Account, RiskSettings, Trade, TradeStatus


class TradeProvider(ABC):
    """交易数据提供者"""

    @abstractmethod
    def get_trades(self, user_id: Any, account_id: Optional[Any] = None,
                   status: Optional[TradeStatus] = None) -> List[Trade]:
        """获取用户交易，可按账户和状态过滤"""
        pass


class AccountProvider(ABC):
    """账户数据提供者"""

    @abstractmethod
    def get_account(self, user_id: Any, account_id: Any) -> Optional[Account]:
        """获取账户，不存在时返回None"""
        pass


class RiskSettingsProvider(ABC):
    """风险设置提供者"""

    @abstractmethod
    def get_risk_settings(self, user_id: Any) -> RiskSettings:
        """获取风险设置，未设置时返回默认值"""
        pass


class InMemoryTradeProvider(TradeProvider):
    """内存交易数据，按用户存放"""

    def __init__(self, trades: Optional[Dict[Any, Iterable[Trade]]] = None):
        self.trades: Dict[Any, List[Trade]] = {
            user_id: list(items) for user_id, items in (trades or {}).items()
        }

    def add_trade(self, user_id: Any, trade: Trade):
        self.trades.setdefault(user_id, []).append(trade)

    def get_trades(self, user_id, account_id=None, status=None):
        result = []
        for trade in self.trades.get(user_id, []):
            if account_id is not None and trade.account_id != account_id:
                continue
            if status is not None and trade.status != status:
                continue
            result.append(trade)
        return result


class InMemoryAccountProvider(AccountProvider):
    """内存账户数据"""

    def __init__(self, accounts: Optional[Dict[Any, Iterable[Account]]] = None):
        self.accounts: Dict[Any, Dict[Any, Account]] = {
            user_id: {a.account_id: a for a in items} for user_id, items in (accounts or {}).items()
        }

    def add_account(self, user_id: Any, account: Account):
        self.accounts.setdefault(user_id, {})[account.account_id] = account

    def get_account(self, user_id, account_id):
        return self.accounts.get(user_id, {}).get(account_id)


class InMemoryRiskSettingsProvider(RiskSettingsProvider):
    """内存风险设置"""

    def __init__(self, settings: Optional[Dict[Any, RiskSettings]] = None,
                 default: Optional[RiskSettings] = None):
        self.settings: Dict[Any, RiskSettings] = dict(settings or {})
        self.default = default or RiskSettings()

    def save_risk_settings(self, user_id: Any, settings: RiskSettings):
        self.settings[user_id] = settings

    def get_risk_settings(self, user_id):
        return self.settings.get(user_id, self.default)
