"""
黄金交易日志模块初始化文件
"""

# 异常
from .errors import (
    JournalError,
    InvalidArgument,
    InvalidRiskParameters,
    InvalidFactor,
    ConfigError,
    NotFound
)

# 数据模型
from .models import (
    Trade,
    TradeDirection,
    TradeStatus,
    Account,
    RiskSettings,
    PositionSizeResult
)

# 数据提供者
from .providers import (
    TradeProvider,
    AccountProvider,
    RiskSettingsProvider,
    InMemoryTradeProvider,
    InMemoryAccountProvider,
    InMemoryRiskSettingsProvider
)

# 风险管理模块
from .risk import (
    RiskManager,
    RiskLevel,
    RiskExposure,
    RiskCheckResult,
    TradeAnalytics
)

# 绩效分析模块
from .analytics import PerformanceAnalyzer

# 模拟模块
from .simulation import (
    MonteCarloSimulator,
    SimulationConfig,
    SimulationResult,
    StrategyMetricsCalculator
)

# 配置模块
from .config import (
    ConfigLoader,
    load_config,
    load_env_config
)

from .main import TradingJournal, setup_logging

__version__ = "0.1.0"

__all__ = [
    # 异常
    "JournalError",
    "InvalidArgument",
    "InvalidRiskParameters",
    "InvalidFactor",
    "ConfigError",
    "NotFound",

    # 数据模型
    "Trade",
    "TradeDirection",
    "TradeStatus",
    "Account",
    "RiskSettings",
    "PositionSizeResult",

    # 数据提供者
    "TradeProvider",
    "AccountProvider",
    "RiskSettingsProvider",
    "InMemoryTradeProvider",
    "InMemoryAccountProvider",
    "InMemoryRiskSettingsProvider",

    # 风险管理模块
    "RiskManager",
    "RiskLevel",
    "RiskExposure",
    "RiskCheckResult",
    "TradeAnalytics",

    # 绩效分析模块
    "PerformanceAnalyzer",

    # 模拟模块
    "MonteCarloSimulator",
    "SimulationConfig",
    "SimulationResult",
    "StrategyMetricsCalculator",

    # 配置模块
    "ConfigLoader",
    "load_config",
    "load_env_config",

    # 主程序
    "TradingJournal",
    "setup_logging"
]
