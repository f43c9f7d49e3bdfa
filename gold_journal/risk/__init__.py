"""
风险管理模块
"""

from .risk_manager import (
    RiskManager,
    RiskLevel,
    PositionRisk,
    RiskExposure,
    RiskCheckResult,
    TradeAnalytics,
    NO_STOP_LOSS_WARNING
)

__all__ = [
    'RiskManager',
    'RiskLevel',
    'PositionRisk',
    'RiskExposure',
    'RiskCheckResult',
    'TradeAnalytics',
    'NO_STOP_LOSS_WARNING'
]
