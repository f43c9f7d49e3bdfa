"""
绩效分析模块
"""

from .performance import (
    PerformanceAnalyzer,
    PeriodPerformance,
    EquityPoint,
    FactorBreakdown,
    RiskMetricsResult,
    ConsecutiveStats,
    INTERVALS
)

__all__ = [
    'PerformanceAnalyzer',
    'PeriodPerformance',
    'EquityPoint',
    'FactorBreakdown',
    'RiskMetricsResult',
    'ConsecutiveStats',
    'INTERVALS'
]
