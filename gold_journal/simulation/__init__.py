"""
模拟模块初始化文件
"""

# 蒙特卡洛模拟
from .monte_carlo import (
    MonteCarloSimulator,
    SimulationConfig,
    SimulationResult,
    TrialResult
)

# 策略指标
from .strategy_metrics import (
    StrategyMetrics,
    StrategyMetricsCalculator,
    scenario_expected_value,
    simulate_scenario_outcome
)

__all__ = [
    # 蒙特卡洛模拟
    "MonteCarloSimulator",
    "SimulationConfig",
    "SimulationResult",
    "TrialResult",

    # 策略指标
    "StrategyMetrics",
    "StrategyMetricsCalculator",
    "scenario_expected_value",
    "simulate_scenario_outcome"
]
