"""
交易日志配置：默认值、蒙特卡洛预设与配置验证
"""

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict, Optional

from ..models import RiskSettings


class PresetType(Enum):
    """模拟预设类型"""
    CONSERVATIVE = "conservative"
    MODERATE = "moderate"
    AGGRESSIVE = "aggressive"


@dataclass
class SimulationPreset:
    """蒙特卡洛模拟参数"""
    name: str
    initial_balance: float = 10000.0
    win_rate: float = 0.5
    average_win: float = 200.0
    average_loss: float = 100.0
    number_of_trades: int = 100
    number_of_simulations: int = 1000

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def run_kwargs(self) -> Dict[str, Any]:
        """转换为 MonteCarloSimulator.run 的参数"""
        data = self.to_dict()
        data.pop("name")
        return data


# 预定义的模拟参数模板
SIMULATION_PRESETS = {
    PresetType.CONSERVATIVE: SimulationPreset(
        name="保守型",
        win_rate=0.55,
        average_win=100.0,
        average_loss=80.0,
    ),
    PresetType.MODERATE: SimulationPreset(
        name="均衡型",
        win_rate=0.5,
        average_win=200.0,
        average_loss=100.0,
    ),
    PresetType.AGGRESSIVE: SimulationPreset(
        name="激进型",
        win_rate=0.4,
        average_win=400.0,
        average_loss=200.0,
        number_of_trades=200,
    ),
}


# 默认配置
DEFAULT_CONFIG = {
    "risk_settings": RiskSettings().to_dict(),

    "simulation": {
        "number_of_trades": 100,
        "number_of_simulations": 1000,
        "include_trial_detail": False,
        "random_seed": None,
    },

    "logging": {
        "log_level": "INFO",
        "log_file": "logs/gold_journal.log",
    },

    "presets": {
        preset_type.value: preset.to_dict() for preset_type, preset in SIMULATION_PRESETS.items()
    },
}


def get_simulation_preset(preset_type) -> Optional[SimulationPreset]:
    """获取模拟预设"""
    if not isinstance(preset_type, PresetType):
        try:
            preset_type = PresetType(preset_type)
        except ValueError:
            return None
    return SIMULATION_PRESETS.get(preset_type)


def create_custom_preset(preset_type, name: str, **kwargs) -> SimulationPreset:
    """以预设为模板创建自定义模拟参数"""
    template = get_simulation_preset(preset_type)
    if template is None:
        raise ValueError(f"不支持的预设类型: {preset_type}")

    values = template.to_dict()
    values.update(kwargs)
    values["name"] = name
    return SimulationPreset(**values)


def validate_risk_settings(settings: RiskSettings) -> Dict[str, Any]:
    """验证风险设置"""
    errors = settings.errors()
    warnings = []

    if settings.default_risk_percent > settings.max_risk_percent:
        warnings.append("默认风险百分比大于最大单笔风险")

    if settings.max_risk_percent > settings.max_daily_risk:
        warnings.append("最大单笔风险大于每日最大风险")

    if settings.correlation_limit > settings.max_positions:
        warnings.append("相关性限制大于最大持仓数量，相关性检查不会生效")

    if settings.max_positions == 0:
        warnings.append("最大持仓数量为0，所有新交易都会超出限额")

    return {
        "valid": len(errors) == 0,
        "errors": errors,
        "warnings": warnings
    }


def validate_simulation_preset(preset: SimulationPreset) -> Dict[str, Any]:
    """验证模拟参数"""
    errors = []
    warnings = []

    if preset.initial_balance <= 0:
        errors.append("初始余额必须大于0")

    if preset.win_rate < 0 or preset.win_rate > 1:
        errors.append("胜率必须在0和1之间")

    if preset.average_win < 0 or preset.average_loss < 0:
        errors.append("平均盈利与平均亏损不能为负数")

    if preset.number_of_trades < 0:
        errors.append("交易笔数不能为负数")

    if preset.number_of_simulations < 1:
        errors.append("模拟次数必须大于等于1")
    elif preset.number_of_simulations < 100:
        warnings.append("模拟次数建议不少于100，否则百分位统计不稳定")

    return {
        "valid": len(errors) == 0,
        "errors": errors,
        "warnings": warnings
    }
