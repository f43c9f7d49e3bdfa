"""
配置模块初始化文件
"""

from .journal_config import (
    PresetType,
    SimulationPreset,
    SIMULATION_PRESETS,
    DEFAULT_CONFIG,
    get_simulation_preset,
    create_custom_preset,
    validate_risk_settings,
    validate_simulation_preset
)

from .config_loader import (
    ConfigLoader,
    load_config,
    create_default_config,
    load_env_config
)

__all__ = [
    # 交易日志配置
    "PresetType",
    "SimulationPreset",
    "SIMULATION_PRESETS",
    "DEFAULT_CONFIG",
    "get_simulation_preset",
    "create_custom_preset",
    "validate_risk_settings",
    "validate_simulation_preset",

    # 配置加载器
    "ConfigLoader",
    "load_config",
    "create_default_config",
    "load_env_config"
]
