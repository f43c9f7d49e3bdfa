"""
配置加载器
支持 YAML 配置文件与 .env 环境变量
"""

import copy
import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv
from loguru import logger

from ..errors import ConfigError, InvalidArgument
from ..models import RiskSettings
from .journal_config import (
    DEFAULT_CONFIG,
    SimulationPreset,
    validate_risk_settings,
    validate_simulation_preset,
)


class ConfigLoader:
    """配置加载器"""

    def __init__(self, config_path: str = "config.yaml"):
        """
        初始化配置加载器

        参数:
            config_path: 配置文件路径
        """
        self.config_path = Path(config_path)
        self.config_data = {}

    def load_config(self) -> Dict[str, Any]:
        """加载配置文件"""
        try:
            if not self.config_path.exists():
                raise FileNotFoundError(f"配置文件不存在: {self.config_path}")

            with open(self.config_path, 'r', encoding='utf-8') as file:
                self.config_data = yaml.safe_load(file) or {}

            # 验证配置
            self._validate_config()

            return self.config_data

        except Exception as e:
            raise ConfigError(f"加载配置文件失败: {str(e)}")

    def _validate_config(self):
        """验证配置"""
        if not isinstance(self.config_data, dict):
            raise ValueError("配置文件顶层必须为映射")

        if "risk_settings" not in self.config_data:
            raise ValueError("配置缺少必要部分: risk_settings")

        validation_result = validate_risk_settings(self.get_risk_settings())
        if not validation_result["valid"]:
            raise ValueError(f"风险设置验证失败: {validation_result['errors']}")
        for warning in validation_result["warnings"]:
            logger.warning(f"风险设置: {warning}")

        for name, preset in self.get_presets().items():
            validation_result = validate_simulation_preset(preset)
            if not validation_result["valid"]:
                raise ValueError(f"模拟预设 {name} 验证失败: {validation_result['errors']}")

    def get_risk_settings(self) -> RiskSettings:
        """获取风险设置，未配置的字段使用默认值"""
        try:
            return RiskSettings.from_dict(self.config_data.get("risk_settings") or {})
        except InvalidArgument as e:
            raise ConfigError(f"风险设置无效: {str(e)}")

    def get_simulation_config(self) -> Dict[str, Any]:
        """获取模拟配置"""
        simulation = dict(DEFAULT_CONFIG["simulation"])
        simulation.update(self.config_data.get("simulation") or {})
        return simulation

    def get_logging_config(self) -> Dict[str, Any]:
        """获取日志配置"""
        logging_config = dict(DEFAULT_CONFIG["logging"])
        logging_config.update(self.config_data.get("logging") or {})
        return logging_config

    def get_presets(self) -> Dict[str, SimulationPreset]:
        """获取模拟预设"""
        presets = {}
        for name, values in (self.config_data.get("presets") or {}).items():
            try:
                presets[name] = SimulationPreset(**{"name": name, **values})
            except TypeError as e:
                raise ConfigError(f"模拟预设 {name} 格式无效: {str(e)}")
        return presets

    def save_config(self, config_data: Dict[str, Any] = None):
        """保存配置"""
        if config_data:
            self.config_data = config_data

        try:
            # 确保目录存在
            self.config_path.parent.mkdir(parents=True, exist_ok=True)

            with open(self.config_path, 'w', encoding='utf-8') as file:
                yaml.dump(self.config_data, file, default_flow_style=False, allow_unicode=True)

            logger.info(f"配置已保存到: {self.config_path}")

        except Exception as e:
            raise ConfigError(f"保存配置文件失败: {str(e)}")

    def export_config(self, export_path: str, format: str = "yaml"):
        """导出配置"""
        export_path = Path(export_path)

        if format.lower() not in ("yaml", "json"):
            raise ConfigError(f"不支持的导出格式: {format}")

        try:
            with open(export_path, 'w', encoding='utf-8') as file:
                if format.lower() == "yaml":
                    yaml.dump(self.config_data, file, default_flow_style=False, allow_unicode=True)
                else:
                    json.dump(self.config_data, file, indent=2, ensure_ascii=False)

            logger.info(f"配置已导出到: {export_path}")

        except Exception as e:
            raise ConfigError(f"导出配置文件失败: {str(e)}")

    def create_default_config(self) -> Dict[str, Any]:
        """创建默认配置"""
        self.config_data = copy.deepcopy(DEFAULT_CONFIG)
        self.save_config()

        logger.info(f"默认配置已创建: {self.config_path}")
        return self.config_data

    def update_risk_settings(self, updates: Dict[str, Any]) -> RiskSettings:
        """更新风险设置并保存"""
        risk_settings = dict(self.config_data.get("risk_settings") or {})
        risk_settings.update(updates)

        try:
            settings = RiskSettings.from_dict(risk_settings)
        except InvalidArgument as e:
            raise ConfigError(f"风险设置更新验证失败: {str(e)}")

        self.config_data["risk_settings"] = settings.to_dict()
        self.save_config()

        logger.info(f"风险设置已更新: {', '.join(updates)}")
        return settings


def load_config(config_path: str = "config.yaml") -> ConfigLoader:
    """加载配置文件"""
    loader = ConfigLoader(config_path)
    loader.load_config()
    return loader


def create_default_config(config_path: str = "config.yaml") -> ConfigLoader:
    """创建默认配置文件"""
    loader = ConfigLoader(config_path)
    loader.create_default_config()
    return loader


def load_env_config(env_path: Optional[str] = ".env") -> Dict[str, Any]:
    """
    从 .env 环境变量读取配置

    读取 LOG_LEVEL、LOG_FILE、风险设置（DEFAULT_RISK_PERCENT 等）与模拟参数（MC_*）
    """
    if env_path and Path(env_path).exists():
        load_dotenv(env_path)
    else:
        load_dotenv()

    risk_env = {
        "default_risk_percent": os.getenv("DEFAULT_RISK_PERCENT"),
        "max_risk_percent": os.getenv("MAX_RISK_PERCENT"),
        "max_daily_risk": os.getenv("MAX_DAILY_RISK"),
        "max_positions": os.getenv("MAX_POSITIONS"),
        "correlation_limit": os.getenv("CORRELATION_LIMIT"),
        "max_drawdown_percent": os.getenv("MAX_DRAWDOWN_PERCENT"),
    }

    try:
        risk_settings = RiskSettings.from_dict(risk_env)
        seed = os.getenv("MC_SEED")
        config = {
            # 日志配置
            "log_level": os.getenv("LOG_LEVEL", "INFO"),
            "log_file": os.getenv("LOG_FILE", "logs/gold_journal.log"),

            # 风险管理
            "risk_settings": risk_settings,

            # 蒙特卡洛模拟
            "simulation": {
                "number_of_trades": int(os.getenv("MC_TRADES", "100")),
                "number_of_simulations": int(os.getenv("MC_SIMULATIONS", "1000")),
                "include_trial_detail": os.getenv("MC_INCLUDE_TRIALS", "false").lower() == "true",
                "random_seed": int(seed) if seed else None,
            },
        }
    except ValueError as e:
        raise ConfigError(f"环境变量配置无效: {str(e)}")

    return config
