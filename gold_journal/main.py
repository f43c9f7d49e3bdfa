"""
黄金交易日志主程序
组装数据提供者、风险管理、绩效分析与蒙特卡洛模拟，并提供命令行入口
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd
from loguru import logger

from .analytics import PerformanceAnalyzer
from .config import SimulationPreset, get_simulation_preset, load_config, load_env_config
from .errors import InvalidArgument, JournalError, NotFound
from .models import Account, Trade, TradeStatus
from .providers import (
    AccountProvider,
    InMemoryAccountProvider,
    InMemoryRiskSettingsProvider,
    InMemoryTradeProvider,
    RiskSettingsProvider,
    TradeProvider,
)
from .risk import RiskManager
from .simulation import MonteCarloSimulator, SimulationConfig, StrategyMetricsCalculator
from .utils import trading_math


def setup_logging(log_level: str = "INFO", log_file: Optional[str] = None):
    """设置日志"""
    # 移除默认日志处理器
    logger.remove()

    # 控制台日志（stderr，避免干扰命令行JSON输出）
    logger.add(
        sys.stderr,
        level=log_level,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
    )

    # 文件日志
    if log_file:
        log_dir = Path(log_file).parent
        log_dir.mkdir(parents=True, exist_ok=True)

        logger.add(
            log_file,
            level=log_level,
            rotation="10 MB",
            retention="30 days",
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"
        )


class TradingJournal:
    """交易日志核心服务"""

    def __init__(self, trade_provider: Optional[TradeProvider] = None,
                 account_provider: Optional[AccountProvider] = None,
                 risk_settings_provider: Optional[RiskSettingsProvider] = None,
                 config: Optional[Dict[str, Any]] = None):
        """
        初始化交易日志服务

        参数:
            trade_provider: 交易数据提供者
            account_provider: 账户数据提供者
            risk_settings_provider: 风险设置提供者
            config: 配置字典（见 load_env_config），包含 risk_settings 与 simulation
        """
        self.config = config or {}
        self.trade_provider = trade_provider or InMemoryTradeProvider()
        self.account_provider = account_provider or InMemoryAccountProvider()
        self.risk_settings_provider = risk_settings_provider or InMemoryRiskSettingsProvider(
            default=self.config.get("risk_settings")
        )

        simulation = self.config.get("simulation", {})
        self.simulation_defaults = {
            "number_of_trades": simulation.get("number_of_trades", 100),
            "number_of_simulations": simulation.get("number_of_simulations", 1000),
        }

        self.risk_manager = RiskManager(self.config.get("risk_settings"))
        self.analyzer = PerformanceAnalyzer()
        self.simulator = MonteCarloSimulator(SimulationConfig(
            include_trial_detail=simulation.get("include_trial_detail", False),
            random_seed=simulation.get("random_seed"),
        ))
        self.strategy_metrics = StrategyMetricsCalculator()

        logger.info("交易日志服务初始化完成")

    @classmethod
    def from_env(cls, env_path: str = ".env", **providers) -> "TradingJournal":
        """从 .env 读取配置并设置日志"""
        config = load_env_config(env_path)
        setup_logging(config["log_level"], config["log_file"])
        return cls(config=config, **providers)

    def _get_account(self, user_id, account_id) -> Account:
        account = self.account_provider.get_account(user_id, account_id)
        if account is None:
            raise NotFound(f"账户不存在: {account_id}")
        return account

    def _closed_trades(self, user_id, account_id=None) -> List[Trade]:
        return self.trade_provider.get_trades(user_id, account_id, TradeStatus.CLOSED)

    # 风险管理

    def position_size(self, user_id, account_id, entry_price: float, stop_loss_price: float,
                      direction, risk_percent: Optional[float] = None):
        """按账户余额计算仓位，未指定风险百分比时使用默认风险"""
        if risk_percent is None:
            risk_percent = self.risk_settings_provider.get_risk_settings(user_id).default_risk_percent
        account = self._get_account(user_id, account_id)
        return self.risk_manager.calculate_account_position_size(
            account, risk_percent, entry_price, stop_loss_price, direction
        )

    def risk_exposure(self, user_id, account_id):
        """账户当前风险敞口"""
        account = self._get_account(user_id, account_id)
        open_trades = self.trade_provider.get_trades(user_id, account_id, TradeStatus.OPEN)
        return self.risk_manager.get_current_risk_exposure(open_trades, account.current_balance)

    def check_trade(self, user_id, account_id, candidate_trade: Trade):
        """检查新交易是否超出用户风险限额"""
        settings = self.risk_settings_provider.get_risk_settings(user_id)
        exposure = self.risk_exposure(user_id, account_id)
        return self.risk_manager.check_risk_limits(candidate_trade, settings, exposure)

    def trade_analytics(self, entry_price: float, stop_loss: float, take_profit: float,
                        position_size: float, win_probability: float = 0.5,
                        user_id=None, account_id=None):
        """交易情景分析，指定账户时计算凯利仓位"""
        balance = None
        if account_id is not None:
            balance = self._get_account(user_id, account_id).current_balance
        return self.risk_manager.calculate_trade_analytics(
            entry_price, stop_loss, take_profit, position_size, win_probability, balance
        )

    # 绩效分析

    def performance(self, user_id, account_id=None, interval: str = "monthly"):
        return self.analyzer.performance_over_time(self._closed_trades(user_id, account_id), interval)

    def equity_curve(self, user_id, account_id=None):
        return self.analyzer.equity_curve(self._closed_trades(user_id, account_id))

    def win_loss_by_factor(self, user_id, factor: str, account_id=None):
        return self.analyzer.win_loss_by_factor(self._closed_trades(user_id, account_id), factor)

    def risk_metrics(self, user_id, account_id=None):
        return self.analyzer.risk_metrics(self._closed_trades(user_id, account_id))

    def consecutive_stats(self, user_id, account_id=None):
        return self.analyzer.consecutive_stats(self._closed_trades(user_id, account_id))

    def dashboard(self, user_id, account_id=None, interval: str = "monthly") -> Dict[str, Any]:
        """仪表板汇总"""
        return self.analyzer.dashboard(self._closed_trades(user_id, account_id), interval)

    async def dashboard_async(self, user_id, account_id=None, interval: str = "monthly") -> Dict[str, Any]:
        """并发执行互相独立的分析并汇总"""
        trades = self._closed_trades(user_id, account_id)
        performance, equity, metrics, streaks, statistics, by_direction = await asyncio.gather(
            asyncio.to_thread(self.analyzer.performance_over_time, trades, interval),
            asyncio.to_thread(self.analyzer.equity_curve, trades),
            asyncio.to_thread(self.analyzer.risk_metrics, trades),
            asyncio.to_thread(self.analyzer.consecutive_stats, trades),
            asyncio.to_thread(self.analyzer.trade_statistics, trades),
            asyncio.to_thread(self.analyzer.win_loss_by_factor, trades, "direction"),
        )
        return {
            "statistics": statistics,
            "performance": [p.to_dict() for p in performance],
            "equity_curve": [p.to_dict() for p in equity],
            "risk_metrics": metrics.to_dict(),
            "consecutive": streaks.to_dict(),
            "by_direction": [b.to_dict() for b in by_direction],
        }

    # 模拟

    def monte_carlo(self, preset: Optional[SimulationPreset] = None, **params):
        """运行蒙特卡洛模拟，参数优先级：显式参数 > 预设 > 配置默认值"""
        kwargs = dict(self.simulation_defaults)
        if preset is not None:
            kwargs.update(preset.run_kwargs())
        kwargs.update({k: v for k, v in params.items() if v is not None})
        return self.simulator.run(**kwargs)

    def monte_carlo_from_history(self, user_id, account_id, **params):
        """以账户历史交易为模型参数运行模拟，初始余额为账户当前余额"""
        account = self._get_account(user_id, account_id)
        kwargs = dict(self.simulation_defaults)
        kwargs.update({k: v for k, v in params.items() if v is not None})
        return self.simulator.run_from_trades(
            self._closed_trades(user_id, account_id), account.current_balance, **kwargs
        )

    def strategy_summary(self, user_id, account_id=None):
        return self.strategy_metrics.summarize(self._closed_trades(user_id, account_id))


def load_trades(path: str) -> List[Trade]:
    """从 JSON 或 CSV 文件读取交易记录"""
    path = Path(path)
    if not path.exists():
        raise NotFound(f"交易文件不存在: {path}")

    if path.suffix.lower() == ".csv":
        df = pd.read_csv(path)
        df = df.astype(object).where(pd.notna(df), None)
        rows = df.to_dict("records")
    else:
        with open(path, 'r', encoding='utf-8') as file:
            rows = json.load(file)

    if not isinstance(rows, list):
        raise InvalidArgument("交易文件必须包含交易记录列表")
    return [Trade.from_dict(row) for row in rows]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="黄金交易日志 - 风险与绩效计算")
    parser.add_argument("--config", help="YAML配置文件路径")
    parser.add_argument("--env", default=".env", help=".env 文件路径")
    parser.add_argument("--log-level", help="日志级别")
    subparsers = parser.add_subparsers(dest="command", required=True)

    p = subparsers.add_parser("position-size", help="按风险百分比计算仓位")
    p.add_argument("--balance", type=float, required=True)
    p.add_argument("--risk", type=float, help="风险百分比，默认取风险设置")
    p.add_argument("--entry", type=float, required=True)
    p.add_argument("--stop", type=float, required=True)
    p.add_argument("--direction", choices=["long", "short"], default="long")

    p = subparsers.add_parser("trade-analytics", help="盈亏比、期望值与凯利仓位")
    p.add_argument("--entry", type=float, required=True)
    p.add_argument("--stop", type=float, required=True)
    p.add_argument("--target", type=float, required=True)
    p.add_argument("--size", type=float, required=True)
    p.add_argument("--win-prob", type=float, default=0.5)
    p.add_argument("--balance", type=float)

    p = subparsers.add_parser("monte-carlo", help="蒙特卡洛模拟")
    p.add_argument("--preset", help="conservative / moderate / aggressive")
    p.add_argument("--initial-balance", type=float)
    p.add_argument("--win-rate", type=float)
    p.add_argument("--avg-win", type=float)
    p.add_argument("--avg-loss", type=float)
    p.add_argument("--trades", type=int)
    p.add_argument("--simulations", type=int)
    p.add_argument("--seed", type=int)
    p.add_argument("--include-trials", action="store_true")

    p = subparsers.add_parser("analytics", help="交易历史绩效分析")
    p.add_argument("trades_file", help="JSON或CSV交易记录文件")
    p.add_argument("--interval", default="monthly", choices=["daily", "weekly", "monthly", "yearly"])
    p.add_argument("--factor", help="按因子分组统计胜负")
    p.add_argument("--starting-balance", type=float)

    p = subparsers.add_parser("sample-size", help="统计显著所需交易笔数")
    p.add_argument("--win-rate", type=float, required=True)
    p.add_argument("--confidence", type=float, default=0.95)
    p.add_argument("--margin", type=float, default=0.05)

    return parser


def run_command(args: argparse.Namespace, config: Dict[str, Any]) -> Any:
    """执行子命令，返回可序列化为JSON的结果"""
    risk_manager = RiskManager(config.get("risk_settings"))

    if args.command == "position-size":
        risk = args.risk if args.risk is not None else risk_manager.risk_settings.default_risk_percent
        return risk_manager.calculate_position_size(
            args.balance, risk, args.entry, args.stop, args.direction
        ).to_dict()

    if args.command == "trade-analytics":
        return risk_manager.calculate_trade_analytics(
            args.entry, args.stop, args.target, args.size, args.win_prob, args.balance
        ).to_dict()

    if args.command == "monte-carlo":
        simulation = dict(config.get("simulation", {}))
        if args.seed is not None:
            simulation["random_seed"] = args.seed
        if args.include_trials:
            simulation["include_trial_detail"] = True

        preset = None
        if args.preset:
            preset = get_simulation_preset(args.preset)
            if preset is None:
                raise InvalidArgument(f"未知的模拟预设: {args.preset}")

        journal = TradingJournal(config={**config, "simulation": simulation})
        return journal.monte_carlo(
            preset=preset,
            initial_balance=args.initial_balance,
            win_rate=args.win_rate,
            average_win=args.avg_win,
            average_loss=args.avg_loss,
            number_of_trades=args.trades,
            number_of_simulations=args.simulations,
        ).to_dict()

    if args.command == "analytics":
        trades = load_trades(args.trades_file)
        analyzer = PerformanceAnalyzer()
        result = analyzer.dashboard(trades, args.interval, args.starting_balance)
        if args.factor:
            result["by_factor"] = [b.to_dict() for b in analyzer.win_loss_by_factor(trades, args.factor)]
        result["strategy"] = StrategyMetricsCalculator().summarize(
            t for t in trades if t.is_closed
        ).to_dict()
        return result

    if args.command == "sample-size":
        return {
            "win_rate": args.win_rate,
            "confidence_level": args.confidence,
            "margin_of_error": args.margin,
            "sample_size": trading_math.sample_size_for_confidence(args.win_rate, args.confidence, args.margin),
        }

    raise InvalidArgument(f"未知命令: {args.command}")


def main(argv: Optional[List[str]] = None) -> int:
    """命令行入口"""
    args = build_parser().parse_args(argv)

    try:
        config = load_env_config(args.env)
        if args.config:
            loader = load_config(args.config)
            config["risk_settings"] = loader.get_risk_settings()
            config["simulation"] = loader.get_simulation_config()
            config.update(loader.get_logging_config())
        setup_logging(args.log_level or config["log_level"], config.get("log_file"))

        result = run_command(args, config)
    except JournalError as e:
        logger.error(f"执行失败: {str(e)}")
        return 1

    print(json.dumps(result, ensure_ascii=False, indent=2, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
