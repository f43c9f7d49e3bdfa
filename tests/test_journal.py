import unittest
from unittest.mock import patch
import asyncio
import contextlib
import io
import json
import tempfile
import sys
import os
from datetime import datetime
from pathlib import Path

# 添加项目根目录到路径
sys.path.append(os.path.join(os.path.dirname(__file__), '..'))

from gold_journal.config import get_simulation_preset
from gold_journal.errors import InvalidArgument, NotFound
from gold_journal.main import TradingJournal, load_trades, main
from gold_journal.models import Account, RiskSettings, Trade
from gold_journal.providers import (
    InMemoryAccountProvider,
    InMemoryRiskSettingsProvider,
    InMemoryTradeProvider,
)


def build_trades():
    return [
        Trade("long", 2000, 1, status="closed", exit_price=2100, stop_loss=1950,
              entry_date=datetime(2024, 1, 2, 9), exit_date=datetime(2024, 1, 2, 15),
              trade_id=1, account_id="acc1"),
        Trade("short", 2050, 1, status="closed", exit_price=2080, stop_loss=2070,
              entry_date=datetime(2024, 1, 9, 9), exit_date=datetime(2024, 1, 9, 15),
              trade_id=2, account_id="acc1"),
        Trade("long", 2000, 2, status="closed", exit_price=2040,
              entry_date=datetime(2024, 2, 1, 9), exit_date=datetime(2024, 2, 1, 15),
              trade_id=3, account_id="acc2"),
        Trade("long", 2000, 5, stop_loss=1990, trade_id=4, account_id="acc1"),
    ]


class TestTradingJournal(unittest.TestCase):
    """交易日志服务单元测试"""

    def setUp(self):
        self.journal = TradingJournal(
            trade_provider=InMemoryTradeProvider({"u1": build_trades()}),
            account_provider=InMemoryAccountProvider({"u1": [Account("acc1", 10000), Account("acc2", 5000)]}),
            risk_settings_provider=InMemoryRiskSettingsProvider({"u1": RiskSettings(max_risk_percent=1.5)}),
            config={"simulation": {"random_seed": 3, "number_of_simulations": 50, "number_of_trades": 20}},
        )

    def test_position_size_default_risk(self):
        """测试未指定风险百分比时使用默认风险"""
        result = self.journal.position_size("u1", "acc1", 2000, 1980, "long")
        self.assertAlmostEqual(result.dollar_risk, 100.0)
        self.assertAlmostEqual(result.position_size, 5.0)

    def test_missing_account(self):
        with self.assertRaises(NotFound):
            self.journal.position_size("u1", "missing", 2000, 1980, "long")
        with self.assertRaises(NotFound):
            self.journal.risk_exposure("u2", "acc1")

    def test_risk_exposure_and_check(self):
        exposure = self.journal.risk_exposure("u1", "acc1")
        self.assertEqual(exposure.open_positions, 1)
        self.assertAlmostEqual(exposure.total_risk_percent, 0.5)

        result = self.journal.check_trade("u1", "acc1", Trade("long", 2000, 8, stop_loss=1980))
        self.assertFalse(result.within_limits)
        self.assertEqual(len(result.warnings), 1)

    def test_trade_analytics_with_account(self):
        result = self.journal.trade_analytics(2000, 1980, 2040, 1, 0.5, user_id="u1", account_id="acc1")
        self.assertEqual(result.account_balance, 10000.0)
        self.assertAlmostEqual(result.kelly_position_size, 125.0)

    def test_analytics_filtered_by_account(self):
        self.assertEqual(self.journal.risk_metrics("u1", "acc1").total_trades, 2)
        self.assertEqual(self.journal.risk_metrics("u1").total_trades, 3)
        self.assertEqual(len(self.journal.performance("u1", interval="monthly")), 2)
        self.assertEqual(len(self.journal.equity_curve("u1", "acc1")), 2)
        self.assertEqual(self.journal.consecutive_stats("u1").current_streak, 1)
        self.assertEqual(self.journal.strategy_summary("u1").total_trades, 3)

        breakdown = self.journal.win_loss_by_factor("u1", "direction")
        self.assertEqual(sum(b.trade_count for b in breakdown), 3)

    def test_unknown_user_has_no_trades(self):
        self.assertEqual(self.journal.risk_metrics("nobody").total_trades, 0)
        self.assertEqual(self.journal.dashboard("nobody")["performance"], [])

    def test_dashboard_async(self):
        """测试并发仪表板与同步结果一致"""
        result = asyncio.run(self.journal.dashboard_async("u1"))
        expected = self.journal.dashboard("u1")
        self.assertEqual(result, expected)

    def test_monte_carlo(self):
        result = self.journal.monte_carlo()
        self.assertEqual(result.number_of_simulations, 50)
        self.assertEqual(result.number_of_trades, 20)

        preset = get_simulation_preset("aggressive")
        result = self.journal.monte_carlo(preset=preset, number_of_simulations=30)
        self.assertEqual(result.number_of_trades, 200)
        self.assertEqual(result.number_of_simulations, 30)

    def test_monte_carlo_seed_repeatable(self):
        """测试固定种子时多次调用结果一致"""
        first = self.journal.monte_carlo(number_of_simulations=50)
        second = self.journal.monte_carlo(number_of_simulations=50)
        self.assertEqual(first.final_balances, second.final_balances)
        self.assertEqual(first.percentiles, second.percentiles)

    def test_monte_carlo_from_history(self):
        result = self.journal.monte_carlo_from_history("u1", "acc1")
        self.assertEqual(result.initial_balance, 10000.0)
        self.assertEqual(len(result.final_balances), 50)


class TestLoadTrades(unittest.TestCase):
    """交易文件读取单元测试"""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()

    def tearDown(self):
        self.temp_dir.cleanup()

    def test_load_csv(self):
        path = Path(self.temp_dir.name) / "trades.csv"
        path.write_text(
            "trade_id,direction,status,entry_price,exit_price,stop_loss,position_size,entry_date,exit_date\n"
            "1,long,closed,2000,2020,1990,1,2024-01-02T09:00:00,2024-01-02T15:00:00\n"
            "2,short,closed,2000,2010,,2,2024-01-03T09:00:00,2024-01-03T15:00:00\n"
            "3,long,open,2000,,1980,1,2024-01-04T09:00:00,\n",
            encoding='utf-8',
        )
        trades = load_trades(str(path))
        self.assertEqual(len(trades), 3)
        self.assertAlmostEqual(trades[0].profit_loss, 20.0)
        self.assertIsNone(trades[1].stop_loss)
        self.assertAlmostEqual(trades[1].profit_loss, -20.0)
        self.assertFalse(trades[2].is_closed)

    def test_load_json(self):
        path = Path(self.temp_dir.name) / "trades.json"
        path.write_text(json.dumps([
            {"direction": "long", "status": "closed", "entry_price": 2000,
             "exit_price": 2015, "position_size": 1, "exit_date": "2024-01-02T15:00:00"},
        ]), encoding='utf-8')
        trades = load_trades(str(path))
        self.assertAlmostEqual(trades[0].profit_loss, 15.0)

    def test_missing_file(self):
        with self.assertRaises(NotFound):
            load_trades(str(Path(self.temp_dir.name) / "missing.json"))


class TestCommandLine(unittest.TestCase):
    """命令行单元测试"""

    def setUp(self):
        self.env_config = {
            "log_level": "INFO",
            "log_file": None,
            "risk_settings": RiskSettings(),
            "simulation": {
                "number_of_trades": 20,
                "number_of_simulations": 50,
                "include_trial_detail": False,
                "random_seed": None,
            },
        }
        patchers = [
            patch("gold_journal.main.load_env_config", return_value=self.env_config),
            patch("gold_journal.main.setup_logging"),
        ]
        for patcher in patchers:
            patcher.start()
            self.addCleanup(patcher.stop)

    def run_cli(self, argv):
        output = io.StringIO()
        with contextlib.redirect_stdout(output):
            code = main(argv)
        return code, output.getvalue()

    def test_position_size(self):
        code, output = self.run_cli([
            "position-size", "--balance", "10000", "--risk", "2", "--entry", "2000", "--stop", "1980",
        ])
        self.assertEqual(code, 0)
        data = json.loads(output)
        self.assertEqual(data["dollar_risk"], 200.0)
        self.assertEqual(data["position_size"], 10.0)
        self.assertEqual(data["risk_reward_3r"], 2060.0)

    def test_sample_size(self):
        code, output = self.run_cli(["sample-size", "--win-rate", "0.5"])
        self.assertEqual(code, 0)
        self.assertEqual(json.loads(output)["sample_size"], 385)

    def test_monte_carlo_preset(self):
        code, output = self.run_cli(["monte-carlo", "--preset", "conservative", "--simulations", "40", "--seed", "1"])
        self.assertEqual(code, 0)
        data = json.loads(output)
        self.assertEqual(data["number_of_simulations"], 40)
        self.assertIn("percentile50", data)

    def test_analytics(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / "trades.json"
            path.write_text(json.dumps([
                {"direction": "long", "status": "closed", "entry_price": 2000, "exit_price": 2015,
                 "position_size": 1, "exit_date": "2024-01-02T15:00:00", "entry_date": "2024-01-02T09:00:00"},
                {"direction": "short", "status": "closed", "entry_price": 2000, "exit_price": 2010,
                 "position_size": 1, "exit_date": "2024-01-03T15:00:00", "entry_date": "2024-01-03T09:00:00"},
            ]), encoding='utf-8')
            code, output = self.run_cli(["analytics", str(path), "--factor", "day_of_week"])

        self.assertEqual(code, 0)
        data = json.loads(output)
        self.assertEqual(data["statistics"]["total_trades"], 2)
        self.assertEqual(len(data["by_factor"]), 2)
        self.assertEqual(data["strategy"]["net_profit"], 5.0)

    def test_errors_return_non_zero(self):
        code, output = self.run_cli([
            "position-size", "--balance", "10000", "--entry", "2000", "--stop", "2010",
        ])
        self.assertEqual(code, 1)
        self.assertEqual(output, "")

        code, _ = self.run_cli(["monte-carlo", "--preset", "reckless"])
        self.assertEqual(code, 1)


class TestAnnotatedTradeFiles(unittest.TestCase):
    """带交易前/后分析的交易文件单元测试"""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.path = Path(self.temp_dir.name) / "annotated.csv"
        self.path.write_text(
            "trade_id,direction,status,entry_price,exit_price,position_size,exit_date,pre_analysis,post_analysis\n"
            '1,long,closed,2000,2020,1,2024-01-02T15:00:00Z,"{""daily_trend"": ""up""}","{""emotional_state"": ""calm""}"\n'
            '2,long,closed,2000,1990,1,2024-01-03T15:00:00,"{""daily_trend"": ""down""}",\n'
            "3,short,closed,2000,1980,1,2024-01-04T15:00:00,,\n",
            encoding='utf-8',
        )

    def tearDown(self):
        self.temp_dir.cleanup()

    def test_load_csv_annotations(self):
        """测试CSV中的JSON分析字段"""
        trades = load_trades(str(self.path))
        self.assertEqual(trades[0].pre_analysis, {"daily_trend": "up"})
        self.assertEqual(trades[0].post_analysis, {"emotional_state": "calm"})
        self.assertEqual(trades[1].post_analysis, {})
        self.assertEqual(trades[2].pre_analysis, {})
        # 带时区与不带时区的出场时间可以混合排序
        self.assertEqual(trades[0].exit_date, datetime(2024, 1, 2, 15))

    def test_invalid_annotation(self):
        path = Path(self.temp_dir.name) / "bad.csv"
        path.write_text(
            "direction,status,entry_price,exit_price,position_size,pre_analysis\n"
            "long,closed,2000,2020,1,not-json\n"
            "long,closed,2000,2020,1,[1]\n",
            encoding='utf-8',
        )
        with self.assertRaises(InvalidArgument):
            load_trades(str(path))

    def test_analytics_by_annotation_factor(self):
        env_config = {"log_level": "INFO", "log_file": None, "risk_settings": RiskSettings(), "simulation": {}}
        output = io.StringIO()
        with patch("gold_journal.main.load_env_config", return_value=env_config), \
                patch("gold_journal.main.setup_logging"), contextlib.redirect_stdout(output):
            code = main(["analytics", str(self.path), "--factor", "daily_trend"])

        self.assertEqual(code, 0)
        data = json.loads(output.getvalue())
        factors = {row["factor"]: row["trade_count"] for row in data["by_factor"]}
        self.assertEqual(factors, {"up": 1, "down": 1, None: 1})
        self.assertEqual(data["risk_metrics"]["total_trades"], 3)


if __name__ == '__main__':
    unittest.main()
