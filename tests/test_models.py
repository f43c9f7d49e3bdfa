import unittest
from datetime import datetime, timezone
import sys
import os

# 添加项目根目录到路径
sys.path.append(os.path.join(os.path.dirname(__file__), '..'))

from gold_journal.errors import InvalidArgument, InvalidRiskParameters
from gold_journal.models import RiskSettings, Trade, TradeDirection, TradeStatus, parse_datetime


class TestTrade(unittest.TestCase):
    """交易模型单元测试"""

    def test_closed_trade_profit_loss(self):
        """测试平仓交易自动计算盈亏"""
        long_trade = Trade("long", 2000, 2, status="closed", exit_price=2010)
        self.assertEqual(long_trade.direction, TradeDirection.LONG)
        self.assertAlmostEqual(long_trade.profit_loss, 20.0)
        self.assertTrue(long_trade.is_win)

        short_trade = Trade(TradeDirection.SHORT, 2000, 1, status=TradeStatus.CLOSED, exit_price=1990)
        self.assertAlmostEqual(short_trade.profit_loss, 10.0)

    def test_stop_loss_side(self):
        with self.assertRaises(InvalidArgument):
            Trade("long", 2000, 1, stop_loss=2010)
        with self.assertRaises(InvalidArgument):
            Trade("short", 2000, 1, stop_loss=1990)

    def test_status_consistency(self):
        with self.assertRaises(InvalidArgument):
            Trade("long", 2000, 1, status="closed")
        with self.assertRaises(InvalidArgument):
            Trade("long", 2000, 1, exit_price=2010)

    def test_invalid_values(self):
        with self.assertRaises(InvalidArgument):
            Trade("long", 0, 1)
        with self.assertRaises(InvalidArgument):
            Trade("long", 2000, -1)
        with self.assertRaises(InvalidArgument):
            Trade("sideways", 2000, 1)

    def test_risk_amount(self):
        self.assertAlmostEqual(Trade("long", 2000, 2, stop_loss=1990).risk_amount, 20.0)
        self.assertIsNone(Trade("long", 2000, 2).risk_amount)

    def test_close(self):
        """测试平仓返回新记录"""
        trade = Trade("short", 2000, 2, stop_loss=2010, trade_id=1)
        closed = trade.close(1995, datetime(2024, 3, 1, 10))
        self.assertEqual(trade.status, TradeStatus.OPEN)
        self.assertTrue(closed.is_closed)
        self.assertAlmostEqual(closed.profit_loss, 10.0)
        self.assertEqual(closed.exit_date, datetime(2024, 3, 1, 10))
        with self.assertRaises(InvalidArgument):
            closed.close(1990)

    def test_from_dict(self):
        """测试从持久层记录构建"""
        trade = Trade.from_dict({
            "trade_id": 7,
            "direction": "LONG",
            "status": "closed",
            "entry_price": "2000",
            "exit_price": 2015,
            "position_size": 1,
            "stop_loss": 0,
            "take_profit": "",
            "entry_date": "2024-01-05T09:30:00",
            "exit_date": "2024-01-05T15:00:00Z",
            "pre_analysis": {"daily_trend": "up"},
        })
        self.assertEqual(trade.direction, TradeDirection.LONG)
        self.assertIsNone(trade.stop_loss)
        self.assertIsNone(trade.take_profit)
        self.assertAlmostEqual(trade.profit_loss, 15.0)
        self.assertEqual(trade.entry_date, datetime(2024, 1, 5, 9, 30))
        self.assertEqual(trade.pre_analysis["daily_trend"], "up")
        self.assertEqual(trade.to_dict()["status"], "closed")

    def test_from_dict_missing_field(self):
        with self.assertRaises(InvalidArgument):
            Trade.from_dict({"direction": "long", "entry_price": 2000})


class TestRiskSettings(unittest.TestCase):
    """风险设置单元测试"""

    def test_defaults(self):
        settings = RiskSettings.from_dict({})
        self.assertEqual(settings.default_risk_percent, 1.0)
        self.assertEqual(settings.max_risk_percent, 2.0)
        self.assertEqual(settings.max_daily_risk, 5.0)
        self.assertEqual(settings.max_positions, 5)
        self.assertEqual(settings.correlation_limit, 3)
        self.assertEqual(settings.max_drawdown_percent, 10.0)

    def test_from_dict(self):
        settings = RiskSettings.from_dict({"max_positions": "4", "max_risk_percent": 1.5})
        self.assertEqual(settings.max_positions, 4)
        self.assertEqual(settings.max_risk_percent, 1.5)

    def test_out_of_range(self):
        with self.assertRaises(InvalidRiskParameters):
            RiskSettings.from_dict({"max_risk_percent": 150})
        with self.assertRaises(InvalidRiskParameters):
            RiskSettings.from_dict({"max_positions": -1})


class TestTradeDates(unittest.TestCase):
    """交易日期解析单元测试"""

    def test_aware_dates_normalized_to_utc(self):
        trade = Trade.from_dict({
            "direction": "long", "status": "closed", "entry_price": 2000, "exit_price": 2010,
            "position_size": 1, "entry_date": "2024-01-01T08:00:00+08:00",
            "exit_date": "2024-01-01T10:00:00Z",
        })
        self.assertEqual(trade.entry_date, datetime(2024, 1, 1, 0, 0))
        self.assertEqual(trade.exit_date, datetime(2024, 1, 1, 10, 0))
        self.assertIsNone(trade.exit_date.tzinfo)

    def test_aware_datetime_object(self):
        trade = Trade("long", 2000, 1, entry_date=datetime(2024, 1, 1, 10, tzinfo=timezone.utc))
        self.assertEqual(trade.entry_date, datetime(2024, 1, 1, 10))

    def test_invalid_date(self):
        with self.assertRaises(InvalidArgument):
            parse_datetime("yesterday", "exit_date")
        with self.assertRaises(InvalidArgument):
            parse_datetime(20240101, "exit_date")

    def test_analysis_fields(self):
        row = {"direction": "long", "entry_price": 2000, "position_size": 1,
               "pre_analysis": '{"htf_setup": "breakout"}'}
        self.assertEqual(Trade.from_dict(row).pre_analysis, {"htf_setup": "breakout"})

        for bad in ('{"htf_setup"', '["breakout"]', 5):
            with self.assertRaises(InvalidArgument):
                Trade.from_dict(dict(row, pre_analysis=bad))



if __name__ == '__main__':
    unittest.main()
