import unittest
import sys
import os

# 添加项目根目录到路径
sys.path.append(os.path.join(os.path.dirname(__file__), '..'))

from gold_journal.errors import InvalidArgument
from gold_journal.utils import trading_math
from gold_journal.utils.trading_math import PROFIT_FACTOR_CAP


class TestTradingMath(unittest.TestCase):
    """交易数学工具单元测试"""

    def test_position_size(self):
        """测试按风险比例计算仓位"""
        self.assertAlmostEqual(trading_math.position_size(10000, 2, 2000, 1980), 10.0)
        self.assertAlmostEqual(trading_math.position_size(10000, 1, 2000, 2010), 10.0)

    def test_position_size_same_price(self):
        with self.assertRaises(InvalidArgument):
            trading_math.position_size(10000, 2, 2000, 2000)

    def test_risk_reward_ratio(self):
        self.assertAlmostEqual(trading_math.risk_reward_ratio(2000, 1980, 2040), 2.0)
        self.assertAlmostEqual(trading_math.risk_reward_ratio(2000, 2010, 1985), 1.5)
        with self.assertRaises(InvalidArgument):
            trading_math.risk_reward_ratio(2000, 2000, 2040)

    def test_expected_value(self):
        """测试期望值与胜率范围"""
        self.assertAlmostEqual(trading_math.expected_value(0.5, 200, 100), 50.0)
        self.assertAlmostEqual(trading_math.expected_value(0, 200, 100), -100.0)
        with self.assertRaises(InvalidArgument):
            trading_math.expected_value(1.5, 200, 100)

    def test_kelly_criterion(self):
        self.assertAlmostEqual(trading_math.kelly_criterion(0.5, 2), 0.25)
        # 负期望不给出负仓位
        self.assertEqual(trading_math.kelly_criterion(0.3, 1), 0.0)
        with self.assertRaises(InvalidArgument):
            trading_math.kelly_criterion(0.5, 0)

    def test_max_drawdown(self):
        """测试最大回撤"""
        self.assertAlmostEqual(trading_math.max_drawdown([100, 120, 90, 130]), 25.0)
        self.assertEqual(trading_math.max_drawdown([100, 110, 120]), 0.0)
        self.assertEqual(trading_math.max_drawdown([100]), 0.0)
        self.assertEqual(trading_math.max_drawdown([]), 0.0)

    def test_max_drawdown_non_positive_peak(self):
        with self.assertRaises(InvalidArgument):
            trading_math.max_drawdown([0, -10])

    def test_profit_factor(self):
        self.assertAlmostEqual(trading_math.profit_factor([100, 200], [150]), 2.0)
        self.assertEqual(trading_math.profit_factor([100], []), PROFIT_FACTOR_CAP)
        self.assertEqual(trading_math.profit_factor([], []), 0.0)

    def test_risk_percentage(self):
        self.assertAlmostEqual(trading_math.risk_percentage(200, 10000), 2.0)
        with self.assertRaises(InvalidArgument):
            trading_math.risk_percentage(200, 0)

    def test_sample_size_for_confidence(self):
        """测试统计显著所需样本量"""
        self.assertEqual(trading_math.sample_size_for_confidence(0.5), 385)
        self.assertEqual(trading_math.sample_size_for_confidence(0.5, 95), 385)
        self.assertEqual(trading_math.sample_size_for_confidence(0.5, 0.99), 664)
        # 未知置信度按95%处理
        self.assertEqual(trading_math.sample_size_for_confidence(0.5, 0.80), 385)
        with self.assertRaises(InvalidArgument):
            trading_math.sample_size_for_confidence(0.5, 0.95, 0)

    def test_to_number(self):
        self.assertEqual(trading_math.to_number("12.5", "value"), 12.5)
        self.assertEqual(trading_math.to_number(3, "value"), 3.0)
        for bad in (None, True, "abc", float("nan"), float("inf"), [1]):
            with self.assertRaises(InvalidArgument):
                trading_math.to_number(bad, "value")


class TestTradingMathProperties(unittest.TestCase):
    """交易数学性质测试"""

    def test_position_size_identity(self):
        """仓位 × 止损距离 等于 风险金额"""
        for balance in (500, 10000, 250000):
            for risk in (0.25, 1, 2, 5):
                for entry, stop in ((2000, 1980), (2000, 2012.5), (1850.3, 1849.8)):
                    size = trading_math.position_size(balance, risk, entry, stop)
                    self.assertAlmostEqual(size * abs(entry - stop), balance * risk / 100, places=6)

    def test_kelly_zero_probability(self):
        for rr in (0.5, 1, 2, 10):
            self.assertEqual(trading_math.kelly_criterion(0, rr), 0.0)

    def test_max_drawdown_measured_from_prior_peak(self):
        self.assertAlmostEqual(trading_math.max_drawdown([100, 50]), 50.0)
        self.assertAlmostEqual(trading_math.max_drawdown([100, 50, 120]), 50.0)



if __name__ == '__main__':
    unittest.main()
