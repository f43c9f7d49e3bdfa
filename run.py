"""
统一入口：黄金交易日志命令行

配置项从 .env 读取，可通过 --config 指定 YAML 配置文件覆盖。

示例:
    python run.py position-size --balance 10000 --risk 2 --entry 2000 --stop 1980
    python run.py monte-carlo --preset moderate --seed 42
    python run.py analytics trades.csv --interval weekly --factor day_of_week
"""

import sys
from pathlib import Path

# 添加项目根目录到Python路径
current_dir = Path(__file__).parent
sys.path.insert(0, str(current_dir))

from gold_journal.main import main


if __name__ == "__main__":
    sys.exit(main())
