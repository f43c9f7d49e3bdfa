"""
异常定义
"""


class JournalError(Exception):
    """交易日志核心异常基类"""


class InvalidArgument(JournalError, ValueError):
    """参数无效（非数值、超出定义域等）"""


class InvalidRiskParameters(InvalidArgument):
    """风险参数无效"""


class InvalidFactor(InvalidArgument):
    """未知的分组因子"""


class ConfigError(JournalError):
    """配置加载或验证失败"""


class NotFound(JournalError, LookupError):
    """账户或交易不存在"""
