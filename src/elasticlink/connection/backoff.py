"""退避策略模块.

退避策略用于两个地方：
- 失效节点的重试等待时间（retry-not-before）
- 同一请求两次尝试之间的等待时间

所有策略对尝试次数单调不减，并且有上界。
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class Backoff(ABC):
    """退避策略抽象基类."""

    @abstractmethod
    def next(self, attempt: int) -> float:
        """返回第 attempt 次失败后需要等待的秒数（attempt 从 1 开始）."""


class ZeroBackoff(Backoff):
    """不等待."""

    def next(self, attempt: int) -> float:
        return 0.0

    def __repr__(self) -> str:
        return "ZeroBackoff()"


class ConstantBackoff(Backoff):
    """固定等待时间.

    Args:
        interval: 每次等待的秒数，必须 >= 0
    """

    def __init__(self, interval: float) -> None:
        if interval < 0:
            raise ValueError(f"interval 必须 >= 0，当前值: {interval}")
        self.interval = interval

    def next(self, attempt: int) -> float:
        return self.interval

    def __repr__(self) -> str:
        return f"ConstantBackoff({self.interval})"


class ExponentialBackoff(Backoff):
    """指数退避，带上限.

    第 n 次失败等待 ``initial * 2 ** (n - 1)`` 秒，不超过 ``maximum``。

    Args:
        initial: 第一次失败后的等待秒数
        maximum: 等待秒数上限

    Examples:
        >>> backoff = ExponentialBackoff(1.0, 8.0)
        >>> [backoff.next(n) for n in range(1, 6)]
        [1.0, 2.0, 4.0, 8.0, 8.0]
    """

    def __init__(self, initial: float, maximum: float) -> None:
        if initial < 0:
            raise ValueError(f"initial 必须 >= 0，当前值: {initial}")
        if maximum < initial:
            raise ValueError(f"maximum 必须 >= initial，当前值: {maximum}")
        self.initial = initial
        self.maximum = maximum

    def next(self, attempt: int) -> float:
        if attempt <= 0:
            return 0.0
        # 指数部分封顶，避免大数运算
        exponent = min(attempt - 1, 62)
        return min(self.initial * (2**exponent), self.maximum)

    def __repr__(self) -> str:
        return f"ExponentialBackoff({self.initial}, {self.maximum})"
