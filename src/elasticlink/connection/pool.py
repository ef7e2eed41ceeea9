"""连接池与节点选择模块.

NodePool 持有有序的连接列表与轮询游标。所有读写都在同一把锁内完成：
- next(): 读列表并推进游标
- replace(): 嗅探后整体替换列表（写时复制，不做原地拼接）
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable

from .exceptions import NoConnectionError
from .models import NodeConnection

logger = logging.getLogger(__name__)


class NodePool:
    """带失效感知的轮询连接池.

    选择算法:
        1. 从游标位置开始扫描一圈，返回第一个可选节点并把游标移到其后
        2. 全部节点都在退避期内时，游标前进一位，所有节点强制结束退避，
           本次调用抛出 NoConnectionError，下一次调用即可恢复
        3. 连接池为空时直接抛出 NoConnectionError

    Args:
        connections: 初始连接列表
        clock: 单调时钟，需与连接使用的时钟一致

    Examples:
        >>> pool = NodePool([NodeConnection("http://127.0.0.1:9200")])
        >>> pool.next().url
        'http://127.0.0.1:9200'
    """

    def __init__(
        self,
        connections: Iterable[NodeConnection] = (),
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._connections: tuple[NodeConnection, ...] = tuple(connections)
        self._cursor = 0
        self._clock = clock
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._connections)

    @property
    def connections(self) -> tuple[NodeConnection, ...]:
        """当前连接列表的快照."""
        with self._lock:
            return self._connections

    @property
    def cursor(self) -> int:
        with self._lock:
            return self._cursor

    def urls(self) -> list[str]:
        return [conn.url for conn in self.connections]

    def find(self, url: str) -> NodeConnection | None:
        """按地址查找连接."""
        for conn in self.connections:
            if conn.url == url:
                return conn
        return None

    def next(self) -> NodeConnection:
        """选择下一个可用连接.

        Raises:
            NoConnectionError: 连接池为空，或所有节点都处于退避期
        """
        with self._lock:
            size = len(self._connections)
            if size == 0:
                raise NoConnectionError("连接池为空")

            now = self._clock()
            for offset in range(size):
                index = (self._cursor + offset) % size
                conn = self._connections[index]
                if conn.is_alive(now):
                    self._cursor = (index + 1) % size
                    return conn

            # 全部失效：本次失败，但保证下一次调用可以拿到连接
            self._cursor = (self._cursor + 1) % size
            for conn in self._connections:
                conn.revive()

        logger.warning(f"全部 {size} 个节点均已失效，强制恢复以避免死锁")
        raise NoConnectionError(f"全部 {size} 个节点均已失效，没有可用的连接")

    def replace(self, connections: Iterable[NodeConnection]) -> None:
        """整体替换连接列表并重置游标."""
        new_connections = tuple(connections)
        with self._lock:
            self._connections = new_connections
            self._cursor = 0

    def __repr__(self) -> str:
        return f"NodePool({list(self.connections)!r})"
