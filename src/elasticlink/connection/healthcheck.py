"""健康检查模块."""

from __future__ import annotations

import asyncio
import logging

import httpx

from ..typing import HeadersDict
from .exceptions import HealthCheckError
from .logs import LogSink, NullSink, emit
from .models import NodeConnection
from .pool import NodePool

logger = logging.getLogger(__name__)

HEALTHCHECK_PATH = "/"

# 启动健康检查两轮探测之间的间隔（秒）
STARTUP_POLL_INTERVAL = 1.0


class HealthChecker:
    """节点健康检查器.

    对连接池中的每个节点并发发起 GET /，2xx 视为存活，
    其余状态码、超时和网络错误视为失效。只更新存活状态，不增删连接。

    Args:
        pool: 连接池
        http: httpx 异步客户端
        headers: 默认请求头
        auth: Basic Auth 凭据
        error_log: 节点失效时写出的错误日志
    """

    def __init__(
        self,
        pool: NodePool,
        http: httpx.AsyncClient,
        headers: HeadersDict | None = None,
        auth: tuple[str, str] | None = None,
        error_log: LogSink | None = None,
    ) -> None:
        self.pool = pool
        self.http = http
        self.headers = dict(headers or {})
        self.auth = auth
        self.error_log = error_log or NullSink()

    async def probe(self, url: str) -> int:
        """探测单个节点，返回 HTTP 状态码.

        Raises:
            httpx.HTTPError: 网络层失败
        """
        kwargs: dict = {"headers": self.headers}
        if self.auth is not None:
            kwargs["auth"] = self.auth
        response = await self.http.get(url.rstrip("/") + HEALTHCHECK_PATH, **kwargs)
        return response.status_code

    async def check(self, conn: NodeConnection, timeout: float | None) -> bool:
        """检查单个连接并更新其存活状态."""
        try:
            async with asyncio.timeout(timeout):
                status = await self.probe(conn.url)
        except (httpx.HTTPError, TimeoutError) as e:
            conn.mark_dead()
            emit(self.error_log, f"elastic: {conn.url} is dead")
            logger.debug(f"节点 {conn.url} 健康检查失败: {e!r}")
            return False

        if 200 <= status <= 299:
            if conn.is_dead():
                logger.info(f"节点 {conn.url} 恢复存活")
            conn.mark_healthy()
            return True
        conn.mark_dead()
        emit(self.error_log, f"elastic: {conn.url} is dead [status={status}]")
        return False

    async def check_all(self, timeout: float | None) -> dict[str, bool]:
        """并发检查连接池中的所有连接.

        Args:
            timeout: 单个节点的超时时间（秒）

        Returns:
            以节点地址为键、是否存活为值的字典
        """
        connections = self.pool.connections
        results = await asyncio.gather(*(self.check(conn, timeout) for conn in connections))
        return {conn.url: alive for conn, alive in zip(connections, results)}

    async def wait_for_any(self, urls: list[str], timeout: float | None) -> None:
        """启动健康检查：轮询直到任一节点返回 2xx.

        Args:
            urls: 待检查的地址
            timeout: 总超时时间（秒）

        Raises:
            HealthCheckError: 超时前没有任何节点可用
        """
        if not urls:
            raise HealthCheckError("没有可用于健康检查的地址")
        last_error: BaseException | None = None
        last_status: int | None = None

        async def attempt(url: str) -> bool:
            nonlocal last_error, last_status
            try:
                status = await self.probe(url)
            except httpx.HTTPError as e:
                last_error = e
                return False
            last_status = status
            return 200 <= status <= 299

        try:
            async with asyncio.timeout(timeout):
                while True:
                    results = await asyncio.gather(*(attempt(url) for url in urls))
                    if any(results):
                        return
                    # 未设置超时时只探测一轮
                    if timeout is None:
                        break
                    await asyncio.sleep(STARTUP_POLL_INTERVAL)
        except TimeoutError:
            pass

        if last_error is not None:
            raise HealthCheckError(
                f"健康检查超时（{timeout}s）: {type(last_error).__name__}: {last_error}"
            ) from last_error
        raise HealthCheckError(f"健康检查超时（{timeout}s）: 最后状态码 {last_status}")
