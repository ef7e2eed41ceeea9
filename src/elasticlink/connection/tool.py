"""客户端工具模块.

提供 ElasticClient 类：持有连接池，组合嗅探器、健康检查器与请求执行器，
并管理后台定时任务（定时嗅探、定时健康检查）的生命周期。

使用示例:
    from elasticlink.connection import ClientConfig, ElasticClient, RequestOptions

    config = ClientConfig(urls=["http://127.0.0.1:9200", "http://127.0.0.1:9201"])

    async with await ElasticClient.create(config) as client:
        response = await client.perform_request(
            RequestOptions(method="GET", path="/_cluster/health")
        )
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import time

import httpx

from ..services.exists import ExistsService
from ..services.nodes_info import NodesInfoService
from ..services.ping import PingService
from .exceptions import ClientError, DiscoveryError, PluginNotFoundError
from .healthcheck import HealthChecker
from .logs import as_sink
from .models import ClientConfig, NodeConnection, RequestOptions, Response
from .pool import NodePool
from .sniffer import Sniffer
from .transport import RequestExecutor

logger = logging.getLogger(__name__)

# 停止后台任务时等待其退出的最长时间（秒）
STOP_TIMEOUT = 5.0


class ElasticClient:
    """集群客户端.

    通过 ``await ElasticClient.create(config)`` 构建时会依次执行：
    启动健康检查、启动嗅探、强制健康检查、必需插件检查，然后启动后台任务。
    直接调用构造函数不会进行任何网络访问，也不会启动后台任务。

    Attributes:
        config: 客户端配置
        pool: 连接池
        sniffer: 节点嗅探器
        healthchecker: 健康检查器
        executor: 请求执行器

    Examples:
        >>> client = await ElasticClient.create_simple(
        ...     ClientConfig(urls=["http://127.0.0.1:9200"])
        ... )
        >>> response = await client.perform_request(RequestOptions("GET", "/"))
        >>> await client.close()
    """

    def __init__(self, config: ClientConfig | None = None) -> None:
        """初始化客户端.

        Args:
            config: 客户端配置，默认使用 ClientConfig 的默认值
        """
        self.config = config or ClientConfig()
        self._owns_http = self.config.http_client is None
        self._http = self.config.http_client or httpx.AsyncClient(
            transport=self.config.transport,
            timeout=httpx.Timeout(self.config.request_timeout),
        )
        self._clock = time.monotonic

        self.pool = NodePool(
            [
                NodeConnection(url, backoff=self.config.dead_backoff, clock=self._clock)
                for url in self.config.urls
            ],
            clock=self._clock,
        )

        auth = self.config.basic_auth
        self.info_log = as_sink(self.config.info_log)
        self.error_log = as_sink(self.config.error_log, logging.ERROR)
        self.trace_log = as_sink(self.config.trace_log, logging.DEBUG)

        self.sniffer = Sniffer(
            self.pool,
            self._http,
            self.config.urls,
            scheme=self.config.scheme,
            node_filter=self.config.node_filter,
            headers=self.config.headers,
            auth=auth,
            dead_backoff=self.config.dead_backoff,
            clock=self._clock,
        )
        self.healthchecker = HealthChecker(
            self.pool,
            self._http,
            headers=self.config.headers,
            auth=auth,
            error_log=self.error_log,
        )
        recover = None
        if self.config.healthcheck_enabled or self.config.sniff_enabled:
            recover = self._recover
        self.executor = RequestExecutor(
            self.pool,
            self._http,
            max_retries=self.config.max_retries,
            retry_backoff=self.config.retry_backoff,
            headers=self.config.headers,
            auth=auth,
            gzip_enabled=self.config.gzip_enabled,
            send_get_body_as=self.config.send_get_body_as,
            info_log=self.info_log,
            error_log=self.error_log,
            trace_log=self.trace_log,
            on_no_connection=recover,
        )

        self._tasks: list[asyncio.Task] = []
        self._running = False
        self._closed = False

    # ============================================================
    # 构建
    # ============================================================

    @classmethod
    async def create(cls, config: ClientConfig | None = None) -> ElasticClient:
        """构建客户端并完成启动阶段的检查.

        Raises:
            HealthCheckError: 启动健康检查超时
            DiscoveryError: 启用嗅探但未发现任何节点
            PluginNotFoundError: 缺少必需插件
        """
        client = cls(config)
        try:
            await client._bootstrap()
        except BaseException:
            await client.close()
            raise
        return client

    @classmethod
    async def create_simple(cls, config: ClientConfig | None = None) -> ElasticClient:
        """构建简单客户端：不嗅探、不做健康检查，只使用配置的地址.

        适用于单节点或位于负载均衡之后的集群。
        """
        if config is None:
            config = ClientConfig.simple()
        else:
            config = dataclasses.replace(
                config,
                sniff_enabled=False,
                sniff_timeout_startup=None,
                sniff_timeout=None,
                sniff_interval=None,
                healthcheck_enabled=False,
                healthcheck_timeout_startup=None,
                healthcheck_timeout=None,
                healthcheck_interval=None,
            )
        return await cls.create(config)

    async def _bootstrap(self) -> None:
        config = self.config
        if config.healthcheck_enabled:
            await self.healthchecker.wait_for_any(
                config.urls, config.healthcheck_timeout_startup
            )
        if config.sniff_enabled:
            await self.sniffer.sniff(config.sniff_timeout_startup)
        if config.healthcheck_enabled:
            await self.healthchecker.check_all(config.healthcheck_timeout_startup)
        if config.required_plugins:
            await self.required_plugins_check()
        await self.start()

    # ============================================================
    # 生命周期管理
    # ============================================================

    @property
    def is_running(self) -> bool:
        """后台任务是否处于运行状态."""
        return self._running

    async def start(self) -> None:
        """启动后台定时任务，已运行时为空操作."""
        if self._running:
            return
        if self._closed:
            raise ClientError("客户端已关闭，无法再次启动")
        self._running = True

        config = self.config
        if config.sniff_enabled and config.sniff_interval:
            self._tasks.append(
                asyncio.create_task(self._sniff_loop(), name="elasticlink-sniffer")
            )
        if config.healthcheck_enabled and config.healthcheck_interval:
            self._tasks.append(
                asyncio.create_task(self._healthcheck_loop(), name="elasticlink-healthcheck")
            )
        logger.debug(f"客户端已启动，后台任务数: {len(self._tasks)}")

    async def stop(self) -> None:
        """停止后台定时任务并等待其退出，已停止时为空操作.

        进行中的嗅探和健康检查请求会被取消。
        """
        if not self._running:
            return
        self._running = False

        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        if tasks:
            _, pending = await asyncio.wait(tasks, timeout=STOP_TIMEOUT)
            if pending:
                logger.warning(f"{len(pending)} 个后台任务未能在 {STOP_TIMEOUT}s 内退出")
        await self.sniffer.cancel_pending()
        logger.debug("客户端已停止")

    async def close(self) -> None:
        """停止后台任务并关闭客户端创建的 HTTP 连接."""
        await self.stop()
        if self._closed:
            return
        self._closed = True
        await self.sniffer.cancel_pending()
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> ElasticClient:
        """异步上下文管理器入口.

        Returns:
            客户端实例自身
        """
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """异步上下文管理器退出，自动关闭客户端."""
        await self.close()

    async def _sniff_loop(self) -> None:
        interval = self.config.sniff_interval
        while True:
            await asyncio.sleep(interval)
            try:
                await self.sniffer.sniff(self.config.sniff_timeout)
            except ClientError as e:
                logger.warning(f"定时嗅探失败: {e}")
            except Exception:
                logger.exception("定时嗅探发生异常")

    async def _healthcheck_loop(self) -> None:
        interval = self.config.healthcheck_interval
        while True:
            await asyncio.sleep(interval)
            try:
                await self.healthchecker.check_all(self.config.healthcheck_timeout)
            except Exception:
                logger.exception("定时健康检查发生异常")

    # ============================================================
    # 嗅探与健康检查
    # ============================================================

    async def sniff(self, timeout: float | None = None) -> None:
        """立即嗅探一次集群，嗅探未启用时为空操作.

        Args:
            timeout: 超时时间（秒），默认使用 sniff_timeout

        Raises:
            DiscoveryError: 未发现任何节点，连接池保持不变
        """
        if not self.config.sniff_enabled:
            return
        await self.sniffer.sniff(timeout if timeout is not None else self.config.sniff_timeout)

    async def healthcheck(
        self, timeout: float | None = None, force: bool = False
    ) -> dict[str, bool]:
        """立即对所有节点做一次健康检查.

        Args:
            timeout: 单个节点的超时时间（秒），默认使用 healthcheck_timeout
            force: 健康检查未启用时是否仍然执行

        Returns:
            以节点地址为键、是否存活为值的字典；未执行时为空字典
        """
        if not self.config.healthcheck_enabled and not force:
            return {}
        return await self.healthchecker.check_all(
            timeout if timeout is not None else self.config.healthcheck_timeout
        )

    async def _recover(self) -> None:
        """所有节点都不可用时的一次性恢复：强制健康检查，连接池为空时重新嗅探."""
        if self.config.healthcheck_enabled:
            await self.healthchecker.check_all(self.config.healthcheck_timeout)
        if self.config.sniff_enabled and len(self.pool) == 0:
            try:
                await self.sniffer.sniff(self.config.sniff_timeout)
            except DiscoveryError as e:
                logger.warning(f"重新嗅探失败: {e}")

    # ============================================================
    # 请求
    # ============================================================

    async def perform_request(self, options: RequestOptions) -> Response:
        """执行一次逻辑请求，详见 RequestExecutor.perform_request."""
        return await self.executor.perform_request(options)

    def ping(self, url: str | None = None) -> PingService:
        return PingService(self, url or self.config.urls[0])

    def exists(self) -> ExistsService:
        return ExistsService(self)

    def nodes_info(self) -> NodesInfoService:
        return NodesInfoService(self)

    async def elasticsearch_version(self, url: str) -> str:
        """获取指定节点的引擎版本号.

        Raises:
            ClientError: 节点未返回版本信息
        """
        result, _ = await self.ping(url).do()
        if result is None or not result.version.number:
            raise ClientError(f"节点 {url} 未返回版本信息")
        return result.version.number

    async def required_plugins_check(self) -> None:
        """检查集群是否安装了所有必需插件.

        Raises:
            PluginNotFoundError: 缺少任一必需插件
        """
        info = await self.nodes_info().metric("plugins").do()
        installed = info.plugin_names()
        for plugin in self.config.required_plugins:
            if plugin not in installed:
                raise PluginNotFoundError(plugin)

    def __repr__(self) -> str:
        state = "running" if self._running else "stopped"
        return f"ElasticClient({state}, pool={self.pool.urls()})"
