"""节点嗅探模块.

Sniffer 向所有已知节点并发发起 GET /_nodes/http，取第一个返回非空节点列表的结果，
与当前连接池合并后整体替换连接池。
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from collections.abc import Callable
from dataclasses import dataclass

import httpx

from ..services.models import NodesInfoNode, NodesInfoResponse
from ..typing import HeadersDict, NodeFilter
from .backoff import Backoff
from .exceptions import DiscoveryError
from .models import NodeConnection
from .pool import NodePool

logger = logging.getLogger(__name__)

NODES_HTTP_PATH = "/_nodes/http"

# 旧版本的发布地址格式，例如 inet[/127.0.0.1:9200] 或 inet[myhost/10.0.0.1:9200]
_INET_PATTERN = re.compile(r"\[[^/]*/([^:\]]*):([0-9]+)\]")


def extract_hostname(scheme: str, address: str) -> str:
    """将节点发布地址转换为连接地址.

    支持 ``host:port``、``alias/ip:port``（取最右侧的 ip:port）
    以及 ``inet[alias/ip:port]`` 格式，无法解析时返回空字符串。

    Examples:
        >>> extract_hostname("http", "myelk.local/10.1.0.24:9200")
        'http://10.1.0.24:9200'
        >>> extract_hostname("https", "abc")
        ''
    """
    if not address:
        return ""
    if address.startswith("inet"):
        match = _INET_PATTERN.search(address)
        if match is None:
            return ""
        return f"{scheme}://{match.group(1)}:{match.group(2)}"

    host_port = address.rsplit("/", 1)[-1]
    host, sep, port = host_port.rpartition(":")
    if not sep or not host or not port.isdigit():
        return ""
    return f"{scheme}://{host_port}"


@dataclass
class DiscoveredNode:
    """嗅探得到的候选节点，合并进连接池后即丢弃.

    Attributes:
        node_id: 节点 ID
        url: 由发布地址转换得到的连接地址
        info: 原始节点信息，传给节点过滤回调
    """

    node_id: str
    url: str
    info: NodesInfoNode


class Sniffer:
    """节点嗅探器.

    Args:
        pool: 连接池
        http: httpx 异步客户端
        seed_urls: 配置的种子节点地址
        scheme: 嗅探到的节点使用的协议
        node_filter: 节点过滤回调，返回 False 的节点被排除
        headers: 默认请求头
        auth: Basic Auth 凭据
        dead_backoff: 新建连接使用的失效退避策略
        clock: 单调时钟
    """

    def __init__(
        self,
        pool: NodePool,
        http: httpx.AsyncClient,
        seed_urls: list[str],
        scheme: str = "http",
        node_filter: NodeFilter | None = None,
        headers: HeadersDict | None = None,
        auth: tuple[str, str] | None = None,
        dead_backoff: Backoff | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.pool = pool
        self.http = http
        self.seed_urls = list(seed_urls)
        self.scheme = scheme
        self.node_filter = node_filter
        self.headers = dict(headers or {})
        self.auth = auth
        self.dead_backoff = dead_backoff
        self.clock = clock
        self._inflight: set[asyncio.Task] = set()

    @property
    def inflight(self) -> int:
        """仍在进行中的探测请求数量."""
        return len(self._inflight)

    def _forget(self, task: asyncio.Task) -> None:
        self._inflight.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.debug(f"嗅探探测异常结束: {task.exception()!r}")

    @staticmethod
    async def _cancel(tasks: list[asyncio.Task]) -> None:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def cancel_pending(self) -> None:
        """取消所有仍在进行中的探测请求（客户端停止时调用）."""
        await self._cancel(list(self._inflight))

    def candidate_urls(self) -> list[str]:
        """需要嗅探的地址：种子地址加上所有未失效的已知节点，去重且保持顺序."""
        urls = list(self.seed_urls)
        for conn in self.pool.connections:
            if not conn.is_dead() and conn.url not in urls:
                urls.append(conn.url)
        return urls

    async def probe(self, url: str) -> list[DiscoveredNode]:
        """向单个节点查询集群拓扑.

        失败（网络错误、非 200、响应无法解析）时返回空列表。
        """
        kwargs: dict = {"headers": self.headers}
        if self.auth is not None:
            kwargs["auth"] = self.auth
        try:
            response = await self.http.get(url.rstrip("/") + NODES_HTTP_PATH, **kwargs)
        except httpx.HTTPError as e:
            logger.debug(f"嗅探节点 {url} 失败: {e}")
            return []
        if response.status_code != 200:
            logger.debug(f"嗅探节点 {url} 返回状态码 {response.status_code}")
            return []
        try:
            info = NodesInfoResponse.from_dict(response.json())
        except ValueError as e:
            logger.debug(f"解析节点 {url} 的嗅探结果失败: {e}")
            return []

        nodes: list[DiscoveredNode] = []
        for node_id, node in info.nodes.items():
            if not node.http_publish_address:
                continue
            node_url = extract_hostname(self.scheme, node.http_publish_address)
            if node_url:
                nodes.append(DiscoveredNode(node_id, node_url, node))
        return nodes

    async def sniff(self, timeout: float | None) -> None:
        """嗅探集群并替换连接池.

        所有候选地址并发探测，第一个返回非空结果的探测胜出，
        其余探测不再等待，但也不会被强制取消；超时或客户端停止时才会被取消。

        Args:
            timeout: 整个嗅探过程的超时时间（秒），None 表示不限制

        Raises:
            DiscoveryError: 没有任何节点返回结果，或超时；此时连接池保持不变
        """
        urls = self.candidate_urls()
        if not urls:
            raise DiscoveryError("没有可用于嗅探的地址")

        tasks = [asyncio.create_task(self.probe(url)) for url in urls]
        for task in tasks:
            self._inflight.add(task)
            task.add_done_callback(self._forget)

        discovered: list[DiscoveredNode] = []
        try:
            async with asyncio.timeout(timeout):
                for next_done in asyncio.as_completed(tasks):
                    discovered = await next_done
                    if discovered:
                        break
        except TimeoutError as e:
            raise DiscoveryError(f"嗅探超时（{timeout}s），未发现任何节点") from e
        finally:
            # 胜出后其余探测保留在 _inflight 中继续执行
            if not discovered:
                await self._cancel(tasks)

        if not discovered:
            raise DiscoveryError("未发现任何节点")
        self.merge(discovered)

    def merge(self, discovered: list[DiscoveredNode]) -> None:
        """将嗅探结果合并进连接池.

        节点 ID 已存在时复用原连接（保留失效状态和失败计数），并更新为新地址；
        否则新建连接。每个节点恰好调用一次过滤回调。
        """
        existing = {
            conn.node_id: conn for conn in self.pool.connections if conn.node_id
        }
        connections: list[NodeConnection] = []
        seen_urls: set[str] = set()
        for node in discovered:
            if self.node_filter is not None and not self.node_filter(node.info):
                logger.debug(f"节点 {node.node_id} ({node.url}) 被过滤")
                continue
            if node.url in seen_urls:
                continue
            seen_urls.add(node.url)

            conn = existing.get(node.node_id)
            if conn is None:
                logger.info(f"节点 {node.url} 加入集群")
                conn = NodeConnection(
                    node.url, node.node_id, backoff=self.dead_backoff, clock=self.clock
                )
            elif conn.url != node.url:
                logger.info(f"节点 {node.node_id} 地址变更: {conn.url} -> {node.url}")
                conn.url = node.url
            connections.append(conn)

        if not connections:
            raise DiscoveryError("嗅探到的节点均被过滤，连接池保持不变")
        self.pool.replace(connections)
