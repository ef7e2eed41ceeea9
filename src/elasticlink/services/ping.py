"""Ping 服务模块."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..connection.models import DEFAULT_URL, RequestOptions
from .models import PingResult

if TYPE_CHECKING:
    from ..connection.tool import ElasticClient


class PingService:
    """检查指定节点是否可用，并返回节点的基本信息.

    Ping 直接发往指定地址，不经过节点选择。

    Examples:
        >>> result, status = await PingService(client, "http://127.0.0.1:9200").do()
        >>> result.version.number
        '7.17.0'
    """

    def __init__(self, client: ElasticClient, url: str | None = None) -> None:
        self._client = client
        self._url = url or DEFAULT_URL
        self._timeout: str | None = None
        self._http_head_only = False
        self._pretty = False

    def url(self, url: str) -> PingService:
        self._url = url
        return self

    def timeout(self, timeout: str) -> PingService:
        """服务端超时时间，例如 "1s"."""
        self._timeout = timeout
        return self

    def http_head_only(self, head_only: bool) -> PingService:
        """只发送 HEAD 请求，此时不返回节点信息."""
        self._http_head_only = head_only
        return self

    def pretty(self, pretty: bool) -> PingService:
        self._pretty = pretty
        return self

    async def do(self) -> tuple[PingResult | None, int]:
        """执行 Ping.

        Returns:
            (节点信息, HTTP 状态码)，HEAD 模式下节点信息为 None
        """
        params: dict[str, str | bool] = {}
        if self._timeout:
            params["timeout"] = self._timeout
        if self._pretty:
            params["pretty"] = True

        method = "HEAD" if self._http_head_only else "GET"
        response = await self._client.perform_request(
            RequestOptions(method=method, path="/", params=params, url=self._url)
        )
        if self._http_head_only:
            return None, response.status_code

        payload = response.json()
        if not isinstance(payload, dict):
            return None, response.status_code
        return PingResult.from_dict(payload), response.status_code
