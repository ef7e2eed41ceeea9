"""测试公共 fixtures."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import httpx
import pytest


class FakeClock:
    """可手动推进的单调时钟."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _nodes_payload(
    nodes: dict[str, str | None], cluster_name: str = "elasticsearch"
) -> dict[str, Any]:
    payload: dict[str, Any] = {"cluster_name": cluster_name, "nodes": {}}
    for node_id, address in nodes.items():
        node: dict[str, Any] = {"name": f"node-{node_id}", "roles": ["data", "master"]}
        if address is not None:
            node["http"] = {"publish_address": address}
        payload["nodes"][node_id] = node
    return payload


@pytest.fixture
def clock() -> FakeClock:
    """可手动推进的时钟."""
    return FakeClock()


@pytest.fixture
def mock_http() -> Callable[[Callable[[httpx.Request], Any]], httpx.AsyncClient]:
    """返回工厂函数：根据请求处理函数创建使用 MockTransport 的 httpx 异步客户端."""

    def factory(handler: Callable[[httpx.Request], Any]) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return factory


@pytest.fixture
def nodes_payload() -> Callable[..., dict[str, Any]]:
    """返回工厂函数：构造 GET /_nodes/http 的响应体.

    参数为以节点 ID 为键、HTTP 发布地址为值的字典，值为 None 表示缺少 http 段。
    """
    return _nodes_payload
