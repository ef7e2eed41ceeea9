"""ElasticClient 单元测试.

覆盖客户端构建（启动健康检查、启动嗅探、插件检查）、
生命周期管理（start / stop / close、上下文管理器）和便捷请求方法。
"""

import asyncio
import logging

import httpx
import pytest

from elasticlink.connection.backoff import ConstantBackoff
from elasticlink.connection.exceptions import (
    ClientError,
    DiscoveryError,
    HealthCheckError,
    PluginNotFoundError,
)
from elasticlink.connection.models import ClientConfig, RequestOptions
from elasticlink.connection.tool import ElasticClient


# ============================================================
# 辅助对象
# ============================================================


class FakeCluster:
    """模拟集群的请求处理函数，记录收到的请求."""

    def __init__(self, nodes_payload, plugins: list[str] | None = None) -> None:
        self.nodes_payload = nodes_payload
        self.plugins = plugins or []
        self.requests: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(f"{request.method} {request.url.path}")
        path = request.url.path
        if path == "/":
            return httpx.Response(
                200,
                json={
                    "name": "node-n1",
                    "cluster_name": "elasticsearch",
                    "version": {"number": "7.17.0", "lucene_version": "8.11.1"},
                    "tagline": "You Know, for Search",
                },
            )
        if path == "/_nodes/http":
            return httpx.Response(
                200, json=self.nodes_payload({"n1": "127.0.0.1:9200", "n2": "127.0.0.1:9201"})
            )
        if path == "/_cluster/health":
            return httpx.Response(200, json={"status": "green"})
        if path == "/_nodes/_all/plugins":
            payload = self.nodes_payload({"n1": "127.0.0.1:9200"})
            payload["nodes"]["n1"]["plugins"] = [{"name": name} for name in self.plugins]
            return httpx.Response(200, json=payload)
        return httpx.Response(404, json={"error": {"type": "not_found", "reason": path}})


@pytest.fixture
def cluster(nodes_payload) -> FakeCluster:
    """模拟的两节点集群."""
    return FakeCluster(nodes_payload)


def _config(handler, **kwargs) -> ClientConfig:
    kwargs.setdefault("sniff_interval", None)
    kwargs.setdefault("healthcheck_interval", None)
    return ClientConfig(
        urls=["http://127.0.0.1:9200"], transport=httpx.MockTransport(handler), **kwargs
    )


def _refuse(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("connection refused", request=request)


# ============================================================
# 构建测试
# ============================================================


class TestCreate:
    """客户端构建测试."""

    def test_constructor_does_no_io(self, cluster) -> None:
        """测试构造函数不访问网络、不启动后台任务."""
        client = ElasticClient(_config(cluster))
        assert cluster.requests == []
        assert not client.is_running
        assert client.pool.urls() == ["http://127.0.0.1:9200"]

    def test_create_simple(self, cluster) -> None:
        """测试简单客户端不嗅探、不做健康检查."""

        async def scenario() -> ElasticClient:
            client = await ElasticClient.create_simple(
                _config(cluster, sniff_interval=60.0, healthcheck_interval=60.0)
            )
            assert client.is_running
            assert client._tasks == []
            await client.close()
            return client

        client = asyncio.run(scenario())
        assert cluster.requests == []
        assert client.config.sniff_enabled is False
        assert client.config.healthcheck_enabled is False
        assert client.pool.urls() == ["http://127.0.0.1:9200"]

    def test_create_runs_startup_checks(self, cluster) -> None:
        """测试构建时依次执行启动健康检查、嗅探与强制健康检查."""

        async def scenario() -> ElasticClient:
            client = await ElasticClient.create(_config(cluster))
            await client.close()
            return client

        client = asyncio.run(scenario())

        assert cluster.requests[:2] == ["GET /", "GET /_nodes/http"]
        assert cluster.requests[2:] == ["GET /", "GET /"]
        assert client.pool.urls() == ["http://127.0.0.1:9200", "http://127.0.0.1:9201"]
        assert [conn.node_id for conn in client.pool.connections] == ["n1", "n2"]
        assert not any(conn.is_dead() for conn in client.pool.connections)

    def test_startup_healthcheck_timeout(self) -> None:
        """测试启动健康检查超时时构建失败."""
        config = _config(_refuse, healthcheck_timeout_startup=0.3)
        with pytest.raises(HealthCheckError):
            asyncio.run(ElasticClient.create(config))

    def test_startup_sniff_failure(self) -> None:
        """测试启动嗅探未发现任何节点时构建失败."""
        config = _config(lambda request: httpx.Response(500), healthcheck_enabled=False)
        with pytest.raises(DiscoveryError):
            asyncio.run(ElasticClient.create(config))

    def test_required_plugin_missing(self, nodes_payload) -> None:
        """测试缺少必需插件时构建失败."""
        cluster = FakeCluster(nodes_payload, plugins=["analysis-kuromoji"])
        config = _config(cluster, required_plugins=["analysis-icu"])
        with pytest.raises(PluginNotFoundError, match="plugin analysis-icu not found") as exc_info:
            asyncio.run(ElasticClient.create_simple(config))
        assert exc_info.value.plugin == "analysis-icu"

    def test_required_plugin_present(self, nodes_payload) -> None:
        """测试必需插件都存在时构建成功."""
        cluster = FakeCluster(nodes_payload, plugins=["analysis-icu", "analysis-kuromoji"])
        config = _config(cluster, required_plugins=["analysis-icu"])

        async def scenario() -> None:
            client = await ElasticClient.create_simple(config)
            await client.close()

        asyncio.run(scenario())
        assert cluster.requests == ["GET /_nodes/_all/plugins"]


# ============================================================
# 生命周期管理测试
# ============================================================


class TestLifecycle:
    """start / stop / close 测试."""

    def test_start_stop_idempotent(self, cluster) -> None:
        """测试重复启动与重复停止均为空操作."""
        client = ElasticClient(_config(cluster, sniff_interval=60.0, healthcheck_interval=60.0))

        async def scenario() -> None:
            await client.start()
            await client.start()
            assert client.is_running
            assert len(client._tasks) == 2

            await client.stop()
            await client.stop()
            assert not client.is_running
            assert client._tasks == []

            await client.start()
            assert client.is_running
            await client.close()

        asyncio.run(scenario())
        assert not client.is_running

    def test_start_after_close(self, cluster) -> None:
        """测试关闭后不能再次启动."""
        client = ElasticClient(_config(cluster))

        async def scenario() -> None:
            await client.close()
            with pytest.raises(ClientError, match="已关闭"):
                await client.start()

        asyncio.run(scenario())

    def test_stop_cancels_inflight_healthcheck(self) -> None:
        """测试停止时取消进行中的后台健康检查请求."""
        cancelled = []

        async def handler(request: httpx.Request) -> httpx.Response:
            try:
                await asyncio.sleep(60)
            except asyncio.CancelledError:
                cancelled.append(request.url.path)
                raise
            return httpx.Response(200)

        config = _config(
            handler, sniff_enabled=False, healthcheck_interval=0.05, healthcheck_timeout=30.0
        )
        client = ElasticClient(config)

        async def scenario() -> float:
            loop = asyncio.get_running_loop()
            await client.start()
            await asyncio.sleep(0.2)
            start = loop.time()
            await client.stop()
            elapsed = loop.time() - start
            await client.close()
            return elapsed

        elapsed = asyncio.run(scenario())
        assert elapsed < 2.0
        assert cancelled == ["/"]

    def test_stop_cancels_inflight_sniff(self) -> None:
        """测试停止时取消进行中的后台嗅探请求."""
        cancelled = []

        async def handler(request: httpx.Request) -> httpx.Response:
            try:
                await asyncio.sleep(60)
            except asyncio.CancelledError:
                cancelled.append(request.url.path)
                raise
            return httpx.Response(200)

        config = _config(
            handler, healthcheck_enabled=False, sniff_interval=0.05, sniff_timeout=30.0
        )
        client = ElasticClient(config)

        async def scenario() -> float:
            loop = asyncio.get_running_loop()
            await client.start()
            await asyncio.sleep(0.2)
            start = loop.time()
            await client.stop()
            elapsed = loop.time() - start
            assert client.sniffer.inflight == 0
            await client.close()
            return elapsed

        elapsed = asyncio.run(scenario())
        assert elapsed < 2.0
        assert cancelled == ["/_nodes/http"]
        assert client.pool.urls() == ["http://127.0.0.1:9200"]

    def test_stop_cancels_losing_sniff_request(self, nodes_payload) -> None:
        """测试嗅探胜出后仍在进行的探测在停止时被取消."""
        cancelled = []

        async def handler(request: httpx.Request) -> httpx.Response:
            if request.url.port == 9201:
                try:
                    await asyncio.sleep(60)
                except asyncio.CancelledError:
                    cancelled.append(request.url.port)
                    raise
            return httpx.Response(200, json=nodes_payload({"n1": "127.0.0.1:9200"}))

        config = ClientConfig(
            urls=["http://127.0.0.1:9200", "http://127.0.0.1:9201"],
            transport=httpx.MockTransport(handler),
            healthcheck_enabled=False,
            sniff_interval=None,
        )

        async def scenario() -> None:
            client = await ElasticClient.create(config)
            assert client.sniffer.inflight == 1
            await client.stop()
            assert client.sniffer.inflight == 0
            await client.close()

        asyncio.run(scenario())
        assert cancelled == [9201]

    def test_background_healthcheck_revives_node(self, cluster) -> None:
        """测试后台健康检查将恢复的节点标记为存活."""
        config = _config(cluster, sniff_enabled=False, healthcheck_interval=0.05)
        client = ElasticClient(config)
        (conn,) = client.pool.connections
        conn.mark_dead()

        async def scenario() -> None:
            await client.start()
            await asyncio.sleep(0.2)
            await client.close()

        asyncio.run(scenario())
        assert not conn.is_dead()
        assert "GET /" in cluster.requests

    def test_background_sniff_failure_keeps_running(self, caplog) -> None:
        """测试后台嗅探失败只记录警告，不中断后台任务."""
        calls = {"count": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["count"] += 1
            return httpx.Response(503)

        config = _config(handler, healthcheck_enabled=False, sniff_interval=0.05, sniff_timeout=1.0)
        client = ElasticClient(config)

        async def scenario() -> None:
            await client.start()
            await asyncio.sleep(0.3)
            assert client.is_running
            await client.close()

        with caplog.at_level(logging.WARNING, logger="elasticlink.connection.tool"):
            asyncio.run(scenario())
        assert calls["count"] >= 2
        assert "定时嗅探失败" in caplog.text
        assert client.pool.urls() == ["http://127.0.0.1:9200"]

    def test_async_context_manager(self, cluster) -> None:
        """测试异步上下文管理器退出时关闭客户端."""

        async def scenario() -> ElasticClient:
            async with await ElasticClient.create_simple(_config(cluster)) as client:
                assert client.is_running
                response = await client.perform_request(RequestOptions("GET", "/"))
                assert response.status_code == 200
            return client

        client = asyncio.run(scenario())
        assert not client.is_running
        assert client._closed

    def test_caller_owned_http_client_not_closed(self, cluster) -> None:
        """测试调用方传入的 http_client 不会被关闭."""
        http = httpx.AsyncClient(transport=httpx.MockTransport(cluster))
        config = ClientConfig.simple(urls=["http://127.0.0.1:9200"], http_client=http)

        async def scenario() -> None:
            client = await ElasticClient.create(config)
            await client.close()
            assert not http.is_closed
            await http.aclose()

        asyncio.run(scenario())

    def test_repr(self, cluster) -> None:
        """测试字符串表示."""
        client = ElasticClient(_config(cluster))
        assert repr(client) == "ElasticClient(stopped, pool=['http://127.0.0.1:9200'])"


# ============================================================
# 请求与便捷方法测试
# ============================================================


class TestRequests:
    """请求相关方法测试."""

    def test_recovery_runs_forced_healthcheck(self, cluster) -> None:
        """测试全部节点失效时先强制健康检查，再完成请求."""
        config = _config(cluster, sniff_enabled=False, dead_backoff=ConstantBackoff(60.0))
        client = ElasticClient(config)
        (conn,) = client.pool.connections
        conn.mark_dead()

        async def scenario() -> None:
            response = await client.perform_request(RequestOptions("GET", "/_cluster/health"))
            assert response.json() == {"status": "green"}
            await client.close()

        asyncio.run(scenario())
        assert cluster.requests == ["GET /", "GET /_cluster/health"]
        assert not conn.is_dead()

    def test_healthcheck_disabled_is_noop(self, cluster) -> None:
        """测试健康检查关闭时 healthcheck 不发请求，force=True 时仍执行."""
        client = ElasticClient(_config(cluster, healthcheck_enabled=False, sniff_enabled=False))

        async def scenario() -> None:
            assert await client.healthcheck() == {}
            assert await client.healthcheck(force=True) == {"http://127.0.0.1:9200": True}
            await client.close()

        asyncio.run(scenario())
        assert cluster.requests == ["GET /"]

    def test_sniff_disabled_is_noop(self, cluster) -> None:
        """测试嗅探关闭时 sniff 不发请求."""
        client = ElasticClient(_config(cluster, sniff_enabled=False))

        async def scenario() -> None:
            await client.sniff()
            await client.close()

        asyncio.run(scenario())
        assert cluster.requests == []

    def test_elasticsearch_version(self, cluster) -> None:
        """测试获取节点版本号."""
        client = ElasticClient(_config(cluster))

        async def scenario() -> str:
            version = await client.elasticsearch_version("http://127.0.0.1:9200")
            await client.close()
            return version

        assert asyncio.run(scenario()) == "7.17.0"

    def test_elasticsearch_version_missing(self) -> None:
        """测试节点未返回版本号时抛出异常."""
        client = ElasticClient(_config(lambda request: httpx.Response(200, json={})))

        async def scenario() -> None:
            try:
                with pytest.raises(ClientError, match="未返回版本信息"):
                    await client.elasticsearch_version("http://127.0.0.1:9200")
            finally:
                await client.close()

        asyncio.run(scenario())
