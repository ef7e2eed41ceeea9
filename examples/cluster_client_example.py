"""集群客户端使用示例.

本文件展示了如何使用 ElasticClient 连接集群、发送请求以及处理常见错误。
运行前请确保本地 9200 端口上有可用的集群。
"""

import asyncio
import logging

from elasticlink import ClientConfig, ElasticClient, RequestOptions, StatusError
from elasticlink.connection import ExponentialBackoff, is_connection_error, is_not_found

logging.basicConfig(level=logging.INFO)

# 请求日志写入独立的日志记录器
request_logger = logging.getLogger("elasticlink.requests")


# ==================== 示例1：简单客户端 ====================
async def example_simple_client():
    """单节点或负载均衡之后的集群：不嗅探、不做健康检查."""
    config = ClientConfig.simple(
        urls=["http://localhost:9200"],
        info_log=request_logger,
    )
    async with await ElasticClient.create_simple(config) as client:
        result, status = await client.ping("http://localhost:9200").do()
        print(f"Ping 状态码: {status}")
        if result is not None:
            print(f"  集群名称: {result.cluster_name}")
            print(f"  版本: {result.version.number}")


# ==================== 示例2：嗅探集群 ====================
async def example_sniffing_client():
    """启用嗅探与健康检查，请求在节点之间轮询."""
    config = ClientConfig(
        urls=["http://localhost:9200"],
        max_retries=3,  # 网络失败时最多尝试3次
        retry_backoff=ExponentialBackoff(0.1, 1.0),
        sniff_interval=60.0,  # 每分钟重新嗅探一次
        node_filter=lambda node: node.has_role("data"),  # 只向数据节点发送请求
        info_log=request_logger,
        error_log=request_logger,
    )
    async with await ElasticClient.create(config) as client:
        print(f"连接池: {client.pool.urls()}")
        for _ in range(3):
            response = await client.perform_request(
                RequestOptions(method="GET", path="/_cluster/health")
            )
            print(f"  {response.url}: {response.json()['status']}")


# ==================== 示例3：错误处理 ====================
async def example_error_handling():
    """区分不存在、业务错误和集群不可达."""
    config = ClientConfig.simple(urls=["http://localhost:9200"])
    async with await ElasticClient.create_simple(config) as client:
        exists = await client.exists().index("users").id("1").do()
        print(f"文档是否存在: {exists}")

        try:
            await client.perform_request(
                RequestOptions(method="GET", path="/missing-index/_search", timeout=5.0)
            )
        except StatusError as e:
            if is_not_found(e):
                print(f"索引不存在: {e.reason}")
            else:
                print(f"请求失败: {e}")
        except Exception as e:
            if is_connection_error(e):
                print(f"集群不可达: {e}")
            raise


async def main():
    """运行所有示例."""
    print("=" * 50)
    print("集群客户端使用示例")
    print("=" * 50)

    print("\n1. 简单客户端示例")
    print("-" * 50)
    await example_simple_client()

    print("\n2. 嗅探集群示例")
    print("-" * 50)
    # 取消注释以下代码以运行嗅探示例（需要多节点集群）
    # await example_sniffing_client()

    print("\n3. 错误处理示例")
    print("-" * 50)
    await example_error_handling()


if __name__ == "__main__":
    asyncio.run(main())
