"""elasticlink - Elasticsearch 集群连接管理客户端.

这是一个面向 Elasticsearch 集群的异步客户端核心库，负责节点连接池、
节点嗅探、健康检查、节点选择以及请求的执行与重试。

主要功能:
    - ElasticClient: 客户端入口，perform_request 执行任意 REST 请求
    - NodePool: 带失效退避的轮询节点选择
    - Sniffer / HealthChecker: 后台定时嗅探与健康检查
    - PingService / ExistsService / NodesInfoService: 基础请求服务

使用示例:
    from elasticlink import ClientConfig, ElasticClient, RequestOptions

    async with await ElasticClient.create(ClientConfig()) as client:
        response = await client.perform_request(RequestOptions("GET", "/"))
        print(response.json())
"""

__version__ = "0.1.0"

# 导出客户端与模型
from elasticlink.connection import (
    ClientConfig,
    ElasticClient,
    NodeConnection,
    NodePool,
    RequestOptions,
    Response,
)

# 导出异常
from elasticlink.connection.exceptions import (
    ClientError,
    ConnectionConfigError,
    ConnectionFailedError,
    DeadlineExceededError,
    DiscoveryError,
    HealthCheckError,
    NoConnectionError,
    PluginNotFoundError,
    ResponseTooLargeError,
    SerializationError,
    StatusError,
    TransportError,
)
from elasticlink.exceptions import ElasticLinkError

# 导出请求服务
from elasticlink.services import ExistsService, NodesInfoService, PingService

__all__ = [
    # 版本
    "__version__",
    # 客户端
    "ElasticClient",
    "ClientConfig",
    "RequestOptions",
    "Response",
    "NodePool",
    "NodeConnection",
    # 请求服务
    "PingService",
    "ExistsService",
    "NodesInfoService",
    # 异常
    "ElasticLinkError",
    "ClientError",
    "ConnectionConfigError",
    "SerializationError",
    "ResponseTooLargeError",
    "StatusError",
    "PluginNotFoundError",
    "DeadlineExceededError",
    "ConnectionFailedError",
    "NoConnectionError",
    "TransportError",
    "DiscoveryError",
    "HealthCheckError",
]
