"""连接管理模块 - 管理节点连接池、节点嗅探、健康检查和请求执行.

主要组件:
    - ElasticClient: 客户端，负责构建、生命周期管理和请求入口
    - NodePool: 带失效感知的轮询连接池
    - Sniffer: 节点嗅探器
    - HealthChecker: 健康检查器
    - RequestExecutor: 请求执行与重试
    - ClientConfig / RequestOptions / Response: 配置与请求响应模型

使用示例:
    from elasticlink.connection import ClientConfig, ElasticClient, RequestOptions

    client = await ElasticClient.create(ClientConfig(urls=["http://localhost:9200"]))
    response = await client.perform_request(RequestOptions("GET", "/"))
    await client.close()
"""

from .backoff import Backoff, ConstantBackoff, ExponentialBackoff, ZeroBackoff
from .exceptions import (
    ClientError,
    ConnectionConfigError,
    ConnectionFailedError,
    ContextError,
    DeadlineExceededError,
    DiscoveryError,
    HealthCheckError,
    NoConnectionError,
    PluginNotFoundError,
    ResponseTooLargeError,
    SerializationError,
    StatusError,
    TransportError,
    is_conflict,
    is_connection_error,
    is_context_error,
    is_not_found,
    is_timeout,
)
from .healthcheck import HealthChecker
from .logs import LoggerSink, LogSink, NullSink
from .models import (
    ClientConfig,
    NodeConnection,
    NodeState,
    NodeStatus,
    RequestOptions,
    Response,
)
from .pool import NodePool
from .sniffer import DiscoveredNode, Sniffer, extract_hostname
from .tool import ElasticClient
from .transport import RequestExecutor

__all__ = [
    # 客户端
    "ElasticClient",
    # 核心组件
    "NodePool",
    "Sniffer",
    "HealthChecker",
    "RequestExecutor",
    "extract_hostname",
    # 模型
    "ClientConfig",
    "NodeConnection",
    "NodeState",
    "NodeStatus",
    "DiscoveredNode",
    "RequestOptions",
    "Response",
    # 退避策略
    "Backoff",
    "ZeroBackoff",
    "ConstantBackoff",
    "ExponentialBackoff",
    # 日志输出
    "LogSink",
    "NullSink",
    "LoggerSink",
    # 异常
    "ClientError",
    "ConnectionConfigError",
    "SerializationError",
    "ResponseTooLargeError",
    "StatusError",
    "PluginNotFoundError",
    "ContextError",
    "DeadlineExceededError",
    "ConnectionFailedError",
    "NoConnectionError",
    "TransportError",
    "DiscoveryError",
    "HealthCheckError",
    "is_connection_error",
    "is_context_error",
    "is_not_found",
    "is_conflict",
    "is_timeout",
]
