"""请求服务模块 - 基于 ElasticClient.perform_request 的轻量请求构建器.

主要组件:
    - PingService: 检查节点可用性并获取版本信息
    - ExistsService: 检查文档是否存在
    - NodesInfoService: 获取集群节点信息

使用示例:
    from elasticlink.services import ExistsService

    exists = await ExistsService(client).index("logs").id("1").do()
"""

from .exceptions import ServiceError, ServiceValidationError
from .exists import ExistsService
from .models import NodesInfoNode, NodesInfoResponse, PingResult, PingVersion
from .nodes_info import NodesInfoService
from .ping import PingService

__all__ = [
    # 服务
    "PingService",
    "ExistsService",
    "NodesInfoService",
    # 模型
    "PingResult",
    "PingVersion",
    "NodesInfoNode",
    "NodesInfoResponse",
    # 异常
    "ServiceError",
    "ServiceValidationError",
]
