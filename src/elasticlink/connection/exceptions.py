"""连接管理异常定义模块.

异常层级::

    ClientError
    ├── ConnectionConfigError      配置不合法
    ├── SerializationError         请求体无法序列化
    ├── ResponseTooLargeError      响应体超过上限
    ├── StatusError                非 2xx 且不在忽略列表中的响应
    ├── PluginNotFoundError        缺少必需的服务端插件
    ├── ContextError               调用方放弃（超出截止时间）
    │   └── DeadlineExceededError
    └── ConnectionFailedError      集群不可达
        ├── NoConnectionError      没有可用节点
        ├── TransportError         网络层失败
        ├── DiscoveryError         嗅探未发现任何节点
        └── HealthCheckError       启动健康检查超时
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from ..exceptions import ElasticLinkError

if TYPE_CHECKING:
    from .models import Response


class ClientError(ElasticLinkError):
    """客户端核心基础异常类.

    所有连接管理与请求执行相关异常的基类，继承自 ElasticLinkError。
    """

    pass


class ConnectionConfigError(ClientError):
    """连接配置校验异常.

    当客户端配置参数不合法时抛出，例如 urls 为空、URL 缺少协议等。
    """

    pass


class SerializationError(ClientError):
    """请求体序列化异常.

    请求体无法编码为 JSON 时抛出。此时不会联系任何节点，也不会重试。
    """

    pass


class ResponseTooLargeError(ClientError):
    """响应体过大异常.

    响应体超过 RequestOptions.max_response_size 时立即抛出，不会继续读取。
    """

    def __init__(self, limit: int, url: str | None = None) -> None:
        self.limit = limit
        self.url = url
        super().__init__(f"响应体超过上限 {limit} 字节")


class StatusError(ClientError):
    """HTTP 状态码异常.

    节点返回了非 2xx 且不在忽略列表中的状态码。节点本身是存活的，
    因此不会重试；原始响应保存在 ``response`` 属性中供调用方检查。

    Attributes:
        status: HTTP 状态码
        response: 原始响应
        error_type: 引擎返回的错误类型（如 index_not_found_exception）
        reason: 引擎返回的错误原因
    """

    def __init__(
        self,
        status: int,
        response: Response | None = None,
        error_type: str | None = None,
        reason: str | None = None,
    ) -> None:
        self.status = status
        self.response = response
        self.error_type = error_type
        self.reason = reason
        if error_type or reason:
            message = f"Error {status}: {reason or ''} [type={error_type or ''}]"
        else:
            message = f"Error {status}"
        super().__init__(message)

    @classmethod
    def from_response(cls, response: Response) -> StatusError:
        """根据响应构建异常，尽量解析引擎的 error 信封."""
        error_type: str | None = None
        reason: str | None = None
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if isinstance(payload, dict):
            error = payload.get("error")
            if isinstance(error, dict):
                error_type = error.get("type")
                reason = error.get("reason")
            elif isinstance(error, str):
                reason = error
        return cls(response.status_code, response, error_type, reason)


class PluginNotFoundError(ClientError):
    """必需插件缺失异常.

    在客户端构建阶段检查 required_plugins 时抛出。
    """

    def __init__(self, plugin: str) -> None:
        self.plugin = plugin
        super().__init__(f"plugin {plugin} not found")


class ContextError(ClientError):
    """调用方上下文异常.

    用于区分 "调用方放弃" 与 "网络失败"，不会重试。
    """

    pass


class DeadlineExceededError(ContextError, TimeoutError):
    """请求超出调用方设定的截止时间."""

    pass


class ConnectionFailedError(ClientError):
    """集群不可达类异常的基类."""

    pass


class NoConnectionError(ConnectionFailedError):
    """没有可用连接异常.

    连接池为空，或所有节点都处于失效退避期时抛出。
    """

    def __init__(self, message: str = "没有可用的连接") -> None:
        super().__init__(message)


class TransportError(ConnectionFailedError):
    """网络层异常.

    DNS 解析失败、连接被拒绝、TLS 失败、在收到响应头之前超时、
    响应体读取中断或无法解码等。

    Attributes:
        url: 出错的节点请求地址
        cause: 底层异常
    """

    def __init__(self, url: str, cause: BaseException | None = None) -> None:
        self.url = url
        self.cause = cause
        detail = f"{type(cause).__name__}: {cause}" if cause is not None else "未知错误"
        super().__init__(f"请求 {url} 失败: {detail}")


class DiscoveryError(ConnectionFailedError):
    """嗅探失败异常.

    所有种子节点均未返回任何节点信息时抛出，连接池保持不变。
    """

    pass


class HealthCheckError(ConnectionFailedError):
    """健康检查异常.

    启动健康检查在超时时间内没有任何节点响应时抛出。
    """

    pass


def is_connection_error(exc: BaseException | None) -> bool:
    """判断异常是否属于集群不可达类."""
    return isinstance(exc, ConnectionFailedError)


def is_context_error(exc: BaseException | None) -> bool:
    """判断异常是否来自调用方取消或截止时间."""
    return isinstance(exc, (ContextError, asyncio.CancelledError))


def is_status(exc: BaseException | None, status: int) -> bool:
    """判断异常是否为指定状态码的 StatusError."""
    return isinstance(exc, StatusError) and exc.status == status


def is_not_found(exc: BaseException | None) -> bool:
    """判断异常是否为 404."""
    return is_status(exc, 404)


def is_conflict(exc: BaseException | None) -> bool:
    """判断异常是否为 409."""
    return is_status(exc, 409)


def is_timeout(exc: BaseException | None) -> bool:
    """判断异常是否为超时（调用方截止时间、408 或网络层超时）."""
    if isinstance(exc, DeadlineExceededError) or is_status(exc, 408):
        return True
    if isinstance(exc, TransportError):
        return isinstance(exc.cause, TimeoutError) or "Timeout" in type(exc.cause).__name__
    return False
