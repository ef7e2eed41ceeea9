"""请求日志与追踪输出模块.

请求路径上的日志输出（info / error / trace）通过 LogSink 写出。
写出失败只会被记录到模块日志中，永远不会影响请求本身。
"""

from __future__ import annotations

import logging
from typing import Protocol, Union, runtime_checkable

import httpx

logger = logging.getLogger(__name__)


@runtime_checkable
class LogSink(Protocol):
    """日志输出接口，每次调用写出一行（或一段）格式化文本."""

    def write(self, line: str) -> None: ...


class NullSink:
    """默认输出，丢弃所有内容."""

    def write(self, line: str) -> None:
        pass


class LoggerSink:
    """将输出转发到标准 logging.Logger.

    Args:
        target: 目标日志记录器
        level: 日志级别，默认 INFO
    """

    def __init__(self, target: logging.Logger, level: int = logging.INFO) -> None:
        self.target = target
        self.level = level

    def write(self, line: str) -> None:
        self.target.log(self.level, line)


SinkLike = Union[LogSink, logging.Logger, None]


def as_sink(value: SinkLike, level: int = logging.INFO) -> LogSink:
    """将配置中的输出对象统一转换为 LogSink."""
    if value is None:
        return NullSink()
    if isinstance(value, logging.Logger):
        return LoggerSink(value, level)
    if isinstance(value, LogSink):
        return value
    raise TypeError(f"不支持的日志输出类型: {type(value).__name__}")


def emit(sink: LogSink, line: str) -> None:
    """写出一行日志，吞掉输出端的任何异常."""
    if isinstance(sink, NullSink):
        return
    try:
        sink.write(line)
    except Exception as e:
        logger.debug(f"日志输出失败: {e}")


def format_request_line(method: str, url: str, status: int, duration: float) -> str:
    """格式化单次请求的 info 日志行.

    Examples:
        >>> format_request_line("get", "http://127.0.0.1:9200/", 200, 0.0123)
        'GET http://127.0.0.1:9200/ [status:200, request:0.012s]'
    """
    return f"{method.upper()} {url} [status:{status}, request:{duration:.3f}s]"


def _format_headers(headers: httpx.Headers) -> str:
    return "\n".join(f"{name}: {value}" for name, value in headers.multi_items())


def _format_body(content: bytes) -> str:
    return content.decode("utf-8", errors="replace")


def dump_request(request: httpx.Request, body: bytes | None = None) -> str:
    """生成请求的追踪文本（请求行、请求头、请求体）."""
    parts = [f"{request.method} {request.url}", _format_headers(request.headers)]
    if body:
        parts.extend(["", _format_body(body)])
    return "\n".join(parts)


def dump_response(
    response: httpx.Response, body: bytes | None = None
) -> str:
    """生成响应的追踪文本（状态行、响应头、响应体）."""
    parts = [
        f"{response.http_version} {response.status_code} {response.reason_phrase}",
        _format_headers(response.headers),
    ]
    if body:
        parts.extend(["", _format_body(body)])
    return "\n".join(parts)
