"""请求执行模块.

RequestExecutor 负责单次逻辑请求的完整流程：

1. 序列化请求体（失败立即抛出 SerializationError，不联系任何节点）
2. 选择节点并发送请求，最多尝试 ``max(max_retries, 1)`` 次
3. 按结果分类：
   - 网络层失败（含响应体读取或解码失败）：标记节点失效，换下一个节点重试
   - 全部节点失效：连接池强制恢复后立即重新选择，不消耗尝试次数
   - 状态码在忽略列表中，或为 2xx：返回响应
   - 其他状态码：节点仍视为存活，抛出携带响应的 StatusError，不重试
4. 调用方取消（CancelledError）与截止时间（DeadlineExceededError）不重试
"""

from __future__ import annotations

import asyncio
import gzip
import json
import logging
import time
from collections.abc import Awaitable, Callable

import httpx

from ..typing import BodyType, HeadersDict, ParamsDict
from .backoff import Backoff, ZeroBackoff
from .exceptions import (
    DeadlineExceededError,
    NoConnectionError,
    ResponseTooLargeError,
    SerializationError,
    StatusError,
    TransportError,
)
from .logs import LogSink, NullSink, dump_request, dump_response, emit, format_request_line
from .models import NodeConnection, RequestOptions, Response
from .pool import NodePool

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/json"


def encode_body(body: BodyType, gzip_enabled: bool = False) -> bytes | None:
    """将请求体编码为字节串.

    bytes 原样使用，str 按 UTF-8 编码，其余对象序列化为 JSON。

    Raises:
        SerializationError: 对象无法序列化为 JSON
    """
    if body is None:
        return None
    if isinstance(body, (bytes, bytearray)):
        data = bytes(body)
    elif isinstance(body, str):
        data = body.encode("utf-8")
    else:
        try:
            data = json.dumps(body, ensure_ascii=False).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise SerializationError(f"请求体无法序列化为 JSON: {e}") from e
    if gzip_enabled:
        data = gzip.compress(data)
    return data


def encode_params(params: ParamsDict | None) -> list[tuple[str, str]]:
    """将查询参数转换为 httpx 可接受的键值对列表，布尔值转为 true/false."""
    if not params:
        return []
    items: list[tuple[str, str]] = []
    for key, value in params.items():
        values = value if isinstance(value, (list, tuple)) else [value]
        for item in values:
            if isinstance(item, bool):
                items.append((key, "true" if item else "false"))
            else:
                items.append((key, str(item)))
    return items


class RequestExecutor:
    """请求执行器.

    Args:
        pool: 连接池
        http: httpx 异步客户端
        max_retries: 单次请求最多尝试的次数（至少一次）
        retry_backoff: 两次尝试之间的等待策略
        headers: 默认请求头
        auth: Basic Auth 凭据
        gzip_enabled: 是否压缩请求体
        send_get_body_as: 带请求体的 GET 请求实际使用的方法
        info_log: 请求日志输出
        error_log: 错误日志输出
        trace_log: 追踪输出
        on_no_connection: 第一次遇到无可用连接时调用的恢复回调
            （如强制健康检查），本次尝试不计入重试次数
    """

    def __init__(
        self,
        pool: NodePool,
        http: httpx.AsyncClient,
        max_retries: int = 0,
        retry_backoff: Backoff | None = None,
        headers: HeadersDict | None = None,
        auth: tuple[str, str] | None = None,
        gzip_enabled: bool = False,
        send_get_body_as: str = "GET",
        info_log: LogSink | None = None,
        error_log: LogSink | None = None,
        trace_log: LogSink | None = None,
        on_no_connection: Callable[[], Awaitable[None]] | None = None,
    ) -> None:
        self.pool = pool
        self.http = http
        self.max_retries = max_retries
        self.retry_backoff = retry_backoff or ZeroBackoff()
        self.headers = dict(headers or {})
        self.auth = auth
        self.gzip_enabled = gzip_enabled
        self.send_get_body_as = send_get_body_as
        self.info_log = info_log or NullSink()
        self.error_log = error_log or NullSink()
        self.trace_log = trace_log or NullSink()
        self.on_no_connection = on_no_connection

    @property
    def max_attempts(self) -> int:
        return max(self.max_retries, 1)

    async def perform_request(self, options: RequestOptions) -> Response:
        """执行一次逻辑请求.

        Raises:
            SerializationError: 请求体无法序列化
            DeadlineExceededError: 超过 options.timeout
            NoConnectionError: 最后一次尝试时没有可用连接
            TransportError: 所有尝试均在网络层失败
            StatusError: 非 2xx 且不在忽略列表中（携带响应）
            ResponseTooLargeError: 响应体超过上限
            asyncio.CancelledError: 调用方取消
        """
        body = encode_body(options.body, self.gzip_enabled)
        if options.timeout is None:
            return await self._perform(options, body)

        deadline = asyncio.timeout(options.timeout)
        try:
            async with deadline:
                return await self._perform(options, body)
        except TimeoutError as e:
            if deadline.expired():
                raise DeadlineExceededError(
                    f"请求 {options.method} {options.path} 超过截止时间 {options.timeout}s"
                ) from e
            raise

    async def _perform(self, options: RequestOptions, body: bytes | None) -> Response:
        attempts = self.max_attempts
        attempt = 0
        recovered = False
        last_error: TransportError | None = None

        while attempt < attempts:
            attempt += 1

            conn: NodeConnection | None
            if options.url:
                base_url = options.url
                conn = self.pool.find(options.url.rstrip("/"))
            else:
                try:
                    conn = self.pool.next()
                except NoConnectionError as e:
                    if not recovered and self.on_no_connection is not None:
                        recovered = True
                        await self.on_no_connection()
                    # 全部失效时连接池已强制恢复，立即重新选择，不消耗尝试次数
                    try:
                        conn = self.pool.next()
                    except NoConnectionError:
                        if attempt >= attempts:
                            raise e from last_error
                        await self._wait(attempt)
                        continue
                base_url = conn.url

            request = self._build_request(options, base_url, body)
            emit(self.trace_log, dump_request(request, body))

            start = time.perf_counter()
            try:
                response = await self._send(request)
            except httpx.TransportError as e:
                last_error = self._on_transport_error(conn, request, e)
                if attempt >= attempts:
                    raise last_error from e
                await self._wait(attempt)
                continue

            try:
                content = await self._read_body(response, options.max_response_size, base_url)
            except (httpx.TransportError, httpx.DecodingError) as e:
                last_error = self._on_transport_error(conn, request, e)
                if attempt >= attempts:
                    raise last_error from e
                await self._wait(attempt)
                continue
            finally:
                await response.aclose()

            duration = time.perf_counter() - start
            emit(self.trace_log, dump_response(response, content))
            for warning in response.headers.get_list("Warning"):
                emit(self.error_log, f"Deprecation warning: {warning}")

            result = Response(
                status_code=response.status_code,
                headers=response.headers,
                body=content,
                url=base_url,
            )
            emit(
                self.info_log,
                format_request_line(request.method, str(request.url), result.status_code, duration),
            )

            # 节点返回了响应，说明节点本身是存活的
            if conn is not None:
                conn.mark_healthy()
            if result.status_code in options.ignore_errors or result.ok:
                return result
            raise StatusError.from_response(result)

        raise last_error or NoConnectionError()

    def _build_request(
        self, options: RequestOptions, base_url: str, body: bytes | None
    ) -> httpx.Request:
        method = options.method
        if method == "GET" and body is not None and self.send_get_body_as != "GET":
            method = self.send_get_body_as

        headers = httpx.Headers(options.headers or {})
        for name, value in self.headers.items():
            if name not in headers:
                headers[name] = value
        if body is not None:
            if "Content-Type" not in headers:
                headers["Content-Type"] = options.content_type or DEFAULT_CONTENT_TYPE
            if self.gzip_enabled:
                headers["Content-Encoding"] = "gzip"

        return self.http.build_request(
            method,
            base_url.rstrip("/") + options.path,
            params=encode_params(options.params),
            headers=headers,
            content=body,
        )

    async def _send(self, request: httpx.Request) -> httpx.Response:
        if self.auth is not None:
            return await self.http.send(request, auth=self.auth, stream=True)
        return await self.http.send(request, stream=True)

    async def _read_body(
        self, response: httpx.Response, limit: int | None, url: str
    ) -> bytes:
        """读取响应体，超过上限时立即中止且不继续缓存."""
        if limit is None:
            return await response.aread()

        length = response.headers.get("Content-Length")
        if length is not None and length.isdigit() and int(length) > limit:
            raise ResponseTooLargeError(limit, url)

        buffer = bytearray()
        async for chunk in response.aiter_bytes():
            if len(buffer) + len(chunk) > limit:
                raise ResponseTooLargeError(limit, url)
            buffer.extend(chunk)
        return bytes(buffer)

    def _on_transport_error(
        self, conn: NodeConnection | None, request: httpx.Request, error: httpx.RequestError
    ) -> TransportError:
        url = str(request.url)
        if conn is not None:
            conn.mark_dead()
            emit(self.error_log, f"elastic: {conn.url} is dead")
        logger.debug(f"请求 {request.method} {url} 失败: {error!r}")
        return TransportError(url, error)

    async def _wait(self, attempt: int) -> None:
        delay = self.retry_backoff.next(attempt)
        if delay > 0:
            await asyncio.sleep(delay)
