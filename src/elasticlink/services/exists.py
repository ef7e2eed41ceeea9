"""文档存在性检查服务模块."""

from __future__ import annotations

from typing import TYPE_CHECKING
from urllib.parse import quote

from ..connection.exceptions import StatusError
from ..connection.models import RequestOptions
from .exceptions import ServiceValidationError

if TYPE_CHECKING:
    from ..connection.tool import ElasticClient


class ExistsService:
    """检查文档是否存在（HEAD /{index}/_doc/{id}）.

    404 通过忽略列表视为正常结果，其余非 2xx 状态码抛出 StatusError。

    Examples:
        >>> exists = await ExistsService(client).index("logs").id("1").do()
    """

    def __init__(self, client: ElasticClient) -> None:
        self._client = client
        self._index = ""
        self._id = ""
        self._routing: str | None = None
        self._preference: str | None = None
        self._realtime: bool | None = None
        self._refresh: str | None = None

    def index(self, index: str) -> ExistsService:
        self._index = index
        return self

    def id(self, doc_id: str) -> ExistsService:
        self._id = doc_id
        return self

    def routing(self, routing: str) -> ExistsService:
        self._routing = routing
        return self

    def preference(self, preference: str) -> ExistsService:
        self._preference = preference
        return self

    def realtime(self, realtime: bool) -> ExistsService:
        self._realtime = realtime
        return self

    def refresh(self, refresh: str) -> ExistsService:
        self._refresh = refresh
        return self

    def validate(self) -> None:
        """校验必需参数.

        Raises:
            ServiceValidationError: 缺少 index 或 id
        """
        missing: list[str] = []
        if not self._id:
            missing.append("Id")
        if not self._index:
            missing.append("Index")
        if missing:
            raise ServiceValidationError(missing)

    def build_url(self) -> tuple[str, dict[str, str | bool]]:
        path = f"/{quote(self._index, safe='')}/_doc/{quote(self._id, safe='')}"
        params: dict[str, str | bool] = {}
        if self._realtime is not None:
            params["realtime"] = self._realtime
        if self._refresh:
            params["refresh"] = self._refresh
        if self._routing:
            params["routing"] = self._routing
        if self._preference:
            params["preference"] = self._preference
        return path, params

    async def do(self) -> bool:
        self.validate()
        path, params = self.build_url()
        response = await self._client.perform_request(
            RequestOptions(method="HEAD", path=path, params=params, ignore_errors=[404])
        )
        if response.status_code == 200:
            return True
        if response.status_code == 404:
            return False
        raise StatusError.from_response(response)
