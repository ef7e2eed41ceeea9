"""节点信息服务模块."""

from __future__ import annotations

from typing import TYPE_CHECKING
from urllib.parse import quote

from ..connection.models import RequestOptions
from .models import NodesInfoResponse

if TYPE_CHECKING:
    from ..connection.tool import ElasticClient


class NodesInfoService:
    """获取集群节点信息（GET /_nodes/{node_id}/{metric}）.

    Examples:
        >>> info = await NodesInfoService(client).metric("plugins").do()
        >>> info.plugin_names()
        {'analysis-icu'}
    """

    def __init__(self, client: ElasticClient) -> None:
        self._client = client
        self._node_ids: list[str] = ["_all"]
        self._metrics: list[str] = ["_all"]
        self._flat_settings: bool | None = None
        self._human: bool | None = None

    def node_id(self, *node_ids: str) -> NodesInfoService:
        self._node_ids = list(node_ids)
        return self

    def metric(self, *metrics: str) -> NodesInfoService:
        self._metrics = list(metrics)
        return self

    def flat_settings(self, flat_settings: bool) -> NodesInfoService:
        self._flat_settings = flat_settings
        return self

    def human(self, human: bool) -> NodesInfoService:
        self._human = human
        return self

    def build_url(self) -> tuple[str, dict[str, bool]]:
        node_ids = ",".join(self._node_ids) or "_all"
        metrics = ",".join(self._metrics) or "_all"
        path = f"/_nodes/{quote(node_ids, safe=',_')}/{quote(metrics, safe=',_')}"
        params: dict[str, bool] = {}
        if self._flat_settings is not None:
            params["flat_settings"] = self._flat_settings
        if self._human is not None:
            params["human"] = self._human
        return path, params

    async def do(self) -> NodesInfoResponse:
        path, params = self.build_url()
        response = await self._client.perform_request(
            RequestOptions(method="GET", path=path, params=params)
        )
        return NodesInfoResponse.from_dict(response.json())
