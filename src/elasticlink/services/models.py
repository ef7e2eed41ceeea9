"""请求服务数据模型定义模块.

提供 Ping 与 Nodes Info 接口的响应模型。解析时容忍缺失或格式错误的字段：
格式错误的节点会被跳过，而不是让整个响应解析失败。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class PingVersion:
    """Ping 响应中的版本信息."""

    number: str = ""
    build_flavor: str = ""
    build_hash: str = ""
    build_date: str = ""
    lucene_version: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PingVersion:
        return cls(
            number=str(data.get("number", "")),
            build_flavor=str(data.get("build_flavor", "")),
            build_hash=str(data.get("build_hash", "")),
            build_date=str(data.get("build_date", "")),
            lucene_version=str(data.get("lucene_version", "")),
        )


@dataclass
class PingResult:
    """Ping 响应（GET /）.

    Attributes:
        name: 节点名称
        cluster_name: 集群名称
        cluster_uuid: 集群 UUID
        version: 版本信息
        tagline: 标语
    """

    name: str = ""
    cluster_name: str = ""
    cluster_uuid: str = ""
    version: PingVersion = field(default_factory=PingVersion)
    tagline: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PingResult:
        version = data.get("version")
        return cls(
            name=str(data.get("name", "")),
            cluster_name=str(data.get("cluster_name", "")),
            cluster_uuid=str(data.get("cluster_uuid", "")),
            version=PingVersion.from_dict(version) if isinstance(version, dict) else PingVersion(),
            tagline=str(data.get("tagline", "")),
        )


@dataclass
class NodesInfoNode:
    """单个节点的信息.

    Attributes:
        node_id: 节点 ID
        name: 节点名称
        host: 主机名
        ip: IP 地址
        version: 引擎版本
        roles: 节点角色
        http_publish_address: HTTP 发布地址（如 127.0.0.1:9200）
        plugins: 已安装插件名称列表
        attributes: 节点属性
    """

    node_id: str
    name: str = ""
    host: str = ""
    ip: str = ""
    version: str = ""
    roles: list[str] = field(default_factory=list)
    http_publish_address: str | None = None
    plugins: list[str] = field(default_factory=list)
    attributes: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, node_id: str, data: Any) -> NodesInfoNode | None:
        """解析单个节点，格式错误时返回 None."""
        if not isinstance(data, dict):
            return None

        publish_address: str | None = None
        http = data.get("http")
        if isinstance(http, dict):
            address = http.get("publish_address")
            if isinstance(address, str) and address:
                publish_address = address

        plugins: list[str] = []
        raw_plugins = data.get("plugins")
        if isinstance(raw_plugins, list):
            for plugin in raw_plugins:
                if isinstance(plugin, dict) and plugin.get("name"):
                    plugins.append(str(plugin["name"]))

        roles = data.get("roles")
        attributes = data.get("attributes")
        return cls(
            node_id=node_id,
            name=str(data.get("name", "")),
            host=str(data.get("host", "")),
            ip=str(data.get("ip", "")),
            version=str(data.get("version", "")),
            roles=[str(r) for r in roles] if isinstance(roles, list) else [],
            http_publish_address=publish_address,
            plugins=plugins,
            attributes=attributes if isinstance(attributes, dict) else {},
        )

    def has_role(self, role: str) -> bool:
        return role in self.roles


@dataclass
class NodesInfoResponse:
    """Nodes Info 响应（GET /_nodes/...）.

    Attributes:
        cluster_name: 集群名称
        nodes: 以节点 ID 为键的节点信息（保持响应中的顺序）
    """

    cluster_name: str = ""
    nodes: dict[str, NodesInfoNode] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> NodesInfoResponse:
        if not isinstance(data, dict):
            return cls()
        nodes: dict[str, NodesInfoNode] = {}
        raw_nodes = data.get("nodes")
        if isinstance(raw_nodes, dict):
            for node_id, raw in raw_nodes.items():
                node = NodesInfoNode.from_dict(str(node_id), raw)
                if node is None:
                    logger.debug(f"跳过格式错误的节点信息: {node_id}")
                    continue
                nodes[node.node_id] = node
        return cls(cluster_name=str(data.get("cluster_name", "")), nodes=nodes)

    def plugin_names(self) -> set[str]:
        """集群中所有节点安装的插件名称."""
        return {name for node in self.nodes.values() for name in node.plugins}
