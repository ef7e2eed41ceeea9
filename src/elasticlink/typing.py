"""elasticlink 类型定义模块."""

from collections.abc import Callable, Mapping, Sequence
from typing import Any, Union

# 查询参数类型
# 格式: {参数名: 值 或 值列表}
ParamsDict = Mapping[str, Union[str, int, float, bool, Sequence[str]]]

# 请求头字典类型
HeadersDict = Mapping[str, str]

# 请求体类型（bytes/str 原样发送，其余对象序列化为 JSON）
BodyType = Any

# 节点过滤回调类型
# 参数为嗅探得到的节点信息，返回 False 表示排除该节点
NodeFilter = Callable[[Any], bool]
