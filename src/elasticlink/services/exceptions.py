"""请求服务异常定义模块."""

from ..exceptions import ElasticLinkError


class ServiceError(ElasticLinkError):
    """请求服务基础异常类."""

    pass


class ServiceValidationError(ServiceError):
    """请求参数校验异常.

    缺少必需参数时抛出，例如 ExistsService 未设置 index 或 id。
    """

    def __init__(self, missing: list[str]) -> None:
        self.missing = missing
        super().__init__(f"missing required fields: {missing}")
