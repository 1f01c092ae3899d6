"""
统一异常体系

提供业务层和基础设施层的统一错误处理，包括:
- 业务异常基类 (ApplicationError)
- 树结构操作相关的异常类型 (NotFoundError / InvalidFormatError / SyncFailureError)

业务规则（如同级标题重复）不抛异常，属于合法状态。
"""

from enum import Enum
from typing import Any, Dict, Optional, List
from dataclasses import dataclass


class ErrorCategory(str, Enum):
    """错误分类"""
    VALIDATION = "validation"      # 参数/格式验证错误
    NOT_FOUND = "not_found"        # 窗口或条目不存在
    EXTERNAL = "external"          # 持久化服务错误
    INTERNAL = "internal"          # 内部错误


@dataclass
class ApplicationError(Exception):
    """
    应用层异常基类

    所有业务相关的异常都应继承此类，提供统一的错误结构。

    使用示例:
        raise NotFoundError("窗口", "win-tab-1a2b3c")
        raise InvalidFormatError("导入文件不是记录数组")
        raise SyncFailureError("POST /tabs 失败", cause=exc)
    """
    code: str                                    # 错误码 (如 "NOT_FOUND", "INVALID_FORMAT")
    message: str                                 # 用户可读的错误信息
    category: ErrorCategory = ErrorCategory.INTERNAL
    details: Optional[Dict[str, Any]] = None    # 附加详情
    cause: Optional[Exception] = None           # 原始异常

    def __post_init__(self):
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class NotFoundError(ApplicationError):
    """窗口或条目不存在"""
    def __init__(
        self,
        resource_type: str,
        resource_id: Any,
        details: Optional[Dict] = None
    ):
        super().__init__(
            code="NOT_FOUND",
            message=f"{resource_type}不存在: {resource_id}",
            category=ErrorCategory.NOT_FOUND,
            details=details or {"resource_type": resource_type, "resource_id": str(resource_id)}
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class ValidationError(ApplicationError):
    """参数验证错误"""
    def __init__(
        self,
        message: str,
        errors: Optional[List[Dict[str, Any]]] = None,
        field: Optional[str] = None,
        code: str = "VALIDATION_ERROR",
    ):
        details = {}
        if errors:
            details["validation_errors"] = errors
        if field:
            details["field"] = field

        super().__init__(
            code=code,
            message=message,
            category=ErrorCategory.VALIDATION,
            details=details or None
        )
        self.errors = errors
        self.field = field


class InvalidFormatError(ValidationError):
    """导入数据格式无效（导入中止，现有状态保持不变）"""
    def __init__(
        self,
        message: str,
        errors: Optional[List[Dict[str, Any]]] = None,
    ):
        super().__init__(message, errors=errors, code="INVALID_FORMAT")


class ExternalServiceError(ApplicationError):
    """外部服务错误"""
    def __init__(
        self,
        service_name: str,
        message: str,
        details: Optional[Dict] = None,
        cause: Optional[Exception] = None,
        code: str = "EXTERNAL_SERVICE_ERROR",
    ):
        super().__init__(
            code=code,
            message=f"{service_name}: {message}",
            category=ErrorCategory.EXTERNAL,
            details=details or {"service": service_name},
            cause=cause
        )


class SyncFailureError(ExternalServiceError):
    """持久化同步失败（只记录日志，内存状态仍然正确）"""
    def __init__(self, message: str, tab_id: Optional[str] = None, cause: Optional[Exception] = None):
        details = {"service": "tabs"}
        if tab_id:
            details["tab_id"] = tab_id
        super().__init__(
            "tabs",
            message,
            details=details,
            cause=cause,
            code="SYNC_FAILURE",
        )
        self.tab_id = tab_id


__all__ = [
    "ErrorCategory",
    "ApplicationError",
    "NotFoundError",
    "ValidationError",
    "InvalidFormatError",
    "ExternalServiceError",
    "SyncFailureError",
]
