"""
Core - 通用应用基础设施

提供与具体领域无关的统一异常体系。
"""

from .exceptions import (
    ApplicationError,
    ErrorCategory,
    ExternalServiceError,
    InvalidFormatError,
    NotFoundError,
    SyncFailureError,
    ValidationError,
)

__all__ = [
    "ErrorCategory",
    "ApplicationError",
    "NotFoundError",
    "ValidationError",
    "InvalidFormatError",
    "ExternalServiceError",
    "SyncFailureError",
]
