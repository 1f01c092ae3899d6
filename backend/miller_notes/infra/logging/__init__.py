"""
结构化日志模块

基于 structlog 提供统一的日志配置。
"""

from .config import (
    LogConfig,
    LogFormat,
    bind_command_context,
    clear_command_context,
    configure_logging,
    get_logger,
)

__all__ = [
    "configure_logging",
    "get_logger",
    "LogConfig",
    "LogFormat",
    "bind_command_context",
    "clear_command_context",
]
