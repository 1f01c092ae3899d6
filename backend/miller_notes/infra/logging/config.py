"""
结构化日志配置

提供统一的日志格式和配置，支持:
- 控制台输出（开发环境）
- JSON 格式输出（生产环境）
"""

import logging
import sys
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional

import structlog

if TYPE_CHECKING:
    from ..settings import LoggingSettings


class LogFormat(str, Enum):
    """日志格式"""
    JSON = "json"
    CONSOLE = "console"


@dataclass
class LogConfig:
    """日志配置"""
    level: str = "INFO"
    format: LogFormat = LogFormat.CONSOLE
    add_timestamp: bool = True

    @classmethod
    def from_settings(cls, settings: "LoggingSettings") -> "LogConfig":
        """从 LoggingSettings 创建配置"""
        return cls(
            level=settings.level,
            format=LogFormat.JSON if settings.json_format else LogFormat.CONSOLE,
            add_timestamp=settings.include_timestamp,
        )


def configure_logging(config: Optional[LogConfig] = None):
    """
    配置结构化日志

    Args:
        config: 日志配置，None 则从 MILLER_LOG_* 环境变量读取
    """
    if config is None:
        from ..settings import get_logging_settings
        config = LogConfig.from_settings(get_logging_settings())

    log_level = getattr(logging, config.level, logging.INFO)

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if config.add_timestamp:
        shared_processors.insert(0, structlog.processors.TimeStamper(fmt="iso"))

    # 渲染工作由标准库 logging 的 ProcessorFormatter 完成
    processors = [structlog.stdlib.filter_by_level, *shared_processors]
    processors.append(structlog.stdlib.ProcessorFormatter.wrap_for_formatter)

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    if config.format == LogFormat.JSON:
        formatter = structlog.stdlib.ProcessorFormatter(
            processor=structlog.processors.JSONRenderer(ensure_ascii=False),
            foreign_pre_chain=shared_processors,
        )
    else:
        formatter = structlog.stdlib.ProcessorFormatter(
            processor=structlog.dev.ConsoleRenderer(
                colors=sys.stderr.isatty(),
                exception_formatter=structlog.dev.plain_traceback,
            ),
            foreign_pre_chain=shared_processors,
        )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(console_handler)
    root_logger.setLevel(log_level)

    # 第三方库日志级别
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """
    获取结构化日志器

    Args:
        name: 日志器名称

    Returns:
        structlog BoundLogger

    使用示例:
        logger = get_logger(__name__)
        logger.info("tabs_imported", count=12)
    """
    return structlog.get_logger(name)


def bind_command_context(command: str):
    """绑定 CLI 命令上下文到日志"""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(command=command)


def clear_command_context():
    """清除命令上下文"""
    structlog.contextvars.clear_contextvars()
