"""
应用配置管理（基于 pydantic-settings）

提供:
- 类型安全的配置
- 环境变量自动绑定（前缀 MILLER_）
- 配置校验
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SyncSettings(BaseSettings):
    """持久化服务同步配置"""
    model_config = SettingsConfigDict(
        env_prefix="MILLER_SYNC_",
        extra="ignore",
    )

    api_url: str = Field(default="http://localhost:8080", description="持久化服务地址")
    debounce_seconds: float = Field(default=1.0, gt=0, description="同步防抖静默期（秒）")
    timeout_seconds: float = Field(default=5.0, gt=0, description="单次请求超时（秒）")

    @field_validator("api_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class LoggingSettings(BaseSettings):
    """日志配置"""
    model_config = SettingsConfigDict(
        env_prefix="MILLER_LOG_",
        extra="ignore",
    )

    level: str = Field(default="INFO", description="日志级别")
    json_format: bool = Field(default=False, description="是否使用 JSON 格式")
    include_timestamp: bool = Field(default=True, description="是否包含时间戳")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v):
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v_upper


class TreeSettings(BaseSettings):
    """树结构与导出配置"""
    model_config = SettingsConfigDict(
        env_prefix="MILLER_TREE_",
        extra="ignore",
    )

    root_label: str = Field(default="Root", description="导出时根窗口的来源标签")
    title_prefix: str = Field(default="New Tab ", description="默认标题前缀")


class MillerSettings(BaseSettings):
    """
    主配置

    统一管理所有子配置，支持从环境变量和 .env 文件加载。
    """
    model_config = SettingsConfigDict(
        env_prefix="MILLER_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # 子配置
    sync: SyncSettings = Field(default_factory=SyncSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    tree: TreeSettings = Field(default_factory=TreeSettings)


@lru_cache
def get_settings() -> MillerSettings:
    """
    获取配置单例

    使用 lru_cache 确保只加载一次配置。
    """
    return MillerSettings()


def get_logging_settings() -> LoggingSettings:
    """获取日志配置"""
    return get_settings().logging


def reload_settings() -> MillerSettings:
    """
    重新加载配置

    清除缓存并重新加载配置。
    """
    get_settings.cache_clear()
    return get_settings()
