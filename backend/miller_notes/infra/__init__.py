"""
基础设施

提供与树结构无关的配套组件:
- 配置管理 (pydantic-settings)
- 结构化日志 (structlog)
- 持久化同步 (httpx)
"""
