"""
同步模块

- DebouncedTask: 可取消的防抖调度
- TabsClient: 持久化服务 /tabs 客户端
- TabSyncService: 标签页树与持久化服务之间的同步
"""

from .debounce import DebouncedTask
from .tab_sync import TabSyncService, rebuild_windows
from .tabs_client import TabsClient

__all__ = [
    'DebouncedTask',
    'TabsClient',
    'TabSyncService',
    'rebuild_windows',
]
