"""
核心层：数据模型和存储

- 窗口 / 条目数据模型
- 树存储与变更原语
- 导出 / 持久化记录的 Pydantic 模型
"""

from .models import (
    ROOT_WINDOW_ID,
    DeletionResult,
    Item,
    ItemSnapshot,
    SortMode,
    Window,
    window_id_for,
)
from .schemas import ExportRecord, TabRecord
from .store import TreeStore, check_forest

__all__ = [
    'ROOT_WINDOW_ID',
    'DeletionResult',
    'Item',
    'ItemSnapshot',
    'SortMode',
    'Window',
    'window_id_for',
    'ExportRecord',
    'TabRecord',
    'TreeStore',
    'check_forest',
]
