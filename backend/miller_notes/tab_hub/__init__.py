"""
标签页树领域模块

Miller 列式分层笔记的核心：
- 窗口（列）与条目（标签页）组成的森林
- 创建 / 重命名 / 打开 / 级联删除等变更原语
- 导航路径、视图投影（搜索 + 排序）
- 导出 / 导入（按来源标题重建层级）
"""

from .core.models import ROOT_WINDOW_ID, Item, SortMode, Window
from .core.store import TreeStore
from .services import (
    ExportFormat,
    ExportSelection,
    NavigationController,
    TabTransferService,
    ViewState,
    project,
)

__all__ = [
    'ROOT_WINDOW_ID',
    'Item',
    'SortMode',
    'Window',
    'TreeStore',
    'ExportFormat',
    'ExportSelection',
    'NavigationController',
    'TabTransferService',
    'ViewState',
    'project',
]
