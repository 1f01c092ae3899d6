"""
导航控制器

维护当前显示的列链（active_path）和活动条目（active_item_id），
并推导活动分支上的祖先条目用于高亮。
"""

import logging
from typing import Iterable, List, Optional

from ..core.models import ROOT_WINDOW_ID
from ..core.store import TreeStore

logger = logging.getLogger(__name__)

ROOT_HEADER = "LIBRARY"
UNKNOWN_HEADER = "SUB-LEVEL"


class NavigationController:
    """
    导航控制器

    active_path 从根窗口开始，后一个窗口总是前一个窗口中某个条目的子窗口。
    活动条目是最后一次点击/打开的条目，不一定位于路径最后一个窗口中。
    """

    def __init__(self, store: TreeStore):
        self.store = store
        self.active_path: List[str] = [ROOT_WINDOW_ID]
        self.active_item_id: Optional[str] = None

    def open(self, window_id: str, item_id: str, depth: int) -> str:
        """
        打开条目并前进导航

        截断路径到 depth + 1 个元素后追加子窗口，
        同时丢弃之前在兄弟条目下打开的更深路径。

        Args:
            window_id: 条目所在窗口
            item_id: 被打开的条目
            depth: 该窗口在 active_path 中的下标

        Returns:
            子窗口 ID
        """
        child_window_id = self.store.open_item(window_id, item_id)
        self.active_item_id = item_id
        self.active_path = self.active_path[:depth + 1] + [child_window_id]
        return child_window_id

    def repair_path_after_deletion(
        self,
        deleted_window_ids: Iterable[str],
        deleted_item_ids: Iterable[str] = (),
    ) -> None:
        """删除后修复导航状态：去掉已删除的窗口，活动条目被删时清空"""
        deleted_windows = set(deleted_window_ids)
        deleted_items = set(deleted_item_ids)

        self.active_path = [
            wid for wid in self.active_path
            if wid == ROOT_WINDOW_ID or wid not in deleted_windows
        ]

        if self.active_item_id is None:
            return
        if self.active_item_id in deleted_items or self.store.get_item(self.active_item_id) is None:
            logger.debug(f"active_tab_cleared: {self.active_item_id}")
            self.active_item_id = None

    def reset(self) -> None:
        """回到只显示根窗口的初始状态"""
        self.active_path = [ROOT_WINDOW_ID]
        self.active_item_id = None

    def ancestor_item_ids(self, path: Optional[List[str]] = None) -> List[str]:
        """路径上每个非根窗口的拥有者条目 ID（活动分支高亮用）"""
        result = []
        for window_id in path if path is not None else self.active_path:
            owner = self.store.owner_of(window_id)
            if owner is not None:
                result.append(owner.id)
        return result

    def column_header(self, window_id: str) -> str:
        """列标题：根窗口为 LIBRARY，其余为拥有者标题的大写形式"""
        if window_id == ROOT_WINDOW_ID:
            return ROOT_HEADER
        owner = self.store.owner_of(window_id)
        if owner is None:
            return UNKNOWN_HEADER
        return owner.title.upper()

    # ==================== 编辑器桥接 ====================

    def active_content(self) -> str:
        """活动条目的 HTML 内容（无活动条目时为空串）"""
        if self.active_item_id is None:
            return ""
        item = self.store.get_item(self.active_item_id)
        return item.content if item is not None else ""

    def push_editor_content(self, html: str) -> bool:
        """编辑器推送整段 HTML，仅在存在活动条目时写回"""
        if self.active_item_id is None:
            return False
        return self.store.set_content(self.active_item_id, html)
