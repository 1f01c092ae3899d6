"""
工作区 - 应用根对象

持有唯一的树存储、导航控制器、视图状态、导出选择和同步服务，
对外提供用户层面的操作。数据流：

    用户操作 -> TreeStore 变更原语 -> 导航路径修复 -> 同步调度
    TreeStore -> 视图投影 -> 渲染
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Union

from miller_notes.infra.settings import MillerSettings, get_settings
from miller_notes.infra.sync import TabsClient, TabSyncService
from miller_notes.tab_hub.core.models import DeletionResult, Item, SortMode
from miller_notes.tab_hub.core.store import TreeStore
from miller_notes.tab_hub.services import (
    ExportFormat,
    ExportSelection,
    ImportResult,
    NavigationController,
    TabTransferService,
    ViewState,
)

logger = logging.getLogger(__name__)

ConfirmCallback = Callable[[Item], bool]


def delete_prompt(item: Item) -> str:
    """删除确认提示语"""
    return (
        f'Are you sure you want to delete "{item.title}"? '
        f'This will also delete all nested sub-items.'
    )


@dataclass
class Column:
    """一列的渲染数据"""
    window_id: str
    depth: int
    header: str
    collapsed: bool
    items: List[Item] = field(default_factory=list)
    active_item_id: Optional[str] = None
    branch_item_ids: List[str] = field(default_factory=list)

    def is_active(self, item: Item) -> bool:
        return item.id == self.active_item_id

    def on_branch(self, item: Item) -> bool:
        return item.id in self.branch_item_ids


class Workspace:
    """
    工作区

    使用示例:
        async with Workspace() as ws:
            await ws.load()
            item = ws.add_item("root")
            ws.open_item("root", item.id, depth=0)
            ws.edit_content("<p>hello</p>")
    """

    def __init__(
        self,
        settings: Optional[MillerSettings] = None,
        client: Optional[TabsClient] = None,
        store: Optional[TreeStore] = None,
    ):
        """
        初始化工作区

        Args:
            settings: 配置，默认从环境变量加载
            client: 持久化服务客户端，默认按配置创建
            store: 树存储，默认新建空树
        """
        self.settings = settings if settings is not None else get_settings()
        self.store = store if store is not None else TreeStore(title_prefix=self.settings.tree.title_prefix)
        self.navigation = NavigationController(self.store)
        self.view = ViewState()
        self.selection = ExportSelection(self.store)
        self.transfer = TabTransferService(self.store, root_label=self.settings.tree.root_label)
        if client is None:
            client = TabsClient(
                self.settings.sync.api_url,
                timeout=self.settings.sync.timeout_seconds,
            )
        self.client = client
        self.sync = TabSyncService(
            self.store,
            self.client,
            debounce_seconds=self.settings.sync.debounce_seconds,
        )

    # ==================== 生命周期 ====================

    async def load(self) -> int:
        """从持久化服务加载并开始同步"""
        count = await self.sync.load(title_prefix=self.settings.tree.title_prefix)
        self.navigation.reset()
        self.selection.clear()
        self.sync.attach()
        return count

    async def close(self) -> None:
        """发送挂起的同步并释放客户端"""
        try:
            await self.sync.flush()
        finally:
            self.sync.detach()
            await self.client.aclose()

    async def __aenter__(self) -> "Workspace":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # ==================== 条目操作 ====================

    def add_item(self, window_id: str, title: Optional[str] = None) -> Item:
        return self.store.create_item(window_id, title)

    def rename_item(self, window_id: str, item_id: str, title: str) -> Item:
        return self.store.rename_item(window_id, item_id, title)

    def open_item(self, window_id: str, item_id: str, depth: int) -> str:
        """点击条目：打开子窗口并设为活动条目"""
        return self.navigation.open(window_id, item_id, depth)

    def edit_content(self, html: str) -> bool:
        """编辑器内容变化回调"""
        return self.navigation.push_editor_content(html)

    def delete_item(self, window_id: str, item_id: str, confirm: ConfirmCallback) -> DeletionResult:
        """
        确认后级联删除条目

        Args:
            confirm: 确认回调，收到待删除条目，返回 False 时取消
        """
        window = self.store.get_window(window_id)
        item = window.find_item(item_id) if window is not None else None
        if item is None:
            return DeletionResult()
        if not confirm(item):
            logger.info(f"tab_delete_cancelled: {item_id}")
            return DeletionResult()

        result = self.store.delete_item(window_id, item_id)
        self.navigation.repair_path_after_deletion(result.removed_window_ids, result.removed_item_ids)
        self.view.forget(result.removed_window_ids)
        self.selection.selected.difference_update(result.removed_item_ids)
        return result

    def toggle_collapse(self, window_id: str) -> bool:
        return self.store.toggle_collapse(window_id)

    # ==================== 视图 ====================

    def search(self, window_id: str, query: str) -> None:
        self.view.set_query(window_id, query)

    def sort(self, window_id: str, sort_mode: Union[SortMode, str]) -> SortMode:
        return self.view.set_sort(window_id, sort_mode)

    def columns(self) -> List[Column]:
        """当前活动路径上每一列的渲染数据"""
        branch = self.navigation.ancestor_item_ids()
        columns = []
        for depth, window_id in enumerate(self.navigation.active_path):
            window = self.store.get_window(window_id)
            if window is None:
                continue
            columns.append(Column(
                window_id=window_id,
                depth=depth,
                header=self.navigation.column_header(window_id),
                collapsed=window.collapsed,
                items=[] if window.collapsed else self.view.project_window(self.store, window_id),
                active_item_id=self.navigation.active_item_id,
                branch_item_ids=branch,
            ))
        return columns

    # ==================== 导出 / 导入 ====================

    def export(
        self,
        fmt: Union[ExportFormat, str] = ExportFormat.TEXT,
        selected_ids: Optional[Iterable[str]] = None,
    ) -> str:
        """导出选中的条目（未指定时使用当前导出选择）"""
        ids = self.selection.selected if selected_ids is None else selected_ids
        return self.transfer.export(ids, fmt)

    def import_json(self, payload) -> ImportResult:
        """导入 JSON 导出文件，格式无效时抛出 InvalidFormatError 且不修改现有树"""
        return self.transfer.import_json(payload)
