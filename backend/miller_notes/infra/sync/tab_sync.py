"""
标签页同步服务

将内存中的标签页树与外部持久化服务同步：
- 写入：每次变更后防抖，静默期结束时全量 upsert 每个条目（写后缓存，最后写入者胜出）
- 读取：初始加载时从扁平记录重建森林

记录中的 parent_id 是条目所在窗口的 ID（根窗口为 null）。
子窗口 ID 由拥有者条目 ID 派生（win-<item id>），因此加载时可还原父子链接。
同步失败只记录日志，不重试；下一次变更触发的同步会再次发送完整快照。
"""

import asyncio
import logging
from typing import Dict, List, Optional

from miller_notes.core import SyncFailureError
from miller_notes.tab_hub.core.models import (
    ROOT_WINDOW_ID,
    WINDOW_ID_PREFIX,
    Item,
    Window,
)
from miller_notes.tab_hub.core.schemas import TabRecord
from miller_notes.tab_hub.core.store import DEFAULT_TITLE_PREFIX, TreeStore

from .debounce import DebouncedTask
from .tabs_client import TabsClient

logger = logging.getLogger(__name__)


def _owner_from_window_id(window_id: str) -> Optional[str]:
    if window_id.startswith(WINDOW_ID_PREFIX):
        return window_id[len(WINDOW_ID_PREFIX):]
    return None


def rebuild_windows(records: List[TabRecord]) -> List[Window]:
    """
    从持久化记录重建窗口集合

    - 按 parent_id 分组到窗口，窗口内按 created_at 排序
    - 窗口 win-X 链接到条目 X
    - 找不到拥有者的窗口、以及与根窗口不连通的环，其条目挂到根窗口下

    外部数据不假定满足森林不变式，这里主动修复。
    """
    items: Dict[str, Item] = {}
    placement: Dict[str, str] = {}
    for record in sorted(records, key=lambda r: r.created_at):
        if record.id in items:
            logger.warning(f"tab_record_duplicated: {record.id}, keeping first")
            continue
        items[record.id] = Item(
            id=record.id,
            title=record.title,
            content=record.content,
            created_at=record.created_at,
        )
        placement[record.id] = record.parent_id or ROOT_WINDOW_ID

    windows: Dict[str, Window] = {ROOT_WINDOW_ID: Window(id=ROOT_WINDOW_ID)}
    for item_id, item in items.items():
        window_id = placement[item_id]
        if window_id != ROOT_WINDOW_ID:
            owner_id = _owner_from_window_id(window_id)
            if owner_id is None or owner_id not in items or owner_id == item_id:
                logger.warning(f"tab_orphaned: {item_id} in unknown window {window_id}, moved to root")
                window_id = ROOT_WINDOW_ID
            else:
                items[owner_id].child_window_id = window_id
        windows.setdefault(window_id, Window(id=window_id)).items.append(item)

    # 与根窗口不连通的窗口（拥有者之间成环）
    reachable = {ROOT_WINDOW_ID}
    stack = [ROOT_WINDOW_ID]
    while stack:
        for item in windows[stack.pop()].items:
            child = item.child_window_id
            if child and child not in reachable:
                reachable.add(child)
                stack.append(child)

    for window_id in [wid for wid in windows if wid not in reachable]:
        stranded = windows[window_id].items
        logger.warning(f"tab_cycle_broken: {len(stranded)} items from {window_id} moved to root")
        windows[ROOT_WINDOW_ID].items.extend(stranded)
        windows[window_id].items = []

    return list(windows.values())


class TabSyncService:
    """
    标签页同步服务

    attach() 后订阅存储变更；每次变更重置防抖定时器，
    因此静默期内的多次变更只会产生一次同步，携带最终快照。
    """

    def __init__(
        self,
        store: TreeStore,
        client: TabsClient,
        debounce_seconds: float = 1.0,
    ):
        """
        初始化同步服务

        Args:
            store: 标签页树存储
            client: 持久化服务客户端
            debounce_seconds: 防抖静默期（秒）
        """
        self.store = store
        self.client = client
        self._debouncer = DebouncedTask(self.push_snapshot, debounce_seconds, name="tab_sync")
        self.stats = {"flushes": 0, "synced": 0, "errors": 0}

    # ==================== 调度 ====================

    def attach(self) -> None:
        """订阅存储变更"""
        self.store.add_listener(self.schedule)

    def detach(self) -> None:
        """取消订阅并丢弃挂起的同步"""
        self.store.remove_listener(self.schedule)
        self._debouncer.cancel()

    def schedule(self) -> None:
        """变更回调：重置防抖定时器"""
        self._debouncer.schedule()

    @property
    def pending(self) -> bool:
        return self._debouncer.pending

    async def flush(self, force: bool = False) -> bool:
        """立即同步挂起的快照"""
        return await self._debouncer.flush(force=force)

    # ==================== 写入 ====================

    def build_records(self) -> List[TabRecord]:
        """当前快照转换为持久化记录"""
        return [
            TabRecord(
                id=snap.item.id,
                title=snap.item.title,
                content=snap.item.content,
                parent_id=snap.parent_id,
                created_at=snap.item.created_at,
            )
            for snap in self.store.snapshot()
        ]

    async def push_snapshot(self) -> Dict[str, int]:
        """
        全量 upsert 当前快照

        快照在事件循环线程上同步生成，总是对应某次变更结束时的状态。
        各条目独立发送，批次整体不是原子的。

        Returns:
            {"synced": N, "errors": K}
        """
        records = self.build_records()
        self.stats["flushes"] += 1
        results = await asyncio.gather(*(self._push_one(record) for record in records))

        synced = sum(1 for ok in results if ok)
        errors = len(results) - synced
        self.stats["synced"] += synced
        self.stats["errors"] += errors
        if errors:
            logger.warning(f"tab_sync_partial: {synced} synced, {errors} failed")
        else:
            logger.debug(f"tab_sync_done: {synced} synced")
        return {"synced": synced, "errors": errors}

    async def _push_one(self, record: TabRecord) -> bool:
        try:
            await self.client.upsert(record)
            return True
        except SyncFailureError as e:
            # 同步失败只记录日志，不影响内存状态
            logger.warning(f"tab_sync_failed: {record.id}, {e}")
            return False

    # ==================== 读取 ====================

    async def load(self, title_prefix: str = DEFAULT_TITLE_PREFIX) -> int:
        """
        从持久化服务加载整棵树（不触发同步）

        服务端为空时以一个空条目 "{title_prefix}1" 初始化根窗口。

        Returns:
            加载的条目数

        Raises:
            SyncFailureError: 读取失败（现有状态保持不变）
        """
        records = await self.client.fetch_all()
        if not records:
            seed = Item(id=self.store.allocate_item_id(), title=f"{title_prefix}1", created_at=self.store.now())
            self.store.restore([Window(id=ROOT_WINDOW_ID, items=[seed])], notify=False)
            logger.info("tabs_loaded: empty service, seeded root")
            return 0

        self.store.restore(rebuild_windows(records), notify=False)
        logger.info(f"tabs_loaded: {len(records)} records")
        return len(records)
