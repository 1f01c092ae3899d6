"""
标签页树存储层 - 内存数据源

维护窗口与条目组成的森林，提供全部变更原语：
- 创建 / 重命名 / 修改内容 / 打开（惰性创建子窗口）/ 级联删除 / 折叠

存储对象由应用根（Workspace）持有并显式传递，不使用模块级单例。
每次变更成功后通知已注册的监听器（同步调度器在此订阅）。
"""

import copy
import logging
import re
from types import MappingProxyType
from typing import Callable, Iterable, Iterator, List, Mapping, Optional, Tuple

from miller_notes.core import NotFoundError, ValidationError

from .models import (
    ROOT_WINDOW_ID,
    DeletionResult,
    Item,
    ItemSnapshot,
    Window,
    new_item_id,
    now_ms,
    window_id_for,
)

logger = logging.getLogger(__name__)

DEFAULT_TITLE_PREFIX = "New Tab "

ChangeListener = Callable[[], None]

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def _parse_leading_int(text: str) -> Optional[int]:
    """解析字符串开头的整数（"12abc" -> 12，"abc" -> None）"""
    match = _LEADING_INT.match(text)
    if match is None:
        return None
    return int(match.group(1))


def check_forest(windows: Mapping[str, Window]) -> List[str]:
    """
    校验森林不变式

    - 根窗口存在
    - 每个 child_window_id 都指向存在的窗口
    - 每个非根窗口恰好被一个条目拥有，且可从根窗口到达
    - 条目 ID 全局唯一

    Returns:
        违规描述列表，空列表表示结构合法
    """
    violations: List[str] = []
    if ROOT_WINDOW_ID not in windows:
        return ["missing root window"]

    owners: dict[str, str] = {}
    seen_items: set[str] = set()
    for wid, window in windows.items():
        if window.id != wid:
            violations.append(f"window key {wid} does not match id {window.id}")
        for item in window.items:
            if item.id in seen_items:
                violations.append(f"duplicate item id {item.id}")
            seen_items.add(item.id)

            child = item.child_window_id
            if child is None:
                continue
            if child == ROOT_WINDOW_ID:
                violations.append(f"item {item.id} claims the root window")
            elif child not in windows:
                violations.append(f"item {item.id} references missing window {child}")
            elif child in owners:
                violations.append(f"window {child} owned by both {owners[child]} and {item.id}")
            else:
                owners[child] = item.id

    reachable = {ROOT_WINDOW_ID}
    stack = [ROOT_WINDOW_ID]
    while stack:
        for item in windows[stack.pop()].items:
            child = item.child_window_id
            if child in windows and child not in reachable and child != ROOT_WINDOW_ID:
                reachable.add(child)
                stack.append(child)

    for wid in windows:
        if wid == ROOT_WINDOW_ID:
            continue
        if wid not in owners:
            violations.append(f"window {wid} has no owning item")
        elif wid not in reachable:
            violations.append(f"window {wid} is not reachable from root")

    return violations


class TreeStore:
    """
    标签页树存储层

    除窗口表外还维护反向索引：
    - 条目 ID -> 所在窗口 ID
    - 窗口 ID -> 拥有它的条目 ID
    每次变更时增量更新，所有归属查询都是 O(1)。
    """

    def __init__(
        self,
        title_prefix: str = DEFAULT_TITLE_PREFIX,
        clock: Callable[[], int] = now_ms,
        id_factory: Callable[[], str] = new_item_id,
    ):
        """
        初始化存储

        Args:
            title_prefix: 默认标题前缀（根窗口条目为 "New Tab 1" 形式）
            clock: 创建时间戳来源（毫秒）
            id_factory: 条目 ID 生成器
        """
        self.title_prefix = title_prefix
        self._clock = clock
        self._id_factory = id_factory
        self._windows: dict[str, Window] = {ROOT_WINDOW_ID: Window(id=ROOT_WINDOW_ID)}
        self._item_window: dict[str, str] = {}
        self._window_owner: dict[str, str] = {}
        self._listeners: list[ChangeListener] = []

    # ==================== 监听 ====================

    def add_listener(self, listener: ChangeListener) -> None:
        """注册变更监听器"""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: ChangeListener) -> None:
        """注销变更监听器"""
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception as e:
                # 监听器失败只记录日志，不影响变更本身
                logger.warning(f"tree_listener_failed: {listener!r}, {e}")

    def allocate_item_id(self) -> str:
        """分配一个新的条目 ID"""
        return self._id_factory()

    def now(self) -> int:
        return self._clock()

    # ==================== 查询 ====================

    @property
    def windows(self) -> Mapping[str, Window]:
        """只读窗口表"""
        return MappingProxyType(self._windows)

    @property
    def root(self) -> Window:
        return self._windows[ROOT_WINDOW_ID]

    def get_window(self, window_id: str) -> Optional[Window]:
        return self._windows.get(window_id)

    def require_window(self, window_id: str) -> Window:
        """获取窗口，不存在时抛出 NotFoundError"""
        window = self._windows.get(window_id)
        if window is None:
            raise NotFoundError("窗口", window_id)
        return window

    def require_item(self, window_id: str, item_id: str) -> Item:
        """获取窗口中的条目，不存在时抛出 NotFoundError"""
        item = self.require_window(window_id).find_item(item_id)
        if item is None:
            raise NotFoundError("条目", item_id, details={"window_id": window_id})
        return item

    def get_item(self, item_id: str) -> Optional[Item]:
        """按 ID 查找条目（任意窗口）"""
        window_id = self._item_window.get(item_id)
        if window_id is None:
            return None
        return self._windows[window_id].find_item(item_id)

    def window_of(self, item_id: str) -> Optional[str]:
        """条目所在的窗口 ID"""
        return self._item_window.get(item_id)

    def owner_of(self, window_id: str) -> Optional[Item]:
        """拥有该窗口的条目（根窗口和未知窗口返回 None）"""
        owner_id = self._window_owner.get(window_id)
        if owner_id is None:
            return None
        return self.get_item(owner_id)

    def iter_items(self) -> Iterator[Item]:
        for window in self._windows.values():
            yield from window.items

    def __len__(self) -> int:
        return len(self._item_window)

    def iter_preorder(
        self,
        descend: Optional[Callable[[Item], bool]] = None,
    ) -> Iterator[Tuple[Item, str, int]]:
        """
        从根窗口开始的先序遍历（显式栈，无递归）

        Args:
            descend: 判断是否进入条目子窗口的谓词，None 表示总是进入

        Yields:
            (条目, 所在窗口 ID, 深度)，根窗口中的条目深度为 0
        """
        stack = [(ROOT_WINDOW_ID, iter(self.root.items), 0)]
        while stack:
            window_id, items, depth = stack[-1]
            item = next(items, None)
            if item is None:
                stack.pop()
                continue
            yield item, window_id, depth
            child = self._windows.get(item.child_window_id) if item.child_window_id else None
            if child is not None and (descend is None or descend(item)):
                stack.append((child.id, iter(child.items), depth + 1))

    def snapshot(self) -> List[ItemSnapshot]:
        """全部条目的快照（先序文档顺序），条目为副本"""
        return [
            ItemSnapshot(item=copy.copy(item), window_id=window_id)
            for item, window_id, _ in self.iter_preorder()
        ]

    def check_forest(self) -> List[str]:
        """校验当前结构的森林不变式"""
        return check_forest(self._windows)

    # ==================== 默认标题 ====================

    def next_default_title(self, window_id: str) -> str:
        """
        生成窗口中下一个条目的默认标题

        取每个已有标题最后一个 "." 分段，去掉前缀后解析整数，取最大值加一。
        根窗口为 "New Tab {n}"，其他窗口为 "{所属条目标题去前缀}.{n}"。
        """
        window = self.require_window(window_id)
        max_num = 0
        for item in window.items:
            last_part = item.title.split(".")[-1]
            num = _parse_leading_int(last_part.replace(self.title_prefix, "", 1))
            if num is not None and num > max_num:
                max_num = num
        next_num = max_num + 1

        if window.is_root:
            return f"{self.title_prefix}{next_num}"

        owner = self.owner_of(window_id)
        label = ""
        if owner is not None:
            label = owner.title
            if label.startswith(self.title_prefix):
                label = label.replace(self.title_prefix, "", 1)
        return f"{label}.{next_num}"

    # ==================== 变更原语 ====================

    def create_item(self, window_id: str, title: Optional[str] = None) -> Item:
        """在窗口末尾追加一个新的叶子条目"""
        window = self.require_window(window_id)
        if title is None:
            title = self.next_default_title(window_id)

        item = Item(id=self.allocate_item_id(), title=title, content="", created_at=self.now())
        window.items.append(item)
        self._item_window[item.id] = window_id
        logger.debug(f"tab_created: {item.id} in {window_id}")

        self._notify()
        return item

    def rename_item(self, window_id: str, item_id: str, new_title: str) -> Item:
        """原地替换标题（不做唯一性约束）"""
        item = self.require_item(window_id, item_id)
        item.title = new_title
        self._notify()
        return item

    def set_content(self, item_id: str, html: str) -> bool:
        """
        替换条目内容

        条目可能已被删除（编辑中的内容晚到），此时静默忽略。

        Returns:
            是否找到并更新了条目
        """
        item = self.get_item(item_id)
        if item is None:
            logger.debug(f"tab_content_dropped: {item_id} not found")
            return False
        item.content = html
        self._notify()
        return True

    def open_item(self, window_id: str, item_id: str) -> str:
        """
        打开条目，返回其子窗口 ID

        首次打开时惰性创建一个空的子窗口。
        """
        item = self.require_item(window_id, item_id)
        if item.child_window_id is not None and item.child_window_id in self._windows:
            return item.child_window_id

        child_id = item.child_window_id or window_id_for(item.id)
        self._windows[child_id] = Window(id=child_id)
        self._window_owner[child_id] = item.id
        item.child_window_id = child_id
        logger.debug(f"window_created: {child_id} for {item.id}")

        self._notify()
        return child_id

    def delete_item(self, window_id: str, item_id: str) -> DeletionResult:
        """
        级联删除条目

        先用工作列表收集条目子窗口下可达的全部窗口和条目，收集完成后再统一移除。
        条目不存在时为空操作。
        """
        window = self._windows.get(window_id)
        item = window.find_item(item_id) if window is not None else None
        if item is None:
            logger.debug(f"tab_delete_skipped: {item_id} not in {window_id}")
            return DeletionResult()

        result = DeletionResult(removed_item_ids={item.id})
        worklist = [item.child_window_id] if item.child_window_id else []
        while worklist:
            wid = worklist.pop()
            if wid in result.removed_window_ids or wid not in self._windows:
                continue
            result.removed_window_ids.add(wid)
            for child in self._windows[wid].items:
                result.removed_item_ids.add(child.id)
                if child.child_window_id:
                    worklist.append(child.child_window_id)

        window.items.remove(item)
        for wid in result.removed_window_ids:
            del self._windows[wid]
            self._window_owner.pop(wid, None)
        for iid in result.removed_item_ids:
            self._item_window.pop(iid, None)

        logger.info(
            f"tab_deleted: {item_id}, "
            f"cascade {len(result.removed_item_ids)} items / {len(result.removed_window_ids)} windows"
        )
        self._notify()
        return result

    def toggle_collapse(self, window_id: str) -> bool:
        """切换窗口折叠状态（根窗口为空操作），返回新状态"""
        window = self.require_window(window_id)
        if window.is_root:
            return False
        window.collapsed = not window.collapsed
        self._notify()
        return window.collapsed

    # ==================== 整体替换 ====================

    def copy_windows(self) -> dict[str, Window]:
        """窗口表的深拷贝（用作导入等批量操作的工作副本）"""
        return copy.deepcopy(self._windows)

    def restore(self, windows: Iterable[Window], notify: bool = True) -> None:
        """
        用给定窗口整体替换当前结构

        先校验森林不变式，不合法时抛出 ValidationError 且不修改当前状态。

        Args:
            windows: 新的窗口集合（必须包含根窗口）
            notify: 是否通知监听器（初始加载时不触发同步）
        """
        table = {window.id: window for window in windows}
        violations = check_forest(table)
        if violations:
            raise ValidationError(
                "树结构不满足森林不变式",
                errors=[{"message": v} for v in violations],
            )

        item_window: dict[str, str] = {}
        window_owner: dict[str, str] = {}
        for wid, window in table.items():
            window.collapsed = window.collapsed and not window.is_root
            for item in window.items:
                item_window[item.id] = wid
                if item.child_window_id is not None:
                    window_owner[item.child_window_id] = item.id

        self._windows = table
        self._item_window = item_window
        self._window_owner = window_owner
        logger.debug(f"tree_restored: {len(table)} windows, {len(item_window)} items")

        if notify:
            self._notify()
