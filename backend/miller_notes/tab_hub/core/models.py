"""
标签页/窗口数据模型定义

Miller 列式浏览的树结构由两类节点组成：
- Window（窗口）：一列面板，容纳一组有序的兄弟条目
- Item（条目/标签页）：带标题和 HTML 内容的节点，可拥有一个子窗口

窗口之间通过 Item.child_window_id 连接成以 root 窗口为根的森林。
"""

import time
import uuid as uuid_lib
from dataclasses import dataclass, field
from enum import Enum


ROOT_WINDOW_ID = "root"

ITEM_ID_PREFIX = "tab-"
WINDOW_ID_PREFIX = "win-"


class SortMode(str, Enum):
    """
    列内排序方式

    - oldest: 按创建时间升序（默认）
    - newest: 按创建时间降序
    - alpha: 按标题升序（数字感知）
    - alpha-desc: 按标题降序（数字感知）
    """
    OLDEST = "oldest"
    NEWEST = "newest"
    ALPHA = "alpha"
    ALPHA_DESC = "alpha-desc"


def now_ms() -> int:
    """当前时间戳（毫秒）"""
    return int(time.time() * 1000)


def new_item_id() -> str:
    """生成新的条目 ID"""
    return f"{ITEM_ID_PREFIX}{uuid_lib.uuid4().hex[:12]}"


def window_id_for(item_id: str) -> str:
    """
    条目对应的子窗口 ID

    子窗口 ID 由所属条目 ID 派生，持久化记录只需保存所在窗口即可还原父子链接。
    """
    return f"{WINDOW_ID_PREFIX}{item_id}"


@dataclass
class Item:
    """
    条目（标签页）数据类

    Attributes:
        id: 条目 ID（全局唯一，不复用）
        title: 标题（同一窗口内允许重复）
        content: 富文本内容（HTML，由外部编辑器整体替换）
        created_at: 创建时间戳（毫秒）
        child_window_id: 子窗口 ID，None 表示叶子条目（从未打开过）
    """
    id: str = field(default_factory=new_item_id)
    title: str = ""
    content: str = ""
    created_at: int = field(default_factory=now_ms)
    child_window_id: str | None = None

    @property
    def is_leaf(self) -> bool:
        """是否为叶子条目"""
        return self.child_window_id is None


@dataclass
class Window:
    """
    窗口（列）数据类

    Attributes:
        id: 窗口 ID，根窗口固定为 ROOT_WINDOW_ID
        items: 有序的条目列表（文档顺序）
        collapsed: 是否折叠（根窗口永不折叠）
    """
    id: str
    items: list[Item] = field(default_factory=list)
    collapsed: bool = False

    @property
    def is_root(self) -> bool:
        return self.id == ROOT_WINDOW_ID

    def find_item(self, item_id: str) -> Item | None:
        for item in self.items:
            if item.id == item_id:
                return item
        return None


@dataclass
class DeletionResult:
    """级联删除的结果：被移除的窗口和条目"""
    removed_window_ids: set[str] = field(default_factory=set)
    removed_item_ids: set[str] = field(default_factory=set)

    def __bool__(self) -> bool:
        return bool(self.removed_item_ids)


@dataclass
class ItemSnapshot:
    """快照中的单个条目：条目本身加上所在窗口"""
    item: Item
    window_id: str

    @property
    def parent_id(self) -> str | None:
        """持久化用的 parent_id：所在窗口 ID，根窗口为 None"""
        return None if self.window_id == ROOT_WINDOW_ID else self.window_id
