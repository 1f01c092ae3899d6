"""
视图投影

按列（窗口）的搜索词和排序方式生成显示列表。
投影是纯函数：只返回新的列表，不修改存储中的条目顺序。
"""

import re
import unicodedata
from dataclasses import dataclass, field
from typing import List, Optional

from miller_notes.core import ValidationError

from ..core.models import Item, SortMode, Window
from ..core.store import TreeStore

_DIGITS = re.compile(r"(\d+)")


def _fold(text: str) -> str:
    """去掉重音并忽略大小写，作为主比较键"""
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(c for c in decomposed if not unicodedata.combining(c)).casefold()


def natural_key(title: str) -> tuple:
    """
    数字感知的标题排序键

    数字片段按数值比较（"2" 排在 "10" 之前），数字排在字母之前；
    字母片段忽略大小写和重音，仅在完全相同时用大小写区分（小写在前）。
    """
    chunks = []
    for part in _DIGITS.split(_fold(title)):
        if not part:
            continue
        if _DIGITS.fullmatch(part):
            chunks.append((0, int(part), ""))
        else:
            chunks.append((1, 0, part))
    return (chunks, title.swapcase())


def parse_sort_mode(value) -> SortMode:
    """解析排序方式，未知值抛出 ValidationError"""
    if isinstance(value, SortMode):
        return value
    try:
        return SortMode(value)
    except ValueError:
        valid = [m.value for m in SortMode]
        raise ValidationError(f"未知的排序方式: {value}，可选: {valid}", field="sort_mode")


def project(window: Window, query: str = "", sort_mode=SortMode.OLDEST) -> List[Item]:
    """
    生成窗口的显示列表

    1. 过滤：标题包含 query（忽略大小写），空 query 保留全部
    2. 排序：oldest/newest 按创建时间，alpha/alpha-desc 按数字感知的标题
       Python 排序稳定，reverse=True 时相等键仍保持原有顺序
    """
    mode = parse_sort_mode(sort_mode)
    needle = (query or "").lower()
    items = [item for item in window.items if needle in item.title.lower()]

    if mode is SortMode.OLDEST:
        items.sort(key=lambda item: item.created_at)
    elif mode is SortMode.NEWEST:
        items.sort(key=lambda item: item.created_at, reverse=True)
    elif mode is SortMode.ALPHA:
        items.sort(key=lambda item: natural_key(item.title))
    elif mode is SortMode.ALPHA_DESC:
        items.sort(key=lambda item: natural_key(item.title), reverse=True)
    return items


@dataclass
class ViewState:
    """每列的搜索词和排序方式（默认为空搜索、oldest）"""
    search_queries: dict[str, str] = field(default_factory=dict)
    sort_modes: dict[str, SortMode] = field(default_factory=dict)

    def set_query(self, window_id: str, query: str) -> None:
        self.search_queries[window_id] = query

    def set_sort(self, window_id: str, sort_mode) -> SortMode:
        mode = parse_sort_mode(sort_mode)
        self.sort_modes[window_id] = mode
        return mode

    def query_for(self, window_id: str) -> str:
        return self.search_queries.get(window_id, "")

    def sort_for(self, window_id: str) -> SortMode:
        return self.sort_modes.get(window_id, SortMode.OLDEST)

    def forget(self, window_ids) -> None:
        """丢弃已删除窗口的视图状态"""
        for wid in window_ids:
            self.search_queries.pop(wid, None)
            self.sort_modes.pop(wid, None)

    def project_window(self, store: TreeStore, window_id: str) -> Optional[List[Item]]:
        """按该列的状态投影窗口，窗口不存在时返回 None"""
        window = store.get_window(window_id)
        if window is None:
            return None
        return project(window, self.query_for(window_id), self.sort_for(window_id))
