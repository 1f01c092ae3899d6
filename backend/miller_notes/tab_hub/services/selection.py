"""
导出选择

选择是递归的：选中一个条目会同时选中其整个子树，取消选择同理。
"""

from typing import Iterable, List, Set

from ..core.store import TreeStore


class ExportSelection:
    """导出对话框中的条目勾选状态"""

    def __init__(self, store: TreeStore, selected: Iterable[str] = ()):
        self.store = store
        self.selected: Set[str] = set(selected)

    def __contains__(self, item_id: str) -> bool:
        return item_id in self.selected

    def __len__(self) -> int:
        return len(self.selected)

    def select_all(self) -> None:
        """打开导出对话框时默认全选"""
        self.selected = {item.id for item in self.store.iter_items()}

    def clear(self) -> None:
        self.selected.clear()

    def subtree_ids(self, item_id: str) -> List[str]:
        """条目及其全部后代的 ID（显式栈遍历）"""
        item = self.store.get_item(item_id)
        if item is None:
            return []
        result = []
        stack = [item]
        while stack:
            current = stack.pop()
            result.append(current.id)
            if current.child_window_id:
                child = self.store.get_window(current.child_window_id)
                if child is not None:
                    stack.extend(reversed(child.items))
        return result

    def toggle(self, item_id: str, selected: bool) -> None:
        """勾选或取消勾选条目及其子树"""
        ids = self.subtree_ids(item_id)
        if selected:
            self.selected.update(ids)
        else:
            self.selected.difference_update(ids)
