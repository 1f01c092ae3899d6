"""
导出 / 导入服务

导出：从根窗口先序遍历被选中的条目，生成扁平记录列表
    {id, title, content, depth, fromParent, createdAt}
支持两种编码：
- JSON：记录数组（可再导入）
- 文本：每条记录一个标题行，"=" 的个数表示深度，正文去掉 HTML 标记

导入（仅 JSON）：按 fromParent 标题匹配父记录，重建层级结构。
已知限制：父记录按标题匹配，导出集合中标题重复时取第一个匹配项。
"""

import html
import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Union

import pydantic
from pydantic import TypeAdapter

from miller_notes.core import InvalidFormatError, ValidationError

from ..core.models import ROOT_WINDOW_ID, Item, Window, window_id_for
from ..core.schemas import ExportRecord
from ..core.store import TreeStore

logger = logging.getLogger(__name__)

DEFAULT_ROOT_LABEL = "Root"

_TAG = re.compile(r"<[^>]*>")
_RECORD_LIST = TypeAdapter(List[ExportRecord])


class ExportFormat(str, Enum):
    """导出文件格式"""
    JSON = "json"
    TEXT = "txt"


@dataclass
class ImportResult:
    """导入统计"""
    imported: int = 0
    id_map: Dict[str, str] = field(default_factory=dict)
    unresolved_parents: List[str] = field(default_factory=list)


def strip_markup(content: str) -> str:
    """去掉 HTML 标记（每个标签替换为换行）并还原实体"""
    return html.unescape(_TAG.sub("\n", content or ""))


class TabTransferService:
    """
    标签页树的导出与导入

    导出不修改存储；导入在窗口表副本上重建，校验通过后整体提交，
    任何失败都保持现有状态不变。
    """

    def __init__(self, store: TreeStore, root_label: str = DEFAULT_ROOT_LABEL):
        self.store = store
        self.root_label = root_label

    # ==================== 导出 ====================

    def build_records(self, selected_ids: Iterable[str]) -> List[ExportRecord]:
        """
        生成导出记录

        只进入被选中条目的子窗口；fromParent 为所属条目的标题（根窗口为根标签）。
        """
        selected = set(selected_ids)
        records = []
        for item, window_id, depth in self.store.iter_preorder(descend=lambda i: i.id in selected):
            if item.id not in selected:
                continue
            owner = self.store.owner_of(window_id)
            records.append(ExportRecord(
                id=item.id,
                title=item.title,
                content=item.content,
                depth=depth,
                from_parent=owner.title if owner is not None else self.root_label,
                created_at=item.created_at,
            ))
        return records

    def to_json(self, records: List[ExportRecord]) -> str:
        """结构化编码：记录数组"""
        data = [record.model_dump(by_alias=True) for record in records]
        return json.dumps(data, indent=2, ensure_ascii=False)

    def to_text(self, records: List[ExportRecord]) -> str:
        """扁平文本编码：深度标记 + 大写标题 + 来源标注 + 去标记正文"""
        blocks = []
        for record in records:
            prefix = "=" * (record.depth + 1) + " "
            body = strip_markup(record.content)
            blocks.append(
                f"{prefix}{record.title.upper()} (Source: {record.from_parent})\n{body}\n\n"
            )
        return "\n".join(blocks)

    def render(self, records: List[ExportRecord], fmt: Union[ExportFormat, str] = ExportFormat.TEXT) -> str:
        """按格式编码导出记录"""
        try:
            fmt = ExportFormat(fmt)
        except ValueError:
            raise ValidationError(f"未知的导出格式: {fmt}", field="format")

        logger.info(f"tabs_exported: {len(records)} records as {fmt.value}")
        if fmt is ExportFormat.JSON:
            return self.to_json(records)
        return self.to_text(records)

    def export(self, selected_ids: Iterable[str], fmt: Union[ExportFormat, str] = ExportFormat.TEXT) -> str:
        """按格式导出选中的条目"""
        return self.render(self.build_records(selected_ids), fmt)

    # ==================== 导入 ====================

    def parse(self, payload: Union[str, bytes, List[Any]]) -> List[ExportRecord]:
        """
        解析并校验导入数据

        Raises:
            InvalidFormatError: 不是 JSON 记录数组
        """
        data = payload
        if isinstance(payload, (str, bytes, bytearray)):
            try:
                data = json.loads(payload)
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                raise InvalidFormatError(f"导入失败：不是合法的 JSON ({e})") from e

        if not isinstance(data, list):
            raise InvalidFormatError("导入失败：JSON 结构不兼容，应为记录数组")

        try:
            return _RECORD_LIST.validate_python(data)
        except pydantic.ValidationError as e:
            errors = [
                {"loc": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
                for err in e.errors()
            ]
            raise InvalidFormatError("导入失败：JSON 结构不兼容", errors=errors) from e

    def import_records(self, records: List[ExportRecord]) -> ImportResult:
        """
        按来源标题重建层级并合并到现有树

        1. 每条记录分配新的条目 ID
        2. 在全部记录中查找第一个 title 等于 fromParent 的记录作为父记录
           （fromParent 为根标签时放入根窗口）
        3. 父条目还没有子窗口时分配一个
        4. 新条目追加到目标窗口末尾

        Raises:
            InvalidFormatError: 层级关系存在环等无法构成森林的情况
        """
        result = ImportResult()
        working = self.store.copy_windows()

        items: List[Item] = []
        first_by_title: Dict[str, int] = {}
        for idx, record in enumerate(records):
            item = Item(
                id=self.store.allocate_item_id(),
                title=record.title,
                content=record.content,
                created_at=record.created_at or self.store.now(),
            )
            items.append(item)
            if record.id is not None:
                result.id_map[record.id] = item.id
            first_by_title.setdefault(record.title, idx)

        for idx, record in enumerate(records):
            target = self._resolve_target(record, items, first_by_title, working, result)
            working[target].items.append(items[idx])

        try:
            self.store.restore(working.values())
        except ValidationError as e:
            raise InvalidFormatError("导入失败：记录的层级关系无法构成树", errors=e.errors) from e

        result.imported = len(items)
        logger.info(
            f"tabs_imported: {result.imported} records, "
            f"{len(result.unresolved_parents)} unresolved parents"
        )
        return result

    def _resolve_target(
        self,
        record: ExportRecord,
        items: List[Item],
        first_by_title: Dict[str, int],
        working: Dict[str, Window],
        result: ImportResult,
    ) -> str:
        if record.from_parent == self.root_label:
            return ROOT_WINDOW_ID

        parent_idx: Optional[int] = first_by_title.get(record.from_parent)
        if parent_idx is None:
            label = record.id or record.title
            logger.warning(f"import_parent_unresolved: {label} from {record.from_parent!r}, placed at root")
            result.unresolved_parents.append(label)
            return ROOT_WINDOW_ID

        parent = items[parent_idx]
        if parent.child_window_id is None:
            parent.child_window_id = window_id_for(parent.id)
            working[parent.child_window_id] = Window(id=parent.child_window_id)
        return parent.child_window_id

    def import_json(self, payload: Union[str, bytes, List[Any]]) -> ImportResult:
        """解析并导入 JSON 导出文件"""
        return self.import_records(self.parse(payload))
