#!/usr/bin/env python3
"""
miller-notes CLI - 标签页树的导出 / 导入入口

命令:
  tree      打印持久化服务中的标签页树
  export    导出标签页树（JSON 或文本）
  import    导入 JSON 导出文件并同步到持久化服务

每个命令都先从持久化服务加载整棵树。
"""

import argparse
import asyncio
import os
import sys
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from miller_notes.core import ApplicationError, InvalidFormatError, SyncFailureError
from miller_notes.infra.logging import (
    bind_command_context,
    clear_command_context,
    configure_logging,
    get_logger,
)
from miller_notes.infra.settings import reload_settings
from miller_notes.tab_hub.core.models import ROOT_WINDOW_ID, Item
from miller_notes.tab_hub.services import ExportFormat
from miller_notes.workspace import Workspace

logger = get_logger(__name__)


def render_tree(ws: Workspace, show_ids: bool = False) -> str:
    """树的缩进文本表示"""
    lines = [ws.navigation.column_header(ROOT_WINDOW_ID)]
    for item, _, depth in ws.store.iter_preorder():
        suffix = f"  [{item.id}]" if show_ids else ""
        lines.append(f"{'  ' * (depth + 1)}{item.title}{suffix}")
    return "\n".join(lines)


async def _run_tree(ws: Workspace, args) -> int:
    print(render_tree(ws, show_ids=args.ids))
    return 0


def _unselected_ancestor(ws: Workspace, item_id: str) -> Optional[Item]:
    """第一个未被选中的上级条目（导出遍历不会进入它的子窗口）"""
    window_id = ws.store.window_of(item_id)
    while window_id is not None:
        owner = ws.store.owner_of(window_id)
        if owner is None:
            return None
        if owner.id not in ws.selection:
            return owner
        window_id = ws.store.window_of(owner.id)
    return None


async def _run_export(ws: Workspace, args) -> int:
    if args.select:
        for item_id in args.select:
            if ws.store.get_item(item_id) is None:
                print(f"条目不存在: {item_id}", file=sys.stderr)
                return 1
            ws.selection.toggle(item_id, True)
        for item_id in args.select:
            ancestor = _unselected_ancestor(ws, item_id)
            if ancestor is not None:
                print(
                    f"条目 {item_id} 的上级条目 {ancestor.title!r} ({ancestor.id}) 未被选中，"
                    f"请同时用 --select 选择上级条目",
                    file=sys.stderr,
                )
                return 1
    else:
        ws.selection.select_all()

    records = ws.transfer.build_records(ws.selection.selected)
    output = ws.transfer.render(records, args.format)
    if args.out == "-":
        sys.stdout.write(output)
    else:
        Path(args.out).write_text(output, encoding="utf-8")
        print(f"已导出 {len(records)} 个条目 -> {args.out}")
    return 0


async def _run_import(ws: Workspace, args) -> int:
    # 以字节读入，编码问题由解析阶段统一报告为格式错误
    payload = Path(args.file).read_bytes()
    result = ws.import_json(payload)
    await ws.sync.flush()
    print(f"导入完成: {result.imported} 个条目")
    if result.unresolved_parents:
        print(f"警告: {len(result.unresolved_parents)} 个条目的来源未找到，已放到根目录")
    return 0


COMMANDS = {
    "tree": _run_tree,
    "export": _run_export,
    "import": _run_import,
}


async def run(args) -> int:
    """加载工作区并执行命令"""
    ws = Workspace(settings=reload_settings())
    async with ws:
        count = await ws.load()
        logger.info("workspace_loaded", records=count, api_url=ws.settings.sync.api_url)
        return await COMMANDS[args.command](ws, args)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="miller-notes",
        description="Miller 列式分层笔记 - 导出 / 导入工具",
    )
    parser.add_argument("--api-url", help="持久化服务地址（覆盖 MILLER_SYNC_API_URL）")
    subparsers = parser.add_subparsers(dest="command", required=True)

    tree_parser = subparsers.add_parser("tree", help="打印标签页树")
    tree_parser.add_argument("--ids", action="store_true", help="同时显示条目 ID")

    export_parser = subparsers.add_parser("export", help="导出标签页树")
    export_parser.add_argument("out", help="输出文件，- 表示标准输出")
    export_parser.add_argument(
        "--format", "-f",
        choices=[f.value for f in ExportFormat],
        default=ExportFormat.TEXT.value,
        help="导出格式（默认 txt）",
    )
    export_parser.add_argument(
        "--select", "-s",
        action="append",
        metavar="ITEM_ID",
        help="导出该条目及其子树（可重复；非根条目的上级条目须一并选中）",
    )

    import_parser = subparsers.add_parser("import", help="导入 JSON 导出文件")
    import_parser.add_argument("file", help="JSON 导出文件")

    return parser


def main(argv=None) -> int:
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.api_url:
        os.environ["MILLER_SYNC_API_URL"] = args.api_url

    configure_logging()
    bind_command_context(args.command)

    try:
        return asyncio.run(run(args))
    except InvalidFormatError as e:
        print(e.message, file=sys.stderr)
        return 1
    except SyncFailureError as e:
        print(f"持久化服务不可用: {e.message}", file=sys.stderr)
        return 2
    except ApplicationError as e:
        print(str(e), file=sys.stderr)
        return 1
    except OSError as e:
        print(f"文件读写失败: {e}", file=sys.stderr)
        return 1
    finally:
        clear_command_context()


if __name__ == "__main__":
    sys.exit(main())
