from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from miller_notes.cli.main import build_parser, main, render_tree, run
from miller_notes.core import InvalidFormatError
from miller_notes.infra.settings import MillerSettings
from miller_notes.infra.sync import TabsClient
from miller_notes.tab_hub.core.models import ROOT_WINDOW_ID
from miller_notes.workspace import Workspace

RECORDS = [
    {"id": "tab-a", "title": "Alpha", "content": "<p>one</p>", "parent_id": None, "created_at": 1},
    {"id": "tab-b", "title": "Beta", "content": "", "parent_id": "win-tab-a", "created_at": 2},
    {"id": "tab-c", "title": "Gamma", "content": "", "parent_id": None, "created_at": 3},
]


@pytest.fixture
def tabs_service(monkeypatch):
    """把工作区的持久化客户端替换为内存服务"""
    state = {"records": list(RECORDS), "posts": []}

    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            return httpx.Response(200, json=state["records"])
        state["posts"].append(json.loads(request.content))
        return httpx.Response(200, json={})

    def fake_client(base_url, timeout=5.0):
        return TabsClient(base_url, timeout=timeout, transport=httpx.MockTransport(handler))

    monkeypatch.setattr("miller_notes.workspace.TabsClient", fake_client)
    return state


@pytest.fixture
def quiet_main(monkeypatch):
    """main() 不改动全局日志配置，也不读取 .env"""
    monkeypatch.setattr("miller_notes.cli.main.configure_logging", lambda *args, **kwargs: None)
    monkeypatch.setattr("miller_notes.cli.main.load_dotenv", lambda *args, **kwargs: False)
    return main


def test_parser_defaults() -> None:
    parser = build_parser()

    args = parser.parse_args(["export", "out.txt"])
    assert args.command == "export"
    assert args.format == "txt"
    assert args.select is None

    args = parser.parse_args(["--api-url", "http://x", "export", "-", "-f", "json", "-s", "a", "-s", "b"])
    assert args.api_url == "http://x"
    assert args.format == "json"
    assert args.select == ["a", "b"]

    with pytest.raises(SystemExit):
        parser.parse_args(["export", "out", "--format", "xml"])


def test_render_tree_indents_by_depth(store) -> None:
    ws = Workspace(settings=MillerSettings(), client=TabsClient("http://tabs.test"), store=store)
    a = ws.add_item(ROOT_WINDOW_ID, "A")
    w_a = ws.store.open_item(ROOT_WINDOW_ID, a.id)
    ws.add_item(w_a, "A.1")

    assert render_tree(ws) == "LIBRARY\n  A\n    A.1"
    assert render_tree(ws, show_ids=True).splitlines()[1] == f"  A  [{a.id}]"


def test_tree_command_prints_loaded_tree(tabs_service, capsys, structlog_events) -> None:
    args = build_parser().parse_args(["tree"])

    assert asyncio.run(run(args)) == 0

    loaded = [e for e in structlog_events if e["event"] == "workspace_loaded"]
    assert loaded[0]["records"] == 3

    assert capsys.readouterr().out == "LIBRARY\n  Alpha\n    Beta\n  Gamma\n"
    assert tabs_service["posts"] == []


def test_export_selected_subtree_as_json(tabs_service, capsys) -> None:
    args = build_parser().parse_args(["export", "-", "--format", "json", "--select", "tab-a"])

    assert asyncio.run(run(args)) == 0

    data = json.loads(capsys.readouterr().out)
    assert [(r["title"], r["depth"], r["fromParent"]) for r in data] == [
        ("Alpha", 0, "Root"),
        ("Beta", 1, "Alpha"),
    ]


def test_export_unknown_item_fails(tabs_service, capsys) -> None:
    args = build_parser().parse_args(["export", "-", "--select", "tab-missing"])

    assert asyncio.run(run(args)) == 1
    assert "tab-missing" in capsys.readouterr().err


def test_export_to_file_as_text(tabs_service, tmp_path) -> None:
    out = tmp_path / "tabs.txt"
    args = build_parser().parse_args(["export", str(out)])

    assert asyncio.run(run(args)) == 0

    assert out.read_text(encoding="utf-8").startswith("= ALPHA (Source: Root)\n\none\n")


def test_import_command_merges_and_syncs(tabs_service, tmp_path, capsys) -> None:
    path = tmp_path / "export.json"
    path.write_text(json.dumps([
        {"id": "x", "title": "Imported", "content": "", "depth": 0, "fromParent": "Root"},
        {"id": "y", "title": "Child", "content": "", "depth": 1, "fromParent": "Imported"},
    ]), encoding="utf-8")
    args = build_parser().parse_args(["import", str(path)])

    assert asyncio.run(run(args)) == 0

    assert "2" in capsys.readouterr().out
    titles = {post["title"] for post in tabs_service["posts"]}
    assert titles == {"Alpha", "Beta", "Gamma", "Imported", "Child"}


def test_import_command_rejects_malformed_file(tabs_service, tmp_path) -> None:
    path = tmp_path / "bad.json"
    path.write_text('{"not": "a list"}', encoding="utf-8")
    args = build_parser().parse_args(["import", str(path)])

    with pytest.raises(InvalidFormatError):
        asyncio.run(run(args))
    assert tabs_service["posts"] == []


def test_export_nested_item_requires_selected_ancestors(tabs_service, capsys) -> None:
    args = build_parser().parse_args(["export", "-", "--format", "json", "--select", "tab-b"])

    assert asyncio.run(run(args)) == 1

    captured = capsys.readouterr()
    assert captured.out == ""
    assert "tab-a" in captured.err


def test_export_nested_item_with_its_ancestor(tabs_service, capsys) -> None:
    args = build_parser().parse_args(
        ["export", "-", "--format", "json", "--select", "tab-b", "--select", "tab-a"]
    )

    assert asyncio.run(run(args)) == 0

    data = json.loads(capsys.readouterr().out)
    assert [r["title"] for r in data] == ["Alpha", "Beta"]


def test_export_summary_counts_written_records(tabs_service, tmp_path, capsys) -> None:
    out = tmp_path / "subtree.json"
    args = build_parser().parse_args(["export", str(out), "-f", "json", "-s", "tab-c"])

    assert asyncio.run(run(args)) == 0

    assert len(json.loads(out.read_text(encoding="utf-8"))) == 1
    assert "已导出 1 个条目" in capsys.readouterr().out


def test_main_reports_undecodable_import_file(tabs_service, quiet_main, tmp_path, capsys) -> None:
    path = tmp_path / "binary.json"
    path.write_bytes(b"\x80\x81[not utf-8]")

    assert quiet_main(["import", str(path)]) == 1

    assert "JSON" in capsys.readouterr().err
    assert tabs_service["posts"] == []


def test_main_reports_missing_import_file(tabs_service, quiet_main, tmp_path, capsys) -> None:
    missing = tmp_path / "nope.json"

    assert quiet_main(["import", str(missing)]) == 1

    assert "nope.json" in capsys.readouterr().err
