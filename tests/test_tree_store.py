from __future__ import annotations

import random

import pytest

from miller_notes.core import NotFoundError, ValidationError
from miller_notes.tab_hub.core.models import ROOT_WINDOW_ID, Item, Window, window_id_for
from miller_notes.tab_hub.core.store import TreeStore, check_forest


def _assert_indexes_consistent(store: TreeStore) -> None:
    for window in store.windows.values():
        for item in window.items:
            assert store.window_of(item.id) == window.id
            if item.child_window_id is not None:
                assert store.owner_of(item.child_window_id) is item
    assert len(store) == sum(len(w.items) for w in store.windows.values())


def test_new_store_has_only_an_empty_root() -> None:
    store = TreeStore()
    assert list(store.windows) == [ROOT_WINDOW_ID]
    assert store.root.items == []
    assert store.check_forest() == []


def test_create_item_appends_leaf_with_default_root_title(store: TreeStore) -> None:
    first = store.create_item(ROOT_WINDOW_ID)
    second = store.create_item(ROOT_WINDOW_ID)

    assert [i.title for i in store.root.items] == ["New Tab 1", "New Tab 2"]
    assert first.is_leaf and second.is_leaf
    assert first.content == ""
    assert first.created_at < second.created_at
    assert store.window_of(first.id) == ROOT_WINDOW_ID


def test_create_item_in_unknown_window_raises_not_found(store: TreeStore) -> None:
    with pytest.raises(NotFoundError) as exc_info:
        store.create_item("win-missing")
    assert exc_info.value.code == "NOT_FOUND"


def test_numbering_continues_from_highest_trailing_number(store: TreeStore) -> None:
    for title in ("New Tab 1", "New Tab 2", "New Tab 5"):
        store.create_item(ROOT_WINDOW_ID, title)
    assert store.next_default_title(ROOT_WINDOW_ID) == "New Tab 6"


def test_numbering_in_child_window_uses_owner_label(store: TreeStore) -> None:
    owner = store.create_item(ROOT_WINDOW_ID, "New Tab 3")
    child_window = store.open_item(ROOT_WINDOW_ID, owner.id)

    a = store.create_item(child_window)
    b = store.create_item(child_window)
    c = store.create_item(child_window)
    assert [a.title, b.title, c.title] == ["3.1", "3.2", "3.3"]

    store.rename_item(child_window, c.id, "3.5")
    assert store.create_item(child_window).title == "3.6"

    grandchild_window = store.open_item(child_window, a.id)
    assert store.create_item(grandchild_window).title == "3.1.1"


def test_numbering_ignores_non_numeric_titles_and_keeps_custom_labels(store: TreeStore) -> None:
    ideas = store.create_item(ROOT_WINDOW_ID, "Ideas")
    assert store.next_default_title(ROOT_WINDOW_ID) == "New Tab 1"

    child_window = store.open_item(ROOT_WINDOW_ID, ideas.id)
    store.create_item(child_window, "Ideas.2abc")
    assert store.create_item(child_window).title == "Ideas.3"


def test_rename_allows_duplicate_titles(store: TreeStore) -> None:
    a = store.create_item(ROOT_WINDOW_ID)
    b = store.create_item(ROOT_WINDOW_ID)
    store.rename_item(ROOT_WINDOW_ID, a.id, "same")
    store.rename_item(ROOT_WINDOW_ID, b.id, "same")
    assert [i.title for i in store.root.items] == ["same", "same"]


def test_rename_unknown_item_raises_not_found(store: TreeStore) -> None:
    with pytest.raises(NotFoundError):
        store.rename_item(ROOT_WINDOW_ID, "tab-missing", "x")


def test_set_content_finds_item_in_any_window(store: TreeStore) -> None:
    parent = store.create_item(ROOT_WINDOW_ID)
    child_window = store.open_item(ROOT_WINDOW_ID, parent.id)
    child = store.create_item(child_window)

    assert store.set_content(child.id, "<p>hi</p>") is True
    assert store.get_item(child.id).content == "<p>hi</p>"


def test_set_content_for_deleted_item_is_silent_noop(store: TreeStore) -> None:
    calls = []
    store.add_listener(lambda: calls.append(1))
    assert store.set_content("tab-gone", "<p>late edit</p>") is False
    assert calls == []


def test_open_item_creates_window_once(store: TreeStore) -> None:
    item = store.create_item(ROOT_WINDOW_ID)
    first = store.open_item(ROOT_WINDOW_ID, item.id)
    second = store.open_item(ROOT_WINDOW_ID, item.id)

    assert first == second == window_id_for(item.id)
    assert item.child_window_id == first
    assert store.get_window(first).items == []
    assert store.owner_of(first) is item


def test_delete_cascades_to_exactly_the_reachable_subtree(store: TreeStore) -> None:
    a = store.create_item(ROOT_WINDOW_ID, "A")
    w1 = store.open_item(ROOT_WINDOW_ID, a.id)
    b = store.create_item(w1, "B")
    w2 = store.open_item(w1, b.id)
    c = store.create_item(w2, "C")

    d = store.create_item(ROOT_WINDOW_ID, "D")
    w3 = store.open_item(ROOT_WINDOW_ID, d.id)
    e = store.create_item(w3, "E")

    result = store.delete_item(ROOT_WINDOW_ID, a.id)

    assert result.removed_window_ids == {w1, w2}
    assert result.removed_item_ids == {a.id, b.id, c.id}
    assert set(store.windows) == {ROOT_WINDOW_ID, w3}
    assert [i.title for i in store.root.items] == ["D"]
    assert store.get_window(w3).items == [e]
    for gone in (a.id, b.id, c.id):
        assert store.get_item(gone) is None
    assert store.check_forest() == []
    _assert_indexes_consistent(store)


def test_delete_unknown_item_is_noop(store: TreeStore) -> None:
    store.create_item(ROOT_WINDOW_ID)
    result = store.delete_item(ROOT_WINDOW_ID, "tab-missing")
    assert not result
    assert len(store) == 1


def test_toggle_collapse_flips_and_ignores_root(store: TreeStore) -> None:
    item = store.create_item(ROOT_WINDOW_ID)
    child_window = store.open_item(ROOT_WINDOW_ID, item.id)

    assert store.toggle_collapse(child_window) is True
    assert store.toggle_collapse(child_window) is False
    assert store.toggle_collapse(ROOT_WINDOW_ID) is False
    assert store.root.collapsed is False


def test_every_mutation_notifies_listeners(store: TreeStore) -> None:
    calls = []
    store.add_listener(lambda: calls.append(1))

    item = store.create_item(ROOT_WINDOW_ID)
    store.rename_item(ROOT_WINDOW_ID, item.id, "x")
    store.set_content(item.id, "<p>x</p>")
    child_window = store.open_item(ROOT_WINDOW_ID, item.id)
    store.open_item(ROOT_WINDOW_ID, item.id)
    store.toggle_collapse(child_window)
    store.delete_item(ROOT_WINDOW_ID, item.id)

    assert len(calls) == 6


def test_failing_listener_does_not_break_mutation(store: TreeStore) -> None:
    def boom() -> None:
        raise RuntimeError("listener down")

    store.add_listener(boom)
    item = store.create_item(ROOT_WINDOW_ID)
    assert store.get_item(item.id) is item


def test_forest_invariant_holds_after_random_operations(store: TreeStore) -> None:
    rng = random.Random(7)
    for step in range(300):
        windows = list(store.windows.values())
        window = rng.choice(windows)
        op = rng.choice(["create", "create", "open", "rename", "delete"])
        if op == "create" or not window.items:
            store.create_item(window.id)
        elif op == "open":
            store.open_item(window.id, rng.choice(window.items).id)
        elif op == "rename":
            store.rename_item(window.id, rng.choice(window.items).id, f"t{step}")
        else:
            store.delete_item(window.id, rng.choice(window.items).id)

        assert store.check_forest() == []
    _assert_indexes_consistent(store)


def test_iter_preorder_follows_document_order(store: TreeStore) -> None:
    a = store.create_item(ROOT_WINDOW_ID, "a")
    wa = store.open_item(ROOT_WINDOW_ID, a.id)
    store.create_item(wa, "a.1")
    store.create_item(wa, "a.2")
    store.create_item(ROOT_WINDOW_ID, "b")

    walked = [(item.title, depth) for item, _, depth in store.iter_preorder()]
    assert walked == [("a", 0), ("a.1", 1), ("a.2", 1), ("b", 0)]


def test_snapshot_reports_owning_window_as_parent_id(store: TreeStore) -> None:
    a = store.create_item(ROOT_WINDOW_ID, "a")
    wa = store.open_item(ROOT_WINDOW_ID, a.id)
    store.create_item(wa, "a.1")

    parents = {snap.item.title: snap.parent_id for snap in store.snapshot()}
    assert parents == {"a": None, "a.1": wa}


def test_check_forest_reports_violations() -> None:
    windows = {
        ROOT_WINDOW_ID: Window(id=ROOT_WINDOW_ID, items=[Item(id="a", child_window_id="win-x")]),
        "win-y": Window(id="win-y"),
    }
    violations = check_forest(windows)
    assert "item a references missing window win-x" in violations
    assert "window win-y has no owning item" in violations


def test_restore_rejects_cycles_and_keeps_state(store: TreeStore) -> None:
    existing = store.create_item(ROOT_WINDOW_ID)
    x = Item(id="x", child_window_id="win-y")
    y = Item(id="y", child_window_id="win-x")
    windows = [
        Window(id=ROOT_WINDOW_ID),
        Window(id="win-x", items=[x]),
        Window(id="win-y", items=[y]),
    ]

    with pytest.raises(ValidationError) as exc_info:
        store.restore(windows)

    messages = [e["message"] for e in exc_info.value.errors]
    assert "window win-x is not reachable from root" in messages
    assert store.root.items == [existing]
