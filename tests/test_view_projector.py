from __future__ import annotations

import pytest

from miller_notes.core import ValidationError
from miller_notes.tab_hub.core.models import ROOT_WINDOW_ID, Item, SortMode, Window
from miller_notes.tab_hub.core.store import TreeStore
from miller_notes.tab_hub.services.view_projector import ViewState, natural_key, project


def _window(*entries) -> Window:
    return Window(
        id="win-test",
        items=[Item(id=f"tab-{i}", title=title, created_at=ts) for i, (title, ts) in enumerate(entries)],
    )


def _titles(items) -> list:
    return [item.title for item in items]


def test_sort_modes_order_by_timestamp_and_title() -> None:
    window = _window(("b", 3), ("a", 1), ("c", 2))

    assert _titles(project(window)) == ["a", "c", "b"]
    assert _titles(project(window, sort_mode="oldest")) == ["a", "c", "b"]
    assert _titles(project(window, sort_mode="newest")) == ["b", "c", "a"]
    assert _titles(project(window, sort_mode=SortMode.ALPHA)) == ["a", "b", "c"]
    assert _titles(project(window, sort_mode="alpha-desc")) == ["c", "b", "a"]


def test_sort_is_stable_for_equal_keys() -> None:
    window = _window(("first", 5), ("second", 5), ("third", 5))

    assert _titles(project(window, sort_mode="oldest")) == ["first", "second", "third"]
    assert _titles(project(window, sort_mode="newest")) == ["first", "second", "third"]

    same_title = _window(("x", 2), ("x", 1))
    assert [i.id for i in project(same_title, sort_mode="alpha")] == ["tab-0", "tab-1"]
    assert [i.id for i in project(same_title, sort_mode="alpha-desc")] == ["tab-0", "tab-1"]


def test_alpha_sort_is_numeric_aware() -> None:
    window = _window(("New Tab 10", 1), ("New Tab 2", 2), ("new tab 1", 3), ("1.10", 4), ("1.9", 5))

    assert _titles(project(window, sort_mode="alpha")) == [
        "1.9", "1.10", "new tab 1", "New Tab 2", "New Tab 10",
    ]


def test_natural_key_ignores_case_and_accents() -> None:
    assert natural_key("école")[0] == natural_key("Ecole")[0]
    assert natural_key("2") < natural_key("10")


def test_search_is_case_insensitive_and_independent_of_sort() -> None:
    window = _window(("Alpha", 3), ("beta", 2), ("ALPINE", 1))

    assert _titles(project(window, "alp", "oldest")) == ["ALPINE", "Alpha"]
    assert _titles(project(window, "ALP", "alpha")) == ["Alpha", "ALPINE"]
    assert _titles(project(window, "")) == ["ALPINE", "beta", "Alpha"]
    assert _titles(project(window, "zzz")) == []


def test_projection_never_mutates_the_window() -> None:
    window = _window(("b", 3), ("a", 1), ("c", 2))
    before = list(window.items)

    project(window, "a", "alpha-desc")
    project(window, "", "newest")

    assert window.items == before


def test_unknown_sort_mode_is_rejected() -> None:
    with pytest.raises(ValidationError):
        project(_window(("a", 1)), sort_mode="random")


def test_view_state_defaults_and_per_window_settings(store: TreeStore) -> None:
    for title in ("b", "a", "c"):
        store.create_item(ROOT_WINDOW_ID, title)
    view = ViewState()

    assert view.sort_for(ROOT_WINDOW_ID) is SortMode.OLDEST
    assert _titles(view.project_window(store, ROOT_WINDOW_ID)) == ["b", "a", "c"]

    view.set_sort(ROOT_WINDOW_ID, "alpha")
    view.set_query(ROOT_WINDOW_ID, "A")
    assert _titles(view.project_window(store, ROOT_WINDOW_ID)) == ["a"]

    view.forget([ROOT_WINDOW_ID])
    assert view.query_for(ROOT_WINDOW_ID) == ""
    assert view.project_window(store, "win-missing") is None
