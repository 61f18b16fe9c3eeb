# tests/test_groups.py
from types import SimpleNamespace

import pytest

from app.errors import MutationFailed, QuotaExceeded
from app.groups import GroupOrder, display_name, split_groups, validate_icon
from app.notifications import Notifier


@pytest.mark.parametrize("icon", ["⭐", "👍🏽", "👨‍👩‍👧", "🇺🇦", "❤️", " 🎉 ", "1\ufe0f\u20e3"])
def test_valid_icons(icon):
    assert validate_icon(icon) == icon.strip()


@pytest.mark.parametrize("icon", ["ab", "⭐⭐", "🎉x", "1"])
def test_invalid_icons(icon):
    with pytest.raises(ValueError):
        validate_icon(icon)


def test_empty_icon_is_none():
    assert validate_icon(None) is None
    assert validate_icon("  ") is None


def test_split_groups_orders_custom_by_position():
    groups = [
        SimpleNamespace(name="Work", kind="custom", position=2, created_at=1),
        SimpleNamespace(name="Favorites", kind="system", position=None, created_at=0),
        SimpleNamespace(name="Family", kind="custom", position=1, created_at=2),
        SimpleNamespace(name="Clubs", kind="custom", position=2, created_at=3),
        SimpleNamespace(name="Draft", kind="custom", position=None, created_at=4),
    ]
    system, custom = split_groups(groups)
    assert [g.name for g in system] == ["Favorites"]
    assert [g.name for g in custom] == ["Family", "Work", "Clubs", "Draft"]


def test_display_name():
    assert display_name(SimpleNamespace(name="Work", icon="💼")) == "💼 Work"
    assert display_name(SimpleNamespace(name="Work", icon=None)) == "Work"


def test_reorder_saves_new_order():
    saved = []
    order = GroupOrder(["a", "b", "c"], saved.append, Notifier())
    assert order.move(0, 2)
    assert order.order == ("b", "c", "a")
    assert saved == [["b", "c", "a"]]


def test_reorder_rolls_back_on_failure():
    """
    Тест: порядок змінюється одразу, а при помилці збереження повертається попередній.
    """
    notifier = Notifier()
    seen_during_save = []

    def failing(group_ids):
        seen_during_save.append(order.order)
        raise MutationFailed()

    order = GroupOrder(["a", "b", "c"], failing, notifier)
    assert not order.move(0, 2)

    assert seen_during_save == [("b", "c", "a")]
    assert order.order == ("a", "b", "c")
    note = notifier.drain()[0]
    assert note.description == "Failed to reorder groups. Please try again."
    assert note.variant == "destructive"


def test_reorder_quota_error_shows_dialog():
    notifier = Notifier()

    def failing(group_ids):
        raise QuotaExceeded()

    order = GroupOrder(["a", "b"], failing, notifier)
    assert not order.move(1, 0)
    assert order.order == ("a", "b")
    assert notifier.drain()[0].display == "dialog"


def test_move_out_of_range():
    order = GroupOrder(["a", "b"], lambda ids: None, Notifier())
    with pytest.raises(IndexError):
        order.move(0, 5)
    assert order.move(1, 1)
