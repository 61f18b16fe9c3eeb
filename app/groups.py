# app/groups.py
"""Групи контактів: іконки, розбиття на системні й користувацькі, зміна порядку."""
import logging
import re
import unicodedata
from typing import Callable, List, Optional, Sequence, Tuple

from .errors import MutationFailed
from .models import GROUP_KIND_SYSTEM, GROUP_KIND_CUSTOM

logger = logging.getLogger(__name__)

ZWJ = "\u200d"
VARIATION_SELECTORS = {"\ufe0e", "\ufe0f"}
KEYCAP = "\u20e3"
KEYCAP_PATTERN = re.compile(r"^[0-9#*]\ufe0f?\u20e3$")


def _is_regional_indicator(char: str) -> bool:
    return 0x1F1E6 <= ord(char) <= 0x1F1FF


def validate_icon(icon: Optional[str]) -> Optional[str]:
    """
    Перевіряє, що іконка групи є одним емодзі.

    Послідовності з ZWJ, модифікаторами тону шкіри та прапори рахуються як одне емодзі.

    Args:
        icon (Optional[str]): Іконка або None.

    Returns:
        Optional[str]: Іконка без пробілів по краях або None, якщо вона порожня.

    Raises:
        ValueError: Якщо іконка не є одним емодзі.
    """
    if icon is None:
        return None
    icon = icon.strip()
    if not icon:
        return None
    if KEYCAP_PATTERN.match(icon):
        return icon

    bases = 0
    indicators = 0
    joined = False
    for char in icon:
        if char == ZWJ:
            joined = True
            continue
        if char in VARIATION_SELECTORS or char == KEYCAP:
            continue
        category = unicodedata.category(char)
        if category == "Sk":
            # модифікатор тону шкіри
            continue
        if category != "So":
            raise ValueError("Icon must be a single emoji")
        if _is_regional_indicator(char):
            indicators += 1
            if indicators % 2 == 0:
                continue
        if not joined:
            bases += 1
        joined = False
    if bases != 1:
        raise ValueError("Icon must be a single emoji")
    return icon


def split_groups(groups: Sequence) -> Tuple[list, list]:
    """
    Розділяє групи на системні та користувацькі.

    Args:
        groups (Sequence): Групи з атрибутом kind.

    Returns:
        Tuple[list, list]: Системні групи, користувацькі групи (за position, потім за часом створення).
    """
    system = [g for g in groups if g.kind == GROUP_KIND_SYSTEM]
    custom = [g for g in groups if g.kind == GROUP_KIND_CUSTOM]
    custom.sort(key=lambda g: (g.position if g.position is not None else 10**6, g.created_at))
    return system, custom


def display_name(group) -> str:
    return f"{group.icon} {group.name}" if group.icon else group.name


class GroupOrder:
    """
    Локальний порядок користувацьких груп з оптимістичним оновленням.

    Перетягування змінює порядок одразу; якщо збереження не вдалося, порядок
    повертається до стану перед перетягуванням.

    Args:
        group_ids (Sequence[str]): Поточний порядок користувацьких груп.
        save (Callable[[List[str]], object]): Зберігає новий порядок, піднімає MutationFailed.
        notifier: Приймач повідомлень про помилки.
    """

    def __init__(self, group_ids: Sequence[str], save: Callable[[List[str]], object], notifier):
        self.order: Tuple[str, ...] = tuple(group_ids)
        self._save = save
        self._notifier = notifier

    def move(self, from_index: int, to_index: int) -> bool:
        """
        Переміщує групу з позиції from_index на to_index.

        Args:
            from_index (int): Позиція групи, яку перетягують.
            to_index (int): Нова позиція.

        Returns:
            bool: True, якщо новий порядок збережено.
        """
        if from_index == to_index:
            return True
        if not (0 <= from_index < len(self.order) and 0 <= to_index < len(self.order)):
            raise IndexError("group position out of range")
        reordered = list(self.order)
        reordered.insert(to_index, reordered.pop(from_index))
        return self.apply(reordered)

    def apply(self, new_order: Sequence[str]) -> bool:
        previous = self.order
        self.order = tuple(new_order)
        try:
            self._save(list(self.order))
        except MutationFailed as error:
            logger.warning("Group reorder failed, restoring previous order")
            self.order = previous
            self._notifier.failure(error, "Failed to reorder groups. Please try again.")
            return False
        return True

    def sync(self, group_ids: Sequence[str]) -> None:
        """Приймає порядок, отриманий з сервера."""
        self.order = tuple(group_ids)
