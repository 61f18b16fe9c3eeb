# app/contact_list.py
"""
Список контактів: алфавітний індекс і віртуалізоване вікно відображення.

Індекс будується з плоского списку контактів і є незмінним знімком: при новому
списку контактів створюється новий індекс, старий не змінюється.
"""
import locale
import string
from bisect import bisect_left, bisect_right
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, List, Mapping, NamedTuple, Optional, Sequence, Tuple, Union

from .config import HEADER_HEIGHT, ROW_HEIGHT, DEFAULT_VIEWPORT_HEIGHT, OVERSCAN

LETTERS = tuple(string.ascii_uppercase)
EMPTY_MESSAGE = "No contacts found"


@dataclass(frozen=True)
class HeaderItem:
    letter: str
    height: int = HEADER_HEIGHT


@dataclass(frozen=True)
class RowItem:
    contact: object
    letter: str
    height: int = ROW_HEIGHT


RenderItem = Union[HeaderItem, RowItem]


@dataclass(frozen=True)
class ContactIndex:
    """
    Плоский список для відображення та індекс переходу за літерами.

    Attributes:
        items (Tuple[RenderItem, ...]): Заголовки секцій і рядки контактів.
        letter_index (Mapping[str, int]): Літера -> позиція її заголовка в items.
        total_height (int): Сумарна висота всіх елементів.
        offsets (Tuple[int, ...]): Верхня межа кожного елемента.
    """
    items: Tuple[RenderItem, ...] = ()
    letter_index: Mapping[str, int] = field(default_factory=lambda: MappingProxyType({}))
    total_height: int = 0
    offsets: Tuple[int, ...] = ()

    def __len__(self) -> int:
        return len(self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def letters(self) -> Tuple[str, ...]:
        return tuple(self.letter_index)

    def contacts(self) -> List[object]:
        return [item.contact for item in self.items if isinstance(item, RowItem)]


class LetterState(NamedTuple):
    letter: str
    enabled: bool


def _name_key(contact) -> tuple:
    name = contact.name
    return (locale.strxfrm(name.casefold()), name)


def bucket_letter(name: Optional[str]) -> Optional[str]:
    """Повертає літеру секції для імені або None, якщо ім'я не починається з A-Z."""
    if not name:
        return None
    letter = name[0].upper()
    return letter if letter in LETTERS else None


def build_contact_index(
    contacts: Sequence,
    header_height: int = HEADER_HEIGHT,
    row_height: int = ROW_HEIGHT,
) -> ContactIndex:
    """
    Групує контакти за першою літерою імені.

    Контакти без імені відкидаються, дублікати за id відкидаються (залишається
    перше входження), контакти, чиє ім'я не починається з літери A-Z, не
    потрапляють до жодної секції. Секції йдуть в алфавітному порядку, контакти
    в секції відсортовані за іменем з урахуванням локалі.

    Функція чиста: однаковий вхід дає однаковий результат.

    Args:
        contacts (Sequence): Контакти з атрибутами id та name.
        header_height (int): Висота заголовка секції.
        row_height (int): Висота рядка контакту.

    Returns:
        ContactIndex: Плоский список і індекс літер.
    """
    seen = set()
    buckets = {}
    for contact in contacts:
        name = getattr(contact, "name", None)
        if not name:
            continue
        if contact.id in seen:
            continue
        seen.add(contact.id)
        letter = bucket_letter(name)
        if letter is None:
            continue
        buckets.setdefault(letter, []).append(contact)

    items = []
    offsets = []
    letter_index = {}
    total = 0
    for letter in sorted(buckets):
        letter_index[letter] = len(items)
        items.append(HeaderItem(letter, header_height))
        offsets.append(total)
        total += header_height
        for contact in sorted(buckets[letter], key=_name_key):
            items.append(RowItem(contact, letter, row_height))
            offsets.append(total)
            total += row_height

    return ContactIndex(
        items=tuple(items),
        letter_index=MappingProxyType(letter_index),
        total_height=total,
        offsets=tuple(offsets),
    )


def alphabet(index: ContactIndex) -> List[LetterState]:
    """Літери A-Z для бічної навігації; доступні лише ті, що є в індексі."""
    return [LetterState(letter, letter in index.letter_index) for letter in LETTERS]


class Viewport:
    """
    Віртуалізоване вікно над ContactIndex.

    Зберігає зміщення прокрутки та повідомляє підписників про його зміну.
    Прокрутка дозволена до верхньої межі останнього елемента, тому будь-який
    елемент можна вирівняти по верху вікна.

    Args:
        index (ContactIndex): Індекс контактів.
        height (int): Висота видимої області; 0 означає, що її ще не виміряно.
        overscan (int): Кількість додаткових елементів над і під вікном.
    """

    def __init__(self, index: ContactIndex, height: int = 0, overscan: int = OVERSCAN):
        self._index = index
        self._height = height if height > 0 else DEFAULT_VIEWPORT_HEIGHT
        self._overscan = overscan
        self._offset = 0
        self._listeners: List[Callable[[int], None]] = []

    @property
    def index(self) -> ContactIndex:
        return self._index

    @property
    def height(self) -> int:
        return self._height

    @property
    def scroll_offset(self) -> int:
        return self._offset

    @property
    def max_offset(self) -> int:
        return self._index.offsets[-1] if self._index.offsets else 0

    def subscribe(self, listener: Callable[[int], None]) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def set_index(self, index: ContactIndex) -> None:
        self._index = index
        self.scroll_to(self._offset)

    def resize(self, height: int) -> None:
        self._height = height if height > 0 else DEFAULT_VIEWPORT_HEIGHT

    def scroll_to(self, offset: int) -> int:
        offset = min(max(0, int(offset)), self.max_offset)
        if offset != self._offset:
            self._offset = offset
            for listener in list(self._listeners):
                listener(offset)
        return self._offset

    def scroll_to_index(self, index: int) -> int:
        """
        Вирівнює елемент з позицією index по верху видимої області.

        Args:
            index (int): Позиція елемента в items.

        Returns:
            int: Нове зміщення прокрутки.

        Raises:
            IndexError: Якщо позиція поза списком.
        """
        if not 0 <= index < len(self._index):
            raise IndexError("item index out of range")
        return self.scroll_to(self._index.offsets[index])

    def jump_to_letter(self, letter: str) -> bool:
        """Прокручує до секції літери. Для відсутньої літери нічого не робить."""
        position = self._index.letter_index.get(letter.upper())
        if position is None:
            return False
        self.scroll_to_index(position)
        return True

    def first_visible_index(self) -> Optional[int]:
        if self._index.is_empty:
            return None
        return max(0, bisect_right(self._index.offsets, self._offset) - 1)

    def visible_range(self) -> Tuple[int, int]:
        """
        Межі вікна [start, stop) у items з урахуванням overscan.

        Пошук бінарний, тому вартість не залежить від довжини списку.
        """
        first = self.first_visible_index()
        if first is None:
            return 0, 0
        stop = bisect_left(self._index.offsets, self._offset + self._height)
        start = max(0, first - self._overscan)
        stop = min(len(self._index), stop + self._overscan)
        return start, stop

    def visible_items(self) -> List[Tuple[int, int, RenderItem]]:
        start, stop = self.visible_range()
        offsets = self._index.offsets
        return [(i, offsets[i], self._index.items[i]) for i in range(start, stop)]

    def current_letter(self) -> Optional[str]:
        """Літера останнього заголовка, що починається не нижче поточного зміщення."""
        current = None
        for letter, position in self._index.letter_index.items():
            if self._index.offsets[position] > self._offset:
                break
            current = letter
        return current
