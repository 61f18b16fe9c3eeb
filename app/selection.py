# app/selection.py
"""
Вибраний контакт як функція поточної адреси.

На десктопі вибір кодується параметром ?contact=<url_name> на головній сторінці,
у мобільному режимі шляхом /contact/<url_name>. Обидва кодування розпізнаються
в будь-якому режимі, тому зміна режиму не втрачає вибір.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple, Union
from urllib.parse import parse_qsl, quote, unquote, urlencode, urlsplit

from .config import MOBILE_BREAKPOINT

logger = logging.getLogger(__name__)

CONTACT_PARAM = "contact"
CONTACT_PATH_PREFIX = "/contact/"


class PresentationMode(str, Enum):
    DESKTOP = "desktop"
    MOBILE = "mobile"


def mode_for_width(width: Optional[int], breakpoint: int = MOBILE_BREAKPOINT) -> PresentationMode:
    """Мобільний режим для ширини, меншої за breakpoint; невідома ширина означає десктоп."""
    if width and 0 < width < breakpoint:
        return PresentationMode.MOBILE
    return PresentationMode.DESKTOP


@dataclass(frozen=True)
class Location:
    """
    Незмінна адреса: шлях і впорядковані параметри запиту.

    Attributes:
        path (str): Шлях, наприклад "/" або "/contact/jane-doe".
        query (Tuple[Tuple[str, str], ...]): Параметри запиту в початковому порядку.
    """
    path: str = "/"
    query: Tuple[Tuple[str, str], ...] = ()

    @classmethod
    def parse(cls, url: str) -> "Location":
        parts = urlsplit(url)
        return cls(parts.path or "/", tuple(parse_qsl(parts.query, keep_blank_values=True)))

    def get(self, name: str) -> Optional[str]:
        return next((value for key, value in self.query if key == name), None)

    def with_param(self, name: str, value: str) -> "Location":
        """Встановлює або замінює параметр, зберігаючи решту параметрів та їх порядок."""
        query = []
        replaced = False
        for key, current in self.query:
            if key != name:
                query.append((key, current))
            elif not replaced:
                query.append((key, value))
                replaced = True
        if not replaced:
            query.append((name, value))
        return Location(self.path, tuple(query))

    def without_param(self, name: str) -> "Location":
        return Location(self.path, tuple((k, v) for k, v in self.query if k != name))

    @property
    def href(self) -> str:
        if not self.query:
            return self.path
        return f"{self.path}?{urlencode(self.query)}"

    def __str__(self) -> str:
        return self.href


def is_contact_path(location: Location) -> bool:
    return location.path.startswith(CONTACT_PATH_PREFIX)


def selected_slug(location: Location) -> Optional[str]:
    """
    Повертає url_name вибраного контакту з адреси.

    Args:
        location (Location): Поточна адреса.

    Returns:
        Optional[str]: Сегмент шляху /contact/<url_name> або параметр contact.
    """
    if is_contact_path(location):
        segment = unquote(location.path[len(CONTACT_PATH_PREFIX):]).strip("/")
        return segment or None
    return location.get(CONTACT_PARAM) or None


def resolve_selection(location: Location, contacts: Sequence):
    """
    Знаходить контакт, названий в адресі.

    Адреса з невідомим url_name дає None: контакт міг бути видалений або
    посилання застаріло.

    Args:
        location (Location): Поточна адреса.
        contacts (Sequence): Контакти з атрибутом url_name.

    Returns:
        Контакт або None.
    """
    slug = selected_slug(location)
    if slug is None:
        return None
    return next((c for c in contacts if c.url_name == slug), None)


def contact_path(url_name: str) -> Location:
    return Location(CONTACT_PATH_PREFIX + quote(url_name))


def select_contact(contact, mode: PresentationMode, location: Optional[Location] = None) -> Location:
    """
    Адреса, на яку треба перейти при виборі контакту.

    На десктопі інші параметри (search, group) зберігаються.

    Args:
        contact: Контакт з атрибутом url_name.
        mode (PresentationMode): Режим відображення.
        location (Location, optional): Поточна адреса.

    Returns:
        Location: Нова адреса.
    """
    if mode == PresentationMode.MOBILE:
        return contact_path(contact.url_name)
    base = location if location is not None and not is_contact_path(location) else Location()
    return base.with_param(CONTACT_PARAM, contact.url_name)


def close_selection(location: Location) -> Location:
    if is_contact_path(location):
        return Location()
    return location.without_param(CONTACT_PARAM)


def relocate(location: Location, mode: PresentationMode) -> Location:
    """Перекодовує вибір у поточній адресі для іншого режиму."""
    slug = selected_slug(location)
    if slug is None:
        return location
    if mode == PresentationMode.MOBILE and not is_contact_path(location):
        return contact_path(slug)
    if mode == PresentationMode.DESKTOP and is_contact_path(location):
        return Location().with_param(CONTACT_PARAM, slug)
    return location

# --- Стан вибору ---

@dataclass(frozen=True)
class NoSelection:
    pass


@dataclass(frozen=True)
class Loading:
    slug: str


@dataclass(frozen=True)
class Selected:
    contact: object


SelectionState = Union[NoSelection, Loading, Selected]


class SelectionController:
    """
    Тримає стан вибору узгодженим з історією переходів.

    Стан перераховується при кожній зміні адреси (navigate, back, forward),
    при зміні режиму та при надходженні нового списку контактів. Поки список
    не завантажено (contacts is None), адреса з url_name дає стан Loading.

    Args:
        location (Location): Початкова адреса.
        contacts (Sequence, optional): Контакти; None, якщо ще не завантажені.
        mode (PresentationMode): Початковий режим.
    """

    def __init__(self, location: Location = Location(), contacts: Optional[Sequence] = None,
                 mode: PresentationMode = PresentationMode.DESKTOP):
        self._contacts = None if contacts is None else tuple(contacts)
        self._history: List[Location] = [location]
        self._cursor = 0
        self._mode = mode
        self._listeners: List[Callable[[SelectionState], None]] = []
        self._state: SelectionState = self._resolve_now(location)

    @property
    def location(self) -> Location:
        return self._history[self._cursor]

    @property
    def mode(self) -> PresentationMode:
        return self._mode

    @property
    def state(self) -> SelectionState:
        return self._state

    @property
    def selected(self):
        return self._state.contact if isinstance(self._state, Selected) else None

    def subscribe(self, listener: Callable[[SelectionState], None]) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def is_current(self, contact_id) -> bool:
        """Чи досі вибрано контакт з цим id. Використовується для відкидання запізнілих результатів."""
        return isinstance(self._state, Selected) and self._state.contact.id == contact_id

    # навігація

    def navigate(self, location: Location, replace: bool = False) -> None:
        if replace:
            self._history[self._cursor] = location
        else:
            del self._history[self._cursor + 1:]
            self._history.append(location)
            self._cursor += 1
        self._sync()

    def back(self) -> bool:
        if self._cursor == 0:
            return False
        self._cursor -= 1
        self._sync()
        return True

    def forward(self) -> bool:
        if self._cursor >= len(self._history) - 1:
            return False
        self._cursor += 1
        self._sync()
        return True

    def select(self, contact) -> Location:
        target = select_contact(contact, self._mode, self.location)
        self.navigate(target)
        return target

    def close(self) -> Location:
        target = close_selection(self.location)
        self.navigate(target)
        return target

    def set_mode(self, mode: PresentationMode) -> None:
        if mode == self._mode:
            return
        self._mode = mode
        target = relocate(self.location, mode)
        if target != self.location and self._state != NoSelection():
            self.navigate(target, replace=True)
        else:
            self._sync()

    def set_contacts(self, contacts: Sequence, location: Optional[Location] = None) -> None:
        """
        Приймає новий список контактів і перераховує вибір.

        Args:
            contacts (Sequence): Новий список.
            location (Location, optional): Адреса, що замінює поточну, наприклад
                якщо вибраний контакт отримав нове url_name.
        """
        self._contacts = tuple(contacts)
        if location is not None:
            self._history[self._cursor] = location
        self._sync()

    # перерахунок стану

    def _resolve_now(self, location: Location) -> SelectionState:
        slug = selected_slug(location)
        if slug is None:
            return NoSelection()
        if self._contacts is None:
            return Loading(slug)
        contact = resolve_selection(location, self._contacts)
        if contact is None:
            logger.debug("No contact named %r, selection cleared", slug)
            return NoSelection()
        return Selected(contact)

    def _sync(self) -> None:
        slug = selected_slug(self.location)
        current = self._state
        if slug is not None and self._contacts is not None:
            same = isinstance(current, Selected) and current.contact.url_name == slug
            if not same and not isinstance(current, Loading):
                self._set_state(Loading(slug))
        self._set_state(self._resolve_now(self.location))

    def _set_state(self, state: SelectionState) -> None:
        if state == self._state:
            return
        self._state = state
        for listener in list(self._listeners):
            listener(state)
