# app/list_session.py
"""
Стан екрана "список + картка контакту".

Сесія отримує контакти з джерела даних, тримає незмінний знімок списку та
його індекс, вікно прокрутки і стан вибору. Відповіді на застарілі запити
відкидаються, невдалі зміни повертають останній збережений стан.
"""
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional, Protocol, Sequence, Tuple

from .config import SEARCH_DEBOUNCE_DELAY
from .contact_list import ContactIndex, Viewport, build_contact_index, alphabet
from .errors import FetchFailed, MutationFailed, UploadFailed
from .notes import NotesAutosaver
from .notifications import Notifier
from .scheduling import Debouncer, Scheduler, thread_timer_scheduler
from .selection import CONTACT_PARAM, Location, PresentationMode, SelectionController, select_contact

logger = logging.getLogger(__name__)

SEARCH_PARAM = "search"
GROUP_PARAM = "group"


class ContactSource(Protocol):
    def list_contacts(self, search: Optional[str] = None, group_id: Optional[str] = None) -> Sequence: ...

    def update_contact(self, contact_id: str, update) -> object: ...

    def update_notes(self, contact_id: str, notes: str) -> object: ...


@dataclass(frozen=True)
class PendingEdit:
    contact_id: str
    previous: Optional[object]


class ContactListSession:
    """
    Модель екрана списку контактів.

    Args:
        source (ContactSource): Джерело контактів і змін.
        location (Location): Початкова адреса.
        mode (PresentationMode): Режим відображення.
        viewport_height (int): Висота видимої області списку.
        scheduler (Scheduler): Планувальник для пошуку та автозбереження нотаток.
        search_delay (float): Пауза перед пошуком у секундах.
    """

    def __init__(self, source: ContactSource, location: Location = Location(),
                 mode: PresentationMode = PresentationMode.DESKTOP, viewport_height: int = 0,
                 scheduler: Scheduler = thread_timer_scheduler, search_delay: float = SEARCH_DEBOUNCE_DELAY):
        self._source = source
        self._lock = threading.RLock()
        self.notifier = Notifier()
        self.selection = SelectionController(location, None, mode)
        self._contacts: Optional[Tuple] = None
        self._indexed_from: Optional[Tuple] = None
        self._index = build_contact_index(())
        self.viewport = Viewport(self._index, viewport_height)
        self.error: Optional[str] = None
        self._requested = 0
        self._applied = 0
        self._search = Debouncer(search_delay, self._run_search, scheduler)
        self.notes = NotesAutosaver(self._save_notes, scheduler=scheduler, on_error=self._notes_failed)

    # --- дані ---

    @property
    def contacts(self) -> Tuple:
        return self._contacts or ()

    @property
    def index(self) -> ContactIndex:
        return self._ensure_index()

    def _ensure_index(self) -> ContactIndex:
        """Індекс перераховується лише тоді, коли змінився знімок списку."""
        with self._lock:
            snapshot = self.contacts
            if snapshot is not self._indexed_from:
                self._index = build_contact_index(snapshot)
                self._indexed_from = snapshot
                self.viewport.set_index(self._index)
            return self._index

    @property
    def search_text(self) -> Optional[str]:
        return self.selection.location.get(SEARCH_PARAM)

    @property
    def group_id(self) -> Optional[str]:
        return self.selection.location.get(GROUP_PARAM)

    def letters(self):
        return alphabet(self.index)

    def begin_fetch(self) -> int:
        with self._lock:
            self._requested += 1
            return self._requested

    def apply_results(self, request_id: int, contacts: Sequence) -> bool:
        """
        Застосовує результат запиту, якщо він не старший за вже застосований.

        Args:
            request_id (int): Номер запиту з begin_fetch().
            contacts (Sequence): Отримані контакти.

        Returns:
            bool: True, якщо результат застосовано.
        """
        with self._lock:
            if request_id < self._applied:
                logger.debug("Discarding stale response %d (applied %d)", request_id, self._applied)
                return False
            self._applied = request_id
            self.error = None
            self._replace_contacts(tuple(contacts))
            return True

    def apply_failure(self, request_id: int, error: FetchFailed) -> bool:
        with self._lock:
            if request_id < self._applied:
                return False
            self._applied = request_id
            self.error = error.message
            self._replace_contacts(())
            return True

    def load(self) -> bool:
        request_id = self.begin_fetch()
        try:
            contacts = self._source.list_contacts(self.search_text, self.group_id)
        except FetchFailed as error:
            logger.warning("Contact list fetch failed: %s", error.message)
            self.apply_failure(request_id, error)
            return False
        return self.apply_results(request_id, contacts)

    def retry(self) -> bool:
        return self.load()

    def _replace_contacts(self, contacts: Tuple) -> None:
        self._contacts = contacts
        self.selection.set_contacts(contacts)

    # --- пошук і навігація ---

    def type_search(self, text: str) -> None:
        """Пошук запускається після паузи у введенні."""
        self._search.call(text)

    def submit_search(self) -> bool:
        return self._search.flush()

    def _run_search(self, text: str) -> None:
        # викликається з потоку таймера
        with self._lock:
            location = self.selection.location.without_param(CONTACT_PARAM)
            if text:
                location = location.with_param(SEARCH_PARAM, text)
            else:
                location = location.without_param(SEARCH_PARAM)
            self.selection.navigate(location, replace=True)
            self.load()

    def filter_group(self, group_id: Optional[str]) -> None:
        with self._lock:
            location = self.selection.location
            if group_id is None:
                location = location.without_param(GROUP_PARAM)
            else:
                location = location.with_param(GROUP_PARAM, group_id)
            self.selection.navigate(location)
            self.load()

    def jump_to_letter(self, letter: str) -> bool:
        self._ensure_index()
        return self.viewport.jump_to_letter(letter)

    def scroll_to(self, offset: int) -> int:
        self._ensure_index()
        return self.viewport.scroll_to(offset)

    def select(self, contact) -> Location:
        with self._lock:
            return self.selection.select(contact)

    def close(self) -> Location:
        with self._lock:
            return self.selection.close()

    # --- зміни ---

    def begin_edit(self, contact_id: str, changes: dict) -> PendingEdit:
        """
        Оптимістично застосовує зміни до контакту в знімку списку.

        Args:
            contact_id (str): Ідентифікатор контакту.
            changes (dict): Нові значення полів.

        Returns:
            PendingEdit: Попередній запис контакту для підтвердження або відкату.
        """
        with self._lock:
            previous = next((c for c in self.contacts if c.id == contact_id), None)
            if previous is not None:
                self._replace_contact(previous.model_copy(update=changes))
            return PendingEdit(contact_id, previous)

    def complete_edit(self, pending: PendingEdit, result) -> bool:
        """
        Застосовує відповідь сервера, якщо контакт досі вибраний.

        Returns:
            bool: False, якщо вибір змінився і результат відкинуто.
        """
        with self._lock:
            if not self.selection.is_current(pending.contact_id):
                logger.debug("Ignoring late result for contact %s", pending.contact_id)
                return False
            self._replace_contact(result)
            return True

    def fail_edit(self, pending: PendingEdit, error: MutationFailed, description: str) -> None:
        """
        Повертає попередній запис контакту в поточний список.

        Решта списку не змінюється: результати запитів, що завершилися під час
        збереження, залишаються.
        """
        with self._lock:
            if pending.previous is not None and any(c.id == pending.contact_id for c in self.contacts):
                self._replace_contact(pending.previous)
        self.notifier.failure(error, description)

    def save_contact(self, contact_id: str, update) -> bool:
        """
        Зберігає зміни контакту з оптимістичним оновленням списку.

        Args:
            contact_id (str): Ідентифікатор контакту.
            update: schemas.ContactUpdate з новими даними.

        Returns:
            bool: True, якщо зміни збережено.
        """
        pending = self.begin_edit(contact_id, {
            "name": update.name,
            "email": update.email,
            "notes": update.notes,
        })
        try:
            result = self._source.update_contact(contact_id, update)
        except MutationFailed as error:
            self.fail_edit(pending, error, "Failed to update contact. Please try again.")
            return False
        self.complete_edit(pending, result)
        self.notifier.toast("Contact updated", "Your changes have been saved successfully.")
        return True

    def upload_avatar(self, contact_id: str, upload: Callable[[str], object]) -> bool:
        """
        Завантажує аватар; при помилці попередній аватар залишається.

        Args:
            contact_id (str): Ідентифікатор контакту.
            upload (Callable[[str], object]): Завантажує файл і повертає оновлений контакт.

        Returns:
            bool: True, якщо аватар оновлено.
        """
        try:
            result = upload(contact_id)
        except UploadFailed as error:
            self.notifier.failure(error, "Failed to upload image. Please try again.")
            return False
        if self.selection.is_current(contact_id):
            self._replace_contact(result)
        self.notifier.toast("Image uploaded", "Your contact's avatar has been updated.")
        return True

    def _replace_contact(self, contact) -> None:
        contacts = tuple(contact if c.id == contact.id else c for c in self.contacts)
        location = None
        selected = self.selection.selected
        if selected is not None and selected.id == contact.id and selected.url_name != contact.url_name:
            # вибраний контакт перейменовано: адреса має вказувати на нове url_name
            location = select_contact(contact, self.selection.mode, self.selection.location)
        self._contacts = contacts
        self.selection.set_contacts(contacts, location)

    def _save_notes(self, contact_id: str, notes: str) -> None:
        result = self._source.update_notes(contact_id, notes)
        with self._lock:
            if result is not None and self.selection.is_current(contact_id):
                self._replace_contact(result)

    def _notes_failed(self, error: Exception) -> None:
        if isinstance(error, MutationFailed):
            self.notifier.failure(error, "Failed to update notes. Please try again.")
