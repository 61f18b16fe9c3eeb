# app/notes.py
import logging
import threading
from typing import Callable, Dict, Optional, Tuple

from .config import NOTES_AUTOSAVE_DELAY
from .scheduling import Debouncer, Scheduler, thread_timer_scheduler

logger = logging.getLogger(__name__)


class NotesAutosaver:
    """
    Автозбереження нотаток контактів.

    Зміни буферизуються для кожного контакту окремо і записуються після паузи
    або при втраті фокусу (blur), залежно від того, що станеться раніше. blur
    скасовує запланований запис, тому одна зміна записується лише раз.

    Чернетка, яку не вдалося записати, залишається: наступний blur повторює
    запис і піднімає помилку, якщо він знову не вдався.

    Args:
        save (Callable[[str, str], object]): Записує нотатки контакту.
        delay (float): Пауза перед записом у секундах.
        scheduler (Scheduler): Планувальник відкладених викликів.
        on_error (Callable, optional): Отримує помилки записів за таймером.
    """

    def __init__(self, save: Callable[[str, str], object], delay: float = NOTES_AUTOSAVE_DELAY,
                 scheduler: Scheduler = thread_timer_scheduler,
                 on_error: Optional[Callable[[Exception], None]] = None):
        self._save = save
        self._delay = delay
        self._scheduler = scheduler
        self._on_error = on_error
        self._lock = threading.Lock()
        self._debouncers: Dict[str, Debouncer] = {}
        self._failed: Dict[str, Tuple[str, Exception]] = {}

    def _debouncer(self, contact_id: str) -> Debouncer:
        with self._lock:
            debouncer = self._debouncers.get(contact_id)
            if debouncer is None:
                debouncer = Debouncer(self._delay, self._write, self._scheduler, self._on_error)
                self._debouncers[contact_id] = debouncer
            return debouncer

    def edit(self, contact_id: str, notes: str) -> None:
        self._debouncer(contact_id).call(contact_id, notes)

    def blur(self, contact_id: str) -> bool:
        """
        Записує відкладені нотатки контакту негайно.

        Якщо запис за таймером саме виконується, чекає на його завершення.
        Якщо попередній запис не вдався, повторює його.

        Args:
            contact_id (str): Ідентифікатор контакту.

        Returns:
            bool: True, якщо було що записувати.

        Raises:
            Exception: Помилка запису; чернетка залишається для наступної спроби.
        """
        with self._lock:
            debouncer = self._debouncers.get(contact_id)
        if debouncer is not None and debouncer.flush():
            return True
        with self._lock:
            failed = self._failed.get(contact_id)
        if failed is None:
            return False
        logger.info("Retrying failed notes save for contact %s", contact_id)
        self._write(contact_id, failed[0])
        return True

    def pending(self, contact_id: str) -> bool:
        with self._lock:
            debouncer = self._debouncers.get(contact_id)
            failed = contact_id in self._failed
        return failed or (debouncer is not None and debouncer.pending)

    def failure(self, contact_id: str) -> Optional[Exception]:
        """Помилка останнього невдалого запису нотаток контакту або None."""
        with self._lock:
            failed = self._failed.get(contact_id)
        return failed[1] if failed is not None else None

    def discard(self, contact_id: str) -> None:
        with self._lock:
            debouncer = self._debouncers.pop(contact_id, None)
            self._failed.pop(contact_id, None)
        if debouncer is not None:
            debouncer.cancel()

    def _write(self, contact_id: str, notes: str) -> None:
        logger.debug("Saving notes for contact %s", contact_id)
        try:
            self._save(contact_id, notes)
        except Exception as error:
            with self._lock:
                self._failed[contact_id] = (notes, error)
            raise
        with self._lock:
            self._failed.pop(contact_id, None)
