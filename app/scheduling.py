# app/scheduling.py
"""Відкладені виклики з можливістю скасування."""
import logging
import threading
from typing import Any, Callable, Optional, Protocol

logger = logging.getLogger(__name__)


class Handle(Protocol):
    def cancel(self) -> None: ...


Scheduler = Callable[[float, Callable[[], None]], Handle]


def thread_timer_scheduler(delay: float, callback: Callable[[], None]) -> Handle:
    """Планує callback через delay секунд в окремому потоці таймера."""
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    timer.start()
    return timer


class Debouncer:
    """
    Відкладений виклик, який переноситься при кожному новому виклику.

    call() скасовує запланований виклик і планує новий з останніми аргументами.
    flush() скасовує запланований виклик і виконує його одразу. Кожне планування
    має свій номер покоління; таймер, що спрацював після скасування, нічого не
    виконує, тож flush і таймер не можуть записати двічі. Якщо таймер уже
    виконує виклик, flush чекає на його завершення.

    Args:
        delay (float): Затримка в секундах.
        callback (Callable): Функція, яку треба викликати.
        scheduler (Scheduler): Планувальник; за замовчуванням threading.Timer.
        on_error (Callable, optional): Отримує помилку виклику, що спрацював за таймером.
    """

    def __init__(self, delay: float, callback: Callable[..., Any], scheduler: Scheduler = thread_timer_scheduler,
                 on_error: Optional[Callable[[Exception], None]] = None):
        self.delay = delay
        self._callback = callback
        self._scheduler = scheduler
        self._on_error = on_error
        self._lock = threading.Lock()
        # утримується від взяття аргументів до кінця виклику
        self._running = threading.RLock()
        self._handle: Optional[Handle] = None
        self._generation = 0
        self._pending: Optional[tuple] = None

    @property
    def pending(self) -> bool:
        return self._pending is not None

    def call(self, *args, **kwargs) -> None:
        with self._lock:
            self._cancel_locked()
            self._generation += 1
            generation = self._generation
            self._pending = (args, kwargs)
            self._handle = self._scheduler(self.delay, lambda: self._fire(generation))

    def flush(self) -> bool:
        """
        Виконує запланований виклик негайно.

        Returns:
            bool: True, якщо був запланований виклик.
        """
        with self._running:
            with self._lock:
                if self._pending is None:
                    return False
                args, kwargs = self._take_locked()
            self._callback(*args, **kwargs)
            return True

    def cancel(self) -> None:
        with self._lock:
            self._cancel_locked()
            self._pending = None

    def _fire(self, generation: int) -> None:
        with self._running:
            with self._lock:
                if generation != self._generation or self._pending is None:
                    logger.debug("Skipping stale timer %d", generation)
                    return
                args, kwargs = self._take_locked()
            try:
                self._callback(*args, **kwargs)
            except Exception as error:
                # у потоці таймера немає кому передати помилку
                logger.exception("Delayed call failed")
                if self._on_error is not None:
                    self._on_error(error)

    def _take_locked(self) -> tuple:
        self._cancel_locked()
        self._generation += 1
        pending, self._pending = self._pending, None
        return pending

    def _cancel_locked(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
