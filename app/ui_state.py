# app/ui_state.py
import threading

from fastapi import Request


class UIState:
    """
    Спільний стан інтерфейсу (згорнута бічна панель груп).

    Створюється один раз при старті застосунку і доступний через get_ui_state.
    """

    def __init__(self, sidebar_collapsed: bool = False):
        self._lock = threading.Lock()
        self._sidebar_collapsed = sidebar_collapsed

    @property
    def sidebar_collapsed(self) -> bool:
        with self._lock:
            return self._sidebar_collapsed

    def set_sidebar_collapsed(self, collapsed: bool) -> bool:
        with self._lock:
            self._sidebar_collapsed = collapsed
            return collapsed


def get_ui_state(request: Request) -> UIState:
    """
    Повертає стан інтерфейсу застосунку.

    Args:
        request (Request): HTTP запит.

    Returns:
        UIState: Стан, створений при старті.
    """
    return request.app.state.ui
