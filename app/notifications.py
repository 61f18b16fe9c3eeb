# app/notifications.py
import logging
from typing import List

from pydantic import BaseModel

from .errors import ContactBookError

logger = logging.getLogger(__name__)


class Notification(BaseModel):
    """
    Повідомлення для користувача.

    Attributes:
        title (str): Заголовок.
        description (str): Текст повідомлення.
        variant (str): "default" або "destructive".
        display (str): "toast" для тимчасового повідомлення, "dialog" для блокуючого.
    """
    title: str
    description: str
    variant: str = "default"
    display: str = "toast"


class Notifier:
    """Накопичує повідомлення, які ще не показані користувачу."""

    def __init__(self):
        self.pending: List[Notification] = []

    def toast(self, title: str, description: str) -> Notification:
        return self._push(Notification(title=title, description=description))

    def failure(self, error: ContactBookError, description: str = None) -> Notification:
        """
        Додає повідомлення про помилку.

        Для QuotaExceeded повідомлення показується діалогом, який треба підтвердити.

        Args:
            error (ContactBookError): Помилка.
            description (str, optional): Текст замість повідомлення помилки.

        Returns:
            Notification: Додане повідомлення.
        """
        if error.display == "dialog":
            note = Notification(
                title="Data Transfer Quota Exceeded",
                description=error.message,
                variant="destructive",
                display="dialog",
            )
        else:
            note = Notification(
                title="Error",
                description=description or error.message,
                variant="destructive",
            )
        logger.warning("%s: %s", error.kind, error.message)
        return self._push(note)

    def drain(self) -> List[Notification]:
        notes, self.pending = self.pending, []
        return notes

    def _push(self, note: Notification) -> Notification:
        self.pending.append(note)
        return note
