# app/errors.py
"""Помилки застосунку, які відображаються користувачу."""

QUOTA_MARKERS = ("exceeded the data transfer quota", "data transfer quota exceeded")


class ContactBookError(Exception):
    """
    Базова помилка застосунку.

    Attributes:
        kind (str): Тип помилки для клієнта.
        display (str): Як показати помилку: "toast" або "dialog".
        status_code (int): HTTP статус відповіді.
    """
    kind = "error"
    display = "toast"
    status_code = 500

    def __init__(self, message: str = "Something went wrong"):
        super().__init__(message)
        self.message = message


class FetchFailed(ContactBookError):
    kind = "fetch_failed"
    status_code = 503

    def __init__(self, message: str = "Failed to fetch contacts"):
        super().__init__(message)


class MutationFailed(ContactBookError):
    kind = "mutation_failed"

    def __init__(self, message: str = "Failed to save changes"):
        super().__init__(message)


class QuotaExceeded(MutationFailed):
    """Перевищено ліміт сховища; користувач не може продовжити без зовнішньої дії."""
    kind = "quota_exceeded"
    display = "dialog"
    status_code = 402

    def __init__(self, message: str = "Data transfer quota exceeded. Please upgrade your plan."):
        super().__init__(message)


class UploadFailed(ContactBookError):
    kind = "upload_failed"
    status_code = 502

    def __init__(self, message: str = "Failed to upload image"):
        super().__init__(message)


def is_quota_error(error: Exception) -> bool:
    text = str(error).lower()
    return any(marker in text for marker in QUOTA_MARKERS)


def mutation_error(error: Exception, message: str) -> MutationFailed:
    """
    Перетворює помилку бази даних на MutationFailed або QuotaExceeded.

    Args:
        error (Exception): Початкова помилка.
        message (str): Повідомлення для користувача.

    Returns:
        MutationFailed: Помилка для підняття.
    """
    if is_quota_error(error):
        return QuotaExceeded()
    return MutationFailed(message)
