# app/schemas.py
import re
from pydantic import BaseModel, ConfigDict, EmailStr, Field, computed_field, field_validator
from typing import List, Optional
from datetime import datetime

from .groups import display_name, validate_icon

PHONE_PATTERN = re.compile(r"^(\d{3})(\d{3})(\d{4})$")


def format_phone_number(phone_number: str) -> str:
    """
    Форматує десятизначний номер як (XXX) XXX-XXXX.

    Args:
        phone_number (str): Номер у довільному форматі.

    Returns:
        str: Відформатований номер або початковий рядок, якщо цифр не десять.
    """
    cleaned = re.sub(r"\D", "", phone_number)
    match = PHONE_PATTERN.match(cleaned)
    if match:
        return f"({match.group(1)}) {match.group(2)}-{match.group(3)}"
    return phone_number

# --- Схеми для номерів телефонів ---

class PhoneNumberBase(BaseModel):
    """
    Базова схема номера телефону.

    Attributes:
        number (str): Номер телефону.
        label (str): Мітка номера ("mobile", "home", "work", "other" або довільна).
        is_primary (bool): Чи є номер основним.
    """
    number: str
    label: str = "mobile"
    is_primary: bool = False


class PhoneNumberIn(PhoneNumberBase):
    """
    Схема номера телефону у формі редагування.

    Attributes:
        id (Optional[str]): Ідентифікатор існуючого номера; None для нового.
    """
    id: Optional[str] = None


class PhoneNumberOut(PhoneNumberBase):
    id: str

    model_config = ConfigDict(from_attributes=True, frozen=True)

    @computed_field
    @property
    def formatted(self) -> str:
        return format_phone_number(self.number)

# --- Схеми для контактів ---

class ContactBase(BaseModel):
    """
    Базова схема для контакту.

    Attributes:
        name (str): Ім'я контакту.
        email (Optional[EmailStr]): Електронна пошта контакту.
        notes (Optional[str]): Нотатки.
    """
    name: str = Field(min_length=1)
    email: Optional[EmailStr] = None
    notes: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Name is required")
        return value

    @field_validator("email", mode="before")
    @classmethod
    def empty_email_is_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class ContactCreate(ContactBase):
    """
    Схема для створення нового контакту.
    """
    phone_numbers: List[PhoneNumberIn] = []


class ContactUpdate(ContactBase):
    """
    Схема для оновлення існуючого контакту. Номери без id додаються,
    відсутні у списку видаляються.
    """
    phone_numbers: List[PhoneNumberIn] = []
    image_url: Optional[str] = None


class ContactOut(ContactBase):
    """
    Схема для виводу даних контакту.

    Attributes:
        id (str): Ідентифікатор контакту.
        url_name (str): URL-сумісне ім'я, похідне від name.
        image_url (Optional[str]): URL аватара.
        created_at (datetime): Час створення.
        phone_numbers (List[PhoneNumberOut]): Номери телефонів.
    """
    id: str
    url_name: str = ""
    image_url: Optional[str] = None
    created_at: datetime
    phone_numbers: List[PhoneNumberOut] = []

    model_config = ConfigDict(from_attributes=True, frozen=True)


class NotesUpdate(BaseModel):
    notes: str = ""

# --- Схеми для груп ---

class GroupBase(BaseModel):
    """
    Базова схема групи.

    Attributes:
        name (str): Назва групи.
        icon (Optional[str]): Одне емодзі як іконка.
    """
    name: str = Field(min_length=1)
    icon: Optional[str] = None

    @field_validator("icon")
    @classmethod
    def check_icon(cls, value):
        return validate_icon(value)


class GroupCreate(GroupBase):
    pass


class GroupUpdate(GroupBase):
    pass


class GroupOut(GroupBase):
    """
    Схема для виводу групи.

    Attributes:
        id (str): Ідентифікатор групи.
        kind (str): "system" або "custom".
        position (Optional[int]): Порядок серед користувацьких груп.
        contact_count (int): Кількість контактів у групі.
        contact_ids (List[str]): Ідентифікатори контактів (якщо запитано).
    """
    id: str
    kind: str
    position: Optional[int] = None
    created_at: datetime
    contact_count: int = 0
    contact_ids: List[str] = []

    model_config = ConfigDict(from_attributes=True)

    @computed_field
    @property
    def label(self) -> str:
        """Назва з іконкою для бічної панелі."""
        return display_name(self)


class GroupOrderUpdate(BaseModel):
    group_ids: List[str]

# --- Схеми для сторінки списку ---

class RenderItemOut(BaseModel):
    type: str
    index: int
    offset: int
    height: int
    letter: str
    contact_id: Optional[str] = None
    name: Optional[str] = None
    href: Optional[str] = None
    selected: bool = False


class LetterOut(BaseModel):
    letter: str
    enabled: bool
    offset: Optional[int] = None


class ListViewOut(BaseModel):
    """
    Видиме вікно списку контактів разом зі станом вибору.

    Attributes:
        mode (str): "desktop" або "mobile".
        items (List[RenderItemOut]): Видимі заголовки та рядки.
        letters (List[LetterOut]): Алфавітна навігація A-Z.
        total_height (int): Повна висота списку.
        scroll_offset (int): Поточне зміщення прокрутки.
        viewport_height (int): Висота видимої області.
        current_letter (Optional[str]): Літера поточної секції.
        selected (Optional[ContactOut]): Вибраний контакт.
        empty_message (Optional[str]): Повідомлення для порожнього списку.
        error (Optional[str]): Помилка завантаження.
        retry_href (Optional[str]): Посилання для повторної спроби.
    """
    mode: str
    items: List[RenderItemOut] = []
    letters: List[LetterOut] = []
    total_height: int = 0
    scroll_offset: int = 0
    viewport_height: int = 0
    current_letter: Optional[str] = None
    selected: Optional[ContactOut] = None
    empty_message: Optional[str] = None
    error: Optional[str] = None
    retry_href: Optional[str] = None


class ContactPaneOut(BaseModel):
    contact: Optional[ContactOut] = None
    close_href: str = "/"

# --- Стан інтерфейсу ---

class SidebarState(BaseModel):
    collapsed: bool = False
