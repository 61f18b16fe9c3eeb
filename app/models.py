# app/models.py
import secrets
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, Text, Boolean, DateTime, Integer, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from .database import Base

GROUP_KIND_SYSTEM = "system"
GROUP_KIND_CUSTOM = "custom"


def _utcnow():
    return datetime.now(timezone.utc)


def _contact_id():
    return secrets.token_urlsafe(15)


def _uuid():
    return str(uuid.uuid4())


class Contact(Base):
    """
    Модель контакту.

    Attributes:
        id (str): Непрозорий ідентифікатор контакту.
        name (str): Ім'я, що відображається у списку.
        email (str, optional): Електронна пошта контакту.
        notes (str, optional): Довільні нотатки.
        image_url (str, optional): URL аватара.
        created_at (datetime): Час створення.
        phone_numbers (List[PhoneNumber]): Номери телефонів у порядку відображення.
        memberships (List[ContactGroup]): Зв'язки контакту з групами.
    """
    __tablename__ = "contacts"
    id = Column(String, primary_key=True, default=_contact_id)
    name = Column(String, nullable=False)
    email = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    image_url = Column(String, nullable=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    phone_numbers = relationship(
        "PhoneNumber",
        back_populates="contact",
        cascade="all, delete-orphan",
        order_by="PhoneNumber.position",
    )
    memberships = relationship("ContactGroup", back_populates="contact", cascade="all, delete-orphan")


class PhoneNumber(Base):
    """
    Модель номера телефону. Належить рівно одному контакту.

    Attributes:
        id (str): Ідентифікатор номера.
        contact_id (str): Ідентифікатор контакту-власника.
        number (str): Номер телефону.
        label (str): Мітка ("mobile", "home", "work", ...).
        is_primary (bool): Чи є номер основним.
        position (int): Позиція номера в картці контакту.
    """
    __tablename__ = "phone_numbers"
    id = Column(String, primary_key=True, default=_uuid)
    contact_id = Column(String, ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False, index=True)
    number = Column(String, nullable=False)
    label = Column(String, nullable=False, default="mobile")
    is_primary = Column(Boolean, default=False, nullable=False)
    position = Column(Integer, default=0, nullable=False)

    contact = relationship("Contact", back_populates="phone_numbers")


class Group(Base):
    """
    Модель групи контактів.

    Attributes:
        id (str): Ідентифікатор групи.
        name (str): Назва групи.
        icon (str, optional): Емодзі-іконка групи.
        kind (str): "system" або "custom".
        position (int, optional): Порядок серед користувацьких груп.
        created_at (datetime): Час створення.
    """
    __tablename__ = "groups"
    id = Column(String, primary_key=True, default=_uuid)
    name = Column(String, nullable=False)
    icon = Column(String, nullable=True)
    kind = Column(String, nullable=False, default=GROUP_KIND_CUSTOM)
    position = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    memberships = relationship("ContactGroup", back_populates="group", cascade="all, delete-orphan")


class ContactGroup(Base):
    __tablename__ = "contact_groups"
    __table_args__ = (UniqueConstraint("contact_id", "group_id", name="uq_contact_group"),)
    id = Column(String, primary_key=True, default=_uuid)
    contact_id = Column(String, ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False, index=True)
    group_id = Column(String, ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    contact = relationship("Contact", back_populates="memberships")
    group = relationship("Group", back_populates="memberships")
