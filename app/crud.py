# app/crud.py
import logging
import re
from typing import Dict, List, Optional, Sequence

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from . import models, schemas
from .config import FAVORITES_GROUP_NAME, FAVORITES_GROUP_ICON
from .errors import FetchFailed, mutation_error
from .groups import split_groups

logger = logging.getLogger(__name__)

# --- Допоміжні функції ---

def slugify(name: str) -> str:
    return re.sub(r"\s+", "-", name.strip().lower())


def assign_url_names(contacts: Sequence[schemas.ContactOut]) -> List[schemas.ContactOut]:
    """
    Призначає контактам URL-сумісні імена.

    Однакові імена отримують числовий суфікс (-1, -2, ...) у порядку списку.

    Args:
        contacts (Sequence[schemas.ContactOut]): Контакти в порядку створення.

    Returns:
        List[schemas.ContactOut]: Нові об'єкти контактів із заповненим url_name.
    """
    counts: Dict[str, int] = {}
    used = set()
    result = []
    for contact in contacts:
        base = slugify(contact.name)
        count = counts.get(base, 0)
        url_name = base if count == 0 else f"{base}-{count}"
        while url_name in used:
            count += 1
            url_name = f"{base}-{count}"
        counts[base] = count + 1
        used.add(url_name)
        result.append(contact.model_copy(update={"url_name": url_name}))
    return result


def matches_search(contact: schemas.ContactOut, search: str) -> bool:
    """
    Перевіряє, чи містить ім'я, номер телефону або email контакту пошуковий запит.

    Args:
        contact (schemas.ContactOut): Контакт.
        search (str): Пошуковий запит (без урахування регістру).

    Returns:
        bool: True, якщо є збіг.
    """
    needle = search.strip().lower()
    if not needle:
        return True
    if needle in contact.name.lower():
        return True
    if any(needle in phone.number.lower() for phone in contact.phone_numbers):
        return True
    return bool(contact.email) and needle in contact.email.lower()


def normalize_phone_numbers(phones: Sequence[schemas.PhoneNumberIn]) -> List[schemas.PhoneNumberIn]:
    """
    Відкидає порожні номери та залишає рівно один основний номер.

    Перший номер, позначений основним, залишається основним; якщо таких немає,
    основним стає перший номер.

    Args:
        phones (Sequence[schemas.PhoneNumberIn]): Номери з форми.

    Returns:
        List[schemas.PhoneNumberIn]: Нормалізовані номери.
    """
    result = []
    primary_seen = False
    for phone in phones:
        number = phone.number.strip()
        if not number:
            continue
        is_primary = phone.is_primary and not primary_seen
        primary_seen = primary_seen or is_primary
        result.append(phone.model_copy(update={
            "number": number,
            "label": phone.label.strip() or "mobile",
            "is_primary": is_primary,
        }))
    if result and not primary_seen:
        result[0] = result[0].model_copy(update={"is_primary": True})
    return result


def _sync_phone_numbers(db_contact: models.Contact, phones: Sequence[schemas.PhoneNumberIn]) -> None:
    existing = {phone.id: phone for phone in db_contact.phone_numbers}
    rows = []
    for position, phone in enumerate(normalize_phone_numbers(phones)):
        row = existing.pop(phone.id, None) if phone.id else None
        if row is None:
            row = models.PhoneNumber()
        row.number = phone.number
        row.label = phone.label
        row.is_primary = phone.is_primary
        row.position = position
        rows.append(row)
    # номери, яких немає у формі, видаляються через delete-orphan
    db_contact.phone_numbers = rows


def _commit(db: Session, message: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as error:
        db.rollback()
        logger.exception(message)
        raise mutation_error(error, message)

# --- Робота з контактами ---

def list_contacts(db: Session, search: Optional[str] = None, group_id: Optional[str] = None) -> List[schemas.ContactOut]:
    """
    Повертає контакти з номерами телефонів та url_name, відфільтровані за пошуком і групою.

    url_name призначається за всією колекцією, тому не змінюється від пошукового запиту.

    Args:
        db (Session): Сесія бази даних.
        search (str, optional): Пошуковий запит.
        group_id (str, optional): Ідентифікатор групи.

    Returns:
        List[schemas.ContactOut]: Список контактів у порядку створення.

    Raises:
        FetchFailed: Якщо база даних недоступна.
    """
    try:
        rows = (
            db.query(models.Contact)
            .options(selectinload(models.Contact.phone_numbers))
            .order_by(models.Contact.created_at, models.Contact.id)
            .all()
        )
        members = None
        if group_id:
            members = {
                contact_id
                for (contact_id,) in db.query(models.ContactGroup.contact_id)
                .filter(models.ContactGroup.group_id == group_id)
            }
    except SQLAlchemyError:
        logger.exception("Error fetching contacts")
        raise FetchFailed()

    contacts = assign_url_names([schemas.ContactOut.model_validate(row) for row in rows])
    if members is not None:
        contacts = [c for c in contacts if c.id in members]
    if search:
        contacts = [c for c in contacts if matches_search(c, search)]
    return contacts


def get_contact(db: Session, contact_id: str) -> Optional[schemas.ContactOut]:
    """
    Повертає контакт за його ID.

    Args:
        db (Session): Сесія бази даних.
        contact_id (str): Ідентифікатор контакту.

    Returns:
        schemas.ContactOut або None: Контакт або None, якщо не знайдено.
    """
    return next((c for c in list_contacts(db) if c.id == contact_id), None)


def get_contact_by_url_name(db: Session, url_name: str) -> Optional[schemas.ContactOut]:
    return next((c for c in list_contacts(db) if c.url_name == url_name), None)


def create_contact(db: Session, contact: schemas.ContactCreate) -> schemas.ContactOut:
    """
    Створює новий контакт разом із номерами телефонів.

    Args:
        db (Session): Сесія бази даних.
        contact (schemas.ContactCreate): Дані нового контакту.

    Returns:
        schemas.ContactOut: Створений контакт.

    Raises:
        MutationFailed: Якщо збереження не вдалося.
    """
    db_contact = models.Contact(
        name=contact.name.strip(),
        email=contact.email,
        notes=contact.notes,
    )
    _sync_phone_numbers(db_contact, contact.phone_numbers)
    db.add(db_contact)
    _commit(db, "Failed to create contact")
    logger.info("Created contact %s", db_contact.id)
    return get_contact(db, db_contact.id)


def update_contact(db: Session, contact_id: str, contact: schemas.ContactUpdate) -> Optional[schemas.ContactOut]:
    """
    Оновлює дані контакту та його номери телефонів.

    Номери з відомим id оновлюються, без id додаються, відсутні видаляються.

    Args:
        db (Session): Сесія бази даних.
        contact_id (str): Ідентифікатор контакту.
        contact (schemas.ContactUpdate): Нові дані контакту.

    Returns:
        schemas.ContactOut або None: Оновлений контакт або None, якщо контакт не знайдено.

    Raises:
        MutationFailed: Якщо збереження не вдалося.
        QuotaExceeded: Якщо перевищено ліміт сховища.
    """
    db_contact = db.get(models.Contact, contact_id)
    if not db_contact:
        return None
    db_contact.name = contact.name.strip()
    db_contact.email = contact.email
    db_contact.notes = contact.notes
    if contact.image_url is not None:
        db_contact.image_url = contact.image_url
    _sync_phone_numbers(db_contact, contact.phone_numbers)
    _commit(db, "Failed to update contact")
    logger.info("Updated contact %s", contact_id)
    return get_contact(db, contact_id)


def update_notes(db: Session, contact_id: str, notes: str) -> Optional[schemas.ContactOut]:
    db_contact = db.get(models.Contact, contact_id)
    if not db_contact:
        return None
    db_contact.notes = notes
    _commit(db, "Failed to update notes")
    return get_contact(db, contact_id)


def set_avatar(db: Session, contact_id: str, image_url: str) -> Optional[schemas.ContactOut]:
    """
    Зберігає URL нового аватара контакту.

    Args:
        db (Session): Сесія бази даних.
        contact_id (str): Ідентифікатор контакту.
        image_url (str): URL завантаженого зображення.

    Returns:
        schemas.ContactOut або None: Оновлений контакт або None, якщо не знайдено.
    """
    db_contact = db.get(models.Contact, contact_id)
    if not db_contact:
        return None
    db_contact.image_url = image_url
    _commit(db, "Failed to update contact")
    return get_contact(db, contact_id)


def delete_contact(db: Session, contact_id: str) -> Optional[schemas.ContactOut]:
    """
    Видаляє контакт разом із номерами телефонів та зв'язками з групами.

    Args:
        db (Session): Сесія бази даних.
        contact_id (str): Ідентифікатор контакту.

    Returns:
        schemas.ContactOut або None: Видалений контакт або None, якщо контакт не знайдено.
    """
    snapshot = get_contact(db, contact_id)
    if snapshot is None:
        return None
    db.delete(db.get(models.Contact, contact_id))
    _commit(db, "Failed to delete contact")
    logger.info("Deleted contact %s", contact_id)
    return snapshot

# --- Робота з групами ---

def _group_out(group: models.Group, counts: Dict[str, int], members: Optional[Dict[str, List[str]]]) -> schemas.GroupOut:
    out = schemas.GroupOut.model_validate(group)
    update = {"contact_count": counts.get(group.id, 0)}
    if members is not None:
        update["contact_ids"] = members.get(group.id, [])
    return out.model_copy(update=update)


def list_groups(db: Session, with_members: bool = False) -> List[schemas.GroupOut]:
    """
    Повертає групи: спочатку системні, потім користувацькі за порядком.

    Args:
        db (Session): Сесія бази даних.
        with_members (bool): Чи додавати ідентифікатори контактів кожної групи.

    Returns:
        List[schemas.GroupOut]: Групи з кількістю контактів.

    Raises:
        FetchFailed: Якщо база даних недоступна.
    """
    try:
        groups = db.query(models.Group).order_by(models.Group.created_at).all()
        counts = dict(
            db.query(models.ContactGroup.group_id, func.count(models.ContactGroup.id))
            .group_by(models.ContactGroup.group_id)
            .all()
        )
        members = None
        if with_members:
            members = {}
            for group_id, contact_id in db.query(models.ContactGroup.group_id, models.ContactGroup.contact_id):
                members.setdefault(group_id, []).append(contact_id)
    except SQLAlchemyError:
        logger.exception("Error fetching groups")
        raise FetchFailed("Failed to fetch groups")

    system, custom = split_groups(groups)
    return [_group_out(g, counts, members) for g in system + custom]


def get_group(db: Session, group_id: str) -> Optional[schemas.GroupOut]:
    return next((g for g in list_groups(db, with_members=True) if g.id == group_id), None)


def ensure_system_groups(db: Session) -> None:
    """
    Створює системну групу Favorites, якщо її ще немає.

    Args:
        db (Session): Сесія бази даних.
    """
    exists = db.query(models.Group).filter(
        models.Group.name == FAVORITES_GROUP_NAME,
        models.Group.kind == models.GROUP_KIND_SYSTEM,
    ).first()
    if exists:
        return
    db.add(models.Group(name=FAVORITES_GROUP_NAME, icon=FAVORITES_GROUP_ICON, kind=models.GROUP_KIND_SYSTEM))
    _commit(db, "Failed to create system groups")
    logger.info("Created system group %s", FAVORITES_GROUP_NAME)


def create_group(db: Session, group: schemas.GroupCreate) -> schemas.GroupOut:
    """
    Створює користувацьку групу в кінці списку.

    Args:
        db (Session): Сесія бази даних.
        group (schemas.GroupCreate): Назва та іконка групи.

    Returns:
        schemas.GroupOut: Створена група.
    """
    last = db.query(func.max(models.Group.position)).filter(models.Group.kind == models.GROUP_KIND_CUSTOM).scalar()
    db_group = models.Group(
        name=group.name.strip(),
        icon=group.icon,
        kind=models.GROUP_KIND_CUSTOM,
        position=(last or 0) + 1,
    )
    db.add(db_group)
    _commit(db, "Failed to create group")
    logger.info("Created group %s", db_group.id)
    return get_group(db, db_group.id)


def rename_group(db: Session, group_id: str, group: schemas.GroupUpdate) -> Optional[schemas.GroupOut]:
    """
    Змінює назву та іконку групи.

    Args:
        db (Session): Сесія бази даних.
        group_id (str): Ідентифікатор групи.
        group (schemas.GroupUpdate): Нова назва та іконка.

    Returns:
        schemas.GroupOut або None: Оновлена група або None, якщо не знайдено.
    """
    db_group = db.get(models.Group, group_id)
    if not db_group:
        return None
    db_group.name = group.name.strip()
    db_group.icon = group.icon
    _commit(db, "Failed to update group")
    return get_group(db, group_id)


def delete_group(db: Session, group_id: str) -> Optional[schemas.GroupOut]:
    """
    Видаляє користувацьку групу. Контакти групи залишаються.

    Args:
        db (Session): Сесія бази даних.
        group_id (str): Ідентифікатор групи.

    Returns:
        schemas.GroupOut або None: Видалена група або None, якщо не знайдено.

    Raises:
        ValueError: Якщо група системна.
    """
    snapshot = get_group(db, group_id)
    if snapshot is None:
        return None
    if snapshot.kind == models.GROUP_KIND_SYSTEM:
        raise ValueError("System groups cannot be deleted")
    db.delete(db.get(models.Group, group_id))
    _commit(db, "Failed to delete group")
    logger.info("Deleted group %s", group_id)
    return snapshot


def add_contact_to_group(db: Session, group_id: str, contact_id: str) -> Optional[schemas.GroupOut]:
    """
    Додає контакт до групи. Повторне додавання нічого не змінює.

    Args:
        db (Session): Сесія бази даних.
        group_id (str): Ідентифікатор групи.
        contact_id (str): Ідентифікатор контакту.

    Returns:
        schemas.GroupOut або None: Група або None, якщо групу чи контакт не знайдено.
    """
    if db.get(models.Group, group_id) is None or db.get(models.Contact, contact_id) is None:
        return None
    link = db.query(models.ContactGroup).filter_by(group_id=group_id, contact_id=contact_id).first()
    if link is None:
        db.add(models.ContactGroup(group_id=group_id, contact_id=contact_id))
        _commit(db, "Failed to add contact to group")
    return get_group(db, group_id)


def remove_contact_from_group(db: Session, group_id: str, contact_id: str) -> Optional[schemas.GroupOut]:
    if db.get(models.Group, group_id) is None:
        return None
    link = db.query(models.ContactGroup).filter_by(group_id=group_id, contact_id=contact_id).first()
    if link is not None:
        db.delete(link)
        _commit(db, "Failed to remove contact from group")
    return get_group(db, group_id)


def reorder_custom_groups(db: Session, group_ids: Sequence[str]) -> List[schemas.GroupOut]:
    """
    Зберігає новий порядок користувацьких груп.

    Args:
        db (Session): Сесія бази даних.
        group_ids (Sequence[str]): Усі користувацькі групи в новому порядку.

    Returns:
        List[schemas.GroupOut]: Усі групи в новому порядку.

    Raises:
        ValueError: Якщо список не збігається з набором користувацьких груп.
        MutationFailed: Якщо збереження не вдалося.
    """
    custom = {
        g.id: g for g in db.query(models.Group).filter(models.Group.kind == models.GROUP_KIND_CUSTOM)
    }
    if len(group_ids) != len(custom) or set(group_ids) != set(custom):
        raise ValueError("Order must list every custom group exactly once")
    for position, group_id in enumerate(group_ids, start=1):
        custom[group_id].position = position
    _commit(db, "Failed to reorder groups")
    logger.info("Reordered %d custom groups", len(group_ids))
    return list_groups(db)
