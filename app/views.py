# app/views.py
"""Побудова відповідей для сторінки списку контактів і картки контакту."""
from typing import Optional

from sqlalchemy.orm import Session

from . import crud, schemas
from .contact_list import EMPTY_MESSAGE, HeaderItem
from .errors import MutationFailed
from .list_session import ContactListSession, SEARCH_PARAM, GROUP_PARAM
from .selection import CONTACT_PARAM, Location, close_selection, select_contact


class DbContactSource:
    """Джерело контактів для ContactListSession поверх сесії бази даних."""

    def __init__(self, db: Session):
        self.db = db

    def list_contacts(self, search: Optional[str] = None, group_id: Optional[str] = None):
        return crud.list_contacts(self.db, search=search, group_id=group_id)

    def update_contact(self, contact_id: str, update: schemas.ContactUpdate):
        result = crud.update_contact(self.db, contact_id, update)
        if result is None:
            raise MutationFailed("Contact not found")
        return result

    def update_notes(self, contact_id: str, notes: str):
        return crud.update_notes(self.db, contact_id, notes)


def list_location(search: Optional[str] = None, group: Optional[str] = None,
                  contact: Optional[str] = None) -> Location:
    """Адреса головної сторінки з параметрами пошуку, групи та вибраного контакту."""
    location = Location()
    for name, value in ((SEARCH_PARAM, search), (GROUP_PARAM, group), (CONTACT_PARAM, contact)):
        if value:
            location = location.with_param(name, value)
    return location


def render_list_view(session: ContactListSession) -> schemas.ListViewOut:
    """
    Формує видиме вікно списку з посиланнями вибору для поточного режиму.

    Args:
        session (ContactListSession): Завантажена сесія списку.

    Returns:
        schemas.ListViewOut: Дані для відображення.
    """
    index = session.index
    viewport = session.viewport
    selection = session.selection
    selected = selection.selected

    items = []
    for position, offset, item in viewport.visible_items():
        if isinstance(item, HeaderItem):
            items.append(schemas.RenderItemOut(
                type="header", index=position, offset=offset, height=item.height, letter=item.letter,
            ))
            continue
        contact = item.contact
        items.append(schemas.RenderItemOut(
            type="row",
            index=position,
            offset=offset,
            height=item.height,
            letter=item.letter,
            contact_id=contact.id,
            name=contact.name,
            href=select_contact(contact, selection.mode, selection.location).href,
            selected=selected is not None and selected.id == contact.id,
        ))

    letters = [
        schemas.LetterOut(
            letter=state.letter,
            enabled=state.enabled,
            offset=index.offsets[index.letter_index[state.letter]] if state.enabled else None,
        )
        for state in session.letters()
    ]

    empty_message = EMPTY_MESSAGE if index.is_empty and session.error is None else None
    return schemas.ListViewOut(
        mode=selection.mode.value,
        items=items,
        letters=letters,
        total_height=index.total_height,
        scroll_offset=viewport.scroll_offset,
        viewport_height=viewport.height,
        current_letter=viewport.current_letter(),
        selected=selected,
        empty_message=empty_message,
        error=session.error,
        retry_href=selection.location.href if session.error else None,
    )


def render_contact_pane(session: ContactListSession) -> schemas.ContactPaneOut:
    return schemas.ContactPaneOut(
        contact=session.selection.selected,
        close_href=close_selection(session.selection.location).href,
    )
