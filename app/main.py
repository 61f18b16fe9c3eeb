# app/main.py
import logging
from contextlib import asynccontextmanager
from functools import partial
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Depends, UploadFile, File, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app import models, schemas, crud, uploads, views
from app.config import LOG_LEVEL
from app.database import SessionLocal, engine, get_db
from app.errors import ContactBookError
from app.list_session import ContactListSession
from app.logging_setup import setup_logging
from app.notes import NotesAutosaver
from app.scheduling import Scheduler, thread_timer_scheduler
from app.selection import PresentationMode, contact_path, mode_for_width
from app.ui_state import UIState, get_ui_state

logger = logging.getLogger(__name__)


def _save_notes(session_factory, contact_id: str, notes: str) -> None:
    with session_factory() as db:
        crud.update_notes(db, contact_id, notes)


def init_state(app: FastAPI, session_factory=SessionLocal, bind=engine,
               scheduler: Scheduler = thread_timer_scheduler) -> None:
    """
    Створює таблиці, системні групи та спільний стан застосунку.

    Args:
        app (FastAPI): Застосунок.
        session_factory: Фабрика сесій бази даних.
        bind: Рушій бази даних.
        scheduler (Scheduler): Планувальник автозбереження нотаток.
    """
    models.Base.metadata.create_all(bind=bind)
    with session_factory() as db:
        crud.ensure_system_groups(db)
    app.state.session_factory = session_factory
    app.state.ui = UIState()
    app.state.notes = NotesAutosaver(partial(_save_notes, session_factory), scheduler=scheduler)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(LOG_LEVEL)
    uploads.configure_cloudinary()
    init_state(app)
    logger.info("Contact book started")
    yield


app = FastAPI(
    title="Contact Book",
    description="Особиста книга контактів: список, групи, пошук і картка контакту",
    version="1.0.0",
    lifespan=lifespan,
)

# Увімкнення CORS (не забудьте обмежити доступ у production)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ContactBookError)
async def contact_book_error_handler(request: Request, exc: ContactBookError):
    """
    Перетворює помилки застосунку на JSON відповідь.

    Поле display підказує клієнту, як показати помилку: "toast" або "dialog".
    """
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "kind": exc.kind, "display": exc.display},
    )


def get_notes_autosaver(request: Request) -> NotesAutosaver:
    return request.app.state.notes

# --- Ендпоінти для роботи з контактами ---

@app.get("/contacts/", response_model=List[schemas.ContactOut])
def read_contacts(search: Optional[str] = None, group: Optional[str] = None, db: Session = Depends(get_db)):
    """
    Повертає контакти з можливістю пошуку та фільтрації за групою.

    Args:
        search (str, optional): Пошук за ім'ям, номером телефону або email.
        group (str, optional): Ідентифікатор групи.
        db (Session): Сесія бази даних.

    Returns:
        List[schemas.ContactOut]: Список контактів.
    """
    return crud.list_contacts(db, search=search, group_id=group)


@app.post("/contacts/", response_model=schemas.ContactOut, status_code=status.HTTP_201_CREATED)
def create_contact(contact: schemas.ContactCreate, db: Session = Depends(get_db)):
    return crud.create_contact(db, contact)


@app.get("/contacts/{contact_id}", response_model=schemas.ContactOut)
def read_contact(contact_id: str, db: Session = Depends(get_db)):
    """
    Повертає дані контакту за його ID.

    Raises:
        HTTPException: Якщо контакт не знайдено.
    """
    db_contact = crud.get_contact(db, contact_id)
    if not db_contact:
        raise HTTPException(status_code=404, detail="Контакт не знайдено")
    return db_contact


@app.put("/contacts/{contact_id}", response_model=schemas.ContactOut)
def update_contact(contact_id: str, contact: schemas.ContactUpdate, db: Session = Depends(get_db)):
    """
    Оновлює дані контакту та його номери телефонів.

    Args:
        contact_id (str): Ідентифікатор контакту.
        contact (schemas.ContactUpdate): Нові дані для контакту.
        db (Session): Сесія бази даних.

    Returns:
        schemas.ContactOut: Оновлені дані контакту.

    Raises:
        HTTPException: Якщо контакт не знайдено.
    """
    db_contact = crud.update_contact(db, contact_id, contact)
    if not db_contact:
        raise HTTPException(status_code=404, detail="Контакт не знайдено")
    return db_contact


@app.delete("/contacts/{contact_id}")
def delete_contact(contact_id: str, request: Request, db: Session = Depends(get_db)):
    db_contact = crud.delete_contact(db, contact_id)
    if not db_contact:
        raise HTTPException(status_code=404, detail="Контакт не знайдено")
    request.app.state.notes.discard(contact_id)
    return {"detail": f"{db_contact.name} has been removed from your contacts."}


@app.put("/contacts/{contact_id}/notes", status_code=status.HTTP_202_ACCEPTED)
def edit_notes(contact_id: str, body: schemas.NotesUpdate, db: Session = Depends(get_db),
               notes: NotesAutosaver = Depends(get_notes_autosaver)):
    """
    Приймає чернетку нотаток; запис відбудеться після паузи у введенні.

    Raises:
        HTTPException: Якщо контакт не знайдено.
    """
    if crud.get_contact(db, contact_id) is None:
        raise HTTPException(status_code=404, detail="Контакт не знайдено")
    notes.edit(contact_id, body.notes)
    return {"detail": "Notes scheduled for saving"}


@app.post("/contacts/{contact_id}/notes/flush", response_model=schemas.ContactOut)
def flush_notes(contact_id: str, db: Session = Depends(get_db),
                notes: NotesAutosaver = Depends(get_notes_autosaver)):
    """
    Записує відкладені нотатки негайно (втрата фокусу поля нотаток).

    Чекає на запис за таймером, якщо він саме виконується. Чернетку, яку не
    вдалося записати раніше, записує повторно.

    Returns:
        schemas.ContactOut: Контакт після запису.

    Raises:
        MutationFailed: Якщо запис не вдався; чернетка залишається для повтору.
    """
    notes.blur(contact_id)
    db.expire_all()
    db_contact = crud.get_contact(db, contact_id)
    if not db_contact:
        raise HTTPException(status_code=404, detail="Контакт не знайдено")
    return db_contact


@app.post("/contacts/{contact_id}/avatar", response_model=schemas.ContactOut)
def update_avatar(contact_id: str, file: UploadFile = File(...), db: Session = Depends(get_db)):
    """
    Оновлює аватар контакту через завантаження файлу до Cloudinary.

    Якщо завантаження не вдалося, попередній аватар залишається.

    Args:
        contact_id (str): Ідентифікатор контакту.
        file (UploadFile): Файл зображення.
        db (Session): Сесія бази даних.

    Returns:
        schemas.ContactOut: Контакт з новим аватаром.
    """
    if crud.get_contact(db, contact_id) is None:
        raise HTTPException(status_code=404, detail="Контакт не знайдено")
    try:
        url = uploads.upload_avatar(contact_id, file)
    except ValueError as error:
        raise HTTPException(status_code=400, detail=str(error))
    return crud.set_avatar(db, contact_id, url)

# --- Ендпоінти для роботи з групами ---

@app.get("/groups/", response_model=List[schemas.GroupOut])
def read_groups(with_members: bool = False, db: Session = Depends(get_db)):
    return crud.list_groups(db, with_members=with_members)


@app.post("/groups/", response_model=schemas.GroupOut, status_code=status.HTTP_201_CREATED)
def create_group(group: schemas.GroupCreate, db: Session = Depends(get_db)):
    return crud.create_group(db, group)


@app.put("/groups/order", response_model=List[schemas.GroupOut])
def reorder_groups(body: schemas.GroupOrderUpdate, db: Session = Depends(get_db)):
    """
    Зберігає новий порядок користувацьких груп.

    Raises:
        HTTPException: Якщо список не містить рівно всі користувацькі групи.
    """
    try:
        return crud.reorder_custom_groups(db, body.group_ids)
    except ValueError as error:
        raise HTTPException(status_code=400, detail=str(error))


@app.put("/groups/{group_id}", response_model=schemas.GroupOut)
def rename_group(group_id: str, group: schemas.GroupUpdate, db: Session = Depends(get_db)):
    db_group = crud.rename_group(db, group_id, group)
    if not db_group:
        raise HTTPException(status_code=404, detail="Групу не знайдено")
    return db_group


@app.delete("/groups/{group_id}")
def delete_group(group_id: str, db: Session = Depends(get_db)):
    try:
        db_group = crud.delete_group(db, group_id)
    except ValueError as error:
        raise HTTPException(status_code=400, detail=str(error))
    if not db_group:
        raise HTTPException(status_code=404, detail="Групу не знайдено")
    return {"detail": "Групу видалено"}


@app.post("/groups/{group_id}/contacts/{contact_id}", response_model=schemas.GroupOut)
def add_contact_to_group(group_id: str, contact_id: str, db: Session = Depends(get_db)):
    db_group = crud.add_contact_to_group(db, group_id, contact_id)
    if not db_group:
        raise HTTPException(status_code=404, detail="Групу або контакт не знайдено")
    return db_group


@app.delete("/groups/{group_id}/contacts/{contact_id}", response_model=schemas.GroupOut)
def remove_contact_from_group(group_id: str, contact_id: str, db: Session = Depends(get_db)):
    db_group = crud.remove_contact_from_group(db, group_id, contact_id)
    if not db_group:
        raise HTTPException(status_code=404, detail="Групу не знайдено")
    return db_group

# --- Сторінка списку контактів ---

@app.get("/view", response_model=schemas.ListViewOut)
def read_list_view(
    search: Optional[str] = None,
    group: Optional[str] = None,
    contact: Optional[str] = None,
    offset: int = 0,
    height: int = 0,
    width: Optional[int] = None,
    jump: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """
    Повертає видиме вікно списку контактів, алфавітну навігацію та вибраний контакт.

    Args:
        search (str, optional): Пошуковий запит.
        group (str, optional): Ідентифікатор групи.
        contact (str, optional): url_name вибраного контакту.
        offset (int): Зміщення прокрутки.
        height (int): Висота видимої області; 0, якщо ще не виміряна.
        width (int, optional): Ширина вікна для вибору режиму.
        jump (str, optional): Літера, до якої треба прокрутити.
        db (Session): Сесія бази даних.

    Returns:
        schemas.ListViewOut: Дані для відображення списку.
    """
    session = ContactListSession(
        views.DbContactSource(db),
        location=views.list_location(search, group, contact),
        mode=mode_for_width(width),
        viewport_height=height,
    )
    session.load()
    session.scroll_to(offset)
    if jump:
        session.jump_to_letter(jump)
    return views.render_list_view(session)


@app.get("/view/contact/{url_name}", response_model=schemas.ContactPaneOut)
def read_contact_pane(url_name: str, db: Session = Depends(get_db)):
    """
    Картка контакту для мобільного режиму. Невідоме url_name дає порожню картку.
    """
    session = ContactListSession(
        views.DbContactSource(db),
        location=contact_path(url_name),
        mode=PresentationMode.MOBILE,
    )
    session.load()
    return views.render_contact_pane(session)

# --- Стан інтерфейсу ---

@app.get("/ui/sidebar", response_model=schemas.SidebarState)
def read_sidebar(ui: UIState = Depends(get_ui_state)):
    return schemas.SidebarState(collapsed=ui.sidebar_collapsed)


@app.put("/ui/sidebar", response_model=schemas.SidebarState)
def update_sidebar(state: schemas.SidebarState, ui: UIState = Depends(get_ui_state)):
    return schemas.SidebarState(collapsed=ui.set_sidebar_collapsed(state.collapsed))
