# tests/conftest.py
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app import models, schemas
from app.crud import slugify
from app.database import get_db
from app.main import app, init_state

BASE_TIME = datetime(2024, 1, 1, 12, 0, 0)


class FakeHandle:
    """Запланований виклик, який тест запускає вручну."""

    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler:
    """
    Планувальник без потоків: виклики спрацьовують лише через fire_pending().
    """

    def __init__(self):
        self.handles = []

    def __call__(self, delay, callback):
        handle = FakeHandle(delay, callback)
        self.handles.append(handle)
        return handle

    @property
    def active(self):
        return [h for h in self.handles if not h.cancelled]

    def fire_pending(self):
        handles, self.handles = self.active, []
        for handle in handles:
            handle.callback()
        return len(handles)


def make_contact(contact_id, name, url_name=None, minutes=0, **fields):
    """
    Створює schemas.ContactOut без бази даних.

    Args:
        contact_id (str): Ідентифікатор.
        name (str): Ім'я.
        url_name (str, optional): url_name; за замовчуванням похідне від імені.
        minutes (int): Зсув часу створення в хвилинах.
    """
    return schemas.ContactOut(
        id=contact_id,
        name=name,
        url_name=url_name if url_name is not None else slugify(name),
        created_at=BASE_TIME + timedelta(minutes=minutes),
        **fields,
    )


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def engine():
    """
    In-memory SQLite, спільна для всіх з'єднань тесту.
    """
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    models.Base.metadata.create_all(bind=test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    """
    Фікстура для створення тестової сесії бази даних.
    """
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client(engine, session_factory, scheduler):
    """
    TestClient поверх тестової бази. Lifespan не запускається, стан
    застосунку ініціалізується напряму.
    """
    init_state(app, session_factory, engine, scheduler)

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def contact_factory():
    return make_contact
