# tests/test_crud.py
import pytest
from sqlalchemy.exc import OperationalError

from app import crud, models, schemas
from app.errors import FetchFailed, MutationFailed, QuotaExceeded


def create(db, name, phones=(), **fields):
    return crud.create_contact(db, schemas.ContactCreate(
        name=name,
        phone_numbers=[schemas.PhoneNumberIn(**phone) for phone in phones],
        **fields,
    ))


def test_create_contact(db_session):
    """
    Тест створення контакту з номерами телефонів.
    """
    contact = create(
        db_session, "Jane Doe",
        phones=[{"number": "5551234567"}, {"number": "5559876543", "label": "work"}],
        email="jane@example.com",
    )
    assert contact.name == "Jane Doe"
    assert contact.url_name == "jane-doe"
    assert contact.email == "jane@example.com"
    assert [p.number for p in contact.phone_numbers] == ["5551234567", "5559876543"]
    assert [p.is_primary for p in contact.phone_numbers] == [True, False]
    assert contact.phone_numbers[1].label == "work"


def test_url_name_collisions(db_session):
    first = create(db_session, "Jane Doe")
    second = create(db_session, "Jane Doe")
    third = create(db_session, "jane  doe")
    assert [first.url_name, second.url_name, third.url_name] == ["jane-doe", "jane-doe-1", "jane-doe-2"]
    assert crud.get_contact_by_url_name(db_session, "jane-doe-1").id == second.id


def test_url_names_are_stable_under_search(db_session):
    create(db_session, "Jane Doe", phones=[{"number": "111"}])
    second = create(db_session, "Jane Doe", phones=[{"number": "222"}])
    found = crud.list_contacts(db_session, search="222")
    assert [(c.id, c.url_name) for c in found] == [(second.id, "jane-doe-1")]


def test_search_by_name(db_session):
    """
    Тест пошуку: "ali" знаходить Alice Smith та Alicia Keys, але не Bob Jones.
    """
    create(db_session, "Alice Smith")
    create(db_session, "Bob Jones")
    create(db_session, "Alicia Keys")
    found = crud.list_contacts(db_session, search="ali")
    assert [c.name for c in found] == ["Alice Smith", "Alicia Keys"]


def test_search_by_phone_and_email(db_session):
    create(db_session, "Alice Smith", phones=[{"number": "555-0101"}])
    create(db_session, "Bob Jones", email="bob@example.com")
    assert [c.name for c in crud.list_contacts(db_session, search="0101")] == ["Alice Smith"]
    assert [c.name for c in crud.list_contacts(db_session, search="BOB@")] == ["Bob Jones"]


def test_single_primary_phone():
    phones = crud.normalize_phone_numbers([
        schemas.PhoneNumberIn(number="1", is_primary=False),
        schemas.PhoneNumberIn(number="2", is_primary=True),
        schemas.PhoneNumberIn(number="3", is_primary=True),
        schemas.PhoneNumberIn(number="  "),
    ])
    assert [(p.number, p.is_primary) for p in phones] == [("1", False), ("2", True), ("3", False)]


def test_first_phone_becomes_primary():
    phones = crud.normalize_phone_numbers([schemas.PhoneNumberIn(number="1"), schemas.PhoneNumberIn(number="2")])
    assert [p.is_primary for p in phones] == [True, False]
    assert crud.normalize_phone_numbers([]) == []


def test_update_reconciles_phone_numbers(db_session):
    """
    Тест оновлення: номер з id змінюється, новий додається, відсутній видаляється.
    """
    contact = create(db_session, "Jane Doe", phones=[{"number": "111"}, {"number": "222"}])
    kept, dropped = contact.phone_numbers

    updated = crud.update_contact(db_session, contact.id, schemas.ContactUpdate(
        name="Jane Doe",
        phone_numbers=[
            schemas.PhoneNumberIn(id=kept.id, number="111-changed", label="home"),
            schemas.PhoneNumberIn(number="333", is_primary=True),
        ],
    ))
    assert [p.number for p in updated.phone_numbers] == ["111-changed", "333"]
    assert updated.phone_numbers[0].id == kept.id
    assert updated.phone_numbers[1].is_primary
    assert not updated.phone_numbers[0].is_primary
    assert db_session.get(models.PhoneNumber, dropped.id) is None


def test_update_missing_contact(db_session):
    assert crud.update_contact(db_session, "missing", schemas.ContactUpdate(name="X")) is None
    assert crud.update_notes(db_session, "missing", "x") is None


def test_update_renames_url_name(db_session):
    contact = create(db_session, "Jane Doe")
    updated = crud.update_contact(db_session, contact.id, schemas.ContactUpdate(name="Janet Doe"))
    assert updated.url_name == "janet-doe"


def test_update_notes(db_session):
    contact = create(db_session, "Jane Doe")
    assert crud.update_notes(db_session, contact.id, "Met in Kyiv").notes == "Met in Kyiv"


def test_delete_contact_cascades(db_session):
    contact = create(db_session, "Jane Doe", phones=[{"number": "111"}])
    group = crud.create_group(db_session, schemas.GroupCreate(name="Work"))
    crud.add_contact_to_group(db_session, group.id, contact.id)

    deleted = crud.delete_contact(db_session, contact.id)
    assert deleted.id == contact.id
    assert crud.get_contact(db_session, contact.id) is None
    assert db_session.query(models.PhoneNumber).count() == 0
    assert crud.get_group(db_session, group.id).contact_count == 0
    assert crud.delete_contact(db_session, contact.id) is None


def test_format_phone_number():
    assert schemas.format_phone_number("5551234567") == "(555) 123-4567"
    assert schemas.format_phone_number("555.123.4567") == "(555) 123-4567"
    assert schemas.format_phone_number("+44 20 7946 0958") == "+44 20 7946 0958"


def test_system_group_seeded_once(db_session):
    crud.ensure_system_groups(db_session)
    crud.ensure_system_groups(db_session)
    groups = crud.list_groups(db_session)
    assert [(g.name, g.kind, g.icon) for g in groups] == [("Favorites", "system", "⭐")]


def test_system_group_cannot_be_deleted(db_session):
    crud.ensure_system_groups(db_session)
    favorites = crud.list_groups(db_session)[0]
    with pytest.raises(ValueError):
        crud.delete_group(db_session, favorites.id)


def test_groups_membership_and_counts(db_session):
    """
    Тест груп: додавання ідемпотентне, кількість і фільтр за групою узгоджені.
    """
    jane = create(db_session, "Jane Doe")
    create(db_session, "John Smith")
    group = crud.create_group(db_session, schemas.GroupCreate(name="Family", icon="🏠"))

    crud.add_contact_to_group(db_session, group.id, jane.id)
    result = crud.add_contact_to_group(db_session, group.id, jane.id)
    assert result.contact_count == 1
    assert result.contact_ids == [jane.id]
    assert [c.name for c in crud.list_contacts(db_session, group_id=group.id)] == ["Jane Doe"]

    assert crud.add_contact_to_group(db_session, group.id, "missing") is None
    assert crud.remove_contact_from_group(db_session, group.id, jane.id).contact_count == 0


def test_delete_group_keeps_contacts(db_session):
    jane = create(db_session, "Jane Doe")
    group = crud.create_group(db_session, schemas.GroupCreate(name="Work"))
    crud.add_contact_to_group(db_session, group.id, jane.id)
    assert crud.delete_group(db_session, group.id).name == "Work"
    assert crud.get_contact(db_session, jane.id) is not None
    assert crud.delete_group(db_session, group.id) is None


def test_rename_group(db_session):
    group = crud.create_group(db_session, schemas.GroupCreate(name="Work"))
    renamed = crud.rename_group(db_session, group.id, schemas.GroupUpdate(name="Office", icon="💼"))
    assert (renamed.name, renamed.icon) == ("Office", "💼")
    assert crud.rename_group(db_session, "missing", schemas.GroupUpdate(name="X")) is None


def test_reorder_custom_groups(db_session):
    crud.ensure_system_groups(db_session)
    work = crud.create_group(db_session, schemas.GroupCreate(name="Work"))
    family = crud.create_group(db_session, schemas.GroupCreate(name="Family"))
    assert (work.position, family.position) == (1, 2)

    groups = crud.reorder_custom_groups(db_session, [family.id, work.id])
    assert [g.name for g in groups] == ["Favorites", "Family", "Work"]


def test_reorder_requires_every_custom_group(db_session):
    work = crud.create_group(db_session, schemas.GroupCreate(name="Work"))
    crud.create_group(db_session, schemas.GroupCreate(name="Family"))
    with pytest.raises(ValueError):
        crud.reorder_custom_groups(db_session, [work.id])
    with pytest.raises(ValueError):
        crud.reorder_custom_groups(db_session, [work.id, work.id])


def test_quota_error_is_detected(db_session, monkeypatch):
    """
    Тест: помилка квоти сховища перетворюється на QuotaExceeded.
    """
    contact = create(db_session, "Jane Doe")

    def failing_commit():
        raise OperationalError("UPDATE contacts", {}, Exception("Your project has exceeded the data transfer quota"))

    monkeypatch.setattr(db_session, "commit", failing_commit)
    with pytest.raises(QuotaExceeded):
        crud.update_contact(db_session, contact.id, schemas.ContactUpdate(name="Janet"))


def test_other_commit_errors_are_mutation_failures(db_session, monkeypatch):
    contact = create(db_session, "Jane Doe")

    def failing_commit():
        raise OperationalError("UPDATE contacts", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db_session, "commit", failing_commit)
    with pytest.raises(MutationFailed) as error:
        crud.update_notes(db_session, contact.id, "x")
    assert not isinstance(error.value, QuotaExceeded)


def test_fetch_errors_raise_fetch_failed(db_session, monkeypatch):
    def failing_query(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("connection refused"))

    monkeypatch.setattr(db_session, "query", failing_query)
    with pytest.raises(FetchFailed):
        crud.list_contacts(db_session)
    with pytest.raises(FetchFailed):
        crud.list_groups(db_session)
