# tests/test_scheduling.py
import threading

import pytest

from app.errors import MutationFailed
from app.notes import NotesAutosaver
from app.scheduling import Debouncer, thread_timer_scheduler


def test_debouncer_runs_last_call_once(scheduler):
    """
    Тест: серія викликів дає один запуск з останніми аргументами.
    """
    calls = []
    debouncer = Debouncer(0.3, calls.append, scheduler)
    debouncer.call("a")
    debouncer.call("al")
    debouncer.call("ali")
    assert debouncer.pending
    assert len(scheduler.active) == 1

    scheduler.fire_pending()
    assert calls == ["ali"]
    assert not debouncer.pending


def test_flush_runs_immediately_and_cancels_timer(scheduler):
    calls = []
    debouncer = Debouncer(0.3, calls.append, scheduler)
    debouncer.call("x")
    handle = scheduler.handles[-1]

    assert debouncer.flush()
    assert calls == ["x"]
    assert handle.cancelled
    assert not debouncer.flush()


def test_stale_timer_after_flush_does_not_run_twice(scheduler):
    """
    Тест гонки: таймер, який уже почав спрацьовувати під час flush, нічого не виконує.
    """
    calls = []
    debouncer = Debouncer(0.3, calls.append, scheduler)
    debouncer.call("x")
    handle = scheduler.handles[-1]

    debouncer.flush()
    handle.callback()
    assert calls == ["x"]


def test_cancel_drops_pending_call(scheduler):
    calls = []
    debouncer = Debouncer(0.3, calls.append, scheduler)
    debouncer.call("x")
    debouncer.cancel()
    assert scheduler.fire_pending() == 0
    assert calls == []


def test_timer_errors_go_to_on_error(scheduler):
    errors = []

    def failing(value):
        raise MutationFailed("boom")

    debouncer = Debouncer(0.3, failing, scheduler, on_error=errors.append)
    debouncer.call("x")
    scheduler.fire_pending()
    assert len(errors) == 1
    assert errors[0].message == "boom"


def test_flush_propagates_errors(scheduler):
    def failing(value):
        raise MutationFailed("boom")

    debouncer = Debouncer(0.3, failing, scheduler)
    debouncer.call("x")
    with pytest.raises(MutationFailed):
        debouncer.flush()
    assert not debouncer.pending


def test_thread_timer_scheduler_fires():
    fired = threading.Event()
    thread_timer_scheduler(0.01, fired.set)
    assert fired.wait(2)


def test_notes_written_after_pause(scheduler):
    """
    Тест автозбереження: після паузи записується лише остання версія нотаток.
    """
    saved = []
    notes = NotesAutosaver(lambda contact_id, text: saved.append((contact_id, text)), scheduler=scheduler)
    notes.edit("c1", "H")
    notes.edit("c1", "Hello")
    assert notes.pending("c1")

    scheduler.fire_pending()
    assert saved == [("c1", "Hello")]
    assert not notes.pending("c1")


def test_notes_blur_writes_once(scheduler):
    """
    Тест: втрата фокусу записує одразу і скасовує таймер; запізнілий таймер не пише вдруге.
    """
    saved = []
    notes = NotesAutosaver(lambda contact_id, text: saved.append((contact_id, text)), scheduler=scheduler)
    notes.edit("c1", "Hello")
    handle = scheduler.handles[-1]

    assert notes.blur("c1")
    assert saved == [("c1", "Hello")]
    assert handle.cancelled

    handle.callback()
    assert scheduler.fire_pending() == 0
    assert saved == [("c1", "Hello")]
    assert not notes.blur("c1")


def test_notes_are_buffered_per_contact(scheduler):
    saved = []
    notes = NotesAutosaver(lambda contact_id, text: saved.append((contact_id, text)), scheduler=scheduler)
    notes.edit("c1", "one")
    notes.edit("c2", "two")
    notes.blur("c1")
    assert saved == [("c1", "one")]
    scheduler.fire_pending()
    assert saved == [("c1", "one"), ("c2", "two")]


def test_notes_discard(scheduler):
    saved = []
    notes = NotesAutosaver(lambda contact_id, text: saved.append((contact_id, text)), scheduler=scheduler)
    notes.edit("c1", "draft")
    notes.discard("c1")
    scheduler.fire_pending()
    assert saved == []
    assert not notes.pending("c1")


def test_failed_autosave_keeps_draft_for_blur(scheduler):
    """
    Тест: невдалий запис за таймером не губить чернетку; blur повторює запис.
    """
    saved = []
    attempts = []

    def flaky_save(contact_id, text):
        attempts.append(text)
        if len(attempts) < 3:
            raise MutationFailed("Failed to update notes")
        saved.append((contact_id, text))

    notes = NotesAutosaver(flaky_save, scheduler=scheduler)
    notes.edit("c1", "draft")
    scheduler.fire_pending()
    assert isinstance(notes.failure("c1"), MutationFailed)
    assert notes.pending("c1")

    with pytest.raises(MutationFailed):
        notes.blur("c1")
    assert notes.failure("c1") is not None

    assert notes.blur("c1")
    assert saved == [("c1", "draft")]
    assert notes.failure("c1") is None
    assert not notes.blur("c1")


def test_new_edit_replaces_failed_draft(scheduler):
    saved = []

    def save(contact_id, text):
        if text == "first":
            raise MutationFailed()
        saved.append(text)

    notes = NotesAutosaver(save, scheduler=scheduler)
    notes.edit("c1", "first")
    scheduler.fire_pending()
    notes.edit("c1", "second")
    scheduler.fire_pending()
    assert saved == ["second"]
    assert notes.failure("c1") is None
    assert not notes.blur("c1")


def test_blur_waits_for_write_in_progress(scheduler):
    """
    Тест: blur під час запису за таймером чекає, поки запис завершиться.
    """
    started = threading.Event()
    release = threading.Event()
    saved = []

    def slow_save(contact_id, text):
        started.set()
        release.wait(2)
        saved.append((contact_id, text))

    notes = NotesAutosaver(slow_save, scheduler=scheduler)
    notes.edit("c1", "Hello")
    timer = threading.Thread(target=scheduler.fire_pending)
    timer.start()
    assert started.wait(2)

    results = []
    blur = threading.Thread(target=lambda: results.append((notes.blur("c1"), list(saved))))
    blur.start()
    blur.join(0.1)
    assert blur.is_alive()

    release.set()
    timer.join(2)
    blur.join(2)
    assert results == [(False, [("c1", "Hello")])]
