"""Tests for tracker/focus.py — focus session lifecycle."""

from datetime import timedelta

import pytest
from bson import ObjectId

from tracker.errors import InvalidIdError, MissingParameterError, NotFoundError, SessionClosedError
from tracker.focus import clamp_limit, elapsed_minutes


def test_start_session_is_open(focus, clock):
    session = focus.start()
    assert session.id
    assert session.task_id is None
    assert session.started_at == clock.now()
    assert session.ended_at == session.started_at
    assert session.duration_min == 0
    assert session.is_open


def test_start_with_task_reference(focus, tasks):
    task = tasks.create({"title": "Deep work"})
    session = focus.start(task.id)
    assert session.task_id == task.id


def test_start_keeps_reference_to_unknown_task(focus):
    ghost = str(ObjectId())
    assert focus.start(ghost).task_id == ghost


@pytest.mark.parametrize("bad", ["nope", 12, {"id": 1}])
def test_start_drops_malformed_task_id(focus, store, bad):
    session = focus.start(bad)
    assert session.task_id is None
    assert "taskId" not in store.sessions.find_one({})


def test_stop_records_duration(focus, clock):
    session = focus.start()
    clock.advance(minutes=25)
    stopped = focus.stop(session.id)
    assert stopped.duration_min == 25
    assert stopped.ended_at == clock.now()
    assert not stopped.is_open


@pytest.mark.parametrize(
    "seconds, minutes",
    [(29, 0), (30, 1), (89, 1), (90, 2), (25 * 60 + 10, 25)],
)
def test_stop_rounds_to_nearest_minute(focus, clock, seconds, minutes):
    session = focus.start()
    clock.advance(seconds=seconds)
    assert focus.stop(session.id).duration_min == minutes


def test_stop_never_negative(focus, clock):
    session = focus.start()
    clock.advance(minutes=-5)
    assert focus.stop(session.id).duration_min == 0


def test_stop_persists(focus, clock, store):
    session = focus.start()
    clock.advance(minutes=10)
    focus.stop(session.id)
    doc = store.sessions.find_one({"_id": ObjectId(session.id)})
    assert doc["durationMin"] == 10


def test_stop_twice_is_rejected(focus, clock):
    session = focus.start()
    clock.advance(minutes=10)
    focus.stop(session.id)
    clock.advance(minutes=50)
    with pytest.raises(SessionClosedError, match="already stopped"):
        focus.stop(session.id)
    assert focus.list()[0].duration_min == 10


def test_stop_in_same_instant_still_closes(focus, clock, store):
    session = focus.start()
    stopped = focus.stop(session.id)
    assert stopped.duration_min == 0
    assert not stopped.is_open
    assert stopped.ended_at > stopped.started_at

    clock.advance(minutes=30)
    with pytest.raises(SessionClosedError):
        focus.stop(session.id)
    assert store.sessions.find_one({"_id": ObjectId(session.id)})["durationMin"] == 0


def test_stop_with_clock_behind_start_still_closes(focus, clock):
    session = focus.start()
    clock.advance(minutes=-5)
    assert not focus.stop(session.id).is_open
    with pytest.raises(SessionClosedError):
        focus.stop(session.id)


@pytest.mark.parametrize("missing", [None, ""])
def test_stop_requires_session_id(focus, missing):
    with pytest.raises(MissingParameterError):
        focus.stop(missing)


def test_stop_invalid_and_unknown_ids(focus):
    with pytest.raises(InvalidIdError):
        focus.stop("xyz")
    with pytest.raises(NotFoundError):
        focus.stop(str(ObjectId()))


def test_list_newest_first_with_limit(focus, clock):
    ids = []
    for _ in range(5):
        ids.append(focus.start().id)
        clock.advance(minutes=1)
    listed = focus.list(3)
    assert [s.id for s in listed] == list(reversed(ids))[:3]
    assert len(focus.list()) == 5


def test_list_resolves_task_titles(focus, tasks, clock):
    task = tasks.create({"title": "Deep work"})
    focus.start(task.id)
    clock.advance(minutes=1)
    focus.start()
    newest, oldest = focus.list()
    assert newest.task is None and newest.task_id is None
    assert oldest.task.title == "Deep work"
    assert oldest.to_dict()["taskId"] == {"_id": task.id, "title": "Deep work"}


def test_list_tolerates_deleted_task(focus, tasks):
    task = tasks.create({"title": "Short lived"})
    focus.start(task.id)
    tasks.delete(task.id)
    (session,) = focus.list()
    assert session.task is None
    assert session.to_dict()["taskId"] is None


def test_list_treats_malformed_stored_task_id_as_dangling(focus, store, clock):
    now = clock.now().replace(tzinfo=None)
    store.sessions.insert_one(
        {"taskId": "not-an-id", "startedAt": now, "endedAt": now, "durationMin": 0, "createdAt": now}
    )
    (session,) = focus.list()
    assert session.task_id is None
    assert session.to_dict()["taskId"] is None


def test_elapsed_minutes_floor_at_zero(clock):
    now = clock.now()
    assert elapsed_minutes(now, now - timedelta(minutes=3)) == 0
    assert elapsed_minutes(now, now + timedelta(minutes=45)) == 45


@pytest.mark.parametrize(
    "raw, expected",
    [(None, 20), ("", 20), ("abc", 20), ("5", 5), (5, 5), ("500", 100), (0, 1), (-3, 1), ("7.9", 7)],
)
def test_clamp_limit(raw, expected):
    assert clamp_limit(raw) == expected
