import warnings

import pytest
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlmodel import Session

from taskflow.core.errors import Conflict, NotFound, StoreUnavailable, ValidationFailed
from taskflow.db.store import SERVER_TIMESTAMP
from taskflow.models.task import Task, TaskRead, TaskStatus
from taskflow.models.user import Account


def task_fields(**overrides):
    fields = {
        "title": "Write report",
        "company_id": "c1",
        "created_by": "u1",
        "created_at": SERVER_TIMESTAMP,
    }
    fields.update(overrides)
    return fields


def test_add_resolves_server_timestamp_and_returns_read_model(store):
    task_id = store.add(Task, task_fields())
    task = store.get(Task, task_id)

    assert isinstance(task, TaskRead)
    assert task.id == task_id
    assert task.status == TaskStatus.TODO
    assert task.created_at is not None


def test_server_timestamps_strictly_increase(store):
    stamps = [store.server_timestamp() for _ in range(50)]
    assert stamps == sorted(stamps)
    assert len(set(stamps)) == len(stamps)


def test_add_rejects_invalid_status(store):
    with pytest.raises(ValidationFailed):
        store.add(Task, task_fields(status="blocked"))


def test_update_merges_fields(store):
    task_id = store.add(Task, task_fields(description="first"))
    updated = store.update(Task, task_id, {"status": "review"})

    assert updated.status == TaskStatus.REVIEW
    assert updated.description == "first"


def test_update_missing_document_raises_not_found(store):
    with pytest.raises(NotFound):
        store.update(Task, "missing", {"status": "done"})


def test_malformed_rows_are_dropped_from_reads(store, engine):
    store.add(Task, task_fields(title="Good"))
    with Session(engine) as db:
        # Table constructors skip validation, so this row bypasses the store
        db.add(Task(id="bad", title="Bad", status="blocked", company_id="c1", created_by="u1"))
        db.commit()

    tasks = store.query(Task, filters={"company_id": "c1"})
    assert [t.title for t in tasks] == ["Good"]
    assert store.get(Task, "bad") is None


def test_live_query_delivers_full_set_on_every_change(store):
    deliveries = []
    subscription = store.live_query(Task, deliveries.append, filters={"company_id": "c1"})

    first = store.add(Task, task_fields(title="One"))
    store.add(Task, task_fields(title="Other company", company_id="c2"))
    store.update(Task, first, {"status": "done"})

    assert [len(snapshot) for snapshot in deliveries] == [0, 1, 1, 1]
    assert deliveries[-1][0].status == TaskStatus.DONE
    subscription.cancel()


def test_cancelled_subscription_receives_no_further_callbacks(store):
    calls = []
    subscription = store.live_query(Task, calls.append, filters={"company_id": "c1"})
    assert len(calls) == 1

    subscription.cancel()
    subscription.cancel()
    store.add(Task, task_fields())

    assert len(calls) == 1
    assert not subscription.active
    assert store.active_subscriptions(Task) == []


def test_failing_subscriber_does_not_block_others(store):
    received = []

    def broken(snapshot):
        raise RuntimeError("render failed")

    store.live_query(Task, broken)
    store.live_query(Task, received.append)
    store.add(Task, task_fields())

    assert len(received) == 2


def test_subscription_context_manager_cancels(store):
    calls = []
    with store.live_query(Task, calls.append):
        store.add(Task, task_fields())
    store.add(Task, task_fields())

    assert len(calls) == 2


def _operational_error():
    return OperationalError("SELECT 1", {}, Exception("database is locked"))


def test_transient_failures_are_retried(store):
    attempts = []

    def flaky(db):
        attempts.append(1)
        if len(attempts) == 1:
            raise _operational_error()
        return "ok"

    assert store._run(flaky, "flaky read") == "ok"
    assert len(attempts) == 2


def test_persistent_failure_raises_store_unavailable(store):
    attempts = []

    def down(db):
        attempts.append(1)
        raise _operational_error()

    with pytest.raises(StoreUnavailable):
        store._run(down, "read while offline")
    assert len(attempts) == store.retry_attempts


def test_unique_violation_raises_conflict(store):
    store.add(Account, {"email": "dup@example.com", "password": "x"})

    with pytest.raises(Conflict):
        store.add(Account, {"email": "dup@example.com", "password": "y"})
    assert len(store.query(Account, filters={"email": "dup@example.com"})) == 1


def test_other_database_errors_raise_store_unavailable(store):
    attempts = []

    def broken(db):
        attempts.append(1)
        raise SQLAlchemyError("mapper exploded")

    with pytest.raises(StoreUnavailable):
        store._run(broken, "read broken table")
    assert len(attempts) == 1


def test_reads_of_enum_columns_do_not_warn(store):
    task_id = store.add(Task, task_fields(status="review", priority="high"))

    with warnings.catch_warnings():
        warnings.simplefilter("error", UserWarning)
        task = store.get(Task, task_id)
        store.update(Task, task_id, {"title": "Renamed"})

    assert task.status == TaskStatus.REVIEW
