import pytest

from taskflow.core.errors import StoreUnavailable
from taskflow.models.task import TaskStatus
from taskflow.services.board import BoardSession, MoveOutcome
from taskflow.services.task_repository import TaskRepository


class RecordingRepository(TaskRepository):
    """Counts status writes and can simulate the store being offline."""

    def __init__(self, store, fail=False):
        super().__init__(store)
        self.fail = fail
        self.writes = []
        self.board = None
        self.visible_during_write = []

    def set_status(self, task_id, status):
        self.writes.append((task_id, status))
        if self.board is not None:
            self.visible_during_write.append(self.board.get(task_id).status)
        if self.fail:
            raise StoreUnavailable("offline")
        return super().set_status(task_id, status)


@pytest.fixture
def repository(store):
    return RecordingRepository(store)


@pytest.fixture
def tasks(repository, workspace):
    company_id = workspace.company.id
    return {
        "a": repository.create_task({"title": "A"}, company_id, workspace.alice),
        "b": repository.create_task({"title": "B", "status": "review"}, company_id, workspace.alice),
    }


@pytest.fixture
def board(repository, workspace, tasks):
    session = BoardSession(repository, workspace.company.id)
    repository.board = session
    with session:
        yield session


def test_open_loads_snapshot(board, tasks):
    assert board.loading is False
    columns = board.columns()
    assert [t.id for t in columns[TaskStatus.TODO]] == [tasks["a"]]
    assert [t.id for t in columns[TaskStatus.REVIEW]] == [tasks["b"]]


def test_drop_on_column_moves_task(board, repository, tasks):
    result = board.drag_end(tasks["a"], "in-progress")

    assert result.outcome == MoveOutcome.MOVED
    assert repository.writes == [(tasks["a"], TaskStatus.IN_PROGRESS)]
    assert board.get(tasks["a"]).status == TaskStatus.IN_PROGRESS
    assert repository.get_task(tasks["a"]).status == TaskStatus.IN_PROGRESS
    assert board.pending == {}


def test_optimistic_status_is_visible_before_persist(board, repository, tasks):
    board.drag_end(tasks["a"], "done")
    assert repository.visible_during_write == [TaskStatus.DONE]


def test_drop_on_task_takes_its_status(board, repository, tasks):
    result = board.drag_end(tasks["a"], tasks["b"])

    assert result.outcome == MoveOutcome.MOVED
    assert result.to_status == TaskStatus.REVIEW
    assert board.get(tasks["a"]).status == TaskStatus.REVIEW


def test_drop_on_same_status_writes_nothing(board, repository, tasks):
    result = board.drag_end(tasks["a"], "todo")

    assert result.outcome == MoveOutcome.NOOP
    assert not result.wrote
    assert repository.writes == []


def test_drop_outside_target_aborts(board, repository, tasks):
    for over_id in (None, "", "no-such-column"):
        result = board.drag_end(tasks["a"], over_id)
        assert result.outcome == MoveOutcome.ABORTED
    assert repository.writes == []
    assert board.get(tasks["a"]).status == TaskStatus.TODO


def test_failed_persist_reverts_and_reports(store, workspace, tasks):
    errors = []
    repository = RecordingRepository(store, fail=True)
    with BoardSession(repository, workspace.company.id, on_error=errors.append) as board:
        repository.board = board
        result = board.drag_end(tasks["a"], "done")

        assert result.outcome == MoveOutcome.FAILED
        assert isinstance(result.error, StoreUnavailable)
        assert repository.visible_during_write == [TaskStatus.DONE]
        assert board.get(tasks["a"]).status == TaskStatus.TODO
        assert board.pending == {}
        assert errors == [result.error]


def test_remote_snapshot_wins(board, store, workspace, tasks):
    other_session = TaskRepository(store)
    other_session.set_status(tasks["a"], "review")

    assert board.get(tasks["a"]).status == TaskStatus.REVIEW


def test_snapshot_overwrites_pending_overlay(board, tasks):
    board.pending[tasks["a"]] = TaskStatus.DONE
    current = [board._tasks[tasks["a"]], board._tasks[tasks["b"]]]

    board.apply_snapshot(current)

    assert board.get(tasks["a"]).status == TaskStatus.TODO
    assert board.pending == {}


def test_close_stops_updates(repository, store, workspace, tasks):
    changes = []
    board = BoardSession(repository, workspace.company.id, on_change=changes.append).open()
    board.close()
    count = len(changes)

    TaskRepository(store).set_status(tasks["a"], "done")

    assert len(changes) == count
    assert board.get(tasks["a"]).status == TaskStatus.TODO


def test_status_is_always_one_of_the_columns(board, repository, tasks):
    for target in ("in-progress", "review", "done", "todo", tasks["b"]):
        board.drag_end(tasks["a"], target)
        for task in board.view():
            assert task.status in set(TaskStatus)


def test_payload_lists_all_columns(board):
    payload = board.to_payload()
    assert [column["id"] for column in payload["columns"]] == ["todo", "in-progress", "review", "done"]
    assert payload["loading"] is False
