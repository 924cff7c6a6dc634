"""
Board Reconciliation Module

A BoardSession is the live view model of one workspace's Kanban board. It
keeps the authoritative task snapshot delivered by the task subscription and
a pending overlay of optimistic status changes made by drag-and-drop.

- drag_end() applies the new status to the overlay at once, then persists it.
  If persisting fails the overlay entry is reverted and the error is reported.
- Every snapshot replaces the task set and clears the overlay: the most
  recent snapshot always wins over local optimistic state.
"""
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional

from taskflow.core.errors import TaskFlowError
from taskflow.db.store import Subscription
from taskflow.models.task import BOARD_COLUMNS, TaskRead, TaskStatus
from taskflow.services.task_repository import TaskRepository

logger = logging.getLogger(__name__)


class MoveOutcome(str, Enum):
    MOVED = "moved"
    NOOP = "noop"          # target status equals the current status
    ABORTED = "aborted"    # no valid drop target or unknown task
    FAILED = "failed"      # persist failed, optimistic change reverted


@dataclass
class MoveResult:
    outcome: MoveOutcome
    task_id: Optional[str] = None
    from_status: Optional[TaskStatus] = None
    to_status: Optional[TaskStatus] = None
    error: Optional[TaskFlowError] = None

    @property
    def wrote(self) -> bool:
        return self.outcome in (MoveOutcome.MOVED, MoveOutcome.FAILED)

    def to_payload(self) -> dict:
        return {
            "outcome": self.outcome.value,
            "task_id": self.task_id,
            "from_status": self.from_status.value if self.from_status else None,
            "to_status": self.to_status.value if self.to_status else None,
            "error": self.error.detail if self.error else None,
        }


class BoardSession:
    """
    Args:
        repository: Task repository used to subscribe and persist
        company_id: Workspace whose board is shown
        on_change: Called with the session after every visible change
        on_error: Called with the error when a persist or the subscription fails
    """

    def __init__(
        self,
        repository: TaskRepository,
        company_id: str,
        on_change: Optional[Callable[["BoardSession"], None]] = None,
        on_error: Optional[Callable[[TaskFlowError], None]] = None,
    ):
        self.repository = repository
        self.company_id = company_id
        self.on_change = on_change
        self.on_error = on_error
        self.loading = True
        self.error: Optional[TaskFlowError] = None
        self.pending: Dict[str, TaskStatus] = {}
        self._tasks: Dict[str, TaskRead] = {}
        self._subscription: Optional[Subscription] = None
        self._lock = threading.RLock()

    # === Lifecycle ===

    def open(self) -> "BoardSession":
        if self._subscription is not None:
            return self
        try:
            self._subscription = self.repository.subscribe(
                self.company_id, self.apply_snapshot, on_error=self._subscription_failed
            )
        except TaskFlowError as e:
            self._subscription_failed(e)
            raise
        return self

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None

    def __enter__(self):
        return self.open()

    def __exit__(self, *exc):
        self.close()
        return False

    def _subscription_failed(self, error: TaskFlowError) -> None:
        logger.error("Board subscription for company %s failed: %s", self.company_id, error)
        with self._lock:
            self.loading = False
            self.error = error
        self._report(error)
        self._changed()

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change(self)

    def _report(self, error: TaskFlowError) -> None:
        if self.on_error is not None:
            self.on_error(error)

    # === Snapshots ===

    def apply_snapshot(self, tasks: List[TaskRead]) -> None:
        """Replace the board with an authoritative snapshot."""
        with self._lock:
            self._tasks = {task.id: task for task in tasks}
            self.pending.clear()
            self.loading = False
            self.error = None
        self._changed()

    def get(self, task_id: str) -> Optional[TaskRead]:
        """Task as currently displayed, with any optimistic status applied."""
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None:
                return None
            if task_id in self.pending:
                return task.model_copy(update={"status": self.pending[task_id]})
            return task

    def view(self) -> List[TaskRead]:
        with self._lock:
            return [self.get(task_id) for task_id in self._tasks]

    def columns(self) -> Dict[TaskStatus, List[TaskRead]]:
        board = {status: [] for status, _ in BOARD_COLUMNS}
        for task in self.view():
            board[TaskStatus(task.status)].append(task)
        return board

    def to_payload(self) -> dict:
        columns = self.columns()
        return {
            "loading": self.loading,
            "error": self.error.detail if self.error else None,
            "columns": [
                {
                    "id": status.value,
                    "title": title,
                    "tasks": [task.model_dump(mode="json") for task in columns[status]],
                }
                for status, title in BOARD_COLUMNS
            ],
        }

    # === Drag and drop ===

    def resolve_target(self, over_id: Optional[str]) -> Optional[TaskStatus]:
        """A column id maps to its status, a task id to that task's displayed status."""
        if not over_id:
            return None
        try:
            return TaskStatus(over_id)
        except ValueError:
            pass
        over_task = self.get(over_id)
        return TaskStatus(over_task.status) if over_task is not None else None

    def drag_end(self, active_id: str, over_id: Optional[str]) -> MoveResult:
        """
        Handle the end of a drag gesture.

        Dropping outside any target, or on a target with the task's own status,
        changes nothing and writes nothing.
        """
        with self._lock:
            task = self.get(active_id)
            if task is None:
                return MoveResult(MoveOutcome.ABORTED, task_id=active_id)
            current = TaskStatus(task.status)
            target = self.resolve_target(over_id)
            if target is None:
                return MoveResult(MoveOutcome.ABORTED, task_id=active_id, from_status=current)
            if target == current:
                return MoveResult(MoveOutcome.NOOP, task_id=active_id, from_status=current, to_status=target)
            self.pending[active_id] = target
        self._changed()

        try:
            self.repository.set_status(active_id, target)
        except TaskFlowError as e:
            logger.warning("Failed to move task %s to %s: %s", active_id, target.value, e)
            with self._lock:
                if self.pending.get(active_id) == target:
                    del self.pending[active_id]
                self.error = e
            self._report(e)
            self._changed()
            return MoveResult(MoveOutcome.FAILED, task_id=active_id, from_status=current, to_status=target, error=e)

        return MoveResult(MoveOutcome.MOVED, task_id=active_id, from_status=current, to_status=target)
