"""
Task Endpoints Module

CRUD endpoints for the tasks of the caller's current company, plus the move
endpoint that runs a drag-and-drop gesture through the board reconciliation
engine. Tasks of other companies are reported as not found.
"""
from typing import List, Optional
from fastapi import APIRouter, Depends
from taskflow.api import deps
from taskflow.core.errors import NotFound
from taskflow.core.session import SessionContext
from taskflow.models.task import TaskCreate, TaskMove, TaskRead, TaskStatus, TaskUpdate
from taskflow.schemas.board import MoveResponse
from taskflow.services.board import MoveOutcome
from taskflow.services.task_repository import TaskRepository

router = APIRouter()


def _task_in_workspace(repository: TaskRepository, task_id: str, session: SessionContext) -> TaskRead:
    task = repository.get_task(task_id)
    if task.company_id != session.company_id:
        raise NotFound("Task not found")
    return task


@router.get("", response_model=List[TaskRead])
def list_tasks(
    status: Optional[TaskStatus] = None,
    assignee: Optional[str] = None,
    repository: TaskRepository = Depends(deps.get_task_repository),
    session: SessionContext = Depends(deps.get_workspace_session),
):
    """
    List the tasks of the current company.

    Args:
        status: Only tasks in this column
        assignee: Only tasks assigned to this user id
    """
    tasks = repository.list_tasks(session.company_id)
    if status is not None:
        tasks = [task for task in tasks if task.status == status]
    if assignee is not None:
        tasks = [task for task in tasks if assignee in task.assignee_ids]
    return tasks


@router.get("/{task_id}", response_model=TaskRead)
def read_task(
    task_id: str,
    repository: TaskRepository = Depends(deps.get_task_repository),
    session: SessionContext = Depends(deps.get_workspace_session),
):
    return _task_in_workspace(repository, task_id, session)


@router.post("", response_model=TaskRead)
def create_task(
    task_in: TaskCreate,
    repository: TaskRepository = Depends(deps.get_task_repository),
    session: SessionContext = Depends(deps.get_workspace_session),
):
    """
    Create a task in the current company.

    assignees is a list of user ids; every assignee other than the caller
    receives a task_assigned notification.
    """
    task_id = repository.create_task(task_in, session.company_id, session)
    return repository.get_task(task_id)


@router.patch("/{task_id}", response_model=TaskRead)
def update_task(
    task_id: str,
    task_update: TaskUpdate,
    repository: TaskRepository = Depends(deps.get_task_repository),
    session: SessionContext = Depends(deps.get_workspace_session),
):
    """Update title, description, status, priority, deadline or assignees."""
    _task_in_workspace(repository, task_id, session)
    return repository.update_task(task_id, task_update, actor=session)


@router.delete("/{task_id}")
def delete_task(
    task_id: str,
    repository: TaskRepository = Depends(deps.get_task_repository),
    session: SessionContext = Depends(deps.get_workspace_session),
):
    """Delete a task and its comments."""
    _task_in_workspace(repository, task_id, session)
    repository.delete_task(task_id)
    return {"status": "success", "detail": "Task deleted"}


@router.post("/{task_id}/move", response_model=MoveResponse)
def move_task(
    task_id: str,
    move: TaskMove,
    repository: TaskRepository = Depends(deps.get_task_repository),
    session: SessionContext = Depends(deps.get_workspace_session),
):
    """
    Drop a task on a column id or on another task.

    A drop on a target with the task's own status is a no-op and writes
    nothing; a drop without a valid target is aborted.
    """
    _task_in_workspace(repository, task_id, session)
    with deps.open_board(repository, session) as board:
        result = board.drag_end(task_id, move.over_id)
        task = board.get(task_id)

    if result.outcome == MoveOutcome.FAILED:
        raise result.error
    return MoveResponse(outcome=result.outcome.value, wrote=result.wrote, task=task)
