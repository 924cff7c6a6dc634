import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status
from fastapi.concurrency import run_in_threadpool
from taskflow.api import deps
from taskflow.api.live import LiveChannel, accept_session, error_message, reject
from taskflow.api.v1.endpoints.tasks import _task_in_workspace
from taskflow.core.errors import TaskFlowError
from taskflow.core.session import SessionContext
from taskflow.db.session import get_store
from taskflow.db.store import EntityStore
from taskflow.models.comment import CommentRead
from taskflow.schemas.board import CommentPost
from taskflow.services.comments import CommentService
from taskflow.services.task_repository import TaskRepository

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/{task_id}/comments", response_model=List[CommentRead])
def list_comments(
    task_id: str,
    repository: TaskRepository = Depends(deps.get_task_repository),
    comments: CommentService = Depends(deps.get_comment_service),
    session: SessionContext = Depends(deps.get_workspace_session),
):
    """Comments of a task, newest first."""
    _task_in_workspace(repository, task_id, session)
    return comments.list_comments(task_id)


@router.post("/{task_id}/comments", response_model=CommentRead)
def post_comment(
    task_id: str,
    comment_in: CommentPost,
    repository: TaskRepository = Depends(deps.get_task_repository),
    comments: CommentService = Depends(deps.get_comment_service),
    session: SessionContext = Depends(deps.get_workspace_session),
):
    """
    Post a comment. Every assignee of the task other than the author is
    notified with a short preview of the text.
    """
    _task_in_workspace(repository, task_id, session)
    return comments.add_comment(task_id, comment_in.text, session)


@router.websocket("/{task_id}/comments/ws")
async def comments_socket(
    task_id: str,
    websocket: WebSocket,
    token: Optional[str] = None,
    store: EntityStore = Depends(get_store),
):
    """
    Live comment thread of one task, pushed newest first on connect and after
    every new comment. Comments are posted over HTTP.
    """
    session = await accept_session(websocket, store, token)
    if session is None:
        return
    try:
        await run_in_threadpool(_task_in_workspace, TaskRepository(store), task_id, session)
    except TaskFlowError as e:
        await reject(websocket, e)
        return

    async with LiveChannel(websocket) as channel:
        subscription = None
        try:
            subscription = await run_in_threadpool(
                CommentService(store).subscribe,
                task_id,
                lambda comments: channel.push({
                    "type": "comments",
                    "task_id": task_id,
                    "comments": [c.model_dump(mode="json") for c in comments],
                }),
                on_error=lambda e: channel.push({"type": "error", **e.to_payload()}),
            )
            while True:
                if await channel.receive() is not None:
                    channel.push(error_message("Post comments over HTTP"))
        except WebSocketDisconnect:
            logger.debug("Comment socket for task %s disconnected", task_id)
        except TaskFlowError as e:
            logger.warning("Comment socket for task %s closed: %s", task_id, e)
            await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
        finally:
            if subscription is not None:
                subscription.cancel()
