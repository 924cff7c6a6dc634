"""
Board WebSocket Module

Live Kanban board channel. The server pushes the full board after every
change and accepts drag-and-drop intents:

    -> {"type": "drag_end", "active_id": "<task id>", "over_id": "<column or task id>"}
    <- {"type": "snapshot", "loading": false, "error": null, "columns": [...]}
    <- {"type": "move_result", "outcome": "moved", ...}
    <- {"type": "error", "detail": "...", "error": "StoreUnavailable"}

The task subscription behind the channel is cancelled when the socket closes.
"""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status
from fastapi.concurrency import run_in_threadpool
from taskflow.api.live import LiveChannel, accept_session, error_message
from taskflow.core.errors import TaskFlowError
from taskflow.db.session import get_store
from taskflow.db.store import EntityStore
from taskflow.services.board import BoardSession
from taskflow.services.task_repository import TaskRepository

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws")
async def board_socket(
    websocket: WebSocket,
    token: Optional[str] = None,
    store: EntityStore = Depends(get_store),
):
    session = await accept_session(websocket, store, token)
    if session is None:
        return

    async with LiveChannel(websocket) as channel:
        board = BoardSession(
            TaskRepository(store),
            session.company_id,
            on_change=lambda b: channel.push({"type": "snapshot", **b.to_payload()}),
            on_error=lambda e: channel.push({"type": "error", **e.to_payload()}),
        )
        try:
            await run_in_threadpool(board.open)
            while True:
                message = await channel.receive()
                if message is None:
                    continue
                if message.get("type") != "drag_end":
                    channel.push(error_message(f"Unknown message type: {message.get('type')}"))
                    continue
                result = await run_in_threadpool(board.drag_end, message.get("active_id"), message.get("over_id"))
                channel.push({"type": "move_result", **result.to_payload()})
        except WebSocketDisconnect:
            logger.debug("Board socket for company %s disconnected", session.company_id)
        except TaskFlowError as e:
            logger.warning("Board socket for company %s closed: %s", session.company_id, e)
            await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
        finally:
            board.close()
