import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status
from fastapi.concurrency import run_in_threadpool
from taskflow.api import deps
from taskflow.api.live import LiveChannel, accept_session, error_message
from taskflow.core.errors import TaskFlowError
from taskflow.core.session import SessionContext
from taskflow.db.session import get_store
from taskflow.db.store import EntityStore
from taskflow.models.notification import NotificationRead
from taskflow.services.notifications import NotificationService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=List[NotificationRead])
def read_feed(
    notifications: NotificationService = Depends(deps.get_notification_service),
    session: SessionContext = Depends(deps.get_session_context),
):
    """The caller's most recent notifications, newest first."""
    return notifications.list_feed(session.uid)


@router.post("/{notification_id}/read", response_model=NotificationRead)
def mark_read(
    notification_id: str,
    notifications: NotificationService = Depends(deps.get_notification_service),
    session: SessionContext = Depends(deps.get_session_context),
):
    return notifications.mark_read(notification_id, session.uid)


def feed_message(feed: List[NotificationRead]) -> dict:
    return {
        "type": "notifications",
        "unread": sum(1 for n in feed if not n.read),
        "notifications": [n.model_dump(mode="json") for n in feed],
    }


@router.websocket("/ws")
async def feed_socket(
    websocket: WebSocket,
    token: Optional[str] = None,
    store: EntityStore = Depends(get_store),
):
    """
    Live notification feed. The full feed is pushed on connect and again
    after every change; the channel accepts no client messages.
    """
    session = await accept_session(websocket, store, token, require_workspace=False)
    if session is None:
        return

    async with LiveChannel(websocket) as channel:
        subscription = None
        try:
            subscription = await run_in_threadpool(
                NotificationService(store).subscribe_feed,
                session.uid,
                lambda feed: channel.push(feed_message(feed)),
                on_error=lambda e: channel.push({"type": "error", **e.to_payload()}),
            )
            while True:
                if await channel.receive() is not None:
                    channel.push(error_message("The notification feed is read-only"))
        except WebSocketDisconnect:
            logger.debug("Notification feed socket for %s disconnected", session.uid)
        except TaskFlowError as e:
            logger.warning("Notification feed socket for %s closed: %s", session.uid, e)
            await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
        finally:
            if subscription is not None:
                subscription.cancel()
