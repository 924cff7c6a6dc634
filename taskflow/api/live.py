"""
Live Channel Module

Shared plumbing for the WebSocket endpoints. Store callbacks run on worker
threads, so every outgoing message goes through an asyncio queue that a
single sender task drains onto the socket.
"""
import asyncio
import json
import logging
from typing import Optional
from fastapi import WebSocket, status
from fastapi.concurrency import run_in_threadpool
from taskflow.api import deps
from taskflow.core.errors import TaskFlowError
from taskflow.core.session import SessionContext
from taskflow.db.store import EntityStore

logger = logging.getLogger(__name__)


async def accept_session(
    websocket: WebSocket,
    store: EntityStore,
    token: Optional[str],
    require_workspace: bool = True,
) -> Optional[SessionContext]:
    """
    Accept the socket and resolve the caller.

    On an auth or onboarding failure the error is sent to the client, the
    socket is closed with a policy violation and None is returned.
    """
    await websocket.accept()
    try:
        session = await run_in_threadpool(
            deps.resolve_session, store, token or websocket.cookies.get("access_token")
        )
        if require_workspace:
            session.require_workspace()
        else:
            session.require_user()
    except TaskFlowError as e:
        await reject(websocket, e)
        return None
    return session


async def reject(websocket: WebSocket, error: TaskFlowError) -> None:
    await websocket.send_json({"type": "error", **error.to_payload()})
    await websocket.close(code=status.WS_1008_POLICY_VIOLATION)


def error_message(detail: str, error: str = "ValidationFailed") -> dict:
    return {"type": "error", "detail": detail, "error": error}


class LiveChannel:
    """
    Outgoing message queue bound to one socket.

    Use as an async context manager; the sender task is started on entry and
    cancelled and awaited on exit.
    """

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket
        self.loop = asyncio.get_running_loop()
        self.queue: asyncio.Queue = asyncio.Queue()
        self._sender: Optional[asyncio.Task] = None

    def push(self, message: dict) -> None:
        """Queue a message; safe to call from any thread."""
        self.loop.call_soon_threadsafe(self.queue.put_nowait, message)

    async def _pump(self) -> None:
        while True:
            message = await self.queue.get()
            await self.websocket.send_json(message)

    async def receive(self) -> Optional[dict]:
        """
        Next client message as a dict.

        Frames that are not a JSON object are answered with a ValidationFailed
        error and reported as None; the socket stays open.

        Raises:
            WebSocketDisconnect: When the client goes away
        """
        text = await self.websocket.receive_text()
        try:
            message = json.loads(text)
        except json.JSONDecodeError:
            self.push(error_message("Message is not valid JSON"))
            return None
        if not isinstance(message, dict):
            self.push(error_message("Message must be a JSON object"))
            return None
        return message

    async def __aenter__(self):
        self._sender = asyncio.create_task(self._pump())
        return self

    async def __aexit__(self, *exc):
        self._sender.cancel()
        results = await asyncio.gather(self._sender, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                logger.debug("Live channel sender stopped: %r", result)
        return False
