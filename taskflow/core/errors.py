"""
Error Taxonomy Module

Domain exceptions raised by the store and services. The API layer converts
each class into a JSON error response through the handlers registered in
register_exception_handlers(), so no store failure reaches a client as an
unhandled 500.
"""
import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class TaskFlowError(Exception):
    """Base class for all TaskFlow domain errors."""
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str = None):
        self.detail = detail or self.__class__.__doc__ or self.__class__.__name__
        super().__init__(self.detail)

    def to_payload(self) -> dict:
        return {"detail": self.detail, "error": self.__class__.__name__}


class NotAuthenticated(TaskFlowError):
    """Not authenticated"""
    status_code = status.HTTP_401_UNAUTHORIZED


class ProfileIncomplete(TaskFlowError):
    """Profile has no workspace assigned"""
    status_code = status.HTTP_409_CONFLICT

    def to_payload(self) -> dict:
        payload = super().to_payload()
        # Clients send the user through onboarding before retrying
        payload["redirect"] = "/onboarding"
        return payload


class PermissionDenied(TaskFlowError):
    """Not allowed"""
    status_code = status.HTTP_403_FORBIDDEN


class NotFound(TaskFlowError):
    """Resource not found"""
    status_code = status.HTTP_404_NOT_FOUND


class ValidationFailed(TaskFlowError):
    """Invalid input"""
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class Conflict(TaskFlowError):
    """Document conflicts with an existing one"""
    status_code = status.HTTP_409_CONFLICT


class StoreUnavailable(TaskFlowError):
    """The document store is temporarily unavailable"""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


def register_exception_handlers(app: FastAPI) -> None:
    """Attach a JSON handler for every TaskFlowError subclass."""

    @app.exception_handler(TaskFlowError)
    async def handle_taskflow_error(request: Request, exc: TaskFlowError):
        if isinstance(exc, StoreUnavailable):
            logger.warning("Store unavailable during %s %s: %s", request.method, request.url.path, exc.detail)
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())
