"""
API Dependencies Module

FastAPI dependency functions for authentication, the session context and the
service objects. Authentication accepts a bearer token (API clients) or the
HTTP-only access_token cookie (browser clients).
"""
from typing import Optional
from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer

from taskflow.core.config import settings
from taskflow.core.errors import NotAuthenticated, PermissionDenied
from taskflow.core.security import decode_access_token
from taskflow.core.session import SessionContext
from taskflow.db.session import get_store
from taskflow.db.store import EntityStore
from taskflow.models.user import Account, UserProfile
from taskflow.services.board import BoardSession
from taskflow.services.comments import CommentService
from taskflow.services.companies import CompanyService
from taskflow.services.notifications import NotificationService
from taskflow.services.task_repository import TaskRepository

# auto_error=False allows us to check cookies as a fallback
reusable_oauth2 = OAuth2PasswordBearer(
    tokenUrl=f"{settings.API_V1_STR}/auth/login",
    auto_error=False
)


def _strip_bearer(token: Optional[str]) -> Optional[str]:
    if token and token.startswith("Bearer "):
        return token[len("Bearer "):]
    return token


def resolve_session(store: EntityStore, token: Optional[str]) -> SessionContext:
    """
    Build the session context for a raw access token.

    Raises:
        NotAuthenticated: If the token is missing, invalid, expired or its account is gone
    """
    token = _strip_bearer(token)
    if not token:
        raise NotAuthenticated()

    account_id = decode_access_token(token)
    if account_id is None:
        raise NotAuthenticated("Could not validate credentials")

    account = store.get(Account, account_id)
    if account is None:
        raise NotAuthenticated("Account no longer exists")

    profile = store.get(UserProfile, account.id)
    return SessionContext.from_account(account, profile)


def get_session_context(
    request: Request,
    store: EntityStore = Depends(get_store),
    token: Optional[str] = Depends(reusable_oauth2),
) -> SessionContext:
    """
    Dependency that resolves the caller into a ready SessionContext.

    The Authorization header is checked first, then the access_token cookie.
    """
    if not token:
        token = request.cookies.get("access_token")
    return resolve_session(store, token)


def get_workspace_session(
    session: SessionContext = Depends(get_session_context),
) -> SessionContext:
    """Dependency that requires the caller to have completed onboarding."""
    session.require_workspace()
    return session


def get_admin_session(
    session: SessionContext = Depends(get_workspace_session),
) -> SessionContext:
    """Dependency that requires an admin of the current company."""
    if not session.is_admin:
        raise PermissionDenied("The user doesn't have enough privileges")
    return session


def get_notification_service(store: EntityStore = Depends(get_store)) -> NotificationService:
    return NotificationService(store)


def get_task_repository(
    store: EntityStore = Depends(get_store),
    notifier: NotificationService = Depends(get_notification_service),
) -> TaskRepository:
    return TaskRepository(store, notifier)


def get_comment_service(
    store: EntityStore = Depends(get_store),
    notifier: NotificationService = Depends(get_notification_service),
) -> CommentService:
    return CommentService(store, notifier)


def get_company_service(store: EntityStore = Depends(get_store)) -> CompanyService:
    return CompanyService(store)


def open_board(repository: TaskRepository, session: SessionContext, **callbacks) -> BoardSession:
    return BoardSession(repository, session.require_workspace(), **callbacks).open()
