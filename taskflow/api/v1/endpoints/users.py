"""
User Endpoints Module

The caller's own account and workspace profile.
"""
from typing import Any
from fastapi import APIRouter, Depends
from taskflow.api import deps
from taskflow.core.session import SessionContext
from taskflow.db.session import get_store
from taskflow.db.store import EntityStore
from taskflow.models.user import Account, UserProfile
from taskflow.schemas.user import AccountUpdate, MeRead

router = APIRouter()


def _me(store: EntityStore, uid: str) -> MeRead:
    account = store.get(Account, uid)
    profile = store.get(UserProfile, uid)
    return MeRead(
        account=account.model_dump(),
        profile=profile,
        onboarding_required=profile is None or profile.current_company_id is None,
    )


@router.get("/me", response_model=MeRead)
def read_user_me(
    store: EntityStore = Depends(get_store),
    session: SessionContext = Depends(deps.get_session_context),
) -> Any:
    """
    Get the current account and its workspace profile.

    onboarding_required is true until the user belongs to a company.
    """
    return _me(store, session.uid)


@router.patch("/me", response_model=MeRead)
def update_user_me(
    user_in: AccountUpdate,
    store: EntityStore = Depends(get_store),
    session: SessionContext = Depends(deps.get_session_context),
) -> Any:
    """
    Update display name or avatar.

    Tasks, comments and notifications keep the snapshot taken when they were
    written; only new records pick up the change.
    """
    changes = user_in.model_dump(exclude_unset=True, exclude_none=True)
    if changes:
        store.update(Account, session.uid, changes)
        if session.profile is not None:
            store.update(UserProfile, session.uid, changes)
    return _me(store, session.uid)
