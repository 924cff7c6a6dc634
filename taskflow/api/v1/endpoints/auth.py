"""
Authentication Endpoints Module

Registration, login and logout. Login returns a JWT bearer token and also
sets it as an HTTP-only cookie for browser clients.
"""
from datetime import timedelta
from fastapi import APIRouter, Depends, HTTPException, status, Response
from fastapi.responses import RedirectResponse
from fastapi.security import OAuth2PasswordRequestForm
from taskflow.core.config import settings
from taskflow.core.errors import Conflict
from taskflow.core.security import verify_password, get_password_hash, create_access_token
from taskflow.db.session import get_store
from taskflow.db.store import EntityStore, SERVER_TIMESTAMP
from taskflow.models.user import Account
from taskflow.schemas.auth import Token, UserRegister
from taskflow.schemas.user import AccountRead

router = APIRouter()


@router.post("/register", response_model=AccountRead)
def register_user(user_in: UserRegister, store: EntityStore = Depends(get_store)):
    """
    Register a new account.

    The account has no workspace yet; the next step for the client is
    onboarding (create or join a company).

    Raises:
        HTTPException 400: If an account with this email already exists
    """
    email = user_in.email.lower()
    if store.query(Account, filters={"email": email}, limit=1):
        raise HTTPException(
            status_code=400,
            detail="User with this email already exists."
        )

    try:
        account_id = store.add(Account, {
            "email": email,
            "password": get_password_hash(user_in.password),
            "display_name": user_in.display_name or email.split("@")[0],
            "photo_url": user_in.photo_url,
            "created_at": SERVER_TIMESTAMP,
        })
    except Conflict:
        # Lost a race with a concurrent registration for the same email
        raise HTTPException(
            status_code=400,
            detail="User with this email already exists."
        )
    return store.get(Account, account_id)


@router.post("/login", response_model=Token)
def login(response: Response, store: EntityStore = Depends(get_store), form_data: OAuth2PasswordRequestForm = Depends()):
    """
    Authenticate with email (sent as "username") and password.

    Raises:
        HTTPException 401: If credentials are invalid
    """
    matches = store.query(Account, filters={"email": form_data.username.lower()}, limit=1)
    account = matches[0] if matches else None

    if not account or not verify_password(form_data.password, account.password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    access_token = create_access_token(
        subject=account.id,
        expires_delta=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )

    response.set_cookie(
        key="access_token",
        value=f"Bearer {access_token}",
        httponly=True,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        samesite="lax"
    )

    return {"access_token": access_token, "token_type": "bearer"}


@router.get("/logout")
def logout():
    """
    Sign out by clearing the authentication cookie and redirecting to /login.
    API clients can simply discard their token.
    """
    response = RedirectResponse(url="/login")
    response.delete_cookie("access_token")
    return response
