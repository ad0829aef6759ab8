"""Signup, login and session introspection routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from app.dependencies import get_credentials, require_user
from app.schemas import (
    LoginRequest,
    LoginResponse,
    SignupRequest,
    SignupResponse,
    UserPublic,
)
from errors import ConflictError, InvalidCredentialError, NotFoundError
from services.credentials import CredentialStore

router = APIRouter(prefix="/api/auth", tags=["auth"])

# Unknown email and wrong password answer identically.
_LOGIN_FAILED = "Invalid email or password"


# bcrypt hashing is CPU-bound, so signup and login are sync routes and run
# in the threadpool instead of on the event loop.
@router.post(
    "/signup",
    status_code=status.HTTP_201_CREATED,
    response_model=SignupResponse,
)
def signup(
    payload: SignupRequest,
    credentials: CredentialStore = Depends(get_credentials),
) -> SignupResponse:
    try:
        user_id = credentials.register(payload.email, payload.password, payload.name)
    except ConflictError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    return SignupResponse(id=user_id)


@router.post("/login", response_model=LoginResponse)
def login(
    payload: LoginRequest,
    credentials: CredentialStore = Depends(get_credentials),
) -> LoginResponse:
    try:
        token, user = credentials.authenticate(payload.email, payload.password)
    except (NotFoundError, InvalidCredentialError) as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=_LOGIN_FAILED,
        ) from exc
    return LoginResponse(
        token=token,
        user=UserPublic(id=user.id, email=user.email, name=user.name),
    )


@router.get("/me", response_model=UserPublic)
async def me(
    user_id: str = Depends(require_user),
    credentials: CredentialStore = Depends(get_credentials),
) -> UserPublic:
    try:
        user = credentials.get_user(user_id)
    except NotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        ) from exc
    return UserPublic(id=user.id, email=user.email, name=user.name)
