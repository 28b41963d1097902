"""Authentication routes: SMS verification, registration and login."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status

from ..auth import CurrentUser, create_access_token
from ..config import Settings, get_settings
from ..errors import PersistenceError
from ..logging_config import get_logger, log_auth_event
from ..models import (
    AuthResponse,
    LoginRequest,
    RegisterRequest,
    SendCodeRequest,
    SendCodeResponse,
    UserProfile,
)
from ..rate_limit import limiter
from ..store import Store
from .deps import SMS

logger = get_logger("socia.auth")
router = APIRouter(prefix="/api/auth", tags=["auth"])


def _auth_response(user: UserProfile, settings: Settings) -> AuthResponse:
    return AuthResponse(
        user=user,
        access_token=create_access_token(user.id, settings),
        expires_in=settings.jwt_expire_minutes * 60,
    )


@router.post("/send-code", response_model=SendCodeResponse)
@limiter.limit("5/minute")
async def send_code(
    request: Request,
    code_request: SendCodeRequest,
    sms: SMS,
):
    """Send a verification code to a phone number."""
    try:
        await sms.send_code(code_request.phone)
    except Exception as e:
        logger.error(f"Failed to send verification code: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to send verification code",
        )
    return SendCodeResponse(message="Verification code sent", phone=code_request.phone)


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("5/minute")
async def register(
    request: Request,
    register_request: RegisterRequest,
    store: Store,
    sms: SMS,
    settings: Annotated[Settings, Depends(get_settings)],
):
    """
    Register a new user.

    The verification code is consumed even if the phone turns out to be
    taken; the client has to request a new one.
    """
    phone = register_request.phone
    if not await sms.verify_code(phone, register_request.code):
        log_auth_event("register", phone, False, "invalid code")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid verification code",
        )

    try:
        if await store.get_user_by_phone(phone) is not None:
            log_auth_event("register", phone, False, "already exists")
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="User already exists",
            )
        user = await store.create_user(
            phone=phone,
            nickname=register_request.nickname,
            flirt_style=register_request.flirt_style.value,
            gender=register_request.gender,
            age=register_request.age,
        )
    except PersistenceError:
        log_auth_event("register", phone, False, "database error")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create user",
        )

    log_auth_event("register", user.id, True)
    return _auth_response(user, settings)


@router.post("/login", response_model=AuthResponse)
@limiter.limit("10/minute")
async def login(
    request: Request,
    login_request: LoginRequest,
    store: Store,
    sms: SMS,
    settings: Annotated[Settings, Depends(get_settings)],
):
    """Log in with a phone number and verification code."""
    phone = login_request.phone
    if not await sms.verify_code(phone, login_request.code):
        log_auth_event("login", phone, False, "invalid code")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid verification code",
        )

    try:
        user = await store.get_user_by_phone(phone)
    except PersistenceError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load user",
        )
    if user is None:
        log_auth_event("login", phone, False, "unknown phone")
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )

    log_auth_event("login", user.id, True)
    return _auth_response(user, settings)


@router.post("/logout")
async def logout(user_id: CurrentUser):
    """Tokens are stateless; the client discards its copy."""
    log_auth_event("logout", user_id, True)
    return {"message": "Logged out successfully"}
