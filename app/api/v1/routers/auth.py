from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.limiter import auth_rate_limit, credential_key, limiter
from app.core.security import read_signed_subject
from app.core.settings import settings
from app.models import User
from app.schemas.auth import (
    AuthResponse,
    ChangePasswordRequest,
    CurrentUserOut,
    ForgotPasswordRequest,
    ForgotPasswordResponse,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    ResetPasswordRequest,
    TokenPair,
    UserOut,
)
from app.services import audit, credentials, sessions
from app.services.authz import Principal

router = APIRouter(prefix="/auth", tags=["auth"])

RESET_REQUESTED_MESSAGE = "If the email exists, a password reset link has been sent"


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(auth_rate_limit, key_func=credential_key)
async def register(
    payload: RegisterRequest,
    request: Request,
    db: AsyncSession = Depends(deps.get_db_session),
) -> AuthResponse:
    user = await credentials.register_user(
        db,
        first_name=payload.first_name,
        last_name=payload.last_name,
        email=payload.email,
        password=payload.password,
        department_id=payload.department_id,
    )
    tokens = await sessions.issue_tokens(user.id, user.email)
    return AuthResponse(user=UserOut.model_validate(user), tokens=tokens)


@router.post("/login", response_model=AuthResponse)
@limiter.limit(auth_rate_limit, key_func=credential_key)
async def login(
    payload: LoginRequest,
    request: Request,
    db: AsyncSession = Depends(deps.get_db_session),
) -> AuthResponse:
    user = await credentials.authenticate_user(db, payload.email, payload.password)
    tokens = await sessions.issue_tokens(user.id, user.email)
    return AuthResponse(user=UserOut.model_validate(user), tokens=tokens)


@router.post("/refresh", response_model=TokenPair)
async def refresh_tokens(
    payload: RefreshRequest,
    db: AsyncSession = Depends(deps.get_db_session),
) -> TokenPair:
    return await sessions.rotate_refresh_token(db, payload.refresh_token)


@router.post("/logout")
async def logout(token: str | None = Depends(deps.get_optional_bearer_token)) -> dict:
    # Stale tokens still sign out; only a valid signature names the user.
    user_id = read_signed_subject(token) if token else None
    await sessions.logout(user_id, token)
    audit.record_event("auth.logout", actor_id=user_id)
    return {"message": "Logged out successfully"}


@router.get("/me", response_model=CurrentUserOut)
async def read_me(
    current_user: User = Depends(deps.get_current_user),
    principal: Principal = Depends(deps.get_current_principal),
) -> CurrentUserOut:
    data = UserOut.model_validate(current_user).model_dump()
    return CurrentUserOut(**data, permissions=sorted(principal.permissions))


@router.post("/change-password")
async def change_password(
    payload: ChangePasswordRequest,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db_session),
) -> dict:
    await credentials.change_password(db, current_user, payload.current_password, payload.new_password)
    return {"message": "Password changed successfully; please sign in again"}


@router.post("/forgot-password", response_model=ForgotPasswordResponse)
@limiter.limit(auth_rate_limit, key_func=credential_key)
async def forgot_password(
    payload: ForgotPasswordRequest,
    request: Request,
    db: AsyncSession = Depends(deps.get_db_session),
) -> ForgotPasswordResponse:
    token = await credentials.request_password_reset(db, payload.email)
    # Delivery is out of band; the token is only echoed back for local development.
    expose = settings.expose_reset_token and settings.environment != "production"
    return ForgotPasswordResponse(
        message=RESET_REQUESTED_MESSAGE,
        reset_token=token if expose else None,
    )


@router.post("/reset-password")
@limiter.limit(auth_rate_limit, key_func=credential_key)
async def reset_password(
    payload: ResetPasswordRequest,
    request: Request,
    db: AsyncSession = Depends(deps.get_db_session),
) -> dict:
    await credentials.reset_password(db, payload.token, payload.new_password)
    return {"message": "Password reset successfully"}
