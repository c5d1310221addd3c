"""
Client Files Portal - Authentication Routes

API endpoints for authentication:
- POST /auth/register           - Create account and sign in
- POST /auth/login              - Authenticate (rate limited, lockout enforced)
- POST /auth/logout             - Revoke a refresh token
- POST /auth/refresh            - Mint a new access token
- GET  /auth/me                 - Current user
- POST /auth/forgot-password    - Request a reset email (rate limited)
- POST /auth/reset-password     - Redeem a reset token
- POST /auth/change-password    - Change password while signed in
- POST /auth/send-verification  - Request a verification email (rate limited)
- POST /auth/verify-email       - Redeem a verification token
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from sqlmodel import Session as DBSession

from portal.auth import lifecycle, service, sessions
from portal.auth.database import get_db
from portal.auth.dependencies import (
    AuthenticatedUser,
    get_best_effort_notifier,
    get_client_ip,
    get_current_user,
    get_lockout_engine,
    get_optional_user,
    get_required_notifier,
    get_user_agent,
)
from portal.auth.lockout import LockoutEngine
from portal.auth.models import Role
from portal.auth.schemas import (
    AccessTokenResponse,
    AuthResponse,
    ChangePasswordRequest,
    ErrorResponse,
    ForgotPasswordRequest,
    LoginRequest,
    LogoutRequest,
    MessageResponse,
    RefreshRequest,
    RegisterRequest,
    ResetPasswordRequest,
    UserResponse,
    VerifyEmailRequest,
)
from portal.auth.tokens import get_token_expiry_seconds
from portal.gateway.ratelimit import (
    LOGIN_POLICY,
    PASSWORD_RESET_POLICY,
    VERIFICATION_POLICY,
    rate_limit,
)
from portal.notifications import BestEffortNotifier, RequiredNotifier


router = APIRouter(prefix="/auth", tags=["authentication"])


def _auth_response(result: service.AuthResult) -> AuthResponse:
    return AuthResponse(
        user=UserResponse.model_validate(result.user),
        access_token=result.access_token,
        refresh_token=result.refresh_token,
    )


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
    summary="Create an account",
)
async def register(
    body: RegisterRequest,
    request: Request,
    db: DBSession = Depends(get_db),
    actor: Optional[AuthenticatedUser] = Depends(get_optional_user),
    notifier: BestEffortNotifier = Depends(get_best_effort_notifier),
):
    """
    Register a new account and return a signed-in token pair.

    A role above USER is only honoured for an AdminOrAbove caller.
    """
    result = await service.register(
        db,
        email=body.email,
        password=body.password,
        first_name=body.first_name,
        last_name=body.last_name,
        role=body.role or Role.USER,
        actor_role=actor.role if actor else None,
        notifier=notifier,
        ip_address=get_client_ip(request),
        user_agent=get_user_agent(request),
    )
    return _auth_response(result)


@router.post(
    "/login",
    response_model=AuthResponse,
    responses={401: {"model": ErrorResponse}, 429: {"model": ErrorResponse}},
    summary="Authenticate user and create session",
    dependencies=[Depends(rate_limit(LOGIN_POLICY))],
)
async def login(
    body: LoginRequest,
    request: Request,
    db: DBSession = Depends(get_db),
    lockout: LockoutEngine = Depends(get_lockout_engine),
):
    """
    Authenticate with email and password.

    Raises:
        401: Invalid credentials, account locked or deactivated
        429: Too many login attempts from this IP
    """
    result = await service.login(
        db,
        lockout,
        body.email,
        body.password,
        ip_address=get_client_ip(request),
        user_agent=get_user_agent(request),
    )
    return _auth_response(result)


@router.post("/logout", response_model=MessageResponse, summary="Revoke a refresh token")
async def logout(body: LogoutRequest, db: DBSession = Depends(get_db)):
    await service.logout(db, body.refresh_token)
    return MessageResponse(message="Logged out successfully")


@router.post(
    "/refresh",
    response_model=AccessTokenResponse,
    responses={401: {"model": ErrorResponse}},
    summary="Refresh access token",
)
async def refresh(body: RefreshRequest, db: DBSession = Depends(get_db)):
    access_token = await sessions.refresh(db, body.refresh_token)
    return AccessTokenResponse(
        access_token=access_token,
        expires_in=get_token_expiry_seconds(),
    )


@router.get("/me", response_model=UserResponse, summary="Get current user info")
async def get_me(
    user: AuthenticatedUser = Depends(get_current_user),
    db: DBSession = Depends(get_db),
):
    return UserResponse.model_validate(service.get_user(db, user.user_id))


@router.post(
    "/forgot-password",
    response_model=MessageResponse,
    summary="Request a password reset email",
    dependencies=[Depends(rate_limit(PASSWORD_RESET_POLICY))],
)
async def forgot_password(
    body: ForgotPasswordRequest,
    db: DBSession = Depends(get_db),
    notifier: RequiredNotifier = Depends(get_required_notifier),
):
    """Same response whether or not the email is registered."""
    await lifecycle.request_password_reset(db, body.email, notifier)
    return MessageResponse(
        message="If an account with that email exists, a password reset link has been sent."
    )


@router.post("/reset-password", response_model=MessageResponse, summary="Reset password with token")
async def reset_password(body: ResetPasswordRequest, db: DBSession = Depends(get_db)):
    await lifecycle.reset_password(db, body.token, body.new_password)
    return MessageResponse(message="Password has been reset successfully")


@router.post("/change-password", response_model=MessageResponse, summary="Change password")
async def change_password(
    body: ChangePasswordRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    db: DBSession = Depends(get_db),
):
    await lifecycle.change_password(db, user.user_id, body.current_password, body.new_password)
    return MessageResponse(message="Password changed successfully")


@router.post(
    "/send-verification",
    response_model=MessageResponse,
    summary="Send an email verification link",
    dependencies=[Depends(rate_limit(VERIFICATION_POLICY))],
)
async def send_verification(
    user: AuthenticatedUser = Depends(get_current_user),
    db: DBSession = Depends(get_db),
    notifier: RequiredNotifier = Depends(get_required_notifier),
):
    await lifecycle.send_email_verification(db, user.user_id, notifier)
    return MessageResponse(message="Verification email sent")


@router.post("/verify-email", response_model=MessageResponse, summary="Verify email with token")
async def verify_email(
    body: VerifyEmailRequest,
    db: DBSession = Depends(get_db),
    notifier: BestEffortNotifier = Depends(get_best_effort_notifier),
):
    await lifecycle.verify_email(db, body.token, notifier)
    return MessageResponse(message="Email verified successfully")
