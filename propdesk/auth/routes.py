"""
Authentication API routes.

Registration, login, token refresh, logout, profile read/update and the
password reset pair. Errors are raised as propdesk AppErrors and rendered
by the handlers installed in propdesk.main.
"""

from typing import Optional

from fastapi import APIRouter, Depends

from ..logger import log_info
from .dependencies import get_auth_service, get_bearer_token, require_bearer_token
from .models import (
    AuthResponse,
    CurrentUserResponse,
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    ResetPasswordRequest,
    TokenPair,
    TokenRefresh,
    UpdateProfileRequest,
    UserOut,
)
from .service import AuthService


router = APIRouter(prefix="/api/v1/auth", tags=["Authentication"])


@router.post("/register", response_model=AuthResponse, status_code=201)
async def register(data: RegisterRequest, service: AuthService = Depends(get_auth_service)):
    """
    Register a new organization and its admin user.

    - **email**: Valid email address (used for login)
    - **password**: Minimum 8 characters with upper case, lower case and a digit
    - **name**: Display name
    - **tenantName**: Name of the new organization
    """
    result = await service.register_user(data)
    log_info("New organization registered via API", tenant_id=result.tenant.id, action="api_register_success")
    return result


@router.post("/login", response_model=AuthResponse)
async def login(data: LoginRequest, service: AuthService = Depends(get_auth_service)):
    """
    Authenticate and get tokens bound to one tenant.

    - **tenantId**: Optional; required to pick a specific membership
    """
    return await service.login_user(data)


@router.post("/refresh", response_model=TokenPair)
async def refresh_token(data: TokenRefresh, service: AuthService = Depends(get_auth_service)):
    """
    Exchange a refresh token for a new token pair.

    The new pair stays bound to the same tenant.
    """
    return await service.refresh_token(data.refresh_token)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    token: Optional[str] = Depends(get_bearer_token),
    service: AuthService = Depends(get_auth_service),
):
    """
    Sign out. Always succeeds; the client should discard its tokens.
    """
    await service.logout_user(token)
    return MessageResponse(message="Logged out successfully")


@router.get("/me", response_model=CurrentUserResponse)
async def get_current_user_profile(
    token: str = Depends(require_bearer_token),
    service: AuthService = Depends(get_auth_service),
):
    """
    Get the current user's profile and the tenant the session is bound to.

    **Authorization**: Bearer token required
    """
    return await service.get_current_user(token)


@router.patch("/me", response_model=UserOut)
async def update_current_user_profile(
    data: UpdateProfileRequest,
    token: str = Depends(require_bearer_token),
    service: AuthService = Depends(get_auth_service),
):
    """
    Update name, phone or avatar of the current user's profile.

    **Authorization**: Bearer token required
    """
    return await service.update_user_profile(token, data)


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(data: ForgotPasswordRequest, service: AuthService = Depends(get_auth_service)):
    """
    Request a password reset email.

    Always answers the same way, whether or not the email is registered.
    """
    await service.forgot_password(data)
    return MessageResponse(
        message="If an account exists with this email, a password reset link has been sent."
    )


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(data: ResetPasswordRequest, service: AuthService = Depends(get_auth_service)):
    """
    Set a new password using the token from the reset email.
    """
    await service.reset_password(data)
    return MessageResponse(message="Password has been reset")
