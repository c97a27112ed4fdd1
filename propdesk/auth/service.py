"""
Authentication service for propdesk.

Single entry point used by the HTTP routes and scripts. It wires the
identity provider, the tenant directory and the token manager together
and exposes the operations the back-office UI needs.
"""

from typing import Optional, Union

from ..config import APP_URL, DEFAULT_TENANT_POLICY
from ..errors import AppError, UnauthorizedError, ValidationError
from ..logger import log_info, log_warning
from .directory import TenantDirectory
from .identity import IdentityProvider
from .models import (
    AuthResponse,
    CurrentUserResponse,
    ForgotPasswordRequest,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
    TokenPair,
    UpdateProfileRequest,
    UserOut,
    parse_request,
)
from .registration import RegistrationService
from .sessions import SessionResolver
from .tokens import TokenManager


class AuthService:
    """
    Service class for authentication operations.

    Holds no per-user state: every call receives the caller's token and
    returns new values instead of mutating a current session.
    """

    def __init__(
        self,
        identity: Optional[IdentityProvider] = None,
        directory: Optional[TenantDirectory] = None,
        tokens: Optional[TokenManager] = None,
        tenant_policy: Optional[str] = None,
    ):
        self.identity = identity or IdentityProvider()
        self.directory = directory or TenantDirectory()
        self.tokens = tokens or TokenManager(self.identity, self.directory)
        self.registration = RegistrationService(self.identity, self.directory, self.tokens)
        self.sessions = SessionResolver(
            self.identity,
            self.directory,
            self.tokens,
            tenant_policy or DEFAULT_TENANT_POLICY,
        )

    async def register_user(self, payload: Union[RegisterRequest, dict]) -> AuthResponse:
        return await self.registration.register(payload)

    async def login_user(self, payload: Union[LoginRequest, dict]) -> AuthResponse:
        return await self.sessions.login(payload)

    async def get_current_user(self, token: Optional[str]) -> CurrentUserResponse:
        return await self.tokens.current_user(token)

    async def logout_user(self, token: Optional[str]) -> None:
        await self.tokens.logout(token)

    async def refresh_token(self, refresh_token: Optional[str]) -> TokenPair:
        if not refresh_token:
            raise UnauthorizedError("Invalid refresh token")
        return await self.tokens.refresh(refresh_token)

    async def update_user_profile(
        self,
        token: Optional[str],
        patch: Union[UpdateProfileRequest, dict],
    ) -> UserOut:
        """
        Update the caller's profile in the tenant their session is bound to.

        Raises:
            ValidationError: invalid or empty patch
            UnauthorizedError: no valid session
            NotFoundError: the profile disappeared
        """
        data = parse_request(UpdateProfileRequest, patch)
        profile, _ = await self.tokens.resolve(token or "")

        updated = self.directory.update_profile(profile, data.to_row())
        log_info(
            "Profile updated",
            tenant_id=updated.tenant_id,
            profile_id=updated.id,
            action="profile_updated",
        )
        return UserOut.from_profile(updated)

    async def forgot_password(self, payload: Union[ForgotPasswordRequest, dict]) -> None:
        """Send a reset link. Never reveals whether the email is registered."""
        data = parse_request(ForgotPasswordRequest, payload)
        try:
            await self.identity.send_password_reset(
                data.email,
                redirect_to=f"{APP_URL.rstrip('/')}/auth/reset-password",
            )
        except AppError as e:
            log_warning(
                "Password reset request failed",
                error_type=type(e).__name__,
                action="password_reset_request_failed",
            )

    async def reset_password(self, payload: Union[ResetPasswordRequest, dict]) -> None:
        """
        Raises:
            ValidationError: invalid payload, or an invalid or expired reset token
        """
        data = parse_request(ResetPasswordRequest, payload)
        try:
            await self.identity.reset_password(data.token, data.password)
        except UnauthorizedError:
            raise ValidationError("Invalid or expired reset token", field="token")
