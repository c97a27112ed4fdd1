"""
Application token lifecycle.

The provider session knows the user but not the tenant they logged into,
so propdesk hands out its own JWT pair. Each token wraps the provider token
and carries the tenant binding chosen at login; that binding never changes
for the life of the session, including across refreshes.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

import jwt

from ..config import (
    ACCESS_TOKEN_EXPIRE_MINUTES,
    JWT_ALGORITHM,
    JWT_SECRET,
    REFRESH_TOKEN_EXPIRE_DAYS,
)
from ..errors import ErrorCode, NotFoundError, UnauthorizedError
from ..logger import log_info, log_warning
from .directory import TenantDirectory
from .identity import IdentityProvider
from .models import (
    CurrentUserResponse,
    Session,
    Tenant,
    TenantOut,
    TenantProfile,
    TokenPair,
    UserOut,
)


ACCESS = "access"
REFRESH = "refresh"


class TokenManager:
    """Issues, verifies, refreshes and revokes tenant-bound token pairs."""

    def __init__(
        self,
        identity: IdentityProvider,
        directory: TenantDirectory,
        secret: str = JWT_SECRET,
        algorithm: str = JWT_ALGORITHM,
        access_expire_minutes: int = ACCESS_TOKEN_EXPIRE_MINUTES,
        refresh_expire_days: int = REFRESH_TOKEN_EXPIRE_DAYS,
    ):
        self.identity = identity
        self.directory = directory
        self.secret = secret
        self.algorithm = algorithm
        self.access_expire_minutes = access_expire_minutes
        self.refresh_expire_days = refresh_expire_days

    def issue(self, session: Session, profile: TenantProfile) -> TokenPair:
        """Wrap a provider session into a token pair bound to `profile`'s tenant."""
        return self._encode_pair(session, profile.tenant_id, profile.id)

    def _encode_pair(self, session: Session, tenant_id: str, profile_id: str) -> TokenPair:
        now = datetime.now(timezone.utc)
        access_expires = now + timedelta(minutes=self.access_expire_minutes)
        claims = {
            "sub": session.identity.id,
            "email": session.identity.email,
            "tenant_id": tenant_id,
            "profile_id": profile_id,
            "iat": now,
        }

        token = jwt.encode(
            {**claims, "type": ACCESS, "exp": access_expires, "pat": session.access_token},
            self.secret,
            algorithm=self.algorithm,
        )
        refresh_token = jwt.encode(
            {
                **claims,
                "type": REFRESH,
                "exp": now + timedelta(days=self.refresh_expire_days),
                "prt": session.refresh_token,
            },
            self.secret,
            algorithm=self.algorithm,
        )
        return TokenPair(
            token=token,
            refresh_token=refresh_token,
            expires_at=int(access_expires.timestamp()),
        )

    def decode(self, token: str, expected_type: str = ACCESS, verify_exp: bool = True) -> dict:
        """
        Verify a token and return its claims.

        Raises:
            UnauthorizedError: bad signature, wrong type, missing claims or expired
        """
        try:
            claims = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                options={
                    "require": ["exp", "sub", "tenant_id", "type"],
                    "verify_exp": verify_exp,
                },
            )
        except jwt.ExpiredSignatureError:
            raise UnauthorizedError.token_expired()
        except jwt.InvalidTokenError:
            raise UnauthorizedError.invalid_token()

        if claims.get("type") != expected_type:
            raise UnauthorizedError.invalid_token()
        return claims

    async def resolve(self, token: str) -> Tuple[TenantProfile, Tenant]:
        """
        Resolve the profile and tenant a token is bound to.

        The provider confirms the identity is still valid; the tenant comes
        from the token's claims, never from re-running tenant selection.
        """
        if not token:
            raise UnauthorizedError()

        claims = self.decode(token, ACCESS)
        identity = await self.identity.current_identity(claims.get("pat", ""))
        if identity.id != claims["sub"]:
            raise UnauthorizedError.invalid_token()

        try:
            profile = self.directory.find_profile(identity.email, claims["tenant_id"])
            tenant = self.directory.get_tenant(profile.tenant_id)
        except NotFoundError:
            log_warning(
                "Token bound to a missing profile or tenant",
                user_id=identity.id,
                tenant_id=claims["tenant_id"],
                action="token_binding_missing",
            )
            raise UnauthorizedError.invalid_token()

        if not profile.is_active:
            raise UnauthorizedError.invalid_token()
        return profile, tenant

    async def current_user(self, token: Optional[str]) -> CurrentUserResponse:
        profile, tenant = await self.resolve(token or "")
        return CurrentUserResponse(
            user=UserOut.from_profile(profile),
            tenant=TenantOut.from_tenant(tenant),
        )

    async def refresh(self, refresh_token: str) -> TokenPair:
        """
        Exchange a refresh token for a new pair with the same tenant binding.

        Reuse of a superseded refresh token is detected by the provider.
        """
        claims = self.decode(refresh_token, REFRESH)
        try:
            session = await self.identity.refresh(claims.get("prt", ""))
        except UnauthorizedError:
            raise UnauthorizedError("Invalid refresh token", ErrorCode.INVALID_TOKEN)

        if session.identity.id != claims["sub"]:
            raise UnauthorizedError.invalid_token()

        pair = self._encode_pair(session, claims["tenant_id"], claims.get("profile_id", ""))
        log_info(
            "Token refreshed",
            user_id=session.identity.id,
            tenant_id=claims["tenant_id"],
            action="token_refreshed",
        )
        return pair

    async def logout(self, token: Optional[str]) -> None:
        """Advisory: never raises. The client drops its tokens regardless."""
        if not token:
            return
        try:
            claims = self.decode(token, ACCESS, verify_exp=False)
            await self.identity.invalidate(claims.get("pat", ""))
            log_info("User logged out", user_id=claims["sub"], action="token_logout")
        except Exception as e:
            log_warning(
                "Logout invalidation failed",
                error_type=type(e).__name__,
                action="token_logout_failed",
            )
