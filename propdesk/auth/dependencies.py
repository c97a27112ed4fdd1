"""
FastAPI dependencies for authentication and authorization.

Requests carry the propdesk access token as a Bearer credential. The token
names the tenant the session is bound to; these dependencies resolve it to
the caller's profile in that tenant.
"""

from functools import lru_cache
from typing import Callable, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..errors import ForbiddenError, UnauthorizedError
from ..logger import log_info, log_warning
from .models import CurrentUserResponse, TenantProfile
from .service import AuthService


# Missing credentials are reported through UnauthorizedError, not FastAPI's 403
security = HTTPBearer(auto_error=False)


@lru_cache(maxsize=1)
def get_auth_service() -> AuthService:
    return AuthService()


def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[str]:
    if not credentials:
        return None
    return credentials.credentials


def require_bearer_token(token: Optional[str] = Depends(get_bearer_token)) -> str:
    if not token:
        raise UnauthorizedError()
    return token


async def get_current_user(
    token: str = Depends(require_bearer_token),
    service: AuthService = Depends(get_auth_service),
) -> CurrentUserResponse:
    """
    Validate the access token and return the caller's profile and tenant.

    Raises:
        UnauthorizedError: missing, invalid or expired token
    """
    return await service.get_current_user(token)


async def get_optional_user(
    token: Optional[str] = Depends(get_bearer_token),
    service: AuthService = Depends(get_auth_service),
) -> Optional[CurrentUserResponse]:
    """
    Optional authentication - returns None if no valid token provided.
    """
    if not token:
        return None
    try:
        return await service.get_current_user(token)
    except UnauthorizedError:
        return None


def require_tenant_role(required_role: str = "user") -> Callable:
    """
    Factory for a dependency that checks the caller's role in their tenant.

    Role hierarchy (highest to lowest): super_admin > admin > manager > user > viewer
    """
    async def check_tenant_role(
        token: str = Depends(require_bearer_token),
        service: AuthService = Depends(get_auth_service),
    ) -> TenantProfile:
        profile, _ = await service.tokens.resolve(token)

        if not profile.has_role(required_role):
            log_warning(
                "Tenant access denied - insufficient role",
                user_id=profile.id,
                tenant_id=profile.tenant_id,
                role=profile.role,
                action="auth_role_denied",
            )
            raise ForbiddenError(f"This action requires {required_role} role or higher")

        log_info(
            "Tenant access granted",
            user_id=profile.id,
            tenant_id=profile.tenant_id,
            role=profile.role,
            action="auth_tenant_granted",
        )
        return profile

    return check_tenant_role
