"""
Authentication module for propdesk.

Identity establishment and tenant resolution: registration of a new
organization, tenant-aware login over Supabase Auth, and the lifecycle of
the tenant-bound token pair.
"""

from .dependencies import get_auth_service, get_current_user, get_optional_user, require_tenant_role
from .service import AuthService
from .routes import router as auth_router

__all__ = [
    "get_auth_service",
    "get_current_user",
    "get_optional_user",
    "require_tenant_role",
    "AuthService",
    "auth_router",
]
