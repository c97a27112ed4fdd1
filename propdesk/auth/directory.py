"""
Tenant directory: tenants and tenant-scoped user profiles.

A global identity may hold one profile per tenant. The directory answers
"which profiles does this email have" and enforces one profile per
(email, tenant_id) before writing; the unique index on the `users` table
stays the final arbiter.
"""

from datetime import datetime, timezone
from typing import Any, Iterator, Optional

import httpx
from postgrest.exceptions import APIError

from ..config import DIRECTORY_PAGE_SIZE
from ..db import get_supabase
from ..errors import ConflictError, NotFoundError, ServiceError
from ..logger import log_debug, log_info, log_warning, log_error
from .models import GlobalIdentity, ProfileStatus, Tenant, TenantProfile, UserRole


TENANTS_TABLE = "tenants"
PROFILES_TABLE = "users"

# PostgREST "no rows" for single-row reads, Postgres unique violation
NO_ROWS_CODE = "PGRST116"
UNIQUE_VIOLATION_CODE = "23505"


def normalize_email(email: str) -> str:
    return email.strip().lower()


class TenantDirectory:
    """Read and write access to the `tenants` and `users` tables."""

    def __init__(self, client=None, page_size: int = DIRECTORY_PAGE_SIZE):
        self._client = client
        self.page_size = page_size

    @property
    def client(self):
        if self._client is None:
            self._client = get_supabase()
        return self._client

    def _execute(self, query, operation: str) -> Any:
        try:
            return query.execute()
        except APIError as e:
            if e.code == UNIQUE_VIOLATION_CODE:
                raise ConflictError("Resource already exists") from e
            if e.code == NO_ROWS_CODE:
                raise NotFoundError() from e
            log_error(
                "Directory query failed",
                action=f"directory_{operation}_error",
                code=e.code,
                error=e.message,
            )
            raise ServiceError("Data store request failed") from e
        except httpx.HTTPError as e:
            log_error(
                "Directory transport failure",
                action=f"directory_{operation}_error",
                error_type=type(e).__name__,
            )
            raise ServiceError("Data store request failed") from e

    # -- profiles -----------------------------------------------------------

    def find_profiles(self, email: str) -> Iterator[TenantProfile]:
        """
        Yield every profile for `email`, oldest membership first.

        Rows are fetched one page at a time as the caller iterates. The
        returned generator can be consumed only once.
        """
        email = normalize_email(email)
        start = 0
        while True:
            result = self._execute(
                self.client.table(PROFILES_TABLE)
                .select("*")
                .eq("email", email)
                .order("created_at")
                .order("id")
                .range(start, start + self.page_size - 1),
                "find_profiles",
            )
            rows = result.data or []
            log_debug("Fetched profile page", email=email, action="directory_page", count=len(rows))
            for row in rows:
                yield TenantProfile.model_validate(row)
            if len(rows) < self.page_size:
                return
            start += self.page_size

    def find_profile(self, email: str, tenant_id: str) -> TenantProfile:
        """
        Raises:
            NotFoundError: no profile for (email, tenant_id)
        """
        result = self._execute(
            self.client.table(PROFILES_TABLE)
            .select("*")
            .eq("email", normalize_email(email))
            .eq("tenant_id", tenant_id)
            .limit(1),
            "find_profile",
        )
        if not result.data:
            raise NotFoundError.user()
        return TenantProfile.model_validate(result.data[0])

    def create_profile(
        self,
        tenant: Tenant,
        identity: GlobalIdentity,
        name: str,
        role: str = UserRole.USER.value,
        phone: Optional[str] = None,
    ) -> TenantProfile:
        """
        Bind `identity` to `tenant`.

        Raises:
            ConflictError: the email already has a profile in this tenant
        """
        duplicate = ConflictError("User with this email already exists in this tenant")
        try:
            self.find_profile(identity.email, tenant.id)
        except NotFoundError:
            pass
        else:
            raise duplicate

        row = {
            "auth_user_id": identity.id,
            "tenant_id": tenant.id,
            "email": normalize_email(identity.email),
            "name": name,
            "phone": phone,
            "role": role,
            "status": ProfileStatus.ACTIVE.value,
        }
        try:
            result = self._execute(self.client.table(PROFILES_TABLE).insert(row), "create_profile")
        except ConflictError as e:
            raise duplicate from e

        if not result.data:
            raise ServiceError("Failed to create user record")

        profile = TenantProfile.model_validate(result.data[0])
        log_info(
            "Tenant profile created",
            tenant_id=tenant.id,
            profile_id=profile.id,
            role=role,
            action="directory_profile_created",
        )
        return profile

    def update_profile(self, profile: TenantProfile, changes: dict) -> TenantProfile:
        """
        Apply `changes` to one profile, scoped to its own tenant.

        Raises:
            NotFoundError: the profile no longer exists
        """
        result = self._execute(
            self.client.table(PROFILES_TABLE)
            .update(changes)
            .eq("id", profile.id)
            .eq("tenant_id", profile.tenant_id),
            "update_profile",
        )
        if not result.data:
            raise NotFoundError.user(profile.id)
        return TenantProfile.model_validate(result.data[0])

    def touch_last_login(self, profile: TenantProfile) -> None:
        """Record the login time. Best-effort: a failure is logged only."""
        try:
            self._execute(
                self.client.table(PROFILES_TABLE)
                .update({"last_login_at": datetime.now(timezone.utc).isoformat()})
                .eq("id", profile.id)
                .eq("tenant_id", profile.tenant_id),
                "touch_last_login",
            )
        except (ServiceError, NotFoundError) as e:
            log_warning(
                "Failed to record last login",
                tenant_id=profile.tenant_id,
                profile_id=profile.id,
                error_type=type(e).__name__,
                action="directory_last_login_failed",
            )

    # -- tenants ------------------------------------------------------------

    def create_tenant(self, name: str) -> Tenant:
        result = self._execute(
            self.client.table(TENANTS_TABLE).insert({
                "name": name,
                "status": "active",
                "plan": "free",
            }),
            "create_tenant",
        )
        if not result.data:
            raise ServiceError("Failed to create tenant")

        tenant = Tenant.model_validate(result.data[0])
        log_info("Tenant created", tenant_id=tenant.id, action="directory_tenant_created")
        return tenant

    def get_tenant(self, tenant_id: str) -> Tenant:
        """
        Raises:
            NotFoundError: no tenant with this id
        """
        result = self._execute(
            self.client.table(TENANTS_TABLE)
            .select("id, name, status, subdomain, plan, created_at")
            .eq("id", tenant_id)
            .limit(1),
            "get_tenant",
        )
        if not result.data:
            raise NotFoundError.tenant(tenant_id)
        return Tenant.model_validate(result.data[0])
