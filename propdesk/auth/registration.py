"""
Registration of a new organization and its first (admin) user.

The identity provider and the tenant tables cannot share a transaction, so
registration runs as a sequence with compensation: if the tenant or the
profile cannot be created after the identity was, the identity is deleted
again before the original error is re-raised.
"""

from typing import Union

from ..errors import AppError, ConflictError, ServiceError, ValidationError
from ..logger import log_info, log_warning, log_error
from .directory import TenantDirectory
from .identity import IdentityProvider
from .models import (
    AuthResponse,
    GlobalIdentity,
    RegisterRequest,
    UserRole,
    build_auth_response,
    parse_request,
)
from .tokens import TokenManager


class RegistrationService:
    def __init__(
        self,
        identity: IdentityProvider,
        directory: TenantDirectory,
        tokens: TokenManager,
    ):
        self.identity = identity
        self.directory = directory
        self.tokens = tokens

    async def register(self, payload: Union[RegisterRequest, dict]) -> AuthResponse:
        """
        Create a tenant, a global identity and the tenant's admin profile,
        then log the new user in.

        Raises:
            ValidationError: invalid input; nothing has been written
            ConflictError: the email is already registered
        """
        data = parse_request(RegisterRequest, payload)

        if data.invite_code:
            # Invitations are redeemed by the invitation flow, not here
            raise ValidationError("Invite code registration is not available", field="inviteCode")

        self._ensure_email_unused(data.email)

        log_info("Registering new organization", action="register_start")

        identity = await self.identity.create_identity(
            data.email,
            data.password,
            metadata={"name": data.name, "phone": data.phone},
        )

        try:
            tenant = self.directory.create_tenant(data.tenant_name)
            profile = self.directory.create_profile(
                tenant,
                identity,
                name=data.name,
                role=UserRole.ADMIN.value,
                phone=data.phone,
            )
        except Exception as e:
            log_error(
                "Registration failed after identity creation",
                user_id=identity.id,
                error_type=type(e).__name__,
                action="register_partial_failure",
            )
            await self._discard_identity(identity)
            raise

        # Same path as a normal login so the tokens are indistinguishable
        try:
            session = await self.identity.authenticate(data.email, data.password)
        except AppError as e:
            log_error(
                "Could not open a session for a newly registered user",
                user_id=identity.id,
                tenant_id=tenant.id,
                error_type=type(e).__name__,
                action="register_session_failed",
            )
            raise ServiceError("Failed to create session after registration") from e

        pair = self.tokens.issue(session, profile)

        log_info(
            "Organization registered",
            user_id=identity.id,
            tenant_id=tenant.id,
            profile_id=profile.id,
            action="register_success",
        )
        return build_auth_response(pair, profile, tenant)

    def _ensure_email_unused(self, email: str) -> None:
        """
        Fast-path duplicate check against the directory.

        Only an optimisation: concurrent registrations race past it and are
        settled by the identity provider's own uniqueness check.
        """
        for _ in self.directory.find_profiles(email):
            log_warning("Registration for an email that already has a profile", action="register_conflict")
            raise ConflictError.duplicate("User", "email")

    async def _discard_identity(self, identity: GlobalIdentity) -> None:
        """Best-effort compensation. Failures are logged, never raised."""
        try:
            await self.identity.delete_identity(identity.id)
        except Exception as e:
            log_error(
                "Failed to delete orphaned identity",
                user_id=identity.id,
                error_type=type(e).__name__,
                action="register_cleanup_failed",
            )
