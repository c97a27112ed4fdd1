"""
Login: authenticate a global identity, then pick the one tenant profile the
new session is bound to.

Every failure after the password check looks exactly like a bad password to
the caller, so a login cannot be used to probe tenant memberships.
"""

from typing import Iterable, Optional, Union

from ..config import DEFAULT_TENANT_POLICY
from ..errors import AmbiguousTenantError, AppError, NotFoundError, UnauthorizedError
from ..logger import log_info, log_warning
from .directory import TenantDirectory
from .identity import IdentityProvider
from .models import AuthResponse, LoginRequest, TenantProfile, build_auth_response, parse_request
from .tokens import TokenManager


# Tie-break for a login without tenantId when the email has several memberships
OLDEST_MEMBERSHIP = "oldest"
EXPLICIT_SELECTION = "explicit"
TENANT_POLICIES = (OLDEST_MEMBERSHIP, EXPLICIT_SELECTION)


class SessionResolver:
    def __init__(
        self,
        identity: IdentityProvider,
        directory: TenantDirectory,
        tokens: TokenManager,
        tenant_policy: str = DEFAULT_TENANT_POLICY,
    ):
        if tenant_policy not in TENANT_POLICIES:
            raise ValueError(f"Unknown tenant policy: {tenant_policy}")
        self.identity = identity
        self.directory = directory
        self.tokens = tokens
        self.tenant_policy = tenant_policy

    async def login(self, payload: Union[LoginRequest, dict]) -> AuthResponse:
        """
        Authenticate and resolve the session's tenant profile.

        Raises:
            ValidationError: malformed input
            UnauthorizedError: bad credentials, no membership, or tenant mismatch
            AmbiguousTenantError: several memberships under the "explicit" policy
        """
        data = parse_request(LoginRequest, payload)

        try:
            session = await self.identity.authenticate(data.email, data.password)
        except AppError as e:
            log_warning(
                "Login rejected by identity provider",
                action="login_invalid",
                error_type=type(e).__name__,
            )
            raise UnauthorizedError.invalid_credentials()

        if data.tenant_id:
            profile = self._explicit_profile(data.email, data.tenant_id)
        else:
            profile = self._default_profile(self.directory.find_profiles(data.email))

        if profile is None or not profile.is_active:
            log_warning(
                "Authenticated identity has no usable tenant profile",
                user_id=session.identity.id,
                tenant_id=data.tenant_id,
                action="login_no_profile",
            )
            raise UnauthorizedError.invalid_credentials()

        try:
            tenant = self.directory.get_tenant(profile.tenant_id)
        except NotFoundError:
            raise UnauthorizedError.invalid_credentials()

        self.directory.touch_last_login(profile)
        pair = self.tokens.issue(session, profile)

        log_info(
            "User logged in",
            user_id=session.identity.id,
            tenant_id=tenant.id,
            profile_id=profile.id,
            action="login_success",
        )
        return build_auth_response(pair, profile, tenant)

    def _explicit_profile(self, email: str, tenant_id: str) -> Optional[TenantProfile]:
        try:
            return self.directory.find_profile(email, tenant_id)
        except NotFoundError:
            return None

    def _default_profile(self, profiles: Iterable[TenantProfile]) -> Optional[TenantProfile]:
        """
        Choose among the identity's memberships, oldest first.

        Inactive profiles are skipped. Under the "oldest" policy the first
        active one wins without reading further pages.
        """
        candidates = []
        for profile in profiles:
            if not profile.is_active:
                continue
            if self.tenant_policy == OLDEST_MEMBERSHIP:
                return profile
            candidates.append(profile)

        if not candidates:
            return None
        if len(candidates) > 1:
            raise AmbiguousTenantError([p.tenant_id for p in candidates])
        return candidates[0]
