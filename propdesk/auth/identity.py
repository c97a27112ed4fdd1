"""
Identity provider adapter over Supabase Auth.

Owns no business rules: it creates, authenticates and refreshes global
identities and translates provider failures into the propdesk error
taxonomy through PROVIDER_ERROR_RULES.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Tuple

import httpx
from supabase import AuthError

from ..config import PROVIDER_MAX_RETRIES, PROVIDER_RETRY_BACKOFF_MS
from ..db import create_auth_client, get_supabase
from ..errors import ConflictError, ServiceError, UnauthorizedError, ValidationError
from ..logger import log_info, log_warning, log_error
from .models import GlobalIdentity, Session


class ProviderErrorKind(str, Enum):
    CONFLICT = "conflict"
    UNAUTHORIZED = "unauthorized"
    VALIDATION = "validation"
    TRANSIENT = "transient"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ProviderErrorRule:
    """Matches a provider error by code, HTTP status or message substring."""
    kind: ProviderErrorKind
    codes: Tuple[str, ...] = ()
    statuses: Tuple[int, ...] = ()
    messages: Tuple[str, ...] = ()

    def matches(self, message: str, status: Optional[int], code: Optional[str]) -> bool:
        if code and code in self.codes:
            return True
        lowered = message.lower()
        if any(fragment.lower() in lowered for fragment in self.messages):
            return True
        return status is not None and status in self.statuses


# First match wins. Message rules come before status rules because the
# provider answers bad passwords with a plain 400.
PROVIDER_ERROR_RULES: Tuple[ProviderErrorRule, ...] = (
    ProviderErrorRule(
        ProviderErrorKind.CONFLICT,
        codes=("email_exists", "user_already_exists", "phone_exists"),
        messages=("already been registered", "already exists"),
        statuses=(409,),
    ),
    ProviderErrorRule(
        ProviderErrorKind.UNAUTHORIZED,
        codes=(
            "invalid_credentials",
            "email_not_confirmed",
            "user_not_found",
            "user_banned",
            "bad_jwt",
            "no_authorization",
            "session_not_found",
            "session_expired",
            "refresh_token_not_found",
            "refresh_token_already_used",
            "otp_expired",
        ),
        messages=(
            "invalid login credentials",
            "invalid refresh token",
            "refresh token not found",
            "invalid jwt",
            "token is expired",
            "email not confirmed",
        ),
        statuses=(401, 403),
    ),
    ProviderErrorRule(
        ProviderErrorKind.VALIDATION,
        codes=("weak_password", "validation_failed", "email_address_invalid"),
        messages=("password should be",),
        statuses=(400, 422),
    ),
    ProviderErrorRule(
        ProviderErrorKind.TRANSIENT,
        codes=("over_request_rate_limit", "request_timeout"),
        statuses=(0, 429, 500, 502, 503, 504),
    ),
)


def classify_provider_error(
    message: str,
    status: Optional[int] = None,
    code: Optional[str] = None,
) -> ProviderErrorKind:
    """Map a provider error onto a ProviderErrorKind using PROVIDER_ERROR_RULES."""
    for rule in PROVIDER_ERROR_RULES:
        if rule.matches(message or "", status, code):
            return rule.kind
    return ProviderErrorKind.UNKNOWN


def classify_exception(exc: Exception) -> ProviderErrorKind:
    if isinstance(exc, httpx.TransportError):
        return ProviderErrorKind.TRANSIENT
    status = getattr(exc, "status", None)
    code = getattr(exc, "code", None)
    message = getattr(exc, "message", None) or str(exc)
    return classify_provider_error(message, status if isinstance(status, int) else None, code)


def translate_provider_error(exc: Exception, operation: str):
    """Build the propdesk error for a provider failure during `operation`."""
    kind = classify_exception(exc)
    if kind == ProviderErrorKind.CONFLICT:
        return ConflictError.duplicate("User", "email")
    if kind == ProviderErrorKind.UNAUTHORIZED:
        return UnauthorizedError.invalid_credentials()
    if kind == ProviderErrorKind.VALIDATION:
        return ValidationError(getattr(exc, "message", None) or str(exc))
    return ServiceError(
        f"Identity provider failed during {operation}",
        retryable=kind == ProviderErrorKind.TRANSIENT,
    )


def _identity_from_user(user: Any) -> GlobalIdentity:
    return GlobalIdentity(
        id=str(user.id),
        email=user.email,
        created_at=getattr(user, "created_at", None),
    )


def _session_from_response(response: Any) -> Optional[Session]:
    session = getattr(response, "session", None)
    user = getattr(response, "user", None) or getattr(session, "user", None)
    if not session or not user:
        return None
    return Session(
        access_token=session.access_token,
        refresh_token=session.refresh_token,
        expires_at=getattr(session, "expires_at", None),
        identity=_identity_from_user(user),
    )


class IdentityProvider:
    """
    Adapter for the global credential store.

    Admin operations run on the shared service-role client. Password and
    refresh grants run on a throwaway client from `auth_client_factory`
    so that no user session is held between calls.
    """

    def __init__(
        self,
        client=None,
        auth_client_factory: Optional[Callable[[], Any]] = None,
        max_retries: int = PROVIDER_MAX_RETRIES,
        backoff_ms: int = PROVIDER_RETRY_BACKOFF_MS,
    ):
        self._client = client
        self._auth_client_factory = auth_client_factory or create_auth_client
        self.max_retries = max_retries
        self.backoff_ms = backoff_ms

    @property
    def client(self):
        if self._client is None:
            self._client = get_supabase()
        return self._client

    async def _call(self, operation: str, fn: Callable[[], Any], retry: bool = True) -> Any:
        """
        Run a provider call, retrying transient failures when `retry` is set.

        Provider failures are raised as propdesk errors.
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                return fn()
            except (AuthError, httpx.HTTPError) as e:
                error = translate_provider_error(e, operation)
                transient = isinstance(error, ServiceError) and error.retryable
                if retry and transient and attempt <= self.max_retries:
                    log_warning(
                        "Transient identity provider failure, retrying",
                        action=f"identity_{operation}_retry",
                        attempt=attempt,
                        error_type=type(e).__name__,
                    )
                    await asyncio.sleep(self.backoff_ms * attempt / 1000)
                    continue
                if isinstance(error, ServiceError):
                    log_error(
                        "Identity provider call failed",
                        action=f"identity_{operation}_error",
                        attempt=attempt,
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                raise error from e

    async def create_identity(
        self,
        email: str,
        password: str,
        metadata: Optional[dict] = None,
    ) -> GlobalIdentity:
        """
        Create a confirmed identity.

        Never retried: a retry after a lost response would report the
        identity this call created as a duplicate.

        Raises:
            ConflictError: the email is already registered
            ValidationError: the provider rejected the email or password
        """
        response = await self._call(
            "create",
            lambda: self.client.auth.admin.create_user({
                "email": email,
                "password": password,
                "email_confirm": True,
                "user_metadata": metadata or {},
            }),
            retry=False,
        )

        if not response or not response.user:
            raise ServiceError("Identity provider returned no user")

        identity = _identity_from_user(response.user)
        log_info(
            "Global identity created",
            user_id=identity.id,
            action="identity_created",
        )
        return identity

    async def delete_identity(self, identity_id: str) -> None:
        await self._call("delete", lambda: self.client.auth.admin.delete_user(identity_id))
        log_info("Global identity deleted", user_id=identity_id, action="identity_deleted")

    async def authenticate(self, email: str, password: str) -> Session:
        """
        Password grant.

        Raises:
            UnauthorizedError: on any rejection, without saying which field was wrong
        """
        auth_client = self._auth_client_factory()
        response = await self._call(
            "authenticate",
            lambda: auth_client.auth.sign_in_with_password({
                "email": email,
                "password": password,
            }),
        )

        session = _session_from_response(response)
        if session is None:
            raise UnauthorizedError.invalid_credentials()
        return session

    async def refresh(self, refresh_token: str) -> Session:
        auth_client = self._auth_client_factory()
        response = await self._call(
            "refresh",
            lambda: auth_client.auth.refresh_session(refresh_token),
        )

        session = _session_from_response(response)
        if session is None:
            raise UnauthorizedError.invalid_token()
        return session

    async def invalidate(self, access_token: str) -> None:
        """Revoke every refresh token issued for the session's user."""
        await self._call("invalidate", lambda: self.client.auth.admin.sign_out(access_token))

    async def current_identity(self, access_token: str) -> GlobalIdentity:
        response = await self._call("current", lambda: self.client.auth.get_user(access_token))

        if not response or not response.user:
            raise UnauthorizedError.invalid_token()
        return _identity_from_user(response.user)

    async def send_password_reset(self, email: str, redirect_to: str) -> None:
        await self._call(
            "password_reset",
            lambda: self.client.auth.reset_password_for_email(email, {"redirect_to": redirect_to}),
        )

    async def reset_password(self, token: str, new_password: str) -> GlobalIdentity:
        """
        Consume a recovery token and set a new password.

        Raises:
            UnauthorizedError: the token is invalid or expired
        """
        auth_client = self._auth_client_factory()
        response = await self._call(
            "verify_recovery",
            lambda: auth_client.auth.verify_otp({"type": "recovery", "token_hash": token}),
        )

        if not response or not response.user:
            raise UnauthorizedError.invalid_token()

        identity = _identity_from_user(response.user)
        await self._call(
            "update_password",
            lambda: self.client.auth.admin.update_user_by_id(identity.id, {"password": new_password}),
        )
        log_info("Password reset", user_id=identity.id, action="identity_password_reset")
        return identity
