"""
Error taxonomy for propdesk.

Every failure that leaves the auth subsystem is one of these types;
provider and store errors are translated into them at the service boundary.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError


class ErrorCode(str, Enum):
    """Error codes returned in API responses for frontend error handling."""

    # 400
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_INPUT = "INVALID_INPUT"
    MISSING_REQUIRED_FIELD = "MISSING_REQUIRED_FIELD"

    # 401
    AUTHENTICATION_REQUIRED = "AUTHENTICATION_REQUIRED"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    INVALID_TOKEN = "INVALID_TOKEN"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    TENANT_SELECTION_REQUIRED = "TENANT_SELECTION_REQUIRED"

    # 403
    INSUFFICIENT_PERMISSIONS = "INSUFFICIENT_PERMISSIONS"

    # 404
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"

    # 409
    DUPLICATE_ENTRY = "DUPLICATE_ENTRY"

    # 500 / 502
    INTERNAL_ERROR = "INTERNAL_ERROR"
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"


class AppError(Exception):
    """Base application error. All custom errors extend this class."""

    status_code = 500
    default_code = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        code: Optional[ErrorCode] = None,
        details: Any = None,
        field: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details
        self.field = field

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for the `error` member of an API response."""
        result: Dict[str, Any] = {"code": self.code.value, "message": self.message}
        if self.details is not None:
            result["details"] = self.details
        if self.field is not None:
            result["field"] = self.field
        return result


class ValidationError(AppError):
    """Malformed or missing input, raised before any side effect."""

    status_code = 400
    default_code = ErrorCode.VALIDATION_ERROR

    def __init__(self, message: str = "Validation failed", details: Any = None, field: Optional[str] = None):
        super().__init__(message, details=details, field=field)

    @classmethod
    def from_errors(cls, errors: List[Dict[str, Any]]) -> "ValidationError":
        """
        Build from a list of pydantic-style error dicts.

        The first error becomes the message; every error is listed in
        `details` as {"field", "message"}.
        """
        details = []
        for err in errors:
            loc = [str(part) for part in err.get("loc", ()) if part not in ("body",)]
            details.append({
                "field": ".".join(loc) or None,
                "message": _clean_message(err.get("msg", "Invalid value")),
            })

        if not details:
            return cls()

        first = details[0]
        return cls(first["message"], details=details, field=first["field"])

    @classmethod
    def from_pydantic(cls, exc: PydanticValidationError) -> "ValidationError":
        return cls.from_errors(exc.errors())


def _clean_message(msg: str) -> str:
    # pydantic prefixes messages raised from validators with "Value error, "
    prefix = "Value error, "
    return msg[len(prefix):] if msg.startswith(prefix) else msg


class ConflictError(AppError):
    """Uniqueness violation: duplicate email or duplicate tenant membership."""

    status_code = 409
    default_code = ErrorCode.DUPLICATE_ENTRY

    def __init__(self, message: str = "Resource conflict", details: Any = None):
        super().__init__(message, details=details)

    @classmethod
    def duplicate(cls, resource: str, field: Optional[str] = None) -> "ConflictError":
        if field:
            return cls(f"{resource} with this {field} already exists")
        return cls(f"{resource} already exists")


class UnauthorizedError(AppError):
    """Bad credentials, missing or expired session, or tenant mismatch."""

    status_code = 401
    default_code = ErrorCode.AUTHENTICATION_REQUIRED

    def __init__(self, message: str = "Authentication required", code: Optional[ErrorCode] = None, details: Any = None):
        super().__init__(message, code=code, details=details)

    @classmethod
    def invalid_credentials(cls) -> "UnauthorizedError":
        return cls("Invalid credentials", ErrorCode.INVALID_CREDENTIALS)

    @classmethod
    def invalid_token(cls) -> "UnauthorizedError":
        return cls("Invalid or expired token", ErrorCode.INVALID_TOKEN)

    @classmethod
    def token_expired(cls) -> "UnauthorizedError":
        return cls("Token has expired", ErrorCode.TOKEN_EXPIRED)


class AmbiguousTenantError(UnauthorizedError):
    """
    Login matched several tenant memberships and no tenant was chosen.

    Only raised after the password check succeeded, so listing the candidate
    tenant ids does not help enumeration.
    """

    def __init__(self, tenant_ids: List[str]):
        super().__init__(
            "Select a tenant to continue",
            ErrorCode.TENANT_SELECTION_REQUIRED,
            details={"tenantIds": tenant_ids},
        )
        self.tenant_ids = tenant_ids


class ForbiddenError(AppError):
    """Authenticated, but not allowed to perform the action."""

    status_code = 403
    default_code = ErrorCode.INSUFFICIENT_PERMISSIONS

    def __init__(
        self,
        message: str = "You do not have permission to perform this action",
        code: Optional[ErrorCode] = None,
    ):
        super().__init__(message, code=code)


class NotFoundError(AppError):
    """A tenant-scoped entity is absent. Never used on the login path."""

    status_code = 404
    default_code = ErrorCode.RESOURCE_NOT_FOUND

    def __init__(self, resource: str = "Resource", id: Optional[str] = None):
        message = f"{resource} with ID '{id}' not found" if id else f"{resource} not found"
        super().__init__(message)
        self.resource = resource

    @classmethod
    def tenant(cls, id: Optional[str] = None) -> "NotFoundError":
        return cls("Tenant", id)

    @classmethod
    def user(cls, id: Optional[str] = None) -> "NotFoundError":
        return cls("User", id)


class ServiceError(AppError):
    """The identity provider or the data store failed in an unclassified way."""

    status_code = 502
    default_code = ErrorCode.EXTERNAL_SERVICE_ERROR

    def __init__(self, message: str = "Upstream service failed", retryable: bool = False):
        super().__init__(message)
        self.retryable = retryable
