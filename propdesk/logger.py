"""
JSON logging for propdesk.

Every record is one JSON object on stdout. Auth events carry who/where
context (tenant, user, profile, action); emails are masked and anything
that looks like a credential is replaced before the record is written.
"""

import logging
import json
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional


CONTEXT_FIELDS = (
    "tenant_id",
    "user_id",
    "profile_id",
    "email",
    "role",
    "action",
    "policy",
    "attempt",
    "status",
    "count",
    "code",
    "error",
    "error_type",
)

# Never written out, whatever the caller passes
REDACTED_FIELDS = ("password", "new_password", "token", "access_token", "refresh_token")
REDACTED = "[redacted]"


def mask_email(email: str) -> str:
    """jane.doe@example.com -> j***@example.com"""
    local, sep, domain = str(email).partition("@")
    if not sep:
        return "***"
    return f"{local[:1]}***@{domain}"


class JSONFormatter(logging.Formatter):
    """Renders a LogRecord plus its auth context as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is None:
                continue
            entry[field] = mask_email(value) if field == "email" else value

        for field in REDACTED_FIELDS:
            if hasattr(record, field):
                entry[field] = REDACTED

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def setup_logger(
    name: str = "propdesk",
    level: str = "INFO",
    enable_json: bool = True
) -> logging.Logger:
    """
    Attach a single stdout handler to the `name` logger.

    Args:
        name: Logger name
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        enable_json: JSON lines when True, plain text for local debugging otherwise

    Returns:
        The configured logger
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    configured = logging.getLogger(name)
    configured.setLevel(numeric_level)
    configured.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)
    if enable_json:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s"))

    configured.addHandler(handler)
    configured.propagate = False
    return configured


logger = logging.getLogger("propdesk")


def configure_logger_from_config():
    """Apply LOG_LEVEL from the environment. Called once at app startup."""
    from .config import LOG_LEVEL

    global logger
    logger = setup_logger(level=LOG_LEVEL)


def log_with_context(
    level: str,
    message: str,
    tenant_id: Optional[str] = None,
    user_id: Optional[str] = None,
    action: Optional[str] = None,
    **kwargs
):
    """
    Log `message` with auth context attached as record attributes.

    `user_id` is the global identity id unless the caller only has a
    profile; `action` is a short snake_case event name such as
    "login_success" and is what dashboards filter on.
    """
    extra = {
        key: value
        for key, value in (("tenant_id", tenant_id), ("user_id", user_id), ("action", action))
        if value is not None
    }
    extra.update(kwargs)
    getattr(logger, level.lower())(message, extra=extra)


def log_info(message: str, **kwargs):
    log_with_context("info", message, **kwargs)


def log_warning(message: str, **kwargs):
    log_with_context("warning", message, **kwargs)


def log_error(message: str, exc_info=False, **kwargs):
    """Error-level log; pass exc_info=True from inside an except block for the traceback."""
    if exc_info:
        logger.error(message, exc_info=True, extra=kwargs)
    else:
        log_with_context("error", message, **kwargs)


def log_debug(message: str, **kwargs):
    log_with_context("debug", message, **kwargs)
