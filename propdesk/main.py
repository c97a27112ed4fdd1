from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .auth import auth_router
from .config import CORS_ORIGINS
from .db import get_supabase
from .errors import AppError, ValidationError
from .logger import logger, log_warning, log_error, configure_logger_from_config

# Configure logger with settings from config
configure_logger_from_config()

app = FastAPI(title="propdesk back office API", version=__version__)

# Configure CORS for frontend integration
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router)

logger.info("propdesk API starting up")


def error_response(error: AppError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if error.status_code == 401 else None
    return JSONResponse(
        status_code=error.status_code,
        content={"success": False, "data": None, "error": error.to_dict()},
        headers=headers,
    )


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        log_error(
            exc.message,
            action="api_error",
            code=exc.code.value,
            error_type=type(exc).__name__,
        )
    else:
        log_warning(
            exc.message,
            action="api_rejected",
            code=exc.code.value,
            status=exc.status_code,
        )
    return error_response(exc)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return error_response(ValidationError.from_errors(exc.errors()))


@app.get("/health")
async def health():
    """
    Health check endpoint for monitoring and load balancers.

    Returns:
        - ok: Overall health status (true/false)
        - checks: Individual component health statuses
        - version: API version
        - timestamp: Current server time
    """
    health_status = {
        "ok": True,
        "version": __version__,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {},
    }

    try:
        get_supabase().table("tenants").select("id").limit(1).execute()
        health_status["checks"]["database"] = {"status": "ok", "message": "Connected to Supabase"}
    except Exception as e:
        health_status["ok"] = False
        health_status["checks"]["database"] = {
            "status": "error",
            "message": f"Database connection failed: {type(e).__name__}",
        }

    return health_status


if __name__ == "__main__":
    import uvicorn
    from .config import API_PORT

    uvicorn.run(app, host="0.0.0.0", port=API_PORT)
