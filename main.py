from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

# Core
from core.config import settings
from core.config_validator import validate_config_on_startup
from core.logging_config import logger
from core.scheduler import start_scheduler, shutdown_scheduler

# -------------------------------------------------
# Routers
# -------------------------------------------------
from routers.auth import router as auth_router
from routers.mobile_auth import router as mobile_auth_router

from routers.residences import router as residences_router
from routers.residents import router as residents_router
from routers.registration import router as registration_router

from routers.fees import router as fees_router
from routers.recurring_fees import router as recurring_fees_router
from routers.payments import router as payments_router
from routers.expenses import router as expenses_router
from routers.contributions import router as contributions_router
from routers.financial import router as financial_router

from routers.account import router as account_router
from routers.documents import router as documents_router
from routers.dashboard import router as dashboard_router
from routers.incidents import router as incidents_router

from routers.billing import router as billing_router
from routers.stripe_webhooks import router as stripe_webhooks_router
from routers.cron import router as cron_router
from routers.health import router as health_router

from routers.admin import router as admin_router


def error_body(detail) -> dict:
    """{"success": false, "error": ...}; dict details may carry a machine-readable code."""
    if isinstance(detail, dict):
        body = {"success": False, "error": detail.get("message") or detail.get("error") or str(detail)}
        if detail.get("code"):
            body["code"] = detail["code"]
        return body
    return {"success": False, "error": detail}


# -------------------------------------------------
# Create the Application
# -------------------------------------------------
def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version="1.0.0",
        description="SAKAN API: residences, residents, fees, payments and syndic back-office",
    )

    # -------------------------------------------------
    # CORS
    # -------------------------------------------------
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.BACKEND_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -------------------------------------------------
    # Startup / shutdown
    # -------------------------------------------------
    @app.on_event("startup")
    async def on_startup():
        logger.info(f"🚀 Starting {settings.PROJECT_NAME} ({settings.ENV})")
        try:
            validate_config_on_startup()
        except RuntimeError:
            if settings.ENV == "production":
                raise

        if settings.ENABLE_SCHEDULER:
            start_scheduler()

        logger.debug(f"{len(app.routes)} routes registered")

    @app.on_event("shutdown")
    async def on_shutdown():
        shutdown_scheduler()

    # -------------------------------------------------
    # Error handling
    # -------------------------------------------------
    @app.exception_handler(StarletteHTTPException)
    async def handle_http(request: Request, exc: StarletteHTTPException):
        if exc.status_code in (401, 403, 500):
            logger.warning(f"HTTP {exc.status_code} at {request.url}: {exc.detail}")
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc.detail),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(p) for p in first.get("loc", []) if p != "body")
        message = f"{field}: {first.get('msg')}" if field else (first.get("msg") or "Invalid request")
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": message, "details": jsonable_errors(errors)},
        )

    @app.exception_handler(Exception)
    async def handle_unhandled(request: Request, exc: Exception):
        logger.error("Unhandled error at %s", request.url, exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "Internal server error"},
        )

    # -------------------------------------------------
    # Register Routers
    # -------------------------------------------------

    # Auth
    app.include_router(auth_router)
    app.include_router(mobile_auth_router)

    # Residences + people
    app.include_router(residences_router)
    app.include_router(residents_router)
    app.include_router(registration_router)

    # Money
    app.include_router(fees_router)
    app.include_router(recurring_fees_router)
    app.include_router(payments_router)
    app.include_router(expenses_router)
    app.include_router(contributions_router)
    app.include_router(financial_router)

    # Account lifecycle
    app.include_router(account_router)
    app.include_router(documents_router)

    app.include_router(dashboard_router)
    app.include_router(incidents_router)

    # Billing
    app.include_router(billing_router)
    app.include_router(stripe_webhooks_router)

    # Back-office + ops
    app.include_router(admin_router)
    app.include_router(cron_router)
    app.include_router(health_router)

    @app.get("/", include_in_schema=False)
    async def root():
        return {"service": settings.PROJECT_NAME, "status": "ok"}

    return app


def jsonable_errors(errors: list) -> list:
    # ctx may hold exception instances that JSONResponse cannot encode
    return [{k: v for k, v in e.items() if k in ("loc", "msg", "type")} for e in errors]


# Create the global FastAPI instance
app = create_app()
