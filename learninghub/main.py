"""LearningHub API - Main Application."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import timedelta
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from learninghub.auth.router import admin_router as users_admin_router
from learninghub.auth.router import router as auth_router
from learninghub.auth.router import users_router
from learninghub.auth.service import AuthService
from learninghub.config import get_settings
from learninghub.core.context import get_request_id
from learninghub.core.database import init_async_cassandra, shutdown_async_cassandra
from learninghub.core.logging import configure_structlog, get_logger
from learninghub.core.middleware import RequestContextMiddleware
from learninghub.core.rate_limit import RateLimiter
from learninghub.core.redis import init_redis, shutdown_redis
from learninghub.courses.router import router as courses_router
from learninghub.courses.service import CourseService
from learninghub.email.service import EmailService
from learninghub.feedback.router import router as feedback_router
from learninghub.feedback.service import FeedbackService
from learninghub.health import router as health_router
from learninghub.payments.gateway import StripeGateway
from learninghub.payments.router import admin_router as transactions_admin_router
from learninghub.payments.router import router as payments_router
from learninghub.payments.service import PaymentService
from learninghub.progress.router import router as progress_router
from learninghub.progress.service import ProgressService
from learninghub.storage.service import MediaStorageService
from learninghub.verification.router import router as verification_router
from learninghub.verification.router import set_verification_service_getter
from learninghub.verification.service import AccountVerificationService
from learninghub.verification.tokens import VerificationTokenService


# Configure logging early (before creating logger)
settings = get_settings()
configure_structlog(settings, log_dir=Path(settings.log_dir))

logger = get_logger(__name__)


class AppState:
    """Application state container."""

    cassandra_session: Any = None
    verification_service: AccountVerificationService | None = None


app_state = AppState()


def get_verification_service() -> AccountVerificationService | None:
    return app_state.verification_service


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings = get_settings()
    logger.info(
        "starting_application",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
    )

    # Redis only backs rate limiting; the app works without it
    redis_client = await init_redis()
    app.state.redis = redis_client
    rate_limiter = RateLimiter(redis_client, settings.rate_limit_window_seconds)

    email_service = None
    if settings.email_configured:
        try:
            email_service = EmailService(
                credentials_path=settings.email_credentials_path,
                sender_address=settings.email_sender_address,
                sender_name=settings.email_sender_name,
            )
            app.state.email_service = email_service
            logger.info("email_service_initialized", sender=settings.email_sender_address)
        except (OSError, ValueError) as e:
            logger.warning(
                "email_service_init_skipped",
                error=str(e),
                message="Running without email service",
            )

    storage_service = MediaStorageService(settings) if settings.firebase_configured else None
    app.state.storage_service = storage_service

    payment_gateway = (
        StripeGateway(settings.stripe_secret_key) if settings.stripe_configured else None
    )
    app.state.payment_gateway = payment_gateway

    try:
        session = await init_async_cassandra()
    except Exception as e:
        logger.warning(
            "database_init_skipped",
            error=str(e),
            message="Running without database connection",
        )
        session = None

    if session is not None:
        keyspace = settings.cassandra_keyspace
        app_state.cassandra_session = session

        auth_service = AuthService(session=session, keyspace=keyspace)
        course_service = CourseService(
            session=session, keyspace=keyspace, storage=storage_service
        )
        progress_service = ProgressService(
            session=session,
            keyspace=keyspace,
            auth_service=auth_service,
            course_service=course_service,
        )
        app.state.auth_service = auth_service
        app.state.course_service = course_service
        app.state.progress_service = progress_service
        app.state.feedback_service = FeedbackService(
            session=session,
            keyspace=keyspace,
            progress_service=progress_service,
            course_service=course_service,
        )
        app.state.payment_service = PaymentService(
            session=session,
            keyspace=keyspace,
            settings=settings,
            gateway=payment_gateway,
            auth_service=auth_service,
            course_service=course_service,
            progress_service=progress_service,
        )
        app_state.verification_service = AccountVerificationService(
            tokens=VerificationTokenService(
                session=session,
                keyspace=keyspace,
                grace=timedelta(seconds=settings.verification_grace_seconds),
            ),
            auth_service=auth_service,
            email_service=email_service,
            rate_limiter=rate_limiter,
            settings=settings,
        )
        logger.info("services_initialized", email=email_service is not None)

    yield

    # Shutdown
    logger.info("shutting_down_application")
    app_state.verification_service = None
    await shutdown_redis()
    await shutdown_async_cassandra()


def _error_body(
    message: str, request: Request, code: str | None = None, **extra: Any
) -> dict[str, Any]:
    request_id = getattr(request.state, "request_id", None) or get_request_id()
    body: dict[str, Any] = {"success": False, "message": message}
    if code:
        body["error"] = code
    body["request_id"] = request_id
    body.update(extra)
    return body


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    # debug stays off so Starlette never renders tracebacks in responses
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Learning management API",
        debug=False,
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
    )

    app.add_middleware(
        RequestContextMiddleware,
        log_requests=settings.log_requests,
        exclude_paths=settings.log_exclude_paths,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> ORJSONResponse:
        logger.warning(
            "http_exception",
            status_code=exc.status_code,
            detail=str(exc.detail),
            path=request.url.path,
            method=request.method,
        )
        message = (
            str(exc.detail)
            if exc.status_code < status.HTTP_500_INTERNAL_SERVER_ERROR
            else "Internal server error"
        )
        return ORJSONResponse(
            status_code=exc.status_code,
            content=_error_body(message, request, getattr(exc, "code", None)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> ORJSONResponse:
        details = [
            {
                "field": ".".join(str(loc) for loc in err.get("loc", ())),
                "message": err.get("msg", "Invalid value"),
            }
            for err in exc.errors()
        ]
        logger.warning(
            "validation_error",
            errors=details,
            path=request.url.path,
            method=request.method,
        )
        return ORJSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=_error_body(
                details[0]["message"] if details else "Validation error",
                request,
                "validation_error",
                details=details,
            ),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request, exc: Exception
    ) -> ORJSONResponse:
        """Catch-all handler; details are logged, never returned."""
        logger.exception(
            "unhandled_exception",
            error_type=type(exc).__name__,
            error_message=str(exc),
            path=request.url.path,
            method=request.method,
        )
        return ORJSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_body(
                "An unexpected error occurred. Please try again later.",
                request,
                "internal_error",
            ),
        )

    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(verification_router)
    app.include_router(users_router)
    app.include_router(users_admin_router)
    app.include_router(courses_router)
    app.include_router(progress_router)
    app.include_router(feedback_router)
    app.include_router(payments_router)
    app.include_router(transactions_admin_router)

    @app.get("/", include_in_schema=False)
    async def root() -> dict[str, str]:
        return {"message": "LearningHub API", "version": settings.app_version}

    return app


set_verification_service_getter(get_verification_service)

app = create_app()
