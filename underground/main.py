"""
Application entry point: app factory, store lifecycle and error rendering.
"""

from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from underground.auth.credentials import CredentialService
from underground.config import settings
from underground.db.documents import DocumentStore, StoreError
from underground.db.memory_store import InMemoryDocumentStore
from underground.db.pool import DatabasePoolManager
from underground.db.postgres_store import PostgresDocumentStore
from underground.errors import ServiceError
from underground.infrastructure.audit import AuditLogger
from underground.infrastructure.observability.logging import get_logger, setup_logging
from underground.middleware import RequestContextMiddleware, RequestLoggingMiddleware
from underground.routes import auth, events, health, members, referrals, security, villas
from underground.services.member_service import MemberService
from underground.services.referral_service import ReferralService
from underground.services.reservation_service import ReservationService
from underground.services.villa_service import VillaService

# Setup logging before creating the app
setup_logging(log_level=settings.LOG_LEVEL)
logger = get_logger(__name__)


async def build_store() -> DocumentStore:
    """Create and open the configured document store."""
    retry = {
        "max_attempts": settings.TRANSACTION_MAX_ATTEMPTS,
        "base_delay": settings.TRANSACTION_BASE_DELAY,
    }

    if settings.STORE_BACKEND == "memory":
        logger.warning("Using in-memory document store; data is lost on restart")
        return InMemoryDocumentStore(**retry)

    if not settings.DATABASE_URL:
        raise RuntimeError("DATABASE_URL is required when STORE_BACKEND=postgres")

    pool = DatabasePoolManager(settings.DATABASE_URL, settings.get_db_pool_config())
    store = PostgresDocumentStore(pool, **retry)
    await store.initialize()
    return store


def build_services(app: FastAPI, store: DocumentStore) -> None:
    """Construct every engine with explicit handles and attach them to app.state."""
    credentials = CredentialService(
        settings.jwt_secret(),
        algorithm=settings.JWT_ALGORITHM,
        token_ttl=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        bcrypt_rounds=settings.BCRYPT_ROUNDS,
    )
    audit = AuditLogger(store)

    app.state.store = store
    app.state.credentials = credentials
    app.state.audit = audit
    app.state.referrals = ReferralService(
        store, credentials, audit, default_reward_type=settings.DEFAULT_REWARD_TYPE
    )
    app.state.members = MemberService(store, credentials, audit)
    app.state.reservations = ReservationService(store, audit)
    app.state.villas = VillaService(store, audit)


def create_app(store: DocumentStore | None = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        store: Use this document store instead of building one from settings
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Application starting", environment=settings.environment, debug=settings.debug)

        active_store = store or await build_store()
        try:
            build_services(app, active_store)
        except Exception as e:
            logger.error("Failed to initialize services", error=str(e))
            await active_store.close()
            raise

        logger.info("All services initialized successfully", store=type(active_store).__name__)

        yield

        logger.info("Application shutting down")
        await app.state.audit.drain()
        try:
            await active_store.close()
        except Exception as e:
            logger.error("Error closing document store", error=str(e))

    app = FastAPI(
        title="YOH Underground",
        description="Membership backend: invitations, referrals, events and villa bookings",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestContextMiddleware)

    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(members.router)
    app.include_router(referrals.router)
    app.include_router(events.router)
    app.include_router(villas.router)
    app.include_router(security.router)

    register_exception_handlers(app)
    return app


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError):
        if exc.status_code >= 500:
            logger.error("Service error", error_type=type(exc).__name__, path=request.url.path)
        return JSONResponse(status_code=exc.status_code, content={"message": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(part) for part in first.get("loc", ())[1:])
        detail = first.get("msg", "Invalid request")
        message = f"{field}: {detail}" if field else detail
        return JSONResponse(status_code=400, content={"message": message})

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError):
        logger.error(
            "Document store error",
            error=str(exc),
            operation=exc.operation,
            path=request.url.path,
        )
        return JSONResponse(status_code=500, content={"message": "Internal server error."})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(
            "Unhandled error",
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.url.path,
        )
        return JSONResponse(status_code=500, content={"message": "Internal server error."})


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
