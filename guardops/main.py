from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError

from .config import settings
from .db import Base, engine, session_scope
from .errors import DomainError
from .logging import setup_logging, RequestIdMiddleware, structlog
from .auth.router import router as auth_router
from .routes.users import router as users_router, roles_router
from .routes.guards import router as guards_router
from .routes.clients import router as clients_router
from .routes.locations import router as locations_router
from .routes.shifts import router as shifts_router
from .routes.schedules import router as schedules_router
from .routes.attendance import router as attendance_router
from .routes.incidents import router as incidents_router, categories_router
from .routes.dashboard import router as dashboard_router
from .routes.audit import router as audit_router
from .routes.uploads import router as uploads_router
from .services.users import ensure_roles


logger = structlog.get_logger(__name__)


def _ensure_sqlite_dir(url: str) -> None:
    parsed = make_url(url)
    if parsed.get_backend_name() == "sqlite" and parsed.database and parsed.database != ":memory:":
        Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(DomainError)
    async def domain_error_handler(request: Request, exc: DomainError):
        if exc.status_code >= 500:
            logger.error("domain_error", path=request.url.path, error=exc.message)
        return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"detail": "Validation failed", "errors": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(SQLAlchemyError)
    async def storage_error_handler(request: Request, exc: SQLAlchemyError):
        logger.exception("storage_error", path=request.url.path)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title=settings.app_name)

    # Middlewares
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    register_exception_handlers(app)

    # Routers
    app.include_router(auth_router)
    app.include_router(roles_router)
    app.include_router(users_router)
    app.include_router(guards_router)
    app.include_router(clients_router)
    app.include_router(locations_router)
    app.include_router(shifts_router)
    app.include_router(schedules_router)
    app.include_router(attendance_router)
    app.include_router(categories_router)
    app.include_router(incidents_router)
    app.include_router(dashboard_router)
    app.include_router(audit_router)
    app.include_router(uploads_router)

    # Metrics
    Instrumentator().instrument(app).expose(app)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.on_event("startup")
    def on_startup():
        if settings.auto_create_db:
            _ensure_sqlite_dir(settings.database_url)
            Base.metadata.create_all(bind=engine)
        with session_scope() as db:
            ensure_roles(db)
        logger.info("startup_complete", environment=settings.environment)

    return app


app = create_app()
