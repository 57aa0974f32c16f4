import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from chatty_auth.api.v1 import auth
from chatty_auth.core.config import Settings, load_settings
from chatty_auth.core.database import Base, build_engine, build_session_factory
from chatty_auth.core.errors import AuthServiceError, InternalError
from chatty_auth.core.logging import configure_logging

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()

    app = FastAPI(title="Chatty Authentication API", version="1.0.0", lifespan=_lifespan)
    app.state.settings = settings
    app.state.engine = build_engine(settings)
    app.state.session_factory = build_session_factory(app.state.engine)

    app.include_router(auth.router, prefix="/api/auth", tags=["authentication"])

    # Cookie sessions need credentialed CORS, which rules out a wildcard origin.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_error_handlers(app)

    @app.get("/health")
    def health_check():
        return {"status": "ok"}

    return app


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings: Settings = app.state.settings
    configure_logging(settings.log_level)
    Base.metadata.create_all(bind=app.state.engine)
    logger.info("Database tables ready environment=%s", settings.environment)
    try:
        yield
    finally:
        app.state.engine.dispose()


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(AuthServiceError)
    async def _handle_auth_error(request: Request, exc: AuthServiceError):
        if exc.status_code >= 500:
            logger.error("Request failed path=%s: %s", request.url.path, exc.detail)
        return JSONResponse(status_code=exc.status_code, content=exc.to_body())

    @app.exception_handler(RequestValidationError)
    async def _handle_request_validation(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": "Invalid request body"},
        )

    @app.exception_handler(Exception)
    async def _handle_unexpected(request: Request, exc: Exception):
        logger.exception("Unhandled application error path=%s", request.url.path)
        error = InternalError()
        return JSONResponse(status_code=error.status_code, content=error.to_body())


if __name__ == "__main__":
    import uvicorn

    app_settings = load_settings()
    uvicorn.run(create_app(app_settings), host=app_settings.host, port=app_settings.port)
