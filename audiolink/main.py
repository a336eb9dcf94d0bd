import logging
import time
from dotenv import load_dotenv

# Load environment variables from .env file before anything else
load_dotenv()

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from audiolink.api.router import api_router
from audiolink.core.config import Settings, settings as default_settings
from audiolink.core.db import build_engine, build_sessionmaker, init_models
from audiolink.core.errors import AudioLinkError, StorageError
from audiolink.core.logging import request_id_ctx, setup_logging
from audiolink.platform.provider_registry import ProviderRegistry

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or default_settings
    setup_logging(settings)
    app = FastAPI(title=settings.APP_NAME)

    # one engine, session factory and provider set per app; request handlers reach them through app.state
    engine = build_engine(settings)
    app.state.settings = settings
    app.state.engine = engine
    app.state.sessionmaker = build_sessionmaker(engine)
    app.state.registry = ProviderRegistry(settings)
    expose_details = settings.ENV != "prod"

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = time.time()

        response = await call_next(request)

        process_time = (time.time() - start_time) * 1000
        formatted_process_time = f"{process_time:.2f}ms"

        logger.info(
            f"Request: {request.method} {request.url.path} - Response: {response.status_code} - Time: {formatted_process_time}"
        )

        return response

    # registered last so it runs first and the request log line carries the id
    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        rid = request.headers.get("x-request-id", "-")
        token = request_id_ctx.set(rid)
        try:
            return await call_next(request)
        finally:
            request_id_ctx.reset(token)

    @app.exception_handler(AudioLinkError)
    async def audiolink_error_handler(request: Request, exc: AudioLinkError):
        message = exc.message
        if isinstance(exc, StorageError):
            message = exc.public_message(expose_details)
        if exc.status_code >= 500:
            logger.error(f"{exc.__class__.__name__} for request {request.method} {request.url.path}: {exc.message}", exc_info=exc)
        else:
            logger.warning(f"{exc.__class__.__name__} for request {request.method} {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"message": message}, headers=exc.headers or None)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        detail = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()) if p not in ('body', 'path', 'query', 'header'))}: {err.get('msg')}"
            for err in errors
        )
        logger.warning(f"Invalid request {request.method} {request.url.path}: {detail}")
        return JSONResponse(status_code=400, content={"message": f"Invalid request: {detail}"})

    @app.exception_handler(SQLAlchemyError)
    async def database_error_handler(request: Request, exc: SQLAlchemyError):
        logger.error(f"Database error for request {request.method} {request.url.path}", exc_info=exc)
        message = str(exc) if expose_details else StorageError.default_message
        return JSONResponse(status_code=500, content={"message": message})

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.critical(f"Unhandled exception for request {request.method} {request.url.path}", exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={"message": "An internal server error occurred."},
        )

    @app.on_event("startup")
    async def on_startup():
        await init_models(engine, settings)
        # builds the blob store, creating the local storage root if needed
        app.state.registry.object_storage()

    @app.on_event("shutdown")
    async def on_shutdown():
        await app.state.registry.close()
        await engine.dispose()

    app.include_router(api_router, prefix=settings.API_PREFIX)
    return app


app = create_app()
