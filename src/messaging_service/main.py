import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from .config import settings
from .db import dispose_engine
from .logging_config import setup_logging, setup_middleware
from .rate_limiting import setup_rate_limiting
from .routers import conversations_router, health_router, ws_router
from .services import (
    AttachmentStorage,
    ConnectionRegistry,
    ConversationLocks,
    DeliveryDispatcher,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.logger.info(f"'{settings.PROJECT_NAME}' startup sequence initiated.")
    app.startup_time = time.time()
    yield
    app.logger.info(f"'{settings.PROJECT_NAME}' shutdown sequence initiated.")
    await dispose_engine()


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.PROJECT_NAME,
        description=(
            "Conversations between alumni: persisted message history, media "
            "attachments and best-effort live delivery over WebSocket."
        ),
        version="0.1.0",
        root_path=settings.ROOT_PATH,
        lifespan=lifespan,
        openapi_tags=[
            {"name": "Health", "description": "Service health endpoints"},
            {"name": "Conversations", "description": "Conversations, history and sending"},
            {"name": "WebSocket", "description": "Live message delivery channel"},
        ],
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        swagger_ui_parameters={"persistAuthorization": True},
    )
    app.logger = logging.getLogger("messaging_service")

    # Live delivery state belongs to this application instance
    registry = ConnectionRegistry()
    app.state.registry = registry
    app.state.dispatcher = DeliveryDispatcher(
        registry, echo_to_sender=settings.ECHO_TO_SENDER
    )
    app.state.conversation_locks = ConversationLocks(
        enabled=settings.SERIALIZE_CONVERSATION_SENDS
    )
    app.state.storage = AttachmentStorage(
        root_dir=settings.UPLOAD_DIR,
        url_prefix=settings.UPLOAD_URL_PREFIX,
        allowed_types=settings.ALLOWED_MEDIA_TYPES,
        max_size_bytes=settings.MAX_UPLOAD_SIZE_BYTES,
        max_files=settings.MAX_ATTACHMENTS,
    )

    setup_middleware(app)
    setup_rate_limiting(app)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=422, content={"detail": jsonable_encoder(exc.errors())})

    app.include_router(health_router)
    app.include_router(conversations_router)
    app.include_router(ws_router)

    app.mount(
        app.state.storage.url_prefix,
        StaticFiles(directory=str(app.state.storage.root_dir)),
        name="uploads",
    )
    return app


# Configure logging before app initialization
setup_logging()

app = create_app()
