from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from starlette.exceptions import HTTPException as StarletteHTTPException

from upload_server.config import ServerConfig
from upload_server.logger_config import setup_logger, structured_log
from upload_server.middleware import build_middleware
from upload_server.responses import http_exception_handler
from upload_server.routes.files import router as files_router
from upload_server.storage import StorageBackend, create_backend

logger = setup_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    storage: StorageBackend = app.state.storage
    await storage.initialize()
    logger.info(structured_log("Storage backend initialized", backend=storage.name))
    yield
    await storage.close()


def create_app(server_config: ServerConfig, storage: Optional[StorageBackend] = None) -> FastAPI:
    """Build the upload server for a configuration.

    The storage backend is created from the configuration unless one is
    passed in.
    """
    app = FastAPI(
        title="Simple Upload Server",
        lifespan=lifespan,
        middleware=build_middleware(server_config),
        exception_handlers={StarletteHTTPException: http_exception_handler},
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.config = server_config
    app.state.storage = storage or create_backend(server_config)
    app.include_router(files_router)
    return app
