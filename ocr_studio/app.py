import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ocr_studio.application import HistoryService, configure_history_service
from ocr_studio.core.config import Settings, load_settings
from ocr_studio.core.errors import OCRStudioError
from ocr_studio.infrastructure import (
    FileSystemBlobStore,
    OCRGateway,
    SqlHistoryRepository,
    configure_ocr_client,
)
from ocr_studio.infrastructure.database import build_engine, build_session_factory
from ocr_studio.infrastructure.glm_ocr import GlmOcrClient
from ocr_studio.routes import history, process, upload
from ocr_studio.workers.processing import ProcessingWorker, configure_processing_worker

logger = logging.getLogger(__name__)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s [ocr-studio] %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(OCRStudioError)
    async def handle_domain_error(request: Request, exc: OCRStudioError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg')}"
            for error in exc.errors()
        )
        return JSONResponse(status_code=400, content={"error": f"Invalid request: {problems}"})

    # Unhandled errors end here as a 500 envelope and never reach
    # ServerErrorMiddleware.
    @app.middleware("http")
    async def handle_unexpected(request: Request, call_next):
        try:
            return await call_next(request)
        except Exception:
            logger.exception("unhandled error on %s %s", request.method, request.url.path)
            return JSONResponse(status_code=500, content={"error": "Internal server error"})


def create_app(settings: Settings | None = None, *, ocr_client: OCRGateway | None = None) -> FastAPI:
    settings = settings or load_settings()
    _configure_logging(settings.log_level)

    owned_client = None
    if ocr_client is None:
        owned_client = GlmOcrClient(api_base=settings.default_api_url, timeout=settings.request_timeout)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if owned_client is not None:
            owned_client.close()
            logger.info("closed OCR gateway client")

    app = FastAPI(title="OCR Studio API", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings

    session_factory = build_session_factory(build_engine(settings.database_url))
    service = HistoryService(SqlHistoryRepository(session_factory), FileSystemBlobStore(settings.uploads_root))
    configure_history_service(service)
    configure_processing_worker(ProcessingWorker(service))
    configure_ocr_client(ocr_client or owned_client)

    _install_error_handlers(app)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(upload.router, prefix="/api")
    app.include_router(process.router, prefix="/api")
    app.include_router(history.router, prefix="/api")

    @app.get("/", include_in_schema=False)
    async def root() -> JSONResponse:
        """Provide a lightweight landing page for container checks."""
        return JSONResponse(
            {
                "message": "OCR Studio API",
                "docs": "/docs",
                "health": "/api/history",
            }
        )

    logger.info("uploads stored under %s, records in %s", settings.uploads_root, settings.database_url)
    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        create_app(),
        host=os.getenv("OCR_HOST", "127.0.0.1"),
        port=int(os.getenv("OCR_PORT", "8000")),
    )
