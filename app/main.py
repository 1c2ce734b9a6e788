from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from contextlib import asynccontextmanager
from pydantic import ValidationError as SettingsError
import httpx
from app.api.deps import error_response
from app.api.routes import router
from app.core.config import get_settings
from app.core.exceptions import GenerationError, ValidationError
from app.core.logging import setup_logging
from app.services.generation_service import GenerationService
from app.services.media_generator_factory import MediaGeneratorFactory, build_pollers
import logging

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting up application")
    try:
        settings = get_settings()
    except SettingsError as e:
        missing = ", ".join(str(err["loc"][0]).upper() for err in e.errors() if err.get("loc"))
        logger.critical(f"Provider credentials missing or invalid ({missing or e}); refusing to start")
        raise SystemExit(1)

    setup_logging(settings.log_level, settings.debug)

    http_client = httpx.AsyncClient(timeout=settings.http_timeout)
    providers = MediaGeneratorFactory(settings, http_client).build()
    image_poller, video_poller = build_pollers(settings)

    app.state.settings = settings
    app.state.http_client = http_client
    app.state.generation_service = GenerationService(providers, image_poller, video_poller)
    yield
    logger.info("Shutting down application")
    await http_client.aclose()


app = FastAPI(
    title="Media Generation Gateway",
    description="Forwards prompts to generative AI providers and follows their async jobs",
    version="1.0.0",
    lifespan=lifespan
)

app.include_router(router)


@app.exception_handler(GenerationError)
async def generation_error_handler(request: Request, exc: GenerationError):
    return error_response(request, exc)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return error_response(request, ValidationError(str(exc.errors()[0].get("msg", "Invalid request"))))


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.url.path}: {exc!r}", exc_info=exc)
    return error_response(request, GenerationError(str(exc) or "Unexpected server error"))


@app.get("/")
async def root():
    return {"message": "Media Generation Gateway", "status": "running"}


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
