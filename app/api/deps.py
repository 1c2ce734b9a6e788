import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, TypeVar

from fastapi import Request
from fastapi.responses import JSONResponse

from app.core.exceptions import GenerationError, JobCancelled, ValidationError
from app.schemas.generation import ErrorResponse, ViewContext
from app.services.generation_service import GenerationService

logger = logging.getLogger(__name__)

T = TypeVar("T")

FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")

# URL path -> tab shown by the browser client
_PATH_TABS = {
    "/chat": "chat",
    "/image-gen": "image",
    "/generate-image": "image",
    "/audio-gen": "audio",
    "/video-gen": "video",
}


def get_generation_service(request: Request) -> GenerationService:
    return request.app.state.generation_service


def is_form_request(request: Request) -> bool:
    content_type = request.headers.get("content-type", "")
    return content_type.startswith(FORM_CONTENT_TYPES)


async def read_payload(request: Request) -> Dict[str, Any]:
    """Read the body as a flat dict whether it was posted as a form or as JSON."""
    if is_form_request(request):
        form = await request.form()
        return {key: value for key, value in form.items() if isinstance(value, str)}

    body = await request.body()
    if not body:
        return {}
    try:
        payload = await request.json()
    except ValueError:
        raise ValidationError("Request body is not valid JSON")
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


async def run_until_disconnected(
    request: Request,
    work: Callable[[asyncio.Event], Awaitable[T]],
    check_interval: float,
) -> T:
    """Run ``work`` and set its cancel event if the client goes away.

    Work that ignores the event is cancelled outright one interval later.
    """
    cancel = asyncio.Event()
    task = asyncio.ensure_future(work(cancel))
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=check_interval)
            if done:
                return task.result()
            if await request.is_disconnected():
                logger.info(f"Client disconnected from {request.url.path}, cancelling generation")
                cancel.set()
                done, _ = await asyncio.wait({task}, timeout=check_interval)
                if done:
                    return task.result()
                task.cancel()
                raise JobCancelled("Client disconnected")
    finally:
        if not task.done():
            task.cancel()


def error_response(request: Request, exc: GenerationError) -> JSONResponse:
    tab = _PATH_TABS.get(request.url.path)
    if tab is None:
        tab = "chat" if exc.media_type in (None, "text") else exc.media_type

    if exc.status_code >= 500:
        logger.error(f"{tab} Generation Error ({exc.error_type}): {exc.message}")
    else:
        logger.warning(f"{tab} request rejected ({exc.error_type}): {exc.message}")

    if is_form_request(request):
        context = ViewContext(current_tab=tab, message=f"Failed to generate {tab}", error=exc.message)
        content = context.model_dump(by_alias=True, exclude_none=True)
    else:
        content = ErrorResponse(error=exc.message, type=exc.error_type).model_dump(exclude_none=True)
    return JSONResponse(status_code=exc.status_code, content=content)
