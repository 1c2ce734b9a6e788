from fastapi import APIRouter, Depends, Request
from typing import Any, Dict
from app.api.deps import get_generation_service, read_payload, run_until_disconnected
from app.core.config import Settings, get_settings
from app.models.job import MediaType
from app.schemas.generation import ChatResponse, MediaResponse, ViewContext
from app.services.generation_service import GenerationService, build_request
import logging

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/chat", response_model=ChatResponse)
async def chat_generation(
    request: Request,
    payload: Dict[str, Any] = Depends(read_payload),
    service: GenerationService = Depends(get_generation_service),
    settings: Settings = Depends(get_settings),
):
    generation_request = build_request(payload, MediaType.TEXT)
    result = await run_until_disconnected(
        request,
        lambda cancel: service.generate(generation_request, cancel),
        settings.disconnect_check_interval,
    )
    return ChatResponse(output=result.text)


@router.post("/image-gen", response_model=MediaResponse, response_model_exclude_none=True)
@router.post("/generate-image", response_model=MediaResponse, response_model_exclude_none=True)
async def image_generation(
    request: Request,
    payload: Dict[str, Any] = Depends(read_payload),
    service: GenerationService = Depends(get_generation_service),
    settings: Settings = Depends(get_settings),
):
    generation_request = build_request(payload, MediaType.IMAGE)
    result = await run_until_disconnected(
        request,
        lambda cancel: service.generate(generation_request, cancel),
        settings.disconnect_check_interval,
    )
    logger.info(f"Image ready: {result.image_url}")
    return MediaResponse(result=result)


@router.post("/audio-gen", response_model=MediaResponse, response_model_exclude_none=True)
async def audio_generation(
    request: Request,
    payload: Dict[str, Any] = Depends(read_payload),
    service: GenerationService = Depends(get_generation_service),
    settings: Settings = Depends(get_settings),
):
    generation_request = build_request(payload, MediaType.AUDIO)
    result = await run_until_disconnected(
        request,
        lambda cancel: service.generate(generation_request, cancel),
        settings.disconnect_check_interval,
    )
    return MediaResponse(result=result)


@router.post("/video-gen", response_model=MediaResponse, response_model_exclude_none=True)
async def video_generation(
    request: Request,
    payload: Dict[str, Any] = Depends(read_payload),
    service: GenerationService = Depends(get_generation_service),
    settings: Settings = Depends(get_settings),
):
    generation_request = build_request(payload, MediaType.VIDEO)
    result = await run_until_disconnected(
        request,
        lambda cancel: service.generate(generation_request, cancel),
        settings.disconnect_check_interval,
    )
    logger.info(f"Video ready: {result.video_url}")
    return MediaResponse(result=result)


@router.get("/chat", response_model=ViewContext, response_model_exclude_none=True)
async def chat_view():
    return ViewContext(current_tab="chat", chat_history=[])


@router.get("/image", response_model=ViewContext, response_model_exclude_none=True)
async def image_view():
    return ViewContext(current_tab="image")


@router.get("/audio", response_model=ViewContext, response_model_exclude_none=True)
async def audio_view():
    return ViewContext(current_tab="audio")


@router.get("/video", response_model=ViewContext, response_model_exclude_none=True)
async def video_view():
    return ViewContext(current_tab="video")
