from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from app.models.job import MediaType

Orientation = Literal["landscape", "portrait", "square"]


class GenerationRequest(BaseModel):
    prompt: str = Field(..., description="Text prompt for generation")
    media_type: MediaType
    options: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("prompt")
    @classmethod
    def prompt_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Prompt is required")
        return value


class ImageOptions(BaseModel):
    model_config = ConfigDict(extra="ignore")

    image_count: int = Field(default=1, ge=1, le=4, description="Number of images to generate")
    orientation: Orientation = "landscape"
    name: Optional[str] = None

    def project_name(self) -> str:
        return self.name or f"AI Image - {datetime.now().isoformat()}"


class VideoOptions(BaseModel):
    model_config = ConfigDict(extra="ignore")

    end_seconds: int = Field(
        default=5,
        ge=1,
        le=60,
        validation_alias=AliasChoices("end_seconds", "duration"),
        description="Length of the video in seconds",
    )
    orientation: Orientation = "landscape"
    name: Optional[str] = None

    def project_name(self) -> str:
        return self.name or f"Text To Video - {datetime.now().isoformat()}"


class GenerationResult(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    type: MediaType
    text: Optional[str] = None
    image_url: Optional[str] = None
    audio_url: Optional[str] = None
    audio_buffer: Optional[str] = None
    mime_type: Optional[str] = None
    video_url: Optional[str] = None


class ChatResponse(BaseModel):
    output: str


class MediaResponse(BaseModel):
    result: GenerationResult


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class ViewContext(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    current_tab: str
    chat_history: Optional[List[ChatMessage]] = None
    message: Optional[str] = None
    error: Optional[str] = None


class ErrorResponse(BaseModel):
    error: str
    type: Optional[str] = None
