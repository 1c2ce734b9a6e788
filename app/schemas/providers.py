"""Response shapes returned by the upstream generation APIs.

Only the fields this service reads are declared; anything else in the payload
is ignored.
"""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, coerce_numbers_to_str=True)


# Gemini

class GeminiInlineData(_Payload):
    mime_type: str = Field(alias="mimeType")
    data: str


class GeminiPart(_Payload):
    text: Optional[str] = None
    inline_data: Optional[GeminiInlineData] = Field(default=None, alias="inlineData")


class GeminiContent(_Payload):
    parts: List[GeminiPart] = Field(default_factory=list)


class GeminiCandidate(_Payload):
    content: Optional[GeminiContent] = None
    finish_reason: Optional[str] = Field(default=None, alias="finishReason")


class GeminiResponse(_Payload):
    candidates: List[GeminiCandidate] = Field(default_factory=list)


# Magic Hour

class MagicHourCreateResponse(_Payload):
    id: str


class MagicHourDownload(_Payload):
    url: str
    expires_at: Optional[str] = None


class MagicHourError(_Payload):
    message: Optional[str] = None
    code: Optional[str] = None


class MagicHourProject(_Payload):
    id: Optional[str] = None
    status: str
    downloads: List[MagicHourDownload] = Field(default_factory=list)
    error: Optional[MagicHourError] = None


# Minimax

class MinimaxBaseResp(_Payload):
    status_code: int = 0
    status_msg: Optional[str] = None


class MinimaxCreateResponse(_Payload):
    task_id: Optional[str] = None
    base_resp: MinimaxBaseResp = Field(default_factory=MinimaxBaseResp)


class MinimaxTaskStatus(_Payload):
    task_id: Optional[str] = None
    status: str = ""
    file_id: Optional[str] = None
    base_resp: MinimaxBaseResp = Field(default_factory=MinimaxBaseResp)


class MinimaxFile(_Payload):
    file_id: Optional[str] = None
    download_url: Optional[str] = None


class MinimaxFileResponse(_Payload):
    file: Optional[MinimaxFile] = None
    base_resp: MinimaxBaseResp = Field(default_factory=MinimaxBaseResp)
