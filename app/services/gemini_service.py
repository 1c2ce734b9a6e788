import base64
import io
import logging
import re
import wave
from typing import Any, Dict

import httpx

from app.core.exceptions import MalformedResponse
from app.schemas.providers import GeminiResponse
from app.services.media_generator_service import (
    AudioGeneratorService,
    AudioPayload,
    HttpProvider,
    TextGeneratorService,
)

logger = logging.getLogger(__name__)

_PCM_RATE = re.compile(r"rate=(\d+)")
_DEFAULT_SAMPLE_RATE = 24000


def pcm_to_wav(pcm: bytes, sample_rate: int = _DEFAULT_SAMPLE_RATE) -> bytes:
    """Wrap 16-bit mono little-endian PCM in a WAV container."""
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(sample_rate)
        wav.writeframes(pcm)
    return buffer.getvalue()


class GeminiService(HttpProvider, TextGeneratorService, AudioGeneratorService):
    name = "gemini"

    def __init__(
        self,
        api_key: str,
        base_url: str,
        http_client: httpx.AsyncClient,
        text_model: str,
        tts_model: str,
        voice: str = "Kore",
    ):
        super().__init__(base_url, http_client)
        self._api_key = api_key
        self.text_model = text_model
        self.tts_model = tts_model
        self.voice = voice

    def _headers(self) -> Dict[str, str]:
        return {"x-goog-api-key": self._api_key}

    async def _generate_content(self, model: str, body: Dict[str, Any]) -> GeminiResponse:
        return await self._request("POST", f"/models/{model}:generateContent", GeminiResponse, json=body)

    async def generate_text(self, prompt: str) -> str:
        body = {"contents": [{"parts": [{"text": prompt}]}]}
        response = await self._generate_content(self.text_model, body)

        for candidate in response.candidates:
            if candidate.content is None:
                continue
            texts = [part.text for part in candidate.content.parts if part.text]
            if texts:
                return "".join(texts)

        reason = response.candidates[0].finish_reason if response.candidates else "no candidates"
        raise MalformedResponse(f"Gemini returned no text ({reason})")

    async def generate_audio(self, prompt: str) -> AudioPayload:
        body = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "responseModalities": ["AUDIO"],
                "speechConfig": {
                    "voiceConfig": {"prebuiltVoiceConfig": {"voiceName": self.voice}},
                },
            },
        }
        response = await self._generate_content(self.tts_model, body)

        inline = None
        for candidate in response.candidates:
            if candidate.content is None:
                continue
            inline = next((p.inline_data for p in candidate.content.parts if p.inline_data), None)
            if inline is not None:
                break
        if inline is None:
            raise MalformedResponse("Gemini returned no audio data")

        try:
            raw = base64.b64decode(inline.data, validate=True)
        except ValueError as e:
            raise MalformedResponse("Gemini audio data is not valid base64") from e

        logger.info(f"Gemini audio received: {len(raw)} bytes ({inline.mime_type})")

        if inline.mime_type.lower().startswith("audio/l16"):
            match = _PCM_RATE.search(inline.mime_type)
            rate = int(match.group(1)) if match else _DEFAULT_SAMPLE_RATE
            wav = pcm_to_wav(raw, sample_rate=rate)
            return AudioPayload(mime_type="audio/wav", data_base64=base64.b64encode(wav).decode("ascii"))

        return AudioPayload(mime_type=inline.mime_type, data_base64=inline.data)
