"""
Speech synthesis for the spoken reply.

Text is cut to the model's character ceiling before the call; audio comes back
as raw PCM.
"""

from __future__ import annotations

from typing import Any, Optional

import structlog

from src.medinfo.retry import PipelineOperation
from src.medinfo.services import ServiceContext

logger = structlog.get_logger(__name__)

ELLIPSIS = "..."


def truncate_for_synthesis(text: str, limit: int) -> str:
    """Cut text to `limit` chars, the last three replaced by "..."."""
    if len(text) <= limit:
        return text
    return text[: limit - len(ELLIPSIS)] + ELLIPSIS


async def _response_bytes(resp: Any) -> bytes:
    # SDKs have varied over time; handle several shapes.
    data = getattr(resp, "content", None)
    if isinstance(data, (bytes, bytearray)):
        return bytes(data)
    aread = getattr(resp, "aread", None)
    if callable(aread):
        return await aread()
    read = getattr(resp, "read", None)
    if callable(read):
        return read()
    return bytes(resp)


class SpeechSynthesizer:
    """OpenAI Text-to-Speech returning raw PCM."""

    LABEL = "TTS"

    def __init__(self, context: ServiceContext):
        self.context = context
        self.config = context.config
        self._client = context.client

    async def synthesize(self, text: str, voice: Optional[str] = None) -> bytes:
        if not text or not text.strip():
            return b""

        limit = self.config.max_tts_chars
        text_input = truncate_for_synthesis(text, limit)
        if len(text_input) != len(text):
            logger.warning("TTS input truncated", chars=len(text), max_chars=limit)

        async def _call() -> bytes:
            resp = await self._client.audio.speech.create(
                model=self.config.tts_model,
                voice=voice or self.config.tts_voice,
                input=text_input,
                response_format="pcm",
            )
            return await _response_bytes(resp)

        return await PipelineOperation(self.LABEL, _call, self.context.policy_for("tts")).run()
