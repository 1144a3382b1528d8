"""
Speech-to-Text via OpenAI Whisper.

Whisper needs a file upload, so each call writes the buffer to its own randomly
named scratch file (concurrent turns never share a path) and removes it on every
exit path.
"""

from __future__ import annotations

import os
import tempfile
import time
from dataclasses import dataclass
from typing import Optional

import structlog

from src.medinfo.language import DEFAULT_LANGUAGE, normalize_language
from src.medinfo.retry import PipelineOperation
from src.medinfo.services import ServiceContext

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RecognitionResult:
    """Result from STT."""
    text: str
    detected_language: str = DEFAULT_LANGUAGE


class SpeechRecognizer:
    """Whisper STT client for complete utterances (WAV bytes)."""

    LABEL = "STT"

    def __init__(self, context: ServiceContext):
        self.context = context
        self.config = context.config
        self._client = context.client

    async def recognize(self, audio: Optional[bytes]) -> RecognitionResult:
        """
        Transcribe one utterance.

        Buffers below `min_audio_bytes` are treated as silence/noise and return
        an empty English result without calling the service.
        """
        if not audio or len(audio) < self.config.min_audio_bytes:
            return RecognitionResult(text="", detected_language=DEFAULT_LANGUAGE)

        fd, path = tempfile.mkstemp(prefix="stt-", suffix=".wav")
        start_time = time.time()
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(audio)

            async def _call():
                # Reopen per attempt: a retried upload must start from byte 0.
                with open(path, "rb") as upload:
                    return await self._client.audio.transcriptions.create(
                        file=upload,
                        model=self.config.stt_model,
                        response_format="verbose_json",
                    )

            result = await PipelineOperation(self.LABEL, _call, self.context.policy_for("stt")).run()
        finally:
            _remove_scratch(path)

        text = (getattr(result, "text", None) or "").strip()
        detected = normalize_language(getattr(result, "language", None))

        logger.debug(
            "Transcription complete",
            chars=len(text),
            raw_language=getattr(result, "language", None),
            language=detected,
            latency_ms=round((time.time() - start_time) * 1000),
        )
        return RecognitionResult(text=text, detected_language=detected)


def _remove_scratch(path: str) -> None:
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("Failed to remove STT scratch file", path=path, error=str(e))
