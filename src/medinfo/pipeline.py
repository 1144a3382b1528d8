"""
One conversational turn, end to end.

    audio -> STT -> translate(caller -> pivot) -> LLM -> translate(pivot -> caller) -> TTS

Stages run strictly in sequence; each has its own timeout budget under the shared
retry policy. Failures are not caught here: they reach the call-session owner
with their `kind` and stage `label` intact so it can pick a spoken fallback.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Iterable, Optional

import structlog

from src.medinfo.config import Config, init_config
from src.medinfo.language import display_name, normalize_language
from src.medinfo.llm import ConversationHistory, HistoryEntry, ProductReasoner
from src.medinfo.logging_setup import configure_logging
from src.medinfo.services import ServiceContext, create_service_context, validate_models
from src.medinfo.stt import RecognitionResult, SpeechRecognizer
from src.medinfo.translation import Translator
from src.medinfo.tts import SpeechSynthesizer

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class TurnResult:
    transcript: str
    language: str
    query_pivot: str
    reply_pivot: str
    reply_text: str
    audio: bytes


class VoicePipeline:
    """
    The operations the call-session layer consumes.

    Holds no per-call state, so one instance can serve concurrent calls.
    """

    normalize_language = staticmethod(normalize_language)
    display_name = staticmethod(display_name)

    def __init__(self, context: ServiceContext):
        self.context = context
        self.config = context.config
        self._stt = SpeechRecognizer(context)
        self._translator = Translator(context)
        self._reasoner = ProductReasoner(context)
        self._tts = SpeechSynthesizer(context)

    @property
    def pivot_language(self) -> str:
        return self.config.pivot_language

    async def recognize(self, audio: Optional[bytes]) -> RecognitionResult:
        return await self._stt.recognize(audio)

    async def translate(self, text: str, source: str, target: str) -> str:
        return await self._translator.translate(text, source, target)

    async def reason(self, query: str, history: Iterable[HistoryEntry] = ()) -> str:
        return await self._reasoner.reason(query, history)

    async def synthesize(self, text: str, voice: Optional[str] = None) -> bytes:
        return await self._tts.synthesize(text, voice)

    async def run_turn(
        self,
        audio: Optional[bytes],
        history: Iterable[HistoryEntry] = (),
        voice: Optional[str] = None,
    ) -> TurnResult:
        """
        Turn one caller utterance into one spoken reply.

        `history` is in the pivot language. An empty transcript still produces
        a reply: the reasoning stage answers it with a clarification prompt.
        When `history` is a ConversationHistory the exchange is appended to it
        (unless nothing was heard).
        """
        start_time = time.time()
        pivot = self.pivot_language

        recognized = await self.recognize(audio)
        language = recognized.detected_language

        query_pivot = await self.translate(recognized.text, language, pivot)
        reply_pivot = await self.reason(query_pivot, history)
        reply_text = await self.translate(reply_pivot, pivot, language)
        reply_audio = await self.synthesize(reply_text, voice)

        if isinstance(history, ConversationHistory) and query_pivot:
            history.add_user_message(query_pivot)
            history.add_assistant_message(reply_pivot)

        logger.info(
            "Turn complete",
            language=language,
            language_name=display_name(language),
            transcript_chars=len(recognized.text),
            reply_chars=len(reply_text),
            audio_bytes=len(reply_audio),
            total_ms=round((time.time() - start_time) * 1000),
        )

        return TurnResult(
            transcript=recognized.text,
            language=language,
            query_pivot=query_pivot,
            reply_pivot=reply_pivot,
            reply_text=reply_text,
            audio=reply_audio,
        )


async def initialize_pipeline(config: Optional[Config] = None) -> VoicePipeline:
    """
    Startup: validate config, configure logging, load the product document,
    check the chat model exists.

    Raises:
        ConfigError: If required configuration is missing
        StartupFatalError: If the product document cannot be loaded or the
            configured LLM model is unavailable
    """
    if config is None:
        config = init_config()
    else:
        config.validate()
    configure_logging(config.log_level, config.log_format)

    context = create_service_context(config)
    if config.validate_model:
        await validate_models(config)

    logger.info(
        "Pipeline ready",
        pivot_language=config.pivot_language,
        product_chars=len(context.product_document),
    )
    return VoicePipeline(context)
