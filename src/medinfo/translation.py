"""
Translation between the caller's language and the pivot language.

Uses a low-temperature chat completion. Same-language and empty input return
without a network call.
"""

from __future__ import annotations

from typing import Any

import structlog

from src.medinfo.errors import TerminalServiceError
from src.medinfo.language import display_name
from src.medinfo.retry import PipelineOperation
from src.medinfo.services import ServiceContext

logger = structlog.get_logger(__name__)

TRANSLATE_TEMPERATURE = 0.3
TRANSLATE_MAX_TOKENS = 1024


def get_translation_prompt(source: str, target: str) -> str:
    source_label = f"{display_name(source)} ({source})"
    target_label = f"{display_name(target)} ({target})"
    return f"""You are a professional medical translator. Translate the following text from {source_label} to {target_label}.
Rules:
- Keep drug names, mechanism names, clinical trial names, dosages, and units exactly as written, in their original script.
- Translate naturally, not literally.
- Maintain the professional medical tone.
- Output ONLY the translation: no explanation, no quotes, no extra text."""


def completion_text(response: Any, label: str) -> str:
    """Pull the first choice's text out of a chat completion, trimmed."""
    try:
        content = response.choices[0].message.content
    except (AttributeError, IndexError, TypeError) as e:
        raise TerminalServiceError(
            f"{label} returned an unexpected response shape", label=label
        ) from e
    if content is None:
        raise TerminalServiceError(f"{label} returned no content", label=label)
    return content.strip()


class Translator:
    """Chat-completion based translation between two language codes."""

    LABEL = "translate"

    def __init__(self, context: ServiceContext):
        self.context = context
        self.config = context.config
        self._client = context.client

    async def translate(self, text: str, source: str, target: str) -> str:
        if not text or not text.strip():
            return ""
        if source == target:
            return text

        messages = [
            {"role": "system", "content": get_translation_prompt(source, target)},
            {"role": "user", "content": text},
        ]

        response = await PipelineOperation(
            self.LABEL,
            lambda: self._client.chat.completions.create(
                model=self.config.llm_model,
                temperature=TRANSLATE_TEMPERATURE,
                max_tokens=TRANSLATE_MAX_TOKENS,
                messages=messages,
            ),
            self.context.policy_for("translate"),
        ).run()

        translated = completion_text(response, self.LABEL)
        logger.debug("Translated", source=source, target=target, chars=len(translated))
        return translated
