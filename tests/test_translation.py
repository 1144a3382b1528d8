"""
Tests for the translation stage.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from src.medinfo.errors import TerminalServiceError
from src.medinfo.translation import Translator, completion_text, get_translation_prompt


class TestTranslationShortCircuits:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("lang", ["en", "hi", "zh", "xx"])
    async def test_same_language_is_identity(self, context, fake_client, lang):
        translator = Translator(context)
        text = "  Examplumab 100 mg/mL, keep exactly as is  "

        assert await translator.translate(text, lang, lang) == text
        fake_client.chat.completions.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_text_returns_empty(self, context, fake_client):
        translator = Translator(context)

        assert await translator.translate("", "hi", "en") == ""
        assert await translator.translate("   ", "hi", "en") == ""
        fake_client.chat.completions.create.assert_not_awaited()


class TestTranslationCall:
    @pytest.mark.asyncio
    async def test_translates_with_prompt(self, context, fake_client, make_completion):
        fake_client.chat.completions.create = AsyncMock(
            return_value=make_completion("  What is the dose of Examplumab?  ")
        )
        translator = Translator(context)

        result = await translator.translate("Examplumab ki dose kya hai?", "hi", "en")

        assert result == "What is the dose of Examplumab?"
        kwargs = fake_client.chat.completions.create.await_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["temperature"] == 0.3
        assert kwargs["max_tokens"] == 1024
        system, user = kwargs["messages"]
        assert system["role"] == "system"
        assert "Hindi (hi)" in system["content"]
        assert "English (en)" in system["content"]
        assert user == {"role": "user", "content": "Examplumab ki dose kya hai?"}

    @pytest.mark.asyncio
    async def test_unexpected_shape_is_terminal(self, context, fake_client):
        fake_client.chat.completions.create = AsyncMock(return_value=SimpleNamespace(choices=[]))
        translator = Translator(context)

        with pytest.raises(TerminalServiceError) as exc_info:
            await translator.translate("hola", "es", "en")

        assert exc_info.value.label == "translate"


class TestPromptAndParsing:
    def test_prompt_rules(self):
        prompt = get_translation_prompt("en", "ja")
        assert "English (en)" in prompt
        assert "Japanese (ja)" in prompt
        assert "drug names" in prompt
        assert "dosages" in prompt
        assert "naturally, not literally" in prompt
        assert "ONLY the translation" in prompt

    def test_prompt_unknown_code_echoed(self):
        assert "xx (xx)" in get_translation_prompt("xx", "en")

    def test_completion_text_missing_content(self, make_completion):
        with pytest.raises(TerminalServiceError):
            completion_text(make_completion(None), "LLM")
