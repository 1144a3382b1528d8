"""
Pytest configuration and fixtures.
"""

import os
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest


PRODUCT_DOCUMENT = (
    "Product: Examplumab 100 mg/mL solution for injection.\n"
    "Indication: moderate-to-severe plaque psoriasis in adults.\n"
    "Pivotal trial: EXAMPLE-1 (n=612).\n"
)


@pytest.fixture(autouse=True)
def mock_env_vars():
    """Mock environment variables for tests."""
    env_vars = {
        "OPENAI_API_KEY": "sk-test-placeholder",
        "LOG_LEVEL": "DEBUG",
        "LLM_MODEL": "gpt-4o-mini",
        "PIVOT_LANGUAGE": "en",
        "MAX_RETRIES": "2",
        "RETRY_BASE_MS": "600",
    }

    with patch.dict(os.environ, env_vars):
        # Clear config cache
        from src.medinfo.config import get_config
        get_config.cache_clear()
        yield
        get_config.cache_clear()


def chat_completion(text):
    """Shape of an OpenAI chat completion response."""
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=text))]
    )


@pytest.fixture
def product_document():
    return PRODUCT_DOCUMENT


@pytest.fixture
def fake_client():
    """AsyncOpenAI stand-in with the three endpoints the pipeline uses."""
    client = MagicMock()
    client.audio.transcriptions.create = AsyncMock(
        return_value=SimpleNamespace(text="  hello  ", language="english")
    )
    client.chat.completions.create = AsyncMock(return_value=chat_completion("ok"))
    client.audio.speech.create = AsyncMock(
        return_value=SimpleNamespace(content=b"\x00\x01" * 240)
    )
    return client


@pytest.fixture
def context(fake_client, product_document):
    from src.medinfo.config import get_config
    from src.medinfo.services import create_service_context

    return create_service_context(
        get_config(), client=fake_client, product_document=product_document
    )


@pytest.fixture
def make_completion():
    return chat_completion


@pytest.fixture
def sample_wav_audio():
    """Enough bytes to pass the silence threshold."""
    return b"RIFF" + b"\x00" * 2000
