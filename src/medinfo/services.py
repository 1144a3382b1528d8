"""
Shared, read-only state for all pipeline stages.

One ServiceContext is built at process start and handed to every stage:
- the validated Config
- a single AsyncOpenAI client (STT, chat completions, TTS)
- the product document and the system prompt built from it
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

import httpx
import structlog
from openai import AsyncOpenAI

from src.medinfo.config import Config, get_config
from src.medinfo.errors import StartupFatalError
from src.medinfo.product import build_system_prompt, load_product_document
from src.medinfo.retry import RetryPolicy

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ServiceContext:
    config: Config
    client: Any
    product_document: str
    system_prompt: str = field(default="")

    def __post_init__(self) -> None:
        if not self.system_prompt:
            object.__setattr__(self, "system_prompt", build_system_prompt(self.product_document))

    def policy_for(self, stage: str) -> RetryPolicy:
        return self.config.policy_for(stage)


def create_service_context(
    config: Optional[Config] = None,
    *,
    client: Optional[Any] = None,
    product_document: Optional[str] = None,
) -> ServiceContext:
    """
    Build the shared context.

    Raises:
        StartupFatalError: If the product document cannot be loaded
    """
    if config is None:
        config = get_config()

    if product_document is None:
        product_document = load_product_document(config.product_info_path)

    if client is None:
        client = AsyncOpenAI(
            api_key=config.openai_api_key,
            base_url=config.openai_base_url,
            # Retries and deadlines are owned by src.medinfo.retry.
            max_retries=0,
        )

    return ServiceContext(config=config, client=client, product_document=product_document)


async def validate_models(config: Config) -> bool:
    """
    Validate that the configured chat model exists.

    Calls GET {OPENAI_BASE_URL}/models to check.

    Raises:
        StartupFatalError: If the model list cannot be fetched or lacks the model
    """
    logger.info("Validating LLM model", model=config.llm_model)

    async with httpx.AsyncClient() as client:
        try:
            response = await client.get(
                f"{config.openai_base_url}/models",
                headers={"Authorization": f"Bearer {config.openai_api_key}"},
                timeout=10.0,
            )
        except httpx.RequestError as e:
            logger.error("Failed to connect to model API", error=str(e))
            raise StartupFatalError(
                f"Failed to connect to model API: {e}\n"
                "Check your network connection and OPENAI_API_KEY.",
                label="models",
            ) from e

    if response.status_code != 200:
        logger.error(
            "Failed to fetch models",
            status_code=response.status_code,
            response=response.text[:200],
        )
        raise StartupFatalError(
            f"Failed to validate LLM model. API returned status {response.status_code}. "
            "Check your OPENAI_API_KEY.",
            label="models",
            status=response.status_code,
        )

    model_ids = [m.get("id") for m in response.json().get("data", [])]
    if config.llm_model not in model_ids:
        available = ", ".join(sorted(filter(None, model_ids))[:10])
        logger.error(
            "LLM model not found",
            requested_model=config.llm_model,
            available_models=available,
        )
        raise StartupFatalError(
            f"LLM_MODEL '{config.llm_model}' not found in available models.\n"
            f"Available models include: {available}",
            label="models",
        )

    logger.info("LLM model validated successfully", model=config.llm_model)
    return True
