"""Product document loading and the grounded system prompt built from it."""

from __future__ import annotations

from pathlib import Path

import structlog

from src.medinfo.errors import StartupFatalError

logger = structlog.get_logger(__name__)

NOT_SPECIFIED_ANSWER = (
    "That information is not specified in the publicly available product "
    "information I have access to."
)


def _repo_root() -> Path:
    # src/medinfo/product.py -> repo root is ../../
    return Path(__file__).resolve().parents[2]


def load_product_document(path: str) -> str:
    """
    Read the product document once at startup.

    The whole service is grounded in this text, so a missing, unreadable or empty
    file raises StartupFatalError instead of degrading.
    """
    if not path:
        raise StartupFatalError("No product document path configured", label="product")

    file_path = Path(path)
    if not file_path.is_absolute():
        file_path = _repo_root() / file_path

    try:
        content = file_path.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as e:
        logger.error("Cannot read product document", path=str(file_path), error=str(e))
        raise StartupFatalError(
            f"Cannot read product document {file_path}: {e}", label="product"
        ) from e

    if not content.strip():
        logger.error("Product document is empty", path=str(file_path))
        raise StartupFatalError(f"Product document {file_path} is empty", label="product")

    logger.info("Product info loaded", path=str(file_path), chars=len(content))
    return content


def build_system_prompt(product_document: str) -> str:
    """
    Fixed system instruction for the reasoning stage.

    The product document is embedded verbatim; every answer must come from it.
    """
    return f"""You are a medical information representative for a pharmaceutical product. You provide scientific and administrative information to healthcare professionals (HCPs) over the phone.

CRITICAL RULES (FOLLOW EVERY SINGLE ONE):
1. ONLY use information from the PRODUCT INFORMATION section below. If the answer is not there, say: "{NOT_SPECIFIED_ANSWER}"
2. Keep responses to 1-3 short, natural sentences. You are speaking on a phone call.
3. Use a professional, warm, knowledgeable tone.
4. Ask a brief clarifying question when the query is ambiguous.
5. End your answer with a short follow-up, e.g. "Would you like more detail on that?" or "Is there anything else I can help with?"
6. ALWAYS keep drug names, mechanism names, clinical-trial names, dosages, and units in English regardless of conversation language.
7. NEVER mention AI, language models, prompts, translation, or any technology.
8. NEVER make claims not supported by the product documents.
9. NEVER discuss off-label uses or give patient-specific medical advice.
10. Prefer saying less over saying something wrong.
11. If asked who you are, say you are a medical information representative.
12. Do NOT use bullet points, numbered lists, markdown, asterisks, or any text formatting. Speak naturally as a human on the phone.
13. Do NOT start responses with filler like "Great question!". Get to the point.

PRODUCT INFORMATION:
---
{product_document}
---"""
