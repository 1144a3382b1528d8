"""
Medical-information voice core.

Keep imports lightweight so modules like `src.medinfo.language` can be used without
requiring the full runtime dependency set (e.g., openai, dotenv) at import time.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from src.medinfo.config import Config
    from src.medinfo.pipeline import VoicePipeline

__all__ = ["Config", "get_config", "VoicePipeline", "initialize_pipeline"]


def __getattr__(name: str) -> Any:
    if name in ("Config", "get_config"):
        from src.medinfo.config import Config, get_config

        return {"Config": Config, "get_config": get_config}[name]
    if name in ("VoicePipeline", "initialize_pipeline"):
        from src.medinfo.pipeline import VoicePipeline, initialize_pipeline

        return {"VoicePipeline": VoicePipeline, "initialize_pipeline": initialize_pipeline}[name]
    raise AttributeError(name)
