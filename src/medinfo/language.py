"""
Language utilities for the voice pipeline.

The recognition service (Whisper, verbose_json) reports the detected language as a
full lowercase name ("english", "hindi"), not an ISO-639-1 code. Everything inside
the pipeline works with short codes, so this module maps between the two.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping, Optional

DEFAULT_LANGUAGE = "en"

LANGUAGE_NAME_TO_CODE: Mapping[str, str] = MappingProxyType({
    "english": "en", "hindi": "hi", "spanish": "es", "french": "fr",
    "german": "de", "portuguese": "pt", "chinese": "zh", "japanese": "ja",
    "korean": "ko", "arabic": "ar", "russian": "ru", "italian": "it",
    "dutch": "nl", "polish": "pl", "turkish": "tr", "vietnamese": "vi",
    "thai": "th", "bengali": "bn", "tamil": "ta", "telugu": "te",
    "marathi": "mr", "gujarati": "gu", "urdu": "ur", "punjabi": "pa",
    "indonesian": "id", "malay": "ms", "czech": "cs", "romanian": "ro",
    "hungarian": "hu", "greek": "el", "swedish": "sv", "danish": "da",
    "finnish": "fi", "norwegian": "no", "hebrew": "he", "persian": "fa",
    "ukrainian": "uk", "catalan": "ca", "slovak": "sk", "croatian": "hr",
    "serbian": "sr", "bulgarian": "bg", "slovenian": "sl", "latvian": "lv",
    "lithuanian": "lt", "estonian": "et", "swahili": "sw", "nepali": "ne",
    "sinhala": "si", "afrikaans": "af", "tagalog": "tl", "welsh": "cy",
    "macedonian": "mk", "icelandic": "is", "azerbaijani": "az",
    "kazakh": "kk", "uzbek": "uz", "georgian": "ka", "armenian": "hy",
    "albanian": "sq", "bosnian": "bs", "galician": "gl", "basque": "eu",
    "belarusian": "be", "mongolian": "mn", "burmese": "my", "lao": "lo",
    "khmer": "km", "amharic": "am", "yoruba": "yo", "somali": "so",
    "zulu": "zu", "javanese": "jv", "sundanese": "su",
})

# Derived once from the forward table.
CODE_TO_DISPLAY_NAME: Mapping[str, str] = MappingProxyType({
    code: name.capitalize() for name, code in LANGUAGE_NAME_TO_CODE.items()
})


def normalize_language(raw: Optional[str]) -> str:
    """
    Normalize a recognition-service language name into a short code.

    - None/empty -> "en"
    - known name (any case, surrounding whitespace ignored) -> its code
    - unknown value of <= 3 chars -> returned as-is (assumed to already be a code)
    - anything else -> "en"

    The <= 3 char pass-through is an approximation: a genuine short language name
    missing from the table would be mistaken for a code.
    """
    if not raw:
        return DEFAULT_LANGUAGE
    lower = raw.strip().lower()
    if not lower:
        return DEFAULT_LANGUAGE
    if len(lower) <= 3 and lower not in LANGUAGE_NAME_TO_CODE:
        return lower
    return LANGUAGE_NAME_TO_CODE.get(lower, DEFAULT_LANGUAGE)


def display_name(code: Optional[str]) -> str:
    """Human-readable name for a code ("hi" -> "Hindi"); unknown codes echo back."""
    if code is None:
        return ""
    return CODE_TO_DISPLAY_NAME.get(code, code)


def supported_languages() -> list[str]:
    return sorted(CODE_TO_DISPLAY_NAME)
