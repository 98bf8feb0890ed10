"""Arabic/English language detection."""

import re

ARABIC = "ar"
ENGLISH = "en"

# Arabic, Arabic Supplement, Arabic Extended-A, Presentation Forms-A and -B
_ARABIC_RE = re.compile(
    "[\u0600-\u06FF\u0750-\u077F\u08A0-\u08FF\uFB50-\uFDFF\uFE70-\uFEFF]"
)

_SPEECH_LOCALES = {ARABIC: "ar-SA", ENGLISH: "en-US"}


def contains_arabic(text: str) -> bool:
    """True if *text* has at least one character from an Arabic Unicode block."""
    return bool(text) and _ARABIC_RE.search(text) is not None


def detect_language(text: str) -> str:
    """Return ``"ar"`` for text containing Arabic script, else ``"en"``."""
    return ARABIC if contains_arabic(text) else ENGLISH


def speech_locale(language: str) -> str:
    """BCP 47 locale for speech recognition / synthesis."""
    return _SPEECH_LOCALES.get(language, _SPEECH_LOCALES[ENGLISH])


def text_direction(text: str) -> str:
    return "rtl" if contains_arabic(text) else "ltr"
