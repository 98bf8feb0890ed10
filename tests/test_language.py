"""Tests for Arabic/English detection."""

import pytest

from modern.llm.language import (
    ARABIC,
    ENGLISH,
    contains_arabic,
    detect_language,
    speech_locale,
    text_direction,
)


@pytest.mark.parametrize(
    "text",
    [
        "مرحبا",
        "Check my بريد please",
        "ݐ",  # Arabic Supplement
        "ﷲ",  # Presentation Forms-A
        "ﻻ",  # Presentation Forms-B
    ],
)
def test_detects_arabic(text: str) -> None:
    assert contains_arabic(text)
    assert detect_language(text) == ARABIC


@pytest.mark.parametrize("text", ["", "Hello there", "Привет", "שלום", "123 !?"])
def test_non_arabic_is_english(text: str) -> None:
    assert not contains_arabic(text)
    assert detect_language(text) == ENGLISH


def test_speech_locale() -> None:
    assert speech_locale(ARABIC) == "ar-SA"
    assert speech_locale(ENGLISH) == "en-US"
    assert speech_locale("fr") == "en-US"


def test_text_direction() -> None:
    assert text_direction("اجتماع غدا") == "rtl"
    assert text_direction("meeting tomorrow") == "ltr"
