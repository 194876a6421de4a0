"""Utilities for sanitizing recognized receipt text."""

from __future__ import annotations

import re

# 13 to 19 digits, optionally grouped by single spaces or dashes.
_CARD_PATTERN = re.compile(r"(?<![\d.,])(?:\d[ -]?){12,18}\d(?![\d.,])")
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]")


def _luhn_valid(digits: str) -> bool:
    total = 0
    for index, char in enumerate(reversed(digits)):
        digit = int(char)
        if index % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return total % 10 == 0


def mask_card_numbers(value: str) -> str:
    """Mask Luhn-valid card numbers, keeping the last four digits.

    Product codes (UPC-A, most EAN-13) fail the checksum or length test and are left alone.
    """

    def _mask(match: re.Match[str]) -> str:
        digits = re.sub(r"\D", "", match.group())
        if not _luhn_valid(digits):
            return match.group()
        return "*" * (len(digits) - 4) + digits[-4:]

    return _CARD_PATTERN.sub(_mask, value)


def sanitize_text(value: str) -> str:
    """Normalize line endings and strip control characters left by the OCR engine."""

    return _CONTROL_CHARS.sub("\n", value.replace("\r\n", "\n"))


__all__ = ["mask_card_numbers", "sanitize_text"]
