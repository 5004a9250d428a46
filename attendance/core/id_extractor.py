"""Numeric person-id extraction.

Only plain non-negative integers count as ids. Legacy alphanumeric codes
(e.g. "BEL123") are treated as a missing id, never parsed for digits.
"""

from __future__ import annotations

import logging
import re

logger = logging.getLogger(__name__)

_DIGITS_RE = re.compile(r"[0-9]+")


def extract_numeric_id(raw: object) -> int | None:
    """Return the non-negative integer id held in ``raw``, or None if invalid.

    Accepts ints, integral floats (spreadsheets return whole numbers as
    floats) and strings made only of digits after trimming.
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw if raw >= 0 else None
    if isinstance(raw, float):
        if raw.is_integer() and raw >= 0:
            return int(raw)
        return None
    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return None
        if not _DIGITS_RE.fullmatch(text):
            logger.debug("Id value %r is not purely numeric; treating as missing", raw)
            return None
        return int(text)
    return None
