"""Name helpers shared by identity resolution, dedup and flagging."""

from __future__ import annotations


def normalize_name(name: object) -> str:
    """Comparison key for a person's name: trimmed, single-spaced, case-folded."""
    if name is None:
        return ""
    return " ".join(str(name).split()).casefold()


def split_full_name(full_name: str) -> tuple[str, str]:
    """Split on whitespace: first token is the first name, the rest the last name."""
    parts = str(full_name or "").split()
    if not parts:
        return "", ""
    return parts[0], " ".join(parts[1:])


def combine_names(first_name: object, last_name: object) -> str:
    """Join first and last name; empty if either is blank."""
    first = str(first_name or "").strip()
    last = str(last_name or "").strip()
    if not first or not last:
        return ""
    return f"{first} {last}"
