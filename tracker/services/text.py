"""Helpers for normalising free-text survey values across the app.

Category fields such as district, gender or group name are typed by hand
during fieldwork, so the same value arrives as ``"Mbale"``, ``" mbale "`` or
``"MBALE"``.  Storage and comparisons use :func:`normalize`; anything shown
to a person goes through :func:`to_title_case`.
"""

from __future__ import annotations

import re
from typing import Any, Iterable, List, Optional

UNKNOWN = 'Unknown'

_WORD_START = re.compile(r'\b\w')
_TAG_SEPARATORS = re.compile(r'[,;]')


def normalize(value: Optional[str]) -> str:
    """Return the canonical storage form: trimmed and lower-cased."""

    if value is None:
        return ''
    return str(value).strip().lower()


def to_title_case(value: Optional[str]) -> str:
    """Capitalise the first character after every word boundary.

    Boundaries follow ``\\b\\w`` so ``"o'brien"`` becomes ``"O'Brien"``.
    """

    return _WORD_START.sub(lambda match: match.group(0).upper(), normalize(value))


def or_default(value: Any, default: str = UNKNOWN) -> Any:
    """Return ``default`` for missing or blank values, otherwise ``value``."""

    if value is None:
        return default
    if isinstance(value, str) and not value.strip():
        return default
    return value


def split_tags(value: Any) -> List[str]:
    """Split a list or a comma/semicolon separated string into clean tags."""

    if value in (None, ''):
        return []
    if isinstance(value, str):
        parts: Iterable[Any] = _TAG_SEPARATORS.split(value)
    elif isinstance(value, (list, tuple, set)):
        parts = value
    else:
        parts = [value]
    tags: List[str] = []
    for part in parts:
        text = str(part).strip() if part is not None else ''
        if text:
            tags.append(text)
    return tags


def parse_yes_no(value: Any) -> bool:
    """Interpret spreadsheet and form style yes/no answers."""

    if isinstance(value, bool):
        return value
    if value in (None, ''):
        return False
    return normalize(str(value)) in {'1', 'true', 'yes', 'y', 'on'}
