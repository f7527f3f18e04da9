"""Warehouse name normalisation.

Operators type warehouse names by hand ("Bodega Ecuador", "bodega  ecuador",
"ECUADOR"). Every name is reduced to a canonical code before it is written or
compared so that the same shelf never ends up under two keys.
"""

from __future__ import annotations

import re
import unicodedata
from typing import Optional

from .config import Settings, get_settings
from .errors import ValidationError

RESELLER_PREFIX = "reseller:"

_SEPARATORS = re.compile(r"[\s_\-]+")


def fold(raw: str) -> str:
    """Strip accents, casefold and collapse separators."""

    decomposed = unicodedata.normalize("NFKD", raw)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _SEPARATORS.sub(" ", stripped.casefold()).strip()


def _alias_table(settings: Settings) -> dict[str, str]:
    table: dict[str, str] = {}
    for code, aliases in settings.location_aliases.items():
        table[fold(code)] = code
        for alias in aliases:
            table[fold(alias)] = code
    for code in (settings.origin_warehouse, settings.destination_warehouse):
        table.setdefault(fold(code), code)
    return table


def normalize_location(raw: Optional[str], settings: Optional[Settings] = None) -> str:
    """Return the canonical warehouse code for ``raw`` or raise ``ValidationError``."""

    if raw is None or not raw.strip():
        raise ValidationError("Location is required")
    settings = settings or get_settings()
    key = fold(raw)
    code = _alias_table(settings).get(key)
    if code is None:
        raise ValidationError(f"Unknown location '{raw}'")
    return code


def known_locations(settings: Optional[Settings] = None) -> list[str]:
    settings = settings or get_settings()
    return sorted(set(_alias_table(settings).values()))


def reseller_location(seller_id: str) -> str:
    return f"{RESELLER_PREFIX}{seller_id}"


def is_reseller_location(location: Optional[str]) -> bool:
    return bool(location) and location.startswith(RESELLER_PREFIX)
