"""Normalizers that make ship names, dates and night counts comparable."""

import logging
import re
from datetime import datetime, timezone

from dateutil import parser as dp

logger = logging.getLogger(__name__)

OFFER_PREFIX_LENGTH = 5

_WHITESPACE = re.compile(r"\s+")
_OF_THE_SEAS = re.compile(r"of the seas", re.IGNORECASE)
_LEADING_NIGHTS = re.compile(r"^(\d+)\s+night", re.IGNORECASE)

# Fills in components missing from partial dates such as "June 2025".
_DEFAULT_DATE = datetime(2000, 1, 1)


def normalize_ship_name(ship_name) -> str:
    """Canonical ship name: collapsed whitespace, "Of The Seas", capital first letter.

    Casing elsewhere in the name is kept as given.
    """
    if not ship_name or not isinstance(ship_name, str):
        return ""
    name = _WHITESPACE.sub(" ", ship_name).strip()
    if not name:
        return ""
    name = _OF_THE_SEAS.sub("Of The Seas", name)
    return name[0].upper() + name[1:]


def normalize_date(date_str) -> str:
    """Return the date as YYYY-MM-DD (UTC), or "" if it cannot be parsed.

    Anything from the first "T" onwards is dropped before parsing, so
    ISO timestamps keep only their calendar date.
    """
    if not date_str or not isinstance(date_str, str):
        return ""

    text = date_str.split("T", 1)[0] if "T" in date_str else date_str
    if not text.strip():
        return ""

    try:
        parsed = dp.parse(text, default=_DEFAULT_DATE)
    except (ValueError, OverflowError) as e:
        logger.debug("Failed to normalize date %r: %s", date_str, e)
        return ""

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    return parsed.date().isoformat()


def extract_nights(itinerary_text) -> int:
    """Leading night count of an itinerary ("4 NIGHT BAHAMAS" -> 4), else 0."""
    if not itinerary_text or not isinstance(itinerary_text, str):
        return 0
    m = _LEADING_NIGHTS.match(itinerary_text)
    return int(m.group(1)) if m else 0


def offer_prefix(offer_code) -> str:
    """The offer-code family: first five characters, uppercased."""
    if not offer_code:
        return ""
    return str(offer_code)[:OFFER_PREFIX_LENGTH].upper()
