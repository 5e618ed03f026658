"""Bounce-back offer CSV ingestion.

Bounce-back offers are handed out on board and arrive as a CSV export
rather than through the offers API. The parser here is deliberately
simple: a double quote toggles quoted mode (so commas inside quotes are
literal) and all quote characters are dropped from the values. Escaped
quotes (``""``) are not unescaped, so this is not an RFC 4180 reader.
"""

import logging
from pathlib import Path
from typing import Mapping, Union

from .models import BounceBackSailing
from .normalize import extract_nights, normalize_date, normalize_ship_name

logger = logging.getLogger(__name__)

COL_SHIP = "Ship"
COL_SAIL_DATE = "Sail Date"
COL_DEPARTURE_PORT = "Departure Port"
COL_ITINERARY = "Itinerary"
COL_OFFER_CODE = "Offer Code"
COL_STATEROOM_TYPE = "Stateroom Type"
COL_OFFER_TYPE = "Offer Type"
COL_NEXT_CRUISE_BONUS = "Next Cruise Bonus"

REQUIRED_COLUMNS = (COL_SHIP, COL_SAIL_DATE, COL_DEPARTURE_PORT, COL_ITINERARY, COL_OFFER_CODE)


class BounceBackFileError(Exception):
    """The bounce-back CSV could not be read."""


def split_csv_line(line: str) -> list[str]:
    """Split one line on commas outside double quotes; strip quotes and whitespace."""
    values = []
    current = []
    in_quotes = False
    for char in line:
        if char == '"':
            in_quotes = not in_quotes
        elif char == "," and not in_quotes:
            values.append("".join(current).strip())
            current = []
        else:
            current.append(char)
    values.append("".join(current).strip())
    return values


def parse_csv(text: str) -> list[dict[str, str]]:
    """Parse CSV text into one dict per row, keyed by the header line.

    Short rows are padded with "" and extra values are ignored; row length
    is not validated against the header.
    """
    if not text or not text.strip():
        return []

    lines = text.strip().split("\n")
    headers = split_csv_line(lines[0])

    rows = []
    for line in lines[1:]:
        if not line.strip():
            continue
        values = split_csv_line(line)
        rows.append({
            header: values[i] if i < len(values) else ""
            for i, header in enumerate(headers)
        })

    missing = [c for c in REQUIRED_COLUMNS if c not in headers]
    if missing:
        logger.warning(f"Bounce-back CSV is missing column(s): {', '.join(missing)}")

    return rows


def bounce_back_sailings(rows: list[Mapping[str, str]]) -> list[BounceBackSailing]:
    """Normalize parsed CSV rows the same way API sailings are normalized."""
    sailings = []
    for row in rows:
        itinerary = row.get(COL_ITINERARY) or ""
        sailings.append(BounceBackSailing(
            ship_name=normalize_ship_name(row.get(COL_SHIP) or ""),
            sail_date=normalize_date(row.get(COL_SAIL_DATE) or ""),
            departure_port=row.get(COL_DEPARTURE_PORT) or "",
            itinerary=itinerary,
            nights=extract_nights(itinerary),
            offer_code=row.get(COL_OFFER_CODE) or "",
            offer_name="",
            stateroom_type=row.get(COL_STATEROOM_TYPE) or "",
            offer_type=row.get(COL_OFFER_TYPE) or "",
            next_cruise_bonus=row.get(COL_NEXT_CRUISE_BONUS) or "",
        ))
    return sailings


def load_bounce_back(path: Union[str, Path]) -> str:
    """Read the bounce-back CSV file. Raises BounceBackFileError if unreadable."""
    path = Path(path)
    try:
        return path.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as e:
        raise BounceBackFileError(f"Cannot read bounce-back CSV {path}: {e}") from e
