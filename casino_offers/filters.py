"""Compound sailing filters: ship, port, date range, minimum nights, offer prefix."""

import logging
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any, Callable, Iterable, Mapping, Optional

from .models import MatchingSailing, Sailing
from .normalize import OFFER_PREFIX_LENGTH, normalize_date, offer_prefix

logger = logging.getLogger(__name__)

Predicate = Callable[[Sailing], bool]


class InvalidFilterError(ValueError):
    """Raised when filter options are inconsistent or unparseable."""


@dataclass
class SailingFilters:
    """User-supplied filter criteria. Unset criteria are not applied."""
    ships: list[str] = field(default_factory=list)
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    ports: list[str] = field(default_factory=list)
    min_days: Optional[int] = None
    offer_code_prefix: Optional[str] = None

    def is_empty(self) -> bool:
        return not (
            self.ships
            or self.start_date
            or self.end_date
            or self.ports
            or (self.min_days and self.min_days > 0)
            or (self.offer_code_prefix and self.offer_code_prefix.strip())
        )

    def validate(self) -> None:
        """Check date bounds and night threshold before any work is done."""
        start = _bound(self.start_date)
        end = _bound(self.end_date)
        if self.start_date and start is None:
            raise InvalidFilterError(
                f"Invalid start date: {self.start_date}. Expected YYYY-MM-DD (e.g. 2025-01-01)"
            )
        if self.end_date and end is None:
            raise InvalidFilterError(
                f"Invalid end date: {self.end_date}. Expected YYYY-MM-DD (e.g. 2025-12-31)"
            )
        if start and end and end < start:
            raise InvalidFilterError(
                f"End date ({self.end_date}) cannot be before start date ({self.start_date})"
            )
        if self.min_days is not None and self.min_days <= 0:
            raise InvalidFilterError(f"Minimum nights must be positive, got {self.min_days}")

    def to_dict(self) -> dict[str, Any]:
        """Only the criteria that are set, keyed the way the web API names them."""
        out: dict[str, Any] = {}
        if self.ships:
            out["ships"] = list(self.ships)
        if self.start_date:
            out["startDate"] = self.start_date
        if self.end_date:
            out["endDate"] = self.end_date
        if self.ports:
            out["ports"] = list(self.ports)
        if self.min_days:
            out["minDays"] = self.min_days
        if self.offer_code_prefix:
            out["offerCodePrefix"] = self.offer_code_prefix
        return out

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "SailingFilters":
        data = data or {}
        min_days = data.get("minDays")
        return cls(
            ships=list(data.get("ships") or []),
            start_date=data.get("startDate") or None,
            end_date=data.get("endDate") or None,
            ports=list(data.get("ports") or []),
            min_days=int(min_days) if min_days else None,
            offer_code_prefix=data.get("offerCodePrefix") or None,
        )


def parse_list_option(value: Optional[str]) -> list[str]:
    """Split a comma-separated CLI option ("Serenade, Utopia") into terms."""
    if not value:
        return []
    return [v.strip() for v in value.split(",") if v.strip()]


def _bound(value: Optional[str]) -> Optional[date]:
    normalized = normalize_date(value) if value else ""
    return date.fromisoformat(normalized) if normalized else None


# ---------------------------------------------------------------------------
# Comparison functions
# ---------------------------------------------------------------------------

def substring_matches(value: str, terms: Iterable[str]) -> bool:
    """Case-insensitive substring match in either direction against any term."""
    v = (value or "").lower()
    for term in terms:
        t = term.lower()
        if t in v or v in t:
            return True
    return False


def offer_prefix_matches(offer_code: str, prefix: str) -> bool:
    """True when the code's first five characters equal the prefix (any case).

    Codes shorter than five characters never match.
    """
    if not offer_code or len(offer_code) < OFFER_PREFIX_LENGTH:
        return False
    return offer_prefix(offer_code) == prefix.strip().upper()[:OFFER_PREFIX_LENGTH]


# ---------------------------------------------------------------------------
# Filtering
# ---------------------------------------------------------------------------

def build_predicates(filters: Optional[SailingFilters]) -> list[Predicate]:
    """One predicate per criterion that is set. Their order is irrelevant."""
    if filters is None:
        return []

    predicates: list[Predicate] = []

    if filters.ships:
        ships = list(filters.ships)
        predicates.append(lambda s: substring_matches(s.ship_name, ships))

    if filters.start_date or filters.end_date:
        start = _bound(filters.start_date)
        end = _bound(filters.end_date)
        if filters.start_date and start is None:
            logger.warning(f"Ignoring unparseable start date filter: {filters.start_date}")
        if filters.end_date and end is None:
            logger.warning(f"Ignoring unparseable end date filter: {filters.end_date}")

        def in_range(s: Sailing) -> bool:
            if not s.sail_date:
                return False
            try:
                d = date.fromisoformat(s.sail_date)
            except ValueError:
                return False
            if start and d < start:
                return False
            if end and d > end:
                return False
            return True

        predicates.append(in_range)

    if filters.ports:
        ports = list(filters.ports)
        predicates.append(lambda s: substring_matches(s.departure_port, ports))

    if filters.min_days and filters.min_days > 0:
        min_days = filters.min_days
        # nights == 0 means unknown, so those sailings are kept
        predicates.append(lambda s: s.nights <= 0 or s.nights >= min_days)

    if filters.offer_code_prefix and filters.offer_code_prefix.strip():
        prefix = filters.offer_code_prefix
        predicates.append(lambda s: offer_prefix_matches(s.offer_code, prefix))

    return predicates


def filter_sailings(sailings: list[Sailing], filters=None) -> list[Sailing]:
    """Keep the sailings that pass every criterion set in ``filters``.

    ``filters`` is a SailingFilters or a dict in the web API's shape.
    With no criteria the input list itself is returned.
    """
    if isinstance(filters, Mapping):
        filters = SailingFilters.from_dict(filters)
    if filters is None or filters.is_empty():
        return sailings
    predicates = build_predicates(filters)
    return [s for s in sailings if all(p(s) for p in predicates)]


def filter_matching_sailings(
    matching: Iterable[MatchingSailing],
    filters: Optional[SailingFilters] = None,
) -> list[MatchingSailing]:
    """Filter two-user matches.

    The offer prefix passes when any code on either side matches it; the
    other criteria apply to the shared ship, date, port and night count.
    """
    matching = list(matching)
    if filters is None or filters.is_empty():
        return matching

    prefix = filters.offer_code_prefix
    predicates = build_predicates(replace(filters, offer_code_prefix=None))

    kept = []
    for m in matching:
        if prefix and prefix.strip():
            codes = m.user1_codes + m.user2_codes
            if not any(offer_prefix_matches(c, prefix) for c in codes):
                continue
        shared = Sailing(
            ship_name=m.ship_name,
            sail_date=m.sail_date,
            departure_port=m.departure_port,
            itinerary=m.itinerary,
            nights=m.nights,
        )
        if all(p(shared) for p in predicates):
            kept.append(m)
    return kept


def sailing_facets(sailings: Iterable[Sailing]) -> tuple[list[str], list[str]]:
    """Distinct ship names and departure ports, sorted, for filter suggestions."""
    ships: set[str] = set()
    ports: set[str] = set()
    for s in sailings:
        if s.ship_name:
            ships.add(s.ship_name)
        if s.departure_port:
            ports.add(s.departure_port)
    return sorted(ships), sorted(ports)
