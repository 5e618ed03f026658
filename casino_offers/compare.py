"""Two-source sailing comparison.

Two modes share the ship+date correlation:

* bounce-back overlap: every API sailing paired with every bounce-back row
  for the same ship and date (exact, canonical ship name);
* two-user matching: offer codes paired one-to-one by 5-character prefix,
  and sailings grouped by comparison key so each shared sailing yields one
  record listing both accounts' distinct offers.

Sailings without a parseable date have no comparison key and never match.
"""

import logging
from collections import defaultdict
from dataclasses import replace
from typing import Iterable, Mapping, Optional

from .bounceback import bounce_back_sailings, parse_csv
from .extractor import collect_offer_info, extract_all_sailings
from .filters import SailingFilters, filter_matching_sailings, filter_sailings
from .models import (
    ApiOfferRef,
    BounceBackComparison,
    BounceBackOfferRef,
    BounceBackSailing,
    MatchingSailing,
    OfferInfo,
    Overlap,
    OverlapStats,
    Sailing,
    UserComparison,
    UserComparisonStats,
)
from .normalize import offer_prefix

logger = logging.getLogger(__name__)


def sailing_key(sailing: Sailing) -> Optional[str]:
    """``lowercase(ship)|date``, or None when the sail date is unknown."""
    if not sailing.sail_date:
        return None
    return f"{sailing.ship_name.lower()}|{sailing.sail_date}"


def same_ship_and_date(a: Sailing, b: Sailing) -> bool:
    """Exact canonical ship name and equal, known sail date."""
    return a.sail_date != "" and a.sail_date == b.sail_date and a.ship_name == b.ship_name


def group_by_key(sailings: Iterable[Sailing]) -> tuple[dict[str, list[Sailing]], list[Sailing]]:
    """Group sailings by comparison key in first-seen order.

    Returns the groups and, separately, the sailings that have no key.
    """
    groups: dict[str, list[Sailing]] = {}
    unkeyed: list[Sailing] = []
    for s in sailings:
        key = sailing_key(s)
        if key is None:
            unkeyed.append(s)
        else:
            groups.setdefault(key, []).append(s)
    return groups, unkeyed


def _as_filters(filters) -> Optional[SailingFilters]:
    if isinstance(filters, Mapping):
        return SailingFilters.from_dict(filters)
    return filters


# ---------------------------------------------------------------------------
# Bounce-back overlap
# ---------------------------------------------------------------------------

def compare_against_external(
    api_sailings: list[Sailing],
    external_sailings: list[BounceBackSailing],
    filters=None,
) -> BounceBackComparison:
    """Pair API sailings with external rows sailing the same ship on the same date.

    Offer codes play no part in the match. One API sailing yields one
    overlap per matching external row.
    """
    filters = _as_filters(filters)
    filtered_api = filter_sailings(api_sailings, filters)
    filtered_external = filter_sailings(external_sailings, filters)

    by_ship_date: dict[tuple[str, str], list[BounceBackSailing]] = defaultdict(list)
    for ext in filtered_external:
        if ext.sail_date:
            by_ship_date[(ext.ship_name, ext.sail_date)].append(ext)

    overlaps: list[Overlap] = []
    for api in filtered_api:
        for ext in by_ship_date.get((api.ship_name, api.sail_date), []):
            if not same_ship_and_date(api, ext):
                continue
            overlaps.append(Overlap(
                ship_name=api.ship_name,
                sail_date=api.sail_date,
                departure_port=api.departure_port or ext.departure_port,
                itinerary=api.itinerary or ext.itinerary,
                api_offer=ApiOfferRef(
                    offer_code=api.offer_code,
                    offer_name=api.offer_name,
                    source=api.source,
                ),
                bounce_back_offer=BounceBackOfferRef(
                    offer_code=ext.offer_code,
                    stateroom_type=getattr(ext, "stateroom_type", ""),
                    offer_type=getattr(ext, "offer_type", ""),
                    next_cruise_bonus=getattr(ext, "next_cruise_bonus", ""),
                ),
            ))

    dates = [o.sail_date for o in overlaps]
    stats = OverlapStats(
        total_api_sailings=len(api_sailings),
        filtered_api_sailings=len(filtered_api),
        total_bounce_back_offers=len(external_sailings),
        filtered_bounce_back_offers=len(filtered_external),
        total_overlaps=len(overlaps),
        unique_ships_count=len({o.ship_name for o in overlaps}),
        earliest=min(dates) if dates else None,
        latest=max(dates) if dates else None,
        filters_applied=filters.to_dict() if filters else {},
    )
    logger.info(
        "Bounce-back comparison: %d API sailing(s) x %d row(s) -> %d overlap(s)",
        len(filtered_api), len(filtered_external), len(overlaps),
    )

    return BounceBackComparison(
        overlaps=tuple(overlaps),
        stats=stats,
        all_api_sailings=tuple(api_sailings),
        all_bounce_back_offers=tuple(external_sailings),
        filtered_api_sailings=tuple(filtered_api),
        filtered_bounce_back_offers=tuple(filtered_external),
    )


def compare_offers_with_bounce_back(
    offers_with_details: list[Mapping],
    csv_text: str,
    filters=None,
) -> BounceBackComparison:
    """Extract API sailings, parse the bounce-back CSV and compare them."""
    api_sailings = extract_all_sailings(offers_with_details)
    external = bounce_back_sailings(parse_csv(csv_text))
    return compare_against_external(api_sailings, external, filters)


# ---------------------------------------------------------------------------
# Two-user matching
# ---------------------------------------------------------------------------

def _info(code: str, lookup: Mapping[str, OfferInfo]) -> OfferInfo:
    return lookup.get(code) or OfferInfo(code=code)


def classify_offer_codes(
    user1_codes: Iterable[str],
    user2_codes: Iterable[str],
    user1_info: Optional[Mapping[str, OfferInfo]] = None,
    user2_info: Optional[Mapping[str, OfferInfo]] = None,
) -> tuple[tuple[OfferInfo, ...], tuple[OfferInfo, ...], tuple[OfferInfo, ...]]:
    """Split offer codes into (common, user1-only, user2-only) by prefix family.

    Accounts get different full codes for the same promotion, so codes are
    paired on their 5-character prefix. Each user-1 code, in order, takes
    the first still-unpaired user-2 code with the same prefix; a paired
    user-2 code is not available to later user-1 codes.
    """
    user1_info = user1_info or {}
    user2_info = user2_info or {}

    remaining = tuple(user2_codes)
    common: tuple[OfferInfo, ...] = ()
    user1_only: tuple[OfferInfo, ...] = ()

    for code in user1_codes:
        prefix = offer_prefix(code)
        idx = next((i for i, c in enumerate(remaining) if offer_prefix(c) == prefix), None)
        own = _info(code, user1_info)
        if idx is None:
            user1_only += (own,)
            continue

        partner = _info(remaining[idx], user2_info)
        common += (OfferInfo(
            code=code,
            name=own.name or partner.name,
            description=own.description or partner.description,
            matched_code=partner.code,
        ),)
        remaining = remaining[:idx] + remaining[idx + 1:]

    user2_only = tuple(_info(c, user2_info) for c in remaining)
    return common, user1_only, user2_only


def _distinct_offers(sailings: list[Sailing], lookup: Mapping[str, OfferInfo]) -> tuple[OfferInfo, ...]:
    seen: dict[str, OfferInfo] = {}
    for s in sailings:
        if s.offer_code not in seen:
            seen[s.offer_code] = OfferInfo(
                code=s.offer_code,
                name=s.offer_name,
                description=_info(s.offer_code, lookup).description,
            )
    return tuple(seen.values())


def _distinct_codes(sailings: Iterable[Sailing]) -> list[str]:
    return list(dict.fromkeys(s.offer_code for s in sailings if s.offer_code))


def compare_user_sailings(
    user1_sailings: list[Sailing],
    user2_sailings: list[Sailing],
    user1_info: Optional[Mapping[str, OfferInfo]] = None,
    user2_info: Optional[Mapping[str, OfferInfo]] = None,
    filters=None,
) -> UserComparison:
    """Compare two accounts' sailing lists (already extracted)."""
    user1_info = user1_info or {}
    user2_info = user2_info or {}
    filters = _as_filters(filters)

    user1_sailings = filter_sailings(user1_sailings, filters)
    user2_sailings = filter_sailings(user2_sailings, filters)

    user1_codes = _distinct_codes(user1_sailings)
    user2_codes = _distinct_codes(user2_sailings)
    common, user1_only, user2_only = classify_offer_codes(
        user1_codes, user2_codes, user1_info, user2_info
    )

    groups1, unkeyed1 = group_by_key(user1_sailings)
    groups2, unkeyed2 = group_by_key(user2_sailings)

    matching: list[MatchingSailing] = []
    user1_only_sailings: list[Sailing] = []
    for key, sailings in groups1.items():
        others = groups2.get(key)
        if others is None:
            user1_only_sailings.extend(sailings)
            continue
        first = sailings[0]
        matching.append(MatchingSailing(
            ship_name=first.ship_name,
            sail_date=first.sail_date,
            departure_port=first.departure_port,
            itinerary=first.itinerary,
            nights=first.nights,
            user1_offers=_distinct_offers(sailings, user1_info),
            user2_offers=_distinct_offers(others, user2_info),
        ))
    user1_only_sailings.extend(unkeyed1)

    user2_only_sailings = [
        s for key, sailings in groups2.items() if key not in groups1 for s in sailings
    ]
    user2_only_sailings.extend(unkeyed2)

    if unkeyed1 or unkeyed2:
        logger.debug(
            "%d sailing(s) without a sail date left unmatched", len(unkeyed1) + len(unkeyed2)
        )

    stats = UserComparisonStats(
        total_user1_offers=len(user1_codes),
        total_user2_offers=len(user2_codes),
        common_offers=len(common),
        user1_only=len(user1_only),
        user2_only=len(user2_only),
        user1_total_sailings=len(user1_sailings),
        user2_total_sailings=len(user2_sailings),
        matching_sailings=len(matching),
        user1_only_sailings=len(user1_only_sailings),
        user2_only_sailings=len(user2_only_sailings),
    )

    return UserComparison(
        common_offer_codes=common,
        user1_only_codes=user1_only,
        user2_only_codes=user2_only,
        matching_sailings=tuple(matching),
        user1_only_sailings=tuple(user1_only_sailings),
        user2_only_sailings=tuple(user2_only_sailings),
        stats=stats,
        filters_applied=filters.to_dict() if filters else {},
    )


def compare_users(
    user1_offers: list[Mapping],
    user2_offers: list[Mapping],
    filters=None,
) -> UserComparison:
    """Compare the raw offer payloads of two accounts."""
    return compare_user_sailings(
        extract_all_sailings(user1_offers),
        extract_all_sailings(user2_offers),
        collect_offer_info(user1_offers),
        collect_offer_info(user2_offers),
        filters=filters,
    )


def narrow_matching_sailings(result: UserComparison, filters=None) -> UserComparison:
    """Apply filters to the matching sailings of a finished comparison only.

    Offer codes and only-lists are left as compared. A match passes the
    offer prefix when any code on either side has it.
    """
    filters = _as_filters(filters)
    if filters is None or filters.is_empty():
        return result
    matching = tuple(filter_matching_sailings(result.matching_sailings, filters))
    return replace(
        result,
        matching_sailings=matching,
        stats=replace(result.stats, matching_sailings=len(matching)),
        filters_applied=filters.to_dict(),
    )
