"""Flatten raw casino offer payloads into canonical Sailing records."""

import logging
from typing import Any, Iterable, Mapping, Optional

from .models import (
    OfferInfo,
    Sailing,
    SOURCE_DETAILS_EXCLUDED,
    SOURCE_DETAILS_INCLUDED,
    SOURCE_EXCLUDED,
    SOURCE_INCLUDED,
)
from .normalize import extract_nights, normalize_date, normalize_ship_name

logger = logging.getLogger(__name__)


def _mapping(value: Any) -> Mapping:
    return value if isinstance(value, Mapping) else {}


def _records(value: Any) -> list:
    if not isinstance(value, list):
        return []
    return [r for r in value if isinstance(r, Mapping)]


def _campaign(offer: Any) -> Mapping:
    return _mapping(_mapping(offer).get("campaignOffer"))


def _text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _sailings_from(campaign: Mapping, key: str, source: str) -> list[Sailing]:
    offer_code = _text(campaign.get("offerCode"))
    offer_name = _text(campaign.get("name"))

    results: list[Sailing] = []
    dropped = 0
    for raw in _records(campaign.get(key)):
        # Sailings without a room type carry no pricing
        if raw.get("roomType") is None:
            dropped += 1
            continue

        itinerary = _text(raw.get("itineraryName"))
        results.append(Sailing(
            ship_name=normalize_ship_name(raw.get("shipName")),
            sail_date=normalize_date(raw.get("sailDate")),
            departure_port=_text(_mapping(raw.get("departurePort")).get("name")),
            itinerary=itinerary,
            nights=extract_nights(raw.get("itineraryDescription") or itinerary),
            offer_code=offer_code,
            offer_name=offer_name,
            source=source,
        ))

    if dropped:
        logger.debug(f"{offer_code or '?'}: dropped {dropped} {source} sailing(s) without room type")
    return results


def extract_sailings(offer_with_details: Mapping) -> list[Sailing]:
    """Extract every priced sailing from one offer and its detail payload.

    Walks, in order: the offer's sailings, its excluded sailings, then for
    each detail offer its sailings and excluded sailings. Offer code and
    name come from whichever campaign offer contains the sailing. Missing
    lists (including ``details: None`` after a failed detail fetch) are
    treated as empty.
    """
    entry = _mapping(offer_with_details)
    campaign = _campaign(entry.get("offer"))

    sailings = _sailings_from(campaign, "sailings", SOURCE_INCLUDED)
    sailings += _sailings_from(campaign, "excludedSailings", SOURCE_EXCLUDED)

    for detail_offer in _records(_mapping(entry.get("details")).get("offers")):
        detail_campaign = _campaign(detail_offer)
        sailings += _sailings_from(detail_campaign, "sailings", SOURCE_DETAILS_INCLUDED)
        sailings += _sailings_from(detail_campaign, "excludedSailings", SOURCE_DETAILS_EXCLUDED)

    return sailings


def extract_all_sailings(offers_with_details: Optional[Iterable[Mapping]]) -> list[Sailing]:
    """Extract sailings from a list of offers, preserving offer order."""
    sailings: list[Sailing] = []
    for entry in offers_with_details or []:
        sailings.extend(extract_sailings(entry))
    return sailings


def collect_offer_info(offers_with_details: Optional[Iterable[Mapping]]) -> dict[str, OfferInfo]:
    """Map each offer code to its name and description.

    The first occurrence of a code wins; a top-level offer is looked at
    before the detail offers nested under it.
    """
    info: dict[str, OfferInfo] = {}

    def remember(campaign: Mapping) -> None:
        code = _text(campaign.get("offerCode"))
        if code and code not in info:
            info[code] = OfferInfo(
                code=code,
                name=_text(campaign.get("name")),
                description=_text(campaign.get("description")),
            )

    for entry in offers_with_details or []:
        entry = _mapping(entry)
        remember(_campaign(entry.get("offer")))
        for detail_offer in _records(_mapping(entry.get("details")).get("offers")):
            remember(_campaign(detail_offer))

    return info
