"""Data models for casino offer and sailing comparison."""

from dataclasses import dataclass, field
from typing import Any, Optional

SOURCE_INCLUDED = "included"
SOURCE_EXCLUDED = "excluded"
SOURCE_DETAILS_INCLUDED = "details-included"
SOURCE_DETAILS_EXCLUDED = "details-excluded"

SAILING_SOURCES = (
    SOURCE_INCLUDED,
    SOURCE_EXCLUDED,
    SOURCE_DETAILS_INCLUDED,
    SOURCE_DETAILS_EXCLUDED,
)


@dataclass(frozen=True)
class Sailing:
    """One cruise departure tied to a ship, a date and a parent offer."""
    ship_name: str
    sail_date: str  # YYYY-MM-DD, or "" when the date could not be parsed
    departure_port: str = ""
    itinerary: str = ""
    nights: int = 0  # 0 = unknown
    offer_code: str = ""
    offer_name: str = ""
    source: str = ""  # one of SAILING_SOURCES, "" for external rows


@dataclass(frozen=True)
class BounceBackSailing(Sailing):
    """A sailing read from a bounce-back CSV row."""
    stateroom_type: str = ""
    offer_type: str = ""
    next_cruise_bonus: str = ""


@dataclass(frozen=True)
class OfferInfo:
    """An offer code with its display name and description."""
    code: str
    name: str = ""
    description: str = ""
    matched_code: str = ""  # the other account's code it was paired with


# ---------------------------------------------------------------------------
# Bounce-back comparison
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ApiOfferRef:
    offer_code: str
    offer_name: str
    source: str


@dataclass(frozen=True)
class BounceBackOfferRef:
    offer_code: str
    stateroom_type: str
    offer_type: str
    next_cruise_bonus: str


@dataclass(frozen=True)
class Overlap:
    """An API sailing and a bounce-back row for the same ship and date."""
    ship_name: str
    sail_date: str
    departure_port: str
    itinerary: str
    api_offer: ApiOfferRef
    bounce_back_offer: BounceBackOfferRef


@dataclass(frozen=True)
class OverlapStats:
    total_api_sailings: int
    filtered_api_sailings: int
    total_bounce_back_offers: int
    filtered_bounce_back_offers: int
    total_overlaps: int
    unique_ships_count: int
    earliest: Optional[str]
    latest: Optional[str]
    filters_applied: dict = field(default_factory=dict)


@dataclass(frozen=True)
class BounceBackComparison:
    overlaps: tuple[Overlap, ...]
    stats: OverlapStats
    all_api_sailings: tuple[Sailing, ...] = ()
    all_bounce_back_offers: tuple[BounceBackSailing, ...] = ()
    filtered_api_sailings: tuple[Sailing, ...] = ()
    filtered_bounce_back_offers: tuple[BounceBackSailing, ...] = ()


# ---------------------------------------------------------------------------
# Two-user comparison
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MatchingSailing:
    """A sailing offered to both accounts, with each side's distinct offers."""
    ship_name: str
    sail_date: str
    departure_port: str
    itinerary: str
    nights: int
    user1_offers: tuple[OfferInfo, ...]
    user2_offers: tuple[OfferInfo, ...]

    @property
    def user1_codes(self) -> list[str]:
        return [o.code for o in self.user1_offers]

    @property
    def user2_codes(self) -> list[str]:
        return [o.code for o in self.user2_offers]


@dataclass(frozen=True)
class UserComparisonStats:
    total_user1_offers: int
    total_user2_offers: int
    common_offers: int
    user1_only: int
    user2_only: int
    user1_total_sailings: int
    user2_total_sailings: int
    matching_sailings: int
    user1_only_sailings: int
    user2_only_sailings: int


@dataclass(frozen=True)
class UserComparison:
    common_offer_codes: tuple[OfferInfo, ...]
    user1_only_codes: tuple[OfferInfo, ...]
    user2_only_codes: tuple[OfferInfo, ...]
    matching_sailings: tuple[MatchingSailing, ...]
    user1_only_sailings: tuple[Sailing, ...]
    user2_only_sailings: tuple[Sailing, ...]
    stats: UserComparisonStats
    filters_applied: dict = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Fetched account data
# ---------------------------------------------------------------------------

@dataclass
class UserInfo:
    consumer_id: str
    loyalty_id: str
    account_id: Optional[str] = None


@dataclass
class UserOffers:
    """Everything fetched for one account: identity plus raw offer payloads."""
    label: str
    user_info: UserInfo
    offers_with_details: list[dict[str, Any]] = field(default_factory=list)

    @property
    def failed_offers(self) -> list[dict[str, Any]]:
        return [o for o in self.offers_with_details if o.get("error")]

    def to_dict(self) -> dict[str, Any]:
        """Shape of the saved ``offers-<label>.json`` files."""
        return {
            "label": self.label,
            "userInfo": {
                "consumerId": self.user_info.consumer_id,
                "loyaltyId": self.user_info.loyalty_id,
                "accountId": self.user_info.account_id,
            },
            "offersWithDetails": self.offers_with_details,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], label: str = "") -> "UserOffers":
        """Rebuild from a saved file or cache entry; ``label`` overrides the stored one."""
        info = data.get("userInfo") or {}
        return cls(
            label=label or data.get("label") or "",
            user_info=UserInfo(
                consumer_id=info.get("consumerId", ""),
                loyalty_id=info.get("loyaltyId", ""),
                account_id=info.get("accountId"),
            ),
            offers_with_details=list(data.get("offersWithDetails") or []),
        )
