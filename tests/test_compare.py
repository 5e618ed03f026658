"""Tests for bounce-back overlap and two-user comparison."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from casino_offers.compare import (
    classify_offer_codes,
    compare_against_external,
    compare_offers_with_bounce_back,
    compare_user_sailings,
    compare_users,
    group_by_key,
    narrow_matching_sailings,
    sailing_key,
    same_ship_and_date,
)
from casino_offers.filters import SailingFilters
from casino_offers.models import BounceBackSailing, OfferInfo, Sailing
from tests.mock_data import BOUNCE_BACK_CSV, USER1_OFFERS, USER2_OFFERS


# ---------------------------------------------------------------------------
# Keys
# ---------------------------------------------------------------------------

def test_sailing_key():
    s = Sailing(ship_name="Oasis Of The Seas", sail_date="2025-06-01")
    assert sailing_key(s) == "oasis of the seas|2025-06-01"
    assert sailing_key(Sailing(ship_name="Oasis Of The Seas", sail_date="")) is None


def test_group_by_key_separates_undated():
    a = Sailing(ship_name="A", sail_date="2025-01-01", offer_code="X")
    b = Sailing(ship_name="a", sail_date="2025-01-01", offer_code="Y")
    c = Sailing(ship_name="A", sail_date="")
    groups, unkeyed = group_by_key([a, b, c])
    assert groups == {"a|2025-01-01": [a, b]}
    assert unkeyed == [c]


def test_same_ship_and_date_is_exact():
    a = Sailing(ship_name="Oasis Of The Seas", sail_date="2025-06-01")
    assert same_ship_and_date(a, Sailing(ship_name="Oasis Of The Seas", sail_date="2025-06-01"))
    assert not same_ship_and_date(a, Sailing(ship_name="Oasis", sail_date="2025-06-01"))
    assert not same_ship_and_date(
        Sailing(ship_name="Oasis Of The Seas", sail_date=""),
        Sailing(ship_name="Oasis Of The Seas", sail_date=""),
    )


# ---------------------------------------------------------------------------
# Bounce-back overlap
# ---------------------------------------------------------------------------

def test_overlap_ignores_offer_codes():
    api = [Sailing(ship_name="Oasis Of The Seas", sail_date="2025-06-01", offer_code="ABCDE1")]
    ext = [BounceBackSailing(ship_name="Oasis Of The Seas", sail_date="2025-06-01", offer_code="ABCDE9")]
    result = compare_against_external(api, ext)
    assert len(result.overlaps) == 1
    overlap = result.overlaps[0]
    assert overlap.api_offer.offer_code == "ABCDE1"
    assert overlap.bounce_back_offer.offer_code == "ABCDE9"


def test_overlap_one_per_external_row():
    api = [Sailing(ship_name="Oasis Of The Seas", sail_date="2025-06-01", offer_code="A")]
    ext = [
        BounceBackSailing(ship_name="Oasis Of The Seas", sail_date="2025-06-01", offer_code="B1"),
        BounceBackSailing(ship_name="Oasis Of The Seas", sail_date="2025-06-01", offer_code="B2"),
        BounceBackSailing(ship_name="Oasis Of The Seas", sail_date="2025-06-02", offer_code="B3"),
    ]
    result = compare_against_external(api, ext)
    assert [o.bounce_back_offer.offer_code for o in result.overlaps] == ["B1", "B2"]


def test_undated_sailings_never_overlap():
    api = [Sailing(ship_name="Oasis Of The Seas", sail_date="")]
    ext = [BounceBackSailing(ship_name="Oasis Of The Seas", sail_date="")]
    assert compare_against_external(api, ext).overlaps == ()


def test_port_falls_back_to_external_row():
    api = [Sailing(ship_name="Oasis Of The Seas", sail_date="2025-06-01")]
    ext = [BounceBackSailing(
        ship_name="Oasis Of The Seas", sail_date="2025-06-01",
        departure_port="Galveston", itinerary="4 Night Cozumel",
    )]
    overlap = compare_against_external(api, ext).overlaps[0]
    assert overlap.departure_port == "Galveston"
    assert overlap.itinerary == "4 Night Cozumel"


def test_compare_offers_with_bounce_back():
    result = compare_offers_with_bounce_back(USER1_OFFERS, BOUNCE_BACK_CSV)
    assert [(o.ship_name, o.sail_date, o.api_offer.offer_code) for o in result.overlaps] == [
        ("Symphony Of The Seas", "2025-06-01", "25SEA101"),
        ("Serenade Of The Seas", "2025-09-15", "25SEA101"),
        ("Symphony Of The Seas", "2025-06-01", "25GOLD07"),
    ]
    first = result.overlaps[0]
    assert first.api_offer.source == "included"
    assert first.bounce_back_offer.next_cruise_bonus == "$250 onboard credit, free gratuities"
    assert result.overlaps[1].api_offer.source == "details-included"

    stats = result.stats
    assert stats.total_api_sailings == 5
    assert stats.filtered_api_sailings == 5
    assert stats.total_bounce_back_offers == 3
    assert stats.filtered_bounce_back_offers == 3
    assert stats.total_overlaps == 3
    assert stats.unique_ships_count == 2
    assert (stats.earliest, stats.latest) == ("2025-06-01", "2025-09-15")
    assert stats.filters_applied == {}


def test_compare_offers_with_bounce_back_filtered():
    result = compare_offers_with_bounce_back(USER1_OFFERS, BOUNCE_BACK_CSV, {"ships": ["symphony"]})
    assert result.stats.filtered_api_sailings == 2
    assert result.stats.filtered_bounce_back_offers == 1
    assert result.stats.total_overlaps == 2
    assert result.stats.filters_applied == {"ships": ["symphony"]}
    assert len(result.filtered_api_sailings) == 2
    assert len(result.all_api_sailings) == 5


def test_no_overlaps_has_no_date_range():
    result = compare_offers_with_bounce_back(USER1_OFFERS, "Ship,Sail Date,Offer Code\n")
    assert result.overlaps == ()
    assert result.stats.earliest is None
    assert result.stats.latest is None


# ---------------------------------------------------------------------------
# Offer code classification
# ---------------------------------------------------------------------------

def test_classify_by_prefix():
    common, only1, only2 = classify_offer_codes(["WXYZA1", "OTHER2"], ["WXYZA9"])
    assert [(o.code, o.matched_code) for o in common] == [("WXYZA1", "WXYZA9")]
    assert [o.code for o in only1] == ["OTHER2"]
    assert only2 == ()


def test_classify_pairs_one_to_one():
    """A user-2 code is consumed by the first user-1 code that pairs with it."""
    common, only1, only2 = classify_offer_codes(["25SEA1", "25SEA2"], ["25SEA9"])
    assert [o.code for o in common] == ["25SEA1"]
    assert [o.code for o in only1] == ["25SEA2"]
    assert only2 == ()

    common, only1, only2 = classify_offer_codes(["25SEA1"], ["25SEA8", "25SEA9"])
    assert [o.matched_code for o in common] == ["25SEA8"]
    assert [o.code for o in only2] == ["25SEA9"]


def test_classify_prefix_case_insensitive():
    common, _, _ = classify_offer_codes(["25sea1"], ["25SEA9"])
    assert len(common) == 1


def test_classify_uses_offer_info():
    info1 = {"25SEA1": OfferInfo(code="25SEA1", name="", description="")}
    info2 = {"25SEA9": OfferInfo(code="25SEA9", name="Seaside", description="Summer")}
    (common,), _, _ = classify_offer_codes(["25SEA1"], ["25SEA9"], info1, info2)
    assert common.name == "Seaside"
    assert common.description == "Summer"


def test_classify_does_not_mutate_inputs():
    codes1, codes2 = ["A1234", "B1234"], ["A9999"]
    classify_offer_codes(codes1, codes2)
    assert codes1 == ["A1234", "B1234"]
    assert codes2 == ["A9999"]


# ---------------------------------------------------------------------------
# Two-user comparison
# ---------------------------------------------------------------------------

def test_compare_users():
    result = compare_users(USER1_OFFERS, USER2_OFFERS)

    assert [o.code for o in result.common_offer_codes] == ["25SEA101"]
    assert result.common_offer_codes[0].matched_code == "25SEA205"
    assert [o.code for o in result.user1_only_codes] == ["25GOLD07"]
    assert [o.code for o in result.user2_only_codes] == ["25VIP003"]

    (match,) = result.matching_sailings
    assert (match.ship_name, match.sail_date) == ("Symphony Of The Seas", "2025-06-01")
    assert match.user1_codes == ["25SEA101", "25GOLD07"]
    assert match.user2_codes == ["25SEA205"]
    assert match.nights == 7
    assert match.user1_offers[0].description == "Interior or balcony on select summer sailings"

    assert [s.ship_name for s in result.user1_only_sailings] == [
        "Utopia Of The Seas", "Wonder Of The Seas", "Serenade Of The Seas",
    ]
    assert [(s.ship_name, s.sail_date) for s in result.user2_only_sailings] == [
        ("Utopia Of The Seas", "2025-07-11"), ("Allure Of The Seas", "2025-10-01"),
    ]

    stats = result.stats
    assert (stats.total_user1_offers, stats.total_user2_offers) == (2, 2)
    assert (stats.common_offers, stats.user1_only, stats.user2_only) == (1, 1, 1)
    assert (stats.user1_total_sailings, stats.user2_total_sailings) == (5, 3)
    assert stats.matching_sailings == 1
    assert (stats.user1_only_sailings, stats.user2_only_sailings) == (3, 2)


def test_compare_users_with_filters():
    result = compare_users(USER1_OFFERS, USER2_OFFERS, SailingFilters(ports=["canaveral"]))
    assert result.matching_sailings == ()
    assert result.stats.user1_total_sailings == 2
    assert result.stats.user2_total_sailings == 1
    assert [o.code for o in result.common_offer_codes] == ["25SEA101"]
    assert result.user1_only_codes == ()
    assert result.filters_applied == {"ports": ["canaveral"]}


def test_matching_ignores_ship_case():
    u1 = [Sailing(ship_name="Icon Of The Seas", sail_date="2025-03-01", offer_code="AAAAA1")]
    u2 = [Sailing(ship_name="icon of the seas", sail_date="2025-03-01", offer_code="BBBBB1")]
    result = compare_user_sailings(u1, u2)
    assert len(result.matching_sailings) == 1


def test_undated_sailings_go_to_only_lists():
    u1 = [
        Sailing(ship_name="Icon Of The Seas", sail_date="", offer_code="AAAAA1"),
        Sailing(ship_name="Icon Of The Seas", sail_date="2025-03-01", offer_code="AAAAA1"),
    ]
    u2 = [Sailing(ship_name="Icon Of The Seas", sail_date="", offer_code="AAAAA2")]
    result = compare_user_sailings(u1, u2)
    assert result.matching_sailings == ()
    assert [s.sail_date for s in result.user1_only_sailings] == ["2025-03-01", ""]
    assert [s.sail_date for s in result.user2_only_sailings] == [""]


def test_empty_inputs():
    result = compare_users([], [])
    assert result.common_offer_codes == ()
    assert result.matching_sailings == ()
    assert result.stats.user1_total_sailings == 0


# ---------------------------------------------------------------------------
# Narrowing a finished comparison
# ---------------------------------------------------------------------------

def test_narrow_keeps_match_when_either_side_has_prefix():
    full = compare_users(USER1_OFFERS, USER2_OFFERS)
    # 25GOLD07 is only on USER1's side of the Symphony match
    narrowed = narrow_matching_sailings(full, SailingFilters(offer_code_prefix="25gol"))
    assert len(narrowed.matching_sailings) == 1
    assert narrowed.filters_applied == {"offerCodePrefix": "25gol"}


def test_narrow_touches_matches_only():
    full = compare_users(USER1_OFFERS, USER2_OFFERS)
    narrowed = narrow_matching_sailings(full, {"offerCodePrefix": "25VIP"})

    assert narrowed.matching_sailings == ()
    assert narrowed.stats.matching_sailings == 0
    assert narrowed.common_offer_codes == full.common_offer_codes
    assert narrowed.user1_only_sailings == full.user1_only_sailings
    assert narrowed.stats.user1_total_sailings == 5
    assert full.stats.matching_sailings == 1


def test_narrow_by_ship():
    full = compare_users(USER1_OFFERS, USER2_OFFERS)
    assert len(narrow_matching_sailings(full, SailingFilters(ships=["symphony"])).matching_sailings) == 1
    assert narrow_matching_sailings(full, SailingFilters(ships=["utopia"])).matching_sailings == ()


def test_narrow_without_filters_returns_result():
    full = compare_users(USER1_OFFERS, USER2_OFFERS)
    assert narrow_matching_sailings(full) is full
    assert narrow_matching_sailings(full, SailingFilters()) is full
