"""Output formatting for offer comparisons."""

import csv
import dataclasses
import io
import json
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence

from rich import box
from rich.console import Console
from rich.table import Table
from rich.text import Text

from .extractor import collect_offer_info
from .filters import sailing_facets
from .models import BounceBackComparison, OfferInfo, Sailing, UserComparison

console = Console()

OVERLAP_CSV_HEADER = [
    "Ship Name",
    "Sail Date",
    "Departure Port",
    "Itinerary",
    "API Offer Code",
    "API Offer Name",
    "API Source",
    "Bounce-Back Offer Code",
    "Stateroom Type",
    "Offer Type",
    "Next Cruise Bonus",
]

OFFER_CODE_CSV_HEADER = ["Offer Code", "Available For USER1", "Available For USER2", "Status"]

ITINERARY_CSV_HEADER = [
    "Ship Name",
    "Sail Date",
    "Departure Port",
    "Itinerary",
    "Nights",
    "USER1 Offer Codes",
    "USER2 Offer Codes",
    "USER1 Offer Names",
    "USER2 Offer Names",
    "Status",
]

SOURCE_STYLES = {
    "included": "green",
    "excluded": "red",
    "details-included": "green dim",
    "details-excluded": "red dim",
}

DEFAULT_LIMIT = 10


def format_nights(nights: int) -> str:
    return str(nights) if nights > 0 else "–"


def _stats_table(title: str, rows: Sequence[tuple[str, Any]]) -> Table:
    table = Table(title=title, box=box.ROUNDED, show_header=False, title_style="bold cyan")
    table.add_column("Metric", style="white")
    table.add_column("Value", justify="right", style="bold")
    for label, value in rows:
        table.add_row(label, str(value))
    return table


def print_filters(filters_applied: Mapping[str, Any]) -> None:
    """Print the criteria that were in effect, if any."""
    if not filters_applied:
        return
    console.print("\n[bold]🔍 Filters applied:[/bold]")
    if filters_applied.get("ships"):
        console.print(f"  Ships: {', '.join(filters_applied['ships'])}")
    if filters_applied.get("startDate"):
        console.print(f"  Start Date: {filters_applied['startDate']}")
    if filters_applied.get("endDate"):
        console.print(f"  End Date: {filters_applied['endDate']}")
    if filters_applied.get("ports"):
        console.print(f"  Ports: {', '.join(filters_applied['ports'])}")
    if filters_applied.get("minDays"):
        console.print(f"  Minimum Nights: {filters_applied['minDays']}")
    if filters_applied.get("offerCodePrefix"):
        console.print(f"  Offer Code Prefix: {filters_applied['offerCodePrefix']}")


def _more(total: int, shown: int, what: str = "more") -> None:
    if total > shown:
        console.print(f"  [dim]... and {total - shown} {what}[/dim]")


# ---------------------------------------------------------------------------
# Bounce-back report
# ---------------------------------------------------------------------------

def print_bounce_back_report(result: BounceBackComparison) -> None:
    """Print overlap statistics and every overlap grouped by ship."""
    stats = result.stats
    date_range = (
        f"{stats.earliest} to {stats.latest}" if stats.earliest else "–"
    )
    console.print()
    console.print(_stats_table("🎰 Offer Comparison Report", [
        ("Total API Sailings", stats.total_api_sailings),
        ("Filtered API Sailings", stats.filtered_api_sailings),
        ("Total Bounce-Back Offers", stats.total_bounce_back_offers),
        ("Filtered Bounce-Back Offers", stats.filtered_bounce_back_offers),
        ("Total Overlaps Found", stats.total_overlaps),
        ("Unique Ships with Overlaps", stats.unique_ships_count),
        ("Date Range", date_range),
    ]))
    print_filters(stats.filters_applied)

    if not result.overlaps:
        console.print(
            "\n[dim]No overlapping ships and dates found between API offers "
            "and bounce-back offers.[/dim]"
        )
        return

    by_ship: dict[str, list] = {}
    for overlap in result.overlaps:
        by_ship.setdefault(overlap.ship_name, []).append(overlap)

    table = Table(
        title="Overlaps by Ship and Date",
        box=box.ROUNDED,
        show_header=True,
        header_style="bold cyan",
        show_lines=False,
    )
    table.add_column("Ship", no_wrap=True)
    table.add_column("Sail Date", no_wrap=True)
    table.add_column("Port")
    table.add_column("API Offer", style="bold")
    table.add_column("Source", justify="center")
    table.add_column("Bounce-Back")
    table.add_column("Bonus")
    table.add_column("Itinerary")

    for ship, overlaps in by_ship.items():
        for i, o in enumerate(overlaps):
            api = o.api_offer
            api_label = f"{api.offer_code} ({api.offer_name})" if api.offer_name else api.offer_code
            bb = o.bounce_back_offer
            bb_label = f"{bb.offer_code} - {bb.offer_type}" if bb.offer_type else bb.offer_code
            table.add_row(
                ship.upper() if i == 0 else "",
                o.sail_date,
                o.departure_port or "–",
                api_label,
                Text(api.source, style=SOURCE_STYLES.get(api.source, "white")),
                bb_label,
                bb.next_cruise_bonus or "–",
                o.itinerary or "–",
            )

    console.print(table)
    total = len(result.overlaps)
    console.print(f"[dim]{total} overlap{'s' if total != 1 else ''} found.[/dim]\n")


# ---------------------------------------------------------------------------
# Two-user report
# ---------------------------------------------------------------------------

def _print_codes(title: str, offers: Sequence[OfferInfo], limit: int) -> None:
    if not offers:
        return
    console.print(f"\n[bold]{title} ({len(offers)}):[/bold]")
    for o in offers[:limit]:
        line = f"  - {o.code}"
        if o.matched_code and o.matched_code != o.code:
            line += f" [dim](USER2: {o.matched_code})[/dim]"
        if o.name:
            line += f"  {o.name}"
        console.print(line)
    _more(len(offers), limit)


def _print_only_sailings(title: str, sailings: Sequence[Sailing], limit: int) -> None:
    if not sailings:
        return
    console.print(f"\n[bold]⛵ {title} ({len(sailings)}):[/bold]")
    for s in sailings[:limit]:
        console.print(
            f"  - {s.ship_name} - {s.sail_date or '?'} ({s.departure_port or '–'}) - {s.offer_code}"
        )
    _more(len(sailings), limit)


def print_user_comparison(result: UserComparison, limit: int = DEFAULT_LIMIT) -> None:
    """Print a two-account comparison; long lists are cut at ``limit``."""
    stats = result.stats
    console.print()
    console.print(_stats_table("🎰 User Offer Comparison", [
        ("USER1 Total Offers", stats.total_user1_offers),
        ("USER2 Total Offers", stats.total_user2_offers),
        ("Common Offers", stats.common_offers),
        ("USER1 Only", stats.user1_only),
        ("USER2 Only", stats.user2_only),
        ("USER1 Total Sailings", stats.user1_total_sailings),
        ("USER2 Total Sailings", stats.user2_total_sailings),
        ("Matching Itineraries", stats.matching_sailings),
        ("USER1 Only Sailings", stats.user1_only_sailings),
        ("USER2 Only Sailings", stats.user2_only_sailings),
    ]))
    print_filters(result.filters_applied)

    _print_codes("Common Offer Codes", result.common_offer_codes, limit)
    _print_codes("USER1 Only Offer Codes", result.user1_only_codes, limit)
    _print_codes("USER2 Only Offer Codes", result.user2_only_codes, limit)

    if not result.matching_sailings:
        console.print("\n[dim]⛵ No matching cruise itineraries found.[/dim]")
    else:
        table = Table(
            title=f"⛵ Matching Itineraries ({len(result.matching_sailings)})",
            box=box.ROUNDED,
            show_header=True,
            header_style="bold cyan",
        )
        table.add_column("Ship", no_wrap=True)
        table.add_column("Sail Date", no_wrap=True)
        table.add_column("Port")
        table.add_column("Nights", justify="right")
        table.add_column("USER1 Offers", style="green")
        table.add_column("USER2 Offers", style="yellow")
        for m in result.matching_sailings[:limit]:
            table.add_row(
                m.ship_name,
                m.sail_date,
                m.departure_port or "–",
                format_nights(m.nights),
                ", ".join(m.user1_codes),
                ", ".join(m.user2_codes),
            )
        console.print(table)
        _more(len(result.matching_sailings), limit, "more matching itineraries")

    only_limit = max(1, limit // 2)
    _print_only_sailings("USER1 Only Sailings", result.user1_only_sailings, only_limit)
    _print_only_sailings("USER2 Only Sailings", result.user2_only_sailings, only_limit)
    console.print()


# ---------------------------------------------------------------------------
# Offer browsing
# ---------------------------------------------------------------------------

def print_offers(
    offers_with_details: Sequence[Mapping],
    sailings: Sequence[Sailing],
    limit: Optional[int] = None,
) -> None:
    """Print each offer with its sailing count, then the sailings themselves."""
    info = collect_offer_info(offers_with_details)
    per_offer: dict[str, int] = {}
    for s in sailings:
        per_offer[s.offer_code] = per_offer.get(s.offer_code, 0) + 1

    offers_table = Table(
        title=f"🎰 Casino Offers ({len(offers_with_details)})",
        box=box.ROUNDED,
        show_header=True,
        header_style="bold cyan",
    )
    offers_table.add_column("Code", style="bold", no_wrap=True)
    offers_table.add_column("Name")
    offers_table.add_column("Sailings", justify="right")
    offers_table.add_column("Details", justify="center")

    for entry in offers_with_details:
        campaign = (entry.get("offer") or {}).get("campaignOffer") or {}
        code = campaign.get("offerCode") or ""
        details_mark = (
            Text("✗", style="red") if entry.get("error")
            else Text("✓", style="green") if entry.get("details") is not None
            else "–"
        )
        offers_table.add_row(
            code or "–",
            info[code].name if code in info else (campaign.get("name") or ""),
            str(per_offer.get(code, 0)),
            details_mark,
        )
    console.print(offers_table)

    ships, ports = sailing_facets(sailings)
    if ships:
        console.print(f"[dim]Ships: {', '.join(ships)}[/dim]")
    if ports:
        console.print(f"[dim]Ports: {', '.join(ports)}[/dim]")

    if not sailings:
        console.print("[dim]No sailings match.[/dim]\n")
        return

    shown = list(sailings) if limit is None else list(sailings)[:limit]
    table = Table(box=box.ROUNDED, show_header=True, header_style="bold cyan")
    table.add_column("Ship", no_wrap=True)
    table.add_column("Sail Date", no_wrap=True)
    table.add_column("Port")
    table.add_column("Nights", justify="right")
    table.add_column("Offer", style="bold")
    table.add_column("Source", justify="center")
    table.add_column("Itinerary")
    for s in shown:
        table.add_row(
            s.ship_name,
            s.sail_date or "?",
            s.departure_port or "–",
            format_nights(s.nights),
            s.offer_code,
            Text(s.source, style=SOURCE_STYLES.get(s.source, "white")),
            s.itinerary or "–",
        )
    console.print(table)
    _more(len(sailings), len(shown))
    total = len(sailings)
    console.print(f"[dim]{total} sailing{'s' if total != 1 else ''}.[/dim]\n")


# ---------------------------------------------------------------------------
# JSON / CSV
# ---------------------------------------------------------------------------

def comparison_to_dict(result) -> dict:
    """Plain-dict form of a comparison result, structure unchanged."""
    return dataclasses.asdict(result)


def write_json(path: Path, data: Any) -> None:
    Path(path).write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")


def overlaps_to_csv(result: BounceBackComparison) -> str:
    """One CSV row per overlap under a fixed header."""
    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n")
    writer.writerow(OVERLAP_CSV_HEADER)
    for o in result.overlaps:
        writer.writerow([
            o.ship_name,
            o.sail_date,
            o.departure_port,
            o.itinerary,
            o.api_offer.offer_code,
            o.api_offer.offer_name,
            o.api_offer.source,
            o.bounce_back_offer.offer_code,
            o.bounce_back_offer.stateroom_type,
            o.bounce_back_offer.offer_type,
            o.bounce_back_offer.next_cruise_bonus,
        ])
    return output.getvalue()


def user_comparison_to_csv(result: UserComparison) -> str:
    """Two CSV sections: offer-code availability, then itineraries."""
    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n")

    output.write("=== OFFER CODE COMPARISON ===\n")
    writer.writerow(OFFER_CODE_CSV_HEADER)
    for o in result.common_offer_codes:
        writer.writerow([o.code, "Yes", "Yes", "Common"])
    for o in result.user1_only_codes:
        writer.writerow([o.code, "Yes", "No", "USER1 Only"])
    for o in result.user2_only_codes:
        writer.writerow([o.code, "No", "Yes", "USER2 Only"])

    output.write("\n=== CRUISE ITINERARY COMPARISON ===\n")
    writer.writerow(ITINERARY_CSV_HEADER)
    for m in result.matching_sailings:
        writer.writerow([
            m.ship_name,
            m.sail_date,
            m.departure_port,
            m.itinerary,
            m.nights or "",
            "; ".join(m.user1_codes),
            "; ".join(m.user2_codes),
            "; ".join(o.name for o in m.user1_offers),
            "; ".join(o.name for o in m.user2_offers),
            "Matching",
        ])
    for s in result.user1_only_sailings:
        writer.writerow([
            s.ship_name, s.sail_date, s.departure_port, s.itinerary, s.nights or "",
            s.offer_code, "", s.offer_name, "", "USER1 Only",
        ])
    for s in result.user2_only_sailings:
        writer.writerow([
            s.ship_name, s.sail_date, s.departure_port, s.itinerary, s.nights or "",
            "", s.offer_code, "", s.offer_name, "USER2 Only",
        ])

    return output.getvalue()
