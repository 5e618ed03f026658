"""Casino Offers CLI - compare casino cruise offers across sources."""

import asyncio
import dataclasses
import json
import logging
import time
from pathlib import Path
from typing import Annotated, Any, Optional

import httpx
import typer
from rich.markup import escape

from . import cache
from .api import ApiError, OffersClient
from .bounceback import BounceBackFileError, load_bounce_back
from .compare import compare_offers_with_bounce_back, compare_users, narrow_matching_sailings
from .config import Config
from .credentials import (
    CredentialProvider,
    Credentials,
    EnvCredentialProvider,
    FallbackCredentialProvider,
    MissingCredentialsError,
    PromptCredentialProvider,
)
from .extractor import extract_all_sailings
from .filters import InvalidFilterError, SailingFilters, filter_sailings, parse_list_option
from .formatter import (
    DEFAULT_LIMIT,
    comparison_to_dict,
    console,
    overlaps_to_csv,
    print_bounce_back_report,
    print_filters,
    print_offers,
    print_user_comparison,
    user_comparison_to_csv,
    write_json,
)
from .models import UserOffers

app = typer.Typer(
    name="casino-offers",
    help="🎰 Compare casino cruise offers against bounce-back lists and other accounts",
    rich_markup_mode="rich",
)

cache_app = typer.Typer(help="Cache management commands")
app.add_typer(cache_app, name="cache")

logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s: %(message)s",
)
logger = logging.getLogger(__name__)

OUTPUT_FORMATS = ("csv", "json")

ShipsOpt = Annotated[Optional[str], typer.Option("--ships", help="Comma-separated ship names (partial match)")]
PortsOpt = Annotated[Optional[str], typer.Option("--ports", help="Comma-separated departure ports (partial match)")]
StartOpt = Annotated[Optional[str], typer.Option("--start-date", help="Earliest sail date (YYYY-MM-DD)")]
EndOpt = Annotated[Optional[str], typer.Option("--end-date", help="Latest sail date (YYYY-MM-DD)")]
MinDaysOpt = Annotated[Optional[int], typer.Option("--min-days", help="Minimum number of nights")]
PrefixOpt = Annotated[Optional[str], typer.Option("--offer-prefix", help="Offer code prefix (first 5 characters)")]
VerboseOpt = Annotated[bool, typer.Option("--verbose", "-v", help="Verbose logging")]
NoCacheOpt = Annotated[bool, typer.Option("--no-cache", help="Always fetch fresh offers")]
OutputDirOpt = Annotated[Path, typer.Option("--output-dir", "-o", help="Directory for saved files")]


def _fail(message: str) -> None:
    console.print(f"[red]❌ {escape(message)}[/red]")
    raise typer.Exit(1)


def _build_filters(
    ships: Optional[str],
    ports: Optional[str],
    start_date: Optional[str],
    end_date: Optional[str],
    min_days: Optional[int],
    offer_prefix: Optional[str],
) -> SailingFilters:
    filters = SailingFilters(
        ships=parse_list_option(ships),
        start_date=start_date,
        end_date=end_date,
        ports=parse_list_option(ports),
        min_days=min_days,
        offer_code_prefix=offer_prefix,
    )
    try:
        filters.validate()
    except InvalidFilterError as e:
        _fail(str(e))
    return filters


def _check_format(fmt: str) -> str:
    fmt = fmt.lower()
    if fmt not in OUTPUT_FORMATS:
        _fail(f"Invalid format: {fmt}. Choose from: csv, json")
    return fmt


def _read_json(path: Path) -> Any:
    try:
        return json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        _fail(f"Could not read {path}: {e}")


def _load_user_offers(path: Path, label: str) -> UserOffers:
    """Load a saved offers file: a bare offer list or a per-user object."""
    data = _read_json(path)
    if isinstance(data, list):
        return UserOffers.from_dict({"offersWithDetails": data}, label=label)
    if isinstance(data, dict):
        return UserOffers.from_dict(data, label=label)
    _fail(f"{path} does not contain offer data")


def _credential_provider() -> CredentialProvider:
    return FallbackCredentialProvider(EnvCredentialProvider(), PromptCredentialProvider())


async def _fetch_user(
    client: OffersClient,
    credentials: Credentials,
    label: str,
    use_cache: bool,
) -> UserOffers:
    cache_key = cache.make_key(credentials.username, client.brand)
    cached = cache.get(cache_key) if use_cache else None
    if cached is not None:
        logger.info(f"Cache hit for {label}")
        return UserOffers.from_dict(cached, label=label)

    user_offers = await client.fetch_user_offers(credentials, label)
    # Partial results are not cached
    if use_cache and not user_offers.failed_offers:
        cache.set(cache_key, user_offers.to_dict())
    return user_offers


def _fetch_users(labels: list[str], use_cache: bool) -> list[UserOffers]:
    """Fetch each account's offers, concurrently when there are several."""
    if not Config.is_api_configured():
        _fail(
            "CASINO_OFFERS_CLIENT_AUTH and CASINO_OFFERS_APP_KEY must be set "
            "in the environment or .env file (or pass a saved offers file)"
        )
    provider = _credential_provider()
    # Prompting is interactive, so credentials are resolved before going concurrent
    try:
        credentials = {label: provider.get(label) for label in labels}
    except MissingCredentialsError as e:
        _fail(str(e))

    async def run_all():
        async with OffersClient(
            client_auth=Config.CLIENT_AUTH,
            app_key=Config.APP_KEY,
            brand=Config.BRAND,
        ) as client:
            return await asyncio.gather(
                *[_fetch_user(client, credentials[label], label, use_cache) for label in labels]
            )

    try:
        results = list(asyncio.run(run_all()))
    except (ApiError, httpx.HTTPError) as e:
        _fail(f"Error fetching offers: {e}")

    for user_offers in results:
        failed = user_offers.failed_offers
        if failed:
            console.print(
                f"[yellow]⚠ {user_offers.label}: details unavailable for "
                f"{len(failed)} of {len(user_offers.offers_with_details)} offers[/yellow]"
            )
    return results


def _save_offers(path: Path, data: Any) -> None:
    write_json(path, data)
    console.print(f"[green]✅ Offer data saved to {path}[/green]")


@app.command("bounce-back")
def bounce_back(
    csv_file: Annotated[Path, typer.Option("--csv-file", help="Bounce-back CSV export")] = Path(Config.BOUNCE_BACK_CSV),
    offers_file: Annotated[Optional[Path], typer.Option("--offers-file", help="Use a saved offers.json instead of fetching")] = None,
    fmt: Annotated[str, typer.Option("--format", "-f", help="Results format: csv, json")] = "csv",
    output_dir: OutputDirOpt = Path("."),
    ships: ShipsOpt = None,
    ports: PortsOpt = None,
    start_date: StartOpt = None,
    end_date: EndOpt = None,
    min_days: MinDaysOpt = None,
    offer_prefix: PrefixOpt = None,
    no_cache: NoCacheOpt = False,
    verbose: VerboseOpt = False,
):
    """
    🔁 Find account offers that sail the same ship and date as bounce-back offers.

    Examples:

      casino-offers bounce-back --ships "Serenade,Utopia" --start-date 2025-01-01

      casino-offers bounce-back --offers-file offers.json --format json
    """
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    fmt = _check_format(fmt)
    filters = _build_filters(ships, ports, start_date, end_date, min_days, offer_prefix)

    if offers_file:
        user_offers = _load_user_offers(offers_file, "USER1")
    else:
        (user_offers,) = _fetch_users(["USER1"], use_cache=not no_cache)
        output_dir.mkdir(parents=True, exist_ok=True)
        _save_offers(output_dir / Config.OFFERS_FILE, user_offers.offers_with_details)

    try:
        csv_text = load_bounce_back(csv_file)
    except BounceBackFileError as e:
        _fail(str(e))

    console.print("[dim]🔍 Comparing offers with bounce-back CSV...[/dim]")
    result = compare_offers_with_bounce_back(user_offers.offers_with_details, csv_text, filters)
    print_bounce_back_report(result)

    output_dir.mkdir(parents=True, exist_ok=True)
    out_path = output_dir / f"{Config.BOUNCE_BACK_RESULTS}.{fmt}"
    if fmt == "csv":
        out_path.write_text(overlaps_to_csv(result), encoding="utf-8")
    else:
        write_json(out_path, comparison_to_dict(result))
    console.print(f"[green]📊 Detailed comparison results saved to {out_path}[/green]")


@app.command("compare-users")
def compare_users_cmd(
    user1_file: Annotated[Optional[Path], typer.Option("--user1-file", help="Saved offers for USER1")] = None,
    user2_file: Annotated[Optional[Path], typer.Option("--user2-file", help="Saved offers for USER2")] = None,
    fmt: Annotated[str, typer.Option("--format", "-f", help="Results format: csv, json")] = "json",
    limit: Annotated[int, typer.Option("--limit", "-n", help="Max entries per list in the report")] = DEFAULT_LIMIT,
    output_dir: OutputDirOpt = Path("."),
    ships: ShipsOpt = None,
    ports: PortsOpt = None,
    start_date: StartOpt = None,
    end_date: EndOpt = None,
    min_days: MinDaysOpt = None,
    offer_prefix: PrefixOpt = None,
    filter_matches: Annotated[bool, typer.Option("--filter-matches", help="Compare all sailings, then apply filters to matching sailings only")] = False,
    no_cache: NoCacheOpt = False,
    verbose: VerboseOpt = False,
):
    """
    👥 Compare the offers and sailings of two accounts.

    Credentials come from USER1_USERNAME/USER1_PASSWORD and
    USER2_USERNAME/USER2_PASSWORD, or are prompted for.

    Examples:

      casino-offers compare-users --ships Utopia --format csv

      casino-offers compare-users --user1-file offers-user1.json --user2-file offers-user2.json

      casino-offers compare-users --offer-prefix 25SEA --filter-matches
    """
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    fmt = _check_format(fmt)
    filters = _build_filters(ships, ports, start_date, end_date, min_days, offer_prefix)

    users: dict[str, UserOffers] = {}
    for label, path in (("USER1", user1_file), ("USER2", user2_file)):
        if path:
            users[label] = _load_user_offers(path, label)

    to_fetch = [label for label in ("USER1", "USER2") if label not in users]
    if to_fetch:
        output_dir.mkdir(parents=True, exist_ok=True)
        for label, user_offers in zip(to_fetch, _fetch_users(to_fetch, use_cache=not no_cache)):
            users[label] = user_offers
            _save_offers(output_dir / f"offers-{label.lower()}.json", user_offers.to_dict())

    user1, user2 = users["USER1"], users["USER2"]
    if filter_matches:
        result = compare_users(user1.offers_with_details, user2.offers_with_details)
        result = narrow_matching_sailings(result, filters)
    else:
        result = compare_users(user1.offers_with_details, user2.offers_with_details, filters)
    print_user_comparison(result, limit=limit)

    output_dir.mkdir(parents=True, exist_ok=True)
    out_path = output_dir / f"{Config.USER_RESULTS}.{fmt}"
    if fmt == "csv":
        out_path.write_text(user_comparison_to_csv(result), encoding="utf-8")
    else:
        report = comparison_to_dict(result)
        report["user1_info"] = dataclasses.asdict(user1.user_info)
        report["user2_info"] = dataclasses.asdict(user2.user_info)
        write_json(out_path, report)
    console.print(f"[green]📊 Detailed comparison results saved to {out_path}[/green]")


@app.command("offers")
def offers_cmd(
    offers_file: Annotated[Optional[Path], typer.Option("--offers-file", help="Use a saved offers file instead of fetching")] = None,
    label: Annotated[str, typer.Option("--user", "-u", help="Account label for credentials (USER1, USER2, ...)")] = "USER1",
    limit: Annotated[Optional[int], typer.Option("--limit", "-n", help="Max sailings to list")] = None,
    ships: ShipsOpt = None,
    ports: PortsOpt = None,
    start_date: StartOpt = None,
    end_date: EndOpt = None,
    min_days: MinDaysOpt = None,
    offer_prefix: PrefixOpt = None,
    no_cache: NoCacheOpt = False,
    verbose: VerboseOpt = False,
):
    """
    🎰 Browse one account's offers and their sailings.

    Examples:

      casino-offers offers --ports Miami --min-days 5

      casino-offers offers --offers-file offers.json --offer-prefix 25SEA
    """
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    filters = _build_filters(ships, ports, start_date, end_date, min_days, offer_prefix)
    label = label.upper()

    if offers_file:
        user_offers = _load_user_offers(offers_file, label)
    else:
        (user_offers,) = _fetch_users([label], use_cache=not no_cache)

    sailings = filter_sailings(extract_all_sailings(user_offers.offers_with_details), filters)
    print_filters(filters.to_dict())
    print_offers(user_offers.offers_with_details, sailings, limit=limit)


# ---------------------------------------------------------------------------
# cache sub-commands
# ---------------------------------------------------------------------------

@cache_app.command("clear")
def cache_clear(
    expired_only: Annotated[bool, typer.Option("--expired", help="Clear only expired entries")] = False,
):
    """Clear the offers cache."""
    if expired_only:
        count = cache.clear_expired()
        console.print(f"[green]Cleared {count} expired cache entries.[/green]")
    else:
        cache.clear_all()
        console.print("[green]Cache cleared.[/green]")


@cache_app.command("info")
def cache_info():
    """Show cache location and stats."""
    console.print(f"Cache file: [blue]{cache.CACHE_FILE}[/blue]")
    if cache.CACHE_FILE.exists():
        size_kb = cache.CACHE_FILE.stat().st_size / 1024
        console.print(f"Cache size: {size_kb:.1f} KB")
        entries = cache.list_entries()
        console.print(f"Live entries: {len(entries)}")
        now = time.time()
        for key, stored_at, expires_at in entries:
            age = int((now - stored_at) // 60)
            left = int((expires_at - now) // 60)
            console.print(f"  {escape(key)}: stored {age} min ago, expires in {left} min")
    else:
        console.print("[dim]No cache file yet.[/dim]")


def main():
    app()


if __name__ == "__main__":
    main()
