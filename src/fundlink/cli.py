"""Command-line interface for fundlink."""

import argparse
import asyncio
import csv
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from .api import SheetsFeedAPI
from .app import FundLinkApp
from .config import Settings, load_settings
from .errors import FeedFetchError, FeedParseError, FundLinkError
from .formatting import fmt_money, fmt_pct
from .models import INCOME_YEARS, ClientProfile, FundRecord
from .profiles import normalize_profile
from .storage import FileStore
from .suitability import suit_label

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False):
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[logging.StreamHandler()]
    )
    # Quiet down HTTP libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("aiohttp").setLevel(logging.WARNING)


def load_profile_file(path: Path) -> ClientProfile:
    """Load a client profile from a JSON file (any supported profile shape)."""
    if not path.exists():
        raise FileNotFoundError(f"Profile file not found: {path}")
    data = json.loads(path.read_text())
    if not isinstance(data, dict):
        raise ValueError("Profile file must contain a JSON object")
    return normalize_profile(data)


def parse_assignments(pairs: list[str]) -> dict:
    """Turn ['risk_tolerance=moderate', ...] into a dict."""
    updates = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"Expected KEY=VALUE, got {pair!r}")
        updates[key.strip()] = value.strip()
    return updates


def fund_rows(funds: list[FundRecord]) -> tuple[list[str], list[dict]]:
    """Flatten records for tabular export (income becomes year_1..year_10)."""
    def flatten(fund: FundRecord) -> dict:
        row = fund.to_dict()
        income = row.pop("income")
        for i in range(INCOME_YEARS):
            row[f"year_{i + 1}"] = income[i]
        return row

    fieldnames = list(flatten(FundRecord(id=0)).keys())
    return fieldnames, [flatten(f) for f in funds]


def write_csv(funds: list[FundRecord], output_path: Path) -> int:
    """Write funds to CSV file."""
    fieldnames, rows = fund_rows(funds)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()
        for row in rows:
            writer.writerow({k: "" if v is None else v for k, v in row.items()})

    return len(rows)


def write_json(funds: list[FundRecord], output_path: Path):
    """Write funds to JSON file."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump([fund.to_dict() for fund in funds], f, indent=2)


def build_app(settings: Settings) -> FundLinkApp:
    return FundLinkApp(
        settings,
        durable=FileStore(settings.durable_dir),
        session=FileStore(settings.session_dir),
    )


def load_funds(app: FundLinkApp, refresh: bool = False) -> list[FundRecord]:
    """Load offerings, falling back to the stale session cache if the feed fails."""
    try:
        return asyncio.run(app.load_funds(force_refresh=refresh))
    except (FeedFetchError, FeedParseError) as e:
        stale = app.loader.cached()
        if not stale:
            raise
        logger.warning(f"Feed unavailable ({e}); showing {len(stale)} cached offerings")
        return stale


def cmd_fetch(args, settings: Settings) -> int:
    api = SheetsFeedAPI(settings.sheets_url, timeout=settings.timeout)
    try:
        funds = api.fetch_funds()
    finally:
        api.close()

    output_path = args.output
    if args.format == "json":
        if output_path.suffix != ".json":
            output_path = output_path.with_suffix(".json")
        write_json(funds, output_path)
    else:
        if output_path.suffix != ".csv":
            output_path = output_path.with_suffix(".csv")
        write_csv(funds, output_path)

    print(f"Wrote {len(funds)} offerings to {output_path}")
    return 0


def cmd_list(args, settings: Settings) -> int:
    app = build_app(settings)
    funds = load_funds(app, refresh=args.refresh)

    print(f"\n{'ID':>3}  {'Offering':<40} {'Sponsor':<22} {'Status':<13} "
          f"{'Left':>7} {'Y1 CoC':>7} {'Min':>7}")
    print("-" * 105)
    for fund in funds:
        print(f"{fund.id:>3}  {fund.display_label[:40]:<40} {fund.sponsor[:22]:<22} "
              f"{fund.status.value:<13} {fmt_pct(fund.pct_remaining, 0):>7} "
              f"{fmt_pct(fund.y1_coc):>7} {fmt_money(fund.min_invest):>7}")
    print(f"\n{len(funds)} offerings")
    return 0


def cmd_score(args, settings: Settings) -> int:
    app = build_app(settings)
    profile = load_profile_file(args.profile) if args.profile else app.profile.get()
    if not profile.is_set:
        print("Error: No client profile set. Use 'fundlink profile set name=...' "
              "or --profile FILE.", file=sys.stderr)
        return 1

    funds = load_funds(app, refresh=args.refresh)
    ranked = app.rank(funds, profile=profile)

    print(f"\nSuitability for {profile.name}")
    print("=" * 70)
    for fund, result in ranked:
        label = suit_label(result.score)
        print(f"{result.score:>3}  {label.label:<13} #{fund.id:<3} {fund.display_label}")
        if args.verbose:
            for reason in result.reasons:
                print(f"        + {reason}")
            for flag in result.flags:
                print(f"        ! {flag}")
    return 0


def cmd_profile(args, settings: Settings) -> int:
    app = build_app(settings)
    if args.action == "set":
        app.profile.set(parse_assignments(args.assignments))
    elif args.action == "clear":
        app.profile.clear()

    print(json.dumps(app.profile.get().to_dict(), indent=2))
    return 0


def cmd_basket(args, settings: Settings) -> int:
    app = build_app(settings)
    if args.action == "add":
        if not app.basket.add(args.fund_id):
            print(f"Could not add {args.fund_id}: already selected or basket is full "
                  f"({app.basket.count()}/{app.basket.capacity})", file=sys.stderr)
            return 1
    elif args.action == "remove":
        app.basket.remove(args.fund_id)

    resolved = {f.id: f for f in app.basket.get()}
    print(f"Basket ({app.basket.count()}/{app.basket.capacity}):")
    for fund_id in app.basket.ids():
        fund = resolved.get(fund_id)
        print(f"  #{fund_id} {fund.display_label if fund else '(not loaded)'}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fundlink",
        description="Browse alternative-investment offerings and score client suitability"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    parser.add_argument("-q", "--quiet", action="store_true", help="Quiet mode (errors only)")
    parser.add_argument("--env-file", type=Path, help="Path to a .env file with FUNDLINK_* settings")

    sub = parser.add_subparsers(dest="command", required=True)

    fetch = sub.add_parser("fetch", help="Export the parsed feed to CSV or JSON")
    fetch.add_argument("-o", "--output", type=Path, default=Path("output/offerings.csv"),
                       help="Output file path (default: output/offerings.csv)")
    fetch.add_argument("--format", choices=["csv", "json"], default="csv",
                       help="Output format (default: csv)")
    fetch.set_defaults(handler=cmd_fetch)

    list_cmd = sub.add_parser("list", help="List offerings")
    list_cmd.add_argument("--refresh", action="store_true", help="Bypass the session cache")
    list_cmd.set_defaults(handler=cmd_list)

    score = sub.add_parser("score", help="Rank offerings for a client profile")
    score.add_argument("--profile", type=Path, help="JSON profile file (default: stored profile)")
    score.add_argument("--refresh", action="store_true", help="Bypass the session cache")
    score.set_defaults(handler=cmd_score)

    profile = sub.add_parser("profile", help="Show, update or clear the client profile")
    profile.add_argument("action", choices=["show", "set", "clear"])
    profile.add_argument("assignments", nargs="*", help="KEY=VALUE pairs for 'set'")
    profile.set_defaults(handler=cmd_profile)

    basket = sub.add_parser("basket", help="Manage the comparison basket")
    basket.add_argument("action", choices=["show", "add", "remove"])
    basket.add_argument("fund_id", type=int, nargs="?")
    basket.set_defaults(handler=cmd_basket)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.quiet:
        logging.basicConfig(level=logging.ERROR)
    else:
        setup_logging(args.verbose)

    if args.command == "basket" and args.action != "show" and args.fund_id is None:
        parser.error(f"basket {args.action} needs a fund id")

    try:
        settings = load_settings(args.env_file)
        return args.handler(args, settings)
    except (FileNotFoundError, ValueError, FundLinkError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
