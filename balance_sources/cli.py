"""
Command line entry point.

Usage:
    python -m balance_sources fetch [--json]
    python -m balance_sources decode privatbank saved_response.json
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from balance_sources.aggregation import currency_totals, non_zero
from balance_sources.config import BalanceSourcesConfig
from balance_sources.exceptions import BalanceSourceError
from balance_sources.models import BalanceSnapshot, Provider
from balance_sources.providers import LedgerAccountProjection, WalletBalanceProjection
from balance_sources.registry import create_default_registry


logger = logging.getLogger(__name__)

PROJECTIONS = {
    Provider.PRIVATBANK: LedgerAccountProjection,
    Provider.WISE: WalletBalanceProjection,
}


def print_banner(text: str) -> None:
    """Print a banner."""
    print("\n" + "=" * 60)
    print(f"  {text}")
    print("=" * 60)


def print_snapshot(snapshot: BalanceSnapshot) -> None:
    balances = non_zero(snapshot.all_balances())

    print_banner("BALANCES")
    for record in balances:
        print(f"  {record.provider.display_name:<12} | {record.title:<30} | {record.amount:>14} {record.currency_code}")

    print_banner("TOTALS")
    for total in currency_totals(balances):
        print(f"  {total.currency_code}: {total.total_amount}")

    if snapshot.exchange_rates:
        print_banner("EXCHANGE RATES")
        for rate in snapshot.exchange_rates:
            print(f"  {rate.pair_description}: {rate.rate}")

    for provider in sorted(snapshot.missing_credentials, key=lambda p: p.value):
        print(f"\n  ! No token configured for {provider.display_name}")
    for error in snapshot.errors:
        print(f"\n  ! {error}")


async def run_fetch(config: BalanceSourcesConfig, as_json: bool) -> int:
    async with create_default_registry(config) as registry:
        snapshot = await registry.fetch_snapshot()

    if as_json:
        print(json.dumps(snapshot.to_dict(), indent=2, ensure_ascii=False))
    else:
        print_snapshot(snapshot)
    return 1 if snapshot.errors else 0


def run_decode(provider: Provider, path: Path) -> int:
    projection = PROJECTIONS[provider]()
    try:
        records = projection.normalize(path.read_bytes())
    except BalanceSourceError as e:
        print(json.dumps(e.to_dict(), indent=2, ensure_ascii=False))
        return 1
    print(json.dumps([r.to_dict() for r in records], indent=2, ensure_ascii=False))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="balance_sources", description="Fetch and normalize account balances")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    subparsers = parser.add_subparsers(dest="command", required=True)

    fetch = subparsers.add_parser("fetch", help="Fetch balances and rates from all enabled providers")
    fetch.add_argument("--json", action="store_true", help="Print the snapshot as JSON")

    decode = subparsers.add_parser("decode", help="Normalize a saved provider response")
    decode.add_argument("provider", choices=[p.value for p in Provider])
    decode.add_argument("path", type=Path)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = BalanceSourcesConfig.from_env()

    logging.basicConfig(
        level=(args.log_level or config.log_level).upper(),
        format="%(asctime)s | %(levelname)-5s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    if args.command == "decode":
        return run_decode(Provider(args.provider), args.path)

    problems = config.validate()
    if problems:
        for problem in problems:
            logger.error(f"Configuration: {problem}")
        return 2
    return asyncio.run(run_fetch(config, args.json))


if __name__ == "__main__":
    sys.exit(main())
