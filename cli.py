#!/usr/bin/env python3
"""Operator CLI for running DCA sessions and inspecting routed quotes"""

import argparse
import asyncio
import sys
from typing import List, Optional

from app.config import settings
from app.core.dca import DCASession, ExecutionResult, QuoteRouter, build_pipeline
from app.core.dca.matcher import current_time_slot
from app.core.dca.price_impact import describe_impact, format_price_impact, price_impact_severity
from app.logging_config import setup_logging


def print_results(results: List[ExecutionResult]):
    """Pretty print one run's per-session outcomes"""
    if not results:
        print("ℹ️  No sessions executed")
        return

    print("\n📋 DCA Run")
    print("=" * 50)
    for i, result in enumerate(results, 1):
        icon = "✅" if result.success else ("⏭️ " if result.skipped else "❌")
        retried = " (retried)" if result.retried else ""
        print(f"{i:2d}. {icon} {result.buyer_address} -> {result.destination_token}{retried}")
        if result.success:
            print(f"    tx: {result.tx_hash}")
            print(f"    out: {result.amount_out}  impact: {format_price_impact(result.price_impact)}")
        elif result.skipped:
            print(f"    skipped: {result.skip_reason.value} {result.error or ''}")
        else:
            print(f"    error: {result.error}")


async def cli_run(buyer: Optional[str], token: Optional[str]) -> int:
    """Execute due sessions, or a single buyer/token session"""
    pipeline = build_pipeline()

    if buyer and token:
        session = await pipeline.config_fetcher.find_active_session(buyer, token)
        if session is None:
            print(f"❌ No active DCA session for {buyer} -> {token}")
            return 1
        sessions: List[DCASession] = [session]
    else:
        print(f"🔍 Matching sessions for slot {current_time_slot()} UTC...")
        sessions = await pipeline.matcher.match_due_sessions()

    results = await pipeline.orchestrator.run(sessions)
    print_results(results)

    summary = pipeline.orchestrator.last_summary
    if summary:
        print(
            f"\nTotal: {summary.total_sessions}  Success: {summary.success_count}  "
            f"Failed: {summary.fail_count}  Skipped: {summary.skipped_count}"
        )
    return 0 if summary is None or summary.fail_count == 0 else 1


async def cli_quote(source: str, destination: str, amount: int) -> int:
    """Print the routed quote for one purchase"""
    if not settings.dca_contract_address:
        print("❌ CONTRACT_ADDRESS is not configured")
        return 1
    router = QuoteRouter()

    print(f"🔍 Quoting {amount} of {source} -> {destination} via {router.name}...")
    result = await router.get_quote(settings.dca_contract_address, source, destination, amount)

    if not result.ok:
        print(f"❌ {result.status.value}: {result.error_message}")
        return 1

    quote = result.quote
    impact = quote.price_impact_percent
    print("\n💱 Quote")
    print("=" * 50)
    print(f"Expected output: {quote.expected_output_amount}")
    if quote.minimum_output_amount is not None:
        print(f"Minimum output:  {quote.minimum_output_amount}")
    print(f"Price impact:    {format_price_impact(impact)} ({price_impact_severity(impact)}, {describe_impact(impact)})")
    if quote.slippage_tolerance_percent is not None:
        print(f"Slippage:        {quote.slippage_tolerance_percent}%")
    print(f"Steps:           {len(quote.execution_steps)}")
    if quote.request_id:
        print(f"Request id:      {quote.request_id}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="DCA on Ink CLI")
    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser("run", help="Execute sessions due in the current slot")
    run_parser.add_argument("--buyer", help="Execute only this buyer's session (requires --token)")
    run_parser.add_argument("--token", help="Destination token of the single session")

    quote_parser = subparsers.add_parser("quote", help="Print a routed quote")
    quote_parser.add_argument("source", help="Source token address (zero address for native ETH)")
    quote_parser.add_argument("destination", help="Destination token address")
    quote_parser.add_argument("amount", type=int, help="Amount in source token base units")

    return parser


async def main() -> int:
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 0

    setup_logging()

    if args.command == "run":
        if bool(args.buyer) != bool(args.token):
            parser.error("--buyer and --token must be given together")
        return await cli_run(args.buyer, args.token)

    if args.command == "quote":
        if args.amount <= 0:
            parser.error("amount must be positive")
        return await cli_quote(args.source, args.destination, args.amount)

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
