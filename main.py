"""CLI entry point for the lead discovery pipeline."""

import argparse
import asyncio
import logging
import sys

from leadscout.core.config import Settings
from leadscout.core.db import init_db
from leadscout.core.schemas import AgentType, CapabilityProfile, SearchRequest
from leadscout.pipeline.governor import SessionGovernor
from leadscout.pipeline.orchestrator import LeadPipeline, export_results_json
from leadscout.platforms.classifieds.queries import (
    build_queries,
    build_search_url as build_classifieds_url,
    resolve_region,
)
from leadscout.platforms.government.queries import (
    build_search_url as build_government_url,
    naics_codes,
    resolve_states,
)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Lead discovery - find and rank contractor job opportunities",
    )
    subparsers = parser.add_subparsers(dest="command")

    # --- search subcommand (default) ---
    search_parser = subparsers.add_parser("search", help="Run a lead discovery session")
    _add_common(search_parser)
    search_parser.add_argument(
        "--geography",
        help="Override the profile's service area (e.g. 'Cleveland, OH')",
    )
    search_parser.add_argument(
        "--category",
        action="append",
        default=[],
        help="Restrict to a service category (repeatable)",
    )
    search_parser.add_argument(
        "--max-results",
        type=int,
        default=None,
        help="Maximum leads to return (default: pipeline.default_max_results)",
    )
    search_parser.add_argument(
        "--tracking-id",
        help="Progress record id to update while the run executes",
    )
    search_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show quota status and queries without launching a browser",
    )
    search_parser.add_argument(
        "--export",
        choices=["json"],
        help="Export results to format (json)",
    )

    # --- usage subcommand ---
    usage_parser = subparsers.add_parser("usage", help="Show session usage for the profile's account")
    _add_common(usage_parser)

    # Default to search when no subcommand given
    args = list(sys.argv[1:] if argv is None else argv)
    if not args or args[0] not in ("search", "usage", "-h", "--help"):
        args = ["search", *args]

    return parser.parse_args(args)


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        default="config/settings.yaml",
        help="Path to settings YAML file (default: config/settings.yaml)",
    )
    parser.add_argument(
        "--profile",
        default="config/profile.yaml",
        help="Path to contractor profile YAML (default: config/profile.yaml)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def build_request(args: argparse.Namespace, settings: Settings) -> SearchRequest:
    return SearchRequest(
        geography=args.geography,
        categories=args.category,
        max_results=args.max_results or settings.pipeline.default_max_results,
        session_tracking_id=args.tracking_id,
    )


async def dry_run(settings: Settings, profile: CapabilityProfile, request: SearchRequest) -> None:
    """Print what would happen without actually searching."""
    conn = init_db(settings.database.path)
    governor = SessionGovernor(conn, settings.governor)
    geography = request.geography or profile.geography
    services = request.categories or profile.services

    can = await governor.can_start_session(profile.account_id, AgentType.LEAD_DISCOVERY, profile.tier)
    usage = governor.usage_summary(profile.account_id, profile.tier)
    print(f"[DRY RUN] Account {profile.account_id} ({profile.tier}): "
          f"session {'OK' if can else 'BLOCKED'}, "
          f"{usage.monthly_used}/{usage.monthly_limit} this month")

    for source in settings.pipeline.sources:
        if source == "classifieds":
            region = resolve_region(geography)
            for query in build_queries(services, region.site):
                print(f"[DRY RUN] classifieds {query.category}: {build_classifieds_url(query)}")
        elif source == "government":
            states, _floor = resolve_states(geography)
            print(f"[DRY RUN] government: {build_government_url(naics_codes(services), states)}")

    print(f"[DRY RUN] Would keep at most {request.max_results} leads (no browser in dry-run)")
    conn.close()


async def run(settings: Settings, profile: CapabilityProfile, request: SearchRequest,
              export_format: str | None) -> int:
    """Run one governed discovery session with a real browser."""
    conn = init_db(settings.database.path)
    pipeline = LeadPipeline(settings, conn)
    result = await pipeline.run(request, profile)

    print(f"\nRun {result.status.value}: {len(result.leads)} leads "
          f"({result.quality_metrics.candidates_found} candidates, "
          f"{result.quality_metrics.rejected_spam} spam, "
          f"{result.quality_metrics.rejected_below_floor} below floor)")
    if result.error is not None:
        print(f"  Error [{result.error.code}]: {result.error.message}")
    for i, lead in enumerate(result.leads, 1):
        print(f"  {i:2d}. [{lead.relevance_score:5.1f}] {lead.listing.title} "
              f"(${lead.estimated_value:,.0f}, {lead.category}) {lead.url}")

    if export_format == "json":
        print(f"\n{export_results_json(result)}")

    conn.close()
    return 0 if result.success else 1


def cmd_usage(settings: Settings, profile: CapabilityProfile) -> None:
    conn = init_db(settings.database.path)
    governor = SessionGovernor(conn, settings.governor)
    usage = governor.usage_summary(profile.account_id, profile.tier)
    print(f"Account {profile.account_id} ({usage.tier} tier)")
    print(f"  Monthly sessions: {usage.monthly_used}/{usage.monthly_limit} "
          f"({usage.monthly_remaining} remaining)")
    print(f"  Lead discovery today: {usage.daily_used}/{usage.daily_limit}")
    conn.close()


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        settings = Settings.from_yaml(args.config)
        profile = CapabilityProfile.from_yaml(args.profile)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if args.command == "usage":
        cmd_usage(settings, profile)
        return

    try:
        request = build_request(args, settings)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if args.dry_run:
        asyncio.run(dry_run(settings, profile, request))
    else:
        sys.exit(asyncio.run(run(settings, profile, request, args.export)))


if __name__ == "__main__":
    main()
