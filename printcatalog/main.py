"""Main entry point for the Printify catalog aggregator."""

import argparse
import asyncio
import logging
import sys

import httpx

from .client import PrintifyClient
from .config import TOKEN_ENV_VAR, RunMode, Settings
from .enricher import ProviderDirectoryLoader
from .progress import ProgressState, ProgressTracker
from .scheduler import CatalogScheduler, RunSummary

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout),
    ]
)
logger = logging.getLogger(__name__)


def build_client(
    settings: Settings, transport: httpx.AsyncBaseTransport | None = None
) -> PrintifyClient:
    """Create the API client for the configured mode."""
    if not settings.api_token:
        raise ValueError(f"No API token configured (set {TOKEN_ENV_VAR} or api_token)")
    return PrintifyClient(
        api_token=settings.api_token,
        base_url=settings.base_url,
        api_version=settings.api_version,
        timeout=settings.timeout_seconds,
        request_interval=settings.effective_interval,
        max_concurrent=settings.max_concurrent_requests,
        transport=transport,
    )


def log_progress(state: ProgressState) -> None:
    """Debug-level progress listener."""
    logger.debug(
        f"status={state.status.value} completed={state.completed}/{state.total} "
        f"elapsed={state.elapsed_seconds}s loading={state.loading}"
    )


async def run_aggregation(settings: Settings) -> tuple[RunSummary, ProgressTracker]:
    """Run the catalog aggregation.

    Args:
        settings: Run configuration

    Returns:
        Run summary and the tracker holding the aggregated products
    """
    tracker = ProgressTracker(tick_interval=settings.tick_interval)
    tracker.subscribe(log_progress)

    async with build_client(settings) as client:
        scheduler = CatalogScheduler.from_settings(client, tracker, settings)
        summary = await scheduler.run()

    return summary, tracker


async def load_providers(settings: Settings) -> int:
    """Load the enriched provider directory and print it."""
    tracker = ProgressTracker(tick_interval=settings.tick_interval)

    async with build_client(settings) as client:
        providers = await ProviderDirectoryLoader(client, tracker).load()

    for provider in providers:
        address = provider.address
        city = address.city if address and address.city else "-"
        print(f"{provider.id:>6}  {provider.title or 'Untitled':<40} {provider.location or '-':<4} {city}")
    print(f"\n{len(providers)} print providers")
    return 0


def print_summary(summary: RunSummary, tracker: ProgressTracker) -> None:
    partial = sum(1 for p in tracker.products if p.product_detail.is_partial)

    print(f"\n{'='*50}")
    print("Aggregation Complete!" if not summary.halted else "Aggregation Halted!")
    print(f"{'='*50}")
    print(f"Mode:             {summary.mode.value}")
    print(f"Products:         {summary.completed}/{summary.total}")
    print(f"Partial details:  {partial}")
    print(f"Units processed:  {summary.units_run}/{summary.total_units}")
    print(f"Elapsed:          {summary.elapsed_seconds // 60} m {summary.elapsed_seconds % 60} s")
    if summary.providers_loaded:
        print(f"Providers:        {summary.providers_loaded}")
    print(f"Last failures:    {len(summary.last_failures)}")
    print(f"{'='*50}")


def show_failures(summary: RunSummary, limit: int = 10) -> None:
    if not summary.last_failures:
        return

    print(f"\n=== Failures in last unit ({len(summary.last_failures)} total) ===\n")
    for failure in summary.last_failures[:limit]:
        print(f"[{failure.timestamp.isoformat()}] blueprint {failure.blueprint_id}")
        print(f"  Operation: {failure.operation}")
        if failure.provider_id is not None:
            print(f"  Provider: {failure.provider_id}")
        print(f"  Error: {failure.message}")
        print()

    if len(summary.last_failures) > limit:
        print(f"... and {len(summary.last_failures) - limit} more failures")


def dump_products(tracker: ProgressTracker, limit: int) -> None:
    for product in tracker.products[:limit]:
        print(f"\n=== Blueprint {product.id} ===")
        print(product.to_debug_json())


def main() -> int:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Printify Catalog Aggregator - Combine blueprints, providers, variants and shipping"
    )
    parser.add_argument(
        "-c", "--config",
        default=None,
        help="YAML settings file"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging"
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Run command (default)
    run_parser = subparsers.add_parser("run", help="Aggregate the whole catalog")
    run_parser.add_argument(
        "--mode",
        choices=[m.value for m in RunMode],
        default=None,
        help="Scheduling mode (default: batch)"
    )
    run_parser.add_argument(
        "-b", "--batch-size",
        type=int,
        default=None,
        help="Blueprints per batch (default: 9)"
    )
    run_parser.add_argument(
        "--with-providers",
        action="store_true",
        help="Load the global provider directory first"
    )
    run_parser.add_argument(
        "--blueprint-variants",
        action="store_true",
        help="Fetch catalog-level variants for each blueprint"
    )
    run_parser.add_argument(
        "-n", "--failures",
        type=int,
        default=10,
        help="Number of failures to show (default: 10)"
    )
    run_parser.add_argument(
        "--dump",
        type=int,
        default=0,
        metavar="N",
        help="Print the first N aggregated products as JSON"
    )

    # Providers command
    subparsers.add_parser("providers", help="List enriched print providers")

    # Config command
    config_parser = subparsers.add_parser("config", help="Show or write settings")
    config_parser.add_argument(
        "-w", "--write",
        default=None,
        help="Write effective settings to this YAML file"
    )

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    settings = Settings.load(args.config)

    if args.command == "config":
        if args.write:
            settings.save(args.write)
            print(f"Settings written to {args.write}")
        else:
            for key, value in settings.model_dump(mode="json", exclude={"api_token"}).items():
                print(f"{key}: {value}")
            print(f"api_token: {'set' if settings.api_token else 'missing'}")
        return 0

    try:
        if args.command == "providers":
            return asyncio.run(load_providers(settings))

        if args.command is None:
            # No subcommand: run with defaults
            args = run_parser.parse_args([])

        updates = {}
        if args.mode:
            updates["mode"] = RunMode(args.mode)
        if args.batch_size is not None:
            updates["batch_size"] = args.batch_size
        if args.with_providers:
            updates["load_provider_directory"] = True
        if args.blueprint_variants:
            updates["include_blueprint_variants"] = True
        settings = Settings.model_validate({**settings.model_dump(), **updates})

        summary, tracker = asyncio.run(run_aggregation(settings))
        print_summary(summary, tracker)
        show_failures(summary, args.failures)
        dump_products(tracker, args.dump)
        return 0

    except KeyboardInterrupt:
        logger.info("Run interrupted by user")
        return 1
    except Exception as e:
        logger.error(f"Run failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
