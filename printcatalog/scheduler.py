"""Run scheduling across the whole catalog."""

import asyncio
import logging

from pydantic import BaseModel, Field

from .aggregator import BlueprintAggregator
from .client import PrintifyClient
from .config import RunMode, Settings
from .enricher import ProviderDirectoryLoader
from .models import Blueprint, FailureRecord, PrintProvider
from .policy import FailurePolicy
from .progress import ProgressTracker

logger = logging.getLogger(__name__)


class CircuitBreaker:
    """Two-strike halt policy over batches.

    The first batch ending with failures arms the breaker; any later batch
    with failures trips it. Clean batches leave it unchanged.
    """

    def __init__(self):
        self.armed = False
        self.tripped = False

    def record_batch(self, had_failures: bool) -> bool:
        """Register a finished batch; returns whether scheduling may continue."""
        if had_failures:
            if self.armed:
                self.tripped = True
            else:
                self.armed = True
        return not self.tripped


class RunSummary(BaseModel):
    """Outcome of a scheduler run."""

    mode: RunMode
    total: int = Field(default=0)
    completed: int = Field(default=0)
    units_run: int = Field(default=0, description="Batches (or blueprints) processed")
    total_units: int = Field(default=0)
    halted: bool = Field(default=False, description="Stopped early by the circuit breaker")
    elapsed_seconds: int = Field(default=0)
    providers_loaded: int = Field(default=0)
    last_failures: list[FailureRecord] = Field(default_factory=list)


def partition(blueprints: list[Blueprint], size: int) -> list[list[Blueprint]]:
    """Split the ordered catalog into consecutive batches."""
    if size < 1:
        raise ValueError(f"Batch size must be positive, got {size}")
    return [blueprints[i:i + size] for i in range(0, len(blueprints), size)]


class CatalogScheduler:
    """Drives blueprint aggregation over the full catalog."""

    def __init__(
        self,
        client: PrintifyClient,
        tracker: ProgressTracker,
        mode: RunMode = RunMode.BATCH,
        batch_size: int = 9,
        include_blueprint_variants: bool = False,
        load_provider_directory: bool = False,
        aggregator: BlueprintAggregator | None = None,
    ):
        """Initialize scheduler.

        Args:
            client: Resource fetcher
            tracker: Owner of the run's shared state
            mode: Batch (with circuit breaker) or sequential scheduling
            batch_size: Blueprints aggregated concurrently per batch
            include_blueprint_variants: Fetch catalog-level variants too
            load_provider_directory: Load the global provider list first
            aggregator: Custom aggregator, built from ``client`` if omitted
        """
        self.client = client
        self.tracker = tracker
        self.mode = mode
        self.batch_size = batch_size
        self.load_provider_directory = load_provider_directory
        self.aggregator = aggregator or BlueprintAggregator(
            client,
            FailurePolicy(tracker.record_failure),
            include_blueprint_variants=include_blueprint_variants,
        )
        self.providers: list[PrintProvider] = []

    @classmethod
    def from_settings(
        cls, client: PrintifyClient, tracker: ProgressTracker, settings: Settings
    ) -> "CatalogScheduler":
        return cls(
            client,
            tracker,
            mode=settings.mode,
            batch_size=settings.batch_size,
            include_blueprint_variants=settings.include_blueprint_variants,
            load_provider_directory=settings.load_provider_directory,
        )

    async def run(self) -> RunSummary:
        """Fetch the catalog and aggregate every blueprint.

        Raises:
            FetchError: The catalog list could not be fetched; nothing is aggregated
        """
        self.tracker.begin()

        try:
            blueprints = await self.client.fetch_catalog()
        except Exception as e:
            logger.error(f"Catalog fetch failed, aborting run: {e}")
            self.tracker.fail()
            raise

        self.tracker.catalog_loaded(blueprints)
        logger.info(f"Catalog loaded: {len(blueprints)} blueprints")

        summary = RunSummary(mode=self.mode, total=len(blueprints))
        try:
            if self.load_provider_directory:
                self.providers = await ProviderDirectoryLoader(self.client, self.tracker).load()
                summary.providers_loaded = len(self.providers)

            if self.mode == RunMode.SEQUENTIAL:
                await self._run_sequential(blueprints, summary)
            else:
                await self._run_batches(blueprints, summary)
        finally:
            self.tracker.finish()

        state = self.tracker.snapshot()
        summary.completed = state.completed
        summary.elapsed_seconds = state.elapsed_seconds
        summary.last_failures = list(self.tracker.failures)
        logger.info(
            f"Run finished: {summary.completed}/{summary.total} products, "
            f"{summary.units_run}/{summary.total_units} units"
            + (" (halted)" if summary.halted else "")
        )
        return summary

    async def _run_batches(self, blueprints: list[Blueprint], summary: RunSummary) -> None:
        batches = partition(blueprints, self.batch_size)
        summary.total_units = len(batches)
        breaker = CircuitBreaker()

        for index, batch in enumerate(batches, 1):
            self.tracker.reset_failures()
            logger.info(f"Batch {index}/{len(batches)}: {len(batch)} blueprints")

            tasks = [asyncio.create_task(self.aggregator.aggregate(blueprint)) for blueprint in batch]
            try:
                for next_done in asyncio.as_completed(tasks):
                    self.tracker.add_product(await next_done)
            finally:
                # No aggregation may outlive its batch
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
            summary.units_run = index

            failures = self.tracker.failures
            if failures:
                logger.warning(f"Batch {index} finished with {len(failures)} failures")

            if not breaker.record_batch(bool(failures)):
                summary.halted = index < len(batches)
                logger.warning(f"Batch {index} failed after an earlier failing batch, halting")
                break

    async def _run_sequential(self, blueprints: list[Blueprint], summary: RunSummary) -> None:
        summary.total_units = len(blueprints)

        for index, blueprint in enumerate(blueprints, 1):
            self.tracker.reset_failures()
            logger.info(f"[{index}/{len(blueprints)}] Aggregating blueprint {blueprint.id}")

            self.tracker.add_product(await self.aggregator.aggregate(blueprint))
            summary.units_run = index

            failures = self.tracker.failures
            if failures:
                logger.warning(f"Blueprint {blueprint.id} finished with {len(failures)} failures")
