"""Progress and status tracking for catalog aggregation runs."""

import asyncio
import logging
from collections.abc import Callable
from enum import Enum

from pydantic import BaseModel, Field

from .models import Blueprint, CombinedProduct, FailureRecord

logger = logging.getLogger(__name__)


class CatalogStatus(str, Enum):
    """Status of the catalog list fetch."""

    PENDING = "pending"
    SUCCESS = "success"
    FAIL = "fail"


class ProgressState(BaseModel):
    """Observable progress of the current run."""

    status: CatalogStatus = Field(default=CatalogStatus.PENDING)
    total: int = Field(default=0, description="Blueprints in the catalog")
    completed: int = Field(default=0, description="Combined products aggregated")
    elapsed_seconds: int = Field(default=0, description="Stopwatch ticks since run start")
    loading: bool = Field(default=False)
    providers_total: int = Field(default=0, description="Providers in the global directory")
    providers_loaded: int = Field(default=0, description="Providers enriched so far")


Listener = Callable[[ProgressState], None]


class ProgressTracker:
    """Single owner of the state shared by a run.

    Holds the progress state, the catalog, the growing product collection and
    the failure buffer of the current unit (batch or blueprint). Every mutation
    goes through a synchronous method executed on the event loop, so concurrent
    aggregations never interleave inside an update. Consumers read snapshots
    or subscribe to change notifications.
    """

    def __init__(self, tick_interval: float = 1.0):
        self.tick_interval = tick_interval
        self._state = ProgressState()
        self._catalog: list[Blueprint] = []
        self._products: list[CombinedProduct] = []
        self._failures: list[FailureRecord] = []
        self._listeners: list[Listener] = []
        self._total_set = False
        self._stopwatch: asyncio.Task | None = None

    # =========================================================================
    # Read-only views
    # =========================================================================

    def snapshot(self) -> ProgressState:
        """Copy of the current state."""
        return self._state.model_copy()

    @property
    def catalog(self) -> tuple[Blueprint, ...]:
        return tuple(self._catalog)

    @property
    def products(self) -> tuple[CombinedProduct, ...]:
        return tuple(self._products)

    @property
    def failures(self) -> tuple[FailureRecord, ...]:
        """Failures of the most recent unit."""
        return tuple(self._failures)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            listener(snapshot)

    # =========================================================================
    # Run lifecycle
    # =========================================================================

    def begin(self) -> None:
        """Reset state for a new run and start the stopwatch."""
        self._state = ProgressState(loading=True)
        self._catalog = []
        self._products = []
        self._failures = []
        self._total_set = False
        self._start_stopwatch()
        self._notify()

    def catalog_loaded(self, catalog: list[Blueprint]) -> None:
        """Record the catalog; sets ``total`` once per run."""
        if self._total_set:
            raise RuntimeError("Catalog total already set for this run")

        self._catalog = list(catalog)
        self._state.total = len(catalog)
        self._state.status = CatalogStatus.SUCCESS
        self._total_set = True
        self._notify()

    def fail(self) -> None:
        """Mark the run as aborted by a catalog fetch failure."""
        self._state.status = CatalogStatus.FAIL
        self._end()

    def finish(self) -> None:
        """Mark the run as done (completed or halted)."""
        self._end()

    def _end(self) -> None:
        self._state.loading = False
        self._stop_stopwatch()
        self._notify()

    # =========================================================================
    # Products and failures
    # =========================================================================

    def add_product(self, product: CombinedProduct) -> None:
        """Append one aggregated product and bump ``completed``."""
        if self._state.completed >= self._state.total:
            raise RuntimeError(
                f"Cannot add product {product.id}: completed would exceed total "
                f"({self._state.total})"
            )
        self._products.append(product)
        self._state.completed = len(self._products)
        self._notify()

    def reset_failures(self) -> None:
        """Clear the failure buffer at the start of a unit."""
        self._failures = []

    def record_failure(self, record: FailureRecord) -> None:
        self._failures.append(record)

    # =========================================================================
    # Provider directory
    # =========================================================================

    def providers_discovered(self, total: int) -> None:
        self._state.providers_total = total
        self._state.providers_loaded = 0
        self._notify()

    def provider_loaded(self) -> None:
        self._state.providers_loaded += 1
        self._notify()

    # =========================================================================
    # Stopwatch
    # =========================================================================

    def _start_stopwatch(self) -> None:
        self._stop_stopwatch()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, stopwatch disabled")
            return
        self._stopwatch = loop.create_task(self._tick())

    def _stop_stopwatch(self) -> None:
        if self._stopwatch:
            self._stopwatch.cancel()
            self._stopwatch = None

    async def _tick(self) -> None:
        while self._state.loading:
            await asyncio.sleep(self.tick_interval)
            if not self._state.loading:
                break
            self._state.elapsed_seconds += 1
            self._notify()
