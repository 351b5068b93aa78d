"""Tests for the progress tracker."""

import asyncio

import pytest

from printcatalog.errors import ServerError
from printcatalog.models import Blueprint, CombinedProduct, FailureRecord, ProductDetail
from printcatalog.progress import CatalogStatus, ProgressTracker


def product(blueprint_id: int) -> CombinedProduct:
    return CombinedProduct(id=blueprint_id, product_detail=ProductDetail(id=blueprint_id))


@pytest.fixture
def tracker():
    """Tracker with a loaded two-blueprint catalog (no stopwatch)."""
    tracker = ProgressTracker()
    tracker.begin()
    tracker.catalog_loaded([Blueprint(id=1), Blueprint(id=2)])
    return tracker


class TestLifecycle:
    """Tests for run lifecycle transitions."""

    def test_initial_state(self):
        state = ProgressTracker().snapshot()
        assert state.status == CatalogStatus.PENDING
        assert state.total == 0
        assert state.completed == 0
        assert not state.loading

    def test_catalog_loaded(self, tracker):
        state = tracker.snapshot()
        assert state.status == CatalogStatus.SUCCESS
        assert state.total == 2
        assert state.loading
        assert [b.id for b in tracker.catalog] == [1, 2]

    def test_total_set_once(self, tracker):
        with pytest.raises(RuntimeError):
            tracker.catalog_loaded([Blueprint(id=3)])
        assert tracker.snapshot().total == 2

    def test_begin_resets(self, tracker):
        tracker.add_product(product(1))
        tracker.record_failure(FailureRecord(blueprint_id=1, operation="x", error=ServerError(500)))
        tracker.finish()

        tracker.begin()

        state = tracker.snapshot()
        assert state.total == 0
        assert state.completed == 0
        assert state.status == CatalogStatus.PENDING
        assert tracker.products == ()
        assert tracker.failures == ()

    def test_fail(self):
        tracker = ProgressTracker()
        tracker.begin()
        tracker.fail()
        state = tracker.snapshot()
        assert state.status == CatalogStatus.FAIL
        assert not state.loading

    def test_snapshot_is_a_copy(self, tracker):
        snapshot = tracker.snapshot()
        snapshot.completed = 99
        assert tracker.snapshot().completed == 0


class TestProducts:
    """Tests for product accounting."""

    def test_add_product_counts(self, tracker):
        tracker.add_product(product(1))
        tracker.add_product(product(2))
        assert tracker.snapshot().completed == 2

    def test_completed_never_exceeds_total(self, tracker):
        tracker.add_product(product(1))
        tracker.add_product(product(2))
        with pytest.raises(RuntimeError):
            tracker.add_product(product(3))
        assert tracker.snapshot().completed == 2

    def test_failure_buffer(self, tracker):
        record = FailureRecord(blueprint_id=1, operation="fetchProductDetail", error=ServerError(500))
        tracker.record_failure(record)
        assert tracker.failures == (record,)
        tracker.reset_failures()
        assert tracker.failures == ()


class TestListeners:
    """Tests for change notifications."""

    def test_subscribe_and_unsubscribe(self, tracker):
        seen = []
        unsubscribe = tracker.subscribe(seen.append)
        tracker.add_product(product(1))
        unsubscribe()
        tracker.add_product(product(2))

        assert [s.completed for s in seen] == [1]

    def test_provider_progress(self, tracker):
        tracker.providers_discovered(3)
        tracker.provider_loaded()
        state = tracker.snapshot()
        assert state.providers_total == 3
        assert state.providers_loaded == 1


class TestStopwatch:
    """Tests for the elapsed-time stopwatch."""

    @pytest.mark.asyncio
    async def test_ticks_while_loading(self):
        tracker = ProgressTracker(tick_interval=0.01)
        tracker.begin()
        await asyncio.sleep(0.1)
        tracker.finish()

        elapsed = tracker.snapshot().elapsed_seconds
        assert elapsed >= 1

        await asyncio.sleep(0.05)
        assert tracker.snapshot().elapsed_seconds == elapsed

    @pytest.mark.asyncio
    async def test_cleared_on_next_run(self):
        tracker = ProgressTracker(tick_interval=0.01)
        tracker.begin()
        await asyncio.sleep(0.05)
        tracker.finish()

        tracker.begin()
        assert tracker.snapshot().elapsed_seconds == 0
        tracker.finish()

    def test_no_event_loop(self):
        tracker = ProgressTracker()
        tracker.begin()
        assert tracker.snapshot().loading
        tracker.finish()
        assert not tracker.snapshot().loading
