"""
Unit tests for the main orchestrator and CLI functionality.
"""
import asyncio
import pytest
from unittest.mock import AsyncMock, Mock, patch
from datetime import timedelta
from click.testing import CliRunner

from src.container import ServiceContainer
from src.main import HousekeepingAutomation, main
from src.utils.models import Booking, FailedListing, SyncStatus, SyncSummary, SyncType, utcnow

pytestmark = pytest.mark.integration


@pytest.fixture
def container(store, fake_sleep):
    client = Mock()
    client.close = AsyncMock()
    client.usage_recorder = None
    return ServiceContainer(store, client=client, sleep=fake_sleep)


@pytest.fixture
def runner():
    return CliRunner()


def _patch_container(container):
    return patch("src.main.ServiceContainer.create", new=AsyncMock(return_value=container))


class TestHousekeepingAutomation:

    def test_sync_all_delegates_to_engine(self, container):
        container.sync_engine.sync_all = AsyncMock(return_value=SyncSummary(success=True))
        automation = HousekeepingAutomation(container=container)

        summary = asyncio.run(automation.sync())

        assert summary.success is True
        container.sync_engine.sync_all.assert_awaited_once()

    def test_sync_single_listing(self, container):
        container.sync_engine.sync_listing = AsyncMock(return_value=SyncSummary(success=True))
        automation = HousekeepingAutomation(container=container)

        asyncio.run(automation.sync("L1"))

        container.sync_engine.sync_listing.assert_awaited_once_with("L1")

    def test_audit_and_materialize(self, container, store):
        start = utcnow().date() + timedelta(days=3)
        asyncio.run(store.upsert_booking(Booking(external_id="B1", listing_id="L1", check_in=start,
                                                 check_out=start + timedelta(days=4))))
        automation = HousekeepingAutomation(container=container)

        async def scenario():
            before = await automation.audit()
            batch = await automation.materialize()
            after = await automation.audit()
            return before, batch, after

        before, batch, after = asyncio.run(scenario())

        assert before['bookings_missing_tasks'] == 1
        assert batch['tasks_created'] == 2
        assert after['bookings_missing_tasks'] == 0

    def test_monitor_runs_for_duration(self, container):
        container.client.get_token = AsyncMock(return_value="token")
        automation = HousekeepingAutomation(container=container)

        results = asyncio.run(automation.monitor(duration=0.05))

        assert results['data_store']['healthy'] is True
        assert container.health_monitor.running is False


class TestCLI:

    def test_full_sync_success(self, runner, container):
        container.sync_engine.sync_all = AsyncMock(return_value=SyncSummary(
            success=True, listings_attempted=2, listings_synced=2, bookings_synced=5,
            message="Synced 5 bookings across 2 listings",
        ))

        with _patch_container(container):
            result = runner.invoke(main, ["--dry-run"])

        assert result.exit_code == 0
        assert "Synced 5 bookings across 2 listings" in result.output
        assert "DRY RUN MODE" in result.output
        container.client.close.assert_awaited()

    def test_partial_sync_lists_failures(self, runner, container):
        container.sync_engine.sync_all = AsyncMock(return_value=SyncSummary(
            success=False, warning=True, listings_attempted=2, listings_synced=1,
            failed_listings=[FailedListing("L2", "Guesty returned 500")],
            message="Partial sync", retry_after_seconds=8.0,
        ))

        with _patch_container(container):
            result = runner.invoke(main, [])

        assert result.exit_code == 0
        assert "L2" in result.output
        assert "Retry available in 8s" in result.output

    def test_failed_sync_exits_nonzero(self, runner, container):
        container.sync_engine.sync_all = AsyncMock(return_value=SyncSummary(success=False, message="All listings failed"))

        with _patch_container(container):
            result = runner.invoke(main, [])

        assert result.exit_code == 1

    def test_history(self, runner, container):
        asyncio.run(container.sync_log.record("guesty", SyncType.WEBHOOK, SyncStatus.SUCCESS, "Processed booking R1"))

        with _patch_container(container):
            result = runner.invoke(main, ["--history"])

        assert result.exit_code == 0
        assert "Processed booking R1" in result.output

    def test_audit(self, runner, container):
        with _patch_container(container):
            result = runner.invoke(main, ["--audit"])

        assert result.exit_code == 0
        assert "Missing tasks: 0" in result.output

    def test_fatal_error(self, runner):
        with patch("src.main.ServiceContainer.create", new=AsyncMock(side_effect=RuntimeError("Supabase configuration missing"))):
            result = runner.invoke(main, [])

        assert result.exit_code == 1
        assert "Fatal error: Supabase configuration missing" in result.output
