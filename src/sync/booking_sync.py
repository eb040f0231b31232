"""
Guesty to local store booking synchronization.
"""
import asyncio
import time
from typing import List, Optional

from config.settings import app_config
from ..guesty.client import GuestyClient
from ..monitoring.sync_log import SyncLogStore
from ..storage.base import HousekeepingStore
from ..utils.cancellation import CancellationToken
from ..utils.errors import (
    AuthenticationError,
    ConfigurationError,
    EmptyResponseError,
    ErrorCategory,
    MissingFieldsError,
    SyncCancelledError,
    classify_error,
    operator_hint,
)
from ..utils.logger import get_logger, SyncLogger
from ..utils.models import FailedListing, Listing, SyncStatus, SyncSummary, SyncType, utcnow
from ..utils.retry import RetryOptions, compute_delay, run_with_retry
from .upsert import BookingUpserter, normalize_booking


class BookingSyncEngine:
    """
    Pulls reservations from Guesty and upserts them into the store.

    Listings are synced concurrently and independently: a failing listing is
    recorded and never aborts the others, and bookings already upserted for a
    listing stay in place even when a later step fails.
    """

    def __init__(
        self,
        client: GuestyClient,
        store: HousekeepingStore,
        sync_log: Optional[SyncLogStore] = None,
        upserter: Optional[BookingUpserter] = None,
        retry_options: Optional[RetryOptions] = None,
        max_concurrency: Optional[int] = None,
        sync_logger: Optional[SyncLogger] = None,
        sleep=None,
    ):
        self.client = client
        self.store = store
        self.sync_log = sync_log or SyncLogStore(store)
        self.upserter = upserter or BookingUpserter(store, sleep=sleep)
        self.retry_options = retry_options or RetryOptions.from_millis(
            app_config.sync_max_retries, app_config.sync_retry_delay_ms
        )
        self.max_concurrency = max_concurrency or app_config.sync_max_concurrency
        self.logger = get_logger("booking_sync")
        self.sync_logger = sync_logger or SyncLogger(self.logger)
        self._sleep = sleep

    @property
    def manual_retry_delay(self) -> float:
        """Seconds an operator should wait before re-triggering a failed sync."""
        return compute_delay(self.retry_options, self.retry_options.max_retries + 1)

    async def _with_retry(self, operation_name: str, operation, cancel_token: Optional[CancellationToken]):
        def log_retry(attempt: int, error: Exception, delay: float) -> None:
            self.sync_logger.log_retry(operation_name, attempt, error, delay)

        return await run_with_retry(
            operation,
            self.retry_options,
            on_retry=log_retry,
            cancel_token=cancel_token,
            sleep=self._sleep,
        )

    async def _write_log(self, sync_type: SyncType, status: SyncStatus, message: str,
                         items_count: int, start_time, error_category: Optional[str] = None) -> None:
        try:
            await self.sync_log.record(
                service=app_config.service_name,
                sync_type=sync_type,
                status=status,
                message=message,
                items_count=items_count,
                start_time=start_time,
                error_category=error_category,
            )
        except Exception as e:
            self.logger.error("Failed to write sync log entry", error=str(e), message=message)

    async def fetch_active_listings(self, cancel_token: Optional[CancellationToken] = None) -> List[Listing]:
        """Fetch listings from Guesty, mirror them locally and return the active ones."""
        payloads = await self._with_retry("list_listings", self.client.list_listings, cancel_token)
        listings = [Listing.from_payload(p) for p in payloads if p.get("_id") or p.get("id")]
        for listing in listings:
            try:
                await self.store.upsert_listing(listing)
            except Exception as e:
                self.logger.warning("Failed to mirror listing", listing_id=listing.listing_id, error=str(e))
        return [listing for listing in listings if listing.active]

    async def _sync_listing_bookings(self, listing_id: str, cancel_token: Optional[CancellationToken]) -> int:
        """Fetch and upsert one listing's reservations; returns the number upserted."""
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

        cursor = await self.store.get_sync_cursor(listing_id)
        started_at = utcnow()
        reservations = await self._with_retry(
            f"list_reservations:{listing_id}",
            lambda: self.client.list_reservations(listing_id, cursor.isoformat() if cursor else None),
            cancel_token,
        )

        upserted = 0
        for payload in reservations:
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()
            try:
                booking = normalize_booking(payload, listing_id=listing_id)
                await self.upserter.upsert(booking)
            except (MissingFieldsError, ValueError) as e:
                self.logger.warning(
                    "Skipping invalid reservation",
                    listing_id=listing_id,
                    reservation_id=payload.get("_id") or payload.get("id"),
                    error=str(e),
                )
                continue
            upserted += 1

        await self.store.set_sync_cursor(listing_id, started_at)
        return upserted

    async def _run_listing(self, listing_id: str, semaphore: asyncio.Semaphore,
                           cancel_token: Optional[CancellationToken]):
        async with semaphore:
            try:
                count = await self._sync_listing_bookings(listing_id, cancel_token)
            except Exception as e:
                category = classify_error(e)
                self.sync_logger.log_listing_failed(listing_id, e, category.value)
                return FailedListing(listing_id=listing_id, error=str(e), category=category.value)
            self.sync_logger.log_listing_synced(listing_id, count)
            return count

    async def sync_all(self, cancel_token: Optional[CancellationToken] = None) -> SyncSummary:
        """
        Sync every active listing.

        Returns:
            SyncSummary; `success` only when every listing synced, `warning` for
            partial success or when Guesty returned no listings
        """
        start_time = utcnow()
        started = time.monotonic()
        self.logger.info("Starting full Guesty sync")

        try:
            listings = await self.fetch_active_listings(cancel_token)
            if not listings:
                raise EmptyResponseError("Guesty returned no active listings")
        except EmptyResponseError as e:
            message = f"No active listings returned from Guesty; nothing to sync. {operator_hint(e)}"
            await self._write_log(SyncType.POLL, SyncStatus.WARNING, message, 0, start_time,
                                  ErrorCategory.EMPTY_RESPONSE.value)
            return SyncSummary(
                success=True,
                warning=True,
                elapsed_seconds=time.monotonic() - started,
                message=message,
                error_category=ErrorCategory.EMPTY_RESPONSE.value,
            )
        except Exception as e:
            return await self._fatal_summary(e, SyncType.POLL, start_time, started)

        semaphore = asyncio.Semaphore(self.max_concurrency)
        outcomes = await asyncio.gather(
            *(self._run_listing(listing.listing_id, semaphore, cancel_token) for listing in listings)
        )
        return await self._summarize(outcomes, SyncType.POLL, start_time, started, cancel_token)

    async def sync_listing(self, listing_id: str, cancel_token: Optional[CancellationToken] = None) -> SyncSummary:
        """Sync one listing, typically to retry a failure from a full sync."""
        start_time = utcnow()
        started = time.monotonic()
        self.logger.info("Starting single-listing Guesty sync", listing_id=listing_id)
        semaphore = asyncio.Semaphore(1)
        outcome = await self._run_listing(listing_id, semaphore, cancel_token)
        return await self._summarize([outcome], SyncType.RETRY, start_time, started, cancel_token)

    async def _fatal_summary(self, error: Exception, sync_type: SyncType, start_time, started: float) -> SyncSummary:
        category = classify_error(error)
        if isinstance(error, AuthenticationError):
            self.client.invalidate()
        # Configuration problems are shown to the operator verbatim
        message = str(error) if isinstance(error, ConfigurationError) else f"{operator_hint(error)} {error}"
        self.sync_logger.log_error(error, "Full sync aborted")
        await self._write_log(sync_type, SyncStatus.ERROR, message, 0, start_time, category.value)
        return SyncSummary(
            success=False,
            elapsed_seconds=time.monotonic() - started,
            message=message,
            error_category=category.value,
            retry_after_seconds=None if category is ErrorCategory.CONFIGURATION else self.manual_retry_delay,
        )

    async def _summarize(self, outcomes, sync_type: SyncType, start_time, started: float,
                         cancel_token: Optional[CancellationToken]) -> SyncSummary:
        failed = [o for o in outcomes if isinstance(o, FailedListing)]
        counts = [o for o in outcomes if not isinstance(o, FailedListing)]
        synced = len(counts)
        bookings = sum(counts)
        attempted = len(outcomes)

        summary = SyncSummary(
            success=not failed,
            warning=bool(failed) and synced > 0,
            listings_attempted=attempted,
            listings_synced=synced,
            bookings_synced=bookings,
            failed_listings=failed,
            elapsed_seconds=time.monotonic() - started,
        )

        cancelled = cancel_token is not None and cancel_token.cancelled
        if not failed:
            summary.message = f"Synced {bookings} bookings across {synced} listings"
            status = SyncStatus.SUCCESS
        elif synced > 0:
            summary.message = (
                f"Partial sync: {synced}/{attempted} listings synced, {bookings} bookings; "
                f"failed listings: {', '.join(summary.failed_listing_ids)}"
            )
            status = SyncStatus.WARNING
        else:
            hint = operator_hint(SyncCancelledError("cancelled")) if cancelled else "All listings failed to sync."
            summary.message = f"{hint} Failed listings: {', '.join(summary.failed_listing_ids)}"
            status = SyncStatus.ERROR

        if failed:
            summary.retry_after_seconds = self.manual_retry_delay
            categories = {f.category for f in failed}
            summary.error_category = categories.pop() if len(categories) == 1 else ErrorCategory.GENERIC.value
            if ErrorCategory.AUTHENTICATION.value in {f.category for f in failed}:
                self.client.invalidate()

        log = self.logger.info if status is SyncStatus.SUCCESS else self.logger.warning
        log("Guesty sync finished", **{k: v for k, v in summary.to_dict().items() if k != "failed_listings"})
        await self._write_log(sync_type, status, summary.message, bookings, start_time, summary.error_category)
        return summary
