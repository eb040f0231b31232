"""
Main orchestrator for the Guesty housekeeping sync system.
"""
import asyncio
import click
from typing import Optional

from colorama import Fore

from .container import ServiceContainer
from .utils.logger import setup_logger
from .utils.models import SyncSummary


class HousekeepingAutomation:
    """Main orchestrator for Guesty sync and housekeeping task automation."""

    def __init__(self, log_level: str = "INFO", log_file: Optional[str] = None,
                 dry_run: bool = False, container: Optional[ServiceContainer] = None):
        self.logger = setup_logger("housekeeping_sync", log_level, log_file)
        self.dry_run = dry_run
        self.container = container

    async def _services(self) -> ServiceContainer:
        if self.container is None:
            self.container = await ServiceContainer.create(dry_run=self.dry_run)
        return self.container

    async def sync(self, listing_id: Optional[str] = None) -> SyncSummary:
        """
        Run a full sync, or a single-listing sync when `listing_id` is given.

        Args:
            listing_id: Guesty listing to retry on its own

        Returns:
            SyncSummary for display
        """
        services = await self._services()
        self.logger.info("Starting sync", listing_id=listing_id or "all", dry_run=self.dry_run)
        if listing_id:
            return await services.sync_engine.sync_listing(listing_id)
        return await services.sync_engine.sync_all()

    async def materialize(self, listing_id: Optional[str] = None) -> dict:
        services = await self._services()
        result = await services.materializer.materialize_pending(listing_id=listing_id)
        return result.to_dict()

    async def audit(self) -> dict:
        services = await self._services()
        report = await services.materializer.audit_missing_tasks()
        return report.to_dict()

    async def history(self, page: int = 1, page_size: int = 20) -> dict:
        services = await self._services()
        result = await services.sync_log.history(page=page, page_size=page_size)
        return result.to_dict()

    async def monitor(self, duration: Optional[float] = None) -> dict:
        """Run the default health probes until interrupted or for `duration` seconds."""
        services = await self._services()
        services.register_default_probes()
        services.health_monitor.start()
        try:
            if duration is None:
                await asyncio.Event().wait()
            else:
                await asyncio.sleep(duration)
        finally:
            results = {name: r.to_dict() for name, r in services.health_monitor.results().items()}
            await services.health_monitor.stop()
        return results

    async def close(self) -> None:
        if self.container is not None:
            await self.container.close()

    def print_summary(self) -> None:
        if self.container is not None:
            self.container.sync_logger.print_summary()


def _echo_summary(summary: SyncSummary) -> None:
    if summary.success and not summary.warning:
        color = Fore.GREEN
    elif summary.success or summary.warning:
        color = Fore.YELLOW
    else:
        color = Fore.RED
    click.echo(f"{color}{summary.message}")
    click.echo(f"  Listings synced: {summary.listings_synced}/{summary.listings_attempted}")
    click.echo(f"  Bookings synced: {summary.bookings_synced}")
    click.echo(f"  Elapsed: {summary.elapsed_seconds:.2f}s")
    for failed in summary.failed_listings:
        click.echo(f"  ✗ {failed.listing_id} [{failed.category}]: {failed.error}")
    if summary.retry_after_seconds:
        click.echo(f"  Retry available in {summary.retry_after_seconds:.0f}s "
                   f"(use --listing-id to retry a single listing)")


async def _run(automation: HousekeepingAutomation, listing_id, materialize, audit, history, page, monitor, duration) -> int:
    try:
        if history:
            data = await automation.history(page=page)
            pagination = data['pagination']
            click.echo(f"Sync history (page {pagination['page']}/{pagination['total_pages']}, "
                       f"{pagination['total']} entries):")
            for entry in data['entries']:
                click.echo(f"  {entry['start_time']} {entry['sync_type']:<8} {entry['status']:<8} "
                           f"{entry['items_count']:>4}  {entry['message']}")
            return 0

        if audit:
            report = await automation.audit()
            click.echo("Housekeeping task audit:")
            click.echo(f"  Upcoming confirmed bookings: {report['total_bookings']}")
            click.echo(f"  With tasks: {report['bookings_with_tasks']}")
            click.echo(f"  Missing tasks: {report['bookings_missing_tasks']}")
            for missing in report['missing']:
                click.echo(f"  - {missing['booking_id']} ({missing['listing_id']}) {missing['guest_name']} "
                           f"{missing['check_in']} to {missing['check_out']} ({missing['stay_nights']} nights)")
            return 0

        if monitor:
            results = await automation.monitor(duration)
            for name, result in results.items():
                click.echo(f"  {name}: {result['healthy']}")
            return 0

        summary = await automation.sync(listing_id)
        _echo_summary(summary)

        if materialize:
            batch = await automation.materialize(listing_id)
            click.echo(f"\nTasks created: {batch['tasks_created']} for {batch['processed']} bookings "
                       f"({len(batch['errors'])} errors)")

        automation.print_summary()
        return 0 if summary.success or summary.warning else 1
    finally:
        await automation.close()


@click.command()
@click.option('--listing-id', type=str,
              help='Sync a single listing (manual retry of a failed listing)')
@click.option('--materialize', is_flag=True,
              help='Create housekeeping tasks for upcoming bookings after syncing')
@click.option('--audit', is_flag=True,
              help='Report upcoming bookings that have no housekeeping tasks')
@click.option('--history', is_flag=True,
              help='Show the sync log')
@click.option('--page', type=int, default=1,
              help='Sync log page to show with --history')
@click.option('--monitor', is_flag=True,
              help='Run health probes until interrupted')
@click.option('--duration', type=float,
              help='Stop --monitor after this many seconds')
@click.option('--dry-run', is_flag=True,
              help='Use an in-memory store instead of Supabase')
@click.option('--log-level', type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR']),
              default='INFO', help='Logging level')
@click.option('--log-file', type=str,
              help='Log file path (optional)')
def main(listing_id, materialize, audit, history, page, monitor, duration, dry_run, log_level, log_file):
    """
    Guesty Housekeeping Sync.

    Pulls reservations from Guesty into Supabase and schedules the
    housekeeping tasks for each stay.
    """
    automation = HousekeepingAutomation(log_level, log_file, dry_run=dry_run)
    try:
        exit_code = asyncio.run(
            _run(automation, listing_id, materialize, audit, history, page, monitor, duration)
        )
    except KeyboardInterrupt:
        click.echo("Interrupted")
        exit_code = 130
    except Exception as e:
        click.echo(f"Fatal error: {str(e)}")
        exit_code = 1

    if dry_run:
        click.echo("\n⚠️  DRY RUN MODE - No data was written to Supabase")
    click.get_current_context().exit(exit_code)


if __name__ == "__main__":
    main()
