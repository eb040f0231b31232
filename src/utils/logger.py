"""
Logging utility for the Guesty housekeeping sync system.
"""
import logging
import sys
from typing import Optional
from colorama import Fore, Style, init
import structlog

# Initialize colorama for cross-platform colored output
init(autoreset=True)


class ColorizedFormatter(logging.Formatter):
    """Custom formatter with colorized output."""

    COLORS = {
        'DEBUG': Fore.CYAN,
        'INFO': Fore.GREEN,
        'WARNING': Fore.YELLOW,
        'ERROR': Fore.RED,
        'CRITICAL': Fore.MAGENTA + Style.BRIGHT,
    }

    def format(self, record):
        # Color the level name
        levelname = record.levelname
        if levelname in self.COLORS:
            record.levelname = f"{self.COLORS[levelname]}{levelname}{Style.RESET_ALL}"

        # Warnings and errors stand out in red
        if record.levelno >= logging.WARNING:
            record.msg = f"{Fore.RED}{record.msg}{Style.RESET_ALL}"
        elif record.levelno == logging.INFO:
            record.msg = f"{Fore.GREEN}{record.msg}{Style.RESET_ALL}"

        return super().format(record)


def setup_logger(
    name: str = "housekeeping_sync",
    level: str = "INFO",
    log_file: Optional[str] = None
) -> structlog.BoundLogger:
    """
    Set up structured logging with colorized console output.

    Args:
        name: Logger name
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path for logging to file

    Returns:
        Configured structured logger
    """
    # Configure structlog; JSON lines when writing to a file
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if log_file else structlog.dev.ConsoleRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logger = structlog.get_logger(name)

    # Standard library logger backing structlog
    stdlib_logger = logging.getLogger(name)
    stdlib_logger.setLevel(getattr(logging, level.upper()))

    # Console handler with colorized output, added once per logger name
    if not stdlib_logger.handlers:
        console_handler = logging.StreamHandler(sys.stdout)
        console_formatter = ColorizedFormatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        console_handler.setFormatter(console_formatter)
        stdlib_logger.addHandler(console_handler)

    # File handler if specified
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        file_handler.setFormatter(file_formatter)
        stdlib_logger.addHandler(file_handler)

    return logger


def get_logger(name: str = "housekeeping_sync") -> structlog.BoundLogger:
    """
    Get a configured logger instance.

    Args:
        name: Logger name

    Returns:
        Configured structured logger
    """
    return structlog.get_logger(name)


class SyncLogger:
    """Specialized logger for sync runs with summary tracking."""

    def __init__(self, logger: structlog.BoundLogger):
        self.logger = logger
        self.reset_stats()

    def log_listing_synced(self, listing_id: str, bookings: int):
        self.stats['listings_attempted'] += 1
        self.stats['listings_synced'] += 1
        self.stats['bookings_upserted'] += bookings
        self.logger.info("Listing synced", listing_id=listing_id, bookings=bookings)

    def log_listing_failed(self, listing_id: str, error: Exception, category: str):
        self.stats['listings_attempted'] += 1
        self.stats['listings_failed'] += 1
        self.stats['errors'] += 1
        self.logger.error(
            "Listing sync failed",
            listing_id=listing_id,
            error=str(error),
            error_type=type(error).__name__,
            category=category,
        )

    def log_tasks_created(self, booking_id: str, count: int):
        self.stats['tasks_created'] += count
        self.logger.info("Housekeeping tasks created", booking_id=booking_id, count=count)

    def log_retry(self, operation: str, attempt: int, error: Exception, delay: float):
        self.stats['retries'] += 1
        self.logger.warning(
            "Attempt failed, retrying",
            operation=operation,
            attempt=attempt,
            error=str(error),
            next_delay_seconds=delay,
        )

    def log_error(self, error: Exception, context: str = ""):
        """Log an error."""
        self.stats['errors'] += 1
        self.logger.error(
            "Error occurred",
            error=str(error),
            error_type=type(error).__name__,
            context=context
        )

    def print_summary(self):
        """Print a summary of all operations."""
        self.logger.info("Sync summary", **self.stats)

        print(f"\n{Fore.CYAN}{'='*50}")
        print(f"{Fore.WHITE}SYNC SUMMARY")
        print(f"{Fore.CYAN}{'='*50}")
        print(f"{Fore.GREEN}✓ Listings synced: {self.stats['listings_synced']}/{self.stats['listings_attempted']}")
        print(f"{Fore.GREEN}✓ Bookings upserted: {self.stats['bookings_upserted']}")
        print(f"{Fore.BLUE}✓ Tasks created: {self.stats['tasks_created']}")
        print(f"{Fore.YELLOW}⚠ Retries: {self.stats['retries']}")
        print(f"{Fore.RED}✗ Failed listings: {self.stats['listings_failed']}")
        print(f"{Fore.RED}✗ Errors: {self.stats['errors']}")
        print(f"{Fore.CYAN}{'='*50}\n")

    def reset_stats(self):
        """Reset statistics."""
        self.stats = {
            'listings_attempted': 0,
            'listings_synced': 0,
            'listings_failed': 0,
            'bookings_upserted': 0,
            'tasks_created': 0,
            'retries': 0,
            'errors': 0,
        }
