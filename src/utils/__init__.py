"""
Utility modules for the Guesty housekeeping sync system.
"""

from .models import (
    Booking, BookingStatus, Listing, CleaningTask, ServiceType, TaskStatus,
    SyncLogEntry, SyncType, SyncStatus, SyncSummary, FailedListing,
    HealthCheckResult, ApiUsageRecord, UpsertResult
)
from .errors import (
    ErrorCategory, SyncError, ConfigurationError, AuthenticationError,
    DataStoreError, EmptyResponseError, ApiError, RateLimitError,
    InvalidDateRangeError, MissingFieldsError, SyncCancelledError,
    classify_error, is_retryable
)
from .logger import setup_logger, get_logger, SyncLogger

__all__ = [
    'Booking', 'BookingStatus', 'Listing', 'CleaningTask', 'ServiceType', 'TaskStatus',
    'SyncLogEntry', 'SyncType', 'SyncStatus', 'SyncSummary', 'FailedListing',
    'HealthCheckResult', 'ApiUsageRecord', 'UpsertResult',
    'ErrorCategory', 'SyncError', 'ConfigurationError', 'AuthenticationError',
    'DataStoreError', 'EmptyResponseError', 'ApiError', 'RateLimitError',
    'InvalidDateRangeError', 'MissingFieldsError', 'SyncCancelledError',
    'classify_error', 'is_retryable',
    'setup_logger', 'get_logger', 'SyncLogger'
]
