"""
Inbound Guesty reservation webhook handling.
"""
import hmac
from dataclasses import dataclass
from typing import Any, Dict, Optional

from config.settings import app_config, guesty_config
from ..monitoring.sync_log import SyncLogStore
from ..utils.errors import MissingFieldsError
from ..utils.logger import get_logger
from ..utils.models import SyncStatus, SyncType, utcnow
from ..sync.upsert import BookingUpserter, normalize_booking, unwrap_payload


@dataclass
class WebhookOutcome:
    status_code: int
    body: str

    @property
    def ok(self) -> bool:
        return self.status_code == 200


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


class WebhookIngestor:
    """
    Verifies, normalizes and upserts reservations pushed by Guesty.

    Bookings flow through the same BookingUpserter the poller uses. A sync log
    entry is attempted for every request, but a logging failure never changes
    the response.
    """

    def __init__(
        self,
        upserter: BookingUpserter,
        sync_log: SyncLogStore,
        secret: Optional[str] = None,
        materializer=None,
    ):
        self.upserter = upserter
        self.sync_log = sync_log
        self.secret = secret if secret is not None else guesty_config.webhook_secret
        self.materializer = materializer
        self.logger = get_logger("webhook_ingestor")

    def is_authorized(self, authorization: Optional[str]) -> bool:
        token = _bearer_token(authorization)
        if not self.secret or token is None:
            return False
        return hmac.compare_digest(token.encode("utf-8"), self.secret.encode("utf-8"))

    async def _log_attempt(self, status: SyncStatus, message: str, items_count: int, start_time) -> None:
        try:
            await self.sync_log.record(
                service=app_config.service_name,
                sync_type=SyncType.WEBHOOK,
                status=status,
                message=message,
                items_count=items_count,
                start_time=start_time,
            )
        except Exception as e:
            self.logger.error("Failed to log webhook sync", error=str(e))

    async def ingest(self, method: str, authorization: Optional[str], payload: Any) -> WebhookOutcome:
        """
        Process one webhook request.

        Args:
            method: HTTP method of the request
            authorization: Raw Authorization header
            payload: Parsed JSON body

        Returns:
            WebhookOutcome with the HTTP status and plain-text body to send back
        """
        if method.upper() != "POST":
            return WebhookOutcome(405, "Method not allowed")

        if not self.is_authorized(authorization):
            self.logger.warning("Rejected webhook with missing or invalid secret")
            return WebhookOutcome(401, "Unauthorized")

        start_time = utcnow()
        if not isinstance(payload, dict):
            self.logger.warning("Webhook body is not a JSON object", body_type=type(payload).__name__)
            await self._log_attempt(SyncStatus.ERROR, "Unparseable webhook body", 0, start_time)
            return WebhookOutcome(400, "Error processing webhook")

        reservation: Dict[str, Any] = unwrap_payload(payload)

        try:
            booking = normalize_booking(reservation)
        except MissingFieldsError as e:
            self.logger.warning("Webhook payload missing fields", missing=e.missing)
            await self._log_attempt(SyncStatus.ERROR, str(e), 0, start_time)
            return WebhookOutcome(400, str(e))
        except Exception as e:
            self.logger.error("Invalid webhook payload", error=str(e))
            await self._log_attempt(SyncStatus.ERROR, f"Invalid webhook payload: {e}", 0, start_time)
            return WebhookOutcome(400, "Error processing webhook")

        try:
            await self.upserter.upsert(booking)
        except Exception as e:
            self.logger.error("Error processing webhook", booking_id=booking.external_id, error=str(e))
            await self._log_attempt(
                SyncStatus.ERROR, f"Failed to process booking {booking.external_id}: {e}", 0, start_time
            )
            return WebhookOutcome(400, "Error processing webhook")

        self.logger.info(
            "Webhook booking upserted",
            booking_id=booking.external_id,
            listing_id=booking.listing_id,
            status=booking.status.value,
        )
        await self._log_attempt(
            SyncStatus.SUCCESS, f"Processed booking {booking.external_id} via webhook", 1, start_time
        )

        if self.materializer is not None:
            try:
                await self.materializer.materialize_for_booking(booking.external_id)
            except Exception as e:
                self.logger.error(
                    "Task materialization after webhook failed",
                    booking_id=booking.external_id,
                    error=str(e),
                )

        return WebhookOutcome(200, "OK")
