"""
Inbound webhook endpoints.
"""
from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse

from ..dependencies import get_webhook_ingestor
from ...webhooks.ingestor import WebhookIngestor


router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.api_route(
    "/guesty",
    methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    response_class=PlainTextResponse,
    summary="Guesty reservation webhook",
    description="Receive a Guesty booking or reservation event and upsert it",
    responses={
        200: {"description": "Booking upserted"},
        400: {"description": "Missing required booking fields or processing error"},
        401: {"description": "Missing or invalid shared secret"},
        405: {"description": "Method not allowed"},
    }
)
async def guesty_webhook(
    request: Request,
    ingestor: WebhookIngestor = Depends(get_webhook_ingestor)
) -> PlainTextResponse:
    payload = None
    if request.method == "POST":
        try:
            payload = await request.json()
        except ValueError:
            payload = None

    outcome = await ingestor.ingest(request.method, request.headers.get("Authorization"), payload)
    return PlainTextResponse(outcome.body, status_code=outcome.status_code)
