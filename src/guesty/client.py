"""
Authenticated async client for the Guesty open API.
"""
import asyncio
import time
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional

import httpx

from config.settings import guesty_config, GuestyConfig
from ..utils.errors import ApiError, AuthenticationError, ConfigurationError, RateLimitError
from ..utils.logger import get_logger
from ..utils.models import ApiUsageRecord

UsageRecorder = Callable[[ApiUsageRecord], Awaitable[None]]

_RATE_LIMIT_HEADERS = ("x-ratelimit-limit", "x-ratelimit-limit-second", "ratelimit-limit")
_REMAINING_HEADERS = ("x-ratelimit-remaining", "x-ratelimit-remaining-second", "ratelimit-remaining")


def _header_int(headers: httpx.Headers, names) -> Optional[int]:
    for name in names:
        value = headers.get(name)
        if value is not None:
            try:
                return int(value)
            except ValueError:
                continue
    return None


class GuestyClient:
    """
    Thin wrapper over httpx that owns the process-wide Guesty bearer token.

    The token is refreshed when absent or within the configured safety margin
    of expiry. Concurrent callers that find it stale wait on the same refresh
    instead of each requesting a new one. No retries happen here; callers wrap
    calls in run_with_retry.
    """

    def __init__(
        self,
        config: Optional[GuestyConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        usage_recorder: Optional[UsageRecorder] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config or guesty_config
        self.logger = get_logger("guesty_client")
        self.usage_recorder = usage_recorder
        self._clock = clock
        self._client = http_client
        self._token: Optional[str] = None
        self._token_expires_at: float = 0.0
        self._refresh_lock = asyncio.Lock()
        self.token_refreshes = 0

    async def get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.config.timeout_seconds)
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    # Token handling
    def _token_is_fresh(self) -> bool:
        remaining = self._token_expires_at - self._clock()
        return self._token is not None and remaining > self.config.token_safety_margin_seconds

    def invalidate(self) -> None:
        """Drop the cached token so the next call forces a refresh."""
        self._token = None
        self._token_expires_at = 0.0

    async def get_token(self) -> str:
        if self._token_is_fresh():
            return self._token

        async with self._refresh_lock:
            # Another caller may have refreshed while we waited
            if self._token_is_fresh():
                return self._token
            await self._refresh_token()
            return self._token

    async def _refresh_token(self) -> None:
        missing = self.config.missing_credentials()
        if missing:
            raise ConfigurationError(f"Guesty credentials not configured: missing environment variable(s) {', '.join(missing)}")

        client = await self.get_client()
        self.logger.info("Fetching new Guesty token")
        try:
            response = await client.post(
                self.config.token_url,
                data={
                    "grant_type": "client_credentials",
                    "scope": "open-api",
                    "client_id": self.config.client_id,
                    "client_secret": self.config.client_secret,
                },
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as e:
            raise ApiError(f"Guesty token request failed: {e}") from e

        await self._record_usage("oauth2/token", response)
        if response.status_code in (400, 401, 403):
            raise AuthenticationError(f"Failed to get Guesty token: {response.status_code} {response.text}")
        if response.status_code == 429:
            raise RateLimitError("Guesty token endpoint rate limited", response_body=response.text)
        if not response.is_success:
            raise ApiError(f"Failed to get Guesty token: {response.status_code}", response.status_code, response.text)

        data = response.json()
        self._token = data["access_token"]
        self._token_expires_at = self._clock() + float(data.get("expires_in", 86400))
        self.token_refreshes += 1
        self.logger.info("Guesty token refreshed", expires_in=data.get("expires_in"))

    # Requests
    async def _record_usage(self, endpoint: str, response: httpx.Response) -> None:
        if self.usage_recorder is None:
            return
        record = ApiUsageRecord(
            endpoint=endpoint,
            status_code=response.status_code,
            rate_limit=_header_int(response.headers, _RATE_LIMIT_HEADERS),
            remaining=_header_int(response.headers, _REMAINING_HEADERS),
        )
        try:
            await self.usage_recorder(record)
        except Exception as e:
            self.logger.warning("Failed to record API usage", endpoint=endpoint, error=str(e))

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        body: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Send an authenticated request and return the decoded JSON body."""
        token = await self.get_token()
        client = await self.get_client()
        url = f"{self.config.api_url.rstrip('/')}/{path.lstrip('/')}"
        endpoint = path.lstrip('/').split('?')[0]

        try:
            response = await client.request(
                method,
                url,
                params=params,
                json=body,
                headers={
                    "Authorization": f"Bearer {token}",
                    "Accept": "application/json",
                },
            )
        except httpx.HTTPError as e:
            raise ApiError(f"Guesty {method} {endpoint} failed: {e}") from e

        await self._record_usage(endpoint, response)

        if response.status_code in (401, 403):
            self.invalidate()
            raise AuthenticationError(f"Guesty rejected credentials for {method} {endpoint}: {response.status_code}")
        if response.status_code == 429:
            retry_after = response.headers.get("retry-after")
            raise RateLimitError(
                f"Guesty rate limit exceeded on {endpoint}",
                retry_after=float(retry_after) if retry_after and retry_after.isdigit() else None,
                response_body=response.text,
            )
        if not response.is_success:
            raise ApiError(
                f"Guesty API error on {method} {endpoint}: {response.status_code}",
                response.status_code,
                response.text,
            )

        if not response.content:
            return None
        return response.json()

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, body: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("POST", path, body=body)

    async def put(self, path: str, body: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("PUT", path, body=body)

    async def delete(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("DELETE", path, params=params)

    async def paginate(self, path: str, params: Optional[Dict[str, Any]] = None) -> AsyncIterator[Dict[str, Any]]:
        """Yield every item of a `results` collection, walking limit/skip pages."""
        limit = self.config.page_size
        skip = 0
        while True:
            page_params = dict(params or {})
            page_params.update({"limit": limit, "skip": skip})
            data = await self.get(path, page_params) or {}
            results = data.get("results") or []
            for item in results:
                yield item
            skip += len(results)
            total = data.get("count")
            if len(results) < limit or (total is not None and skip >= int(total)):
                break

    # Resource helpers
    async def list_listings(self) -> List[Dict[str, Any]]:
        return [item async for item in self.paginate("/listings", {"fields": "_id title nickname active isListed"})]

    async def list_reservations(self, listing_id: str, updated_since: Optional[str] = None) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {"listingId": listing_id}
        if updated_since:
            params["updatedAt[gte]"] = updated_since
        return [item async for item in self.paginate("/reservations", params)]

    async def get_reservation(self, reservation_id: str) -> Dict[str, Any]:
        return await self.get(f"/reservations/{reservation_id}")

    async def create_task(self, task: Dict[str, Any]) -> Dict[str, Any]:
        return await self.post("/tasks", task)

    async def update_task(self, task_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        return await self.put(f"/tasks/{task_id}", updates)
