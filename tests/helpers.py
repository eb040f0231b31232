"""
Test helpers for faking the Guesty HTTP API.
"""
import json
from typing import Callable, Dict, List

import httpx


def token_response(expires_in: int = 86400, token: str = "token-1") -> httpx.Response:
    return httpx.Response(200, json={"access_token": token, "expires_in": expires_in, "token_type": "Bearer"})


def make_transport(routes: Dict[str, Callable[[httpx.Request], httpx.Response]], calls: List[httpx.Request]):
    """MockTransport dispatching on URL path suffix; every request is appended to `calls`."""
    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        for suffix, respond in routes.items():
            if request.url.path.endswith(suffix):
                return respond(request)
        return httpx.Response(404, content=json.dumps({"error": "not found"}).encode())

    return httpx.MockTransport(handler)
