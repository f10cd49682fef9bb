from __future__ import annotations
from typing import Dict

import httpx

from ..config import CONNECT_TIMEOUT, DEFAULT_USER_AGENT


def default_headers(user_agent: str = DEFAULT_USER_AGENT) -> Dict[str, str]:
    """
    Identify the client; catalogs are PDFs but some servers send octet-stream.
    """
    return {
        "User-Agent": user_agent,
        "Accept": "application/pdf,application/octet-stream;q=0.9,*/*;q=0.1",
    }


def build_client(
    timeout: float,
    user_agent: str = DEFAULT_USER_AGENT,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """
    Async client used for document downloads. Redirects are followed; a `transport`
    can be injected (tests pass an httpx.MockTransport).
    """
    return httpx.AsyncClient(
        headers=default_headers(user_agent),
        timeout=httpx.Timeout(timeout, connect=min(timeout, CONNECT_TIMEOUT)),
        follow_redirects=True,
        transport=transport,
    )
