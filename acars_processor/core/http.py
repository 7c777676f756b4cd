"""
Shared HTTP helper for annotators, AI clients and receivers.
"""
import logging
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)

USER_AGENT = "github.com/tyzbit/acars-processor"


async def send_request(
    method: str,
    url: str,
    client: Optional[httpx.AsyncClient] = None,
    timeout: float = 10.0,
    headers: Optional[dict[str, str]] = None,
    **kwargs: Any,
) -> httpx.Response:
    """
    Issue an HTTP request and raise for error status codes.

    A caller-provided client is reused (and left open); otherwise a client
    is created for this request only.
    """
    request_headers = {"User-Agent": USER_AGENT}
    if headers:
        request_headers.update(headers)

    if client is not None:
        response = await client.request(method, url, headers=request_headers, timeout=timeout, **kwargs)
    else:
        async with httpx.AsyncClient(timeout=timeout) as owned:
            response = await owned.request(method, url, headers=request_headers, **kwargs)

    if response.status_code >= 400:
        logger.debug(f"{method} {url} returned {response.status_code}: {response.text[:200]}")
    response.raise_for_status()
    return response
