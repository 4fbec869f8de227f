import asyncio
import logging
import re
from typing import Any

import aiohttp

from .constants import PROVIDER_TIMEOUT
from .exceptions import AccessDenied, APIError, GameNotFound, NetworkError, RateLimitExceeded

logger = logging.getLogger(__name__)

HEADERS = {
    "User-Agent": "Factiony/1.0 (+https://factiony.com)",
    "Accept": "application/json",
    "Accept-Language": "en-US,en;q=0.9",
}

SECRET_PARAM_REGEX = re.compile(r"(key|token|access_token)=[^&\s]+", re.IGNORECASE)


def mask_url(url: str) -> str:
    """Hides API keys carried in query strings before a URL reaches the logs."""
    return SECRET_PARAM_REGEX.sub(r"\1=***", str(url))


async def request_json(
    session: aiohttp.ClientSession,
    method: str,
    url: str,
    provider: str,
    identifier: str = "",
    timeout: float = PROVIDER_TIMEOUT,
    **kwargs: Any,
) -> Any:
    """
    Performs one bounded provider call and decodes the JSON body.

    Status codes map onto the exception taxonomy; timeouts and connection
    failures become NetworkError. Nothing is retried here.
    """
    headers = {**HEADERS, **kwargs.pop("headers", {})}
    try:
        async with session.request(
            method, url, headers=headers, timeout=aiohttp.ClientTimeout(total=timeout), **kwargs
        ) as resp:
            if resp.status == 404:
                raise GameNotFound(identifier or mask_url(url), provider)
            if resp.status == 429:
                retry_after = resp.headers.get("Retry-After")
                raise RateLimitExceeded(provider, float(retry_after) if retry_after and retry_after.isdigit() else None)
            if resp.status in (401, 403):
                raise AccessDenied(provider, resp.status)
            if resp.status != 200:
                raise APIError(provider, resp.status, f"{method} {mask_url(url)}")

            try:
                return await resp.json(content_type=None)
            except ValueError as e:
                raise APIError(provider, resp.status, f"Malformed JSON: {e}") from e
    except asyncio.TimeoutError as e:
        raise NetworkError(f"{provider} request timed out after {timeout}s", e) from e
    except aiohttp.ClientError as e:
        raise NetworkError(f"{provider} connection failed: {e}", e) from e
