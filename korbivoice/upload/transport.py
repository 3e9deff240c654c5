"""HTTP transport for webhook uploads."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict

import aiohttp

from ..exceptions import UploadFailed

logger = logging.getLogger(__name__)


@dataclass
class TransportResponse:
    """Raw HTTP response; the transport never interprets the body."""
    status: int
    body: bytes
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def is_success(self) -> bool:
        return 200 <= self.status < 300


class UploadTransport:
    """Single-attempt HTTP client for the transcription webhook."""

    def __init__(self, timeout_seconds: float = 30.0):
        """Initialize transport.

        Args:
            timeout_seconds: Total time allowed for one request
        """
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)

    async def post(self, endpoint: str, body: bytes, content_type: str) -> TransportResponse:
        """POST ``body`` to ``endpoint``.

        Raises:
            UploadFailed: On timeout, DNS failure, refused or reset connection
        """
        headers = {"Content-Type": content_type}
        logger.info(f"Uploading {len(body)} bytes to webhook")
        return await self._request("POST", endpoint, data=body, headers=headers)

    async def fetch(self, url: str) -> TransportResponse:
        """GET ``url``; used when polling for completion.

        Raises:
            UploadFailed: On network errors
        """
        return await self._request("GET", url)

    async def _request(self, method: str, url: str, **kwargs) -> TransportResponse:
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.request(method, url, **kwargs) as response:
                    payload = await response.read()
                    logger.debug(f"{method} {response.url} -> {response.status} ({len(payload)} bytes)")
                    return TransportResponse(
                        status=response.status,
                        body=payload,
                        headers=dict(response.headers),
                    )
        except asyncio.TimeoutError as e:
            raise UploadFailed(f"{method} timed out after {self.timeout.total}s",
                               original_error=e) from e
        except aiohttp.ClientError as e:
            raise UploadFailed(f"{method} failed: {e}", original_error=e) from e
