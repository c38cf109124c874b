"""Streaming proxy for provider-hosted videos (seekable playback in the kiosk)."""

import logging
import re
from typing import AsyncIterator, Optional
from urllib.parse import unquote

import httpx

from photobooth_video.utils.errors import MediaProxyError

logger = logging.getLogger(__name__)

ALLOWED_SCHEME = re.compile(r"^https?://", re.IGNORECASE)
BLOCKED_TARGET = re.compile(r"://(localhost|127\.|0\.0\.0\.0|192\.168\.|10\.)", re.IGNORECASE)

PASSTHROUGH_HEADERS = ("content-length", "content-range")


def validate_proxy_target(raw_url: Optional[str]) -> str:
    """
    Decode and vet a proxy target URL.

    Raises:
        MediaProxyError: 400 for a missing url or bad scheme, 403 for local
            and private network targets
    """
    if not raw_url:
        raise MediaProxyError(400, "Missing url param")

    target = unquote(raw_url)
    if not ALLOWED_SCHEME.match(target):
        raise MediaProxyError(400, "Invalid protocol")
    if BLOCKED_TARGET.search(target):
        raise MediaProxyError(403, "Forbidden target")
    return target


class ProxiedMedia:
    """An open upstream response; close() must run once streaming ends."""

    def __init__(self, client: httpx.AsyncClient, response: httpx.Response) -> None:
        self._client = client
        self._response = response

    @property
    def status_code(self) -> int:
        return self._response.status_code

    @property
    def headers(self) -> dict[str, str]:
        upstream = self._response.headers
        headers = {
            "Content-Type": upstream.get("content-type", "video/mp4"),
            "Cache-Control": "public, max-age=3600",
            "Vary": "Range",
            # Browsers only allow seeking when ranges are advertised
            "Accept-Ranges": upstream.get("accept-ranges", "bytes"),
        }
        for name in PASSTHROUGH_HEADERS:
            value = upstream.get(name)
            if value:
                headers[name.title()] = value
        return headers

    def iter_bytes(self) -> AsyncIterator[bytes]:
        return self._response.aiter_bytes()

    async def close(self) -> None:
        await self._response.aclose()
        await self._client.aclose()


class MediaProxy:
    """Opens upstream video streams, forwarding Range requests."""

    def __init__(
        self,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.timeout = timeout
        self._transport = transport

    async def open(
        self, raw_url: Optional[str], range_header: Optional[str] = None
    ) -> ProxiedMedia:
        """
        Open a streaming response for a vetted target.

        Args:
            raw_url: URL-encoded target from the query string
            range_header: Incoming Range header, forwarded upstream

        Returns:
            ProxiedMedia ready to stream

        Raises:
            MediaProxyError: On a rejected target or an upstream failure
        """
        target = validate_proxy_target(raw_url)
        client = httpx.AsyncClient(
            transport=self._transport, timeout=self.timeout, follow_redirects=True
        )

        try:
            headers = {"Range": range_header} if range_header else {}
            request = client.build_request("GET", target, headers=headers)
            response = await client.send(request, stream=True)

            # Stale caches can ask for bytes past the end; fall back to the whole file
            if response.status_code == 416:
                logger.warning(f"416 Range Not Satisfiable for {target}; retrying full stream")
                await response.aclose()
                response = await client.send(client.build_request("GET", target), stream=True)

            if not response.is_success:
                await response.aclose()
                raise MediaProxyError(
                    502, f"Upstream Error: {response.status_code} {response.reason_phrase}"
                )
        except httpx.InvalidURL as e:
            await client.aclose()
            logger.warning(f"Rejected malformed proxy target {target!r}: {e}")
            raise MediaProxyError(400, "Invalid url")
        except httpx.HTTPError as e:
            await client.aclose()
            logger.error(f"Proxy fetch failed for {target}: {e}")
            raise MediaProxyError(502, "Proxy Stream Error")
        except MediaProxyError:
            await client.aclose()
            raise

        return ProxiedMedia(client, response)


def create_media_proxy() -> MediaProxy:
    """Create a MediaProxy using application settings."""
    from photobooth_video.config import get_settings

    settings = get_settings()
    return MediaProxy(timeout=max(settings.http_timeout_seconds, 60.0))
