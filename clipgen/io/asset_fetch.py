"""Reference asset download."""

import logging
from dataclasses import dataclass

import httpx

from clipgen.jobs.errors import AssetFetchError

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "image/png"


@dataclass
class ReferenceAsset:
    url: str
    data: bytes
    mime_type: str = DEFAULT_MIME_TYPE


async def fetch_reference_asset(http: httpx.AsyncClient, url: str) -> ReferenceAsset:
    """Download the reference image into memory."""
    logger.info("Downloading reference asset from %s", url[:100])
    try:
        response = await http.get(url, follow_redirects=True)
    except httpx.HTTPError as exc:
        raise AssetFetchError(f"Failed to download reference asset: {exc}") from exc

    if response.status_code >= 400:
        raise AssetFetchError(f"Reference asset not accessible: {response.status_code}")
    if not response.content:
        raise AssetFetchError("Reference asset is empty")

    content_type = response.headers.get("content-type")
    mime_type = content_type.split(";")[0].strip() if content_type else DEFAULT_MIME_TYPE
    logger.info("Reference asset downloaded: %d bytes, type: %s", len(response.content), mime_type)
    return ReferenceAsset(url=url, data=response.content, mime_type=mime_type)
