"""Artifact download with ordered fallback attempts."""

import logging
from dataclasses import dataclass, field
from typing import Dict, Sequence

import httpx

from clipgen.jobs.errors import ArtifactDownloadError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DownloadAttempt:
    """One way of authenticating an artifact GET."""
    name: str
    params: Dict[str, str] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)


PLAIN_GET = (DownloadAttempt(name="plain"),)


async def download_with_fallbacks(
    http: httpx.AsyncClient,
    url: str,
    attempts: Sequence[DownloadAttempt] = PLAIN_GET,
) -> bytes:
    """Try each attempt in order; the first 2xx with a non-empty body wins."""
    failures = []
    for attempt in attempts:
        try:
            response = await http.get(
                url,
                params=attempt.params or None,
                headers=attempt.headers or None,
                follow_redirects=True,
            )
        except httpx.HTTPError as exc:
            logger.warning("Download attempt '%s' failed: %s", attempt.name, exc)
            failures.append(f"{attempt.name}: {exc}")
            continue

        if not response.is_success:
            logger.warning("Download attempt '%s' returned %s", attempt.name, response.status_code)
            failures.append(f"{attempt.name}: HTTP {response.status_code}")
            continue
        if not response.content:
            logger.warning("Download attempt '%s' returned an empty body", attempt.name)
            failures.append(f"{attempt.name}: empty body")
            continue

        logger.info("Downloaded %d bytes via '%s'", len(response.content), attempt.name)
        return response.content

    raise ArtifactDownloadError(
        f"All {len(failures)} download attempts failed ({'; '.join(failures)})"
    )
