"""
Upload trip images to Canva as assets.

An image that cannot be fetched or uploaded is skipped: the batch carries
on and the failures are reported together as one PartialAssetUploadFailure
warning. Callers get back only the URLs that made it.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Iterable
from urllib.parse import unquote, urlparse

from tripmatrix.core.config import settings
from tripmatrix.core.errors import (
    DesignIntegrationError,
    NetworkError,
    PartialAssetUploadFailure,
)
from tripmatrix.services.canva.client import CanvaClient

logger = logging.getLogger(__name__)

ASSET_UPLOAD_SUCCESS = "success"
ASSET_UPLOAD_FAILED = "failed"


def asset_name_for(url: str) -> str:
    """Derive a readable asset name from an image URL."""
    name = unquote(urlparse(url).path.rsplit("/", 1)[-1])
    return name or "trip-image"


async def _wait_for_asset(
    client: CanvaClient,
    access_token: str,
    job: dict,
    *,
    poll_interval: float,
    timeout: float,
    clock: Callable[[], float],
    sleep: Callable[[float], Awaitable[None]],
) -> str:
    deadline = clock() + timeout

    while True:
        status = job.get("status")
        asset = job.get("asset") or {}
        if status == ASSET_UPLOAD_SUCCESS and asset.get("id"):
            return asset["id"]
        if status == ASSET_UPLOAD_FAILED:
            error = job.get("error") or {}
            raise NetworkError(
                f"Canva rejected the asset upload: {error.get('message', 'unknown error')}"
            )

        job_id = job.get("id")
        if not job_id:
            raise NetworkError("Canva returned an asset upload job without an id")

        if clock() + poll_interval > deadline:
            raise NetworkError("Timed out waiting for Canva to process the asset")

        await sleep(poll_interval)
        job = await client.get_asset_upload(access_token, job_id)


async def upload_asset(
    client: CanvaClient,
    access_token: str,
    url: str,
    *,
    poll_interval: float | None = None,
    timeout: float | None = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> str:
    """
    Download one image and upload it to Canva.

    Returns:
        The Canva asset id

    Raises:
        NetworkError: The image could not be fetched or Canva rejected it.
    """
    content, content_type = await client.download_image(url)
    if not content:
        raise NetworkError(f"Image at {url} is empty")
    logger.debug("Downloaded %d bytes (%s) from %s", len(content), content_type, url)

    job = await client.create_asset_upload(
        access_token, name=asset_name_for(url), content=content
    )

    asset = job.get("asset") or {}
    if asset.get("id"):
        return asset["id"]

    return await _wait_for_asset(
        client,
        access_token,
        job,
        poll_interval=(
            poll_interval if poll_interval is not None
            else settings.CANVA_ASSET_POLL_INTERVAL_SECONDS
        ),
        timeout=timeout if timeout is not None else settings.CANVA_ASSET_UPLOAD_TIMEOUT_SECONDS,
        clock=clock,
        sleep=sleep,
    )


async def upload_assets(
    client: CanvaClient,
    access_token: str,
    urls: Iterable[str],
    **upload_options,
) -> dict[str, str]:
    """
    Upload a batch of images, tolerating individual failures.

    Args:
        client: Canva client
        access_token: Valid Canva access token
        urls: Image URLs; duplicates are uploaded once
        **upload_options: Passed through to upload_asset (poll_interval,
            timeout, clock, sleep)

    Returns:
        Mapping of source URL to Canva asset id, for successful uploads only
    """
    unique_urls = list(dict.fromkeys(url for url in urls if url))
    asset_map: dict[str, str] = {}
    failed: list[str] = []

    for url in unique_urls:
        try:
            asset_map[url] = await upload_asset(client, access_token, url, **upload_options)
        except DesignIntegrationError as e:
            logger.warning("Skipping image %s: %s", url, e.message)
            failed.append(url)

    if failed:
        partial = PartialAssetUploadFailure(failed, len(unique_urls))
        logger.warning("%s: %s", partial.code, partial.message)

    return asset_map
