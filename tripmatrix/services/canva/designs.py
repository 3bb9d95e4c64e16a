"""
Generate Canva designs from trips.

With a brand template configured, a design is produced by an autofill
job that moves through

    NOT_STARTED -> SUBMITTED -> POLLING -> SUCCEEDED | FAILED | TIMED_OUT

Without one, an empty presentation is created directly (seeded with the
cover image when it uploaded) and the result is immediately terminal.

The poll loop takes its clock and sleep function from the generator, so
tests can drive it without waiting in real time.
"""

import asyncio
import logging
import re
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from urllib.parse import urlparse

from sqlmodel import Session

from tripmatrix.core.config import settings
from tripmatrix.core.errors import (
    JobCancelled,
    JobFailed,
    JobTimedOut,
    MalformedJobResult,
    NetworkError,
    NoContentAvailable,
)
from tripmatrix.crud.trip import get_diary, get_trip, get_trip_places, update_diary_design
from tripmatrix.models import DesignResult, Trip, TripPlace
from tripmatrix.services.canva.assets import upload_assets
from tripmatrix.services.canva.client import CanvaClient
from tripmatrix.services.canva.templates import (
    build_autofill_payload,
    collect_image_urls,
    fetch_template_schema,
    match_template_fields,
    sort_places,
)
from tripmatrix.services.canva.tokens import get_valid_access_token

logger = logging.getLogger(__name__)

DESIGN_ID_PATTERN = re.compile(r"/design/([^/?#]+)")


class JobState(str, Enum):
    NOT_STARTED = "not_started"
    SUBMITTED = "submitted"
    POLLING = "polling"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.SUCCEEDED, JobState.FAILED, JobState.TIMED_OUT)


# Remote autofill job statuses
REMOTE_IN_PROGRESS = "in_progress"
REMOTE_SUCCESS = "success"
REMOTE_FAILED = "failed"


@dataclass
class AutofillJob:
    """Local view of a remote autofill job."""

    id: str
    status: str = REMOTE_IN_PROGRESS
    state: JobState = JobState.NOT_STARTED
    design_url: str | None = None
    error: str | None = None
    polls: int = 0

    def apply(self, remote: dict) -> None:
        """Update from a job object returned by Canva."""
        self.status = remote.get("status") or self.status
        design = ((remote.get("result") or {}).get("design")) or {}
        if design.get("url"):
            self.design_url = design["url"]
        error = remote.get("error") or {}
        if error.get("message"):
            self.error = error["message"]

    def transition(self, state: JobState) -> None:
        logger.debug("Autofill job %s: %s -> %s", self.id, self.state.value, state.value)
        self.state = state


def parse_design_result(design_url: str | None) -> DesignResult:
    """
    Derive the design id and view/edit links from a design URL.

    The id is the path segment after /design/; the links are built on the
    URL's own origin.

    Raises:
        MalformedJobResult: If the URL does not have that shape.
    """
    if not design_url:
        raise MalformedJobResult("Canva finished the job without a design URL.")

    parsed = urlparse(design_url)
    match = DESIGN_ID_PATTERN.search(parsed.path)
    if not parsed.scheme or not parsed.netloc or match is None:
        logger.error("Unparseable design URL from Canva: %s", design_url)
        raise MalformedJobResult()

    design_id = match.group(1)
    origin = f"{parsed.scheme}://{parsed.netloc}"
    return DesignResult(
        design_id=design_id,
        design_url=f"{origin}/design/{design_id}/view",
        editor_url=f"{origin}/design/{design_id}/edit",
    )


def design_title(trip: Trip) -> str:
    return f"{trip.title} - Travel Diary"


class DesignGenerator:
    """
    Runs the design pipeline for one trip.

    Args:
        client: Canva client (a default one is created if omitted)
        clock: Monotonic clock in seconds
        sleep: Coroutine function used between polls
        poll_interval: Seconds between job status polls
        job_timeout: Seconds before polling gives up
        template_id: Brand template to autofill. Defaults to
            settings.CANVA_BRAND_TEMPLATE_ID; when neither is set the
            blank-design path is used.
    """

    def __init__(
        self,
        client: CanvaClient | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        poll_interval: float | None = None,
        job_timeout: float | None = None,
        template_id: str | None = None,
    ):
        self.client = client or CanvaClient()
        self.clock = clock
        self.sleep = sleep
        self.poll_interval = (
            poll_interval if poll_interval is not None
            else settings.CANVA_JOB_POLL_INTERVAL_SECONDS
        )
        self.job_timeout = (
            job_timeout if job_timeout is not None else settings.CANVA_JOB_TIMEOUT_SECONDS
        )
        self.template_id = template_id or settings.CANVA_BRAND_TEMPLATE_ID

    async def generate_design(
        self,
        *,
        session: Session,
        user_id: int,
        trip: Trip,
        places: Sequence[TripPlace],
        cancel_event: asyncio.Event | None = None,
    ) -> DesignResult:
        """
        Produce a Canva design for a trip.

        Raises:
            NoContentAvailable: The trip has no places (no network calls made).
            NotConnected / ReauthorizationRequired: No usable Canva token.
            TemplateMismatch: The template has fields that cannot be filled.
            JobFailed / JobTimedOut / JobCancelled / MalformedJobResult:
                The autofill job did not produce a design.
            NetworkError: A Canva request failed.
        """
        if not places:
            raise NoContentAvailable()

        access_token = await get_valid_access_token(
            session=session, user_id=user_id, client=self.client
        )

        if self.template_id:
            return await self._autofill(access_token, trip, places, cancel_event)
        return await self._create_blank(access_token, trip, places)

    async def _autofill(
        self,
        access_token: str,
        trip: Trip,
        places: Sequence[TripPlace],
        cancel_event: asyncio.Event | None,
    ) -> DesignResult:
        schema = await fetch_template_schema(self.client, access_token, self.template_id)
        # Unknown fields fail before any upload
        match_template_fields(schema)

        asset_map = await upload_assets(
            self.client,
            access_token,
            collect_image_urls(trip, places),
            clock=self.clock,
            sleep=self.sleep,
        )
        payload = build_autofill_payload(schema, trip, places, asset_map)

        remote = await self.client.create_autofill_job(
            access_token,
            brand_template_id=self.template_id,
            data=payload,
            title=design_title(trip),
        )
        job = AutofillJob(id=remote["id"])
        job.transition(JobState.SUBMITTED)
        job.apply(remote)
        logger.info("Submitted Canva autofill job %s for trip %s", job.id, trip.id)

        await self.wait_for_job(access_token, job, cancel_event=cancel_event)
        return parse_design_result(job.design_url)

    async def _create_blank(
        self,
        access_token: str,
        trip: Trip,
        places: Sequence[TripPlace],
    ) -> DesignResult:
        asset_map = await upload_assets(
            self.client,
            access_token,
            collect_image_urls(trip, places),
            clock=self.clock,
            sleep=self.sleep,
        )

        cover_asset_id = None
        if trip.cover_image:
            cover_asset_id = asset_map.get(trip.cover_image)
        if cover_asset_id is None:
            first_place = sort_places(places)[0]
            if first_place.images:
                cover_asset_id = asset_map.get(first_place.images[0])

        design = await self.client.create_design(
            access_token, title=design_title(trip), asset_id=cover_asset_id
        )
        design_id = design["id"]
        urls = design.get("urls") or {}
        base = settings.CANVA_DESIGN_BASE_URL.rstrip("/")

        logger.info("Created blank Canva design %s for trip %s", design_id, trip.id)
        return DesignResult(
            design_id=design_id,
            design_url=urls.get("view_url") or f"{base}/design/{design_id}/view",
            editor_url=urls.get("edit_url") or f"{base}/design/{design_id}/edit",
        )

    async def _pause(self, cancel_event: asyncio.Event | None) -> None:
        if cancel_event is None:
            await self.sleep(self.poll_interval)
            return

        sleeper = asyncio.ensure_future(self.sleep(self.poll_interval))
        waiter = asyncio.ensure_future(cancel_event.wait())
        try:
            await asyncio.wait({sleeper, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            sleeper.cancel()
            waiter.cancel()

    async def wait_for_job(
        self,
        access_token: str,
        job: AutofillJob,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> AutofillJob:
        """
        Poll a submitted job until it is terminal or the timeout passes.

        A failed poll request is logged and retried on the next tick. No
        request is sent once the deadline has been reached.

        Returns:
            The job, in SUCCEEDED state

        Raises:
            JobFailed: Canva reported the job failed.
            JobTimedOut: The deadline passed first.
            JobCancelled: cancel_event was set.
        """
        deadline = self.clock() + self.job_timeout
        job.transition(JobState.POLLING)

        while True:
            if job.status == REMOTE_SUCCESS:
                job.transition(JobState.SUCCEEDED)
                logger.info("Canva autofill job %s succeeded after %d polls", job.id, job.polls)
                return job
            if job.status == REMOTE_FAILED:
                job.transition(JobState.FAILED)
                logger.warning("Canva autofill job %s failed: %s", job.id, job.error or "no detail")
                raise JobFailed(job.status, job.error)

            if cancel_event is not None and cancel_event.is_set():
                logger.info("Stopped polling Canva autofill job %s (cancelled)", job.id)
                raise JobCancelled(job.id)

            if self.clock() >= deadline:
                job.transition(JobState.TIMED_OUT)
                logger.warning(
                    "Canva autofill job %s still %s after %.0f seconds",
                    job.id, job.status, self.job_timeout,
                )
                raise JobTimedOut(job.id)

            await self._pause(cancel_event)

            if cancel_event is not None and cancel_event.is_set():
                logger.info("Stopped polling Canva autofill job %s (cancelled)", job.id)
                raise JobCancelled(job.id)
            if self.clock() >= deadline:
                continue

            job.polls += 1
            try:
                remote = await self.client.get_autofill_job(access_token, job.id)
            except NetworkError as e:
                logger.warning("Polling Canva autofill job %s failed: %s", job.id, e.message)
                continue
            job.apply(remote)


async def generate_diary_design(
    *,
    session: Session,
    user_id: int,
    trip_id: int,
    diary_id: int | None = None,
    generator: DesignGenerator | None = None,
    cancel_event: asyncio.Event | None = None,
) -> DesignResult:
    """
    Generate a design for a stored trip and attach it to a diary.

    Raises:
        ValueError: If the trip or diary does not exist.
        DesignIntegrationError: Any failure from DesignGenerator.generate_design.
    """
    trip = get_trip(session=session, trip_id=trip_id)
    if trip is None:
        raise ValueError(f"Trip {trip_id} not found")

    diary = None
    if diary_id is not None:
        diary = get_diary(session=session, diary_id=diary_id)
        if diary is None:
            raise ValueError(f"Diary {diary_id} not found")

    places = get_trip_places(session=session, trip_id=trip_id)
    generator = generator or DesignGenerator()
    result = await generator.generate_design(
        session=session,
        user_id=user_id,
        trip=trip,
        places=places,
        cancel_event=cancel_event,
    )

    if diary is not None:
        update_diary_design(
            session=session,
            diary=diary,
            design_id=result.design_id,
            design_url=result.design_url,
            editor_url=result.editor_url,
        )

    return result
