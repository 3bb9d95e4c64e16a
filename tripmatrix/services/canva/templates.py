"""
Map trip content onto a Canva brand template's autofill fields.

Template fields are matched against FIELD_STRATEGIES, an explicit table
of (field type, name keywords, fill function). A text or image field
that no strategy recognizes is an error: the template and this table
must agree before any autofill job is submitted.
"""

import logging
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from tripmatrix.core.config import settings
from tripmatrix.core.errors import NoContentAvailable, TemplateMismatch
from tripmatrix.models import Trip, TripPlace
from tripmatrix.services.canva.client import CanvaClient

logger = logging.getLogger(__name__)

TEXT = "text"
IMAGE = "image"
SUPPORTED_FIELD_TYPES = (TEXT, IMAGE)


@dataclass
class FillContext:
    """Inputs available to a fill strategy."""

    trip: Trip
    place: TripPlace
    asset_map: dict[str, str]


@dataclass(frozen=True)
class FieldStrategy:
    """How to fill one kind of template field."""

    field_type: str
    keywords: tuple[str, ...]
    fill: Callable[[FillContext], str | None]

    def matches(self, field_name: str, field_type: str) -> bool:
        if field_type != self.field_type:
            return False
        normalized = normalize_field_name(field_name)
        tokens = set(normalized.split("_"))
        return any(kw == normalized or kw in tokens for kw in self.keywords)


def normalize_field_name(name: str) -> str:
    """Lower-case a field name and collapse separators to underscores."""
    return re.sub(r"[^a-z0-9]+", "_", name.lower()).strip("_")


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def format_visit_time(visited_at: datetime, tz_name: str | None = None) -> str:
    """Format a visit time as h:MM AM/PM in the display timezone, e.g. "2:30 PM"."""
    local = _as_utc(visited_at).astimezone(ZoneInfo(tz_name or settings.CANVA_DISPLAY_TIMEZONE))
    hour = local.hour % 12 or 12
    suffix = "AM" if local.hour < 12 else "PM"
    return f"{hour}:{local.minute:02d} {suffix}"


def format_rating(rating: int | None) -> str:
    if not rating:
        return ""
    return "★" * rating


def _fill_time(ctx: FillContext) -> str:
    return format_visit_time(ctx.place.visited_at)


def _fill_place(ctx: FillContext) -> str:
    return ctx.place.name


def _fill_comment(ctx: FillContext) -> str:
    return ctx.place.rewritten_comment or ctx.place.comment or ""


def _fill_title(ctx: FillContext) -> str:
    return ctx.trip.title


def _fill_description(ctx: FillContext) -> str:
    return ctx.trip.description or ""


def _fill_rating(ctx: FillContext) -> str:
    return format_rating(ctx.place.rating)


def _fill_cover_image(ctx: FillContext) -> str | None:
    if ctx.place.images:
        asset_id = ctx.asset_map.get(ctx.place.images[0])
        if asset_id:
            return asset_id
    if ctx.trip.cover_image:
        return ctx.asset_map.get(ctx.trip.cover_image)
    return None


FIELD_STRATEGIES: tuple[FieldStrategy, ...] = (
    FieldStrategy(TEXT, ("time",), _fill_time),
    FieldStrategy(TEXT, ("place",), _fill_place),
    FieldStrategy(TEXT, ("comments", "comment"), _fill_comment),
    FieldStrategy(TEXT, ("title",), _fill_title),
    FieldStrategy(TEXT, ("description",), _fill_description),
    FieldStrategy(TEXT, ("rating",), _fill_rating),
    FieldStrategy(IMAGE, ("cover_image", "cover", "photo", "image"), _fill_cover_image),
)


async def fetch_template_schema(
    client: CanvaClient,
    access_token: str,
    template_id: str,
) -> dict[str, str]:
    """
    Fetch a brand template's fillable fields.

    Returns:
        Mapping of field name to "text" or "image". Other field types
        (charts, for example) are left out.
    """
    dataset = await client.get_brand_template_dataset(access_token, template_id)

    schema: dict[str, str] = {}
    for name, definition in dataset.items():
        field_type = (definition or {}).get("type")
        if field_type in SUPPORTED_FIELD_TYPES:
            schema[name] = field_type
        else:
            logger.info("Ignoring template field %r of type %r", name, field_type)
    return schema


def match_template_fields(schema: dict[str, str]) -> dict[str, FieldStrategy]:
    """
    Pair every schema field with its fill strategy.

    Raises:
        TemplateMismatch: If any field has no strategy.
    """
    matched: dict[str, FieldStrategy] = {}
    unrecognized: list[str] = []

    for name, field_type in schema.items():
        strategy = next((s for s in FIELD_STRATEGIES if s.matches(name, field_type)), None)
        if strategy is None:
            unrecognized.append(name)
        else:
            matched[name] = strategy

    if unrecognized:
        logger.error("Template fields with no fill strategy: %s", ", ".join(unrecognized))
        raise TemplateMismatch(unrecognized)

    return matched


def sort_places(places: Sequence[TripPlace]) -> list[TripPlace]:
    """Places in visit order."""
    return sorted(places, key=lambda place: _as_utc(place.visited_at))


def collect_image_urls(trip: Trip, places: Sequence[TripPlace]) -> list[str]:
    """Image URLs to upload: the trip cover first, then each place's images in visit order."""
    urls: list[str] = []
    if trip.cover_image:
        urls.append(trip.cover_image)
    for place in sort_places(places):
        urls.extend(url for url in place.images or [] if url)
    return list(dict.fromkeys(urls))


def build_autofill_payload(
    schema: dict[str, str],
    trip: Trip,
    places: Sequence[TripPlace],
    asset_map: dict[str, str],
) -> dict[str, dict[str, str]]:
    """
    Build the autofill `data` object for a template.

    Single-valued fields are filled from the earliest place. Image fields
    with no uploaded asset are omitted.

    Raises:
        NoContentAvailable: The trip has no places.
        TemplateMismatch: The schema has fields no strategy recognizes.
    """
    if not places:
        raise NoContentAvailable()

    strategies = match_template_fields(schema)
    ctx = FillContext(trip=trip, place=sort_places(places)[0], asset_map=asset_map)

    payload: dict[str, dict[str, str]] = {}
    for name, strategy in strategies.items():
        value = strategy.fill(ctx)
        if strategy.field_type == TEXT:
            payload[name] = {"type": TEXT, "text": value or ""}
        elif value:
            payload[name] = {"type": IMAGE, "asset_id": value}
        else:
            logger.debug("No asset for image field %r; leaving it unfilled", name)

    return payload
