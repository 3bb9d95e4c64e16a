"""
Tests for mapping trip content onto Canva template fields.
"""

from datetime import datetime, timezone

import httpx
import pytest

from tripmatrix.core.errors import NoContentAvailable, TemplateMismatch
from tripmatrix.models import Trip, TripPlace
from tripmatrix.services.canva.client import CanvaClient
from tripmatrix.services.canva.templates import (
    build_autofill_payload,
    collect_image_urls,
    fetch_template_schema,
    format_visit_time,
    match_template_fields,
    normalize_field_name,
)


def _trip(**kwargs) -> Trip:
    kwargs.setdefault("title", "Paris Weekend")
    return Trip(id=1, creator_id=1, **kwargs)


def _place(name: str, visited_at: datetime, **kwargs) -> TripPlace:
    return TripPlace(trip_id=1, name=name, visited_at=visited_at, **kwargs)


EIFFEL = _place(
    "Eiffel Tower",
    datetime(2024, 5, 1, 14, 30, tzinfo=timezone.utc),
    images=["https://images.example.com/eiffel.jpg"],
)


class TestBuildAutofillPayload:
    """Tests for build_autofill_payload."""

    def test_time_and_place_with_unresolvable_image(self):
        """An image field with no uploaded asset is left out entirely."""
        schema = {"time": "text", "place": "text", "cover_image": "image"}

        payload = build_autofill_payload(schema, _trip(), [EIFFEL], asset_map={})

        assert payload == {
            "time": {"type": "text", "text": "2:30 PM"},
            "place": {"type": "text", "text": "Eiffel Tower"},
        }

    def test_image_uses_first_place_image(self):
        schema = {"cover_image": "image"}
        asset_map = {
            "https://images.example.com/eiffel.jpg": "asset-eiffel",
            "https://images.example.com/cover.jpg": "asset-cover",
        }
        trip = _trip(cover_image="https://images.example.com/cover.jpg")

        payload = build_autofill_payload(schema, trip, [EIFFEL], asset_map)

        assert payload == {"cover_image": {"type": "image", "asset_id": "asset-eiffel"}}

    def test_image_falls_back_to_trip_cover(self):
        schema = {"Cover Photo": "image"}
        trip = _trip(cover_image="https://images.example.com/cover.jpg")

        payload = build_autofill_payload(
            schema, trip, [EIFFEL], {"https://images.example.com/cover.jpg": "asset-cover"}
        )

        assert payload == {"Cover Photo": {"type": "image", "asset_id": "asset-cover"}}

    def test_comment_prefers_rewritten(self):
        schema = {"comments": "text"}
        rewritten = _place(
            "Louvre", datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc),
            comment="raw", rewritten_comment="polished",
        )
        raw_only = _place("Louvre", rewritten.visited_at, comment="raw")
        neither = _place("Louvre", rewritten.visited_at)

        assert build_autofill_payload(schema, _trip(), [rewritten], {})["comments"]["text"] == "polished"
        assert build_autofill_payload(schema, _trip(), [raw_only], {})["comments"]["text"] == "raw"
        assert build_autofill_payload(schema, _trip(), [neither], {})["comments"]["text"] == ""

    def test_uses_earliest_place(self):
        later = _place("Louvre", datetime(2024, 5, 2, 10, 0, tzinfo=timezone.utc))

        payload = build_autofill_payload({"place": "text"}, _trip(), [later, EIFFEL], {})

        assert payload["place"]["text"] == "Eiffel Tower"

    def test_field_names_match_case_insensitively(self):
        schema = {"TRIP_TITLE": "text", "Visit Time": "text", "rating": "text"}
        place = _place("Louvre", datetime(2024, 5, 1, 0, 5, tzinfo=timezone.utc), rating=4)

        payload = build_autofill_payload(schema, _trip(), [place], {})

        assert payload["TRIP_TITLE"]["text"] == "Paris Weekend"
        assert payload["Visit Time"]["text"] == "12:05 AM"
        assert payload["rating"]["text"] == "★★★★"

    def test_zero_places_raises_no_content(self):
        with pytest.raises(NoContentAvailable):
            build_autofill_payload({"place": "text"}, _trip(), [], {})

    def test_unrecognized_field_raises_template_mismatch(self):
        schema = {"place": "text", "weather_forecast": "text", "map": "image"}

        with pytest.raises(TemplateMismatch) as exc_info:
            build_autofill_payload(schema, _trip(), [EIFFEL], {})

        assert exc_info.value.fields == ["weather_forecast", "map"]


class TestMatchTemplateFields:
    def test_field_type_must_match(self):
        """A text field called "image" is not an image slot."""
        with pytest.raises(TemplateMismatch):
            match_template_fields({"image": "text"})

    def test_normalize_field_name(self):
        assert normalize_field_name("Cover-Image ") == "cover_image"


class TestFormatVisitTime:
    def test_afternoon(self):
        assert format_visit_time(datetime(2024, 5, 1, 14, 30, tzinfo=timezone.utc), "UTC") == "2:30 PM"

    def test_noon_and_midnight(self):
        assert format_visit_time(datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc), "UTC") == "12:00 PM"
        assert format_visit_time(datetime(2024, 5, 1, 0, 0, tzinfo=timezone.utc), "UTC") == "12:00 AM"

    def test_display_timezone(self):
        visited = datetime(2024, 5, 1, 14, 30, tzinfo=timezone.utc)
        assert format_visit_time(visited, "Europe/Paris") == "4:30 PM"

    def test_naive_datetime_is_utc(self):
        assert format_visit_time(datetime(2024, 5, 1, 9, 7), "UTC") == "9:07 AM"


class TestCollectImageUrls:
    def test_cover_first_then_places_in_visit_order(self):
        trip = _trip(cover_image="https://images.example.com/cover.jpg")
        first = _place("A", datetime(2024, 5, 1, 9, tzinfo=timezone.utc),
                       images=["https://images.example.com/a1.jpg", "https://images.example.com/a2.jpg"])
        second = _place("B", datetime(2024, 5, 1, 12, tzinfo=timezone.utc),
                        images=["https://images.example.com/b1.jpg"])

        assert collect_image_urls(trip, [second, first]) == [
            "https://images.example.com/cover.jpg",
            "https://images.example.com/a1.jpg",
            "https://images.example.com/a2.jpg",
            "https://images.example.com/b1.jpg",
        ]


class TestFetchTemplateSchema:
    @pytest.mark.asyncio
    async def test_keeps_text_and_image_fields(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/rest/v1/brand-templates/TPL1/dataset"
            assert request.headers["Authorization"] == "Bearer token"
            return httpx.Response(200, json={"dataset": {
                "time": {"type": "text"},
                "cover_image": {"type": "image"},
                "visits": {"type": "chart"},
            }})

        client = CanvaClient(transport=httpx.MockTransport(handler))

        schema = await fetch_template_schema(client, "token", "TPL1")

        assert schema == {"time": "text", "cover_image": "image"}
