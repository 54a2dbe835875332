"""Tests for the analysis prompt and response schema."""

import pytest

from image_insight.analysis.config import Language
from image_insight.analysis.models import GpsCoordinates, ImageMetadata
from image_insight.analysis.prompts import build_response_schema, compose, compose_request

GPS = GpsCoordinates(latitude="48.858222", longitude="2.294500")


class TestCompose:
    """Test instruction and schema composition."""

    def test_location_nullable_only_without_gps(self):
        with_gps = compose(True, GPS)
        without_gps = compose(False)

        assert with_gps.schema["properties"]["location"]["nullable"] is False
        assert without_gps.schema["properties"]["location"]["nullable"] is True

    @pytest.mark.parametrize("has_gps", [True, False])
    def test_location_is_always_required(self, has_gps):
        request = compose(has_gps, GPS if has_gps else None)
        assert request.schema["required"] == ["titles", "captions", "excerpts", "location"]

    def test_excerpt_schema_requires_translation(self):
        excerpts = compose(False).schema["properties"]["excerpts"]

        assert excerpts["minItems"] == 2
        assert excerpts["maxItems"] == 2
        assert set(excerpts["items"]["required"]) == {"extrait", "auteur", "oeuvre", "traduction"}
        assert excerpts["items"]["properties"]["traduction"] == {"type": "STRING"}

    def test_instruction_mentions_coordinates_with_gps(self):
        instruction = compose(True, GPS).instruction

        assert "48.858222" in instruction
        assert "2.294500" in instruction
        assert "'location'" in instruction
        assert "null" in instruction

    def test_instruction_forces_null_location_without_gps(self):
        instruction = compose(False).instruction

        assert "doit être null" in instruction
        assert "latitude" not in instruction

    def test_instruction_requests_all_sections(self):
        instruction = compose(False).instruction

        for key in ("'titles'", "'captions'", "'excerpts'", "'traduction'", "exactement 2"):
            assert key in instruction
        assert "chaîne vide" in instruction

    def test_english_instruction(self):
        instruction = compose(True, GPS, Language.EN).instruction

        assert "in English" in instruction
        assert "empty string" in instruction
        assert "48.858222" in instruction

    def test_deterministic(self):
        assert compose(True, GPS) == compose(True, GPS)
        assert compose(False) == compose(False)

    def test_gps_flag_requires_coordinates(self):
        with pytest.raises(ValueError):
            compose(True)


class TestComposeRequest:
    """Test composition from extracted metadata."""

    def test_without_metadata(self):
        assert compose_request(None) == compose(False)

    def test_metadata_without_gps(self):
        metadata = ImageMetadata(make="Canon")
        assert compose_request(metadata).schema == build_response_schema(False)

    def test_metadata_with_gps(self):
        metadata = ImageMetadata(make="Canon", gps=GPS)
        request = compose_request(metadata, Language.EN)

        assert request == compose(True, GPS, Language.EN)
        assert request.schema["properties"]["location"]["nullable"] is False
