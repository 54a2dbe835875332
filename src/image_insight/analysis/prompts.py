"""Instruction text and response schema for the one-shot image analysis request."""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from image_insight.analysis.config import (
    ANALYSIS_PROMPTS,
    LOCATION_PROMPTS,
    NO_LOCATION_PROMPTS,
    Language,
)
from image_insight.analysis.models import EXCERPT_COUNT, GpsCoordinates, ImageMetadata


@dataclass(frozen=True)
class PromptRequest:
    """Instruction text plus the structured-output schema sent with it."""
    instruction: str
    schema: Dict[str, Any]


def build_response_schema(has_gps: bool) -> Dict[str, Any]:
    """Build the Gemini response schema for an analysis.

    ``location`` is always a required key. It may only hold null when no GPS
    coordinates were recovered from the image.

    Args:
        has_gps: Whether the image carried GPS coordinates

    Returns:
        Schema dictionary in the Gemini OpenAPI subset
    """
    string_array = {"type": "ARRAY", "items": {"type": "STRING"}}
    return {
        "type": "OBJECT",
        "properties": {
            "titles": dict(string_array),
            "captions": dict(string_array),
            "excerpts": {
                "type": "ARRAY",
                "minItems": EXCERPT_COUNT,
                "maxItems": EXCERPT_COUNT,
                "items": {
                    "type": "OBJECT",
                    "properties": {
                        "extrait": {"type": "STRING"},
                        "auteur": {"type": "STRING"},
                        "oeuvre": {"type": "STRING"},
                        "traduction": {"type": "STRING"},
                    },
                    "required": ["extrait", "auteur", "oeuvre", "traduction"],
                },
            },
            "location": {
                "type": "OBJECT",
                "nullable": not has_gps,
                "properties": {
                    "city": {"type": "STRING"},
                    "region": {"type": "STRING"},
                    "country": {"type": "STRING"},
                },
            },
        },
        "required": ["titles", "captions", "excerpts", "location"],
    }


def compose(
    has_gps: bool,
    gps: Optional[GpsCoordinates] = None,
    language: Language = Language.FR,
) -> PromptRequest:
    """Compose the analysis instruction and its response schema.

    Args:
        has_gps: Whether GPS coordinates were recovered
        gps: The coordinates, required when ``has_gps`` is true
        language: Output language of the generated content

    Returns:
        PromptRequest with instruction text and schema

    Raises:
        ValueError: If ``has_gps`` is true but no coordinates are given
    """
    if has_gps and gps is None:
        raise ValueError("GPS coordinates are required when has_gps is set")

    parts = [ANALYSIS_PROMPTS[language]]
    if has_gps:
        parts.append(LOCATION_PROMPTS[language].format(
            latitude=gps.latitude, longitude=gps.longitude,
        ))
    else:
        parts.append(NO_LOCATION_PROMPTS[language])

    return PromptRequest(
        instruction="\n".join(parts),
        schema=build_response_schema(has_gps),
    )


def compose_request(
    metadata: Optional[ImageMetadata],
    language: Language = Language.FR,
) -> PromptRequest:
    """Compose the request for an image given its (possibly missing) metadata."""
    gps = metadata.gps if metadata is not None else None
    return compose(gps is not None, gps, language)
