"""Exceptions raised by the analysis pipeline."""

from typing import Optional


class InsightError(Exception):
    """Base class for image-insight errors."""


class MetadataUnavailable(InsightError):
    """The image carries no readable metadata block.

    Never leaves the metadata extractor, which maps it to ``None``.
    """


class AnalysisError(InsightError):
    """A one-shot analysis call did not produce a usable result."""


class GenerationFailure(AnalysisError):
    """The model or its transport failed (network, quota, bad request)."""


class MalformedResponse(AnalysisError):
    """The model answered, but not with the expected JSON object."""

    def __init__(self, message: str, raw_text: Optional[str] = None):
        super().__init__(message)
        self.raw_text = raw_text

    @property
    def preview(self) -> str:
        text = self.raw_text or ""
        return text[:500]


class ChatTurnFailure(InsightError):
    """Composing or streaming a chat reply failed."""


class PersistenceError(InsightError):
    """A store write could not be completed."""
