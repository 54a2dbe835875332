"""Base analyzer interface for image analysis and chat with generative models."""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Dict, Sequence

from .errors import MalformedResponse
from .models import AnalysisResult, ChatTurn

logger = logging.getLogger(__name__)


class ImageAnalyzer(ABC):
    """Abstract base class for generative model clients."""

    @property
    @abstractmethod
    def model(self) -> str:
        """Get the model name used by this analyzer."""
        pass

    @abstractmethod
    async def analyze(
        self,
        image: bytes,
        mime_type: str,
        instruction: str,
        schema: Dict[str, Any],
    ) -> AnalysisResult:
        """Run one structured-output analysis of an image.

        Args:
            image: Raw image bytes, sent inline
            mime_type: MIME type of the image
            instruction: Instruction text from the prompt composer
            schema: Response schema the answer must conform to

        Returns:
            AnalysisResult parsed from the model answer

        Raises:
            GenerationFailure: If the model call fails
            MalformedResponse: If the answer is not the expected JSON object
        """
        pass

    @abstractmethod
    def stream_reply(self, history: Sequence[ChatTurn], message: str) -> AsyncIterator[str]:
        """Stream a chat reply as text fragments.

        The returned iterator is single-pass and finite. Errors raised while
        iterating propagate to the consumer.

        Args:
            history: Prior user/model turns, oldest first
            message: The new user message

        Returns:
            Async iterator of text fragments
        """
        pass

    def parse_response(self, response_text: str) -> AnalysisResult:
        """Parse a structured-output answer into AnalysisResult.

        Raises:
            MalformedResponse: If the text is empty, not JSON, or has the wrong shape
        """
        text = (response_text or "").strip()
        if not text:
            raise MalformedResponse("Empty response from model", raw_text=response_text)

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise MalformedResponse(f"Invalid JSON in model response: {e}", raw_text=response_text) from e

        try:
            return AnalysisResult.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedResponse(f"Unexpected response shape: {e}", raw_text=response_text) from e
