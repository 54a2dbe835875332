"""Gemini API client for image analysis and chat using the google.genai library."""

import asyncio
import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

try:
    import google.genai as genai
    from google.genai import types
    GEMINI_AVAILABLE = True
except ImportError:
    GEMINI_AVAILABLE = False
    genai = None
    types = None

from image_insight.analysis.base import ImageAnalyzer
from image_insight.analysis.config import Language, get_system_instruction
from image_insight.analysis.errors import GenerationFailure, MalformedResponse
from image_insight.analysis.models import AnalysisResult, ChatTurn, Role

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash"
SUGGESTED_MODELS = ["gemini-2.5-flash", "gemini-2.5-pro", "gemini-flash-latest"]


class GeminiImageAnalyzer(ImageAnalyzer):
    """Analyze images and chat using the Gemini API."""

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        language: Language = Language.FR,
        timeout: Optional[float] = None,
    ):
        if not GEMINI_AVAILABLE:
            raise ImportError(
                "google.genai not installed. "
                "Install with: pip install google-genai"
            )

        http_options = None
        if timeout:
            # HttpOptions takes milliseconds
            http_options = types.HttpOptions(timeout=int(timeout * 1000))
        self.client = genai.Client(api_key=api_key, http_options=http_options)  # type: ignore
        self._model = model
        self.language = language

    @property
    def model(self) -> str:
        return self._model

    async def analyze(
        self,
        image: bytes,
        mime_type: str,
        instruction: str,
        schema: Dict[str, Any],
    ) -> AnalysisResult:
        """Analyze an image with a schema-constrained Gemini request."""
        logger.info(f"Analyzing image ({len(image)} bytes, {mime_type}) with {self.model}")

        config = types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=schema,
        )
        try:
            response = await self.client.aio.models.generate_content(
                model=self.model,
                contents=[
                    types.Part.from_bytes(data=image, mime_type=mime_type),
                    types.Part.from_text(text=instruction),
                ],
                config=config,
            )
        except Exception as e:
            logger.error(f"Gemini API error: {e}")
            raise GenerationFailure(self._describe_error(e)) from e

        try:
            return self.parse_response(response.text)
        except MalformedResponse as e:
            logger.error(f"Failed to parse Gemini response: {e}")
            logger.error(f"Raw response text: {e.preview}")
            raise

    async def stream_reply(self, history: Sequence[ChatTurn], message: str) -> AsyncIterator[str]:
        """Stream a chat reply from a fresh Gemini chat seeded with history."""
        chat = self.client.aio.chats.create(
            model=self.model,
            history=self._to_contents(history),
            config=types.GenerateContentConfig(
                system_instruction=get_system_instruction(self.language),
            ),
        )
        logger.debug(f"Streaming chat reply with {len(history)} prior turns")
        async for chunk in await chat.send_message_stream(message):
            if chunk.text:
                yield chunk.text

    @staticmethod
    def _to_contents(history: Sequence[ChatTurn]) -> List[Any]:
        return [
            types.Content(role=Role(turn.role).value, parts=[types.Part.from_text(text=turn.text)])
            for turn in history
        ]

    def _describe_error(self, error: Exception) -> str:
        error_msg = str(error)
        if "404" in error_msg or "not found" in error_msg.lower() or "not supported" in error_msg.lower():
            suggested = [name for name in SUGGESTED_MODELS if name != self.model]
            return (
                f"Model '{self.model}' not found or not supported. "
                f"Please try one of: {', '.join(suggested)}. "
                f"Original error: {error_msg}"
            )
        return f"Gemini request failed: {error_msg}"


class MockImageAnalyzer(ImageAnalyzer):
    """Mock analyzer for testing without real API calls."""

    def __init__(self, model: str = "mock-gemini", language: Language = Language.FR):
        self._model = model
        self.language = language
        self._mock_responses = {
            Language.FR: {
                "titles": ["Lumière du soir", "Le silence des choses"],
                "captions": ["Un instant suspendu ✨", "Quand la lumière raconte une histoire"],
                "excerpts": [
                    {
                        "extrait": "Il faut toujours être ivre. Tout est là.",
                        "auteur": "Charles Baudelaire",
                        "oeuvre": "Le Spleen de Paris",
                        "traduction": "",
                    },
                    {
                        "extrait": "We are such stuff as dreams are made on.",
                        "auteur": "William Shakespeare",
                        "oeuvre": "The Tempest",
                        "traduction": "Nous sommes de l'étoffe dont sont faits les rêves.",
                    },
                ],
                "location": {"city": "Paris", "region": "Île-de-France", "country": "France"},
                "reply": "Merci pour votre message ! Je suis un assistant de démonstration.",
            },
            Language.EN: {
                "titles": ["Evening Light", "The Silence of Things"],
                "captions": ["A moment held still ✨", "When light tells a story"],
                "excerpts": [
                    {
                        "extrait": "We are such stuff as dreams are made on.",
                        "auteur": "William Shakespeare",
                        "oeuvre": "The Tempest",
                        "traduction": "",
                    },
                    {
                        "extrait": "Il faut toujours être ivre. Tout est là.",
                        "auteur": "Charles Baudelaire",
                        "oeuvre": "Le Spleen de Paris",
                        "traduction": "One must always be drunk. That is all.",
                    },
                ],
                "location": {"city": "Paris", "region": "Île-de-France", "country": "France"},
                "reply": "Thanks for your message! I am a demo assistant.",
            },
        }

    @property
    def model(self) -> str:
        return self._model

    async def analyze(
        self,
        image: bytes,
        mime_type: str,
        instruction: str,
        schema: Dict[str, Any],
    ) -> AnalysisResult:
        """Mock analysis returning canned content."""
        data = dict(self._mock_responses[self.language])
        data.pop("reply")
        # Location is only resolved when the schema requires one
        if schema["properties"]["location"].get("nullable", False):
            data["location"] = None
        return AnalysisResult.from_dict(data)

    async def stream_reply(self, history: Sequence[ChatTurn], message: str) -> AsyncIterator[str]:
        """Mock reply streamed word by word."""
        words = self._mock_responses[self.language]["reply"].split(" ")
        for i, word in enumerate(words):
            await asyncio.sleep(0)
            yield word if i == 0 else " " + word

