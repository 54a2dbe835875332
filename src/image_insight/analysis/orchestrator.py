"""Analysis pipeline: metadata extraction, prompt composition and generation."""

import asyncio
import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from image_insight.analysis.base import ImageAnalyzer
from image_insight.analysis.config import Language, get_analysis_error_message
from image_insight.analysis.errors import AnalysisError, MalformedResponse, PersistenceError
from image_insight.analysis.exif import extract_metadata
from image_insight.analysis.models import SessionState, UploadedImage
from image_insight.analysis.prompts import compose_request
from image_insight.analysis.store import AnalysisHistoryStore

logger = logging.getLogger(__name__)

StateListener = Callable[[Dict[str, Any]], None]


class AnalysisStatus(str, Enum):
    IDLE = "idle"
    ANALYZING = "analyzing"
    READY = "ready"
    FAILED = "failed"


class AnalysisOrchestrator:
    """Owns the analysis session state of one user.

    Each call to ``analyze`` starts a new generation; the outcome of an older
    generation that finishes late is dropped instead of overwriting the state.
    """

    def __init__(
        self,
        analyzer: ImageAnalyzer,
        language: Language = Language.FR,
        history_store: Optional[AnalysisHistoryStore] = None,
        user_id: Optional[str] = None,
    ):
        self.analyzer = analyzer
        self.language = language
        self.history_store = history_store
        self.user_id = user_id
        self.state = SessionState()
        self.status = AnalysisStatus.IDLE
        self._listeners: List[StateListener] = []

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a listener called with a state snapshot on every change."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def snapshot(self) -> Dict[str, Any]:
        data = self.state.snapshot()
        data["status"] = self.status.value
        return data

    def _publish(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            listener(snapshot)

    def clear(self) -> None:
        """Forget the current file and results (new unrelated upload)."""
        self.state.generation += 1
        self.state.clear()
        self.status = AnalysisStatus.IDLE
        self._publish()

    async def analyze(self, image: UploadedImage) -> bool:
        """Analyze an uploaded image and publish the result.

        Args:
            image: The uploaded file

        Returns:
            True if this analysis' outcome was published, False if a newer
            analysis superseded it before it finished.
        """
        self.state.generation += 1
        generation = self.state.generation

        self.state.reset(keep_file=False)
        self.state.file = image
        self.state.preview = image.preview_handle
        self.state.loading = True
        self.status = AnalysisStatus.ANALYZING
        self._publish()
        logger.info(f"Analyzing {image.filename} (generation {generation})")

        try:
            metadata = await asyncio.to_thread(extract_metadata, image.data)
            request = compose_request(metadata, self.language)
            result = await self.analyzer.analyze(
                image.data, image.mime_type, request.instruction, request.schema,
            )
        except Exception as e:
            if generation != self.state.generation:
                logger.debug(f"Dropping stale failure of generation {generation}: {e}")
                return False
            if isinstance(e, MalformedResponse):
                logger.error(f"Malformed analysis response for {image.filename}: {e}")
            elif isinstance(e, AnalysisError):
                logger.error(f"Generation failed for {image.filename}: {e}")
            else:
                logger.error(f"Unexpected analysis error for {image.filename}: {e}", exc_info=True)
            self.state.result = None
            self.state.metadata = None
            self.state.error = get_analysis_error_message(self.language)
            self.state.loading = False
            self.status = AnalysisStatus.FAILED
            self._publish()
            return True

        if generation != self.state.generation:
            logger.debug(f"Dropping stale result of generation {generation}")
            return False

        self.state.result = result
        self.state.metadata = metadata
        self.state.loading = False
        self.status = AnalysisStatus.READY
        self._publish()

        if self.history_store is not None and self.user_id:
            try:
                await self.history_store.save(self.user_id, image, metadata, result)
            except PersistenceError as e:
                logger.warning(f"Analysis of {image.filename} not saved to history: {e}")
        return True
