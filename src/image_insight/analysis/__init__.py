"""Image analysis pipeline and chat session."""

from .chat import ChatSessionManager, ChatState
from .config import Language
from .errors import AnalysisError, GenerationFailure, MalformedResponse
from .exif import extract_metadata
from .factory import create_analyzer
from .models import AnalysisResult, ChatMessage, ImageMetadata, UploadedImage
from .orchestrator import AnalysisOrchestrator, AnalysisStatus
from .prompts import compose, compose_request
from .store import AnalysisHistoryStore, ChatStore

__all__ = [
    "AnalysisError",
    "AnalysisHistoryStore",
    "AnalysisOrchestrator",
    "AnalysisResult",
    "AnalysisStatus",
    "ChatMessage",
    "ChatSessionManager",
    "ChatState",
    "ChatStore",
    "GenerationFailure",
    "ImageMetadata",
    "Language",
    "MalformedResponse",
    "UploadedImage",
    "compose",
    "compose_request",
    "create_analyzer",
    "extract_metadata",
]
