"""FastAPI web interface for image-insight."""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, File, Header, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from image_insight import __version__
from image_insight.analysis.base import ImageAnalyzer
from image_insight.analysis.chat import ChatSessionManager
from image_insight.analysis.errors import PersistenceError
from image_insight.analysis.factory import create_analyzer
from image_insight.analysis.models import ChatMessage, UploadedImage
from image_insight.analysis.orchestrator import AnalysisOrchestrator
from image_insight.analysis.store import AnalysisHistoryStore, ChatStore
from image_insight.config import InsightConfig, get_default_config

logger = logging.getLogger(__name__)

DEFAULT_USER = "anonymous"
MAX_UPLOAD_BYTES = 20 * 1024 * 1024

# Pydantic models for request/response


class SessionResponse(BaseModel):
    status: str  # "idle", "analyzing", "ready", "failed"
    file_name: Optional[str] = None
    preview: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    result: Optional[Dict[str, Any]] = None
    loading: bool = False
    error: Optional[str] = None


class ChatRequest(BaseModel):
    text: str = Field(..., description="Message to send to the assistant")


class ChatMessageResponse(BaseModel):
    id: Optional[str] = None
    text: str
    role: str
    created_at: Optional[str] = None


class ChatResponse(BaseModel):
    accepted: bool
    failed: bool = False  # reply replaced by the apology turn
    messages: List[ChatMessageResponse]


class AnalysisRecordResponse(BaseModel):
    id: str
    file_name: str
    image_ref: str
    metadata: Optional[Dict[str, Any]] = None
    result: Dict[str, Any]
    created_at: str


def _message_response(message: ChatMessage) -> ChatMessageResponse:
    return ChatMessageResponse(**message.to_dict())


class InsightService:
    """Per-user orchestrators and chat sessions of one running app."""

    def __init__(self, config: InsightConfig, analyzer: ImageAnalyzer):
        self.config = config
        self.analyzer = analyzer
        self.chat_store = ChatStore(config.db_path)
        self.history_store = AnalysisHistoryStore(config.db_path, config.data_dir)
        self._orchestrators: Dict[str, AnalysisOrchestrator] = {}
        self._chats: Dict[str, ChatSessionManager] = {}

    def orchestrator(self, user_id: str) -> AnalysisOrchestrator:
        if user_id not in self._orchestrators:
            self._orchestrators[user_id] = AnalysisOrchestrator(
                self.analyzer,
                language=self.config.language,
                history_store=self.history_store,
                user_id=user_id,
            )
        return self._orchestrators[user_id]

    def chat(self, user_id: str) -> ChatSessionManager:
        if user_id not in self._chats:
            manager = ChatSessionManager(
                self.analyzer, self.chat_store, user_id, language=self.config.language,
            )
            self._chats[user_id] = manager.open()
        return self._chats[user_id]

    def close(self) -> None:
        """Release every live chat subscription."""
        for manager in self._chats.values():
            manager.close()
        self._chats.clear()


def _default_analyzer(config: InsightConfig) -> ImageAnalyzer:
    if not config.google_api_key and not config.model.lower().startswith("mock"):
        # Try to use mock analyzer if no API key
        logger.warning("No API key found, using mock analyzer")
        return create_analyzer(model="mock", language=config.language)
    return create_analyzer(
        model=config.model,
        api_key=config.google_api_key,
        language=config.language,
        **({} if config.model.lower().startswith("mock") else {"timeout": config.timeout})
    )


def create_app(
    config: Optional[InsightConfig] = None,
    analyzer: Optional[ImageAnalyzer] = None,
) -> FastAPI:
    """Build the web application.

    Args:
        config: Configuration, loaded from the default file when omitted
        analyzer: Model client, built from the configuration when omitted
    """
    config = config or get_default_config()
    service = InsightService(config, analyzer or _default_analyzer(config))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        service.close()

    app = FastAPI(
        title="image-insight API",
        description="AI-generated titles, captions and literary excerpts for photos",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.service = service

    # Enable CORS for frontend development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # In production, restrict to specific origins
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.post("/api/analyze", response_model=SessionResponse)
    async def analyze_image(
        file: UploadFile = File(...),
        x_user_id: str = Header(DEFAULT_USER),
    ):
        """Analyze an uploaded image."""
        data = await file.read()
        if not data:
            raise HTTPException(status_code=400, detail="The uploaded file is empty.")
        if len(data) > MAX_UPLOAD_BYTES:
            raise HTTPException(status_code=413, detail="The uploaded file is too large.")

        image = UploadedImage(
            filename=file.filename or "image",
            data=data,
            mime_type=file.content_type or "image/jpeg",
        )
        orchestrator = service.orchestrator(x_user_id)
        await orchestrator.analyze(image)
        return SessionResponse(**orchestrator.snapshot())

    @app.get("/api/session", response_model=SessionResponse)
    async def get_session(x_user_id: str = Header(DEFAULT_USER)):
        """Get the current analysis state."""
        return SessionResponse(**service.orchestrator(x_user_id).snapshot())

    @app.delete("/api/session", response_model=SessionResponse)
    async def clear_session(x_user_id: str = Header(DEFAULT_USER)):
        """Forget the current image and its results."""
        orchestrator = service.orchestrator(x_user_id)
        orchestrator.clear()
        return SessionResponse(**orchestrator.snapshot())

    @app.get("/api/chat", response_model=List[ChatMessageResponse])
    async def get_chat(x_user_id: str = Header(DEFAULT_USER)):
        """Get the chat history."""
        return [_message_response(m) for m in service.chat(x_user_id).messages]

    @app.post("/api/chat", response_model=ChatResponse)
    async def send_chat(request: ChatRequest, x_user_id: str = Header(DEFAULT_USER)):
        """Send a message to the assistant."""
        manager = service.chat(x_user_id)
        try:
            accepted = await manager.send(request.text)
        except PersistenceError as e:
            logger.error(f"Chat message not saved: {e}", exc_info=True)
            raise HTTPException(status_code=500, detail="Could not save the chat message. Please try again later.")
        return ChatResponse(
            accepted=accepted,
            failed=accepted and manager.last_error is not None,
            messages=[_message_response(m) for m in manager.messages],
        )

    @app.get("/api/history", response_model=List[AnalysisRecordResponse])
    async def get_history(limit: int = 20, x_user_id: str = Header(DEFAULT_USER)):
        """List previous analyses."""
        records = service.history_store.list_records(x_user_id, limit=limit)
        return [
            AnalysisRecordResponse(
                id=r.id,
                file_name=r.file_name,
                image_ref=r.image_ref,
                metadata=r.metadata.to_dict() if r.metadata else None,
                result=r.result.to_dict(),
                created_at=r.created_at.isoformat(),
            )
            for r in records
        ]

    @app.get("/api/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "timestamp": datetime.now()}

    return app
