"""SQLite storage for chat history and analysis records."""

import asyncio
import json
import logging
import re
import sqlite3
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from image_insight.analysis.errors import PersistenceError
from image_insight.analysis.models import (
    AnalysisRecord,
    AnalysisResult,
    ChatMessage,
    ImageMetadata,
    Role,
    Timestamp,
    UploadedImage,
)

logger = logging.getLogger(__name__)

HistoryListener = Callable[[List[ChatMessage]], None]


class ChatStore:
    """Append-only chat history keyed by user, with live subscriptions.

    Every write is assigned an id and a server timestamp. Subscribers of the
    user receive the full ordered history after each write.
    """

    def __init__(self, db_path: str = "image_insight.db"):
        self.db_path = db_path
        self._listeners: Dict[str, List[HistoryListener]] = {}
        self._last_timestamp: Optional[datetime] = None
        self._lock = asyncio.Lock()
        self._init_db()

    def _init_db(self):
        """Initialize database tables."""
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS chat_messages (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    role TEXT NOT NULL,
                    text TEXT NOT NULL,
                    created_at TIMESTAMP NOT NULL
                )
            """)
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_chat_user_time ON chat_messages(user_id, created_at)"
            )
            conn.commit()

    def _next_timestamp(self) -> datetime:
        # Server timestamps are strictly increasing so turns keep write order
        now = datetime.now(timezone.utc)
        if self._last_timestamp is not None and now <= self._last_timestamp:
            now = self._last_timestamp + timedelta(microseconds=1)
        self._last_timestamp = now
        return now

    async def append(self, user_id: str, text: str, role: Union[Role, str]) -> ChatMessage:
        """Persist one chat turn and notify the user's subscribers.

        Args:
            user_id: Identity the conversation belongs to
            text: Message text
            role: Author of the turn

        Returns:
            The stored ChatMessage with its id and server timestamp

        Raises:
            PersistenceError: If the write fails
        """
        role_value = role.value if isinstance(role, Role) else str(role)
        async with self._lock:
            created_at = self._next_timestamp()
            message = ChatMessage(
                text=text,
                role=role_value,
                created_at=Timestamp.server(created_at),
                id=uuid.uuid4().hex,
            )
            try:
                with sqlite3.connect(self.db_path) as conn:
                    conn.execute(
                        "INSERT INTO chat_messages (id, user_id, role, text, created_at) VALUES (?, ?, ?, ?, ?)",
                        (message.id, user_id, role_value, text, created_at.isoformat()),
                    )
            except sqlite3.Error as e:
                logger.error(f"Failed to save chat message for {user_id}: {e}")
                raise PersistenceError("Could not save chat message") from e

        logger.debug(f"Saved {role_value} turn {message.id} for {user_id}")
        self._notify(user_id)
        return message

    def list_messages(self, user_id: str) -> List[ChatMessage]:
        """Get the full conversation of a user, oldest first."""
        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row
            cursor = conn.cursor()
            cursor.execute(
                "SELECT * FROM chat_messages WHERE user_id = ? ORDER BY created_at ASC, rowid ASC",
                (user_id,),
            )
            return [self._row_to_message(row) for row in cursor.fetchall()]

    def subscribe(self, user_id: str, listener: HistoryListener) -> Callable[[], None]:
        """Subscribe to live updates of a user's conversation.

        The listener is called immediately with the current history, then
        again after every write.

        Returns:
            A function that removes the subscription (safe to call twice)
        """
        self._listeners.setdefault(user_id, []).append(listener)
        listener(self.list_messages(user_id))

        def unsubscribe() -> None:
            listeners = self._listeners.get(user_id, [])
            if listener in listeners:
                listeners.remove(listener)
            if not listeners:
                self._listeners.pop(user_id, None)

        return unsubscribe

    def listener_count(self, user_id: str) -> int:
        return len(self._listeners.get(user_id, []))

    def _notify(self, user_id: str) -> None:
        listeners = list(self._listeners.get(user_id, []))
        if not listeners:
            return
        messages = self.list_messages(user_id)
        for listener in listeners:
            try:
                listener(list(messages))
            except Exception as e:
                logger.error(f"Chat history listener failed for {user_id}: {e}", exc_info=True)

    @staticmethod
    def _row_to_message(row) -> ChatMessage:
        """Convert database row to ChatMessage."""
        return ChatMessage(
            text=row["text"],
            role=row["role"],
            created_at=Timestamp.server(datetime.fromisoformat(row["created_at"])),
            id=row["id"],
        )


class AnalysisHistoryStore:
    """Write-once store of completed analyses and their uploaded images."""

    def __init__(self, db_path: str = "image_insight.db", data_dir: Optional[str] = None):
        self.db_path = db_path
        self.data_dir = Path(data_dir) if data_dir else Path(db_path).resolve().parent / "data"
        self._lock = asyncio.Lock()
        self._init_db()

    def _init_db(self):
        """Initialize database tables."""
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS analyses (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    image_ref TEXT NOT NULL,
                    file_name TEXT NOT NULL,
                    metadata TEXT,  -- JSON object
                    result TEXT NOT NULL,  -- JSON object
                    created_at TIMESTAMP NOT NULL
                )
            """)
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_analyses_user ON analyses(user_id)")
            conn.commit()

    def _store_image(self, user_id: str, image: UploadedImage, created_at: datetime) -> Path:
        safe_user = re.sub(r"[^A-Za-z0-9_-]", "_", user_id) or "anonymous"
        safe_name = Path(image.filename).name or "image"
        target_dir = self.data_dir / "images" / safe_user
        target_dir.mkdir(parents=True, exist_ok=True)
        target = target_dir / f"{int(created_at.timestamp() * 1000)}_{safe_name}"
        target.write_bytes(image.data)
        return target

    async def save(
        self,
        user_id: str,
        image: UploadedImage,
        metadata: Optional[ImageMetadata],
        result: AnalysisResult,
    ) -> AnalysisRecord:
        """Save an analysis together with a copy of the uploaded image.

        Raises:
            PersistenceError: If the image or the record cannot be written
        """
        created_at = datetime.now(timezone.utc)
        async with self._lock:
            try:
                image_path = await asyncio.to_thread(self._store_image, user_id, image, created_at)
                record = AnalysisRecord(
                    id=uuid.uuid4().hex,
                    user_id=user_id,
                    image_ref=str(image_path),
                    file_name=image.filename,
                    metadata=metadata,
                    result=result,
                    created_at=created_at,
                )
                with sqlite3.connect(self.db_path) as conn:
                    conn.execute("""
                        INSERT INTO analyses (
                            id, user_id, image_ref, file_name, metadata, result, created_at
                        ) VALUES (?, ?, ?, ?, ?, ?, ?)
                    """, (
                        record.id,
                        user_id,
                        record.image_ref,
                        record.file_name,
                        json.dumps(metadata.to_dict(), ensure_ascii=False) if metadata else None,
                        json.dumps(result.to_dict(), ensure_ascii=False),
                        created_at.isoformat(),
                    ))
            except (OSError, sqlite3.Error) as e:
                logger.error(f"Failed to save analysis for {user_id}: {e}")
                raise PersistenceError("Could not save the analysis result") from e

        logger.info(f"Analysis saved with ID: {record.id}")
        return record

    def list_records(self, user_id: str, limit: int = 50) -> List[AnalysisRecord]:
        """Get a user's analyses, newest first."""
        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row
            cursor = conn.cursor()
            cursor.execute(
                "SELECT * FROM analyses WHERE user_id = ? ORDER BY created_at DESC, rowid DESC LIMIT ?",
                (user_id, limit),
            )
            return [self._row_to_record(row) for row in cursor.fetchall()]

    @staticmethod
    def _row_to_record(row) -> AnalysisRecord:
        """Convert database row to AnalysisRecord."""
        return AnalysisRecord(
            id=row["id"],
            user_id=row["user_id"],
            image_ref=row["image_ref"],
            file_name=row["file_name"],
            metadata=ImageMetadata.from_dict(json.loads(row["metadata"])) if row["metadata"] else None,
            result=AnalysisResult.from_dict(json.loads(row["result"])),
            created_at=datetime.fromisoformat(row["created_at"]),
        )
