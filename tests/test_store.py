"""Tests for chat and analysis history storage."""

import asyncio
import sqlite3
from pathlib import Path

import pytest

from image_insight.analysis.errors import PersistenceError
from image_insight.analysis.models import AnalysisResult, GpsCoordinates, ImageMetadata, Role, UploadedImage
from image_insight.analysis.store import AnalysisHistoryStore, ChatStore

from conftest import MODEL_PAYLOAD


class TestChatStore:
    """Test the append-only chat store."""

    def test_store_initialization(self, temp_db):
        ChatStore(temp_db)
        assert Path(temp_db).exists()

    def test_append_assigns_id_and_server_timestamp(self, temp_db):
        store = ChatStore(temp_db)

        message = asyncio.run(store.append("alice", "Bonjour", Role.USER))

        assert message.id
        assert message.role == "user"
        assert not message.created_at.is_pending
        assert store.list_messages("alice") == [message]

    def test_messages_are_ordered_and_keyed_by_user(self, temp_db):
        store = ChatStore(temp_db)

        async def write():
            for i in range(5):
                await store.append("alice", f"a{i}", Role.USER if i % 2 == 0 else Role.MODEL)
                await store.append("bob", f"b{i}", Role.USER)

        asyncio.run(write())

        alice = store.list_messages("alice")
        assert [m.text for m in alice] == ["a0", "a1", "a2", "a3", "a4"]
        assert [m.role for m in alice] == ["user", "model", "user", "model", "user"]
        timestamps = [m.created_at.value for m in alice]
        assert timestamps == sorted(timestamps)
        assert len(set(timestamps)) == 5
        assert len(store.list_messages("bob")) == 5

    def test_subscribe_delivers_current_list_then_changes(self, temp_db):
        store = ChatStore(temp_db)
        asyncio.run(store.append("alice", "first", Role.USER))
        deliveries = []

        unsubscribe = store.subscribe("alice", deliveries.append)
        asyncio.run(store.append("alice", "second", Role.MODEL))
        asyncio.run(store.append("bob", "other user", Role.USER))

        assert [[m.text for m in d] for d in deliveries] == [["first"], ["first", "second"]]

        unsubscribe()
        asyncio.run(store.append("alice", "third", Role.USER))
        assert len(deliveries) == 2

    def test_unsubscribe_releases_listener(self, temp_db):
        store = ChatStore(temp_db)
        unsubscribe = store.subscribe("alice", lambda messages: None)
        assert store.listener_count("alice") == 1

        unsubscribe()
        unsubscribe()
        assert store.listener_count("alice") == 0

    def test_failing_listener_does_not_block_others(self, temp_db):
        store = ChatStore(temp_db)
        received = []

        def broken(messages):
            if messages:
                raise RuntimeError("view crashed")

        store.subscribe("alice", broken)
        store.subscribe("alice", received.append)
        asyncio.run(store.append("alice", "hello", Role.USER))

        assert [m.text for m in received[-1]] == ["hello"]

    def test_write_failure_raises_persistence_error(self, temp_db):
        store = ChatStore(temp_db)
        with sqlite3.connect(temp_db) as conn:
            conn.execute("DROP TABLE chat_messages")

        with pytest.raises(PersistenceError):
            asyncio.run(store.append("alice", "hello", Role.USER))


class TestAnalysisHistoryStore:
    """Test the analysis history sink."""

    def test_save_copies_image_and_records_result(self, temp_db, tmp_path):
        store = AnalysisHistoryStore(temp_db, data_dir=str(tmp_path / "data"))
        image = UploadedImage(filename="tour eiffel.jpg", data=b"jpeg-bytes")
        metadata = ImageMetadata(make="Canon", gps=GpsCoordinates("48.858222", "2.294500"))
        result = AnalysisResult.from_dict(MODEL_PAYLOAD)

        record = asyncio.run(store.save("alice/../x", image, metadata, result))

        image_path = Path(record.image_ref)
        assert image_path.read_bytes() == b"jpeg-bytes"
        assert image_path.name.endswith("_tour eiffel.jpg")
        assert (tmp_path / "data" / "images") in image_path.parents

        records = store.list_records("alice/../x")
        assert len(records) == 1
        assert records[0].result == result
        assert records[0].metadata == metadata
        assert records[0].file_name == "tour eiffel.jpg"

    def test_records_newest_first(self, temp_db, tmp_path):
        store = AnalysisHistoryStore(temp_db, data_dir=str(tmp_path))
        result = AnalysisResult.from_dict(MODEL_PAYLOAD)

        async def write():
            for name in ("one.jpg", "two.jpg"):
                await store.save("alice", UploadedImage(name, b"x"), None, result)

        asyncio.run(write())

        records = store.list_records("alice")
        assert [r.file_name for r in records] == ["two.jpg", "one.jpg"]
        assert records[0].metadata is None
        assert store.list_records("bob") == []
