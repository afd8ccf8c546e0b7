"""
Record storage for the MindBot Relay service.

Chat turns and mood entries are kept in two append-only document collections,
"chats" and "moods". A collection only needs to support insert-with-generated-id
and a full scan ordered newest first, so the in-memory implementation can be
swapped for MongoDB without touching the stores built on top of it.
"""

import asyncio
import itertools
import uuid
from collections.abc import Callable
from typing import Any, NamedTuple, Protocol

from .config import Settings
from .models import ChatTurn, MoodEntry, StoredMood

CHATS_COLLECTION = "chats"
MOODS_COLLECTION = "moods"

Document = dict[str, Any]


class DocumentCollection(Protocol):
    """An append-only collection of documents."""

    async def insert(self, document: Document) -> str:
        """Store a document and return its generated identifier."""
        ...

    async def find_latest_first(self, field: str) -> list[tuple[str, Document]]:
        """Return every document with its identifier, descending by `field`."""
        ...


class InMemoryCollection:
    """
    Process-local document collection.

    Writes are serialized through an asyncio lock; documents sharing the same
    ordering value come back with the most recently inserted first.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._documents: list[tuple[int, str, Document]] = []
        self._sequence = itertools.count()

    async def insert(self, document: Document) -> str:
        async with self._lock:
            doc_id = uuid.uuid4().hex
            self._documents.append((next(self._sequence), doc_id, dict(document)))
            return doc_id

    async def find_latest_first(self, field: str) -> list[tuple[str, Document]]:
        async with self._lock:
            ordered = sorted(
                self._documents,
                key=lambda item: (item[2][field], item[0]),
                reverse=True,
            )
            return [(doc_id, dict(document)) for _, doc_id, document in ordered]

    def __len__(self) -> int:
        return len(self._documents)


class MongoCollection:
    """Document collection backed by a Motor (async MongoDB) collection."""

    def __init__(self, collection: Any) -> None:
        self._collection = collection

    async def insert(self, document: Document) -> str:
        result = await self._collection.insert_one(dict(document))
        return str(result.inserted_id)

    async def find_latest_first(self, field: str) -> list[tuple[str, Document]]:
        cursor = self._collection.find({}).sort(field, -1)
        results = []
        async for raw in cursor:
            document = dict(raw)
            doc_id = str(document.pop("_id"))
            results.append((doc_id, document))
        return results


class ChatStore:
    """Insert-only log of chat turns."""

    def __init__(self, collection: DocumentCollection) -> None:
        self._collection = collection

    async def add(self, turn: ChatTurn) -> str:
        return await self._collection.insert(turn.model_dump())


class MoodStore:
    """Append-only log of mood entries, readable newest first."""

    def __init__(self, collection: DocumentCollection) -> None:
        self._collection = collection

    async def add(self, entry: MoodEntry) -> str:
        """
        Append a mood entry.

        Args:
            entry: The mood entry to record

        Returns:
            The identifier the store assigned to the entry
        """
        return await self._collection.insert(entry.model_dump())

    async def fetch_all(self) -> list[StoredMood]:
        """
        Fetch every mood entry.

        Returns:
            All entries, descending by timestamp
        """
        documents = await self._collection.find_latest_first("timestamp")
        return [
            StoredMood(id=doc_id, mood=document["mood"], timestamp=document["timestamp"])
            for doc_id, document in documents
        ]


class Stores(NamedTuple):
    """The chat and mood stores plus a hook releasing their backend connection."""

    chats: ChatStore
    moods: MoodStore
    close: Callable[[], None] | None = None


def in_memory_stores() -> Stores:
    """Build a chat store and a mood store over fresh in-memory collections."""
    return Stores(ChatStore(InMemoryCollection()), MoodStore(InMemoryCollection()))


def mongo_stores(mongo_url: str, database: str) -> Stores:
    """Build a chat store and a mood store over a MongoDB database."""
    from motor.motor_asyncio import AsyncIOMotorClient

    client = AsyncIOMotorClient(mongo_url, tz_aware=True)
    db = client[database]
    return Stores(
        ChatStore(MongoCollection(db[CHATS_COLLECTION])),
        MoodStore(MongoCollection(db[MOODS_COLLECTION])),
        close=client.close,
    )


def open_stores(settings: Settings) -> Stores:
    """Build the chat and mood stores for the configured storage backend."""
    if settings.storage_backend == "mongo":
        return mongo_stores(settings.mongo_url, settings.mongo_database)
    return in_memory_stores()
