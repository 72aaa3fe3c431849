"""Document Store - Persistence for every LifeTracker container.

This module handles all database I/O. Services hand it QuerySpecs and plain
documents; it never interprets domain models.

Two backends implement the same container contract:
    Firestore: documents at <container>/<id>
    In-memory: dicts per container, queried with core.query.evaluate
"""

import asyncio
import copy
import logging
from dataclasses import dataclass
from typing import Any, Protocol

from google.api_core import exceptions as google_exceptions
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from ..core.errors import Conflict, NotFound, StorageUnavailable
from ..core.query import QuerySpec, evaluate


logger = logging.getLogger(__name__)

# Container name -> partition key field
CONTAINERS: dict[str, str] = {
    "activities": "userId",
    "goals": "userId",
    "journals": "userId",
    "profiles": "id",
    "weights": "userId",
    "meals": "userId",
}

PROBE_TIMEOUT_SECONDS = 5.0


@dataclass
class FirestoreConfig:
    """Configuration for Firestore client.

    Attributes:
        project_id: GCP project ID (None for default)
        database: Firestore database name (None for default database)
    """

    project_id: str | None = None
    database: str | None = None


class ItemHandle(Protocol):
    async def delete(self) -> None: ...


class Container(Protocol):
    """Operations every storage backend offers per container."""

    name: str
    partition_key: str

    async def create(self, item: dict[str, Any]) -> dict[str, Any]: ...

    async def query(self, spec: QuerySpec) -> list[Any]: ...

    async def upsert(self, item: dict[str, Any]) -> dict[str, Any]: ...

    def item(self, item_id: str, partition_value: str) -> ItemHandle: ...


# ==================== In-memory backend ====================


class InMemoryItem:
    def __init__(self, container: "InMemoryContainer", item_id: str, partition_value: str) -> None:
        self._container = container
        self._item_id = item_id
        self._partition_value = partition_value

    async def delete(self) -> None:
        documents = self._container.documents
        stored = documents.get(self._item_id)
        if stored is None or stored.get(self._container.partition_key) != self._partition_value:
            raise NotFound(f"{self._container.name}/{self._item_id} not found")
        del documents[self._item_id]


class InMemoryContainer:
    """A container backed by a dict. Documents are copied in and out."""

    def __init__(self, name: str, partition_key: str) -> None:
        self.name = name
        self.partition_key = partition_key
        self.documents: dict[str, dict[str, Any]] = {}

    async def create(self, item: dict[str, Any]) -> dict[str, Any]:
        if item["id"] in self.documents:
            raise Conflict(f"{self.name}/{item['id']} already exists")
        self.documents[item["id"]] = copy.deepcopy(item)
        return copy.deepcopy(item)

    async def query(self, spec: QuerySpec) -> list[Any]:
        return copy.deepcopy(evaluate(spec, self.documents.values()))

    async def upsert(self, item: dict[str, Any]) -> dict[str, Any]:
        self.documents[item["id"]] = copy.deepcopy(item)
        return copy.deepcopy(item)

    def item(self, item_id: str, partition_value: str) -> InMemoryItem:
        return InMemoryItem(self, item_id, partition_value)


class InMemoryBackend:
    name = "memory"

    def container(self, name: str, partition_key: str) -> InMemoryContainer:
        return InMemoryContainer(name, partition_key)

    async def probe(self) -> None:
        return None


# ==================== Firestore backend ====================


class FirestoreItem:
    def __init__(self, container: "FirestoreContainer", item_id: str, partition_value: str) -> None:
        self._container = container
        self._item_id = item_id
        self._partition_value = partition_value

    async def delete(self) -> None:
        ref = self._container.collection.document(self._item_id)
        snapshot = await ref.get()
        if not snapshot.exists:
            raise NotFound(f"{self._container.name}/{self._item_id} not found")
        data = snapshot.to_dict() or {}
        if data.get(self._container.partition_key) != self._partition_value:
            raise NotFound(f"{self._container.name}/{self._item_id} not found")
        await ref.delete()


class FirestoreContainer:
    """A container stored as a top-level Firestore collection."""

    def __init__(self, client: Any, name: str, partition_key: str) -> None:
        self.name = name
        self.partition_key = partition_key
        self.collection = client.collection(name)

    async def create(self, item: dict[str, Any]) -> dict[str, Any]:
        try:
            await self.collection.document(item["id"]).create(item)
        except google_exceptions.AlreadyExists as e:
            raise Conflict(f"{self.name}/{item['id']} already exists") from e
        return item

    async def query(self, spec: QuerySpec) -> list[Any]:
        logger.debug("Firestore query on %s: %s", self.name, spec.text)
        query: Any = self.collection
        for condition in spec.conditions:
            query = query.where(
                filter=FieldFilter(condition.field, condition.op, spec.parameters[condition.param])
            )

        if spec.count:
            results = await query.count(alias="total").get()
            return [int(results[0][0].value)]

        if spec.order_by:
            query = query.order_by(spec.order_by, direction=firestore.Query.DESCENDING)
            query = query.order_by("id", direction=firestore.Query.DESCENDING)
        if spec.offset:
            query = query.offset(spec.offset)
        if spec.limit is not None:
            query = query.limit(spec.limit)

        return [snapshot.to_dict() async for snapshot in query.stream()]

    async def upsert(self, item: dict[str, Any]) -> dict[str, Any]:
        await self.collection.document(item["id"]).set(item)
        return item

    def item(self, item_id: str, partition_value: str) -> FirestoreItem:
        return FirestoreItem(self, item_id, partition_value)


class FirestoreBackend:
    name = "firestore"

    def __init__(self, config: FirestoreConfig | None = None, client: Any = None) -> None:
        """Initialize Firestore backend.

        Args:
            config: Firestore configuration
            client: Pre-built async client (tests); built from config when None
        """
        self.config = config or FirestoreConfig()
        self._client = client

    @property
    def client(self) -> firestore.AsyncClient:
        """Lazy initialization of Firestore client."""
        if self._client is None:
            kwargs: dict[str, Any] = {}
            if self.config.project_id:
                kwargs["project"] = self.config.project_id
            if self.config.database:
                kwargs["database"] = self.config.database
            self._client = firestore.AsyncClient(**kwargs)
        return self._client

    def container(self, name: str, partition_key: str) -> FirestoreContainer:
        return FirestoreContainer(self.client, name, partition_key)

    async def probe(self) -> None:
        """Round-trip one tiny read so misconfiguration surfaces at startup."""
        await asyncio.wait_for(
            self.client.collection("profiles").limit(1).get(),
            timeout=PROBE_TIMEOUT_SECONDS,
        )


# ==================== Store ====================


class DocumentStore:
    """Entry point to the containers.

    Constructed once by the app factory and passed to every service.
    ``initialize()`` picks the backend; ``container()`` calls it lazily.
    """

    def __init__(
        self,
        config: FirestoreConfig | None = None,
        use_memory: bool = False,
        allow_fallback: bool = False,
        backend: Any = None,
    ) -> None:
        """Initialize the store.

        Args:
            config: Firestore configuration
            use_memory: Use the in-memory backend without trying Firestore
            allow_fallback: Fall back to memory when Firestore is unreachable
            backend: Explicit backend, bypassing selection
        """
        self.config = config or FirestoreConfig()
        self.use_memory = use_memory
        self.allow_fallback = allow_fallback
        self._backend = backend
        self._containers: dict[str, Container] = {}
        self._lock = asyncio.Lock()

    @classmethod
    def in_memory(cls) -> "DocumentStore":
        return cls(use_memory=True)

    @property
    def backend_name(self) -> str | None:
        return self._backend.name if self._backend is not None else None

    async def initialize(self) -> None:
        """Select the backend. Safe to call more than once.

        Raises:
            StorageUnavailable: Firestore is unreachable and fallback is off
        """
        async with self._lock:
            if self._backend is not None:
                return

            if self.use_memory:
                logger.info("Using in-memory document store")
                self._backend = InMemoryBackend()
                return

            backend = FirestoreBackend(self.config)
            try:
                await backend.probe()
            except Exception as e:
                if not self.allow_fallback:
                    logger.error("Firestore unavailable: %s", str(e))
                    raise StorageUnavailable("Document database is unavailable") from e
                logger.warning("Firestore unavailable (%s); falling back to in-memory store", str(e))
                self._backend = InMemoryBackend()
                return

            logger.info("Connected to Firestore database: %s", self.config.database or "(default)")
            self._backend = backend

    async def container(self, name: str) -> Container:
        """Get a container handle, initializing the store on first use.

        Raises:
            KeyError: Unknown container name
            StorageUnavailable: No backend is usable
        """
        partition_key = CONTAINERS[name]
        if self._backend is None:
            await self.initialize()

        if name not in self._containers:
            self._containers[name] = self._backend.container(name, partition_key)
        return self._containers[name]
