"""ChromaDB vector index for document chunk embeddings."""

import asyncio
import logging
import random
import threading
import uuid
from datetime import datetime, timezone

import chromadb
from chromadb.api import ClientAPI
from chromadb.config import Settings as ChromaSettings

from src.errors import (
    CollectionNotFoundError,
    InvalidEmbeddingError,
    SchemaMismatchError,
    UpsertError,
    VectorIndexError,
)
from src.models.enums import Distance
from src.models.point import CollectionSchema, Point, ScoredPoint
from src.runtime.deadline import Deadline

logger = logging.getLogger(__name__)

COLLECTION_NAME = "pdf_chunks"
EXPECTED_DIMENSION = 768

# Collection metadata keys that record the schema
SPACE_KEY = "hnsw:space"
DIMENSION_KEY = "dimension"


class VectorIndex:
    """Chroma-backed vector index with strict schema verification.

    The collection schema (vector dimension, distance metric) lives in the
    collection metadata. Chroma's client is synchronous, so every call runs
    in a worker thread and is awaited under the caller's deadline.

    Location is chosen like this: a host means a remote Chroma server, a path
    of ":memory:" an ephemeral in-process index, any other path a persistent
    on-disk index.
    """

    def __init__(
        self,
        path: str = "./data/chroma",
        host: str | None = None,
        port: int = 8000,
        token: str | None = None,
        collection_name: str = COLLECTION_NAME,
        dimension: int = EXPECTED_DIMENSION,
        upsert_batch_size: int = 50,
    ):
        self._path = path
        self._host = host
        self._port = port
        self._token = token
        self._collection_name = collection_name
        self._dimension = dimension
        self._upsert_batch_size = upsert_batch_size
        self._client: ClientAPI | None = None
        self._client_lock = threading.Lock()

    @property
    def collection_name(self) -> str:
        return self._collection_name

    @property
    def dimension(self) -> int:
        return self._dimension

    def _get_client(self) -> ClientAPI:
        with self._client_lock:
            if self._client is None:
                settings = ChromaSettings(anonymized_telemetry=False)
                if self._host:
                    headers = {"x-chroma-token": self._token} if self._token else None
                    self._client = chromadb.HttpClient(
                        host=self._host, port=self._port, headers=headers, settings=settings,
                    )
                elif self._path == ":memory:":
                    self._client = chromadb.EphemeralClient(settings=settings)
                else:
                    self._client = chromadb.PersistentClient(path=self._path, settings=settings)
            return self._client

    async def _call(self, deadline: Deadline | None, func, *args, **kwargs):
        deadline = deadline or Deadline.never()
        return await deadline.run(asyncio.to_thread(func, *args, **kwargs))

    # Connection

    def _heartbeat(self) -> int:
        return self._get_client().heartbeat()

    async def check_connection(self, deadline: Deadline | None = None) -> bool:
        """Return True when the vector index answers a heartbeat."""
        try:
            await self._call(deadline, self._heartbeat)
        except Exception as e:
            logger.error("Vector index connection failed: %s", e)
            return False
        logger.info("Vector index connection successful")
        return True

    # Schema

    def _schema_of(self, collection) -> CollectionSchema:
        metadata = collection.metadata or {}
        dimension = metadata.get(DIMENSION_KEY)
        if not isinstance(dimension, int):
            dimension = self._stored_dimension(collection)
        if dimension is None:
            raise SchemaMismatchError(
                f"Collection {collection.name} vectors configuration is missing size parameter"
            )

        schema = CollectionSchema(
            name=collection.name,
            dimension=dimension,
            distance=self._distance_of(collection),
            points_count=collection.count(),
        )

        if schema.dimension != self._dimension:
            raise SchemaMismatchError(
                f"Collection has wrong vector size: {schema.dimension} (expected {self._dimension})",
                {"expected": self._dimension, "actual": schema.dimension},
            )
        if schema.distance != Distance.COSINE.value:
            logger.warning(
                "Collection %s uses %s distance instead of cosine", collection.name, schema.distance,
            )
        return schema

    @staticmethod
    def _distance_of(collection) -> str:
        space = (collection.metadata or {}).get(SPACE_KEY)
        if space:
            return space
        configuration = getattr(collection, "configuration", None)
        hnsw = configuration.get("hnsw") if isinstance(configuration, dict) else None
        if isinstance(hnsw, dict) and hnsw.get("space"):
            return str(hnsw["space"])
        return Distance.L2.value

    @staticmethod
    def _stored_dimension(collection) -> int | None:
        """Infer the dimension from a stored vector when metadata lacks it."""
        if collection.count() == 0:
            return None
        peek = collection.peek(limit=1)
        embeddings = peek.get("embeddings")
        if embeddings is None or len(embeddings) == 0:
            return None
        return len(embeddings[0])

    def _collection_names(self) -> set[str]:
        return {collection.name for collection in self._get_client().list_collections()}

    def _verify_sync(self, name: str) -> CollectionSchema:
        if name not in self._collection_names():
            raise CollectionNotFoundError(f"Collection {name} does not exist")
        collection = self._get_client().get_collection(name)
        schema = self._schema_of(collection)
        logger.info(
            "Collection %s verified: %d points, dimension %d, %s distance",
            name, schema.points_count, schema.dimension, schema.distance,
        )
        return schema

    def _create_sync(self, name: str) -> None:
        self._get_client().create_collection(
            name=name,
            metadata={SPACE_KEY: Distance.COSINE.value, DIMENSION_KEY: self._dimension},
        )

    async def verify_collection(
        self, name: str | None = None, deadline: Deadline | None = None
    ) -> CollectionSchema:
        """Fetch and check the collection schema.

        Raises:
            CollectionNotFoundError: The collection does not exist.
            SchemaMismatchError: The vector dimension differs from the expected one.
        """
        return await self._call(deadline, self._verify_sync, name or self._collection_name)

    async def ensure_collection(
        self, name: str | None = None, deadline: Deadline | None = None
    ) -> CollectionSchema:
        """Verify the collection, creating it only when it does not exist.

        A collection with the wrong dimension is never repaired here.
        """
        name = name or self._collection_name
        try:
            return await self.verify_collection(name, deadline=deadline)
        except CollectionNotFoundError:
            logger.info("Creating collection %s", name)
            await self._call(deadline, self._create_sync, name)
            logger.info("Collection %s created", name)
            return await self.verify_collection(name, deadline=deadline)

    def _smoke_test_sync(self, name: str) -> None:
        collection = self._get_client().get_collection(name)
        test_id = str(uuid.uuid4())
        collection.upsert(
            ids=[test_id],
            embeddings=[[random.uniform(-1, 1) for _ in range(self._dimension)]],
            metadatas=[{"test": True, "createdAt": datetime.now(timezone.utc).isoformat()}],
        )
        collection.delete(ids=[test_id])

    async def provision_collection(
        self, recreate_on_mismatch: bool = True, deadline: Deadline | None = None
    ) -> CollectionSchema:
        """Create or repair the collection, then smoke-test it with one point.

        Unlike ensure_collection, this deletes and recreates a collection whose
        dimension is wrong. Meant for the standalone provisioning command.
        """
        name = self._collection_name
        try:
            await self.verify_collection(name, deadline=deadline)
            logger.info("Collection %s configuration is correct", name)
        except CollectionNotFoundError:
            logger.info("Creating collection %s", name)
            await self._call(deadline, self._create_sync, name)
        except SchemaMismatchError as e:
            if not recreate_on_mismatch:
                raise
            logger.warning("%s; recreating collection %s", e, name)
            await self._call(deadline, self._get_client().delete_collection, name)
            await self._call(deadline, self._create_sync, name)

        await self._call(deadline, self._smoke_test_sync, name)
        logger.info("Collection %s passed the test write and is ready for use", name)
        return await self.verify_collection(name, deadline=deadline)

    # Points

    def _upsert_batch(self, batch: list[Point]) -> None:
        collection = self._get_client().get_collection(self._collection_name)
        metadatas = []
        for point in batch:
            metadatas.append({k: v for k, v in point.payload.items() if k != "chunk" and v is not None})
        collection.upsert(
            ids=[point.id for point in batch],
            embeddings=[point.vector for point in batch],
            documents=[point.payload.get("chunk", "") for point in batch],
            metadatas=metadatas,
        )

    async def upsert(self, points: list[Point], deadline: Deadline | None = None) -> int:
        """Write points in fixed-size batches, one at a time.

        Every vector is checked before the first write. Each batch is
        acknowledged before the next is sent; a failed batch raises
        UpsertError with its starting offset and earlier batches stay stored.

        Returns the number of points written.
        """
        if not points:
            return 0

        for i, point in enumerate(points):
            if len(point.vector) != self._dimension:
                raise InvalidEmbeddingError(
                    f"Point {i} has dimension {len(point.vector)}, collection expects {self._dimension}",
                    {"expected": self._dimension, "actual": len(point.vector)},
                )

        total_batches = (len(points) + self._upsert_batch_size - 1) // self._upsert_batch_size
        for offset in range(0, len(points), self._upsert_batch_size):
            batch = points[offset:offset + self._upsert_batch_size]
            logger.info(
                "Upserting batch %d/%d with %d points",
                offset // self._upsert_batch_size + 1, total_batches, len(batch),
            )
            try:
                await self._call(deadline, self._upsert_batch, batch)
            except Exception as e:
                logger.error("Batch upsert failed for batch starting at index %d: %s", offset, e)
                raise UpsertError(offset, str(e)) from e

        logger.info("Stored %d points in %s", len(points), self._collection_name)
        return len(points)

    def _search_sync(self, vector: list[float], limit: int, document_id: str | None) -> list[ScoredPoint]:
        collection = self._get_client().get_collection(self._collection_name)
        self._schema_of(collection)

        available = collection.count()
        if available == 0:
            return []

        kwargs = {
            "query_embeddings": [vector],
            "n_results": min(limit, available),
            "include": ["documents", "metadatas", "distances"],
        }
        if document_id:
            kwargs["where"] = {"documentId": document_id}

        results = collection.query(**kwargs)

        output = []
        if results["ids"] and results["ids"][0]:
            documents = results["documents"][0] if results["documents"] else []
            metadatas = results["metadatas"][0] if results["metadatas"] else []
            distances = results["distances"][0] if results["distances"] else []
            for i, point_id in enumerate(results["ids"][0]):
                payload = dict(metadatas[i] or {}) if i < len(metadatas) else {}
                if i < len(documents) and documents[i]:
                    payload["chunk"] = documents[i]
                distance = distances[i] if i < len(distances) else 1.0
                output.append(ScoredPoint(id=point_id, score=1.0 - distance, payload=payload))
        return output

    async def search(
        self,
        vector: list[float],
        limit: int = 5,
        document_id: str | None = None,
        deadline: Deadline | None = None,
    ) -> list[ScoredPoint]:
        """Return up to limit nearest points, optionally restricted to one document.

        Never raises: an unreachable or misconfigured index, or a query
        vector of the wrong dimension, yields an empty list.
        """
        if len(vector) != self._dimension:
            logger.warning(
                "Rejecting query vector of dimension %d (collection expects %d)",
                len(vector), self._dimension,
            )
            return []
        try:
            return await self._call(deadline, self._search_sync, vector, limit, document_id)
        except Exception as e:
            logger.warning("Vector search failed, continuing without context: %s", e)
            return []

    def _count_sync(self) -> int:
        return self._get_client().get_collection(self._collection_name).count()

    async def count(self, deadline: Deadline | None = None) -> int:
        """Return the number of points in the collection."""
        return await self._call(deadline, self._count_sync)

    def _delete_sync(self, ids: list[str]) -> None:
        self._get_client().get_collection(self._collection_name).delete(ids=ids)

    async def delete(self, ids: list[str], deadline: Deadline | None = None) -> None:
        """Delete points by id. Maintenance only; ingestion never deletes."""
        if not ids:
            return
        try:
            await self._call(deadline, self._delete_sync, ids)
        except Exception as e:
            raise VectorIndexError(f"Failed to delete {len(ids)} points: {e}") from e
