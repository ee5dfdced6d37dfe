from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Mapping, Sequence

from pymongo import MongoClient
from pymongo.errors import ConnectionFailure, DuplicateKeyError, PyMongoError

from bookstore.config import ConnectionSettings

SortSpec = Sequence[tuple[str, int]]


class BookstoreError(RuntimeError):
    """Raised when MongoDB rejects an operation."""


class BookstoreConnectionError(BookstoreError):
    """Raised when the server cannot be reached."""


@dataclass(slots=True)
class Book:
    title: str
    author: str
    genre: str
    published_year: int
    price: float
    in_stock: bool
    pages: int
    publisher: str

    def to_document(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class WriteSummary:
    operation: str
    matched: int
    modified: int
    inserted_ids: list[Any]


def _translate(exc: PyMongoError, action: str) -> BookstoreError:
    if isinstance(exc, ConnectionFailure):
        return BookstoreConnectionError(f"Could not reach MongoDB while trying to {action}: {exc}")
    if isinstance(exc, DuplicateKeyError):
        return BookstoreError(f"Duplicate key while trying to {action}: {exc}")
    return BookstoreError(f"MongoDB failed to {action}: {exc}")


class BookstoreClient:
    def __init__(
        self,
        uri: str,
        database: str,
        collection: str,
        *,
        timeout_ms: int = 5000,
        client: Any | None = None,
    ) -> None:
        self.uri = uri
        self.database_name = database
        self.collection_name = collection
        self._owns_client = client is None
        try:
            self._client = client if client is not None else MongoClient(
                uri,
                serverSelectionTimeoutMS=timeout_ms,
                connectTimeoutMS=timeout_ms,
            )
            self.database = self._client[database]
            self.collection = self.database[collection]
        except PyMongoError as exc:
            raise _translate(exc, "configure the client") from exc
        except ValueError as exc:
            # pymongo reports malformed hosts and ports as plain ValueError.
            raise BookstoreError(f"MongoDB failed to configure the client: {exc}") from exc

    @classmethod
    def from_settings(cls, settings: ConnectionSettings) -> "BookstoreClient":
        return cls(
            settings.uri,
            settings.database,
            settings.collection,
            timeout_ms=settings.timeout_ms,
        )

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "BookstoreClient":
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.close()

    def ping(self) -> dict[str, Any]:
        try:
            return self._client.admin.command("ping")
        except PyMongoError as exc:
            raise _translate(exc, "ping the server") from exc

    def server_version(self) -> str:
        try:
            info = self._client.server_info()
        except PyMongoError as exc:
            raise _translate(exc, "read server info") from exc
        return str(info.get("version", "unknown"))

    def count_books(self, query: Mapping[str, Any] | None = None) -> int:
        try:
            return self.collection.count_documents(dict(query or {}))
        except PyMongoError as exc:
            raise _translate(exc, "count books") from exc

    def find_books(
        self,
        query: Mapping[str, Any] | None = None,
        *,
        projection: Mapping[str, Any] | None = None,
        sort: SortSpec | None = None,
        skip: int = 0,
        limit: int = 0,
    ) -> list[dict[str, Any]]:
        try:
            cursor = self.collection.find(
                dict(query or {}),
                dict(projection) if projection is not None else None,
            )
            if sort:
                cursor = cursor.sort(list(sort))
            if skip:
                cursor = cursor.skip(skip)
            if limit:
                cursor = cursor.limit(limit)
            return list(cursor)
        except PyMongoError as exc:
            raise _translate(exc, "find books") from exc

    def insert_book(self, book: Book) -> WriteSummary:
        try:
            result = self.collection.insert_one(book.to_document())
        except PyMongoError as exc:
            raise _translate(exc, f"insert {book.title!r}") from exc
        return WriteSummary(operation="insert", matched=0, modified=0, inserted_ids=[result.inserted_id])

    def insert_books(self, books: Sequence[Book]) -> WriteSummary:
        if not books:
            return WriteSummary(operation="insert", matched=0, modified=0, inserted_ids=[])
        try:
            result = self.collection.insert_many([book.to_document() for book in books])
        except PyMongoError as exc:
            raise _translate(exc, "insert books") from exc
        return WriteSummary(operation="insert", matched=0, modified=0, inserted_ids=list(result.inserted_ids))

    def update_one(self, query: Mapping[str, Any], update: Mapping[str, Any]) -> WriteSummary:
        try:
            result = self.collection.update_one(dict(query), dict(update))
        except PyMongoError as exc:
            raise _translate(exc, "update a book") from exc
        return WriteSummary(
            operation="update",
            matched=result.matched_count,
            modified=result.modified_count,
            inserted_ids=[],
        )

    def delete_one(self, query: Mapping[str, Any]) -> WriteSummary:
        try:
            result = self.collection.delete_one(dict(query))
        except PyMongoError as exc:
            raise _translate(exc, "delete a book") from exc
        return WriteSummary(
            operation="delete",
            matched=result.deleted_count,
            modified=result.deleted_count,
            inserted_ids=[],
        )

    def drop_books(self) -> None:
        try:
            self.collection.drop()
        except PyMongoError as exc:
            raise _translate(exc, f"drop collection {self.collection_name!r}") from exc

    def aggregate(self, pipeline: Sequence[Mapping[str, Any]]) -> list[dict[str, Any]]:
        try:
            return list(self.collection.aggregate([dict(stage) for stage in pipeline]))
        except PyMongoError as exc:
            raise _translate(exc, "run aggregation pipeline") from exc

    def create_index(self, keys: SortSpec, *, name: str) -> str:
        try:
            return self.collection.create_index(list(keys), name=name)
        except PyMongoError as exc:
            raise _translate(exc, f"create index {name!r}") from exc

    def list_indexes(self) -> dict[str, list[tuple[str, int]]]:
        try:
            info = self.collection.index_information()
        except PyMongoError as exc:
            raise _translate(exc, "list indexes") from exc
        return {name: list(details.get("key", [])) for name, details in info.items()}

    def explain_find(
        self,
        query: Mapping[str, Any],
        *,
        verbosity: str = "executionStats",
    ) -> dict[str, Any]:
        command = {
            "explain": {"find": self.collection_name, "filter": dict(query)},
            "verbosity": verbosity,
        }
        try:
            return self.database.command(command)
        except PyMongoError as exc:
            raise _translate(exc, "explain query") from exc
