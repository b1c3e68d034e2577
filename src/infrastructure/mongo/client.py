"""
MongoDB connection management.

Provides the client factory for real MongoDB plus an in-memory mock
database for local development and tests.

Using the repository pattern means most code never touches this module
directly - it goes through the repositories, which handle the translation
between domain models and documents.

Unlike a per-request connection, a MongoClient owns a thread-safe
connection pool, so one client is created per process and shared.
"""

import copy
import logging
from dataclasses import dataclass
from typing import Any, Iterable, Iterator, Optional, Protocol

from bson import ObjectId
from pymongo.errors import DuplicateKeyError

logger = logging.getLogger(__name__)


class DatabaseConnectionError(Exception):
    """Raised when MongoDB cannot be reached."""
    pass


class DocumentDatabase(Protocol):
    """
    The slice of pymongo's Database the repositories use.

    Using a protocol means tests can provide the in-memory mock without
    a running server.
    """

    def __getitem__(self, name: str) -> Any: ...
    def command(self, command: str) -> dict: ...


@dataclass
class MongoConfig:
    """Configuration for MongoDB connection."""
    uri: str
    database: str = "vidshare"
    server_selection_timeout_ms: int = 5000


def create_mongo_client(config: MongoConfig):
    """
    Create a pooled MongoClient.

    tz_aware so timestamps come back as aware UTC datetimes, matching
    what the domain models create.
    """
    from pymongo import MongoClient

    client = MongoClient(
        config.uri,
        serverSelectionTimeoutMS=config.server_selection_timeout_ms,
        tz_aware=True,
    )

    logger.info(
        "Initialized MongoDB client",
        extra={"database": config.database}
    )

    return client


def parse_object_id(value: Any) -> Optional[ObjectId]:
    """Return an ObjectId for a valid id string, None otherwise."""
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


# ---------------------------------------------------------------------------
# Mock Database for Local Development
# ---------------------------------------------------------------------------

def _matches(document: dict, query: Optional[dict]) -> bool:
    """Evaluate the equality/$in/$ne filters the repositories issue."""
    for key, condition in (query or {}).items():
        value = document.get(key)
        if isinstance(condition, dict) and condition and all(k.startswith("$") for k in condition):
            for operator, operand in condition.items():
                if operator == "$eq" and value != operand:
                    return False
                if operator == "$ne" and value == operand:
                    return False
                if operator == "$in" and value not in operand:
                    return False
                if operator not in ("$eq", "$ne", "$in"):
                    raise NotImplementedError(f"Mock does not support {operator}")
        elif value != condition:
            return False
    return True


def _project(document: dict, projection: Optional[dict]) -> dict:
    if not projection:
        return copy.deepcopy(document)
    include_id = projection.get("_id", 1)
    fields = [name for name, flag in projection.items() if flag and name != "_id"]
    projected = {name: copy.deepcopy(document[name]) for name in fields if name in document}
    if include_id and "_id" in document:
        projected["_id"] = document["_id"]
    return projected


class MockCursor:
    """List-backed stand-in for a pymongo cursor."""

    def __init__(self, documents: Iterable[dict]) -> None:
        self._documents = list(documents)

    def sort(self, key: str, direction: int = 1) -> "MockCursor":
        # Documents missing the key sort first, as in MongoDB
        self._documents.sort(
            key=lambda doc: (key in doc, doc.get(key)),
            reverse=direction < 0,
        )
        return self

    def __iter__(self) -> Iterator[dict]:
        return iter(self._documents)


@dataclass
class MockInsertOneResult:
    inserted_id: ObjectId


@dataclass
class MockUpdateResult:
    matched_count: int
    modified_count: int


class MockCollection:
    """
    In-memory collection.

    Implements just enough of the pymongo Collection interface for the
    repositories: inserts, equality queries, $set updates, unique
    indexes and the $match/$lookup/$project/$sort aggregation stages.
    """

    def __init__(self, name: str, database: "MockMongoDatabase") -> None:
        self.name = name
        self._database = database
        self._documents: list[dict] = []
        self._unique_fields: set[str] = set()

    def create_index(self, keys, unique: bool = False, **kwargs) -> str:
        field_name = keys if isinstance(keys, str) else keys[0][0]
        if unique:
            self._unique_fields.add(field_name)
        return f"{field_name}_1"

    def _check_unique(self, candidate: dict) -> None:
        for field_name in self._unique_fields:
            if field_name not in candidate:
                continue
            for existing in self._documents:
                if existing["_id"] != candidate["_id"] and existing.get(field_name) == candidate[field_name]:
                    raise DuplicateKeyError(
                        f"E11000 duplicate key error collection: {self.name} index: {field_name}_1",
                        code=11000,
                    )

    def insert_one(self, document: dict) -> MockInsertOneResult:
        if "_id" not in document:
            document["_id"] = ObjectId()
        stored = copy.deepcopy(document)
        self._check_unique(stored)
        self._documents.append(stored)
        return MockInsertOneResult(inserted_id=stored["_id"])

    def find(self, query: Optional[dict] = None, projection: Optional[dict] = None) -> MockCursor:
        return MockCursor(
            _project(doc, projection) for doc in self._documents if _matches(doc, query)
        )

    def find_one(self, query: Optional[dict] = None, projection: Optional[dict] = None) -> Optional[dict]:
        for doc in self._documents:
            if _matches(doc, query):
                return _project(doc, projection)
        return None

    def update_one(self, query: dict, update: dict) -> MockUpdateResult:
        unsupported = set(update) - {"$set"}
        if unsupported:
            raise NotImplementedError(f"Mock does not support {sorted(unsupported)}")

        for index, doc in enumerate(self._documents):
            if _matches(doc, query):
                updated = copy.deepcopy(doc)
                updated.update(copy.deepcopy(update.get("$set", {})))
                self._check_unique(updated)
                modified = updated != doc
                self._documents[index] = updated
                return MockUpdateResult(matched_count=1, modified_count=int(modified))
        return MockUpdateResult(matched_count=0, modified_count=0)

    def aggregate(self, pipeline: list[dict]) -> MockCursor:
        documents = [copy.deepcopy(doc) for doc in self._documents]

        for stage in pipeline:
            (operator, options), = stage.items()
            if operator == "$match":
                documents = [doc for doc in documents if _matches(doc, options)]
            elif operator == "$lookup":
                foreign = self._database[options["from"]]
                for doc in documents:
                    doc[options["as"]] = list(
                        foreign.find({options["foreignField"]: doc.get(options["localField"])})
                    )
            elif operator == "$project":
                documents = [_project(doc, options) for doc in documents]
            elif operator == "$sort":
                (key, direction), = options.items()
                documents = list(MockCursor(documents).sort(key, direction))
            else:
                raise NotImplementedError(f"Mock does not support {operator}")

        return MockCursor(documents)


class MockMongoDatabase:
    """
    Mock MongoDB database for local development.

    Stores documents in memory, one list per collection. This enables
    testing the full API without a real database.

    Not suitable for production, but perfect for:
    - Local development
    - Unit tests
    - CI/CD environments
    """

    def __init__(self, name: str = "vidshare") -> None:
        self.name = name
        self._collections: dict[str, MockCollection] = {}
        logger.info("Initialized mock MongoDB database (in-memory)")

    def __getitem__(self, name: str) -> MockCollection:
        if name not in self._collections:
            self._collections[name] = MockCollection(name, self)
        return self._collections[name]

    def command(self, command: str) -> dict:
        if command != "ping":
            raise NotImplementedError(f"Mock does not support command {command}")
        return {"ok": 1.0}


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_database(
    config: Optional[MongoConfig] = None,
    mock_mode: bool = False,
) -> DocumentDatabase:
    """
    Create a database handle based on configuration.

    Args:
        config: MongoDB configuration (required if not mock_mode)
        mock_mode: If True, return an in-memory database

    Returns:
        pymongo Database or MockMongoDatabase
    """
    if mock_mode:
        return MockMongoDatabase(config.database if config else "vidshare")

    if config is None:
        raise ValueError("config is required when not in mock mode")

    try:
        client = create_mongo_client(config)
    except Exception as e:
        logger.error("MongoDB client creation failed", extra={"error": str(e)})
        raise DatabaseConnectionError(f"Database connection failed: {e}")

    return client[config.database]
