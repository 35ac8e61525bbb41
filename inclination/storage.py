"""JSON-file document store for discussions and the leaderboard.

Each document lives in ``<base_dir>/<collection>/<doc_id>.json``. Writes go
through a temporary file and ``os.replace`` so readers never see a partial
document. Read-modify-write sequences hold a lock shared by every store on
the same directory plus an flock, so concurrent writers in other processes
are serialized too.
"""

import fcntl
import json
import logging
import os
import tempfile
import threading
import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

from .config import DATA_BASE_DIR

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """A document could not be read or written."""


# One lock per data directory, shared by every store object rooted there
_directory_locks: dict[Path, threading.RLock] = {}
_directory_locks_guard = threading.Lock()


def _directory_lock(base_dir: Path) -> threading.RLock:
    key = base_dir.resolve()
    with _directory_locks_guard:
        return _directory_locks.setdefault(key, threading.RLock())


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _set_path(doc: dict[str, Any], dotted_key: str, value: Any) -> None:
    """Set ``a.b.c`` inside nested dicts, creating intermediate maps."""
    parts = dotted_key.split(".")
    target = doc
    for part in parts[:-1]:
        child = target.get(part)
        if not isinstance(child, dict):
            child = {}
            target[part] = child
        target = child
    target[parts[-1]] = value


def _apply_update(doc: dict[str, Any], partial: dict[str, Any]) -> dict[str, Any]:
    """Merge a partial document into ``doc``; dotted keys address nested fields."""
    for key, value in partial.items():
        if "." in key:
            _set_path(doc, key, value)
        else:
            doc[key] = value
    return doc


class JsonDocumentStore:
    """Document store backed by one JSON file per document."""

    def __init__(self, base_dir: str | os.PathLike[str]) -> None:
        self.base_dir = Path(base_dir)
        self._lock = _directory_lock(self.base_dir)

    def _collection_dir(self, collection: str) -> Path:
        return self.base_dir / collection

    def _doc_path(self, collection: str, doc_id: str) -> Path:
        return self._collection_dir(collection) / f"{doc_id}.json"

    @contextmanager
    def _document_lock(self, collection: str, doc_id: str) -> Iterator[None]:
        """
        Hold an exclusive lock on one document.

        Threads are serialized by the directory lock, other processes by an
        flock on a sidecar file next to the document.
        """
        with self._lock:
            directory = self._collection_dir(collection)
            try:
                directory.mkdir(parents=True, exist_ok=True)
                lock_file = open(directory / f".{doc_id}.lock", "w")
            except OSError as e:
                raise StorageError(f"Failed to lock {collection}/{doc_id}: {e}") from e

            try:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
                yield
            finally:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)
                lock_file.close()

    def _read(self, path: Path) -> dict[str, Any]:
        try:
            with open(path, "r") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Failed to read document. Path: %s, Error: %s", path, e)
            raise StorageError(f"Failed to read {path}: {e}") from e

    def _write(self, collection: str, doc_id: str, doc: dict[str, Any]) -> None:
        directory = self._collection_dir(collection)
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
            try:
                with os.fdopen(fd, "w") as f:
                    json.dump(doc, f, indent=2, default=_json_default)
                os.replace(tmp_path, self._doc_path(collection, doc_id))
            except BaseException:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
                raise
        except (OSError, TypeError) as e:
            logger.error(
                "Failed to write document. Collection: %s, DocId: %s, Error: %s",
                collection, doc_id, e,
            )
            raise StorageError(f"Failed to write {collection}/{doc_id}: {e}") from e

    def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        """
        Load a document.

        Returns:
            Document dict including its ``id``, or None if not found
        """
        path = self._doc_path(collection, doc_id)
        if not path.exists():
            return None
        doc = self._read(path)
        doc["id"] = doc_id
        return doc

    def set(self, collection: str, doc_id: str, doc: dict[str, Any]) -> None:
        """Create or fully overwrite a document."""
        with self._lock:
            self._write(collection, doc_id, {**doc, "id": doc_id})

    def update(self, collection: str, doc_id: str, partial: dict[str, Any]) -> None:
        """
        Merge fields into an existing document.

        Keys containing dots address nested map fields, e.g.
        ``{"dimensions.explore-exploit": {...}}``.

        Raises:
            StorageError: If the document does not exist
        """
        with self._document_lock(collection, doc_id):
            doc = self.get(collection, doc_id)
            if doc is None:
                raise StorageError(f"Document {collection}/{doc_id} not found")
            self._write(collection, doc_id, _apply_update(doc, partial))

    def transact(
        self,
        collection: str,
        doc_id: str,
        mutate: Callable[[dict[str, Any] | None], dict[str, Any]],
    ) -> dict[str, Any]:
        """
        Atomically apply a read-modify-write to one document.

        ``mutate`` receives the current document (None if missing) and returns
        a partial update. The update is merged into the current document, or
        becomes the new document when none existed. No other transaction or
        update on this document, from any store object or process sharing
        the data directory, can interleave between the read and the write.

        Returns:
            The document as written
        """
        with self._document_lock(collection, doc_id):
            current = self.get(collection, doc_id)
            partial = mutate(current)
            doc = _apply_update(current if current is not None else {}, partial)
            doc["id"] = doc_id
            self._write(collection, doc_id, doc)
            return doc

    def insert(self, collection: str, doc: dict[str, Any]) -> str:
        """Store a new document under a generated id and return the id."""
        doc_id = uuid.uuid4().hex
        self.set(collection, doc_id, doc)
        return doc_id

    def query_all(self, collection: str) -> list[dict[str, Any]]:
        """Load every document in a collection."""
        directory = self._collection_dir(collection)
        if not directory.exists():
            return []

        docs = []
        for path in sorted(directory.glob("*.json")):
            doc = self._read(path)
            doc["id"] = path.stem
            docs.append(doc)
        return docs

    def query_ordered(
        self,
        collection: str,
        field: str,
        direction: str = "asc",
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """
        Load documents sorted by a field.

        Args:
            collection: Collection name
            field: Field to order by; documents without it sort last
            direction: "asc" or "desc"
            limit: Maximum number of documents to return

        Returns:
            Ordered list of documents
        """
        if direction not in ("asc", "desc"):
            raise ValueError(f"Invalid direction: {direction}")

        docs = self.query_all(collection)
        present = [d for d in docs if d.get(field) is not None]
        missing = [d for d in docs if d.get(field) is None]
        present.sort(key=lambda d: d[field], reverse=direction == "desc")

        ordered = present + missing
        if limit is not None:
            ordered = ordered[:limit]
        return ordered


_default_store: JsonDocumentStore | None = None


def get_default_store() -> JsonDocumentStore:
    """Return the store rooted at the configured data directory."""
    global _default_store
    if _default_store is None:
        _default_store = JsonDocumentStore(DATA_BASE_DIR)
    return _default_store
