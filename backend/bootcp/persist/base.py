"""
Versioned document store.

The whole dataset lives in memory between ``connect()`` and ``disconnect()``
and is rewritten in full to the backing medium after every mutating call.
Backends only decide how that dataset is read and written.

In-memory layout::

    {collection: {uuid: {"version": int, "document": dict}}}
"""

import copy
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, List, Optional

from ..core.exceptions import InvalidArgumentError, StoreIOError

logger = logging.getLogger(__name__)

KEY_FIELD = "uuid"
VERSION_FIELD = "version"

Dataset = Dict[str, Dict[str, Dict[str, Any]]]


def _is_dataset(collections: Any) -> bool:
    if not isinstance(collections, dict):
        return False
    for entries in collections.values():
        if not isinstance(entries, dict):
            return False
        for entry in entries.values():
            if not (
                isinstance(entry, dict)
                and isinstance(entry.get("version"), int)
                and isinstance(entry.get("document"), dict)
            ):
                return False
    return True


class DocumentStore(ABC):
    """Base class for all store backends."""

    def __init__(self) -> None:
        self._collections: Optional[Dataset] = None

    # ------------------------------------------------------------------
    # Backend hooks
    # ------------------------------------------------------------------

    @abstractmethod
    def _read(self) -> Optional[Dataset]:
        """Load the full dataset, or return None if the medium does not exist."""

    @abstractmethod
    def _write(self, collections: Dataset) -> None:
        """Replace the full dataset on the backing medium."""

    @property
    @abstractmethod
    def location(self) -> str:
        """Human-readable description of the backing medium (for logs)."""

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def connect(self) -> bool:
        """
        Load the dataset into memory.

        Raises:
            StoreIOError: If the backing medium exists but cannot be loaded.
        """
        try:
            collections = self._read()
        except StoreIOError:
            raise
        except Exception as e:
            raise StoreIOError(f"Failed to load store from {self.location}: {e}") from e

        if collections is None:
            logger.debug(f"No existing dataset at {self.location}, starting empty")
            collections = {}
        elif not _is_dataset(collections):
            raise StoreIOError(f"Store at {self.location} does not hold a dataset")
        else:
            logger.debug(f"Loaded dataset from {self.location}")

        self._collections = collections
        return True

    def disconnect(self) -> None:
        """Flush the dataset one last time and drop it from memory."""
        if self._collections is None:
            return
        self._flush()
        self._collections = None

    @property
    def is_connected(self) -> bool:
        return self._collections is not None

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_all(self, collection: str) -> List[dict]:
        """Return every document in the collection, in insertion order."""
        entries = self._dataset().get(collection, {})
        return [copy.deepcopy(entry["document"]) for entry in entries.values()]

    def get_by_key(self, collection: str, key: str) -> Optional[dict]:
        """Return the document stored under ``key``, or None."""
        entry = self._dataset().get(collection, {}).get(key)
        if entry is None:
            return None
        return copy.deepcopy(entry["document"])

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def upsert(self, collection: str, doc: dict) -> dict:
        """
        Add or update ``doc`` with an incremented version.

        The new version is the caller-supplied version (when > 0) or the
        stored version, plus one. A first insert always gets version 1.

        Returns:
            A copy of the stored document carrying its new version.
        """
        with self._mutating(collection):
            stored = self._put(collection, doc)
        return stored

    def upsert_multi(self, collection: str, docs: Iterable[dict]) -> List[dict]:
        """Upsert each document; every one of them is flushed individually."""
        return [self.upsert(collection, doc) for doc in docs]

    def remove(self, collection: str, key: str) -> bool:
        """
        Remove the document stored under ``key``.

        Returns:
            True if a document was removed, False if none was stored.
        """
        if key is None:
            raise InvalidArgumentError("Document has no uuid")
        with self._mutating(collection) as dataset:
            entries = dataset.get(collection)
            removed = entries is not None and entries.pop(key, None) is not None
        return removed

    def remove_all(self, collection: str) -> bool:
        """Drop every document in the collection."""
        with self._mutating(collection) as dataset:
            dataset.pop(collection, None)
        return True

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _dataset(self) -> Dataset:
        if self._collections is None:
            raise StoreIOError(f"Store at {self.location} is not connected")
        return self._collections

    @contextmanager
    def _mutating(self, collection: str) -> Iterator[Dataset]:
        """
        Change one collection and flush, restoring the collection if the
        change or the flush fails.
        """
        dataset = self._dataset()
        snapshot = copy.deepcopy(dataset.get(collection))
        try:
            yield dataset
            self._flush()
        except Exception:
            if snapshot is None:
                dataset.pop(collection, None)
            else:
                dataset[collection] = snapshot
            raise

    def _put(self, collection: str, doc: dict) -> dict:
        key = doc.get(KEY_FIELD)
        if key is None:
            raise InvalidArgumentError("Document has no uuid")

        entries = self._dataset().setdefault(collection, {})
        entry = entries.get(key)
        requested = doc.get(VERSION_FIELD) or 0
        if entry is None:
            version = 1
        else:
            version = (requested if requested > 0 else entry["version"]) + 1

        document = copy.deepcopy(doc)
        document[VERSION_FIELD] = version
        entries[key] = {"version": version, "document": document}
        return copy.deepcopy(document)

    def _flush(self) -> None:
        collections = self._dataset()
        logger.debug(f"Persisting dataset to {self.location}")
        try:
            self._write(collections)
        except StoreIOError:
            raise
        except Exception as e:
            raise StoreIOError(f"Failed to write store to {self.location}: {e}") from e
