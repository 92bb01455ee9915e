"""Typed access to one store collection."""

from typing import Generic, Iterable, List, Optional, Type, TypeVar

from ..models.base import Record
from .base import DocumentStore

RecordT = TypeVar("RecordT", bound=Record)


class Repository(Generic[RecordT]):
    """
    Maps records of one type onto their collection.

    Usage:
        nodes = Repository(store, Node)
        node = nodes.save(Node(hw_id=["AA:BB"]))
    """

    def __init__(self, store: DocumentStore, record_type: Type[RecordT]):
        self.store = store
        self.record_type = record_type
        self.collection = record_type.collection.value

    def to_document(self, record: RecordT) -> dict:
        return record.model_dump(mode="json")

    def from_document(self, document: dict) -> RecordT:
        return self.record_type.model_validate(document)

    def all(self) -> List[RecordT]:
        return [self.from_document(doc) for doc in self.store.get_all(self.collection)]

    def get(self, uuid: str) -> Optional[RecordT]:
        document = self.store.get_by_key(self.collection, uuid)
        if document is None:
            return None
        return self.from_document(document)

    def save(self, record: RecordT) -> RecordT:
        """Persist ``record`` and return the stored copy with its new version."""
        stored = self.from_document(self.store.upsert(self.collection, self.to_document(record)))
        record.version = stored.version
        return stored

    def save_many(self, records: Iterable[RecordT]) -> List[RecordT]:
        return [self.save(record) for record in records]

    def delete(self, uuid: str) -> bool:
        return self.store.remove(self.collection, uuid)

    def clear(self) -> bool:
        return self.store.remove_all(self.collection)
