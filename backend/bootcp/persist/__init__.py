"""Versioned document store and its backends."""

from .base import DocumentStore
from .file_store import FileDocumentStore, JsonDocumentStore, YamlDocumentStore
from .sql_store import DocumentRow, SqlDocumentStore
from .repository import Repository

__all__ = [
    "DocumentStore",
    "FileDocumentStore",
    "JsonDocumentStore",
    "YamlDocumentStore",
    "DocumentRow",
    "SqlDocumentStore",
    "Repository",
]
