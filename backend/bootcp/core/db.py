"""Store construction from settings."""

from typing import Optional

from .config import Settings, get_settings
from .exceptions import InvalidArgumentError
from ..persist import DocumentStore, JsonDocumentStore, SqlDocumentStore, YamlDocumentStore


def create_store(settings: Optional[Settings] = None) -> DocumentStore:
    """
    Build the (not yet connected) store selected by ``PERSIST_MODE``.

    Usage:
        store = create_store()
        store.connect()
    """
    settings = settings or get_settings()

    if settings.PERSIST_MODE == "json":
        return JsonDocumentStore(settings.PERSIST_DBNAME)
    if settings.PERSIST_MODE == "yaml":
        return YamlDocumentStore(settings.PERSIST_DBNAME)
    if settings.PERSIST_MODE == "sql":
        return SqlDocumentStore(settings.DATABASE_URL, echo=settings.DEBUG)

    raise InvalidArgumentError(f"Unknown persist mode '{settings.PERSIST_MODE}'")
