"""SQL-backed store: one row per document, fully rewritten on every mutation."""

import json
import logging
from typing import Optional

from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError
from sqlmodel import Field, Session, SQLModel, create_engine, select

from .base import Dataset, DocumentStore

logger = logging.getLogger(__name__)


class DocumentRow(SQLModel, table=True):
    __tablename__ = "document"

    collection: str = Field(primary_key=True)
    uuid: str = Field(primary_key=True)
    version: int
    position: int = Field(index=True)  # Preserves insertion order across reloads
    body: str  # JSON-encoded document


class SqlDocumentStore(DocumentStore):
    """
    Dataset stored in the ``document`` table of ``database_url``.

    Every flush deletes all rows and re-inserts the whole dataset inside a
    single transaction, so the table always mirrors the in-memory dataset.
    """

    def __init__(self, database_url: str, echo: bool = False) -> None:
        super().__init__()
        self.database_url = database_url
        self.echo = echo
        self._engine = None

    @property
    def location(self) -> str:
        try:
            return make_url(self.database_url).render_as_string(hide_password=True)
        except ArgumentError:
            return "<invalid database url>"

    def disconnect(self) -> None:
        super().disconnect()
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None

    def _create_engine(self):
        connect_args = {}
        if self.database_url.startswith("sqlite"):
            # SQLite-specific: allow same connection across threads
            connect_args["check_same_thread"] = False
        return create_engine(
            self.database_url,
            connect_args=connect_args,
            echo=self.echo,  # Log SQL statements in debug mode
        )

    def _read(self) -> Optional[Dataset]:
        if self._engine is None:
            self._engine = self._create_engine()
        SQLModel.metadata.create_all(bind=self._engine, tables=[DocumentRow.__table__])
        with Session(self._engine) as session:
            rows = session.exec(select(DocumentRow).order_by(DocumentRow.position)).all()

        if not rows:
            return None

        collections: Dataset = {}
        for row in rows:
            collections.setdefault(row.collection, {})[row.uuid] = {
                "version": row.version,
                "document": json.loads(row.body),
            }
        return collections

    def _write(self, collections: Dataset) -> None:
        with Session(self._engine) as session:
            for row in session.exec(select(DocumentRow)).all():
                session.delete(row)
            session.flush()

            position = 0
            for collection, entries in collections.items():
                for uuid, entry in entries.items():
                    session.add(
                        DocumentRow(
                            collection=collection,
                            uuid=uuid,
                            version=entry["version"],
                            position=position,
                            body=json.dumps(entry["document"]),
                        )
                    )
                    position += 1
            session.commit()
