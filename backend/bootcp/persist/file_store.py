"""File-backed stores: the whole dataset is one JSON or YAML document on disk."""

import json
import logging
import os
import tempfile
from abc import abstractmethod
from pathlib import Path
from typing import Optional

import yaml

from .base import Dataset, DocumentStore

logger = logging.getLogger(__name__)


class FileDocumentStore(DocumentStore):
    """Store whose backing medium is a single file named ``<dbname><suffix>``."""

    suffix = ""

    def __init__(self, dbname: str) -> None:
        super().__init__()
        self.path = Path(f"{dbname}{self.suffix}")

    @property
    def location(self) -> str:
        return str(self.path)

    @abstractmethod
    def _loads(self, content: str) -> Optional[Dataset]:
        ...

    @abstractmethod
    def _dumps(self, collections: Dataset) -> str:
        ...

    def _read(self) -> Optional[Dataset]:
        if not self.path.exists():
            return None
        content = self.path.read_text(encoding="utf-8")
        # An empty file is treated like a fresh store
        return self._loads(content) or {}

    def _write(self, collections: Dataset) -> None:
        content = self._dumps(collections)
        directory = self.path.parent
        directory.mkdir(parents=True, exist_ok=True)

        # Write next to the target, then swap it in
        fd, tmp_name = tempfile.mkstemp(
            dir=directory, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise


class JsonDocumentStore(FileDocumentStore):
    """Dataset serialized as JSON in ``<dbname>.json``."""

    suffix = ".json"

    def _loads(self, content: str) -> Optional[Dataset]:
        if not content.strip():
            return None
        return json.loads(content)

    def _dumps(self, collections: Dataset) -> str:
        return json.dumps(collections, indent=2)


class YamlDocumentStore(FileDocumentStore):
    """Dataset serialized as YAML in ``<dbname>.yml``."""

    suffix = ".yml"

    def _loads(self, content: str) -> Optional[Dataset]:
        return yaml.safe_load(content)

    def _dumps(self, collections: Dataset) -> str:
        return yaml.safe_dump(collections, default_flow_style=False, sort_keys=False)
