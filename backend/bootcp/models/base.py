"""Shared base for all persisted records."""

from enum import Enum
from typing import ClassVar
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


class Collection(str, Enum):
    """Store collections, one per record type."""

    NODE = "node"
    POLICY = "policy"
    IMAGE = "image"
    MODEL = "model"
    ACTIVE = "active"
    TAG = "tag"


def new_uuid() -> str:
    return uuid4().hex


class Record(BaseModel):
    """
    A typed document keyed by ``uuid``.

    ``version`` is owned by the store: 0 until first saved, then incremented
    on every save.
    """

    model_config = ConfigDict(
        extra="ignore",
        validate_assignment=True,
        protected_namespaces=(),
    )

    collection: ClassVar[Collection]

    uuid: str = Field(default_factory=new_uuid, min_length=1)
    version: int = Field(default=0, ge=0)
