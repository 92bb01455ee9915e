from typing import Any, Dict, Optional

from pydantic import Field

from .base import Collection, Record


class Model(Record):
    """A model template that policies apply to the nodes they bind."""

    collection = Collection.MODEL

    label: str
    template: str
    image_uuid: Optional[str] = None


class ActiveModel(Record):
    """A policy bound to one node; ``state`` belongs to the model runtime."""

    collection = Collection.ACTIVE

    node_uuid: str
    root_policy: str
    model_uuid: Optional[str] = None
    label: str = ""
    state: Dict[str, Any] = Field(default_factory=dict)
