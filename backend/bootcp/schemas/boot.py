"""Boot response schemas."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class BootKind(str, Enum):
    MINIMAL_RUNTIME = "minimal_runtime"
    MODEL = "model"


class BootResponse(BaseModel):
    """What a booting node is told to load."""

    kind: BootKind

    node_uuid: str = Field(
        ...,
        description="Node uuid, or 'unknown' when the node could not be resolved",
    )

    image_uuid: Optional[str] = Field(
        default=None,
        description="Image to boot. None when no minimal runtime image is available",
    )

    artifact: Optional[str] = Field(
        default=None,
        description="Opaque boot artifact produced by a model runtime",
    )
