"""Node status and guarded-removal result schemas."""

from enum import Enum
from typing import List

from pydantic import BaseModel, Field

from ..core.exceptions import ReferentialIntegrityError


class NodeStatus(str, Enum):
    BOUND = "bound"
    ACTIVE = "active"
    INACTIVE = "inactive"


class RemovalStatus(str, Enum):
    REMOVED = "removed"
    REFERENCED = "referenced"  # Still used by other records, nothing removed
    NOT_REMOVED = "not_removed"  # Image files could not be removed


class RemovalResult(BaseModel):
    """Outcome of removing an image or a model."""

    entity_type: str
    entity_id: str
    status: RemovalStatus
    referenced_by: List[str] = Field(default_factory=list)
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status == RemovalStatus.REMOVED

    def raise_for_status(self) -> None:
        """Raise ReferentialIntegrityError if the removal was refused."""
        if self.status == RemovalStatus.REFERENCED:
            raise ReferentialIntegrityError(
                self.entity_type, self.entity_id, self.referenced_by
            )
