from enum import Enum
from typing import List, Optional

from pydantic import Field

from .base import Collection, Record


class MatchUsing(str, Enum):
    AND = "and"
    OR = "or"


class Policy(Record):
    collection = Collection.POLICY

    label: str
    tags: List[str] = Field(default_factory=list)
    match_using: MatchUsing = MatchUsing.AND
    enabled: bool = False
    max_count: int = Field(default=0, ge=0)  # 0 means no limit
    current_count: int = Field(default=0, ge=0)
    model_uuid: Optional[str] = None

    def is_under_maximum(self) -> bool:
        return self.max_count == 0 or self.current_count < self.max_count
