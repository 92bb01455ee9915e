from typing import Any, Dict, List, Optional

from pydantic import Field

from .base import Collection, Record


class Node(Record):
    collection = Collection.NODE

    hw_id: List[str] = Field(default_factory=list)
    dhcp_mac: Optional[str] = None
    last_state: Optional[str] = None
    timestamp: int = 0  # Epoch seconds of last contact
    attributes: Dict[str, Any] = Field(default_factory=dict)
