"""
Custom exceptions for bootcp.
"""

from typing import Iterable


class BootCpException(Exception):
    """Base exception for bootcp."""
    pass


class InvalidArgumentError(BootCpException):
    """Raised when a caller passes an unusable argument (missing key, no hw_id)."""
    pass


class ConflictError(BootCpException):
    """Raised when a hardware identifier is already claimed by another node."""
    def __init__(self, hw_ids: Iterable[str], existing_uuid: str):
        self.hw_ids = list(hw_ids)
        self.existing_uuid = existing_uuid
        super().__init__(
            f"hw_id {self.hw_ids} already registered to node {existing_uuid}"
        )


class ConsistencyViolationError(BootCpException):
    """Raised when more than one node still matches an identity after repair."""
    def __init__(self, node_uuids: Iterable[str]):
        self.node_uuids = list(node_uuids)
        super().__init__(
            f"Multiple nodes match the same identity: {self.node_uuids}"
        )


class ReferentialIntegrityError(BootCpException):
    """Raised when deleting an entity that other records still reference."""
    def __init__(self, entity_type: str, entity_id: str, referenced_by: Iterable[str]):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.referenced_by = list(referenced_by)
        super().__init__(
            f"Cannot remove {entity_type} '{entity_id}' because it is used by: "
            f"{self.referenced_by}"
        )


class StoreIOError(BootCpException):
    """Raised when the backing medium cannot be read or written."""
    pass


class EntityNotFoundError(BootCpException):
    """Raised when a requested entity is not found."""
    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} with id {entity_id} not found")
