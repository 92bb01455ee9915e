"""Core module: configuration and exceptions."""

from .config import get_settings, Settings
from .exceptions import (
    BootCpException,
    InvalidArgumentError,
    ConflictError,
    ConsistencyViolationError,
    ReferentialIntegrityError,
    StoreIOError,
    EntityNotFoundError,
)

__all__ = [
    # Config
    "get_settings",
    "Settings",
    # Exceptions
    "BootCpException",
    "InvalidArgumentError",
    "ConflictError",
    "ConsistencyViolationError",
    "ReferentialIntegrityError",
    "StoreIOError",
    "EntityNotFoundError",
]
