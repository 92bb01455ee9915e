"""Pydantic schemas for responses handed to the transport layer."""

from .command import CommandName, CheckinCommand
from .boot import BootKind, BootResponse
from .status import NodeStatus, RemovalStatus, RemovalResult

__all__ = [
    # Check-in
    "CommandName",
    "CheckinCommand",
    # Boot
    "BootKind",
    "BootResponse",
    # Status
    "NodeStatus",
    "RemovalStatus",
    "RemovalResult",
]
