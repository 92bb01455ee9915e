"""Check-in command schemas returned to nodes."""

from enum import Enum
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, Field


class CommandName(str, Enum):
    """Commands issued by the check-in state machine itself."""

    REGISTER = "register"
    ACKNOWLEDGE = "acknowledge"


class CheckinCommand(BaseModel):
    """
    The next action for a checking-in node.

    Overrides and model runtimes may issue command names beyond
    ``CommandName``; they are passed through verbatim.
    """

    command_name: str = Field(
        ...,
        min_length=1,
        examples=["register", "acknowledge", "reboot"],
    )

    command_param: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def of(
        cls,
        command_name: Union[str, CommandName],
        command_param: Optional[Dict[str, Any]] = None,
    ) -> "CheckinCommand":
        if isinstance(command_name, CommandName):
            command_name = command_name.value
        return cls(command_name=str(command_name), command_param=command_param or {})
