"""
Interfaces the engine consumes from its collaborators.

Image storage, the tag-rule predicate language and model behaviour live
outside this package; the engine only calls them through these protocols.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Protocol, Tuple, Union

import yaml

from ..core.exceptions import InvalidArgumentError
from ..models import ActiveModel, Image, Node, Policy, TagRule
from ..schemas import BootResponse

logger = logging.getLogger(__name__)


class ImageRepository(Protocol):
    def verify(self, image: Image, image_path: str) -> Tuple[bool, str]:
        """Check the image files under ``image_path``; returns (ok, message)."""
        ...

    def remove(self, image: Image, image_path: str) -> bool:
        """Delete the image files under ``image_path``."""
        ...


class TagRuleEvaluator(Protocol):
    def check(self, rule: TagRule, attributes: Dict[str, Any]) -> bool:
        """True if ``rule`` applies to a node with these attributes."""
        ...

    def tag(self, rule: TagRule, node: Node) -> str:
        """The tag ``rule`` yields for ``node``."""
        ...


class ModelRuntime(Protocol):
    def bind(self, policy: Policy, node: Node) -> bool:
        """Accept or refuse binding ``policy`` to ``node``."""
        ...

    def checkin_hook(self, active_model: ActiveModel, node: Node) -> Tuple[str, Dict[str, Any]]:
        """Advance the model on check-in; may mutate ``active_model.state``."""
        ...

    def boot_hook(self, active_model: ActiveModel, node: Node) -> BootResponse:
        """Produce the boot artifact; may mutate ``active_model.state``."""
        ...


class ManualOverrideSource(Protocol):
    def lookup(self, uuid: str) -> Optional[str]:
        """Forced command for ``uuid``, or None."""
        ...


class NoOverrides:
    """Override source with no entries."""

    def lookup(self, uuid: str) -> Optional[str]:
        return None


class YamlOverrideSource:
    """
    Per-node check-in overrides read from a YAML mapping of uuid -> command.

    The file is re-read on every lookup so operators can edit it while the
    control plane runs. A missing file means no overrides.

    Example file:
        0a1b2c3d: reboot
        4e5f6a7b: register
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def lookup(self, uuid: str) -> Optional[str]:
        if not self.path.exists():
            return None

        with open(self.path, encoding="utf-8") as f:
            checkin_actions = yaml.safe_load(f) or {}

        if not isinstance(checkin_actions, dict):
            raise InvalidArgumentError(
                f"Check-in action file {self.path} must contain a mapping"
            )

        # Unquoted numeric uuids load as int or float keys
        checkin_actions = {str(key): value for key, value in checkin_actions.items()}
        action = checkin_actions.get(uuid)
        return str(action) if action is not None else None
