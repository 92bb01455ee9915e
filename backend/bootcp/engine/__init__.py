"""Check-in/boot state machine, policy binding and node identity."""

from .collaborators import (
    ImageRepository,
    ManualOverrideSource,
    ModelRuntime,
    NoOverrides,
    TagRuleEvaluator,
    YamlOverrideSource,
)
from .registry import NodeRegistry
from .policy_engine import PolicyEngine, load_system_tag_rules, tag_match
from .controller import CheckinBootController

__all__ = [
    # Collaborators
    "ImageRepository",
    "ManualOverrideSource",
    "ModelRuntime",
    "NoOverrides",
    "TagRuleEvaluator",
    "YamlOverrideSource",
    # Engine
    "NodeRegistry",
    "PolicyEngine",
    "load_system_tag_rules",
    "tag_match",
    "CheckinBootController",
]
