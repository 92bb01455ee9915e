"""
Policy engine: node tagging and first-match policy binding.
"""

import json
import logging
import time
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence, Union

from pydantic import ValidationError

from ..models import ActiveModel, MatchUsing, Node, Policy, TagRule
from ..persist import DocumentStore, Repository
from ..schemas import NodeStatus
from .collaborators import ModelRuntime, TagRuleEvaluator

logger = logging.getLogger(__name__)


def load_system_tag_rules(directory: Union[str, Path, None]) -> List[TagRule]:
    """
    Load the built-in tag rules shipped as ``*.json`` files below ``directory``.

    Files that cannot be parsed or do not describe a tag rule are logged and
    skipped.
    """
    if directory is None:
        return []

    directory = Path(directory)
    if not directory.is_dir():
        logger.warning(f"System tag rule directory {directory} does not exist")
        return []

    rules = []
    for json_file in sorted(directory.rglob("*.json")):
        try:
            payload = json.loads(json_file.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Parsing error with json file {json_file}: {e}")
            continue
        try:
            rules.append(TagRule.model_validate(payload))
        except ValidationError as e:
            logger.error(f"Converting to tag rule failed for {json_file}: {e}")

    logger.info(f"Loaded {len(rules)} system tag rules from {directory}")
    return rules


def tag_match(node_tags: Iterable[str], policy: Policy) -> bool:
    """
    Check a node's tags against a policy.

    With ``match_using`` "or" any shared tag is enough; otherwise every
    policy tag must be present on the node.
    """
    node_tags = set(node_tags)
    policy_tags = set(policy.tags)
    if policy.match_using == MatchUsing.OR:
        return bool(policy_tags & node_tags)
    return not (policy_tags - node_tags)


class PolicyEngine:
    def __init__(
        self,
        store: DocumentStore,
        runtime: ModelRuntime,
        tag_evaluator: TagRuleEvaluator,
        system_tag_rules: Sequence[TagRule] = (),
        register_timeout: int = 120,
        clock: Callable[[], float] = time.time,
    ):
        self.policies = Repository(store, Policy)
        self.active_models = Repository(store, ActiveModel)
        self.tag_rules = Repository(store, TagRule)
        self.runtime = runtime
        self.tag_evaluator = tag_evaluator
        self.system_tag_rules = list(system_tag_rules)
        self.register_timeout = register_timeout
        self.clock = clock

    # ------------------------------------------------------------------
    # Tags
    # ------------------------------------------------------------------

    def _rule_tags(self, node: Node, rules: Iterable[TagRule]) -> List[str]:
        return [
            self.tag_evaluator.tag(rule, node)
            for rule in rules
            if self.tag_evaluator.check(rule, node.attributes)
        ]

    def compute_tags(self, node: Node) -> List[str]:
        """
        Tags for ``node``: custom tag rules, then its hardware ids, then
        the system tag rules. Duplicates are dropped (first one wins).
        """
        candidates = (
            self._rule_tags(node, self.tag_rules.all())
            + list(node.hw_id)
            + self._rule_tags(node, self.system_tag_rules)
        )

        tags = []
        for tag in candidates:
            if tag in tags:
                logger.debug(f"Duplicate tag '{tag}' for node {node.uuid}")
                continue
            tags.append(tag)
        return tags

    # ------------------------------------------------------------------
    # Binding
    # ------------------------------------------------------------------

    def find_active_model(self, node: Node) -> Optional[ActiveModel]:
        for active_model in self.active_models.all():
            if active_model.node_uuid == node.uuid:
                return active_model
        return None

    def policy_active_model_count(self, policy_uuid: str) -> int:
        return sum(1 for am in self.active_models.all() if am.root_policy == policy_uuid)

    def evaluate(self, node: Node) -> Optional[ActiveModel]:
        """
        Bind ``node`` to the first eligible policy, in stored order.

        Eligible means enabled, under its maximum bind count, with at least
        one tag, and matching the node's tags.

        Returns:
            The new active model, or None if nothing was bound.
        """
        logger.debug(f"Evaluating policy rules vs node {node.uuid}")
        node_tags = self.compute_tags(node)

        for policy in self.policies.all():
            if not policy.tags:
                logger.error(f"Policy ({policy.label}) has no tags configured")
                continue
            if not (policy.enabled and policy.is_under_maximum()):
                continue
            if not tag_match(node_tags, policy):
                continue

            logger.debug(
                f"Matching policy ({policy.label}) for node {node.uuid} using tags {policy.tags}"
            )
            return self._bind(node, policy)

        logger.debug(f"No matching policy for node {node.uuid}")
        return None

    def _bind(self, node: Node, policy: Policy) -> Optional[ActiveModel]:
        if not self.runtime.bind(policy, node):
            logger.error(f"Cannot bind node ({node.uuid}) to policy ({policy.label})")
            return None

        active_model = self.active_models.save(
            ActiveModel(
                node_uuid=node.uuid,
                root_policy=policy.uuid,
                model_uuid=policy.model_uuid,
                label=policy.label,
            )
        )
        policy.current_count += 1
        self.policies.save(policy)
        logger.info(f"Bound node ({node.uuid}) to policy ({policy.label})")
        return active_model

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def node_status(self, node: Node) -> NodeStatus:
        if self.find_active_model(node) is not None:
            return NodeStatus.BOUND
        if int(self.clock()) - (node.timestamp or 0) > self.register_timeout:
            return NodeStatus.INACTIVE
        return NodeStatus.ACTIVE
