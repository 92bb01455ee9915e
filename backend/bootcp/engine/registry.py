"""
Node registry: hardware identity resolution, registration and collision repair.

Invariant maintained here: a hardware identifier belongs to at most one node.
Callers must serialize access (see ``CheckinBootController``); registration
and repair are read-then-write sequences.
"""

import logging
import time
from collections import Counter
from typing import Callable, Iterable, List, Optional

from ..core.exceptions import ConflictError, ConsistencyViolationError, InvalidArgumentError
from ..models import Node
from ..persist import DocumentStore, Repository

logger = logging.getLogger(__name__)


class NodeRegistry:
    def __init__(
        self,
        store: DocumentStore,
        clock: Callable[[], float] = time.time,
    ):
        self.nodes = Repository(store, Node)
        self.clock = clock

    def find(self, uuid: str) -> Optional[Node]:
        return self.nodes.get(uuid)

    def all(self) -> List[Node]:
        return self.nodes.all()

    def save(self, node: Node) -> Node:
        return self.nodes.save(node)

    def lookup(
        self,
        uuid: Optional[str] = None,
        hw_ids: Optional[Iterable[str]] = None,
    ) -> Optional[Node]:
        """
        Find the single node matching a boot identity.

        A node matches when its hw_id list is exactly ``[uuid]`` or when it
        shares any identifier with ``hw_ids``.

        Raises:
            ConsistencyViolationError: If several nodes still match after one
                collision repair pass.
        """
        hw_ids = list(hw_ids or [])
        if not uuid and not hw_ids:
            return None

        matching = self._match(uuid, hw_ids)
        if len(matching) > 1:
            # Should have been prevented at registration; repair and retry once
            logger.warning(
                f"Nodes {[n.uuid for n in matching]} share an identity, resolving collisions"
            )
            self.resolve_collisions()
            matching = self._match(uuid, hw_ids)
            if len(matching) > 1:
                logger.error(
                    f"Nodes {[n.uuid for n in matching]} still share an identity after repair"
                )
                raise ConsistencyViolationError(n.uuid for n in matching)

        return matching[0] if matching else None

    def _match(self, uuid: Optional[str], hw_ids: List[str]) -> List[Node]:
        wanted = set(hw_ids)
        matching = []
        for node in self.nodes.all():
            if uuid and node.hw_id == [uuid]:
                matching.append(node)
            elif wanted.intersection(node.hw_id):
                matching.append(node)
        return matching

    def register(self, node: Node) -> Node:
        """
        Create a node record.

        Raises:
            InvalidArgumentError: If the node has no hardware identifiers.
            ConflictError: If any identifier already belongs to another node.
        """
        if not node.hw_id:
            logger.error("Cannot register node without hw_id")
            raise InvalidArgumentError("Cannot register node without hw_id")

        for existing in self.nodes.all():
            shared = [hw for hw in node.hw_id if hw in existing.hw_id]
            if shared:
                logger.error(
                    f"Cannot register node {node.uuid} with hw_id {shared} "
                    f"already used by node {existing.uuid}"
                )
                raise ConflictError(shared, existing.uuid)

        if not node.timestamp:
            node.timestamp = int(self.clock())

        created = self.nodes.save(node)
        logger.info(f"Registered node {created.uuid} with hw_id {created.hw_id}")

        self.resolve_collisions()
        return self.nodes.get(created.uuid) or created

    def resolve_collisions(self) -> int:
        """
        Keep each duplicated hardware identifier only on its most senior node.

        For every identifier found on more than one node, the node with the
        smallest timestamp keeps it and all others lose it. Ties keep stored
        order.

        Returns:
            Number of identifiers removed from nodes.
        """
        nodes = self.nodes.all()
        counts = Counter(hw for node in nodes for hw in node.hw_id)
        removed = 0

        for hw, count in counts.items():
            if count < 2:
                continue
            owners = sorted(
                (node for node in nodes if hw in node.hw_id),
                key=lambda node: node.timestamp or 0,
            )
            keeper = owners[0]
            for node in owners[1:]:
                node.hw_id = [value for value in node.hw_id if value != hw]
                self.nodes.save(node)
                removed += 1
                logger.warning(
                    f"Removed duplicate hw_id {hw} from node {node.uuid}, kept on {keeper.uuid}"
                )

        return removed
