"""
Check-in and boot state machine.

Every public method runs under one re-entrant lock: the store keeps its
dataset in memory and does read-modify-write without locking of its own, so
concurrent check-ins must be serialized here.

Check-in precedence, highest first:

1. unknown node               -> register
2. manual override            -> the override command, verbatim
3. silent for too long        -> register
4. bound to an active model   -> the model's check-in command
5. otherwise                  -> evaluate policies, then acknowledge
"""

import logging
import threading
import time
from typing import Callable, Iterable, List, Optional

from ..core.exceptions import EntityNotFoundError, StoreIOError
from ..models import ActiveModel, Image, Model, Node, Policy
from ..persist import DocumentStore, Repository
from ..schemas import (
    BootKind,
    BootResponse,
    CheckinCommand,
    CommandName,
    NodeStatus,
    RemovalResult,
    RemovalStatus,
)
from .collaborators import ImageRepository, ManualOverrideSource, ModelRuntime, NoOverrides
from .policy_engine import PolicyEngine
from .registry import NodeRegistry

logger = logging.getLogger(__name__)

UNKNOWN_NODE = "unknown"


class CheckinBootController:
    def __init__(
        self,
        store: DocumentStore,
        registry: NodeRegistry,
        policy_engine: PolicyEngine,
        runtime: ModelRuntime,
        image_repository: ImageRepository,
        overrides: Optional[ManualOverrideSource] = None,
        register_timeout: int = 120,
        node_expire_timeout: int = 300,
        image_path: str = "./image",
        mk_path_prefix: str = "mk",
        clock: Callable[[], float] = time.time,
    ):
        self.registry = registry
        self.policy_engine = policy_engine
        self.runtime = runtime
        self.image_repository = image_repository
        self.overrides = overrides or NoOverrides()
        self.register_timeout = register_timeout
        self.node_expire_timeout = node_expire_timeout
        self.image_path = image_path
        self.mk_path_prefix = mk_path_prefix
        self.clock = clock

        self.images = Repository(store, Image)
        self.models = Repository(store, Model)
        self.policies = Repository(store, Policy)
        self.active_models = Repository(store, ActiveModel)

        self._lock = threading.RLock()

    def _now(self) -> int:
        return int(self.clock())

    # ========================================================================
    # Check-in
    # ========================================================================

    def checkin(self, uuid: str, last_state: Optional[str]) -> CheckinCommand:
        """Record a node's contact and decide its next command."""
        with self._lock:
            node = self.registry.find(uuid)
            if node is None:
                logger.debug(f"Unknown node {uuid}, asking to register")
                return CheckinCommand.of(CommandName.REGISTER)

            old_timestamp = node.timestamp or 0
            node.last_state = last_state
            node.timestamp = self._now()
            try:
                node = self.registry.save(node)
                logger.debug(f"Node {uuid} checkin accepted")
            except StoreIOError as e:
                logger.error(f"Node {uuid} checkin failed to persist: {e}")

            forced_action = self.overrides.lookup(uuid)
            if forced_action:
                logger.debug(f"Forced action for node {uuid} found ({forced_action})")
                return CheckinCommand.of(forced_action)

            elapsed = node.timestamp - old_timestamp
            if elapsed > self.register_timeout:
                logger.debug(
                    f"Asking node {uuid} to re-register, last contact {elapsed} seconds ago"
                )
                return CheckinCommand.of(CommandName.REGISTER)

            active_model = self.policy_engine.find_active_model(node)
            if active_model is not None:
                command_name, command_param = self.runtime.checkin_hook(active_model, node)
                self.active_models.save(active_model)
                return CheckinCommand.of(command_name, command_param)

            self.policy_engine.evaluate(node)
            return CheckinCommand.of(CommandName.ACKNOWLEDGE)

    # ========================================================================
    # Boot
    # ========================================================================

    def boot(
        self,
        uuid: Optional[str] = None,
        mac_ids: Optional[Iterable[str]] = None,
        dhcp_mac: Optional[str] = None,
    ) -> BootResponse:
        """Decide what a booting node loads."""
        mac_ids = list(mac_ids or [])
        logger.info(f"Request for boot - uuid: {uuid}, mac_id: {mac_ids}")

        with self._lock:
            node = self.registry.lookup(uuid=uuid, hw_ids=mac_ids)
            if node is None:
                logger.info(f"Node unknown - uuid: {uuid}, mac_id: {mac_ids}")
                return self.default_boot(UNKNOWN_NODE)

            logger.info(f"Node identified - uuid: {node.uuid}")
            if dhcp_mac:
                node.dhcp_mac = dhcp_mac
                node = self.registry.save(node)

            active_model = self.policy_engine.find_active_model(node)
            if active_model is not None:
                logger.info(f"Active policy found ({active_model.label}) for node {node.uuid}")
                boot_response = self.runtime.boot_hook(active_model, node)
                self.active_models.save(active_model)
                return boot_response

            logger.info(f"No active policy found - uuid: {node.uuid}")
            return self.default_boot(node.uuid)

    def default_image(self) -> Optional[Image]:
        """
        The verified minimal runtime image with the highest version_weight.

        Ties keep the first image encountered.
        """
        with self._lock:
            best = None
            for image in self.images.all():
                if image.path_prefix != self.mk_path_prefix:
                    continue
                ok, message = self.image_repository.verify(image, self.image_path)
                image.verified = ok
                if not ok:
                    logger.debug(f"Image {image.uuid} failed verification: {message}")
                    continue
                if best is None or image.version_weight > best.version_weight:
                    best = image
            return best

    def default_boot(self, node_uuid: str) -> BootResponse:
        image = self.default_image()
        if image is None:
            logger.warning(f"No verified minimal runtime image available for node {node_uuid}")
        logger.info(f"Responding with minimal runtime boot - node: {node_uuid}")
        return BootResponse(
            kind=BootKind.MINIMAL_RUNTIME,
            node_uuid=node_uuid,
            image_uuid=image.uuid if image else None,
        )

    # ========================================================================
    # Registry passthroughs
    # ========================================================================

    def register(self, node: Node) -> Node:
        with self._lock:
            return self.registry.register(node)

    def resolve_collisions(self) -> int:
        with self._lock:
            return self.registry.resolve_collisions()

    def node_status(self, node: Node) -> NodeStatus:
        with self._lock:
            return self.policy_engine.node_status(node)

    def policy_active_model_count(self, policy_uuid: str) -> int:
        with self._lock:
            return self.policy_engine.policy_active_model_count(policy_uuid)

    # ========================================================================
    # Maintenance
    # ========================================================================

    def expire_nodes(self, timeout: Optional[int] = None) -> List[str]:
        """
        Remove unbound nodes that have not checked in for ``timeout`` seconds.

        Returns:
            The uuids of the removed nodes.
        """
        if timeout is None:
            timeout = self.node_expire_timeout

        removed = []
        with self._lock:
            now = self._now()
            for node in self.registry.all():
                if self.policy_engine.find_active_model(node) is not None:
                    continue
                if now - (node.timestamp or 0) <= timeout:
                    continue
                if self.registry.nodes.delete(node.uuid):
                    logger.info(f"Expired node '{node.uuid}' successfully removed")
                    removed.append(node.uuid)
                else:
                    logger.info(f"Expired node '{node.uuid}' could not be removed")
        return removed

    def remove_image(self, image_uuid: str) -> RemovalResult:
        """
        Remove an image unless a model still uses it.

        Raises:
            EntityNotFoundError: If no such image exists.
        """
        with self._lock:
            image = self.images.get(image_uuid)
            if image is None:
                raise EntityNotFoundError("Image", image_uuid)

            model_uuids = [m.uuid for m in self.models.all() if m.image_uuid == image_uuid]
            if model_uuids:
                logger.warning(
                    f"Cannot remove image '{image_uuid}' because it is used in "
                    f"the following models: {model_uuids}"
                )
                return RemovalResult(
                    entity_type="Image",
                    entity_id=image_uuid,
                    status=RemovalStatus.REFERENCED,
                    referenced_by=model_uuids,
                    message="Image is used by models",
                )

            if not self.image_repository.remove(image, self.image_path):
                logger.error(f"Attempt to remove image '{image_uuid}' from image path failed")
                return RemovalResult(
                    entity_type="Image",
                    entity_id=image_uuid,
                    status=RemovalStatus.NOT_REMOVED,
                    message="Image files could not be removed from the image path",
                )

            self.images.delete(image_uuid)
            logger.info(f"Removed image '{image_uuid}'")
            return RemovalResult(
                entity_type="Image", entity_id=image_uuid, status=RemovalStatus.REMOVED
            )

    def remove_model(self, model_uuid: str) -> RemovalResult:
        """
        Remove a model unless a policy still applies it.

        Raises:
            EntityNotFoundError: If no such model exists.
        """
        with self._lock:
            if self.models.get(model_uuid) is None:
                raise EntityNotFoundError("Model", model_uuid)

            policy_uuids = [p.uuid for p in self.policies.all() if p.model_uuid == model_uuid]
            if policy_uuids:
                logger.warning(
                    f"Cannot remove model '{model_uuid}' because it is used in "
                    f"the following policies: {policy_uuids}"
                )
                return RemovalResult(
                    entity_type="Model",
                    entity_id=model_uuid,
                    status=RemovalStatus.REFERENCED,
                    referenced_by=policy_uuids,
                    message="Model is used by policies",
                )

            self.models.delete(model_uuid)
            logger.info(f"Removed model '{model_uuid}'")
            return RemovalResult(
                entity_type="Model", entity_id=model_uuid, status=RemovalStatus.REMOVED
            )
