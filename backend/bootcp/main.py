"""
bootcp - control plane engine for bare-metal node provisioning.

Service wiring: builds the store and engine from settings and manages the
store lifecycle. The transport layer embeds the engine with::

    with lifespan(runtime=..., image_repository=..., tag_evaluator=...) as controller:
        controller.checkin(uuid, last_state)
"""

import logging
import sys
from contextlib import contextmanager
from typing import Iterator, Optional

from .core.config import Settings, get_settings
from .core.db import create_store
from .core.exceptions import StoreIOError
from .engine import (
    CheckinBootController,
    ImageRepository,
    ModelRuntime,
    NodeRegistry,
    PolicyEngine,
    TagRuleEvaluator,
    YamlOverrideSource,
    load_system_tag_rules,
)
from .persist import DocumentStore

logger = logging.getLogger("bootcp")


def configure_logging(settings: Settings) -> None:
    """Set the root log level from settings (DEBUG forces debug output)."""
    level = logging.DEBUG if settings.DEBUG else getattr(
        logging, settings.LOG_LEVEL.upper(), logging.INFO
    )
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def startup(store: DocumentStore) -> None:
    """Connect the store; the process cannot run without it."""
    try:
        store.connect()
    except StoreIOError as e:
        logger.critical(f"Cannot connect to store at {store.location}: {e}")
        sys.exit(1)
    logger.info(f"Connected to store at {store.location}")


def create_controller(
    store: DocumentStore,
    runtime: ModelRuntime,
    image_repository: ImageRepository,
    tag_evaluator: TagRuleEvaluator,
    settings: Optional[Settings] = None,
) -> CheckinBootController:
    """Assemble the engine components around an existing store."""
    settings = settings or get_settings()

    registry = NodeRegistry(store)
    policy_engine = PolicyEngine(
        store,
        runtime=runtime,
        tag_evaluator=tag_evaluator,
        system_tag_rules=load_system_tag_rules(settings.SYSTEM_TAG_RULES_DIR),
        register_timeout=settings.REGISTER_TIMEOUT,
    )
    overrides = (
        YamlOverrideSource(settings.CHECKIN_ACTION_FILE)
        if settings.CHECKIN_ACTION_FILE
        else None
    )

    return CheckinBootController(
        store,
        registry=registry,
        policy_engine=policy_engine,
        runtime=runtime,
        image_repository=image_repository,
        overrides=overrides,
        register_timeout=settings.REGISTER_TIMEOUT,
        node_expire_timeout=settings.NODE_EXPIRE_TIMEOUT,
        image_path=settings.IMAGE_PATH,
        mk_path_prefix=settings.MK_PATH_PREFIX,
    )


@contextmanager
def lifespan(
    runtime: ModelRuntime,
    image_repository: ImageRepository,
    tag_evaluator: TagRuleEvaluator,
    settings: Optional[Settings] = None,
) -> Iterator[CheckinBootController]:
    """Engine lifecycle management."""
    settings = settings or get_settings()
    configure_logging(settings)

    # Startup
    store = create_store(settings)
    startup(store)
    try:
        yield create_controller(store, runtime, image_repository, tag_evaluator, settings)
    finally:
        # Shutdown
        store.disconnect()
        logger.info(f"Disconnected from store at {store.location}")
