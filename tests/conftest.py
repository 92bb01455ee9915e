"""Shared fixtures: fake collaborators, a controllable clock and stores."""

from typing import Any, Dict, List, Tuple

import pytest

from bootcp.engine import CheckinBootController, NodeRegistry, PolicyEngine
from bootcp.models import ActiveModel, Image, Node, Policy, TagRule
from bootcp.persist import JsonDocumentStore, SqlDocumentStore, YamlDocumentStore
from bootcp.schemas import BootKind, BootResponse

T0 = 1_700_000_000
REGISTER_TIMEOUT = 3600


class FakeClock:
    def __init__(self, now: int = T0):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


class FakeImageRepository:
    """Images verify unless their uuid is listed in ``broken``."""

    def __init__(self):
        self.broken = set()
        self.removable = True
        self.removed: List[str] = []

    def verify(self, image: Image, image_path: str) -> Tuple[bool, str]:
        if image.uuid in self.broken:
            return False, "missing files"
        return True, "ok"

    def remove(self, image: Image, image_path: str) -> bool:
        if self.removable:
            self.removed.append(image.uuid)
        return self.removable


class FakeTagEvaluator:
    """Matchers are ``{"key": ..., "value": ...}``; all must equal the attribute."""

    def check(self, rule: TagRule, attributes: Dict[str, Any]) -> bool:
        return all(attributes.get(m["key"]) == m["value"] for m in rule.tag_matchers)

    def tag(self, rule: TagRule, node: Node) -> str:
        return rule.tag


class FakeRuntime:
    def __init__(self):
        self.accept = True
        self.bound: List[Tuple[str, str]] = []

    def bind(self, policy: Policy, node: Node) -> bool:
        if self.accept:
            self.bound.append((policy.uuid, node.uuid))
        return self.accept

    def checkin_hook(self, active_model: ActiveModel, node: Node):
        active_model.state["checkins"] = active_model.state.get("checkins", 0) + 1
        return "reboot", {"step": active_model.state["checkins"]}

    def boot_hook(self, active_model: ActiveModel, node: Node) -> BootResponse:
        active_model.state["boots"] = active_model.state.get("boots", 0) + 1
        return BootResponse(
            kind=BootKind.MODEL,
            node_uuid=node.uuid,
            artifact=f"install {active_model.label}",
        )


class DictOverrides:
    def __init__(self):
        self.actions: Dict[str, str] = {}

    def lookup(self, uuid: str):
        return self.actions.get(uuid)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(tmp_path):
    store = JsonDocumentStore(str(tmp_path / "bootcp"))
    store.connect()
    yield store
    store.disconnect()


@pytest.fixture(params=["json", "yaml", "sql"])
def any_store_factory(request, tmp_path):
    """Returns a callable building an unconnected store of each backend."""
    def build():
        if request.param == "json":
            return JsonDocumentStore(str(tmp_path / "bootcp"))
        if request.param == "yaml":
            return YamlDocumentStore(str(tmp_path / "bootcp"))
        return SqlDocumentStore(f"sqlite:///{tmp_path / 'bootcp.db'}")
    return build


@pytest.fixture
def runtime() -> FakeRuntime:
    return FakeRuntime()


@pytest.fixture
def image_repository() -> FakeImageRepository:
    return FakeImageRepository()


@pytest.fixture
def overrides() -> DictOverrides:
    return DictOverrides()


@pytest.fixture
def registry(store, clock) -> NodeRegistry:
    return NodeRegistry(store, clock=clock)


@pytest.fixture
def policy_engine(store, runtime, clock) -> PolicyEngine:
    return PolicyEngine(
        store,
        runtime=runtime,
        tag_evaluator=FakeTagEvaluator(),
        register_timeout=REGISTER_TIMEOUT,
        clock=clock,
    )


@pytest.fixture
def controller(
    store, registry, policy_engine, runtime, image_repository, overrides, clock
) -> CheckinBootController:
    return CheckinBootController(
        store,
        registry=registry,
        policy_engine=policy_engine,
        runtime=runtime,
        image_repository=image_repository,
        overrides=overrides,
        register_timeout=REGISTER_TIMEOUT,
        node_expire_timeout=300,
        clock=clock,
    )
