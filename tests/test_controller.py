import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from bootcp.core.exceptions import ConflictError, EntityNotFoundError, ReferentialIntegrityError
from bootcp.models import ActiveModel, Image, Model, Node, Policy
from bootcp.persist import Repository
from bootcp.schemas import BootKind, CheckinCommand, CommandName, NodeStatus, RemovalStatus

from conftest import REGISTER_TIMEOUT, T0


def _bind(store, node_uuid, policy_uuid="p1") -> ActiveModel:
    return Repository(store, ActiveModel).save(
        ActiveModel(node_uuid=node_uuid, root_policy=policy_uuid, label="install-os")
    )


# ============================================================================
# Check-in
# ============================================================================

def test_checkin_unknown_node_is_told_to_register(controller, registry) -> None:
    command = controller.checkin("ghost", "init")
    assert command.command_name == "register"
    assert command.command_param == {}
    assert registry.all() == []


def test_register_then_acknowledge_scenario(controller, registry, clock) -> None:
    assert controller.checkin("n1", "init").command_name == "register"

    controller.register(Node(uuid="n1", hw_id=["AA:BB"]))
    assert registry.find("n1").timestamp == T0

    clock.advance(5)
    command = controller.checkin("n1", "booted")

    assert command.command_name == "acknowledge"
    node = registry.find("n1")
    assert node.timestamp == T0 + 5
    assert node.last_state == "booted"


def test_override_wins_over_everything(controller, store, overrides, clock) -> None:
    controller.register(Node(uuid="n1", hw_id=["AA"]))
    _bind(store, "n1")
    overrides.actions["n1"] = "reboot_now"
    clock.advance(REGISTER_TIMEOUT * 2)

    command = controller.checkin("n1", "idle")

    assert command.command_name == "reboot_now"
    assert command.command_param == {}


def test_stale_node_is_asked_to_re_register(controller, store, registry, clock) -> None:
    controller.register(Node(uuid="n1", hw_id=["AA"]))
    _bind(store, "n1")
    clock.advance(REGISTER_TIMEOUT + 1)

    assert controller.checkin("n1", "idle").command_name == "register"
    # Contact is still recorded
    assert registry.find("n1").timestamp == T0 + REGISTER_TIMEOUT + 1


def test_bound_node_delegates_to_model(controller, store, clock) -> None:
    controller.register(Node(uuid="n1", hw_id=["AA"]))
    active_model = _bind(store, "n1")
    clock.advance(10)

    command = controller.checkin("n1", "idle")

    assert command.command_name == "reboot"
    assert command.command_param == {"step": 1}
    stored = Repository(store, ActiveModel).get(active_model.uuid)
    assert stored.state == {"checkins": 1}
    assert stored.version == 2


def test_unbound_node_is_evaluated_then_acknowledged(controller, store, runtime, clock) -> None:
    Repository(store, Policy).save(Policy(uuid="p1", label="web", tags=["AA"], enabled=True))
    controller.register(Node(uuid="n1", hw_id=["AA"]))
    clock.advance(10)

    command = controller.checkin("n1", "idle")

    assert command.command_name == "acknowledge"
    assert runtime.bound == [("p1", "n1")]
    assert controller.policy_active_model_count("p1") == 1

    # Next check-in goes through the bound model
    clock.advance(10)
    assert controller.checkin("n1", "idle").command_name == "reboot"


def test_checkin_survives_contact_persistence_failure(
    controller, store, monkeypatch, clock
) -> None:
    controller.register(Node(uuid="n1", hw_id=["AA"]))
    clock.advance(10)

    def fail(collections):
        raise OSError("read-only filesystem")

    monkeypatch.setattr(store, "_write", fail)

    assert controller.checkin("n1", "idle").command_name == "acknowledge"


# ============================================================================
# Boot
# ============================================================================

def test_boot_unknown_node_gets_minimal_runtime(controller, store) -> None:
    image = Repository(store, Image).save(Image(path_prefix="mk", version_weight=1))

    response = controller.boot(uuid="U1", mac_ids=["AA"])

    assert response.kind == BootKind.MINIMAL_RUNTIME
    assert response.node_uuid == "unknown"
    assert response.image_uuid == image.uuid


def test_boot_known_node_records_dhcp_mac(controller, registry) -> None:
    controller.register(Node(uuid="n1", hw_id=["AA", "BB"]))

    response = controller.boot(uuid="U1", mac_ids=["BB"], dhcp_mac="BB")

    assert response.node_uuid == "n1"
    assert response.image_uuid is None
    assert registry.find("n1").dhcp_mac == "BB"


def test_boot_bound_node_uses_model_boot_hook(controller, store) -> None:
    controller.register(Node(uuid="n1", hw_id=["AA"]))
    active_model = _bind(store, "n1")

    response = controller.boot(mac_ids=["AA"])

    assert response.kind == BootKind.MODEL
    assert response.artifact == "install install-os"
    assert Repository(store, ActiveModel).get(active_model.uuid).state == {"boots": 1}


def test_default_image_picks_highest_verified_minimal_runtime(
    controller, store, image_repository
) -> None:
    images = Repository(store, Image)
    first = images.save(Image(path_prefix="mk", version_weight=2))
    images.save(Image(path_prefix="mk", version_weight=2))
    broken = images.save(Image(path_prefix="mk", version_weight=9))
    images.save(Image(path_prefix="os", version_weight=50))
    image_repository.broken.add(broken.uuid)

    assert controller.default_image().uuid == first.uuid


def test_default_image_none_when_nothing_verifies(controller, store, image_repository) -> None:
    image = Repository(store, Image).save(Image(path_prefix="mk", version_weight=1))
    image_repository.broken.add(image.uuid)
    Repository(store, Image).save(Image(path_prefix="os", version_weight=1))

    assert controller.default_image() is None
    assert controller.boot(uuid="U1").image_uuid is None


# ============================================================================
# Maintenance
# ============================================================================

def test_expire_nodes(controller, store, registry, clock) -> None:
    registry.save(Node(uuid="bound-old", hw_id=["A"], timestamp=T0 - 1000))
    registry.save(Node(uuid="unbound-old", hw_id=["B"], timestamp=T0 - 1000))
    registry.save(Node(uuid="unbound-young", hw_id=["C"], timestamp=T0 - 10))
    _bind(store, "bound-old")

    removed = controller.expire_nodes(300)

    assert removed == ["unbound-old"]
    assert sorted(n.uuid for n in registry.all()) == ["bound-old", "unbound-young"]
    assert controller.node_status(registry.find("bound-old")) == NodeStatus.BOUND


def test_expire_nodes_uses_configured_timeout(controller, registry) -> None:
    registry.save(Node(uuid="n1", hw_id=["A"], timestamp=T0 - 301))
    assert controller.expire_nodes() == ["n1"]


def test_remove_referenced_image_is_refused(controller, store, image_repository) -> None:
    image = Repository(store, Image).save(Image(path_prefix="os"))
    Repository(store, Model).save(
        Model(uuid="m1", label="centos", template="linux_deploy", image_uuid=image.uuid)
    )

    result = controller.remove_image(image.uuid)

    assert result.status == RemovalStatus.REFERENCED
    assert result.referenced_by == ["m1"]
    assert result.ok is False
    assert Repository(store, Image).get(image.uuid) is not None
    assert image_repository.removed == []
    with pytest.raises(ReferentialIntegrityError):
        result.raise_for_status()


def test_remove_image(controller, store, image_repository) -> None:
    image = Repository(store, Image).save(Image(path_prefix="os"))

    result = controller.remove_image(image.uuid)

    assert result.ok is True
    assert image_repository.removed == [image.uuid]
    assert Repository(store, Image).get(image.uuid) is None


def test_remove_image_keeps_record_when_files_remain(controller, store, image_repository) -> None:
    image = Repository(store, Image).save(Image(path_prefix="os"))
    image_repository.removable = False

    result = controller.remove_image(image.uuid)

    assert result.status == RemovalStatus.NOT_REMOVED
    assert Repository(store, Image).get(image.uuid) is not None


def test_remove_model(controller, store) -> None:
    models = Repository(store, Model)
    models.save(Model(uuid="m1", label="centos", template="linux_deploy"))
    models.save(Model(uuid="m2", label="esxi", template="vmware"))
    Repository(store, Policy).save(Policy(label="hv", tags=["x"], model_uuid="m2"))

    assert controller.remove_model("m1").ok is True
    refused = controller.remove_model("m2")
    assert refused.status == RemovalStatus.REFERENCED
    assert models.get("m2") is not None


def test_remove_missing_entities(controller) -> None:
    with pytest.raises(EntityNotFoundError):
        controller.remove_image("nope")
    with pytest.raises(EntityNotFoundError):
        controller.remove_model("nope")


def test_command_names_pass_through_verbatim() -> None:
    assert CheckinCommand.of(CommandName.REGISTER).command_name == "register"
    command = CheckinCommand.of("reboot", {"delay": 5})
    assert command.command_name == "reboot"
    assert command.command_param == {"delay": 5}


def test_concurrent_checkins_lose_no_updates(controller, registry) -> None:
    workers, rounds = 8, 5
    start = threading.Barrier(workers)

    def run(i):
        start.wait()
        controller.register(Node(uuid=f"n{i}", hw_id=[f"hw-{i}"]))
        try:
            controller.register(Node(uuid=f"dup{i}", hw_id=["shared"]))
            claimed = True
        except ConflictError:
            claimed = False
        for r in range(rounds):
            assert controller.checkin(f"n{i}", f"state-{r}").command_name == "acknowledge"
        return claimed

    with ThreadPoolExecutor(max_workers=workers) as pool:
        claims = list(pool.map(run, range(workers)))

    assert claims.count(True) == 1
    for i in range(workers):
        node = registry.find(f"n{i}")
        assert node.hw_id == [f"hw-{i}"]
        assert node.last_state == f"state-{rounds - 1}"
        assert node.timestamp == T0
        # One save for registration plus one per check-in
        assert node.version == 1 + rounds

    owners = {}
    for node in registry.all():
        for hw in node.hw_id:
            assert hw not in owners
            owners[hw] = node.uuid
