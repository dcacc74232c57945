from __future__ import annotations

import asyncio
import copy

import pytest

from orchestrator.types import ProcessedEvent
from tests.conftest import FakeController, FakeDirectory, base_config, make_engine
from tests.fixtures.access_events import (
    alarm,
    door_unlock,
    doorbell_completed,
    doorbell_incoming,
    generic,
    log_wrapper,
)


def config_with(**sections) -> dict:
    config = copy.deepcopy(base_config())
    config.update(sections)
    return config


@pytest.mark.asyncio
async def test_badge_in_unlocks_mapped_doors(controller: FakeController) -> None:
    engine = make_engine(controller=controller)

    processed = await engine.handle_event(door_unlock())

    assert controller.doors_called == ["Suite 100"]
    assert controller.calls[0][1] == "NFC/tap: Alice (office) at Front Door"
    stats = engine.get_stats()
    assert stats.unlocks_triggered == 1
    assert stats.events_processed == 1
    assert stats.events_received == 1
    assert stats.last_unlock is not None and stats.last_unlock.door == "Suite 100"
    assert processed is not None
    assert processed.action == "Unlocked: Suite 100"
    assert processed.unlock_door == "Suite 100"
    assert processed.success is True


@pytest.mark.asyncio
async def test_unmapped_user_without_default_is_no_action(controller: FakeController) -> None:
    engine = make_engine(controller=controller)

    processed = await engine.handle_event(door_unlock(actor_id="stranger"))

    assert controller.calls == []
    assert engine.get_stats().events_skipped_no_action == 1
    assert processed is not None and processed.action == "No action needed"


@pytest.mark.asyncio
async def test_unmapped_user_gets_default_doors(controller: FakeController) -> None:
    config = config_with(
        unlock_rules={
            "rules": [{"group": "office", "trigger": "Front Door", "unlock": ["Suite 100"]}],
            "default_action": {"unlock": ["Lobby", "Mailroom"]},
        }
    )
    engine = make_engine(config, controller=controller)

    await engine.handle_event(door_unlock(actor_id="stranger"))

    assert sorted(controller.doors_called) == ["Lobby", "Mailroom"]
    assert engine.get_stats().events_skipped_no_action == 0


@pytest.mark.asyncio
async def test_overlapping_rules_unlock_union_once(controller: FakeController) -> None:
    config = config_with(
        unlock_rules={
            "rules": [
                {"group": "office", "trigger": "Front Door", "unlock": ["Suite 100", "Elevator"]},
                {"group": "office", "trigger": "front door", "unlock": ["Elevator", "Roof"]},
            ]
        }
    )
    engine = make_engine(config, controller=controller)

    await engine.handle_event(door_unlock())

    assert sorted(controller.doors_called) == ["Elevator", "Roof", "Suite 100"]
    assert engine.get_stats().unlocks_triggered == 3


@pytest.mark.asyncio
async def test_self_triggered_event_is_skipped_before_resolution(controller: FakeController) -> None:
    directory = FakeDirectory({"user-1": "office"})
    engine = make_engine(controller=controller, directory=directory)

    processed = await engine.handle_event(door_unlock(extra={"source": "access-orchestrator", "reason": "x"}))

    assert controller.calls == []
    assert directory.lookups == []
    stats = engine.get_stats()
    assert stats.events_skipped_self == 1
    assert stats.events_skipped_no_action == 0
    assert stats.events_processed == 0
    assert stats.unlocks_triggered == 0
    assert processed is not None and processed.action == "Skipped (self-triggered)"


@pytest.mark.asyncio
async def test_missing_location_without_default_is_no_action(controller: FakeController) -> None:
    engine = make_engine(controller=controller)

    processed = await engine.handle_event(door_unlock(location=None))

    assert controller.calls == []
    assert engine.get_stats().events_skipped_no_action == 1
    assert processed is not None and processed.action == "No action needed"


@pytest.mark.asyncio
async def test_missing_location_falls_back_to_default(controller: FakeController) -> None:
    config = config_with(
        unlock_rules={
            "rules": [{"group": "office", "trigger": "Front Door", "unlock": ["Suite 100"]}],
            "default_action": {"unlock": ["Lobby"]},
        }
    )
    engine = make_engine(config, controller=controller)

    processed = await engine.handle_event({"type": "access.door.unlock", "user_id": "user-1"})

    assert controller.doors_called == ["Lobby"]
    assert engine.get_stats().unlocks_triggered == 1
    assert processed is not None and processed.location == "unknown"


@pytest.mark.asyncio
@pytest.mark.parametrize("triggers", [5, True, 3.5])
async def test_alarm_with_scalar_triggers_does_not_raise(controller: FakeController, triggers) -> None:
    engine = make_engine(controller=controller)

    processed = await engine.handle_event({"alarm": {"name": "Front Door", "triggers": triggers}})

    assert controller.calls == []
    assert engine.get_stats().events_received == 1
    assert processed is not None and processed.action == "Ignored (unhandled event type)"


@pytest.mark.asyncio
async def test_partial_failure_is_isolated() -> None:
    controller = FakeController(fail=("Elevator",))
    config = config_with(
        unlock_rules={
            "rules": [{"group": "office", "trigger": "Front Door", "unlock": ["Suite 100", "Elevator", "Roof"]}]
        }
    )
    engine = make_engine(config, controller=controller)

    processed = await engine.handle_event(door_unlock())

    stats = engine.get_stats()
    assert stats.unlocks_triggered == 2
    assert stats.unlocks_failed == 1
    assert processed is not None
    assert processed.success is False
    assert processed.action == "Unlocked: Suite 100, Roof (failed: Elevator)"


@pytest.mark.asyncio
async def test_raising_controller_is_recorded_as_failure() -> None:
    controller = FakeController(raise_for=("Suite 100",))
    engine = make_engine(controller=controller)

    results = await engine.execute_unlocks(["Suite 100", "Elevator"], "test")

    assert [r.success for r in results] == [False, True]
    assert results[0].error == "controller exploded"
    assert engine.get_stats().unlocks_failed == 1


@pytest.mark.asyncio
async def test_hanging_dispatch_times_out() -> None:
    controller = FakeController(hang_for=("Elevator",))
    engine = make_engine(controller=controller, dispatch_timeout=0.05)

    results = await engine.execute_unlocks(["Suite 100", "Elevator"], "test")

    assert results[0].success is True
    assert results[1].success is False
    assert results[1].door == "Elevator"
    assert engine.get_stats().unlocks_failed == 1


@pytest.mark.asyncio
async def test_delayed_rule_is_scheduled(controller: FakeController) -> None:
    config = config_with(
        unlock_rules={"rules": [{"group": "office", "trigger": "Front Door", "unlock": ["Suite 100"], "delay": 0.05}]}
    )
    engine = make_engine(config, controller=controller)

    processed = await engine.handle_event(door_unlock(event_id="evt-delay"))

    assert processed is not None
    assert processed.action == "Unlock scheduled in 0.05s: Suite 100"
    assert controller.calls == []
    assert engine.deferred.pending() == ["evt-delay"]
    assert engine.get_stats().events_processed == 1

    await asyncio.sleep(0.2)

    assert controller.doors_called == ["Suite 100"]
    assert engine.deferred.pending() == []
    assert engine.get_stats().unlocks_triggered == 1


@pytest.mark.asyncio
async def test_delayed_dispatch_can_be_cancelled(controller: FakeController) -> None:
    config = config_with(
        unlock_rules={"rules": [{"group": "office", "trigger": "Front Door", "unlock": ["Suite 100"], "delay": 0.2}]}
    )
    engine = make_engine(config, controller=controller)

    await engine.handle_event(door_unlock())
    assert engine.deferred.cancel_all() == 1
    await asyncio.sleep(0.3)

    assert controller.calls == []


@pytest.mark.asyncio
async def test_repeated_event_id_keeps_both_delayed_dispatches(controller: FakeController) -> None:
    config = config_with(
        unlock_rules={"rules": [{"group": "office", "trigger": "Front Door", "unlock": ["Suite 100"], "delay": 0.2}]}
    )
    engine = make_engine(config, controller=controller)

    await engine.handle_event(door_unlock(event_id="evt-retry"))
    await engine.handle_event(door_unlock(event_id="evt-retry"))

    assert engine.deferred.pending() == ["evt-retry", "evt-retry"]
    assert engine.deferred.cancel_all() == 2
    await asyncio.sleep(0.3)

    assert controller.calls == []
    assert engine.deferred.pending() == []


@pytest.mark.asyncio
async def test_doorbell_answered_via_viewer(controller: FakeController) -> None:
    engine = make_engine(controller=controller)

    processed = await engine.handle_event(doorbell_completed(reason_code=107, device_name="Office Viewer"))

    assert controller.doors_called == ["Elevator"]
    assert controller.calls[0][1] == "Doorbell: answered by device: Office Viewer at Front Door"
    assert engine.get_stats().doorbell_events == 1
    assert processed is not None and processed.action == "Unlocked: Elevator"


@pytest.mark.asyncio
async def test_doorbell_answered_by_actor_takes_precedence(controller: FakeController) -> None:
    config = config_with(
        doorbell_rules={
            "viewer_to_group": {"Office Viewer": "office"},
            "rules": [
                {"group": "office", "trigger": "Front Door", "unlock": ["Elevator"]},
                {"group": "staff", "trigger": "Front Door", "unlock": ["Back Office"]},
            ],
        }
    )
    directory = FakeDirectory({"desk-1": "staff"}, {"desk-1": "Front Desk"})
    engine = make_engine(config, controller=controller, directory=directory)

    await engine.handle_event(doorbell_completed(actor_id="desk-1", device_name="Office Viewer"))

    assert controller.doors_called == ["Back Office"]
    assert controller.calls[0][1] == "Doorbell: answered by actor: Front Desk (api_group) at Front Door"


@pytest.mark.asyncio
@pytest.mark.parametrize("reason_code", [105, 106, 108, 400, 999])
async def test_doorbell_other_reason_codes_do_nothing(controller: FakeController, reason_code: int) -> None:
    directory = FakeDirectory({"desk-1": "office"})
    engine = make_engine(controller=controller, directory=directory)

    processed = await engine.handle_event(doorbell_completed(reason_code=reason_code, actor_id="desk-1"))

    assert controller.calls == []
    assert directory.lookups == []
    assert engine.get_stats().doorbell_events == 1
    assert processed is not None and processed.action.startswith("No action (")


@pytest.mark.asyncio
async def test_doorbell_unknown_answerer_uses_default(controller: FakeController) -> None:
    config = config_with(
        doorbell_rules={
            "rules": [{"group": "office", "trigger": "Front Door", "unlock": ["Elevator"]}],
            "default_action": {"unlock": ["Lobby"]},
        }
    )
    engine = make_engine(config, controller=controller)

    await engine.handle_event(
        doorbell_completed(device_name="Unknown Viewer", host_device_mac="AA:BB:CC:DD:EE:FF")
    )

    assert controller.doors_called == ["Lobby"]
    assert controller.calls[0][1] == "Doorbell: answered by unknown at Front Door"


@pytest.mark.asyncio
async def test_doorbell_ring_is_logged_only(controller: FakeController) -> None:
    engine = make_engine(controller=controller)

    processed = await engine.handle_event(doorbell_incoming())

    assert controller.calls == []
    assert engine.get_stats().doorbell_events == 1
    assert processed is not None and processed.action == "Doorbell ring (no action)"


@pytest.mark.asyncio
async def test_alarm_envelope_follows_badge_in_path(controller: FakeController) -> None:
    config = config_with(
        unlock_rules={
            "rules": [{"group": "office", "trigger": "Front Door", "unlock": ["Suite 100"]}],
            "default_action": {"unlock": ["Lobby"]},
        }
    )
    engine = make_engine(config, controller=controller)

    processed = await engine.handle_event(alarm(name="Front Door", trigger_keys=["door_unlocked_event"]))

    assert processed is not None
    assert processed.type == "access.door.unlock"
    # Alarm payloads carry no actor, so the default applies
    assert controller.doors_called == ["Lobby"]


@pytest.mark.asyncio
async def test_log_wrapper_is_unwrapped(controller: FakeController) -> None:
    engine = make_engine(controller=controller)

    processed = await engine.handle_event(log_wrapper(door_name="front door"))

    assert controller.doors_called == ["Suite 100"]
    assert processed is not None and processed.type == "access.logs.add"


@pytest.mark.asyncio
async def test_log_wrapper_echo_is_self_triggered(controller: FakeController) -> None:
    engine = make_engine(controller=controller)

    await engine.handle_event(log_wrapper(extra={"source": "access-orchestrator"}))

    assert controller.calls == []
    assert engine.get_stats().events_skipped_self == 1


@pytest.mark.asyncio
async def test_unrecognized_payload_counts_receipt_only(controller: FakeController) -> None:
    seen = []
    engine = make_engine(controller=controller, observers=[seen.append])

    assert await engine.handle_event({"hello": "world"}) is None
    assert await engine.handle_event("not json") is None

    stats = engine.get_stats()
    assert stats.events_received == 2
    assert stats.last_event is None
    assert seen == []


@pytest.mark.asyncio
async def test_unhandled_type_is_ignored(controller: FakeController) -> None:
    engine = make_engine(controller=controller)

    processed = await engine.handle_event(generic(type="access.device.update", door_name="Front Door"))

    assert controller.calls == []
    assert processed is not None and processed.action == "Ignored (unhandled event type)"
    assert engine.get_stats().last_event.type == "access.device.update"


@pytest.mark.asyncio
async def test_observers_receive_events_and_failures_are_contained(controller: FakeController) -> None:
    seen = []

    def broken(event: ProcessedEvent) -> None:
        raise RuntimeError("observer down")

    engine = make_engine(controller=controller, observers=[broken, seen.append])

    processed = await engine.handle_event(door_unlock())

    assert seen == [processed]
    assert seen[0].id == "evt-1"
    assert seen[0].actor == "Alice Example"


@pytest.mark.asyncio
async def test_get_stats_returns_a_copy(controller: FakeController) -> None:
    engine = make_engine(controller=controller)

    snapshot = engine.get_stats()
    await engine.handle_event(door_unlock())

    assert snapshot.events_received == 0
    assert engine.get_stats().events_received == 1
