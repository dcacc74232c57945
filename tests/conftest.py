import asyncio
import json
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient

from main import app
from orchestrator.services.resolver import GroupResolver
from orchestrator.services.rules_engine import RulesEngine
from orchestrator.services.runtime import Orchestrator, get_orchestrator
from orchestrator.types import OrchestratorConfig, UnlockResult

CONTROLLER_BASE = "https://controller.test:12445/api/v1/developer"


@pytest.fixture(autouse=True)
def test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ENV", "test")


def base_config() -> Dict[str, Any]:
    return {
        "unifi": {"host": "controller.test", "port": 12445, "token": "secret-token"},
        "resolver": {
            "strategy_order": ["api_group", "manual"],
            "unifi_group_to_group": {"UniFi Office Tenants": "office"},
            "manual_overrides": {"contractor-1": "office"},
        },
        "unlock_rules": {
            "rules": [{"group": "office", "trigger": "Front Door", "unlock": ["Suite 100"]}],
            "default_action": {"unlock": []},
        },
        "doorbell_rules": {
            "trigger_reason_code": 107,
            "viewer_to_group": {"Office Viewer": "office"},
            "rules": [{"group": "office", "trigger": "Front Door", "unlock": ["Elevator"]}],
            "default_action": {"unlock": []},
        },
        "self_trigger_prevention": {"marker_key": "source", "marker_value": "access-orchestrator"},
        "event_source": {"mode": "alarm_manager"},
        "server": {"port": 3000},
        "doors": {"Suite 100": "door-100", "Elevator": "door-elev"},
    }


class FakeController:
    """Records unlock calls; selected doors fail, raise or hang."""

    def __init__(
        self,
        fail: Tuple[str, ...] = (),
        raise_for: Tuple[str, ...] = (),
        hang_for: Tuple[str, ...] = (),
    ) -> None:
        self.fail = fail
        self.raise_for = raise_for
        self.hang_for = hang_for
        self.calls: List[Tuple[str, str]] = []

    @property
    def doors_called(self) -> List[str]:
        return [door for door, _ in self.calls]

    async def unlock_door_by_name(self, door_name: str, reason: str = "middleware") -> UnlockResult:
        self.calls.append((door_name, reason))
        if door_name in self.raise_for:
            raise RuntimeError("controller exploded")
        if door_name in self.hang_for:
            await asyncio.sleep(5)
        if door_name in self.fail:
            return UnlockResult(success=False, door=door_name, error="Request timeout")
        return UnlockResult(success=True, door=door_name, door_id=f"id-{door_name}")


class FakeDirectory:
    def __init__(
        self, groups: Optional[Dict[str, str]] = None, names: Optional[Dict[str, str]] = None
    ) -> None:
        self.groups = dict(groups or {})
        self.names = dict(names or {})
        self.lookups: List[str] = []

    def get_group_for_user(self, user_id: str) -> Optional[str]:
        self.lookups.append(user_id)
        return self.groups.get(user_id)

    def get_user_name(self, user_id: str) -> Optional[str]:
        return self.names.get(user_id)


def make_engine(
    config: Optional[Dict[str, Any]] = None,
    controller: Optional[FakeController] = None,
    directory: Optional[FakeDirectory] = None,
    **kwargs: Any,
) -> RulesEngine:
    parsed = OrchestratorConfig.model_validate(config if config is not None else base_config())
    resolver = GroupResolver(
        parsed.resolver,
        directory if directory is not None else FakeDirectory({"user-1": "office"}, {"user-1": "Alice"}),
    )
    return RulesEngine(parsed, controller or FakeController(), resolver, **kwargs)


@pytest.fixture()
def controller() -> FakeController:
    return FakeController()


@pytest.fixture()
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "config.json"
    path.write_text(json.dumps(base_config(), indent=2), encoding="utf-8")
    return path


@pytest.fixture()
def orchestrator(config_file: Path) -> Orchestrator:
    return Orchestrator.from_file(config_file)


@pytest.fixture()
def client(orchestrator: Orchestrator) -> Iterator[TestClient]:
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
