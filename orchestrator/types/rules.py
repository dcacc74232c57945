from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _unique(doors: List[str]) -> List[str]:
    seen: set[str] = set()
    ordered: List[str] = []
    for door in doors:
        if door not in seen:
            seen.add(door)
            ordered.append(door)
    return ordered


class RuleEntry(BaseModel):
    """One follow-on unlock rule.

    When a member of `group` is seen at the `trigger` location, every door
    in `unlock` is opened, optionally after `delay` seconds.

    Example:
        >>> from orchestrator.types import RuleEntry
        >>> RuleEntry(group="office", trigger="Front Door", unlock=["Suite 100"])
    """

    model_config = ConfigDict(frozen=True)

    group: str
    trigger: str
    unlock: List[str] = Field(default_factory=list)
    delay: float = Field(default=0, ge=0)

    @field_validator("unlock")
    @classmethod
    def _dedupe_unlock(cls, v: List[str]) -> List[str]:
        return _unique([door for door in v if door])


class GroupAction(BaseModel):
    unlock: List[str] = Field(default_factory=list)


class DefaultAction(BaseModel):
    unlock: List[str] = Field(default_factory=list)


class RuleSetConfig(BaseModel):
    """Rule block as written in the config file.

    Two layouts are accepted:

    - modern: `rules` is an array of `RuleEntry` records
    - legacy: one `trigger_location` shared by a `group_actions` map of
      `group -> {"unlock": [...]}`

    `rules` takes precedence whenever it is present, even when empty.
    """

    rules: Optional[List[RuleEntry]] = None
    trigger_location: Optional[str] = None
    group_actions: Dict[str, GroupAction] = Field(default_factory=dict)
    default_action: DefaultAction = Field(default_factory=DefaultAction)


class DoorbellRulesConfig(RuleSetConfig):
    trigger_reason_code: int = 107
    viewer_to_group: Dict[str, str] = Field(default_factory=dict)


class ResolverConfig(BaseModel):
    strategy_order: List[str] = Field(default_factory=lambda: ["api_group", "manual"])
    unifi_group_to_group: Dict[str, str] = Field(default_factory=dict)
    manual_overrides: Dict[str, str] = Field(default_factory=dict)
    policy_to_group: Dict[str, str] = Field(default_factory=dict)


class SelfTriggerConfig(BaseModel):
    """Marker stamped into `extra` on every unlock we send.

    Both fields must be set for the guard to be active.
    """

    marker_key: Optional[str] = None
    marker_value: Optional[str] = None

    @property
    def enabled(self) -> bool:
        return bool(self.marker_key and self.marker_value)
