from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, List, Mapping, Optional, Tuple, Union

from orchestrator.types import RuleEntry, RuleMatch, RuleSetConfig


def build_rules(rule_config: Union[RuleSetConfig, Mapping[str, Any]]) -> Tuple[RuleEntry, ...]:
    """Normalize a rule block to a flat tuple of `RuleEntry`.

    The modern `rules` array is used as-is. The legacy layout synthesizes
    one entry per group from the shared `trigger_location`; groups without
    doors are dropped.
    """
    if not isinstance(rule_config, RuleSetConfig):
        rule_config = RuleSetConfig.model_validate(rule_config or {})

    if rule_config.rules is not None:
        return tuple(rule_config.rules)

    trigger = rule_config.trigger_location or ""
    rules: List[RuleEntry] = []
    for group, action in rule_config.group_actions.items():
        if action.unlock:
            rules.append(RuleEntry(group=group, trigger=trigger, unlock=action.unlock))
    return tuple(rules)


def _clean(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def names_match(left: Optional[str], right: Optional[str]) -> bool:
    """Exact comparison after trimming and case folding. Empty never matches."""
    if not _clean(left) or not _clean(right):
        return False
    return _clean(left) == _clean(right)


def location_matches(event_location: Optional[str], config_location: Optional[str]) -> bool:
    return names_match(event_location, config_location)


def match_rules(
    rules: Iterable[RuleEntry], group: Optional[str], location: Optional[str]
) -> List[RuleEntry]:
    return [
        rule
        for rule in rules
        if names_match(group, rule.group) and location_matches(location, rule.trigger)
    ]


def collect_doors(rules: Iterable[RuleEntry]) -> List[str]:
    """Union of the rules' door lists, first appearance first."""
    seen: set[str] = set()
    doors: List[str] = []
    for rule in rules:
        for door in rule.unlock:
            if door not in seen:
                seen.add(door)
                doors.append(door)
    return doors


@dataclass(frozen=True)
class RuleTable:
    """Immutable rule set plus its fallback doors.

    Built once per engine; a config reload builds a new table.
    """

    rules: Tuple[RuleEntry, ...] = ()
    default_doors: Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_config(cls, rule_config: RuleSetConfig) -> "RuleTable":
        return cls(
            rules=build_rules(rule_config),
            default_doors=tuple(rule_config.default_action.unlock),
        )

    def lookup(self, group: Optional[str], location: Optional[str]) -> RuleMatch:
        matched = match_rules(self.rules, group, location)
        if matched:
            # Only the first matching rule's delay applies to the whole union.
            return RuleMatch(
                doors=collect_doors(matched),
                delay=matched[0].delay,
                matched=len(matched),
            )
        if self.default_doors:
            return RuleMatch(doors=list(self.default_doors), used_default=True)
        return RuleMatch()
