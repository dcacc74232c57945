"""Services package for the access orchestrator."""

from .directory import GroupDirectory, MembershipSnapshot
from .event_history import EventHistory
from .normalizer import normalize_event, unwrap_log_event
from .resolver import GroupResolver
from .rule_table import RuleTable
from .rules_engine import RulesEngine
from .runtime import Orchestrator, get_orchestrator

__all__ = [
    "EventHistory",
    "GroupDirectory",
    "GroupResolver",
    "MembershipSnapshot",
    "Orchestrator",
    "RuleTable",
    "RulesEngine",
    "get_orchestrator",
    "normalize_event",
    "unwrap_log_event",
]
