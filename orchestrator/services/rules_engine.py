"""Rules engine.

Turns inbound access events into follow-on door unlocks.

Two flows:

1. Badge-in (`access.door.unlock`): a user authenticates at a reader. The
   user's group is resolved from the actor id and the doors configured in
   `unlock_rules` for that group and trigger location are opened, e.g. an
   office tenant tapping at the main entrance also gets the elevator.

2. Doorbell answer (`access.doorbell.completed` with the trigger reason
   code, 107 by default): staff grant a visitor access. The answering
   party is identified from the event's actor when present, otherwise from
   the viewer device through `doorbell_rules.viewer_to_group`, and the
   visitor gets the same follow-on doors as that group.

Self-trigger prevention: every unlock we send carries a marker in `extra`.
Events echoing that marker are skipped, otherwise each of our unlocks
would come back as a new trigger.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional

from orchestrator.types import (
    DoorController,
    EngineStats,
    EventObserver,
    EventType,
    LastEvent,
    LastUnlock,
    NormalizedEvent,
    OrchestratorConfig,
    ProcessedEvent,
    RuleMatch,
    UnlockResult,
)

from .normalizer import describe_reason_code, normalize_event, unwrap_log_event
from .resolver import GroupResolver
from .rule_table import RuleTable
from .scheduler import DeferredDispatcher
from .self_trigger import is_self_triggered

logger = logging.getLogger(__name__)

DISPATCH_TIMEOUT_SECONDS = 10.0


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class EventOutcome:
    """What handling one event amounted to, for the live feed."""

    action: str = "Processed"
    success: bool = True
    unlock_door: Optional[str] = None
    unlock_reason: Optional[str] = None

    @classmethod
    def from_results(cls, results: List[UnlockResult], reason: str) -> "EventOutcome":
        unlocked = [r.door for r in results if r.success]
        failed = [r.door for r in results if not r.success]
        if unlocked and failed:
            action = f"Unlocked: {', '.join(unlocked)} (failed: {', '.join(failed)})"
        elif unlocked:
            action = f"Unlocked: {', '.join(unlocked)}"
        else:
            action = f"Failed: {', '.join(failed)}"
        return cls(
            action=action,
            success=not failed,
            unlock_door=unlocked[-1] if unlocked else None,
            unlock_reason=reason if unlocked else None,
        )


class RulesEngine:
    def __init__(
        self,
        config: OrchestratorConfig,
        controller: DoorController,
        resolver: GroupResolver,
        observers: Iterable[EventObserver] = (),
        dispatch_timeout: float = DISPATCH_TIMEOUT_SECONDS,
    ) -> None:
        self.controller = controller
        self.resolver = resolver
        self.dispatch_timeout = dispatch_timeout

        # Badge-in rules
        self.access_rules = RuleTable.from_config(config.unlock_rules)

        # Doorbell rules
        self.visitor_rules = RuleTable.from_config(config.doorbell_rules)
        self.viewer_to_group = dict(config.doorbell_rules.viewer_to_group)
        self.trigger_reason_code = config.doorbell_rules.trigger_reason_code

        self.self_trigger = config.self_trigger_prevention
        self.observers: List[EventObserver] = list(observers)
        self.deferred = DeferredDispatcher()
        self.stats = EngineStats(started_at=_now())

    def add_observer(self, observer: EventObserver) -> None:
        self.observers.append(observer)

    # Main entry point

    async def handle_event(self, raw_payload: Any) -> Optional[ProcessedEvent]:
        """Handle one raw payload from any transport.

        Returns the `ProcessedEvent` pushed to observers, or None when the
        payload was not recognized. Unlock failures are recorded in the
        stats, never raised.
        """
        self.stats.events_received += 1

        event = normalize_event(raw_payload)
        if event is None:
            logger.debug("Ignoring unrecognized event payload")
            return None

        actor = event.actor_name or event.actor_id or "unknown"
        self.stats.last_event = LastEvent(
            type=event.type,
            location=event.location_name,
            actor=actor,
            device=event.device_name,
            time=_now(),
        )
        logger.info(
            f"Event: type={event.type}, location=\"{event.location_name}\", "
            f"actor=\"{event.actor_name or event.actor_id or 'none'}\", "
            f"device=\"{event.device_name or 'none'}\""
        )

        outcome = await self._route(event)
        processed = ProcessedEvent(
            id=event.event_object_id or uuid.uuid4().hex,
            timestamp=_now(),
            type=event.type,
            actor=actor,
            location=event.location_name or "unknown",
            device=event.device_name,
            action=outcome.action,
            success=outcome.success,
            unlock_door=outcome.unlock_door,
            unlock_reason=outcome.unlock_reason,
        )
        self._notify(processed)
        return processed

    async def _route(self, event: NormalizedEvent) -> EventOutcome:
        if event.type == EventType.DOOR_UNLOCK.value:
            return await self.handle_door_unlock(event)
        if event.type == EventType.DOORBELL_COMPLETED.value:
            return await self.handle_doorbell_completed(event)
        if event.type == EventType.DOORBELL_INCOMING.value:
            logger.info(f"Doorbell ring at \"{event.location_name}\" (logged, no action)")
            self.stats.doorbell_events += 1
            return EventOutcome(action="Doorbell ring (no action)")
        if event.type == EventType.LOG_WRAPPER.value:
            return await self.handle_log_wrapper(event)
        logger.debug(f"Unhandled event type: {event.type}")
        return EventOutcome(action="Ignored (unhandled event type)")

    # Socket-push access.logs.add

    async def handle_log_wrapper(self, event: NormalizedEvent) -> EventOutcome:
        inner = unwrap_log_event(event)
        if inner is None:
            return EventOutcome(action="Ignored (empty log entry)")

        logger.debug(f"WebSocket log unwrapped: {inner.type} at \"{inner.location_name}\"")
        if inner.type == EventType.DOOR_UNLOCK.value:
            return await self.handle_door_unlock(inner)
        if inner.type == EventType.DOORBELL_COMPLETED.value:
            return await self.handle_doorbell_completed(inner)
        return EventOutcome(action=f"Ignored log entry ({inner.type})")

    # Badge-in

    async def handle_door_unlock(self, event: NormalizedEvent) -> EventOutcome:
        if is_self_triggered(event.extra, self.self_trigger):
            logger.debug(f"Skipping self-triggered unlock at \"{event.location_name}\"")
            self.stats.events_skipped_self += 1
            return EventOutcome(action="Skipped (self-triggered)")

        resolved = self.resolver.resolve(
            event.actor_id, {"policy_id": event.policy_id, "policy_name": event.policy_name}
        )
        display_name = resolved.user_name or event.actor_name or event.actor_id or "unknown"

        match = self.access_rules.lookup(resolved.group, event.location_name)
        if not match.doors:
            logger.info(
                f"User \"{display_name}\" (group: {resolved.group or 'unknown'}) at "
                f"\"{event.location_name}\". No matching rules."
            )
            self.stats.events_skipped_no_action += 1
            return EventOutcome(action="No action needed")

        logger.info(
            f"User \"{display_name}\" -> group \"{resolved.group}\" (via {resolved.strategy}) at "
            f"\"{event.location_name}\" -> unlocking: {', '.join(match.doors)}"
        )
        reason = f"NFC/tap: {display_name} ({resolved.group or 'default'}) at {event.location_name}"
        return await self._dispatch(event, match, reason)

    # Doorbell answer

    async def handle_doorbell_completed(self, event: NormalizedEvent) -> EventOutcome:
        self.stats.doorbell_events += 1

        if event.reason_code != self.trigger_reason_code:
            description = describe_reason_code(event.reason_code)
            logger.info(f"Doorbell completed at \"{event.location_name}\": {description} (no action)")
            return EventOutcome(action=f"No action ({description})")

        group: Optional[str] = None
        method: Optional[str] = None

        # Who answered: actor first
        if event.actor_id:
            resolved = self.resolver.resolve(
                event.actor_id, {"policy_id": event.policy_id, "policy_name": event.policy_name}
            )
            if resolved.group:
                group = resolved.group
                who = resolved.user_name or event.actor_name or event.actor_id
                method = f"actor: {who} ({resolved.strategy})"

        # then the viewer that answered
        if not group and event.device_name:
            group = self.viewer_to_group.get(event.device_name)
            if group:
                method = f"device: {event.device_name}"

        if not group and event.host_device_mac:
            logger.debug(
                f"Doorbell answered by device MAC {event.host_device_mac} but no mapping found"
            )

        match = self.visitor_rules.lookup(group, event.location_name)
        if match.matched:
            logger.info(
                f"Doorbell answered -> group \"{group}\" (via {method}) at "
                f"\"{event.location_name}\" -> unlocking: {', '.join(match.doors)}"
            )
        elif match.used_default:
            logger.info(
                "Doorbell answered -> could not determine matching rule -> default -> "
                f"unlocking: {', '.join(match.doors)}"
            )
        else:
            logger.warning("Doorbell answered but no matching rule and no default action configured")

        if not match.doors:
            self.stats.events_skipped_no_action += 1
            return EventOutcome(action="No action needed")

        reason = f"Doorbell: answered by {method or 'unknown'} at {event.location_name}"
        return await self._dispatch(event, match, reason)

    # Dispatch

    async def _dispatch(self, event: NormalizedEvent, match: RuleMatch, reason: str) -> EventOutcome:
        doors = list(match.doors)
        if match.delay > 0:
            logger.info(f"Delaying unlock by {match.delay:g}s: {', '.join(doors)}")
            key = event.event_object_id or uuid.uuid4().hex
            self.deferred.schedule(key, match.delay, lambda: self.execute_unlocks(doors, reason))
            outcome = EventOutcome(action=f"Unlock scheduled in {match.delay:g}s: {', '.join(doors)}")
        else:
            results = await self.execute_unlocks(doors, reason)
            outcome = EventOutcome.from_results(results, reason)
        self.stats.events_processed += 1
        return outcome

    async def _unlock_one(self, door_name: str, reason: str) -> UnlockResult:
        return await asyncio.wait_for(
            self.controller.unlock_door_by_name(door_name, reason), timeout=self.dispatch_timeout
        )

    async def execute_unlocks(self, door_names: Iterable[str], reason: str) -> List[UnlockResult]:
        """Unlock all doors concurrently and record each outcome separately.

        One door failing, raising or timing out does not affect the others.
        """
        doors = list(door_names)
        settled = await asyncio.gather(
            *(self._unlock_one(door, reason) for door in doors), return_exceptions=True
        )

        results: List[UnlockResult] = []
        for door, outcome in zip(doors, settled):
            if isinstance(outcome, BaseException):
                result = UnlockResult(
                    success=False, door=door, error=str(outcome) or outcome.__class__.__name__
                )
            else:
                result = outcome

            if result.success:
                self.stats.unlocks_triggered += 1
                self.stats.last_unlock = LastUnlock(door=result.door, reason=reason, time=_now())
            else:
                self.stats.unlocks_failed += 1
                logger.error(f"Unlock failed for \"{door}\" ({reason}): {result.error}")
            results.append(result)
        return results

    def _notify(self, processed: ProcessedEvent) -> None:
        for observer in self.observers:
            try:
                observer(processed)
            except Exception:
                logger.exception("Event observer failed")

    def get_stats(self) -> EngineStats:
        return self.stats.model_copy(deep=True)
