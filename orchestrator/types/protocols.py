from __future__ import annotations

from typing import Optional, Protocol

from .events import ProcessedEvent
from .results import UnlockResult


class DoorController(Protocol):
    """Capability the rules engine uses to open doors.

    Concrete implementations talk to the access controller and must stamp
    every command they send with the configured self-trigger marker so the
    echoed notification can be recognized and dropped.

    Responsibilities:
        - Resolve a door display name to a controller door id
        - Send the unlock command with a bounded timeout
        - Report failures in the returned `UnlockResult` rather than raising

    Minimal example:
        >>> from orchestrator.types import DoorController, UnlockResult
        >>> class OpenEverything(DoorController):
        ...     async def unlock_door_by_name(self, door_name: str, reason: str = "middleware") -> UnlockResult:
        ...         return UnlockResult(success=True, door=door_name)
    """

    async def unlock_door_by_name(self, door_name: str, reason: str = "middleware") -> UnlockResult:
        """Unlock the named door and report the outcome."""
        ...


class GroupLookup(Protocol):
    """Read side of the group membership directory used by the resolver."""

    def get_group_for_user(self, user_id: str) -> Optional[str]:
        ...

    def get_user_name(self, user_id: str) -> Optional[str]:
        ...


class EventObserver(Protocol):
    """Receives one `ProcessedEvent` after each handled event."""

    def __call__(self, event: ProcessedEvent) -> None:
        ...
