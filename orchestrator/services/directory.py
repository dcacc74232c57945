"""Group membership directory.

Holds the `user id -> logical group` cache the resolver reads. The cache is
an immutable `MembershipSnapshot`; a sync builds a complete new snapshot and
swaps the reference, so readers see either the old or the new map and a
failed sync leaves the previous one in place.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple

import httpx

from orchestrator.adapters.unifi import AccessClient
from orchestrator.errors import AccessApiError
from orchestrator.types import DirectoryUser

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MembershipSnapshot:
    user_groups: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    user_names: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    users: Tuple[DirectoryUser, ...] = ()
    discovered_groups: Tuple[str, ...] = ()


def _display_name(user: Dict) -> str:
    full_name = user.get("full_name")
    if isinstance(full_name, str) and full_name.strip():
        return full_name.strip()
    first = user.get("first_name") or ""
    last = user.get("last_name") or ""
    return f"{first} {last}".strip()


class GroupDirectory:
    """Owner of the membership cache and its refresh lifecycle.

    Lifecycle: `sync()` once at start, `start_periodic_sync()` to keep it
    fresh, `stop()` on shutdown or reload.
    """

    def __init__(self, group_name_map: Optional[Mapping[str, str]] = None) -> None:
        self.group_name_map: Dict[str, str] = dict(group_name_map or {})
        self._snapshot = MembershipSnapshot()
        self._sync_task: Optional[asyncio.Task] = None

    @property
    def snapshot(self) -> MembershipSnapshot:
        return self._snapshot

    async def sync(self, client: AccessClient) -> bool:
        """Rebuild the cache from the controller's user groups.

        Returns False, keeping the current snapshot, when the group list
        cannot be fetched. A single group whose members fail to load is
        skipped with a warning.
        """
        logger.info("Syncing user groups...")
        try:
            groups = await client.fetch_user_groups()
        except (AccessApiError, httpx.HTTPError) as e:
            logger.warning(f"User group sync failed, keeping previous cache: {e}")
            return False

        logger.info(f"Found {len(groups)} user groups")
        user_groups: Dict[str, str] = {}
        user_names: Dict[str, str] = {}
        users: Dict[str, DirectoryUser] = {}
        discovered: List[str] = []
        unmapped: List[str] = []

        for group in groups:
            unifi_name = group.get("name") or group.get("full_name")
            group_id = group.get("id")
            if not unifi_name or not group_id:
                continue
            discovered.append(unifi_name)

            logical = self.group_name_map.get(unifi_name)
            if not logical:
                unmapped.append(unifi_name)
            label = logical or unifi_name

            try:
                members = await client.fetch_group_members(group_id)
            except (AccessApiError, httpx.HTTPError) as e:
                logger.warning(f"Failed to fetch members of group \"{unifi_name}\": {e}")
                continue

            for member in members:
                user_id = member.get("id")
                if member.get("status") != "ACTIVE" or not user_id:
                    continue
                user_groups[user_id] = label
                name = _display_name(member)
                if name:
                    user_names[user_id] = name
                users[user_id] = DirectoryUser(
                    id=user_id,
                    name=name or "Unknown",
                    unifi_group_name=unifi_name,
                    logical_group_name=label,
                )
            logger.debug(f"  \"{unifi_name}\" -> \"{label}\": {len(members)} members")

        self._snapshot = MembershipSnapshot(
            user_groups=MappingProxyType(user_groups),
            user_names=MappingProxyType(user_names),
            users=tuple(users.values()),
            discovered_groups=tuple(discovered),
        )

        if unmapped:
            logger.info(
                "Unmapped groups (add to resolver.unifi_group_to_group in config): "
                + ", ".join(unmapped)
            )
        logger.info(
            f"User group sync complete: {len(user_groups)} users mapped across {len(groups)} groups"
        )
        return True

    def start_periodic_sync(self, client: AccessClient, interval_minutes: float) -> asyncio.Task:
        self.stop()
        self._sync_task = asyncio.get_running_loop().create_task(
            self._sync_forever(client, interval_minutes * 60)
        )
        logger.info(f"Periodic user group sync started: every {interval_minutes} minutes")
        return self._sync_task

    async def _sync_forever(self, client: AccessClient, interval_seconds: float) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            try:
                await self.sync(client)
            except Exception:
                logger.exception("Unexpected error during periodic user group sync")

    def stop(self) -> None:
        if self._sync_task is not None:
            self._sync_task.cancel()
            self._sync_task = None

    # Read API

    def get_group_for_user(self, user_id: str) -> Optional[str]:
        return self._snapshot.user_groups.get(user_id)

    def get_user_name(self, user_id: str) -> Optional[str]:
        return self._snapshot.user_names.get(user_id)

    @property
    def user_count(self) -> int:
        return len(self._snapshot.user_groups)

    def users(self) -> List[Dict[str, str]]:
        """Flat `id/name/group` rows for the admin API."""
        snapshot = self._snapshot
        return [
            {"id": user_id, "name": snapshot.user_names.get(user_id, "unknown"), "group": group}
            for user_id, group in snapshot.user_groups.items()
        ]

    def discovered_groups(self) -> List[str]:
        return list(self._snapshot.discovered_groups)

    def discovered_users(self) -> List[DirectoryUser]:
        return list(self._snapshot.users)
