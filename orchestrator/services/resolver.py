"""Group resolver.

Determines which logical group a user belongs to by trying strategies in
the configured order until one yields a group:

- api_group: the directory's cached membership (primary)
- manual: `resolver.manual_overrides`, for users outside any group
- policy_name: `resolver.policy_to_group` keyed by the event's policy
  name. The controller sends an empty policy name today, so this is a
  no-op until firmware starts populating it.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Mapping, Optional

from orchestrator.types import GroupLookup, ResolvedGroup, ResolverConfig, ResolverStrategy

logger = logging.getLogger(__name__)


class GroupResolver:
    def __init__(self, config: ResolverConfig, directory: GroupLookup) -> None:
        self.strategy_order = list(config.strategy_order)
        self.manual_overrides = dict(config.manual_overrides)
        self.policy_to_group = dict(config.policy_to_group)
        self.directory = directory
        self._strategies: Dict[str, Callable[[str, Mapping[str, Any]], Optional[str]]] = {
            ResolverStrategy.API_GROUP.value: self._from_directory,
            ResolverStrategy.MANUAL.value: self._from_manual,
            ResolverStrategy.POLICY_NAME.value: self._from_policy_name,
        }

    def _from_directory(self, user_id: str, policy_context: Mapping[str, Any]) -> Optional[str]:
        return self.directory.get_group_for_user(user_id)

    def _from_manual(self, user_id: str, policy_context: Mapping[str, Any]) -> Optional[str]:
        return self.manual_overrides.get(user_id)

    def _from_policy_name(self, user_id: str, policy_context: Mapping[str, Any]) -> Optional[str]:
        policy_name = policy_context.get("policy_name")
        if not policy_name:
            return None
        return self.policy_to_group.get(policy_name)

    def resolve(
        self, user_id: Optional[str], policy_context: Optional[Mapping[str, Any]] = None
    ) -> ResolvedGroup:
        """Resolve `user_id` to a logical group.

        Args:
            user_id: Actor id from the event; empty short-circuits to no group.
            policy_context: The event's `policy_id` / `policy_name`.

        Returns:
            `ResolvedGroup` with the winning strategy, or `group=None`. The
            display name is filled in whenever the directory knows the user.
        """
        if not user_id:
            logger.debug("Resolver: no userId provided")
            return ResolvedGroup()

        context = policy_context or {}
        user_name = self.directory.get_user_name(user_id)
        label = f" ({user_name})" if user_name else ""

        for strategy in self.strategy_order:
            lookup = self._strategies.get(strategy)
            if lookup is None:
                logger.warning(f"Resolver: unknown strategy \"{strategy}\"")
                continue
            group = lookup(user_id, context)
            if group:
                logger.debug(f"Resolver: userId={user_id} -> group=\"{group}\" via {strategy}{label}")
                return ResolvedGroup(group=group, strategy=strategy, user_name=user_name)

        logger.debug(f"Resolver: no group found for userId={user_id}{label}")
        return ResolvedGroup(user_name=user_name)
