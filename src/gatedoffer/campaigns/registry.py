"""Campaign registry — which activity and reward templates exist, and
which pairings of them may be deployed together.

The registry is an explicit object handed to the factory. Templates are
classes indexed by their type identifier; selecting one is a dictionary
lookup, never a conditional over type names.

Only the registry owner mutates it. Lookups for unknown types return
None (or False for combinations) rather than raising, so the factory
decides how to fail.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

from gatedoffer.crypto.hashing import to_address
from gatedoffer.errors import AuthorizationError, ConfigError
from gatedoffer.persistence.event_log import EventKind, EventLog

logger = logging.getLogger(__name__)

REGISTRY_SUBJECT = "registry"


class CampaignRegistry:
    """Owner-maintained table of templates and allowed combinations.

    Usage:
        registry = CampaignRegistry(owner)
        registry.register_activity(owner, "HOLD_X_TOKENS", HoldXTokensActivity)
        registry.register_reward(owner, "TOKEN_AIRDROP", TokenAirdropReward)
        registry.set_valid_combination(owner, "HOLD_X_TOKENS", "TOKEN_AIRDROP", True)
    """

    def __init__(self, owner: str, event_log: Optional[EventLog] = None) -> None:
        try:
            self._owner = to_address(owner)
        except ValueError as exc:
            raise ConfigError(str(exc)) from exc
        self._activities: dict[str, type] = {}
        self._rewards: dict[str, type] = {}
        self._combinations: dict[tuple[str, str], bool] = {}
        self._event_log = event_log
        self._lock = threading.RLock()

    @property
    def owner(self) -> str:
        return self._owner

    # ------------------------------------------------------------------
    # Owner mutators
    # ------------------------------------------------------------------

    def register_activity(self, caller: str, activity_type: str, impl: type) -> None:
        self._register(caller, self._activities, "activity", activity_type, impl)

    def register_reward(self, caller: str, reward_type: str, impl: type) -> None:
        self._register(caller, self._rewards, "reward", reward_type, impl)

    def set_valid_combination(
        self,
        caller: str,
        activity_type: str,
        reward_type: str,
        allowed: bool,
    ) -> None:
        """Allow or forbid a pairing. Existing campaigns are unaffected."""
        self._require_owner(caller)
        with self._lock:
            self._combinations[(activity_type, reward_type)] = bool(allowed)
        logger.info("Combination %s + %s set to %s", activity_type, reward_type, allowed)
        self._emit(caller, {
            "action": "set_valid_combination",
            "activity_type": activity_type,
            "reward_type": reward_type,
            "allowed": bool(allowed),
        })

    # ------------------------------------------------------------------
    # Readers
    # ------------------------------------------------------------------

    def get_activity_implementation(self, activity_type: str) -> Optional[type]:
        return self._activities.get(activity_type)

    def get_reward_implementation(self, reward_type: str) -> Optional[type]:
        return self._rewards.get(reward_type)

    def is_valid_combination(self, activity_type: str, reward_type: str) -> bool:
        return self._combinations.get((activity_type, reward_type), False)

    def activity_types(self) -> list[str]:
        return sorted(self._activities)

    def reward_types(self) -> list[str]:
        return sorted(self._rewards)

    def valid_combinations(self) -> list[tuple[str, str]]:
        return sorted(pair for pair, allowed in self._combinations.items() if allowed)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _register(
        self,
        caller: str,
        table: dict[str, type],
        family: str,
        type_id: str,
        impl: type,
    ) -> None:
        self._require_owner(caller)
        if not isinstance(type_id, str) or not type_id:
            raise ConfigError(f"{family} type identifier must be a non-empty string")
        if not isinstance(impl, type):
            raise ConfigError(f"{family} implementation for {type_id} must be a class")
        with self._lock:
            replaced = table.get(type_id)
            table[type_id] = impl
        if replaced is not None and replaced is not impl:
            logger.warning("Replaced %s template %s (%s -> %s)",
                           family, type_id, replaced.__name__, impl.__name__)
        self._emit(caller, {
            "action": f"register_{family}",
            "type": type_id,
            "implementation": f"{impl.__module__}.{impl.__qualname__}",
        })

    def _require_owner(self, caller: str) -> None:
        try:
            is_owner = to_address(caller) == self._owner
        except ValueError:
            is_owner = False
        if not is_owner:
            raise AuthorizationError(f"{caller} is not the registry owner")

    def _emit(self, caller: str, payload: dict) -> None:
        if self._event_log is not None:
            self._event_log.record(
                EventKind.REGISTRY_UPDATED,
                subject_id=REGISTRY_SUBJECT,
                actor_id=caller,
                payload=payload,
            )
