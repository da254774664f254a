"""Reward module base — claim-once ledger, claim rules, batch distribution.

A reward is driven by exactly one controller: the orchestrator of the
campaign it belongs to. Only the controller may call ``claim``; the
orchestrator has already checked eligibility and escrowed the fee by
then, so the reward only answers "may this user receive one unit now?"
and delivers it.

Claim rules, checked in this order:
    1. The reward is active.
    2. ``now`` is inside the claim window (0 bounds are open).
    3. Automatic rewards are not claimable before the distribution date.
    4. The user has not already claimed.
    5. Variants with a claimant list (raffle winners, airdrop eligibles)
       only admit users on it.
    6. The payout can be funded.

The asset moves first and the ledger records the claim second, both with
the reward lock held. A failed delivery leaves the ledger untouched, so
the user can retry after the broker tops up.

Automatic rewards are also pushed out in batches by the owner with
``trigger_automatic_distribution``; see models.reward for batch policies.
"""

from __future__ import annotations

import logging
import threading
from typing import Iterable, Optional, Sequence

from gatedoffer.clock import Clock, system_clock
from gatedoffer.crypto.hashing import to_address
from gatedoffer.errors import (
    AuthorizationError,
    ConfigError,
    DistributionAborted,
    FundingError,
    StateError,
    StateReason,
)
from gatedoffer.models.reward import (
    BatchPolicy,
    ClaimRecord,
    DistributionReport,
    RewardConfig,
    RewardMode,
    RewardStats,
)
from gatedoffer.persistence.event_log import EventKind, EventLog

logger = logging.getLogger(__name__)


class ClaimantList:
    """Ordered, duplicate-free set of addresses allowed to claim."""

    def __init__(self, limit: int = 0) -> None:
        self._limit = limit
        self._members: dict[str, None] = {}

    def add(self, users: Iterable[str]) -> int:
        """Add users, ignoring ones already present. Returns how many were new."""
        incoming = [to_address(u) for u in users]
        fresh = [u for u in dict.fromkeys(incoming) if u not in self._members]
        if self._limit and len(self._members) + len(fresh) > self._limit:
            raise ConfigError(
                f"List holds at most {self._limit}, "
                f"{len(self._members)} present and {len(fresh)} more given"
            )
        for user in fresh:
            self._members[user] = None
        return len(fresh)

    def replace(self, users: Iterable[str]) -> None:
        members = list(dict.fromkeys(to_address(u) for u in users))
        if self._limit and len(members) > self._limit:
            raise ConfigError(f"List holds at most {self._limit}, {len(members)} given")
        self._members = dict.fromkeys(members)

    def __contains__(self, user: str) -> bool:
        return user in self._members

    def __len__(self) -> int:
        return len(self._members)

    def members(self) -> list[str]:
        return list(self._members)


class BaseReward:
    """Shared claim and distribution logic. Variants supply the payout.

    Usage:
        reward = TokenAirdropReward("0xR..", config, owner, controller=orchestrator_id)
        record = reward.claim(user, caller=orchestrator_id)
        report = reward.trigger_automatic_distribution(owner, [alice, bob])
    """

    REWARD_TYPE = ""
    # Variants with a winner or eligible list set this to True.
    USES_CLAIMANT_LIST = False

    def __init__(
        self,
        reward_id: str,
        config: RewardConfig,
        owner: str,
        controller: Optional[str] = None,
        clock: Optional[Clock] = None,
        event_log: Optional[EventLog] = None,
    ) -> None:
        config.validate()
        try:
            self._owner = to_address(owner)
            self.reward_id = to_address(reward_id)
            self._controller = to_address(controller) if controller else None
        except ValueError as exc:
            raise ConfigError(str(exc)) from exc

        self._config = config
        self._payout = self._build_payout(config)
        self._claimants = (
            ClaimantList(self._claimant_limit(config)) if self.USES_CLAIMANT_LIST else None
        )
        self._clock = clock or system_clock
        self._event_log = event_log
        self._active = True
        self._claim_start = config.claim_start
        self._claim_end = config.claim_end
        self._ledger: dict[str, ClaimRecord] = {}
        self._claimed_amount = 0
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Readers
    # ------------------------------------------------------------------

    @property
    def reward_type(self) -> str:
        return self.REWARD_TYPE

    @property
    def owner(self) -> str:
        return self._owner

    @property
    def controller(self) -> Optional[str]:
        return self._controller

    @property
    def active(self) -> bool:
        return self._active

    def get_config(self) -> RewardConfig:
        return self._config

    def has_claimed(self, user: str) -> bool:
        return self.claim_record(user).claimed

    def claim_record(self, user: str) -> ClaimRecord:
        """A copy of the user's ledger entry (unclaimed default if none)."""
        record = self._ledger.get(to_address(user))
        if record is None:
            return ClaimRecord()
        return ClaimRecord(
            claimed=record.claimed,
            assigned_asset_id=record.assigned_asset_id,
            amount=record.amount,
            claimed_at=record.claimed_at,
        )

    def can_claim(self, user: str) -> bool:
        """Whether ``claim`` would succeed right now. Side-effect free."""
        try:
            address = to_address(user)
        except ValueError:
            return False
        with self._lock:
            try:
                self._check_claimable(address, self._clock())
                self._payout.preflight(self.reward_id, [address])
            except (StateError, FundingError):
                return False
        return True

    def get_stats(self) -> RewardStats:
        with self._lock:
            extras = dict(self._payout.stats())
            if self._claimants is not None:
                extras[self._claimant_label()] = len(self._claimants)
            return RewardStats(
                name=self._config.name,
                reward_type=self.REWARD_TYPE,
                mode=self._config.mode,
                distribution_date=self._config.distribution_date,
                active=self._active,
                claimed_count=len(self._ledger),
                claimed_amount=self._claimed_amount,
                capacity=self._config.total_or_expected_count,
                extras=extras,
            )

    # ------------------------------------------------------------------
    # Claims
    # ------------------------------------------------------------------

    def claim(self, user: str, caller: str) -> ClaimRecord:
        """Deliver one unit to ``user``. Only the controller may call this."""
        if not self._is_controller(caller):
            raise AuthorizationError(
                f"{caller} is not the controller of reward {self.reward_id}"
            )
        address = to_address(user)
        with self._lock:
            now = self._clock()
            self._check_claimable(address, now)
            record = self._deliver(address, now)

        self._emit_claimed(address, record, caller)
        return self.claim_record(address)

    def trigger_automatic_distribution(
        self,
        caller: str,
        users: Sequence[str],
    ) -> DistributionReport:
        """Push the reward to a batch of users. Owner only, automatic mode only.

        Users who already claimed are skipped. Under ALL_OR_NOTHING every
        remaining user is checked and the whole batch is funding
        preflighted before any asset moves. Under BEST_EFFORT a failing
        user is recorded in the report and the batch continues.

        ALL_OR_NOTHING holds up to preflight only: a ledger can still refuse
        a transfer mid-batch. Deliveries already made then stand and are
        emitted, the batch stops, and DistributionAborted carries the report.
        """
        self._require_owner(caller)
        if self._config.mode != RewardMode.AUTOMATIC:
            raise StateError(StateReason.NOT_AUTOMATIC, f"reward {self.reward_id} is manual")
        if len(users) > self._config.max_batch_size:
            raise StateError(
                StateReason.BATCH_TOO_LARGE,
                f"{len(users)} users given, at most {self._config.max_batch_size} per batch",
            )
        addresses = list(dict.fromkeys(to_address(u) for u in users))
        policy = self._config.batch_policy
        report = DistributionReport(policy=policy)
        delivered: list[tuple[str, ClaimRecord]] = []

        with self._lock:
            now = self._clock()
            if now < self._config.distribution_date:
                raise StateError(
                    StateReason.NOT_YET_DUE,
                    f"distribution opens at {self._config.distribution_date}",
                )
            pending = []
            for address in addresses:
                if address in self._ledger:
                    report.skipped.append(address)
                else:
                    pending.append(address)

            if policy == BatchPolicy.ALL_OR_NOTHING:
                for address in pending:
                    self._check_claimable(address, now)
                self._payout.preflight(self.reward_id, pending)
                for address in pending:
                    try:
                        delivered.append((address, self._deliver(address, now)))
                    except FundingError as exc:
                        logger.error(
                            "Distribution on %s aborted at %s after %d deliveries: %s",
                            self.reward_id, address, len(delivered), exc,
                        )
                        report.failed[address] = str(exc)
                        break
                    report.claimed.append(address)
            else:
                for address in pending:
                    try:
                        self._check_claimable(address, now)
                        delivered.append((address, self._deliver(address, now)))
                    except (StateError, FundingError) as exc:
                        logger.warning(
                            "Distribution to %s on %s failed: %s", address, self.reward_id, exc
                        )
                        report.failed[address] = str(exc)
                        continue
                    report.claimed.append(address)

        for address, record in delivered:
            self._emit_claimed(address, record, caller)
        logger.info(
            "Distribution on %s: %d claimed, %d skipped, %d failed",
            self.reward_id, len(report.claimed), len(report.skipped), len(report.failed),
        )
        if self._event_log is not None:
            self._event_log.record(
                EventKind.DISTRIBUTION_TRIGGERED,
                subject_id=self.reward_id,
                actor_id=caller,
                payload={
                    "policy": policy.value,
                    "claimed": report.claimed,
                    "skipped": report.skipped,
                    "failed": report.failed,
                },
                timestamp=now,
            )
        if policy == BatchPolicy.ALL_OR_NOTHING and report.failed:
            raise DistributionAborted(
                report, f"distribution on {self.reward_id} stopped after {len(report.claimed)} deliveries"
            )
        return report

    # ------------------------------------------------------------------
    # Owner administration
    # ------------------------------------------------------------------

    def set_active(self, caller: str, active: bool) -> None:
        self._require_owner(caller)
        with self._lock:
            self._active = active

    def set_claim_window(self, caller: str, start: int, end: int) -> None:
        self._require_owner(caller)
        if start < 0 or end < 0:
            raise ConfigError("Claim window bounds cannot be negative")
        if end and end < start:
            raise ConfigError(f"Claim window ends ({end}) before it starts ({start})")
        with self._lock:
            self._claim_start = start
            self._claim_end = end

    def set_controller(self, caller: str, controller: str) -> None:
        """Bind the reward to its orchestrator. Allowed once."""
        self._require_owner(caller)
        with self._lock:
            if self._controller is not None:
                raise AuthorizationError(f"Reward {self.reward_id} already has a controller")
            self._controller = to_address(controller)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _check_claimable(self, user: str, now: int) -> None:
        if not self._active:
            raise StateError(StateReason.INACTIVE, f"reward {self.reward_id} is inactive")
        if now < self._claim_start or (self._claim_end and now > self._claim_end):
            raise StateError(StateReason.OUTSIDE_WINDOW, "claim window is closed")
        if self._config.mode == RewardMode.AUTOMATIC and now < self._config.distribution_date:
            raise StateError(
                StateReason.NOT_YET_DUE,
                f"distribution opens at {self._config.distribution_date}",
            )
        if user in self._ledger:
            raise StateError(StateReason.ALREADY_CLAIMED, f"{user} already claimed")
        if self._claimants is not None and user not in self._claimants:
            raise StateError(
                StateReason.NOT_AUTHORIZED_CLAIMANT,
                f"{user} is not on the {self._claimant_label()} list",
            )

    def _deliver(self, user: str, now: int) -> ClaimRecord:
        asset_id, amount = self._payout.deliver(self.reward_id, user)
        record = ClaimRecord(claimed=True, assigned_asset_id=asset_id, amount=amount, claimed_at=now)
        self._ledger[user] = record
        self._claimed_amount += amount
        return record

    def _emit_claimed(self, user: str, record: ClaimRecord, caller: str) -> None:
        logger.info("Reward %s claimed by %s (asset %s, amount %s)",
                    self.reward_id, user, record.assigned_asset_id, record.amount)
        if self._event_log is not None:
            self._event_log.record(
                EventKind.REWARD_CLAIMED,
                subject_id=self.reward_id,
                actor_id=caller,
                payload={
                    "user": user,
                    "assigned_asset_id": record.assigned_asset_id,
                    "amount": record.amount,
                },
                timestamp=record.claimed_at,
            )

    def _is_controller(self, caller: str) -> bool:
        if self._controller is None:
            return False
        try:
            return to_address(caller) == self._controller
        except ValueError:
            return False

    def _require_owner(self, caller: str) -> None:
        try:
            is_owner = to_address(caller) == self._owner
        except ValueError:
            is_owner = False
        if not is_owner:
            raise AuthorizationError(f"{caller} is not the owner of reward {self.reward_id}")

    def _is_listed(self, user: str) -> bool:
        try:
            return to_address(user) in self._claimants
        except ValueError:
            return False

    def _add_claimants(self, caller: str, users: Iterable[str]) -> int:
        self._require_owner(caller)
        with self._lock:
            return self._claimants.add(users)

    def _replace_claimants(self, caller: str, users: Iterable[str]) -> None:
        self._require_owner(caller)
        with self._lock:
            self._claimants.replace(users)

    # ------------------------------------------------------------------
    # Variant hooks
    # ------------------------------------------------------------------

    def _build_payout(self, config: RewardConfig):
        raise NotImplementedError

    def _claimant_limit(self, config: RewardConfig) -> int:
        return 0

    def _claimant_label(self) -> str:
        return "claimant"
