"""Activity module base — eligibility criteria, signing key, proof window.

An activity answers one question: may this user claim? It answers it in
two ways, and the orchestrator picks which:

    check_eligibility(user)               state-based: live balances or
                                          recorded activity, within the window
    verify_eligibility_proof(user, proof) proof-based: a fresh attestation
                                          from the configured signing key

Recorded activity enters through ``record_activity``, callable by the
owner or by anyone holding a valid proof for the user. That is how
off-chain verified purchases become visible to ``check_eligibility``.

Variants implement ``_meets_criteria`` and, optionally,
``_validate_config`` and ``_validate_amount``. Proof verification is
delegated to a shared EligibilityProofChecker.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

from gatedoffer.clock import Clock, system_clock
from gatedoffer.crypto.hashing import to_address
from gatedoffer.crypto.signatures import EligibilityProof, EligibilityProofChecker
from gatedoffer.errors import (
    AuthorizationError,
    ConfigError,
    EligibilityError,
    EligibilityFailure,
    StateError,
    StateReason,
)
from gatedoffer.models.activity import ActivityConfig
from gatedoffer.persistence.event_log import EventKind, EventLog

logger = logging.getLogger(__name__)


class BaseActivity:
    """Shared state and behaviour for every activity variant."""

    ACTIVITY_TYPE = ""

    def __init__(
        self,
        activity_id: str,
        config: ActivityConfig,
        owner: str,
        signing_key: Optional[str] = None,
        proof_validity_duration: int = 0,
        clock: Optional[Clock] = None,
        proof_checker: Optional[EligibilityProofChecker] = None,
        event_log: Optional[EventLog] = None,
    ) -> None:
        config.validate()
        self._validate_config(config)
        if proof_validity_duration < 0:
            raise ConfigError("Proof validity duration cannot be negative")
        try:
            self._owner = to_address(owner)
            self._signing_key = to_address(signing_key) if signing_key else None
        except ValueError as exc:
            raise ConfigError(str(exc)) from exc

        self.activity_id = activity_id
        self._config = config
        self._proof_validity_duration = proof_validity_duration
        self._clock = clock or system_clock
        self._checker = proof_checker or EligibilityProofChecker()
        self._event_log = event_log
        # (user, criterion index) -> accumulated value
        self._recorded: dict[tuple[str, int], int] = {}
        self._spent_proofs: set[tuple[str, int]] = set()
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Readers
    # ------------------------------------------------------------------

    @property
    def activity_type(self) -> str:
        return self.ACTIVITY_TYPE

    @property
    def owner(self) -> str:
        return self._owner

    @property
    def signing_key(self) -> Optional[str]:
        return self._signing_key

    @property
    def proof_validity_duration(self) -> int:
        return self._proof_validity_duration

    def get_config(self) -> ActivityConfig:
        return self._config

    def recorded_value(self, user: str, criterion_index: int = 0) -> int:
        return self._recorded.get((to_address(user), criterion_index), 0)

    def check_eligibility(self, user: str) -> bool:
        """State-based eligibility. Side-effect free."""
        try:
            address = to_address(user)
        except ValueError:
            return False
        if not self._config.in_window(self._clock()):
            return False
        return self._meets_criteria(address)

    def eligibility_failure(self, user: str) -> Optional[EligibilityFailure]:
        """The reason ``check_eligibility`` is False, or None if eligible."""
        if not self._config.in_window(self._clock()):
            return EligibilityFailure.OUTSIDE_ACTIVITY_WINDOW
        if not self.check_eligibility(user):
            return EligibilityFailure.CRITERIA_NOT_MET
        return None

    def verify_eligibility_proof(self, user: str, proof: bytes) -> bool:
        return self.explain_proof(user, proof) is None

    def explain_proof(self, user: str, proof: bytes) -> Optional[EligibilityFailure]:
        """None if the proof is valid for ``user``, else the failure reason."""
        return self._checker.check(
            user=user,
            proof=proof,
            activity_type=self.ACTIVITY_TYPE,
            signing_key=self._signing_key,
            validity_duration=self._proof_validity_duration,
            now=self._clock(),
        )

    # ------------------------------------------------------------------
    # Privileged ingestion
    # ------------------------------------------------------------------

    def record_activity(
        self,
        caller: str,
        user: str,
        amount: int,
        proof: bytes = b"",
        criterion_index: int = 0,
    ) -> int:
        """Add ``amount`` to the user's recorded value. Returns the new total.

        Callable by the owner, or by any caller presenting a proof that
        passes verify_eligibility_proof for ``user``. A proof records once:
        its (user, timestamp) pair is spent by the first successful call,
        and replaying it raises EligibilityError(PROOF_ALREADY_USED).
        """
        address = to_address(user)
        if amount <= 0:
            raise ValueError("Recorded amount must be positive")
        if not 0 <= criterion_index < len(self._config.criteria):
            raise ValueError(f"No criterion at index {criterion_index}")

        with self._lock:
            spent = None
            if not self._is_owner(caller):
                if not proof:
                    raise AuthorizationError(
                        f"{caller} is not the activity owner and supplied no proof"
                    )
                failure = self.explain_proof(address, proof)
                if failure is not None:
                    raise EligibilityError(failure, f"cannot record activity for {address}")
                spent = (address, EligibilityProof.decode(proof).timestamp)
                if spent in self._spent_proofs:
                    raise EligibilityError(
                        EligibilityFailure.PROOF_ALREADY_USED,
                        f"proof for {address} at {spent[1]} already recorded activity",
                    )

            now = self._clock()
            if not self._config.in_window(now):
                raise StateError(StateReason.OUTSIDE_WINDOW, "activity window is closed")
            self._validate_amount(amount)

            if spent is not None:
                self._spent_proofs.add(spent)
            key = (address, criterion_index)
            total = self._recorded.get(key, 0) + amount
            self._recorded[key] = total

        logger.debug("Recorded %s for %s on %s (total %s)", amount, address, self.activity_id, total)
        if self._event_log is not None:
            self._event_log.record(
                EventKind.ACTIVITY_RECORDED,
                subject_id=self.activity_id,
                actor_id=caller,
                payload={
                    "user": address,
                    "amount": amount,
                    "criterion_index": criterion_index,
                    "total": total,
                },
                timestamp=now,
            )
        return total

    # ------------------------------------------------------------------
    # Owner administration
    # ------------------------------------------------------------------

    def set_signing_key(self, caller: str, signing_key: Optional[str]) -> None:
        self._require_owner(caller)
        try:
            key = to_address(signing_key) if signing_key else None
        except ValueError as exc:
            raise ConfigError(str(exc)) from exc
        with self._lock:
            self._signing_key = key

    def set_proof_validity_duration(self, caller: str, seconds: int) -> None:
        self._require_owner(caller)
        if seconds < 0:
            raise ConfigError("Proof validity duration cannot be negative")
        with self._lock:
            self._proof_validity_duration = seconds

    # ------------------------------------------------------------------
    # Variant hooks
    # ------------------------------------------------------------------

    def _meets_criteria(self, user: str) -> bool:
        raise NotImplementedError

    def _validate_config(self, config: ActivityConfig) -> None:
        """Variant-specific config checks. Raise ConfigError."""

    def _validate_amount(self, amount: int) -> None:
        """Variant-specific checks on a single recorded amount."""

    def _snapshot_mode(self) -> bool:
        return self._config.snapshot_time > 0

    def _is_owner(self, caller: str) -> bool:
        try:
            return to_address(caller) == self._owner
        except ValueError:
            return False

    def _require_owner(self, caller: str) -> None:
        if not self._is_owner(caller):
            raise AuthorizationError(f"{caller} is not the owner of activity {self.activity_id}")
