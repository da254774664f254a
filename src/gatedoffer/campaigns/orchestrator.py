"""Claim orchestrator — the single user-facing entry point of a campaign.

One orchestrator holds exactly one activity and one reward. A claim runs
the pipeline below under the campaign lock; each step either passes or
raises, and nothing is written until the reward has delivered:

    1. not paused                            StateError(PAUSED)
    2. eligibility (proof or state based)    EligibilityError(reason)
    3. discount Merkle proof                 DiscountProofError
    4. price moved into escrow               FundingError
    5. reward.claim(user, caller=self)       reward errors, unchanged;
                                             escrow refunded to the user
    6. escrow released to the fee legs, CLAIMED event, receipt

The price is held under the orchestrator identity until the reward has
delivered, so a failed reward never leaves the user charged. A leg the
payment ledger refuses on release (a blocked fee recipient, say) stays in
escrow as an owed payout; the claim itself stands and the owner retries
with ``release_owed``.

Eligibility mode per claim:
    - disabled config                         no check
    - require_proof_for_all_claims            proof required (MISSING_PROOF if empty)
    - non-empty proof supplied                proof checked
    - otherwise                               activity.check_eligibility(user)

The orchestrator identity (``campaign_id``) is the reward's controller and
the spender the user approves on the payment ledger.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
from typing import Optional, Sequence

from gatedoffer.assets.ledgers import AssetTransferError, FungibleLedger
from gatedoffer.clock import Clock, system_clock
from gatedoffer.crypto.hashing import discount_leaf, to_address
from gatedoffer.crypto.merkle import MerkleVerifier
from gatedoffer.crypto.signatures import is_empty_proof
from gatedoffer.errors import (
    AuthorizationError,
    ConfigError,
    DiscountProofError,
    EligibilityError,
    EligibilityFailure,
    FundingError,
    StateError,
    StateReason,
)
from gatedoffer.models.campaign import (
    BPS_DENOMINATOR,
    ClaimReceipt,
    EligibilityConfig,
    FeeBreakdown,
    FeeConfig,
)
from gatedoffer.persistence.event_log import EventKind, EventLog

logger = logging.getLogger(__name__)


class ClaimOrchestrator:
    """Claim pipeline and owner administration for one campaign.

    Usage:
        receipt = orchestrator.claim(user, proof=proof_bytes)
        receipt = orchestrator.claim(user, discount_rate=1000, merkle_proof=path)
    """

    def __init__(
        self,
        campaign_id: str,
        activity,
        reward,
        owner: str,
        eligibility_config: EligibilityConfig,
        fee_config: FeeConfig,
        affiliate: Optional[str] = None,
        payment_ledger: Optional[FungibleLedger] = None,
        clock: Optional[Clock] = None,
        merkle_verifier: Optional[MerkleVerifier] = None,
        event_log: Optional[EventLog] = None,
    ) -> None:
        eligibility_config.validate()
        fee_config.validate()
        if fee_config.claim_price > 0 and payment_ledger is None:
            raise ConfigError("A paid claim needs a payment ledger")
        try:
            self.campaign_id = to_address(campaign_id)
            self._owner = to_address(owner)
            self._affiliate = to_address(affiliate) if affiliate else None
        except ValueError as exc:
            raise ConfigError(str(exc)) from exc

        self._activity = activity
        self._reward = reward
        self._eligibility = eligibility_config
        self._fee = fee_config
        self._payment_ledger = payment_ledger
        self._clock = clock or system_clock
        self._merkle = merkle_verifier or MerkleVerifier()
        self._event_log = event_log
        self._discount_root: Optional[bytes] = None
        self._owed: dict[str, int] = {}
        self._paused = False
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Readers
    # ------------------------------------------------------------------

    @property
    def owner(self) -> str:
        return self._owner

    @property
    def affiliate(self) -> Optional[str]:
        return self._affiliate

    @property
    def activity(self):
        return self._activity

    @property
    def reward(self):
        return self._reward

    @property
    def eligibility_config(self) -> EligibilityConfig:
        """The stored config with key and window read back from the activity.

        The activity owner can rotate either directly on the activity, so the
        activity stays the source of truth for both.
        """
        return dataclasses.replace(
            self._eligibility,
            signing_key=self._activity.signing_key,
            proof_validity_duration=self._activity.proof_validity_duration,
        )

    @property
    def fee_config(self) -> FeeConfig:
        return self._fee

    @property
    def discount_merkle_root(self) -> Optional[bytes]:
        return self._discount_root

    def is_paused(self) -> bool:
        return self._paused

    def quote_fee(self, discount_rate: int = 0) -> FeeBreakdown:
        if not 0 <= discount_rate <= BPS_DENOMINATOR:
            raise ValueError(f"Discount rate must be within 0..{BPS_DENOMINATOR}")
        return self._fee.quote(discount_rate, self._affiliate is not None)

    def can_claim(self, user: str) -> bool:
        """Reward-side readiness. Eligibility is not evaluated."""
        return not self._paused and self._reward.can_claim(user)

    # ------------------------------------------------------------------
    # Claim
    # ------------------------------------------------------------------

    def claim(
        self,
        user: str,
        proof: bytes = b"",
        discount_rate: int = 0,
        merkle_proof: Sequence[bytes] = (),
    ) -> ClaimReceipt:
        address = to_address(user)
        with self._lock:
            if self._paused:
                raise StateError(StateReason.PAUSED, f"campaign {self.campaign_id} is paused")
            self._check_eligibility(address, proof)
            self._check_discount(address, discount_rate, merkle_proof)
            fee = self._fee.quote(discount_rate, self._affiliate is not None)
            if fee.price_paid > 0:
                self._preflight_payment(address, fee.price_paid)
                self._escrow_payment(address, fee.price_paid)

            try:
                record = self._reward.claim(address, caller=self.campaign_id)
            except Exception:
                if fee.price_paid > 0:
                    self._refund_escrow(address, fee.price_paid)
                raise

            if fee.price_paid > 0:
                self._release_payment(fee)

        receipt = ClaimReceipt(
            campaign_id=self.campaign_id,
            user=address,
            discount_rate=discount_rate,
            fee=fee,
            assigned_asset_id=record.assigned_asset_id,
            amount=record.amount,
            claimed_at=record.claimed_at,
        )
        logger.info("Campaign %s: %s claimed (discount %d bps)",
                    self.campaign_id, address, discount_rate)
        if self._event_log is not None:
            self._event_log.record(
                EventKind.CLAIMED,
                subject_id=self.campaign_id,
                actor_id=address,
                payload={
                    "user": address,
                    "discount_rate": discount_rate,
                    "fee": fee.to_dict(),
                    "assigned_asset_id": record.assigned_asset_id,
                    "amount": record.amount,
                },
                timestamp=record.claimed_at,
            )
        return receipt

    def _check_eligibility(self, user: str, proof: bytes) -> None:
        config = self._eligibility
        if not config.enabled:
            return
        empty = is_empty_proof(proof)
        if config.require_proof_for_all_claims and empty:
            raise EligibilityError(EligibilityFailure.MISSING_PROOF, "this campaign requires a proof")
        if empty:
            failure = self._activity.eligibility_failure(user)
        else:
            failure = self._activity.explain_proof(user, proof)
        if failure is not None:
            raise EligibilityError(failure, f"{user} on campaign {self.campaign_id}")

    def _check_discount(self, user: str, rate: int, merkle_proof: Sequence[bytes]) -> None:
        if rate == 0:
            return
        if not 0 < rate <= BPS_DENOMINATOR:
            raise DiscountProofError(f"Discount rate {rate} is outside 0..{BPS_DENOMINATOR}")
        if self._discount_root is None:
            raise DiscountProofError("No discount root is configured")
        leaf = discount_leaf(user, rate)
        if not self._merkle.verify(list(merkle_proof), self._discount_root, leaf):
            raise DiscountProofError(f"Discount proof for {user} at {rate} bps does not verify")

    def _preflight_payment(self, user: str, price: int) -> None:
        allowance = self._payment_ledger.allowance(user, self.campaign_id)
        if allowance < price:
            raise FundingError(f"Payment allowance {allowance} is below the price {price}")
        balance = self._payment_ledger.balance_of(user)
        if balance < price:
            raise FundingError(f"Payment balance {balance} is below the price {price}")

    def _escrow_payment(self, user: str, price: int) -> None:
        try:
            self._payment_ledger.transfer_from(self.campaign_id, user, self.campaign_id, price)
        except AssetTransferError as exc:
            raise FundingError(str(exc)) from exc

    def _refund_escrow(self, user: str, price: int) -> None:
        self._payment_ledger.transfer(self.campaign_id, user, price)
        logger.info("Campaign %s: refunded %d to %s after a failed reward",
                    self.campaign_id, price, user)

    def _release_payment(self, fee: FeeBreakdown) -> None:
        legs = (
            (self._fee.fee_recipient, fee.platform_fee - fee.affiliate_fee),
            (self._affiliate, fee.affiliate_fee),
            (self._owner, fee.owner_proceeds),
        )
        for recipient, amount in legs:
            if amount <= 0:
                continue
            recipient = to_address(recipient)
            try:
                self._payment_ledger.transfer(self.campaign_id, recipient, amount)
            except AssetTransferError as exc:
                self._owed[recipient] = self._owed.get(recipient, 0) + amount
                logger.warning("Campaign %s: %d owed to %s stays in escrow: %s",
                               self.campaign_id, amount, recipient, exc)

    # ------------------------------------------------------------------
    # Owed payouts
    # ------------------------------------------------------------------

    def owed_to(self, recipient: str) -> int:
        """Escrowed amount a refused fee leg still owes ``recipient``."""
        return self._owed.get(to_address(recipient), 0)

    def release_owed(self, caller: str, recipient: str) -> int:
        """Retry an owed payout. Returns the amount released (0 if none owed).

        Raises:
            FundingError: The ledger still refuses; the amount stays owed.
        """
        self._require_owner(caller)
        address = to_address(recipient)
        with self._lock:
            amount = self._owed.get(address, 0)
            if amount == 0:
                return 0
            try:
                self._payment_ledger.transfer(self.campaign_id, address, amount)
            except AssetTransferError as exc:
                raise FundingError(str(exc)) from exc
            del self._owed[address]
        logger.info("Campaign %s: released %d owed to %s", self.campaign_id, amount, address)
        return amount

    # ------------------------------------------------------------------
    # Owner administration
    # ------------------------------------------------------------------

    def set_discount_merkle_root(self, caller: str, root: Optional[bytes]) -> None:
        """Replace the discount root. ``None`` disables discounts."""
        self._require_owner(caller)
        if root is not None and len(root) != 32:
            raise ConfigError(f"Discount root must be 32 bytes, got {len(root)}")
        with self._lock:
            self._discount_root = bytes(root) if root is not None else None
        self._emit(EventKind.DISCOUNT_ROOT_SET, caller, {
            "root": "0x" + root.hex() if root is not None else None,
        })

    def set_eligibility_config(self, caller: str, config: EligibilityConfig) -> None:
        """Replace the eligibility config and push key and window to the activity."""
        self._require_owner(caller)
        config.validate()
        with self._lock:
            self._activity.set_signing_key(caller, config.signing_key)
            self._activity.set_proof_validity_duration(caller, config.proof_validity_duration)
            self._eligibility = config
        self._emit(EventKind.ELIGIBILITY_CONFIG_SET, caller, config.to_dict())

    def set_fee_config(self, caller: str, config: FeeConfig) -> None:
        self._require_owner(caller)
        config.validate()
        if config.claim_price > 0 and self._payment_ledger is None:
            raise ConfigError("A paid claim needs a payment ledger")
        with self._lock:
            self._fee = config
        self._emit(EventKind.FEE_CONFIG_SET, caller, config.to_dict())

    def pause(self, caller: str) -> None:
        self._require_owner(caller)
        with self._lock:
            if self._paused:
                return
            self._paused = True
        logger.info("Campaign %s paused", self.campaign_id)
        self._emit(EventKind.CAMPAIGN_PAUSED, caller, {})

    def unpause(self, caller: str) -> None:
        self._require_owner(caller)
        with self._lock:
            if not self._paused:
                return
            self._paused = False
        logger.info("Campaign %s unpaused", self.campaign_id)
        self._emit(EventKind.CAMPAIGN_UNPAUSED, caller, {})

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_owner(self, caller: str) -> None:
        try:
            is_owner = to_address(caller) == self._owner
        except ValueError:
            is_owner = False
        if not is_owner:
            raise AuthorizationError(f"{caller} is not the owner of campaign {self.campaign_id}")

    def _emit(self, kind: EventKind, caller: str, payload: dict) -> None:
        if self._event_log is not None:
            self._event_log.record(
                kind,
                subject_id=self.campaign_id,
                actor_id=caller,
                payload=payload,
                timestamp=self._clock(),
            )
