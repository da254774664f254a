"""Campaign models — eligibility and fee configuration, receipts, instances.

Fee split on a paid claim (basis points, integer arithmetic, rounding
down in favour of the owner):

    price_paid     = claim_price * (10000 - discount_rate) / 10000
    platform_fee   = price_paid * fee_bps / 10000
    affiliate_fee  = platform_fee * affiliate_bps / 10000   (only with an affiliate)
    owner_proceeds = price_paid - platform_fee

Invariant: platform_fee + owner_proceeds == price_paid.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional

from gatedoffer.crypto.hashing import to_address
from gatedoffer.errors import ConfigError

if TYPE_CHECKING:
    from gatedoffer.campaigns.orchestrator import ClaimOrchestrator

BPS_DENOMINATOR = 10_000


@dataclass(frozen=True)
class EligibilityConfig:
    enabled: bool
    signing_key: Optional[str]
    proof_validity_duration: int
    require_proof_for_all_claims: bool = False

    def validate(self) -> None:
        if self.proof_validity_duration < 0:
            raise ConfigError("Proof validity duration cannot be negative")
        if self.signing_key is not None:
            try:
                to_address(self.signing_key)
            except ValueError as exc:
                raise ConfigError(f"Invalid signing key: {exc}") from exc
        if self.enabled and self.require_proof_for_all_claims:
            if self.signing_key is None:
                raise ConfigError("Proof-only eligibility needs a signing key")
            if self.proof_validity_duration == 0:
                raise ConfigError("Proof-only eligibility needs a validity duration")

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "signing_key": self.signing_key,
            "proof_validity_duration": self.proof_validity_duration,
            "require_proof_for_all_claims": self.require_proof_for_all_claims,
        }


@dataclass(frozen=True)
class FeeBreakdown:
    list_price: int
    discount_rate: int
    price_paid: int
    platform_fee: int
    affiliate_fee: int
    owner_proceeds: int

    def to_dict(self) -> dict[str, int]:
        return {
            "list_price": self.list_price,
            "discount_rate": self.discount_rate,
            "price_paid": self.price_paid,
            "platform_fee": self.platform_fee,
            "affiliate_fee": self.affiliate_fee,
            "owner_proceeds": self.owner_proceeds,
        }


@dataclass(frozen=True)
class FeeConfig:
    fee_recipient: Optional[str]
    fee_bps: int
    claim_price: int = 0
    affiliate_bps: int = 0

    def validate(self) -> None:
        for label, bps in (("fee_bps", self.fee_bps), ("affiliate_bps", self.affiliate_bps)):
            if not 0 <= bps <= BPS_DENOMINATOR:
                raise ConfigError(f"{label} must be within 0..{BPS_DENOMINATOR}, got {bps}")
        if self.claim_price < 0:
            raise ConfigError("Claim price cannot be negative")
        if self.fee_recipient is not None:
            try:
                to_address(self.fee_recipient)
            except ValueError as exc:
                raise ConfigError(f"Invalid fee recipient: {exc}") from exc
        elif self.claim_price > 0 and self.fee_bps > 0:
            raise ConfigError("A paid claim with a platform fee needs a fee recipient")

    def quote(self, discount_rate: int, has_affiliate: bool) -> FeeBreakdown:
        price_paid = self.claim_price * (BPS_DENOMINATOR - discount_rate) // BPS_DENOMINATOR
        platform_fee = price_paid * self.fee_bps // BPS_DENOMINATOR
        affiliate_fee = (
            platform_fee * self.affiliate_bps // BPS_DENOMINATOR if has_affiliate else 0
        )
        return FeeBreakdown(
            list_price=self.claim_price,
            discount_rate=discount_rate,
            price_paid=price_paid,
            platform_fee=platform_fee,
            affiliate_fee=affiliate_fee,
            owner_proceeds=price_paid - platform_fee,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "fee_recipient": self.fee_recipient,
            "fee_bps": self.fee_bps,
            "claim_price": self.claim_price,
            "affiliate_bps": self.affiliate_bps,
        }


@dataclass(frozen=True)
class ClaimReceipt:
    """Result of a successful orchestrated claim."""
    campaign_id: str
    user: str
    discount_rate: int
    fee: FeeBreakdown
    assigned_asset_id: Optional[int]
    amount: int
    claimed_at: int


@dataclass(frozen=True)
class CampaignInstance:
    """One (orchestrator, activity, reward) triad produced by the factory.

    The three component references never change. Eligibility and fee
    configuration live on the orchestrator and are owner-mutable there.
    """
    campaign_id: str
    orchestrator: ClaimOrchestrator
    activity: Any
    reward: Any
    owner: str
    affiliate: Optional[str]
    activity_type: str
    reward_type: str
    created_at: int

    @property
    def eligibility_config(self) -> EligibilityConfig:
        return self.orchestrator.eligibility_config

    @property
    def fee_config(self) -> FeeConfig:
        return self.orchestrator.fee_config
