"""Error taxonomy for gated-offer campaigns.

Every operation fails closed: an error aborts the operation and leaves
no partial state behind. The one documented exception is best-effort
batch distribution, which records per-entry failures and continues.

Reasons are string enums so a client can branch on them:
    - EligibilityError.reason: retry with a fresh proof, or stop.
    - StateError.reason: wait (NOT_YET_DUE, PAUSED) or stop (ALREADY_CLAIMED).
    - FundingError: wait for the broker to top up.
"""

from __future__ import annotations

import enum
from typing import Optional


class EligibilityFailure(str, enum.Enum):
    """Why an eligibility check failed."""
    CRITERIA_NOT_MET = "criteria_not_met"
    OUTSIDE_ACTIVITY_WINDOW = "outside_activity_window"
    MALFORMED_PROOF = "malformed_proof"
    MISSING_PROOF = "missing_proof"
    PROOF_FROM_FUTURE = "proof_from_future"
    PROOF_EXPIRED = "proof_expired"
    INVALID_SIGNATURE = "invalid_signature"
    WRONG_SIGNER = "wrong_signer"
    BELOW_MINIMUM_PURCHASE = "below_minimum_purchase"
    PROOF_ALREADY_USED = "proof_already_used"


class StateReason(str, enum.Enum):
    """Why a state-dependent operation was rejected."""
    PAUSED = "paused"
    INACTIVE = "inactive"
    OUTSIDE_WINDOW = "outside_window"
    ALREADY_CLAIMED = "already_claimed"
    NOT_YET_DUE = "not_yet_due"
    NOT_AUTOMATIC = "not_automatic"
    NOT_AUTHORIZED_CLAIMANT = "not_authorized_claimant"
    BATCH_TOO_LARGE = "batch_too_large"


class GatedOfferError(Exception):
    """Base class for all campaign errors."""


class ConfigError(GatedOfferError):
    """Malformed configuration. Aborts campaign creation atomically."""


class AuthorizationError(GatedOfferError):
    """Caller is not the owner, an authorized origin, or the controller."""


class EligibilityError(GatedOfferError):
    """User is not eligible (criterion unmet, bad or expired proof)."""

    def __init__(self, reason: EligibilityFailure, detail: Optional[str] = None) -> None:
        self.reason = reason
        message = reason.value if detail is None else f"{reason.value}: {detail}"
        super().__init__(message)


class DiscountProofError(GatedOfferError):
    """Discount Merkle proof does not verify against the configured root."""


class StateError(GatedOfferError):
    """Operation not allowed in the current state."""

    def __init__(self, reason: StateReason, detail: Optional[str] = None) -> None:
        self.reason = reason
        message = reason.value if detail is None else f"{reason.value}: {detail}"
        super().__init__(message)


class FundingError(GatedOfferError):
    """Broker allowance, balance or inventory cannot cover the claim."""


class DistributionAborted(FundingError):
    """An ALL_OR_NOTHING batch passed preflight but a delivery still failed.

    Deliveries before the failure stand. ``report`` lists them under
    ``claimed`` and the failing user under ``failed``; the rest of the
    batch was not attempted and can be re-submitted.
    """

    def __init__(self, report, detail: str) -> None:
        self.report = report
        super().__init__(detail)
