"""Purchase-threshold activities — eligibility from recorded purchases.

Purchases happen off-system. Each verified purchase is ingested with
``record_activity`` and accumulates per user; eligibility compares the
running total against the single configured threshold.
"""

from __future__ import annotations

from gatedoffer.activities.base import BaseActivity
from gatedoffer.errors import ConfigError, EligibilityError, EligibilityFailure
from gatedoffer.models.activity import ActivityConfig


class _PurchaseActivity(BaseActivity):

    def _validate_config(self, config: ActivityConfig) -> None:
        if len(config.criteria) != 1:
            raise ConfigError(f"{self.ACTIVITY_TYPE} takes exactly one criterion")

    def _meets_criteria(self, user: str) -> bool:
        return self._recorded.get((user, 0), 0) >= self._config.criteria[0].threshold


class BuyXTokensActivity(_PurchaseActivity):
    """Eligible once the purchased token total reaches the threshold.

    Purchases below ``min_purchase_amount`` are rejected at ingestion.
    """

    ACTIVITY_TYPE = "BUY_X_TOKENS"

    def _validate_amount(self, amount: int) -> None:
        minimum = self._config.min_purchase_amount
        if amount < minimum:
            raise EligibilityError(
                EligibilityFailure.BELOW_MINIMUM_PURCHASE,
                f"purchase of {amount} is below the minimum of {minimum}",
            )


class BuyXNftsActivity(_PurchaseActivity):
    """Eligible once the purchased NFT count reaches the threshold."""

    ACTIVITY_TYPE = "BUY_X_NFTS"


class BuyXApecoinWorthOfTokensActivity(BuyXTokensActivity):
    """Eligible once the APE spent on token purchases reaches the threshold.

    Amounts are APE, not tokens. The criterion asset, when set, is the APE
    ledger the purchases were paid from; it is informational only since
    spend is ingested, never read from balances. Purchases below
    ``min_purchase_amount`` APE are rejected.

    Usage:
        activity.verify_purchase(caller, user, 5 * 10**18, proof=proof)
        activity.apecoin_spent(user)
    """

    ACTIVITY_TYPE = "BUY_X_APECOIN_WORTH_OF_TOKENS"

    def verify_purchase(self, caller: str, user: str, amount: int, proof: bytes = b"") -> int:
        """Record a verified purchase worth ``amount`` APE. Returns the user's new total."""
        return self.record_activity(caller, user, amount, proof=proof)

    def apecoin_spent(self, user: str) -> int:
        return self.recorded_value(user)
