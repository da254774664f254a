"""Hold-threshold activities — eligibility from balances a user holds.

Live mode reads the criterion ledgers on every check. When the config
sets a ``snapshot_time`` the live ledgers are ignored and the balances
recorded (by the owner or a proof holder) for that snapshot are used.
"""

from __future__ import annotations

from gatedoffer.activities.base import BaseActivity
from gatedoffer.errors import ConfigError
from gatedoffer.models.activity import ActivityConfig, ListingStatus


class HoldXTokensActivity(BaseActivity):
    """Eligible when every fungible criterion balance reaches its threshold."""

    ACTIVITY_TYPE = "HOLD_X_TOKENS"

    def _validate_config(self, config: ActivityConfig) -> None:
        for c in config.criteria:
            if c.asset is None:
                raise ConfigError("HOLD_X_TOKENS criteria need a token ledger")

    def _meets_criteria(self, user: str) -> bool:
        for idx, criterion in enumerate(self._config.criteria):
            if self._snapshot_mode():
                held = self._recorded.get((user, idx), 0)
            else:
                held = criterion.asset.balance_of(user)
            if held < criterion.threshold:
                return False
        return True


class HoldXNftsActivity(BaseActivity):
    """Eligible when the user holds enough NFTs of every criterion collection.

    Only tokens matching the configured listing status count.
    """

    ACTIVITY_TYPE = "HOLD_X_NFTS"

    def _validate_config(self, config: ActivityConfig) -> None:
        for c in config.criteria:
            if c.asset is None:
                raise ConfigError("HOLD_X_NFTS criteria need an NFT ledger")

    def _meets_criteria(self, user: str) -> bool:
        for idx, criterion in enumerate(self._config.criteria):
            if self._snapshot_mode():
                held = self._recorded.get((user, idx), 0)
            else:
                held = self._count_matching(criterion.asset, user)
            if held < criterion.threshold:
                return False
        return True

    def _count_matching(self, ledger, user: str) -> int:
        status = self._config.listing_status
        if status == ListingStatus.ANY:
            return ledger.balance_of(user)
        want_listed = status == ListingStatus.LISTED
        return sum(1 for t in ledger.tokens_of(user) if ledger.is_listed(t) == want_listed)
