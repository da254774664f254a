"""Activity modules — pluggable eligibility criteria."""

from gatedoffer.activities.base import BaseActivity
from gatedoffer.activities.holding import HoldXNftsActivity, HoldXTokensActivity
from gatedoffer.activities.purchases import (
    BuyXApecoinWorthOfTokensActivity,
    BuyXNftsActivity,
    BuyXTokensActivity,
)

ACTIVITY_TEMPLATES = {
    cls.ACTIVITY_TYPE: cls
    for cls in (
        HoldXTokensActivity,
        HoldXNftsActivity,
        BuyXTokensActivity,
        BuyXNftsActivity,
        BuyXApecoinWorthOfTokensActivity,
    )
}

__all__ = [
    "ACTIVITY_TEMPLATES",
    "BaseActivity",
    "BuyXApecoinWorthOfTokensActivity",
    "BuyXNftsActivity",
    "BuyXTokensActivity",
    "HoldXNftsActivity",
    "HoldXTokensActivity",
]
