"""Tests for the claim orchestrator — proves the claim pipeline order,
proof and state eligibility, discounts, fees, pausing and claim-once."""

import threading

import pytest
from eth_account import Account

from gatedoffer.assets import AssetTransferError, InMemoryFungibleLedger
from gatedoffer.crypto.hashing import to_address
from gatedoffer.crypto.merkle import DiscountTree
from gatedoffer.crypto.signatures import EligibilityProof, sign_eligibility_proof
from gatedoffer.errors import (
    AuthorizationError,
    ConfigError,
    DiscountProofError,
    EligibilityError,
    EligibilityFailure,
    FundingError,
    GatedOfferError,
    StateError,
    StateReason,
)
from gatedoffer.models.activity import ActivityConfig, Criterion
from gatedoffer.models.campaign import EligibilityConfig, FeeConfig
from gatedoffer.models.reward import RewardConfig
from gatedoffer.persistence.event_log import EventKind

from conftest import ORIGIN, T0, TREASURY

BRAND = "0x8888888888888888888888888888888888888888"
BROKER = "0x7777777777777777777777777777777777777777"
STRANGER = "0x9999999999999999999999999999999999999999"
AFFILIATE = to_address("0x" + "ab" * 20)
ALICE = to_address("0x" + "a1" * 20)
BOB = to_address("0x" + "b2" * 20)
SIGNER = Account.from_key("0x" + "a1" * 32)
TAG = "HOLD_X_TOKENS"


class _BlocklistLedger(InMemoryFungibleLedger):
    """Payment ledger that refuses any transfer to a blocked address."""

    def __init__(self, symbol: str, blocked: str) -> None:
        super().__init__(symbol)
        self.blocked = blocked

    def _move(self, owner: str, to: str, amount: int) -> None:
        if to == self.blocked:
            raise AssetTransferError(f"{self.symbol}: {to} is blocked")
        super()._move(owner, to, amount)


class _Campaign:
    """A HOLD_X_TOKENS + TOKEN_AIRDROP campaign with funded broker."""

    def __init__(self, factory, eligibility=None, affiliate=None, payment_ledger=None) -> None:
        self.hold = InMemoryFungibleLedger("HOLD")
        self.token = InMemoryFungibleLedger("RWD")
        self.token.mint(BROKER, 10_000)
        eligibility = eligibility or EligibilityConfig(
            enabled=True, signing_key=SIGNER.address, proof_validity_duration=3600,
        )
        self.instance = factory.create_campaign(
            TAG, None, ActivityConfig(criteria=(Criterion(self.hold, 100),), window_start=T0),
            "TOKEN_AIRDROP", None,
            RewardConfig(name="Drop", asset=self.token, per_claim_amount=20, broker=BROKER),
            eligibility, origin=ORIGIN, creator=BRAND,
            affiliate=affiliate, payment_ledger=payment_ledger,
        )
        self.orchestrator = self.instance.orchestrator
        self.token.approve(BROKER, self.instance.reward.reward_id, 10_000)


class TestStateEligibility:
    def test_holder_claims(self, factory, event_log) -> None:
        c = _Campaign(factory)
        c.hold.mint(ALICE, 100)
        receipt = c.orchestrator.claim(ALICE)
        assert receipt.user == ALICE
        assert receipt.amount == 20
        assert receipt.claimed_at == T0
        assert c.token.balance_of(ALICE) == 20
        events = event_log.events(EventKind.CLAIMED, subject_id=c.instance.campaign_id)
        assert len(events) == 1
        assert events[0].payload["discount_rate"] == 0

    def test_non_holder_rejected(self, factory) -> None:
        c = _Campaign(factory)
        with pytest.raises(EligibilityError) as exc:
            c.orchestrator.claim(ALICE)
        assert exc.value.reason == EligibilityFailure.CRITERIA_NOT_MET
        assert not c.instance.reward.has_claimed(ALICE)

    def test_claim_once(self, factory) -> None:
        c = _Campaign(factory)
        c.hold.mint(ALICE, 100)
        c.orchestrator.claim(ALICE)
        with pytest.raises(StateError) as exc:
            c.orchestrator.claim(ALICE.lower())
        assert exc.value.reason == StateReason.ALREADY_CLAIMED
        assert c.token.balance_of(ALICE) == 20

    def test_disabled_eligibility_admits_anyone(self, factory) -> None:
        c = _Campaign(factory, eligibility=EligibilityConfig(
            enabled=False, signing_key=None, proof_validity_duration=0,
        ))
        assert c.orchestrator.claim(BOB).amount == 20


class TestProofEligibility:
    def test_valid_proof_admits_non_holder(self, factory, clock) -> None:
        c = _Campaign(factory)
        proof = sign_eligibility_proof(SIGNER.key, ALICE, T0, TAG)
        clock.advance(100)
        assert c.orchestrator.claim(ALICE, proof=proof).amount == 20

    def test_stale_proof(self, factory, clock) -> None:
        c = _Campaign(factory)
        proof = sign_eligibility_proof(SIGNER.key, ALICE, T0, TAG)
        clock.advance(3700)
        with pytest.raises(EligibilityError) as exc:
            c.orchestrator.claim(ALICE, proof=proof)
        assert exc.value.reason == EligibilityFailure.PROOF_EXPIRED

    def test_proof_for_other_user(self, factory) -> None:
        c = _Campaign(factory)
        proof = sign_eligibility_proof(SIGNER.key, ALICE, T0, TAG)
        with pytest.raises(EligibilityError) as exc:
            c.orchestrator.claim(BOB, proof=proof)
        assert exc.value.reason == EligibilityFailure.WRONG_SIGNER

    def test_zeroed_signature_is_invalid(self, factory) -> None:
        c = _Campaign(factory)
        zeroed = EligibilityProof(signature=b"\x00" * 65, timestamp=T0).encode()
        with pytest.raises(EligibilityError) as exc:
            c.orchestrator.claim(ALICE, proof=zeroed)
        assert exc.value.reason == EligibilityFailure.INVALID_SIGNATURE
        assert not c.instance.reward.has_claimed(ALICE)

    def test_bad_proof_does_not_fall_back_to_state(self, factory) -> None:
        c = _Campaign(factory)
        c.hold.mint(ALICE, 100)
        forged = sign_eligibility_proof(Account.from_key("0x" + "b2" * 32).key, ALICE, T0, TAG)
        with pytest.raises(EligibilityError):
            c.orchestrator.claim(ALICE, proof=forged)

    def test_proof_required_for_all(self, factory) -> None:
        c = _Campaign(factory, eligibility=EligibilityConfig(
            enabled=True, signing_key=SIGNER.address, proof_validity_duration=3600,
            require_proof_for_all_claims=True,
        ))
        c.hold.mint(ALICE, 100)
        with pytest.raises(EligibilityError) as exc:
            c.orchestrator.claim(ALICE)
        assert exc.value.reason == EligibilityFailure.MISSING_PROOF
        proof = sign_eligibility_proof(SIGNER.key, ALICE, T0, TAG)
        assert c.orchestrator.claim(ALICE, proof=proof).amount == 20

    def test_rotated_key_pushed_to_activity(self, factory, event_log) -> None:
        c = _Campaign(factory)
        new_signer = Account.from_key("0x" + "c3" * 32)
        c.orchestrator.set_eligibility_config(BRAND, EligibilityConfig(
            enabled=True, signing_key=new_signer.address, proof_validity_duration=60,
        ))
        assert c.instance.activity.signing_key == new_signer.address
        assert c.instance.activity.proof_validity_duration == 60
        assert c.instance.eligibility_config.proof_validity_duration == 60
        old = sign_eligibility_proof(SIGNER.key, ALICE, T0, TAG)
        with pytest.raises(EligibilityError):
            c.orchestrator.claim(ALICE, proof=old)
        fresh = sign_eligibility_proof(new_signer.key, ALICE, T0, TAG)
        assert c.orchestrator.claim(ALICE, proof=fresh).amount == 20
        assert len(event_log.events(EventKind.ELIGIBILITY_CONFIG_SET)) == 1

    def test_key_rotated_on_activity_shows_in_config(self, factory) -> None:
        c = _Campaign(factory)
        new_signer = Account.from_key("0x" + "c3" * 32)
        c.instance.activity.set_signing_key(BRAND, new_signer.address)
        c.instance.activity.set_proof_validity_duration(BRAND, 120)
        config = c.orchestrator.eligibility_config
        assert config.signing_key == new_signer.address
        assert config.proof_validity_duration == 120
        assert config.enabled
        fresh = sign_eligibility_proof(new_signer.key, ALICE, T0, TAG)
        assert c.orchestrator.claim(ALICE, proof=fresh).amount == 20


class TestDiscounts:
    def _with_root(self, factory):
        c = _Campaign(factory)
        c.hold.mint(ALICE, 100)
        c.hold.mint(BOB, 100)
        tree = DiscountTree([(ALICE, 1000), (BOB, 2000)])
        c.orchestrator.set_discount_merkle_root(BRAND, tree.root)
        return c, tree

    def test_valid_discount(self, factory) -> None:
        c, tree = self._with_root(factory)
        receipt = c.orchestrator.claim(
            ALICE, discount_rate=1000, merkle_proof=tree.proof_for(ALICE, 1000),
        )
        assert receipt.discount_rate == 1000

    def test_replayed_proof_other_rate(self, factory) -> None:
        c, tree = self._with_root(factory)
        with pytest.raises(DiscountProofError):
            c.orchestrator.claim(ALICE, discount_rate=4000, merkle_proof=tree.proof_for(ALICE, 1000))
        assert not c.instance.reward.has_claimed(ALICE)

    def test_rate_out_of_range(self, factory) -> None:
        c, tree = self._with_root(factory)
        with pytest.raises(DiscountProofError):
            c.orchestrator.claim(ALICE, discount_rate=10_001, merkle_proof=[])

    def test_no_root_configured(self, factory) -> None:
        c = _Campaign(factory)
        c.hold.mint(ALICE, 100)
        with pytest.raises(DiscountProofError):
            c.orchestrator.claim(ALICE, discount_rate=1000, merkle_proof=[])

    def test_zero_rate_needs_no_proof(self, factory) -> None:
        c, _ = self._with_root(factory)
        assert c.orchestrator.claim(BOB).discount_rate == 0

    def test_root_replacement(self, factory) -> None:
        c, tree = self._with_root(factory)
        new_tree = DiscountTree([(ALICE, 3000)])
        c.orchestrator.set_discount_merkle_root(BRAND, new_tree.root)
        with pytest.raises(DiscountProofError):
            c.orchestrator.claim(ALICE, discount_rate=1000, merkle_proof=tree.proof_for(ALICE, 1000))
        c.orchestrator.claim(ALICE, discount_rate=3000, merkle_proof=new_tree.proof_for(ALICE, 3000))

    def test_root_must_be_32_bytes(self, factory) -> None:
        c = _Campaign(factory)
        with pytest.raises(ConfigError):
            c.orchestrator.set_discount_merkle_root(BRAND, b"\x01" * 31)


class TestFees:
    def _paid(self, factory, affiliate=None, affiliate_bps=0, payments=None):
        payments = payments or InMemoryFungibleLedger("USD")
        c = _Campaign(factory, affiliate=affiliate, payment_ledger=payments)
        c.orchestrator.set_fee_config(BRAND, FeeConfig(
            fee_recipient=TREASURY, fee_bps=250, claim_price=1000, affiliate_bps=affiliate_bps,
        ))
        c.hold.mint(ALICE, 100)
        payments.mint(ALICE, 5_000)
        payments.approve(ALICE, c.instance.campaign_id, 5_000)
        return c, payments

    def test_fee_split(self, factory) -> None:
        c, payments = self._paid(factory)
        tree = DiscountTree([(ALICE, 1000)])
        c.orchestrator.set_discount_merkle_root(BRAND, tree.root)
        receipt = c.orchestrator.claim(
            ALICE, discount_rate=1000, merkle_proof=tree.proof_for(ALICE, 1000),
        )
        assert receipt.fee.price_paid == 900
        assert receipt.fee.platform_fee == 22
        assert receipt.fee.owner_proceeds == 878
        assert payments.balance_of(TREASURY) == 22
        assert payments.balance_of(BRAND) == 878
        assert payments.balance_of(ALICE) == 5_000 - 900

    def test_affiliate_share_comes_from_platform_fee(self, factory) -> None:
        c, payments = self._paid(factory, affiliate=AFFILIATE, affiliate_bps=2000)
        receipt = c.orchestrator.claim(ALICE)
        assert receipt.fee.platform_fee == 25
        assert receipt.fee.affiliate_fee == 5
        assert payments.balance_of(AFFILIATE) == 5
        assert payments.balance_of(TREASURY) == 20
        assert payments.balance_of(BRAND) == 975

    def test_unpaid_user_rejected_before_reward(self, factory) -> None:
        c, payments = self._paid(factory)
        payments.approve(ALICE, c.instance.campaign_id, 10)
        with pytest.raises(FundingError):
            c.orchestrator.claim(ALICE)
        assert not c.instance.reward.has_claimed(ALICE)
        assert c.token.balance_of(ALICE) == 0

    def test_reward_failure_collects_nothing(self, factory) -> None:
        c, payments = self._paid(factory)
        c.token.approve(BROKER, c.instance.reward.reward_id, 0)
        with pytest.raises(FundingError):
            c.orchestrator.claim(ALICE)
        assert payments.balance_of(ALICE) == 5_000
        assert payments.balance_of(c.instance.campaign_id) == 0
        assert payments.balance_of(BRAND) == 0

    def test_refused_fee_leg_is_owed_not_lost(self, factory) -> None:
        c, payments = self._paid(factory, payments=_BlocklistLedger("USD", TREASURY))
        receipt = c.orchestrator.claim(ALICE)
        assert c.instance.reward.has_claimed(ALICE)
        assert payments.balance_of(ALICE) == 5_000 - 1000
        assert payments.balance_of(BRAND) == receipt.fee.owner_proceeds
        assert payments.balance_of(TREASURY) == 0
        assert c.orchestrator.owed_to(TREASURY) == 25
        assert payments.balance_of(c.instance.campaign_id) == 25

    def test_release_owed(self, factory) -> None:
        c, payments = self._paid(factory, payments=_BlocklistLedger("USD", TREASURY))
        c.orchestrator.claim(ALICE)
        with pytest.raises(FundingError):
            c.orchestrator.release_owed(BRAND, TREASURY)
        assert c.orchestrator.owed_to(TREASURY) == 25
        with pytest.raises(AuthorizationError):
            c.orchestrator.release_owed(STRANGER, TREASURY)
        payments.blocked = None
        assert c.orchestrator.release_owed(BRAND, TREASURY) == 25
        assert payments.balance_of(TREASURY) == 25
        assert c.orchestrator.owed_to(TREASURY) == 0
        assert c.orchestrator.release_owed(BRAND, TREASURY) == 0

    def test_paid_claim_needs_ledger(self, factory) -> None:
        c = _Campaign(factory)
        with pytest.raises(ConfigError):
            c.orchestrator.set_fee_config(BRAND, FeeConfig(
                fee_recipient=TREASURY, fee_bps=250, claim_price=1000,
            ))

    def test_quote(self, factory) -> None:
        c, _ = self._paid(factory)
        quote = c.orchestrator.quote_fee(5000)
        assert quote.price_paid == 500
        assert quote.platform_fee + quote.owner_proceeds == quote.price_paid


class TestAdministration:
    def test_pause_blocks_claims(self, factory, event_log) -> None:
        c = _Campaign(factory)
        c.hold.mint(ALICE, 100)
        c.orchestrator.pause(BRAND)
        assert c.orchestrator.is_paused()
        assert not c.orchestrator.can_claim(ALICE)
        with pytest.raises(StateError) as exc:
            c.orchestrator.claim(ALICE)
        assert exc.value.reason == StateReason.PAUSED
        c.orchestrator.unpause(BRAND)
        assert c.orchestrator.claim(ALICE).amount == 20
        kinds = [e.event_kind for e in event_log.events(subject_id=c.instance.campaign_id)]
        assert EventKind.CAMPAIGN_PAUSED in kinds
        assert EventKind.CAMPAIGN_UNPAUSED in kinds

    def test_owner_only(self, factory) -> None:
        c = _Campaign(factory)
        with pytest.raises(AuthorizationError):
            c.orchestrator.pause(STRANGER)
        with pytest.raises(AuthorizationError):
            c.orchestrator.set_discount_merkle_root(STRANGER, b"\x00" * 32)
        with pytest.raises(AuthorizationError):
            c.orchestrator.set_fee_config(STRANGER, FeeConfig(fee_recipient=None, fee_bps=0))

    def test_can_claim_is_reward_readiness(self, factory) -> None:
        c = _Campaign(factory)
        assert c.orchestrator.can_claim(ALICE)
        c.hold.mint(ALICE, 100)
        c.orchestrator.claim(ALICE)
        assert not c.orchestrator.can_claim(ALICE)


class TestConcurrency:
    def test_concurrent_claims_for_one_user(self, factory) -> None:
        c = _Campaign(factory)
        c.hold.mint(ALICE, 100)
        successes: list[int] = []
        failures: list[Exception] = []

        def attempt() -> None:
            try:
                c.orchestrator.claim(ALICE)
                successes.append(1)
            except GatedOfferError as exc:
                failures.append(exc)

        threads = [threading.Thread(target=attempt) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(successes) == 1
        assert len(failures) == 7
        assert c.token.balance_of(ALICE) == 20
