"""Campaign factory — builds (orchestrator, activity, reward) triads.

Creation is atomic. Every check runs and every component is built before
the campaign is recorded or the CAMPAIGN_CREATED event is appended; any
exception on the way leaves the factory exactly as it was.

Only authorized origins (platform front-ends, operator tooling) may
create campaigns. The registry decides which templates exist and which
activity/reward pairings are allowed.
"""

from __future__ import annotations

import logging
import threading
import uuid
from typing import Optional

from gatedoffer.assets.ledgers import FungibleLedger
from gatedoffer.campaigns.orchestrator import ClaimOrchestrator
from gatedoffer.campaigns.registry import CampaignRegistry
from gatedoffer.clock import Clock, system_clock
from gatedoffer.crypto.hashing import keccak, to_address
from gatedoffer.crypto.merkle import MerkleVerifier
from gatedoffer.crypto.signatures import EligibilityProofChecker
from gatedoffer.errors import AuthorizationError, ConfigError
from gatedoffer.models.activity import ActivityConfig
from gatedoffer.models.campaign import CampaignInstance, EligibilityConfig, FeeConfig
from gatedoffer.models.reward import RewardConfig
from gatedoffer.persistence.event_log import EventKind, EventLog

logger = logging.getLogger(__name__)

DEFAULT_FEE_BPS = 250


def new_instance_id() -> str:
    """A fresh checksum address identifying one component instance."""
    return to_address("0x" + keccak(uuid.uuid4().bytes)[-20:].hex())


class CampaignFactory:
    """Creates campaigns from registered templates.

    Usage:
        factory = CampaignFactory(owner, registry, fee_recipient=treasury)
        factory.update_authorized_origin(owner, frontend, True)
        instance = factory.create_campaign(
            "HOLD_X_TOKENS", None, activity_config,
            "TOKEN_AIRDROP", None, reward_config,
            eligibility_config, origin=frontend, creator=brand,
        )
    """

    def __init__(
        self,
        owner: str,
        registry: CampaignRegistry,
        fee_recipient: Optional[str] = None,
        fee_bps: int = DEFAULT_FEE_BPS,
        clock: Optional[Clock] = None,
        event_log: Optional[EventLog] = None,
        proof_checker: Optional[EligibilityProofChecker] = None,
        merkle_verifier: Optional[MerkleVerifier] = None,
        max_batch_size: Optional[int] = None,
    ) -> None:
        default_fee = FeeConfig(fee_recipient=fee_recipient, fee_bps=fee_bps)
        default_fee.validate()
        try:
            self._owner = to_address(owner)
        except ValueError as exc:
            raise ConfigError(str(exc)) from exc
        self._registry = registry
        self._default_fee = default_fee
        self._clock = clock or system_clock
        self._event_log = event_log
        self._proof_checker = proof_checker or EligibilityProofChecker()
        self._merkle_verifier = merkle_verifier or MerkleVerifier()
        self._max_batch_size = max_batch_size
        self._origins: set[str] = set()
        self._campaigns: dict[str, CampaignInstance] = {}
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Readers
    # ------------------------------------------------------------------

    @property
    def owner(self) -> str:
        return self._owner

    @property
    def registry(self) -> CampaignRegistry:
        return self._registry

    @property
    def default_fee(self) -> FeeConfig:
        return self._default_fee

    def is_authorized_origin(self, origin: str) -> bool:
        try:
            return to_address(origin) in self._origins
        except ValueError:
            return False

    def get_campaign(self, campaign_id: str) -> Optional[CampaignInstance]:
        try:
            return self._campaigns.get(to_address(campaign_id))
        except ValueError:
            return None

    def campaigns(self) -> list[CampaignInstance]:
        return list(self._campaigns.values())

    # ------------------------------------------------------------------
    # Owner administration
    # ------------------------------------------------------------------

    def update_authorized_origin(self, caller: str, origin: str, allowed: bool) -> None:
        self._require_owner(caller)
        try:
            address = to_address(origin)
        except ValueError as exc:
            raise ConfigError(str(exc)) from exc
        with self._lock:
            if allowed:
                self._origins.add(address)
            else:
                self._origins.discard(address)
        logger.info("Origin %s authorized=%s", address, allowed)

    def update_default_fee(self, caller: str, fee_recipient: Optional[str], fee_bps: int) -> None:
        """Applies to campaigns created afterwards only."""
        self._require_owner(caller)
        fee = FeeConfig(fee_recipient=fee_recipient, fee_bps=fee_bps)
        fee.validate()
        with self._lock:
            self._default_fee = fee

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_campaign(
        self,
        activity_type: str,
        activity_impl: Optional[type],
        activity_config: ActivityConfig,
        reward_type: str,
        reward_impl: Optional[type],
        reward_config: RewardConfig,
        eligibility_config: EligibilityConfig,
        origin: str,
        creator: str,
        affiliate: Optional[str] = None,
        payment_ledger: Optional[FungibleLedger] = None,
    ) -> CampaignInstance:
        if not self.is_authorized_origin(origin):
            raise AuthorizationError(f"{origin} is not an authorized origin")
        if not self._registry.is_valid_combination(activity_type, reward_type):
            raise ConfigError(f"{activity_type} + {reward_type} is not a valid combination")
        activity_cls = self._resolve(
            "activity", activity_type, activity_impl,
            self._registry.get_activity_implementation(activity_type),
        )
        reward_cls = self._resolve(
            "reward", reward_type, reward_impl,
            self._registry.get_reward_implementation(reward_type),
        )
        eligibility_config.validate()
        if self._max_batch_size and reward_config.max_batch_size > self._max_batch_size:
            raise ConfigError(
                f"max_batch_size {reward_config.max_batch_size} exceeds the platform "
                f"limit of {self._max_batch_size}"
            )
        try:
            owner = to_address(creator)
        except ValueError as exc:
            raise ConfigError(f"Invalid creator: {exc}") from exc

        with self._lock:
            campaign_id = new_instance_id()
            activity = activity_cls(
                new_instance_id(),
                activity_config,
                owner,
                signing_key=eligibility_config.signing_key,
                proof_validity_duration=eligibility_config.proof_validity_duration,
                clock=self._clock,
                proof_checker=self._proof_checker,
                event_log=self._event_log,
            )
            reward = reward_cls(
                new_instance_id(),
                reward_config,
                owner,
                controller=campaign_id,
                clock=self._clock,
                event_log=self._event_log,
            )
            orchestrator = ClaimOrchestrator(
                campaign_id,
                activity,
                reward,
                owner,
                eligibility_config,
                self._default_fee,
                affiliate=affiliate,
                payment_ledger=payment_ledger,
                clock=self._clock,
                merkle_verifier=self._merkle_verifier,
                event_log=self._event_log,
            )
            now = self._clock()
            instance = CampaignInstance(
                campaign_id=campaign_id,
                orchestrator=orchestrator,
                activity=activity,
                reward=reward,
                owner=owner,
                affiliate=orchestrator.affiliate,
                activity_type=activity_type,
                reward_type=reward_type,
                created_at=now,
            )
            self._campaigns[campaign_id] = instance

        logger.info("Created campaign %s (%s + %s) for %s",
                    campaign_id, activity_type, reward_type, owner)
        if self._event_log is not None:
            self._event_log.record(
                EventKind.CAMPAIGN_CREATED,
                subject_id=campaign_id,
                actor_id=to_address(origin),
                payload={
                    "orchestrator": campaign_id,
                    "activity": activity.activity_id,
                    "reward": reward.reward_id,
                    "owner": owner,
                    "affiliate": instance.affiliate,
                    "activity_type": activity_type,
                    "reward_type": reward_type,
                    "eligibility": eligibility_config.to_dict(),
                },
                timestamp=now,
            )
        return instance

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _resolve(
        family: str,
        type_id: str,
        supplied: Optional[type],
        registered: Optional[type],
    ) -> type:
        if registered is None:
            raise ConfigError(f"No {family} template registered for {type_id}")
        if supplied is not None and supplied is not registered:
            raise ConfigError(
                f"{family} implementation {supplied!r} is not the registered "
                f"template for {type_id}"
            )
        return registered

    def _require_owner(self, caller: str) -> None:
        try:
            is_owner = to_address(caller) == self._owner
        except ValueError:
            is_owner = False
        if not is_owner:
            raise AuthorizationError(f"{caller} is not the factory owner")
