"""Default wiring — a registry loaded with every built-in template and a
factory configured from platform settings.

Usage:
    settings = PlatformSettings.from_config_dir(Path("config"))
    factory = build_factory(settings, event_log=EventLog())
"""

from __future__ import annotations

from typing import Iterable, Optional

from gatedoffer.activities import ACTIVITY_TEMPLATES
from gatedoffer.campaigns.factory import CampaignFactory
from gatedoffer.campaigns.registry import CampaignRegistry
from gatedoffer.clock import Clock
from gatedoffer.config import PlatformSettings
from gatedoffer.persistence.event_log import EventLog
from gatedoffer.rewards import REWARD_TEMPLATES


def build_registry(
    owner: str,
    combinations: Iterable[tuple[str, str]],
    event_log: Optional[EventLog] = None,
) -> CampaignRegistry:
    """Register all built-in templates and enable the given pairings."""
    registry = CampaignRegistry(owner, event_log=event_log)
    for type_id, impl in ACTIVITY_TEMPLATES.items():
        registry.register_activity(owner, type_id, impl)
    for type_id, impl in REWARD_TEMPLATES.items():
        registry.register_reward(owner, type_id, impl)
    for activity_type, reward_type in combinations:
        registry.set_valid_combination(owner, activity_type, reward_type, True)
    return registry


def build_factory(
    settings: PlatformSettings,
    clock: Optional[Clock] = None,
    event_log: Optional[EventLog] = None,
) -> CampaignFactory:
    registry = build_registry(settings.registry_owner, settings.combinations, event_log)
    factory = CampaignFactory(
        settings.factory_owner,
        registry,
        fee_recipient=settings.fee_recipient,
        fee_bps=settings.fee_bps,
        clock=clock,
        event_log=event_log,
        max_batch_size=settings.max_batch_size,
    )
    for origin in settings.authorized_origins:
        factory.update_authorized_origin(settings.factory_owner, origin, True)
    return factory
