"""Shared fixtures: a manual clock, an in-memory event log and a factory
with every built-in template registered and every pairing allowed."""

import pytest

from gatedoffer.activities import ACTIVITY_TEMPLATES
from gatedoffer.bootstrap import build_registry
from gatedoffer.campaigns.factory import CampaignFactory
from gatedoffer.clock import ManualClock
from gatedoffer.persistence.event_log import EventLog
from gatedoffer.rewards import REWARD_TEMPLATES

T0 = 1_700_000_000

ADMIN = "0x1111111111111111111111111111111111111111"
TREASURY = "0x2222222222222222222222222222222222222222"
ORIGIN = "0x3333333333333333333333333333333333333333"


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(T0)


@pytest.fixture
def event_log() -> EventLog:
    return EventLog()


@pytest.fixture
def factory(clock: ManualClock, event_log: EventLog) -> CampaignFactory:
    combinations = [(a, r) for a in ACTIVITY_TEMPLATES for r in REWARD_TEMPLATES]
    registry = build_registry(ADMIN, combinations, event_log=event_log)
    f = CampaignFactory(
        ADMIN, registry, fee_recipient=TREASURY, fee_bps=250,
        clock=clock, event_log=event_log,
    )
    f.update_authorized_origin(ADMIN, ORIGIN, True)
    return f
