from __future__ import annotations

from datetime import datetime

import pytest

from referral_attribution.core.attribution_tokens import AttributionTokenCodec
from referral_attribution.referrals.service import ReferralService
from referral_attribution.referrals.short_links import MockShortLinkProvider
from referral_attribution.store.memory import InMemoryReferralStore
from tests.referrals.referral_fixtures import NOW_UTC


@pytest.fixture
def now_utc() -> datetime:
    return NOW_UTC


@pytest.fixture
def store() -> InMemoryReferralStore:
    return InMemoryReferralStore()


@pytest.fixture
def codec() -> AttributionTokenCodec:
    return AttributionTokenCodec()


@pytest.fixture
def service(store: InMemoryReferralStore, codec: AttributionTokenCodec) -> ReferralService:
    return ReferralService(
        store,
        short_links=MockShortLinkProvider("https://links.test"),
        codec=codec,
    )
