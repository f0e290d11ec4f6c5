from __future__ import annotations

import asyncio
from datetime import datetime, timedelta

import pytest

from referral_attribution.core.attribution_tokens import AttributionTokenCodec, TokenClaims
from referral_attribution.referrals.errors import ReferralErrorKind
from referral_attribution.referrals.models import Platform
from referral_attribution.referrals.service import ReferralService
from referral_attribution.referrals.short_links import MockShortLinkProvider
from referral_attribution.store.memory import InMemoryReferralStore
from tests.referrals.referral_fixtures import NOW_UTC, _build_link


class _CountingStore(InMemoryReferralStore):
    def __init__(self) -> None:
        super().__init__()
        self.attribution_writes = 0

    async def add_attribution(self, attribution) -> bool:
        self.attribution_writes += 1
        return await super().add_attribution(attribution)


@pytest.mark.asyncio
async def test_attribute_creates_attribution_with_one_hour_window(
    service: ReferralService,
    store: InMemoryReferralStore,
    codec: AttributionTokenCodec,
    now_utc: datetime,
) -> None:
    await store.add_link(_build_link(code="ABCD2345"))

    result = await service.attribute("device-1", "ABCD2345", "ios", now_utc=now_utc)

    assert result.is_success
    attribution = result.value
    assert attribution is not None
    assert attribution.device_id == "device-1"
    assert attribution.referral_code == "ABCD2345"
    assert attribution.attributed_at == now_utc
    assert attribution.expires_at == now_utc + timedelta(hours=1)
    assert codec.decode(attribution.token) == TokenClaims("device-1", "ABCD2345", now_utc)
    assert await store.get_attribution_by_device("device-1") == attribution


@pytest.mark.asyncio
async def test_attribute_normalizes_code_and_accepts_platform_enum(
    service: ReferralService,
    store: InMemoryReferralStore,
) -> None:
    await store.add_link(_build_link(code="ABCD2345"))

    result = await service.attribute("device-1", " abcd2345 ", Platform.ANDROID, now_utc=NOW_UTC)

    assert result.is_success
    assert result.value is not None
    assert result.value.referral_code == "ABCD2345"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("device_id", "referral_code", "platform"),
    [
        ("", "ABCD2345", "ios"),
        ("  ", "ABCD2345", "ios"),
        ("device-1", "", "ios"),
        ("device-1", "ABCD2345", "windows"),
    ],
)
async def test_attribute_rejects_invalid_input(
    service: ReferralService,
    store: InMemoryReferralStore,
    device_id: str,
    referral_code: str,
    platform: str,
) -> None:
    await store.add_link(_build_link(code="ABCD2345"))

    result = await service.attribute(device_id, referral_code, platform, now_utc=NOW_UTC)

    assert result.error is ReferralErrorKind.INVALID_INPUT
    assert await store.get_attribution_by_device(device_id) is None


@pytest.mark.asyncio
async def test_attribute_unknown_code_is_not_found(service: ReferralService) -> None:
    result = await service.attribute("D2", "ZZZZZZZ", "ios", now_utc=NOW_UTC)

    assert result.error is ReferralErrorKind.NOT_FOUND
    assert result.message == "Referral not found."


@pytest.mark.asyncio
async def test_attribute_expired_link_is_rejected_without_writes() -> None:
    store = _CountingStore()
    service = ReferralService(store, short_links=MockShortLinkProvider("https://links.test"))
    await store.add_link(
        _build_link(
            code="OLDLINK2",
            created_at=NOW_UTC - timedelta(days=200),
            expires_at=NOW_UTC - timedelta(seconds=1),
        )
    )

    result = await service.attribute("device-1", "OLDLINK2", "ios", now_utc=NOW_UTC)

    assert result.error is ReferralErrorKind.EXPIRED
    assert store.attribution_writes == 0


@pytest.mark.asyncio
async def test_second_attribution_for_live_device_is_rejected(
    service: ReferralService,
    store: InMemoryReferralStore,
) -> None:
    await store.add_link(_build_link(code="FIRST234"))
    await store.add_link(_build_link(code="OTHER234", owner_user_id="owner-2"))

    first = await service.attribute("device-1", "FIRST234", "ios", now_utc=NOW_UTC)
    second = await service.attribute(
        "device-1", "OTHER234", "ios", now_utc=NOW_UTC + timedelta(minutes=59)
    )

    assert first.is_success
    assert second.error is ReferralErrorKind.ALREADY_ATTRIBUTED
    stored = await store.get_attribution_by_device("device-1")
    assert stored is not None
    assert stored.referral_code == "FIRST234"


@pytest.mark.asyncio
async def test_expired_attribution_is_replaced_with_fresh_token(
    service: ReferralService,
    store: InMemoryReferralStore,
) -> None:
    await store.add_link(_build_link(code="ABCD2345"))

    first = await service.attribute("device-1", "ABCD2345", "ios", now_utc=NOW_UTC)
    later = NOW_UTC + timedelta(hours=1, seconds=1)
    second = await service.attribute("device-1", "ABCD2345", "android", now_utc=later)

    assert first.value is not None and second.value is not None
    assert second.is_success
    assert second.value.token != first.value.token
    assert second.value.attributed_at == later
    assert await store.get_attribution_by_device("device-1") == second.value


@pytest.mark.asyncio
async def test_parallel_attribution_for_one_device_succeeds_once(
    service: ReferralService,
    store: InMemoryReferralStore,
) -> None:
    await store.add_link(_build_link(code="ABCD2345"))
    barrier = asyncio.Event()

    async def _attempt(offset_us: int) -> ReferralErrorKind | None:
        await barrier.wait()
        result = await service.attribute(
            "device-1",
            "ABCD2345",
            "ios",
            now_utc=NOW_UTC + timedelta(microseconds=offset_us),
        )
        return result.error

    tasks = [asyncio.create_task(_attempt(index)) for index in range(8)]
    barrier.set()
    outcomes = await asyncio.gather(*tasks)

    assert outcomes.count(None) == 1
    assert outcomes.count(ReferralErrorKind.ALREADY_ATTRIBUTED) == 7
