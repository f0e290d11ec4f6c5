from __future__ import annotations

from datetime import datetime

from referral_attribution.core.attribution_tokens import AttributionTokenCodec
from referral_attribution.store.base import ReferralStore

from .attribution import AttributionEngine
from .claims import ClaimEngine
from .invites import InviteTracker
from .links import LinkIssuer
from .models import (
    Attribution,
    ClaimReceipt,
    InviteStatus,
    Platform,
    ReferralInvite,
    ReferralLink,
)
from .results import ReferralResult
from .short_links import ShortLinkProvider


class ReferralService:
    """Facade over link issuing, attribution and claiming for one injected store."""

    def __init__(
        self,
        store: ReferralStore,
        *,
        short_links: ShortLinkProvider,
        codec: AttributionTokenCodec | None = None,
    ) -> None:
        codec = codec or AttributionTokenCodec()
        self.store = store
        self._links = LinkIssuer(store, short_links)
        self._attribution = AttributionEngine(store, codec)
        self._claims = ClaimEngine(store, codec)
        self._invites = InviteTracker(store)

    async def create_link(
        self,
        owner_user_id: str,
        campaign: str | None = None,
        *,
        now_utc: datetime | None = None,
    ) -> ReferralResult[ReferralLink]:
        return await self._links.create_link(owner_user_id, campaign, now_utc=now_utc)

    async def register_link(self, link: ReferralLink) -> ReferralResult[ReferralLink]:
        return await self._links.register_link(link)

    async def get_link_for_user(self, user_id: str) -> ReferralResult[ReferralLink]:
        return await self._links.get_link_for_user(user_id)

    async def attribute(
        self,
        device_id: str,
        referral_code: str,
        platform: str | Platform,
        *,
        app_version: str | None = None,
        locale: str | None = None,
        timezone: str | None = None,
        now_utc: datetime | None = None,
    ) -> ReferralResult[Attribution]:
        return await self._attribution.attribute(
            device_id,
            referral_code,
            platform,
            app_version=app_version,
            locale=locale,
            timezone=timezone,
            now_utc=now_utc,
        )

    async def claim(
        self,
        user_id: str,
        attribution_token: str,
        device_id: str | None = None,
        *,
        now_utc: datetime | None = None,
    ) -> ReferralResult[ClaimReceipt]:
        return await self._claims.claim(
            user_id,
            attribution_token,
            device_id,
            now_utc=now_utc,
        )

    async def list_invites(
        self,
        referrer_user_id: str,
        status: str | InviteStatus | None = None,
        *,
        now_utc: datetime | None = None,
    ) -> ReferralResult[list[ReferralInvite]]:
        return await self._invites.list_invites(referrer_user_id, status, now_utc=now_utc)
