from __future__ import annotations

import asyncio
from datetime import datetime

from referral_attribution.referrals.models import (
    Attribution,
    ClaimFinalization,
    InviteStatus,
    ReferralInvite,
    ReferralLink,
)


class InMemoryReferralStore:
    """Process-local store. Create one per application (or per test)."""

    def __init__(self) -> None:
        self._links: dict[str, ReferralLink] = {}
        self._attributions: dict[str, Attribution] = {}
        self._claimed_users: dict[str, datetime | None] = {}
        self._completed_invites: list[ReferralInvite] = []
        self._lock = asyncio.Lock()

    async def get_link_by_code(self, code: str) -> ReferralLink | None:
        return self._links.get(code)

    async def get_link_by_user(self, user_id: str) -> ReferralLink | None:
        owned = [link for link in self._links.values() if link.owner_user_id == user_id]
        if not owned:
            return None
        return max(owned, key=lambda link: link.created_at)

    async def add_link(self, link: ReferralLink) -> bool:
        async with self._lock:
            if link.code in self._links:
                return False
            self._links[link.code] = link
            return True

    async def get_attribution_by_device(self, device_id: str) -> Attribution | None:
        return self._attributions.get(device_id)

    async def add_attribution(self, attribution: Attribution) -> bool:
        async with self._lock:
            if attribution.device_id in self._attributions:
                return False
            self._attributions[attribution.device_id] = attribution
            return True

    async def remove_attribution(self, device_id: str, *, token: str | None = None) -> bool:
        async with self._lock:
            current = self._attributions.get(device_id)
            if current is None:
                return False
            if token is not None and current.token != token:
                return False
            del self._attributions[device_id]
            return True

    async def has_claimed(self, user_id: str) -> bool:
        return user_id in self._claimed_users

    async def mark_claimed(self, user_id: str) -> bool:
        async with self._lock:
            if user_id in self._claimed_users:
                return False
            self._claimed_users[user_id] = None
            return True

    async def finalize_claim(
        self,
        *,
        user_id: str,
        device_id: str,
        token: str,
        claimed_at: datetime,
    ) -> ClaimFinalization:
        async with self._lock:
            if user_id in self._claimed_users:
                return ClaimFinalization.ALREADY_CLAIMED
            current = self._attributions.get(device_id)
            if current is None or current.token != token:
                return ClaimFinalization.ATTRIBUTION_GONE
            self._claimed_users[user_id] = claimed_at
            del self._attributions[device_id]
            self._completed_invites.append(
                ReferralInvite(
                    referral_code=current.referral_code,
                    status=InviteStatus.COMPLETED,
                    device_id=device_id,
                    occurred_at=claimed_at,
                    invitee_user_id=user_id,
                    platform=current.onboarding.platform if current.onboarding else None,
                )
            )
            return ClaimFinalization.CLAIMED

    async def list_invites(
        self,
        referrer_user_id: str,
        *,
        now_utc: datetime,
    ) -> list[ReferralInvite]:
        codes = {
            link.code for link in self._links.values() if link.owner_user_id == referrer_user_id
        }
        pending = [
            ReferralInvite(
                referral_code=attribution.referral_code,
                status=InviteStatus.PENDING,
                device_id=attribution.device_id,
                occurred_at=attribution.attributed_at,
                platform=attribution.onboarding.platform if attribution.onboarding else None,
            )
            for attribution in self._attributions.values()
            if attribution.referral_code in codes and not attribution.is_expired(now_utc)
        ]
        completed = [invite for invite in self._completed_invites if invite.referral_code in codes]
        return pending + completed

    async def ping(self) -> bool:
        return True
