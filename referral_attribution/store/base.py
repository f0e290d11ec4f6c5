from __future__ import annotations

from datetime import datetime
from typing import Protocol

from referral_attribution.referrals.models import (
    Attribution,
    ClaimFinalization,
    ReferralInvite,
    ReferralLink,
)


class ReferralStore(Protocol):
    """Shared state behind the referral engines.

    Every operation is atomic with respect to concurrent callers on the same key.
    ``add_link`` and ``add_attribution`` are insert-if-absent: the first writer wins
    and later writers get ``False``. ``finalize_claim`` records which code and
    device a claim consumed so ``list_invites`` can report it later.
    """

    async def get_link_by_code(self, code: str) -> ReferralLink | None: ...

    async def get_link_by_user(self, user_id: str) -> ReferralLink | None: ...

    async def add_link(self, link: ReferralLink) -> bool: ...

    async def get_attribution_by_device(self, device_id: str) -> Attribution | None: ...

    async def add_attribution(self, attribution: Attribution) -> bool: ...

    async def remove_attribution(self, device_id: str, *, token: str | None = None) -> bool: ...

    async def has_claimed(self, user_id: str) -> bool: ...

    async def mark_claimed(self, user_id: str) -> bool: ...

    async def finalize_claim(
        self,
        *,
        user_id: str,
        device_id: str,
        token: str,
        claimed_at: datetime,
    ) -> ClaimFinalization: ...

    async def list_invites(
        self,
        referrer_user_id: str,
        *,
        now_utc: datetime,
    ) -> list[ReferralInvite]:
        """Live attributions and finalized claims for every link the user owns."""
        ...

    async def ping(self) -> bool: ...
