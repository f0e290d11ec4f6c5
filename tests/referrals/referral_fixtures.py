from __future__ import annotations

from datetime import datetime, timedelta, timezone

from referral_attribution.referrals.models import ReferralLink

UTC = timezone.utc
NOW_UTC = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def _build_link(
    *,
    code: str = "ABCD2345",
    owner_user_id: str = "owner-1",
    created_at: datetime = NOW_UTC - timedelta(days=5),
    expires_at: datetime = NOW_UTC + timedelta(days=30),
    campaign: str = "general_share",
) -> ReferralLink:
    return ReferralLink(
        code=code,
        owner_user_id=owner_user_id,
        short_url=f"https://links.test/i/{code}?utm_source={campaign}",
        campaign=campaign,
        created_at=created_at,
        expires_at=expires_at,
    )
