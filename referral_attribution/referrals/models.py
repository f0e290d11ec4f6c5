from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Platform(str, Enum):
    IOS = "ios"
    ANDROID = "android"


class InviteStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"


@dataclass(frozen=True, slots=True)
class ReferralLink:
    code: str
    owner_user_id: str
    short_url: str
    campaign: str
    created_at: datetime
    expires_at: datetime

    def is_expired(self, now_utc: datetime) -> bool:
        return self.expires_at < now_utc


@dataclass(frozen=True, slots=True)
class OnboardingMetadata:
    """Install context reported by the app when a device is attributed."""

    device_id: str
    platform: Platform
    app_version: str | None = None
    locale: str | None = None
    timezone: str | None = None


@dataclass(frozen=True, slots=True)
class Attribution:
    device_id: str
    referral_code: str
    token: str
    attributed_at: datetime
    expires_at: datetime
    onboarding: OnboardingMetadata | None = None

    def is_expired(self, now_utc: datetime) -> bool:
        return self.expires_at < now_utc


@dataclass(frozen=True, slots=True)
class ClaimReceipt:
    referral_code: str
    referrer_user_id: str
    user_id: str
    device_id: str
    claimed_at: datetime
    message: str


@dataclass(frozen=True, slots=True)
class ReferralInvite:
    """One device brought in by a referrer's link.

    Pending invites are live attributions; completed ones are finalized claims.
    ``occurred_at`` is the attribution instant or the claim instant respectively.
    """

    referral_code: str
    status: InviteStatus
    device_id: str
    occurred_at: datetime
    invitee_user_id: str | None = None
    platform: Platform | None = None

    @property
    def reward_issued(self) -> bool:
        return self.status is InviteStatus.COMPLETED


class ClaimFinalization(str, Enum):
    CLAIMED = "CLAIMED"
    ALREADY_CLAIMED = "ALREADY_CLAIMED"
    ATTRIBUTION_GONE = "ATTRIBUTION_GONE"
