from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class CreateLinkRequest(BaseModel):
    owner_user_id: str = Field(min_length=1, max_length=128)
    campaign: str | None = Field(default=None, max_length=256)


class ReferralLinkResponse(BaseModel):
    referral_code: str
    owner_user_id: str
    short_url: str
    campaign: str
    created_at: datetime
    expires_at: datetime


class AttributionRequest(BaseModel):
    device_id: str = Field(min_length=1, max_length=255)
    referral_code: str = Field(min_length=5, max_length=20)
    platform: Literal["ios", "android"]
    app_version: str | None = Field(default=None, max_length=32)
    locale: str | None = Field(default=None, max_length=35)
    timezone: str | None = Field(default=None, max_length=64)


class OnboardingMetadataResponse(BaseModel):
    device_id: str
    platform: str
    app_version: str | None
    locale: str | None
    timezone: str | None


class AttributionResponse(BaseModel):
    device_id: str
    referral_code: str
    token: str
    attributed_at: datetime
    expires_at: datetime
    onboarding: OnboardingMetadataResponse | None


class ClaimRequest(BaseModel):
    user_id: str = Field(min_length=1, max_length=128)
    attribution_token: str = Field(min_length=1, max_length=1024)
    device_id: str | None = Field(default=None, max_length=255)


class ClaimResponse(BaseModel):
    success: bool
    message: str
    referral_code: str


class ReferralInviteResponse(BaseModel):
    referral_code: str
    status: str
    device_id: str
    invitee_user_id: str | None
    platform: str | None
    occurred_at: datetime
    reward_issued: bool


class ReferralInviteListResponse(BaseModel):
    referrer_user_id: str
    invites: list[ReferralInviteResponse]
