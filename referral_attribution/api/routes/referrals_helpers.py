from __future__ import annotations

from typing import NoReturn

from fastapi import HTTPException, Request

from referral_attribution.referrals.errors import ReferralErrorKind
from referral_attribution.referrals.models import Attribution, ReferralInvite, ReferralLink
from referral_attribution.referrals.results import ReferralResult
from referral_attribution.referrals.service import ReferralService

from .referrals_models import (
    AttributionResponse,
    OnboardingMetadataResponse,
    ReferralInviteResponse,
    ReferralLinkResponse,
)

ERROR_STATUS_CODES: dict[ReferralErrorKind, int] = {
    ReferralErrorKind.INVALID_INPUT: 400,
    ReferralErrorKind.NOT_FOUND: 404,
    ReferralErrorKind.EXPIRED: 410,
    ReferralErrorKind.ALREADY_ATTRIBUTED: 409,
    ReferralErrorKind.INVALID_TOKEN: 422,
    ReferralErrorKind.SELF_REFERRAL: 403,
    ReferralErrorKind.ALREADY_CLAIMED: 409,
    ReferralErrorKind.CONFLICT: 409,
}


def _get_referral_service(request: Request) -> ReferralService:
    return request.app.state.referral_service


def _raise_for_failure(result: ReferralResult) -> NoReturn:
    error = result.error
    if error is None:
        raise RuntimeError("referral result carries no error kind")
    raise HTTPException(
        status_code=ERROR_STATUS_CODES[error],
        detail={"code": f"E_{error.value}", "message": result.message},
    )


def _as_link_response(link: ReferralLink) -> ReferralLinkResponse:
    return ReferralLinkResponse(
        referral_code=link.code,
        owner_user_id=link.owner_user_id,
        short_url=link.short_url,
        campaign=link.campaign,
        created_at=link.created_at,
        expires_at=link.expires_at,
    )


def _as_attribution_response(attribution: Attribution) -> AttributionResponse:
    return AttributionResponse(
        device_id=attribution.device_id,
        referral_code=attribution.referral_code,
        token=attribution.token,
        attributed_at=attribution.attributed_at,
        expires_at=attribution.expires_at,
        onboarding=_as_onboarding_response(attribution),
    )


def _as_onboarding_response(attribution: Attribution) -> OnboardingMetadataResponse | None:
    onboarding = attribution.onboarding
    if onboarding is None:
        return None
    return OnboardingMetadataResponse(
        device_id=onboarding.device_id,
        platform=onboarding.platform.value,
        app_version=onboarding.app_version,
        locale=onboarding.locale,
        timezone=onboarding.timezone,
    )


def _as_invite_response(invite: ReferralInvite) -> ReferralInviteResponse:
    return ReferralInviteResponse(
        referral_code=invite.referral_code,
        status=invite.status.value,
        device_id=invite.device_id,
        invitee_user_id=invite.invitee_user_id,
        platform=invite.platform.value if invite.platform else None,
        occurred_at=invite.occurred_at,
        reward_issued=invite.reward_issued,
    )
