from __future__ import annotations

import structlog
from fastapi import APIRouter, Query, Request, status

from .referrals_helpers import (
    _as_attribution_response,
    _as_invite_response,
    _as_link_response,
    _get_referral_service,
    _raise_for_failure,
)
from .referrals_models import (
    AttributionRequest,
    AttributionResponse,
    ClaimRequest,
    ClaimResponse,
    CreateLinkRequest,
    ReferralInviteListResponse,
    ReferralLinkResponse,
)

router = APIRouter(prefix="/referrals", tags=["referrals"])
logger = structlog.get_logger(__name__)


@router.post(
    "/links",
    response_model=ReferralLinkResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_referral_link(
    payload: CreateLinkRequest,
    request: Request,
) -> ReferralLinkResponse:
    service = _get_referral_service(request)
    result = await service.create_link(payload.owner_user_id, payload.campaign)
    if result.is_failure or result.value is None:
        _raise_for_failure(result)
    return _as_link_response(result.value)


@router.get("/users/{user_id}/link", response_model=ReferralLinkResponse)
async def get_user_referral_link(user_id: str, request: Request) -> ReferralLinkResponse:
    service = _get_referral_service(request)
    result = await service.get_link_for_user(user_id)
    if result.is_failure or result.value is None:
        _raise_for_failure(result)
    return _as_link_response(result.value)


@router.get("/users/{user_id}/invites", response_model=ReferralInviteListResponse)
async def list_user_invites(
    user_id: str,
    request: Request,
    status_filter: str | None = Query(default=None, alias="status", max_length=24),
) -> ReferralInviteListResponse:
    service = _get_referral_service(request)
    result = await service.list_invites(user_id, status_filter)
    if result.is_failure or result.value is None:
        _raise_for_failure(result)
    return ReferralInviteListResponse(
        referrer_user_id=user_id,
        invites=[_as_invite_response(invite) for invite in result.value],
    )


@router.post("/attribute", response_model=AttributionResponse)
async def attribute_device(
    payload: AttributionRequest,
    request: Request,
) -> AttributionResponse:
    service = _get_referral_service(request)
    result = await service.attribute(
        payload.device_id,
        payload.referral_code,
        payload.platform,
        app_version=payload.app_version,
        locale=payload.locale,
        timezone=payload.timezone,
    )
    if result.is_failure or result.value is None:
        logger.warning(
            "referral_attribute_request_failed",
            device_id=payload.device_id,
            error=result.error.value if result.error else None,
        )
        _raise_for_failure(result)
    return _as_attribution_response(result.value)


@router.post("/claim", response_model=ClaimResponse)
async def claim_referral(payload: ClaimRequest, request: Request) -> ClaimResponse:
    service = _get_referral_service(request)
    result = await service.claim(payload.user_id, payload.attribution_token, payload.device_id)
    if result.is_failure or result.value is None:
        logger.warning(
            "referral_claim_request_failed",
            user_id=payload.user_id,
            error=result.error.value if result.error else None,
        )
        _raise_for_failure(result)
    return ClaimResponse(
        success=True,
        message=result.value.message,
        referral_code=result.value.referral_code,
    )
