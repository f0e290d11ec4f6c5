from __future__ import annotations

from datetime import datetime

import structlog

from referral_attribution.core.attribution_tokens import AttributionTokenCodec
from referral_attribution.store.base import ReferralStore

from .constants import CLAIM_SUCCESS_MESSAGE
from .errors import ReferralErrorKind
from .models import ClaimFinalization, ClaimReceipt
from .results import ReferralResult
from .time_utils import utc_now

logger = structlog.get_logger(__name__)


def _reject(
    error: ReferralErrorKind,
    *,
    user_id: str,
    **context: object,
) -> ReferralResult[ClaimReceipt]:
    logger.info("referral_claim_rejected", reason=error.value, user_id=user_id, **context)
    return ReferralResult.failure(error)


class ClaimEngine:
    """Finalizes a referral once the attributed device's owner has registered.

    Gates run in a fixed order and the first failing one decides the outcome:
    token shape, stored attribution, verbatim token match, attribution expiry,
    referral link, self-referral, prior claim. Only a request that passes all of
    them reaches the atomic finalization in the store.
    """

    def __init__(self, store: ReferralStore, codec: AttributionTokenCodec) -> None:
        self._store = store
        self._codec = codec

    async def claim(
        self,
        user_id: str,
        attribution_token: str,
        device_id: str | None = None,
        *,
        now_utc: datetime | None = None,
    ) -> ReferralResult[ClaimReceipt]:
        if not user_id or not user_id.strip() or not attribution_token:
            return _reject(ReferralErrorKind.INVALID_INPUT, user_id=user_id)

        now_utc = now_utc or utc_now()

        claims = self._codec.decode(attribution_token)
        if claims is None:
            return _reject(ReferralErrorKind.INVALID_TOKEN, user_id=user_id)
        if device_id and device_id != claims.device_id:
            return _reject(
                ReferralErrorKind.INVALID_TOKEN,
                user_id=user_id,
                device_id=device_id,
            )

        attribution = await self._store.get_attribution_by_device(claims.device_id)
        if attribution is None:
            return _reject(
                ReferralErrorKind.NOT_FOUND,
                user_id=user_id,
                device_id=claims.device_id,
            )
        if attribution.token != attribution_token:
            return _reject(
                ReferralErrorKind.INVALID_TOKEN,
                user_id=user_id,
                device_id=claims.device_id,
                token_mismatch=True,
            )
        if attribution.is_expired(now_utc):
            await self._store.remove_attribution(attribution.device_id, token=attribution.token)
            return _reject(
                ReferralErrorKind.EXPIRED,
                user_id=user_id,
                device_id=attribution.device_id,
            )

        link = await self._store.get_link_by_code(attribution.referral_code)
        if link is None:
            logger.warning(
                "referral_claim_link_missing",
                referral_code=attribution.referral_code,
                device_id=attribution.device_id,
            )
            return ReferralResult.failure(ReferralErrorKind.NOT_FOUND)
        if link.owner_user_id == user_id:
            return _reject(
                ReferralErrorKind.SELF_REFERRAL,
                user_id=user_id,
                referral_code=link.code,
            )
        if await self._store.has_claimed(user_id):
            return _reject(ReferralErrorKind.ALREADY_CLAIMED, user_id=user_id)

        outcome = await self._store.finalize_claim(
            user_id=user_id,
            device_id=attribution.device_id,
            token=attribution.token,
            claimed_at=now_utc,
        )
        if outcome is ClaimFinalization.ALREADY_CLAIMED:
            return _reject(ReferralErrorKind.ALREADY_CLAIMED, user_id=user_id)
        if outcome is ClaimFinalization.ATTRIBUTION_GONE:
            return _reject(
                ReferralErrorKind.NOT_FOUND,
                user_id=user_id,
                device_id=attribution.device_id,
            )

        logger.info(
            "referral_claim_completed",
            user_id=user_id,
            referrer_user_id=link.owner_user_id,
            referral_code=link.code,
            device_id=attribution.device_id,
        )
        return ReferralResult.success(
            ClaimReceipt(
                referral_code=link.code,
                referrer_user_id=link.owner_user_id,
                user_id=user_id,
                device_id=attribution.device_id,
                claimed_at=now_utc,
                message=CLAIM_SUCCESS_MESSAGE,
            ),
            message=CLAIM_SUCCESS_MESSAGE,
        )
