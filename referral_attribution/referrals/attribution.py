from __future__ import annotations

from datetime import datetime

import structlog

from referral_attribution.core.attribution_tokens import AttributionTokenCodec
from referral_attribution.core.referral_codes import normalize_referral_code
from referral_attribution.store.base import ReferralStore

from .constants import ATTRIBUTION_TTL
from .errors import ReferralErrorKind
from .models import Attribution, OnboardingMetadata, Platform
from .results import ReferralResult
from .time_utils import utc_now

logger = structlog.get_logger(__name__)


def _reject(
    error: ReferralErrorKind,
    *,
    device_id: str,
    referral_code: str,
) -> ReferralResult[Attribution]:
    logger.info(
        "referral_attribution_rejected",
        reason=error.value,
        device_id=device_id,
        referral_code=referral_code,
    )
    return ReferralResult.failure(error)


class AttributionEngine:
    """Binds a freshly installed device to the referral code that brought it in."""

    def __init__(self, store: ReferralStore, codec: AttributionTokenCodec) -> None:
        self._store = store
        self._codec = codec

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
        normalized_code = normalize_referral_code(referral_code or "")
        if not device_id or not device_id.strip() or not normalized_code:
            return _reject(
                ReferralErrorKind.INVALID_INPUT,
                device_id=device_id,
                referral_code=normalized_code,
            )
        try:
            resolved_platform = Platform(platform)
        except ValueError:
            return _reject(
                ReferralErrorKind.INVALID_INPUT,
                device_id=device_id,
                referral_code=normalized_code,
            )

        now_utc = now_utc or utc_now()

        link = await self._store.get_link_by_code(normalized_code)
        if link is None:
            return _reject(
                ReferralErrorKind.NOT_FOUND,
                device_id=device_id,
                referral_code=normalized_code,
            )
        if link.is_expired(now_utc):
            return _reject(
                ReferralErrorKind.EXPIRED,
                device_id=device_id,
                referral_code=normalized_code,
            )

        existing = await self._store.get_attribution_by_device(device_id)
        if existing is not None:
            if not existing.is_expired(now_utc):
                return _reject(
                    ReferralErrorKind.ALREADY_ATTRIBUTED,
                    device_id=device_id,
                    referral_code=normalized_code,
                )
            await self._store.remove_attribution(device_id, token=existing.token)

        attribution = Attribution(
            device_id=device_id,
            referral_code=normalized_code,
            token=self._codec.encode(device_id, normalized_code, now_utc),
            attributed_at=now_utc,
            expires_at=now_utc + ATTRIBUTION_TTL,
            onboarding=OnboardingMetadata(
                device_id=device_id,
                platform=resolved_platform,
                app_version=app_version,
                locale=locale,
                timezone=timezone,
            ),
        )
        if not await self._store.add_attribution(attribution):
            return _reject(
                ReferralErrorKind.ALREADY_ATTRIBUTED,
                device_id=device_id,
                referral_code=normalized_code,
            )

        logger.info(
            "referral_attribution_created",
            device_id=device_id,
            referral_code=normalized_code,
            platform=resolved_platform.value,
            expires_at=attribution.expires_at.isoformat(),
        )
        return ReferralResult.success(attribution)
