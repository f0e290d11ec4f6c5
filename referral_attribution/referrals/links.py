from __future__ import annotations

from dataclasses import replace
from datetime import datetime

import structlog

from referral_attribution.core.referral_codes import generate_referral_code, normalize_referral_code
from referral_attribution.store.base import ReferralStore

from .constants import (
    CAMPAIGN_DISALLOWED_CHARS_RE,
    CAMPAIGN_MAX_LENGTH,
    DEFAULT_CAMPAIGN,
    MAX_CODE_GENERATION_ATTEMPTS,
    REFERRAL_CODE_FORBIDDEN_CHARS,
    REFERRAL_CODE_MAX_LENGTH,
    REFERRAL_CODE_MIN_LENGTH,
    REFERRAL_LINK_TTL_MONTHS,
)
from .errors import ReferralCodeGenerationError, ReferralErrorKind
from .models import ReferralLink
from .results import ReferralResult
from .short_links import ShortLinkProvider
from .time_utils import add_months, utc_now

logger = structlog.get_logger(__name__)


def is_valid_referral_code(code: str) -> bool:
    return (
        REFERRAL_CODE_MIN_LENGTH <= len(code) <= REFERRAL_CODE_MAX_LENGTH
        and REFERRAL_CODE_FORBIDDEN_CHARS.isdisjoint(code)
    )


def sanitize_campaign(campaign: str | None) -> str:
    if campaign is None:
        return DEFAULT_CAMPAIGN
    sanitized = CAMPAIGN_DISALLOWED_CHARS_RE.sub("", campaign)[:CAMPAIGN_MAX_LENGTH]
    return sanitized or DEFAULT_CAMPAIGN


class LinkIssuer:
    def __init__(
        self,
        store: ReferralStore,
        short_links: ShortLinkProvider,
        *,
        max_attempts: int = MAX_CODE_GENERATION_ATTEMPTS,
    ) -> None:
        self._store = store
        self._short_links = short_links
        self._max_attempts = max_attempts

    async def create_link(
        self,
        owner_user_id: str,
        campaign: str | None = None,
        *,
        now_utc: datetime | None = None,
    ) -> ReferralResult[ReferralLink]:
        if not owner_user_id or not owner_user_id.strip():
            return ReferralResult.failure(ReferralErrorKind.INVALID_INPUT)

        now_utc = now_utc or utc_now()
        source = sanitize_campaign(campaign)
        expires_at = add_months(now_utc, REFERRAL_LINK_TTL_MONTHS)

        for attempt in range(1, self._max_attempts + 1):
            code = generate_referral_code()
            link = ReferralLink(
                code=code,
                owner_user_id=owner_user_id,
                short_url=await self._short_links.shorten(code=code, campaign=source),
                campaign=source,
                created_at=now_utc,
                expires_at=expires_at,
            )
            if await self._store.add_link(link):
                logger.info(
                    "referral_link_created",
                    referral_code=code,
                    owner_user_id=owner_user_id,
                    campaign=source,
                    attempt=attempt,
                )
                return ReferralResult.success(link)
            logger.warning("referral_code_collision", attempt=attempt)

        logger.error("referral_code_generation_exhausted", attempts=self._max_attempts)
        raise ReferralCodeGenerationError(
            f"no unused referral code after {self._max_attempts} attempts"
        )

    async def register_link(self, link: ReferralLink) -> ReferralResult[ReferralLink]:
        code = normalize_referral_code(link.code or "")
        if (
            not is_valid_referral_code(code)
            or not link.owner_user_id
            or link.expires_at <= link.created_at
        ):
            return ReferralResult.failure(ReferralErrorKind.INVALID_INPUT)
        # Lookups upper-case incoming codes, so only the normalized form is reachable.
        link = replace(link, code=code)
        if not await self._store.add_link(link):
            logger.warning("referral_link_conflict", referral_code=link.code)
            return ReferralResult.failure(ReferralErrorKind.CONFLICT)
        logger.info(
            "referral_link_registered",
            referral_code=link.code,
            owner_user_id=link.owner_user_id,
        )
        return ReferralResult.success(link)

    async def get_link_for_user(self, user_id: str) -> ReferralResult[ReferralLink]:
        if not user_id or not user_id.strip():
            return ReferralResult.failure(ReferralErrorKind.INVALID_INPUT)
        link = await self._store.get_link_by_user(user_id)
        if link is None:
            return ReferralResult.failure(ReferralErrorKind.NOT_FOUND)
        return ReferralResult.success(link)
