from __future__ import annotations

from datetime import datetime

import structlog

from referral_attribution.store.base import ReferralStore

from .errors import ReferralErrorKind
from .models import InviteStatus, ReferralInvite
from .results import ReferralResult
from .time_utils import utc_now

logger = structlog.get_logger(__name__)


class InviteTracker:
    """Lists the devices a referrer has brought in across all of their links."""

    def __init__(self, store: ReferralStore) -> None:
        self._store = store

    async def list_invites(
        self,
        referrer_user_id: str,
        status: str | InviteStatus | None = None,
        *,
        now_utc: datetime | None = None,
    ) -> ReferralResult[list[ReferralInvite]]:
        if not referrer_user_id or not referrer_user_id.strip():
            return ReferralResult.failure(ReferralErrorKind.INVALID_INPUT)

        wanted: InviteStatus | None = None
        if isinstance(status, InviteStatus):
            wanted = status
        elif status and status.strip():
            try:
                wanted = InviteStatus(status.strip().lower())
            except ValueError:
                # An unknown status filter matches nothing.
                logger.info(
                    "referral_invites_unknown_status",
                    referrer_user_id=referrer_user_id,
                    status=status,
                )
                return ReferralResult.success([])

        now_utc = now_utc or utc_now()
        invites = await self._store.list_invites(referrer_user_id, now_utc=now_utc)
        if wanted is not None:
            invites = [invite for invite in invites if invite.status is wanted]
        invites.sort(key=lambda invite: invite.occurred_at, reverse=True)
        return ReferralResult.success(invites)
