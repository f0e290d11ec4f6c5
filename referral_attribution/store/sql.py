from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from sqlalchemy import delete, select, text
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from referral_attribution.referrals.errors import ReferralStoreError
from referral_attribution.referrals.models import (
    Attribution,
    ClaimFinalization,
    InviteStatus,
    OnboardingMetadata,
    Platform,
    ReferralInvite,
    ReferralLink,
)

from .models import AttributionRow, Base, ClaimedUserRow, ReferralLinkRow


class _AttributionGone(Exception):
    pass


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _as_link(row: ReferralLinkRow) -> ReferralLink:
    return ReferralLink(
        code=row.code,
        owner_user_id=row.owner_user_id,
        short_url=row.short_url,
        campaign=row.campaign,
        created_at=_as_utc(row.created_at),
        expires_at=_as_utc(row.expires_at),
    )


def _as_attribution(row: AttributionRow) -> Attribution:
    onboarding = None
    if row.platform is not None:
        onboarding = OnboardingMetadata(
            device_id=row.device_id,
            platform=Platform(row.platform),
            app_version=row.app_version,
            locale=row.locale,
            timezone=row.timezone,
        )
    return Attribution(
        device_id=row.device_id,
        referral_code=row.referral_code,
        token=row.token,
        attributed_at=_as_utc(row.attributed_at),
        expires_at=_as_utc(row.expires_at),
        onboarding=onboarding,
    )


class SqlReferralStore:
    """Referral store over a relational database.

    Primary keys on link code, device id and user id provide insert-if-absent:
    a losing concurrent insert surfaces as ``IntegrityError`` and is reported
    as ``False``.
    """

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine
        self._sessionmaker = async_sessionmaker(engine, expire_on_commit=False)

    @classmethod
    def from_url(cls, database_url: str) -> SqlReferralStore:
        return cls(create_async_engine(database_url, pool_pre_ping=True))

    async def create_schema(self) -> None:
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self._engine.dispose()

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self._sessionmaker.begin() as session:
                yield session
        except OperationalError as exc:
            raise ReferralStoreError("referral store is unavailable") from exc

    async def get_link_by_code(self, code: str) -> ReferralLink | None:
        async with self._transaction() as session:
            row = await session.get(ReferralLinkRow, code)
            return _as_link(row) if row is not None else None

    async def get_link_by_user(self, user_id: str) -> ReferralLink | None:
        stmt = (
            select(ReferralLinkRow)
            .where(ReferralLinkRow.owner_user_id == user_id)
            .order_by(ReferralLinkRow.created_at.desc())
            .limit(1)
        )
        async with self._transaction() as session:
            row = await session.scalar(stmt)
            return _as_link(row) if row is not None else None

    async def add_link(self, link: ReferralLink) -> bool:
        try:
            async with self._transaction() as session:
                session.add(
                    ReferralLinkRow(
                        code=link.code,
                        owner_user_id=link.owner_user_id,
                        short_url=link.short_url,
                        campaign=link.campaign,
                        created_at=link.created_at,
                        expires_at=link.expires_at,
                    )
                )
        except IntegrityError:
            return False
        return True

    async def get_attribution_by_device(self, device_id: str) -> Attribution | None:
        async with self._transaction() as session:
            row = await session.get(AttributionRow, device_id)
            return _as_attribution(row) if row is not None else None

    async def add_attribution(self, attribution: Attribution) -> bool:
        onboarding = attribution.onboarding
        try:
            async with self._transaction() as session:
                session.add(
                    AttributionRow(
                        device_id=attribution.device_id,
                        referral_code=attribution.referral_code,
                        token=attribution.token,
                        attributed_at=attribution.attributed_at,
                        expires_at=attribution.expires_at,
                        platform=onboarding.platform.value if onboarding else None,
                        app_version=onboarding.app_version if onboarding else None,
                        locale=onboarding.locale if onboarding else None,
                        timezone=onboarding.timezone if onboarding else None,
                    )
                )
        except IntegrityError:
            return False
        return True

    async def remove_attribution(self, device_id: str, *, token: str | None = None) -> bool:
        stmt = delete(AttributionRow).where(AttributionRow.device_id == device_id)
        if token is not None:
            stmt = stmt.where(AttributionRow.token == token)
        async with self._transaction() as session:
            result = await session.execute(stmt)
            return result.rowcount > 0

    async def has_claimed(self, user_id: str) -> bool:
        async with self._transaction() as session:
            return await session.get(ClaimedUserRow, user_id) is not None

    async def mark_claimed(self, user_id: str) -> bool:
        try:
            async with self._transaction() as session:
                session.add(ClaimedUserRow(user_id=user_id, claimed_at=None))
        except IntegrityError:
            return False
        return True

    async def finalize_claim(
        self,
        *,
        user_id: str,
        device_id: str,
        token: str,
        claimed_at: datetime,
    ) -> ClaimFinalization:
        try:
            async with self._transaction() as session:
                if await session.get(ClaimedUserRow, user_id) is not None:
                    return ClaimFinalization.ALREADY_CLAIMED
                current = await session.get(AttributionRow, device_id)
                if current is None or current.token != token:
                    raise _AttributionGone
                session.add(
                    ClaimedUserRow(
                        user_id=user_id,
                        claimed_at=claimed_at,
                        referral_code=current.referral_code,
                        device_id=device_id,
                        platform=current.platform,
                    )
                )
                await session.flush()
                result = await session.execute(
                    delete(AttributionRow).where(
                        AttributionRow.device_id == device_id,
                        AttributionRow.token == token,
                    )
                )
                if result.rowcount == 0:
                    raise _AttributionGone
        except IntegrityError:
            return ClaimFinalization.ALREADY_CLAIMED
        except _AttributionGone:
            return ClaimFinalization.ATTRIBUTION_GONE
        return ClaimFinalization.CLAIMED

    async def list_invites(
        self,
        referrer_user_id: str,
        *,
        now_utc: datetime,
    ) -> list[ReferralInvite]:
        owned_codes = select(ReferralLinkRow.code).where(
            ReferralLinkRow.owner_user_id == referrer_user_id
        )
        pending_stmt = select(AttributionRow).where(
            AttributionRow.referral_code.in_(owned_codes),
            AttributionRow.expires_at >= now_utc,
        )
        completed_stmt = select(ClaimedUserRow).where(
            ClaimedUserRow.referral_code.in_(owned_codes)
        )
        async with self._transaction() as session:
            pending_rows = (await session.scalars(pending_stmt)).all()
            completed_rows = (await session.scalars(completed_stmt)).all()

        invites = [
            ReferralInvite(
                referral_code=row.referral_code,
                status=InviteStatus.PENDING,
                device_id=row.device_id,
                occurred_at=_as_utc(row.attributed_at),
                platform=Platform(row.platform) if row.platform else None,
            )
            for row in pending_rows
        ]
        for row in completed_rows:
            if row.referral_code is None or row.device_id is None or row.claimed_at is None:
                raise ReferralStoreError(f"claimed user row {row.user_id!r} is incomplete")
            invites.append(
                ReferralInvite(
                    referral_code=row.referral_code,
                    status=InviteStatus.COMPLETED,
                    device_id=row.device_id,
                    occurred_at=_as_utc(row.claimed_at),
                    invitee_user_id=row.user_id,
                    platform=Platform(row.platform) if row.platform else None,
                )
            )
        return invites

    async def ping(self) -> bool:
        async with self._transaction() as session:
            await session.execute(text("SELECT 1"))
        return True
