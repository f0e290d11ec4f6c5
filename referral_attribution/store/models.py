from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Index, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class ReferralLinkRow(Base):
    __tablename__ = "referral_links"
    __table_args__ = (
        CheckConstraint("expires_at > created_at", name="ck_referral_links_expiry_window"),
        Index("idx_referral_links_owner_created", "owner_user_id", "created_at"),
    )

    code: Mapped[str] = mapped_column(String(20), primary_key=True)
    owner_user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    short_url: Mapped[str] = mapped_column(String(512), nullable=False)
    campaign: Mapped[str] = mapped_column(String(50), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class AttributionRow(Base):
    __tablename__ = "referral_attributions"
    __table_args__ = (Index("idx_referral_attributions_code", "referral_code"),)

    device_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    referral_code: Mapped[str] = mapped_column(String(20), nullable=False)
    token: Mapped[str] = mapped_column(String(1024), nullable=False)
    attributed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    platform: Mapped[str | None] = mapped_column(String(16), nullable=True)
    app_version: Mapped[str | None] = mapped_column(String(32), nullable=True)
    locale: Mapped[str | None] = mapped_column(String(35), nullable=True)
    timezone: Mapped[str | None] = mapped_column(String(64), nullable=True)


class ClaimedUserRow(Base):
    __tablename__ = "referral_claimed_users"
    __table_args__ = (Index("idx_referral_claimed_users_code", "referral_code"),)

    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    claimed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    referral_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    device_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    platform: Mapped[str | None] = mapped_column(String(16), nullable=True)
