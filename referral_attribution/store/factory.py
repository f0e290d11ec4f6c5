from __future__ import annotations

from referral_attribution.core.config import Settings
from referral_attribution.referrals.errors import ReferralStoreError

from .base import ReferralStore
from .memory import InMemoryReferralStore
from .sql import SqlReferralStore


def build_store(settings: Settings) -> ReferralStore:
    backend = settings.store_backend.strip().lower()
    if backend == "memory":
        return InMemoryReferralStore()
    if backend == "sql":
        if not settings.database_url:
            raise ReferralStoreError("DATABASE_URL is required for the sql store backend")
        return SqlReferralStore.from_url(settings.database_url)
    raise ReferralStoreError(f"unsupported store backend: {settings.store_backend}")
