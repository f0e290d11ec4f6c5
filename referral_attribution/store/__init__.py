from referral_attribution.store.base import ReferralStore
from referral_attribution.store.memory import InMemoryReferralStore
from referral_attribution.store.sql import SqlReferralStore

__all__ = [
    "InMemoryReferralStore",
    "ReferralStore",
    "SqlReferralStore",
]
