from __future__ import annotations

import re
from datetime import timedelta

ATTRIBUTION_TTL = timedelta(hours=1)
REFERRAL_LINK_TTL_MONTHS = 6

MAX_CODE_GENERATION_ATTEMPTS = 10

DEFAULT_CAMPAIGN = "general_share"
CAMPAIGN_MAX_LENGTH = 50
CAMPAIGN_DISALLOWED_CHARS_RE = re.compile(r"[^A-Za-z0-9_-]")

CLAIM_SUCCESS_MESSAGE = "Reward processed successfully."

REFERRAL_CODE_MIN_LENGTH = 5
REFERRAL_CODE_MAX_LENGTH = 20
# Reserved by the attribution token payload.
REFERRAL_CODE_FORBIDDEN_CHARS = frozenset("|")
