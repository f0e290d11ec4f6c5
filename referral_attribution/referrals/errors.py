from __future__ import annotations

from enum import Enum


class ReferralErrorKind(str, Enum):
    INVALID_INPUT = "INVALID_INPUT"
    NOT_FOUND = "NOT_FOUND"
    EXPIRED = "EXPIRED"
    ALREADY_ATTRIBUTED = "ALREADY_ATTRIBUTED"
    INVALID_TOKEN = "INVALID_TOKEN"
    SELF_REFERRAL = "SELF_REFERRAL"
    ALREADY_CLAIMED = "ALREADY_CLAIMED"
    CONFLICT = "CONFLICT"


ERROR_MESSAGES: dict[ReferralErrorKind, str] = {
    ReferralErrorKind.INVALID_INPUT: "Required referral data is missing or malformed.",
    ReferralErrorKind.NOT_FOUND: "Referral not found.",
    ReferralErrorKind.EXPIRED: "Referral has expired.",
    ReferralErrorKind.ALREADY_ATTRIBUTED: "Device is already attributed to a referral.",
    ReferralErrorKind.INVALID_TOKEN: "Attribution token is invalid.",
    ReferralErrorKind.SELF_REFERRAL: "Users cannot redeem their own referral link.",
    ReferralErrorKind.ALREADY_CLAIMED: "Referral reward has already been claimed.",
    ReferralErrorKind.CONFLICT: "Referral resource already exists.",
}


class ReferralError(Exception):
    pass


class ReferralCodeGenerationError(ReferralError):
    pass


class ReferralStoreError(ReferralError):
    pass
