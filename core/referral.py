"""
core.referral
Referral code format and rejection reasons (storage-free).
"""

from __future__ import annotations

import re

from .rules import GANG_THRESHOLD, REFERRAL_CODE_LENGTH, REFERRAL_CODE_PREFIX

_CODE_RE = re.compile(rf"^{REFERRAL_CODE_PREFIX}[A-Z0-9]{{{REFERRAL_CODE_LENGTH}}}$")

REJECTION_MESSAGES = {
    "offline": "Must be online to use referral codes! 🌐",
    "invalid_format": "Invalid referral code format! Use APE followed by 5 characters! ❌",
    "already_referred": "You already used a referral code! 🚫",
    "not_found": "Referral code not found! Check the code and try again! 🔍",
    "self_referral": "You can't refer yourself! 😅",
    "store_error": "Failed to use referral code! Try again later! ⚠️",
}


class ReferralRejected(Exception):
    def __init__(self, reason: str, message: str = ""):
        message = message or REJECTION_MESSAGES.get(reason, reason)
        super().__init__(message)
        self.reason = reason
        self.message = message


def normalize_referral_code(raw: object) -> str:
    return str(raw or "").strip().upper()


def validate_referral_code(code: object) -> bool:
    return bool(_CODE_RE.match(normalize_referral_code(code)))


def is_gang_leader(total_referrals: int) -> bool:
    return int(total_referrals or 0) >= GANG_THRESHOLD
