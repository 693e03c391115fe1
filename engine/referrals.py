"""engine.referrals

Referral flow against the profile store.

The remote writes happen first; the caller credits the local state only
after they all succeeded, so a failure never leaves a partial credit.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional

from core.referral import ReferralRejected, normalize_referral_code, validate_referral_code
from core.rules import GANG_THRESHOLD, REFERRAL_NEW_USER, REFERRAL_REFERRER, REFERRAL_STAGE_10_BONUS
from storage.providers.base import ProfileStore, StoreError
from storage.schemas import ProfileSnapshot


@dataclass(frozen=True)
class ReferralResult:
    profile: ProfileSnapshot      # referee, with referred_by set
    referrer: ProfileSnapshot     # after crediting
    new_user_reward: int
    became_gang_leader: bool


def apply_referral_code(
    *,
    profile: Optional[ProfileSnapshot],
    code: str,
    store: Optional[ProfileStore],
    online: bool = True,
) -> ReferralResult:
    if profile is None or store is None or not online:
        raise ReferralRejected("offline")

    code = normalize_referral_code(code)
    if not validate_referral_code(code):
        raise ReferralRejected("invalid_format")
    if profile.referred_by:
        raise ReferralRejected("already_referred")

    try:
        referrer = store.find_profile_by_referral_code(code)
    except StoreError as e:
        raise ReferralRejected("store_error") from e
    if referrer is None:
        raise ReferralRejected("not_found")
    if referrer.id == profile.id:
        raise ReferralRejected("self_referral")

    total = referrer.total_referrals + 1
    balance = referrer.ape_balance + REFERRAL_REFERRER
    try:
        store.save_profile(profile.id, {"referred_by": referrer.id})
        store.save_profile(referrer.id, {"ape_balance": balance, "total_referrals": total})
    except StoreError as e:
        raise ReferralRejected("store_error") from e

    fields = dict(referrer.fields)
    fields["ape_balance"] = balance
    return ReferralResult(
        profile=replace(profile, referred_by=referrer.id),
        referrer=replace(referrer, total_referrals=total, fields=fields),
        new_user_reward=REFERRAL_NEW_USER,
        became_gang_leader=total == GANG_THRESHOLD,
    )


def award_stage_ten_bonus(*, referrer_id: str, store: ProfileStore) -> int:
    """Credit the referrer when their referee reaches stage 10. Raises StoreError."""
    referrer = store.load_profile(referrer_id)
    if referrer is None:
        raise StoreError(f"Referrer profile not found: {referrer_id}")
    balance = referrer.ape_balance + REFERRAL_STAGE_10_BONUS
    store.save_profile(referrer.id, {"ape_balance": balance})
    return balance
