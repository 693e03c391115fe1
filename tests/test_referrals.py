from dataclasses import dataclass

import pytest

from core.referral import ReferralRejected, is_gang_leader, normalize_referral_code, validate_referral_code
from engine.referrals import apply_referral_code, award_stage_ten_bonus
from storage.providers.base import StoreError
from storage.providers.memory import InMemoryProfileStore


@pytest.fixture
def store():
    s = InMemoryProfileStore()
    s.add_profile("ref", username="kong", referral_code="APEKONG1", ape_balance=100, total_referrals=9)
    s.add_profile("me", referral_code="APEME001")
    return s


def _reason(**kwargs):
    with pytest.raises(ReferralRejected) as e:
        apply_referral_code(**kwargs)
    return e.value.reason


def test_code_format():
    assert normalize_referral_code("  apekong1 ") == "APEKONG1"
    assert validate_referral_code("apekong1")
    assert not validate_referral_code("APE1234")
    assert not validate_referral_code("APE12345X")
    assert not validate_referral_code("BAN12345")
    assert not validate_referral_code(None)


def test_gang_leader_threshold():
    assert not is_gang_leader(9)
    assert is_gang_leader(10)


def test_successful_referral_credits_both_sides(store):
    me = store.load_profile("me")
    res = apply_referral_code(profile=me, code=" apekong1", store=store)

    assert res.new_user_reward == 15
    assert res.profile.referred_by == "ref"
    assert res.referrer.total_referrals == 10
    assert res.referrer.ape_balance == 120
    assert res.became_gang_leader
    assert store.rows["me"]["referred_by"] == "ref"
    assert store.rows["ref"]["ape_balance"] == 120
    assert store.rows["ref"]["total_referrals"] == 10


def test_rejection_reasons_are_distinct(store):
    me = store.load_profile("me")
    reasons = {
        _reason(profile=me, code="APEKONG1", store=store, online=False),
        _reason(profile=me, code="APE12", store=store),
        _reason(profile=store.add_profile("other", referred_by="ref"), code="APEKONG1", store=store),
        _reason(profile=me, code="APEZZZZZ", store=store),
        _reason(profile=me, code="APEME001", store=store),
    }
    store.offline = True
    reasons.add(_reason(profile=me, code="APEKONG1", store=store))

    assert reasons == {"offline", "invalid_format", "already_referred", "not_found", "self_referral", "store_error"}


@dataclass
class _FailingReferrerStore(InMemoryProfileStore):
    fail_for: str = "ref"

    def save_profile(self, user_id, fields):
        if user_id == self.fail_for:
            raise StoreError("write refused")
        super().save_profile(user_id, fields)


def test_failed_referrer_write_is_a_store_error():
    store = _FailingReferrerStore()
    store.add_profile("ref", referral_code="APEKONG1", ape_balance=100)
    me = store.add_profile("me")
    with pytest.raises(ReferralRejected) as e:
        apply_referral_code(profile=me, code="APEKONG1", store=store)
    assert e.value.reason == "store_error"
    assert isinstance(e.value.__cause__, StoreError)
    assert store.rows["ref"]["ape_balance"] == 100


def test_stage_ten_bonus(store):
    assert award_stage_ten_bonus(referrer_id="ref", store=store) == 130
    assert store.rows["ref"]["ape_balance"] == 130
    with pytest.raises(StoreError):
        award_stage_ten_bonus(referrer_id="ghost", store=store)
