"""
core.rules
Balancing constants and reward tables.

Kept in core so tuning lives in one place; engine and UI only read these.
"""

from __future__ import annotations

import math
from typing import Dict


def STAGE_FORMULA(stage: int) -> int:
    """Taps required to clear `stage` (strictly increasing, super-linear)."""
    return int(math.floor(40 * stage * math.sqrt(stage)))


# Anti-cheat (client-side soft throttles)
MIN_TAP_INTERVAL = 150        # ms
MAX_TAPS_PER_SECOND = 10
SUSPICIOUS_TAP_RATE = 15      # logged, never blocked
TAP_WINDOW_MS = 1000

# Rug meter
RUG_METER_BASE_CHANCE = 0.01
RUG_METER_MAX_CHANCE = 0.04
RUG_METER_INCREASE_INTERVAL = 25
RUG_METER_CHANCE_STEP = 0.01
RUG_METER_MAX_PROGRESS = 100.0
RUG_METER_DECAY = 0.1

# Setback tiers: (max stage inclusive, low drop, high drop)
SETBACK_TIERS = (
    (10, 1, 1),
    (25, 1, 2),
    (50, 2, 3),
)
SETBACK_TOP_TIER = (3, 4)
SETBACK_GENTLE_AFTER_SLIPS = 2

# APE earnings
STAGE_REWARD_BASE = 5
STAGE_REWARD_STEP = 5
STAGE_REWARD_EVERY = 5

MILESTONE_REWARDS: Dict[int, int] = {
    5: 50,
    10: 100,
    25: 250,
    50: 500,
    75: 750,
    100: 1500,
}

DAILY_GOALS: Dict[int, int] = {
    500: 20,
    1000: 40,
}

DAILY_CAP = 500
DAILY_LOGIN = 5
DAILY_LOGIN_MAX = 50

SLIP_COMPENSATION_BASE = 5
SLIP_COMPENSATION_PER_STAGE = 10
CONSECUTIVE_SLIP_BONUS_STEP = 10
CONSECUTIVE_SLIP_BONUS_MAX = 50
TRAGIC_HERO_STREAK = 3

# APE spending
INSURANCE_COST = 100
INSURANCE_TAPS = 50
RESET_RUG_METER_COST = 50

# Referrals
REFERRAL_NEW_USER = 15
REFERRAL_REFERRER = 20
REFERRAL_STAGE_10_BONUS = 30
REFERRAL_BONUS_STAGE = 10
GANG_THRESHOLD = 10
REFERRAL_CODE_PREFIX = "APE"
REFERRAL_CODE_LENGTH = 5

# Revenge mode
REVENGE_DURATION_MS = 5000
REVENGE_TAP_MULTIPLIER = 2

# Session / wellness
ACTIVITY_TICK_MS = 5000
WELLNESS_THRESHOLDS_MIN = (30, 45, 60)

# Shares
SHARE_BASE_REWARD = 15
SHARE_DAILY_LIMIT = 3
SHARE_COOLDOWN_MS = 8 * 60 * 60 * 1000
