"""engine.messages

User-facing notice texts.
"""

from __future__ import annotations

from core.rng import stable_int_seed

SLIP_MESSAGES = (
    "Whoops! Stepped on a banana peel! 🍌",
    "Gravity wins this round! 🦍",
    "The ape forgot how to ape! 🤪",
)

RATE_LIMITED = "Slow down there, speed demon! 🏃"


def slip_message(rug_count: int) -> str:
    """Pick a slip line without touching the gameplay RNG."""
    return SLIP_MESSAGES[stable_int_seed("slip-message", int(rug_count)) % len(SLIP_MESSAGES)]


def stage_up_message(stage: int) -> str:
    return f"Stage Up! Evolved to Stage {int(stage)}! 🎉"


def setback_message(stages_dropped: int, compensation: int) -> str:
    s = "stage" if stages_dropped == 1 else "stages"
    return f"Slipped back {stages_dropped} {s}. +{compensation} APE comfort bonus."


def reward_message(amount: int) -> str:
    return f"+{int(amount)} APE earned! 💰"


def daily_cap_message(cap: int) -> str:
    return f"Daily APE cap of {int(cap)} reached. Rewards resume tomorrow."


def login_message(amount: int) -> str:
    return f"Daily login bonus! +{int(amount)} APE 🌅"


def tragic_hero_message() -> str:
    return "Tragic Hero badge earned! Three slips in a row. 🎭"


INSURANCE_ON = "Insurance activated! Protected for 50 taps! 🛡️"
INSURANCE_EXPIRED = "Insurance expired. You're on your own again! 🛡️"
METER_RESET = "Rug meter reset! Risk back to 1%! 🔄"
SESSION_RESET = "Session time reset! Starting fresh! ⏰"
REVENGE_ON = "REVENGE MODE ACTIVATED! 2x tap power for 5 seconds! 🔥"
REVENGE_OFF = "Revenge mode ended. Back to normal tapping! 💪"
