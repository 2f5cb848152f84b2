"""XP and level curve for focus rewards.

Both functions are monotonic non-decreasing: more minutes never earn less
XP, and more XP never yields a lower level.
"""

import math

XP_PER_MINUTE = 10
XP_PER_LEVEL_UNIT = 500

_LEVEL_TITLES = {
    0: "Beginner",
    1: "Novice",
    2: "Apprentice",
    3: "Practitioner",
    4: "Expert",
    5: "Architect",
    6: "Master",
    7: "Virtuoso",
    8: "Legend",
}


def xp_for_focus(minutes: int, xp_per_minute: int = XP_PER_MINUTE) -> int:
    """XP earned for a completed focus session of *minutes*."""
    if minutes <= 0 or xp_per_minute <= 0:
        return 0
    return int(minutes) * int(xp_per_minute)


def level_for_xp(xp: int) -> int:
    """Level reached with *xp* total: ``floor(sqrt(xp / 500))``.

    0 XP is level 0, 500 is level 1, 2000 is level 2, 4500 is level 3.
    """
    if xp <= 0:
        return 0
    return math.isqrt(int(xp) // XP_PER_LEVEL_UNIT)


def xp_for_next_level(level: int) -> int:
    """Total XP at which *level* + 1 is reached."""
    nxt = max(level, 0) + 1
    return nxt * nxt * XP_PER_LEVEL_UNIT


def level_title(level: int) -> str:
    if level >= 9:
        return "Transcendent"
    return _LEVEL_TITLES.get(level, "Beginner")
