"""
Common utility functions used across services and routes.
"""

import math
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Naive UTC timestamp, the form stored in every DateTime column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative values (round() would round 62.5 to 62)."""
    return int(math.floor(value + 0.5))


def percent(part: int, whole: int) -> int:
    """Integer percentage of part over whole; 0 when whole is 0."""
    if whole <= 0:
        return 0
    return round_half_up(100 * part / whole)


def display_name(full_name: Optional[str], email: Optional[str], fallback: str = "Participant") -> str:
    """Full name when set, else the email prefix, else a neutral label."""
    if isinstance(full_name, str) and full_name.strip():
        return full_name.strip()
    if isinstance(email, str) and email.strip():
        return email.split("@", 1)[0]
    return fallback


def dedupe(items) -> list:
    """Drop repeats, keep first-seen order."""
    seen = set()
    out = []
    for item in items:
        if item in seen:
            continue
        seen.add(item)
        out.append(item)
    return out


def level_for(total_score: int) -> str:
    """Profile badge from cumulative score across completed quizzes."""
    if total_score > 2000:
        return "Quiz Master"
    if total_score > 1000:
        return "Class Star"
    if total_score > 500:
        return "Diligent Student"
    return "Beginner"
