"""Reconciles the requested proxy lifetime with the issuing credential's expiry."""

import math
from datetime import datetime, timedelta
from typing import Optional, Tuple

LIFETIME_LIMITED_WARNING = "proxy lifetime limited to issuing credential lifetime."


def clamp_lifetime(requested: int, not_after: datetime, now: datetime) -> Tuple[int, Optional[str]]:
    """Return ``(lifetime, warning)``.

    The lifetime is unchanged when ``now + requested`` does not exceed
    ``not_after``; otherwise it becomes the whole seconds left before
    ``not_after`` (never negative) and a warning is returned.
    """
    if now + timedelta(seconds=requested) <= not_after:
        return requested, None
    remaining = math.floor((not_after - now).total_seconds())
    return max(remaining, 0), LIFETIME_LIMITED_WARNING


__all__ = ["clamp_lifetime", "LIFETIME_LIMITED_WARNING"]
