"""Paid-plan access check for the dashboard paywall."""

import math
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel

from financepro.models.finance import PlanStatus, Profile


class PlanAccess(BaseModel):
    has_access: bool
    days_left: int
    status: Optional[PlanStatus] = None


def check_access(profile: Optional[Profile], now: Optional[datetime] = None) -> PlanAccess:
    """
    Decide whether the user may use the dashboard.

    Access is granted to active plans, and to trials whose end is still in
    the future. `days_left` counts whole days of trial remaining (rounded up).
    """
    if profile is None:
        return PlanAccess(has_access=False, days_left=0)

    now = now or datetime.now(timezone.utc)
    trial_end = profile.trial_ends_at
    if trial_end is not None and trial_end.tzinfo is None:
        trial_end = trial_end.replace(tzinfo=timezone.utc)

    trial_active = trial_end is not None and trial_end > now
    days_left = math.ceil((trial_end - now).total_seconds() / 86400) if trial_active else 0

    if profile.subscription_status == PlanStatus.ACTIVE:
        has_access = True
    elif profile.subscription_status == PlanStatus.TRIAL:
        has_access = trial_active
    else:
        has_access = False

    return PlanAccess(
        has_access=has_access,
        days_left=days_left,
        status=profile.subscription_status,
    )
