"""Automation package: recurring bills and their calendar projection."""

from financepro.automation.recurring import (
    RECURRING_CATEGORY,
    CalendarEvent,
    RecurringMaterializer,
    daily_totals,
    monthly_cost,
    project_calendar,
    signature,
)

__all__ = [
    "RECURRING_CATEGORY",
    "CalendarEvent",
    "RecurringMaterializer",
    "daily_totals",
    "monthly_cost",
    "project_calendar",
    "signature",
]
