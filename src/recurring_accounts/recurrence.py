"""Due-date projection for recurring account templates.

Month and year steps follow calendar arithmetic: the day of month is kept
and clamped to the last day of the target month when it does not exist
there (Jan 31 + 1 month is Feb 28, or Feb 29 in a leap year).
"""

import calendar
from datetime import date, timedelta

import structlog

from recurring_accounts.models import RecurrenceFrequency, RecurringAccountTemplate

logger = structlog.get_logger(__name__)

# Horizon within which upcoming instances are created ahead of time
LOOKAHEAD_DAYS = 30


def add_months(anchor: date, months: int) -> date:
    """Add calendar months to ``anchor``, clamping the day to the month end."""
    month_index = anchor.month - 1 + months
    year = anchor.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(anchor.day, last_day))


def compute_next_due_date(
    anchor: date,
    frequency: RecurrenceFrequency | str | None,
    interval: int = 1,
    template_id: str | None = None,
) -> date:
    """Return the occurrence ``interval`` frequency units after ``anchor``.

    Unknown frequencies are treated as monthly.

    Raises:
        ValueError: If ``interval`` is less than 1.
        OverflowError: If the result falls outside the supported date range.
    """
    if interval < 1:
        raise ValueError(f"interval must be >= 1, got {interval}")

    parsed = RecurrenceFrequency.parse(frequency)
    if parsed is None:
        logger.warning(
            "unknown_frequency",
            template_id=template_id,
            frequency=frequency,
            fallback="monthly",
        )
        parsed = RecurrenceFrequency.MONTHLY

    try:
        if parsed is RecurrenceFrequency.WEEKLY:
            return anchor + timedelta(days=7 * interval)
        if parsed is RecurrenceFrequency.YEARLY:
            return add_months(anchor, 12 * interval)
        return add_months(anchor, interval)
    except (ValueError, OverflowError) as e:
        raise OverflowError(f"next occurrence after {anchor} is out of range") from e


def should_materialize(
    template: RecurringAccountTemplate,
    next_due_date: date,
    today: date,
    lookahead_days: int = LOOKAHEAD_DAYS,
) -> bool:
    """Decide whether the occurrence on ``next_due_date`` should exist yet.

    Both the lookahead horizon and the series end date are inclusive.
    """
    advance_date = today + timedelta(days=lookahead_days)
    if next_due_date > advance_date:
        return False
    if template.end_date is not None and next_due_date > template.end_date:
        return False
    return True
