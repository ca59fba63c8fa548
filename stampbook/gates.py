"""
Stampbook Gates - Checks run before the ledger is touched.

H1: HolidayBlackout - No stamp mutations on business-local Dec 25, Dec 31, Jan 1

The business calendar uses a fixed UTC offset (UTC+5:30 by default), not a
timezone database. The instant is always passed in, so callers and tests
control the clock.
"""

import datetime as dt
import logging
from dataclasses import dataclass

from stampbook.exceptions import BlackoutError

logger = logging.getLogger(__name__)


# (month, day) -> (reason_key, message)
BLACKOUT_DATES = {
    (12, 25): ("christmas", "Happy Christmas — services not available today."),
    (12, 31): ("newyear-eve", "New Year's Eve — services not available today."),
    (1, 1): ("newyear-day", "Happy New Year — services not available today."),
}


@dataclass(frozen=True)
class HolidayStatus:
    """Result of the holiday check."""

    blocked: bool
    reason_key: str | None
    message: str | None
    business_date: dt.date


def business_date(now: dt.datetime, offset_minutes: int | None = None) -> dt.date:
    """
    Calendar date at the business location for the instant `now`.

    Naive datetimes are taken as UTC.
    """
    if offset_minutes is None:
        from stampbook.conf import stampbook_settings

        offset_minutes = stampbook_settings.BUSINESS_UTC_OFFSET_MINUTES

    if now.tzinfo is None:
        now = now.replace(tzinfo=dt.timezone.utc)

    local_tz = dt.timezone(dt.timedelta(minutes=offset_minutes))
    return now.astimezone(local_tz).date()


# =============================================================================
# Gates
# =============================================================================


class Gates:
    """Stampbook validation gates."""

    # =========================================================================
    # H1: Holiday Blackout
    # =========================================================================

    @classmethod
    def holiday_status(
        cls,
        now: dt.datetime,
        offset_minutes: int | None = None,
    ) -> HolidayStatus:
        """
        H1: Report whether `now` falls on a blackout date.

        Pure: no I/O, no clock access.

        Args:
            now: The instant to check
            offset_minutes: Override the configured business UTC offset

        Returns:
            HolidayStatus
        """
        local_date = business_date(now, offset_minutes)
        blackout = BLACKOUT_DATES.get((local_date.month, local_date.day))

        if blackout is None:
            return HolidayStatus(False, None, None, local_date)

        reason_key, message = blackout
        return HolidayStatus(True, reason_key, message, local_date)

    @classmethod
    def holiday_blackout(
        cls,
        now: dt.datetime,
        offset_minutes: int | None = None,
    ) -> HolidayStatus:
        """
        H1: Refuse mutations on blackout dates.

        Raises:
            BlackoutError: If `now` is a business-local blackout date
        """
        status = cls.holiday_status(now, offset_minutes)
        if status.blocked:
            logger.warning(
                "H1_HolidayBlackout: mutation refused on %s (%s)",
                status.business_date.isoformat(),
                status.reason_key,
            )
            raise BlackoutError(
                status.reason_key,
                status.message,
                business_date=status.business_date.isoformat(),
            )
        return status

    @classmethod
    def check_holiday_blackout(cls, *args, **kwargs) -> bool:
        """Check without raising (returns True when mutations are allowed)."""
        return not cls.holiday_status(*args, **kwargs).blocked
