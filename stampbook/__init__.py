"""
Django Stampbook - Loyalty stamp ledger.

Usage:
    from stampbook import LedgerService
    from stampbook.gates import Gates, HolidayStatus

    result = LedgerService.add_stamp("CR0001")
    result.current_stamps, result.total_rewards, result.reward_issued

    LedgerService.remove_stamp("CR0001")   # undo the most recent stamp
    card = LedgerService.get_card("CR0001")

    # Holiday gate
    Gates.holiday_status(timezone.now())
"""


def __getattr__(name):
    if name == "LedgerService":
        from stampbook.service import LedgerService

        return LedgerService
    if name == "Gates":
        from stampbook.gates import Gates

        return Gates
    if name == "HolidayStatus":
        from stampbook.gates import HolidayStatus

        return HolidayStatus
    if name == "StampbookError":
        from stampbook.exceptions import StampbookError

        return StampbookError
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["LedgerService", "Gates", "HolidayStatus", "StampbookError"]
__version__ = "0.1.0"
