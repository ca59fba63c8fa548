"""
Audit log - StampEvent append/delete.

Runs inside the caller's unit of work. RemoveStamp relies on this history to
know what to reverse, so a missing event is an integrity failure, never
something to skip.
"""

import datetime as dt
import logging

from stampbook.exceptions import LedgerIntegrityError
from stampbook.models import LoyaltyAccount, StampEvent

logger = logging.getLogger(__name__)


def _events(account: LoyaltyAccount):
    """StampEvents on the database the (locked) account was read from."""
    return StampEvent.objects.using(account._state.db)


class AuditLog:
    """Append-only stamp history (except for the most recent entry)."""

    @classmethod
    def append(
        cls,
        account: LoyaltyAccount,
        stamp_index: int,
        occurred_at: dt.datetime,
    ) -> StampEvent:
        """Record one granted stamp."""
        return _events(account).create(
            account=account,
            stamp_index=stamp_index,
            occurred_at=occurred_at,
        )

    @classmethod
    def most_recent(cls, account: LoyaltyAccount, stamp_index: int) -> StampEvent | None:
        """Latest event with `stamp_index` (ties broken by insertion sequence)."""
        return (
            _events(account).filter(account=account, stamp_index=stamp_index)
            .order_by("-occurred_at", "-id")
            .first()
        )

    @classmethod
    def delete_most_recent(
        cls,
        account: LoyaltyAccount,
        expected_stamp_index: int,
    ) -> StampEvent:
        """
        Delete the most recent event carrying `expected_stamp_index`.

        Returns:
            The deleted StampEvent (pk preserved)

        Raises:
            LedgerIntegrityError: If no such event exists
        """
        event = cls.most_recent(account, expected_stamp_index)
        if event is None:
            logger.error(
                "Audit trail missing stamp #%d for account %s",
                expected_stamp_index,
                account.pk,
            )
            raise LedgerIntegrityError(
                message=f"No stamp #{expected_stamp_index} in the audit trail",
                account_id=account.pk,
                stamp_index=expected_stamp_index,
            )

        _events(account).filter(pk=event.pk).delete()
        return event

    @classmethod
    def current_cycle(cls, account: LoyaltyAccount) -> dict[int, StampEvent]:
        """Latest event per stamp index on the current card, keyed by index."""
        if account.current_stamps == 0:
            return {}

        events = _events(account).filter(
            account=account,
            stamp_index__lte=account.current_stamps,
        ).order_by("stamp_index", "-occurred_at", "-id")

        cycle = {}
        for event in events:
            cycle.setdefault(event.stamp_index, event)
        return cycle

    @classmethod
    def history(cls, account: LoyaltyAccount, limit: int = 50) -> list[StampEvent]:
        """Most recent events first."""
        return list(_events(account).filter(account=account)[:limit])
