"""Reward issuer - one RewardRecord per completed card."""

import datetime as dt
import logging

from stampbook.exceptions import LedgerIntegrityError
from stampbook.models import LoyaltyAccount, RewardRecord

logger = logging.getLogger(__name__)


def _rewards(account: LoyaltyAccount):
    return RewardRecord.objects.using(account._state.db)


class RewardIssuer:
    """Always called inside the unit of work that moves the counters."""

    @classmethod
    def issue(cls, account: LoyaltyAccount, issued_at: dt.datetime) -> RewardRecord:
        return _rewards(account).create(account=account, issued_at=issued_at)

    @classmethod
    def latest(cls, account: LoyaltyAccount) -> RewardRecord | None:
        return (
            _rewards(account).filter(account=account)
            .order_by("-issued_at", "-id")
            .first()
        )

    @classmethod
    def retract_most_recent(cls, account: LoyaltyAccount) -> RewardRecord:
        """
        Delete the most recently issued reward.

        Raises:
            LedgerIntegrityError: If the account has no reward rows
        """
        reward = cls.latest(account)
        if reward is None:
            logger.error("No reward record to retract for account %s", account.pk)
            raise LedgerIntegrityError(
                message="No reward record to retract",
                account_id=account.pk,
            )

        _rewards(account).filter(pk=reward.pk).delete()
        return reward
