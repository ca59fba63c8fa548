"""
Stampbook public API.

CORE (ledger mutations):
    LedgerService.add_stamp(member_code)     - Grant one stamp
    LedgerService.remove_stamp(member_code)  - Undo the most recent stamp
    LedgerService.apply(request)             - {accountIdentifier, operation}

CONVENIENCE (read-only):
    LedgerService.get_card(member_code)      - Card snapshot with stamp history
    LedgerService.list_accounts()            - All cards, by member code
    LedgerService.get_events(member_code)    - Stamp audit trail
"""

import datetime as dt
import logging
from collections.abc import Mapping

from django.utils import timezone

from stampbook import signals
from stampbook.conf import STAMPS_PER_REWARD
from stampbook.exceptions import NotFoundError, ValidationError
from stampbook.gates import Gates
from stampbook.models import LoyaltyAccount, StampEvent
from stampbook.protocols import (
    OPERATION_ADD,
    OPERATION_REMOVE,
    OPERATIONS,
    CardSnapshot,
    LedgerRequest,
    LedgerResult,
)
from stampbook.services.audit import AuditLog
from stampbook.services.locator import AccountHandle, AccountLocator
from stampbook.services.rewards import RewardIssuer
from stampbook.services.unit_of_work import LedgerUnitOfWork

logger = logging.getLogger(__name__)


class LedgerService:
    """
    Stamp ledger engine.

    Uses @classmethod for extensibility. Stateless between calls: every
    mutation runs in its own LedgerUnitOfWork while holding the account's
    row locks, so operations on one account are serialized and operations on
    different accounts never contend.

    No internal retry: AddStamp is not idempotent, so retrying after a
    ConflictError is the caller's decision.
    """

    unit_of_work_class = LedgerUnitOfWork

    # Injectable clock, used only when no explicit `now` is passed
    clock = staticmethod(timezone.now)

    # ======================================================================
    # CORE API
    # ======================================================================

    @classmethod
    def add_stamp(cls, member_code: str, now: dt.datetime | None = None) -> LedgerResult:
        """
        Grant one stamp. The 12th stamp completes the card: the counter
        resets to 0 and a reward is issued, in the same transaction.

        Args:
            member_code: Customer member code
            now: Instant of the operation (defaults to the service clock)

        Returns:
            LedgerResult with the committed state

        Raises:
            BlackoutError: On a business-local blackout date (nothing touched)
            ValidationError: Missing member code
            NotFoundError: Unknown member
            ConflictError: Lock wait timed out (retryable)
            PersistenceError: Storage failure (all effects rolled back)
        """
        now = cls._now(now)
        Gates.holiday_blackout(now)
        member_code = cls._clean_identifier(member_code)

        with cls.unit_of_work_class() as uow:
            handle = AccountLocator.lock(uow, member_code)
            result, reward = cls._apply_add(handle, now)

            account = handle.account
            uow.on_commit(
                lambda: signals.stamp_added.send(
                    sender=LoyaltyAccount, account=account, result=result
                )
            )
            if reward is not None:
                uow.on_commit(
                    lambda: signals.reward_issued.send(
                        sender=LoyaltyAccount, account=account, reward=reward
                    )
                )

        return result

    @classmethod
    def remove_stamp(cls, member_code: str, now: dt.datetime | None = None) -> LedgerResult:
        """
        Undo the most recent AddStamp.

        - stamps > 0: drop one stamp and its audit event
        - stamps == 0, rewards > 0: reverse the completed card back to 11
          stamps, retracting its reward and the 12th-stamp event
        - (0, 0): no-op, returns the unchanged state

        Raises:
            BlackoutError, ValidationError, NotFoundError, ConflictError,
            PersistenceError: as add_stamp()
            LedgerIntegrityError: Audit trail/rewards do not back the counters
        """
        now = cls._now(now)
        Gates.holiday_blackout(now)
        member_code = cls._clean_identifier(member_code)

        with cls.unit_of_work_class() as uow:
            handle = AccountLocator.lock(uow, member_code)
            result, reward = cls._apply_remove(handle)

            if result.changed:
                account = handle.account
                uow.on_commit(
                    lambda: signals.stamp_removed.send(
                        sender=LoyaltyAccount, account=account, result=result
                    )
                )
                if reward is not None:
                    uow.on_commit(
                        lambda: signals.reward_retracted.send(
                            sender=LoyaltyAccount, account=account, reward=reward
                        )
                    )

        return result

    @classmethod
    def apply(
        cls,
        request: LedgerRequest | Mapping,
        now: dt.datetime | None = None,
    ) -> LedgerResult:
        """
        Dispatch a request of shape {accountIdentifier, operation}.

        The holiday gate runs before the request is validated, as in
        add_stamp() and remove_stamp().

        Raises:
            BlackoutError: On a business-local blackout date
            ValidationError: Malformed request or unknown operation
        """
        now = cls._now(now)
        Gates.holiday_blackout(now)
        request = cls._parse_request(request)
        if request.operation == OPERATION_ADD:
            return cls.add_stamp(request.account_identifier, now=now)
        return cls.remove_stamp(request.account_identifier, now=now)

    # ======================================================================
    # CONVENIENCE API
    # ======================================================================

    @classmethod
    def get_card(cls, member_code: str) -> CardSnapshot:
        """
        Card snapshot: counters, 12-slot history of the current card, last reward.

        Raises:
            NotFoundError: Unknown member
        """
        account = cls._get_account(member_code)

        cycle = AuditLog.current_cycle(account)
        history = tuple(
            cycle[index].occurred_at if index in cycle else None
            for index in range(1, STAMPS_PER_REWARD + 1)
        )
        last_reward = RewardIssuer.latest(account)

        return cls._snapshot(
            account,
            stamp_history=history,
            reward_issued_at=last_reward.issued_at if last_reward else None,
        )

    @classmethod
    def list_accounts(cls) -> list[CardSnapshot]:
        """All cards ordered by member code (no stamp history)."""
        accounts = LoyaltyAccount.objects.select_related("customer").order_by(
            "customer__member_code"
        )
        return [cls._snapshot(account) for account in accounts]

    @classmethod
    def get_events(cls, member_code: str, limit: int = 50) -> list[StampEvent]:
        """Stamp audit trail, most recent first."""
        return AuditLog.history(cls._get_account(member_code), limit=limit)

    # ======================================================================
    # Internals
    # ======================================================================

    @classmethod
    def _apply_add(cls, handle: AccountHandle, now: dt.datetime):
        account = handle.account
        next_stamps = account.current_stamps + 1
        reward = None

        if next_stamps >= STAMPS_PER_REWARD:
            new_stamps = 0
            new_rewards = account.total_rewards + 1
            reward = RewardIssuer.issue(account, issued_at=now)
        else:
            new_stamps = next_stamps
            new_rewards = account.total_rewards

        account.current_stamps = new_stamps
        account.total_rewards = new_rewards
        account.save(update_fields=["current_stamps", "total_rewards", "updated_at"])

        AuditLog.append(
            account,
            stamp_index=STAMPS_PER_REWARD if reward else new_stamps,
            occurred_at=now,
        )

        if reward:
            logger.info(
                "Card completed for %s: reward #%d issued",
                handle.member_code,
                new_rewards,
            )

        result = LedgerResult(
            member_code=handle.member_code,
            operation=OPERATION_ADD,
            current_stamps=new_stamps,
            total_rewards=new_rewards,
            reward_issued=reward is not None,
            reward_issued_at=reward.issued_at if reward else None,
        )
        return result, reward

    @classmethod
    def _apply_remove(cls, handle: AccountHandle):
        account = handle.account
        current = account.current_stamps
        rewards = account.total_rewards
        reward = None

        if current > 0:
            AuditLog.delete_most_recent(account, expected_stamp_index=current)
            new_stamps = current - 1
            new_rewards = rewards
        elif rewards > 0:
            # Reverse a just-completed card. Policy: back to 11 stamps.
            reward = RewardIssuer.retract_most_recent(account)
            AuditLog.delete_most_recent(account, expected_stamp_index=STAMPS_PER_REWARD)
            new_stamps = STAMPS_PER_REWARD - 1
            new_rewards = rewards - 1
            logger.info(
                "Reward retracted for %s: back to %d stamps",
                handle.member_code,
                new_stamps,
            )
        else:
            logger.warning("Nothing to undo for %s", handle.member_code)
            return (
                LedgerResult(
                    member_code=handle.member_code,
                    operation=OPERATION_REMOVE,
                    current_stamps=0,
                    total_rewards=0,
                    changed=False,
                ),
                None,
            )

        account.current_stamps = new_stamps
        account.total_rewards = new_rewards
        account.save(update_fields=["current_stamps", "total_rewards", "updated_at"])

        result = LedgerResult(
            member_code=handle.member_code,
            operation=OPERATION_REMOVE,
            current_stamps=new_stamps,
            total_rewards=new_rewards,
        )
        return result, reward

    @classmethod
    def _now(cls, now: dt.datetime | None) -> dt.datetime:
        now = now or cls.clock()
        if timezone.is_naive(now):
            now = timezone.make_aware(now, dt.timezone.utc)
        return now

    @classmethod
    def _clean_identifier(cls, member_code) -> str:
        if not isinstance(member_code, str) or not member_code.strip():
            raise ValidationError(message="memberCode required")
        return member_code.strip()

    @classmethod
    def _parse_request(cls, request) -> LedgerRequest:
        if isinstance(request, LedgerRequest):
            parsed = request
        elif isinstance(request, Mapping):
            parsed = LedgerRequest(
                account_identifier=request.get("accountIdentifier"),
                operation=request.get("operation"),
            )
        else:
            raise ValidationError(message="Request must be an object")

        if parsed.operation not in OPERATIONS:
            raise ValidationError(
                message=f"Unknown operation: {parsed.operation!r}",
                allowed=list(OPERATIONS),
            )
        return parsed

    @classmethod
    def _get_account(cls, member_code: str) -> LoyaltyAccount:
        member_code = cls._clean_identifier(member_code)
        try:
            return LoyaltyAccount.objects.select_related("customer").get(
                customer__member_code=member_code,
            )
        except LoyaltyAccount.DoesNotExist:
            raise NotFoundError(member_code=member_code)

    @classmethod
    def _snapshot(
        cls,
        account: LoyaltyAccount,
        stamp_history: tuple = (),
        reward_issued_at: dt.datetime | None = None,
    ) -> CardSnapshot:
        customer = account.customer
        return CardSnapshot(
            member_code=customer.member_code,
            name=customer.name,
            phone=customer.phone,
            current_stamps=account.current_stamps,
            total_rewards=account.total_rewards,
            stamp_history=stamp_history,
            reward_issued_at=reward_issued_at,
        )
