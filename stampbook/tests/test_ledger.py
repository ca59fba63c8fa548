"""
Ledger engine tests:
- AddStamp transitions and reward issuance
- RemoveStamp (undo) including reward rollback and the (0, 0) floor
- Inverse law for every starting state
- Blackout refusals leave state untouched
- All-or-nothing rollback on failure
- Signals after commit
- Card snapshots
"""

import datetime as dt
from unittest.mock import patch

import pytest
from django.db import DatabaseError, OperationalError

from stampbook import signals
from stampbook.exceptions import (
    BlackoutError,
    ConflictError,
    LedgerIntegrityError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from stampbook.models import LoyaltyAccount, RewardRecord, StampEvent
from stampbook.protocols import LedgerRequest
from stampbook.service import LedgerService
from stampbook.services.audit import AuditLog
from stampbook.tests.conftest import NOW, counters

pytestmark = pytest.mark.django_db

UTC = dt.timezone.utc
CHRISTMAS = dt.datetime(2025, 12, 25, 6, 0, tzinfo=UTC)


def history_counts(account: LoyaltyAccount) -> tuple[int, int]:
    return (
        StampEvent.objects.filter(account=account).count(),
        RewardRecord.objects.filter(account=account).count(),
    )


# ═══════════════════════════════════════════════════════════════════
# AddStamp
# ═══════════════════════════════════════════════════════════════════


class TestAddStamp:
    """AddStamp: (n, r) -> (n+1, r), and (11, r) -> (0, r+1) with a reward."""

    @pytest.mark.parametrize("stamps", range(0, 11))
    def test_increments_below_eleven(self, seed_account, stamps):
        account = seed_account(stamps=stamps, rewards=2)
        code = account.customer.member_code

        result = LedgerService.add_stamp(code)

        assert (result.current_stamps, result.total_rewards) == (stamps + 1, 2)
        assert result.reward_issued is False
        assert result.reward_issued_at is None
        assert counters(code) == (stamps + 1, 2)

    def test_appends_event_with_new_index(self, seed_account):
        account = seed_account(stamps=4)

        LedgerService.add_stamp(account.customer.member_code)

        event = StampEvent.objects.filter(account=account).order_by("-id").first()
        assert event.stamp_index == 5
        assert event.occurred_at == NOW

    def test_eleventh_to_reward(self, seed_account):
        account = seed_account(stamps=11, rewards=3)
        code = account.customer.member_code
        rewards_before = RewardRecord.objects.filter(account=account).count()

        result = LedgerService.add_stamp(code)

        assert (result.current_stamps, result.total_rewards) == (0, 4)
        assert result.reward_issued is True
        assert result.reward_issued_at == NOW
        assert RewardRecord.objects.filter(account=account).count() == rewards_before + 1

        event = StampEvent.objects.filter(account=account).order_by("-id").first()
        assert event.stamp_index == 12

    def test_twelve_from_zero(self, customer):
        code = customer.member_code

        results = [LedgerService.add_stamp(code) for _ in range(12)]

        assert counters(code) == (0, 1)
        assert [r.reward_issued for r in results] == [False] * 11 + [True]
        account = LoyaltyAccount.objects.get(customer=customer)
        assert history_counts(account) == (12, 1)

    def test_never_observes_twelve(self, customer):
        code = customer.member_code
        for _ in range(30):
            result = LedgerService.add_stamp(code)
            assert 0 <= result.current_stamps <= 11

    def test_as_dict_shape(self, seed_account):
        account = seed_account(stamps=11)
        data = LedgerService.add_stamp(account.customer.member_code).as_dict()

        assert data == {
            "currentStamps": 0,
            "totalRewards": 1,
            "rewardIssued": True,
            "rewardRecord": {"issuedAt": NOW.isoformat()},
        }

    def test_unknown_member(self, db):
        with pytest.raises(NotFoundError, match="ACCOUNT_NOT_FOUND"):
            LedgerService.add_stamp("CR9999")

    @pytest.mark.parametrize("code", ["", "   ", None, 42])
    def test_missing_identifier(self, db, code):
        with pytest.raises(ValidationError, match="INVALID_REQUEST"):
            LedgerService.add_stamp(code)

    def test_identifier_is_stripped(self, customer):
        result = LedgerService.add_stamp(f"  {customer.member_code} ")
        assert result.member_code == customer.member_code


# ═══════════════════════════════════════════════════════════════════
# RemoveStamp
# ═══════════════════════════════════════════════════════════════════


class TestRemoveStamp:
    """RemoveStamp reverses the most recent AddStamp."""

    def test_floor_is_noop(self, customer):
        code = customer.member_code

        result = LedgerService.remove_stamp(code)

        assert (result.current_stamps, result.total_rewards) == (0, 0)
        assert result.changed is False
        assert counters(code) == (0, 0)

    def test_floor_is_idempotent(self, customer):
        for _ in range(3):
            LedgerService.remove_stamp(customer.member_code)
        assert counters(customer.member_code) == (0, 0)

    def test_drops_one_stamp(self, seed_account):
        account = seed_account(stamps=5, rewards=1)
        first_card = StampEvent.objects.filter(account=account, stamp_index=5).order_by("occurred_at").first()

        result = LedgerService.remove_stamp(account.customer.member_code)

        assert (result.current_stamps, result.total_rewards) == (4, 1)
        assert result.changed is True
        # Only the completed card's stamp #5 is left
        remaining = StampEvent.objects.filter(account=account, stamp_index=5)
        assert list(remaining.values_list("pk", flat=True)) == [first_card.pk]
        assert history_counts(account) == (12 + 4, 1)

    def test_deletes_latest_event_of_index(self, seed_account):
        """Only the current card's stamp #3 goes, not the completed card's."""
        account = seed_account(stamps=3, rewards=1)
        older = StampEvent.objects.filter(account=account, stamp_index=3).order_by("occurred_at").first()

        LedgerService.remove_stamp(account.customer.member_code)

        remaining = StampEvent.objects.filter(account=account, stamp_index=3)
        assert list(remaining.values_list("pk", flat=True)) == [older.pk]

    def test_reverses_completed_card(self, seed_account):
        account = seed_account(stamps=0, rewards=2)
        latest_reward = RewardRecord.objects.filter(account=account).order_by("-issued_at").first()

        result = LedgerService.remove_stamp(account.customer.member_code)

        assert (result.current_stamps, result.total_rewards) == (11, 1)
        assert not RewardRecord.objects.filter(pk=latest_reward.pk).exists()
        assert history_counts(account) == (12 + 11, 1)

    def test_missing_event_rolls_back(self, seed_account):
        """Counters without backing history: refuse, change nothing."""
        account = seed_account(stamps=2)
        StampEvent.objects.filter(account=account, stamp_index=2).delete()

        with pytest.raises(LedgerIntegrityError, match="LEDGER_INTEGRITY"):
            LedgerService.remove_stamp(account.customer.member_code)

        assert counters(account.customer.member_code) == (2, 0)

    def test_missing_reward_rolls_back(self, seed_account):
        account = seed_account(stamps=0, rewards=1)
        RewardRecord.objects.filter(account=account).delete()

        with pytest.raises(LedgerIntegrityError):
            LedgerService.remove_stamp(account.customer.member_code)

        assert counters(account.customer.member_code) == (0, 1)
        assert StampEvent.objects.filter(account=account).count() == 12

    def test_missing_twelfth_event_keeps_reward(self, seed_account):
        """Reward retraction is undone when the 12th-stamp event is missing."""
        account = seed_account(stamps=0, rewards=1)
        StampEvent.objects.filter(account=account, stamp_index=12).delete()

        with pytest.raises(LedgerIntegrityError):
            LedgerService.remove_stamp(account.customer.member_code)

        assert counters(account.customer.member_code) == (0, 1)
        assert RewardRecord.objects.filter(account=account).count() == 1

    def test_unknown_member(self, db):
        with pytest.raises(NotFoundError):
            LedgerService.remove_stamp("CR9999")


# ═══════════════════════════════════════════════════════════════════
# Inverse law and scenarios
# ═══════════════════════════════════════════════════════════════════


class TestInverseLaw:
    """RemoveStamp right after AddStamp restores the exact prior state."""

    @pytest.mark.parametrize("rewards", [0, 1, 3])
    @pytest.mark.parametrize("stamps", range(0, 12))
    def test_add_then_remove(self, seed_account, stamps, rewards):
        account = seed_account(stamps=stamps, rewards=rewards)
        code = account.customer.member_code
        events_before = set(StampEvent.objects.filter(account=account).values_list("pk", flat=True))
        rewards_before = set(RewardRecord.objects.filter(account=account).values_list("pk", flat=True))

        LedgerService.add_stamp(code)
        LedgerService.remove_stamp(code)

        assert counters(code) == (stamps, rewards)
        assert set(StampEvent.objects.filter(account=account).values_list("pk", flat=True)) == events_before
        assert set(RewardRecord.objects.filter(account=account).values_list("pk", flat=True)) == rewards_before


class TestScenarios:
    def test_cross_cycle_round_trip(self, seed_account):
        account = seed_account(stamps=10, rewards=2)
        code = account.customer.member_code

        first = LedgerService.add_stamp(code)
        assert (first.current_stamps, first.total_rewards, first.reward_issued) == (11, 2, False)

        second = LedgerService.add_stamp(code)
        assert (second.current_stamps, second.total_rewards, second.reward_issued) == (0, 3, True)
        new_reward = RewardRecord.objects.filter(account=account).order_by("-id").first()
        assert RewardRecord.objects.filter(account=account).count() == 3

        third = LedgerService.remove_stamp(code)
        assert (third.current_stamps, third.total_rewards) == (11, 2)
        assert not RewardRecord.objects.filter(pk=new_reward.pk).exists()

        fourth = LedgerService.remove_stamp(code)
        assert (fourth.current_stamps, fourth.total_rewards) == (10, 2)

    def test_history_invariant_holds(self, customer):
        code = customer.member_code
        ops = ["add"] * 15 + ["remove"] * 4 + ["add"] * 9 + ["remove"] * 20 + ["add"] * 3

        for op in ops:
            LedgerService.apply({"accountIdentifier": code, "operation": op})
            account = LoyaltyAccount.objects.get(customer=customer)
            events, rewards = history_counts(account)
            assert events == account.expected_event_count
            assert rewards == account.total_rewards

    def test_same_instant_stamps_undo_in_order(self, customer):
        """Stamps sharing occurred_at are reversed newest-first by sequence."""
        code = customer.member_code
        for _ in range(3):
            LedgerService.add_stamp(code, now=NOW)

        LedgerService.remove_stamp(code, now=NOW)
        LedgerService.remove_stamp(code, now=NOW)

        account = LoyaltyAccount.objects.get(customer=customer)
        assert list(StampEvent.objects.filter(account=account).values_list("stamp_index", flat=True)) == [1]


# ═══════════════════════════════════════════════════════════════════
# Blackout
# ═══════════════════════════════════════════════════════════════════


class TestBlackout:
    """Mutations on blackout dates are refused before any lock or write."""

    @pytest.mark.parametrize(
        "now",
        [
            CHRISTMAS,
            dt.datetime(2025, 12, 31, 6, 0, tzinfo=UTC),
            dt.datetime(2026, 1, 1, 6, 0, tzinfo=UTC),
        ],
    )
    @pytest.mark.parametrize("operation", ["add_stamp", "remove_stamp"])
    def test_refused_without_state_change(self, seed_account, now, operation):
        account = seed_account(stamps=11, rewards=1)
        code = account.customer.member_code
        history_before = history_counts(account)

        with pytest.raises(BlackoutError):
            getattr(LedgerService, operation)(code, now=now)

        assert counters(code) == (11, 1)
        assert history_counts(account) == history_before

    def test_refused_before_lock(self, customer):
        with patch("stampbook.service.AccountLocator.lock") as lock:
            with pytest.raises(BlackoutError):
                LedgerService.add_stamp(customer.member_code, now=CHRISTMAS)
        lock.assert_not_called()

    def test_uses_service_clock(self, customer, monkeypatch):
        monkeypatch.setattr(LedgerService, "clock", lambda: CHRISTMAS)
        with pytest.raises(BlackoutError) as exc_info:
            LedgerService.add_stamp(customer.member_code)
        assert exc_info.value.reason_key == "christmas"

    def test_naive_now_is_utc(self, customer):
        """Dec 24 20:00 UTC is Dec 25 at the store."""
        with pytest.raises(BlackoutError):
            LedgerService.add_stamp(customer.member_code, now=dt.datetime(2025, 12, 24, 20, 0))


# ═══════════════════════════════════════════════════════════════════
# Atomicity
# ═══════════════════════════════════════════════════════════════════


class TestAtomicity:
    """Any failure inside the unit of work rolls back every effect."""

    def test_audit_failure_rolls_back_reward(self, seed_account):
        account = seed_account(stamps=11, rewards=1)
        code = account.customer.member_code

        with patch.object(AuditLog, "append", side_effect=DatabaseError("disk I/O error")):
            with pytest.raises(PersistenceError) as exc_info:
                LedgerService.add_stamp(code)

        assert exc_info.value.retryable is False
        assert counters(code) == (11, 1)
        assert history_counts(account) == (23, 1)

    def test_lock_timeout_is_conflict(self, seed_account):
        account = seed_account(stamps=11)
        code = account.customer.member_code

        with patch(
            "stampbook.service.RewardIssuer.issue",
            side_effect=OperationalError("database is locked"),
        ):
            with pytest.raises(ConflictError) as exc_info:
                LedgerService.add_stamp(code)

        assert exc_info.value.retryable is True
        assert counters(code) == (11, 0)

    def test_unexpected_error_propagates_unchanged(self, seed_account):
        account = seed_account(stamps=3)
        code = account.customer.member_code

        with patch.object(AuditLog, "append", side_effect=RuntimeError("boom")):
            with pytest.raises(RuntimeError, match="boom"):
                LedgerService.add_stamp(code)

        assert counters(code) == (3, 0)

    def test_no_internal_retry(self, customer):
        with patch.object(AuditLog, "append", side_effect=OperationalError("database is locked")) as append:
            with pytest.raises(ConflictError):
                LedgerService.add_stamp(customer.member_code)
        assert append.call_count == 1


# ═══════════════════════════════════════════════════════════════════
# apply()
# ═══════════════════════════════════════════════════════════════════


class TestApply:
    def test_dict_request(self, customer):
        result = LedgerService.apply({"accountIdentifier": customer.member_code, "operation": "add"})
        assert result.current_stamps == 1
        assert result.operation == "add"

    def test_dataclass_request(self, customer):
        LedgerService.add_stamp(customer.member_code)
        result = LedgerService.apply(LedgerRequest(customer.member_code, "remove"))
        assert result.current_stamps == 0
        assert result.operation == "remove"

    @pytest.mark.parametrize(
        "request_data",
        [
            {"accountIdentifier": "CR0001", "operation": "multiply"},
            {"accountIdentifier": "CR0001"},
            {"operation": "add"},
            ["CR0001", "add"],
        ],
    )
    def test_malformed(self, db, request_data):
        with pytest.raises(ValidationError):
            LedgerService.apply(request_data)

    @pytest.mark.parametrize(
        "request_data",
        [
            {"accountIdentifier": "", "operation": "add"},
            {"accountIdentifier": "   ", "operation": "remove"},
        ],
    )
    def test_blackout_checked_before_identifier(self, db, request_data):
        """Same refusal as add_stamp()/remove_stamp() with a blank identifier."""
        with pytest.raises(BlackoutError):
            LedgerService.apply(request_data, now=CHRISTMAS)
        with pytest.raises(BlackoutError):
            getattr(LedgerService, f"{request_data['operation']}_stamp")(
                request_data["accountIdentifier"], now=CHRISTMAS
            )


# ═══════════════════════════════════════════════════════════════════
# Signals
# ═══════════════════════════════════════════════════════════════════


class TestSignals:
    """Ledger signals fire only after commit."""

    def _listen(self, signal):
        received = []

        def handler(sender, **kwargs):
            received.append(kwargs)

        signal.connect(handler, weak=False)
        return received, lambda: signal.disconnect(handler)

    def test_stamp_added_after_commit(self, customer, django_capture_on_commit_callbacks):
        received, disconnect = self._listen(signals.stamp_added)
        try:
            with django_capture_on_commit_callbacks(execute=False) as callbacks:
                LedgerService.add_stamp(customer.member_code)
            assert received == []

            for callback in callbacks:
                callback()
        finally:
            disconnect()

        assert len(received) == 1
        assert received[0]["result"].current_stamps == 1

    def test_reward_issued(self, seed_account, django_capture_on_commit_callbacks):
        account = seed_account(stamps=11)
        received, disconnect = self._listen(signals.reward_issued)
        try:
            with django_capture_on_commit_callbacks(execute=True):
                LedgerService.add_stamp(account.customer.member_code)
        finally:
            disconnect()

        assert len(received) == 1
        assert received[0]["reward"].account_id == account.pk

    def test_reward_retracted(self, seed_account, django_capture_on_commit_callbacks):
        account = seed_account(rewards=1)
        received, disconnect = self._listen(signals.reward_retracted)
        try:
            with django_capture_on_commit_callbacks(execute=True):
                LedgerService.remove_stamp(account.customer.member_code)
        finally:
            disconnect()

        assert len(received) == 1

    def test_noop_undo_sends_nothing(self, customer, django_capture_on_commit_callbacks):
        received, disconnect = self._listen(signals.stamp_removed)
        try:
            with django_capture_on_commit_callbacks(execute=True):
                LedgerService.remove_stamp(customer.member_code)
        finally:
            disconnect()

        assert received == []

    @pytest.mark.django_db(transaction=True)
    def test_failing_receiver_keeps_committed_result(self, customer, caplog):
        """A receiver error after commit must not look like a failed add."""

        def handler(sender, **kwargs):
            raise ValueError("receiver failed")

        signals.stamp_added.connect(handler, weak=False)
        try:
            result = LedgerService.add_stamp(customer.member_code)
        finally:
            signals.stamp_added.disconnect(handler)

        assert result.current_stamps == 1
        assert counters(customer.member_code) == (1, 0)
        assert StampEvent.objects.count() == 1
        assert "receiver failed" in caplog.text

    def test_failed_operation_sends_nothing(self, customer, django_capture_on_commit_callbacks):
        received, disconnect = self._listen(signals.stamp_added)
        try:
            with django_capture_on_commit_callbacks(execute=True):
                with patch.object(AuditLog, "append", side_effect=DatabaseError("boom")):
                    with pytest.raises(PersistenceError):
                        LedgerService.add_stamp(customer.member_code)
        finally:
            disconnect()

        assert received == []


# ═══════════════════════════════════════════════════════════════════
# Card reader
# ═══════════════════════════════════════════════════════════════════


class TestCard:
    def test_fresh_card(self, customer):
        card = LedgerService.get_card(customer.member_code)

        assert card.member_code == customer.member_code
        assert card.name == "Asha Rao"
        assert card.phone == "9876543210"
        assert (card.current_stamps, card.total_rewards) == (0, 0)
        assert card.stamp_history == (None,) * 12
        assert card.reward_issued_at is None

    def test_history_slots_follow_current_card(self, seed_account):
        account = seed_account(stamps=0, rewards=1)
        code = account.customer.member_code
        times = [NOW + dt.timedelta(hours=h) for h in range(3)]
        for ts in times:
            LedgerService.add_stamp(code, now=ts)

        card = LedgerService.get_card(code)

        assert card.stamp_history[:3] == tuple(times)
        assert card.stamp_history[3:] == (None,) * 9
        assert card.reward_issued_at is not None

    def test_as_dict(self, customer):
        LedgerService.add_stamp(customer.member_code)
        data = LedgerService.get_card(customer.member_code).as_dict()

        assert data["memberCode"] == customer.member_code
        assert data["currentStamps"] == 1
        assert data["stampHistory"][0] == NOW.isoformat()
        assert data["stampHistory"][1:] == [None] * 11
        assert data["rewardIssuedAt"] is None

    def test_unknown_card(self, db):
        with pytest.raises(NotFoundError):
            LedgerService.get_card("CR0404")

    def test_list_accounts_ordered(self, register):
        second = register("Bala")
        first = register("Chitra")
        LedgerService.add_stamp(first.member_code)

        cards = LedgerService.list_accounts()

        assert [c.member_code for c in cards] == sorted([first.member_code, second.member_code])
        by_code = {c.member_code: c for c in cards}
        assert by_code[first.member_code].current_stamps == 1

    def test_get_events_most_recent_first(self, customer):
        for hours in range(3):
            LedgerService.add_stamp(customer.member_code, now=NOW + dt.timedelta(hours=hours))

        events = LedgerService.get_events(customer.member_code)

        assert [e.stamp_index for e in events] == [3, 2, 1]
