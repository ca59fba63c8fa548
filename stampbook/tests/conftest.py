"""Pytest fixtures for Stampbook tests."""

import datetime as dt
import itertools

import pytest

from stampbook.conf import STAMPS_PER_REWARD
from stampbook.models import LoyaltyAccount, RewardRecord, StampEvent
from stampbook.service import LedgerService
from stampbook.services import customer as customer_service

UTC = dt.timezone.utc

# An ordinary business day (Tuesday 10 June 2025, 15:30 IST)
NOW = dt.datetime(2025, 6, 10, 10, 0, tzinfo=UTC)

_phones = itertools.count(9000000001)


@pytest.fixture(autouse=True)
def fixed_clock(monkeypatch):
    """Pin the ledger clock so tests never land on a blackout date."""
    monkeypatch.setattr(LedgerService, "clock", lambda: NOW)
    return NOW


@pytest.fixture
def register(db):
    """Factory: register a member with a unique phone."""

    def _register(name="Asha Rao", phone=None, dob=None):
        return customer_service.register(name, phone or str(next(_phones)), dob=dob)

    return _register


@pytest.fixture
def customer(register):
    return register("Asha Rao", "9876543210")


@pytest.fixture
def seed_account(register):
    """
    Factory: member whose counters are (stamps, rewards) with consistent history.

    Seeded events/rewards are timestamped before NOW.
    """

    def _seed(stamps=0, rewards=0, name="Seeded Member"):
        cust = register(name)
        account = LoyaltyAccount.objects.get(customer=cust)

        ts = NOW - dt.timedelta(days=30)
        events = []
        for _ in range(rewards):
            for index in range(1, STAMPS_PER_REWARD + 1):
                events.append(StampEvent(account=account, stamp_index=index, occurred_at=ts))
                ts += dt.timedelta(minutes=1)
            RewardRecord.objects.create(account=account, issued_at=ts)
        for index in range(1, stamps + 1):
            events.append(StampEvent(account=account, stamp_index=index, occurred_at=ts))
            ts += dt.timedelta(minutes=1)
        StampEvent.objects.bulk_create(events)

        LoyaltyAccount.objects.filter(pk=account.pk).update(
            current_stamps=stamps,
            total_rewards=rewards,
        )
        account.refresh_from_db()
        return account

    return _seed


def counters(member_code: str) -> tuple[int, int]:
    account = LoyaltyAccount.objects.get(customer__member_code=member_code)
    return account.current_stamps, account.total_rewards
