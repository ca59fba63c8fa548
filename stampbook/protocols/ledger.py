"""Ledger protocols - request/response shapes of the stamp ledger."""

import datetime as dt
from dataclasses import dataclass, field


OPERATION_ADD = "add"
OPERATION_REMOVE = "remove"
OPERATIONS = (OPERATION_ADD, OPERATION_REMOVE)


def _iso(value: dt.datetime | None) -> str | None:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class LedgerRequest:
    """One ledger mutation: {accountIdentifier, operation}."""

    account_identifier: str
    operation: str  # "add" | "remove"


@dataclass(frozen=True)
class LedgerResult:
    """Account state after a committed ledger operation."""

    member_code: str
    operation: str
    current_stamps: int
    total_rewards: int
    reward_issued: bool = False
    reward_issued_at: dt.datetime | None = None
    changed: bool = True  # False only for RemoveStamp at (0, 0)

    def as_dict(self) -> dict:
        data = {
            "currentStamps": self.current_stamps,
            "totalRewards": self.total_rewards,
            "rewardIssued": self.reward_issued,
        }
        if self.reward_issued_at is not None:
            data["rewardRecord"] = {"issuedAt": _iso(self.reward_issued_at)}
        return data


@dataclass(frozen=True)
class CardSnapshot:
    """Read-only view of a member's stamp card."""

    member_code: str
    name: str
    phone: str
    current_stamps: int
    total_rewards: int
    # 12 slots; slot i holds the timestamp of stamp i+1 on the current card
    stamp_history: tuple[dt.datetime | None, ...] = field(default_factory=tuple)
    reward_issued_at: dt.datetime | None = None

    def as_dict(self) -> dict:
        return {
            "memberCode": self.member_code,
            "name": self.name,
            "phone": self.phone,
            "currentStamps": self.current_stamps,
            "totalRewards": self.total_rewards,
            "stampHistory": [_iso(ts) for ts in self.stamp_history],
            "rewardIssuedAt": _iso(self.reward_issued_at),
        }
