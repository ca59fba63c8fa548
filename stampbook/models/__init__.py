"""Stampbook models.

- Customer: registered member (member_code is the card identifier)
- LoyaltyAccount: stamp/reward counters, one per customer
- StampEvent: audit trail, one row per granted stamp
- RewardRecord: one row per completed card
"""

from stampbook.models.customer import Customer
from stampbook.models.account import LoyaltyAccount
from stampbook.models.stamp_event import StampEvent
from stampbook.models.reward import RewardRecord

__all__ = [
    "Customer",
    "LoyaltyAccount",
    # Ledger history
    "StampEvent",
    "RewardRecord",
]
