"""
Stampbook signals - public event API.

Ledger signals are sent only after the unit of work commits.

Emitted signals:
- customer_registered: services.customer.register()
- stamp_added: LedgerService.add_stamp()
- stamp_removed: LedgerService.remove_stamp() (not sent for the (0, 0) no-op)
- reward_issued: add_stamp() completed a card
- reward_retracted: remove_stamp() reversed a completed card
"""

from django.dispatch import Signal

customer_registered = Signal()  # sender=Customer, customer=Customer
stamp_added = Signal()  # sender=LoyaltyAccount, account=..., result=LedgerResult
stamp_removed = Signal()  # sender=LoyaltyAccount, account=..., result=LedgerResult
reward_issued = Signal()  # sender=LoyaltyAccount, account=..., reward=RewardRecord
reward_retracted = Signal()  # sender=LoyaltyAccount, account=..., reward=RewardRecord
