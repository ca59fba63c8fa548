"""Stampbook services.

- customer: member registration and lookup
- unit_of_work: LedgerUnitOfWork, the transaction boundary of a ledger operation
- locator: AccountLocator (customer row, then account row)
- audit: AuditLog (StampEvent history)
- rewards: RewardIssuer (RewardRecord per completed card)

The ledger engine itself is stampbook.service.LedgerService.
"""

from stampbook.services import audit
from stampbook.services import customer
from stampbook.services import locator
from stampbook.services import rewards
from stampbook.services import unit_of_work

__all__ = ["audit", "customer", "locator", "rewards", "unit_of_work"]
