"""
Account locator - resolves a member code and locks the account rows.

Lock order is fixed system-wide: customer row first, then the loyalty
account row. Any code path that locks both must follow it.
"""

from dataclasses import dataclass

from stampbook.exceptions import NotFoundError
from stampbook.models import Customer, LoyaltyAccount


@dataclass
class AccountHandle:
    """Locked customer + account pair, valid until the unit of work ends."""

    customer: Customer
    account: LoyaltyAccount

    @property
    def member_code(self) -> str:
        return self.customer.member_code


class AccountLocator:
    """Row-lock acquisition for ledger operations."""

    @classmethod
    def lock(cls, uow, member_code: str) -> AccountHandle:
        """
        Lock the customer and loyalty account rows for `member_code`.

        MUST be called inside an active LedgerUnitOfWork; the locks are held
        until it commits or rolls back.

        Raises:
            NotFoundError: If the customer or its loyalty account does not exist
            RuntimeError: If no unit of work is active
        """
        if uow is None or not uow.active:
            raise RuntimeError("AccountLocator.lock() requires an active LedgerUnitOfWork")

        try:
            customer = (
                Customer.objects.using(uow.using)
                .select_for_update()
                .get(member_code=member_code)
            )
        except Customer.DoesNotExist:
            raise NotFoundError(member_code=member_code)

        try:
            account = (
                LoyaltyAccount.objects.using(uow.using)
                .select_for_update()
                .get(customer=customer)
            )
        except LoyaltyAccount.DoesNotExist:
            raise NotFoundError(
                message="Customer has no loyalty account",
                member_code=member_code,
            )

        account.customer = customer
        return AccountHandle(customer=customer, account=account)
