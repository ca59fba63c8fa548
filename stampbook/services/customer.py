"""Customer service - registration and lookup.

Registration creates the Customer and its (0, 0) LoyaltyAccount in one
transaction, so the ledger can assume every member has an account.
"""

import datetime as dt
import logging
import uuid

from django.db import IntegrityError, transaction

from stampbook.conf import stampbook_settings
from stampbook.exceptions import ValidationError
from stampbook.models import Customer, LoyaltyAccount
from stampbook.signals import customer_registered

logger = logging.getLogger(__name__)


def format_member_code(number: int) -> str:
    """CR + zero-padded number (CR0007)."""
    prefix = stampbook_settings.MEMBER_CODE_PREFIX
    digits = stampbook_settings.MEMBER_CODE_DIGITS
    return f"{prefix}{number:0{digits}d}"


def get(member_code: str) -> Customer | None:
    """Get customer by member code."""
    try:
        return Customer.objects.get(member_code=member_code)
    except Customer.DoesNotExist:
        return None


def get_by_phone(phone: str) -> Customer | None:
    """Get customer by phone (exact match)."""
    phone = (phone or "").strip()
    if not phone:
        return None
    try:
        return Customer.objects.get(phone=phone)
    except Customer.DoesNotExist:
        return None


def register(name: str, phone: str, dob: dt.date | None = None) -> Customer:
    """
    Register a member and open their stamp card.

    The member code is derived from the row id, so concurrent registrations
    never race for the same code.

    Raises:
        ValidationError: Missing name/phone, or phone already registered
    """
    name = (name or "").strip()
    phone = (phone or "").strip()
    if not name or not phone:
        raise ValidationError(message="Name & phone required")

    if Customer.objects.filter(phone=phone).exists():
        raise ValidationError("DUPLICATE_PHONE", phone=phone)

    try:
        with transaction.atomic():
            customer = Customer.objects.create(
                member_code=f"PENDING-{uuid.uuid4().hex[:12]}",
                name=name,
                phone=phone,
                dob=dob,
            )
            customer.member_code = format_member_code(customer.pk)
            customer.save(update_fields=["member_code"])

            LoyaltyAccount.objects.create(customer=customer)
    except IntegrityError:
        # Lost a race on the unique phone
        if Customer.objects.filter(phone=phone).exists():
            raise ValidationError("DUPLICATE_PHONE", phone=phone)
        raise

    logger.info("Registered member %s", customer.member_code)
    customer_registered.send(sender=Customer, customer=customer)
    return customer
