"""Loyalty account model - stamp and reward counters."""

from django.db import models
from django.db.models import Q
from django.utils.translation import gettext_lazy as _

from stampbook.conf import STAMPS_PER_REWARD


class LoyaltyAccount(models.Model):
    """
    Customer stamp card.

    One account per customer, created with (0, 0) at registration.
    Only LedgerService mutates the counters, and only while holding the
    row lock taken by AccountLocator.

    Derived invariants (post-commit):
        total_rewards == count(RewardRecord)
        count(StampEvent) == 12 * total_rewards + current_stamps
    """

    customer = models.OneToOneField(
        "stampbook.Customer",
        on_delete=models.PROTECT,
        related_name="loyalty_account",
        verbose_name=_("customer"),
    )

    current_stamps = models.PositiveSmallIntegerField(
        _("current stamps"),
        default=0,
        help_text=_("Stamps on the current card (0-11)"),
    )
    total_rewards = models.PositiveIntegerField(
        _("total rewards"),
        default=0,
        help_text=_("Completed cards"),
    )

    updated_at = models.DateTimeField(_("updated at"), auto_now=True)

    class Meta:
        db_table = "stampbook_loyalty_account"
        verbose_name = _("loyalty account")
        verbose_name_plural = _("loyalty accounts")
        constraints = [
            models.CheckConstraint(
                condition=Q(current_stamps__gte=0) & Q(current_stamps__lt=STAMPS_PER_REWARD),
                name="stampbook_account_stamps_range",
            ),
            models.CheckConstraint(
                condition=Q(total_rewards__gte=0),
                name="stampbook_account_rewards_non_negative",
            ),
        ]

    def __str__(self):
        return f"{self.customer.member_code}: {self.current_stamps}/{STAMPS_PER_REWARD} | {self.total_rewards} rewards"

    @property
    def stamps_remaining(self) -> int:
        """Stamps left to complete the current card."""
        return STAMPS_PER_REWARD - self.current_stamps

    @property
    def expected_event_count(self) -> int:
        return STAMPS_PER_REWARD * self.total_rewards + self.current_stamps
