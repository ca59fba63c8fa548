"""Customer model.

Registration owns this row. The ledger only locks it, always before the
loyalty account, so that every mutation acquires locks in the same order.
"""

from django.db import models
from django.utils.translation import gettext_lazy as _


class Customer(models.Model):
    """
    Registered loyalty member.

    member_code is the external identifier printed on the card (e.g. CR0007).
    """

    member_code = models.CharField(
        _("member code"),
        max_length=20,
        unique=True,
        help_text=_("Card identifier (e.g. CR0001)"),
    )
    name = models.CharField(_("name"), max_length=200)
    phone = models.CharField(_("phone"), max_length=20, unique=True)
    dob = models.DateField(_("date of birth"), null=True, blank=True)

    created_at = models.DateTimeField(_("created at"), auto_now_add=True, db_index=True)

    class Meta:
        db_table = "stampbook_customer"
        verbose_name = _("customer")
        verbose_name_plural = _("customers")
        ordering = ["member_code"]

    def __str__(self):
        return f"{self.name} ({self.member_code})"
