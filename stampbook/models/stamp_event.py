"""
StampEvent model - audit trail of granted stamps.

One row per stamp. The primary key is the insertion sequence, used to break
ties between events sharing the same occurred_at.
"""

from django.db import models
from django.db.models import Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from stampbook.conf import STAMPS_PER_REWARD


class StampEvent(models.Model):
    """
    Immutable record of one granted stamp.

    stamp_index 12 marks the stamp that completed a card. Rows are
    append-only; RemoveStamp may delete only the most recent one.
    """

    account = models.ForeignKey(
        "stampbook.LoyaltyAccount",
        on_delete=models.PROTECT,
        related_name="stamp_events",
        verbose_name=_("account"),
    )
    stamp_index = models.PositiveSmallIntegerField(_("stamp index"))
    occurred_at = models.DateTimeField(_("occurred at"), default=timezone.now)

    class Meta:
        db_table = "stampbook_stamp_event"
        verbose_name = _("stamp event")
        verbose_name_plural = _("stamp events")
        ordering = ["-occurred_at", "-id"]
        indexes = [
            models.Index(
                fields=["account", "stamp_index", "-occurred_at"],
                name="stampbook_event_recent_idx",
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(stamp_index__gte=1) & Q(stamp_index__lte=STAMPS_PER_REWARD),
                name="stampbook_stamp_index_range",
            ),
        ]

    def __str__(self):
        return f"#{self.stamp_index} @ {self.occurred_at:%Y-%m-%d %H:%M}"
