"""RewardRecord model - one row per completed stamp card."""

from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


class RewardRecord(models.Model):
    """Reward unlocked by a completed card. Deleted only when the 12th stamp is undone."""

    account = models.ForeignKey(
        "stampbook.LoyaltyAccount",
        on_delete=models.PROTECT,
        related_name="reward_records",
        verbose_name=_("account"),
    )
    issued_at = models.DateTimeField(_("issued at"), default=timezone.now)

    class Meta:
        db_table = "stampbook_reward_record"
        verbose_name = _("reward")
        verbose_name_plural = _("rewards")
        ordering = ["-issued_at", "-id"]
        indexes = [
            models.Index(
                fields=["account", "-issued_at"],
                name="stampbook_reward_recent_idx",
            ),
        ]

    def __str__(self):
        return f"Reward {self.account_id} @ {self.issued_at:%Y-%m-%d %H:%M}"
