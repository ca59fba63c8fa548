# Initial stampbook schema

import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Customer",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "member_code",
                    models.CharField(
                        help_text="Card identifier (e.g. CR0001)",
                        max_length=20,
                        unique=True,
                        verbose_name="member code",
                    ),
                ),
                ("name", models.CharField(max_length=200, verbose_name="name")),
                ("phone", models.CharField(max_length=20, unique=True, verbose_name="phone")),
                ("dob", models.DateField(blank=True, null=True, verbose_name="date of birth")),
                (
                    "created_at",
                    models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="created at"),
                ),
            ],
            options={
                "verbose_name": "customer",
                "verbose_name_plural": "customers",
                "db_table": "stampbook_customer",
                "ordering": ["member_code"],
            },
        ),
        migrations.CreateModel(
            name="LoyaltyAccount",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "current_stamps",
                    models.PositiveSmallIntegerField(
                        default=0,
                        help_text="Stamps on the current card (0-11)",
                        verbose_name="current stamps",
                    ),
                ),
                (
                    "total_rewards",
                    models.PositiveIntegerField(
                        default=0,
                        help_text="Completed cards",
                        verbose_name="total rewards",
                    ),
                ),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="updated at")),
                (
                    "customer",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="loyalty_account",
                        to="stampbook.customer",
                        verbose_name="customer",
                    ),
                ),
            ],
            options={
                "verbose_name": "loyalty account",
                "verbose_name_plural": "loyalty accounts",
                "db_table": "stampbook_loyalty_account",
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("current_stamps__gte", 0), ("current_stamps__lt", 12)),
                        name="stampbook_account_stamps_range",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("total_rewards__gte", 0)),
                        name="stampbook_account_rewards_non_negative",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="StampEvent",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("stamp_index", models.PositiveSmallIntegerField(verbose_name="stamp index")),
                (
                    "occurred_at",
                    models.DateTimeField(default=django.utils.timezone.now, verbose_name="occurred at"),
                ),
                (
                    "account",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="stamp_events",
                        to="stampbook.loyaltyaccount",
                        verbose_name="account",
                    ),
                ),
            ],
            options={
                "verbose_name": "stamp event",
                "verbose_name_plural": "stamp events",
                "db_table": "stampbook_stamp_event",
                "ordering": ["-occurred_at", "-id"],
                "indexes": [
                    models.Index(
                        fields=["account", "stamp_index", "-occurred_at"],
                        name="stampbook_event_recent_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("stamp_index__gte", 1), ("stamp_index__lte", 12)),
                        name="stampbook_stamp_index_range",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="RewardRecord",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "issued_at",
                    models.DateTimeField(default=django.utils.timezone.now, verbose_name="issued at"),
                ),
                (
                    "account",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="reward_records",
                        to="stampbook.loyaltyaccount",
                        verbose_name="account",
                    ),
                ),
            ],
            options={
                "verbose_name": "reward",
                "verbose_name_plural": "rewards",
                "db_table": "stampbook_reward_record",
                "ordering": ["-issued_at", "-id"],
                "indexes": [
                    models.Index(
                        fields=["account", "-issued_at"],
                        name="stampbook_reward_recent_idx",
                    ),
                ],
            },
        ),
    ]
