"""Management command to verify ledger counters against their history."""

from django.core.management.base import BaseCommand, CommandError
from django.db.models import Count

from stampbook.conf import STAMPS_PER_REWARD
from stampbook.models import LoyaltyAccount


class Command(BaseCommand):
    help = (
        "Check that every account satisfies "
        "events == 12 * total_rewards + current_stamps and "
        "rewards == total_rewards"
    )

    def add_arguments(self, parser):
        parser.add_argument(
            "--member",
            default=None,
            help="Only check this member code",
        )

    def handle(self, *args, **options):
        accounts = LoyaltyAccount.objects.select_related("customer").annotate(
            event_count=Count("stamp_events", distinct=True),
            reward_count=Count("reward_records", distinct=True),
        ).order_by("customer__member_code")

        if options["member"]:
            accounts = accounts.filter(customer__member_code=options["member"])

        checked = 0
        drifted = 0
        for account in accounts:
            checked += 1
            expected_events = STAMPS_PER_REWARD * account.total_rewards + account.current_stamps
            if (
                account.event_count == expected_events
                and account.reward_count == account.total_rewards
            ):
                continue

            drifted += 1
            self.stdout.write(
                self.style.WARNING(
                    f"{account.customer.member_code}: "
                    f"stamps={account.current_stamps} rewards={account.total_rewards} "
                    f"events={account.event_count} (expected {expected_events}) "
                    f"reward_rows={account.reward_count}"
                )
            )

        if drifted:
            raise CommandError(f"{drifted} of {checked} accounts drifted from their history.")

        self.stdout.write(self.style.SUCCESS(f"Checked {checked} accounts, no drift."))
