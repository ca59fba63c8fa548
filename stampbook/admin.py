"""Stampbook admin.

Counters are read-only here: stamps move only through LedgerService, which
the "add stamp" / "undo last stamp" actions call.
"""

from django.contrib import admin, messages
from django.utils.html import format_html

from stampbook.conf import STAMPS_PER_REWARD
from stampbook.exceptions import StampbookError
from stampbook.models import Customer, LoyaltyAccount, RewardRecord, StampEvent
from stampbook.service import LedgerService


# ===========================================
# Customer Admin
# ===========================================


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ["member_code", "name", "phone", "dob", "created_at"]
    search_fields = ["member_code", "name", "phone"]
    readonly_fields = ["member_code", "created_at"]
    ordering = ["member_code"]


# ===========================================
# Inline Classes (must be defined before LoyaltyAccountAdmin)
# ===========================================


class StampEventInline(admin.TabularInline):
    model = StampEvent
    extra = 0
    readonly_fields = ["stamp_index", "occurred_at"]
    ordering = ["-occurred_at", "-id"]

    def has_add_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class RewardRecordInline(admin.TabularInline):
    model = RewardRecord
    extra = 0
    readonly_fields = ["issued_at"]
    ordering = ["-issued_at", "-id"]

    def has_add_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


# ===========================================
# LoyaltyAccount Admin
# ===========================================


@admin.register(LoyaltyAccount)
class LoyaltyAccountAdmin(admin.ModelAdmin):
    list_display = [
        "member_code",
        "customer_name",
        "stamps_progress",
        "total_rewards",
        "updated_at",
    ]
    search_fields = ["customer__member_code", "customer__name", "customer__phone"]
    readonly_fields = ["customer", "current_stamps", "total_rewards", "updated_at"]
    inlines = [StampEventInline, RewardRecordInline]
    actions = ["add_stamp", "undo_last_stamp"]

    def get_queryset(self, request):
        return super().get_queryset(request).select_related("customer")

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        # The change form would save counters read without a row lock
        return False

    @admin.display(description="Member code", ordering="customer__member_code")
    def member_code(self, obj):
        return obj.customer.member_code

    @admin.display(description="Name", ordering="customer__name")
    def customer_name(self, obj):
        return obj.customer.name

    @admin.display(description="Stamps")
    def stamps_progress(self, obj):
        return format_html("{}/{}", obj.current_stamps, STAMPS_PER_REWARD)

    @admin.action(description="Add stamp", permissions=["view"])
    def add_stamp(self, request, queryset):
        self._run_ledger(request, queryset, LedgerService.add_stamp)

    @admin.action(description="Undo last stamp", permissions=["view"])
    def undo_last_stamp(self, request, queryset):
        self._run_ledger(request, queryset, LedgerService.remove_stamp)

    def _run_ledger(self, request, queryset, operation):
        for account in queryset:
            code = account.customer.member_code
            try:
                result = operation(code)
            except StampbookError as exc:
                self.message_user(request, f"{code}: {exc.message}", messages.ERROR)
                continue

            note = " (reward issued)" if result.reward_issued else ""
            self.message_user(
                request,
                f"{code}: {result.current_stamps}/{STAMPS_PER_REWARD}, "
                f"{result.total_rewards} rewards{note}",
                messages.SUCCESS,
            )


# ===========================================
# History Admin (read-only)
# ===========================================


@admin.register(StampEvent)
class StampEventAdmin(admin.ModelAdmin):
    list_display = ["occurred_at", "member_code", "stamp_index"]
    list_filter = ["stamp_index"]
    search_fields = ["account__customer__member_code"]
    readonly_fields = ["account", "stamp_index", "occurred_at"]
    date_hierarchy = "occurred_at"

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    @admin.display(description="Member code")
    def member_code(self, obj):
        return obj.account.customer.member_code
