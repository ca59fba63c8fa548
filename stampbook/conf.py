"""
Stampbook configuration.

Usage in settings.py:
    STAMPBOOK = {
        "BUSINESS_UTC_OFFSET_MINUTES": 330,
        "LOCK_TIMEOUT_MS": 5000,
    }
"""

from dataclasses import dataclass
from typing import Any

from django.conf import settings

# Stamps per reward cycle. The 12th stamp completes the card.
STAMPS_PER_REWARD = 12


@dataclass
class StampbookSettings:
    """Stampbook configuration settings."""

    # Business-local calendar for the holiday gate (fixed offset, UTC+5:30)
    BUSINESS_UTC_OFFSET_MINUTES: int = 330

    # Row lock wait before reporting a conflict (PostgreSQL only)
    LOCK_TIMEOUT_MS: int = 5000

    # Member codes: CR0001, CR0002, ...
    MEMBER_CODE_PREFIX: str = "CR"
    MEMBER_CODE_DIGITS: int = 4


def get_stampbook_settings() -> StampbookSettings:
    """Load settings from Django settings."""
    user_settings: dict[str, Any] = getattr(settings, "STAMPBOOK", {})
    return StampbookSettings(**user_settings)


class _LazySettings:
    """Lazy proxy that re-reads settings on every attribute access."""

    def __getattr__(self, name):
        return getattr(get_stampbook_settings(), name)


stampbook_settings = _LazySettings()
