"""Stampbook exceptions."""


class StampbookError(Exception):
    """
    Structured exception for ledger operations.

    Usage:
        try:
            LedgerService.add_stamp("CR0001")
        except StampbookError as e:
            if e.retryable:
                schedule_retry()
            elif e.code == "ACCOUNT_NOT_FOUND":
                handle_not_found()
    """

    default_code = "STAMPBOOK_ERROR"
    retryable = False

    _default_messages = {
        "STAMPBOOK_ERROR": "Loyalty ledger error",
        "INVALID_REQUEST": "Invalid ledger request",
        "DUPLICATE_PHONE": "Phone number already registered",
        "ACCOUNT_NOT_FOUND": "Loyalty account not found",
        "BLACKOUT_DATE": "Stamp operations are not available today",
        "LOCK_CONFLICT": "Account is busy, try again",
        "PERSISTENCE_FAILURE": "Storage failure while updating the ledger",
        "LEDGER_INTEGRITY": "Ledger history does not match account counters",
    }

    def __init__(self, code: str | None = None, message: str | None = None, **data):
        self.code = code or self.default_code
        self.message = message or self._default_messages.get(self.code, self.code)
        self.data = data
        super().__init__(f"[{self.code}] {self.message}")

    def as_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "retryable": self.retryable,
            "data": self.data,
        }


class ValidationError(StampbookError):
    """Missing or malformed input. Caller's fault, never retried."""

    default_code = "INVALID_REQUEST"


class NotFoundError(StampbookError):
    """No customer/loyalty account for the given member code."""

    default_code = "ACCOUNT_NOT_FOUND"


class BlackoutError(StampbookError):
    """Holiday gate refusal. Carries the reason key and human message."""

    default_code = "BLACKOUT_DATE"

    def __init__(self, reason_key: str, message: str, **data):
        self.reason_key = reason_key
        super().__init__(self.default_code, message, reason_key=reason_key, **data)


class ConflictError(StampbookError):
    """Lock or contention timeout. Safe for the caller to retry."""

    default_code = "LOCK_CONFLICT"
    retryable = True


class PersistenceError(StampbookError):
    """Unexpected storage failure. Fatal for the current attempt."""

    default_code = "PERSISTENCE_FAILURE"

    def __init__(self, code: str | None = None, message: str | None = None, retryable: bool = False, **data):
        super().__init__(code, message, **data)
        self.retryable = retryable


class LedgerIntegrityError(PersistenceError):
    """Audit trail or reward rows missing for the counters being reversed."""

    default_code = "LEDGER_INTEGRITY"
