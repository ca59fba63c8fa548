"""
Stamp ledger JSON endpoints.

Thin adapter over LedgerService. Authorization (who may add or undo a
stamp) is applied by the host project around these views.

Routes:
    POST add-stamp/              {"memberCode": "CR0001"}
    POST remove-stamp/           {"memberCode": "CR0001"}
    GET  card/<member_code>/
"""

from __future__ import annotations

import json
import logging

from django.http import JsonResponse
from django.utils.decorators import method_decorator
from django.views import View
from django.views.decorators.csrf import csrf_exempt

from stampbook.exceptions import (
    BlackoutError,
    ConflictError,
    NotFoundError,
    StampbookError,
    ValidationError,
)
from stampbook.protocols import OPERATION_ADD, OPERATION_REMOVE
from stampbook.service import LedgerService

logger = logging.getLogger("stampbook.views")


_STATUS_BY_ERROR = (
    (ValidationError, 400),
    (BlackoutError, 403),
    (NotFoundError, 404),
    (ConflictError, 409),
)


def error_response(exc: StampbookError) -> JsonResponse:
    """Map a ledger error onto an HTTP response."""
    status = next(
        (code for error_class, code in _STATUS_BY_ERROR if isinstance(exc, error_class)),
        500,
    )
    body = {"message": exc.message, "code": exc.code, "retryable": exc.retryable}
    if isinstance(exc, BlackoutError):
        body["reason"] = exc.reason_key

    response = JsonResponse(body, status=status)
    if exc.retryable:
        response["Retry-After"] = "1"
    return response


@method_decorator(csrf_exempt, name="dispatch")
class StampView(View):
    """POST endpoint applying one ledger operation to a member's card."""

    operation: str = OPERATION_ADD

    def post(self, request):
        try:
            data = json.loads(request.body or b"{}")
        except (json.JSONDecodeError, ValueError):
            return JsonResponse({"message": "Invalid JSON"}, status=400)
        if not isinstance(data, dict):
            return JsonResponse({"message": "Invalid JSON"}, status=400)

        try:
            result = LedgerService.apply(
                {"accountIdentifier": data.get("memberCode"), "operation": self.operation}
            )
            card = LedgerService.get_card(result.member_code)
        except StampbookError as exc:
            return error_response(exc)
        except Exception:
            logger.exception("Stamp %s failed", self.operation)
            return JsonResponse({"message": "Server error"}, status=500)

        return JsonResponse(
            {
                "message": self._message(result),
                "result": result.as_dict(),
                "card": card.as_dict(),
            }
        )

    def _message(self, result) -> str:
        if self.operation == OPERATION_ADD:
            return "Stamp updated"
        return "Stamp undone" if result.changed else "Nothing to undo"


class CardView(View):
    """GET endpoint returning a member's card."""

    def get(self, request, member_code: str):
        try:
            card = LedgerService.get_card(member_code)
        except StampbookError as exc:
            return error_response(exc)

        return JsonResponse({"ok": True, "card": card.as_dict()})


add_stamp = StampView.as_view(operation=OPERATION_ADD)
remove_stamp = StampView.as_view(operation=OPERATION_REMOVE)
card = CardView.as_view()
