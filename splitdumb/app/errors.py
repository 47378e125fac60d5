"""
errors.py — AppError base class and error code registry.

Every error returned by the Splitdumb API must use a code defined here.
Do not raise strings or generic exceptions from service or route code.

Rules:
  - Error codes are a versioned contract. They do not change once published.
  - Error messages are human-readable prose. They may be improved at any time.
  - Only LOCK_CONTENTION is retryable. Everything else is a final answer.
"""

from __future__ import annotations


class AppError(Exception):

    def __init__(
            self,
            code: str,
            message: str,
            http_status: int,
            field: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code        = code
        self.message     = message
        self.http_status = http_status
        self.field       = field  # which request field caused the error

    @property
    def retryable(self) -> bool:
        return self.code == ErrorCode.LOCK_CONTENTION

    def to_dict(self) -> dict:
        payload = {
            "code":    self.code,
            "message": self.message,
        }
        if self.field is not None:
            payload["field"] = self.field
        return {"error": payload}

    def __repr__(self) -> str:
        return (
            f"AppError(code={self.code!r}, "
            f"http_status={self.http_status}, "
            f"message={self.message!r})"
        )


# ── Error Code Registry ────────────────────────────────────────────────────
#
# Organised by category. HTTP status is indicated in the comment.
#
# IMPORTANT: these are the string values sent in the API response.
# Do not rename them without a major version bump.
# ──────────────────────────────────────────────────────────────────────────

class ErrorCode:

    # ── Schema / Input Errors (400) ────────────────────────────────────────
    MISSING_FIELD              = "MISSING_FIELD"
    INVALID_FIELD              = "INVALID_FIELD"
    INVALID_AMOUNT             = "INVALID_AMOUNT"         # <= 0, too large, NaN/inf, non-numeric, > 2 dp
    EMPTY_PARTICIPANTS         = "EMPTY_PARTICIPANTS"

    # ── Not Found Errors (404) ─────────────────────────────────────────────
    NOT_FOUND                  = "NOT_FOUND"              # group / expense / member id

    # ── Conflict Errors (409) ──────────────────────────────────────────────
    DUPLICATE_MEMBER           = "DUPLICATE_MEMBER"
    MEMBER_IN_USE              = "MEMBER_IN_USE"

    # ── Business Rule Violations (422) ────────────────────────────────────
    INVALID_MEMBER             = "INVALID_MEMBER"         # party not in the group
    SELF_SETTLEMENT            = "SELF_SETTLEMENT"

    # ── Contention (503, retryable) ───────────────────────────────────────
    LOCK_CONTENTION            = "LOCK_CONTENTION"

    # ── System Errors (500) ────────────────────────────────────────────────
    # ROUNDING_OVERFLOW and LEDGER_IMBALANCE are unreachable unless the
    # share/balance arithmetic has a bug. They are never tolerated.
    ROUNDING_OVERFLOW          = "ROUNDING_OVERFLOW"
    LEDGER_IMBALANCE           = "LEDGER_IMBALANCE"
    INTERNAL_ERROR             = "INTERNAL_ERROR"


# ── Warning Code Registry ──────────────────────────────────────────────────
#
# Warnings are returned alongside a 2xx response in the `warnings` array.
# They do not block the request.
# ──────────────────────────────────────────────────────────────────────────

class WarningCode:

    # Settlement amount exceeds what the sender currently owes the receiver.
    # Still recorded; the ledger trusts the caller's amount.
    OVERPAYMENT = "OVERPAYMENT"
