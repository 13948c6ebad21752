# ============================================================
# sppbilling/core/errors.py
#
# Domain errors raised by the services. Each one knows its
# error kind and the HTTP status the API layer answers with.
# main.py turns them into:
#   { "success": false, "message": "...", "error": "<kind>" }
#
# Ledger rejections (InvalidAmount, OverpaymentRejected) are
# always raised BEFORE anything is written, so the billing
# record is left exactly as it was.
# ============================================================


class SPPError(Exception):
    """Base class for every error the services raise on purpose."""

    error = "SPPError"
    status_code = 400

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context


class ValidationError(SPPError):
    """Missing required field, wrong type, bad reference shape."""
    error = "ValidationError"
    status_code = 422


class InvalidAmount(SPPError):
    """Amount is zero or negative."""
    error = "InvalidAmount"
    status_code = 422


class OverpaymentRejected(SPPError):
    """Amount is larger than what the student still owes."""
    error = "OverpaymentRejected"
    status_code = 409


class NotFound(SPPError):
    error = "NotFound"
    status_code = 404


class Conflict(SPPError):
    """The change would break a financial record or a uniqueness rule."""
    error = "Conflict"
    status_code = 409
