"""Domain errors raised by the service layer.

Services never build HTTP responses; ``fintrack.main`` maps these to status
codes. A missing record and a record owned by another user raise the same
``NotFoundError`` so callers cannot probe for other users' data.
"""

from __future__ import annotations

from typing import Any, Iterable


class DomainError(Exception):
    status_code: int = 400
    code: str = "domain_error"

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.detail, "code": self.code}


class NotFoundError(DomainError):
    status_code = 404
    code = "not_found"


class AccountNotFoundError(NotFoundError):
    code = "account_not_found"

    def __init__(self, account_id: int | None = None) -> None:
        super().__init__("Account not found")
        self.account_id = account_id


class TransactionNotFoundError(NotFoundError):
    code = "transaction_not_found"

    def __init__(self, transaction_id: int | None = None) -> None:
        super().__init__("Transaction not found")
        self.transaction_id = transaction_id


class EditWindowExpiredError(DomainError):
    status_code = 403
    code = "edit_window_expired"

    def __init__(self, action: str, window_hours: int) -> None:
        super().__init__(f"Transaction can only be {action} within {window_hours} hours of creation")
        self.action = action
        self.window_hours = window_hours


class ConflictError(DomainError):
    status_code = 409
    code = "conflict"


class DomainValidationError(DomainError):
    status_code = 422
    code = "validation_error"


class PartialFailureError(DomainError):
    """A multi-step balance operation failed and could not be undone.

    Balances of ``account_ids`` may have drifted; clients should trigger a
    recalibration of those accounts.
    """

    status_code = 500
    code = "partial_failure"

    def __init__(self, account_ids: Iterable[int], detail: str | None = None) -> None:
        super().__init__(detail or "Balance update failed partway; recalibration recommended")
        self.account_ids = sorted({int(a) for a in account_ids if a is not None})

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        body["recalibration_recommended"] = True
        body["account_ids"] = self.account_ids
        return body
