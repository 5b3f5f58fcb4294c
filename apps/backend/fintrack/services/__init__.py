"""
Service layer.

Business logic lives here; routers only translate HTTP to service calls.
"""

from .account_service import AccountService
from .lifecycle_service import TransactionLifecycleService
from .recalibration_service import RecalibrationResult, RecalibrationService
from .report_service import ReportService
from .transaction_query_service import TransactionQueryService
from .transaction_service import TransactionBalanceService

__all__ = [
    "AccountService",
    "TransactionLifecycleService",
    "RecalibrationResult",
    "RecalibrationService",
    "ReportService",
    "TransactionQueryService",
    "TransactionBalanceService",
]
