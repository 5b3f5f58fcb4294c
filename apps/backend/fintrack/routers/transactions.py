"""Transactions router exposing the lifecycle and read handlers."""

from fastapi import APIRouter

from fintrack.api.transactions import handlers
from fintrack.schemas import CategorySummaryItem, TransactionOut, TransactionPage

router = APIRouter(prefix="/transactions", tags=["transactions"])

router.add_api_route(
    "",
    handlers.list_transactions,
    methods=["GET"],
    response_model=TransactionPage,
)

router.add_api_route(
    "",
    handlers.create_transaction,
    methods=["POST"],
    response_model=TransactionOut,
    status_code=201,
)

router.add_api_route(
    "/summary/category",
    handlers.category_summary,
    methods=["GET"],
    response_model=list[CategorySummaryItem],
)

router.add_api_route(
    "/{txn_id}",
    handlers.get_transaction,
    methods=["GET"],
    response_model=TransactionOut,
)

router.add_api_route(
    "/{txn_id}",
    handlers.update_transaction,
    methods=["PATCH", "PUT"],
    response_model=TransactionOut,
)

router.add_api_route(
    "/{txn_id}",
    handlers.delete_transaction,
    methods=["DELETE"],
    status_code=204,
)
