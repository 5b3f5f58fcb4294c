"""Accounts router exposing the account handlers."""

from fastapi import APIRouter

from fintrack.api.accounts import handlers
from fintrack.schemas import AccountOut, AccountTransactionsOut, RecalibrationOut

router = APIRouter(prefix="/accounts", tags=["accounts"])

router.add_api_route(
    "",
    handlers.create_account,
    methods=["POST"],
    response_model=AccountOut,
    status_code=201,
)

router.add_api_route(
    "",
    handlers.list_accounts,
    methods=["GET"],
    response_model=list[AccountOut],
)

router.add_api_route(
    "/recalibrate",
    handlers.recalibrate_all_accounts,
    methods=["POST"],
    response_model=list[RecalibrationOut],
)

router.add_api_route(
    "/{account_id}",
    handlers.get_account,
    methods=["GET"],
    response_model=AccountOut,
)

router.add_api_route(
    "/{account_id}",
    handlers.update_account,
    methods=["PATCH", "PUT"],
    response_model=AccountOut,
)

router.add_api_route(
    "/{account_id}",
    handlers.delete_account,
    methods=["DELETE"],
    status_code=204,
)

router.add_api_route(
    "/{account_id}/transactions",
    handlers.get_account_transactions,
    methods=["GET"],
    response_model=AccountTransactionsOut,
)

router.add_api_route(
    "/{account_id}/recalibrate",
    handlers.recalibrate_account,
    methods=["POST"],
    response_model=RecalibrationOut,
)
