"""Router aggregation: every feature router is mounted under ``/api`` here."""

from fastapi import FastAPI

from fintrack.api.members.router import router as members_router
from fintrack.api.reports.router import router as reports_router

from . import accounts, transactions


def register_routers(app: FastAPI) -> None:
    """Attach all API routes to the FastAPI application."""

    app.include_router(accounts.router, prefix="/api")
    app.include_router(transactions.router, prefix="/api")
    app.include_router(reports_router, prefix="/api")
    app.include_router(members_router, prefix="/api")
