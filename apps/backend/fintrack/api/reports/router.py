from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from fintrack import models
from fintrack.core.database import get_db
from fintrack.core.deps import get_current_user
from fintrack.schemas import (
    CategoryBreakdownOut,
    DashboardSummaryOut,
    DivisionBreakdownItem,
    ReportPeriod,
    TrendGrouping,
    TrendPoint,
)
from fintrack.services import ReportService


router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("/dashboard", response_model=DashboardSummaryOut)
def dashboard_summary(
    period: ReportPeriod = Query("month"),
    start_date: Optional[datetime] = Query(None, description="Overrides period when sent with end_date"),
    end_date: Optional[datetime] = Query(None),
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
):
    svc = ReportService(db)
    return svc.dashboard_summary(current_user.id, period=period, start=start_date, end=end_date)


@router.get("/trend", response_model=list[TrendPoint])
def trend(
    period: ReportPeriod = Query("month"),
    group_by: TrendGrouping = Query("day"),
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
):
    svc = ReportService(db)
    return svc.trend(current_user.id, period=period, group_by=group_by)


@router.get("/category-breakdown", response_model=CategoryBreakdownOut)
def category_breakdown(
    type: models.TxnType = Query(models.TxnType.EXPENSE),
    division: Optional[models.Division] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
):
    svc = ReportService(db)
    return svc.category_breakdown(
        current_user.id, txn_type=type, division=division, start=start_date, end=end_date
    )


@router.get("/division-breakdown", response_model=list[DivisionBreakdownItem])
def division_breakdown(
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
):
    svc = ReportService(db)
    return svc.division_breakdown(current_user.id, start=start_date, end=end_date)
