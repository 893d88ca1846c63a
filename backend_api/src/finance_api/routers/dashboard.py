from datetime import date as Date
from typing import List, Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlmodel import Session

from .. import stats
from ..db import get_session
from ..models import User
from ..schemas import (
    AverageMonthlyExpenses,
    BudgetComparison,
    CategorySummary,
    FinancialSummary,
    HeatmapCell,
    QuickStats,
    TransactionPage,
)
from ..security import get_current_user
from .transactions import check_date_range, query_transactions_page

dashboard_router = APIRouter(prefix="/dashboard", tags=["dashboard"])


def _range_or_default(
    start: Optional[Date], end: Optional[Date], default: Tuple[Date, Date]
) -> Tuple[Date, Date]:
    return check_date_range(start, end) or default


# PUBLIC_INTERFACE
@dashboard_router.get(
    "/summary",
    response_model=FinancialSummary,
    summary="Financial summary for a period",
    description="Income, expenses, category breakdowns and monthly trends. Defaults to the current calendar year.",
)
def dashboard_summary(
    start_date: Optional[Date] = Query(None, alias="startDate", description="YYYY-MM-DD"),
    end_date: Optional[Date] = Query(None, alias="endDate", description="YYYY-MM-DD"),
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> FinancialSummary:
    """
    Aggregate dashboard for the specified period.

    Parameters:
    - startDate / endDate: inclusive ISO dates, both or neither; if omitted, uses the current year.

    Returns:
    - FinancialSummary with totals, breakdowns and monthly trends.
    """
    start, end = _range_or_default(start_date, end_date, stats.year_bounds(Date.today()))
    return stats.financial_summary(session, user, start, end)


# PUBLIC_INTERFACE
@dashboard_router.get("/summary/current-month", response_model=FinancialSummary, summary="Current month summary")
def current_month_summary(
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> FinancialSummary:
    return stats.financial_summary(session, user, *stats.month_bounds(Date.today()))


# PUBLIC_INTERFACE
@dashboard_router.get("/summary/current-year", response_model=FinancialSummary, summary="Current year summary")
def current_year_summary(
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> FinancialSummary:
    return stats.financial_summary(session, user, *stats.year_bounds(Date.today()))


# PUBLIC_INTERFACE
@dashboard_router.get(
    "/transactions",
    response_model=TransactionPage,
    summary="Transactions for the dashboard table",
)
def dashboard_transactions(
    page: int = Query(0, ge=0),
    size: int = Query(50, ge=1, le=500),
    sort_by: str = Query("date", alias="sortBy"),
    sort_dir: str = Query("desc", alias="sortDir"),
    start_date: Optional[Date] = Query(None, alias="startDate"),
    end_date: Optional[Date] = Query(None, alias="endDate"),
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> TransactionPage:
    """Paginated transactions, newest first by default."""
    return query_transactions_page(
        session, user, page, size, sort_by, sort_dir, check_date_range(start_date, end_date)
    )


# PUBLIC_INTERFACE
@dashboard_router.get(
    "/top-expenses",
    response_model=List[CategorySummary],
    summary="Top expense categories",
    description="Largest expense categories over the last twelve months.",
)
def top_expenses(
    limit: int = Query(5, ge=1, le=50),
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> List[CategorySummary]:
    return stats.top_expense_categories(session, user, limit)


# PUBLIC_INTERFACE
@dashboard_router.get(
    "/average-monthly-expenses",
    response_model=AverageMonthlyExpenses,
    summary="Average monthly expenses",
)
def average_monthly_expenses(
    months: int = Query(12, ge=1, le=120),
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> AverageMonthlyExpenses:
    average = stats.average_monthly_expenses(session, user, months)
    return AverageMonthlyExpenses(average_monthly_expenses=average, period=f"{months} months")


# PUBLIC_INTERFACE
@dashboard_router.get("/stats", response_model=QuickStats, summary="Quick stats")
def quick_stats(
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> QuickStats:
    """Current month and year totals."""
    return stats.quick_stats(session, user)


# PUBLIC_INTERFACE
@dashboard_router.get(
    "/budget-comparison",
    response_model=List[BudgetComparison],
    summary="Budget vs. actual for the current month",
)
def budget_comparison(
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> List[BudgetComparison]:
    return stats.budget_comparison(session, user, *stats.month_bounds(Date.today()))


# PUBLIC_INTERFACE
@dashboard_router.get(
    "/budget-comparison/period",
    response_model=List[BudgetComparison],
    summary="Budget vs. actual for a period",
    description="Budgets of every month overlapping the period are summed per category.",
)
def budget_comparison_for_period(
    start_date: Optional[Date] = Query(None, alias="startDate"),
    end_date: Optional[Date] = Query(None, alias="endDate"),
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> List[BudgetComparison]:
    if start_date is None or end_date is None:
        raise HTTPException(status_code=400, detail="startDate and endDate are required")
    start, end = check_date_range(start_date, end_date)
    return stats.budget_comparison(session, user, start, end)


# PUBLIC_INTERFACE
@dashboard_router.get(
    "/expense-heatmap",
    response_model=List[HeatmapCell],
    summary="Expense heatmap",
    description="Expense totals per category and day of week. Defaults to the last twelve months.",
)
def expense_heatmap(
    start_date: Optional[Date] = Query(None, alias="startDate"),
    end_date: Optional[Date] = Query(None, alias="endDate"),
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> List[HeatmapCell]:
    today = Date.today()
    start, end = _range_or_default(start_date, end_date, (stats.add_months(today, -12), today))
    return stats.expense_heatmap(session, user, start, end)
