"""Aggregate dashboard statistics.

Every function is scoped to one user and an inclusive [start, end] date range and runs
grouped SQL aggregations. Amounts are summed as absolute values, so expenses are always
reported as positive magnitudes whatever sign they were stored with. TRANSFER rows count
towards totalTransactions only.
"""
import calendar
import logging
from collections import defaultdict
from datetime import date as Date
from typing import Dict, Iterator, List, Optional, Tuple

from sqlalchemy import extract, func, or_
from sqlmodel import Session, select

from .models import EXPENSE, INCOME, Category, Transaction, User, UserCategoryBudget
from .schemas import (
    BudgetComparison,
    CategoryBreakdownItem,
    CategorySummary,
    FinancialSummary,
    HeatmapCell,
    MonthlyTrend,
    PeriodStats,
    QuickStats,
)

logger = logging.getLogger(__name__)

UNCATEGORIZED = "Uncategorized"
UNDER_BUDGET_COLOR = "#52c41a"
OVER_BUDGET_COLOR = "#ff4d4f"
# index 0 is Sunday, matching extract("dow") on SQLite and PostgreSQL
DAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")


# =========================
# Utilities
# =========================
def _money(value: Optional[float]) -> float:
    return round(float(value or 0.0), 2)


def _savings_rate(income: float, expenses: float) -> float:
    if income <= 0:
        return 0.0
    return round((income - expenses) / income * 100, 2)


def add_months(d: Date, months: int) -> Date:
    """Shift a date by whole months, clamping the day to the target month's length."""
    index = d.year * 12 + (d.month - 1) + months
    year, month = divmod(index, 12)
    month += 1
    return d.replace(year=year, month=month, day=min(d.day, calendar.monthrange(year, month)[1]))


def month_bounds(d: Date) -> Tuple[Date, Date]:
    """First and last day of the month containing d."""
    return d.replace(day=1), d.replace(day=calendar.monthrange(d.year, d.month)[1])


def year_bounds(d: Date) -> Tuple[Date, Date]:
    return Date(d.year, 1, 1), Date(d.year, 12, 31)


def iter_months(start: Date, end: Date) -> Iterator[Tuple[int, int]]:
    """Yield (year, month) for every calendar month overlapping [start, end]."""
    year, month = start.year, start.month
    while (year, month) <= (end.year, end.month):
        yield year, month
        year, month = (year + 1, 1) if month == 12 else (year, month + 1)


def visible_categories(session: Session, user_id: int) -> List[Category]:
    """System categories plus the user's own, sorted by name."""
    stmt = (
        select(Category)
        .where(or_(Category.user_id == user_id, Category.user_id == None))  # noqa: E711
        .order_by(Category.name)
    )
    return session.exec(stmt).all()


def _in_range(stmt, user_id: int, start: Date, end: Date):
    return stmt.where(Transaction.user_id == user_id, Transaction.date >= start, Transaction.date <= end)


# =========================
# Totals and breakdowns
# =========================
def _totals_by_type(session: Session, user_id: int, start: Date, end: Date) -> Tuple[Dict[str, float], int]:
    """Return ({type: absolute total}, transaction count) for the range."""
    stmt = _in_range(
        select(Transaction.transaction_type, func.sum(func.abs(Transaction.amount)), func.count(Transaction.id)),
        user_id, start, end,
    ).group_by(Transaction.transaction_type)
    totals: Dict[str, float] = {}
    count = 0
    for tr_type, total, n in session.exec(stmt):
        totals[tr_type] = float(total or 0.0)
        count += n
    return totals, count


def _category_totals(
    session: Session, user_id: int, tr_type: str, start: Date, end: Date
) -> List[Tuple[str, Optional[str], float]]:
    """Return (category name, color, absolute total) rows for one transaction type, largest first."""
    total_col = func.sum(func.abs(Transaction.amount))
    stmt = _in_range(
        select(Category.name, func.max(Category.color), total_col)
        .select_from(Transaction)
        .outerjoin(Category, Transaction.category_id == Category.id),
        user_id, start, end,
    ).where(Transaction.transaction_type == tr_type).group_by(Category.name).order_by(total_col.desc())
    return [(name or UNCATEGORIZED, color, float(total or 0.0)) for name, color, total in session.exec(stmt)]


def _category_summaries(rows: List[Tuple[str, Optional[str], float]]) -> List[CategorySummary]:
    grand_total = sum(total for _, _, total in rows)
    out: List[CategorySummary] = []
    for name, color, total in rows:
        percentage = round(total / grand_total * 100, 2) if grand_total > 0 else 0.0
        out.append(CategorySummary(category_name=name, total_amount=_money(total), percentage=percentage, color=color))
    return out


# PUBLIC_INTERFACE
def monthly_trends(session: Session, user: User, start: Date, end: Date) -> List[MonthlyTrend]:
    """Income and expense rollup per calendar month, oldest month first."""
    year_col = extract("year", Transaction.date)
    month_col = extract("month", Transaction.date)
    stmt = _in_range(
        select(year_col, month_col, Transaction.transaction_type, func.sum(func.abs(Transaction.amount))),
        user.id, start, end,
    ).where(Transaction.transaction_type.in_((INCOME, EXPENSE))).group_by(
        year_col, month_col, Transaction.transaction_type
    )

    buckets: Dict[Tuple[int, int], Dict[str, float]] = defaultdict(lambda: {INCOME: 0.0, EXPENSE: 0.0})
    for year, month, tr_type, total in session.exec(stmt):
        buckets[(int(year), int(month))][tr_type] += float(total or 0.0)

    out: List[MonthlyTrend] = []
    for (year, month) in sorted(buckets):
        income = _money(buckets[(year, month)][INCOME])
        expenses = _money(buckets[(year, month)][EXPENSE])
        out.append(
            MonthlyTrend(
                month=f"{year:04d}-{month:02d}",
                year=year,
                month_num=month,
                month_name=calendar.month_name[month],
                income=income,
                expenses=expenses,
                net_amount=_money(income - expenses),
                savings_rate=_savings_rate(income, expenses),
            )
        )
    return out


# PUBLIC_INTERFACE
def financial_summary(session: Session, user: User, start: Date, end: Date) -> FinancialSummary:
    """Totals, category breakdowns and monthly trends for the range."""
    logger.info("Generating financial summary from %s to %s for user: %s", start, end, user.username)
    totals, count = _totals_by_type(session, user.id, start, end)
    income = _money(totals.get(INCOME))
    expenses = _money(totals.get(EXPENSE))

    expense_rows = _category_totals(session, user.id, EXPENSE, start, end)
    income_rows = _category_totals(session, user.id, INCOME, start, end)

    return FinancialSummary(
        start_date=start,
        end_date=end,
        total_income=income,
        total_expenses=expenses,
        net_income=_money(income - expenses),
        savings_rate=_savings_rate(income, expenses),
        total_transactions=count,
        category_breakdown=[CategoryBreakdownItem(name=name, amount=_money(total)) for name, _, total in expense_rows],
        expenses_by_category=_category_summaries(expense_rows),
        income_by_category=_category_summaries(income_rows),
        monthly_trends=monthly_trends(session, user, start, end),
    )


def period_stats(session: Session, user: User, start: Date, end: Date) -> PeriodStats:
    totals, count = _totals_by_type(session, user.id, start, end)
    income = _money(totals.get(INCOME))
    expenses = _money(totals.get(EXPENSE))
    return PeriodStats(income=income, expenses=expenses, net=_money(income - expenses), transactions=count)


# PUBLIC_INTERFACE
def quick_stats(session: Session, user: User, today: Optional[Date] = None) -> QuickStats:
    """Current month and current year at a glance, plus the all-time transaction count."""
    today = today or Date.today()
    total = session.exec(select(func.count(Transaction.id)).where(Transaction.user_id == user.id)).one()
    return QuickStats(
        current_month=period_stats(session, user, *month_bounds(today)),
        current_year=period_stats(session, user, *year_bounds(today)),
        total_transactions=int(total or 0),
    )


# PUBLIC_INTERFACE
def top_expense_categories(
    session: Session, user: User, limit: int = 5, today: Optional[Date] = None
) -> List[CategorySummary]:
    """Largest expense categories over the last twelve months."""
    today = today or Date.today()
    rows = _category_totals(session, user.id, EXPENSE, add_months(today, -12), today)
    # percentages are relative to all expenses, not only the top entries
    return _category_summaries(rows)[:limit]


# PUBLIC_INTERFACE
def average_monthly_expenses(session: Session, user: User, months: int = 12, today: Optional[Date] = None) -> float:
    """Expense total over the last `months` months divided by `months`."""
    today = today or Date.today()
    totals, _ = _totals_by_type(session, user.id, add_months(today, -months), today)
    return round(totals.get(EXPENSE, 0.0) / months, 2)


# =========================
# Budget vs. actual
# =========================
def _budget_entries(session: Session, user_id: int, start: Date, end: Date) -> Dict[int, Dict[Tuple[int, int], float]]:
    """{category_id: {(year, month): amount}} for the user's budget entries inside the range."""
    month_index = UserCategoryBudget.year * 12 + UserCategoryBudget.month
    stmt = select(UserCategoryBudget).where(
        UserCategoryBudget.user_id == user_id,
        month_index >= start.year * 12 + start.month,
        month_index <= end.year * 12 + end.month,
    )
    entries: Dict[int, Dict[Tuple[int, int], float]] = defaultdict(dict)
    for b in session.exec(stmt):
        entries[b.category_id][(b.year, b.month)] = b.monthly_budget
    return entries


# PUBLIC_INTERFACE
def budget_comparison(session: Session, user: User, start: Date, end: Date) -> List[BudgetComparison]:
    """Compare budgeted against actual expense amounts per category for the range.

    The budget of a category for one month is the user's entry for that month when present,
    else the category's default monthly_budget. Categories whose budget over the range is
    zero are left out.
    """
    logger.info("Generating budget comparison from %s to %s for user: %s", start, end, user.username)
    months = list(iter_months(start, end))
    entries = _budget_entries(session, user.id, start, end)

    spent_stmt = _in_range(
        select(Transaction.category_id, func.sum(func.abs(Transaction.amount))),
        user.id, start, end,
    ).where(Transaction.transaction_type == EXPENSE).group_by(Transaction.category_id)
    spent = {cid: float(total or 0.0) for cid, total in session.exec(spent_stmt) if cid is not None}

    out: List[BudgetComparison] = []
    for cat in visible_categories(session, user.id):
        per_month = entries.get(cat.id, {})
        budget = sum(per_month.get(ym, cat.monthly_budget or 0.0) for ym in months)
        if budget <= 0:
            continue
        actual = spent.get(cat.id, 0.0)
        over = actual > budget
        out.append(
            BudgetComparison(
                category_name=cat.name,
                budget_amount=_money(budget),
                actual_amount=_money(actual),
                percentage_difference=round((actual - budget) / budget * 100, 2),
                over_budget=over,
                status_color=OVER_BUDGET_COLOR if over else UNDER_BUDGET_COLOR,
                category_color=cat.color,
            )
        )
    return out


def effective_budget(session: Session, user_id: int, category: Category, year: int, month: int) -> float:
    """Budget for one category and month: the user's entry, else the category default."""
    entry = session.exec(
        select(UserCategoryBudget).where(
            UserCategoryBudget.user_id == user_id,
            UserCategoryBudget.category_id == category.id,
            UserCategoryBudget.year == year,
            UserCategoryBudget.month == month,
        )
    ).first()
    if entry:
        return entry.monthly_budget
    return category.monthly_budget or 0.0


# =========================
# Heatmap
# =========================
# PUBLIC_INTERFACE
def expense_heatmap(session: Session, user: User, start: Date, end: Date) -> List[HeatmapCell]:
    """Expense totals per (category, weekday)."""
    logger.info("Generating expense heatmap data from %s to %s for user: %s", start, end, user.username)
    dow_col = extract("dow", Transaction.date)
    stmt = _in_range(
        select(Category.name, dow_col, func.sum(func.abs(Transaction.amount)))
        .select_from(Transaction)
        .outerjoin(Category, Transaction.category_id == Category.id),
        user.id, start, end,
    ).where(Transaction.transaction_type == EXPENSE).group_by(Category.name, dow_col).order_by(Category.name, dow_col)

    out: List[HeatmapCell] = []
    for name, dow, total in session.exec(stmt):
        out.append(
            HeatmapCell(category=name or UNCATEGORIZED, day_of_week=DAY_NAMES[int(dow) % 7], amount=_money(total))
        )
    return out
