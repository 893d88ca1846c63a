from datetime import date

import pytest

from conftest import add_transaction, category_named
from finance_api.models import EXPENSE, INCOME, UserCategoryBudget
from finance_api.stats import DAY_NAMES


@pytest.fixture
def this_month(session, api_user):
    """Income and expenses dated today, so they land in every default window."""
    today = date.today()
    add_transaction(session, api_user, today, 4000, INCOME, "Income", "Salary")
    add_transaction(session, api_user, today, 300, EXPENSE, "Food & Dining", "Groceries")
    add_transaction(session, api_user, today, 1200, EXPENSE, "Housing", "Rent")
    return api_user


def test_dashboard_requires_auth(client):
    for path in ("summary", "stats", "top-expenses", "budget-comparison", "expense-heatmap"):
        assert client.get(f"/api/dashboard/{path}").status_code == 401


def test_summary_defaults_to_current_year(client, auth_headers, this_month):
    body = client.get("/api/dashboard/summary", headers=auth_headers).json()

    year = date.today().year
    assert body["startDate"] == f"{year}-01-01"
    assert body["endDate"] == f"{year}-12-31"
    assert body["totalIncome"] == 4000.0
    assert body["totalExpenses"] == 1500.0
    assert body["netIncome"] == 2500.0
    assert body["savingsRate"] == 62.5
    assert body["totalTransactions"] == 3
    assert body["categoryBreakdown"] == [
        {"name": "Housing", "amount": 1200.0},
        {"name": "Food & Dining", "amount": 300.0},
    ]
    assert body["expensesByCategory"][0]["percentage"] == 80.0
    assert len(body["monthlyTrends"]) == 1
    assert body["monthlyTrends"][0]["netAmount"] == 2500.0


def test_summary_for_explicit_range(client, auth_headers, this_month):
    body = client.get(
        "/api/dashboard/summary",
        params={"startDate": "2000-01-01", "endDate": "2000-12-31"},
        headers=auth_headers,
    ).json()

    assert body["totalTransactions"] == 0
    assert body["savingsRate"] == 0.0
    assert body["categoryBreakdown"] == []


def test_summary_rejects_half_open_range(client, auth_headers):
    response = client.get("/api/dashboard/summary", params={"startDate": "2024-01-01"}, headers=auth_headers)
    assert response.status_code == 400


def test_current_month_and_year_summaries(client, auth_headers, this_month):
    month = client.get("/api/dashboard/summary/current-month", headers=auth_headers).json()
    year = client.get("/api/dashboard/summary/current-year", headers=auth_headers).json()

    assert month["startDate"] == date.today().replace(day=1).isoformat()
    assert month["totalExpenses"] == year["totalExpenses"] == 1500.0


def test_quick_stats(client, auth_headers, this_month):
    body = client.get("/api/dashboard/stats", headers=auth_headers).json()

    assert body["currentMonth"] == {"income": 4000.0, "expenses": 1500.0, "net": 2500.0, "transactions": 3}
    assert body["totalTransactions"] == 3


def test_top_expenses(client, auth_headers, this_month):
    body = client.get("/api/dashboard/top-expenses", params={"limit": 1}, headers=auth_headers).json()

    assert len(body) == 1
    assert body[0]["categoryName"] == "Housing"
    assert body[0]["totalAmount"] == 1200.0
    assert body[0]["percentage"] == 80.0


def test_top_expenses_limit_is_bounded(client, auth_headers):
    assert client.get("/api/dashboard/top-expenses", params={"limit": 0}, headers=auth_headers).status_code == 422


def test_average_monthly_expenses(client, auth_headers, this_month):
    body = client.get("/api/dashboard/average-monthly-expenses", params={"months": 3}, headers=auth_headers).json()

    assert body["averageMonthlyExpenses"] == 500.0
    assert body["period"] == "3 months"


def test_dashboard_transactions(client, auth_headers, this_month):
    body = client.get("/api/dashboard/transactions", params={"size": 2}, headers=auth_headers).json()

    assert body["total"] == 3
    assert len(body["data"]) == 2


def test_budget_comparison_current_month(client, auth_headers, session, this_month):
    today = date.today()
    food = category_named(session, "Food & Dining")
    session.add(
        UserCategoryBudget(
            user_id=this_month.id, category_id=food.id, year=today.year, month=today.month, monthly_budget=250
        )
    )
    session.commit()

    body = client.get("/api/dashboard/budget-comparison", headers=auth_headers).json()

    assert body == [
        {
            "categoryName": "Food & Dining",
            "budgetAmount": 250.0,
            "actualAmount": 300.0,
            "percentageDifference": 20.0,
            "overBudget": True,
            "statusColor": "#ff4d4f",
            "categoryColor": food.color,
        }
    ]


def test_budget_comparison_period_requires_dates(client, auth_headers):
    response = client.get("/api/dashboard/budget-comparison/period", headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["detail"] == "startDate and endDate are required"


def test_budget_comparison_period_uses_category_default(client, auth_headers, session, api_user):
    client.post("/api/categories", json={"name": "Gym", "monthlyBudget": 50}, headers=auth_headers)

    body = client.get(
        "/api/dashboard/budget-comparison/period",
        params={"startDate": "2024-01-01", "endDate": "2024-02-29"},
        headers=auth_headers,
    ).json()

    assert [(b["categoryName"], b["budgetAmount"], b["percentageDifference"]) for b in body] == [
        ("Gym", 100.0, -100.0)
    ]


def test_expense_heatmap(client, auth_headers, this_month):
    body = client.get("/api/dashboard/expense-heatmap", headers=auth_headers).json()

    weekday = DAY_NAMES[(date.today().weekday() + 1) % 7]
    assert sorted((c["category"], c["dayOfWeek"], c["amount"]) for c in body) == [
        ("Food & Dining", weekday, 300.0),
        ("Housing", weekday, 1200.0),
    ]
