import pytest

from conftest import add_transaction, category_named, register
from finance_api.models import EXPENSE, INCOME


def create(client, headers, **fields):
    payload = {"date": "2024-01-15", "description": "Lunch at cafe", "amount": 12.5, "type": "expense"}
    payload.update(fields)
    return client.post("/api/transactions", json=payload, headers=headers)


@pytest.fixture
def ledger(session, api_user):
    """Five transactions of the API user across two months."""
    add_transaction(session, api_user, "2024-01-05", 50, EXPENSE, "Food & Dining", "Grocery run")
    add_transaction(session, api_user, "2024-01-20", 2000, INCOME, "Income", "Salary January")
    add_transaction(session, api_user, "2024-01-25", 900, EXPENSE, "Housing", "Rent")
    add_transaction(session, api_user, "2024-02-02", 15, EXPENSE, "Entertainment", "Netflix")
    add_transaction(session, api_user, "2024-02-20", 2000, INCOME, "Income", "Salary February")
    return api_user


def test_create_transaction_detects_category(client, auth_headers):
    response = create(client, auth_headers)

    assert response.status_code == 201
    tr = response.json()["transaction"]
    assert tr["type"] == "EXPENSE"
    assert tr["categoryName"] == "Food & Dining"
    assert tr["categoryColor"]
    assert tr["amount"] == 12.5
    assert tr["date"] == "2024-01-15"


def test_create_transaction_with_explicit_category(client, auth_headers, session):
    housing = category_named(session, "Housing")

    response = create(client, auth_headers, categoryId=housing.id, reference=" INV-7 ")
    tr = response.json()["transaction"]
    assert tr["categoryId"] == housing.id
    assert tr["reference"] == "INV-7"


def test_create_transaction_unknown_category(client, auth_headers):
    response = create(client, auth_headers, categoryId=9999)
    assert response.status_code == 400
    assert response.json()["detail"] == "Category not found"


@pytest.mark.parametrize(
    "fields",
    [
        {"type": "REFUND"},
        {"amount": 0},
        {"description": "   "},
        {"date": "15/01/2024"},
        {"description": "x" * 501},
    ],
)
def test_create_transaction_validation(client, auth_headers, fields):
    assert create(client, auth_headers, **fields).status_code == 422


def test_transactions_require_auth(client):
    assert client.get("/api/transactions").status_code == 401
    assert create(client, {}).status_code == 401


def test_list_transactions_paginates_newest_first(client, auth_headers, ledger):
    response = client.get("/api/transactions", params={"page": 0, "size": 2}, headers=auth_headers)

    body = response.json()
    assert body["total"] == 5
    assert body["totalPages"] == 3
    assert [t["description"] for t in body["data"]] == ["Salary February", "Netflix"]

    last = client.get("/api/transactions", params={"page": 2, "size": 2}, headers=auth_headers).json()
    assert [t["description"] for t in last["data"]] == ["Grocery run"]


def test_list_transactions_filters(client, auth_headers, ledger, session):
    def descriptions(**params):
        body = client.get("/api/transactions", params=params, headers=auth_headers).json()
        return [t["description"] for t in body["data"]]

    assert descriptions(startDate="2024-01-01", endDate="2024-01-31", sortDir="asc") == [
        "Grocery run", "Salary January", "Rent",
    ]
    assert descriptions(type="income", sortBy="date", sortDir="asc") == ["Salary January", "Salary February"]
    assert descriptions(categoryId=category_named(session, "Housing").id) == ["Rent"]
    assert descriptions(search="salary", sortDir="asc") == ["Salary January", "Salary February"]
    assert descriptions(sortBy="amount", sortDir="asc")[0] == "Netflix"


@pytest.mark.parametrize(
    "params",
    [
        {"sortBy": "category"},
        {"sortDir": "sideways"},
        {"type": "REFUND"},
        {"startDate": "2024-01-01"},
        {"startDate": "2024-02-01", "endDate": "2024-01-01"},
    ],
)
def test_list_transactions_rejects_bad_parameters(client, auth_headers, params):
    assert client.get("/api/transactions", params=params, headers=auth_headers).status_code == 400


def test_get_update_delete_transaction(client, auth_headers, session):
    tr_id = create(client, auth_headers).json()["transaction"]["id"]
    shopping = category_named(session, "Shopping")

    fetched = client.get(f"/api/transactions/{tr_id}", headers=auth_headers)
    assert fetched.status_code == 200

    updated = client.put(
        f"/api/transactions/{tr_id}",
        json={"amount": 20, "categoryId": shopping.id, "description": " New shoes "},
        headers=auth_headers,
    ).json()["transaction"]
    assert updated["amount"] == 20.0
    assert updated["description"] == "New shoes"
    assert updated["categoryName"] == "Shopping"
    assert updated["type"] == "EXPENSE"

    assert client.delete(f"/api/transactions/{tr_id}", headers=auth_headers).status_code == 200
    assert client.get(f"/api/transactions/{tr_id}", headers=auth_headers).status_code == 404


def test_update_can_clear_reference(client, auth_headers):
    tr_id = create(client, auth_headers, reference="R-1").json()["transaction"]["id"]

    kept = client.put(f"/api/transactions/{tr_id}", json={"amount": 3}, headers=auth_headers).json()
    assert kept["transaction"]["reference"] == "R-1"

    cleared = client.put(f"/api/transactions/{tr_id}", json={"reference": None}, headers=auth_headers).json()
    assert cleared["transaction"]["reference"] is None


def test_update_rejects_zero_amount(client, auth_headers):
    tr_id = create(client, auth_headers).json()["transaction"]["id"]
    assert client.put(f"/api/transactions/{tr_id}", json={"amount": 0}, headers=auth_headers).status_code == 400


def test_transactions_of_other_users_are_invisible(client, auth_headers):
    tr_id = create(client, auth_headers).json()["transaction"]["id"]
    token = register(client, username="carol", email="carol@example.com").json()["token"]
    carol = {"Authorization": f"Bearer {token}"}

    assert client.get(f"/api/transactions/{tr_id}", headers=carol).status_code == 404
    assert client.put(f"/api/transactions/{tr_id}", json={"amount": 1}, headers=carol).status_code == 404
    assert client.delete(f"/api/transactions/{tr_id}", headers=carol).status_code == 404
    assert client.get("/api/transactions", headers=carol).json()["total"] == 0


def test_update_rejects_blank_description(client, auth_headers):
    tr_id = create(client, auth_headers).json()["transaction"]["id"]

    response = client.put(f"/api/transactions/{tr_id}", json={"description": "   "}, headers=auth_headers)
    assert response.status_code == 422
    fetched = client.get(f"/api/transactions/{tr_id}", headers=auth_headers).json()
    assert fetched["transaction"]["description"] == "Lunch at cafe"


def test_search_matches_wildcards_literally(client, auth_headers, session, api_user):
    add_transaction(session, api_user, "2024-03-01", 40, EXPENSE, "Shopping", "50% off shoes")
    add_transaction(session, api_user, "2024-03-02", 4, EXPENSE, "Food & Dining", "coffee")
    add_transaction(session, api_user, "2024-03-03", 9, EXPENSE, "Other", "snack_bar")

    def descriptions(term):
        body = client.get("/api/transactions", params={"search": term}, headers=auth_headers).json()
        return [t["description"] for t in body["data"]]

    assert descriptions("%") == ["50% off shoes"]
    assert descriptions("_") == ["snack_bar"]
    assert descriptions("COFFEE") == ["coffee"]
