import os
import zipfile
from datetime import date
from io import BytesIO

import pytest

# keep the app module from touching a database file on import
os.environ.setdefault("FINANCE_DATABASE_URL", "sqlite://")
os.environ.setdefault("FINANCE_JWT_SECRET", "test-secret-key-that-is-long-enough-for-hs256")

from fastapi.testclient import TestClient  # noqa: E402
from openpyxl import Workbook  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402
from sqlmodel.pool import StaticPool  # noqa: E402

from finance_api.categorizer import ensure_default_categories  # noqa: E402
from finance_api.db import get_session  # noqa: E402
from finance_api.main import app  # noqa: E402
from finance_api.models import EXPENSE, Category, Transaction, User  # noqa: E402


@pytest.fixture(name="session")
def session_fixture():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        ensure_default_categories(session)
        yield session


@pytest.fixture(name="client")
def client_fixture(session):
    def get_session_override():
        return session

    app.dependency_overrides[get_session] = get_session_override
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture
def user(session):
    """A user created directly in the database, for service level tests."""
    obj = User(username="alice", email="alice@example.com", password_hash="not-used")
    session.add(obj)
    session.commit()
    session.refresh(obj)
    return obj


def register(client, username="bob", email="bob@example.com", password="secret123"):
    return client.post(
        "/api/auth/register",
        json={"username": username, "email": email, "password": password, "firstName": "Bob"},
    )


@pytest.fixture
def auth_headers(client):
    response = register(client)
    assert response.status_code == 201
    return {"Authorization": f"Bearer {response.json()['token']}"}


@pytest.fixture
def api_user(session, auth_headers):
    """The User row behind auth_headers."""
    from sqlmodel import select

    return session.exec(select(User).where(User.username == "bob")).one()


def category_named(session, name):
    from sqlmodel import select

    return session.exec(select(Category).where(Category.name == name)).first()


def add_transaction(session, user, day, amount, tr_type=EXPENSE, category=None, description="test"):
    """Insert a transaction straight into the database."""
    if isinstance(category, str):
        category = category_named(session, category)
    tr = Transaction(
        date=day if isinstance(day, date) else date.fromisoformat(day),
        description=description,
        amount=amount,
        transaction_type=tr_type,
        category_id=category.id if category else None,
        user_id=user.id,
    )
    session.add(tr)
    session.commit()
    session.refresh(tr)
    return tr


def build_workbook(rows, header=("Date", "Description", "Amount", "Reference")):
    """Return .xlsx bytes with a header row followed by rows."""
    wb = Workbook()
    ws = wb.active
    if header:
        ws.append(list(header))
    for row in rows:
        ws.append(list(row))
    buf = BytesIO()
    wb.save(buf)
    return buf.getvalue()


def rewrite_member(content, name, change):
    """Return a copy of the .xlsx archive with one member's bytes passed through change."""
    source = zipfile.ZipFile(BytesIO(content))
    buf = BytesIO()
    with zipfile.ZipFile(buf, "w") as target:
        for item in source.infolist():
            data = source.read(item.filename)
            target.writestr(item, change(data) if item.filename == name else data)
    return buf.getvalue()
