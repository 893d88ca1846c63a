"""Optional demo account with a couple of months of sample data."""
import logging
from datetime import date as Date
from typing import Optional

from sqlmodel import Session, select

from .categorizer import categorize_by_description, ensure_default_categories
from .models import EXPENSE, INCOME, Transaction, User, UserCategoryBudget
from .security import hash_password
from .stats import add_months

logger = logging.getLogger(__name__)

DEMO_USERNAME = "demo"
DEMO_EMAIL = "demo@example.com"
DEMO_PASSWORD = "demo123"

# (day of month, description, signed amount)
DEMO_ROWS = [
    (1, "Monthly salary payroll", 5000.0),
    (2, "Weekly grocery run", -120.5),
    (3, "Apartment rent", -1500.0),
    (5, "Electric company", -85.75),
    (7, "Uber ride downtown", -24.0),
    (9, "Dinner at Pizza Palace", -45.2),
    (12, "Netflix subscription", -15.99),
    (15, "Freelance payment received", 800.0),
    (18, "Pharmacy prescription", -32.4),
    (21, "Amazon order", -64.99),
    (26, "Car insurance premium", -110.0),
]

DEMO_BUDGETS = {
    "Food & Dining": 500.0,
    "Housing": 1500.0,
    "Bills & Utilities": 200.0,
    "Transportation": 120.0,
    "Entertainment": 50.0,
}


def _seed_month(session: Session, user: User, month_start: Date) -> None:
    for day, description, amount in DEMO_ROWS:
        category = categorize_by_description(session, description, user.id)
        session.add(
            Transaction(
                date=month_start.replace(day=day),
                description=description,
                amount=abs(amount),
                transaction_type=INCOME if amount >= 0 else EXPENSE,
                category_id=category.id if category else None,
                user_id=user.id,
                reference="DEMO",
            )
        )


# PUBLIC_INTERFACE
def seed_demo_data(session: Session, today: Optional[Date] = None) -> Optional[User]:
    """Create the demo user with transactions for this and last month. Idempotent."""
    if session.exec(select(User).where(User.username == DEMO_USERNAME)).first():
        return None

    categories = {c.name: c for c in ensure_default_categories(session)}
    user = User(
        username=DEMO_USERNAME,
        email=DEMO_EMAIL,
        password_hash=hash_password(DEMO_PASSWORD),
        first_name="Demo",
        last_name="User",
    )
    session.add(user)
    session.commit()
    session.refresh(user)

    this_month = (today or Date.today()).replace(day=1)
    for month_start in (add_months(this_month, -1), this_month):
        _seed_month(session, user, month_start)
        for name, amount in DEMO_BUDGETS.items():
            session.add(
                UserCategoryBudget(
                    user_id=user.id,
                    category_id=categories[name].id,
                    year=month_start.year,
                    month=month_start.month,
                    monthly_budget=amount,
                )
            )
    session.commit()
    logger.info("Created demo user %s with sample data", DEMO_USERNAME)
    return user
