from datetime import date as Date, datetime, timezone
from typing import List, Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import Field as SQLField, Relationship, SQLModel

INCOME = "INCOME"
EXPENSE = "EXPENSE"
TRANSFER = "TRANSFER"
TRANSACTION_TYPES = (INCOME, EXPENSE, TRANSFER)

ROLE_USER = "USER"
ROLE_ADMIN = "ADMIN"


def utcnow() -> datetime:
    """Timezone-aware current UTC time for timestamp columns."""
    return datetime.now(timezone.utc)


# =========================
# Database Models (SQLModel)
# =========================
class User(SQLModel, table=True):
    """Registered dashboard user."""
    id: Optional[int] = SQLField(default=None, primary_key=True)
    username: str = SQLField(index=True, unique=True, max_length=50)
    email: str = SQLField(index=True, unique=True)
    password_hash: str
    first_name: Optional[str] = SQLField(default=None, max_length=100)
    last_name: Optional[str] = SQLField(default=None, max_length=100)
    enabled: bool = True
    role: str = ROLE_USER
    created_at: datetime = SQLField(default_factory=utcnow)
    last_login_at: Optional[datetime] = None

    @property
    def full_name(self) -> str:
        if self.first_name and self.last_name:
            return f"{self.first_name} {self.last_name}"
        return self.first_name or self.last_name or self.username


class Category(SQLModel, table=True):
    """Transaction category.

    Note:
    - user_id NULL marks a system category shared by every user; those are read-only through the API.
    - monthly_budget is the fallback budget used when the user has no UserCategoryBudget entry for a month.
    """
    __table_args__ = (UniqueConstraint("name", "user_id", name="uq_category_name_user"),)

    id: Optional[int] = SQLField(default=None, primary_key=True)
    name: str = SQLField(index=True)
    description: Optional[str] = None
    color: Optional[str] = None
    monthly_budget: float = 0.0
    user_id: Optional[int] = SQLField(default=None, foreign_key="user.id", index=True)

    # Use forward-ref strings for relationships to avoid runtime annotation resolution issues
    transactions: List["Transaction"] = Relationship(back_populates="category")
    budgets: List["UserCategoryBudget"] = Relationship(back_populates="category")

    @property
    def is_system_category(self) -> bool:
        return self.user_id is None


class Transaction(SQLModel, table=True):
    """Financial transaction owned by a user.

    Database column is 'transaction_type' to avoid clashing with the built-in name 'type';
    API schemas expose it as 'type'.
    """
    id: Optional[int] = SQLField(default=None, primary_key=True)
    date: Date = SQLField(index=True)
    description: str = SQLField(max_length=500)
    amount: float
    transaction_type: str = SQLField(index=True)  # INCOME | EXPENSE | TRANSFER
    reference: Optional[str] = None
    created_at: datetime = SQLField(default_factory=utcnow)
    updated_at: datetime = SQLField(default_factory=utcnow)

    user_id: int = SQLField(foreign_key="user.id", index=True)
    category_id: Optional[int] = SQLField(default=None, foreign_key="category.id", index=True)
    category: Optional[Category] = Relationship(back_populates="transactions")


class UserCategoryBudget(SQLModel, table=True):
    """Budget a user sets for one category in one calendar month."""
    __table_args__ = (
        UniqueConstraint("user_id", "category_id", "year", "month", name="uq_budget_user_category_month"),
    )

    id: Optional[int] = SQLField(default=None, primary_key=True)
    user_id: int = SQLField(foreign_key="user.id", index=True)
    category_id: int = SQLField(foreign_key="category.id", index=True)
    year: int
    month: int = SQLField(ge=1, le=12)
    monthly_budget: float = 0.0

    category: Optional[Category] = Relationship(back_populates="budgets")
