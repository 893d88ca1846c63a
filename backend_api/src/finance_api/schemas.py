from datetime import date as Date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from .models import TRANSACTION_TYPES


# =========================
# Pydantic Schemas
# =========================
class ApiModel(BaseModel):
    """Base schema: camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class MessageResponse(ApiModel):
    success: bool = True
    message: str


# ---- auth ----
class UserRead(ApiModel):
    """Public user profile."""
    id: int
    username: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    full_name: str
    role: str
    created_at: datetime
    last_login_at: Optional[datetime] = None


class RegisterRequest(ApiModel):
    """Registration payload."""
    username: str
    email: EmailStr
    password: str
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 3 or len(v) > 50:
            raise ValueError("Username must be between 3 and 50 characters")
        return v

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        if len(v) < 6:
            raise ValueError("Password must be at least 6 characters")
        return v


class LoginRequest(ApiModel):
    """Login accepts either the username or the email address."""
    username_or_email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class AuthResponse(ApiModel):
    """Token plus the authenticated user's profile."""
    success: bool = True
    message: str
    token: str
    token_type: str = "Bearer"
    user: UserRead


class CurrentUserResponse(ApiModel):
    success: bool = True
    user: UserRead


# ---- categories ----
class CategoryRead(ApiModel):
    """Category response schema; monthly_budget is the budget effective for the current month."""
    id: int
    name: str
    description: Optional[str] = None
    color: Optional[str] = None
    monthly_budget: float = 0.0
    is_system_category: bool = False


class CategoryCreate(ApiModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=255)
    color: Optional[str] = Field(None, max_length=20)
    monthly_budget: float = Field(0.0, ge=0)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Category name is required")
        return v


class CategoryUpdate(ApiModel):
    """Update category payload (partial allowed)."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=255)
    color: Optional[str] = Field(None, max_length=20)
    monthly_budget: Optional[float] = Field(None, ge=0)


class CategoryResponse(ApiModel):
    success: bool = True
    message: str
    category: CategoryRead


class BudgetUpdate(ApiModel):
    """Monthly budget for a category; year/month default to the current month."""
    monthly_budget: float = Field(..., ge=0)
    year: Optional[int] = Field(None, ge=1970, le=9999)
    month: Optional[int] = Field(None, ge=1, le=12)


class BudgetRead(ApiModel):
    category_id: int
    year: int
    month: int
    monthly_budget: float


class BudgetResponse(ApiModel):
    success: bool = True
    message: str
    budget: BudgetRead


class TransactionCountResponse(ApiModel):
    success: bool = True
    transaction_count: int


# ---- transactions ----
def _normalize_type(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    v = v.strip().upper()
    if v not in TRANSACTION_TYPES:
        raise ValueError(f"type must be one of {', '.join(TRANSACTION_TYPES)}")
    return v


class TransactionCreate(ApiModel):
    """Create transaction payload; category is auto-detected from the description when omitted."""
    date: Date = Field(..., description="Transaction date in ISO format (YYYY-MM-DD).")
    description: str = Field(..., min_length=1, max_length=500)
    amount: float
    type: str = Field(..., description="INCOME, EXPENSE or TRANSFER (case-insensitive).")
    category_id: Optional[int] = None
    reference: Optional[str] = Field(None, max_length=100)

    @field_validator("type")
    @classmethod
    def validate_type(cls, v: str) -> str:
        return _normalize_type(v)

    @field_validator("description")
    @classmethod
    def strip_description(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("description must not be blank")
        return v

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v: float) -> float:
        if v == 0:
            raise ValueError("amount must be non-zero")
        return v


class TransactionUpdate(ApiModel):
    """Update transaction payload (partial allowed)."""
    date: Optional[Date] = None
    description: Optional[str] = Field(None, min_length=1, max_length=500)
    amount: Optional[float] = None
    type: Optional[str] = None
    category_id: Optional[int] = None
    reference: Optional[str] = Field(None, max_length=100)

    @field_validator("type")
    @classmethod
    def validate_type(cls, v: Optional[str]) -> Optional[str]:
        return _normalize_type(v)

    @field_validator("description")
    @classmethod
    def strip_description(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("description must not be blank")
        return v


class TransactionRead(ApiModel):
    """Transaction read schema."""
    id: int
    date: Date
    description: str
    amount: float
    type: str
    category_id: Optional[int] = None
    category_name: Optional[str] = None
    category_color: Optional[str] = None
    reference: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class TransactionPage(ApiModel):
    """One page of transactions."""
    data: List[TransactionRead]
    total: int
    page: int
    size: int
    total_pages: int


class TransactionResponse(ApiModel):
    success: bool = True
    message: str
    transaction: TransactionRead


# ---- dashboard ----
class CategoryBreakdownItem(ApiModel):
    name: str
    amount: float


class CategorySummary(ApiModel):
    category_name: str
    total_amount: float
    percentage: float
    color: Optional[str] = None


class MonthlyTrend(ApiModel):
    """Income/expense rollup for one calendar month."""
    month: str  # YYYY-MM
    year: int
    month_num: int
    month_name: str
    income: float
    expenses: float
    net_amount: float
    savings_rate: float


class FinancialSummary(ApiModel):
    """Dashboard summary for a date range."""
    start_date: Date
    end_date: Date
    total_income: float
    total_expenses: float
    net_income: float
    savings_rate: float
    total_transactions: int
    category_breakdown: List[CategoryBreakdownItem]
    expenses_by_category: List[CategorySummary]
    income_by_category: List[CategorySummary]
    monthly_trends: List[MonthlyTrend]


class BudgetComparison(ApiModel):
    """Budget vs. actual spending for one category; percentage_difference > 0 means over budget."""
    category_name: str
    budget_amount: float
    actual_amount: float
    percentage_difference: float
    over_budget: bool
    status_color: str
    category_color: Optional[str] = None


class HeatmapCell(ApiModel):
    category: str
    day_of_week: str
    amount: float


class AverageMonthlyExpenses(ApiModel):
    average_monthly_expenses: float
    period: str


class PeriodStats(ApiModel):
    income: float
    expenses: float
    net: float
    transactions: int


class QuickStats(ApiModel):
    current_month: PeriodStats
    current_year: PeriodStats
    total_transactions: int


# ---- upload ----
class UploadResponse(ApiModel):
    success: bool = True
    message: str
    transactions_processed: int
    skipped_rows: int
    transactions: List[TransactionRead]


class SampleFormat(ApiModel):
    expected_format: dict
    notes: List[str]
