import logging
from datetime import date as Date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func, or_
from sqlmodel import Session, select

from ..db import get_session
from ..models import Category, Transaction, User, UserCategoryBudget
from ..schemas import (
    BudgetRead,
    BudgetResponse,
    BudgetUpdate,
    CategoryCreate,
    CategoryRead,
    CategoryResponse,
    CategoryUpdate,
    MessageResponse,
    TransactionCountResponse,
)
from ..security import get_current_user
from ..stats import UNCATEGORIZED, effective_budget, visible_categories
from .transactions import get_visible_category

logger = logging.getLogger(__name__)

DEFAULT_COLOR = "#9E9E9E"


def to_category_read(session: Session, user: User, cat: Category, today: Optional[Date] = None) -> CategoryRead:
    """Category schema with the budget effective for the current month."""
    today = today or Date.today()
    return CategoryRead(
        id=cat.id,
        name=cat.name,
        description=cat.description,
        color=cat.color,
        monthly_budget=effective_budget(session, user.id, cat, today.year, today.month),
        is_system_category=cat.is_system_category,
    )


def _name_taken(session: Session, user: User, name: str, exclude_id: Optional[int] = None) -> bool:
    # reserved for transactions without a category in the dashboard breakdowns
    if name.lower() == UNCATEGORIZED.lower():
        return True
    stmt = select(Category).where(
        func.lower(Category.name) == name.lower(),
        or_(Category.user_id == user.id, Category.user_id == None),  # noqa: E711
    )
    if exclude_id is not None:
        stmt = stmt.where(Category.id != exclude_id)
    return session.exec(stmt).first() is not None


def _get_visible_or_404(session: Session, user: User, category_id: int) -> Category:
    cat = get_visible_category(session, user, category_id)
    if not cat:
        raise HTTPException(status_code=404, detail="Category not found")
    return cat


def _get_own_or_404(session: Session, user: User, category_id: int) -> Category:
    cat = session.get(Category, category_id)
    if not cat or cat.user_id != user.id:
        raise HTTPException(
            status_code=404, detail="Category not found or you do not have permission to modify it"
        )
    return cat


def _count_transactions(session: Session, user: User, category_id: int) -> int:
    stmt = select(func.count(Transaction.id)).where(
        Transaction.category_id == category_id, Transaction.user_id == user.id
    )
    return session.exec(stmt).one()


categories_router = APIRouter(prefix="/categories", tags=["categories"])


# PUBLIC_INTERFACE
@categories_router.get(
    "",
    response_model=List[CategoryRead],
    summary="List categories",
    description="System categories plus the user's own, with the budget effective for the current month.",
)
def list_categories(
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> List[CategoryRead]:
    """Return all categories visible to the user."""
    today = Date.today()
    return [to_category_read(session, user, c, today) for c in visible_categories(session, user.id)]


# PUBLIC_INTERFACE
@categories_router.get("/{category_id}", response_model=CategoryRead, summary="Get category")
def get_category(
    category_id: int,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> CategoryRead:
    return to_category_read(session, user, _get_visible_or_404(session, user, category_id))


# PUBLIC_INTERFACE
@categories_router.post(
    "",
    response_model=CategoryResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create category",
)
def create_category(
    payload: CategoryCreate,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> CategoryResponse:
    """Create a custom category owned by the user."""
    if _name_taken(session, user, payload.name):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Category already exists")

    cat = Category(
        name=payload.name,
        description=payload.description,
        color=payload.color or DEFAULT_COLOR,
        monthly_budget=payload.monthly_budget,
        user_id=user.id,
    )
    session.add(cat)
    session.commit()
    session.refresh(cat)
    logger.info("User %s created category %r", user.username, cat.name)
    return CategoryResponse(message="Category created successfully", category=to_category_read(session, user, cat))


# PUBLIC_INTERFACE
@categories_router.put("/{category_id}", response_model=CategoryResponse, summary="Update category")
def update_category(
    category_id: int,
    payload: CategoryUpdate,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> CategoryResponse:
    """Update one of the user's own categories; system categories are read-only."""
    cat = _get_own_or_404(session, user, category_id)

    if payload.name is not None:
        name = payload.name.strip()
        if not name:
            raise HTTPException(status_code=400, detail="Category name is required")
        if name != cat.name and _name_taken(session, user, name, exclude_id=cat.id):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Category name already exists")
        cat.name = name
    if payload.description is not None:
        cat.description = payload.description
    if payload.color is not None:
        cat.color = payload.color
    if payload.monthly_budget is not None:
        cat.monthly_budget = payload.monthly_budget

    session.add(cat)
    session.commit()
    session.refresh(cat)
    return CategoryResponse(message="Category updated successfully", category=to_category_read(session, user, cat))


# PUBLIC_INTERFACE
@categories_router.put(
    "/{category_id}/budget",
    response_model=BudgetResponse,
    summary="Set monthly budget",
    description="Set the user's budget for a category and month (defaults to the current month).",
)
def set_category_budget(
    category_id: int,
    payload: BudgetUpdate,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> BudgetResponse:
    """Create or replace the user's budget entry for the category and month."""
    cat = _get_visible_or_404(session, user, category_id)
    today = Date.today()
    year = payload.year or today.year
    month = payload.month or today.month

    entry = session.exec(
        select(UserCategoryBudget).where(
            UserCategoryBudget.user_id == user.id,
            UserCategoryBudget.category_id == cat.id,
            UserCategoryBudget.year == year,
            UserCategoryBudget.month == month,
        )
    ).first()
    if entry is None:
        entry = UserCategoryBudget(user_id=user.id, category_id=cat.id, year=year, month=month)
    entry.monthly_budget = float(payload.monthly_budget)

    session.add(entry)
    session.commit()
    session.refresh(entry)
    return BudgetResponse(
        message="Budget updated successfully",
        budget=BudgetRead(
            category_id=entry.category_id, year=entry.year, month=entry.month, monthly_budget=entry.monthly_budget
        ),
    )


# PUBLIC_INTERFACE
@categories_router.delete("/{category_id}", response_model=MessageResponse, summary="Delete category")
def delete_category(
    category_id: int,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> MessageResponse:
    """Delete one of the user's categories unless transactions still reference it."""
    cat = _get_own_or_404(session, user, category_id)
    count = _count_transactions(session, user, cat.id)
    if count > 0:
        raise HTTPException(
            status_code=400,
            detail=f"Cannot delete category. It is used by {count} transaction(s).",
        )

    name = cat.name
    for entry in session.exec(select(UserCategoryBudget).where(UserCategoryBudget.category_id == cat.id)).all():
        session.delete(entry)
    session.delete(cat)
    session.commit()
    logger.info("User %s deleted category %r", user.username, name)
    return MessageResponse(message="Category deleted successfully")


# PUBLIC_INTERFACE
@categories_router.get(
    "/{category_id}/transaction-count",
    response_model=TransactionCountResponse,
    summary="Count transactions in category",
)
def get_category_transaction_count(
    category_id: int,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> TransactionCountResponse:
    cat = _get_visible_or_404(session, user, category_id)
    return TransactionCountResponse(transaction_count=_count_transactions(session, user, cat.id))
