import logging
import math
from datetime import date as Date
from typing import Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, or_
from sqlmodel import Session, select

from ..categorizer import categorize_by_description
from ..db import get_session
from ..models import TRANSACTION_TYPES, Category, Transaction, User, utcnow
from ..schemas import (
    MessageResponse,
    TransactionCreate,
    TransactionPage,
    TransactionRead,
    TransactionResponse,
    TransactionUpdate,
)
from ..security import get_current_user

logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    "date": Transaction.date,
    "amount": Transaction.amount,
    "description": Transaction.description,
    "type": Transaction.transaction_type,
    "createdAt": Transaction.created_at,
    "created_at": Transaction.created_at,
}


# =========================
# Utilities
# =========================
def to_transaction_read(tr: Transaction) -> TransactionRead:
    """Map a Transaction row to its API schema, including the category's name and color."""
    cat = tr.category
    return TransactionRead(
        id=tr.id,
        date=tr.date,
        description=tr.description,
        amount=tr.amount,
        type=tr.transaction_type,
        category_id=tr.category_id,
        category_name=cat.name if cat else None,
        category_color=cat.color if cat else None,
        reference=tr.reference,
        created_at=tr.created_at,
        updated_at=tr.updated_at,
    )


def check_date_range(start: Optional[Date], end: Optional[Date]) -> Optional[Tuple[Date, Date]]:
    """Return (start, end) when both bounds are given, None when neither is; 400 otherwise."""
    if start is None and end is None:
        return None
    if start is None or end is None:
        raise HTTPException(status_code=400, detail="startDate and endDate must be provided together")
    if start > end:
        raise HTTPException(status_code=400, detail="startDate must not be after endDate")
    return start, end


def get_visible_category(session: Session, user: User, category_id: int) -> Optional[Category]:
    """Return the category when it is a system category or owned by the user."""
    cat = session.get(Category, category_id)
    if not cat or (cat.user_id is not None and cat.user_id != user.id):
        return None
    return cat


def get_own_transaction(session: Session, user: User, transaction_id: int) -> Transaction:
    obj = session.get(Transaction, transaction_id)
    if not obj or obj.user_id != user.id:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return obj


def query_transactions_page(
    session: Session,
    user: User,
    page: int = 0,
    size: int = 50,
    sort_by: str = "date",
    sort_dir: str = "desc",
    date_range: Optional[Tuple[Date, Date]] = None,
    tr_type: Optional[str] = None,
    category_id: Optional[int] = None,
    search: Optional[str] = None,
) -> TransactionPage:
    """Filter, sort and paginate the user's transactions. Pages are zero-based."""
    column = SORT_COLUMNS.get(sort_by)
    if column is None:
        raise HTTPException(status_code=400, detail=f"sortBy must be one of {', '.join(SORT_COLUMNS)}")
    if sort_dir not in ("asc", "desc"):
        raise HTTPException(status_code=400, detail="sortDir must be asc or desc")

    conditions = [Transaction.user_id == user.id]
    if date_range:
        conditions += [Transaction.date >= date_range[0], Transaction.date <= date_range[1]]
    if tr_type:
        tr_type = tr_type.upper()
        if tr_type not in TRANSACTION_TYPES:
            raise HTTPException(status_code=400, detail=f"type must be one of {', '.join(TRANSACTION_TYPES)}")
        conditions.append(Transaction.transaction_type == tr_type)
    if category_id is not None:
        conditions.append(Transaction.category_id == category_id)
    term = search.strip().lower() if search else ""
    if term:
        # autoescape makes % and _ in the term match literally
        conditions.append(
            or_(
                func.lower(Transaction.description).contains(term, autoescape=True),
                func.lower(Transaction.reference).contains(term, autoescape=True),
            )
        )

    total = session.exec(select(func.count(Transaction.id)).where(*conditions)).one()
    order = column.asc() if sort_dir == "asc" else column.desc()
    stmt = (
        select(Transaction)
        .where(*conditions)
        .order_by(order, Transaction.id.desc())
        .offset(page * size)
        .limit(size)
    )
    items = session.exec(stmt).all()
    return TransactionPage(
        data=[to_transaction_read(t) for t in items],
        total=total,
        page=page,
        size=size,
        total_pages=math.ceil(total / size) if size else 0,
    )


# =========================
# Routes
# =========================
transactions_router = APIRouter(prefix="/transactions", tags=["transactions"])


# PUBLIC_INTERFACE
@transactions_router.get(
    "",
    response_model=TransactionPage,
    summary="List transactions",
    description="Paginated transactions of the current user, optionally filtered by date range, type, category or text.",
)
def list_transactions(
    page: int = Query(0, ge=0),
    size: int = Query(50, ge=1, le=500),
    sort_by: str = Query("date", alias="sortBy"),
    sort_dir: str = Query("desc", alias="sortDir"),
    start_date: Optional[Date] = Query(None, alias="startDate"),
    end_date: Optional[Date] = Query(None, alias="endDate"),
    tr_type: Optional[str] = Query(None, alias="type"),
    category_id: Optional[int] = Query(None, alias="categoryId"),
    search: Optional[str] = Query(None, max_length=100),
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> TransactionPage:
    """List the user's transactions."""
    return query_transactions_page(
        session, user, page, size, sort_by, sort_dir,
        check_date_range(start_date, end_date), tr_type, category_id, search,
    )


# PUBLIC_INTERFACE
@transactions_router.post(
    "",
    response_model=TransactionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create transaction",
    description="Create a transaction. Without categoryId the category is detected from the description.",
)
def create_transaction(
    payload: TransactionCreate,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> TransactionResponse:
    """Create a new transaction."""
    if payload.category_id is not None:
        cat = get_visible_category(session, user, payload.category_id)
        if not cat:
            raise HTTPException(status_code=400, detail="Category not found")
    else:
        cat = categorize_by_description(session, payload.description, user.id)

    obj = Transaction(
        date=payload.date,
        description=payload.description,
        amount=float(payload.amount),
        transaction_type=payload.type,
        reference=payload.reference.strip() if payload.reference else None,
        category_id=cat.id if cat else None,
        user_id=user.id,
    )
    session.add(obj)
    session.commit()
    session.refresh(obj)
    return TransactionResponse(message="Transaction created successfully", transaction=to_transaction_read(obj))


# PUBLIC_INTERFACE
@transactions_router.get("/{transaction_id}", response_model=TransactionResponse, summary="Get transaction")
def get_transaction(
    transaction_id: int,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> TransactionResponse:
    obj = get_own_transaction(session, user, transaction_id)
    return TransactionResponse(message="OK", transaction=to_transaction_read(obj))


# PUBLIC_INTERFACE
@transactions_router.put("/{transaction_id}", response_model=TransactionResponse, summary="Update transaction")
def update_transaction(
    transaction_id: int,
    payload: TransactionUpdate,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> TransactionResponse:
    """Update an existing transaction; only provided fields change."""
    obj = get_own_transaction(session, user, transaction_id)

    if payload.category_id is not None:
        cat = get_visible_category(session, user, payload.category_id)
        if not cat:
            raise HTTPException(status_code=400, detail="Category not found")
        obj.category_id = cat.id

    if payload.date is not None:
        obj.date = payload.date
    if payload.description is not None:
        obj.description = payload.description.strip()
    if payload.amount is not None:
        if payload.amount == 0:
            raise HTTPException(status_code=400, detail="amount must be non-zero")
        obj.amount = float(payload.amount)
    if payload.type is not None:
        obj.transaction_type = payload.type
    if "reference" in payload.model_fields_set:
        obj.reference = payload.reference.strip() if payload.reference else None
    obj.updated_at = utcnow()

    session.add(obj)
    session.commit()
    session.refresh(obj)
    return TransactionResponse(message="Transaction updated successfully", transaction=to_transaction_read(obj))


# PUBLIC_INTERFACE
@transactions_router.delete("/{transaction_id}", response_model=MessageResponse, summary="Delete transaction")
def delete_transaction(
    transaction_id: int,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> MessageResponse:
    """Delete a transaction by ID."""
    obj = get_own_transaction(session, user, transaction_id)
    session.delete(obj)
    session.commit()
    return MessageResponse(message="Transaction deleted successfully")
