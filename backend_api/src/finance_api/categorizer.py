"""Keyword based auto-categorization of transaction descriptions.

Matching is a case-insensitive substring test. Categories are tried in the order of
CATEGORY_KEYWORDS and, within a category, in keyword order; the first hit wins. That
ordering matters: "gas bill" never reaches Bills & Utilities because "gas" already
matched Transportation, and "transfer in" is caught by Income before Transfer.
"""
import logging
from typing import Dict, List, Optional

from sqlalchemy import or_
from sqlmodel import Session, select

from .models import Category

logger = logging.getLogger(__name__)

FALLBACK_CATEGORY = "Other"

CATEGORY_KEYWORDS: Dict[str, List[str]] = {
    "Food & Dining": [
        "grocery", "food", "restaurant", "cafe", "coffee", "lunch", "dinner",
        "breakfast", "pizza", "burger", "mcdonald", "starbucks", "subway",
    ],
    "Transportation": ["gas", "fuel", "uber", "lyft", "taxi", "metro", "bus", "train", "parking", "transit"],
    "Shopping": ["amazon", "walmart", "target", "shop", "store", "mall", "clothing", "fashion"],
    "Bills & Utilities": ["electric", "water", "gas bill", "internet", "phone", "mobile", "utility"],
    "Entertainment": ["movie", "cinema", "netflix", "spotify", "game", "concert", "theater"],
    "Healthcare": ["doctor", "hospital", "pharmacy", "medical", "health", "clinic", "prescription"],
    "Income": ["salary", "payroll", "income", "deposit", "payment received", "transfer in"],
    "Transfer": ["transfer", "atm", "withdrawal", "cash"],
    "Housing": ["rent", "mortgage", "lease", "property"],
    "Insurance": ["insurance", "policy", "premium"],
}

DEFAULT_CATEGORIES: List[Dict[str, str]] = [
    {"name": "Food & Dining", "description": "Groceries, restaurants, and food expenses", "color": "#FF6384"},
    {"name": "Transportation", "description": "Gas, public transit, and travel", "color": "#36A2EB"},
    {"name": "Shopping", "description": "Clothing, electronics, and general shopping", "color": "#FFCE56"},
    {"name": "Bills & Utilities", "description": "Electricity, water, internet, and phone bills", "color": "#4BC0C0"},
    {"name": "Entertainment", "description": "Movies, games, and leisure activities", "color": "#9966FF"},
    {"name": "Healthcare", "description": "Medical expenses and pharmacy", "color": "#FF9F40"},
    {"name": "Income", "description": "Salary, freelance, and other income", "color": "#4CAF50"},
    {"name": "Transfer", "description": "Money transfers and ATM withdrawals", "color": "#757575"},
    {"name": "Housing", "description": "Rent, mortgage, and property expenses", "color": "#795548"},
    {"name": "Insurance", "description": "Health, car, and life insurance", "color": "#607D8B"},
    {"name": FALLBACK_CATEGORY, "description": "Miscellaneous expenses", "color": "#9E9E9E"},
]


def match_category_name(description: Optional[str]) -> Optional[str]:
    """Return the first category name whose keyword occurs in the description, else None."""
    if not description or not description.strip():
        return None
    text = description.lower()
    for category_name, keywords in CATEGORY_KEYWORDS.items():
        for keyword in keywords:
            if keyword in text:
                return category_name
    return None


def find_visible_category(session: Session, name: str, user_id: int) -> Optional[Category]:
    """Look up a category by name among the user's own and the system categories; own wins."""
    stmt = select(Category).where(
        Category.name == name,
        or_(Category.user_id == user_id, Category.user_id == None),  # noqa: E711
    )
    candidates = session.exec(stmt).all()
    if not candidates:
        return None
    owned = [c for c in candidates if c.user_id is not None]
    return owned[0] if owned else candidates[0]


# PUBLIC_INTERFACE
def categorize_by_description(session: Session, description: str, user_id: int) -> Optional[Category]:
    """Pick a category for a transaction description, falling back to "Other"."""
    name = match_category_name(description)
    if name:
        category = find_visible_category(session, name, user_id)
        if category:
            return category
        logger.debug("Keyword matched %r but category %r does not exist", description, name)
    return find_visible_category(session, FALLBACK_CATEGORY, user_id)


def ensure_default_categories(session: Session) -> List[Category]:
    """Create any missing system categories. Idempotent."""
    existing = {
        c.name
        for c in session.exec(select(Category).where(Category.user_id == None)).all()  # noqa: E711
    }
    created = []
    for preset in DEFAULT_CATEGORIES:
        if preset["name"] in existing:
            continue
        category = Category(user_id=None, **preset)
        session.add(category)
        created.append(category)
    if created:
        session.commit()
        logger.info("Created %d default categories", len(created))
    return session.exec(select(Category).where(Category.user_id == None)).all()  # noqa: E711
