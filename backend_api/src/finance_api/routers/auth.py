import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import or_
from sqlmodel import Session, select

from ..categorizer import ensure_default_categories
from ..db import get_session
from ..models import User, utcnow
from ..schemas import AuthResponse, CurrentUserResponse, LoginRequest, MessageResponse, RegisterRequest, UserRead
from ..security import create_access_token, get_current_user, hash_password, verify_password

logger = logging.getLogger(__name__)


def to_user_read(user: User) -> UserRead:
    return UserRead(
        id=user.id,
        username=user.username,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        full_name=user.full_name,
        role=user.role,
        created_at=user.created_at,
        last_login_at=user.last_login_at,
    )


auth_router = APIRouter(prefix="/auth", tags=["auth"])


# PUBLIC_INTERFACE
@auth_router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register",
    description="Create an account and return an access token.",
)
def register(payload: RegisterRequest, session: Session = Depends(get_session)) -> AuthResponse:
    """Register a new user. Username and email must be unique (email case-insensitively)."""
    email = payload.email.lower()

    if session.exec(select(User).where(User.username == payload.username)).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Username already exists")
    if session.exec(select(User).where(User.email == email)).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already exists")

    user = User(
        username=payload.username,
        email=email,
        password_hash=hash_password(payload.password),
        first_name=payload.first_name,
        last_name=payload.last_name,
    )
    session.add(user)
    session.commit()
    session.refresh(user)

    ensure_default_categories(session)
    logger.info("Registered user %s", user.username)
    return AuthResponse(message="Registration successful", token=create_access_token(user), user=to_user_read(user))


# PUBLIC_INTERFACE
@auth_router.post(
    "/login",
    response_model=AuthResponse,
    summary="Login",
    description="Authenticate with username or email and password; returns a JWT access token.",
)
def login(payload: LoginRequest, session: Session = Depends(get_session)) -> AuthResponse:
    """Check credentials and issue a token. Do not log sensitive data."""
    ident = payload.username_or_email.strip()
    user = session.exec(
        select(User).where(or_(User.username == ident, User.email == ident.lower()))
    ).first()

    if not user or not verify_password(payload.password, user.password_hash):
        logger.info("Failed login attempt for %r", ident)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid username/email or password")
    if not user.enabled:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Account is disabled")

    user.last_login_at = utcnow()
    session.add(user)
    session.commit()
    session.refresh(user)
    logger.info("User %s logged in", user.username)
    return AuthResponse(message="Login successful", token=create_access_token(user), user=to_user_read(user))


# older clients post to /signin
auth_router.add_api_route(
    "/signin", login, methods=["POST"], response_model=AuthResponse, summary="Login (alias)", include_in_schema=False
)


# PUBLIC_INTERFACE
@auth_router.get("/me", response_model=CurrentUserResponse, summary="Current user")
def me(user: User = Depends(get_current_user)) -> CurrentUserResponse:
    """Return the authenticated user's profile."""
    return CurrentUserResponse(user=to_user_read(user))


# PUBLIC_INTERFACE
@auth_router.post("/signout", response_model=MessageResponse, summary="Sign out")
def signout() -> MessageResponse:
    """Tokens are stateless; the client discards its token."""
    return MessageResponse(message="Signed out successfully")
