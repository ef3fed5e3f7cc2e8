from typing import Optional
from uuid import UUID
from sqlalchemy import or_
from sqlalchemy.orm import Session
from sitebuilder.core.security import get_password_hash, verify_password
from sitebuilder.models.user import User, UserMeta


def get(db: Session, user_id: UUID) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()


def get_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == email.lower().strip()).first()


def get_by_login(db: Session, login: str) -> Optional[User]:
    """Look a user up by email or username."""
    value = login.strip()
    return db.query(User).filter(
        or_(User.email == value.lower(), User.username == value)
    ).first()


def get_by_email_or_username(db: Session, email: str, username: Optional[str]) -> Optional[User]:
    conditions = [User.email == email]
    if username:
        conditions.append(User.username == username)
    return db.query(User).filter(or_(*conditions)).first()


def create(db: Session, *, email: str, username: str, password: str,
           meta: Optional[dict] = None, role: str = "user") -> User:
    """Add a user and its meta rows to the session. The caller commits."""
    db_obj = User(
        email=email.lower().strip(),
        username=username.strip(),
        hashed_password=get_password_hash(password),
        role=role,
        status="active",
    )
    db.add(db_obj)
    db.flush()
    for key, value in (meta or {}).items():
        db.add(UserMeta(user_id=db_obj.id, meta_key=key, meta_value=value or ""))
    return db_obj


def authenticate(db: Session, login: str, password: str) -> Optional[User]:
    user = get_by_login(db, login)
    if not user or not verify_password(password, user.hashed_password):
        return None
    return user
