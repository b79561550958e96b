"""Durable user storage: lookup by email and insert, over a SQLAlchemy session."""

import logging
from typing import Protocol

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.models import User

logger = logging.getLogger(__name__)


class UserStoreError(Exception):
    """Storage failed while reading or writing a user."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class UserAlreadyExistsError(UserStoreError):
    """The unique constraint on email rejected an insert."""


class UserStore(Protocol):
    """What the credential service needs from storage."""

    def get_by_email(self, email: str) -> User | None: ...

    def insert(self, *, name: str, email: str, password_hash: str, role: str) -> User: ...


class SqlAlchemyUserStore:
    """UserStore backed by the users table."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def get_by_email(self, email: str) -> User | None:
        try:
            return self.session.query(User).filter(User.email == email).limit(1).first()
        except SQLAlchemyError as e:
            logger.error("User lookup failed: %s", type(e).__name__)
            raise UserStoreError("User lookup failed") from e

    def insert(self, *, name: str, email: str, password_hash: str, role: str) -> User:
        user = User(name=name, email=email, password=password_hash, role=role)
        self.session.add(user)
        try:
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            if _is_email_conflict(e):
                raise UserAlreadyExistsError("User with this email already exists") from e
            logger.error("User insert violated a constraint: %s", type(e.orig).__name__)
            raise UserStoreError("User insert violated a constraint") from e
        except SQLAlchemyError as e:
            self.session.rollback()
            raise UserStoreError("User insert failed") from e
        try:
            self.session.refresh(user)
        except SQLAlchemyError as e:
            logger.error("Reloading inserted user failed: %s", type(e).__name__)
            raise UserStoreError("User insert failed") from e
        return user


def _is_email_conflict(error: IntegrityError) -> bool:
    """True if the unique index on users.email rejected the row (PostgreSQL or SQLite wording)."""
    message = str(error.orig).lower()
    return "email" in message and ("unique" in message or "duplicate" in message)
