"""ORM model for application user accounts."""

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String, func

from app.models.base import Base

USER_ROLES = ("admin", "user")
DEFAULT_ROLE = "user"
NAME_MIN_LEN = 2
NAME_MAX_LEN = 255


class User(Base):
    """
    User account authenticated by email and password.

    email is stored trimmed and lowercased; the unique index on it is what makes
    concurrent sign-ups with the same address safe.
    password holds the bcrypt hash, never the plaintext.
    role: 'admin' or 'user'
    """

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("role IN ('admin', 'user')", name="role"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password = Column(String(255), nullable=False)
    role = Column(String(32), nullable=False, default=DEFAULT_ROLE, server_default=DEFAULT_ROLE)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r} role={self.role!r}>"
