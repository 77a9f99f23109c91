"""Storage schema for application users and the mapping to :class:`User`."""

from dataclasses import dataclass
from typing import Any, Dict, Mapping

from sqlalchemy import Column, Integer, String, Table, UniqueConstraint

from ..database import Base

DEFAULT_ROLE = "USER"
ADMIN_ROLE = "ADMIN"

users = Table(
    "users",
    Base.metadata,
    Column("id", Integer, primary_key=True, index=True),
    Column("username", String(64), nullable=False),
    Column("password", String, nullable=False),
    Column("role", String, nullable=False, default=DEFAULT_ROLE),
    UniqueConstraint("username", name="uq_users_username"),
)


@dataclass(frozen=True)
class User:
    """An application user. ``password`` only ever holds a hash."""

    username: str
    password: str
    role: str = DEFAULT_ROLE
    id: int | None = None


def user_from_row(row: Mapping[str, Any]) -> User:
    return User(
        id=row["id"],
        username=row["username"],
        password=row["password"],
        role=row["role"],
    )


def user_to_row(user: User) -> Dict[str, Any]:
    """Column values for ``user``; the id is owned by the database and never written."""
    return {
        "username": user.username,
        "password": user.password,
        "role": user.role,
    }
