"""Persistence of :class:`~guestbook.models.user.User` records."""

import logging
from dataclasses import replace
from typing import List

from sqlalchemy import insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from .database import handle_storage_error
from .errors import UsernameTakenError
from .models.user import User, user_from_row, user_to_row, users


logger = logging.getLogger(__name__)


class UserStore:
    """Lookup and save operations over the ``users`` table.

    The store performs no locking; username uniqueness is guaranteed by the
    table's unique constraint and surfaces as :class:`UsernameTakenError`.
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def find_by_username(self, username: str) -> User | None:
        session: Session = self._session_factory()
        try:
            row = (
                session.execute(select(users).where(users.c.username == username))
                .mappings()
                .first()
            )
            return user_from_row(row) if row is not None else None
        except SQLAlchemyError as exc:
            handle_storage_error(session, exc)
        finally:
            session.close()

    def find_all(self) -> List[User]:
        session: Session = self._session_factory()
        try:
            rows = session.execute(select(users).order_by(users.c.id)).mappings().all()
            return [user_from_row(row) for row in rows]
        except SQLAlchemyError as exc:
            handle_storage_error(session, exc)
        finally:
            session.close()

    def save(self, user: User) -> User:
        """Insert ``user`` if it has no id yet, otherwise overwrite its row.

        Returns the stored record, carrying the id assigned on first save.
        """
        session: Session = self._session_factory()
        try:
            if user.id is None:
                result = session.execute(insert(users).values(**user_to_row(user)))
                saved = replace(user, id=result.inserted_primary_key[0])
            else:
                session.execute(
                    update(users).where(users.c.id == user.id).values(**user_to_row(user))
                )
                saved = user
            session.commit()
            logger.debug("saved user %s (id=%s)", saved.username, saved.id)
            return saved
        except IntegrityError as exc:
            session.rollback()
            logger.info("unique constraint rejected username %s", user.username)
            raise UsernameTakenError(user.username) from exc
        except SQLAlchemyError as exc:
            handle_storage_error(session, exc)
        finally:
            session.close()
