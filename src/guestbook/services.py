"""Service layer for registration, login and the guestbook itself."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Tuple

from prometheus_client import Counter
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from .database import GuestbookEntry, handle_storage_error
from .errors import (
    BadCredentialsError,
    EntryNotFoundError,
    PrincipalNotFoundError,
    StorageError,
    UsernameTakenError,
)
from .forms import (
    BindingResult,
    GuestbookForm,
    RegistrationForm,
    validate_guestbook_entry,
    validate_registration,
)
from .models.user import ADMIN_ROLE, DEFAULT_ROLE, User
from .security import PasswordHasher
from .store import UserStore


logger = logging.getLogger(__name__)

USERNAME_TAKEN = "Username is already taken"

# Prometheus counters for key service events
REGISTRATION_COUNTER = Counter(
    "guestbook_registrations_total", "Registration attempts by outcome", ["outcome"]
)
LOGIN_COUNTER = Counter(
    "guestbook_logins_total", "Login attempts by outcome", ["outcome"]
)
ENTRY_COUNTER = Counter(
    "guestbook_entries_created_total", "Total guestbook entries created"
)

DEFAULT_ENTRIES = [
    ("H4xx0r", "first!!!"),
    ("Arni", "Hasta la vista, baby"),
    ("Duke Nukem", "It's time to kick ass and chew bubble gum. And I'm all out of gum."),
    (
        "Gump1337",
        "Mama always said life was like a box of chocolates. You never know what you're gonna get.",
    ),
]


class RegistrationService:
    """Creates ``USER`` accounts from submitted registration forms."""

    def __init__(self, users: UserStore, hasher: PasswordHasher):
        self._users = users
        self._hasher = hasher

    def register(self, form: RegistrationForm) -> Tuple[User | None, BindingResult]:
        """Validate ``form`` and store a new user.

        Returns the saved user and an empty binding result on success, or
        ``None`` and the field errors otherwise. Nothing is written when
        validation fails or the username is taken.
        """
        binding = validate_registration(form)
        if binding.has_errors:
            REGISTRATION_COUNTER.labels(outcome="invalid").inc()
            return None, binding

        username = form.username.strip()
        # fast path only, the unique constraint below is what actually decides
        if self._users.find_by_username(username) is not None:
            binding.reject_value("username", USERNAME_TAKEN)
            REGISTRATION_COUNTER.labels(outcome="duplicate").inc()
            return None, binding

        user = User(username=username, password=self._hasher.hash(form.password), role=DEFAULT_ROLE)
        try:
            saved = self._users.save(user)
        except UsernameTakenError:
            binding.reject_value("username", USERNAME_TAKEN)
            REGISTRATION_COUNTER.labels(outcome="duplicate").inc()
            return None, binding

        REGISTRATION_COUNTER.labels(outcome="created").inc()
        logger.info("registered user %s (id=%s)", saved.username, saved.id)
        return saved, binding

    def ensure_user(self, username: str, password: str, role: str = ADMIN_ROLE) -> User:
        """Create ``username`` with ``role`` unless it already exists."""
        existing = self._users.find_by_username(username)
        if existing is not None:
            return existing
        try:
            saved = self._users.save(User(username=username, password=self._hasher.hash(password), role=role))
        except UsernameTakenError:
            # another process created it between the lookup and the insert
            existing = self._users.find_by_username(username)
            if existing is None:
                raise StorageError(f"user {username!r} conflicted but cannot be found")
            return existing
        logger.info("created %s account %s", role, username)
        return saved


@dataclass(frozen=True)
class Principal:
    """A stored user in the shape the login check needs."""

    username: str
    password: str
    role: str

    @property
    def authorities(self) -> List[str]:
        return [f"ROLE_{self.role}"]


class AuthenticationService:
    """Bridges stored users to password-based login."""

    def __init__(self, users: UserStore, hasher: PasswordHasher):
        self._users = users
        self._hasher = hasher
        # verified against for unknown usernames so both failure paths cost the same
        self._dummy_hash = hasher.hash("dummy-password")

    def load_principal(self, username: str) -> Principal:
        user = self._users.find_by_username(username)
        if user is None:
            raise PrincipalNotFoundError("User not found")
        return Principal(username=user.username, password=user.password, role=user.role)

    def authenticate(self, username: str, password: str) -> Principal:
        """Return the principal for valid credentials.

        Raises :class:`BadCredentialsError` for an unknown user and for a
        wrong password alike.
        """
        try:
            principal = self.load_principal(username.strip())
        except PrincipalNotFoundError:
            self._hasher.verify(password, self._dummy_hash)
            LOGIN_COUNTER.labels(outcome="failure").inc()
            logger.info("login failed for %s", username)
            raise BadCredentialsError("Bad credentials") from None

        if not self._hasher.verify(password, principal.password):
            LOGIN_COUNTER.labels(outcome="failure").inc()
            logger.info("login failed for %s", username)
            raise BadCredentialsError("Bad credentials")

        LOGIN_COUNTER.labels(outcome="success").inc()
        logger.info("login: %s", principal.username)
        return principal


class GuestbookService:
    """Reads and writes guestbook entries."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def list_entries(self) -> List[GuestbookEntry]:
        """Return all entries, newest first."""
        session: Session = self._session_factory()
        try:
            stmt = select(GuestbookEntry).order_by(GuestbookEntry.date.desc(), GuestbookEntry.id.desc())
            return list(session.scalars(stmt).all())
        except SQLAlchemyError as exc:
            handle_storage_error(session, exc)
        finally:
            session.close()

    def add_entry(self, form: GuestbookForm) -> Tuple[GuestbookEntry | None, BindingResult]:
        binding = validate_guestbook_entry(form)
        if binding.has_errors:
            return None, binding

        session: Session = self._session_factory()
        try:
            entry = GuestbookEntry(name=form.name.strip(), text=form.text.strip(), date=datetime.utcnow())
            session.add(entry)
            session.commit()
            session.refresh(entry)
            ENTRY_COUNTER.inc()
            logger.info("guestbook entry %s added by %s", entry.id, entry.name)
            return entry, binding
        except SQLAlchemyError as exc:
            handle_storage_error(session, exc)
        finally:
            session.close()

    def delete_entry(self, entry_id: int) -> None:
        session: Session = self._session_factory()
        try:
            entry = session.get(GuestbookEntry, entry_id)
            if entry is None:
                raise EntryNotFoundError(entry_id)
            session.delete(entry)
            session.commit()
            logger.info("guestbook entry %s deleted", entry_id)
        except SQLAlchemyError as exc:
            handle_storage_error(session, exc)
        finally:
            session.close()

    def seed_defaults(self) -> int:
        """Insert the default entries into an empty guestbook.

        Returns the number of entries inserted.
        """
        session: Session = self._session_factory()
        try:
            if session.scalar(select(func.count()).select_from(GuestbookEntry)):
                return 0
            session.add_all(GuestbookEntry(name=name, text=text) for name, text in DEFAULT_ENTRIES)
            session.commit()
            logger.info("seeded %d guestbook entries", len(DEFAULT_ENTRIES))
            return len(DEFAULT_ENTRIES)
        except SQLAlchemyError as exc:
            handle_storage_error(session, exc)
        finally:
            session.close()
