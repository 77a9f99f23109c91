"""Password hashing and signed session tokens."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt


class PasswordHasher:
    """bcrypt hashing with a random salt per call."""

    def __init__(self, rounds: int = 12):
        self.rounds = rounds

    def hash(self, password: str) -> str:
        return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=self.rounds)).decode()

    def verify(self, password: str, password_hash: str) -> bool:
        """Check ``password`` against ``password_hash``; malformed hashes never match."""
        if not password_hash:
            return False
        try:
            return bcrypt.checkpw(password.encode(), password_hash.encode())
        except (ValueError, TypeError):
            return False


@dataclass(frozen=True)
class SessionUser:
    """The identity carried by an authenticated session cookie."""

    username: str
    role: str

    def has_role(self, role: str) -> bool:
        return self.role == role


def create_session_token(
    username: str, role: str, secret: str, algorithm: str, expires: timedelta
) -> str:
    payload = {
        "sub": username,
        "role": role,
        "exp": datetime.now(timezone.utc) + expires,
    }
    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_session_token(token: str, secret: str, algorithm: str) -> SessionUser | None:
    """Return the session identity, or ``None`` for a tampered or expired token."""
    try:
        payload = jwt.decode(token, secret, algorithms=[algorithm])
    except jwt.PyJWTError:
        return None
    username = payload.get("sub")
    role = payload.get("role")
    if not username or not role:
        return None
    return SessionUser(username=username, role=role)
