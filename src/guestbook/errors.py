"""Exceptions raised by the service layer."""


class GuestbookError(Exception):
    """Base class for application errors."""


class StorageError(GuestbookError):
    """The database rejected or failed an operation."""


class UsernameTakenError(GuestbookError):
    """A user with the same username already exists."""

    def __init__(self, username: str):
        super().__init__(f"username {username!r} is already taken")
        self.username = username


class PrincipalNotFoundError(GuestbookError):
    """No user is stored under the requested username."""


class BadCredentialsError(GuestbookError):
    """Login failed. Deliberately carries no detail about the cause."""


class EntryNotFoundError(GuestbookError):
    def __init__(self, entry_id: int):
        super().__init__(f"guestbook entry {entry_id} not found")
        self.entry_id = entry_id


class LoginRequiredError(GuestbookError):
    """The request needs an authenticated session."""


class AccessDeniedError(GuestbookError):
    """The session user lacks the role an operation requires."""
