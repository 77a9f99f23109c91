"""Submitted forms and their validation.

Validation functions never raise; they return a :class:`BindingResult`
listing every field that failed, in field order.
"""

from dataclasses import dataclass, field
from typing import List, NamedTuple

USERNAME_MAX_LENGTH = 64
# bcrypt only looks at the first 72 bytes of its input
PASSWORD_MAX_BYTES = 72
NAME_MAX_LENGTH = 64
TEXT_MAX_LENGTH = 1000


class FieldError(NamedTuple):
    field: str
    message: str


@dataclass
class BindingResult:
    """Field-level errors collected while validating a form."""

    errors: List[FieldError] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def reject_value(self, field_name: str, message: str) -> None:
        self.errors.append(FieldError(field_name, message))

    def errors_for(self, field_name: str) -> List[str]:
        return [e.message for e in self.errors if e.field == field_name]


@dataclass
class RegistrationForm:
    username: str = ""
    password: str = ""


@dataclass
class GuestbookForm:
    name: str = ""
    text: str = ""


def validate_registration(form: RegistrationForm) -> BindingResult:
    result = BindingResult()

    if not form.username.strip():
        result.reject_value("username", "Username must not be empty")
    elif len(form.username.strip()) > USERNAME_MAX_LENGTH:
        result.reject_value(
            "username", f"Username must be at most {USERNAME_MAX_LENGTH} characters"
        )

    if not form.password.strip():
        result.reject_value("password", "Password must not be empty")
    elif len(form.password.encode()) > PASSWORD_MAX_BYTES:
        result.reject_value(
            "password", f"Password must be at most {PASSWORD_MAX_BYTES} bytes"
        )

    return result


def validate_guestbook_entry(form: GuestbookForm) -> BindingResult:
    result = BindingResult()

    if not form.name.strip():
        result.reject_value("name", "Name must not be empty")
    elif len(form.name.strip()) > NAME_MAX_LENGTH:
        result.reject_value("name", f"Name must be at most {NAME_MAX_LENGTH} characters")

    if not form.text.strip():
        result.reject_value("text", "Text must not be empty")
    elif len(form.text) > TEXT_MAX_LENGTH:
        result.reject_value("text", f"Text must be at most {TEXT_MAX_LENGTH} characters")

    return result
