"""Guestbook web application with user registration and login."""

from .api import create_app

__all__ = ["create_app"]
