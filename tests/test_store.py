from dataclasses import replace

import pytest

from guestbook.errors import StorageError, UsernameTakenError
from guestbook.models.user import User, users


def test_save_assigns_id(user_store):
    saved = user_store.save(User(username="alice", password="hash"))
    assert saved.id is not None
    assert user_store.find_by_username("alice") == saved


def test_find_missing_user_returns_none(user_store):
    assert user_store.find_by_username("nobody") is None


def test_unique_constraint_rejects_duplicate_insert(user_store):
    user_store.save(User(username="bob", password="first"))
    with pytest.raises(UsernameTakenError):
        user_store.save(User(username="bob", password="second"))

    stored = user_store.find_all()
    assert len(stored) == 1
    assert stored[0].password == "first"


def test_save_existing_user_overwrites_row(user_store):
    saved = user_store.save(User(username="carol", password="old"))
    user_store.save(replace(saved, password="new", role="ADMIN"))

    reloaded = user_store.find_by_username("carol")
    assert reloaded.id == saved.id
    assert reloaded.password == "new"
    assert reloaded.role == "ADMIN"
    assert len(user_store.find_all()) == 1


def test_database_failure_raises_storage_error(user_store, engine):
    users.drop(engine)

    with pytest.raises(StorageError):
        user_store.find_by_username("alice")
    with pytest.raises(StorageError):
        user_store.save(User(username="alice", password="hash"))
