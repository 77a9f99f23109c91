from datetime import timedelta

from guestbook.security import PasswordHasher, create_session_token, decode_session_token


def test_hash_is_salted_but_verifies(hasher):
    first = hasher.hash("secret")
    second = hasher.hash("secret")
    assert first != second
    assert hasher.verify("secret", first)
    assert hasher.verify("secret", second)


def test_hash_never_contains_plaintext(hasher):
    assert "Passw0rd!" not in hasher.hash("Passw0rd!")


def test_verify_wrong_password(hasher):
    assert not hasher.verify("wrong", hasher.hash("secret"))


def test_verify_fails_closed_on_malformed_hash():
    hasher = PasswordHasher(rounds=4)
    assert hasher.verify("secret", "not-a-bcrypt-hash") is False
    assert hasher.verify("secret", "") is False


def test_session_token_round_trip():
    token = create_session_token("alice", "USER", "k", "HS256", timedelta(minutes=5))
    user = decode_session_token(token, "k", "HS256")
    assert user.username == "alice"
    assert user.has_role("USER")
    assert not user.has_role("ADMIN")


def test_session_token_wrong_secret_is_anonymous():
    token = create_session_token("alice", "USER", "k", "HS256", timedelta(minutes=5))
    assert decode_session_token(token, "other", "HS256") is None


def test_expired_session_token_is_anonymous():
    token = create_session_token("alice", "USER", "k", "HS256", timedelta(minutes=-1))
    assert decode_session_token(token, "k", "HS256") is None


def test_garbage_session_token_is_anonymous():
    assert decode_session_token("garbage", "k", "HS256") is None
