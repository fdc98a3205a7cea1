import jwt
import pytest

from auth.sessions import Identity, SessionIssuer
from errors.errors import Conflict, NotFound, Unauthorized, ValidationError
from models.models import User


def test_register_then_login_yields_verifiable_token(issuer):
    token, user = issuer.register("alice@example.com", "secret123")
    assert issuer.verify(token).user_id == user.id

    token, logged_in = issuer.login("alice@example.com", "secret123")
    identity = issuer.verify(token)
    assert identity.user_id == user.id
    assert identity.email == "alice@example.com"
    assert logged_in.id == user.id


def test_password_is_stored_hashed(issuer):
    _, user = issuer.register("alice@example.com", "secret123")
    assert user.password_hash != "secret123"


def test_email_is_case_insensitive(issuer):
    _, user = issuer.register("  Alice@Example.COM ", "secret123")
    assert user.email == "alice@example.com"
    _, logged_in = issuer.login("ALICE@example.com", "secret123")
    assert logged_in.id == user.id


def test_duplicate_registration_conflicts(issuer):
    issuer.register("alice@example.com", "secret123")
    with pytest.raises(Conflict):
        issuer.register("ALICE@example.com", "other-password")
    assert User.query.count() == 1


@pytest.mark.parametrize("email", ["", "not-an-email", "a@b", "@example.com", None])
def test_register_rejects_malformed_email(issuer, email):
    with pytest.raises(ValidationError):
        issuer.register(email, "secret123")


@pytest.mark.parametrize("password", ["", "12345", None])
def test_register_rejects_short_password(issuer, password):
    with pytest.raises(ValidationError):
        issuer.register("alice@example.com", password)
    assert User.query.count() == 0


def test_login_failures_are_indistinguishable(issuer):
    issuer.register("alice@example.com", "secret123")
    with pytest.raises(Unauthorized) as wrong_password:
        issuer.login("alice@example.com", "wrong-password")
    with pytest.raises(Unauthorized) as unknown_email:
        issuer.login("bob@example.com", "secret123")
    assert wrong_password.value.message == unknown_email.value.message


def test_login_does_not_revoke_earlier_tokens(issuer):
    first, _ = issuer.register("alice@example.com", "secret123")
    second, _ = issuer.login("alice@example.com", "secret123")
    assert issuer.verify(first).user_id == issuer.verify(second).user_id


def test_expired_token_is_rejected(dm, issuer):
    _, user = issuer.register("alice@example.com", "secret123")
    stale = SessionIssuer(dm, issuer.secret, expires_minutes=-5).issue(user)
    with pytest.raises(Unauthorized, match="expired"):
        issuer.verify(stale)


def test_token_signed_with_other_secret_is_rejected(issuer):
    _, user = issuer.register("alice@example.com", "secret123")
    forged = jwt.encode(
        {"sub": str(user.id), "email": user.email}, "some-other-secret-of-decent-length", algorithm="HS256"
    )
    with pytest.raises(Unauthorized):
        issuer.verify(forged)


@pytest.mark.parametrize("token", ["", "garbage", "a.b.c"])
def test_malformed_token_is_rejected(issuer, token):
    with pytest.raises(Unauthorized):
        issuer.verify(token)


def test_token_without_subject_is_rejected(issuer):
    token = jwt.encode({"email": "alice@example.com"}, issuer.secret, algorithm="HS256")
    with pytest.raises(Unauthorized):
        issuer.verify(token)


def test_current_user_for_missing_user(issuer):
    token, user = issuer.register("alice@example.com", "secret123")
    identity = issuer.verify(token)
    assert issuer.current_user(identity).id == user.id

    with pytest.raises(NotFound):
        issuer.current_user(Identity(user_id=999, email="ghost@example.com"))


def test_token_without_expiry_is_rejected(issuer):
    _, user = issuer.register("alice@example.com", "secret123")
    token = jwt.encode({"sub": str(user.id), "email": user.email}, issuer.secret, algorithm="HS256")
    with pytest.raises(Unauthorized):
        issuer.verify(token)
