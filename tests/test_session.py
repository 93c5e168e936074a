from datetime import datetime, timedelta

import pytest

from shopcart.core.errors import EmailTakenError, NotAuthorizedError, ValidationFailedError
from shopcart.core.security import create_access_token, decode_access_token, get_password_hash, verify_password
from shopcart.models.token import RevokedToken
from shopcart.models.user import User
from shopcart.services.auth import AuthService
from shopcart.services.session import SessionIssuer


@pytest.fixture()
def account(session):
    user = User(email="ana@example.com", name="Ana", password_hash=get_password_hash("secret123"))
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture()
def guest(session):
    user = User(is_guest=True, guest_id="guest_abc", cart_expires_at=datetime.utcnow() + timedelta(days=7))
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def test_password_hashing():
    hashed = get_password_hash("secret123")

    assert hashed != "secret123"
    assert verify_password("secret123", hashed)
    assert not verify_password("wrong", hashed)
    assert not verify_password("secret123", None)


def test_token_claims_round_trip():
    claims = decode_access_token(create_access_token("42", is_guest=True))

    assert claims.subject == "42"
    assert claims.is_guest is True
    assert claims.token_id


def test_expired_token_is_invalid():
    assert decode_access_token(create_access_token("42", expires_delta=timedelta(seconds=-5))) is None


def test_every_token_gets_its_own_id():
    first = decode_access_token(create_access_token("1"))
    second = decode_access_token(create_access_token("1"))
    assert first.token_id != second.token_id


class TestResolve:
    def test_resolves_account_and_guest(self, session, account, guest):
        issuer = SessionIssuer(session)

        assert issuer.resolve(issuer.mint(account)).id == account.id
        assert issuer.resolve(issuer.mint(guest)).id == guest.id

    @pytest.mark.parametrize("token, message", [
        (None, "Not authorized, no token"),
        ("", "Not authorized, no token"),
        ("garbage", "Not authorized, token failed"),
    ])
    def test_missing_or_malformed(self, session, token, message):
        with pytest.raises(NotAuthorizedError) as exc:
            SessionIssuer(session).resolve(token)
        assert exc.value.message == message

    def test_unknown_identity(self, session):
        with pytest.raises(NotAuthorizedError) as exc:
            SessionIssuer(session).resolve(create_access_token("999"))
        assert exc.value.message == "User not found"

    def test_guest_flag_must_match_identity(self, session, account):
        forged = create_access_token(account.identity_id, is_guest=True)

        with pytest.raises(NotAuthorizedError):
            SessionIssuer(session).resolve(forged)

    def test_expired_guest(self, session, guest):
        issuer = SessionIssuer(session)
        token = issuer.mint(guest)
        guest.cart_expires_at = datetime.utcnow() - timedelta(seconds=1)
        session.add(guest)
        session.commit()

        with pytest.raises(NotAuthorizedError) as exc:
            issuer.resolve(token)
        assert exc.value.message == "Guest session expired"


class TestRevoke:
    def test_revoked_token_no_longer_resolves(self, session, account):
        issuer = SessionIssuer(session)
        token = issuer.mint(account)
        other = issuer.mint(account)

        assert issuer.revoke(token) is True

        with pytest.raises(NotAuthorizedError):
            issuer.resolve(token)
        assert issuer.resolve(other).id == account.id

    def test_revoking_twice_or_garbage_is_ignored(self, session, account):
        issuer = SessionIssuer(session)
        token = issuer.mint(account)
        issuer.revoke(token)

        assert issuer.revoke(token) is False
        assert issuer.revoke("garbage") is False
        assert issuer.revoke(None) is False

    def test_purge_only_drops_expired_revocations(self, session):
        now = datetime.utcnow()
        session.add_all([
            RevokedToken(jti="old", expires_at=now - timedelta(days=1)),
            RevokedToken(jti="live", expires_at=now + timedelta(days=1)),
        ])
        session.commit()

        assert SessionIssuer(session).purge_expired(now) == 1
        assert session.get(RevokedToken, "old") is None
        assert session.get(RevokedToken, "live") is not None


class TestIdentityShape:
    def test_account_and_guest_are_well_formed(self, account, guest):
        assert account.is_well_formed()
        assert guest.is_well_formed()

    def test_hybrid_identity_is_not_well_formed(self):
        hybrid = User(email="x@example.com", password_hash="h", is_guest=True, guest_id="guest_x")
        assert not hybrid.is_well_formed()
        assert not User().is_well_formed()

    def test_accounts_never_expire(self, account):
        assert not account.is_cart_expired(datetime.utcnow() + timedelta(days=365))

    def test_malformed_identity_row_does_not_resolve(self, session):
        hybrid = User(email="x@example.com", password_hash="h", is_guest=True, guest_id="guest_x")
        session.add(hybrid)
        session.commit()
        session.refresh(hybrid)

        with pytest.raises(NotAuthorizedError) as exc:
            SessionIssuer(session).resolve(create_access_token(hybrid.identity_id, is_guest=True))
        assert exc.value.message == "User not found"


class TestIdentityStore:
    def test_hybrid_identity_is_refused(self, session):
        hybrid = User(email="x@example.com", password_hash="h", is_guest=True, guest_id="guest_x")

        with pytest.raises(ValidationFailedError):
            AuthService(session).save_identity(hybrid)
        assert AuthService(session).get_user_by_email("x@example.com") is None

    def test_concurrent_signup_for_same_email(self, session, account, monkeypatch):
        auth = AuthService(session)
        # The other signup commits between our lookup and our insert
        monkeypatch.setattr(auth, "get_user_by_email", lambda email: None)

        with pytest.raises(EmailTakenError):
            auth.register_user("ana@example.com", "secret123")

        monkeypatch.undo()
        assert auth.register_user("bea@example.com", "secret123").email == "bea@example.com"

    def test_guests_are_well_formed(self, session):
        guest = AuthService(session).create_guest()

        assert guest.id is not None
        assert guest.is_well_formed()
        assert guest.guest_id.startswith("guest_")
