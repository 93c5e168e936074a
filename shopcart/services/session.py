"""
Session credential issuer.

Mints signed credentials bound to an identity, resolves them back to the identity,
and invalidates them on logout. Guest expiry is enforced here, lazily, whenever a
guest credential is resolved.
"""
from datetime import datetime
from typing import Optional

from sqlmodel import Session, delete

from shopcart.core.errors import NotAuthorizedError
from shopcart.core.logging import get_logger
from shopcart.core.security import TokenClaims, create_access_token, decode_access_token
from shopcart.models.token import RevokedToken
from shopcart.models.user import User

logger = get_logger(__name__)


class SessionIssuer:
    def __init__(self, session: Session):
        self.session = session

    def mint(self, user: User) -> str:
        return create_access_token(user.identity_id, is_guest=user.is_guest)

    def is_revoked(self, claims: TokenClaims) -> bool:
        return self.session.get(RevokedToken, claims.token_id) is not None

    def resolve(self, token: Optional[str]) -> User:
        """Resolve a credential to its identity, or raise NotAuthorizedError."""
        if not token:
            raise NotAuthorizedError("Not authorized, no token")

        claims = decode_access_token(token)
        if claims is None or self.is_revoked(claims):
            raise NotAuthorizedError("Not authorized, token failed")

        try:
            user = self.session.get(User, int(claims.subject))
        except ValueError:
            user = None
        if user is None or user.is_guest != claims.is_guest or not user.is_well_formed():
            raise NotAuthorizedError("User not found")

        if user.is_cart_expired():
            raise NotAuthorizedError("Guest session expired")
        return user

    def revoke(self, token: Optional[str]) -> bool:
        """Invalidate a credential. Unknown or already invalid tokens are ignored."""
        if not token:
            return False
        claims = decode_access_token(token)
        if claims is None or self.is_revoked(claims):
            return False

        self.session.add(RevokedToken(jti=claims.token_id, expires_at=claims.expires_at))
        self.session.commit()
        return True

    def purge_expired(self, now: Optional[datetime] = None) -> int:
        """Drop revocations for credentials that have expired anyway."""
        result = self.session.exec(delete(RevokedToken).where(RevokedToken.expires_at < (now or datetime.utcnow())))
        self.session.commit()
        if result.rowcount:
            logger.info(f"Purged {result.rowcount} expired revocations")
        return result.rowcount
