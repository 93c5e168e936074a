"""
Identity transitions: anonymous -> guest -> authenticated -> anonymous.

The guest's cart is located through the correlation token (the ``guestId``
cookie), not through the session credential, so it survives credential rotation.
On login/signup the guest cart is folded into the account cart before the new
credential is handed back, so the first request made with that credential already
sees the merged cart.
"""
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from shopcart.core.errors import NotAuthorizedError
from shopcart.core.logging import get_logger, hash_identifier
from shopcart.models.user import User
from shopcart.services.auth import AuthService
from shopcart.services.reconciliation import CartReconciler, MergeReport
from shopcart.services.session import SessionIssuer

logger = get_logger(__name__)


@dataclass
class TransitionResult:
    user: User
    access_token: str
    # Correlation token to hand to the client; None means clear it
    guest_id: Optional[str] = None
    merge: MergeReport = field(default_factory=MergeReport)


class IdentityTransitions:
    def __init__(
        self,
        session: Session,
        auth: Optional[AuthService] = None,
        issuer: Optional[SessionIssuer] = None,
        reconciler: Optional[CartReconciler] = None,
    ):
        self.session = session
        self.auth = auth or AuthService(session)
        self.issuer = issuer or SessionIssuer(session)
        self.reconciler = reconciler or CartReconciler(session)

    def continue_as_guest(self) -> TransitionResult:
        guest = self.auth.create_guest()
        return TransitionResult(user=guest, access_token=self.issuer.mint(guest), guest_id=guest.guest_id)

    def signup(self, email: str, password: str, name: Optional[str] = None, guest_id: Optional[str] = None) -> TransitionResult:
        user = self.auth.register_user(email, password, name=name)
        return self._authenticated(user, guest_id)

    def login(self, email: str, password: str, guest_id: Optional[str] = None) -> TransitionResult:
        user = self.auth.authenticate_user(email, password)
        if not user:
            raise NotAuthorizedError("Invalid email or password")
        return self._authenticated(user, guest_id)

    def logout(self, token: Optional[str]) -> None:
        # The durable cart is left alone for the next login
        self.issuer.revoke(token)

    def _authenticated(self, user: User, guest_id: Optional[str]) -> TransitionResult:
        report = self.absorb_guest_cart(guest_id, user) if guest_id else MergeReport()
        return TransitionResult(user=user, access_token=self.issuer.mint(user), merge=report)

    def absorb_guest_cart(self, guest_id: str, user: User) -> MergeReport:
        """Merge the guest's cart into the account cart and delete the guest's lines.

        The guest record itself is kept. Failures are logged and never block the login.
        """
        guest = self.auth.get_guest(guest_id)
        if guest is None or guest.id == user.id:
            return MergeReport()
        if guest.is_cart_expired():
            logger.info(f"Guest cart {hash_identifier(guest.identity_id)} expired, not merging")
            return MergeReport()

        try:
            return self.reconciler.absorb_cart(guest.identity_id, user.identity_id)
        except SQLAlchemyError:
            self.session.rollback()
            logger.exception(f"Error merging guest cart {hash_identifier(guest.identity_id)}")
            return MergeReport()
