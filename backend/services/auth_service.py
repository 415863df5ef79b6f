"""Bearer-token sessions issued for the identity provider's users."""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from config import settings
from models import AuthSession, User
from services.exceptions import Unauthorized
from utils.dates import ensure_utc, to_naive_utc, utc_now

logger = logging.getLogger(__name__)


@dataclass
class AuthContext:
    """The authenticated caller of a request."""

    user: User
    session: AuthSession


class AuthService:
    """Service for issuing and resolving session tokens."""

    @staticmethod
    def get_or_create_user(db: Session, username: str, email: str | None = None) -> User:
        user = db.query(User).filter(User.username == username).first()
        if user is None:
            user = User(username=username, email=email)
            db.add(user)
            db.flush()
            logger.info("User created: %s (id=%s)", username, user.id)
        return user

    @staticmethod
    def issue_session(db: Session, user: User, ttl: timedelta | None = None) -> AuthSession:
        """Create a session for ``user`` expiring after ``ttl`` (default SESSION_TTL_HOURS)."""
        ttl = ttl if ttl is not None else timedelta(hours=settings.SESSION_TTL_HOURS)
        session = AuthSession(
            user_id=user.id,
            token=secrets.token_urlsafe(32),
            expires_at=to_naive_utc(utc_now() + ttl),
        )
        db.add(session)
        db.flush()
        return session

    @staticmethod
    def resolve(db: Session, token: str | None, now: datetime | None = None) -> AuthContext:
        """Resolve a bearer token to its user and session.

        Raises:
            Unauthorized: If the token is missing, unknown or expired.
        """
        if not token:
            raise Unauthorized("Missing bearer token")
        session = db.query(AuthSession).filter(AuthSession.token == token).first()
        if session is None:
            raise Unauthorized("Unknown session")
        now = ensure_utc(now) if now is not None else utc_now()
        if ensure_utc(session.expires_at) <= now:
            logger.debug("Rejected expired session for user %s", session.user_id)
            raise Unauthorized("Session expired")
        return AuthContext(user=session.user, session=session)

    @staticmethod
    def revoke(db: Session, token: str) -> bool:
        deleted = db.query(AuthSession).filter(AuthSession.token == token).delete()
        db.flush()
        return bool(deleted)
