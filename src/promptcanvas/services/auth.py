"""Password hashing, session tokens and account operations.

This module provides the authenticator used by the HTTP layer and the generation
orchestrator:
- Salted bcrypt password hashes (passlib)
- HS256 JWT session tokens bound to user id and email (24h by default)
- register / login / resolve_current_user against the credential store

Session tokens are opaque to clients and verified on every request. The
"current user" is always resolved from an explicit token value, never from
ambient request state.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from uuid import UUID

import jwt
import structlog
from passlib.context import CryptContext
from sqlalchemy.exc import IntegrityError

from promptcanvas.core.config import Settings
from promptcanvas.models.user import User
from promptcanvas.services.exceptions import DuplicateEmail, InvalidCredentials
from promptcanvas.uow import UnitOfWork

logger = structlog.get_logger()


pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# bcrypt only reads the first 72 bytes of a secret
BCRYPT_MAX_BYTES = 72


def _bcrypt_secret(password: str) -> str:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES].decode("utf-8", errors="ignore")


def hash_password(password: str, rounds: int | None = None) -> str:
    """Compute the stored bcrypt hash for a password.

    Each call draws a fresh salt, so equal passwords produce different hashes.

    Args:
        password: Plain text password
        rounds: bcrypt cost factor (default: passlib's, currently 12)

    Returns:
        Modular crypt string ("$2b$<cost>$<salt><digest>")
    """
    handler = pwd_context.handler("bcrypt")
    if rounds is not None:
        handler = handler.using(rounds=rounds)
    return handler.hash(_bcrypt_secret(password))


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against a stored bcrypt hash.

    Returns False for empty or unrecognized hashes instead of raising.
    """
    if not password_hash:
        return False
    try:
        return pwd_context.verify(_bcrypt_secret(password), password_hash)
    except ValueError:
        logger.warning("auth.password_hash_unrecognized")
        return False


@dataclass(frozen=True)
class SessionClaims:
    """Verified contents of a session token (the authenticated principal).

    Attributes:
        user_id: Account identifier (token subject)
        email: Account email at issue time
        expires_at: Token expiry (UTC)
    """

    user_id: UUID
    email: str
    expires_at: datetime


def create_session_token(
    user_id: UUID,
    email: str,
    secret: str,
    algorithm: str = "HS256",
    ttl_hours: int = 24,
    now: datetime | None = None,
) -> str:
    """Issue a signed, time-limited session token.

    Args:
        user_id: Account identifier stored as the "sub" claim
        email: Account email stored as the "email" claim
        secret: Symmetric signing key (JWT_SECRET)
        algorithm: JWT algorithm (default: HS256)
        ttl_hours: Validity window in hours (default: 24)
        now: Issue time override, for tests

    Returns:
        Encoded JWT string
    """
    issued_at = now or datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "email": email,
        "iat": issued_at,
        "exp": issued_at + timedelta(hours=ttl_hours),
    }
    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_session_token(token: str, secret: str, algorithm: str = "HS256") -> SessionClaims | None:
    """Verify a session token's signature and expiry.

    Returns:
        SessionClaims if the token is valid, None if it is malformed, forged or expired
    """
    try:
        payload = jwt.decode(
            token, secret, algorithms=[algorithm], options={"require": ["exp", "sub"]}
        )
        return SessionClaims(
            user_id=UUID(payload["sub"]),
            email=payload.get("email", ""),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )
    except jwt.ExpiredSignatureError:
        logger.info("auth.token_expired")
        return None
    except (jwt.PyJWTError, ValueError) as e:
        logger.warning("auth.token_invalid", error_type=type(e).__name__)
        return None


class Authenticator:
    """Account registration, login and session resolution.

    Example:
        >>> authenticator = Authenticator(settings)
        >>> async with await uow_factory() as uow:
        ...     user, token = await authenticator.login(uow, "a@example.com", "secret")
    """

    def __init__(self, settings: Settings):
        """Initialize authenticator.

        Args:
            settings: Application settings (JWT secret, bcrypt cost, starting credits)
        """
        self.settings = settings

    async def register(self, uow: UnitOfWork, email: str, password: str, name: str) -> User:
        """Create an account with the starting credit allowance.

        Raises:
            DuplicateEmail: If the email is already registered
        """
        existing = await uow.users.get_by_email(email)
        if existing is not None:
            logger.info("auth.register_duplicate")
            raise DuplicateEmail("User already exists")

        user = User(
            email=email,
            name=name,
            password_hash=hash_password(password, rounds=self.settings.bcrypt_rounds),
            credits=self.settings.starting_credits,
        )
        try:
            await uow.users.add(user)
        except IntegrityError as e:
            # Lost a race with a concurrent registration for the same email
            logger.info("auth.register_duplicate", reason="unique_violation")
            raise DuplicateEmail("User already exists") from e

        logger.info("auth.registered", user_id=str(user.id), credits=user.credits)
        return user

    async def login(self, uow: UnitOfWork, email: str, password: str) -> tuple[User, str]:
        """Verify credentials and issue a session token.

        Unknown email and wrong password produce the same error.

        Returns:
            Tuple of (user, session token)

        Raises:
            InvalidCredentials: If the email is unknown or the password is wrong
        """
        user = await uow.users.get_by_email(email)
        if user is None:
            # Dummy bcrypt check so unknown emails cost the same as wrong passwords
            pwd_context.dummy_verify()
            logger.info("auth.login_failed", reason="unknown_email")
            raise InvalidCredentials("Invalid credentials")

        if not verify_password(password, user.password_hash):
            logger.info("auth.login_failed", reason="wrong_password", user_id=str(user.id))
            raise InvalidCredentials("Invalid credentials")

        token = self.issue_token(user)
        logger.info("auth.login_succeeded", user_id=str(user.id))
        return user, token

    def issue_token(self, user: User) -> str:
        return create_session_token(
            user_id=user.id,
            email=user.email,
            secret=self.settings.jwt_secret,
            algorithm=self.settings.jwt_algorithm,
            ttl_hours=self.settings.session_ttl_hours,
        )

    def verify_token(self, token: str | None) -> SessionClaims | None:
        """Return the principal for a token, or None when absent or invalid."""
        if not token:
            return None
        return decode_session_token(
            token, secret=self.settings.jwt_secret, algorithm=self.settings.jwt_algorithm
        )

    async def resolve_current_user(
        self, uow: UnitOfWork, principal: SessionClaims | None
    ) -> User | None:
        """Re-fetch the user for a verified principal.

        The record is loaded fresh so the credit balance is live. Returns None
        when there is no principal, the user no longer exists, or the email
        claim no longer matches. Store errors propagate.
        """
        if principal is None:
            return None

        user = await uow.users.get_by_id(principal.user_id)
        if user is None:
            logger.info("auth.user_not_found", user_id=str(principal.user_id))
            return None

        if user.email != principal.email:
            logger.warning("auth.email_mismatch", user_id=str(user.id))
            return None

        return user
