"""
Bearer token storage: issue, look up and revoke opaque tokens.
Uniqueness of token values is enforced by the database; a collision on insert is retried
with a fresh value a bounded number of times.
"""
import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from token_server.config import TOKEN_BYTES, TOKEN_ISSUE_ATTEMPTS
from token_server.models import Token

logger = logging.getLogger(__name__)


def generate_token_value() -> str:
    """256 random bits, lowercase hex (64 chars)."""
    return secrets.token_hex(TOKEN_BYTES)


def _is_token_collision(error: IntegrityError) -> bool:
    """True only for a unique violation on tokens.token; NOT NULL and other constraints are not collisions."""
    orig = error.orig
    # PostgreSQL drivers expose the SQLSTATE; 23505 is unique_violation
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code is not None:
        return code == "23505"
    message = str(orig).lower()
    return "unique" in message and "token" in message


@dataclass(frozen=True)
class Issued:
    value: str


@dataclass(frozen=True)
class Exhausted:
    attempts: int


class TokenStore:
    def __init__(
        self,
        db: Session,
        generate: Callable[[], str] = generate_token_value,
        max_attempts: int = TOKEN_ISSUE_ATTEMPTS,
    ):
        self.db = db
        self.generate = generate
        self.max_attempts = max_attempts

    def issue(self, me: str, client_id: str, scope: str) -> Issued | Exhausted:
        """
        Insert a new active token. Unique-constraint violations retry with a new value;
        other database errors propagate.
        """
        for attempt in range(1, self.max_attempts + 1):
            value = self.generate()
            self.db.add(Token(token=value, me=me, client_id=client_id, scope=scope))
            try:
                self.db.commit()
            except IntegrityError as e:
                self.db.rollback()
                if not _is_token_collision(e):
                    raise
                logger.warning("Token value collision on attempt %s/%s", attempt, self.max_attempts)
                continue
            logger.info("Issued token for client_id=%s me=%s scope=%s", client_id, me, scope)
            return Issued(value)
        logger.warning("Gave up issuing a token after %s collisions", self.max_attempts)
        return Exhausted(self.max_attempts)

    def lookup(self, value: str) -> Token | None:
        return self.db.query(Token).filter(Token.token == value).first()

    def revoke(self, value: str) -> None:
        """Mark an active token revoked. Unknown or already revoked tokens are left alone."""
        updated = (
            self.db.query(Token)
            .filter(Token.token == value, Token.revoked.is_(None))
            .update({Token.revoked: datetime.now(timezone.utc)}, synchronize_session=False)
        )
        self.db.commit()
        if updated:
            logger.info("Revoked token")
