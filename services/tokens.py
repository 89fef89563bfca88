"""
Access/refresh credential lifecycle.

Access tokens are stateless: a signed ``{sub, role}`` payload checked for
signature and age. Refresh tokens additionally carry a unique ``jti`` and
are remembered server-side only as a salted hash, one row per issued token,
so a principal may hold several at once (one per device). A refresh token
is single-use: rotating it deletes its row and stores the successor's.
"""
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

from itsdangerous import BadData, URLSafeTimedSerializer
from passlib.context import CryptContext
from sqlalchemy.orm.exc import StaleDataError
from sqlmodel import Session, select

from config import Settings
from db import transaction
from errors import InvalidTokenError, TokenNotFoundError
from models import RefreshToken, Role, User
from services.directory import Principal

logger = logging.getLogger(__name__)

token_context = CryptContext(
    schemes=["pbkdf2_sha256"],
    deprecated="auto",
)


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str

    def to_dict(self) -> Dict[str, str]:
        return {"accessToken": self.access_token, "refreshToken": self.refresh_token}


class TokenService:
    def __init__(self, session: Session, settings: Settings):
        self.session = session
        self._access = URLSafeTimedSerializer(settings.access_secret, salt="relive-access")
        self._refresh = URLSafeTimedSerializer(settings.refresh_secret, salt="relive-refresh")
        self.access_max_age = settings.access_token_expire_minutes * 60
        self.refresh_max_age = settings.refresh_token_expire_days * 24 * 60 * 60

    def issue(self, principal_id: int, role: Role) -> TokenPair:
        """
        Sign a fresh pair and persist the refresh token's hash.

        Adds exactly one RefreshToken row to the session; the caller owns
        the transaction.
        """
        role = Role(role)
        access_token = self._access.dumps({"sub": principal_id, "role": role.value})
        refresh_token = self._refresh.dumps(
            {"sub": principal_id, "role": role.value, "jti": uuid.uuid4().hex}
        )
        self.session.add(
            RefreshToken(
                user_id=principal_id,
                token_hash=token_context.hash(refresh_token),
                expires_at=None,
            )
        )
        return TokenPair(access_token, refresh_token)

    def verify_access(self, token: str) -> Principal:
        claims = self._load(self._access, token, self.access_max_age)
        return Principal(id=claims["sub"], role=Role(claims["role"]))

    def rotate(self, refresh_token: str) -> TokenPair:
        """
        Exchange a refresh token for a new pair.

        Raises InvalidTokenError for a bad signature or an expired token and
        TokenNotFoundError when no stored hash matches (already consumed,
        revoked, or never issued here).
        """
        claims = self._load(self._refresh, refresh_token, self.refresh_max_age)
        user_id = claims["sub"]

        with transaction(self.session):
            rows = self.session.exec(
                select(RefreshToken)
                .where(RefreshToken.user_id == user_id)
                .with_for_update()
            ).all()
            record = _find_match(rows, refresh_token)
            if record is None:
                logger.warning("Refresh token for user %s not recognized", user_id)
                raise TokenNotFoundError()

            user = self.session.get(User, user_id)
            if user is None:
                raise TokenNotFoundError()

            self.session.delete(record)
            try:
                self.session.flush()
            except StaleDataError as exc:
                # A concurrent rotation consumed the same row first.
                raise TokenNotFoundError() from exc

            pair = self.issue(user.id, Role(user.role))

        logger.info("Rotated refresh token for user %s", user_id)
        return pair

    def revoke(self, refresh_token: str) -> None:
        """Delete the stored record for a refresh token, if there is one."""
        with transaction(self.session):
            rows = self.session.exec(select(RefreshToken)).all()
            record = _find_match(rows, refresh_token)
            if record is not None:
                self.session.delete(record)
                logger.info("Revoked refresh token for user %s", record.user_id)

    def _load(
        self, serializer: URLSafeTimedSerializer, token: str, max_age: int
    ) -> Dict[str, Any]:
        try:
            claims = serializer.loads(token, max_age=max_age)
        except BadData as exc:
            raise InvalidTokenError() from exc

        if not isinstance(claims, dict):
            raise InvalidTokenError()
        if not isinstance(claims.get("sub"), int) or claims.get("role") not in {
            r.value for r in Role
        }:
            raise InvalidTokenError()
        return claims


def _find_match(rows: Iterable[RefreshToken], token: str) -> Optional[RefreshToken]:
    for row in rows:
        if token_context.verify(token, row.token_hash):
            return row
    return None
