"""
Bearer credential verification for the Ticketing service.
"""

from typing import Any, Dict, FrozenSet, Optional, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from jose import jwt
from jose.exceptions import ExpiredSignatureError, JWTError

from shared.logging import get_logger
from shared.errors import AuthenticationError

AUTHORIZATION_TYPE_BEARER = "bearer"
HMAC_ALGORITHMS = ("HS256", "HS384", "HS512")


class AuthErrorReason(str, Enum):
    """Why a credential was rejected."""
    MISSING_HEADER = "missing_header"
    MALFORMED_HEADER = "malformed_header"
    UNSUPPORTED_SCHEME = "unsupported_scheme"
    INVALID_SIGNATURE_METHOD = "invalid_signature_method"
    EXPIRED = "expired"
    INVALID_TOKEN = "invalid_token"


@dataclass(frozen=True)
class Identity:
    """Verified subject and its permission strings."""
    subject: str
    permissions: FrozenSet[str] = field(default_factory=frozenset)
    expires_at: Optional[datetime] = None

    def has_permission(self, action: str) -> bool:
        return action in self.permissions


class TokenVerifier:
    """Verifies HMAC-signed bearer tokens against a single shared secret."""

    def __init__(self, secret: str, algorithms: Sequence[str] = HMAC_ALGORITHMS):
        if not secret:
            raise ValueError("TokenVerifier requires a signing secret")
        unknown = [alg for alg in algorithms if alg not in HMAC_ALGORITHMS]
        if unknown:
            raise ValueError(f"Unsupported signing algorithms: {unknown}")
        self._secret = secret
        self.algorithms = list(algorithms)
        self.logger = get_logger("tickets.auth.verifier")

    def verify(self, raw_header: Optional[str]) -> Identity:
        """Verify an ``Authorization`` header value and return its identity."""
        if not raw_header:
            raise self._reject(AuthErrorReason.MISSING_HEADER, "authorization header is not provided")

        fields = raw_header.split()
        if len(fields) < 2:
            raise self._reject(AuthErrorReason.MALFORMED_HEADER, "invalid authorization header format")

        scheme = fields[0].lower()
        if scheme != AUTHORIZATION_TYPE_BEARER:
            raise self._reject(AuthErrorReason.UNSUPPORTED_SCHEME, f"unsupported authorization type {scheme}")

        return self.verify_token(fields[1])

    def verify_token(self, token: str) -> Identity:
        """Verify a raw token string."""
        try:
            header = jwt.get_unverified_header(token)
        except JWTError as e:
            raise self._reject(AuthErrorReason.INVALID_TOKEN, f"token is invalid: {e}")

        if header.get("alg") not in self.algorithms:
            raise self._reject(AuthErrorReason.INVALID_SIGNATURE_METHOD, "token is invalid: unexpected signing method")

        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=self.algorithms,
                options={"verify_exp": True, "require_exp": True, "verify_aud": False}
            )
        except ExpiredSignatureError:
            raise self._reject(AuthErrorReason.EXPIRED, "token has expired")
        except JWTError as e:
            raise self._reject(AuthErrorReason.INVALID_TOKEN, f"token is invalid: {e}")

        identity = self._identity_from_claims(claims)
        self.logger.debug("Token verified", sub=identity.subject, permissions=sorted(identity.permissions))
        return identity

    def _identity_from_claims(self, claims: Dict[str, Any]) -> Identity:
        permissions = claims.get("permissions") or []
        if not isinstance(permissions, list) or not all(isinstance(p, str) for p in permissions):
            raise self._reject(AuthErrorReason.INVALID_TOKEN, "token is invalid: malformed permissions claim")

        exp = claims.get("exp")
        expires_at = datetime.fromtimestamp(exp, tz=timezone.utc) if exp is not None else None

        return Identity(
            subject=str(claims.get("sub") or ""),
            permissions=frozenset(permissions),
            expires_at=expires_at
        )

    def _reject(self, reason: AuthErrorReason, message: str) -> AuthenticationError:
        self.logger.warning("Token verification failed", reason=reason.value, error=message)
        return AuthenticationError(message, reason=reason.value)
