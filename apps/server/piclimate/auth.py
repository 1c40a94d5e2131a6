"""Password hashing and signed access/refresh tokens for the monitor.

Configured passwords may be stored hashed as ``encrypted:<algorithm>:<base64>``
where the hash is an HMAC of the password keyed with ``auth.hash_signing_key``.
Tokens are URL-safe, signed and timestamped; access and refresh tokens use
different salts so one cannot be presented as the other.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import re
from dataclasses import dataclass

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from .constants import DEFAULT_USER_ROLE
from .domain_models import AuthInfo, AuthTokens

LOGGER = logging.getLogger(__name__)

HASHED_STRING_RE = re.compile(r"^encrypted:([\w.]+):([A-Za-z0-9+/=]+)$")
DEFAULT_ALGORITHM = "HMACSHA256"
DEFAULT_HASH_KEY = ""

_ALGORITHMS: dict[str, str] = {
    "HMACMD5": "md5",
    "HMACSHA1": "sha1",
    "HMACSHA256": "sha256",
    "HMACSHA384": "sha384",
    "HMACSHA512": "sha512",
}

ACCESS_TOKEN_SALT = "piclimate.access-token"
REFRESH_TOKEN_SALT = "piclimate.refresh-token"


def create_hash(
    value: str, key: str = DEFAULT_HASH_KEY, algorithm: str = DEFAULT_ALGORITHM
) -> str:
    digest_name = _ALGORITHMS.get(algorithm.upper())
    if digest_name is None:
        raise ValueError(f"Cannot create a new HMAC instance with algorithm name {algorithm!r}.")
    mac = hmac.new(key.encode("utf-8"), value.encode("utf-8"), getattr(hashlib, digest_name))
    return base64.b64encode(mac.digest()).decode("ascii")


@dataclass(frozen=True, slots=True)
class HashedString:
    algorithm: str
    hash: str

    @classmethod
    def parse(cls, value: str) -> HashedString | None:
        match = HASHED_STRING_RE.match(value)
        if match is None:
            return None
        return cls(algorithm=match.group(1), hash=match.group(2))

    @classmethod
    def from_value(
        cls, value: str, key: str = DEFAULT_HASH_KEY, algorithm: str = DEFAULT_ALGORITHM
    ) -> HashedString:
        """Parse an already formatted value, otherwise hash *value* as plain text."""
        parsed = cls.parse(value)
        if parsed is not None:
            return parsed
        return cls(algorithm=algorithm, hash=create_hash(value, key, algorithm))

    def validate(self, original: str, key: str = DEFAULT_HASH_KEY) -> bool:
        try:
            expected = create_hash(original, key, self.algorithm)
        except ValueError:
            LOGGER.warning("Unsupported password hash algorithm %r", self.algorithm)
            return False
        return hmac.compare_digest(self.hash, expected)

    def __str__(self) -> str:
        return f"encrypted:{self.algorithm}:{self.hash}"


def find_user(
    credentials: dict[str, str], name: str, password: str, hash_key: str = DEFAULT_HASH_KEY
) -> AuthInfo | None:
    """Return the matching user, or ``None``.

    With no configured credentials every user name is accepted.
    """
    if credentials:
        stored = credentials.get(name)
        if stored is None:
            return None
        if not HashedString.from_value(stored, hash_key).validate(password, hash_key):
            return None
    return AuthInfo(name=name, role=DEFAULT_USER_ROLE)


class TokenError(Exception):
    """Raised for missing, malformed, tampered or expired tokens."""


class TokenService:
    def __init__(
        self,
        secret_key: str,
        *,
        access_token_ttl_s: int,
        refresh_token_ttl_s: int,
        clock_skew_s: int = 0,
    ) -> None:
        self.access_token_ttl_s = access_token_ttl_s
        self.refresh_token_ttl_s = refresh_token_ttl_s
        self.clock_skew_s = clock_skew_s
        self._access = URLSafeTimedSerializer(secret_key, salt=ACCESS_TOKEN_SALT)
        self._refresh = URLSafeTimedSerializer(secret_key, salt=REFRESH_TOKEN_SALT)

    def issue(self, info: AuthInfo) -> AuthTokens:
        payload = info.to_json()
        return AuthTokens(
            access_token=self._access.dumps(payload),
            refresh_token=self._refresh.dumps(payload),
        )

    @staticmethod
    def _load(serializer: URLSafeTimedSerializer, token: str | None, max_age: int) -> AuthInfo:
        if not token:
            raise TokenError("Token is missing.")
        try:
            payload = serializer.loads(token, max_age=max_age)
        except SignatureExpired as exc:
            raise TokenError("Token has expired.") from exc
        except BadSignature as exc:
            raise TokenError("Token is invalid.") from exc
        if not isinstance(payload, dict) or not isinstance(payload.get("name"), str):
            raise TokenError("Token payload is invalid.")
        return AuthInfo(name=payload["name"], role=str(payload.get("role") or DEFAULT_USER_ROLE))

    def verify_access(self, token: str | None) -> AuthInfo:
        return self._load(self._access, token, self.access_token_ttl_s + self.clock_skew_s)

    def verify_refresh(self, token: str | None) -> AuthInfo:
        return self._load(self._refresh, token, self.refresh_token_ttl_s + self.clock_skew_s)
