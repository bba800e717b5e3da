"""Authentication helpers: an injectable user store and JWT issuance/validation."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from threading import RLock
from typing import Any, Dict, List, Optional

import jwt
from passlib.context import CryptContext

from bookcatalog.config import Settings, settings as default_settings

# Password hashing configuration
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

ROLE_ADMIN = "Admin"
ROLE_USER = "User"


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)


@dataclass(frozen=True)
class AppUser:
    username: str
    password_hash: str
    role: str


class UserStore:
    """In-memory user directory.

    Passed explicitly to whatever issues tokens; the borrowing and list
    services never consult it.
    """

    def __init__(self, users: Optional[List[AppUser]] = None) -> None:
        self._lock = RLock()
        self._users: Dict[str, AppUser] = {}
        for user in users or []:
            self.add(user)

    @classmethod
    def with_defaults(cls, config: Settings = default_settings) -> "UserStore":
        return cls([
            AppUser(config.admin_username, hash_password(config.admin_password), ROLE_ADMIN),
            AppUser(config.user_username, hash_password(config.user_password), ROLE_USER),
        ])

    def add(self, user: AppUser) -> None:
        with self._lock:
            self._users[user.username.lower()] = user

    def find(self, username: Optional[str]) -> Optional[AppUser]:
        if not username:
            return None
        with self._lock:
            return self._users.get(username.lower())

    def authenticate(self, username: str, password: str) -> Optional[AppUser]:
        """Return the user when the credentials match, otherwise None."""
        user = self.find(username)
        if user is None or not verify_password(password, user.password_hash):
            return None
        return user


class TokenService:
    """Creates and validates signed access tokens carrying a name and a role."""

    def __init__(self, config: Settings = default_settings) -> None:
        self._config = config

    def create(self, username: str, role: str, expires_delta: Optional[timedelta] = None) -> str:
        now = datetime.now(timezone.utc)
        expire = now + (expires_delta or timedelta(minutes=self._config.jwt_expiration_minutes))
        payload = {
            "sub": username,
            "role": role,
            "iss": self._config.jwt_issuer,
            "aud": self._config.jwt_audience,
            "nbf": now,
            "iat": now,
            "exp": expire,
        }
        return jwt.encode(payload, self._config.jwt_secret_key, algorithm=self._config.jwt_algorithm)

    def decode(self, token: str) -> Optional[Dict[str, Any]]:
        """Decoded payload if the token is valid, None if invalid or expired."""
        try:
            payload = jwt.decode(
                token,
                self._config.jwt_secret_key,
                algorithms=[self._config.jwt_algorithm],
                audience=self._config.jwt_audience,
                issuer=self._config.jwt_issuer,
                leeway=0,
            )
        except jwt.PyJWTError:
            return None
        if not payload.get("sub") or not payload.get("role"):
            return None
        return payload
