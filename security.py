import secrets
from dataclasses import dataclass

import bcrypt
from itsdangerous import BadSignature, URLSafeTimedSerializer


OTP_LENGTH = 6


def _password_bytes(password: str) -> bytes:
    # bcrypt only reads the first 72 bytes
    return password.encode("utf-8")[:72]


def hash_password(password: str) -> str:
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(_password_bytes(password), hashed_password.encode("utf-8"))
    except ValueError:
        return False


def generate_otp() -> str:
    """Random six digit code in 100000..999999."""
    return str(100000 + secrets.randbelow(900000))


@dataclass(frozen=True)
class TokenClaims:
    user_id: int
    email: str
    role: str


class InvalidToken(ValueError):
    pass


class TokenIssuer:
    """Signs and verifies bearer session tokens.

    The secret is bound at construction; tokens older than ``ttl_hours``
    are rejected on verification.
    """

    def __init__(self, secret_key: str, ttl_hours: int = 24) -> None:
        if not secret_key:
            raise ValueError("Token secret must not be empty")
        self.ttl_hours = ttl_hours
        self._serializer = URLSafeTimedSerializer(secret_key, salt="session-token")

    @property
    def max_age_secs(self) -> int:
        return self.ttl_hours * 3600

    def issue(self, user_id: int, email: str, role: str) -> str:
        return self._serializer.dumps({"u": user_id, "e": email, "r": role})

    def verify(self, token: str) -> TokenClaims:
        try:
            data = self._serializer.loads(token, max_age=self.max_age_secs)
        except BadSignature as exc:
            raise InvalidToken("Invalid token") from exc

        if not isinstance(data, dict) or not isinstance(data.get("u"), int):
            raise InvalidToken("Invalid token")
        return TokenClaims(
            user_id=data["u"], email=str(data.get("e", "")), role=str(data.get("r", ""))
        )
