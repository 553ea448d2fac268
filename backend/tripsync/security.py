import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

from .config import settings
from .errors import AuthFailed, AuthRequired
from .models.models import Token
from .utils.date import dt_utc_offset

ph = PasswordHasher()


def hash_password(password: str) -> str:
    return ph.hash(password)


def verify_password(password: str, hashed_password: str) -> bool:
    try:
        return ph.verify(hashed_password, password)
    except (VerificationError, InvalidHashError):
        return False


def _encode(data: dict, minutes: int, kind: str) -> str:
    payload = data.copy()
    payload.update({"exp": dt_utc_offset(minutes), "type": kind})
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def create_access_token(data: dict) -> str:
    return _encode(data, settings.ACCESS_TOKEN_EXPIRE_MINUTES, "access")


def create_refresh_token(data: dict) -> str:
    return _encode(data, settings.REFRESH_TOKEN_EXPIRE_MINUTES, "refresh")


def create_tokens(data: dict) -> Token:
    return Token(access_token=create_access_token(data), refresh_token=create_refresh_token(data))


def decode_token(token: str | None, kind: str = "access") -> str:
    """Authenticate a bearer credential, returning the username it was issued for."""
    if not token:
        raise AuthRequired()

    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except jwt.PyJWTError:
        raise AuthFailed()

    username = payload.get("sub")
    if not username or payload.get("type") != kind:
        raise AuthFailed()
    return username
