from datetime import datetime, timedelta, timezone
import hashlib
import hmac
from jose import JWTError, jwt
from passlib.context import CryptContext
from .config import settings
import logging

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

ACCESS_TOKEN = "access"
RESET_TOKEN = "reset"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def password_fingerprint(hashed_password: str) -> str:
    """Keyed digest of the current hash; changes whenever the password does."""
    digest = hmac.new(settings.secret_key.encode(), hashed_password.encode(), hashlib.sha256)
    return digest.hexdigest()[:32]


def fingerprint_matches(hashed_password: str, fingerprint) -> bool:
    if not isinstance(fingerprint, str):
        return False
    return hmac.compare_digest(password_fingerprint(hashed_password), fingerprint)


def create_token(data: dict, token_type: str, expires_minutes: int) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    to_encode.update({"exp": expire, "type": token_type})

    # 'sub' must be a string
    if "sub" in to_encode:
        to_encode["sub"] = str(to_encode["sub"])

    encoded_jwt = jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)
    logger.info(f"Created {token_type} token for user {to_encode.get('sub')}")
    return encoded_jwt


def create_access_token(uid: str) -> str:
    return create_token({"sub": uid}, ACCESS_TOKEN, settings.access_token_expire_minutes)


def create_password_reset_token(uid: str, hashed_password: str) -> str:
    return create_token(
        {"sub": uid, "pwd": password_fingerprint(hashed_password)},
        RESET_TOKEN,
        settings.password_reset_expire_minutes,
    )


def decode_token(token: str, token_type: str) -> dict:
    """Decode and check a token; raises JWTError on any problem."""
    payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    if payload.get("type") != token_type or not payload.get("sub"):
        raise JWTError(f"Expected a {token_type} token")
    return payload
