"""
Auth providers.

Two interchangeable adapters sit behind the same interface: ``LocalAuthProvider``
keeps credentials in our own ``auth_users`` table and issues JWTs, while
``FirebaseAuthProvider`` delegates to Firebase Authentication. Both raise
``AuthProviderError`` with codes from the shared ``auth/...`` vocabulary so the
routers can map failures to messages without knowing which provider is active.
"""

import logging
import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional, Protocol

import requests
from firebase_admin import auth as firebase_auth
from firebase_admin import exceptions as firebase_exceptions
from jose import ExpiredSignatureError, JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from .config import settings
from .errors import AuthProviderError
from .security import (
    ACCESS_TOKEN,
    RESET_TOKEN,
    create_access_token,
    create_password_reset_token,
    decode_token,
    get_password_hash,
    fingerprint_matches,
    verify_password,
)
from ..models.auth_user import AuthUser

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


@dataclass
class AuthIdentity:
    uid: str
    email: str
    display_name: Optional[str] = None
    photo_url: Optional[str] = None


@dataclass
class AuthSession:
    identity: AuthIdentity
    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None


class AuthProvider(Protocol):
    """Operations the API needs from an identity provider."""

    name: str

    async def sign_up(self, db: AsyncSession, name: str, email: str, password: str) -> AuthSession:
        ...

    async def sign_in(self, db: AsyncSession, email: str, password: str) -> AuthSession:
        ...

    async def verify_token(self, db: AsyncSession, token: str) -> AuthIdentity:
        ...

    async def sign_out(self, db: AsyncSession, uid: str) -> None:
        ...

    async def send_password_reset(self, db: AsyncSession, email: str) -> None:
        ...

    async def confirm_password_reset(self, db: AsyncSession, token: str, new_password: str) -> None:
        ...

    async def update_display_name(self, db: AsyncSession, uid: str, name: str) -> None:
        ...


def log_reset_link(email: str, link: str) -> None:
    logger.info(f"Password reset link for {email}: {link}")


class LocalAuthProvider:
    """Email/password accounts stored in the application's own database."""

    name = "local"

    def __init__(
        self,
        min_password_length: int = 6,
        frontend_url: str = "http://localhost:3000",
        deliver_reset_link: Callable[[str, str], None] = log_reset_link,
    ):
        self.min_password_length = min_password_length
        self.frontend_url = frontend_url.rstrip("/")
        self.deliver_reset_link = deliver_reset_link

    @staticmethod
    def _identity(user: AuthUser) -> AuthIdentity:
        return AuthIdentity(
            uid=user.uid,
            email=user.email,
            display_name=user.display_name,
            photo_url=user.photo_url,
        )

    async def _get_by_email(self, db: AsyncSession, email: str) -> Optional[AuthUser]:
        result = await db.execute(select(AuthUser).filter(AuthUser.email == email.strip().lower()))
        return result.scalar_one_or_none()

    async def _get_by_uid(self, db: AsyncSession, uid: str) -> Optional[AuthUser]:
        result = await db.execute(select(AuthUser).filter(AuthUser.uid == uid))
        return result.scalar_one_or_none()

    def _check_password_strength(self, password: str):
        if len(password) < self.min_password_length:
            raise AuthProviderError(
                "auth/weak-password",
                f"Password must be at least {self.min_password_length} characters long.",
            )

    def _session(self, user: AuthUser) -> AuthSession:
        return AuthSession(
            identity=self._identity(user),
            access_token=create_access_token(user.uid),
            expires_in=settings.access_token_expire_minutes * 60,
        )

    async def sign_up(self, db, name, email, password):
        email = email.strip().lower()
        if not EMAIL_PATTERN.match(email):
            raise AuthProviderError("auth/invalid-email")
        self._check_password_strength(password)

        if await self._get_by_email(db, email):
            raise AuthProviderError("auth/email-already-in-use")

        user = AuthUser(
            uid=uuid.uuid4().hex,
            email=email,
            hashed_password=get_password_hash(password),
            display_name=name or None,
        )
        db.add(user)
        await db.commit()
        await db.refresh(user)

        logger.info(f"Local account created: {user.email} ({user.uid})")
        return self._session(user)

    async def sign_in(self, db, email, password):
        user = await self._get_by_email(db, email)
        if not user:
            raise AuthProviderError("auth/user-not-found")
        if not verify_password(password, user.hashed_password):
            raise AuthProviderError("auth/wrong-password")
        if user.is_disabled:
            raise AuthProviderError("auth/user-disabled")
        return self._session(user)

    async def verify_token(self, db, token):
        try:
            payload = decode_token(token, ACCESS_TOKEN)
        except JWTError as e:
            raise AuthProviderError("auth/invalid-id-token", str(e))

        user = await self._get_by_uid(db, payload["sub"])
        if not user:
            raise AuthProviderError("auth/invalid-id-token", "Unknown user")
        if user.is_disabled:
            raise AuthProviderError("auth/user-disabled")
        return self._identity(user)

    async def sign_out(self, db, uid):
        # Tokens are stateless; the client drops its copy
        logger.info(f"Local sign-out for {uid}")

    async def send_password_reset(self, db, email):
        email = email.strip().lower()
        if not EMAIL_PATTERN.match(email):
            raise AuthProviderError("auth/invalid-email")

        user = await self._get_by_email(db, email)
        if not user:
            raise AuthProviderError("auth/user-not-found")

        token = create_password_reset_token(user.uid, user.hashed_password)
        self.deliver_reset_link(user.email, f"{self.frontend_url}/reset-password?token={token}")

    async def confirm_password_reset(self, db, token, new_password):
        try:
            payload = decode_token(token, RESET_TOKEN)
        except ExpiredSignatureError:
            raise AuthProviderError("auth/expired-action-code")
        except JWTError:
            raise AuthProviderError("auth/invalid-action-code")

        user = await self._get_by_uid(db, payload["sub"])
        if not user or not fingerprint_matches(user.hashed_password, payload.get("pwd")):
            raise AuthProviderError("auth/invalid-action-code")
        if user.is_disabled:
            raise AuthProviderError("auth/user-disabled")
        self._check_password_strength(new_password)

        user.hashed_password = get_password_hash(new_password)
        user.updated_at = datetime.now(timezone.utc)
        await db.commit()
        logger.info(f"Password reset completed for {user.email}")

    async def update_display_name(self, db, uid, name):
        user = await self._get_by_uid(db, uid)
        if not user:
            raise AuthProviderError("auth/user-not-found")
        user.display_name = name
        user.updated_at = datetime.now(timezone.utc)
        await db.commit()


IDENTITY_TOOLKIT_URL = "https://identitytoolkit.googleapis.com/v1"

# Identity Toolkit REST error strings -> shared codes
FIREBASE_ERROR_CODES = {
    "EMAIL_NOT_FOUND": "auth/user-not-found",
    "INVALID_PASSWORD": "auth/wrong-password",
    "INVALID_LOGIN_CREDENTIALS": "auth/invalid-credential",
    "USER_DISABLED": "auth/user-disabled",
    "TOO_MANY_ATTEMPTS_TRY_LATER": "auth/too-many-requests",
    "INVALID_EMAIL": "auth/invalid-email",
    "MISSING_EMAIL": "auth/invalid-email",
    "EMAIL_EXISTS": "auth/email-already-in-use",
    "OPERATION_NOT_ALLOWED": "auth/operation-not-allowed",
    "PASSWORD_LOGIN_DISABLED": "auth/operation-not-allowed",
    "WEAK_PASSWORD": "auth/weak-password",
    "EXPIRED_OOB_CODE": "auth/expired-action-code",
    "INVALID_OOB_CODE": "auth/invalid-action-code",
    "INVALID_ID_TOKEN": "auth/invalid-id-token",
}


class FirebaseAuthProvider:
    """Firebase Authentication through the Identity Toolkit REST API and the Admin SDK."""

    name = "firebase"

    def __init__(self, api_key: str, app=None, timeout: float = 10.0):
        if not api_key:
            raise ValueError("FIREBASE_API_KEY is required for the firebase auth provider")
        self.api_key = api_key
        self.app = app
        self.timeout = timeout

    @staticmethod
    def translate_rest_error(response) -> AuthProviderError:
        try:
            message = response.json()["error"]["message"]
        except (ValueError, KeyError, TypeError):
            message = f"Identity Toolkit returned HTTP {response.status_code}"

        # e.g. "WEAK_PASSWORD : Password should be at least 6 characters"
        key = message.split(":", 1)[0].strip()
        code = FIREBASE_ERROR_CODES.get(key, "auth/internal-error")
        return AuthProviderError(code, message)

    def _post(self, endpoint: str, payload: dict) -> dict:
        response = requests.post(
            f"{IDENTITY_TOOLKIT_URL}/accounts:{endpoint}",
            params={"key": self.api_key},
            json=payload,
            timeout=self.timeout,
        )
        if response.status_code != 200:
            raise self.translate_rest_error(response)
        return response.json()

    async def _rest(self, endpoint: str, payload: dict) -> dict:
        try:
            return await run_in_threadpool(self._post, endpoint, payload)
        except requests.RequestException as e:
            logger.error(f"Identity Toolkit request {endpoint} failed: {e}")
            raise AuthProviderError("auth/network-request-failed", "Could not reach the authentication service.")

    async def _admin(self, func, *args, **kwargs):
        try:
            return await run_in_threadpool(func, *args, app=self.app, **kwargs)
        except firebase_auth.UserNotFoundError as e:
            raise AuthProviderError("auth/user-not-found", str(e))
        except firebase_auth.UserDisabledError as e:
            raise AuthProviderError("auth/user-disabled", str(e))
        except firebase_auth.InvalidIdTokenError as e:
            raise AuthProviderError("auth/invalid-id-token", str(e))
        except ValueError as e:
            raise AuthProviderError("auth/invalid-argument", str(e))
        except firebase_exceptions.FirebaseError as e:
            logger.error(f"Firebase Admin call {func.__name__} failed: {e}")
            raise AuthProviderError("auth/internal-error", str(e))

    @staticmethod
    def _session(data: dict, display_name: Optional[str] = None) -> AuthSession:
        identity = AuthIdentity(
            uid=data["localId"],
            email=data.get("email", ""),
            display_name=display_name or data.get("displayName") or None,
            photo_url=data.get("profilePicture") or None,
        )
        expires_in = data.get("expiresIn")
        return AuthSession(
            identity=identity,
            access_token=data["idToken"],
            refresh_token=data.get("refreshToken"),
            expires_in=int(expires_in) if expires_in else None,
        )

    async def sign_up(self, db, name, email, password):
        data = await self._rest("signUp", {
            "email": email,
            "password": password,
            "returnSecureToken": True,
        })
        if name:
            await self._admin(firebase_auth.update_user, data["localId"], display_name=name)
        logger.info(f"Firebase account created: {data.get('email')} ({data['localId']})")
        return self._session(data, display_name=name)

    async def sign_in(self, db, email, password):
        data = await self._rest("signInWithPassword", {
            "email": email,
            "password": password,
            "returnSecureToken": True,
        })
        return self._session(data)

    async def verify_token(self, db, token):
        claims = await self._admin(firebase_auth.verify_id_token, token, check_revoked=True)
        return AuthIdentity(
            uid=claims["uid"],
            email=claims.get("email", ""),
            display_name=claims.get("name"),
            photo_url=claims.get("picture"),
        )

    async def sign_out(self, db, uid):
        await self._admin(firebase_auth.revoke_refresh_tokens, uid)
        logger.info(f"Revoked Firebase refresh tokens for {uid}")

    async def send_password_reset(self, db, email):
        await self._rest("sendOobCode", {"requestType": "PASSWORD_RESET", "email": email})

    async def confirm_password_reset(self, db, token, new_password):
        await self._rest("resetPassword", {"oobCode": token, "newPassword": new_password})

    async def update_display_name(self, db, uid, name):
        await self._admin(firebase_auth.update_user, uid, display_name=name)
