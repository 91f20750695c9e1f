from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from pydantic import BaseModel, EmailStr
from typing import Optional
from ..core.config import settings
from ..core.database import get_db
from ..core.auth import verify_token
from ..core.dependencies import get_auth_provider
from ..core.errors import AuthProviderError, auth_error_status, describe_auth_error
from ..core.providers import AuthIdentity, AuthProvider, AuthSession
from ..models.profile import Profile
from ..utils.profiles import create_profile, fetch_profile, sync_profile
from .profile import ProfileResponse
import logging

logger = logging.getLogger(__name__)
router = APIRouter()


class SignupRequest(BaseModel):
    name: str
    email: EmailStr
    password: str
    confirm_password: str


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class PasswordResetRequest(BaseModel):
    email: EmailStr


class PasswordResetConfirm(BaseModel):
    token: str
    new_password: str


class AuthResponse(BaseModel):
    access_token: str
    token_type: str
    expires_in: Optional[int] = None
    refresh_token: Optional[str] = None
    user_id: str
    message: str
    profile: ProfileResponse


class MeResponse(BaseModel):
    user_id: str
    email: str
    provider: str
    profile: ProfileResponse


def _auth_response(session: AuthSession, profile: Profile, message: str) -> AuthResponse:
    return AuthResponse(
        access_token=session.access_token,
        token_type="bearer",
        expires_in=session.expires_in,
        refresh_token=session.refresh_token,
        user_id=session.identity.uid,
        message=message,
        profile=ProfileResponse.model_validate(profile),
    )


def _provider_failure(action: str, error: AuthProviderError) -> HTTPException:
    logger.warning(f"{action} rejected by provider: {error.code}")
    return HTTPException(
        status_code=auth_error_status(action, error),
        detail=describe_auth_error(action, error),
    )


def _check_new_password(password: str):
    if len(password) < settings.min_password_length:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Password must be at least {settings.min_password_length} characters long."
        )


@router.post("/signup", response_model=AuthResponse)
async def signup(request: SignupRequest, db: AsyncSession = Depends(get_db),
                 provider: AuthProvider = Depends(get_auth_provider)):
    """
    Create an account and its profile, and sign the new user in
    """
    try:
        logger.info(f"Signup attempt for email: {request.email}")

        name = request.name.strip()
        if not name or not request.password or not request.confirm_password:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Please fill in all fields."
            )
        if request.password != request.confirm_password:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Passwords do not match."
            )
        _check_new_password(request.password)

        session = await provider.sign_up(db, name, request.email, request.password)
        profile = await create_profile(db, session.identity, name=name)

        logger.info(f"Signup successful: {profile.email}")
        return _auth_response(session, profile, f"Welcome, {name}! Your account has been created.")

    except HTTPException:
        raise
    except AuthProviderError as e:
        raise _provider_failure("signup", e)
    except Exception as e:
        logger.error(f"Signup error for {request.email}: {e}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Signup failed. Please try again."
        )


@router.post("/login", response_model=AuthResponse)
async def login(request: LoginRequest, db: AsyncSession = Depends(get_db),
                provider: AuthProvider = Depends(get_auth_provider)):
    """
    Authenticate with email and password and return an access token
    """
    try:
        logger.info(f"Login attempt for email: {request.email}")

        session = await provider.sign_in(db, request.email, request.password)

        profile = await fetch_profile(db, session.identity.uid)
        if not profile:
            profile = await create_profile(db, session.identity)

        logger.info(f"Login successful: {profile.email}")
        return _auth_response(session, profile, f"Welcome back, {profile.name or profile.email}!")

    except HTTPException:
        raise
    except AuthProviderError as e:
        raise _provider_failure("login", e)
    except Exception as e:
        logger.error(f"Login error for {request.email}: {e}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Login failed. Please try again."
        )


@router.post("/logout")
async def logout(identity: AuthIdentity = Depends(verify_token), db: AsyncSession = Depends(get_db),
                 provider: AuthProvider = Depends(get_auth_provider)):
    try:
        await provider.sign_out(db, identity.uid)
        return {"message": "You have been successfully logged out."}
    except Exception as e:
        logger.error(f"Logout error for {identity.uid}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to log out. Please try again."
        )


@router.post("/password-reset")
async def request_password_reset(request: PasswordResetRequest, db: AsyncSession = Depends(get_db),
                                 provider: AuthProvider = Depends(get_auth_provider)):
    try:
        logger.info(f"Password reset requested for email: {request.email}")
        await provider.send_password_reset(db, request.email)
        return {"message": "Check your email for password reset instructions."}
    except AuthProviderError as e:
        raise _provider_failure("reset", e)
    except Exception as e:
        logger.error(f"Password reset error for {request.email}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to send password reset email."
        )


@router.post("/password-reset/confirm")
async def confirm_password_reset(request: PasswordResetConfirm, db: AsyncSession = Depends(get_db),
                                 provider: AuthProvider = Depends(get_auth_provider)):
    try:
        _check_new_password(request.new_password)
        await provider.confirm_password_reset(db, request.token, request.new_password)
        return {"message": "Your password has been reset. You can now log in."}
    except HTTPException:
        raise
    except AuthProviderError as e:
        raise _provider_failure("reset_confirm", e)
    except Exception as e:
        logger.error(f"Password reset confirmation error: {e}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to reset password."
        )


@router.get("/me", response_model=MeResponse)
async def get_current_user(identity: AuthIdentity = Depends(verify_token), db: AsyncSession = Depends(get_db),
                           provider: AuthProvider = Depends(get_auth_provider)):
    """
    Current session: the signed-in identity and its profile
    """
    try:
        profile = await sync_profile(db, identity)
        return MeResponse(
            user_id=identity.uid,
            email=identity.email,
            provider=provider.name,
            profile=ProfileResponse.model_validate(profile),
        )
    except Exception as e:
        logger.error(f"Error getting current user: {e}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not get user information"
        )
