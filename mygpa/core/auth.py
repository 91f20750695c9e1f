from fastapi import HTTPException, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from .database import get_db
from .dependencies import get_auth_provider
from .errors import AuthProviderError
from .providers import AuthIdentity, AuthProvider
import logging

logger = logging.getLogger(__name__)

security = HTTPBearer()


async def verify_token(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db),
    provider: AuthProvider = Depends(get_auth_provider),
) -> AuthIdentity:
    token = credentials.credentials

    try:
        identity = await provider.verify_token(db, token)
    except AuthProviderError as e:
        logger.warning(f"Token rejected by {provider.name} provider: {e.code}")
        if e.code == "auth/user-disabled":
            raise HTTPException(status_code=403, detail="This account has been disabled.")
        raise HTTPException(status_code=401, detail="Invalid token")
    except Exception as e:
        logger.error(f"Unexpected error in token verification: {e}")
        raise HTTPException(status_code=401, detail="Invalid token")

    return identity


def require_user(identity: AuthIdentity = Depends(verify_token)) -> str:
    return identity.uid
