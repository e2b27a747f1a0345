import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import APIKeyHeader
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.ext.asyncio import AsyncSession

from config import ALGORITHM, Settings
from database import UserModel, user_query
from errors import Unauthorized

logger = logging.getLogger(__name__)

TOKEN_HEADER = "x-auth-token"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
token_header = APIKeyHeader(name=TOKEN_HEADER, auto_error=False)


# ----------------------------------------------------------------------------
# Auth helpers
# ----------------------------------------------------------------------------

def verify_password(plain_password: str, password_hash: str) -> bool:
    return pwd_context.verify(plain_password, password_hash)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(user_id: int, settings: Settings, expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(seconds=settings.access_token_expire_seconds)
    )
    to_encode = {"sub": str(user_id), "exp": expire}
    return jwt.encode(to_encode, settings.secret_key, algorithm=ALGORITHM)


def verify_token(token: Optional[str], settings: Settings) -> int:
    """Return the user id bound to ``token`` or raise Unauthorized."""
    if not token:
        raise Unauthorized("No token, authorization denied")
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
        user_id = int(payload["sub"])
    except (JWTError, KeyError, TypeError, ValueError):
        logger.warning("rejected session token")
        raise Unauthorized()
    return user_id


# ----------------------------------------------------------------------------
# Dependencies
# ----------------------------------------------------------------------------

def get_settings(request: Request) -> Settings:
    return request.app.state.settings


async def get_db(request: Request) -> AsyncSession:
    async with request.app.state.session_factory() as session:
        yield session


async def get_current_user(
    token: Optional[str] = Depends(token_header),
    settings: Settings = Depends(get_settings),
    db: AsyncSession = Depends(get_db),
) -> UserModel:
    user_id = verify_token(token, settings)
    result = await db.execute(user_query(user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise Unauthorized()
    return user
