"""Аутентификация пользователей по Bearer JWT провайдера идентификации (Clerk).

Пользователь = claim `sub`. Если задан CLERK_JWT_PUBLIC_KEY, подпись проверяется;
иначе claims читаются без проверки (dev и preview окружения).
"""
import logging
from typing import Optional

from jose import JWTError, jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from apps.backend.config import get_settings

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def decode_user_token(token: str) -> Optional[dict]:
    s = get_settings()
    try:
        if s.clerk_jwt_public_key:
            return jwt.decode(
                token,
                s.clerk_jwt_public_key,
                algorithms=[s.clerk_jwt_algorithm],
                options={"verify_aud": False},
            )
        return jwt.get_unverified_claims(token)
    except JWTError as e:
        logger.info("user_token_rejected %s", str(e)[:120])
        return None


def user_id_from_token(token: str) -> Optional[str]:
    payload = decode_user_token(token)
    if not payload:
        return None
    sub = payload.get("sub")
    if not sub:
        return None
    return str(sub)


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> str:
    if not credentials:
        raise HTTPException(status_code=401, detail="No valid authorization header")
    user_id = user_id_from_token(credentials.credentials)
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid user token")
    return user_id
