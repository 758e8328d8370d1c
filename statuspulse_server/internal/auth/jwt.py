# statuspulse_server/internal/auth/jwt.py

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import ValidationError

from statuspulse_server.internal.config.config import settings
from statuspulse_server.models.models import TokenData

# Dashboard tokens are issued by the account service; the collector only
# verifies them.
dashboard_bearer = HTTPBearer(auto_error=False)

# Host credentials arrive as "Authorization: Bearer <token>" too, but are
# opaque strings looked up in the registry, not JWTs.
host_bearer = HTTPBearer(auto_error=False)


def decode_dashboard_token(token: str) -> TokenData:
    payload = jwt.decode(
        token,
        settings.jwt.secret_key,
        algorithms=[settings.jwt.algorithm],
    )
    email = payload.get("sub") or payload.get("email")
    if email is None:
        raise JWTError("token has no subject")
    return TokenData(email=email, role=payload.get("role"))


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(dashboard_bearer),
) -> TokenData:
    """
    FastAPI Dependency to validate a dashboard token.

    It validates the 'Authorization: Bearer <token>' header.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None:
        raise credentials_exception

    try:
        return decode_dashboard_token(credentials.credentials)
    except (JWTError, ValidationError):
        raise credentials_exception


async def get_host_credential(
    credentials: HTTPAuthorizationCredentials | None = Depends(host_bearer),
) -> str | None:
    """Raw host credential from the Authorization header, or None."""
    if credentials is None:
        return None
    return credentials.credentials
