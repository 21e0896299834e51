"""FastAPI dependency: get_current_identity.

Usage in any protected router:
    from src.shop_access.auth.dependencies import CallerIdentity, get_current_identity

    @router.post("/protected")
    async def protected(identity: CallerIdentity = Depends(get_current_identity)):
        ...

The identity is trusted as-is: user lookup and account-state checks belong to
the auth service that issued the token.
"""

from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer

from src.shop_access.auth.jwt_handler import decode_access_token
from src.shop_common.errors import InvalidCredentialsError

# tokenUrl tells Swagger UI where to get a token (served by the auth service)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")

# Reusable 401 exception with WWW-Authenticate header (OAuth2 standard)
_CREDENTIALS_EXCEPTION = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Invalid or expired token",
    headers={"WWW-Authenticate": "Bearer"},
)


@dataclass(frozen=True)
class CallerIdentity:
    id: str


async def get_current_identity(
    request: Request, token: str = Depends(oauth2_scheme)
) -> CallerIdentity:
    """Extract the verified caller identity from the Bearer token.

    The caller id is also left on request.state for the request log.
    Raises HTTP 401 if the token is missing, invalid, or expired.
    """
    try:
        payload = decode_access_token(token)
    except InvalidCredentialsError:
        raise _CREDENTIALS_EXCEPTION from None
    identity = CallerIdentity(id=str(payload["sub"]))
    request.state.caller_id = identity.id
    return identity
