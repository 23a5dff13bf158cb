from datetime import datetime, timedelta, timezone
from jose import JWTError, jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel
from debt_ledger.core.config import settings

security = HTTPBearer()


class Operator(BaseModel):
    """Authenticated dashboard operator, as asserted by the login service's token."""
    username: str
    role: str = "operator"

    @property
    def is_admin(self) -> bool:
        return self.role == settings.ADMIN_ROLE


def create_access_token(username: str, role: str = "operator", expires_delta: timedelta | None = None) -> str:
    """Create JWT access token."""
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    now = datetime.now(timezone.utc)
    expire = now + expires_delta

    payload = {
        "sub": username,
        "role": role,
        "exp": int(expire.timestamp()),
        "iat": int(now.timestamp())
    }

    encoded_jwt = jwt.encode(
        payload,
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM
    )
    return encoded_jwt

async def get_current_operator(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> Operator:
    """Get the operator from the bearer token."""
    token = credentials.credentials

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM]
        )
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    username = payload.get("sub")
    if not username:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return Operator(username=username, role=payload.get("role") or "operator")

async def require_admin(operator: Operator = Depends(get_current_operator)) -> Operator:
    """Only administrators may run migrations and edit the person registry."""
    if not operator.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Administrator role required"
        )
    return operator
