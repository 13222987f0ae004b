"""FastAPI dependencies for authentication and authorization."""
from uuid import UUID

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from dutylog.core.database import get_db
from dutylog.core.errors import AppError, ErrorCode
from dutylog.core.policy import Principal
from dutylog.core.request_context import bind_principal_id
from dutylog.core.security import decode_token
from dutylog.services.auth_service import AuthService
from dutylog.services.user_service import UserService

# HTTP Bearer token security scheme; missing credentials are reported by
# get_principal so the body stays {"error": ...}
security = HTTPBearer(auto_error=False)


async def get_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> Principal:
    """Resolve the bearer token to an identity, without loading the profile.

    Args:
        credentials: HTTP Bearer credentials from request
        db: Database session

    Returns:
        Principal with ``profile=None``

    Raises:
        AppError: UNAUTHENTICATED if the token is missing, invalid or its
            identity no longer exists
    """
    if credentials is None:
        raise AppError(ErrorCode.UNAUTHENTICATED, "Unauthorized")

    payload = decode_token(credentials.credentials)
    if not payload:
        raise AppError(ErrorCode.UNAUTHENTICATED, "Invalid or expired token")

    try:
        identity_id = UUID(str(payload.get("sub")))
    except ValueError:
        raise AppError(ErrorCode.UNAUTHENTICATED, "Invalid token payload") from None

    identity = await AuthService(db).get_identity(identity_id)
    if identity is None:
        raise AppError(ErrorCode.UNAUTHENTICATED, "Invalid authentication token")

    bind_principal_id(str(identity.id))
    return Principal(id=identity.id, email=identity.email)


async def get_current_principal(
    principal: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
) -> Principal:
    """Resolve the principal and attach their profile (None if not onboarded).

    Policies decide what a missing profile means for each action.
    """
    profile = await UserService(db).get_profile(principal.id)
    return principal.with_profile(profile)


def client_ip(request: Request) -> str | None:
    return request.client.host if request.client else None
