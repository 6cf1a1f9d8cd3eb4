"""FastAPI dependencies for authentication.

Provides:
- Bearer token extraction and validation
- Role-based access control
- The shared AuthService lookup
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from jose import JWTError

from learninghub.auth.permissions import UserRole, has_permission
from learninghub.auth.schemas import CurrentUserClaims
from learninghub.auth.security import decode_access_token
from learninghub.auth.service import AuthService
from learninghub.core.context import set_user_id


def get_token_from_header(request: Request) -> str | None:
    """Extract the Bearer token from the Authorization header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None

    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1]


async def get_current_user(
    token: Annotated[str | None, Depends(get_token_from_header)],
) -> CurrentUserClaims:
    """Validate the access token and return the caller's identity.

    Raises:
        HTTPException(401): If the token is missing, invalid or expired
    """
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        payload = decode_access_token(token)
        claims = CurrentUserClaims(
            id=payload["sub"],
            email=payload["email"],
            role=payload["role"],
        )
    except (JWTError, KeyError, ValueError) as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

    set_user_id(claims.id)
    return claims


async def get_current_user_optional(
    token: Annotated[str | None, Depends(get_token_from_header)],
) -> CurrentUserClaims | None:
    """Return the caller's identity, or None for anonymous or invalid tokens."""
    if not token:
        return None
    try:
        return await get_current_user(token)
    except HTTPException:
        return None


def require_permission(required_role: UserRole):
    """Build a dependency that requires at least ``required_role``.

    Example:
        @router.get("/admin-area")
        async def admin_endpoint(
            user: Annotated[CurrentUserClaims, Depends(require_permission(UserRole.ADMIN))]
        ):
            ...
    """

    async def permission_checker(
        user: Annotated[CurrentUserClaims, Depends(get_current_user)],
    ) -> CurrentUserClaims:
        if not has_permission(user.role, required_role):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Admin access required",
            )
        return user

    return permission_checker


async def get_auth_service(request: Request) -> AuthService:
    service = getattr(request.app.state, "auth_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication service unavailable",
        )
    return service


CurrentUser = Annotated[CurrentUserClaims, Depends(get_current_user)]
OptionalUser = Annotated[CurrentUserClaims | None, Depends(get_current_user_optional)]
AdminUser = Annotated[CurrentUserClaims, Depends(require_permission(UserRole.ADMIN))]
AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]
