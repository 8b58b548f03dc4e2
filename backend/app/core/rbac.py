"""Caller identity and role checks.

The bearer token carries the user id (``sub``), email, role, organization
(``org``) and display name. Every sync operation is scoped to the caller's
organization.
"""

from enum import Enum
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from app.core.security import decode_access_token


class UserRole(str, Enum):
    """User roles for RBAC."""

    OWNER = "owner"
    MANAGER = "manager"
    STAFF = "staff"


# Role hierarchy: owner > manager > staff
ROLE_HIERARCHY = {
    UserRole.OWNER: 3,
    UserRole.MANAGER: 2,
    UserRole.STAFF: 1,
}


class TokenData:
    """Decoded token data.

    Attributes:
        user_id: The user's database ID.
        email: The user's email address.
        role: The user's role (owner/manager/staff).
        organization_id: The tenant the user acts for.
        full_name: The user's display name (defaults to email prefix).
    """

    def __init__(self, user_id: int, email: str, role: UserRole,
                 organization_id: int, full_name: str = ""):
        self.user_id = user_id
        self.id = user_id
        self.email = email
        self.role = role
        self.organization_id = organization_id
        self.full_name = full_name or email.split("@")[0]


async def get_current_user(request: Request) -> TokenData:
    """Get the current authenticated user from the Authorization header."""
    payload = None

    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header.split(" ", 1)[1]
        if token:
            payload = decode_access_token(token)

    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = payload.get("sub")
    email = payload.get("email")
    role = payload.get("role")
    organization_id = payload.get("org")

    if user_id is None or email is None or role is None or organization_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )

    try:
        user_role = UserRole(role)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid role in token",
        )

    try:
        return TokenData(
            user_id=int(user_id), email=email, role=user_role,
            organization_id=int(organization_id),
            full_name=payload.get("full_name") or "",
        )
    except (TypeError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )


def require_role(minimum_role: UserRole):
    """Dependency to require a minimum role level."""

    async def role_checker(
        current_user: Annotated[TokenData, Depends(get_current_user)]
    ) -> TokenData:
        user_level = ROLE_HIERARCHY.get(current_user.role, 0)
        required_level = ROLE_HIERARCHY.get(minimum_role, 0)

        if user_level < required_level:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Requires role {minimum_role.value} or higher",
            )
        return current_user

    return role_checker


RequireManager = Annotated[TokenData, Depends(require_role(UserRole.MANAGER))]
CurrentUser = Annotated[TokenData, Depends(get_current_user)]
