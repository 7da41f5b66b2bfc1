from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import List

from app.config.database import get_db
from app.shared.database.models import User, UserRole
from app.core.auth.service import AuthService

security = HTTPBearer()

class AuthenticationError(HTTPException):
    def __init__(self, detail: str = "Could not validate credentials"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )

class AuthorizationError(HTTPException):
    def __init__(self, detail: str = "Not enough permissions"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail
        )

async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """Active user behind the bearer token"""
    payload = AuthService.verify_token(credentials.credentials)
    if payload is None:
        raise AuthenticationError("Invalid or expired token")

    user_id = payload.get("user_id")
    if user_id is None:
        raise AuthenticationError("Invalid token payload")

    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise AuthenticationError("User not found")
    if not user.is_active:
        raise AuthenticationError("User is inactive")

    return user

def require_roles(allowed_roles: List[str]):
    """Dependency factory: the current user must hold one of allowed_roles"""
    allowed = {UserRole(role) for role in allowed_roles}

    def role_checker(current_user: User = Depends(get_current_user)) -> User:
        role = UserRole(current_user.role)
        if role not in allowed:
            raise AuthorizationError(
                f"Role '{role.value}' not allowed. Allowed roles: {sorted(r.value for r in allowed)}"
            )
        return current_user
    return role_checker
