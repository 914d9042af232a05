"""
Dependencias de autenticación para FastAPI.

The identity context is resolved once per request and handed to services
explicitly; nothing reads the current user from global state.
"""
from typing import List, Optional
from uuid import UUID
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
import jwt

from app.dependencies.dbDependecies import get_db
from app.common.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from app.modules.auth.models import User, UserRole
from app.modules.auth.schemas import AuthContext
from app.modules.auth.utils import decode_access_token

security = HTTPBearer()


class AuthDependencies:
    """Dependencias de autenticación reutilizables."""

    @staticmethod
    def get_current_user(
        credentials: HTTPAuthorizationCredentials = Depends(security),
        db: Session = Depends(get_db)
    ) -> User:
        """Obtener usuario actual desde token JWT."""
        credentials_exception = HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

        try:
            payload = decode_access_token(credentials.credentials)
            user_id: str = payload.get("sub")
            if user_id is None:
                raise credentials_exception
            user_uuid = UUID(user_id)
        except (jwt.PyJWTError, ValueError):
            raise credentials_exception

        user = db.query(User).filter(User.id == user_uuid).first()

        if user is None or not user.is_active:
            raise credentials_exception

        return user

    @staticmethod
    def get_auth_context(user: User = Depends(get_current_user.__func__)) -> AuthContext:
        """Build the explicit {user_id, role, company_id} context for the request."""
        if user.role != UserRole.SUPERADMIN and user.company_id is None:
            raise PermissionDeniedError("User has no company assigned")

        return AuthContext(user_id=user.id, role=user.role, company_id=user.company_id)

    @staticmethod
    def require_role(allowed_roles: List[UserRole]):
        """
        Dependencia para requerir roles específicos.
        """
        def role_checker(auth_context: AuthContext = Depends(AuthDependencies.get_auth_context)):
            if auth_context.role not in allowed_roles:
                raise PermissionDeniedError(
                    f"One of these roles is required: {', '.join(role.value for role in allowed_roles)}"
                )
            return auth_context
        return role_checker

    @staticmethod
    def require_admin():
        """ADMIN or SUPERADMIN."""
        return AuthDependencies.require_role([UserRole.ADMIN, UserRole.SUPERADMIN])

    @staticmethod
    def require_superadmin():
        return AuthDependencies.require_role([UserRole.SUPERADMIN])

    @staticmethod
    def require_any_role():
        return AuthDependencies.require_role([UserRole.SELLER, UserRole.ADMIN, UserRole.SUPERADMIN])


def resolve_company_id(auth: AuthContext, requested_company_id: Optional[UUID] = None) -> UUID:
    """
    Company a request operates on.

    SUPERADMIN must name one explicitly; everybody else is pinned to their
    own company and naming a different one is refused.
    """
    if auth.is_superadmin:
        if requested_company_id is None:
            if auth.company_id is None:
                raise ValidationError("company_id is required for SUPERADMIN users")
            return auth.company_id
        return requested_company_id

    if requested_company_id is not None and requested_company_id != auth.company_id:
        raise PermissionDeniedError("Access denied: you can only operate on your own company")
    return auth.company_id


def ensure_company_access(auth: AuthContext, company_id: UUID, entity: str = "Resource") -> None:
    """
    Entity-level tenant check. Out-of-scope entities are reported as missing
    so their existence is not leaked to other companies.
    """
    if auth.is_superadmin:
        return
    if company_id != auth.company_id:
        raise NotFoundError(f"{entity} not found")


# Instancias de dependencias
get_current_user = AuthDependencies.get_current_user
get_auth_context = AuthDependencies.get_auth_context
require_admin = AuthDependencies.require_admin
require_any_role = AuthDependencies.require_any_role
