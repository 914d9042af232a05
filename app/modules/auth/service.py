from datetime import timedelta
import logging
from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.common.exceptions import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from app.common.mixins import utcnow
from app.core.config import settings
from app.modules.auth.models import User, UserRole
from app.modules.auth.schemas import AuthContext, TokenResponse, UserCreate, UserOut
from app.modules.auth.utils import create_access_token, hash_password, verify_password
from app.modules.company.models import Company

logger = logging.getLogger(__name__)


class AuthService:
    """
    Servicio de autenticación: login y alta de usuarios por empresa.
    """

    def __init__(self, db: Session):
        self.db = db

    def login(self, email: str, password: str) -> TokenResponse:
        user = self.db.query(User).filter(User.email == email).first()

        if not user or not verify_password(password, user.password):
            logger.warning(f"Failed login for {email}")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid credentials"
            )

        if not user.is_active:
            raise PermissionDeniedError("Inactive account")

        user.last_login = utcnow()
        self.db.commit()
        self.db.refresh(user)

        token = create_access_token(
            {"sub": str(user.id), "role": user.role.value},
            expires_delta=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        )
        logger.info(f"User {user.id} logged in")

        return TokenResponse(
            access_token=token,
            expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
            user=UserOut.model_validate(user)
        )

    def create_user(self, user_data: UserCreate, auth: AuthContext) -> User:
        """
        ADMIN creates SELLER/ADMIN users in their own company;
        SUPERADMIN creates anyone anywhere.
        """
        if not auth.is_superadmin:
            if user_data.role == UserRole.SUPERADMIN:
                raise PermissionDeniedError("Only SUPERADMIN can create SUPERADMIN users")
            company_id = auth.company_id
            if user_data.company_id is not None and user_data.company_id != company_id:
                raise PermissionDeniedError("Access denied: you can only operate on your own company")
        else:
            company_id = user_data.company_id

        if company_id is None and user_data.role != UserRole.SUPERADMIN:
            raise ValidationError("company_id is required for non-SUPERADMIN users")

        if company_id is not None:
            company = self.db.query(Company).filter(Company.id == company_id).first()
            if not company:
                raise NotFoundError("Company not found")

        if self.db.query(User).filter(User.email == user_data.email).first():
            raise ConflictError("A user with this email already exists")

        try:
            user = User(
                email=user_data.email,
                password=hash_password(user_data.password),
                first_name=user_data.first_name,
                last_name=user_data.last_name,
                role=user_data.role,
                company_id=company_id,
                is_active=True
            )
            self.db.add(user)
            self.db.commit()
            self.db.refresh(user)
        except IntegrityError:
            self.db.rollback()
            raise ConflictError("A user with this email already exists")

        logger.info(f"User {user.id} created with role {user.role.value} in company {company_id}")
        return user
