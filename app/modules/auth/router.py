from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.dependencies.dbDependecies import get_db
from app.modules.auth.dependencies import AuthDependencies, get_current_user
from app.modules.auth.models import User
from app.modules.auth.schemas import AuthContext, TokenResponse, UserCreate, UserLogin, UserOut
from app.modules.auth.service import AuthService

auth_router = APIRouter()

@auth_router.post("/login", response_model=TokenResponse)
def login(credentials: UserLogin, db: Session = Depends(get_db)):
    """
    Login de usuario. Retorna token de acceso.
    """
    auth_service = AuthService(db)
    return auth_service.login(credentials.email, credentials.password)

@auth_router.get("/me", response_model=UserOut)
def get_current_user_info(current_user: User = Depends(get_current_user)):
    """
    Obtener información del usuario actual.
    """
    return current_user

@auth_router.post("/users", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def create_user(
    user_data: UserCreate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_admin())
):
    """Create a user in the caller's company (SUPERADMIN: any company)."""
    return AuthService(db).create_user(user_data, auth_context)
