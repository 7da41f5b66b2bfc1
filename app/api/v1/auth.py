from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from app.config.database import get_db
from app.core.auth.service import AuthService
from app.core.auth.schemas import UserLogin, TokenResponse, UserResponse
from app.shared.database.models import User
from app.core.auth.dependencies import get_current_user

router = APIRouter()

def _issue_token(db: Session, email: str, password: str) -> TokenResponse:
    user = AuthService.authenticate(db, email, password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User is inactive"
        )

    access_token = AuthService.create_access_token(data=AuthService.token_data(user))
    return TokenResponse(
        access_token=access_token,
        token_type="bearer",
        user=UserResponse.from_user(user),
    )

@router.post("/login", response_model=TokenResponse)
async def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db)
):
    """
    OAuth2 password login

    **Form fields:**
    - **username**: user email
    - **password**: user password
    """
    return _issue_token(db, form_data.username, form_data.password)

@router.post("/login-json", response_model=TokenResponse)
async def login_json(
    user_login: UserLogin,
    db: Session = Depends(get_db)
):
    """Same as /login with a JSON body"""
    return _issue_token(db, user_login.email, user_login.password)

@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    current_user: User = Depends(get_current_user)
):
    return UserResponse.from_user(current_user)
