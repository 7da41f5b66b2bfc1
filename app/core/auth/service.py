import logging
from datetime import datetime, timedelta
from typing import Optional

from jose import jwt, JWTError
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from app.config.settings import settings
from app.shared.database.models import User, UserRole

logger = logging.getLogger(__name__)

# Password context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

class AuthService:
    """Password hashing, JWT issue/verify and credential checks"""

    @staticmethod
    def verify_password(plain_password: str, hashed_password: str) -> bool:
        # bcrypt only looks at the first 72 bytes
        encoded_password = plain_password.encode('utf-8')[:72].decode('utf-8', errors='ignore')
        try:
            return pwd_context.verify(encoded_password, hashed_password)
        except (ValueError, TypeError) as e:
            logger.warning(f"⚠️ Password verification error: {e}")
            return False

    @staticmethod
    def get_password_hash(password: str) -> str:
        encoded_password = password.encode('utf-8')[:72].decode('utf-8', errors='ignore')
        return pwd_context.hash(encoded_password)

    @staticmethod
    def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
        to_encode = data.copy()
        if "user_id" not in to_encode:
            raise ValueError("user_id is required in the token")

        if expires_delta:
            expire = datetime.utcnow() + expires_delta
        else:
            expire = datetime.utcnow() + timedelta(minutes=settings.access_token_expire_minutes)
        to_encode.update({"exp": expire})

        return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)

    @staticmethod
    def verify_token(token: str) -> Optional[dict]:
        try:
            return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
        except JWTError:
            return None

    @staticmethod
    def token_data(user: User) -> dict:
        return {
            "user_id": user.id,
            "email": user.email,
            "role": UserRole(user.role).value,
        }

    @staticmethod
    def authenticate(db: Session, email: str, password: str) -> Optional[User]:
        """User for these credentials, or None"""
        user = db.query(User).filter(User.email == email.lower()).first()
        if not user or not AuthService.verify_password(password, user.password_hash):
            logger.info(f"🔒 Failed login for {email}")
            return None
        return user
