from pydantic import BaseModel, Field
from typing import Optional

from app.shared.database.models import User, UserRole

class UserLogin(BaseModel):
    email: str = Field(..., description="User email")
    password: str = Field(..., min_length=6)

    class Config:
        json_schema_extra = {
            "example": {
                "email": "merchant@example.com",
                "password": "merchant123"
            }
        }

class UserResponse(BaseModel):
    id: int
    email: str
    name: str
    phone: Optional[str] = None
    role: str
    owner_id: Optional[int] = None
    company_name: Optional[str] = None
    is_available: bool
    is_active: bool

    class Config:
        from_attributes = True
        json_schema_extra = {
            "example": {
                "id": 7,
                "email": "driver@example.com",
                "name": "Dana Ruiz",
                "role": "Driver",
                "owner_id": 3,
                "is_available": True,
                "is_active": True
            }
        }

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            phone=user.phone,
            role=UserRole(user.role).value,
            owner_id=user.owner_id,
            company_name=user.company_name,
            is_available=user.is_available,
            is_active=user.is_active,
        )

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse
