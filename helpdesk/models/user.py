"""
User models for authentication and role-based access
"""
from pydantic import BaseModel, EmailStr, Field
from datetime import datetime
from enum import Enum
from typing import Optional
from passlib.context import CryptContext
import secrets

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class Role(str, Enum):
    """User roles"""
    ADMIN = "admin"
    MANAGER = "manager"
    AGENT = "agent"
    CUSTOMER = "customer"


STAFF_ROLES = frozenset({Role.ADMIN, Role.MANAGER, Role.AGENT})


class Actor(BaseModel):
    """The authenticated user performing an operation"""
    user_id: str
    role: Role
    email: Optional[str] = None
    name: Optional[str] = None

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES


class User(BaseModel):
    """Stored user"""
    user_id: str = Field(default_factory=lambda: f"user_{secrets.token_hex(8)}")
    email: EmailStr
    password_hash: str
    name: str
    role: Role = Role.CUSTOMER
    department: Optional[str] = None
    phone: Optional[str] = None
    is_active: bool = True
    created_at: datetime = Field(default_factory=datetime.utcnow)
    last_login_at: Optional[datetime] = None

    def to_actor(self) -> Actor:
        return Actor(user_id=self.user_id, role=self.role, email=self.email, name=self.name)

    def public_dict(self) -> dict:
        """User data safe to return from the API"""
        return self.model_dump(exclude={"password_hash"})

    @staticmethod
    def hash_password(password: str) -> str:
        """
        Hash password with bcrypt

        Args:
            password: Plain text password

        Returns:
            Hashed password

        Note:
            bcrypt has a 72-byte limit. Passwords are automatically truncated.
        """
        password_bytes = password.encode('utf-8')[:72]
        password_truncated = password_bytes.decode('utf-8', errors='ignore')
        return pwd_context.hash(password_truncated)

    @staticmethod
    def verify_password(plain_password: str, hashed_password: str) -> bool:
        """
        Verify password against hash

        Args:
            plain_password: Plain text password
            hashed_password: Hashed password from database

        Returns:
            True if password matches, False otherwise
        """
        password_bytes = plain_password.encode('utf-8')[:72]
        password_truncated = password_bytes.decode('utf-8', errors='ignore')
        return pwd_context.verify(password_truncated, hashed_password)

    class Config:
        json_schema_extra = {
            "example": {
                "user_id": "user_a1b2c3d4e5f6g7h8",
                "email": "agent@example.com",
                "name": "Support Agent",
                "role": "agent",
                "department": "IT",
                "is_active": True
            }
        }


class RegisterRequest(BaseModel):
    """Self-service registration (always creates a customer)"""
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    name: str = Field(..., min_length=1, max_length=100)
    department: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class PasswordChangeRequest(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=8, max_length=128)


class ProfileUpdate(BaseModel):
    """Fields a user may change on their own profile"""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    department: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)


class UserCreate(BaseModel):
    """User creation request (admin/manager)"""
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    name: str = Field(..., min_length=1, max_length=100)
    role: Role = Role.CUSTOMER
    department: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)

    class Config:
        json_schema_extra = {
            "example": {
                "email": "agent@example.com",
                "password": "SecurePassword123!",
                "name": "Support Agent",
                "role": "agent",
                "department": "IT"
            }
        }


class UserUpdate(BaseModel):
    """User update request (admin/manager)"""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    role: Optional[Role] = None
    department: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)
    is_active: Optional[bool] = None
