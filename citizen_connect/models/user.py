"""
User models for authentication and user management.
"""

from pydantic import BaseModel, EmailStr, Field
from datetime import datetime
from enum import Enum
from typing import Optional


class Role(str, Enum):
    """Roles embedded in session claims at issuance time."""
    CITIZEN = "citizen"
    ADMIN = "admin"


class UserRecord(BaseModel):
    """Stored user as returned by a CredentialStore. Never serialized to clients."""
    id: str
    name: str
    email: str
    password_hash: str
    role: Role = Role.CITIZEN
    reset_token: Optional[str] = None  # SHA-256 digest of the issued token
    reset_token_expiry: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class Identity(BaseModel):
    """Caller resolved from a validated session token."""
    user_id: str
    email: str
    role: Role = Role.CITIZEN

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class RegisterRequest(BaseModel):
    """Model for creating a new user."""
    name: str = Field(..., min_length=1, max_length=255, description="Display name")
    email: EmailStr = Field(..., description="Login email, unique")
    password: str = Field(..., min_length=1, description="Plaintext password, hashed on receipt")


class LoginRequest(BaseModel):
    """Email goes through the same normalization as at registration (domain lowercased)."""
    email: EmailStr
    password: str = Field(..., min_length=1)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr = Field(..., description="Email of the account to reset")


class ResetPasswordRequest(BaseModel):
    password: str = Field(..., description="New password")


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1, alias="currentPassword")
    new_password: str = Field(..., min_length=1, alias="newPassword")

    class Config:
        populate_by_name = True


class UserResponse(BaseModel):
    """Model for user responses."""
    id: str = Field(..., description="User document ID")
    name: str
    email: str
    role: Role
    created_at: Optional[datetime] = Field(None, description="When user was created")

    @classmethod
    def from_record(cls, record: UserRecord, include_created: bool = False) -> "UserResponse":
        return cls(
            id=record.id,
            name=record.name,
            email=record.email,
            role=record.role,
            created_at=record.created_at if include_created else None,
        )
