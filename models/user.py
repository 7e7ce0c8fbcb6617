from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime
from enum import Enum

class UserRole(str, Enum):
    ADMIN = "Admin"
    EDITOR = "Editor"
    VIEWER = "Viewer"

# Roles allowed to write operational data
WRITE_ROLES = (UserRole.ADMIN, UserRole.EDITOR)

class UserBase(BaseModel):
    email: EmailStr
    name: str

class UserCreate(UserBase):
    password: str = Field(..., min_length=8)
    role: UserRole = UserRole.VIEWER

class UserSignup(UserBase):
    password: str = Field(..., min_length=8)

class UserInDB(UserBase):
    id: str = Field(alias="_id")
    hashed_password: str
    role: UserRole = UserRole.VIEWER
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        populate_by_name = True

class User(UserBase):
    id: str
    role: UserRole
    created_at: datetime

class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: User
