"""
Auth dependencies for Fleet Ops
Contains shared authentication dependencies to avoid circular imports
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from motor.motor_asyncio import AsyncIOMotorDatabase
from database.mongodb import get_database
from models.user import User, UserRole, WRITE_ROLES
from services.auth_service import decode_access_token

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")

def user_from_doc(user_doc: dict) -> User:
    return User(
        id=user_doc["_id"],
        email=user_doc["email"],
        name=user_doc["name"],
        role=user_doc.get("role", UserRole.VIEWER),
        created_at=user_doc["created_at"],
    )

async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncIOMotorDatabase = Depends(get_database)
) -> User:
    """Get current authenticated user from token"""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    payload = decode_access_token(token)
    if payload is None:
        raise credentials_exception

    user_id: str = payload.get("sub")
    if user_id is None:
        raise credentials_exception

    user_doc = await db.users.find_one({"_id": user_id})
    if user_doc is None:
        raise credentials_exception

    return user_from_doc(user_doc)

def require_roles(*roles: UserRole):
    """Dependency factory restricting an endpoint to the given roles"""
    async def checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Role {current_user.role.value} is not allowed to perform this action"
            )
        return current_user
    return checker

require_editor = require_roles(*WRITE_ROLES)
require_admin = require_roles(UserRole.ADMIN)
