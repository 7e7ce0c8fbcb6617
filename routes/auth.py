from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from motor.motor_asyncio import AsyncIOMotorDatabase
from database.mongodb import get_database
from models.common import utcnow
from models.user import UserCreate, UserSignup, User, Token, UserRole
from services.auth_deps import get_current_user, require_admin, user_from_doc
from services.auth_service import verify_password, get_password_hash, create_access_token
from services.queries import new_id
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/auth", tags=["authentication"])

def _token_for(user_doc: dict) -> Token:
    access_token = create_access_token(data={"sub": user_doc["_id"], "role": user_doc["role"]})
    return Token(access_token=access_token, user=user_from_doc(user_doc))

async def _insert_user(db: AsyncIOMotorDatabase, email: str, name: str, password: str, role: UserRole) -> dict:
    email = email.lower().strip()
    existing_user = await db.users.find_one({"email": email})
    if existing_user:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already registered"
        )

    now = utcnow()
    user_dict = {
        "_id": new_id(),
        "email": email,
        "name": name.strip(),
        "hashed_password": get_password_hash(password),
        "role": role.value,
        "created_at": now,
        "updated_at": now,
    }
    await db.users.insert_one(user_dict)
    logger.info(f"New user created: {email} ({role.value})")
    return user_dict

@router.post("/signup", response_model=Token)
async def signup(user: UserSignup, db: AsyncIOMotorDatabase = Depends(get_database)):
    """Bootstrap the first account, which becomes the administrator"""
    if await db.users.count_documents({}) > 0:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Signup is closed. Ask an administrator to create your account."
        )

    user_dict = await _insert_user(db, user.email, user.name, user.password, UserRole.ADMIN)
    return _token_for(user_dict)

@router.post("/register", response_model=User, status_code=status.HTTP_201_CREATED)
async def register(
    user: UserCreate,
    current_user: User = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Create a user account (administrators only)"""
    user_dict = await _insert_user(db, user.email, user.name, user.password, user.role)
    logger.info(f"User {user.email} registered by {current_user.email}")
    return user_from_doc(user_dict)

@router.post("/login", response_model=Token)
async def login(form_data: OAuth2PasswordRequestForm = Depends(), db: AsyncIOMotorDatabase = Depends(get_database)):
    """Login with email and password"""
    user_doc = await db.users.find_one({"email": form_data.username.lower().strip()})
    if not user_doc or not verify_password(form_data.password, user_doc["hashed_password"]):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    logger.info(f"User logged in: {user_doc['email']}")
    return _token_for(user_doc)

@router.get("/me", response_model=User)
async def get_me(current_user: User = Depends(get_current_user)):
    """Get current user info"""
    return current_user
