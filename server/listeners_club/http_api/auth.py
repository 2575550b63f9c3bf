"""Password hashing, JWT issuance and the per-request identity dependencies"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from fastapi import Depends, Header, HTTPException
from pydantic import BaseModel

from listeners_club.config import BCRYPT_ROUNDS, JWT_ALGORITHM, JWT_EXPIRE_MINUTES, JWT_SECRET
from listeners_club.http_api.common import get_db

logger = logging.getLogger(__name__)

class CurrentUser(BaseModel):
    id: str
    username: str
    role: str = "user"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

# Authentication functions
def hash_password(password: str) -> str:
    """Hash password with bcrypt"""
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')

def verify_password(password: str, hashed: str) -> bool:
    """Verify password against hash"""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), hashed.encode('utf-8'))
    except ValueError:
        # Stored value is not a bcrypt hash
        return False

def create_access_token(user: dict, expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=JWT_EXPIRE_MINUTES))
    payload = {
        "sub": user["id"],
        "username": user.get("username"),
        "role": user.get("role", "user"),
        "exp": expire,
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)

def _user_from_token(token: str) -> CurrentUser:
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail="Not authorized, token failed")

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="Not authorized, token failed")

    # Role comes from the store so promotions and deletions apply immediately
    user = get_db().users.find_one({"id": user_id}, {"_id": 0, "id": 1, "username": 1, "role": 1})
    if not user:
        raise HTTPException(status_code=401, detail="User not found")

    return CurrentUser(id=user["id"], username=user.get("username", ""), role=user.get("role", "user"))

def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    parts = authorization.split(" ")
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1]:
        return None
    return parts[1]

async def get_current_user(authorization: Optional[str] = Header(None)) -> CurrentUser:
    token = _bearer_token(authorization)
    if not token:
        raise HTTPException(status_code=401, detail="Not authorized, no token")
    return _user_from_token(token)

async def get_optional_user(authorization: Optional[str] = Header(None)) -> Optional[CurrentUser]:
    """Identity for public routes that personalise their output; bad tokens read as anonymous"""
    token = _bearer_token(authorization)
    if not token:
        return None
    try:
        return _user_from_token(token)
    except HTTPException as e:
        logger.debug(f"Ignoring invalid token on public route: {e.detail}")
        return None

async def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Require Admin Role!")
    return user
