import logging
from fastapi import Request, HTTPException
from typing import Dict, Any
from pydantic import BaseModel
from pymongo.errors import DuplicateKeyError

from listeners_club.http_api.auth import CurrentUser, create_access_token, hash_password, verify_password
from listeners_club.http_api.common import (
    USER_PUBLIC_PROJECTION,
    get_db,
    new_id,
    now_iso,
    require_object_id,
    server_error,
)

logger = logging.getLogger(__name__)

DEFAULT_PROFILE_SETTINGS = {
    "background_color": "#1a202c",
    "text_color": "#e2e8f0",
    "accent_color": "#f6ad55",
    "background_image_url": None,
    "layout_style": "default",
}

ALBUM_SUMMARY_PROJECTION = {
    "_id": 0,
    "id": 1,
    "title": 1,
    "artist": 1,
    "release_year": 1,
    "cover_art_url": 1,
}

# Pydantic models for request/response
class RegisterRequest(BaseModel):
    username: str
    email: str
    password: str

class LoginRequest(BaseModel):
    email: str
    password: str

class LoginResponse(BaseModel):
    token: str
    user: Dict[str, Any]

def public_user(user: Dict[str, Any]) -> Dict[str, Any]:
    """User fields safe to return to the account owner"""
    return {
        "id": user["id"],
        "username": user.get("username"),
        "email": user.get("email"),
        "role": user.get("role", "user"),
        "date_registered": user.get("date_registered"),
        "profile_settings": user.get("profile_settings", DEFAULT_PROFILE_SETTINGS),
    }

# API Endpoints
async def register_handler(request: Request, register_data: RegisterRequest):
    """Register new user"""
    try:
        db = get_db()
        username = register_data.username.strip()
        email = register_data.email.strip().lower()

        if not username or not email or not register_data.password:
            raise HTTPException(status_code=400, detail="Username, email and password are required")

        # Check if email already exists
        if db.users.find_one({"email": email}):
            raise HTTPException(status_code=400, detail="User already exists with that email")

        # Check if username already exists
        if db.users.find_one({"username": username}):
            raise HTTPException(status_code=400, detail="Username already taken")

        user_id = new_id()
        new_user = {
            "id": user_id,
            "username": username,
            "email": email,
            "password_hash": hash_password(register_data.password),
            "role": "user",
            "date_registered": now_iso(),
            "profile_settings": dict(DEFAULT_PROFILE_SETTINGS),
        }

        db.users.insert_one(new_user)
        logger.info(f"👤 Registered user {username} ({user_id})")

        return {"msg": "User registered successfully", "id": user_id}

    except DuplicateKeyError:
        # A concurrent registration took the email or username after the checks above
        raise HTTPException(status_code=400, detail="User already exists with that email or username")
    except HTTPException:
        raise
    except Exception:
        raise server_error("Registration")

async def login_handler(request: Request, login_data: LoginRequest):
    """Authenticate user with email and password"""
    try:
        db = get_db()
        user = db.users.find_one({"email": login_data.email.strip().lower()}, {"_id": 0})

        if not user or not verify_password(login_data.password, user.get("password_hash", "")):
            raise HTTPException(status_code=400, detail="Invalid credentials")

        return LoginResponse(token=create_access_token(user), user=public_user(user))

    except HTTPException:
        raise
    except Exception:
        raise server_error("Login")

async def get_me_handler(request: Request, user: CurrentUser):
    try:
        doc = get_db().users.find_one({"id": user.id}, {"_id": 0})
        if not doc:
            raise HTTPException(status_code=404, detail="User not found")
        return public_user(doc)

    except HTTPException:
        raise
    except Exception:
        raise server_error("Fetching current user")

async def get_user_activity_handler(request: Request, user_id: str):
    """Albums a user has favorited and the ratings they have given"""
    require_object_id(user_id, "user ID")
    try:
        db = get_db()

        favorites = list(
            db.albums.find({"favorited_by": user_id}, ALBUM_SUMMARY_PROJECTION)
            .sort("date_added", -1)
        )

        rated = db.albums.find(
            {f"scores.{user_id}": {"$exists": True}},
            {**ALBUM_SUMMARY_PROJECTION, "scores": 1},
        ).sort("date_added", -1)

        ratings = []
        for album in rated:
            score = album.pop("scores", {}).get(user_id)
            ratings.append({"score": score, "album": album})

        return {"favorites": favorites, "ratings": ratings}

    except HTTPException:
        raise
    except Exception:
        raise server_error("Fetching user activity")

async def get_users_handler(request: Request, admin: CurrentUser):
    """List all users with a contribution count (admin)"""
    try:
        db = get_db()
        users = list(db.users.find({}, {**USER_PUBLIC_PROJECTION}).sort("date_registered", -1))

        for user in users:
            user_id = user["id"]
            scores = db.albums.count_documents({f"scores.{user_id}": {"$exists": True}})
            favorites = db.albums.count_documents({"favorited_by": user_id})
            comments = db.comments.count_documents({"user_id": user_id})
            user["activity"] = scores + favorites + comments

        return users

    except HTTPException:
        raise
    except Exception:
        raise server_error("Listing users")

async def delete_user_handler(request: Request, user_id: str, admin: CurrentUser):
    """
    Delete a user account (admin).

    Scores, favorites and comments stay in place; they simply no longer
    resolve to a username.
    """
    require_object_id(user_id, "user ID")
    try:
        if user_id == admin.id:
            raise HTTPException(status_code=400, detail="Admins cannot delete their own account")

        db = get_db()
        result = db.users.delete_one({"id": user_id})
        if result.deleted_count == 0:
            raise HTTPException(status_code=404, detail="User not found")

        logger.info(f"🗑️  Admin {admin.username} deleted user {user_id}")
        return {"message": "User deleted successfully"}

    except HTTPException:
        raise
    except Exception:
        raise server_error("Deleting user")
