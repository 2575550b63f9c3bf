import logging
from fastapi import Request, HTTPException
from typing import Any, Dict

from listeners_club.http_api.auth import CurrentUser
from listeners_club.http_api.common import get_db, require_object_id, server_error
from listeners_club.http_api.users import DEFAULT_PROFILE_SETTINGS

logger = logging.getLogger(__name__)

PROFILE_PROJECTION = {"_id": 0, "password_hash": 0, "email": 0}

async def get_profile_handler(request: Request, user_id: str):
    """Public profile: user fields without email or credentials, plus personal albums"""
    require_object_id(user_id, "user ID")
    try:
        db = get_db()
        user = db.users.find_one({"id": user_id}, PROFILE_PROJECTION)
        if not user:
            raise HTTPException(status_code=404, detail="User not found")

        personal_albums = list(
            db.personal_albums.find({"owner_id": user_id}, {"_id": 0}).sort("created_at", -1)
        )
        return {"user": user, "personal_albums": personal_albums}

    except HTTPException:
        raise
    except Exception:
        raise server_error("Fetching profile")

async def update_profile_settings_handler(request: Request, settings_data: Dict[str, Any], user: CurrentUser):
    """Merge the supplied settings over the stored ones; empty values keep what is stored"""
    try:
        db = get_db()
        doc = db.users.find_one({"id": user.id}, {"_id": 0, "id": 1, "profile_settings": 1})
        if doc is None:
            raise HTTPException(status_code=404, detail="User not found")

        settings = {**DEFAULT_PROFILE_SETTINGS, **(doc.get("profile_settings") or {})}
        for key in DEFAULT_PROFILE_SETTINGS:
            if key not in settings_data:
                continue
            value = settings_data[key]
            if key == "background_image_url":
                # Explicit null clears the image
                settings[key] = value
            elif value:
                settings[key] = value

        db.users.update_one({"id": user.id}, {"$set": {"profile_settings": settings}})
        return {"message": "Profile settings updated", "profile_settings": settings}

    except HTTPException:
        raise
    except Exception:
        raise server_error("Updating profile settings")
