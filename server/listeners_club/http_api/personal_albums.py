"""Personal collection entries, owned by one user and separate from the club catalog"""
import logging
from fastapi import Request, HTTPException
from typing import Any, Dict, Optional

from listeners_club import catalog
from listeners_club.http_api.auth import CurrentUser
from listeners_club.http_api.common import (
    attach_usernames,
    get_db,
    new_id,
    now_iso,
    optional_year,
    require_object_id,
    server_error,
)

logger = logging.getLogger(__name__)

OPTIONAL_FIELDS = ("release_year", "cover_art_url", "user_rating", "notes")

def _parse_rating(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        return catalog.parse_score(value, "Rating")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

def _load_owned_album(db, album_id: str, user: CurrentUser, action: str) -> Dict[str, Any]:
    require_object_id(album_id, "album ID")
    album = db.personal_albums.find_one({"id": album_id}, {"_id": 0})
    if not album:
        raise HTTPException(status_code=404, detail="Personal album not found")
    if album.get("owner_id") != user.id:
        raise HTTPException(status_code=403, detail=f"Not authorized to {action} this album")
    return album

async def create_personal_album_handler(request: Request, album_data: Dict[str, Any], user: CurrentUser):
    try:
        title = album_data.get("title")
        artist = album_data.get("artist")
        if not isinstance(title, str) or not title.strip() or not isinstance(artist, str) or not artist.strip():
            raise HTTPException(status_code=400, detail="Title and artist are required")

        now = now_iso()
        album = {
            "id": new_id(),
            "owner_id": user.id,
            "title": title.strip(),
            "artist": artist.strip(),
            "release_year": optional_year(album_data.get("release_year")),
            "cover_art_url": album_data.get("cover_art_url"),
            "user_rating": _parse_rating(album_data.get("user_rating")),
            "notes": album_data.get("notes"),
            "created_at": now,
            "updated_at": now,
        }

        get_db().personal_albums.insert_one({**album})
        logger.info(f"📀 {user.username} added personal album {album['title']}")
        return album

    except HTTPException:
        raise
    except Exception:
        raise server_error("Creating personal album")

async def update_personal_album_handler(request: Request, album_id: str, update_data: Dict[str, Any], user: CurrentUser):
    """Partial update; empty title or artist keeps the stored value"""
    try:
        db = get_db()
        _load_owned_album(db, album_id, user, "update")

        update_fields: Dict[str, Any] = {}
        for field in ("title", "artist"):
            value = update_data.get(field)
            if isinstance(value, str) and value.strip():
                update_fields[field] = value.strip()
        for field in OPTIONAL_FIELDS:
            if field in update_data:
                value = update_data[field]
                if field == "user_rating":
                    value = _parse_rating(value)
                elif field == "release_year":
                    value = optional_year(value)
                update_fields[field] = value

        update_fields["updated_at"] = now_iso()
        db.personal_albums.update_one({"id": album_id}, {"$set": update_fields})

        return db.personal_albums.find_one({"id": album_id}, {"_id": 0})

    except HTTPException:
        raise
    except Exception:
        raise server_error("Updating personal album")

async def delete_personal_album_handler(request: Request, album_id: str, user: CurrentUser):
    try:
        db = get_db()
        _load_owned_album(db, album_id, user, "delete")

        db.personal_albums.delete_one({"id": album_id})
        comments = db.personal_comments.delete_many({"personal_album_id": album_id})

        return {
            "message": "Personal album and associated comments deleted",
            "comments_deleted": comments.deleted_count,
        }

    except HTTPException:
        raise
    except Exception:
        raise server_error("Deleting personal album")

async def get_personal_album_comments_handler(request: Request, album_id: str):
    require_object_id(album_id, "album ID")
    try:
        db = get_db()
        if not db.personal_albums.find_one({"id": album_id}, {"_id": 1}):
            raise HTTPException(status_code=404, detail="Personal album not found")

        comments = list(
            db.personal_comments.find({"personal_album_id": album_id}, {"_id": 0})
            .sort("created_at", -1)
        )
        return attach_usernames(db, comments, "author_id", "author")

    except HTTPException:
        raise
    except Exception:
        raise server_error("Fetching personal album comments")

async def add_personal_album_comment_handler(request: Request, album_id: str, comment_data: Dict[str, Any], user: CurrentUser):
    require_object_id(album_id, "album ID")
    try:
        text = comment_data.get("text")
        if not isinstance(text, str) or not text.strip():
            raise HTTPException(status_code=400, detail="Comment text is required")

        db = get_db()
        if not db.personal_albums.find_one({"id": album_id}, {"_id": 1}):
            raise HTTPException(status_code=404, detail="Personal album not found")

        comment = {
            "id": new_id(),
            "personal_album_id": album_id,
            "author_id": user.id,
            "text": text.strip(),
            "created_at": now_iso(),
        }
        db.personal_comments.insert_one({**comment})

        comment["author"] = user.username
        return comment

    except HTTPException:
        raise
    except Exception:
        raise server_error("Adding personal album comment")
