"""
Club album catalog handlers

Albums live in one collection with embedded scores (a user_id -> score
mapping) and a favorited_by list. Comments are stored separately and joined
in when albums are rendered.
"""

import logging
from collections import defaultdict
from fastapi import Request, HTTPException
from typing import Optional, Dict, Any, List
from pydantic import BaseModel, Field
from pymongo.errors import DuplicateKeyError

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
    usernames_by_id,
)

logger = logging.getLogger(__name__)

# Fields an admin may change through the plain details update
UPDATABLE_FIELDS = {"title", "artist", "release_year", "genre", "trivia", "cover_art_url"}

class AlbumCreateRequest(BaseModel):
    title: str
    artist: str
    release_year: Optional[int] = None
    genre: List[str] = Field(default_factory=list)
    cover_art_url: Optional[str] = None
    external_id: Optional[str] = None
    trivia: Optional[str] = None
    club_entry_number: Optional[int] = None
    club_original_score: Optional[float] = None

# =============================================================================
# PROJECTION
# =============================================================================

def build_album_views(db, albums: List[Dict[str, Any]], user: Optional[CurrentUser] = None) -> List[Dict[str, Any]]:
    """Render stored albums with usernames, comments and the caller's own score/favorite joined in"""
    if not albums:
        return []

    album_ids = [album["id"] for album in albums]
    comments_by_album = defaultdict(list)
    comments = list(
        db.comments.find({"album_id": {"$in": album_ids}}, {"_id": 0})
        .sort("created_at", -1)
    )
    for comment in comments:
        comments_by_album[comment["album_id"]].append(comment)

    scorer_ids = [user_id for album in albums for user_id in (album.get("scores") or {})]
    commenter_ids = [comment.get("user_id") for comment in comments]
    names = usernames_by_id(db, scorer_ids + commenter_ids)

    views = []
    for album in albums:
        view = dict(album)
        scores = view.get("scores") or {}
        favorited_by = view.get("favorited_by") or []
        album_comments = comments_by_album.get(album["id"], [])
        for comment in album_comments:
            comment["username"] = names.get(comment.get("user_id"))

        view["scores"] = [
            {"user_id": user_id, "username": names.get(user_id), "score": score}
            for user_id, score in scores.items()
        ]
        view["favorited_by"] = favorited_by
        view["favorite_count"] = len(favorited_by)
        view["comments"] = album_comments
        view["comment_count"] = len(album_comments)
        if user is not None:
            view["user_score"] = scores.get(user.id)
            view["is_favorited"] = user.id in favorited_by
        views.append(view)

    return views

def _load_album(db, album_id: str) -> Dict[str, Any]:
    require_object_id(album_id, "album ID")
    album = db.albums.find_one({"id": album_id}, {"_id": 0})
    if not album:
        raise HTTPException(status_code=404, detail="Album not found")
    return album

def _album_view(db, album_id: str, user: Optional[CurrentUser] = None) -> Dict[str, Any]:
    album = db.albums.find_one({"id": album_id}, {"_id": 0})
    if not album:
        raise HTTPException(status_code=404, detail="Album not found")
    return build_album_views(db, [album], user)[0]

def _require_text(value: Any, label: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise HTTPException(status_code=400, detail=f"{label} is required")
    return value.strip()

def _entry_number_in_use(db, entry_number: int, exclude_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
    query: Dict[str, Any] = {"club_entry_number": entry_number}
    if exclude_id:
        query["id"] = {"$ne": exclude_id}
    return db.albums.find_one(query, {"_id": 0, "id": 1, "title": 1, "artist": 1})

def _entry_number_conflict(holder: Dict[str, Any], entry_number: int) -> HTTPException:
    return HTTPException(
        status_code=400,
        detail=f'Club entry number {entry_number} is already assigned to "{holder.get("title")}" by {holder.get("artist")}',
    )

# =============================================================================
# LISTING
# =============================================================================

async def list_albums_handler(request: Request, sort: Optional[str], user: Optional[CurrentUser], default_sort: str = catalog.PUBLIC_DEFAULT_SORT):
    """List albums ordered by one of the catalog sort keys"""
    try:
        db = get_db()
        albums = list(db.albums.find({}, {"_id": 0}).sort(catalog.resolve_sort(sort, default_sort)))
        return build_album_views(db, albums, user)

    except HTTPException:
        raise
    except Exception:
        raise server_error("Fetching albums")

async def get_album_handler(request: Request, album_id: str, user: Optional[CurrentUser]):
    try:
        db = get_db()
        album = _load_album(db, album_id)
        return build_album_views(db, [album], user)[0]

    except HTTPException:
        raise
    except Exception:
        raise server_error("Fetching album")

# =============================================================================
# ADMIN MUTATIONS
# =============================================================================

async def create_album_handler(request: Request, album_data: AlbumCreateRequest, admin: CurrentUser):
    """Add an album to the club catalog, assigning the next entry number unless one is given"""
    try:
        db = get_db()
        title = _require_text(album_data.title, "Title")
        artist = _require_text(album_data.artist, "Artist")

        club_score = None
        if album_data.club_original_score is not None:
            try:
                club_score = catalog.parse_score(album_data.club_original_score, "Club score")
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))

        if album_data.club_entry_number is not None:
            try:
                entry_number = catalog.parse_entry_number(album_data.club_entry_number)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            holder = _entry_number_in_use(db, entry_number)
            if holder:
                raise _entry_number_conflict(holder, entry_number)
        else:
            entry_number = catalog.next_entry_number(db.albums)

        now = now_iso()
        album_id = new_id()
        album = {
            "id": album_id,
            "title": title,
            "artist": artist,
            "release_year": album_data.release_year,
            "genre": [g.strip() for g in album_data.genre if g and g.strip()],
            "cover_art_url": album_data.cover_art_url,
            "external_id": album_data.external_id,
            "trivia": album_data.trivia,
            "club_entry_number": entry_number,
            "club_original_score": club_score,
            "scores": {},
            "average_user_score": 0,
            "favorited_by": [],
            "date_added": now,
            "updated_at": now,
        }

        # Insert a shallow copy so the original doc isn't mutated with Mongo's _id
        db.albums.insert_one({**album})
        logger.info(f"💿 Admin {admin.username} added album #{entry_number}: {title} - {artist}")

        return build_album_views(db, [album])[0]

    except DuplicateKeyError:
        logger.warning("Club entry number collision while creating album")
        raise HTTPException(status_code=409, detail="Club entry number was taken concurrently, please retry")
    except HTTPException:
        raise
    except Exception:
        raise server_error("Adding album")

async def update_album_handler(request: Request, album_id: str, update_data: Dict[str, Any], admin: CurrentUser):
    """Update album details; fields outside UPDATABLE_FIELDS are ignored"""
    try:
        db = get_db()
        _load_album(db, album_id)

        update_fields: Dict[str, Any] = {}
        for field in UPDATABLE_FIELDS & set(update_data.keys()):
            value = update_data[field]
            if field in ("title", "artist"):
                value = _require_text(value, field.capitalize())
            elif field == "release_year":
                value = optional_year(value)
            elif field == "genre":
                if not isinstance(value, list) or not all(isinstance(g, str) for g in value):
                    raise HTTPException(status_code=400, detail="Genre must be a list of strings")
            update_fields[field] = value

        update_fields["updated_at"] = now_iso()
        db.albums.update_one({"id": album_id}, {"$set": update_fields})

        return _album_view(db, album_id)

    except HTTPException:
        raise
    except Exception:
        raise server_error("Updating album details")

async def admin_update_album_handler(request: Request, album_id: str, update_data: Dict[str, Any], admin: CurrentUser):
    """Admin edit that may also move the album to a different, unused entry number"""
    try:
        db = get_db()
        album = _load_album(db, album_id)

        update_fields: Dict[str, Any] = {}

        entry_number = update_data.get("club_entry_number")
        if entry_number is not None:
            try:
                entry_number = catalog.parse_entry_number(entry_number)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            if entry_number != album.get("club_entry_number"):
                holder = _entry_number_in_use(db, entry_number, exclude_id=album_id)
                if holder:
                    raise _entry_number_conflict(holder, entry_number)
                update_fields["club_entry_number"] = entry_number

        if update_data.get("title"):
            update_fields["title"] = _require_text(update_data["title"], "Title")
        if update_data.get("artist"):
            update_fields["artist"] = _require_text(update_data["artist"], "Artist")
        if "release_year" in update_data:
            update_fields["release_year"] = optional_year(update_data["release_year"])

        update_fields["updated_at"] = now_iso()
        db.albums.update_one({"id": album_id}, {"$set": update_fields})

        return _album_view(db, album_id)

    except DuplicateKeyError:
        raise HTTPException(status_code=409, detail="Club entry number was taken concurrently, please retry")
    except HTTPException:
        raise
    except Exception:
        raise server_error("Admin album update")

async def set_club_score_handler(request: Request, album_id: str, score_data: Dict[str, Any], admin: CurrentUser):
    """Set the administrator's club score, accepting the legacy clubOriginalScore key"""
    try:
        db = get_db()
        _load_album(db, album_id)

        raw_score = score_data.get("clubScore")
        if raw_score is None:
            raw_score = score_data.get("clubOriginalScore")
        try:
            club_score = catalog.parse_score(raw_score, "Club score")
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

        result = db.albums.update_one(
            {"id": album_id},
            {"$set": {"club_original_score": club_score, "updated_at": now_iso()}},
        )
        if result.matched_count == 0:
            raise HTTPException(status_code=404, detail="Album not found")

        return _album_view(db, album_id)

    except HTTPException:
        raise
    except Exception:
        raise server_error("Updating club score")

async def fix_entry_numbers_handler(request: Request, admin: CurrentUser):
    """Close gaps in the entry number sequence, returning the renumbered catalog"""
    try:
        db = get_db()
        changed = catalog.fix_entry_numbers(db.albums)
        logger.info(f"🔧 Admin {admin.username} repaired entry numbers ({changed} changed)")

        albums = list(db.albums.find({}, {"_id": 0}).sort(catalog.resolve_sort("added_asc")))
        return build_album_views(db, albums)

    except DuplicateKeyError:
        raise HTTPException(status_code=409, detail="Entry numbers changed concurrently, please retry")
    except HTTPException:
        raise
    except Exception:
        raise server_error("Fixing club entry numbers")

async def delete_album_handler(request: Request, album_id: str, admin: CurrentUser):
    """
    Delete an album and then its comments.

    The two deletes are not transactional. Entry numbers of the remaining
    albums are untouched until the repair operation runs.
    """
    try:
        db = get_db()
        album = _load_album(db, album_id)

        db.albums.delete_one({"id": album_id})
        comments = db.comments.delete_many({"album_id": album_id})

        logger.info(
            f"🗑️  Admin {admin.username} deleted album #{album.get('club_entry_number')} "
            f"({album_id}) and {comments.deleted_count} comment(s)"
        )
        return {
            "message": "Album and associated comments deleted successfully",
            "id": album_id,
            "comments_deleted": comments.deleted_count,
        }

    except HTTPException:
        raise
    except Exception:
        raise server_error("Deleting album")

# =============================================================================
# MEMBER ACTIONS
# =============================================================================

async def submit_score_handler(request: Request, album_id: str, score_data: Dict[str, Any], user: CurrentUser):
    """Submit or replace the caller's score and recompute the album average"""
    try:
        require_object_id(album_id, "album ID")
        try:
            score = catalog.parse_score(score_data.get("score"))
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

        db = get_db()
        album = _load_album(db, album_id)

        scores = catalog.upsert_score(album.get("scores"), user.id, score)
        db.albums.update_one(
            {"id": album_id},
            {"$set": {
                "scores": scores,
                "average_user_score": catalog.calculate_average(scores),
                "updated_at": now_iso(),
            }},
        )

        return _album_view(db, album_id, user)

    except HTTPException:
        raise
    except Exception:
        raise server_error("Submitting score")

async def favorite_album_handler(request: Request, album_id: str, user: CurrentUser):
    try:
        db = get_db()
        album = _load_album(db, album_id)

        _, added = catalog.add_favorite(album.get("favorited_by"), user.id)
        if added:
            # $addToSet keeps the write idempotent under concurrent requests too
            db.albums.update_one({"id": album_id}, {"$addToSet": {"favorited_by": user.id}})

        return _album_view(db, album_id, user)

    except HTTPException:
        raise
    except Exception:
        raise server_error("Favoriting album")

async def unfavorite_album_handler(request: Request, album_id: str, user: CurrentUser):
    try:
        db = get_db()
        album = _load_album(db, album_id)

        _, removed = catalog.remove_favorite(album.get("favorited_by"), user.id)
        if removed:
            db.albums.update_one({"id": album_id}, {"$pull": {"favorited_by": user.id}})

        return _album_view(db, album_id, user)

    except HTTPException:
        raise
    except Exception:
        raise server_error("Unfavoriting album")

# =============================================================================
# COMMENTS
# =============================================================================

async def get_album_comments_handler(request: Request, album_id: str):
    """Comments for an album, newest first"""
    try:
        db = get_db()
        _load_album(db, album_id)

        comments = list(db.comments.find({"album_id": album_id}, {"_id": 0}).sort("created_at", -1))
        return attach_usernames(db, comments, "user_id")

    except HTTPException:
        raise
    except Exception:
        raise server_error("Fetching album comments")

async def add_album_comment_handler(request: Request, album_id: str, comment_data: Dict[str, Any], user: CurrentUser):
    try:
        require_object_id(album_id, "album ID")
        text = comment_data.get("text")
        if not isinstance(text, str) or not text.strip():
            raise HTTPException(status_code=400, detail="Comment text is required")

        db = get_db()
        _load_album(db, album_id)

        comment = {
            "id": new_id(),
            "album_id": album_id,
            "user_id": user.id,
            "text": text.strip(),
            "created_at": now_iso(),
        }
        db.comments.insert_one({**comment})

        comment["username"] = user.username
        return comment

    except HTTPException:
        raise
    except Exception:
        raise server_error("Adding album comment")
