import logging
from fastapi import Request, HTTPException
from typing import Optional, Dict, Any

from listeners_club.http_api.auth import CurrentUser
from listeners_club.http_api.common import get_db, new_id, now_iso, require_object_id, server_error

logger = logging.getLogger(__name__)

async def get_threads_handler(request: Request, album_id: Optional[str] = None):
    try:
        db = get_db()
        query = {}
        # Only filter by album when one is actually provided
        if album_id is not None and album_id.strip():
            query["album_id"] = album_id.strip()

        threads = list(db.threads.find(query, {"_id": 0}).sort("created_at", -1))
        for thread in threads:
            thread["comment_count"] = len(thread.get("comments", []))
        return threads
    except Exception as e:
        if isinstance(e, HTTPException): raise e
        raise server_error("Fetching threads")

async def create_thread_handler(request: Request, thread_data: Dict[str, Any], user: CurrentUser):
    try:
        title = thread_data.get("title")
        content = thread_data.get("content")
        if not isinstance(title, str) or not title.strip() or not isinstance(content, str) or not content.strip():
            raise HTTPException(status_code=400, detail="Title and content are required")

        album_id = thread_data.get("album_id")
        if album_id is not None:
            require_object_id(album_id, "album ID")

        now = now_iso()
        thread_doc = {
            "id": new_id(),
            "title": title.strip(),
            "content": content,
            "author_id": user.id,
            "author": user.username,
            "album_id": album_id,
            "comments": [],
            "created_at": now,
            "updated_at": now,
        }

        # Insert a shallow copy so the original doc isn't mutated with Mongo's _id
        get_db().threads.insert_one({**thread_doc})
        return thread_doc
    except Exception as e:
        if isinstance(e, HTTPException): raise e
        raise server_error("Creating thread")

async def get_thread_handler(request: Request, thread_id: str):
    """Thread with its comments, oldest comment first"""
    require_object_id(thread_id, "thread ID")
    try:
        db = get_db()
        thread = db.threads.find_one({"id": thread_id}, {"_id": 0})
        if not thread:
            raise HTTPException(status_code=404, detail="Thread not found")

        thread["comments"] = list(
            db.thread_comments.find({"thread_id": thread_id}, {"_id": 0}).sort("created_at", 1)
        )
        return thread
    except Exception as e:
        if isinstance(e, HTTPException): raise e
        raise server_error("Fetching thread")

async def add_thread_comment_handler(request: Request, thread_id: str, comment_data: Dict[str, Any], user: CurrentUser):
    require_object_id(thread_id, "thread ID")
    try:
        content = comment_data.get("content")
        if not isinstance(content, str) or not content.strip():
            raise HTTPException(status_code=400, detail="Comment content cannot be empty")

        db = get_db()
        # ensure thread exists
        if not db.threads.find_one({"id": thread_id}, {"_id": 1}):
            raise HTTPException(status_code=404, detail="Thread not found")

        created_at = now_iso()
        comment = {
            "id": new_id(),
            "thread_id": thread_id,
            "author_id": user.id,
            "author": user.username,
            "content": content.strip(),
            "created_at": created_at,
        }
        db.thread_comments.insert_one({**comment})
        # update thread comments array and updated_at
        db.threads.update_one(
            {"id": thread_id},
            {"$push": {"comments": comment["id"]}, "$set": {"updated_at": created_at}},
        )
        return comment
    except Exception as e:
        if isinstance(e, HTTPException): raise e
        raise server_error("Adding thread comment")
