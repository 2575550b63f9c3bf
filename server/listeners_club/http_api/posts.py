"""Deep-dive posts: long-form articles written by members"""
import logging
from fastapi import Request, HTTPException
from typing import Any, Dict

from listeners_club.http_api.auth import CurrentUser
from listeners_club.http_api.common import (
    attach_usernames,
    get_db,
    new_id,
    now_iso,
    require_object_id,
    server_error,
)

logger = logging.getLogger(__name__)

def _load_post(db, post_id: str) -> Dict[str, Any]:
    require_object_id(post_id, "post ID")
    post = db.posts.find_one({"id": post_id}, {"_id": 0})
    if not post:
        raise HTTPException(status_code=404, detail="Post not found")
    return post

def _check_can_modify(post: Dict[str, Any], user: CurrentUser, action: str):
    if post.get("author_id") != user.id and not user.is_admin:
        raise HTTPException(status_code=403, detail=f"User not authorized to {action} this post")

async def get_posts_handler(request: Request):
    try:
        db = get_db()
        posts = list(db.posts.find({}, {"_id": 0}).sort("created_at", -1))
        return attach_usernames(db, posts, "author_id", "author")

    except HTTPException:
        raise
    except Exception:
        raise server_error("Fetching posts")

async def get_post_handler(request: Request, post_id: str):
    try:
        db = get_db()
        post = _load_post(db, post_id)
        return attach_usernames(db, [post], "author_id", "author")[0]

    except HTTPException:
        raise
    except Exception:
        raise server_error("Fetching post")

async def create_post_handler(request: Request, post_data: Dict[str, Any], user: CurrentUser):
    try:
        title = post_data.get("title")
        content = post_data.get("content")
        if not isinstance(title, str) or not title.strip() or not isinstance(content, str) or not content.strip():
            raise HTTPException(status_code=400, detail="Title and content are required")

        now = now_iso()
        post = {
            "id": new_id(),
            "title": title.strip(),
            "content": content,
            "author_id": user.id,
            "created_at": now,
            "updated_at": now,
        }
        get_db().posts.insert_one({**post})
        logger.info(f"📝 {user.username} published post {post['id']}")

        post["author"] = user.username
        return post

    except HTTPException:
        raise
    except Exception:
        raise server_error("Creating post")

async def update_post_handler(request: Request, post_id: str, update_data: Dict[str, Any], user: CurrentUser):
    try:
        db = get_db()
        post = _load_post(db, post_id)
        _check_can_modify(post, user, "update")

        update_fields: Dict[str, Any] = {"updated_at": now_iso()}
        title = update_data.get("title")
        content = update_data.get("content")
        if isinstance(title, str) and title.strip():
            update_fields["title"] = title.strip()
        if isinstance(content, str) and content.strip():
            update_fields["content"] = content

        db.posts.update_one({"id": post_id}, {"$set": update_fields})
        updated = db.posts.find_one({"id": post_id}, {"_id": 0})
        return attach_usernames(db, [updated], "author_id", "author")[0]

    except HTTPException:
        raise
    except Exception:
        raise server_error("Updating post")

async def delete_post_handler(request: Request, post_id: str, user: CurrentUser):
    try:
        db = get_db()
        post = _load_post(db, post_id)
        _check_can_modify(post, user, "delete")

        db.posts.delete_one({"id": post_id})
        return {"message": "Post deleted successfully"}

    except HTTPException:
        raise
    except Exception:
        raise server_error("Deleting post")
