"""Helpers shared by the HTTP handlers"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from bson import ObjectId
from fastapi import HTTPException
from pymongo.database import Database

from listeners_club.db.connection import get_database

logger = logging.getLogger(__name__)

# Never return Mongo's _id or credentials
USER_PUBLIC_PROJECTION = {"_id": 0, "password_hash": 0}

def get_db() -> Database:
    return get_database()

def new_id() -> str:
    return str(ObjectId())

def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()

def require_object_id(value: str, label: str = "ID") -> str:
    """Reject ids that are not 24-hex ObjectId strings with a 400"""
    if not ObjectId.is_valid(value):
        raise HTTPException(status_code=400, detail=f"Invalid {label} format")
    return value

def optional_year(value: Any) -> Optional[int]:
    """Release year from a raw request body: an integer or null"""
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise HTTPException(status_code=400, detail="Release year must be an integer")
    return value

def server_error(action: str) -> HTTPException:
    """Log the exception currently being handled and build a generic 500"""
    logger.exception(f"❌ {action} failed")
    return HTTPException(status_code=500, detail="Server error")

def usernames_by_id(db: Database, user_ids: Iterable[str]) -> Dict[str, str]:
    ids = list({user_id for user_id in user_ids if user_id})
    if not ids:
        return {}
    cursor = db.users.find({"id": {"$in": ids}}, {"_id": 0, "id": 1, "username": 1})
    return {doc["id"]: doc.get("username", "") for doc in cursor}

def attach_usernames(db: Database, docs: List[Dict[str, Any]], id_field: str, name_field: str = "username") -> List[Dict[str, Any]]:
    """Join the username of the referenced user into each document"""
    names = usernames_by_id(db, (doc.get(id_field) for doc in docs))
    for doc in docs:
        doc[name_field] = names.get(doc.get(id_field))
    return docs
