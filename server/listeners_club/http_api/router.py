from fastapi import APIRouter, Request, Query, Body, Depends
from typing import Optional, Dict, Any

from listeners_club import catalog
from listeners_club.db.connection import database_available
from listeners_club.http_api.auth import (
    CurrentUser,
    get_current_user,
    get_optional_user,
    require_admin,
)
from listeners_club.http_api.users import (
    register_handler,
    login_handler,
    get_me_handler,
    get_user_activity_handler,
    get_users_handler,
    delete_user_handler,
    LoginRequest,
    RegisterRequest,
)
from listeners_club.http_api.albums import (
    list_albums_handler,
    get_album_handler,
    create_album_handler,
    update_album_handler,
    admin_update_album_handler,
    set_club_score_handler,
    fix_entry_numbers_handler,
    delete_album_handler,
    submit_score_handler,
    favorite_album_handler,
    unfavorite_album_handler,
    get_album_comments_handler,
    add_album_comment_handler,
    AlbumCreateRequest,
)
from listeners_club.http_api.personal_albums import (
    create_personal_album_handler,
    update_personal_album_handler,
    delete_personal_album_handler,
    get_personal_album_comments_handler,
    add_personal_album_comment_handler,
)
from listeners_club.http_api.profiles import get_profile_handler, update_profile_settings_handler
from listeners_club.http_api.posts import (
    get_posts_handler,
    get_post_handler,
    create_post_handler,
    update_post_handler,
    delete_post_handler,
)
from listeners_club.http_api.threads import (
    get_threads_handler,
    create_thread_handler,
    get_thread_handler,
    add_thread_comment_handler,
)

router = APIRouter()

# Health check endpoint
@router.get("/health")
async def health_check():
    """Liveness, with the database reachability reported alongside"""
    return {
        "status": "healthy",
        "version": "1.0",
        "database": "ok" if database_available() else "unavailable",
    }

# Authentication endpoints
@router.post("/users/register", status_code=201)
async def register(request: Request, register_data: RegisterRequest):
    """User registration"""
    return await register_handler(request, register_data)

@router.post("/users/login")
async def login(request: Request, login_data: LoginRequest):
    """User login with email and password"""
    return await login_handler(request, login_data)

# User endpoints
@router.get("/users/me")
async def get_me(request: Request, user: CurrentUser = Depends(get_current_user)):
    """Current user"""
    return await get_me_handler(request, user)

@router.get("/users")
async def get_users(request: Request, admin: CurrentUser = Depends(require_admin)):
    """List users with activity counts (admin)"""
    return await get_users_handler(request, admin)

@router.get("/users/{user_id}/activity")
async def get_user_activity(request: Request, user_id: str):
    """Favorites and ratings of a user"""
    return await get_user_activity_handler(request, user_id)

@router.delete("/users/{user_id}")
async def delete_user(request: Request, user_id: str, admin: CurrentUser = Depends(require_admin)):
    """Delete a user account (admin)"""
    return await delete_user_handler(request, user_id, admin)

# Album endpoints
@router.get("/albums")
async def get_albums(request: Request, sort: Optional[str] = Query(None), user: Optional[CurrentUser] = Depends(get_optional_user)):
    """List albums, entry number ascending unless another sort is requested"""
    return await list_albums_handler(request, sort, user, catalog.PUBLIC_DEFAULT_SORT)

@router.get("/albums/admin")
async def get_albums_admin(request: Request, sort: Optional[str] = Query(None), admin: CurrentUser = Depends(require_admin)):
    """Admin album listing, newest addition first unless another sort is requested"""
    return await list_albums_handler(request, sort, admin, catalog.ADMIN_DEFAULT_SORT)

@router.post("/albums", status_code=201)
async def create_album(request: Request, album_data: AlbumCreateRequest, admin: CurrentUser = Depends(require_admin)):
    """Add an album to the catalog (admin)"""
    return await create_album_handler(request, album_data, admin)

@router.post("/albums/fix-entry-numbers")
async def fix_entry_numbers(request: Request, admin: CurrentUser = Depends(require_admin)):
    """Reassign entry numbers 1..N in current order (admin)"""
    return await fix_entry_numbers_handler(request, admin)

@router.get("/albums/{album_id}")
async def get_album(request: Request, album_id: str, user: Optional[CurrentUser] = Depends(get_optional_user)):
    return await get_album_handler(request, album_id, user)

@router.put("/albums/{album_id}")
async def update_album(request: Request, album_id: str, update_data: Dict[str, Any] = Body(...), admin: CurrentUser = Depends(require_admin)):
    """Update album details (admin)"""
    return await update_album_handler(request, album_id, update_data, admin)

@router.put("/albums/{album_id}/admin")
async def admin_update_album(request: Request, album_id: str, update_data: Dict[str, Any] = Body(...), admin: CurrentUser = Depends(require_admin)):
    """Admin edit including the club entry number"""
    return await admin_update_album_handler(request, album_id, update_data, admin)

@router.put("/albums/{album_id}/clubscore")
async def set_club_score(request: Request, album_id: str, score_data: Dict[str, Any] = Body(...), admin: CurrentUser = Depends(require_admin)):
    """Set the club score (admin)"""
    return await set_club_score_handler(request, album_id, score_data, admin)

@router.delete("/albums/{album_id}")
async def delete_album(request: Request, album_id: str, admin: CurrentUser = Depends(require_admin)):
    """Delete an album and its comments (admin)"""
    return await delete_album_handler(request, album_id, admin)

@router.post("/albums/{album_id}/score")
async def submit_score(request: Request, album_id: str, score_data: Dict[str, Any] = Body(...), user: CurrentUser = Depends(get_current_user)):
    """Submit or update the caller's score"""
    return await submit_score_handler(request, album_id, score_data, user)

@router.post("/albums/{album_id}/favorite")
async def favorite_album(request: Request, album_id: str, user: CurrentUser = Depends(get_current_user)):
    return await favorite_album_handler(request, album_id, user)

@router.delete("/albums/{album_id}/favorite")
async def unfavorite_album(request: Request, album_id: str, user: CurrentUser = Depends(get_current_user)):
    return await unfavorite_album_handler(request, album_id, user)

@router.get("/albums/{album_id}/comments")
async def get_album_comments(request: Request, album_id: str):
    return await get_album_comments_handler(request, album_id)

@router.post("/albums/{album_id}/comments", status_code=201)
async def add_album_comment(request: Request, album_id: str, comment_data: Dict[str, Any] = Body(...), user: CurrentUser = Depends(get_current_user)):
    return await add_album_comment_handler(request, album_id, comment_data, user)

# Profile endpoints
@router.get("/profiles/{user_id}")
async def get_profile(request: Request, user_id: str):
    """Public profile with personal albums"""
    return await get_profile_handler(request, user_id)

@router.put("/profiles/settings")
async def update_profile_settings(request: Request, settings_data: Dict[str, Any] = Body(...), user: CurrentUser = Depends(get_current_user)):
    return await update_profile_settings_handler(request, settings_data, user)

# Personal album endpoints
@router.post("/personal-albums", status_code=201)
async def create_personal_album(request: Request, album_data: Dict[str, Any] = Body(...), user: CurrentUser = Depends(get_current_user)):
    return await create_personal_album_handler(request, album_data, user)

@router.put("/personal-albums/{album_id}")
async def update_personal_album(request: Request, album_id: str, update_data: Dict[str, Any] = Body(...), user: CurrentUser = Depends(get_current_user)):
    return await update_personal_album_handler(request, album_id, update_data, user)

@router.delete("/personal-albums/{album_id}")
async def delete_personal_album(request: Request, album_id: str, user: CurrentUser = Depends(get_current_user)):
    return await delete_personal_album_handler(request, album_id, user)

@router.get("/personal-albums/{album_id}/comments")
async def get_personal_album_comments(request: Request, album_id: str):
    return await get_personal_album_comments_handler(request, album_id)

@router.post("/personal-albums/{album_id}/comments", status_code=201)
async def add_personal_album_comment(request: Request, album_id: str, comment_data: Dict[str, Any] = Body(...), user: CurrentUser = Depends(get_current_user)):
    return await add_personal_album_comment_handler(request, album_id, comment_data, user)

# Deep-dive post endpoints
@router.get("/posts")
async def get_posts(request: Request):
    return await get_posts_handler(request)

@router.get("/posts/{post_id}")
async def get_post(request: Request, post_id: str):
    return await get_post_handler(request, post_id)

@router.post("/posts", status_code=201)
async def create_post(request: Request, post_data: Dict[str, Any] = Body(...), user: CurrentUser = Depends(get_current_user)):
    return await create_post_handler(request, post_data, user)

@router.put("/posts/{post_id}")
async def update_post(request: Request, post_id: str, update_data: Dict[str, Any] = Body(...), user: CurrentUser = Depends(get_current_user)):
    """Update a post (author or admin)"""
    return await update_post_handler(request, post_id, update_data, user)

@router.delete("/posts/{post_id}")
async def delete_post(request: Request, post_id: str, user: CurrentUser = Depends(get_current_user)):
    """Delete a post (author or admin)"""
    return await delete_post_handler(request, post_id, user)

# Discussion endpoints
@router.get("/discussions")
async def get_threads(request: Request, album_id: Optional[str] = Query(None)):
    """List threads, newest first"""
    return await get_threads_handler(request, album_id)

@router.post("/discussions", status_code=201)
async def create_thread(request: Request, thread_data: Dict[str, Any] = Body(...), user: CurrentUser = Depends(get_current_user)):
    return await create_thread_handler(request, thread_data, user)

@router.get("/discussions/{thread_id}")
async def get_thread(request: Request, thread_id: str):
    """Thread with comments"""
    return await get_thread_handler(request, thread_id)

@router.post("/discussions/{thread_id}/comments", status_code=201)
async def add_thread_comment(request: Request, thread_id: str, comment_data: Dict[str, Any] = Body(...), user: CurrentUser = Depends(get_current_user)):
    return await add_thread_comment_handler(request, thread_id, comment_data, user)
