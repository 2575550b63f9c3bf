"""
Album aggregate rules for the club catalog.

Covers the club entry number sequence, the per-user score mapping with its
derived average, the favorites set and the sort options accepted by the
album listings. Handlers in http_api.albums call into these helpers; nothing
here raises HTTP errors.
"""

import math
from decimal import Decimal, ROUND_HALF_UP
import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from pymongo import ASCENDING, DESCENDING
from pymongo.collection import Collection

logger = logging.getLogger(__name__)

SCORE_MIN = 0.0
SCORE_MAX = 10.0

# =============================================================================
# SCORES
# =============================================================================

def parse_score(value: Any, label: str = "Score") -> float:
    """
    Coerce a client-supplied score into a float within [0, 10]

    Raises:
        ValueError: if the value is missing, not numeric or out of range
    """
    if value is None or isinstance(value, bool):
        raise ValueError(f"{label} must be between 0.0 and 10.0")

    try:
        numeric = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid {label.lower()} format")

    if math.isnan(numeric) or math.isinf(numeric):
        raise ValueError(f"Invalid {label.lower()} format")
    if numeric < SCORE_MIN or numeric > SCORE_MAX:
        raise ValueError(f"{label} must be between 0.0 and 10.0")

    return numeric

def calculate_average(scores: Mapping[str, float]) -> float:
    """Mean of all scores rounded half-up to one decimal place, 0 when there are none"""
    if not scores:
        return 0
    mean = sum(scores.values()) / len(scores)
    # Exact binary value of the mean, so 7.25 goes to 7.3 rather than to the even digit
    return float(Decimal(mean).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))

def upsert_score(scores: Optional[Mapping[str, float]], user_id: str, score: float) -> Dict[str, float]:
    """Return a new score mapping with the user's score replaced or appended"""
    updated = dict(scores or {})
    # Assigning an existing key keeps its position, new keys go last
    updated[user_id] = score
    return updated

# =============================================================================
# FAVORITES
# =============================================================================

def add_favorite(favorited_by: Optional[List[str]], user_id: str) -> Tuple[List[str], bool]:
    members = list(favorited_by or [])
    if user_id in members:
        return members, False
    members.append(user_id)
    return members, True

def remove_favorite(favorited_by: Optional[List[str]], user_id: str) -> Tuple[List[str], bool]:
    members = list(favorited_by or [])
    if user_id not in members:
        return members, False
    return [member for member in members if member != user_id], True

# =============================================================================
# CLUB ENTRY NUMBERS
# =============================================================================

def next_entry_number(albums: Collection) -> int:
    """
    Highest club entry number plus one, or 1 for an empty catalog.

    The read and the following insert are not serialized; two concurrent
    creations can compute the same number. The unique index on
    club_entry_number rejects the second insert.
    """
    highest = albums.find_one(
        {"club_entry_number": {"$ne": None}},
        {"_id": 0, "club_entry_number": 1},
        sort=[("club_entry_number", DESCENDING)],
    )
    if not highest:
        return 1
    return int(highest["club_entry_number"]) + 1

def parse_entry_number(value: Any) -> int:
    """Validate an explicitly supplied club entry number"""
    if isinstance(value, bool):
        raise ValueError("Club entry number must be a positive integer")
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if not isinstance(value, int) or value < 1:
        raise ValueError("Club entry number must be a positive integer")
    return value

def plan_renumbering(albums: List[Dict[str, Any]]) -> List[Tuple[str, int]]:
    """
    Given albums already ordered by current entry number, return the
    (album id, new number) pairs needed to make the sequence 1..N.
    Albums that already hold their target number are left out.
    """
    changes = []
    for position, album in enumerate(albums, start=1):
        if album.get("club_entry_number") != position:
            changes.append((album["id"], position))
    return changes

def fix_entry_numbers(albums: Collection) -> int:
    """Rewrite all entry numbers to the dense sequence 1..N, returns the number of albums changed"""
    ordered = list(
        albums.find({}, {"_id": 0, "id": 1, "club_entry_number": 1})
        .sort([("club_entry_number", ASCENDING), ("date_added", ASCENDING)])
    )
    changes = plan_renumbering(ordered)

    # Ascending order never moves a number onto one still held by a later album
    for album_id, entry_number in changes:
        albums.update_one({"id": album_id}, {"$set": {"club_entry_number": entry_number}})

    logger.info(f"🔢 Renumbered {len(changes)} of {len(ordered)} albums")
    return len(changes)

# =============================================================================
# SORTING
# =============================================================================

SORT_OPTIONS: Dict[str, List[Tuple[str, int]]] = {
    "added_asc": [("club_entry_number", ASCENDING)],
    "added_desc": [("club_entry_number", DESCENDING)],
    "date_added_asc": [("date_added", ASCENDING)],
    "date_added_desc": [("date_added", DESCENDING)],
    "artist_asc": [("artist", ASCENDING)],
    "artist_desc": [("artist", DESCENDING)],
    "title_asc": [("title", ASCENDING)],
    "title_desc": [("title", DESCENDING)],
    "year_asc": [("release_year", ASCENDING)],
    "year_desc": [("release_year", DESCENDING)],
    "club_score_asc": [("club_original_score", ASCENDING)],
    "club_score_desc": [("club_original_score", DESCENDING)],
}

PUBLIC_DEFAULT_SORT = "added_asc"
ADMIN_DEFAULT_SORT = "date_added_desc"

def resolve_sort(sort_key: Optional[str], default: str = PUBLIC_DEFAULT_SORT) -> List[Tuple[str, int]]:
    """Translate a sort key into pymongo sort fields; unknown keys use the default"""
    sort_fields = SORT_OPTIONS.get(sort_key or "", SORT_OPTIONS[default])
    if sort_fields[0][0] != "club_entry_number":
        sort_fields = sort_fields + [("club_entry_number", ASCENDING)]
    return sort_fields
