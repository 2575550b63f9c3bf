#!/usr/bin/env python3
"""
MongoDB Collection Initialization Script
Creates collections and indexes for the club catalog
"""

import os
import json
from pymongo import ASCENDING, DESCENDING
import logging
from typing import Dict, List, Optional
from .connection import get_database
from jsonschema import validate, ValidationError

# Configure logging
logger = logging.getLogger(__name__)

SCHEMAS_DIR = os.path.join(os.path.dirname(__file__), 'schemas')

# =============================================================================
# DATA STRUCTURE CONFIGURATION
# =============================================================================

# Load JSON Schemas
def load_json_schema(collection_name: str) -> Dict:
    """Load JSON schema for a collection from the package schemas directory"""
    collection_to_schema_path = {
        'albums': os.path.join(SCHEMAS_DIR, 'album.json'),
        'users': os.path.join(SCHEMAS_DIR, 'user.json'),
        'personal_albums': os.path.join(SCHEMAS_DIR, 'personal_album.json'),
        'posts': os.path.join(SCHEMAS_DIR, 'post.json'),
        'threads': os.path.join(SCHEMAS_DIR, 'thread.json'),
    }

    schema_path = collection_to_schema_path.get(collection_name)
    if not schema_path:
        logger.debug(f"No schema mapping found for collection: {collection_name}")
        return {}

    try:
        with open(schema_path, 'r') as f:
            return json.load(f)
    except FileNotFoundError:
        logger.warning(f"Schema file not found: {schema_path}")
        return {}
    except json.JSONDecodeError as e:
        logger.error(f"Invalid JSON in schema file {schema_path}: {e}")
        return {}

# Collection Schema Definitions
COLLECTIONS_CONFIG = {
    "albums": {
        "indexes": [
            {"fields": "id", "unique": True},
            # Rejects the loser of two concurrent max+1 entry number reads
            {"fields": "club_entry_number", "unique": True, "sparse": True},
            {"fields": "date_added", "unique": False},
            {"fields": "artist", "unique": False},
            {"fields": "title", "unique": False},
            {"fields": "favorited_by", "unique": False}
        ]
    },
    "users": {
        "indexes": [
            {"fields": "id", "unique": True},
            {"fields": "email", "unique": True},
            {"fields": "username", "unique": True},
            {"fields": "date_registered", "unique": False}
        ]
    },
    "comments": {
        "indexes": [
            {"fields": "id", "unique": True},
            {"fields": [("album_id", ASCENDING), ("created_at", DESCENDING)], "unique": False},
            {"fields": "user_id", "unique": False}
        ]
    },
    "personal_albums": {
        "indexes": [
            {"fields": "id", "unique": True},
            {"fields": "owner_id", "unique": False}
        ]
    },
    "personal_comments": {
        "indexes": [
            {"fields": "id", "unique": True},
            {"fields": [("personal_album_id", ASCENDING), ("created_at", DESCENDING)], "unique": False}
        ]
    },
    "posts": {
        "indexes": [
            {"fields": "id", "unique": True},
            {"fields": "author_id", "unique": False},
            {"fields": "created_at", "unique": False}
        ]
    },
    "threads": {
        "indexes": [
            {"fields": "id", "unique": True},
            {"fields": "album_id", "unique": False},
            {"fields": "created_at", "unique": False}
        ]
    },
    "thread_comments": {
        "indexes": [
            {"fields": "id", "unique": True},
            {"fields": [("thread_id", ASCENDING), ("created_at", ASCENDING)], "unique": False}
        ]
    }
}

for _name, _config in COLLECTIONS_CONFIG.items():
    _config["schema"] = load_json_schema(_name)

# Sample Data Templates
SAMPLE_DATA_TEMPLATES = {
    "albums": [
        {
            "id": "64c0a6f4e5b1a2c3d4e5f701",
            "title": "Kind of Blue",
            "artist": "Miles Davis",
            "release_year": 1959,
            "genre": ["Jazz", "Modal Jazz"],
            "cover_art_url": None,
            "external_id": None,
            "trivia": "Recorded in two sessions with almost no rehearsal.",
            "club_entry_number": 1,
            "club_original_score": 9.0,
            "scores": {},
            "average_user_score": 0,
            "favorited_by": [],
            "date_added": "2024-01-15T10:30:00+00:00",
            "updated_at": "2024-01-15T10:30:00+00:00"
        },
        {
            "id": "64c0a6f4e5b1a2c3d4e5f702",
            "title": "Blue Lines",
            "artist": "Massive Attack",
            "release_year": 1991,
            "genre": ["Trip Hop"],
            "cover_art_url": None,
            "external_id": None,
            "trivia": None,
            "club_entry_number": 2,
            "club_original_score": None,
            "scores": {},
            "average_user_score": 0,
            "favorited_by": [],
            "date_added": "2024-02-01T09:15:00+00:00",
            "updated_at": "2024-02-01T09:15:00+00:00"
        },
        {
            "id": "64c0a6f4e5b1a2c3d4e5f703",
            "title": "Homogenic",
            "artist": "Björk",
            "release_year": 1997,
            "genre": ["Electronic", "Art Pop"],
            "cover_art_url": None,
            "external_id": None,
            "trivia": None,
            "club_entry_number": 3,
            "club_original_score": 8.5,
            "scores": {},
            "average_user_score": 0,
            "favorited_by": [],
            "date_added": "2024-03-10T12:00:00+00:00",
            "updated_at": "2024-03-10T12:00:00+00:00"
        }
    ]
}

# =============================================================================
# VALIDATION FUNCTIONS
# =============================================================================

def validate_document(collection_name: str, document: Dict) -> bool:
    """
    Validate a document against its JSON schema

    Args:
        collection_name: Name of the collection
        document: Document to validate

    Returns:
        bool: True if valid, False otherwise
    """
    schema = COLLECTIONS_CONFIG.get(collection_name, {}).get("schema")
    if not schema:
        logger.warning(f"No schema found for collection: {collection_name}")
        return True  # Skip validation if no schema

    try:
        validate(instance=document, schema=schema)
        return True
    except ValidationError as e:
        logger.error(f"Validation error for {collection_name}: {e.message}")
        return False

def validate_sample_data() -> bool:
    """Validate all sample data against their schemas"""
    logger.info("🔍 Validating sample data against JSON schemas...")

    for collection_name, sample_data in SAMPLE_DATA_TEMPLATES.items():
        for i, document in enumerate(sample_data):
            if not validate_document(collection_name, document):
                logger.error(f"Sample data validation failed for {collection_name}[{i}]")
                return False

        logger.info(f"✅ Sample data validation passed for {collection_name}")

    return True

# =============================================================================
# INITIALIZATION FUNCTIONS
# =============================================================================

def init_mongodb(drop_existing: bool = False, insert_samples: bool = True, db=None) -> bool:
    """
    Initialize MongoDB collections and indexes

    Args:
        drop_existing: Whether to drop existing collections
        insert_samples: Whether to insert sample data
        db: Database to initialize, defaults to the configured one
    """
    try:
        db = db if db is not None else get_database()

        logger.info("🗄️  Initializing MongoDB collections...")

        # Drop existing collections if requested
        if drop_existing:
            for collection_name in COLLECTIONS_CONFIG.keys():
                db[collection_name].drop()
                logger.info(f"🗑️  Dropped collection: {collection_name}")

        # Create collections and indexes
        create_collections_and_indexes(db)

        # Validate sample data before insertion
        if insert_samples:
            if not validate_sample_data():
                logger.error("❌ Sample data validation failed. Aborting initialization.")
                return False
            insert_sample_data(db)

        # Verify setup
        verify_setup(db)
        return True

    except Exception as e:
        logger.error(f"❌ Error initializing MongoDB: {e}")
        raise

def create_collections_and_indexes(db):
    """Create collections and their indexes based on configuration"""

    for collection_name, config in COLLECTIONS_CONFIG.items():
        collection = db[collection_name]

        logger.info(f"📁 Setting up collection: {collection_name}")

        for index_config in config["indexes"]:
            fields = index_config["fields"]
            options = {"unique": index_config.get("unique", False)}
            if index_config.get("sparse"):
                options["sparse"] = True

            try:
                collection.create_index(fields, **options)
                index_name = fields if isinstance(fields, str) else str(fields)
                logger.info(f"  ✅ Index created: {index_name}")

            except Exception as e:
                logger.warning(f"  ⚠️  Index creation failed for {fields}: {e}")

def insert_sample_data(db):
    """Insert sample data based on templates"""

    for collection_name, sample_data in SAMPLE_DATA_TEMPLATES.items():
        collection = db[collection_name]

        # Only insert if collection is empty
        if collection.count_documents({}) == 0:
            try:
                # Copies, so Mongo's _id never lands in the templates
                collection.insert_many([dict(doc) for doc in sample_data])
                logger.info(f"✅ Sample data inserted into {collection_name}: {len(sample_data)} documents")

            except Exception as e:
                logger.warning(f"⚠️  Sample data insertion failed for {collection_name}: {e}")
        else:
            logger.info(f"⏭️  Skipping sample data for {collection_name} (not empty)")

def verify_setup(db):
    """Verify that collections were created properly"""
    collections = db.list_collection_names()

    logger.info("🔍 Verification Results:")

    for collection_name in COLLECTIONS_CONFIG.keys():
        if collection_name in collections:
            count = db[collection_name].count_documents({})
            logger.info(f"  ✅ {collection_name}: {count} documents")
        else:
            logger.warning(f"  ⚠️  {collection_name}: Collection not created yet")

def promote_admin(email: str, db=None) -> Optional[Dict]:
    """Give the user with this email the admin role, returns the updated user or None"""
    db = db if db is not None else get_database()
    result = db.users.update_one({"email": email.strip().lower()}, {"$set": {"role": "admin"}})
    if result.matched_count == 0:
        logger.error(f"❌ No user registered with email: {email}")
        return None

    logger.info(f"👑 Promoted {email} to admin")
    return db.users.find_one({"email": email.strip().lower()}, {"_id": 0, "password_hash": 0})

# =============================================================================
# MAIN EXECUTION
# =============================================================================

def main(argv: Optional[List[str]] = None):
    import argparse

    logging.basicConfig(level=logging.INFO)

    parser = argparse.ArgumentParser(description="Initialize MongoDB collections")
    parser.add_argument("--drop", action="store_true", help="Drop existing collections")
    parser.add_argument("--no-samples", action="store_true", help="Skip sample data insertion")
    parser.add_argument("--list-config", action="store_true", help="List current configuration")
    parser.add_argument("--promote-admin", metavar="EMAIL", help="Grant the admin role to a registered user")

    args = parser.parse_args(argv)

    if args.list_config:
        print("📋 Current Configuration:")
        for name, config in COLLECTIONS_CONFIG.items():
            print(f"\n🗂️  Collection: {name}")
            print(f"   Schema: {list(config['schema'].get('properties', {}).keys())}")
            print(f"   Indexes: {len(config['indexes'])}")
            if name in SAMPLE_DATA_TEMPLATES:
                print(f"   Sample Data: {len(SAMPLE_DATA_TEMPLATES[name])} documents")
    elif args.promote_admin:
        if promote_admin(args.promote_admin) is None:
            raise SystemExit(1)
    else:
        init_mongodb(
            drop_existing=args.drop,
            insert_samples=not args.no_samples
        )

if __name__ == "__main__":
    main()
