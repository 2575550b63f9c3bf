"""Tests for database bootstrap, schema validation and admin promotion."""

import copy

import pytest
from pymongo.errors import DuplicateKeyError

from listeners_club.db import init_collections
from listeners_club.db.init_collections import (
    COLLECTIONS_CONFIG,
    SAMPLE_DATA_TEMPLATES,
    init_mongodb,
    promote_admin,
    validate_document,
    validate_sample_data,
)


class TestSchemas:
    def test_every_schema_file_loads(self):
        for name in ("albums", "users", "personal_albums", "posts", "threads"):
            assert COLLECTIONS_CONFIG[name]["schema"].get("properties"), name

    def test_sample_data_is_valid(self):
        assert validate_sample_data() is True

    def test_sample_entry_numbers_are_dense(self):
        numbers = [album["club_entry_number"] for album in SAMPLE_DATA_TEMPLATES["albums"]]
        assert numbers == list(range(1, len(numbers) + 1))

    @pytest.mark.parametrize("field,value", [
        ("club_original_score", 11),
        ("club_entry_number", 0),
        ("title", ""),
    ])
    def test_invalid_album_rejected(self, field, value):
        album = copy.deepcopy(SAMPLE_DATA_TEMPLATES["albums"][0])
        album[field] = value
        assert validate_document("albums", album) is False

    def test_collection_without_schema_passes(self):
        assert validate_document("comments", {"anything": True}) is True


class TestInitMongodb:
    def test_creates_collections_and_samples(self, db):
        assert init_mongodb(insert_samples=True, db=db) is True

        assert db.albums.count_documents({}) == len(SAMPLE_DATA_TEMPLATES["albums"])
        assert "_id" not in SAMPLE_DATA_TEMPLATES["albums"][0]

    def test_samples_not_duplicated_on_rerun(self, db):
        init_mongodb(db=db)
        init_mongodb(db=db)

        assert db.albums.count_documents({}) == len(SAMPLE_DATA_TEMPLATES["albums"])

    def test_drop_existing(self, db):
        init_mongodb(db=db)
        db.albums.delete_one({"club_entry_number": 1})

        init_mongodb(drop_existing=True, db=db)

        assert db.albums.count_documents({}) == len(SAMPLE_DATA_TEMPLATES["albums"])

    def test_unique_indexes(self, db):
        init_mongodb(insert_samples=False, db=db)
        db.users.insert_one({"id": "u1", "email": "a@example.com", "username": "a"})

        with pytest.raises(DuplicateKeyError):
            db.users.insert_one({"id": "u2", "email": "a@example.com", "username": "b"})

    def test_entry_number_is_unique(self, db):
        init_mongodb(db=db)

        with pytest.raises(DuplicateKeyError):
            db.albums.insert_one({"id": "dup", "title": "Dup", "artist": "Dup", "club_entry_number": 1})

    def test_sample_validation_failure_aborts(self, db, monkeypatch):
        monkeypatch.setattr(init_collections, "validate_sample_data", lambda: False)

        assert init_mongodb(db=db) is False
        assert db.albums.count_documents({}) == 0


class TestPromoteAdmin:
    def test_promotes_registered_user(self, db, member):
        promoted = promote_admin("Listener_One@example.com", db=db)

        assert promoted["role"] == "admin"
        assert "password_hash" not in promoted
        assert db.users.find_one({"id": member["id"]})["role"] == "admin"

    def test_unknown_email(self, db):
        assert promote_admin("ghost@example.com", db=db) is None

    def test_cli_exits_non_zero_for_unknown_email(self, db):
        with pytest.raises(SystemExit):
            init_collections.main(["--promote-admin", "ghost@example.com"])

    def test_cli_list_config(self, db, capsys):
        init_collections.main(["--list-config"])

        out = capsys.readouterr().out
        for name in COLLECTIONS_CONFIG:
            assert name in out
