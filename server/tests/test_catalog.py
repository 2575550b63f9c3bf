"""Tests for the album aggregate rules."""

import mongomock
import pytest
from pymongo import ASCENDING, DESCENDING

from listeners_club import catalog


class TestParseScore:
    @pytest.mark.parametrize("value", [0, 10, 5.5, "7.5", 0.0, 10.0])
    def test_accepts_scores_in_range(self, value):
        assert catalog.parse_score(value) == float(value)

    @pytest.mark.parametrize("value", [-0.1, 10.01, 11, -5])
    def test_rejects_out_of_range(self, value):
        with pytest.raises(ValueError, match="between 0.0 and 10.0"):
            catalog.parse_score(value)

    @pytest.mark.parametrize("value", ["abc", [], {}, float("nan"), float("inf")])
    def test_rejects_non_numeric(self, value):
        with pytest.raises(ValueError):
            catalog.parse_score(value)

    @pytest.mark.parametrize("value", [None, True, False])
    def test_rejects_missing_and_booleans(self, value):
        with pytest.raises(ValueError):
            catalog.parse_score(value)

    def test_label_appears_in_message(self):
        with pytest.raises(ValueError, match="Club score"):
            catalog.parse_score(12, "Club score")


class TestAverage:
    def test_empty_scores_average_zero(self):
        assert catalog.calculate_average({}) == 0

    def test_rounds_to_one_decimal(self):
        scores = {"a": 7, "b": 8, "c": 10}
        assert catalog.calculate_average(scores) == 8.3

    @pytest.mark.parametrize("values,expected", [
        ([1.0], 1.0),
        ([7.0, 7.5], 7.3),
        ([8.0, 8.5], 8.3),
        ([6.0, 8.5], 7.3),
        ([0.0, 0.5], 0.3),
        ([10, 10, 9.5, 2.5], 8.0),
        ([3, 4, 4], 3.7),
        ([9.9, 0.1, 5.5], 5.2),
    ])
    def test_rounds_half_up(self, values, expected):
        scores = {str(i): v for i, v in enumerate(values)}
        assert catalog.calculate_average(scores) == expected


class TestUpsertScore:
    def test_appends_new_user(self):
        scores = catalog.upsert_score({"a": 5.0}, "b", 7.0)
        assert list(scores.items()) == [("a", 5.0), ("b", 7.0)]

    def test_replaces_existing_user_in_place(self):
        scores = catalog.upsert_score({"a": 5.0, "b": 6.0}, "a", 9.0)
        assert list(scores.items()) == [("a", 9.0), ("b", 6.0)]

    def test_does_not_mutate_input(self):
        original = {"a": 5.0}
        catalog.upsert_score(original, "a", 1.0)
        assert original == {"a": 5.0}

    def test_handles_missing_mapping(self):
        assert catalog.upsert_score(None, "a", 3.0) == {"a": 3.0}


class TestFavorites:
    def test_add_is_idempotent(self):
        members, added = catalog.add_favorite(["a"], "b")
        assert added is True
        members, added_again = catalog.add_favorite(members, "b")
        assert added_again is False
        assert members == ["a", "b"]

    def test_remove_is_idempotent(self):
        members, removed = catalog.remove_favorite(["a", "b"], "a")
        assert removed is True
        assert members == ["b"]
        members, removed_again = catalog.remove_favorite(members, "a")
        assert removed_again is False
        assert members == ["b"]

    def test_add_then_remove_restores_prior_state(self):
        prior = ["x", "y"]
        members, _ = catalog.add_favorite(prior, "z")
        members, _ = catalog.remove_favorite(members, "z")
        assert members == prior


class TestEntryNumbers:
    @pytest.fixture
    def albums(self):
        return mongomock.MongoClient()["catalog_test"]["albums"]

    def test_first_album_gets_one(self, albums):
        assert catalog.next_entry_number(albums) == 1

    def test_next_is_max_plus_one(self, albums):
        albums.insert_many([
            {"id": "a", "club_entry_number": 2},
            {"id": "b", "club_entry_number": 7},
            {"id": "c", "club_entry_number": 4},
        ])
        assert catalog.next_entry_number(albums) == 8

    @pytest.mark.parametrize("value,expected", [(1, 1), (12, 12), (3.0, 3), ("5", 5)])
    def test_parse_entry_number_accepts_positive_integers(self, value, expected):
        assert catalog.parse_entry_number(value) == expected

    @pytest.mark.parametrize("value", [0, -1, 2.5, "abc", True, None])
    def test_parse_entry_number_rejects_others(self, value):
        with pytest.raises(ValueError):
            catalog.parse_entry_number(value)

    def test_plan_skips_albums_already_in_place(self):
        ordered = [
            {"id": "a", "club_entry_number": 1},
            {"id": "b", "club_entry_number": 3},
            {"id": "c", "club_entry_number": 4},
        ]
        assert catalog.plan_renumbering(ordered) == [("b", 2), ("c", 3)]

    def test_fix_closes_gaps_preserving_order(self, albums):
        albums.insert_many([
            {"id": "c", "club_entry_number": 9, "date_added": "3"},
            {"id": "a", "club_entry_number": 1, "date_added": "1"},
            {"id": "b", "club_entry_number": 4, "date_added": "2"},
        ])

        changed = catalog.fix_entry_numbers(albums)

        assert changed == 2
        numbers = {doc["id"]: doc["club_entry_number"] for doc in albums.find()}
        assert numbers == {"a": 1, "b": 2, "c": 3}

    def test_fix_on_dense_sequence_changes_nothing(self, albums):
        albums.insert_many([
            {"id": "a", "club_entry_number": 1},
            {"id": "b", "club_entry_number": 2},
        ])
        assert catalog.fix_entry_numbers(albums) == 0


class TestResolveSort:
    def test_known_key(self):
        assert catalog.resolve_sort("artist_desc") == [
            ("artist", DESCENDING),
            ("club_entry_number", ASCENDING),
        ]

    def test_entry_number_key_has_no_tiebreak(self):
        assert catalog.resolve_sort("added_desc") == [("club_entry_number", DESCENDING)]

    @pytest.mark.parametrize("key", [None, "", "bogus"])
    def test_unknown_key_uses_public_default(self, key):
        assert catalog.resolve_sort(key) == [("club_entry_number", ASCENDING)]

    def test_unknown_key_uses_given_default(self):
        assert catalog.resolve_sort("bogus", catalog.ADMIN_DEFAULT_SORT) == [
            ("date_added", DESCENDING),
            ("club_entry_number", ASCENDING),
        ]

    def test_every_option_resolves(self):
        for key in catalog.SORT_OPTIONS:
            assert catalog.resolve_sort(key)[0] == catalog.SORT_OPTIONS[key][0]
