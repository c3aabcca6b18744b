#!/usr/bin/env python3
"""Unit tests for the user store."""

import sys
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "tools"))

from gatehouse.errors import DuplicateEmail, DuplicateUsername, NotFound
from gatehouse.models import DEFAULT_PROFILE_PICTURE
from gatehouse.storage import USERS_KEY
from gatehouse.users import UserStore


def _add(store, email="a@x.com", username="alice", name="Alice", password="pw123456", **kwargs):
    return store.create(store.new_record(email, password, username, name, **kwargs))


class TestCreate:
    def test_new_record_defaults(self, storage, clock):
        store = UserStore(storage, clock=clock)
        user = _add(store)

        assert user.is_verified is False
        assert user.profile_picture == DEFAULT_PROFILE_PICTURE
        assert user.date_joined == clock()
        assert user.date_of_birth is None
        assert user.occupation is None
        assert user.id

    def test_ids_are_unique(self, storage, clock):
        store = UserStore(storage, clock=clock)
        a = _add(store)
        b = _add(store, email="b@x.com", username="bob")
        assert a.id != b.id

    def test_duplicate_email_case_insensitive(self, storage, clock):
        store = UserStore(storage, clock=clock)
        _add(store)
        with pytest.raises(DuplicateEmail):
            _add(store, email="A@X.COM", username="other")

    def test_duplicate_username_case_insensitive(self, storage, clock):
        store = UserStore(storage, clock=clock)
        _add(store)
        with pytest.raises(DuplicateUsername) as exc:
            _add(store, email="b@x.com", username="ALICE")
        assert exc.value.message == "Username already taken"
        assert exc.value.field == "username"

    def test_optional_fields(self, storage, clock):
        store = UserStore(storage, clock=clock)
        user = _add(
            store,
            date_of_birth="1990-05-17",
            occupation="Engineer",
            profile_picture="https://example.com/a.png",
        )
        assert user.date_of_birth == date(1990, 5, 17)
        assert user.occupation == "Engineer"
        assert user.profile_picture == "https://example.com/a.png"


class TestLookup:
    def test_find_by_email_ignores_case(self, storage, clock):
        store = UserStore(storage, clock=clock)
        user = _add(store)
        assert store.find_by_email("A@x.Com").id == user.id

    def test_find_by_id(self, storage, clock):
        store = UserStore(storage, clock=clock)
        user = _add(store)
        assert store.find_by_id(user.id).username == "alice"

    def test_missing_returns_none(self, storage, clock):
        store = UserStore(storage, clock=clock)
        assert store.find_by_email("nobody@x.com") is None
        assert store.find_by_id("nope") is None

    def test_list_users_by_join_time(self, storage, clock):
        store = UserStore(storage, clock=clock)
        _add(store)
        clock.advance(minutes=1)
        _add(store, email="b@x.com", username="bob")
        assert [u.username for u in store.list_users()] == ["alice", "bob"]


class TestUpdate:
    def test_round_trip(self, storage, clock):
        store = UserStore(storage, clock=clock)
        user = _add(store)
        store.update(user.id, {"username": "x"})
        assert store.find_by_id(user.id).username == "x"

    def test_colliding_username_leaves_record_unchanged(self, storage, clock):
        store = UserStore(storage, clock=clock)
        alice = _add(store)
        bob = _add(store, email="b@x.com", username="bob", name="Bob")

        with pytest.raises(DuplicateUsername):
            store.update(bob.id, {"username": "Alice", "name": "Robert"})

        reloaded = store.find_by_id(bob.id)
        assert reloaded.username == "bob"
        assert reloaded.name == "Bob"
        assert store.find_by_id(alice.id).username == "alice"

    def test_own_username_case_change_allowed(self, storage, clock):
        store = UserStore(storage, clock=clock)
        user = _add(store)
        assert store.update(user.id, {"username": "Alice"}).username == "Alice"

    def test_colliding_email_rejected(self, storage, clock):
        store = UserStore(storage, clock=clock)
        _add(store)
        bob = _add(store, email="b@x.com", username="bob")
        with pytest.raises(DuplicateEmail):
            store.update(bob.id, {"email": "A@x.com"})

    def test_missing_user(self, storage, clock):
        store = UserStore(storage, clock=clock)
        with pytest.raises(NotFound):
            store.update("nope", {"name": "X"})

    def test_unknown_field_rejected(self, storage, clock):
        store = UserStore(storage, clock=clock)
        user = _add(store)
        with pytest.raises(ValueError):
            store.update(user.id, {"favourite_colour": "blue"})

    def test_id_cannot_change(self, storage, clock):
        store = UserStore(storage, clock=clock)
        user = _add(store)
        with pytest.raises(ValueError):
            store.update(user.id, {"id": "other"})

    def test_birth_date_string_is_parsed(self, storage, clock):
        store = UserStore(storage, clock=clock)
        user = _add(store)
        updated = store.update(user.id, {"date_of_birth": "2001-02-03"})
        assert updated.date_of_birth == date(2001, 2, 3)
        assert store.find_by_id(user.id).date_of_birth == date(2001, 2, 3)


    def test_bad_value_rejected_and_table_kept(self, storage, clock):
        store = UserStore(storage, clock=clock)
        alice = _add(store)
        _add(store, email="b@x.com", username="bob")

        for changes in ({"name": None}, {"is_verified": "yes"}, {"occupation": 7}):
            with pytest.raises(ValueError):
                store.update(alice.id, changes)

        assert [u.username for u in store.list_users()] == ["alice", "bob"]
        assert store.find_by_id(alice.id).name == "Alice"

    def test_join_date_string_is_parsed(self, storage, clock):
        store = UserStore(storage, clock=clock)
        user = _add(store)
        updated = store.update(user.id, {"date_joined": "2020-01-01T00:00:00+00:00"})

        assert updated.date_joined == datetime(2020, 1, 1, tzinfo=timezone.utc)
        assert store.find_by_id(user.id).date_joined == updated.date_joined

    def test_join_date_garbage_rejected(self, storage, clock):
        store = UserStore(storage, clock=clock)
        user = _add(store)
        with pytest.raises(ValueError):
            store.update(user.id, {"date_joined": 12345})
        assert store.find_by_id(user.id).date_joined == clock()

    def test_username_stripped(self, storage, clock):
        store = UserStore(storage, clock=clock)
        user = _add(store)
        assert store.update(user.id, {"username": " bob2 "}).username == "bob2"
        assert store.find_by_id(user.id).username == "bob2"


class TestDelete:
    def test_delete_is_idempotent(self, storage, clock):
        store = UserStore(storage, clock=clock)
        user = _add(store)
        assert store.delete(user.id) is True
        assert store.delete(user.id) is False
        assert store.find_by_id(user.id) is None


class TestPersistence:
    def test_table_shape(self, storage, clock):
        store = UserStore(storage, clock=clock)
        user = _add(store, date_of_birth="1990-05-17")

        row = storage.get(USERS_KEY)[user.id]
        assert row["password"] == "pw123456"
        assert row["date_joined"] == "2024-01-01T12:00:00+00:00"
        assert row["date_of_birth"] == "1990-05-17"
        assert row["is_verified"] is False

    def test_dates_reconstituted(self, storage, clock):
        user = _add(UserStore(storage, clock=clock))
        reloaded = UserStore(storage, clock=clock).find_by_id(user.id)
        assert isinstance(reloaded.date_joined, datetime)
        assert reloaded.date_joined == clock()

    def test_timestamp_birth_date_accepted(self, storage, clock):
        user = _add(UserStore(storage, clock=clock))
        table = storage.get(USERS_KEY)
        table[user.id]["date_of_birth"] = "1990-05-17T00:00:00+00:00"
        storage.set(USERS_KEY, table)

        reloaded = UserStore(storage, clock=clock).find_by_id(user.id)
        assert reloaded.date_of_birth == date(1990, 5, 17)

    def test_naive_timestamps_read_as_utc(self, storage, clock):
        store = UserStore(storage, clock=clock)
        alice = _add(store)
        clock.advance(minutes=1)
        _add(store, email="b@x.com", username="bob")
        table = storage.get(USERS_KEY)
        table[alice.id]["date_joined"] = "2024-01-01T12:00:00"
        storage.set(USERS_KEY, table)

        users = UserStore(storage, clock=clock).list_users()
        assert [u.username for u in users] == ["alice", "bob"]
        assert users[0].date_joined == clock() - timedelta(minutes=1)

    def test_unreadable_table_treated_as_empty(self, storage, clock):
        storage.set_raw(USERS_KEY, "not json")
        store = UserStore(storage, clock=clock)
        assert store.list_users() == []
        _add(store)
        assert len(store.list_users()) == 1

    def test_schema_invalid_table_treated_as_empty(self, storage, clock):
        storage.set(USERS_KEY, ["not", "a", "mapping"])
        assert UserStore(storage, clock=clock).find_by_email("a@x.com") is None

    def test_bad_timestamp_treated_as_empty(self, storage, clock):
        user = _add(UserStore(storage, clock=clock))
        table = storage.get(USERS_KEY)
        table[user.id]["date_joined"] = "yesterday"
        storage.set(USERS_KEY, table)
        assert UserStore(storage, clock=clock).list_users() == []
