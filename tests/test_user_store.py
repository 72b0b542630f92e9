"""Unit tests for auth/store.py -- UserStore persistence and revocation list.

Covers:
- save + find_by_id round-trip, id and created_at assigned on insert
- plaintext never persisted; hash recomputed on password change only
- two users with the same password get different hashes
- email uniqueness -> DuplicateKey; case-insensitive lookup
- a failed save leaves the caller's User as it was
- updating a user id with no row raises LookupError
- delete
- revoked session bookkeeping and purge, concurrent revocation of one id
"""

import threading
from datetime import datetime, timedelta, timezone

import pytest

from auth.exceptions import DuplicateKey
from auth.models import User
from auth.passwords import verify_password
from auth.store import UserStore
from tests.helpers import SAMPLE_PASSWORD, TEST_ROUNDS, make_user


class TestSaveAndFind:
    def test_save_assigns_id_and_created_at(self, store):
        user = make_user(store)
        assert user.id
        assert user.created_at

    def test_find_by_id_returns_saved_user(self, store):
        user = make_user(store)
        loaded = store.find_by_id(user.id)
        assert loaded is not None
        assert loaded.id == user.id
        assert loaded.full_name == user.full_name
        assert loaded.email == user.email

    def test_find_missing_returns_none(self, store):
        assert store.find_by_id("does-not-exist") is None
        assert store.find_by_email("nobody@example.com") is None

    def test_email_lookup_is_case_insensitive(self, store):
        make_user(store, email="Mixed.Case@Example.com")
        found = store.find_by_email("  mixed.case@EXAMPLE.com ")
        assert found is not None
        assert found.email == "mixed.case@example.com"

    def test_has_users(self, store):
        assert store.has_users() is False
        make_user(store)
        assert store.has_users() is True


class TestPasswordHashing:
    def test_plaintext_not_persisted(self, store):
        user = store.save(User(email="a@example.com", full_name="A", password="I'm a password"))
        assert user.password is None
        loaded = store.find_by_id(user.id)
        assert loaded.password_hash
        assert loaded.password_hash != "I'm a password"
        assert len(loaded.password_hash) > 20
        assert loaded.password is None

    def test_same_password_different_hashes(self, store):
        one = make_user(store, email="email@test.com", password="Similar passwords")
        two = make_user(store, email="email2@test.com", password="Similar passwords")
        assert one.password_hash
        assert two.password_hash
        assert one.password_hash != two.password_hash

    def test_password_change_rehashes(self, store):
        user = make_user(store)
        old_hash = user.password_hash
        user.password = "a brand new password"
        store.save(user)
        loaded = store.find_by_id(user.id)
        assert loaded.password_hash != old_hash
        assert verify_password("a brand new password", loaded.password_hash)
        assert not verify_password(SAMPLE_PASSWORD, loaded.password_hash)

    def test_update_without_password_keeps_hash(self, store):
        user = make_user(store)
        old_hash = user.password_hash
        user.full_name = "Renamed"
        store.save(user)
        loaded = store.find_by_id(user.id)
        assert loaded.full_name == "Renamed"
        assert loaded.password_hash == old_hash

    def test_new_user_without_password_rejected(self, store):
        with pytest.raises(ValueError):
            store.save(User(email="nopass@example.com"))

    def test_plaintext_not_in_repr(self):
        user = User(email="r@example.com", password="hunter2-secret")
        assert "hunter2-secret" not in repr(user)


class TestUniqueness:
    def test_duplicate_email_raises(self, store):
        make_user(store, email="dup@example.com")
        with pytest.raises(DuplicateKey):
            make_user(store, email="dup@example.com")

    def test_duplicate_email_differs_only_by_case(self, store):
        make_user(store, email="dup@example.com")
        with pytest.raises(DuplicateKey):
            make_user(store, email="DUP@Example.com")

    def test_update_to_taken_email_raises(self, store):
        make_user(store, email="first@example.com")
        second = make_user(store, email="second@example.com")
        second.email = "first@example.com"
        with pytest.raises(DuplicateKey):
            store.save(second)

    def test_failed_insert_leaves_caller_object_untouched(self, store):
        make_user(store, email="dup@example.com")
        user = User(email="  DUP@Example.com ", full_name="Second", password="another password")
        with pytest.raises(DuplicateKey):
            store.save(user)
        assert user.email == "  DUP@Example.com "
        assert user.password == "another password"
        assert user.password_hash is None
        assert user.id is None
        assert user.created_at is None

    def test_failed_update_keeps_stored_hash_on_caller_object(self, store):
        make_user(store, email="first@example.com")
        second = make_user(store, email="second@example.com")
        old_hash = second.password_hash
        second.email = "first@example.com"
        second.password = "a brand new password"
        with pytest.raises(DuplicateKey):
            store.save(second)
        assert second.password_hash == old_hash
        assert second.password == "a brand new password"
        assert verify_password(SAMPLE_PASSWORD, store.find_by_id(second.id).password_hash)


class TestUpdateMissing:
    def test_update_of_unknown_id_raises(self, store):
        ghost = User(email="ghost@example.com", id="does-not-exist", password_hash="x")
        with pytest.raises(LookupError):
            store.save(ghost)
        assert store.find_by_email("ghost@example.com") is None

    def test_update_after_delete_raises(self, store):
        user = make_user(store)
        store.delete(user.id)
        user.full_name = "Renamed"
        with pytest.raises(LookupError):
            store.save(user)
        assert store.has_users() is False


class TestDelete:
    def test_delete_removes_user(self, store):
        user = make_user(store)
        assert store.delete(user.id) is True
        assert store.find_by_id(user.id) is None

    def test_delete_missing_returns_false(self, store):
        assert store.delete("does-not-exist") is False


class TestRevokedSessions:
    def test_revoke_and_check(self, store):
        expires = datetime.now(timezone.utc) + timedelta(days=30)
        assert store.is_session_revoked("abc") is False
        store.revoke_session("abc", expires)
        assert store.is_session_revoked("abc") is True

    def test_revoke_twice_is_noop(self, store):
        expires = datetime.now(timezone.utc) + timedelta(days=30)
        store.revoke_session("abc", expires)
        store.revoke_session("abc", expires)
        assert store.is_session_revoked("abc") is True

    def test_purge_drops_only_expired_entries(self, store):
        now = datetime.now(timezone.utc)
        store.revoke_session("old", now - timedelta(days=1))
        store.revoke_session("live", now + timedelta(days=1))
        assert store.purge_revoked_sessions() == 1
        assert store.is_session_revoked("old") is False
        assert store.is_session_revoked("live") is True


class TestConcurrentRevocation:
    """Several requests logging out the same session at once.

    Runs against a file-backed store: pooled connections on a real file are
    what lets two INSERTs for the same id actually race.
    """

    THREADS = 8
    ROUNDS = 10

    def test_same_session_revoked_from_many_threads(self, tmp_path):
        store = UserStore(f"sqlite:///{tmp_path / 'auth.db'}", bcrypt_rounds=TEST_ROUNDS)
        expires = datetime.now(timezone.utc) + timedelta(days=30)
        errors: list[str] = []
        try:
            for attempt in range(self.ROUNDS):
                session_id = f"same-jti-{attempt}"
                barrier = threading.Barrier(self.THREADS)

                def revoke(session_id=session_id, barrier=barrier):
                    barrier.wait()
                    try:
                        store.revoke_session(session_id, expires)
                    except Exception as exc:  # collected and asserted on below
                        errors.append(type(exc).__name__)

                threads = [threading.Thread(target=revoke) for _ in range(self.THREADS)]
                for thread in threads:
                    thread.start()
                for thread in threads:
                    thread.join()
                assert store.is_session_revoked(session_id) is True
        finally:
            store.close()
        assert errors == []
