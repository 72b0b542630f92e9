"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper. UserStore is the repository; _row_to_user
is the mapper. Route, dependency and service code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  Plaintext passwords never reach a SQL statement. save() hashes
  User.password into password_hash before building the INSERT/UPDATE values,
  and only writes the results back onto the caller's User after commit.

  UNIQUE(email) is enforced by the database, not by a check-then-insert in
  Python. Two concurrent registrations for the same email cannot both
  succeed; the loser gets IntegrityError, which save() maps to DuplicateKey.
  revoke_session() leans on the revoked_sessions primary key the same way.

  revoked_sessions holds the session ids of logged-out sessions until their
  natural expiry. Rows past expiry are useless (the signature check rejects
  the token anyway) and are removed by purge_revoked_sessions().

Layer rule: no imports from api/ or core/. The DB URL comes from the caller.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, MetaData, String, Table, Text, create_engine, event, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.exceptions import DuplicateKey
from auth.models import User
from auth.passwords import DEFAULT_ROUNDS, hash_password

logger = logging.getLogger("konfetka.auth.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(32), primary_key=True),  # uuid4 hex
    Column("email", String(255), nullable=False, unique=True),
    Column("full_name", String(255), nullable=False, server_default=""),
    Column("password_hash", Text, nullable=False),
    Column("created_at", String(32), nullable=False),
)

_revoked_sessions = Table(
    "revoked_sessions",
    _metadata,
    Column("session_id", String(64), primary_key=True),  # JWT jti
    Column("expires_at", String(32), nullable=False),  # ISO 8601 UTC
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def normalize_email(email: str) -> str:
    """Login handles are case-insensitive: compare and store lower-cased."""
    return email.strip().lower()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records and the session revocation list.

    Usage:
        store = UserStore("sqlite:///shop.db", bcrypt_rounds=12)
        user = store.save(User(email="anna@example.com", full_name="Anna", password="secret"))
        store.find_by_email("ANNA@example.com")
        store.close()
    """

    def __init__(self, db_url: str, bcrypt_rounds: int = DEFAULT_ROUNDS) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite") and ":memory:" not in db_url and "mode=memory" not in db_url:
            event.listen(self.engine, "connect", _set_wal_mode)
        self.bcrypt_rounds = bcrypt_rounds
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # User queries
    # ------------------------------------------------------------------

    def has_users(self) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_users)).scalar()
        return (result or 0) > 0

    def find_by_email(self, email: str) -> User | None:
        """Look up a user by login handle (case-insensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == normalize_email(email))).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_by_id(self, user_id: str) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def save(self, user: User) -> User:
        """Insert or update a user and return it.

        A User with id=None is inserted: the store assigns id and created_at.
        Otherwise the existing row is updated in place.

        If user.password is set, it is hashed with bcrypt first. The caller's
        object is only changed once the write has committed: on success it
        holds the normalised email and new hash and its plaintext slot is
        cleared; on failure it is left exactly as passed in.

        Raises:
            DuplicateKey: another account already uses this email.
            LookupError: an update names a user id that no longer exists.
            ValueError: a brand new user has neither password nor hash.
        """
        email = normalize_email(user.email)
        password_hash = user.password_hash
        if user.password is not None:
            password_hash = hash_password(user.password, rounds=self.bcrypt_rounds)
        if password_hash is None:
            raise ValueError("Cannot save a user without a password.")

        values = {
            "email": email,
            "full_name": user.full_name,
            "password_hash": password_hash,
        }
        new_id = created_at = None
        try:
            with self.engine.connect() as conn:
                if user.id is None:
                    new_id = uuid.uuid4().hex
                    created_at = _now_iso()
                    conn.execute(_users.insert().values(id=new_id, created_at=created_at, **values))
                else:
                    result = conn.execute(_users.update().where(_users.c.id == user.id).values(**values))
                    if result.rowcount == 0:
                        raise LookupError(f"No user with id {user.id}")
                conn.commit()
        except IntegrityError as exc:
            raise DuplicateKey() from exc

        user.email = email
        user.password_hash = password_hash
        user.password = None
        if new_id is not None:
            user.id = new_id
            user.created_at = created_at
        return user

    def delete(self, user_id: str) -> bool:
        """Permanently delete a user record. Returns True if deleted, False if not found."""
        with self.engine.connect() as conn:
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Session revocation list
    # ------------------------------------------------------------------

    def revoke_session(self, session_id: str, expires_at: datetime) -> None:
        """Record a logged-out session id until its natural expiry.

        Revoking the same session twice is a no-op. The primary key decides
        which of two concurrent revocations wins; the other one's
        IntegrityError means the row is already there.
        """
        try:
            with self.engine.connect() as conn:
                conn.execute(_revoked_sessions.insert().values(session_id=session_id, expires_at=expires_at.isoformat()))
                conn.commit()
        except IntegrityError:
            logger.debug("Session %s was already revoked", session_id)

    def is_session_revoked(self, session_id: str) -> bool:
        with self.engine.connect() as conn:
            row = conn.execute(
                select(_revoked_sessions.c.session_id).where(_revoked_sessions.c.session_id == session_id)
            ).fetchone()
        return row is not None

    def purge_revoked_sessions(self) -> int:
        """Delete revocation entries whose session has expired anyway. Returns rows removed.

        ISO 8601 UTC strings with the same offset sort lexicographically in
        time order, so a plain string comparison is correct here.
        """
        with self.engine.connect() as conn:
            result = conn.execute(_revoked_sessions.delete().where(_revoked_sessions.c.expires_at < _now_iso()))
            conn.commit()
        if result.rowcount:
            logger.info("Purged %d expired revoked sessions", result.rowcount)
        return result.rowcount

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        full_name=row.full_name,
        password_hash=row.password_hash,
        created_at=row.created_at,
    )
