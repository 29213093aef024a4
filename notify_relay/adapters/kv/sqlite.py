"""Durable keyed store on SQLite via SQLAlchemy Core.

Layout: a single ``kv_entries`` table keyed by the encoded key. Key parts are
UTF-8 encoded and joined with a NUL byte, and the column is a BLOB, so
SQLite's byte-wise ordering matches tuple ordering and a prefix scan becomes
a half-open range ``[prefix + NUL, prefix + 0x01)``.

``put_if`` never reads before writing: the version check lives in the
``WHERE`` clause of a single ``UPDATE`` (or in the primary key constraint
when the caller expects the key to be absent), so SQLite's write lock makes
it atomic across threads and processes sharing the file.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from contextlib import AbstractContextManager, contextmanager, nullcontext
from pathlib import Path
from typing import Any, Callable, Iterator

from sqlalchemy import (
    JSON,
    Column,
    Float,
    LargeBinary,
    MetaData,
    String,
    Table,
    and_,
    create_engine,
    delete,
    or_,
    select,
    update,
)
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.pool import StaticPool

from notify_relay.adapters.kv.base import (
    AbstractKeyValueStore,
    Key,
    KvEntry,
    validate_expire_in,
    validate_key,
)
from notify_relay.core.errors import StoreUnavailableError

logger = logging.getLogger(__name__)

_SEPARATOR = b"\x00"

metadata = MetaData()

kv_entries = Table(
    "kv_entries",
    metadata,
    Column("key", LargeBinary, primary_key=True),
    Column("value", JSON, nullable=False),
    Column("versionstamp", String(32), nullable=False),
    Column("expires_at", Float, nullable=True),
)


def encode_key(key: Key) -> bytes:
    return _SEPARATOR.join(part.encode("utf-8") for part in key)


def decode_key(raw: bytes) -> Key:
    return tuple(part.decode("utf-8") for part in raw.split(_SEPARATOR))


class SqliteKeyValueStore(AbstractKeyValueStore):
    """SQLite-backed store; safe to share between threads and processes."""

    def __init__(
        self,
        url: str,
        *,
        timeout_seconds: float = 5.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Open (and create if needed) the database.

        Args:
            url: SQLAlchemy URL, e.g. ``sqlite:///./data/notify_relay.db``.
            timeout_seconds: How long a writer waits on a locked database.
            clock: Time source returning UNIX time in seconds (used for expiry).

        Raises:
            ValueError: If the URL does not point at SQLite.
            StoreUnavailableError: If the database cannot be opened.
        """
        parsed = make_url(url)
        if parsed.get_backend_name() != "sqlite":
            raise ValueError(f"SqliteKeyValueStore requires a sqlite URL, got {parsed.drivername!r}")

        database = parsed.database
        engine_kwargs: dict[str, Any] = {}
        if database in (None, "", ":memory:"):
            # One shared connection, otherwise every pooled thread sees its own empty database
            engine_kwargs["poolclass"] = StaticPool
            self._connection_lock: AbstractContextManager[Any] = threading.RLock()
        else:
            Path(database).expanduser().resolve().parent.mkdir(parents=True, exist_ok=True)
            self._connection_lock = nullcontext()

        self._clock = clock
        self._engine: Engine = create_engine(
            url,
            connect_args={"timeout": timeout_seconds, "check_same_thread": False},
            **engine_kwargs,
        )
        with self._translate_errors("init"):
            metadata.create_all(self._engine)

    @contextmanager
    def _translate_errors(self, operation: str) -> Iterator[None]:
        """Serialize access to a shared in-memory connection and map driver errors."""
        with self._connection_lock:
            try:
                yield
            except IntegrityError:
                raise
            except SQLAlchemyError as exc:
                logger.error(
                    "kv.unavailable",
                    extra={
                        "backend": "sqlite",
                        "operation": operation,
                        "error_type": type(exc).__name__,
                    },
                )
                raise StoreUnavailableError(
                    code="store_unavailable",
                    message="The notification store is temporarily unavailable",
                    details={"backend": "sqlite", "retry_after": 1.0},
                ) from exc

    def _live(self, now: float):
        return or_(kv_entries.c.expires_at.is_(None), kv_entries.c.expires_at > now)

    def _expires_at(self, now: float, expire_in: float | None) -> float | None:
        validate_expire_in(expire_in)
        return None if expire_in is None else now + expire_in

    @staticmethod
    def _new_versionstamp() -> str:
        return uuid.uuid4().hex

    def put(self, key: Key, value: dict[str, Any], *, expire_in: float | None = None) -> str:
        raw_key = encode_key(validate_key(key))
        now = self._clock()
        versionstamp = self._new_versionstamp()
        row = {
            "key": raw_key,
            "value": value,
            "versionstamp": versionstamp,
            "expires_at": self._expires_at(now, expire_in),
        }
        stmt = sqlite_insert(kv_entries).values(**row)
        stmt = stmt.on_conflict_do_update(
            index_elements=[kv_entries.c.key],
            set_={
                "value": stmt.excluded.value,
                "versionstamp": stmt.excluded.versionstamp,
                "expires_at": stmt.excluded.expires_at,
            },
        )
        with self._translate_errors("put"), self._engine.begin() as conn:
            conn.execute(stmt)
        return versionstamp

    def get(self, key: Key) -> KvEntry | None:
        key = validate_key(key)
        stmt = select(kv_entries.c.value, kv_entries.c.versionstamp).where(
            and_(kv_entries.c.key == encode_key(key), self._live(self._clock()))
        )
        with self._translate_errors("get"), self._engine.connect() as conn:
            row = conn.execute(stmt).first()
        if row is None:
            return None
        return KvEntry(key=key, value=row.value, versionstamp=row.versionstamp)

    def scan(self, prefix: Key) -> Iterator[KvEntry]:
        prefix = validate_key(prefix, allow_empty=True)
        conditions = [self._live(self._clock())]
        if prefix:
            raw_prefix = encode_key(prefix)
            conditions.append(kv_entries.c.key >= raw_prefix + _SEPARATOR)
            conditions.append(kv_entries.c.key < raw_prefix + b"\x01")
        stmt = (
            select(kv_entries.c.key, kv_entries.c.value, kv_entries.c.versionstamp)
            .where(and_(*conditions))
            .order_by(kv_entries.c.key)
        )
        with self._translate_errors("scan"), self._engine.connect() as conn:
            rows = conn.execute(stmt).all()

        for row in rows:
            yield KvEntry(key=decode_key(row.key), value=row.value, versionstamp=row.versionstamp)

    def put_if(
        self,
        key: Key,
        value: dict[str, Any],
        *,
        versionstamp: str | None,
        expire_in: float | None = None,
    ) -> str | None:
        raw_key = encode_key(validate_key(key))
        now = self._clock()
        new_versionstamp = self._new_versionstamp()
        expires_at = self._expires_at(now, expire_in)

        if versionstamp is None:
            return self._insert_if_absent(raw_key, value, new_versionstamp, expires_at, now)

        stmt = (
            update(kv_entries)
            .where(
                and_(
                    kv_entries.c.key == raw_key,
                    kv_entries.c.versionstamp == versionstamp,
                    self._live(now),
                )
            )
            .values(value=value, versionstamp=new_versionstamp, expires_at=expires_at)
        )
        with self._translate_errors("put_if"), self._engine.begin() as conn:
            result = conn.execute(stmt)
        return new_versionstamp if result.rowcount == 1 else None

    def _insert_if_absent(
        self,
        raw_key: bytes,
        value: dict[str, Any],
        versionstamp: str,
        expires_at: float | None,
        now: float,
    ) -> str | None:
        purge_expired = delete(kv_entries).where(
            and_(
                kv_entries.c.key == raw_key,
                kv_entries.c.expires_at.is_not(None),
                kv_entries.c.expires_at <= now,
            )
        )
        insert_stmt = sqlite_insert(kv_entries).values(
            key=raw_key,
            value=value,
            versionstamp=versionstamp,
            expires_at=expires_at,
        )
        try:
            with self._translate_errors("put_if"), self._engine.begin() as conn:
                conn.execute(purge_expired)
                conn.execute(insert_stmt)
        except IntegrityError:
            return None
        return versionstamp

    def close(self) -> None:
        self._engine.dispose()
