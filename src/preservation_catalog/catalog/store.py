"""Catalog store: preserved objects, catalog records, and replica rows."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import logging
import re
import sqlite3
from typing import Any, Iterator, Sequence

import psycopg

from preservation_catalog.catalog.contracts import (
    CatalogContractError,
    CatalogRecord,
    CatalogStatus,
    PreservationObject,
    PreservationPolicy,
    ReplicaEndpoint,
    ReplicaPart,
    ReplicaPartStatus,
    ReplicaVersion,
    ReplicaVersionStatus,
    StorageRoot,
    expected_part_suffixes,
    validate_part_fields,
)
from preservation_catalog.ids import normalize_object_id
from preservation_catalog.postgres_runtime import is_postgres_dsn, postgres_threadlocal_connection


logger = logging.getLogger("preservation_catalog.catalog.store")


class CatalogStoreError(RuntimeError):
    """Raised when the catalog store cannot satisfy a request."""


class RecordNotFoundError(CatalogStoreError):
    """Raised when a catalog row expected to exist is missing."""


PERSISTENCE_ERRORS: tuple[type[BaseException], ...] = (sqlite3.Error, psycopg.Error, CatalogStoreError)

_OBJECT_COLUMNS = (
    "po.id, po.object_id, po.current_version, po.preservation_policy_id, "
    "po.last_archive_audit, po.created_at, po.updated_at"
)
_RECORD_COLUMNS = (
    "cr.id, cr.preserved_object_id, cr.version, cr.status, cr.storage_root_id, cr.size, "
    "cr.from_storage_root_id, cr.status_details, cr.last_structural_validation, "
    "cr.last_version_audit, cr.last_fixity_validation, cr.created_at, cr.updated_at"
)
_PART_COLUMNS = (
    "id, replica_version_id, suffix, md5, size, parts_count, status, "
    "last_existence_check, last_fixity_check"
)


@dataclass(frozen=True)
class _Backend:
    name: str

    def sql(self, sql: str, params: tuple[Any, ...] = ()) -> tuple[str, tuple[Any, ...]]:
        return _sql(sql, self.name), _ordered_params(sql, params)


class CatalogTransaction:
    """Writes issued against one open connection; committed together by the store."""

    def __init__(self, conn: Any, backend: _Backend) -> None:
        self._conn = conn
        self._backend = backend

    def _execute(self, sql: str, params: tuple[Any, ...] = ()) -> Any:
        return self._conn.execute(*self._backend.sql(sql, params))

    def insert_object(self, *, object_id: str, current_version: int, preservation_policy_id: int) -> PreservationObject:
        now = utc_now()
        row = self._execute(
            """
            INSERT INTO preserved_objects (
                object_id, current_version, preservation_policy_id, created_at, updated_at
            ) VALUES ({p1}, {p2}, {p3}, {p4}, {p4})
            RETURNING id
            """,
            (normalize_object_id(object_id), int(current_version), int(preservation_policy_id), now),
        ).fetchone()
        return PreservationObject(
            id=int(row[0]),
            object_id=normalize_object_id(object_id),
            current_version=int(current_version),
            preservation_policy_id=int(preservation_policy_id),
            created_at=now,
            updated_at=now,
        )

    def insert_catalog_record(
        self,
        *,
        preserved_object_id: int,
        version: int,
        status: CatalogStatus,
        storage_root_id: int,
        size: int | None,
        status_details: str | None = None,
        last_structural_validation: str | None = None,
        last_version_audit: str | None = None,
    ) -> CatalogRecord:
        now = utc_now()
        row = self._execute(
            """
            INSERT INTO catalog_records (
                preserved_object_id, version, status, storage_root_id, size, status_details,
                last_structural_validation, last_version_audit, created_at, updated_at
            ) VALUES ({p1}, {p2}, {p3}, {p4}, {p5}, {p6}, {p7}, {p8}, {p9}, {p9})
            RETURNING id
            """,
            (
                int(preserved_object_id),
                int(version),
                CatalogStatus(status).value,
                int(storage_root_id),
                size,
                status_details,
                last_structural_validation,
                last_version_audit,
                now,
            ),
        ).fetchone()
        return CatalogRecord(
            id=int(row[0]),
            preserved_object_id=int(preserved_object_id),
            version=int(version),
            status=CatalogStatus(status),
            storage_root_id=int(storage_root_id),
            size=size,
            status_details=status_details,
            last_structural_validation=last_structural_validation,
            last_version_audit=last_version_audit,
            created_at=now,
            updated_at=now,
        )

    def update_object(self, obj: PreservationObject) -> None:
        cursor = self._execute(
            """
            UPDATE preserved_objects
               SET current_version = {p2},
                   last_archive_audit = {p3},
                   updated_at = {p4}
             WHERE id = {p1}
            """,
            (int(obj.id), int(obj.current_version), obj.last_archive_audit, utc_now()),
        )
        _require_row(cursor, f"PreservationObject id={obj.id}")

    def update_catalog_record(self, record: CatalogRecord) -> None:
        cursor = self._execute(
            """
            UPDATE catalog_records
               SET version = {p2},
                   status = {p3},
                   storage_root_id = {p4},
                   size = {p5},
                   from_storage_root_id = {p6},
                   status_details = {p7},
                   last_structural_validation = {p8},
                   last_version_audit = {p9},
                   last_fixity_validation = {p10},
                   updated_at = {p11}
             WHERE id = {p1}
            """,
            (
                int(record.id),
                int(record.version),
                CatalogStatus(record.status).value,
                int(record.storage_root_id),
                record.size,
                record.from_storage_root_id,
                record.status_details,
                record.last_structural_validation,
                record.last_version_audit,
                record.last_fixity_validation,
                utc_now(),
            ),
        )
        _require_row(cursor, f"CatalogRecord id={record.id}")

    def ensure_replica_version(
        self,
        *,
        preserved_object_id: int,
        replica_endpoint_id: int,
        version: int,
    ) -> tuple[int, bool]:
        """Return (replica_version_id, created)."""
        row = self._execute(
            """
            INSERT INTO replica_versions (
                preserved_object_id, replica_endpoint_id, version, status, created_at
            ) VALUES ({p1}, {p2}, {p3}, {p4}, {p5})
            ON CONFLICT (preserved_object_id, replica_endpoint_id, version) DO NOTHING
            RETURNING id
            """,
            (
                int(preserved_object_id),
                int(replica_endpoint_id),
                int(version),
                ReplicaVersionStatus.CREATED.value,
                utc_now(),
            ),
        ).fetchone()
        if row is not None:
            return int(row[0]), True
        existing = self._execute(
            """
            SELECT id FROM replica_versions
             WHERE preserved_object_id = {p1} AND replica_endpoint_id = {p2} AND version = {p3}
            """,
            (int(preserved_object_id), int(replica_endpoint_id), int(version)),
        ).fetchone()
        if existing is None:
            raise RecordNotFoundError(
                f"ReplicaVersion object={preserved_object_id} endpoint={replica_endpoint_id} version={version}"
            )
        return int(existing[0]), False

    def update_replica_version(self, replica_version: ReplicaVersion) -> None:
        cursor = self._execute(
            """
            UPDATE replica_versions
               SET status = {p2},
                   stated_parts_count = {p3},
                   status_updated_at = {p4}
             WHERE id = {p1}
            """,
            (
                int(replica_version.id),
                ReplicaVersionStatus(replica_version.status).value,
                replica_version.stated_parts_count,
                replica_version.status_updated_at,
            ),
        )
        _require_row(cursor, f"ReplicaVersion id={replica_version.id}")

    def upsert_replica_part(
        self,
        *,
        replica_version_id: int,
        suffix: str,
        md5: str,
        size: int,
        parts_count: int,
        status: ReplicaPartStatus = ReplicaPartStatus.UNREPLICATED,
    ) -> int:
        validate_part_fields(suffix=suffix, md5=md5, size=size, parts_count=parts_count)
        now = utc_now()
        row = self._execute(
            """
            INSERT INTO replica_parts (
                replica_version_id, suffix, md5, size, parts_count, status, created_at, updated_at
            ) VALUES ({p1}, {p2}, {p3}, {p4}, {p5}, {p6}, {p7}, {p7})
            ON CONFLICT (replica_version_id, suffix) DO UPDATE SET
                md5 = excluded.md5,
                size = excluded.size,
                parts_count = excluded.parts_count,
                status = excluded.status,
                updated_at = excluded.updated_at
            RETURNING id
            """,
            (
                int(replica_version_id),
                str(suffix),
                str(md5),
                int(size),
                int(parts_count),
                ReplicaPartStatus(status).value,
                now,
            ),
        ).fetchone()
        return int(row[0])

    def update_replica_part(self, part: ReplicaPart) -> None:
        cursor = self._execute(
            """
            UPDATE replica_parts
               SET status = {p2},
                   last_existence_check = {p3},
                   last_fixity_check = {p4},
                   updated_at = {p5}
             WHERE id = {p1}
            """,
            (
                int(part.id),
                ReplicaPartStatus(part.status).value,
                part.last_existence_check,
                part.last_fixity_check,
                utc_now(),
            ),
        )
        _require_row(cursor, f"ReplicaPart id={part.id}")


class CatalogStore:
    """Relational catalog on SQLite (local/test) or Postgres (deployment)."""

    def __init__(self, *, locator: str) -> None:
        self.locator = str(locator or "").strip()
        if not self.locator:
            raise ValueError("catalog store locator is required")
        self.backend = "postgres" if is_postgres_dsn(self.locator) else "sqlite"
        self._backend = _Backend(self.backend)
        self._ensure_schema()

    @contextmanager
    def transaction(self) -> Iterator[CatalogTransaction]:
        with self._connect() as conn:
            yield CatalogTransaction(conn, self._backend)

    # -- registration -------------------------------------------------

    def register_storage_root(self, *, name: str, storage_location: str) -> StorageRoot:
        with self._connect() as conn:
            row = self._execute(
                conn,
                """
                INSERT INTO storage_roots (name, storage_location, created_at)
                VALUES ({p1}, {p2}, {p3})
                ON CONFLICT (name) DO UPDATE SET storage_location = excluded.storage_location
                RETURNING id
                """,
                (str(name), str(storage_location), utc_now()),
            ).fetchone()
        return StorageRoot(id=int(row[0]), name=str(name), storage_location=str(storage_location))

    def register_replica_endpoint(
        self,
        *,
        endpoint_name: str,
        bucket_name: str,
        region: str | None = None,
        endpoint_url: str | None = None,
    ) -> ReplicaEndpoint:
        with self._connect() as conn:
            row = self._execute(
                conn,
                """
                INSERT INTO replica_endpoints (endpoint_name, bucket_name, region, endpoint_url, created_at)
                VALUES ({p1}, {p2}, {p3}, {p4}, {p5})
                ON CONFLICT (endpoint_name) DO UPDATE SET
                    bucket_name = excluded.bucket_name,
                    region = excluded.region,
                    endpoint_url = excluded.endpoint_url
                RETURNING id
                """,
                (str(endpoint_name), str(bucket_name), region, endpoint_url, utc_now()),
            ).fetchone()
        return ReplicaEndpoint(
            id=int(row[0]),
            endpoint_name=str(endpoint_name),
            bucket_name=str(bucket_name),
            region=region,
            endpoint_url=endpoint_url,
        )

    def register_policy(
        self,
        *,
        name: str,
        fixity_ttl_seconds: int,
        archive_ttl_seconds: int,
        endpoint_names: Sequence[str] = (),
    ) -> PreservationPolicy:
        with self._connect() as conn:
            row = self._execute(
                conn,
                """
                INSERT INTO preservation_policies (name, fixity_ttl_seconds, archive_ttl_seconds, created_at)
                VALUES ({p1}, {p2}, {p3}, {p4})
                ON CONFLICT (name) DO UPDATE SET
                    fixity_ttl_seconds = excluded.fixity_ttl_seconds,
                    archive_ttl_seconds = excluded.archive_ttl_seconds
                RETURNING id
                """,
                (str(name), int(fixity_ttl_seconds), int(archive_ttl_seconds), utc_now()),
            ).fetchone()
            policy_id = int(row[0])
            for endpoint_name in endpoint_names:
                endpoint = self._execute(
                    conn,
                    "SELECT id FROM replica_endpoints WHERE endpoint_name = {p1}",
                    (str(endpoint_name),),
                ).fetchone()
                if endpoint is None:
                    raise RecordNotFoundError(f"ReplicaEndpoint {endpoint_name}")
                self._execute(
                    conn,
                    """
                    INSERT INTO policy_endpoints (preservation_policy_id, replica_endpoint_id)
                    VALUES ({p1}, {p2})
                    ON CONFLICT (preservation_policy_id, replica_endpoint_id) DO NOTHING
                    """,
                    (policy_id, int(endpoint[0])),
                )
        return PreservationPolicy(
            id=policy_id,
            name=str(name),
            fixity_ttl_seconds=int(fixity_ttl_seconds),
            archive_ttl_seconds=int(archive_ttl_seconds),
        )

    def create_object(
        self,
        *,
        object_id: str,
        version: int,
        size: int | None,
        storage_root_name: str,
        policy_name: str,
        status: CatalogStatus = CatalogStatus.VALIDITY_UNKNOWN,
    ) -> tuple[PreservationObject, CatalogRecord]:
        root = self.get_storage_root(storage_root_name)
        policy = self.get_policy(policy_name)
        with self.transaction() as tx:
            obj = tx.insert_object(
                object_id=object_id,
                current_version=version,
                preservation_policy_id=policy.id,
            )
            record = tx.insert_catalog_record(
                preserved_object_id=obj.id,
                version=version,
                status=status,
                storage_root_id=root.id,
                size=size,
            )
        return obj, record

    # -- reads --------------------------------------------------------

    def find_object(self, object_id: str) -> PreservationObject | None:
        with self._connect() as conn:
            row = self._execute(
                conn,
                f"SELECT {_OBJECT_COLUMNS} FROM preserved_objects po WHERE po.object_id = {{p1}}",
                (normalize_object_id(object_id),),
            ).fetchone()
        return _object_from_row(row) if row is not None else None

    def get_object(self, object_id: str) -> PreservationObject:
        obj = self.find_object(object_id)
        if obj is None:
            raise RecordNotFoundError(f"PreservationObject {object_id}")
        return obj

    def find_catalog_record(self, object_id: str) -> CatalogRecord | None:
        with self._connect() as conn:
            row = self._execute(
                conn,
                f"""
                SELECT {_RECORD_COLUMNS}
                  FROM catalog_records cr
                  JOIN preserved_objects po ON po.id = cr.preserved_object_id
                 WHERE po.object_id = {{p1}}
                """,
                (normalize_object_id(object_id),),
            ).fetchone()
        return _record_from_row(row) if row is not None else None

    def find_storage_root(self, name: str) -> StorageRoot | None:
        with self._connect() as conn:
            row = self._execute(
                conn,
                "SELECT id, name, storage_location FROM storage_roots WHERE name = {p1}",
                (str(name),),
            ).fetchone()
        return StorageRoot(id=int(row[0]), name=str(row[1]), storage_location=str(row[2])) if row else None

    def get_storage_root(self, name: str) -> StorageRoot:
        root = self.find_storage_root(name)
        if root is None:
            raise RecordNotFoundError(f"StorageRoot {name}")
        return root

    def storage_root_by_id(self, storage_root_id: int) -> StorageRoot:
        with self._connect() as conn:
            row = self._execute(
                conn,
                "SELECT id, name, storage_location FROM storage_roots WHERE id = {p1}",
                (int(storage_root_id),),
            ).fetchone()
        if row is None:
            raise RecordNotFoundError(f"StorageRoot id={storage_root_id}")
        return StorageRoot(id=int(row[0]), name=str(row[1]), storage_location=str(row[2]))

    def get_policy(self, name: str) -> PreservationPolicy:
        with self._connect() as conn:
            row = self._execute(
                conn,
                """
                SELECT id, name, fixity_ttl_seconds, archive_ttl_seconds
                  FROM preservation_policies WHERE name = {p1}
                """,
                (str(name),),
            ).fetchone()
        if row is None:
            raise RecordNotFoundError(f"PreservationPolicy {name}")
        return PreservationPolicy(
            id=int(row[0]),
            name=str(row[1]),
            fixity_ttl_seconds=int(row[2]),
            archive_ttl_seconds=int(row[3]),
        )

    def replica_endpoints_for_object(self, object_id: str) -> list[ReplicaEndpoint]:
        with self._connect() as conn:
            rows = self._execute(
                conn,
                """
                SELECT re.id, re.endpoint_name, re.bucket_name, re.region, re.endpoint_url
                  FROM replica_endpoints re
                  JOIN policy_endpoints pe ON pe.replica_endpoint_id = re.id
                  JOIN preserved_objects po ON po.preservation_policy_id = pe.preservation_policy_id
                 WHERE po.object_id = {p1}
                 ORDER BY re.endpoint_name
                """,
                (normalize_object_id(object_id),),
            ).fetchall()
        return [_endpoint_from_row(row) for row in rows]

    def replica_versions(self, object_id: str, *, replica_endpoint_id: int | None = None) -> list[ReplicaVersion]:
        sql = """
            SELECT rv.id, rv.preserved_object_id, rv.replica_endpoint_id, rv.version, rv.status,
                   rv.stated_parts_count, rv.status_updated_at
              FROM replica_versions rv
              JOIN preserved_objects po ON po.id = rv.preserved_object_id
             WHERE po.object_id = {p1}
        """
        params: tuple[Any, ...] = (normalize_object_id(object_id),)
        if replica_endpoint_id is not None:
            sql += " AND rv.replica_endpoint_id = {p2}"
            params = (*params, int(replica_endpoint_id))
        sql += " ORDER BY rv.replica_endpoint_id, rv.version"
        with self._connect() as conn:
            rows = self._execute(conn, sql, params).fetchall()
            versions: list[ReplicaVersion] = []
            for row in rows:
                parts = self._execute(
                    conn,
                    f"SELECT {_PART_COLUMNS} FROM replica_parts WHERE replica_version_id = {{p1}} ORDER BY suffix",
                    (int(row[0]),),
                ).fetchall()
                versions.append(
                    ReplicaVersion(
                        id=int(row[0]),
                        preserved_object_id=int(row[1]),
                        replica_endpoint_id=int(row[2]),
                        version=int(row[3]),
                        status=ReplicaVersionStatus(str(row[4])),
                        stated_parts_count=_optional_int(row[5]),
                        status_updated_at=row[6],
                        parts=tuple(_part_from_row(part) for part in parts),
                    )
                )
        return versions

    def records_on_storage_root(self, storage_root_name: str) -> list[str]:
        with self._connect() as conn:
            rows = self._execute(
                conn,
                """
                SELECT po.object_id
                  FROM catalog_records cr
                  JOIN preserved_objects po ON po.id = cr.preserved_object_id
                  JOIN storage_roots sr ON sr.id = cr.storage_root_id
                 WHERE sr.name = {p1}
                 ORDER BY po.object_id
                """,
                (str(storage_root_name),),
            ).fetchall()
        return [str(row[0]) for row in rows]

    def records_with_expired_fixity(self, *, now: datetime | None = None) -> list[str]:
        """Objects whose last fixity validation is missing or older than their policy's TTL."""
        return self._expired_by_policy(
            column="cr.last_fixity_validation",
            ttl_column="fixity_ttl_seconds",
            join="JOIN catalog_records cr ON cr.preserved_object_id = po.id",
            now=now,
        )

    def objects_with_expired_archive_audit(self, *, now: datetime | None = None) -> list[str]:
        return self._expired_by_policy(
            column="po.last_archive_audit",
            ttl_column="archive_ttl_seconds",
            join="",
            now=now,
        )

    def records_with_stale_version_audit(self, *, older_than: datetime) -> list[str]:
        with self._connect() as conn:
            rows = self._execute(
                conn,
                """
                SELECT po.object_id
                  FROM catalog_records cr
                  JOIN preserved_objects po ON po.id = cr.preserved_object_id
                 WHERE cr.last_version_audit IS NULL OR cr.last_version_audit < {p1}
                 ORDER BY po.object_id
                """,
                (_isoformat(older_than),),
            ).fetchall()
        return [str(row[0]) for row in rows]

    # -- replica bookkeeping ------------------------------------------

    def create_missing_replica_versions(self, object_id: str) -> list[tuple[str, int]]:
        """Add a replica version row for every (version, required endpoint) pair that lacks one."""
        obj = self.get_object(object_id)
        endpoints = self.replica_endpoints_for_object(obj.object_id)
        created: list[tuple[str, int]] = []
        with self.transaction() as tx:
            for endpoint in endpoints:
                for version in range(1, int(obj.current_version) + 1):
                    _, was_created = tx.ensure_replica_version(
                        preserved_object_id=obj.id,
                        replica_endpoint_id=endpoint.id,
                        version=version,
                    )
                    if was_created:
                        created.append((endpoint.endpoint_name, version))
        if created:
            logger.info("created %s replica version row(s) for %s", len(created), obj.object_id)
        return created

    def record_replica_part(
        self,
        *,
        object_id: str,
        endpoint_name: str,
        version: int,
        suffix: str,
        md5: str,
        size: int,
        parts_count: int,
        status: ReplicaPartStatus = ReplicaPartStatus.UNREPLICATED,
    ) -> int:
        if suffix not in expected_part_suffixes(parts_count):
            raise CatalogContractError(f"suffix {suffix} is not expected for a {parts_count} part version")
        obj = self.get_object(object_id)
        endpoint = next(
            (item for item in self.replica_endpoints_for_object(obj.object_id) if item.endpoint_name == endpoint_name),
            None,
        )
        if endpoint is None:
            raise RecordNotFoundError(f"ReplicaEndpoint {endpoint_name} for {obj.object_id}")
        with self.transaction() as tx:
            replica_version_id, _ = tx.ensure_replica_version(
                preserved_object_id=obj.id,
                replica_endpoint_id=endpoint.id,
                version=version,
            )
            return tx.upsert_replica_part(
                replica_version_id=replica_version_id,
                suffix=suffix,
                md5=md5,
                size=size,
                parts_count=parts_count,
                status=status,
            )

    # -- internals ----------------------------------------------------

    def _expired_by_policy(self, *, column: str, ttl_column: str, join: str, now: datetime | None) -> list[str]:
        current = now or datetime.now(tz=timezone.utc)
        with self._connect() as conn:
            policies = self._execute(
                conn,
                f"SELECT id, {ttl_column} FROM preservation_policies ORDER BY id",
            ).fetchall()
            expired: set[str] = set()
            for policy_id, ttl_seconds in policies:
                threshold = _isoformat(current - timedelta(seconds=int(ttl_seconds)))
                rows = self._execute(
                    conn,
                    f"""
                    SELECT po.object_id
                      FROM preserved_objects po
                      {join}
                     WHERE po.preservation_policy_id = {{p1}}
                       AND ({column} IS NULL OR {column} < {{p2}})
                    """,
                    (int(policy_id), threshold),
                ).fetchall()
                expired.update(str(row[0]) for row in rows)
        return sorted(expired)

    def _execute(self, conn: Any, sql: str, params: tuple[Any, ...] = ()) -> Any:
        return conn.execute(*self._backend.sql(sql, params))

    @contextmanager
    def _connect(self) -> Iterator[Any]:
        if self.backend == "postgres":
            with postgres_threadlocal_connection(self.locator) as conn:
                yield conn
            return
        conn = sqlite3.connect(_sqlite_path(self.locator), timeout=30.0)
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        except BaseException:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        id_pk = "BIGSERIAL PRIMARY KEY" if self.backend == "postgres" else "INTEGER PRIMARY KEY AUTOINCREMENT"
        with self._connect() as conn:
            for statement in _SCHEMA_STATEMENTS:
                conn.execute(_sql(statement.replace("{id_pk}", id_pk), self.backend))


_SCHEMA_STATEMENTS: tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS preservation_policies (
        id {id_pk},
        name TEXT NOT NULL UNIQUE,
        fixity_ttl_seconds INTEGER NOT NULL CHECK (fixity_ttl_seconds > 0),
        archive_ttl_seconds INTEGER NOT NULL CHECK (archive_ttl_seconds > 0),
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS storage_roots (
        id {id_pk},
        name TEXT NOT NULL UNIQUE,
        storage_location TEXT NOT NULL,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS replica_endpoints (
        id {id_pk},
        endpoint_name TEXT NOT NULL UNIQUE,
        bucket_name TEXT NOT NULL,
        region TEXT,
        endpoint_url TEXT,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS policy_endpoints (
        preservation_policy_id INTEGER NOT NULL REFERENCES preservation_policies (id) ON DELETE CASCADE,
        replica_endpoint_id INTEGER NOT NULL REFERENCES replica_endpoints (id) ON DELETE CASCADE,
        PRIMARY KEY (preservation_policy_id, replica_endpoint_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS preserved_objects (
        id {id_pk},
        object_id TEXT NOT NULL UNIQUE,
        current_version INTEGER NOT NULL CHECK (current_version > 0),
        preservation_policy_id INTEGER NOT NULL REFERENCES preservation_policies (id),
        last_archive_audit TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS catalog_records (
        id {id_pk},
        preserved_object_id INTEGER NOT NULL UNIQUE REFERENCES preserved_objects (id) ON DELETE CASCADE,
        version INTEGER NOT NULL CHECK (version > 0),
        status TEXT NOT NULL,
        storage_root_id INTEGER NOT NULL REFERENCES storage_roots (id),
        size BIGINT,
        from_storage_root_id INTEGER REFERENCES storage_roots (id),
        status_details TEXT,
        last_structural_validation TEXT,
        last_version_audit TEXT,
        last_fixity_validation TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS replica_versions (
        id {id_pk},
        preserved_object_id INTEGER NOT NULL REFERENCES preserved_objects (id) ON DELETE CASCADE,
        replica_endpoint_id INTEGER NOT NULL REFERENCES replica_endpoints (id),
        version INTEGER NOT NULL CHECK (version > 0),
        status TEXT NOT NULL,
        stated_parts_count INTEGER,
        status_updated_at TEXT,
        created_at TEXT NOT NULL,
        UNIQUE (preserved_object_id, replica_endpoint_id, version)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS replica_parts (
        id {id_pk},
        replica_version_id INTEGER NOT NULL REFERENCES replica_versions (id) ON DELETE CASCADE,
        suffix TEXT NOT NULL,
        md5 TEXT NOT NULL,
        size BIGINT NOT NULL CHECK (size > 0),
        parts_count INTEGER NOT NULL CHECK (parts_count > 0),
        status TEXT NOT NULL,
        last_existence_check TEXT,
        last_fixity_check TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        UNIQUE (replica_version_id, suffix)
    )
    """,
    "CREATE INDEX IF NOT EXISTS ix_catalog_records_fixity ON catalog_records (last_fixity_validation)",
    "CREATE INDEX IF NOT EXISTS ix_catalog_records_version_audit ON catalog_records (last_version_audit)",
    "CREATE INDEX IF NOT EXISTS ix_preserved_objects_archive_audit ON preserved_objects (last_archive_audit)",
)


def _require_row(cursor: Any, label: str) -> None:
    if int(getattr(cursor, "rowcount", 0) or 0) < 1:
        raise RecordNotFoundError(label)


def _object_from_row(row: Sequence[Any]) -> PreservationObject:
    return PreservationObject(
        id=int(row[0]),
        object_id=str(row[1]),
        current_version=int(row[2]),
        preservation_policy_id=int(row[3]),
        last_archive_audit=row[4],
        created_at=row[5],
        updated_at=row[6],
    )


def _record_from_row(row: Sequence[Any]) -> CatalogRecord:
    return CatalogRecord(
        id=int(row[0]),
        preserved_object_id=int(row[1]),
        version=int(row[2]),
        status=CatalogStatus(str(row[3])),
        storage_root_id=int(row[4]),
        size=_optional_int(row[5]),
        from_storage_root_id=_optional_int(row[6]),
        status_details=row[7],
        last_structural_validation=row[8],
        last_version_audit=row[9],
        last_fixity_validation=row[10],
        created_at=row[11],
        updated_at=row[12],
    )


def _endpoint_from_row(row: Sequence[Any]) -> ReplicaEndpoint:
    return ReplicaEndpoint(
        id=int(row[0]),
        endpoint_name=str(row[1]),
        bucket_name=str(row[2]),
        region=row[3],
        endpoint_url=row[4],
    )


def _part_from_row(row: Sequence[Any]) -> ReplicaPart:
    return ReplicaPart(
        id=int(row[0]),
        replica_version_id=int(row[1]),
        suffix=str(row[2]),
        md5=str(row[3]),
        size=int(row[4]),
        parts_count=int(row[5]),
        status=ReplicaPartStatus(str(row[6])),
        last_existence_check=row[7],
        last_fixity_check=row[8],
    )


def _optional_int(value: Any) -> int | None:
    return None if value is None else int(value)


_PLACEHOLDER_PATTERN = re.compile(r"\{p(\d+)\}")


def _sql(sql: str, backend: str) -> str:
    if backend == "sqlite":
        return _PLACEHOLDER_PATTERN.sub("?", sql)
    if backend == "postgres":
        return _PLACEHOLDER_PATTERN.sub("%s", sql)
    raise ValueError(f"unsupported backend: {backend}")


def _ordered_params(sql: str, params: tuple[Any, ...]) -> tuple[Any, ...]:
    if not params:
        return tuple()
    ordered: list[Any] = []
    for token in _PLACEHOLDER_PATTERN.findall(sql):
        idx = int(token) - 1
        if idx < 0 or idx >= len(params):
            raise ValueError(f"placeholder index out of range: p{token}")
        ordered.append(params[idx])
    return tuple(ordered)


def _sqlite_path(locator: str) -> str:
    text = str(locator or "").strip()
    if text.startswith("sqlite:///"):
        return text[len("sqlite:///") :]
    if text.startswith("sqlite://"):
        return text[len("sqlite://") :]
    return text


def _isoformat(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def utc_now() -> str:
    return _isoformat(datetime.now(tz=timezone.utc))
