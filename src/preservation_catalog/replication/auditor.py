"""Audits replicated version parts against the catalog and the endpoints holding them."""

from __future__ import annotations

from dataclasses import replace
import logging
from typing import Callable, Mapping, Protocol, Sequence

from preservation_catalog.audit.support import with_transaction_and_rescue
from preservation_catalog.catalog.contracts import (
    ReplicaEndpoint,
    ReplicaPart,
    ReplicaPartStatus,
    ReplicaVersion,
    ReplicaVersionStatus,
)
from preservation_catalog.catalog.store import PERSISTENCE_ERRORS, CatalogStore, CatalogTransaction, utc_now
from preservation_catalog.ids import ObjectIdError, version_label
from preservation_catalog.package.layout import PreservationPackage, find_package
from preservation_catalog.replication.endpoints import PartHead, ReplicaEndpointError
from preservation_catalog.replication.keys import replica_part_key
from preservation_catalog.results import AuditResults, ResultCode


logger = logging.getLogger("preservation_catalog.replication.auditor")


class PartReader(Protocol):
    endpoint_name: str
    bucket_name: str

    def head_part(self, key: str) -> PartHead | None: ...


def derive_version_status(parts: Sequence[ReplicaPart], *, inconsistent: bool, unchecked: bool) -> ReplicaVersionStatus:
    """Checksum mismatch fails the version; a missing part leaves it incomplete."""
    if not parts:
        return ReplicaVersionStatus.CREATED
    if any(part.status == ReplicaPartStatus.CHECKSUM_MISMATCH for part in parts):
        return ReplicaVersionStatus.FAILED
    if unchecked or any(part.status != ReplicaPartStatus.OK for part in parts):
        return ReplicaVersionStatus.INCOMPLETE
    if inconsistent:
        return ReplicaVersionStatus.FAILED
    return ReplicaVersionStatus.OK


class ReplicaAuditor:
    """Checks the replica versions of one object on one endpoint."""

    def __init__(
        self,
        *,
        store: CatalogStore,
        endpoint: ReplicaEndpoint,
        client: PartReader,
        results: AuditResults,
        check_unreplicated_parts: bool = False,
        clock: Callable[[], str] = utc_now,
    ) -> None:
        self.store = store
        self.endpoint = endpoint
        self.client = client
        self.results = results
        self.check_unreplicated_parts = check_unreplicated_parts
        self.clock = clock

    def audit_replica_version(
        self,
        replica_version: ReplicaVersion,
        *,
        object_id: str,
        moab_version_size: int | None,
    ) -> ReplicaVersion:
        base = {"version": version_label(replica_version.version), "endpoint_name": self.endpoint.endpoint_name}
        parts = replica_version.parts
        if not parts:
            self.results.add_result(ResultCode.ZIP_PARTS_NOT_CREATED, base)
            return replica_version

        inconsistent = False
        total_part_size = replica_version.total_part_size()
        if moab_version_size is not None and total_part_size < moab_version_size:
            self.results.add_result(
                ResultCode.ZIP_PARTS_SIZE_INCONSISTENCY,
                {**base, "total_part_size": total_part_size, "moab_version_size": moab_version_size},
            )
            inconsistent = True
        counts = replica_version.child_parts_counts()
        stated_parts_count = replica_version.stated_parts_count
        if len(counts) > 1:
            self.results.add_result(ResultCode.ZIP_PARTS_COUNT_INCONSISTENCY, {**base, "child_parts_counts": counts})
            inconsistent = True
        else:
            if counts[0] != len(parts):
                self.results.add_result(
                    ResultCode.ZIP_PARTS_COUNT_DIFFERS_FROM_ACTUAL,
                    {**base, "db_count": counts[0], "actual_count": len(parts)},
                )
                inconsistent = True
            if stated_parts_count is None:
                stated_parts_count = counts[0]
        if any(part.status == ReplicaPartStatus.UNREPLICATED for part in parts):
            self.results.add_result(ResultCode.ZIP_PARTS_NOT_ALL_REPLICATED, base)

        now = self.clock()
        checked: list[ReplicaPart] = []
        unchecked = False
        for part in parts:
            if part.status == ReplicaPartStatus.UNREPLICATED and not self.check_unreplicated_parts:
                checked.append(part)
                continue
            updated = self._check_part(part, object_id=object_id, version=replica_version.version, now=now)
            if updated is None:
                unchecked = True
                checked.append(replace(part, last_existence_check=now))
            else:
                checked.append(updated)

        status = derive_version_status(checked, inconsistent=inconsistent, unchecked=unchecked)
        audited = replace(
            replica_version,
            status=status,
            stated_parts_count=stated_parts_count,
            status_updated_at=now if status != replica_version.status else replica_version.status_updated_at,
            parts=tuple(checked),
        )

        def persist(tx: CatalogTransaction) -> None:
            for part in audited.parts:
                tx.update_replica_part(part)
            tx.update_replica_version(audited)

        if not with_transaction_and_rescue(self.store, self.results, persist):
            return replica_version
        return audited

    def _check_part(self, part: ReplicaPart, *, object_id: str, version: int, now: str) -> ReplicaPart | None:
        key = replica_part_key(object_id, version, part.suffix)
        location = {
            "endpoint_name": self.endpoint.endpoint_name,
            "s3_key": key,
            "bucket_name": self.endpoint.bucket_name,
        }
        try:
            head = self.client.head_part(key)
        except ReplicaEndpointError as exc:
            logger.warning("%s: %s", object_id, exc)
            self.results.add_result(ResultCode.ZIP_PART_CHECK_FAILED, {**location, "addl": str(exc)})
            return None
        if head is None:
            self.results.add_result(ResultCode.ZIP_PART_NOT_FOUND, location)
            missing = (
                ReplicaPartStatus.UNREPLICATED
                if part.status == ReplicaPartStatus.UNREPLICATED
                else ReplicaPartStatus.NOT_FOUND
            )
            return replace(part, status=missing, last_existence_check=now)
        replicated_checksum = head.checksum_md5
        if replicated_checksum == part.md5:
            return replace(part, status=ReplicaPartStatus.OK, last_existence_check=now, last_fixity_check=now)
        self.results.add_result(
            ResultCode.ZIP_PART_CHECKSUM_MISMATCH,
            {**location, "md5": part.md5, "replicated_checksum": replicated_checksum},
        )
        return replace(part, status=ReplicaPartStatus.CHECKSUM_MISMATCH, last_existence_check=now, last_fixity_check=now)


class ReplicationAuditService:
    """Audits every replica version of an object, producing one ledger per endpoint."""

    def __init__(
        self,
        *,
        store: CatalogStore,
        endpoint_clients: Mapping[str, PartReader],
        check_unreplicated_parts: bool = False,
        clock: Callable[[], str] = utc_now,
    ) -> None:
        self.store = store
        self.endpoint_clients = endpoint_clients
        self.check_unreplicated_parts = check_unreplicated_parts
        self.clock = clock

    def audit_object(self, object_id: str) -> list[AuditResults]:
        summary = AuditResults(object_id=object_id, check_name="replication_audit")
        try:
            obj = self.store.find_object(object_id)
            if obj is None:
                summary.add_result(ResultCode.DB_OBJ_DOES_NOT_EXIST, "PreservationObject")
                return [summary]
            endpoints = self.store.replica_endpoints_for_object(obj.object_id)
            package = self._package(obj.object_id)
            versions_by_endpoint = {
                endpoint.id: self.store.replica_versions(obj.object_id, replica_endpoint_id=endpoint.id)
                for endpoint in endpoints
            }
        except ObjectIdError as exc:
            summary.add_result(ResultCode.INVALID_ARGUMENTS, [str(exc)])
            return [summary]
        except PERSISTENCE_ERRORS as exc:
            logger.exception("%s: catalog read failed", object_id)
            summary.add_result(ResultCode.DB_UPDATE_FAILED, f"{type(exc).__name__}: {exc}")
            return [summary]

        ledgers: list[AuditResults] = []
        for endpoint in endpoints:
            results = AuditResults(
                object_id=obj.object_id,
                actual_version=obj.current_version,
                storage_area=endpoint.endpoint_name,
                check_name="replication_audit",
            )
            client = self.endpoint_clients.get(endpoint.endpoint_name)
            for replica_version in versions_by_endpoint[endpoint.id]:
                if client is None:
                    results.add_result(
                        ResultCode.ZIP_PART_CHECK_FAILED,
                        {
                            "endpoint_name": endpoint.endpoint_name,
                            "s3_key": replica_part_key(obj.object_id, replica_version.version),
                            "bucket_name": endpoint.bucket_name,
                            "addl": "no client configured for endpoint",
                        },
                    )
                    continue
                auditor = ReplicaAuditor(
                    store=self.store,
                    endpoint=endpoint,
                    client=client,
                    results=results,
                    check_unreplicated_parts=self.check_unreplicated_parts,
                    clock=self.clock,
                )
                auditor.audit_replica_version(
                    replica_version,
                    object_id=obj.object_id,
                    moab_version_size=self._version_size(package, replica_version.version),
                )
            ledgers.append(results)

        stamp_ledger = ledgers[-1] if ledgers else summary
        audited_obj = replace(obj, last_archive_audit=self.clock())
        with_transaction_and_rescue(self.store, stamp_ledger, lambda tx: tx.update_object(audited_obj))
        return ledgers or [summary]

    def _package(self, object_id: str) -> PreservationPackage | None:
        record = self.store.find_catalog_record(object_id)
        if record is None:
            return None
        storage_root = self.store.storage_root_by_id(record.storage_root_id)
        try:
            return find_package(storage_root.storage_location, object_id)
        except OSError as exc:
            logger.warning("%s: unable to read storage root %s: %s", object_id, storage_root.name, exc)
            return None

    @staticmethod
    def _version_size(package: PreservationPackage | None, version: int) -> int | None:
        if package is None or not package.version_path(version).is_dir():
            return None
        return package.version_size(version)
