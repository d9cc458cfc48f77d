"""Reconciles catalog versions with the packages found on storage."""

from __future__ import annotations

from dataclasses import replace
import logging
from typing import Callable

from preservation_catalog.audit.support import (
    AuditOutcome,
    CatalogSubject,
    FollowUp,
    StructuralCheck,
    load_catalog_subject,
    with_transaction_and_rescue,
)
from preservation_catalog.catalog.contracts import CatalogStatus
from preservation_catalog.catalog.status import StatusTransition, blocks_status_check, next_status, transition_to
from preservation_catalog.catalog.store import PERSISTENCE_ERRORS, CatalogStore, CatalogTransaction, utc_now
from preservation_catalog.ids import is_valid_object_id, normalize_object_id
from preservation_catalog.package.layout import PreservationPackage, find_package
from preservation_catalog.package.validator import StructuralValidator
from preservation_catalog.results import AuditResults, ResultCode


logger = logging.getLogger("preservation_catalog.audit.version_reconciler")

CATALOG_RECORD = "CatalogRecord"


class VersionReconciler:
    """Compares catalog, parent object, and on-storage versions for one object."""

    def __init__(
        self,
        *,
        store: CatalogStore,
        object_id: str,
        validator: StructuralValidator,
        clock: Callable[[], str] = utc_now,
    ) -> None:
        self.store = store
        self.object_id = str(object_id or "").strip()
        self.validator = validator
        self.clock = clock

    def check_catalog_version(self) -> AuditOutcome:
        results = AuditResults(object_id=self.object_id, check_name="check_catalog_version")
        subject = load_catalog_subject(self.store, results)
        if subject is None:
            return AuditOutcome(results)
        record = subject.record
        if record.version != subject.obj.current_version:
            results.add_result(
                ResultCode.DB_VERSIONS_DISAGREE,
                {"catalog_version": record.version, "object_version": subject.obj.current_version},
            )
            return AuditOutcome(results)
        package = self._find_package(subject)
        if package is None:
            self._mark_not_found(subject, results)
            return AuditOutcome(results)
        results.actual_version = package.current_version
        if blocks_status_check(record.status, checksums_validated=False):
            results.add_result(ResultCode.UNABLE_TO_CHECK_STATUS, {"current_status": record.status.value})
            return AuditOutcome(results)
        return self._reconcile(subject, package, results)

    def check_existence(
        self,
        *,
        incoming_version: int,
        incoming_size: int,
        storage_root_name: str,
        policy_name: str = "default",
    ) -> AuditOutcome:
        """Package-to-catalog direction: a package was seen on storage."""
        results = AuditResults(
            object_id=self.object_id,
            actual_version=incoming_version if isinstance(incoming_version, int) else None,
            storage_area=storage_root_name,
            check_name="check_existence",
        )
        errors = self._argument_errors(incoming_version, incoming_size, storage_root_name)
        if errors:
            results.add_result(ResultCode.INVALID_ARGUMENTS, errors)
            return AuditOutcome(results)
        self.object_id = normalize_object_id(self.object_id)
        results.object_id = self.object_id
        try:
            record = self.store.find_catalog_record(self.object_id)
            storage_root = self.store.get_storage_root(storage_root_name)
        except PERSISTENCE_ERRORS as exc:
            logger.exception("%s: catalog read failed", self.object_id)
            results.add_result(ResultCode.DB_UPDATE_FAILED, f"{type(exc).__name__}: {exc}")
            return AuditOutcome(results)
        package = find_package(storage_root.storage_location, self.object_id)
        if record is None:
            return self._create_after_validation(
                results,
                package,
                incoming_version=incoming_version,
                incoming_size=incoming_size,
                storage_root_id=storage_root.id,
                policy_name=policy_name,
            )
        subject = load_catalog_subject(self.store, results)
        if subject is None:
            return AuditOutcome(results)
        if package is None:
            self._mark_not_found(subject, results)
            return AuditOutcome(results)
        results.actual_version = package.current_version
        if blocks_status_check(subject.record.status, checksums_validated=False):
            results.add_result(ResultCode.UNABLE_TO_CHECK_STATUS, {"current_status": subject.record.status.value})
            return AuditOutcome(results)
        return self._reconcile(subject, package, results)

    def _reconcile(self, subject: CatalogSubject, package: PreservationPackage, results: AuditResults) -> AuditOutcome:
        record = subject.record
        obj = subject.obj
        on_storage_version = int(package.current_version or 0)
        structural = StructuralCheck(package=package, validator=self.validator, results=results)
        updated_record = record
        updated_obj = obj
        follow_ups: list[FollowUp] = []
        transition: StatusTransition | None = None

        if on_storage_version == record.version:
            results.add_result(ResultCode.VERSION_MATCHES, CATALOG_RECORD)
            if record.status != CatalogStatus.OK:
                transition = next_status(
                    record.status,
                    found_expected_version=True,
                    structural_errors=structural.errors(),
                    checksums_validated=False,
                )
        elif on_storage_version > record.version:
            results.add_result(
                ResultCode.ACTUAL_VERS_GT_DB_OBJ,
                {"db_obj_name": CATALOG_RECORD, "db_obj_version": record.version},
            )
            errors = structural.errors()
            if not errors:
                updated_record = replace(record, version=on_storage_version, size=package.size())
                updated_obj = replace(obj, current_version=on_storage_version)
                follow_ups.append(FollowUp.REPLICATE_OBJECT)
            transition = next_status(
                record.status,
                found_expected_version=True,
                structural_errors=errors,
                checksums_validated=False,
            )
        else:
            results.add_result(
                ResultCode.UNEXPECTED_VERSION,
                {"db_obj_name": CATALOG_RECORD, "db_obj_version": record.version},
            )
            transition = next_status(
                record.status,
                found_expected_version=False,
                structural_errors=structural.errors(),
                checksums_validated=False,
            )

        if transition is not None:
            transition.apply(results)
            updated_record = replace(
                updated_record,
                status=transition.new_status,
                status_details=results.results_as_string(),
            )
        updated_record = updated_record.with_audit_timestamps(
            now=self.clock(),
            structure_validated=structural.ran,
            version_audited=True,
        )

        def persist(tx: CatalogTransaction) -> None:
            tx.update_catalog_record(updated_record)
            if updated_obj is not obj:
                tx.update_object(updated_obj)

        if not with_transaction_and_rescue(self.store, results, persist):
            return AuditOutcome(results)
        if transition is not None and transition.changed and transition.new_status == CatalogStatus.VALIDITY_UNKNOWN:
            follow_ups.append(FollowUp.VALIDATE_CHECKSUMS)
        return AuditOutcome(results, tuple(follow_ups))

    def _mark_not_found(self, subject: CatalogSubject, results: AuditResults) -> None:
        record = subject.record
        results.add_result(
            ResultCode.MOAB_NOT_FOUND,
            {"db_created_at": record.created_at, "db_updated_at": record.updated_at},
        )
        transition = transition_to(record.status, CatalogStatus.MOAB_ON_STORAGE_NOT_FOUND)
        transition.apply(results)
        updated = replace(
            record,
            status=transition.new_status,
            status_details=results.results_as_string(),
            last_version_audit=self.clock(),
        )
        with_transaction_and_rescue(self.store, results, lambda tx: tx.update_catalog_record(updated))

    def _create_after_validation(
        self,
        results: AuditResults,
        package: PreservationPackage | None,
        *,
        incoming_version: int,
        incoming_size: int,
        storage_root_id: int,
        policy_name: str,
    ) -> AuditOutcome:
        results.add_result(ResultCode.DB_OBJ_DOES_NOT_EXIST, CATALOG_RECORD)
        if package is None:
            errors: tuple[str, ...] = (f"no package directory for {self.object_id} on storage root",)
            results.add_result(ResultCode.INVALID_MOAB, list(errors))
        else:
            errors = StructuralCheck(package=package, validator=self.validator, results=results).errors()
        status = CatalogStatus.INVALID_MOAB if errors else CatalogStatus.VALIDITY_UNKNOWN
        now = self.clock()
        try:
            policy = self.store.get_policy(policy_name)
        except PERSISTENCE_ERRORS as exc:
            logger.exception("%s: preservation policy lookup failed", self.object_id)
            results.add_result(ResultCode.DB_UPDATE_FAILED, f"{type(exc).__name__}: {exc}")
            return AuditOutcome(results)

        def persist(tx: CatalogTransaction) -> None:
            obj = tx.insert_object(
                object_id=self.object_id,
                current_version=incoming_version,
                preservation_policy_id=policy.id,
            )
            tx.insert_catalog_record(
                preserved_object_id=obj.id,
                version=incoming_version,
                status=status,
                storage_root_id=storage_root_id,
                size=incoming_size,
                status_details=results.results_as_string() if errors else None,
                last_structural_validation=now,
                last_version_audit=now,
            )

        if not with_transaction_and_rescue(self.store, results, persist):
            return AuditOutcome(results)
        results.add_result(ResultCode.CREATED_NEW_OBJECT)
        if status == CatalogStatus.VALIDITY_UNKNOWN:
            return AuditOutcome(results, (FollowUp.REPLICATE_OBJECT, FollowUp.VALIDATE_CHECKSUMS))
        return AuditOutcome(results)

    def _argument_errors(self, incoming_version: object, incoming_size: object, storage_root_name: str) -> list[str]:
        errors: list[str] = []
        if not is_valid_object_id(self.object_id):
            errors.append(f"object_id {self.object_id!r} is not a valid object identifier")
        if not isinstance(incoming_version, int) or isinstance(incoming_version, bool) or incoming_version <= 0:
            errors.append("incoming_version must be a positive integer")
        if not isinstance(incoming_size, int) or isinstance(incoming_size, bool) or incoming_size <= 0:
            errors.append("incoming_size must be a positive integer")
        if not str(storage_root_name or "").strip():
            errors.append("storage_root_name is required")
        elif not errors:
            try:
                if self.store.find_storage_root(storage_root_name) is None:
                    errors.append(f"storage root {storage_root_name} is not registered")
            except PERSISTENCE_ERRORS as exc:
                errors.append(f"storage root {storage_root_name} could not be resolved: {exc}")
        return errors

    def _find_package(self, subject: CatalogSubject) -> PreservationPackage | None:
        try:
            return find_package(subject.storage_root.storage_location, subject.obj.object_id)
        except OSError as exc:
            logger.warning("%s: unable to read storage root %s: %s", self.object_id, subject.storage_root.name, exc)
            return None

