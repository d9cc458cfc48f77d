"""Checksum validation: fixity audit plus the catalog status it implies."""

from __future__ import annotations

from dataclasses import replace
import logging
from typing import Callable

from preservation_catalog.audit.fixity import FixityAuditor
from preservation_catalog.audit.support import (
    AuditOutcome,
    StructuralCheck,
    load_catalog_subject,
    with_transaction_and_rescue,
)
from preservation_catalog.audit.version_reconciler import CATALOG_RECORD
from preservation_catalog.catalog.contracts import CatalogStatus
from preservation_catalog.catalog.status import StatusTransition, next_status, transition_to
from preservation_catalog.catalog.store import CatalogStore, CatalogTransaction, utc_now
from preservation_catalog.package.layout import find_package
from preservation_catalog.package.validator import StructuralValidator
from preservation_catalog.results import AuditResults, ResultCode


logger = logging.getLogger("preservation_catalog.audit.checksum_validation")


class ChecksumValidationService:
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

    def validate_checksums(self) -> AuditOutcome:
        results = AuditResults(object_id=self.object_id, check_name="validate_checksums")
        subject = load_catalog_subject(self.store, results)
        if subject is None:
            return AuditOutcome(results)
        record = subject.record
        try:
            package = find_package(subject.storage_root.storage_location, subject.obj.object_id)
        except OSError as exc:
            logger.warning("%s: unable to read storage root: %s", self.object_id, exc)
            package = None

        if package is None:
            results.add_result(
                ResultCode.MOAB_NOT_FOUND,
                {"db_created_at": record.created_at, "db_updated_at": record.updated_at},
            )
            transition = transition_to(record.status, CatalogStatus.MOAB_ON_STORAGE_NOT_FOUND)
            transition.apply(results)
            not_found = replace(
                record,
                status=transition.new_status,
                status_details=results.results_as_string(),
                last_fixity_validation=self.clock(),
            )
            with_transaction_and_rescue(self.store, results, lambda tx: tx.update_catalog_record(not_found))
            return AuditOutcome(results)

        results.actual_version = package.current_version
        # File reads happen before the transaction opens.
        FixityAuditor(package=package, results=results).validate()

        now = self.clock()
        updated = replace(record, last_fixity_validation=now)
        transition: StatusTransition
        if results.empty():
            results.add_result(ResultCode.MOAB_CHECKSUM_VALID)
            structural = StructuralCheck(package=package, validator=self.validator, results=results)
            versions_match = package.current_version == record.version
            errors = structural.errors()
            if not versions_match:
                results.add_result(
                    ResultCode.UNEXPECTED_VERSION,
                    {"db_obj_name": CATALOG_RECORD, "db_obj_version": record.version},
                )
            transition = next_status(
                record.status,
                found_expected_version=versions_match,
                structural_errors=errors,
                checksums_validated=True,
            )
            updated = updated.with_audit_timestamps(now=now, structure_validated=structural.ran, version_audited=True)
        else:
            transition = transition_to(record.status, CatalogStatus.INVALID_CHECKSUM)
        transition.apply(results)
        updated = replace(updated, status=transition.new_status, status_details=results.results_as_string())

        def persist(tx: CatalogTransaction) -> None:
            tx.update_catalog_record(updated)

        with_transaction_and_rescue(self.store, results, persist)
        logger.info("%s: %s", self.object_id, results.result_summary_msg())
        return AuditOutcome(results)
