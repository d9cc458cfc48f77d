"""Audit worker: runs one audit unit and hands its ledgers to the reporters."""

from __future__ import annotations

import argparse
from dataclasses import dataclass, field
from enum import Enum
import json
import logging
from pathlib import Path
from typing import Any, Callable, Mapping

from preservation_catalog.audit.checksum_validation import ChecksumValidationService
from preservation_catalog.audit.support import AuditOutcome, FollowUp
from preservation_catalog.audit.version_reconciler import VersionReconciler
from preservation_catalog.catalog.migration import StorageRootMigrationService
from preservation_catalog.catalog.store import PERSISTENCE_ERRORS, CatalogStore
from preservation_catalog.config import CatalogProfile, load_profile
from preservation_catalog.logging_utils import configure_logging, parse_level
from preservation_catalog.package.validator import BasicStructuralValidator, StructuralValidator
from preservation_catalog.replication.auditor import PartReader, ReplicationAuditService
from preservation_catalog.replication.endpoints import build_endpoint_clients
from preservation_catalog.results import AuditResults, ResultCode, ResultsReporter


logger = logging.getLogger("preservation_catalog.worker")


class AuditCheck(str, Enum):
    CATALOG_TO_MOAB = "catalog_to_moab"
    CHECKSUM_VALIDATION = "checksum_validation"
    REPLICATION_AUDIT = "replication_audit"


@dataclass(frozen=True)
class AuditUnit:
    object_id: str
    check: AuditCheck


@dataclass(frozen=True)
class UnitResult:
    unit: AuditUnit
    ledgers: tuple[AuditResults, ...]
    follow_ups: tuple[FollowUp, ...] = field(default_factory=tuple)

    def to_json_payload(self) -> list[dict[str, Any]]:
        return [ledger.to_json_payload() for ledger in self.ledgers]


Dispatch = Callable[[str, FollowUp], None]


class AuditWorker:
    def __init__(
        self,
        *,
        store: CatalogStore,
        validator: StructuralValidator,
        endpoint_clients: Mapping[str, PartReader],
        reporter: ResultsReporter | None = None,
        dispatch: Dispatch | None = None,
        check_unreplicated_parts: bool = False,
    ) -> None:
        self.store = store
        self.validator = validator
        self.endpoint_clients = endpoint_clients
        self.reporter = reporter or ResultsReporter()
        self.dispatch = dispatch
        self.check_unreplicated_parts = check_unreplicated_parts

    def run_unit(self, unit: AuditUnit) -> UnitResult:
        try:
            ledgers, follow_ups = self._run(unit)
        except Exception as exc:
            logger.exception("%s %s: audit aborted", unit.check.value, unit.object_id)
            failed = AuditResults(object_id=unit.object_id, check_name=unit.check.value)
            failed.add_result(ResultCode.DB_UPDATE_FAILED, f"{type(exc).__name__}: {exc}")
            ledgers, follow_ups = (failed,), ()
        for ledger in ledgers:
            self.reporter.report_results(ledger)
        for follow_up in follow_ups:
            self._perform_follow_up(unit.object_id, follow_up)
        return UnitResult(unit=unit, ledgers=tuple(ledgers), follow_ups=tuple(follow_ups))

    def _run(self, unit: AuditUnit) -> tuple[tuple[AuditResults, ...], tuple[FollowUp, ...]]:
        outcome: AuditOutcome
        if unit.check == AuditCheck.CATALOG_TO_MOAB:
            outcome = VersionReconciler(
                store=self.store,
                object_id=unit.object_id,
                validator=self.validator,
            ).check_catalog_version()
            return (outcome.results,), outcome.follow_ups
        if unit.check == AuditCheck.CHECKSUM_VALIDATION:
            outcome = ChecksumValidationService(
                store=self.store,
                object_id=unit.object_id,
                validator=self.validator,
            ).validate_checksums()
            return (outcome.results,), outcome.follow_ups
        if unit.check == AuditCheck.REPLICATION_AUDIT:
            service = ReplicationAuditService(
                store=self.store,
                endpoint_clients=self.endpoint_clients,
                check_unreplicated_parts=self.check_unreplicated_parts,
            )
            return tuple(service.audit_object(unit.object_id)), ()
        raise ValueError(f"unsupported audit check: {unit.check}")

    def _perform_follow_up(self, object_id: str, follow_up: FollowUp) -> None:
        if follow_up == FollowUp.REPLICATE_OBJECT:
            try:
                self.store.create_missing_replica_versions(object_id)
            except PERSISTENCE_ERRORS:
                logger.exception("%s: unable to create replica version rows", object_id)
                return
        if self.dispatch is None:
            logger.info("%s: follow-up %s pending; no dispatcher configured", object_id, follow_up.value)
            return
        self.dispatch(object_id, follow_up)


def build_worker(profile: CatalogProfile, *, dispatch: Dispatch | None = None) -> AuditWorker:
    store = CatalogStore(locator=profile.catalog_dsn)
    for name, location in profile.storage_roots.items():
        store.register_storage_root(name=name, storage_location=location)
    return AuditWorker(
        store=store,
        validator=BasicStructuralValidator(allow_content_subdirs=profile.allow_content_subdirs),
        endpoint_clients=build_endpoint_clients(profile),
        dispatch=dispatch,
        check_unreplicated_parts=profile.check_unreplicated_parts,
    )


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Preservation catalog audit worker")
    parser.add_argument("--profile", required=True, help="Path to catalog profile")
    parser.add_argument("--check", choices=[item.value for item in AuditCheck], help="Audit to run")
    parser.add_argument("--object-id", help="Object identifier to audit")
    parser.add_argument("--json", action="store_true", help="Print the result ledgers as JSON")
    parser.add_argument(
        "--migrate-storage-root",
        nargs=2,
        metavar=("FROM", "TO"),
        help="Move every catalog record on FROM to TO instead of auditing",
    )
    args = parser.parse_args(argv)

    profile = load_profile(Path(args.profile))
    configure_logging(parse_level(profile.log_level), profile.log_paths)

    if args.migrate_storage_root:
        from_name, to_name = args.migrate_storage_root
        summary = StorageRootMigrationService(
            store=CatalogStore(locator=profile.catalog_dsn),
            from_name=from_name,
            to_name=to_name,
        ).migrate()
        if args.json:
            print(json.dumps({"migrated": list(summary.migrated_object_ids)}, ensure_ascii=False))
        return
    if not args.check or not args.object_id:
        parser.error("--check and --object-id are required unless --migrate-storage-root is given")

    worker = build_worker(profile)
    result = worker.run_unit(AuditUnit(object_id=args.object_id, check=AuditCheck(args.check)))
    if args.json:
        print(json.dumps(result.to_json_payload(), ensure_ascii=False))


if __name__ == "__main__":
    main()
