"""Shared pieces for audits: follow-up actions, structural checks, guarded writes."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import logging
from typing import Callable

from preservation_catalog.catalog.contracts import CatalogRecord, PreservationObject, StorageRoot
from preservation_catalog.catalog.store import (
    PERSISTENCE_ERRORS,
    CatalogStore,
    CatalogTransaction,
    RecordNotFoundError,
)
from preservation_catalog.ids import ObjectIdError
from preservation_catalog.package.layout import PreservationPackage
from preservation_catalog.package.validator import StructuralValidator
from preservation_catalog.results import AuditResults, ResultCode


logger = logging.getLogger("preservation_catalog.audit.support")


class FollowUp(str, Enum):
    REPLICATE_OBJECT = "replicate_object"
    VALIDATE_CHECKSUMS = "validate_checksums"


@dataclass(frozen=True)
class AuditOutcome:
    results: AuditResults
    follow_ups: tuple[FollowUp, ...] = field(default_factory=tuple)


class StructuralCheck:
    """Runs the structural validator at most once and records invalid_moab."""

    def __init__(self, *, package: PreservationPackage, validator: StructuralValidator, results: AuditResults) -> None:
        self.package = package
        self.validator = validator
        self.results = results
        self._errors: tuple[str, ...] | None = None

    @property
    def ran(self) -> bool:
        return self._errors is not None

    def errors(self) -> tuple[str, ...]:
        if self._errors is None:
            validation = self.validator.validate(self.package)
            self._errors = tuple(validation.errors)
            if self._errors:
                self.results.add_result(ResultCode.INVALID_MOAB, list(self._errors))
        return self._errors


@dataclass(frozen=True)
class CatalogSubject:
    obj: PreservationObject
    record: CatalogRecord
    storage_root: StorageRoot


def load_catalog_subject(store: CatalogStore, results: AuditResults) -> CatalogSubject | None:
    """Load the object, its catalog record and storage root, or record why not."""
    try:
        obj = store.find_object(results.object_id)
        record = store.find_catalog_record(results.object_id)
        if obj is None or record is None:
            label = "PreservationObject" if obj is None else "CatalogRecord"
            results.add_result(ResultCode.DB_OBJ_DOES_NOT_EXIST, label)
            return None
        storage_root = store.storage_root_by_id(record.storage_root_id)
    except ObjectIdError as exc:
        results.add_result(ResultCode.INVALID_ARGUMENTS, [str(exc)])
        return None
    except RecordNotFoundError as exc:
        results.add_result(ResultCode.DB_OBJ_DOES_NOT_EXIST, repr(exc))
        return None
    except PERSISTENCE_ERRORS as exc:
        logger.exception("%s: catalog read failed", results.object_id)
        results.add_result(ResultCode.DB_UPDATE_FAILED, f"{type(exc).__name__}: {exc}")
        return None
    if results.storage_area is None:
        results.storage_area = storage_root.name
    return CatalogSubject(obj=obj, record=record, storage_root=storage_root)


def with_transaction_and_rescue(
    store: CatalogStore,
    results: AuditResults,
    work: Callable[[CatalogTransaction], None],
) -> bool:
    """Run ``work`` in one transaction; persistence failures become findings.

    On failure the write-dependent findings are removed from ``results`` and
    False is returned.
    """
    try:
        with store.transaction() as tx:
            work(tx)
        return True
    except RecordNotFoundError as exc:
        logger.warning("%s: catalog row missing during update: %s", results.object_id, exc)
        results.add_result(ResultCode.DB_OBJ_DOES_NOT_EXIST, repr(exc))
    except PERSISTENCE_ERRORS as exc:
        logger.exception("%s: catalog update failed", results.object_id)
        results.add_result(ResultCode.DB_UPDATE_FAILED, f"{type(exc).__name__}: {exc}")
    results.remove_db_updated_results()
    return False
