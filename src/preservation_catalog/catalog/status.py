"""Catalog record status transitions.

``next_status`` is pure: it maps what an audit observed onto the next
``CatalogStatus`` and the findings that explain the move. Callers apply the
findings to their ledger and persist the new status inside their own
transaction.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence, assert_never

from preservation_catalog.catalog.contracts import CatalogStatus
from preservation_catalog.results import AuditResults, ResultCode


@dataclass(frozen=True)
class PendingFinding:
    code: ResultCode
    args: dict[str, Any]


@dataclass(frozen=True)
class StatusTransition:
    old_status: CatalogStatus
    new_status: CatalogStatus
    findings: tuple[PendingFinding, ...] = ()

    @property
    def changed(self) -> bool:
        return self.old_status != self.new_status

    def apply(self, results: AuditResults) -> None:
        for finding in self.findings:
            results.add_result(finding.code, finding.args)


def blocks_status_check(status: CatalogStatus, *, checksums_validated: bool) -> bool:
    """True when ``status`` may only be left by a checksum validation."""
    if status is CatalogStatus.INVALID_CHECKSUM:
        return not checksums_validated
    if status is CatalogStatus.OK:
        return False
    if status is CatalogStatus.INVALID_MOAB:
        return False
    if status is CatalogStatus.MOAB_ON_STORAGE_NOT_FOUND:
        return False
    if status is CatalogStatus.UNEXPECTED_VERSION_ON_STORAGE:
        return False
    if status is CatalogStatus.VALIDITY_UNKNOWN:
        return False
    assert_never(status)


def unable_to_check(status: CatalogStatus) -> PendingFinding:
    return PendingFinding(ResultCode.UNABLE_TO_CHECK_STATUS, {"current_status": status.value})


def transition_to(old_status: CatalogStatus | str, new_status: CatalogStatus | str) -> StatusTransition:
    old = CatalogStatus(old_status)
    new = CatalogStatus(new_status)
    if old == new:
        return StatusTransition(old_status=old, new_status=new)
    finding = PendingFinding(
        ResultCode.STATUS_CHANGED,
        {"old_status": old.value, "new_status": new.value},
    )
    return StatusTransition(old_status=old, new_status=new, findings=(finding,))


def next_status(
    old_status: CatalogStatus | str,
    *,
    found_expected_version: bool,
    structural_errors: Sequence[str],
    checksums_validated: bool,
) -> StatusTransition:
    old = CatalogStatus(old_status)
    if blocks_status_check(old, checksums_validated=checksums_validated):
        return StatusTransition(old_status=old, new_status=old, findings=(unable_to_check(old),))
    if structural_errors:
        return transition_to(old, CatalogStatus.INVALID_MOAB)
    if not found_expected_version:
        return transition_to(old, CatalogStatus.UNEXPECTED_VERSION_ON_STORAGE)
    if checksums_validated:
        return transition_to(old, CatalogStatus.OK)
    return transition_to(old, CatalogStatus.VALIDITY_UNKNOWN)
