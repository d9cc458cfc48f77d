"""Fan-out of audit ledgers to reporting sinks."""

from __future__ import annotations

import logging
from typing import Iterable, Sequence

from .codes import ResultCode
from .ledger import AuditResults, Finding, is_status_changed_to_ok


logger = logging.getLogger("preservation_catalog.results.reporters")


class BaseReporter:
    """Reporter contract; subclasses decide which codes they handle."""

    # None means every code is handled one finding at a time.
    handled_single_codes: frozenset[ResultCode] | None = None
    handled_merge_codes: frozenset[ResultCode] = frozenset()

    def report_errors(self, results: AuditResults, findings: Sequence[Finding]) -> None:
        merged: list[Finding] = []
        for finding in findings:
            if finding.code in self.handled_merge_codes:
                merged.append(finding)
            elif self.handled_single_codes is None or finding.code in self.handled_single_codes:
                self.handle_single_error(results, finding)
        if merged:
            self.handle_merge_error(results, merged)

    def report_completed(self, results: AuditResults, finding: Finding) -> None:
        self.handle_completed(results, finding)

    def handle_single_error(self, results: AuditResults, finding: Finding) -> None:
        raise NotImplementedError

    def handle_merge_error(self, results: AuditResults, findings: Sequence[Finding]) -> None:
        raise NotImplementedError

    def handle_completed(self, results: AuditResults, finding: Finding) -> None:
        return None


_INFO_CODES = frozenset(
    {
        ResultCode.ACTUAL_VERS_GT_DB_OBJ,
        ResultCode.CREATED_NEW_OBJECT,
        ResultCode.MOAB_CHECKSUM_VALID,
        ResultCode.STATUS_CHANGED,
        ResultCode.VERSION_MATCHES,
    }
)
_WARNING_CODES = frozenset(
    {
        ResultCode.DB_OBJ_DOES_NOT_EXIST,
        ResultCode.ZIP_PARTS_NOT_ALL_REPLICATED,
        ResultCode.ZIP_PARTS_NOT_CREATED,
    }
)


def severity_for(code: ResultCode) -> int:
    if code in _INFO_CODES:
        return logging.INFO
    if code in _WARNING_CODES:
        return logging.WARNING
    return logging.ERROR


class LoggerReporter(BaseReporter):
    handled_single_codes = None
    handled_merge_codes = frozenset()

    def __init__(self, target: logging.Logger | None = None) -> None:
        self._logger = target or logger

    def handle_single_error(self, results: AuditResults, finding: Finding) -> None:
        self._log(results, finding)

    def handle_completed(self, results: AuditResults, finding: Finding) -> None:
        self._log(results, finding)

    def _log(self, results: AuditResults, finding: Finding) -> None:
        self._logger.log(
            severity_for(finding.code),
            "%s(%s, %s) %s",
            results.check_name,
            results.object_id,
            results.storage_area,
            finding.message,
        )


class ResultsReporter:
    """Hands each ledger's completed and error findings to every reporter."""

    def __init__(self, reporters: Iterable[BaseReporter] | None = None) -> None:
        self.reporters: list[BaseReporter] = list(reporters) if reporters is not None else [LoggerReporter()]

    def report_results(self, results: AuditResults) -> None:
        completed = [item for item in results if is_status_changed_to_ok(item)]
        errors = [item for item in results if not is_status_changed_to_ok(item)]
        for reporter in self.reporters:
            if errors:
                reporter.report_errors(results, errors)
            for finding in completed:
                reporter.report_completed(results, finding)
