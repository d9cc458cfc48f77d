from __future__ import annotations

import logging

from preservation_catalog.results import (
    AuditResults,
    BaseReporter,
    LoggerReporter,
    ResultCode,
    ResultsReporter,
    severity_for,
)


class _CollectingReporter(BaseReporter):
    handled_single_codes = frozenset({ResultCode.MOAB_NOT_FOUND})
    handled_merge_codes = frozenset({ResultCode.FILE_NOT_IN_MOAB})

    def __init__(self) -> None:
        self.single: list[str] = []
        self.merged: list[list[str]] = []
        self.completed: list[str] = []

    def handle_single_error(self, results, finding) -> None:
        self.single.append(finding.code.value)

    def handle_merge_error(self, results, findings) -> None:
        self.merged.append([finding.code.value for finding in findings])

    def handle_completed(self, results, finding) -> None:
        self.completed.append(finding.message)


def _ledger() -> AuditResults:
    results = AuditResults(
        object_id="bj102hs9687",
        actual_version=1,
        storage_area="fixture_sr1",
        check_name="validate_checksums",
    )
    results.add_result(ResultCode.MOAB_NOT_FOUND, {"db_created_at": "a", "db_updated_at": "b"})
    results.add_result(ResultCode.FILE_NOT_IN_MOAB, {"manifest_file_path": "m.xml", "file_path": "x"})
    results.add_result(ResultCode.FILE_NOT_IN_MOAB, {"manifest_file_path": "m.xml", "file_path": "y"})
    results.add_result(ResultCode.INVALID_MOAB, ["unexpected entry"])
    results.add_result(ResultCode.STATUS_CHANGED, {"old_status": "invalid_moab", "new_status": "ok"})
    return results


def test_reporter_routes_single_merge_and_completed_findings() -> None:
    collecting = _CollectingReporter()
    ResultsReporter([collecting]).report_results(_ledger())

    assert collecting.single == ["moabNotFound"]
    assert collecting.merged == [["fileNotInMoab", "fileNotInMoab"]]
    assert collecting.completed == ["CatalogRecord status changed from invalid_moab to ok"]


def test_severity_for_codes() -> None:
    assert severity_for(ResultCode.VERSION_MATCHES) == logging.INFO
    assert severity_for(ResultCode.ZIP_PARTS_NOT_CREATED) == logging.WARNING
    assert severity_for(ResultCode.MOAB_FILE_CHECKSUM_MISMATCH) == logging.ERROR


def test_logger_reporter_logs_each_finding(caplog) -> None:
    target = logging.getLogger("preservation_catalog.results.test_reporter")
    caplog.set_level(logging.INFO, logger=target.name)

    ResultsReporter([LoggerReporter(target)]).report_results(_ledger())

    messages = [(record.levelno, record.getMessage()) for record in caplog.records if record.name == target.name]
    assert len(messages) == 5
    assert messages[0] == (
        logging.ERROR,
        "validate_checksums(bj102hs9687, fixture_sr1) "
        "db CatalogRecord (created a; last updated b) exists but Moab not found",
    )
    assert messages[-1][0] == logging.INFO
