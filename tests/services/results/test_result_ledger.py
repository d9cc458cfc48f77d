from __future__ import annotations

import json

from preservation_catalog.results import (
    TEMPLATES,
    AuditResults,
    ResultCode,
    extract_args,
    template_fields,
)


OBJECT_ID = "bj102hs9687"


def _results(**overrides) -> AuditResults:
    kwargs = {
        "object_id": OBJECT_ID,
        "actual_version": 3,
        "storage_area": "fixture_sr1",
        "check_name": "check_catalog_version",
    }
    kwargs.update(overrides)
    return AuditResults(**kwargs)


def test_every_result_code_has_a_template() -> None:
    assert set(TEMPLATES) == set(ResultCode)
    assert template_fields(ResultCode.STATUS_CHANGED) == ["old_status", "new_status"]


def test_add_result_renders_template_with_actual_version() -> None:
    results = _results()
    results.add_result(ResultCode.VERSION_MATCHES, "CatalogRecord")
    results.add_result(
        ResultCode.UNEXPECTED_VERSION,
        {"db_obj_name": "CatalogRecord", "db_obj_version": 4},
    )

    assert results.to_list() == [
        {"versionMatches": "actual version (3) matches CatalogRecord db version"},
        {
            "unexpectedVersion": (
                "actual version (3) has unexpected relationship to CatalogRecord db version (4); ERROR!"
            )
        },
    ]
    assert results.codes() == [ResultCode.VERSION_MATCHES, ResultCode.UNEXPECTED_VERSION]
    assert len(results) == 2
    assert not results.empty()


def test_status_changed_to_ok_is_the_only_completed_result() -> None:
    results = _results(check_name="validate_checksums")
    results.add_result(ResultCode.MOAB_CHECKSUM_VALID)
    results.add_result(ResultCode.STATUS_CHANGED, {"old_status": "validity_unknown", "new_status": "ok"})
    results.add_result(ResultCode.STATUS_CHANGED, {"old_status": "ok", "new_status": "invalid_moab"})

    assert results.completed_results() == [
        {"statusChanged": "CatalogRecord status changed from validity_unknown to ok"}
    ]
    assert results.error_results() == [
        {"moabChecksumValid": "checksum(s) match"},
        {"statusChanged": "CatalogRecord status changed from ok to invalid_moab"},
    ]
    assert results.result_summary_msg() == "⚠️ fixity check failed, investigate errors"


def test_summary_message_passes_when_only_completed_results() -> None:
    results = _results()
    results.add_result(ResultCode.STATUS_CHANGED, {"old_status": "validity_unknown", "new_status": "ok"})
    assert results.result_summary_msg() == "✅ fixity check passed"


def test_remove_db_updated_results_drops_write_claims_only() -> None:
    results = _results()
    results.add_result(ResultCode.DB_OBJ_DOES_NOT_EXIST, "CatalogRecord")
    results.add_result(ResultCode.CREATED_NEW_OBJECT)
    results.add_result(ResultCode.STATUS_CHANGED, {"old_status": "ok", "new_status": "invalid_moab"})
    results.add_result(ResultCode.DB_UPDATE_FAILED, "OperationalError: database is locked")

    results.remove_db_updated_results()

    assert results.codes() == [ResultCode.DB_OBJ_DOES_NOT_EXIST, ResultCode.DB_UPDATE_FAILED]
    assert not results.contains_result_code(ResultCode.STATUS_CHANGED)


def test_results_as_string_joins_messages_with_context() -> None:
    results = _results()
    results.add_result(ResultCode.VERSION_MATCHES, "CatalogRecord")
    results.add_result(ResultCode.STATUS_CHANGED, {"old_status": "validity_unknown", "new_status": "ok"})

    assert results.results_as_string() == (
        "check_catalog_version (actual location: fixture_sr1; actual version: 3) "
        "actual version (3) matches CatalogRecord db version && "
        "CatalogRecord status changed from validity_unknown to ok"
    )


def test_json_payload_has_subject_and_ordered_results() -> None:
    results = _results()
    results.add_result(ResultCode.MOAB_NOT_FOUND, {"db_created_at": "2026-01-01", "db_updated_at": "2026-02-01"})

    payload = json.loads(results.to_json())

    assert payload == {
        "subjectId": OBJECT_ID,
        "results": [
            {
                "moabNotFound": (
                    "db CatalogRecord (created 2026-01-01; last updated 2026-02-01) exists but Moab not found"
                )
            }
        ],
    }


def test_extract_args_recovers_substituted_values() -> None:
    results = _results(actual_version=2)
    finding = results.add_result(
        ResultCode.ACTUAL_VERS_GT_DB_OBJ,
        {"db_obj_name": "CatalogRecord", "db_obj_version": 1},
    )

    assert extract_args(ResultCode.ACTUAL_VERS_GT_DB_OBJ, finding.message) == {
        "actual_version": "2",
        "db_obj_name": "CatalogRecord",
        "db_obj_version": "1",
    }
    assert extract_args(ResultCode.STATUS_CHANGED, finding.message) is None
