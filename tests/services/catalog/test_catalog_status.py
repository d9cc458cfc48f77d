from __future__ import annotations

import pytest

from preservation_catalog.catalog.contracts import CatalogStatus
from preservation_catalog.catalog.status import blocks_status_check, next_status, transition_to
from preservation_catalog.results import AuditResults, ResultCode


CHECKABLE = [status for status in CatalogStatus if status is not CatalogStatus.INVALID_CHECKSUM]


@pytest.mark.parametrize("old_status", CHECKABLE)
def test_structural_errors_lead_to_invalid_moab(old_status: CatalogStatus) -> None:
    transition = next_status(
        old_status,
        found_expected_version=True,
        structural_errors=["v0001 is missing the manifests directory"],
        checksums_validated=False,
    )
    assert transition.new_status == CatalogStatus.INVALID_MOAB


@pytest.mark.parametrize("old_status", CHECKABLE)
def test_unexpected_version_without_structural_errors(old_status: CatalogStatus) -> None:
    transition = next_status(
        old_status,
        found_expected_version=False,
        structural_errors=[],
        checksums_validated=False,
    )
    assert transition.new_status == CatalogStatus.UNEXPECTED_VERSION_ON_STORAGE


@pytest.mark.parametrize("old_status", CHECKABLE)
def test_valid_package_without_checksums_is_validity_unknown(old_status: CatalogStatus) -> None:
    transition = next_status(
        old_status,
        found_expected_version=True,
        structural_errors=[],
        checksums_validated=False,
    )
    assert transition.new_status == CatalogStatus.VALIDITY_UNKNOWN
    assert transition.changed == (old_status != CatalogStatus.VALIDITY_UNKNOWN)


@pytest.mark.parametrize("old_status", list(CatalogStatus))
def test_validated_checksums_lead_to_ok(old_status: CatalogStatus) -> None:
    transition = next_status(
        old_status,
        found_expected_version=True,
        structural_errors=[],
        checksums_validated=True,
    )
    assert transition.new_status == CatalogStatus.OK


def test_invalid_checksum_only_leaves_through_checksum_validation() -> None:
    assert blocks_status_check(CatalogStatus.INVALID_CHECKSUM, checksums_validated=False)
    assert not blocks_status_check(CatalogStatus.INVALID_CHECKSUM, checksums_validated=True)

    transition = next_status(
        CatalogStatus.INVALID_CHECKSUM,
        found_expected_version=False,
        structural_errors=["broken"],
        checksums_validated=False,
    )
    assert transition.new_status == CatalogStatus.INVALID_CHECKSUM
    assert not transition.changed
    results = AuditResults(object_id="bj102hs9687")
    transition.apply(results)
    assert results.to_list() == [
        {"unableToCheckStatus": "unable to validate when CatalogRecord status is invalid_checksum"}
    ]


def test_transition_to_records_status_change_only_when_different() -> None:
    results = AuditResults(object_id="bj102hs9687")
    transition_to("ok", "ok").apply(results)
    assert results.empty()

    transition = transition_to(CatalogStatus.VALIDITY_UNKNOWN, "ok")
    transition.apply(results)
    assert transition.changed
    assert results.codes() == [ResultCode.STATUS_CHANGED]
    assert results.completed_results() == [
        {"statusChanged": "CatalogRecord status changed from validity_unknown to ok"}
    ]
