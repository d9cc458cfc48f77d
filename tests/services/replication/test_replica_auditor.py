from __future__ import annotations

from botocore.exceptions import ClientError

from preservation_catalog.catalog.contracts import ReplicaPartStatus, ReplicaVersionStatus
from preservation_catalog.replication.auditor import ReplicaAuditor, ReplicationAuditService
from preservation_catalog.replication.endpoints import ReplicaEndpointClient
from preservation_catalog.replication.keys import replica_part_key
from preservation_catalog.results import AuditResults, ResultCode


OBJECT_ID = "bj102hs9687"
ENDPOINT = "aws_s3_west_2"
BUCKET = "sul-sdr-aws-us-west-2-test"
MD5_A = "00236a2ae558018ed13b5222ef1bd977"
MD5_B = "71a50ba2a2aaa4e1cdb1c84c7a61f1a0"
NOW = "2026-10-19T12:00:00.000000+00:00"


class _FakeS3:
    def __init__(self, objects: dict[str, dict[str, str]], *, error_code: str | None = None) -> None:
        self.objects = objects
        self.error_code = error_code
        self.heads: list[str] = []

    def head_object(self, Bucket: str, Key: str):
        self.heads.append(Key)
        if self.error_code:
            raise ClientError({"Error": {"Code": self.error_code}}, "HeadObject")
        if Key not in self.objects:
            raise ClientError({"Error": {"Code": "404"}}, "HeadObject")
        return {"ContentLength": 10, "Metadata": self.objects[Key]}


def _client(fake: _FakeS3) -> ReplicaEndpointClient:
    client = ReplicaEndpointClient(endpoint_name=ENDPOINT, bucket_name=BUCKET, region_name="us-west-2")
    client._client = fake  # type: ignore[attr-defined]
    return client


def _record_part(catalog, suffix: str, *, md5: str = MD5_A, parts_count: int, status=ReplicaPartStatus.OK) -> None:
    catalog.store.record_replica_part(
        object_id=OBJECT_ID,
        endpoint_name=ENDPOINT,
        version=1,
        suffix=suffix,
        md5=md5,
        size=100,
        parts_count=parts_count,
        status=status,
    )


def _audit(catalog, fake: _FakeS3, *, check_unreplicated_parts: bool = False, moab_version_size=None):
    endpoint = catalog.store.replica_endpoints_for_object(OBJECT_ID)[0]
    (replica_version,) = catalog.store.replica_versions(OBJECT_ID)
    results = AuditResults(object_id=OBJECT_ID, actual_version=1, storage_area=ENDPOINT, check_name="replication_audit")
    auditor = ReplicaAuditor(
        store=catalog.store,
        endpoint=endpoint,
        client=_client(fake),
        results=results,
        check_unreplicated_parts=check_unreplicated_parts,
        clock=lambda: NOW,
    )
    audited = auditor.audit_replica_version(replica_version, object_id=OBJECT_ID, moab_version_size=moab_version_size)
    return results, audited


def test_missing_part_and_short_part_count_leave_version_incomplete(catalog) -> None:
    catalog.add_object(version=1)
    _record_part(catalog, ".z01", parts_count=3)
    _record_part(catalog, ".z02", parts_count=3)
    fake = _FakeS3({replica_part_key(OBJECT_ID, 1, ".z01"): {"checksum_md5": MD5_A}})

    results, audited = _audit(catalog, fake)

    assert results.codes() == [ResultCode.ZIP_PARTS_COUNT_DIFFERS_FROM_ACTUAL, ResultCode.ZIP_PART_NOT_FOUND]
    assert results.to_list() == [
        {
            "countDiffersFromActual": (
                "v0001 on aws_s3_west_2: ReplicaVersion stated parts count (3) doesn't match "
                "actual number of zip parts rows (2)"
            )
        },
        {
            "partNotFound": (
                "replicated part not found on aws_s3_west_2: bj/102/hs/9687/bj102hs9687.v0001.z02 "
                f"was not found on {BUCKET}"
            )
        },
    ]
    assert audited.status == ReplicaVersionStatus.INCOMPLETE
    (stored,) = catalog.store.replica_versions(OBJECT_ID)
    assert stored.status == ReplicaVersionStatus.INCOMPLETE
    assert stored.stated_parts_count == 3
    assert stored.status_updated_at == NOW
    assert [part.status for part in stored.parts] == [ReplicaPartStatus.OK, ReplicaPartStatus.NOT_FOUND]
    assert all(part.last_existence_check == NOW for part in stored.parts)


def test_all_parts_present_and_matching_is_ok(catalog) -> None:
    catalog.add_object(version=1)
    _record_part(catalog, ".z01", parts_count=2)
    _record_part(catalog, ".zip", md5=MD5_B, parts_count=2)
    fake = _FakeS3(
        {
            replica_part_key(OBJECT_ID, 1, ".z01"): {"checksum_md5": MD5_A},
            replica_part_key(OBJECT_ID, 1, ".zip"): {"checksum_md5": MD5_B.upper()},
        }
    )

    results, audited = _audit(catalog, fake, moab_version_size=150)

    assert results.empty()
    assert audited.status == ReplicaVersionStatus.OK
    assert audited.is_replicated()
    assert audited.stated_parts_count == 2
    assert all(part.last_fixity_check == NOW for part in audited.parts)


def test_varying_parts_counts_fail_the_version(catalog) -> None:
    catalog.add_object(version=1)
    _record_part(catalog, ".z01", parts_count=2)
    _record_part(catalog, ".zip", parts_count=1)
    fake = _FakeS3(
        {
            replica_part_key(OBJECT_ID, 1, ".z01"): {"checksum_md5": MD5_A},
            replica_part_key(OBJECT_ID, 1, ".zip"): {"checksum_md5": MD5_A},
        }
    )

    results, audited = _audit(catalog, fake)

    assert results.codes() == [ResultCode.ZIP_PARTS_COUNT_INCONSISTENCY]
    assert "child parts_counts: [1, 2]" in results.findings()[0].message
    assert audited.status == ReplicaVersionStatus.FAILED
    assert audited.stated_parts_count is None


def test_replicated_checksum_mismatch_fails_the_version(catalog) -> None:
    catalog.add_object(version=1)
    _record_part(catalog, ".zip", parts_count=1)
    fake = _FakeS3({replica_part_key(OBJECT_ID, 1, ".zip"): {"checksum_md5": MD5_B}})

    results, audited = _audit(catalog, fake, moab_version_size=500)

    assert results.codes() == [ResultCode.ZIP_PARTS_SIZE_INCONSISTENCY, ResultCode.ZIP_PART_CHECKSUM_MISMATCH]
    assert results.to_list()[1] == {
        "partChecksumMismatch": (
            "replicated md5 mismatch on aws_s3_west_2: bj/102/hs/9687/bj102hs9687.v0001.zip "
            f"catalog md5 ({MD5_A}) doesn't match the replicated md5 ({MD5_B}) on {BUCKET}"
        )
    }
    assert audited.status == ReplicaVersionStatus.FAILED
    assert audited.parts[0].status == ReplicaPartStatus.CHECKSUM_MISMATCH


def test_unreplicated_parts_are_skipped_unless_requested(catalog) -> None:
    catalog.add_object(version=1)
    _record_part(catalog, ".zip", parts_count=1, status=ReplicaPartStatus.UNREPLICATED)
    key = replica_part_key(OBJECT_ID, 1, ".zip")

    skipped = _FakeS3({key: {"checksum_md5": MD5_A}})
    results, audited = _audit(catalog, skipped)
    assert results.codes() == [ResultCode.ZIP_PARTS_NOT_ALL_REPLICATED]
    assert skipped.heads == []
    assert audited.status == ReplicaVersionStatus.INCOMPLETE

    checked = _FakeS3({key: {"checksum_md5": MD5_A}})
    results, audited = _audit(catalog, checked, check_unreplicated_parts=True)
    assert results.codes() == [ResultCode.ZIP_PARTS_NOT_ALL_REPLICATED]
    assert checked.heads == [key]
    assert audited.status == ReplicaVersionStatus.OK


def test_endpoint_errors_keep_part_status_but_stamp_the_check(catalog) -> None:
    catalog.add_object(version=1)
    _record_part(catalog, ".zip", parts_count=1)

    results, audited = _audit(catalog, _FakeS3({}, error_code="AccessDenied"))

    assert results.codes() == [ResultCode.ZIP_PART_CHECK_FAILED]
    assert audited.status == ReplicaVersionStatus.INCOMPLETE
    assert audited.parts[0].status == ReplicaPartStatus.OK
    assert audited.parts[0].last_existence_check == NOW
    assert audited.parts[0].last_fixity_check is None
    (stored,) = catalog.store.replica_versions(OBJECT_ID)
    assert stored.parts[0].last_existence_check == NOW
    assert stored.status == ReplicaVersionStatus.INCOMPLETE


def test_version_without_parts_is_not_created(catalog) -> None:
    catalog.add_object(version=1)
    catalog.store.create_missing_replica_versions(OBJECT_ID)

    results, audited = _audit(catalog, _FakeS3({}))

    assert results.to_list() == [
        {"partsNotCreated": "v0001 on aws_s3_west_2: no zip_parts exist yet for this replica version"}
    ]
    assert audited.status == ReplicaVersionStatus.CREATED


def test_replication_audit_service_covers_every_endpoint(catalog, package_factory) -> None:
    catalog.store.register_replica_endpoint(endpoint_name="ibm_us_south", bucket_name="sul-sdr-ibm-test")
    catalog.store.register_policy(
        name="default",
        fixity_ttl_seconds=7_776_000,
        archive_ttl_seconds=7_776_000,
        endpoint_names=["ibm_us_south"],
    )
    catalog.add_object(version=1)
    package_factory([{"content/intro.txt": b"hello" * 100}])
    _record_part(catalog, ".zip", parts_count=1)
    catalog.store.create_missing_replica_versions(OBJECT_ID)
    fake = _FakeS3({replica_part_key(OBJECT_ID, 1, ".zip"): {"checksum_md5": MD5_A}})
    service = ReplicationAuditService(
        store=catalog.store,
        endpoint_clients={ENDPOINT: _client(fake)},
        clock=lambda: NOW,
    )

    ledgers = service.audit_object(OBJECT_ID)

    assert [ledger.storage_area for ledger in ledgers] == [ENDPOINT, "ibm_us_south"]
    assert ledgers[0].codes() == [ResultCode.ZIP_PARTS_SIZE_INCONSISTENCY]
    assert ledgers[1].codes() == [ResultCode.ZIP_PART_CHECK_FAILED]
    assert catalog.store.get_object(OBJECT_ID).last_archive_audit == NOW


def test_replication_audit_service_unknown_object(catalog) -> None:
    service = ReplicationAuditService(store=catalog.store, endpoint_clients={})
    (ledger,) = service.audit_object(OBJECT_ID)
    assert ledger.codes() == [ResultCode.DB_OBJ_DOES_NOT_EXIST]
