"""Closed set of audit result codes and their message templates."""

from __future__ import annotations

import re
from enum import Enum
from typing import Any, Mapping


class ResultCode(str, Enum):
    ACTUAL_VERS_GT_DB_OBJ = "actualVersionGreaterThanCatalog"
    CREATED_NEW_OBJECT = "createdNewObject"
    DB_OBJ_DOES_NOT_EXIST = "dbObjDoesNotExist"
    DB_UPDATE_FAILED = "dbUpdateFailed"
    DB_VERSIONS_DISAGREE = "dbVersionsDisagree"
    FILE_NOT_IN_MANIFEST = "fileNotInManifest"
    FILE_NOT_IN_MOAB = "fileNotInMoab"
    FILE_NOT_IN_SIGNATURE_CATALOG = "fileNotInSignatureCatalog"
    INVALID_ARGUMENTS = "invalidArguments"
    INVALID_MANIFEST = "invalidManifest"
    INVALID_MOAB = "invalidMoab"
    MANIFEST_NOT_IN_MOAB = "manifestNotInMoab"
    MOAB_CHECKSUM_VALID = "moabChecksumValid"
    MOAB_FILE_CHECKSUM_MISMATCH = "checksumMismatch"
    MOAB_NOT_FOUND = "moabNotFound"
    SIGNATURE_CATALOG_NOT_IN_MOAB = "signatureCatalogNotInMoab"
    STATUS_CHANGED = "statusChanged"
    UNABLE_TO_CHECK_STATUS = "unableToCheckStatus"
    UNEXPECTED_VERSION = "unexpectedVersion"
    VERSION_MATCHES = "versionMatches"
    ZIP_PART_CHECK_FAILED = "partCheckFailed"
    ZIP_PART_CHECKSUM_MISMATCH = "partChecksumMismatch"
    ZIP_PART_NOT_FOUND = "partNotFound"
    ZIP_PARTS_COUNT_DIFFERS_FROM_ACTUAL = "countDiffersFromActual"
    ZIP_PARTS_COUNT_INCONSISTENCY = "countInconsistency"
    ZIP_PARTS_NOT_ALL_REPLICATED = "notAllReplicated"
    ZIP_PARTS_NOT_CREATED = "partsNotCreated"
    ZIP_PARTS_SIZE_INCONSISTENCY = "sizeInconsistency"


TEMPLATES: dict[ResultCode, str] = {
    ResultCode.ACTUAL_VERS_GT_DB_OBJ: (
        "actual version (%(actual_version)s) greater than %(db_obj_name)s db version (%(db_obj_version)s)"
    ),
    ResultCode.CREATED_NEW_OBJECT: "added object to db as it did not exist",
    ResultCode.DB_OBJ_DOES_NOT_EXIST: "%(addl)s db object does not exist",
    ResultCode.DB_UPDATE_FAILED: "db update failed: %(addl)s",
    ResultCode.DB_VERSIONS_DISAGREE: (
        "CatalogRecord version %(catalog_version)s does not match "
        "PreservationObject current_version %(object_version)s"
    ),
    ResultCode.FILE_NOT_IN_MANIFEST: "Moab file %(file_path)s was not found in Moab manifest %(manifest_file_path)s",
    ResultCode.FILE_NOT_IN_MOAB: "%(manifest_file_path)s refers to file (%(file_path)s) not found in Moab",
    ResultCode.FILE_NOT_IN_SIGNATURE_CATALOG: (
        "Moab file %(file_path)s was not found in Moab signature catalog %(signature_catalog_path)s"
    ),
    ResultCode.INVALID_ARGUMENTS: "encountered validation error(s): %(addl)s",
    ResultCode.INVALID_MANIFEST: "unable to parse %(manifest_file_path)s in Moab",
    ResultCode.INVALID_MOAB: "Invalid Moab, validation errors: %(addl)s",
    ResultCode.MANIFEST_NOT_IN_MOAB: "%(manifest_file_path)s not found in Moab",
    ResultCode.MOAB_CHECKSUM_VALID: "checksum(s) match",
    ResultCode.MOAB_FILE_CHECKSUM_MISMATCH: (
        "checksums or size for %(file_path)s version %(version)s do not match entry in latest signatureCatalog.xml."
    ),
    ResultCode.MOAB_NOT_FOUND: (
        "db CatalogRecord (created %(db_created_at)s; last updated %(db_updated_at)s) exists but Moab not found"
    ),
    ResultCode.SIGNATURE_CATALOG_NOT_IN_MOAB: "%(signature_catalog_path)s not found in Moab",
    ResultCode.STATUS_CHANGED: "CatalogRecord status changed from %(old_status)s to %(new_status)s",
    ResultCode.UNABLE_TO_CHECK_STATUS: "unable to validate when CatalogRecord status is %(current_status)s",
    ResultCode.UNEXPECTED_VERSION: (
        "actual version (%(actual_version)s) has unexpected relationship to %(db_obj_name)s db version "
        "(%(db_obj_version)s); ERROR!"
    ),
    ResultCode.VERSION_MATCHES: "actual version (%(actual_version)s) matches %(addl)s db version",
    ResultCode.ZIP_PART_CHECK_FAILED: (
        "unable to check replicated part on %(endpoint_name)s: %(s3_key)s on %(bucket_name)s (%(addl)s)"
    ),
    ResultCode.ZIP_PART_CHECKSUM_MISMATCH: (
        "replicated md5 mismatch on %(endpoint_name)s: %(s3_key)s catalog md5 (%(md5)s) doesn't match "
        "the replicated md5 (%(replicated_checksum)s) on %(bucket_name)s"
    ),
    ResultCode.ZIP_PART_NOT_FOUND: (
        "replicated part not found on %(endpoint_name)s: %(s3_key)s was not found on %(bucket_name)s"
    ),
    ResultCode.ZIP_PARTS_COUNT_DIFFERS_FROM_ACTUAL: (
        "%(version)s on %(endpoint_name)s: ReplicaVersion stated parts count (%(db_count)s) doesn't match "
        "actual number of zip parts rows (%(actual_count)s)"
    ),
    ResultCode.ZIP_PARTS_COUNT_INCONSISTENCY: (
        "%(version)s on %(endpoint_name)s: ReplicaVersion has variation in child parts_counts: "
        "%(child_parts_counts)s"
    ),
    ResultCode.ZIP_PARTS_NOT_ALL_REPLICATED: (
        "%(version)s on %(endpoint_name)s: not all ReplicaVersion parts are replicated yet"
    ),
    ResultCode.ZIP_PARTS_NOT_CREATED: "%(version)s on %(endpoint_name)s: no zip_parts exist yet for this replica version",
    ResultCode.ZIP_PARTS_SIZE_INCONSISTENCY: (
        "%(version)s on %(endpoint_name)s: Sum of ReplicaVersion child part sizes (%(total_part_size)s) "
        "is less than what is in the Moab: %(moab_version_size)s"
    ),
}

# Findings that claim a catalog write happened; dropped when the write is rolled back.
DB_UPDATED_CODES = frozenset({ResultCode.CREATED_NEW_OBJECT, ResultCode.STATUS_CHANGED})

_PLACEHOLDER = re.compile(r"%\((\w+)\)s")

_missing = set(ResultCode) - set(TEMPLATES)
if _missing:
    raise RuntimeError(f"result codes without templates: {sorted(code.value for code in _missing)}")


def template_fields(code: ResultCode) -> list[str]:
    return _PLACEHOLDER.findall(TEMPLATES[code])


def render(code: ResultCode, args: Mapping[str, Any]) -> str:
    return TEMPLATES[code] % dict(args)


def extract_args(code: ResultCode, message: str) -> dict[str, str] | None:
    """Recover the substituted values from a rendered message, or None if it does not match."""
    template = TEMPLATES[code]
    pattern = ""
    position = 0
    for match in _PLACEHOLDER.finditer(template):
        pattern += re.escape(template[position : match.start()])
        pattern += f"(?P<{match.group(1)}>.*?)"
        position = match.end()
    pattern += re.escape(template[position:])
    found = re.fullmatch(pattern, message, re.DOTALL)
    if not found:
        return None
    return found.groupdict()
