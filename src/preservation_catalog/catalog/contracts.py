"""Catalog row contracts and closed status types."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
import re


class CatalogStatus(str, Enum):
    OK = "ok"
    INVALID_MOAB = "invalid_moab"
    INVALID_CHECKSUM = "invalid_checksum"
    MOAB_ON_STORAGE_NOT_FOUND = "moab_on_storage_not_found"
    UNEXPECTED_VERSION_ON_STORAGE = "unexpected_version_on_storage"
    VALIDITY_UNKNOWN = "validity_unknown"


class ReplicaVersionStatus(str, Enum):
    CREATED = "created"
    INCOMPLETE = "incomplete"
    OK = "ok"
    FAILED = "failed"


class ReplicaPartStatus(str, Enum):
    OK = "ok"
    UNREPLICATED = "unreplicated"
    NOT_FOUND = "not_found"
    CHECKSUM_MISMATCH = "checksum_mismatch"


class CatalogContractError(ValueError):
    """Raised when a catalog row would violate its contract."""


_MD5_PATTERN = re.compile(r"^[0-9a-f]{32}$")
_SUFFIX_PATTERN = re.compile(r"^\.(zip|z\d{2,})$")


@dataclass(frozen=True)
class StorageRoot:
    id: int
    name: str
    storage_location: str


@dataclass(frozen=True)
class ReplicaEndpoint:
    id: int
    endpoint_name: str
    bucket_name: str
    region: str | None = None
    endpoint_url: str | None = None


@dataclass(frozen=True)
class PreservationPolicy:
    id: int
    name: str
    fixity_ttl_seconds: int
    archive_ttl_seconds: int


@dataclass(frozen=True)
class PreservationObject:
    id: int
    object_id: str
    current_version: int
    preservation_policy_id: int
    last_archive_audit: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass(frozen=True)
class CatalogRecord:
    id: int
    preserved_object_id: int
    version: int
    status: CatalogStatus
    storage_root_id: int
    size: int | None = None
    from_storage_root_id: int | None = None
    status_details: str | None = None
    last_structural_validation: str | None = None
    last_version_audit: str | None = None
    last_fixity_validation: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    def with_audit_timestamps(self, *, now: str, structure_validated: bool, version_audited: bool) -> "CatalogRecord":
        updated = self
        if structure_validated:
            updated = replace(updated, last_structural_validation=now)
        if version_audited:
            updated = replace(updated, last_version_audit=now)
        return updated

    def migrated_to(self, storage_root_id: int) -> "CatalogRecord":
        return replace(
            self,
            from_storage_root_id=self.storage_root_id,
            storage_root_id=int(storage_root_id),
            status=CatalogStatus.VALIDITY_UNKNOWN,
            status_details=None,
            last_structural_validation=None,
            last_version_audit=None,
            last_fixity_validation=None,
        )


@dataclass(frozen=True)
class ReplicaPart:
    id: int
    replica_version_id: int
    suffix: str
    md5: str
    size: int
    parts_count: int
    status: ReplicaPartStatus = ReplicaPartStatus.UNREPLICATED
    last_existence_check: str | None = None
    last_fixity_check: str | None = None

    def __post_init__(self) -> None:
        validate_part_fields(suffix=self.suffix, md5=self.md5, size=self.size, parts_count=self.parts_count)


def validate_part_fields(*, suffix: str, md5: str, size: int, parts_count: int) -> None:
    if not _SUFFIX_PATTERN.match(str(suffix)):
        raise CatalogContractError(f"replica part suffix {suffix!r} must be .zip or .zNN")
    if not _MD5_PATTERN.match(str(md5)):
        raise CatalogContractError(f"replica part md5 {md5!r} must be 32 lowercase hex characters")
    if int(size) <= 0:
        raise CatalogContractError("replica part size must be positive")
    if int(parts_count) <= 0:
        raise CatalogContractError("replica part parts_count must be positive")


def expected_part_suffixes(parts_count: int) -> list[str]:
    """Suffixes a split zip of ``parts_count`` parts is written with; .zip is always last."""
    count = int(parts_count)
    if count < 1:
        raise CatalogContractError("parts_count must be positive")
    return [f".z{index:02d}" for index in range(1, count)] + [".zip"]


@dataclass(frozen=True)
class ReplicaVersion:
    id: int
    preserved_object_id: int
    replica_endpoint_id: int
    version: int
    status: ReplicaVersionStatus = ReplicaVersionStatus.CREATED
    stated_parts_count: int | None = None
    status_updated_at: str | None = None
    parts: tuple[ReplicaPart, ...] = field(default_factory=tuple)

    def total_part_size(self) -> int:
        return sum(int(part.size) for part in self.parts)

    def child_parts_counts(self) -> list[int]:
        return sorted({int(part.parts_count) for part in self.parts})

    def is_replicated(self) -> bool:
        return bool(self.parts) and all(part.status == ReplicaPartStatus.OK for part in self.parts)
