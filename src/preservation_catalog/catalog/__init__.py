"""Catalog rows, status transitions, and the relational store."""

from .contracts import (
    CatalogContractError,
    CatalogRecord,
    CatalogStatus,
    PreservationObject,
    PreservationPolicy,
    ReplicaEndpoint,
    ReplicaPart,
    ReplicaPartStatus,
    ReplicaVersion,
    ReplicaVersionStatus,
    StorageRoot,
)
from .migration import MigrationSummary, StorageRootMigrationService
from .status import StatusTransition, next_status, transition_to
from .store import PERSISTENCE_ERRORS, CatalogStore, CatalogStoreError, CatalogTransaction, RecordNotFoundError

__all__ = [
    "CatalogContractError",
    "CatalogRecord",
    "CatalogStatus",
    "CatalogStore",
    "CatalogStoreError",
    "CatalogTransaction",
    "MigrationSummary",
    "PERSISTENCE_ERRORS",
    "PreservationObject",
    "PreservationPolicy",
    "RecordNotFoundError",
    "ReplicaEndpoint",
    "ReplicaPart",
    "ReplicaPartStatus",
    "ReplicaVersion",
    "ReplicaVersionStatus",
    "StatusTransition",
    "StorageRoot",
    "StorageRootMigrationService",
    "next_status",
    "transition_to",
]
