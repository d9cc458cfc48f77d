"""Storage root migration for catalog records."""

from __future__ import annotations

from dataclasses import dataclass
import logging

from preservation_catalog.catalog.store import CatalogStore, RecordNotFoundError


logger = logging.getLogger("preservation_catalog.catalog.migration")


@dataclass(frozen=True)
class MigrationSummary:
    from_storage_root: str
    to_storage_root: str
    migrated_object_ids: tuple[str, ...]


class StorageRootMigrationService:
    """Points every catalog record on one storage root at another.

    Migrated records forget their prior audit state: status returns to
    validity_unknown and the validation timestamps are cleared, so the next
    scheduled audits re-check them on the new root.
    """

    def __init__(self, *, store: CatalogStore, from_name: str, to_name: str) -> None:
        self.store = store
        self.from_name = str(from_name)
        self.to_name = str(to_name)

    def migrate(self) -> MigrationSummary:
        if self.from_name == self.to_name:
            raise ValueError("source and destination storage roots must differ")
        self.store.get_storage_root(self.from_name)
        destination = self.store.get_storage_root(self.to_name)
        records = []
        for object_id in self.store.records_on_storage_root(self.from_name):
            record = self.store.find_catalog_record(object_id)
            if record is None:
                raise RecordNotFoundError(f"CatalogRecord {object_id}")
            records.append((object_id, record.migrated_to(destination.id)))
        # store reads share the postgres connection; none may run inside the transaction
        migrated: list[str] = []
        with self.store.transaction() as tx:
            for object_id, record in records:
                tx.update_catalog_record(record)
                migrated.append(object_id)
        logger.info(
            "migrated %s catalog record(s) from %s to %s",
            len(migrated),
            self.from_name,
            self.to_name,
        )
        return MigrationSummary(
            from_storage_root=self.from_name,
            to_storage_root=self.to_name,
            migrated_object_ids=tuple(migrated),
        )
