"""Fixity audit of a package against its manifest inventories and signature catalog."""

from __future__ import annotations

import logging
from pathlib import Path

from preservation_catalog.ids import ObjectIdError, normalize_object_id
from preservation_catalog.package.layout import (
    DATA_DIR,
    MANIFEST_INVENTORY,
    MANIFESTS_DIR,
    PreservationPackage,
    relative_files,
)
from preservation_catalog.package.manifests import (
    FileInventory,
    FileSignature,
    ManifestParseError,
    SignatureCatalogEntry,
    parse_file_inventory,
    parse_signature_catalog,
)
from preservation_catalog.results import AuditResults, ResultCode


logger = logging.getLogger("preservation_catalog.audit.fixity")


class FixityAuditor:
    """Recomputes file signatures and records every disagreement as a finding.

    Nothing here raises for package content problems; an empty ledger after
    ``validate`` means the package is fixity-valid.
    """

    def __init__(self, *, package: PreservationPackage, results: AuditResults) -> None:
        self.package = package
        self.results = results

    def validate(self) -> AuditResults:
        self.validate_manifest_inventories()
        self.validate_signature_catalog()
        return self.results

    def validate_manifest_inventories(self) -> None:
        for version, version_path in self.package.version_dirs():
            self._validate_manifest_inventory(version, version_path)

    def validate_signature_catalog(self) -> None:
        catalog_path = self.package.signature_catalog_path()
        if catalog_path is None:
            return
        entries = self._signature_catalog_entries(catalog_path)
        if entries is None:
            return
        cataloged = {str(self.package.object_dir / entry.package_path) for entry in entries}
        for data_file in self.package.data_files():
            if str(data_file) not in cataloged:
                self.results.add_result(
                    ResultCode.FILE_NOT_IN_SIGNATURE_CATALOG,
                    {"file_path": str(data_file), "signature_catalog_path": str(catalog_path)},
                )
        for entry in entries:
            self._check_catalog_entry(entry, catalog_path)

    def _validate_manifest_inventory(self, version: int, version_path: Path) -> None:
        manifests_dir = version_path / MANIFESTS_DIR
        inventory_path = manifests_dir / MANIFEST_INVENTORY
        try:
            inventory = parse_file_inventory(inventory_path)
        except FileNotFoundError:
            self.results.add_result(ResultCode.MANIFEST_NOT_IN_MOAB, {"manifest_file_path": str(inventory_path)})
            return
        except (ManifestParseError, OSError) as exc:
            logger.warning("unable to parse %s: %s", inventory_path, exc)
            self.results.add_result(ResultCode.INVALID_MANIFEST, {"manifest_file_path": str(inventory_path)})
            return
        if not self._inventory_identity_matches(inventory, version):
            logger.warning(
                "%s declares objectId=%s versionId=%s; expected %s version %s",
                inventory_path,
                inventory.object_id,
                inventory.version_id,
                self.package.object_id,
                version,
            )
            self.results.add_result(ResultCode.INVALID_MANIFEST, {"manifest_file_path": str(inventory_path)})
            return
        for group in inventory.groups:
            group_dir = self._group_dir(version_path, group.group_id)
            exclude = (MANIFEST_INVENTORY,) if group.group_id == MANIFESTS_DIR else ()
            on_disk = relative_files(group_dir, exclude=exclude)
            declared = group.by_path()
            for relative_path in sorted(set(declared) | set(on_disk)):
                file_path = str(group_dir / relative_path)
                if relative_path not in on_disk:
                    self.results.add_result(
                        ResultCode.FILE_NOT_IN_MOAB,
                        {"manifest_file_path": str(inventory_path), "file_path": file_path},
                    )
                elif relative_path not in declared:
                    self.results.add_result(
                        ResultCode.FILE_NOT_IN_MANIFEST,
                        {"manifest_file_path": str(inventory_path), "file_path": file_path},
                    )
                else:
                    signature = self._signature_for(on_disk[relative_path])
                    if signature is None:
                        self.results.add_result(
                            ResultCode.FILE_NOT_IN_MOAB,
                            {"manifest_file_path": str(inventory_path), "file_path": file_path},
                        )
                    elif not declared[relative_path].matches(signature):
                        self.results.add_result(
                            ResultCode.MOAB_FILE_CHECKSUM_MISMATCH,
                            {"file_path": file_path, "version": version},
                        )

    def _inventory_identity_matches(self, inventory: FileInventory, version: int) -> bool:
        try:
            declared_id = normalize_object_id(inventory.object_id)
        except ObjectIdError:
            return False
        return declared_id == self.package.object_id and inventory.version_id == version

    def _signature_catalog_entries(self, catalog_path: Path) -> tuple[SignatureCatalogEntry, ...] | None:
        try:
            return parse_signature_catalog(catalog_path).entries
        except FileNotFoundError:
            self.results.add_result(
                ResultCode.SIGNATURE_CATALOG_NOT_IN_MOAB,
                {"signature_catalog_path": str(catalog_path)},
            )
        except (ManifestParseError, OSError) as exc:
            logger.warning("unable to parse %s: %s", catalog_path, exc)
            self.results.add_result(ResultCode.INVALID_MANIFEST, {"manifest_file_path": str(catalog_path)})
        return None

    def _check_catalog_entry(self, entry: SignatureCatalogEntry, catalog_path: Path) -> None:
        file_path = self.package.object_dir / entry.package_path
        signature = self._signature_for(file_path) if file_path.is_file() else None
        if signature is None:
            self.results.add_result(
                ResultCode.FILE_NOT_IN_MOAB,
                {"manifest_file_path": str(catalog_path), "file_path": str(file_path)},
            )
            return
        if not entry.signature.matches(signature):
            self.results.add_result(
                ResultCode.MOAB_FILE_CHECKSUM_MISMATCH,
                {"file_path": str(file_path), "version": entry.original_version},
            )

    @staticmethod
    def _group_dir(version_path: Path, group_id: str) -> Path:
        if group_id == MANIFESTS_DIR:
            return version_path / MANIFESTS_DIR
        return version_path / DATA_DIR / group_id

    @staticmethod
    def _signature_for(path: Path) -> FileSignature | None:
        try:
            return FileSignature.from_file(path)
        except OSError as exc:
            logger.warning("unable to read %s: %s", path, exc)
            return None
