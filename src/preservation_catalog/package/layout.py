"""On-disk layout of versioned preservation packages."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from preservation_catalog.ids import normalize_object_id, object_id_tree, parse_version_label, version_label


MANIFESTS_DIR = "manifests"
DATA_DIR = "data"
MANIFEST_INVENTORY = "manifestInventory.xml"
SIGNATURE_CATALOG = "signatureCatalog.xml"
DATA_GROUPS = ("content", "metadata")


def package_dir(storage_location: str | Path, object_id: str) -> Path:
    return Path(storage_location).joinpath(*object_id_tree(object_id))


@dataclass(frozen=True)
class PreservationPackage:
    object_id: str
    object_dir: Path

    def version_dirs(self) -> list[tuple[int, Path]]:
        if not self.object_dir.is_dir():
            return []
        found: list[tuple[int, Path]] = []
        for child in self.object_dir.iterdir():
            version = parse_version_label(child.name)
            if version is not None and child.is_dir():
                found.append((version, child))
        return sorted(found)

    @property
    def current_version(self) -> int | None:
        versions = self.version_dirs()
        return versions[-1][0] if versions else None

    def version_path(self, version: int) -> Path:
        return self.object_dir / version_label(version)

    def manifests_path(self, version: int) -> Path:
        return self.version_path(version) / MANIFESTS_DIR

    def manifest_inventory_path(self, version: int) -> Path:
        return self.manifests_path(version) / MANIFEST_INVENTORY

    def signature_catalog_path(self) -> Path | None:
        current = self.current_version
        if current is None:
            return None
        return self.manifests_path(current) / SIGNATURE_CATALOG

    def data_files(self) -> list[Path]:
        """Every file under any version's data/content or data/metadata directory."""
        files: list[Path] = []
        for _, version_path in self.version_dirs():
            for group in DATA_GROUPS:
                files.extend(_files_under(version_path / DATA_DIR / group))
        return files

    def size(self) -> int:
        return sum(path.stat().st_size for path in _files_under(self.object_dir))

    def version_size(self, version: int) -> int:
        return sum(path.stat().st_size for path in _files_under(self.version_path(version)))


def find_package(storage_location: str | Path, object_id: str) -> PreservationPackage | None:
    """Return the package for ``object_id`` if it has at least one version directory."""
    package = PreservationPackage(
        object_id=normalize_object_id(object_id),
        object_dir=package_dir(storage_location, object_id),
    )
    if not package.version_dirs():
        return None
    return package


def _files_under(root: Path) -> list[Path]:
    if not root.is_dir():
        return []
    return sorted(path for path in root.rglob("*") if path.is_file())


def relative_files(root: Path, *, exclude: tuple[str, ...] = ()) -> dict[str, Path]:
    """Map posix paths relative to ``root`` onto absolute paths."""
    return {
        path.relative_to(root).as_posix(): path
        for path in _files_under(root)
        if path.relative_to(root).as_posix() not in exclude
    }
