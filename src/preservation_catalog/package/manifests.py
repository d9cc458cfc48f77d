"""Parsers for the manifest inventory and signature catalog XML files."""

from __future__ import annotations

from dataclasses import dataclass
import hashlib
from pathlib import Path
import xml.etree.ElementTree as ET

from preservation_catalog.ids import version_label


CHECKSUM_TYPES = ("md5", "sha1", "sha256")
_READ_CHUNK = 1024 * 1024


class ManifestParseError(ValueError):
    """Raised when a manifest XML document cannot be parsed."""


@dataclass(frozen=True)
class FileSignature:
    size: int
    md5: str | None = None
    sha1: str | None = None
    sha256: str | None = None

    def checksums(self) -> dict[str, str]:
        values = {"md5": self.md5, "sha1": self.sha1, "sha256": self.sha256}
        return {key: value.lower() for key, value in values.items() if value}

    def matches(self, other: "FileSignature") -> bool:
        """Equal sizes and agreement on every checksum type both sides carry."""
        if int(self.size) != int(other.size):
            return False
        mine = self.checksums()
        theirs = other.checksums()
        shared = set(mine) & set(theirs)
        if not shared:
            return False
        return all(mine[key] == theirs[key] for key in shared)

    @classmethod
    def from_file(cls, path: Path) -> "FileSignature":
        digests = {name: hashlib.new(name) for name in CHECKSUM_TYPES}
        size = 0
        with path.open("rb") as handle:
            while True:
                chunk = handle.read(_READ_CHUNK)
                if not chunk:
                    break
                size += len(chunk)
                for digest in digests.values():
                    digest.update(chunk)
        return cls(
            size=size,
            md5=digests["md5"].hexdigest(),
            sha1=digests["sha1"].hexdigest(),
            sha256=digests["sha256"].hexdigest(),
        )


@dataclass(frozen=True)
class InventoryFile:
    path: str
    signature: FileSignature


@dataclass(frozen=True)
class FileGroup:
    group_id: str
    files: tuple[InventoryFile, ...]

    def by_path(self) -> dict[str, FileSignature]:
        return {item.path: item.signature for item in self.files}


@dataclass(frozen=True)
class FileInventory:
    object_id: str
    version_id: int | None
    inventory_type: str
    groups: tuple[FileGroup, ...]


@dataclass(frozen=True)
class SignatureCatalogEntry:
    original_version: int
    group_id: str
    storage_path: str
    signature: FileSignature

    @property
    def package_path(self) -> str:
        """Path of the entry's file relative to the object directory."""
        return f"{version_label(self.original_version)}/data/{self.group_id}/{self.storage_path}"


@dataclass(frozen=True)
class SignatureCatalog:
    object_id: str
    version_id: int | None
    entries: tuple[SignatureCatalogEntry, ...]


def parse_file_inventory(path: Path) -> FileInventory:
    root = _parse_root(path, "fileInventory")
    groups: list[FileGroup] = []
    for group in root.findall("fileGroup"):
        files: list[InventoryFile] = []
        for file_node in group.findall("file"):
            signature = _signature(file_node.find("fileSignature"), path)
            for instance in file_node.findall("fileInstance"):
                instance_path = instance.get("path")
                if not instance_path:
                    raise ManifestParseError(f"{path}: fileInstance without path")
                files.append(InventoryFile(path=instance_path, signature=signature))
        groups.append(FileGroup(group_id=group.get("groupId", ""), files=tuple(files)))
    return FileInventory(
        object_id=root.get("objectId", ""),
        version_id=_optional_int(root.get("versionId"), path),
        inventory_type=root.get("type", ""),
        groups=tuple(groups),
    )


def parse_signature_catalog(path: Path) -> SignatureCatalog:
    root = _parse_root(path, "signatureCatalog")
    entries: list[SignatureCatalogEntry] = []
    for entry in root.findall("entry"):
        original_version = _optional_int(entry.get("originalVersion"), path)
        storage_path = entry.get("storagePath")
        if original_version is None or not storage_path:
            raise ManifestParseError(f"{path}: entry missing originalVersion or storagePath")
        entries.append(
            SignatureCatalogEntry(
                original_version=original_version,
                group_id=entry.get("groupId", "content"),
                storage_path=storage_path,
                signature=_signature(entry.find("fileSignature"), path),
            )
        )
    return SignatureCatalog(
        object_id=root.get("objectId", ""),
        version_id=_optional_int(root.get("versionId"), path),
        entries=tuple(entries),
    )


def _parse_root(path: Path, tag: str) -> ET.Element:
    try:
        root = ET.parse(path).getroot()
    except ET.ParseError as exc:
        raise ManifestParseError(f"{path}: {exc}") from exc
    if root.tag != tag:
        raise ManifestParseError(f"{path}: expected <{tag}> root, found <{root.tag}>")
    return root


def _signature(node: ET.Element | None, path: Path) -> FileSignature:
    if node is None:
        raise ManifestParseError(f"{path}: missing fileSignature")
    size = _optional_int(node.get("size"), path)
    if size is None:
        raise ManifestParseError(f"{path}: fileSignature without size")
    return FileSignature(
        size=size,
        md5=node.get("md5") or None,
        sha1=node.get("sha1") or None,
        sha256=node.get("sha256") or None,
    )


def _optional_int(value: str | None, path: Path) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except ValueError as exc:
        raise ManifestParseError(f"{path}: expected integer, found {value!r}") from exc
