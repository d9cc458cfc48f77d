"""Structural validation of preservation packages."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from preservation_catalog.ids import version_label
from preservation_catalog.package.layout import (
    DATA_DIR,
    DATA_GROUPS,
    MANIFEST_INVENTORY,
    MANIFESTS_DIR,
    SIGNATURE_CATALOG,
    PreservationPackage,
)


@dataclass(frozen=True)
class StructuralValidation:
    is_valid: bool
    errors: tuple[str, ...] = field(default_factory=tuple)


class StructuralValidator(Protocol):
    def validate(self, package: PreservationPackage) -> StructuralValidation: ...


class BasicStructuralValidator:
    """Checks version numbering and the manifests/data skeleton of each version."""

    def __init__(self, *, allow_content_subdirs: bool = True) -> None:
        self.allow_content_subdirs = allow_content_subdirs

    def validate(self, package: PreservationPackage) -> StructuralValidation:
        errors: list[str] = []
        versions = package.version_dirs()
        if not versions:
            errors.append(f"no version directories found in {package.object_dir}")
        for expected, (version, _) in enumerate(versions, start=1):
            if version != expected:
                errors.append(f"version directory {version_label(version)} should be {version_label(expected)}")
                break
        for version, version_path in versions:
            label = version_label(version)
            manifests = version_path / MANIFESTS_DIR
            if not manifests.is_dir():
                errors.append(f"{label} is missing the {MANIFESTS_DIR} directory")
            else:
                for required in (MANIFEST_INVENTORY, SIGNATURE_CATALOG):
                    if not (manifests / required).is_file():
                        errors.append(f"{label} {MANIFESTS_DIR} is missing {required}")
            data = version_path / DATA_DIR
            if data.is_dir():
                for child in sorted(data.iterdir()):
                    if child.name not in DATA_GROUPS:
                        errors.append(f"{label} {DATA_DIR} contains unexpected entry {child.name}")
                content = data / "content"
                if not self.allow_content_subdirs and content.is_dir():
                    nested = sorted(item.name for item in content.iterdir() if item.is_dir())
                    if nested:
                        errors.append(f"{label} content has subdirectories: {', '.join(nested)}")
            for child in sorted(version_path.iterdir()):
                if child.name not in (MANIFESTS_DIR, DATA_DIR):
                    errors.append(f"{label} contains unexpected entry {child.name}")
        return StructuralValidation(is_valid=not errors, errors=tuple(errors))
