"""Preservation package layout, manifests, and structural validation."""

from .layout import PreservationPackage, find_package, package_dir
from .manifests import (
    FileInventory,
    FileSignature,
    ManifestParseError,
    SignatureCatalog,
    SignatureCatalogEntry,
    parse_file_inventory,
    parse_signature_catalog,
)
from .validator import BasicStructuralValidator, StructuralValidation, StructuralValidator

__all__ = [
    "BasicStructuralValidator",
    "FileInventory",
    "FileSignature",
    "ManifestParseError",
    "PreservationPackage",
    "SignatureCatalog",
    "SignatureCatalogEntry",
    "StructuralValidation",
    "StructuralValidator",
    "find_package",
    "package_dir",
    "parse_file_inventory",
    "parse_signature_catalog",
]
