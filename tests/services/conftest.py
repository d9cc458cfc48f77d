from __future__ import annotations

from dataclasses import dataclass
import hashlib
from pathlib import Path
from typing import Callable
import xml.etree.ElementTree as ET

import pytest

from preservation_catalog.catalog.store import CatalogStore


OBJECT_ID = "bj102hs9687"
STORAGE_ROOT_NAME = "fixture_sr1"
ENDPOINT_NAME = "aws_s3_west_2"
BUCKET_NAME = "sul-sdr-aws-us-west-2-test"


def _signature_attrs(data: bytes) -> dict[str, str]:
    return {
        "size": str(len(data)),
        "md5": hashlib.md5(data).hexdigest(),
        "sha1": hashlib.sha1(data).hexdigest(),
        "sha256": hashlib.sha256(data).hexdigest(),
    }


def _write_xml(path: Path, root: ET.Element) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    ET.ElementTree(root).write(path, encoding="utf-8", xml_declaration=True)


def write_package(storage_location: Path, object_id: str, versions: list[dict[str, bytes]]) -> Path:
    """Write a package whose version N adds the files in ``versions[N-1]``.

    Keys look like ``content/file.txt`` or ``metadata/descMetadata.xml``.
    """
    tree = [object_id[0:2], object_id[2:5], object_id[5:7], object_id[7:11], object_id]
    object_dir = storage_location.joinpath(*tree)
    entries: list[tuple[int, str, str, bytes]] = []
    for version, files in enumerate(versions, start=1):
        version_dir = object_dir / f"v{version:04d}"
        for relative, data in files.items():
            path = version_dir / "data" / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
            group, storage_path = relative.split("/", 1)
            entries.append((version, group, storage_path, data))
        manifests = version_dir / "manifests"
        manifests.mkdir(parents=True, exist_ok=True)

        catalog = ET.Element("signatureCatalog", {"objectId": f"druid:{object_id}", "versionId": str(version)})
        for original_version, group, storage_path, data in entries:
            entry = ET.SubElement(
                catalog,
                "entry",
                {"originalVersion": str(original_version), "groupId": group, "storagePath": storage_path},
            )
            ET.SubElement(entry, "fileSignature", _signature_attrs(data))
        _write_xml(manifests / "signatureCatalog.xml", catalog)

        inventory = ET.Element(
            "fileInventory",
            {"type": "manifests", "objectId": f"druid:{object_id}", "versionId": str(version)},
        )
        group_node = ET.SubElement(inventory, "fileGroup", {"groupId": "manifests"})
        for manifest in sorted(manifests.iterdir()):
            if manifest.name == "manifestInventory.xml":
                continue
            file_node = ET.SubElement(group_node, "file")
            ET.SubElement(file_node, "fileSignature", _signature_attrs(manifest.read_bytes()))
            ET.SubElement(file_node, "fileInstance", {"path": manifest.name})
        _write_xml(manifests / "manifestInventory.xml", inventory)
    return object_dir


@dataclass
class CatalogFixture:
    store: CatalogStore
    storage_location: Path

    def add_object(self, *, version: int, object_id: str = OBJECT_ID, status: str = "ok", size: int = 100):
        return self.store.create_object(
            object_id=object_id,
            version=version,
            size=size,
            storage_root_name=STORAGE_ROOT_NAME,
            policy_name="default",
            status=status,
        )


@pytest.fixture
def catalog(tmp_path) -> CatalogFixture:
    storage_location = tmp_path / "sdr2objects"
    storage_location.mkdir()
    store = CatalogStore(locator=str(tmp_path / "catalog.sqlite"))
    store.register_storage_root(name=STORAGE_ROOT_NAME, storage_location=str(storage_location))
    store.register_replica_endpoint(endpoint_name=ENDPOINT_NAME, bucket_name=BUCKET_NAME, region="us-west-2")
    store.register_policy(
        name="default",
        fixity_ttl_seconds=7_776_000,
        archive_ttl_seconds=7_776_000,
        endpoint_names=[ENDPOINT_NAME],
    )
    return CatalogFixture(store=store, storage_location=storage_location)


@pytest.fixture
def package_factory(catalog) -> Callable[..., Path]:
    def _factory(versions: list[dict[str, bytes]], object_id: str = OBJECT_ID) -> Path:
        return write_package(catalog.storage_location, object_id, versions)

    return _factory
