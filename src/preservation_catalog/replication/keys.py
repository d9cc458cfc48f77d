"""Object keys for replicated version parts."""

from __future__ import annotations

from preservation_catalog.ids import object_id_tree, version_label


def replica_part_key(object_id: str, version: int, suffix: str = ".zip") -> str:
    """e.g. ``bj/102/hs/9687/bj102hs9687.v0001.z02``"""
    return f"{'/'.join(object_id_tree(object_id))}.{version_label(version)}{suffix}"
