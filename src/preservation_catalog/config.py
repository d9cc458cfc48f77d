"""Configuration loader for preservation catalog profiles."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ValidationError, field_validator

_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


class CatalogConfigError(ValueError):
    """Raised when a catalog profile cannot be loaded."""


class ReplicaEndpointConfig(BaseModel):
    bucket_name: str
    region: str | None = None
    endpoint_url: str | None = None
    path_style: bool | None = None


class CatalogProfile(BaseModel):
    profile_id: str = "local"
    catalog_dsn: str
    storage_roots: dict[str, str] = {}
    replica_endpoints: dict[str, ReplicaEndpointConfig] = {}
    allow_content_subdirs: bool = True
    check_unreplicated_parts: bool = False
    log_level: str = "INFO"
    log_paths: list[str] = []

    @field_validator("catalog_dsn")
    @classmethod
    def _dsn_required(cls, value: str) -> str:
        if not str(value or "").strip():
            raise ValueError("catalog_dsn is required")
        return value.strip()

    def storage_location(self, name: str) -> str:
        try:
            return self.storage_roots[name]
        except KeyError as exc:
            raise CatalogConfigError(f"unknown storage root: {name}") from exc


def _expand_str(value: str) -> str:
    def replacer(match: re.Match[str]) -> str:
        token = match.group(1)
        if ":-" in token:
            key, default = token.split(":-", 1)
            actual = os.getenv(key, "")
            return actual if actual.strip() else default
        actual = os.getenv(token, "")
        if not actual.strip():
            raise CatalogConfigError(f"missing environment variable: {token}")
        return actual

    return _VAR_PATTERN.sub(replacer, value)


def _expand_payload(value: Any) -> Any:
    if isinstance(value, str):
        return _expand_str(value)
    if isinstance(value, list):
        return [_expand_payload(item) for item in value]
    if isinstance(value, dict):
        return {str(key): _expand_payload(item) for key, item in value.items()}
    return value


def load_profile(path: Path) -> CatalogProfile:
    try:
        data = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise CatalogConfigError(f"unable to read catalog profile {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise CatalogConfigError(f"catalog profile {path} must be a mapping")
    expanded = _expand_payload(data)
    try:
        return CatalogProfile(**expanded)
    except ValidationError as exc:
        raise CatalogConfigError(f"invalid catalog profile {path}: {exc}") from exc
