"""S3-compatible replica endpoint clients."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path

from preservation_catalog.config import CatalogProfile


logger = logging.getLogger("preservation_catalog.replication.endpoints")

CHECKSUM_METADATA_KEY = "checksum_md5"
SIZE_METADATA_KEY = "size"
_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


class ReplicaEndpointError(RuntimeError):
    """Raised when a replica endpoint cannot answer a request."""


@dataclass(frozen=True)
class PartHead:
    key: str
    metadata: dict[str, str]

    @property
    def checksum_md5(self) -> str | None:
        value = self.metadata.get(CHECKSUM_METADATA_KEY)
        return value.lower() if value else None


class ReplicaEndpointClient:
    """Reads and writes replica parts in one bucket on one endpoint."""

    def __init__(
        self,
        *,
        endpoint_name: str,
        bucket_name: str,
        endpoint_url: str | None = None,
        region_name: str | None = None,
        path_style: bool | None = None,
    ) -> None:
        import boto3
        from botocore.config import Config

        self.endpoint_name = endpoint_name
        self.bucket_name = bucket_name
        config = None
        if path_style:
            config = Config(s3={"addressing_style": "path"})
        self._client = boto3.client(
            "s3",
            endpoint_url=endpoint_url,
            region_name=region_name,
            config=config,
        )

    def head_part(self, key: str) -> PartHead | None:
        """Return the part's metadata, or None when the endpoint has no such key."""
        from botocore.exceptions import BotoCoreError, ClientError

        try:
            response = self._client.head_object(Bucket=self.bucket_name, Key=key)
        except ClientError as exc:
            error_code = exc.response.get("Error", {}).get("Code")
            if error_code in _NOT_FOUND_CODES:
                return None
            raise ReplicaEndpointError(f"{self.endpoint_name}: head {key} failed: {error_code}") from exc
        except BotoCoreError as exc:
            raise ReplicaEndpointError(f"{self.endpoint_name}: head {key} failed: {exc}") from exc
        metadata = {str(name).lower(): str(value) for name, value in (response.get("Metadata") or {}).items()}
        return PartHead(key=key, metadata=metadata)

    def part_exists(self, key: str) -> bool:
        return self.head_part(key) is not None

    def upload_part(self, key: str, path: Path, *, md5: str, size: int) -> None:
        from botocore.exceptions import BotoCoreError, ClientError

        metadata = {CHECKSUM_METADATA_KEY: str(md5), SIZE_METADATA_KEY: str(int(size))}
        try:
            with path.open("rb") as handle:
                self._client.put_object(Bucket=self.bucket_name, Key=key, Body=handle, Metadata=metadata)
        except (BotoCoreError, ClientError) as exc:
            raise ReplicaEndpointError(f"{self.endpoint_name}: upload {key} failed: {exc}") from exc
        logger.info("uploaded %s to %s/%s", key, self.endpoint_name, self.bucket_name)


def build_endpoint_clients(profile: CatalogProfile) -> dict[str, ReplicaEndpointClient]:
    return {
        name: ReplicaEndpointClient(
            endpoint_name=name,
            bucket_name=endpoint.bucket_name,
            endpoint_url=endpoint.endpoint_url,
            region_name=endpoint.region,
            path_style=endpoint.path_style,
        )
        for name, endpoint in profile.replica_endpoints.items()
    }

