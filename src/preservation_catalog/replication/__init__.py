"""Replica endpoints and the replica auditor."""

from .auditor import ReplicaAuditor, ReplicationAuditService, derive_version_status
from .endpoints import PartHead, ReplicaEndpointClient, ReplicaEndpointError, build_endpoint_clients
from .keys import replica_part_key

__all__ = [
    "PartHead",
    "ReplicaAuditor",
    "ReplicaEndpointClient",
    "ReplicaEndpointError",
    "ReplicationAuditService",
    "build_endpoint_clients",
    "derive_version_status",
    "replica_part_key",
]
