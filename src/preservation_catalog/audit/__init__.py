"""Catalog audits: version reconciliation and fixity."""

from .checksum_validation import ChecksumValidationService
from .fixity import FixityAuditor
from .support import AuditOutcome, FollowUp, StructuralCheck, with_transaction_and_rescue
from .version_reconciler import VersionReconciler

__all__ = [
    "AuditOutcome",
    "ChecksumValidationService",
    "FixityAuditor",
    "FollowUp",
    "StructuralCheck",
    "VersionReconciler",
    "with_transaction_and_rescue",
]
