"""
Batch execution for bulk party import.
"""

from .batch_pool import BatchResult, BoundedBatchPool, partition
from .batch_coordinator import (
    BatchImportConfig,
    BatchSubmissionCoordinator,
    classify_failure,
    import_parties,
)

__all__ = [
    "BatchResult",
    "BoundedBatchPool",
    "partition",
    "BatchImportConfig",
    "BatchSubmissionCoordinator",
    "classify_failure",
    "import_parties",
]
