"""
Batch submission coordinator for bulk party import.

Drives id allocation and record creation against the remote store in
throttled batches. Failures are accounted per record and never abort the
batch or later batches; the caller always gets a complete ImportOutcome.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence, Tuple

from ..core.exceptions import (
    AllocationError, DuplicateNameError, RecordImportError, RemoteNetworkError,
    RemoteTimeoutError, SubmissionError,
)
from ..core.logging import CorrelationContext, log_with_context
from ..core.models import (
    FailureCategory, FailureStage, ImportFailure, ImportOutcome, ParsedPartyInput,
)
from ..core.remote_store import RemoteStore
from .batch_pool import BatchResult, BoundedBatchPool

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]

FAILURE_REASONS = {
    FailureCategory.DUPLICATE_NAME: "A party with this name already exists",
    FailureCategory.NETWORK: "Unable to connect to the backend",
    FailureCategory.TIMEOUT: "Request to the backend timed out",
}


@dataclass
class BatchImportConfig:
    """
    Configuration for bulk party import.

    Attributes:
        batch_size: Records per batch, also the default in-flight cap
        max_concurrency: Optional lower in-flight cap
        inter_batch_delay_seconds: Pause between batches
    """
    batch_size: int = 10
    max_concurrency: Optional[int] = None
    inter_batch_delay_seconds: float = 0.1


def classify_failure(error: BaseException) -> Tuple[FailureCategory, str]:
    """
    Classify a remote-store failure and build a user-facing reason.

    Exception types are checked first; otherwise the message is matched
    against known substrings.

    Returns:
        (category, reason)
    """
    if isinstance(error, DuplicateNameError):
        category = FailureCategory.DUPLICATE_NAME
    elif isinstance(error, (RemoteTimeoutError, asyncio.TimeoutError, TimeoutError)):
        category = FailureCategory.TIMEOUT
    elif isinstance(error, (RemoteNetworkError, ConnectionError)):
        category = FailureCategory.NETWORK
    else:
        message = str(error).lower()
        if "already exists" in message or "duplicate" in message:
            category = FailureCategory.DUPLICATE_NAME
        elif "timeout" in message or "timed out" in message:
            category = FailureCategory.TIMEOUT
        elif "network" in message or "fetch" in message or "connect" in message:
            category = FailureCategory.NETWORK
        else:
            category = FailureCategory.UNKNOWN

    if category == FailureCategory.UNKNOWN:
        return category, str(error) or "Unknown error"
    return category, FAILURE_REASONS[category]


class BatchSubmissionCoordinator:
    """
    Imports parsed party records into a remote store.

    For every record: allocate an id, then create the party under it. Both
    calls are awaited; records within a batch run concurrently.
    """

    def __init__(
        self,
        store: RemoteStore,
        config: Optional[BatchImportConfig] = None,
        pool: Optional[BoundedBatchPool] = None,
    ):
        """
        Initialize the coordinator.

        Args:
            store: Remote store providing generate_id/create_party
            config: Batch settings (uses defaults if not provided)
            pool: Pre-built pool (built from config if not provided)
        """
        self.store = store
        self.config = config or BatchImportConfig()
        self.pool = pool or BoundedBatchPool(
            batch_size=self.config.batch_size,
            max_concurrency=self.config.max_concurrency,
            inter_batch_delay=self.config.inter_batch_delay_seconds,
        )

    async def import_parties(
        self,
        records: Sequence[ParsedPartyInput],
        on_progress: Optional[ProgressCallback] = None,
        import_id: Optional[str] = None,
    ) -> ImportOutcome:
        """
        Import records in batches.

        Args:
            records: Validated party inputs, in order
            on_progress: Called as on_progress(processed_so_far, total) after
                each batch settles
            import_id: Correlation id for logs (auto-generated if not provided)

        Returns:
            ImportOutcome where success_count + len(failed) == len(records)
        """
        if import_id is None:
            import_id = str(uuid.uuid4())

        outcome = ImportOutcome(total=len(records))
        failed: List[ImportFailure] = []

        async def submit(record: ParsedPartyInput) -> None:
            try:
                await self._import_one(record)
            except RecordImportError as e:
                failed.append(_to_failure(e))

        def batch_done(batch: BatchResult) -> None:
            # submit() only lets non-classified errors escape
            for item, result in zip(batch.items, batch.results):
                if isinstance(result, BaseException):
                    category, reason = classify_failure(result)
                    failed.append(ImportFailure(name=item.name, reason=reason, category=category))

            log_with_context(
                logger,
                logging.INFO,
                f"Batch {batch.index + 1} complete: {batch.processed_so_far}/{batch.total} processed, "
                f"{len(failed)} failed so far",
                batch_index=batch.index,
            )
            if on_progress is not None:
                on_progress(batch.processed_so_far, batch.total)

        with CorrelationContext(import_id=import_id, store=self.store.get_name()):
            log_with_context(
                logger,
                logging.INFO,
                f"Starting import of {len(records)} parties "
                f"(batch_size={self.pool.batch_size}, max_concurrency={self.pool.max_concurrency})",
            )
            batches = await self.pool.run(records, submit, on_batch_complete=batch_done)

            outcome.batches = len(batches)
            outcome.failed = failed
            outcome.success_count = len(records) - len(failed)
            outcome.completed_at = datetime.now(timezone.utc)

            log_with_context(
                logger,
                logging.INFO,
                f"Import complete: succeeded={outcome.success_count}, failed={len(failed)}",
            )

        return outcome

    async def _import_one(self, record: ParsedPartyInput) -> str:
        """
        Allocate an id and create one party.

        Returns:
            The new party id

        Raises:
            AllocationError: If id generation failed
            SubmissionError: If creation failed after allocation
        """
        try:
            party_id = await self.store.generate_id(record.name, record.phone)
        except Exception as e:
            category, reason = classify_failure(e)
            logger.warning(f"Id allocation failed for '{record.name}': {e}")
            raise AllocationError(record.name, reason, category, cause=e) from e

        try:
            await self.store.create_party(party_id, record)
        except Exception as e:
            category, reason = classify_failure(e)
            logger.warning(
                f"Create failed for '{record.name}'; allocated id {party_id} is left unattached: {e}"
            )
            raise SubmissionError(record.name, reason, category, party_id, cause=e) from e

        logger.debug(f"Created party {party_id} ({record.name})")
        return party_id


def _to_failure(error: RecordImportError) -> ImportFailure:
    if isinstance(error, SubmissionError):
        return ImportFailure(
            name=error.name,
            reason=error.reason,
            category=error.category,
            stage=FailureStage.SUBMISSION,
            allocated_id=error.allocated_id,
        )
    return ImportFailure(
        name=error.name,
        reason=error.reason,
        category=error.category,
        stage=FailureStage.ALLOCATION,
    )


async def import_parties(
    store: RemoteStore,
    records: Sequence[ParsedPartyInput],
    batch_size: int = 10,
    on_progress: Optional[ProgressCallback] = None,
    inter_batch_delay_seconds: float = 0.1,
) -> ImportOutcome:
    """
    Convenience wrapper around BatchSubmissionCoordinator.import_parties.
    """
    config = BatchImportConfig(
        batch_size=batch_size,
        inter_batch_delay_seconds=inter_batch_delay_seconds,
    )
    coordinator = BatchSubmissionCoordinator(store, config)
    return await coordinator.import_parties(records, on_progress=on_progress)
