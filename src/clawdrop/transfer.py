"""Execution of a transfer plan against an object store.

Uploads run on a fixed-size thread pool: a pool worker is the transfer
slot, so at most `concurrency` files are open and in flight no matter how
large the build is. Completion events are consumed by the calling thread
alone (via as_completed), which is the single writer of progress totals.

Deletes run one at a time in plan order so the failure point is always
unambiguous.

Nothing is rolled back on failure. Objects already written stay written and
objects already deleted stay deleted; the next push diffs against whatever
was published and reconciles.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import List, Optional, Union

from .constants import DEFAULT_UPLOAD_CONCURRENCY
from .core import PlannedTransfer
from .errors import TransferError
from .hashing import hex_to_base64
from .progress import Phase, ProgressAggregator, ProgressSnapshot, TransferObserver
from .storage import ObjectStore

logger = logging.getLogger(__name__)


class TransferOrchestrator:
    """Runs the upload and delete phases of a push."""

    def __init__(
        self,
        root: Union[str, Path],
        concurrency: int = DEFAULT_UPLOAD_CONCURRENCY,
        observer: Optional[TransferObserver] = None,
    ):
        """
        Args:
            root: Build directory the planned relative paths resolve against
            concurrency: Maximum simultaneous uploads
            observer: Receives phase and progress notifications
        """
        if concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {concurrency}")
        self.root = Path(root)
        self.concurrency = concurrency
        self.observer = observer

    def upload(self, items: List[PlannedTransfer], store: ObjectStore) -> ProgressSnapshot:
        """Upload every planned file, aborting on the first failure.

        Args:
            items: Planned uploads (keys already include the prefix)
            store: Store bound to the upload-scoped credentials

        Returns:
            Final progress snapshot (bytes done, throughput)

        Raises:
            TransferError: On the first failed upload. Pending uploads are
                cancelled; uploads already in flight are allowed to finish.
        """
        total_bytes = sum(item.record.size for item in items)
        aggregator = ProgressAggregator(Phase.UPLOAD, total_bytes, self.observer)
        if not items:
            return aggregator.snapshot()

        logger.info(
            "Uploading %d files (%d bytes) to %s with %d workers",
            len(items), total_bytes, store.bucket, self.concurrency,
        )
        aggregator.start()

        executor = ThreadPoolExecutor(
            max_workers=self.concurrency, thread_name_prefix="clawdrop-upload"
        )
        try:
            futures = {executor.submit(self._upload_one, store, item): item for item in items}
            for future in as_completed(futures):
                future.result()
                aggregator.record(futures[future].record.size)
        except BaseException:
            executor.shutdown(wait=True, cancel_futures=True)
            raise
        executor.shutdown(wait=True)

        aggregator.finish()
        return aggregator.snapshot()

    def _upload_one(self, store: ObjectStore, item: PlannedTransfer) -> None:
        record = item.record
        try:
            store.put_object(
                item.key,
                self.root / record.path,
                hex_to_base64(record.hash),
                record.content_type,
            )
        except Exception as e:
            raise TransferError("uploading", record.path, e) from e
        logger.debug("Uploaded %s (%d bytes)", record.path, record.size)

    def delete(self, items: List[PlannedTransfer], store: ObjectStore) -> ProgressSnapshot:
        """Delete every planned object sequentially, aborting on the first failure.

        Args:
            items: Planned deletes in deterministic order
            store: Store bound to the delete-scoped credentials

        Returns:
            Final progress snapshot (objects deleted)

        Raises:
            TransferError: On the first failed delete
        """
        aggregator = ProgressAggregator(Phase.DELETE, len(items), self.observer)
        if not items:
            return aggregator.snapshot()

        logger.info("Deleting %d obsolete objects from %s", len(items), store.bucket)
        aggregator.start()

        for item in items:
            try:
                store.delete_object(item.key)
            except Exception as e:
                raise TransferError("deleting", item.record.path, e) from e
            logger.debug("Deleted %s", item.key)
            aggregator.record(1)

        aggregator.finish()
        return aggregator.snapshot()
