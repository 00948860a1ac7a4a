"""
Batch accumulator: groups mapped records into bounded batches.
"""

from dispense_sync.core.models import Batch, BatchKey, DispenseRecord


class BatchAccumulator:
    """
    Collects records with their keys until a batch is full.

    Appends are order-preserving and keep records and keys one to one.
    Batches are numbered from 1 in the order they are drained.

    Usage:
        acc = BatchAccumulator(max_batch_size=100)
        acc.add(record, key)
        if acc.is_full():
            batch = acc.drain()
    """

    def __init__(self, max_batch_size: int = 100):
        if max_batch_size < 1:
            raise ValueError(f"max_batch_size must be at least 1, got {max_batch_size}")
        self.max_batch_size = max_batch_size
        self._records: list[DispenseRecord] = []
        self._keys: list[BatchKey] = []
        self._drained = 0

    def add(self, record: DispenseRecord, key: BatchKey) -> None:
        """
        Append one record and its key.

        Raises:
            OverflowError: If the accumulator is already full
        """
        if self.is_full():
            raise OverflowError("Batch is full; drain before adding more records")
        self._records.append(record)
        self._keys.append(key)

    def is_full(self) -> bool:
        return len(self._records) >= self.max_batch_size

    def drain(self) -> Batch | None:
        """
        Take everything accumulated so far as one batch.

        Returns:
            The batch, or None when nothing is pending
        """
        if not self._records:
            return None

        self._drained += 1
        batch = Batch(number=self._drained, records=self._records, keys=self._keys)
        self._records = []
        self._keys = []
        return batch

    @property
    def batches_drained(self) -> int:
        return self._drained

    def __len__(self) -> int:
        return len(self._records)
