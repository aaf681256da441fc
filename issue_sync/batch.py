"""
Batched concurrent writes.

Operations are split into contiguous batches. The operations of one
batch run concurrently on a thread pool, and a batch must settle
completely before the next one starts, so at most batch_size writes
are ever in flight.
"""

from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Sequence, TypeVar

from rich.console import Console
from rich.markup import escape

from issue_sync.models import ErrorRecord

console = Console()

T = TypeVar("T")


def chunk(operations: Sequence[T], size: int) -> list[Sequence[T]]:
    """Split a sequence into contiguous chunks of at most `size` elements."""
    if size < 1:
        raise ValueError(f"batch size must be positive, got {size}")
    return [operations[i:i + size] for i in range(0, len(operations), size)]


@dataclass
class BatchReport(Generic[T]):
    """Outcome of a BatchWriter run."""

    succeeded: list[T] = field(default_factory=list)
    errors: list[ErrorRecord] = field(default_factory=list)
    batch_sizes: list[int] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return len(self.succeeded)


class BatchWriter:
    """
    Executes write operations in bounded concurrent batches.

    A failing operation is recorded and does not stop the others
    in its batch or any later batch.
    """

    def __init__(self, batch_size: int, stage: str = "write"):
        if batch_size < 1:
            raise ValueError(f"batch size must be positive, got {batch_size}")
        self.batch_size = batch_size
        self.stage = stage

    def run(
        self,
        operations: Sequence[T],
        execute: Callable[[T], Any],
        describe: Callable[[T], Any] = repr,
    ) -> BatchReport[T]:
        """
        Run every operation.

        Args:
            operations: Operations in the order they should be issued.
            execute: Performs one operation, raising on failure.
            describe: Identity used in error records.

        Returns:
            BatchReport with successes, errors and per-batch sizes.
        """
        report: BatchReport[T] = BatchReport()
        batches = chunk(list(operations), self.batch_size)
        if not batches:
            return report

        total = len(batches)

        with ThreadPoolExecutor(max_workers=self.batch_size) as executor:
            for index, batch in enumerate(batches, start=1):
                futures = [(op, executor.submit(execute, op)) for op in batch]
                wait([f for _, f in futures])

                failed = 0
                for op, future in futures:
                    error = future.exception()
                    if error is None:
                        report.succeeded.append(op)
                        continue

                    failed += 1
                    record = ErrorRecord(stage=self.stage, identity=describe(op), message=str(error))
                    report.errors.append(record)
                    console.print(f"[yellow]Warning: {escape(record.describe())}[/yellow]")

                report.batch_sizes.append(len(batch))
                console.print(
                    f"Completed batch {index}/{total} "
                    f"(size {len(batch)}, {failed} failed)"
                )

        return report
