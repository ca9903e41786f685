"""
Stream source: replays records from a file onto the input stream.

The feeder simulates external producers for testing and demos. It runs on its
own thread and publishes either one record per call or batches bounded by a
record count and a byte size. With looping enabled it rewinds the source and
starts over until stopped.
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Callable, ContextManager, Iterator, List, Optional, Protocol, Union

from .clients.kinesis_writer import KinesisRecord, default_partition_key
from .config.settings import MAX_RECORDS_PER_PUT, ConnectorConfiguration
from .errors import FeedReadError, PublishError


class FeederStatus(str, Enum):
    IDLE = "IDLE"
    READING = "READING"
    ACCUMULATING = "ACCUMULATING"
    PUBLISHING = "PUBLISHING"
    EXHAUSTED = "EXHAUSTED"
    STOPPED = "STOPPED"


@dataclass
class FeederState:
    """Progress of the feeder thread. Readers only ever see copies."""
    status: FeederStatus = FeederStatus.IDLE
    offset: int = 0
    loop_count: int = 0
    records_read: int = 0
    publish_calls: int = 0
    records_published: int = 0
    publish_failures: int = 0
    read_failures: int = 0


class RecordWriter(Protocol):
    """Stream-write capability the feeder publishes through."""

    def publish(self, record: KinesisRecord):
        ...

    def publish_batch(self, records: List[KinesisRecord]):
        ...


class RecordSource(Protocol):
    """A rewindable source: every ``open()`` starts from the first record."""
    name: str

    def open(self) -> ContextManager[Iterator[bytes]]:
        ...


class FileRecordSource:
    """Newline delimited records from a file. Blank lines are skipped."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.name = self.path.name

    @contextmanager
    def open(self) -> Iterator[Iterator[bytes]]:
        try:
            handle = open(self.path, 'rb')
        except OSError as e:
            raise FeedReadError(str(self.path), e.strerror or str(e), cause=e) from e

        with handle:
            yield self._records(handle)

    def _records(self, handle) -> Iterator[bytes]:
        try:
            for line in handle:
                record = line.rstrip(b"\r\n")
                if record.strip():
                    yield record
        except OSError as e:
            raise FeedReadError(str(self.path), e.strerror or str(e), cause=e) from e


@dataclass(frozen=True)
class FeederResult:
    """Final counters of a finished feeder."""
    state: FeederState
    stopped: bool


class RecordFeeder:
    """
    Publishes every record of a source onto a stream.

    The publishing mode is fixed at construction. Publish failures are logged
    and the replay moves on; the writer owns any retry policy.
    """

    def __init__(
        self,
        writer: RecordWriter,
        source: RecordSource,
        loop: bool = False,
        batched: bool = False,
        max_batch_records: int = MAX_RECORDS_PER_PUT,
        max_batch_bytes: int = 5 * 1024 * 1024,
        partition_key: Optional[Callable[[bytes], str]] = None,
        logger: Optional[logging.Logger] = None
    ):
        if max_batch_records < 1 or max_batch_bytes < 1:
            raise ValueError("Batch limits must be positive")

        self.writer = writer
        self.source = source
        self.loop = loop
        self.batched = batched
        self.max_batch_records = max_batch_records
        self.max_batch_bytes = max_batch_bytes
        self.partition_key = partition_key or default_partition_key
        self.logger = logger or logging.getLogger(__name__)

        self._state = FeederState()
        self._state_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._handle: Optional["FeederHandle"] = None

    @classmethod
    def from_configuration(
        cls,
        config: ConnectorConfiguration,
        writer: RecordWriter,
        source_path: Union[str, Path],
        loop: bool,
        logger: Optional[logging.Logger] = None
    ) -> "RecordFeeder":
        """Batched iff the configuration batches records in put requests."""
        return cls(
            writer=writer,
            source=FileRecordSource(source_path),
            loop=loop,
            batched=config.batch_records_in_put_request,
            max_batch_records=config.stream_source_batch_record_limit,
            max_batch_bytes=config.stream_source_batch_byte_limit,
            logger=logger,
        )

    def start(self) -> "FeederHandle":
        """Spawn the feeder thread and return without waiting for it."""
        if self._handle is not None:
            raise RuntimeError("Stream source already started")

        thread = threading.Thread(target=self._run, name=f"stream-source-{self.source.name}", daemon=True)
        self._handle = FeederHandle(self, thread)
        mode = "batched" if self.batched else "single-record"
        self.logger.info(f"Starting stream source ({mode}, loop={self.loop}) from {self.source.name}")
        thread.start()
        return self._handle

    def stop(self) -> None:
        self._stop_event.set()

    @property
    def stopping(self) -> bool:
        return self._stop_event.is_set()

    def state(self) -> FeederState:
        with self._state_lock:
            return replace(self._state)

    def run(self) -> FeederResult:
        """Run the replay on the calling thread until exhausted or stopped."""
        while not self.stopping:
            if self.loop:
                self.logger.info(f"Starting iteration {self._state.loop_count} over input file.")

            read, failed = self._run_iteration()

            if not self.loop or self.stopping:
                break
            if read == 0:
                reason = "failed before yielding a record" if failed else "is empty"
                self.logger.warning(f"Stream source {self.source.name} {reason}, not looping")
                break

            self._update(loop_count=self._state.loop_count + 1)

        self._update(status=FeederStatus.STOPPED if self.stopping else FeederStatus.EXHAUSTED)
        return FeederResult(state=self.state(), stopped=self.stopping)

    def _run(self) -> None:
        try:
            result = self.run()
            self._handle._finish(result, None)
        except Exception as e:
            # Never let the feeder take the host process down
            self.logger.error(f"Stream source crashed: {e}", exc_info=True)
            self._update(status=FeederStatus.STOPPED)
            self._handle._finish(None, e)

    def _run_iteration(self):
        """One pass over the source. Returns (records read, whether a read failed)."""
        self._update(status=FeederStatus.READING, offset=0)
        batch: List[KinesisRecord] = []
        batch_bytes = 0
        read = 0
        failed = False

        try:
            with self.source.open() as records:
                for data in records:
                    if self.stopping:
                        break

                    read += 1
                    with self._state_lock:
                        self._state.offset = read
                        self._state.records_read += 1

                    record = KinesisRecord(data=data, partition_key=self.partition_key(data))
                    if not self.batched:
                        self._publish([record])
                        self._update(status=FeederStatus.READING)
                        continue

                    # Partition keys count toward the request size. An oversized
                    # record still goes out, alone in its own batch
                    if batch and batch_bytes + record.size > self.max_batch_bytes:
                        self._publish(batch)
                        batch, batch_bytes = [], 0

                    batch.append(record)
                    batch_bytes += record.size
                    self._update(status=FeederStatus.ACCUMULATING)

                    if len(batch) >= self.max_batch_records:
                        self._publish(batch)
                        batch, batch_bytes = [], 0
        except FeedReadError as e:
            failed = True
            with self._state_lock:
                self._state.read_failures += 1
            self.logger.error(f"Stream source iteration aborted: {e}")

        if batch:
            self._publish(batch)

        self._update(status=FeederStatus.EXHAUSTED)
        self.logger.info(f"Added {read} records to stream source.")
        return read, failed

    def _publish(self, records: List[KinesisRecord]) -> None:
        if self.stopping:
            return

        self._update(status=FeederStatus.PUBLISHING)
        try:
            if self.batched:
                self.writer.publish_batch(records)
            else:
                self.writer.publish(records[0])
        except PublishError as e:
            with self._state_lock:
                self._state.publish_calls += 1
                self._state.publish_failures += 1
            self.logger.warning(f"Stream source publish failed, continuing: {e}")
            return

        with self._state_lock:
            self._state.publish_calls += 1
            self._state.records_published += len(records)

    def _update(self, **changes) -> None:
        with self._state_lock:
            for key, value in changes.items():
                setattr(self._state, key, value)


class FeederHandle:
    """Caller side of a running feeder: stop it, wait for it, read its result."""

    def __init__(self, feeder: RecordFeeder, thread: threading.Thread):
        self._feeder = feeder
        self._thread = thread
        self._done = threading.Event()
        self._result: Optional[FeederResult] = None
        self._error: Optional[BaseException] = None

    def _finish(self, result: Optional[FeederResult], error: Optional[BaseException]) -> None:
        self._result = result
        self._error = error
        self._done.set()

    def stop(self) -> None:
        """Ask the feeder to finish after the record in flight."""
        self._feeder.stop()

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the feeder to finish. Returns True if it did."""
        return self._done.wait(timeout)

    def done(self) -> bool:
        return self._done.is_set()

    def state(self) -> FeederState:
        return self._feeder.state()

    def result(self, timeout: Optional[float] = None) -> FeederResult:
        """
        Wait for and return the final result.

        Raises:
            TimeoutError: If the feeder is still running after ``timeout``
            Exception: Whatever unexpectedly ended the feeder thread
        """
        if not self.join(timeout):
            raise TimeoutError("Stream source still running")
        if self._error is not None:
            raise self._error
        return self._result


def start_feeder(
    config: ConnectorConfiguration,
    writer: RecordWriter,
    source_path: Union[str, Path],
    loop: bool,
    logger: Optional[logging.Logger] = None
) -> FeederHandle:
    """Build a feeder from the configuration and start it on its own thread."""
    return RecordFeeder.from_configuration(config, writer, source_path, loop, logger=logger).start()
