"""Pipeline contract and the buffer that sits between transform and emit."""

import time
from typing import Any, Callable, List, Optional, Protocol, runtime_checkable

from .config.settings import ConnectorConfiguration


@runtime_checkable
class Pipeline(Protocol):
    """
    Caller supplied record processing.

    ``transform`` turns one raw record into an output item (None drops it).
    ``emit`` writes a buffered list of items and returns the ones that failed.

    A pipeline may also define ``keep(record) -> bool`` to filter raw records
    and ``setup(config)`` to open its sinks once the configuration is known.
    """

    def transform(self, record: bytes) -> Any:
        ...

    def emit(self, items: List[Any]) -> List[Any]:
        ...


class PipelineFactory(Protocol):
    """Builds the running processor; invoked exactly once per bootstrap."""

    def build(self, pipeline: Pipeline, config: ConnectorConfiguration) -> Any:
        ...


class RecordBuffer:
    """
    Holds transformed items until a count, byte size or age limit is reached.
    """

    def __init__(
        self,
        record_limit: int,
        byte_limit: int,
        millis_limit: int,
        clock: Callable[[], float] = time.monotonic
    ):
        self.record_limit = record_limit
        self.byte_limit = byte_limit
        self.millis_limit = millis_limit
        self._clock = clock
        self._items: List[Any] = []
        self._bytes = 0
        self._first_at: Optional[float] = None

    @classmethod
    def from_configuration(cls, config: ConnectorConfiguration, clock: Callable[[], float] = time.monotonic):
        return cls(
            record_limit=config.buffer_record_count_limit,
            byte_limit=config.buffer_byte_size_limit,
            millis_limit=config.buffer_milliseconds_limit,
            clock=clock,
        )

    def __len__(self) -> int:
        return len(self._items)

    @property
    def byte_size(self) -> int:
        return self._bytes

    def consume(self, item: Any, size_bytes: int) -> None:
        if not self._items:
            self._first_at = self._clock()
        self._items.append(item)
        self._bytes += size_bytes

    def should_flush(self) -> bool:
        if not self._items:
            return False
        if len(self._items) >= self.record_limit or self._bytes >= self.byte_limit:
            return True
        return (self._clock() - self._first_at) * 1000 >= self.millis_limit

    def drain(self) -> List[Any]:
        items = self._items
        self._items = []
        self._bytes = 0
        self._first_at = None
        return items
