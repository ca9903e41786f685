"""Default pipeline runner: polls the input stream and drives a Pipeline."""

import logging
import threading
import time
from typing import Any, Callable, Dict, Iterable, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from .config.aws_config import AWSClientManager
from .config.settings import ConnectorConfiguration
from .pipeline import Pipeline, RecordBuffer
from .utils.retry import exponential_backoff


class _EmitFailed(Exception):
    """Raised inside the retry loop while items remain unemitted."""

    def __init__(self, pending: List[Any]):
        super().__init__(f"{len(pending)} item(s) not emitted")
        self.pending = pending


class StreamProcessor:
    """
    Consumes the input stream and runs each record through the pipeline.

    Records pass ``keep`` (if the pipeline has one) and ``transform``, then
    wait in a RecordBuffer. A full buffer goes to ``emit``; items it reports
    as failed are retried up to ``retry_limit`` times before being dropped.
    """

    def __init__(
        self,
        pipeline: Pipeline,
        config: ConnectorConfiguration,
        kinesis_client=None,
        sleep: Callable[[float], None] = time.sleep,
        logger: Optional[logging.Logger] = None
    ):
        self.pipeline = pipeline
        self.config = config
        self.kinesis_client = kinesis_client
        self.buffer = RecordBuffer.from_configuration(config)
        self.logger = logger or logging.getLogger(__name__)
        self._sleep = sleep
        self._stop_event = threading.Event()
        self._shard_iterators: Dict[str, Optional[str]] = {}
        self._last_sequence_numbers: Dict[str, str] = {}

        self.stats = {
            "records_received": 0,
            "records_filtered": 0,
            "transform_errors": 0,
            "items_emitted": 0,
            "items_dropped": 0,
            "emit_calls": 0,
        }

    def stop(self) -> None:
        self._stop_event.set()

    def process_records(self, records: Iterable[bytes]) -> None:
        """Filter, transform and buffer raw records, emitting when the buffer fills."""
        keep = getattr(self.pipeline, "keep", None)

        for data in records:
            self.stats["records_received"] += 1
            if keep is not None and not keep(data):
                self.stats["records_filtered"] += 1
                continue

            try:
                item = self.pipeline.transform(data)
            except Exception as e:
                self.stats["transform_errors"] += 1
                self.logger.warning(f"Skipping record that failed to transform: {e}")
                continue

            if item is None:
                self.stats["records_filtered"] += 1
                continue

            self.buffer.consume(item, len(data))
            if self.buffer.should_flush():
                self.flush()

    def flush(self) -> None:
        """Emit everything buffered, retrying failed items with backoff."""
        pending = self.buffer.drain()
        if not pending:
            return

        def attempt():
            nonlocal pending
            self.stats["emit_calls"] += 1
            try:
                failed = list(self.pipeline.emit(pending) or [])
            except Exception as e:
                raise _EmitFailed(pending) from e
            self.stats["items_emitted"] += len(pending) - len(failed)
            if failed:
                pending = failed
                raise _EmitFailed(failed)

        try:
            exponential_backoff(
                attempt,
                max_attempts=self.config.retry_limit + 1,
                initial_delay=self.config.backoff_interval / 1000.0,
                max_delay=self.config.backoff_interval / 1000.0,
                backoff_factor=1.0,
                jitter=False,
                exceptions=(_EmitFailed,),
                sleep=self._sleep
            )
        except _EmitFailed as e:
            self.stats["items_dropped"] += len(e.pending)
            self.logger.error(
                f"Dropping {len(e.pending)} item(s) after {self.config.retry_limit} retries",
                exc_info=e.__cause__ is not None
            )

    def run(self) -> None:
        """Poll every shard of the input stream until stop() is called."""
        if self.kinesis_client is None:
            raise RuntimeError("StreamProcessor has no Kinesis client to poll with")

        stream_name = self.config.kinesis_input_stream
        self._initialize_shards(stream_name)
        self.logger.info(f"Processing {stream_name} with {len(self._shard_iterators)} shard(s)")

        try:
            while not self._stop_event.is_set() and self._shard_iterators:
                for shard_id in list(self._shard_iterators):
                    if self._stop_event.is_set():
                        break
                    self.process_records(self._poll_shard(stream_name, shard_id))

                if self.buffer.should_flush():
                    self.flush()

                self._stop_event.wait(self.config.idle_time_between_reads / 1000.0)
        finally:
            self.flush()
            self.logger.info(f"Stream processor stopped: {self.stats}")

    def _initialize_shards(self, stream_name: str) -> None:
        response = self.kinesis_client.describe_stream(StreamName=stream_name)
        for shard in response['StreamDescription']['Shards']:
            shard_id = shard['ShardId']
            iterator = self.kinesis_client.get_shard_iterator(
                StreamName=stream_name,
                ShardId=shard_id,
                ShardIteratorType=self.config.initial_position_in_stream
            )
            self._shard_iterators[shard_id] = iterator['ShardIterator']

    def _poll_shard(self, stream_name: str, shard_id: str) -> List[bytes]:
        iterator = self._shard_iterators[shard_id]
        try:
            response = self.kinesis_client.get_records(ShardIterator=iterator, Limit=self.config.max_records)
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code')
            if error_code == 'ExpiredIteratorException':
                self.logger.info(f"Shard iterator expired for {shard_id}, refreshing", extra={'shard_id': shard_id})
                self._refresh_iterator(stream_name, shard_id)
            elif error_code == 'ProvisionedThroughputExceededException':
                self.logger.warning(f"Throughput exceeded for {shard_id}, backing off", extra={'shard_id': shard_id})
            else:
                self.logger.error(f"Kinesis error for {shard_id}: {error_code}", extra={'shard_id': shard_id})
            return []
        except BotoCoreError as e:
            self.logger.error(f"Error reading {shard_id}: {e}", extra={'shard_id': shard_id})
            return []

        next_iterator = response.get('NextShardIterator')
        if next_iterator is None:
            self.logger.info(f"Shard {shard_id} is closed", extra={'shard_id': shard_id})
            del self._shard_iterators[shard_id]
        else:
            self._shard_iterators[shard_id] = next_iterator

        records = response.get('Records', [])
        if records:
            self._last_sequence_numbers[shard_id] = records[-1]['SequenceNumber']
        return [record['Data'] for record in records]

    def _refresh_iterator(self, stream_name: str, shard_id: str) -> None:
        last_seq = self._last_sequence_numbers.get(shard_id)
        kwargs = {'StreamName': stream_name, 'ShardId': shard_id}
        if last_seq:
            kwargs.update(ShardIteratorType='AFTER_SEQUENCE_NUMBER', StartingSequenceNumber=last_seq)
        else:
            kwargs.update(ShardIteratorType=self.config.initial_position_in_stream)

        try:
            self._shard_iterators[shard_id] = self.kinesis_client.get_shard_iterator(**kwargs)['ShardIterator']
        except (ClientError, BotoCoreError) as e:
            self.logger.error(f"Failed to refresh shard iterator for {shard_id}: {e}", extra={'shard_id': shard_id})
            self._shard_iterators.pop(shard_id, None)


class KinesisProcessorFactory:
    """PipelineFactory producing a StreamProcessor bound to the configuration."""

    def __init__(
        self,
        client_manager_factory: Callable[[ConnectorConfiguration], AWSClientManager] = AWSClientManager,
        logger: Optional[logging.Logger] = None
    ):
        self.client_manager_factory = client_manager_factory
        self.logger = logger

    def build(self, pipeline: Pipeline, config: ConnectorConfiguration) -> StreamProcessor:
        setup = getattr(pipeline, "setup", None)
        if setup is not None:
            setup(config)

        client = self.client_manager_factory(config).kinesis_client
        return StreamProcessor(pipeline, config, kinesis_client=client, logger=self.logger)
