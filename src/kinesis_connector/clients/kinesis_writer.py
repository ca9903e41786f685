"""Kinesis stream-write client."""

import hashlib
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from botocore.exceptions import BotoCoreError, ClientError

from ..config.settings import MAX_RECORDS_PER_PUT
from ..errors import PublishError


@dataclass(frozen=True)
class KinesisRecord:
    """One record bound for a stream."""
    data: bytes
    partition_key: str
    explicit_hash_key: Optional[str] = None

    @property
    def size(self) -> int:
        """Bytes this record counts against the PutRecords request limit."""
        return len(self.data) + len(self.partition_key.encode("utf-8"))

    def to_entry(self) -> Dict[str, Any]:
        entry = {'Data': self.data, 'PartitionKey': self.partition_key}
        if self.explicit_hash_key:
            entry['ExplicitHashKey'] = self.explicit_hash_key
        return entry


def default_partition_key(data: bytes) -> str:
    """Hash the payload for an even spread over shards."""
    return hashlib.md5(data).hexdigest()[:16]


@dataclass
class WriterStats:
    """Statistics for write operations."""
    records_sent: int = 0
    records_failed: int = 0
    bytes_sent: int = 0
    requests: int = 0


class KinesisWriter:
    """
    Publishes records to one stream.

    Throttling and transient network errors are retried by botocore (see
    AWSClientManager); anything that still fails surfaces as PublishError.
    """

    def __init__(self, kinesis_client, stream_name: str, logger: Optional[logging.Logger] = None):
        self.kinesis_client = kinesis_client
        self.stream_name = stream_name
        self.logger = logger or logging.getLogger(__name__)
        self.stats = WriterStats()

    def publish(self, record: KinesisRecord) -> Dict[str, Any]:
        """Write a single record with PutRecord."""
        self.stats.requests += 1
        try:
            response = self.kinesis_client.put_record(StreamName=self.stream_name, **record.to_entry())
        except (ClientError, BotoCoreError) as e:
            self.stats.records_failed += 1
            raise PublishError(self.stream_name, str(e), cause=e) from e

        self.stats.records_sent += 1
        self.stats.bytes_sent += len(record.data)
        return response

    def publish_batch(self, records: Sequence[KinesisRecord]) -> Dict[str, Any]:
        """
        Write a batch with PutRecords.

        Returns:
            The PutRecords response

        Raises:
            PublishError: If the call fails or any record in it is rejected
        """
        if not records:
            return {'FailedRecordCount': 0, 'Records': []}
        if len(records) > MAX_RECORDS_PER_PUT:
            raise PublishError(
                self.stream_name,
                f"batch of {len(records)} exceeds the {MAX_RECORDS_PER_PUT} record PutRecords limit",
                failed_count=len(records)
            )

        self.stats.requests += 1
        try:
            response = self.kinesis_client.put_records(
                StreamName=self.stream_name,
                Records=[record.to_entry() for record in records]
            )
        except (ClientError, BotoCoreError) as e:
            self.stats.records_failed += len(records)
            raise PublishError(self.stream_name, str(e), failed_count=len(records), cause=e) from e

        failed_count = response.get('FailedRecordCount', 0)
        sent = [r for r, result in zip(records, response.get('Records', [])) if 'ErrorCode' not in result]
        self.stats.records_sent += len(sent)
        self.stats.bytes_sent += sum(len(r.data) for r in sent)

        if failed_count > 0:
            self.stats.records_failed += failed_count
            error_codes = self._error_codes(response)
            raise PublishError(
                self.stream_name,
                f"partial failure ({', '.join(error_codes)})",
                failed_count=failed_count
            )

        self.logger.debug(f"Sent {len(records)} records to {self.stream_name}")
        return response

    @staticmethod
    def _error_codes(response: Dict[str, Any]) -> List[str]:
        codes = []
        for record_result in response.get('Records', []):
            code = record_result.get('ErrorCode')
            if code and code not in codes:
                codes.append(code)
        return codes or ['unknown']
