"""Sample pipeline: parses JSON user records and forwards them to the output stream."""

import logging
from typing import List, Optional

from pydantic import BaseModel, ValidationError

from ..clients.kinesis_writer import KinesisRecord, KinesisWriter
from ..config.aws_config import AWSClientManager
from ..config.settings import MAX_RECORDS_PER_PUT, ConnectorConfiguration
from ..errors import PublishError

logger = logging.getLogger(__name__)


class KinesisMessageModel(BaseModel):
    """A user profile record as found in users.txt."""
    userid: int
    username: str
    firstname: str
    lastname: str
    city: str
    state: str
    email: str
    phone: str
    likesports: bool = False
    liketheatre: bool = False
    likeconcerts: bool = False
    likejazz: bool = False
    likeclassical: bool = False
    likeopera: bool = False
    likerock: bool = False
    likevegas: bool = False
    likebroadway: bool = False
    likemusicals: bool = False


class JsonPipeline:
    """Validates each record as a KinesisMessageModel and re-emits it as compact JSON."""

    def __init__(self, writer: Optional[KinesisWriter] = None):
        self.writer = writer

    def setup(self, config: ConnectorConfiguration) -> None:
        if self.writer is None:
            client = AWSClientManager(config).new_kinesis_client()
            self.writer = KinesisWriter(client, config.kinesis_output_stream)

    def transform(self, record: bytes) -> Optional[KinesisMessageModel]:
        try:
            return KinesisMessageModel.model_validate_json(record)
        except ValidationError as e:
            logger.warning(f"Dropping malformed record: {e.error_count()} validation error(s)")
            return None

    def emit(self, items: List[KinesisMessageModel]) -> List[KinesisMessageModel]:
        failed: List[KinesisMessageModel] = []
        for start in range(0, len(items), MAX_RECORDS_PER_PUT):
            chunk = items[start:start + MAX_RECORDS_PER_PUT]
            records = [
                KinesisRecord(data=item.model_dump_json().encode('utf-8'), partition_key=str(item.userid))
                for item in chunk
            ]
            try:
                self.writer.publish_batch(records)
            except PublishError as e:
                logger.warning(f"Emit to {self.writer.stream_name} failed: {e}")
                failed.extend(chunk)
        return failed
