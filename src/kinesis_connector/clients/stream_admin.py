"""Kinesis stream provisioning client."""

import logging
from typing import Optional

from botocore.exceptions import BotoCoreError, ClientError, WaiterError

from ..config.settings import ConnectorConfiguration
from ..errors import ProvisioningError


ALREADY_EXISTS = 'ResourceInUseException'


class KinesisStreamAdmin:
    """
    Idempotent stream creation.

    ``create_*`` returns True when the stream was created and False when it
    already existed. Either way the call only returns once the stream is
    ACTIVE.
    """

    def __init__(
        self,
        kinesis_client,
        waiter_delay: int = 5,
        waiter_max_attempts: int = 60,
        logger: Optional[logging.Logger] = None
    ):
        self.kinesis_client = kinesis_client
        self.waiter_delay = waiter_delay
        self.waiter_max_attempts = waiter_max_attempts
        self.logger = logger or logging.getLogger(__name__)

    def create_input_stream(self, config: ConnectorConfiguration) -> bool:
        return self.create_stream(
            config.kinesis_input_stream,
            config.kinesis_input_stream_shard_count,
            resource="input stream"
        )

    def create_output_stream(self, config: ConnectorConfiguration) -> bool:
        return self.create_stream(
            config.kinesis_output_stream,
            config.kinesis_output_stream_shard_count,
            resource="output stream"
        )

    def create_stream(self, stream_name: str, shard_count: int, resource: str = "stream") -> bool:
        created = True
        try:
            self.kinesis_client.create_stream(StreamName=stream_name, ShardCount=shard_count)
            self.logger.info(
                f"Creating {resource} {stream_name} with {shard_count} shard(s)",
                extra={'stream': stream_name}
            )
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code')
            if error_code != ALREADY_EXISTS:
                raise ProvisioningError(resource, stream_name, f"{error_code}: {e}", cause=e) from e
            created = False
            self.logger.info(f"{resource.capitalize()} {stream_name} already exists", extra={'stream': stream_name})
        except BotoCoreError as e:
            raise ProvisioningError(resource, stream_name, str(e), cause=e) from e

        self.wait_for_active(stream_name, resource)
        return created

    def wait_for_active(self, stream_name: str, resource: str = "stream") -> None:
        """Block until the stream reports ACTIVE."""
        try:
            waiter = self.kinesis_client.get_waiter('stream_exists')
            waiter.wait(
                StreamName=stream_name,
                WaiterConfig={
                    'Delay': self.waiter_delay,
                    'MaxAttempts': self.waiter_max_attempts
                }
            )
        except WaiterError as e:
            raise ProvisioningError(resource, stream_name, f"stream did not become ACTIVE: {e}", cause=e) from e
        except (ClientError, BotoCoreError) as e:
            raise ProvisioningError(resource, stream_name, str(e), cause=e) from e

        self.logger.info(f"{resource.capitalize()} {stream_name} is ACTIVE", extra={'stream': stream_name})
