"""AWS client construction for the connector."""

import logging
from typing import Optional

import boto3
from botocore.config import Config

from .settings import ConnectorConfiguration

logger = logging.getLogger(__name__)


class AWSClientManager:
    """Builds Kinesis clients bound to one ConnectorConfiguration."""

    def __init__(self, config: ConnectorConfiguration):
        self.config = config
        self._kinesis_client = None

        # Configure boto3 with retry and timeout settings
        self._boto_config = Config(
            region_name=config.region_name,
            retries={
                'max_attempts': 3,
                'mode': 'adaptive'
            },
            max_pool_connections=50,
            connect_timeout=10,
            read_timeout=30
        )

    @property
    def kinesis_client(self):
        """Get or create the shared Kinesis client."""
        if self._kinesis_client is None:
            self._kinesis_client = self.new_kinesis_client()
        return self._kinesis_client

    def new_kinesis_client(self, endpoint_url: Optional[str] = None):
        """
        Create an independent Kinesis client.

        botocore clients are thread safe, but the feeder gets its own so that
        its connection pool never competes with the pipeline runner.
        """
        credentials = self.config.credentials.client_kwargs() if self.config.credentials else {}
        endpoint = endpoint_url or self.config.kinesis_endpoint

        client = boto3.client(
            'kinesis',
            region_name=self.config.region_name,
            endpoint_url=endpoint,
            config=self._boto_config,
            **credentials
        )

        if endpoint:
            logger.info(f"Created Kinesis client for endpoint: {endpoint}")
        else:
            logger.info(f"Created AWS Kinesis client in region: {self.config.region_name}")
        return client
